"""
Unit tests for key derivation and validation.
"""

import pytest

from registry.exceptions import InvalidArgument, InvalidKey
from registry.keys import (
    ZERO_HASH, ZERO_IDENTITY, category_key, credential_key, is_valid_hash,
    is_valid_identity, is_zero_identity, issuer_key, keccak256, normalize_hash,
    normalize_identity, role_id, truncate, try_normalize_hash,
    try_normalize_identity
)
from registry.schema import Role


class TestKeccak:
    """Test the Keccak-256 hash function."""

    def test_known_vectors(self):
        """Keccak-256 differs from NIST SHA3-256; check the Keccak vectors."""
        assert keccak256("") == "0xc5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
        assert keccak256("abc") == "0x4e03657aea45a94fc7d47ba826c8d667c0d1e6e33a64a036ec44f58fa12d6c45"

    def test_str_and_bytes_agree(self):
        assert keccak256("cert-1") == keccak256(b"cert-1")

    def test_utf8_encoding(self):
        assert keccak256("Université") == keccak256("Université".encode("utf-8"))

    def test_output_format(self):
        digest = keccak256("anything")
        assert digest.startswith("0x")
        assert len(digest) == 66
        assert digest == digest.lower()


class TestDerivations:
    """Test name/content to key derivations."""

    def test_issuer_key_is_hash_of_name(self):
        assert issuer_key("Acme") == keccak256("Acme")

    def test_issuer_key_is_deterministic(self):
        assert issuer_key("Acme") == issuer_key("Acme")

    def test_issuer_names_are_not_normalized(self):
        assert issuer_key("Acme") != issuer_key("acme")
        assert issuer_key("Acme") != issuer_key(" Acme")

    def test_issuer_key_rejects_empty_name(self):
        with pytest.raises(InvalidArgument):
            issuer_key("")

    def test_credential_and_category_keys(self):
        assert credential_key("cert-1") == keccak256("cert-1")
        assert category_key("BACHELOR") == keccak256("BACHELOR")

    def test_credential_key_rejects_empty_content(self):
        with pytest.raises(InvalidArgument):
            credential_key("")

    def test_role_ids(self):
        assert role_id(Role.ADMINISTRATOR) == keccak256("ADMINISTRATOR_ROLE")
        assert role_id(Role.ISSUER) == keccak256("ISSUER_ROLE")
        assert Role.ISSUER.role_id == role_id(Role.ISSUER)


class TestValidation:
    """Test format validation and normalization."""

    def test_valid_hash(self):
        assert is_valid_hash("0x" + "ab" * 32)
        assert is_valid_hash("AB" * 32)
        assert not is_valid_hash("0x" + "ab" * 31)
        assert not is_valid_hash("0x" + "zz" * 32)
        assert not is_valid_hash(None)
        assert not is_valid_hash(123)

    def test_valid_identity(self):
        assert is_valid_identity("0x" + "1" * 40)
        assert is_valid_identity("1" * 40)
        assert not is_valid_identity("0x" + "1" * 64)
        assert not is_valid_identity("")

    def test_normalize_hash(self):
        assert normalize_hash("AB" * 32) == "0x" + "ab" * 32
        assert normalize_hash("0X" + "CD" * 32) == "0x" + "cd" * 32

    def test_normalize_hash_rejects_malformed(self):
        with pytest.raises(InvalidKey):
            normalize_hash("0x1234")

    def test_normalize_identity(self):
        assert normalize_identity("0x" + "A" * 40) == "0x" + "a" * 40

    def test_normalize_identity_rejects_malformed(self):
        with pytest.raises(InvalidArgument):
            normalize_identity("not-an-identity")

    def test_try_normalize_returns_none(self):
        assert try_normalize_hash("garbage") is None
        assert try_normalize_identity("garbage") is None
        assert try_normalize_identity("0x" + "B" * 40) == "0x" + "b" * 40

    def test_zero_sentinels(self):
        assert ZERO_HASH == "0x" + "0" * 64
        assert is_zero_identity(ZERO_IDENTITY)
        assert is_zero_identity("0x" + "0" * 40)
        assert not is_zero_identity("0x" + "1" * 40)


class TestDisplay:
    """Test display helpers."""

    def test_truncate(self):
        key = "0x" + "0123456789abcdef" * 4
        assert truncate(key) == "0x01234567...89abcdef"
        assert truncate("0x1234") == "0x1234"
