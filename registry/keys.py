"""
Diploma Registry - Key Derivation and Validation

This module provides the pure, stateless derivations used to address the registry:
issuer keys (hash of an issuer's name), credential keys (hash of credential content),
category tags and role identifiers. Any party can compute these without reading the
registry, so verifiers never need to consult the issuer directory to build a lookup.

All hashes are Keccak-256 over UTF-8 bytes, rendered as 0x-prefixed lowercase hex.
"""

import re
from typing import Optional, Union

from Crypto.Hash import keccak

from .exceptions import InvalidArgument, InvalidKey


HASH_HEX_LENGTH = 64
IDENTITY_HEX_LENGTH = 40

ZERO_HASH = "0x" + "0" * HASH_HEX_LENGTH
ZERO_IDENTITY = "0x" + "0" * IDENTITY_HEX_LENGTH

_HASH_RE = re.compile(r'^[a-fA-F0-9]{64}$')
_IDENTITY_RE = re.compile(r'^[a-fA-F0-9]{40}$')


def keccak256(data: Union[str, bytes]) -> str:
    """
    Hash data with Keccak-256.

    Args:
        data: Text (encoded as UTF-8) or raw bytes

    Returns:
        0x-prefixed 32-byte hex digest
    """
    if isinstance(data, str):
        data = data.encode('utf-8')

    digest = keccak.new(digest_bits=256, data=data)
    return "0x" + digest.hexdigest()


def issuer_key(name: str) -> str:
    """Derive the issuer directory key for an issuer name."""
    if not isinstance(name, str) or name == "":
        raise InvalidArgument("Issuer name cannot be empty")
    return keccak256(name)


def credential_key(content: Union[str, bytes]) -> str:
    """Derive a credential key from the credential's canonical content."""
    if not content:
        raise InvalidArgument("Credential content cannot be empty")
    return keccak256(content)


def category_key(tag: str) -> str:
    """Derive the category hash for a degree/category tag (e.g. "BACHELOR")."""
    if not tag:
        raise InvalidArgument("Category tag cannot be empty")
    return keccak256(tag)


def role_id(role) -> str:
    """Stable 32-byte identifier for a role, e.g. keccak256("ISSUER_ROLE")."""
    return keccak256(f"{role.name}_ROLE")


def _strip_prefix(value: str) -> str:
    if value.startswith(('0x', '0X')):
        return value[2:]
    return value


def is_valid_hash(value) -> bool:
    """Check whether value is a well-formed 32-byte hex hash."""
    if not isinstance(value, str):
        return False
    return bool(_HASH_RE.match(_strip_prefix(value)))


def is_valid_identity(value) -> bool:
    """Check whether value is a well-formed 20-byte hex identity."""
    if not isinstance(value, str):
        return False
    return bool(_IDENTITY_RE.match(_strip_prefix(value)))


def normalize_hash(value: str) -> str:
    """
    Normalize a hash to 0x-prefixed lowercase hex.

    Raises:
        InvalidKey: If the value is not a 32-byte hex string
    """
    if not is_valid_hash(value):
        raise InvalidKey(f"Invalid hash format: {value!r}")
    return "0x" + _strip_prefix(value).lower()


def normalize_identity(value: str) -> str:
    """
    Normalize an identity to 0x-prefixed lowercase hex.

    Raises:
        InvalidArgument: If the value is not a 20-byte hex string
    """
    if not is_valid_identity(value):
        raise InvalidArgument(f"Invalid identity format: {value!r}")
    return "0x" + _strip_prefix(value).lower()


def try_normalize_hash(value) -> Optional[str]:
    """Normalize a hash, returning None instead of raising."""
    return normalize_hash(value) if is_valid_hash(value) else None


def try_normalize_identity(value) -> Optional[str]:
    """Normalize an identity, returning None instead of raising."""
    return normalize_identity(value) if is_valid_identity(value) else None


def is_zero_identity(value: str) -> bool:
    return normalize_identity(value) == ZERO_IDENTITY


def truncate(value: str, length: int = 8) -> str:
    """
    Truncate a hash or identity for display purposes.

    Args:
        value: Full hash or identity
        length: Number of hex characters to show from start and end

    Returns:
        Truncated value with ellipsis
    """
    body = _strip_prefix(value)
    if len(body) <= length * 2:
        return value
    return f"0x{body[:length]}...{body[-length:]}"
