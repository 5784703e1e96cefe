"""
Unit tests for registry schema models.
"""

import pytest
from pydantic import ValidationError

from registry.events import CredentialIssued, EventType, IssuerAuthorized
from registry.exceptions import AlreadyExists, AlreadyRevoked
from registry.keys import ZERO_HASH, ZERO_IDENTITY, category_key, credential_key, issuer_key
from registry.schema import (
    CredentialRecord, CredentialStatus, IssuerEntry, IssuerStatus, Registry,
    RoleTable, VerificationResult
)


UNIVERSITY = "0x" + "1" * 40


@pytest.fixture
def record():
    return CredentialRecord(
        credential_key=credential_key("cert-1"),
        issuer=UNIVERSITY,
        issued_at=1000,
        category=category_key("BACHELOR"),
        issuer_key=issuer_key("Acme")
    )


class TestRoleTable:
    """Test role table validation."""

    def test_members_are_canonicalized(self):
        table = RoleTable(administrators=["0x" + "B" * 40, "0x" + "b" * 40, "a" * 40])
        assert table.administrators == ["0x" + "a" * 40, "0x" + "b" * 40]

    def test_rejects_malformed_member(self):
        with pytest.raises(ValidationError):
            RoleTable(issuers=["not-an-identity"])


class TestIssuerEntry:
    """Test issuer directory entries."""

    def test_defaults(self):
        entry = IssuerEntry(issuer_key=issuer_key("Acme"), identity=UNIVERSITY)
        assert entry.authorized
        assert entry.status == IssuerStatus.ACTIVE
        assert entry.revoked_at is None

    def test_revoke_clears_binding(self):
        entry = IssuerEntry(issuer_key=issuer_key("Acme"), identity=UNIVERSITY, authorized_at=5)
        entry.revoke(10)

        assert not entry.authorized
        assert entry.identity == ZERO_IDENTITY
        assert entry.revoked_at == 10
        assert entry.authorized_at == 5

    def test_rejects_malformed_key(self):
        with pytest.raises(ValidationError):
            IssuerEntry(issuer_key="Acme", identity=UNIVERSITY)


class TestCredentialRecord:
    """Test credential records."""

    def test_record_fields(self, record):
        assert record.exists
        assert not record.revoked
        assert record.status == CredentialStatus.ACTIVE
        assert record.issuer == UNIVERSITY

    def test_issuance_payload_is_frozen(self, record):
        with pytest.raises(ValidationError):
            record.issuer = "0x" + "2" * 40
        with pytest.raises(ValidationError):
            record.issued_at = 2000

    def test_revoke_is_one_way(self, record):
        record.revoke(2000)
        assert record.revoked
        assert record.revoked_at == 2000

        with pytest.raises(AlreadyRevoked):
            record.revoke(3000)
        assert record.revoked_at == 2000

    def test_missing_sentinel(self):
        missing = CredentialRecord.missing()
        assert not missing.exists
        assert missing.credential_key == ZERO_HASH
        assert missing.issuer == ZERO_IDENTITY
        assert missing.issued_at == 0
        assert missing.category == ZERO_HASH

    def test_hashes_are_normalized(self):
        record = CredentialRecord(
            credential_key="AB" * 32,
            issuer=UNIVERSITY.upper().replace("0X", "0x"),
            issued_at=1,
            category=ZERO_HASH,
            issuer_key=issuer_key("Acme")
        )
        assert record.credential_key == "0x" + "ab" * 32
        assert record.issuer == UNIVERSITY


class TestVerificationResult:
    """Test verification result tuple."""

    def test_not_found_equals_plain_tuple(self):
        assert VerificationResult.not_found() == (False, False, ZERO_IDENTITY, 0, False, ZERO_HASH)

    def test_field_access(self):
        result = VerificationResult(True, True, UNIVERSITY, 10, False, ZERO_HASH)
        assert result.is_valid and result.exists
        assert result._asdict()["issuer"] == UNIVERSITY


class TestRegistry:
    """Test the registry state document."""

    def test_empty_registry(self):
        registry = Registry()
        assert not registry.initialized
        assert registry.issuers == {}
        assert registry.events == []

    def test_bind_and_unbind_issuer(self):
        registry = Registry()
        key = issuer_key("Acme")
        registry.bind_issuer(IssuerEntry(issuer_key=key, identity=UNIVERSITY))

        assert registry.identity_index == {UNIVERSITY: key}

        identity = registry.unbind_issuer(key, 100)
        assert identity == UNIVERSITY
        assert registry.identity_index == {}
        assert registry.get_issuer(key).status == IssuerStatus.REVOKED

    def test_rebind_replaces_index_entry(self):
        registry = Registry()
        key = issuer_key("Acme")
        other = "0x" + "2" * 40
        registry.bind_issuer(IssuerEntry(issuer_key=key, identity=UNIVERSITY))
        registry.unbind_issuer(key, 100)
        registry.bind_issuer(IssuerEntry(issuer_key=key, identity=other))

        assert registry.identity_index == {other: key}
        assert registry.get_issuer(key).identity == other

    def test_add_credential_is_write_once(self, record):
        registry = Registry()
        registry.add_credential(record)

        with pytest.raises(AlreadyExists):
            registry.add_credential(record)

    def test_append_event_sequences(self):
        registry = Registry()
        first = registry.append_event(
            IssuerAuthorized(key=issuer_key("Acme"), name="Acme", identity=UNIVERSITY), 10
        )
        second = registry.append_event(
            CredentialIssued(credential_key=credential_key("c"), issuer_key=issuer_key("Acme"), timestamp=11), 11
        )

        assert (first.sequence, second.sequence) == (1, 2)
        assert second.event_type == EventType.CREDENTIAL_ISSUED

    def test_round_trip_through_json(self, record):
        registry = Registry()
        registry.roles.administrators.append("0x" + "a" * 40)
        registry.add_credential(record)
        registry.append_event(
            CredentialIssued(credential_key=record.credential_key, issuer_key=record.issuer_key, timestamp=1000),
            1000
        )

        restored = Registry.model_validate(registry.model_dump(mode='json'))

        assert restored.initialized
        assert restored.get_credential(record.credential_key) == record
        assert restored.events == registry.events
