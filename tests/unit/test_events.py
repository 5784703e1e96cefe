"""
Unit tests for audit events and the event log envelope.
"""

import pytest
from pydantic import ValidationError

from registry.events import (
    CredentialIssued, CredentialRevoked, EventRecord, EventType,
    IssuerAuthorized, IssuerRevoked, event_type_of, filter_events
)
from registry.keys import credential_key, issuer_key


ACME_KEY = issuer_key("Acme")
CERT_KEY = credential_key("cert-1")
UNIVERSITY = "0x" + "1" * 40


@pytest.fixture
def event_log():
    events = [
        IssuerAuthorized(key=ACME_KEY, name="Acme", identity=UNIVERSITY),
        CredentialIssued(credential_key=CERT_KEY, issuer_key=ACME_KEY, timestamp=100),
        CredentialRevoked(credential_key=CERT_KEY, issuer_key=ACME_KEY),
        IssuerRevoked(key=ACME_KEY, name="Acme"),
    ]
    return [EventRecord.wrap(i + 1, event, 100 + i) for i, event in enumerate(events)]


class TestEventModels:
    """Test the exact field sets of each event."""

    def test_field_sets(self):
        assert set(IssuerAuthorized.model_fields) == {"key", "name", "identity"}
        assert set(IssuerRevoked.model_fields) == {"key", "name"}
        assert set(CredentialIssued.model_fields) == {"credential_key", "issuer_key", "timestamp"}
        assert set(CredentialRevoked.model_fields) == {"credential_key", "issuer_key"}

    def test_events_are_immutable(self):
        event = IssuerRevoked(key=ACME_KEY, name="Acme")
        with pytest.raises(ValidationError):
            event.name = "Other"

    def test_event_type_of(self):
        assert event_type_of(IssuerRevoked(key=ACME_KEY, name="Acme")) == EventType.ISSUER_REVOKED

    def test_event_type_of_rejects_other_objects(self):
        with pytest.raises(TypeError):
            event_type_of("IssuerRevoked")


class TestEventRecord:
    """Test the persisted envelope."""

    def test_wrap_and_rebuild(self):
        event = CredentialIssued(credential_key=CERT_KEY, issuer_key=ACME_KEY, timestamp=100)
        record = EventRecord.wrap(1, event, 100)

        assert record.event_type == EventType.CREDENTIAL_ISSUED
        assert record.to_event() == event

    def test_sequence_starts_at_one(self):
        with pytest.raises(ValidationError):
            EventRecord.wrap(0, IssuerRevoked(key=ACME_KEY, name="Acme"), 100)

    def test_mentions(self, event_log):
        assert event_log[0].mentions(ACME_KEY)
        assert not event_log[0].mentions(CERT_KEY)
        assert event_log[1].mentions(CERT_KEY)
        assert event_log[1].mentions(ACME_KEY)


class TestFilterEvents:
    """Test event log filtering."""

    def test_no_filter(self, event_log):
        assert filter_events(event_log) == event_log

    def test_by_type(self, event_log):
        issued = filter_events(event_log, EventType.CREDENTIAL_ISSUED)
        assert [r.sequence for r in issued] == [2]

    def test_by_type_string(self, event_log):
        assert len(filter_events(event_log, "IssuerRevoked")) == 1

    def test_by_key(self, event_log):
        assert [r.sequence for r in filter_events(event_log, key=CERT_KEY)] == [2, 3]

    def test_since_sequence(self, event_log):
        assert [r.sequence for r in filter_events(event_log, since_sequence=2)] == [3, 4]

    def test_combined(self, event_log):
        records = filter_events(event_log, EventType.CREDENTIAL_REVOKED, key=ACME_KEY, since_sequence=1)
        assert [r.sequence for r in records] == [3]
