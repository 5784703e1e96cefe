"""
Diploma Registry - Audit Events

One immutable event is produced per successful mutation and persisted in the same
commit as the state change it describes. The event models carry exactly the fields
consumers rely on; sequencing lives on the ``EventRecord`` envelope.
"""

from enum import Enum
from typing import Any, Dict, List, Type, Union

from pydantic import BaseModel, ConfigDict, Field


class EventType(str, Enum):
    """Audit event type enumeration."""
    ISSUER_AUTHORIZED = "IssuerAuthorized"
    ISSUER_REVOKED = "IssuerRevoked"
    CREDENTIAL_ISSUED = "CredentialIssued"
    CREDENTIAL_REVOKED = "CredentialRevoked"


class IssuerAuthorized(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    name: str
    identity: str


class IssuerRevoked(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    name: str


class CredentialIssued(BaseModel):
    model_config = ConfigDict(frozen=True)

    credential_key: str
    issuer_key: str
    timestamp: int


class CredentialRevoked(BaseModel):
    model_config = ConfigDict(frozen=True)

    credential_key: str
    issuer_key: str


AuditEvent = Union[IssuerAuthorized, IssuerRevoked, CredentialIssued, CredentialRevoked]

EVENT_MODELS: Dict[EventType, Type[BaseModel]] = {
    EventType.ISSUER_AUTHORIZED: IssuerAuthorized,
    EventType.ISSUER_REVOKED: IssuerRevoked,
    EventType.CREDENTIAL_ISSUED: CredentialIssued,
    EventType.CREDENTIAL_REVOKED: CredentialRevoked,
}

_EVENT_TYPES = {model: event_type for event_type, model in EVENT_MODELS.items()}

# Fields that hold registry keys, used for history lookups
KEY_FIELDS = ("key", "credential_key", "issuer_key")


def event_type_of(event: AuditEvent) -> EventType:
    """Get the event type tag for an event instance."""
    try:
        return _EVENT_TYPES[type(event)]
    except KeyError:
        raise TypeError(f"Not an audit event: {type(event).__name__}")


class EventRecord(BaseModel):
    """Persisted envelope around an audit event."""

    model_config = ConfigDict(frozen=True)

    sequence: int = Field(..., ge=1, description="Gap-free position in the event log")
    event_type: EventType
    recorded_at: int = Field(..., ge=0, description="Commit time (unix seconds)")
    payload: Dict[str, Any]

    @classmethod
    def wrap(cls, sequence: int, event: AuditEvent, recorded_at: int) -> "EventRecord":
        return cls(
            sequence=sequence,
            event_type=event_type_of(event),
            recorded_at=recorded_at,
            payload=event.model_dump(),
        )

    def to_event(self) -> AuditEvent:
        """Rebuild the typed event from the stored payload."""
        return EVENT_MODELS[EventType(self.event_type)].model_validate(self.payload)

    def mentions(self, key: str) -> bool:
        """Check whether any key-valued field of the event equals key."""
        return any(self.payload.get(field) == key for field in KEY_FIELDS)


def filter_events(
    records: List[EventRecord],
    event_type: Union[EventType, str, None] = None,
    key: Union[str, None] = None,
    since_sequence: int = 0
) -> List[EventRecord]:
    """Filter an event log by type, mentioned key and sequence."""
    if event_type is not None:
        event_type = EventType(event_type)

    return [
        record for record in records
        if record.sequence > since_sequence
        and (event_type is None or record.event_type == event_type)
        and (key is None or record.mentions(key))
    ]
