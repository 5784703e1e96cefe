"""
Diploma Registry - Registry Schema Models

This module defines the Pydantic models for the role table, the issuer directory,
credential records and the registry state document that is persisted as one unit.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .events import AuditEvent, EventRecord
from .exceptions import AlreadyExists, AlreadyRevoked
from .keys import (
    ZERO_HASH, ZERO_IDENTITY, is_valid_hash, is_valid_identity, role_id
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _check_hash(v: str, label: str) -> str:
    if not is_valid_hash(v):
        raise ValueError(f'{label} must be 64-character hex string (32 bytes)')
    return "0x" + v[-64:].lower()


def _check_identity(v: str, label: str) -> str:
    if not is_valid_identity(v):
        raise ValueError(f'{label} must be 40-character hex string (20 bytes)')
    return "0x" + v[-40:].lower()


class Role(str, Enum):
    """Role enumeration."""
    ADMINISTRATOR = "administrator"
    ISSUER = "issuer"

    @property
    def role_id(self) -> str:
        return role_id(self)


class IssuerStatus(str, Enum):
    """Issuer directory entry status."""
    ACTIVE = "active"
    REVOKED = "revoked"


class CredentialStatus(str, Enum):
    """Credential record status."""
    ACTIVE = "active"
    REVOKED = "revoked"


class RoleTable(BaseModel):
    """Role memberships, kept as two independent identity sets."""

    administrators: List[str] = Field(default_factory=list)
    issuers: List[str] = Field(default_factory=list)

    @field_validator('administrators', 'issuers')
    @classmethod
    def validate_members(cls, v):
        """Validate and canonicalize member identities."""
        return sorted({_check_identity(identity, 'Role member') for identity in v})


class IssuerEntry(BaseModel):
    """Issuer directory entry keyed by the hash of the issuer's name."""

    model_config = ConfigDict(validate_assignment=True)

    issuer_key: str = Field(..., description="Keccak-256 of the issuer name")
    identity: str = Field(default=ZERO_IDENTITY, description="Bound caller identity")
    status: IssuerStatus = Field(default=IssuerStatus.ACTIVE)
    authorized_at: int = Field(default=0, ge=0)
    revoked_at: Optional[int] = Field(None, ge=0)

    @field_validator('issuer_key')
    @classmethod
    def validate_issuer_key(cls, v):
        return _check_hash(v, 'Issuer key')

    @field_validator('identity')
    @classmethod
    def validate_identity(cls, v):
        return _check_identity(v, 'Identity')

    @property
    def authorized(self) -> bool:
        return self.status == IssuerStatus.ACTIVE

    def revoke(self, timestamp: int) -> None:
        """Soft-revoke: clear the binding but keep the entry."""
        self.status = IssuerStatus.REVOKED
        self.identity = ZERO_IDENTITY
        self.revoked_at = timestamp


class CredentialRecord(BaseModel):
    """
    Credential record keyed by the caller-supplied credential hash.

    The issuance payload is frozen at creation; only the status moves, and only
    from active to revoked.
    """

    model_config = ConfigDict(validate_assignment=True)

    credential_key: str = Field(..., frozen=True)
    exists: bool = Field(default=True, frozen=True)
    issuer: str = Field(..., frozen=True, description="Issuing identity")
    issued_at: int = Field(..., ge=0, frozen=True, description="Issuance time (unix seconds)")
    category: str = Field(..., frozen=True, description="Degree/category hash")
    issuer_key: str = Field(..., frozen=True, description="Issuer key at issuance")
    status: CredentialStatus = Field(default=CredentialStatus.ACTIVE)
    revoked_at: Optional[int] = Field(None, ge=0)

    @field_validator('credential_key', 'category', 'issuer_key')
    @classmethod
    def validate_hashes(cls, v, info):
        return _check_hash(v, info.field_name)

    @field_validator('issuer')
    @classmethod
    def validate_issuer(cls, v):
        return _check_identity(v, 'Issuer identity')

    @property
    def revoked(self) -> bool:
        return self.status == CredentialStatus.REVOKED

    def revoke(self, timestamp: int) -> None:
        """Mark the record revoked. Revocation is one-way."""
        if self.revoked:
            raise AlreadyRevoked(f"Credential {self.credential_key} already revoked")
        self.status = CredentialStatus.REVOKED
        self.revoked_at = timestamp

    @classmethod
    def missing(cls) -> "CredentialRecord":
        """All-zero sentinel returned for keys that were never issued."""
        return cls(
            credential_key=ZERO_HASH,
            exists=False,
            issuer=ZERO_IDENTITY,
            issued_at=0,
            category=ZERO_HASH,
            issuer_key=ZERO_HASH,
        )


class VerificationResult(NamedTuple):
    """Outcome of a public credential verification."""

    is_valid: bool
    exists: bool
    issuer: str
    issued_at: int
    revoked: bool
    category: str

    @classmethod
    def not_found(cls) -> "VerificationResult":
        return cls(False, False, ZERO_IDENTITY, 0, False, ZERO_HASH)


class RegistryMetadata(BaseModel):
    """Registry metadata model."""

    version: str = Field(default="1.0.0", description="Registry schema version")
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    description: str = Field(default="Diploma Credential Registry")

    def update_timestamp(self) -> None:
        """Update the last modified timestamp."""
        self.updated_at = _utcnow()


class Registry(BaseModel):
    """Complete registry state document, committed as a single unit."""

    metadata: RegistryMetadata = Field(default_factory=RegistryMetadata)
    roles: RoleTable = Field(default_factory=RoleTable)
    issuers: Dict[str, IssuerEntry] = Field(default_factory=dict)
    identity_index: Dict[str, str] = Field(default_factory=dict, description="Identity -> issuer key")
    credentials: Dict[str, CredentialRecord] = Field(default_factory=dict)
    events: List[EventRecord] = Field(default_factory=list)

    @property
    def initialized(self) -> bool:
        return bool(self.roles.administrators)

    def get_issuer(self, issuer_key: str) -> Optional[IssuerEntry]:
        """Get an issuer directory entry by key."""
        return self.issuers.get(issuer_key)

    def get_credential(self, credential_key: str) -> Optional[CredentialRecord]:
        """Get a credential record by key."""
        return self.credentials.get(credential_key)

    def bind_issuer(self, entry: IssuerEntry) -> None:
        """Create or overwrite a directory entry and its reverse index."""
        previous = self.issuers.get(entry.issuer_key)
        if previous is not None and self.identity_index.get(previous.identity) == entry.issuer_key:
            del self.identity_index[previous.identity]

        self.issuers[entry.issuer_key] = entry
        self.identity_index[entry.identity] = entry.issuer_key
        self.metadata.update_timestamp()

    def unbind_issuer(self, issuer_key: str, timestamp: int) -> str:
        """Soft-revoke a directory entry. Returns the identity that was bound."""
        entry = self.issuers[issuer_key]
        identity = entry.identity

        if self.identity_index.get(identity) == issuer_key:
            del self.identity_index[identity]

        entry.revoke(timestamp)
        self.metadata.update_timestamp()
        return identity

    def add_credential(self, record: CredentialRecord) -> None:
        """Add a credential record. Keys are write-once."""
        if record.credential_key in self.credentials:
            raise AlreadyExists(f"Credential {record.credential_key} already exists")

        self.credentials[record.credential_key] = record
        self.metadata.update_timestamp()

    def append_event(self, event: AuditEvent, recorded_at: int) -> EventRecord:
        """Append an audit event to the log with the next sequence number."""
        record = EventRecord.wrap(len(self.events) + 1, event, recorded_at)
        self.events.append(record)
        return record
