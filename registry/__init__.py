"""
Diploma Registry Core

This module provides the credential registry: an administrator-controlled allowlist of
issuers, write-once credential records with one-way revocation, and open verification.
"""

from .exceptions import (
    RegistryError,
    Unauthorized,
    AlreadyAuthorized,
    AlreadyExists,
    AlreadyRevoked,
    NotAuthorized,
    NotFound,
    NotAuthorizedIssuer,
    NotIssuingParty,
    InvalidArgument,
    InvalidKey,
    ConfigurationError,
    StorageError
)

from .keys import (
    ZERO_HASH,
    ZERO_IDENTITY,
    keccak256,
    issuer_key,
    credential_key,
    category_key
)

from .events import (
    EventType,
    EventRecord,
    IssuerAuthorized,
    IssuerRevoked,
    CredentialIssued,
    CredentialRevoked
)

from .schema import Role, CredentialRecord, VerificationResult
from .storage import RegistryStorage, MemoryStorage
from .manager import RegistryManager

__all__ = [
    "RegistryError",
    "Unauthorized",
    "AlreadyAuthorized",
    "AlreadyExists",
    "AlreadyRevoked",
    "NotAuthorized",
    "NotFound",
    "NotAuthorizedIssuer",
    "NotIssuingParty",
    "InvalidArgument",
    "InvalidKey",
    "ConfigurationError",
    "StorageError",
    "ZERO_HASH",
    "ZERO_IDENTITY",
    "keccak256",
    "issuer_key",
    "credential_key",
    "category_key",
    "EventType",
    "EventRecord",
    "IssuerAuthorized",
    "IssuerRevoked",
    "CredentialIssued",
    "CredentialRevoked",
    "Role",
    "CredentialRecord",
    "VerificationResult",
    "RegistryStorage",
    "MemoryStorage",
    "RegistryManager"
]
