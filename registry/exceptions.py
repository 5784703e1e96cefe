"""
Diploma Registry - Exceptions

Domain failures are synchronous and typed. Each carries a stable ``code`` naming the
failure kind so that hosting layers (CLI, RPC) can map them one-to-one.
"""


class RegistryError(Exception):
    """Base exception for all registry domain failures."""
    code = "RegistryError"


class Unauthorized(RegistryError):
    """Raised when the caller does not hold the required role."""
    code = "Unauthorized"


class AlreadyAuthorized(RegistryError):
    """Raised when an issuer name (or identity) is already actively bound."""
    code = "AlreadyAuthorized"


class AlreadyExists(RegistryError):
    """Raised when a credential key has already been issued."""
    code = "AlreadyExists"


class AlreadyRevoked(RegistryError):
    """Raised when a credential is revoked a second time."""
    code = "AlreadyRevoked"


class NotAuthorized(RegistryError):
    """Raised when no active issuer directory entry exists for a name."""
    code = "NotAuthorized"


class NotFound(RegistryError):
    """Raised when no credential record exists for a key."""
    code = "NotFound"


class NotAuthorizedIssuer(RegistryError):
    """Raised when the caller is not the bound identity of an authorized issuer."""
    code = "NotAuthorizedIssuer"


class NotIssuingParty(RegistryError):
    """Raised when the caller/name pairing does not match the original issuance."""
    code = "NotIssuingParty"


class InvalidArgument(RegistryError):
    """Raised for empty names, zero keys and zero or malformed identities."""
    code = "InvalidArgument"


class InvalidKey(InvalidArgument):
    """Raised when a credential key is zero or malformed."""
    code = "InvalidKey"


class ConfigurationError(Exception):
    """Raised when the registry is initialized twice or used before initialization."""
    pass


class StorageError(Exception):
    """Base storage exception."""
    pass


class LockTimeoutError(StorageError):
    """Lock acquisition timeout exception."""
    pass


class IntegrityError(StorageError):
    """File integrity check failure exception."""
    pass
