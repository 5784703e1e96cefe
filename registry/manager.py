"""
Diploma Registry - Registry Manager

This module provides the registry core: the issuer lifecycle (authorize, revoke), the
credential lifecycle (issue, revoke) and the open verification and lookup queries.

Every mutation is applied to a fresh copy of the stored state document and committed
together with its audit event in one atomic write. Readers use the last committed
snapshot and never take a lock.
"""

import logging
import time
from contextlib import contextmanager
from threading import RLock
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from .access import AccessControl
from .activity import ActivityLogger, ActivityResult, get_activity_logger
from .concurrency import KeyedLock
from .events import (
    AuditEvent, CredentialIssued, CredentialRevoked, EventRecord, EventType,
    IssuerAuthorized, IssuerRevoked, filter_events
)
from .exceptions import (
    AlreadyAuthorized, ConfigurationError, InvalidArgument, InvalidKey,
    NotAuthorized, NotAuthorizedIssuer, NotFound, NotIssuingParty,
    RegistryError, Unauthorized
)
from .keys import (
    ZERO_HASH, ZERO_IDENTITY, issuer_key, normalize_identity,
    try_normalize_hash, try_normalize_identity
)
from .schema import (
    CredentialRecord, IssuerEntry, Registry, Role, VerificationResult
)
from .storage import MemoryStorage, RegistryStorage


logger = logging.getLogger(__name__)

Transition = Callable[[Registry, int], AuditEvent]


def _try_issuer_key(name) -> Optional[str]:
    if not isinstance(name, str) or name == "":
        return None
    return issuer_key(name)


def _wall_clock() -> int:
    return int(time.time())


class RegistryManager:
    """Credential registry with role-gated, atomically committed transitions."""

    def __init__(
        self,
        storage_dir: str = "registry_data",
        storage: Union[RegistryStorage, MemoryStorage, None] = None,
        clock: Optional[Callable[[], int]] = None,
        activity_logger: Optional[ActivityLogger] = None,
        compressed: bool = False,
        backup_count: int = 5,
        lock_timeout: float = 30.0,
        backup_on_commit: bool = False
    ):
        if storage is None:
            storage = RegistryStorage(
                storage_dir,
                compressed=compressed,
                backup_count=backup_count,
                lock_timeout=lock_timeout,
                backup_on_commit=backup_on_commit
            )
        self.storage = storage
        self.clock = clock or _wall_clock
        self.activity = activity_logger if activity_logger is not None else get_activity_logger()

        self._lock = RLock()
        self._issuer_locks = KeyedLock("issuer", timeout=lock_timeout)
        self._credential_locks = KeyedLock("credential", timeout=lock_timeout)

        # Load registry on initialization
        self._registry = self.storage.load_registry()

    @property
    def initialized(self) -> bool:
        return self._registry.initialized

    @property
    def administrators(self) -> List[str]:
        return list(self._registry.roles.administrators)

    def _now(self) -> int:
        return int(self.clock())

    @contextmanager
    def _key_scope(self, locks: KeyedLock, key: Optional[str]):
        # Arguments that do not yield a key are rejected inside the transition
        if key is None:
            yield
            return
        with locks.hold(key):
            yield

    def _commit(self, transition: Transition) -> AuditEvent:
        """Apply a transition to the stored document and commit it with its event."""
        committed: Dict[str, Any] = {}

        def updater(registry: Registry) -> Registry:
            if not registry.initialized:
                raise ConfigurationError("Registry has not been initialized")

            now = self._now()
            event = transition(registry, now)
            registry.append_event(event, now)
            registry.metadata.update_timestamp()

            committed['registry'] = registry
            committed['event'] = event
            return registry

        with self._lock:
            self.storage.update_registry(updater)
            self._registry = committed['registry']

        return committed['event']

    def _mutate(
        self,
        operation: str,
        caller: str,
        subject_key: Optional[str],
        locks: KeyedLock,
        transition: Transition
    ) -> AuditEvent:
        start_time = time.time()
        try:
            with self._key_scope(locks, subject_key):
                event = self._commit(transition)
        except RegistryError as e:
            logger.warning(f"{operation} rejected [{e.code}]: {e}")
            self.activity.log_registry_operation(
                operation, caller, subject_key,
                result=ActivityResult.REJECTED,
                error=e
            )
            if isinstance(e, Unauthorized):
                self.activity.log_security_event(operation, caller, ["role_check_failed"])
            raise
        except Exception as e:
            logger.error(f"{operation} failed: {e}")
            self.activity.log_registry_operation(
                operation, caller, subject_key,
                result=ActivityResult.ERROR,
                error=e
            )
            raise

        duration_ms = (time.time() - start_time) * 1000
        logger.info(f"{operation} committed for {subject_key}")
        self.activity.log_registry_operation(
            operation, caller, subject_key,
            context={"event": event.model_dump()},
            duration_ms=duration_ms
        )
        return event

    # Administration

    def initialize(self, admin: str) -> None:
        """
        Bind the Administrator role to the initializing identity.

        Raises:
            ConfigurationError: If the registry was already initialized
        """
        committed: Dict[str, Registry] = {}

        def updater(registry: Registry) -> Registry:
            AccessControl(registry.roles).initialize(admin)
            registry.metadata.update_timestamp()
            committed['registry'] = registry
            return registry

        try:
            with self._lock:
                self.storage.update_registry(updater)
                self._registry = committed['registry']
        except Exception as e:
            logger.error(f"Registry initialization failed: {e}")
            self.activity.log_administration(
                "initialize", admin, result=ActivityResult.ERROR, error=e
            )
            raise

        logger.info(f"Registry initialized with administrator {self.administrators[0]}")
        self.activity.log_administration("initialize", admin)

    # Issuer lifecycle

    def authorize_issuer(self, caller: str, name: str, identity: str) -> IssuerAuthorized:
        """
        Authorize an issuer name and bind it to an identity.

        Args:
            caller: Identity invoking the operation; must hold Administrator
            name: Human-readable issuer name
            identity: Identity that will issue under this name

        Returns:
            The IssuerAuthorized event committed with the change

        Raises:
            Unauthorized: If the caller is not an administrator
            InvalidArgument: If the name is empty or the identity is zero or malformed
            AlreadyAuthorized: If the name, or the identity, is already actively bound
        """
        def transition(registry: Registry, now: int) -> IssuerAuthorized:
            access = AccessControl(registry.roles)
            access.require_role(caller, Role.ADMINISTRATOR)

            key = issuer_key(name)
            bound = normalize_identity(identity)
            if bound == ZERO_IDENTITY:
                raise InvalidArgument("Issuer identity cannot be zero")

            entry = registry.get_issuer(key)
            if entry is not None and entry.authorized:
                raise AlreadyAuthorized(f"Issuer {name!r} is already authorized")
            if bound in registry.identity_index:
                raise AlreadyAuthorized(f"Identity {bound} is already bound to an issuer")

            registry.bind_issuer(IssuerEntry(issuer_key=key, identity=bound, authorized_at=now))
            access.grant_issuer_role(bound)
            return IssuerAuthorized(key=key, name=name, identity=bound)

        return self._mutate(
            "authorize_issuer", caller, _try_issuer_key(name), self._issuer_locks, transition
        )

    def revoke_issuer_authorization(self, caller: str, name: str) -> IssuerRevoked:
        """
        Revoke an issuer's authorization and retract the Issuer role from its identity.

        The directory entry is kept with its status set to revoked. Credentials issued
        under the name are not touched.

        Raises:
            Unauthorized: If the caller is not an administrator
            InvalidArgument: If the name is empty
            NotAuthorized: If the name has no active directory entry
        """
        def transition(registry: Registry, now: int) -> IssuerRevoked:
            access = AccessControl(registry.roles)
            access.require_role(caller, Role.ADMINISTRATOR)

            key = issuer_key(name)
            entry = registry.get_issuer(key)
            if entry is None or not entry.authorized:
                raise NotAuthorized(f"Issuer {name!r} is not authorized")

            identity = registry.unbind_issuer(key, now)
            access.revoke_issuer_role(identity)
            return IssuerRevoked(key=key, name=name)

        return self._mutate(
            "revoke_issuer", caller, _try_issuer_key(name), self._issuer_locks, transition
        )

    # Credential lifecycle

    def issue_credential(
        self,
        caller: str,
        credential_key: str,
        issuer_name: str,
        category: str
    ) -> CredentialIssued:
        """
        Issue a credential record under an authorized issuer name.

        Args:
            caller: Identity invoking the operation; must be the bound identity
                of the named issuer
            credential_key: Content hash of the credential, non-zero
            issuer_name: Name the caller issues under
            category: Degree/category hash

        Returns:
            The CredentialIssued event committed with the record

        Raises:
            NotAuthorizedIssuer: If the caller is not the bound identity of an
                authorized issuer with that name
            InvalidKey: If the credential key is zero or malformed
            InvalidArgument: If the category is not a well-formed hash
            AlreadyExists: If a record already exists for the key
        """
        def transition(registry: Registry, now: int) -> CredentialIssued:
            key_u = _try_issuer_key(issuer_name)
            entry = registry.get_issuer(key_u) if key_u else None
            identity = try_normalize_identity(caller)
            if entry is None or not entry.authorized or identity is None or entry.identity != identity:
                raise NotAuthorizedIssuer(f"{caller} is not the authorized address of {issuer_name!r}")

            key_c = try_normalize_hash(credential_key)
            if key_c is None or key_c == ZERO_HASH:
                raise InvalidKey(f"Invalid credential key: {credential_key!r}")

            category_hash = try_normalize_hash(category)
            if category_hash is None:
                raise InvalidArgument(f"Invalid category hash: {category!r}")

            registry.add_credential(CredentialRecord(
                credential_key=key_c,
                issuer=identity,
                issued_at=now,
                category=category_hash,
                issuer_key=key_u
            ))
            return CredentialIssued(credential_key=key_c, issuer_key=key_u, timestamp=now)

        return self._mutate(
            "issue_credential", caller, try_normalize_hash(credential_key),
            self._credential_locks, transition
        )

    def revoke_credential(self, caller: str, credential_key: str, issuer_name: str) -> CredentialRevoked:
        """
        Revoke a credential. Only the original issuing identity, under the original
        issuer name, may revoke, and only once.

        Raises:
            NotFound: If no record exists for the key
            NotIssuingParty: If caller or issuer name differs from the issuance
            AlreadyRevoked: If the record is already revoked
        """
        def transition(registry: Registry, now: int) -> CredentialRevoked:
            key_c = try_normalize_hash(credential_key)
            record = registry.get_credential(key_c) if key_c else None
            if record is None:
                raise NotFound(f"Credential {credential_key} not found")

            if (try_normalize_identity(caller) != record.issuer
                    or _try_issuer_key(issuer_name) != record.issuer_key):
                raise NotIssuingParty(f"{caller} under {issuer_name!r} did not issue {key_c}")

            record.revoke(now)
            return CredentialRevoked(credential_key=key_c, issuer_key=record.issuer_key)

        return self._mutate(
            "revoke_credential", caller, try_normalize_hash(credential_key),
            self._credential_locks, transition
        )

    # Verification and lookups (open to any caller, never raise)

    def verify_credential(self, credential_key: str, issuer_name: str) -> VerificationResult:
        """
        Verify a credential against the issuer name it is claimed to come from.

        ``is_valid`` is true only when the record exists, is not revoked and was
        issued under ``issuer_name``.
        """
        key_c = try_normalize_hash(credential_key)
        record = self._registry.get_credential(key_c) if key_c else None
        if record is None:
            result = VerificationResult.not_found()
        else:
            is_valid = not record.revoked and record.issuer_key == _try_issuer_key(issuer_name)
            result = VerificationResult(
                is_valid=is_valid,
                exists=True,
                issuer=record.issuer,
                issued_at=record.issued_at,
                revoked=record.revoked,
                category=record.category
            )

        self.activity.log_verification(key_c, context={
            'issuer_name': issuer_name,
            'exists': result.exists,
            'is_valid': result.is_valid,
        })
        return result

    def has_role(self, identity: str, role: Union[Role, str]) -> bool:
        try:
            role = Role(role)
        except ValueError:
            return False
        return AccessControl(self._registry.roles).has_role(identity, role)

    def is_issuer_authorized(self, name: str) -> bool:
        key = _try_issuer_key(name)
        entry = self._registry.get_issuer(key) if key else None
        return entry is not None and entry.authorized

    def get_issuer_address(self, name: str) -> str:
        """Bound identity of an authorized issuer, or the zero identity."""
        key = _try_issuer_key(name)
        entry = self._registry.get_issuer(key) if key else None
        if entry is None or not entry.authorized:
            return ZERO_IDENTITY
        return entry.identity

    def get_issuer_key_by_identity(self, identity: str) -> str:
        """Issuer key currently bound to an identity, or the zero hash."""
        identity = try_normalize_identity(identity)
        if identity is None:
            return ZERO_HASH
        return self._registry.identity_index.get(identity, ZERO_HASH)

    def get_credential_record(self, credential_key: str) -> CredentialRecord:
        """Full credential record, or the all-zero sentinel with exists=False."""
        key_c = try_normalize_hash(credential_key)
        record = self._registry.get_credential(key_c) if key_c else None
        if record is None:
            return CredentialRecord.missing()
        return record.model_copy()

    # Event log and history

    def get_events(
        self,
        event_type: Union[EventType, str, None] = None,
        key: Optional[str] = None,
        since_sequence: int = 0
    ) -> List[EventRecord]:
        """Get audit events, optionally filtered by type, mentioned key and sequence."""
        if event_type is not None:
            try:
                event_type = EventType(event_type)
            except ValueError:
                return []
        if key is not None:
            key = try_normalize_hash(key) or key
        return filter_events(self._registry.events, event_type, key, since_sequence)

    def get_credential_history(self, credential_key: str) -> List[EventRecord]:
        key_c = try_normalize_hash(credential_key)
        if key_c is None:
            return []
        return filter_events(self._registry.events, key=key_c)

    def get_issuer_history(self, name: str) -> List[EventRecord]:
        """Get the authorization and revocation events for an issuer name."""
        key = _try_issuer_key(name)
        if key is None:
            return []
        return [
            record for record in filter_events(self._registry.events, key=key)
            if record.event_type in (EventType.ISSUER_AUTHORIZED, EventType.ISSUER_REVOKED)
        ]

    def _issuer_names(self, registry: Registry) -> Dict[str, str]:
        names = {}
        for record in filter_events(registry.events, EventType.ISSUER_AUTHORIZED):
            names[record.payload['key']] = record.payload['name']
        return names

    def list_issuers(self, include_revoked: bool = False) -> List[Dict[str, Any]]:
        """List issuer directory entries with the name each was authorized under."""
        registry = self._registry
        names = self._issuer_names(registry)

        issuers = []
        for key, entry in sorted(registry.issuers.items()):
            if not include_revoked and not entry.authorized:
                continue
            issuers.append({
                'name': names.get(key),
                'issuer_key': key,
                'identity': entry.identity,
                'status': entry.status.value,
                'authorized_at': entry.authorized_at,
                'revoked_at': entry.revoked_at,
            })
        return issuers

    def issuer_status(self, names: Iterable[str]) -> List[Dict[str, Any]]:
        """Batch status report for a list of issuer names."""
        return [
            {
                'name': name,
                'issuer_key': _try_issuer_key(name),
                'authorized': self.is_issuer_authorized(name),
                'identity': self.get_issuer_address(name),
            }
            for name in names
        ]

    # Statistics and maintenance

    def get_lock_metrics(self) -> Dict[str, Any]:
        return {
            'issuer': self._issuer_locks.get_metrics(),
            'credential': self._credential_locks.get_metrics(),
        }

    def get_registry_stats(self) -> Dict[str, Any]:
        """Get comprehensive registry statistics."""
        registry = self._registry

        active_issuers = len([e for e in registry.issuers.values() if e.authorized])
        revoked_credentials = len([c for c in registry.credentials.values() if c.revoked])

        return {
            'initialized': registry.initialized,
            'total_issuers': len(registry.issuers),
            'active_issuers': active_issuers,
            'total_credentials': len(registry.credentials),
            'revoked_credentials': revoked_credentials,
            'total_events': len(registry.events),
            'administrators': len(registry.roles.administrators),
            'issuer_role_holders': len(registry.roles.issuers),
            'registry_version': registry.metadata.version,
            'created_at': registry.metadata.created_at,
            'updated_at': registry.metadata.updated_at,
            'role_ids': {role.value: role.role_id for role in Role},
            'storage_info': self.storage.get_storage_info(),
            'lock_metrics': self.get_lock_metrics(),
        }

    def reload_registry(self) -> None:
        """Reload registry from storage."""
        with self._lock:
            self._registry = self.storage.load_registry()

    def backup_registry(self) -> bool:
        """Create a backup of the registry."""
        return self.storage.backup_registry()

    def list_backups(self) -> List[str]:
        """List available backup timestamps."""
        return self.storage.list_backups()

    def restore_backup(self, timestamp: str) -> bool:
        """Restore registry from backup."""
        with self._lock:
            success = self.storage.restore_backup(timestamp)
            if success:
                self.reload_registry()
                logger.info(f"Registry restored from backup {timestamp}")

        self.activity.log_administration(
            "restore_backup", None,
            result=ActivityResult.APPROVED if success else ActivityResult.REJECTED,
            context={'timestamp': timestamp}
        )
        return success
