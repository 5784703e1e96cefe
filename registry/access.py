"""
Diploma Registry - Access Control

Answers "does identity X hold role R?" over a RoleTable. Administrator and Issuer
are independent memberships: the administrator is bound once at initialization and
never removed, while the issuer role follows the issuer directory.
"""

import logging

from .exceptions import ConfigurationError, Unauthorized
from .keys import normalize_identity, try_normalize_identity, is_zero_identity
from .schema import Role, RoleTable


logger = logging.getLogger(__name__)


class AccessControl:
    """Role membership queries and grants over a role table."""

    def __init__(self, table: RoleTable):
        self.table = table

    def _members(self, role: Role):
        if role == Role.ADMINISTRATOR:
            return self.table.administrators
        return self.table.issuers

    def initialize(self, identity: str) -> None:
        """
        Bind the initializing identity to the Administrator role.

        Raises:
            ConfigurationError: If an administrator is already bound, or the
                identity is the zero sentinel
        """
        if self.table.administrators:
            raise ConfigurationError("Access control already initialized")

        identity = normalize_identity(identity)
        if is_zero_identity(identity):
            raise ConfigurationError("Administrator identity cannot be zero")

        self.table.administrators.append(identity)
        logger.info(f"Administrator role bound to {identity}")

    def has_role(self, identity: str, role: Role) -> bool:
        """Pure membership query. Unknown or malformed identities hold no role."""
        identity = try_normalize_identity(identity)
        if identity is None:
            return False
        return identity in self._members(Role(role))

    def require_role(self, identity: str, role: Role) -> None:
        """
        Gate a mutating operation on role membership.

        Raises:
            Unauthorized: If the identity does not hold the role
        """
        if not self.has_role(identity, role):
            raise Unauthorized(f"{identity} does not hold the {Role(role).value} role")

    def grant_issuer_role(self, identity: str) -> None:
        """Grant the Issuer role. Only invoked by the registry's authorize transition."""
        identity = normalize_identity(identity)
        if identity not in self.table.issuers:
            self.table.issuers.append(identity)
            self.table.issuers.sort()

    def revoke_issuer_role(self, identity: str) -> None:
        """Retract the Issuer role. Only invoked by the registry's revoke transition."""
        identity = normalize_identity(identity)
        if identity in self.table.issuers:
            self.table.issuers.remove(identity)
