"""
Role-based access gate for campaign mutators.

Components receive an AccessGate by composition and check it at each gated entry
point; nothing inherits ownership behaviour.
"""

import logging
from functools import wraps
from typing import Dict, Iterable, List, Optional, Set

from tokenmigration.core.exceptions import Unauthorized

logger = logging.getLogger("tokenmigration.security.access_gate")

ADMIN_ROLE = "admin"
DEPOSITOR_ROLE = "depositor"

DEFAULT_ROLES = {
    ADMIN_ROLE: ["pause", "set_tier", "set_vesting_sink", "rescue_tokens", "manage_roles"],
    DEPOSITOR_ROLE: ["allocate"],
}


class AccessGate:
    def __init__(self, admins: Optional[Iterable[str]] = None):
        self.roles: Dict[str, List[str]] = {name: list(perms) for name, perms in DEFAULT_ROLES.items()}
        self.user_roles: Dict[str, Set[str]] = {}
        for admin in admins or ():
            self._grant(admin, ADMIN_ROLE)

    def _grant(self, user_id: str, role_name: str) -> None:
        if not user_id:
            raise ValueError("User id cannot be empty.")
        self.user_roles.setdefault(user_id, set()).add(role_name)
        logger.info(
            "Role %s granted to %s",
            role_name,
            user_id,
            extra={"event": "access.role_granted", "role": role_name, "user": user_id},
        )

    def assign_role(self, caller: str, user_id: str, role_name: str) -> None:
        self.require(caller, ADMIN_ROLE)
        if role_name not in self.roles:
            raise ValueError(f"Role '{role_name}' does not exist.")
        self._grant(user_id, role_name)

    def revoke_role(self, caller: str, user_id: str, role_name: str) -> None:
        self.require(caller, ADMIN_ROLE)
        held = self.user_roles.get(user_id)
        if held and role_name in held:
            held.discard(role_name)
            if not held:
                del self.user_roles[user_id]
            logger.info(
                "Role %s revoked from %s",
                role_name,
                user_id,
                extra={"event": "access.role_revoked", "role": role_name, "user": user_id},
            )

    def has_role(self, user_id: str, role_name: str) -> bool:
        return role_name in self.user_roles.get(user_id, ())

    def is_admin(self, caller: str) -> bool:
        return self.has_role(caller, ADMIN_ROLE)

    def get_user_permissions(self, user_id: str) -> List[str]:
        permissions: Set[str] = set()
        for role_name in self.user_roles.get(user_id, ()):
            permissions.update(self.roles.get(role_name, []))
        return sorted(permissions)

    def require(self, caller: str, role_name: str) -> None:
        if not self.has_role(caller, role_name):
            raise Unauthorized(
                f"Caller {caller} does not hold role '{role_name}'.",
                caller=caller,
                details={"role": role_name},
            )


def require_role(role_name: str):
    """
    Decorator for component methods whose first argument after ``self`` is the caller.

    The component must expose its gate as ``self.access_gate``.
    """

    def decorator(func):
        @wraps(func)
        def wrapper(self, caller, *args, **kwargs):
            self.access_gate.require(caller, role_name)
            return func(self, caller, *args, **kwargs)

        return wrapper

    return decorator
