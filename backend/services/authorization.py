"""Authorization engine for dynamic models.

Two independent gates decide every request:

1. the role gate: ``definition.rbac[role]`` must hold the operation token or
   ``all`` (roles missing from the map get nothing);
2. the ownership gate, for single-record reads, updates and deletes: when the
   model declares an ``ownerField``, a non-admin may only touch records whose
   ``owner_id`` is their own id.

An ADMIN principal passes the ownership gate unconditionally. The role gate
still applies, so an admin needs ``all`` or the token like anyone else.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from backend.core.exceptions import AccessDeniedError, InsufficientPermissionError
from backend.core.security import Principal
from backend.schemas.schemas import ModelDefinition, Permission

logger = logging.getLogger("dynamic_platform.authz")


class Operation(str, Enum):
    create = "create"
    read = "read"
    update = "update"
    delete = "delete"


_OWNER_GATED = {Operation.read, Operation.update, Operation.delete}

_VERBS = {
    Operation.read: "read",
    Operation.update: "update",
    Operation.delete: "delete",
}


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None
    # "permission" or "ownership" when denied
    gate: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(True)


def has_permission(definition: ModelDefinition, role: str, operation: Operation) -> bool:
    """Role gate only."""
    granted = definition.permissions_for(role)
    return Permission.all in granted or Permission(operation.value) in granted


def authorize(
    definition: ModelDefinition,
    principal: Principal,
    operation: Operation,
    record: Any = None,
) -> Decision:
    """Decide whether ``principal`` may perform ``operation`` on the model.

    ``record`` is anything with an ``owner_id`` attribute; pass it for
    single-record operations so the ownership gate can run.
    """
    operation = Operation(operation)

    if not has_permission(definition, principal.role, operation):
        return Decision(
            False,
            f"Insufficient permissions for {operation.value} operation",
            gate="permission",
        )

    if operation not in _OWNER_GATED or principal.is_admin:
        return ALLOW

    if definition.owner_field and record is not None:
        if getattr(record, "owner_id", None) != principal.id:
            return Decision(
                False,
                f"You can only {_VERBS[operation]} your own records",
                gate="ownership",
            )

    return ALLOW


def enforce(
    definition: ModelDefinition,
    principal: Principal,
    operation: Operation,
    record: Any = None,
) -> None:
    """Like ``authorize`` but raises on deny."""
    decision = authorize(definition, principal, operation, record)
    if decision.allowed:
        return
    logger.debug(
        "Denied %s on %s for %s (%s): %s",
        Operation(operation).value, definition.name, principal.id, principal.role, decision.reason,
    )
    if decision.gate == "ownership":
        raise AccessDeniedError(decision.reason)
    raise InsufficientPermissionError(decision.reason)


def owner_scope(definition: ModelDefinition, principal: Principal) -> Optional[str]:
    """Owner id a collection read must be narrowed to, or None for no narrowing."""
    if definition.owner_field and not principal.is_admin:
        return principal.id
    return None
