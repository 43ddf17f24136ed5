from __future__ import annotations

from typing import Any

from app.core.deps import ROLE_ADMIN, authorize
from app.core.errors import AuthError, ForbiddenError

CRUD_ACTIONS = {"query", "read", "create", "update", "delete"}
ANY_ROLE = "*"

# Per-resource RBAC: resource -> role -> actions.
# If a resource is missing here, fallback rules are used.
RESOURCE_ROLE_ACTIONS: dict[str, dict[str, set[str]]] = {
    "users": {ROLE_ADMIN: set(CRUD_ACTIONS)},
    "products": {ANY_ROLE: set(CRUD_ACTIONS)},
    "categories": {ANY_ROLE: set(CRUD_ACTIONS)},
}

DEFAULT_ROLE_ACTIONS: dict[str, set[str]] = {
    ROLE_ADMIN: set(CRUD_ACTIONS),
}

# Actions a principal may perform on the row whose id equals its own token subject.
SELF_ACTIONS: dict[str, set[str]] = {
    "users": {"update"},
}

# Fields only an admin may write, per resource.
ADMIN_ONLY_FIELDS: dict[str, set[str]] = {
    "users": {"role"},
}


def principal_role(principal: dict) -> str:
    return str(principal.get("role") or "").strip().lower()


def is_admin(principal: dict) -> bool:
    return authorize(principal, ROLE_ADMIN)


def principal_id(principal: dict) -> str:
    subject = str(principal.get("sub") or "").strip()
    if not subject:
        raise AuthError("Invalid or expired token")
    return subject


def allowed_actions(role: str, resource: str) -> set[str]:
    per_resource = RESOURCE_ROLE_ACTIONS.get(resource)
    if per_resource is None:
        return set(DEFAULT_ROLE_ACTIONS.get(role, set()))
    return set(per_resource.get(role, set())) | set(per_resource.get(ANY_ROLE, set()))


def _owns_row(principal: dict, row_id: Any) -> bool:
    return row_id is not None and str(row_id).strip() == principal_id(principal)


def require_resource_action(principal: dict, resource: str, action: str, row_id: Any = None) -> None:
    if action in allowed_actions(principal_role(principal), resource):
        return
    if action in SELF_ACTIONS.get(resource, set()) and _owns_row(principal, row_id):
        return
    raise ForbiddenError()


def readonly_fields(principal: dict, resource: str) -> set[str]:
    if is_admin(principal):
        return set()
    return set(ADMIN_ONLY_FIELDS.get(resource, set()))


def ensure_fields_writable(principal: dict, resource: str, payload: dict[str, Any]) -> None:
    blocked = sorted(readonly_fields(principal, resource).intersection(payload.keys()))
    if blocked:
        raise ForbiddenError("Not allowed to change: " + ", ".join(blocked))
