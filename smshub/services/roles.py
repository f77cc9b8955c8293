"""Role hierarchy and route permissions.

Roles form a total order USER < ONBOARDED < ADMIN < SUPERADMIN. Role strings are
compared case-insensitively; a missing or unknown role never passes a check.

Route access is a separate, explicit allow-list per path prefix: the most specific
(longest) matching prefix decides, and a path with no matching entry is denied.
"""
import logging
from dataclasses import dataclass

from smshub.models.identity import Role

log = logging.getLogger(__name__)

ROLE_HIERARCHY: dict[str, int] = {
    Role.USER.value: 1,
    Role.ONBOARDED.value: 2,
    Role.ADMIN.value: 3,
    Role.SUPERADMIN.value: 4,
}

ROLE_DISPLAY_NAMES: dict[str, str] = {
    Role.USER.value: "User",
    Role.ONBOARDED.value: "Verified User",
    Role.ADMIN.value: "Administrator",
    Role.SUPERADMIN.value: "Super Administrator",
}

ALL_ROLES = frozenset(ROLE_HIERARCHY)


@dataclass(frozen=True)
class RoutePermission:
    path: str
    roles: frozenset[str]


def _route(path: str, *roles: Role) -> RoutePermission:
    return RoutePermission(path=path, roles=frozenset(r.value for r in roles))


ROUTE_PERMISSIONS: list[RoutePermission] = [
    _route("/auth/me", Role.USER, Role.ONBOARDED, Role.ADMIN, Role.SUPERADMIN),
    _route("/onboarding", Role.USER, Role.ONBOARDED, Role.ADMIN, Role.SUPERADMIN),
    _route("/compliance", Role.USER, Role.ONBOARDED, Role.ADMIN, Role.SUPERADMIN),
    _route("/admin", Role.ADMIN, Role.SUPERADMIN),
    _route("/admin/dispatch-failures", Role.SUPERADMIN),
]


def normalize_role(role: str | None) -> str | None:
    if role is None:
        return None
    value = getattr(role, "value", role)
    normalized = str(value).strip().upper()
    return normalized or None


def has_role(user_role: str | None, role: str) -> bool:
    normalized = normalize_role(user_role)
    if not normalized:
        return False
    return normalized == normalize_role(role)


def has_any_role(user_role: str | None, roles) -> bool:
    normalized = normalize_role(user_role)
    if not normalized:
        return False
    return any(normalized == normalize_role(r) for r in roles)


def has_minimum_role(user_role: str | None, minimum_role: str) -> bool:
    """True if user_role is at or above minimum_role in the hierarchy."""
    normalized = normalize_role(user_role)
    if not normalized:
        return False
    user_level = ROLE_HIERARCHY.get(normalized)
    required_level = ROLE_HIERARCHY.get(normalize_role(minimum_role) or "")
    if user_level is None or required_level is None:
        log.warning("Invalid role comparison: user_role=%r minimum_role=%r", user_role, minimum_role)
        return False
    return user_level >= required_level


def find_route_permission(path: str, route_table: list[RoutePermission]) -> RoutePermission | None:
    matches = [rp for rp in route_table if path.startswith(rp.path)]
    if not matches:
        return None
    return max(matches, key=lambda rp: len(rp.path))


def can_access_route(user_role: str | None, path: str, route_table: list[RoutePermission]) -> bool:
    if not normalize_role(user_role):
        log.debug("No user role provided for route access check: path=%s", path)
        return False
    permission = find_route_permission(path, route_table)
    if permission is None:
        log.debug("No route permission found: path=%s", path)
        return False
    allowed = has_any_role(user_role, permission.roles)
    log.debug(
        "Route access check: path=%s role=%s required=%s allowed=%s",
        path, user_role, sorted(permission.roles), allowed,
    )
    return allowed


def is_authenticated(user_role: str | None) -> bool:
    return has_any_role(user_role, ALL_ROLES)


def is_onboarded(user_role: str | None) -> bool:
    return has_minimum_role(user_role, Role.ONBOARDED.value)


def is_admin(user_role: str | None) -> bool:
    return has_minimum_role(user_role, Role.ADMIN.value)


def is_super_admin(user_role: str | None) -> bool:
    return has_role(user_role, Role.SUPERADMIN.value)


def get_role_display_name(role: str) -> str:
    return ROLE_DISPLAY_NAMES.get(normalize_role(role) or "", role)
