"""
Authorization checks over ``CallerClaims``.

Each ``require_*`` function raises ``UnauthenticatedError`` or
``PermissionDeniedError``; use cases convert those into ``Failure``
values at their entry point.
"""

from typing import Optional

from src.core.shared.exceptions import PermissionDeniedError, UnauthenticatedError

from .claims import (
    NO_VENUE,
    CallerClaims,
    Role,
    Scanner,
    SiteAdmin,
    SubAdmin,
    User,
    VenueAdmin,
)


ROLE_LEVELS = {
    SiteAdmin.name: SiteAdmin.level,
    VenueAdmin.name: VenueAdmin.level,
    SubAdmin.name: SubAdmin.level,
}


def require_authenticated(claims: Optional[CallerClaims]) -> CallerClaims:
    if claims is None:
        raise UnauthenticatedError()
    return claims


def require_site_admin(
    claims: Optional[CallerClaims],
    message: str = "Site admin role required",
) -> CallerClaims:
    claims = require_authenticated(claims)
    if not isinstance(claims.role, SiteAdmin):
        raise PermissionDeniedError(message, required_role=SiteAdmin.name)
    return claims


def require_admin_level(claims: Optional[CallerClaims], required: str) -> CallerClaims:
    """
    Require a role at or above ``required`` in the admin hierarchy.

    siteAdmin (3) > venueAdmin (2) > subAdmin (1); scanners and regular
    users sit at 0.

    Args:
        claims: Caller claims
        required: Role name ("siteAdmin", "venueAdmin" or "subAdmin")

    Raises:
        UnauthenticatedError: If there is no caller
        PermissionDeniedError: If the caller's level is too low
    """
    claims = require_authenticated(claims)
    if claims.role.level < ROLE_LEVELS.get(required, 0):
        raise PermissionDeniedError(
            f"Insufficient permissions. Required: {required}, Have: {claims.role.name}",
            required_role=required,
        )
    return claims


def has_venue_access(role: Role, venue_id: Optional[str]) -> bool:
    """
    Whether ``role`` may act on records of ``venue_id``.

    Site admins always have access. Venue scoped roles have access when
    their venue matches, or when their venue is None (site wide). A role
    with ``NO_VENUE`` matches nothing.
    """
    if isinstance(role, SiteAdmin):
        return True
    if isinstance(role, (VenueAdmin, SubAdmin, Scanner)):
        if role.venue_id is None:
            return True
        return role.venue_id != NO_VENUE and role.venue_id == venue_id
    if isinstance(role, User):
        return False
    raise TypeError(f"Unknown role: {role!r}")


def require_venue_access(claims: Optional[CallerClaims], venue_id: Optional[str]) -> CallerClaims:
    claims = require_admin_level(claims, SubAdmin.name)
    if not has_venue_access(claims.role, venue_id):
        raise PermissionDeniedError("You do not have access to this venue")
    return claims


def require_scanner(claims: Optional[CallerClaims], venue_id: Optional[str] = None) -> CallerClaims:
    """
    Require a site admin or an active scanner for ``venue_id``.

    Raises:
        UnauthenticatedError: If there is no caller
        PermissionDeniedError: Wrong role, inactive scanner or other venue
    """
    claims = require_authenticated(claims)
    role = claims.role

    if isinstance(role, SiteAdmin):
        return claims
    if not isinstance(role, Scanner):
        raise PermissionDeniedError("Scanner or admin role required", required_role=Scanner.name)
    if not role.active:
        raise PermissionDeniedError("Scanner account is inactive")
    if venue_id and not has_venue_access(role, venue_id):
        raise PermissionDeniedError("Scanner does not have access to this venue")
    return claims
