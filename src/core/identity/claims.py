"""
Caller identity and roles.

The identity provider hands us a loosely typed claims mapping
(``{"uid": ..., "role": "venueAdmin", "venueId": ...}``). It is parsed
exactly once, at the boundary, into ``CallerClaims`` whose ``role`` is
one of the ``Role`` variants below. Everything past the boundary works
with these types only.

Venue scope of the venue roles: a venue id, ``None`` (explicit null in
the claims, every venue) or ``NO_VENUE`` (claim absent, no venue at all).

Roles:
- SiteAdmin: full access, the only role allowed to run migrations
- VenueAdmin(venue_id): administers one venue
- SubAdmin(venue_id): limited venue administration
- Scanner(venue_id, active): validates tickets at the door
- User: regular ticket buyer
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from src.core.shared.exceptions import UnauthenticatedError


NO_VENUE = ""


@dataclass(frozen=True)
class SiteAdmin:
    name = "siteAdmin"
    level = 3


@dataclass(frozen=True)
class VenueAdmin:
    venue_id: Optional[str] = None

    name = "venueAdmin"
    level = 2


@dataclass(frozen=True)
class SubAdmin:
    venue_id: Optional[str] = None

    name = "subAdmin"
    level = 1


@dataclass(frozen=True)
class Scanner:
    venue_id: Optional[str] = None
    active: bool = True

    name = "scanner"
    level = 0


@dataclass(frozen=True)
class User:
    name = "user"
    level = 0


Role = Union[SiteAdmin, VenueAdmin, SubAdmin, Scanner, User]

VenueScopedRole = (VenueAdmin, SubAdmin, Scanner)


@dataclass(frozen=True)
class CallerClaims:
    """
    Verified identity of the caller.

    Attributes:
        uid: Identifier of the authenticated principal
        role: Parsed role variant
        email: Optional e-mail, used for audit fields (scanned_by_email)
    """

    uid: str
    role: Role
    email: Optional[str] = None

    @property
    def is_site_admin(self) -> bool:
        return isinstance(self.role, SiteAdmin)


def parse_role(raw: Mapping[str, Any]) -> Role:
    """
    Build the Role variant from raw claims.

    Unknown or missing roles fall back to ``User``. A scanner is active
    only when its claims say so.

    Args:
        raw: Claims mapping as produced by the identity provider

    Returns:
        The matching Role variant
    """
    role = raw.get("role")
    venue_id = raw.get("venueId", NO_VENUE)
    if venue_id is not None and not isinstance(venue_id, str):
        venue_id = NO_VENUE

    if role == SiteAdmin.name:
        return SiteAdmin()
    if role == VenueAdmin.name:
        return VenueAdmin(venue_id=venue_id)
    if role == SubAdmin.name:
        return SubAdmin(venue_id=venue_id)
    if role == Scanner.name:
        return Scanner(venue_id=venue_id, active=raw.get("active") is True)
    return User()


def parse_claims(raw: Optional[Mapping[str, Any]]) -> CallerClaims:
    """
    Parse raw claims into ``CallerClaims``.

    Args:
        raw: Claims mapping, or None for an anonymous request

    Returns:
        CallerClaims for the authenticated principal

    Raises:
        UnauthenticatedError: If there is no claims mapping or no uid
    """
    if not raw:
        raise UnauthenticatedError()

    uid = raw.get("uid")
    if not isinstance(uid, str) or not uid.strip():
        raise UnauthenticatedError()

    return CallerClaims(uid=uid, role=parse_role(raw), email=raw.get("email"))


def claims_to_dict(claims: CallerClaims) -> dict:
    """Inverse of ``parse_claims``; used to hand claims to Celery tasks."""
    data = {"uid": claims.uid, "role": claims.role.name}
    if claims.email:
        data["email"] = claims.email
    if isinstance(claims.role, VenueScopedRole):
        data["venueId"] = claims.role.venue_id
    if isinstance(claims.role, Scanner):
        data["active"] = claims.role.active
    return data
