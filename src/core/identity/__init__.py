"""
Identity domain - caller claims and role based authorization.
"""

from .claims import (
    NO_VENUE,
    CallerClaims,
    Role,
    SiteAdmin,
    VenueAdmin,
    SubAdmin,
    Scanner,
    User,
    parse_claims,
    claims_to_dict,
)
from .permissions import (
    require_authenticated,
    require_site_admin,
    require_admin_level,
    require_venue_access,
    require_scanner,
    has_venue_access,
)

__all__ = [
    "NO_VENUE",
    "CallerClaims",
    "Role",
    "SiteAdmin",
    "VenueAdmin",
    "SubAdmin",
    "Scanner",
    "User",
    "parse_claims",
    "claims_to_dict",
    "require_authenticated",
    "require_site_admin",
    "require_admin_level",
    "require_venue_access",
    "require_scanner",
    "has_venue_access",
]
