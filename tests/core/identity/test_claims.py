"""
Unit tests for caller claims and the role hierarchy.
"""

import pytest

from src.core.identity.claims import (
    NO_VENUE,
    CallerClaims,
    Scanner,
    SiteAdmin,
    SubAdmin,
    User,
    VenueAdmin,
    claims_to_dict,
    parse_claims,
)
from src.core.identity.permissions import (
    has_venue_access,
    require_admin_level,
    require_scanner,
    require_site_admin,
    require_venue_access,
)
from src.core.shared.exceptions import PermissionDeniedError, UnauthenticatedError


class TestParseClaims:

    def test_site_admin(self):
        claims = parse_claims({"uid": "a1", "role": "siteAdmin"})

        assert claims.uid == "a1"
        assert claims.role == SiteAdmin()
        assert claims.is_site_admin

    def test_venue_scoped_roles_keep_venue(self):
        assert parse_claims({"uid": "a", "role": "venueAdmin", "venueId": "v1"}).role == VenueAdmin("v1")
        assert parse_claims({"uid": "a", "role": "subAdmin", "venueId": "v1"}).role == SubAdmin("v1")

    def test_scanner_active_flag(self):
        role = parse_claims({"uid": "s", "role": "scanner", "venueId": "v1", "active": False}).role

        assert role == Scanner(venue_id="v1", active=False)

    def test_scanner_without_active_claim_is_inactive(self):
        role = parse_claims({"uid": "s", "role": "scanner", "venueId": "v1"}).role

        assert role == Scanner(venue_id="v1", active=False)

    def test_absent_venue_is_not_site_wide(self):
        assert parse_claims({"uid": "a", "role": "venueAdmin"}).role == VenueAdmin(NO_VENUE)
        assert parse_claims({"uid": "a", "role": "venueAdmin", "venueId": None}).role == VenueAdmin(None)

    def test_unknown_role_is_user(self):
        assert parse_claims({"uid": "u", "role": "superhero"}).role == User()
        assert parse_claims({"uid": "u"}).role == User()

    @pytest.mark.parametrize("raw", [None, {}, {"role": "siteAdmin"}, {"uid": "  "}, {"uid": 42}])
    def test_missing_uid_is_unauthenticated(self, raw):
        with pytest.raises(UnauthenticatedError):
            parse_claims(raw)

    def test_claims_to_dict_round_trip(self):
        raw = {"uid": "s", "role": "scanner", "venueId": "v1", "active": True, "email": "s@x.io"}

        assert claims_to_dict(parse_claims(raw)) == raw


class TestRoleHierarchy:

    def test_site_admin_passes_every_level(self):
        claims = CallerClaims(uid="a", role=SiteAdmin())
        for required in ("siteAdmin", "venueAdmin", "subAdmin"):
            assert require_admin_level(claims, required) is claims

    def test_venue_admin_is_below_site_admin(self):
        claims = CallerClaims(uid="a", role=VenueAdmin("v1"))

        assert require_admin_level(claims, "subAdmin") is claims
        with pytest.raises(PermissionDeniedError) as exc_info:
            require_admin_level(claims, "siteAdmin")
        assert "Required: siteAdmin, Have: venueAdmin" in exc_info.value.message

    def test_user_has_no_admin_level(self):
        with pytest.raises(PermissionDeniedError):
            require_admin_level(CallerClaims(uid="u", role=User()), "subAdmin")

    def test_require_site_admin_without_claims(self):
        with pytest.raises(UnauthenticatedError):
            require_site_admin(None)


class TestVenueAccess:

    def test_matching_venue(self):
        assert has_venue_access(VenueAdmin("v1"), "v1")
        assert not has_venue_access(VenueAdmin("v1"), "v2")

    def test_unscoped_venue_role_is_site_wide(self):
        assert has_venue_access(SubAdmin(None), "v2")

    def test_role_without_venue_has_no_venue_access(self):
        assert not has_venue_access(SubAdmin(NO_VENUE), "v2")
        assert not has_venue_access(Scanner(NO_VENUE), "")

    def test_user_never_has_venue_access(self):
        assert not has_venue_access(User(), "v1")

    def test_require_venue_access_other_venue(self):
        with pytest.raises(PermissionDeniedError):
            require_venue_access(CallerClaims(uid="a", role=VenueAdmin("v1")), "v2")


class TestRequireScanner:

    def test_active_scanner_of_venue(self):
        claims = CallerClaims(uid="s", role=Scanner("v1"))
        assert require_scanner(claims, "v1") is claims

    def test_inactive_scanner(self):
        with pytest.raises(PermissionDeniedError) as exc_info:
            require_scanner(CallerClaims(uid="s", role=Scanner("v1", active=False)), "v1")
        assert exc_info.value.message == "Scanner account is inactive"

    def test_scanner_of_other_venue(self):
        with pytest.raises(PermissionDeniedError):
            require_scanner(CallerClaims(uid="s", role=Scanner("v1")), "v2")

    def test_venue_admin_is_not_a_scanner(self):
        with pytest.raises(PermissionDeniedError):
            require_scanner(CallerClaims(uid="a", role=VenueAdmin("v1")), "v1")

    def test_site_admin_scans_anywhere(self):
        claims = CallerClaims(uid="a", role=SiteAdmin())
        assert require_scanner(claims, "any") is claims

    def test_bare_scanner_claims_are_rejected(self):
        claims = parse_claims({"uid": "s1", "role": "scanner"})

        with pytest.raises(PermissionDeniedError) as exc_info:
            require_scanner(claims, "venue-x")
        assert exc_info.value.message == "Scanner account is inactive"

    def test_active_scanner_without_venue_is_rejected(self):
        claims = parse_claims({"uid": "s1", "role": "scanner", "active": True})

        with pytest.raises(PermissionDeniedError) as exc_info:
            require_scanner(claims, "venue-x")
        assert exc_info.value.message == "Scanner does not have access to this venue"
