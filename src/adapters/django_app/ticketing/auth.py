"""
Caller identity for the HTTP adapter.

The identity provider issues ``Authorization: Bearer <token>`` tokens:
``django.core.signing`` dumps of the raw claims
(``{"uid", "role", "venueId"?, "email"?, "active"?}``) signed with the
shared ``IDENTITY_TOKEN_KEY``. ``SignedTokenIdentityProvider`` verifies
the token and parses it into ``CallerClaims`` once per request.
"""

from typing import Any, Mapping, Optional
import logging

from django.core import signing

from src.core.identity.claims import CallerClaims, parse_claims
from src.core.shared.exceptions import UnauthenticatedError

logger = logging.getLogger(__name__)

TOKEN_SALT = 'ticketing.identity'
BEARER_PREFIX = 'Bearer '


class SignedTokenIdentityProvider:
    """
    Verifies signed identity tokens.

    Example:
        provider = SignedTokenIdentityProvider(key="shared-key", max_age=3600)
        token = provider.issue_token({"uid": "u1", "role": "user"})
        claims = provider.claims_from_token(token)
    """

    def __init__(self, key: str, max_age: Optional[int] = None):
        self.key = key
        self.max_age = max_age

    def issue_token(self, raw_claims: Mapping[str, Any]) -> str:
        """Sign raw claims (identity provider side; used by tests and scripts)."""
        return signing.dumps(dict(raw_claims), key=self.key, salt=TOKEN_SALT)

    def claims_from_token(self, token: str) -> CallerClaims:
        """
        Raises:
            UnauthenticatedError: If the token is expired, tampered or incomplete
        """
        try:
            raw = signing.loads(token, key=self.key, salt=TOKEN_SALT, max_age=self.max_age)
        except signing.SignatureExpired:
            raise UnauthenticatedError("Authentication token expired")
        except signing.BadSignature:
            logger.warning("Rejected identity token with a bad signature")
            raise UnauthenticatedError("Invalid authentication token")
        return parse_claims(raw)

    def claims_from_request(self, request) -> Optional[CallerClaims]:
        """
        Claims of the caller, or None for an anonymous request.

        Raises:
            UnauthenticatedError: If a token is present but invalid
        """
        header = request.META.get('HTTP_AUTHORIZATION', '')
        if not header.startswith(BEARER_PREFIX):
            return None
        token = header[len(BEARER_PREFIX):].strip()
        if not token:
            return None
        return self.claims_from_token(token)
