"""
Identity verification and Clerk principal access.

TokenVerifier checks Clerk session JWTs locally (PEM key or JWKS).
ClerkIdentityProvider reads and patches the principal's public_metadata,
which holds the authoritative role.
"""

import logging
from typing import Any, Dict, List, Optional

import jwt
from jwt import PyJWKClient
from clerk_backend_api import Clerk

from app.config import Settings
from app.core.exceptions import AuthError, UpstreamError
from app.modules.auth.schemas import Principal

logger = logging.getLogger(__name__)

# Tokens some frontends send when the session is not loaded yet
_PLACEHOLDER_TOKENS = {"null", "undefined"}

# Allowed clock skew at exp/nbf/iat
CLOCK_SKEW_SECONDS = 5


def check_token_format(token: Optional[str]) -> str:
    """Reject tokens that cannot be a signed JWT, before any key lookup."""
    if not token or not token.strip():
        raise AuthError("Missing bearer token")
    token = token.strip()
    if token.lower() in _PLACEHOLDER_TOKENS:
        raise AuthError("Invalid token format")
    if len(token.split(".")) != 3:
        raise AuthError("Invalid token format")
    return token


class TokenVerifier:
    def __init__(
        self,
        jwt_key: Optional[str] = None,
        jwks_url: Optional[str] = None,
        secret_key: Optional[str] = None,
        authorized_parties: Optional[List[str]] = None,
    ):
        self.jwt_key = jwt_key
        self.authorized_parties = authorized_parties or []
        self._jwks_client: Optional[PyJWKClient] = None
        if not jwt_key and jwks_url:
            headers = {"Authorization": f"Bearer {secret_key}"} if secret_key else None
            self._jwks_client = PyJWKClient(jwks_url, headers=headers)

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenVerifier":
        return cls(
            jwt_key=settings.clerk_jwt_key,
            jwks_url=settings.clerk_jwks_url,
            secret_key=settings.clerk_secret_key,
            authorized_parties=settings.get_authorized_parties_list(),
        )

    def _signing_key(self, token: str):
        if self.jwt_key:
            return self.jwt_key
        if self._jwks_client is None:
            raise UpstreamError("No Clerk verification key configured")
        return self._jwks_client.get_signing_key_from_jwt(token).key

    def verify(self, token: Optional[str]) -> str:
        """Verify a Clerk session token and return the principal id (sub)."""
        token = check_token_format(token)
        try:
            payload = jwt.decode(
                token,
                self._signing_key(token),
                algorithms=["RS256"],
                options={"verify_aud": False, "require": ["exp", "sub"]},
                leeway=CLOCK_SKEW_SECONDS,
            )
        except jwt.PyJWKClientConnectionError as e:
            raise UpstreamError(f"Could not fetch Clerk JWKS: {e}") from e
        except jwt.PyJWTError as e:
            logger.info("Token rejected: %s", e)
            raise AuthError("Invalid or expired token") from e

        azp = payload.get("azp")
        if self.authorized_parties and azp not in self.authorized_parties:
            logger.warning("Token rejected: unauthorized party %s", azp)
            raise AuthError("Invalid or expired token")

        user_id = payload.get("sub")
        if not user_id:
            raise AuthError("Token missing sub (user id)")
        return str(user_id)


class ClerkIdentityProvider:
    def __init__(self, clerk: Clerk):
        self.clerk = clerk

    @classmethod
    def from_settings(cls, settings: Settings) -> "ClerkIdentityProvider":
        return cls(Clerk(bearer_auth=settings.clerk_secret_key))

    def fetch_principal(self, principal_id: str) -> Principal:
        """Get the provider's current view of the user"""
        try:
            user = self.clerk.users.get(user_id=principal_id)
        except Exception as e:
            raise UpstreamError(f"Failed to fetch Clerk user {principal_id}: {e}") from e

        email = None
        addresses = user.email_addresses or []
        for address in addresses:
            if address.id == user.primary_email_address_id:
                email = address.email_address
                break
        if email is None and addresses:
            email = addresses[0].email_address

        return Principal(
            id=principal_id,
            email=email,
            first_name=user.first_name,
            metadata=dict(user.public_metadata or {}),
        )

    def update_metadata(self, principal_id: str, patch: Dict[str, Any]) -> None:
        """Merge patch into the user's public_metadata"""
        try:
            self.clerk.users.update_metadata(user_id=principal_id, public_metadata=patch)
        except Exception as e:
            raise UpstreamError(f"Failed to update Clerk metadata for {principal_id}: {e}") from e
        logger.info("Clerk metadata updated for %s: %s", principal_id, patch)
