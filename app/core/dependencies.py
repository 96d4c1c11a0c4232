"""
Core dependencies for route protection
"""

from fastapi import Depends, Request, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional

from app.core.exceptions import AuthError
from app.modules.auth.service import ClerkIdentityProvider, TokenVerifier

security = HTTPBearer(auto_error=False)


def get_token_verifier(request: Request) -> TokenVerifier:
    return request.app.state.token_verifier


def get_identity_provider(request: Request) -> ClerkIdentityProvider:
    return request.app.state.identity_provider


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> str:
    """Verify the Bearer token and return the Clerk user id. Raises 401 if missing or invalid."""
    if credentials is None:
        raise AuthError("Missing Authorization header (Bearer token)")
    return verifier.verify(credentials.credentials)
