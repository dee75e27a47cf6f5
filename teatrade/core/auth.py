"""
Authentication for the Tea Trade backend
Validates Cognito ID tokens and provides user context
"""
import logging
import threading
import time
from typing import Dict, Optional

import httpx
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from teatrade.core.config import Settings

logger = logging.getLogger(__name__)

# Security scheme for bearer tokens
security = HTTPBearer(auto_error=False)


class TokenUser(BaseModel):
    """User data extracted from a Cognito ID token"""
    id: str
    role: str = "user"
    email: str = ""
    username: Optional[str] = None
    phone_number: Optional[str] = None
    token_use: str = "id"


class InvalidTokenError(Exception):
    pass


class CognitoTokenVerifier:
    """
    Verifies RS256 ID tokens against the user pool's JWKS.

    Signing keys are fetched lazily and cached by ``kid``. An unknown
    ``kid`` triggers a refetch (key rotation), at most once per
    ``min_refetch_interval`` seconds.
    """

    def __init__(self, jwks_url: str, issuer: str, audience: str,
                 clock_tolerance: int = 0, http_client: Optional[httpx.Client] = None,
                 min_refetch_interval: float = 60.0, clock=time.monotonic):
        self.jwks_url = jwks_url
        self.issuer = issuer
        self.audience = audience
        self.clock_tolerance = clock_tolerance
        self._http = http_client or httpx.Client(timeout=5.0)
        self._keys: Dict[str, dict] = {}
        self._lock = threading.Lock()
        self.min_refetch_interval = min_refetch_interval
        self._clock = clock
        self._last_fetch: Optional[float] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "CognitoTokenVerifier":
        return cls(
            jwks_url=settings.cognito_jwks_url,
            issuer=settings.cognito_issuer,
            audience=settings.COGNITO_APP_CLIENT_ID,
            clock_tolerance=settings.COGNITO_CLOCK_TOLERANCE,
            min_refetch_interval=settings.COGNITO_JWKS_MIN_REFETCH_SECONDS,
        )

    def _refresh_keys(self) -> None:
        self._last_fetch = self._clock()
        response = self._http.get(self.jwks_url)
        response.raise_for_status()
        self._keys = {key["kid"]: key for key in response.json().get("keys", [])}

    def _may_refetch(self) -> bool:
        if self._last_fetch is None:
            return True
        return self._clock() - self._last_fetch >= self.min_refetch_interval

    def _get_signing_key(self, kid: str) -> dict:
        with self._lock:
            if kid not in self._keys and self._may_refetch():
                try:
                    self._refresh_keys()
                except httpx.HTTPError as e:
                    raise InvalidTokenError(f"Unable to fetch signing keys: {e}")
            key = self._keys.get(kid)
        if key is None:
            raise InvalidTokenError("Unknown signing key")
        return key

    def verify(self, token: str) -> dict:
        """
        Decode and validate an ID token.

        Returns:
            The token claims

        Raises:
            InvalidTokenError if the signature, issuer, audience, expiry or
            token_use are not acceptable
        """
        try:
            header = jwt.get_unverified_header(token)
            key = self._get_signing_key(header.get("kid", ""))
            claims = jwt.decode(
                token,
                key,
                algorithms=["RS256"],
                audience=self.audience,
                issuer=self.issuer,
                options={"leeway": self.clock_tolerance},
            )
        except JWTError as e:
            raise InvalidTokenError(str(e))

        if claims.get("token_use") != "id":
            raise InvalidTokenError("ID token required")
        return claims

    def close(self) -> None:
        self._http.close()


def user_from_claims(claims: dict) -> TokenUser:
    """Map Cognito claims onto a TokenUser"""
    raw_role = claims.get("custom:role") or "user"
    if not isinstance(raw_role, str):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden: Invalid role")

    return TokenUser(
        id=claims["sub"],
        role=raw_role.lower(),
        email=claims.get("email", ""),
        username=claims.get("cognito:username"),
        phone_number=claims.get("phone_number"),
        token_use=claims.get("token_use", "id"),
    )


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> TokenUser:
    """
    Dependency that extracts and validates the current user from the ID token.

    Declared as a plain function: key fetches block, so it runs in the
    threadpool.

    Usage:
        @router.get("/protected")
        def protected_route(user: TokenUser = Depends(get_current_user)):
            return {"message": f"Hello {user.email}"}
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: No token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    verifier: CognitoTokenVerifier = request.app.state.token_verifier
    try:
        claims = verifier.verify(credentials.credentials)
    except InvalidTokenError as e:
        logger.warning(f"Token verification failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user_from_claims(claims)


def require_roles(*allowed_roles: str):
    """
    Dependency factory for role-based access control.

    An empty role list admits any authenticated user.

    Usage:
        @router.delete("/stocks")
        def delete_stocks(user: TokenUser = Depends(require_roles("admin"))):
            ...
    """
    allowed = {role.lower() for role in allowed_roles}

    async def role_checker(user: TokenUser = Depends(get_current_user)) -> TokenUser:
        if allowed and user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden: Insufficient permissions",
            )
        return user

    return role_checker


# Convenience dependencies for common role requirements
require_admin = require_roles("admin")
require_user = require_roles("user")
require_any_role = require_roles("admin", "user")
