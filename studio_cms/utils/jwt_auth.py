"""
JWT token-based authentication for the admin API.
Each request resolves its own actor from the signed token; nothing about the
session is kept in process state.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from fastapi import Depends, Header

from studio_cms.config import settings
from studio_cms.exceptions import AuthenticationError, AuthorizationError


ALGORITHM = "HS256"


@dataclass(frozen=True)
class Actor:
    """The authenticated admin performing the current request."""
    id: int
    username: str
    is_super_admin: bool = False
    assigned_regions: tuple = field(default_factory=tuple)

    def can_access_region(self, region_code: str) -> bool:
        return self.is_super_admin or region_code in self.assigned_regions


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Dictionary of claims to include in token
        expires_delta: Optional custom expiration time

    Returns:
        str: Encoded JWT token
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.JWT_EXPIRE_MINUTES)

    to_encode.update({
        "exp": expire,
        "iat": datetime.now(timezone.utc),
        "type": "access"
    })

    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=ALGORITHM)


def token_claims_for(user) -> dict:
    """Build the token claims for an AdminUser row."""
    return {
        "sub": str(user.id),
        "username": user.username,
        "isSuperAdmin": bool(user.is_super_admin),
        "assignedRegions": list(user.assigned_regions or []),
        "isActive": bool(user.is_active),
    }


def verify_token(token: str) -> dict:
    """
    Verify and decode a JWT token.
    The previous secret is tried when the current one fails, so tokens issued
    before a secret rotation keep working until they expire.

    Raises:
        AuthenticationError: If token is invalid, expired, or malformed
    """
    secrets = [settings.JWT_SECRET_KEY]
    if settings.JWT_SECRET_PREVIOUS:
        secrets.append(settings.JWT_SECRET_PREVIOUS)

    payload = None
    for secret in secrets:
        try:
            payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
            break
        except JWTError:
            continue

    if payload is None:
        raise AuthenticationError("Authentication token is invalid or expired", error="Invalid token")

    if payload.get("type") != "access":
        raise AuthenticationError("Token is not an access token", error="Invalid token type")

    return payload


def verify_cms_token(
    authorization: Optional[str] = Header(None, description="Bearer token for authentication")
) -> dict:
    """
    FastAPI dependency for JWT token authentication.

    Returns:
        dict: Decoded token payload

    Raises:
        AuthenticationError: 401 if token is missing, invalid, or expired
    """
    token = None
    if authorization:
        parts = authorization.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            token = parts[1]

    if not token:
        raise AuthenticationError("Authentication required", error="Missing token")

    return verify_token(token)


def get_current_actor(payload: dict = Depends(verify_cms_token)) -> Actor:
    """Resolve the acting admin from the verified token claims."""
    if payload.get("isActive") is False:
        raise AuthorizationError("Account is inactive")

    try:
        actor_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise AuthenticationError("Token subject is missing", error="Invalid token")

    return Actor(
        id=actor_id,
        username=payload.get("username", ""),
        is_super_admin=bool(payload.get("isSuperAdmin", False)),
        assigned_regions=tuple(payload.get("assignedRegions") or ()),
    )


def require_super_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    """FastAPI dependency restricting an endpoint to super admins."""
    if not actor.is_super_admin:
        raise AuthorizationError("Super admin access required", error="Forbidden")
    return actor
