"""
Authentication routes: login, logout and the current session.
"""
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from studio_cms.database import get_db
from studio_cms.exceptions import AuthenticationError, AuthorizationError
from studio_cms.models import AdminUser
from studio_cms.schemas import LoginRequest, LoginResponse, UserResponse
from studio_cms.services.activity_logger import ActionType, ActivityLogger, get_activity_logger
from studio_cms.utils.auth import verify_password
from studio_cms.utils.jwt_auth import Actor, create_access_token, get_current_actor, token_claims_for
from studio_cms.utils.rate_limit import RATE_LIMITS, limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/login", response_model=LoginResponse)
@limiter.limit(RATE_LIMITS["login"])
async def login(
    request: Request,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """
    Exchange username and password for a JWT access token.
    Rate limited per client IP.

    Raises:
        AuthenticationError: 401 if the credentials are wrong
        AuthorizationError: 403 if the account is deactivated
    """
    result = await db.execute(select(AdminUser).where(AdminUser.username == body.username))
    user = result.scalar_one_or_none()

    if user is None or not verify_password(body.password, user.password_hash):
        logger.warning(f"Failed login attempt for username: {body.username}")
        await activity.record_now(
            ActionType.LOGIN_FAILED, "admin",
            description=f"Failed login attempt for username: {body.username}",
        )
        raise AuthenticationError("Invalid username or password", error="Invalid credentials")

    if not user.is_active:
        raise AuthorizationError("Account is inactive")

    user.last_login = datetime.now(timezone.utc)
    await db.commit()

    token = create_access_token(token_claims_for(user))
    activity.record(
        ActionType.LOGIN_SUCCESS, "admin",
        entity_id=user.id,
        actor_id=user.id,
        description=f"{user.username} logged in",
    )
    logger.info(f"Admin {user.username} logged in")

    return LoginResponse(token=token, user=UserResponse.model_validate(user))


@router.post("/logout")
async def logout(
    actor: Actor = Depends(get_current_actor),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """Record the logout. Tokens are stateless; the client discards its copy."""
    activity.record(ActionType.LOGOUT, "admin", entity_id=actor.id, actor=actor,
                    description=f"{actor.username} logged out")
    return {"success": True, "message": "Logged out"}


@router.get("/me", response_model=UserResponse)
async def me(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Current admin account."""
    user = await db.get(AdminUser, actor.id)
    if user is None:
        raise AuthenticationError("Account no longer exists", error="Invalid token")
    return UserResponse.model_validate(user)
