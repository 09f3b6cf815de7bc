"""
Self-service profile of the signed-in admin.
Any active admin may read and edit their own name, email and password.
"""
from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from studio_cms.database import get_db
from studio_cms.exceptions import AuthenticationError, ConflictError, NotFoundError, ValidationError
from studio_cms.models import AdminUser
from studio_cms.schemas import PasswordChange, ProfileUpdate, UserResponse
from studio_cms.services.activity_logger import ActionType, ActivityLogger, get_activity_logger
from studio_cms.utils.auth import hash_password, validate_password_strength, verify_password
from studio_cms.utils.jwt_auth import Actor, get_current_actor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/profile", tags=["Admin Profile"])


async def _get_own_account(db: AsyncSession, actor: Actor) -> AdminUser:
    user = await db.get(AdminUser, actor.id)
    if user is None:
        raise NotFoundError(f"User {actor.id} does not exist", error="User not found")
    return user


@router.get("", response_model=UserResponse)
async def get_profile(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return UserResponse.model_validate(await _get_own_account(db, actor))


@router.put("", response_model=UserResponse)
async def update_profile(
    body: ProfileUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """
    Update the signed-in admin's full name and/or email.

    Raises:
        ValidationError: 400 if the email is blank
        ConflictError: 409 if the email belongs to another account
    """
    user = await _get_own_account(db, actor)
    old_values = {"full_name": user.full_name, "email": user.email}

    if body.email is not None:
        email = body.email.strip()
        if not email:
            raise ValidationError("Email cannot be empty")
        if email != user.email:
            taken = await db.execute(
                select(AdminUser.id).where(AdminUser.email == email, AdminUser.id != user.id)
            )
            if taken.first() is not None:
                raise ConflictError("Email already in use by another account")
            user.email = email
    if body.full_name is not None:
        user.full_name = body.full_name.strip() or None

    await db.commit()
    await db.refresh(user)

    activity.record(
        ActionType.PROFILE_UPDATE, "admin",
        entity_id=user.id, actor=actor,
        description="Updated own profile",
        old_values=old_values,
        new_values={"full_name": user.full_name, "email": user.email},
    )
    logger.info(f"Admin {user.username} updated their profile")
    return UserResponse.model_validate(user)


@router.put("/password")
async def change_password(
    body: PasswordChange,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """
    Change the signed-in admin's password.

    Raises:
        ValidationError: 400 if the new password is too weak or equals the current one
        AuthenticationError: 401 if the current password is wrong
    """
    errors = validate_password_strength(body.new_password)
    if errors:
        raise ValidationError(errors, error="Password does not meet requirements")

    user = await _get_own_account(db, actor)
    if not verify_password(body.current_password, user.password_hash):
        logger.warning(f"Password change for {user.username} rejected: wrong current password")
        raise AuthenticationError("Current password is incorrect")
    if verify_password(body.new_password, user.password_hash):
        raise ValidationError("New password must be different from current password")

    user.password_hash = hash_password(body.new_password)
    await db.commit()

    activity.record(
        ActionType.PASSWORD_CHANGE, "admin",
        entity_id=user.id, actor=actor,
        description="Changed own password",
    )
    logger.info(f"Admin {user.username} changed their password")
    return {"success": True, "message": "Password updated successfully"}
