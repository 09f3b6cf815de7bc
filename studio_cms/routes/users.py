"""
Admin user management. Super admins only.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
import logging

from studio_cms.database import get_db
from studio_cms.exceptions import ConflictError, NotFoundError, ValidationError
from studio_cms.models import AdminUser
from studio_cms.schemas import UserCreate, UserResponse, UserUpdate
from studio_cms.services.activity_logger import ActionType, ActivityLogger, get_activity_logger
from studio_cms.services.regions import validate_region_code
from studio_cms.utils.auth import hash_password, validate_password_strength
from studio_cms.utils.jwt_auth import Actor, require_super_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/users", tags=["Admin Users"])


def _user_snapshot(user: AdminUser) -> dict:
    return {
        "username": user.username,
        "email": user.email,
        "full_name": user.full_name,
        "is_active": bool(user.is_active),
        "is_super_admin": bool(user.is_super_admin),
        "assigned_regions": list(user.assigned_regions or []),
    }


def _check_password(password: str) -> None:
    errors = validate_password_strength(password)
    if errors:
        raise ValidationError(errors, error="Password does not meet requirements")


def _check_regions(codes: List[str]) -> List[str]:
    return [validate_region_code(code) for code in codes]


async def _get_user(db: AsyncSession, user_id: int) -> AdminUser:
    user = await db.get(AdminUser, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} does not exist", error="User not found")
    return user


@router.get("", response_model=List[UserResponse])
async def list_users(
    actor: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(AdminUser).order_by(AdminUser.created_at.desc(), AdminUser.id.desc()))
    return [UserResponse.model_validate(u) for u in result.scalars().all()]


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    body: UserCreate,
    actor: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """
    Create an admin account.

    Raises:
        ValidationError: 400 if the password is too weak or a region code is malformed
        ConflictError: 409 if the username or email is taken
    """
    _check_password(body.password)
    regions = _check_regions(body.assigned_regions)

    existing = await db.execute(
        select(AdminUser.id).where(or_(AdminUser.username == body.username, AdminUser.email == body.email))
    )
    if existing.first() is not None:
        raise ConflictError("Username or email already exists")

    user = AdminUser(
        username=body.username,
        email=body.email,
        full_name=body.full_name,
        password_hash=hash_password(body.password),
        is_active=True,
        is_super_admin=body.is_super_admin,
        assigned_regions=regions,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    activity.record(
        ActionType.USER_CREATE, "admin",
        entity_id=user.id, actor=actor,
        description=f"Created admin user {user.username}",
        new_values=_user_snapshot(user),
    )
    logger.info(f"Admin {actor.username} created user {user.username}")
    return UserResponse.model_validate(user)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    body: UserUpdate,
    actor: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    """Update account fields; a super admin cannot remove their own super admin status."""
    user = await _get_user(db, user_id)
    old_values = _user_snapshot(user)

    if user.id == actor.id and body.is_super_admin is False:
        raise ValidationError("You cannot remove your own super admin status")

    if body.email is not None and body.email != user.email:
        taken = await db.execute(
            select(AdminUser.id).where(AdminUser.email == body.email, AdminUser.id != user.id)
        )
        if taken.first() is not None:
            raise ConflictError("Username or email already exists")
        user.email = body.email
    if body.full_name is not None:
        user.full_name = body.full_name
    if body.is_active is not None:
        user.is_active = body.is_active
    if body.is_super_admin is not None:
        user.is_super_admin = body.is_super_admin
    if body.assigned_regions is not None:
        user.assigned_regions = _check_regions(body.assigned_regions)
    if body.password:
        _check_password(body.password)
        user.password_hash = hash_password(body.password)

    await db.commit()
    await db.refresh(user)

    new_values = _user_snapshot(user)
    if body.password:
        new_values["password_changed"] = True
    activity.record(
        ActionType.USER_UPDATE, "admin",
        entity_id=user.id, actor=actor,
        description=f"Updated admin user {user.username}",
        old_values=old_values,
        new_values=new_values,
    )
    return UserResponse.model_validate(user)


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    actor: Actor = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    if user_id == actor.id:
        raise ValidationError("You cannot delete your own account")

    user = await _get_user(db, user_id)
    old_values = _user_snapshot(user)
    await db.delete(user)
    await db.commit()

    activity.record(
        ActionType.USER_DELETE, "admin",
        entity_id=user_id, actor=actor,
        description=f"Deleted admin user {old_values['username']}",
        old_values=old_values,
    )
    logger.info(f"Admin {actor.username} deleted user {old_values['username']}")
    return {"success": True, "message": f"User {old_values['username']} deleted"}
