"""
Activity log queries. Log entries are read-only through the API.
"""
from datetime import datetime
from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

from studio_cms.database import get_db
from studio_cms.exceptions import NotFoundError
from studio_cms.models import ActivityLog, AdminUser
from studio_cms.schemas import ActivityLogPage, ActivityLogResponse, LogPagination
from studio_cms.utils.jwt_auth import Actor, get_current_actor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/activity-logs", tags=["Admin Activity Logs"])

MAX_PAGE_SIZE = 100


def _to_response(log: ActivityLog, username: Optional[str], full_name: Optional[str]) -> ActivityLogResponse:
    return ActivityLogResponse(
        id=log.id,
        admin_id=log.admin_id,
        username=username,
        full_name=full_name,
        action_type=log.action_type,
        entity_type=log.entity_type,
        entity_id=log.entity_id,
        description=log.description,
        old_values=log.old_values,
        new_values=log.new_values,
        ip_address=log.ip_address,
        user_agent=log.user_agent,
        created_at=log.created_at,
    )


@router.get("", response_model=ActivityLogPage, response_model_by_alias=True)
async def list_activity_logs(
    action_type: Optional[str] = None,
    entity_type: Optional[str] = None,
    admin_id: Optional[int] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: int = Query(50, ge=1),
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    Page through activity log entries, newest first.

    Args:
        action_type: Only entries of this action type
        entity_type: Only entries about this kind of entity
        admin_id: Only entries by this admin
        start_date: Entries at or after this time
        end_date: Entries at or before this time
        limit: Page size (default 50, at most 100)
        offset: Entries to skip
    """
    limit = min(limit, MAX_PAGE_SIZE)

    conditions = []
    if action_type:
        conditions.append(ActivityLog.action_type == action_type)
    if entity_type:
        conditions.append(ActivityLog.entity_type == entity_type)
    if admin_id is not None:
        conditions.append(ActivityLog.admin_id == admin_id)
    if start_date is not None:
        conditions.append(ActivityLog.created_at >= start_date)
    if end_date is not None:
        conditions.append(ActivityLog.created_at <= end_date)

    count_result = await db.execute(select(func.count(ActivityLog.id)).where(*conditions))
    total = count_result.scalar() or 0

    result = await db.execute(
        select(ActivityLog, AdminUser.username, AdminUser.full_name)
        .outerjoin(AdminUser, AdminUser.id == ActivityLog.admin_id)
        .where(*conditions)
        .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
        .limit(limit)
        .offset(offset)
    )
    logs = [_to_response(log, username, full_name) for log, username, full_name in result.all()]

    return ActivityLogPage(
        logs=logs,
        pagination=LogPagination(total=total, limit=limit, offset=offset, has_more=offset + len(logs) < total),
    )


@router.get("/{log_id}", response_model=ActivityLogResponse)
async def get_activity_log(
    log_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(ActivityLog, AdminUser.username, AdminUser.full_name)
        .outerjoin(AdminUser, AdminUser.id == ActivityLog.admin_id)
        .where(ActivityLog.id == log_id)
    )
    row = result.first()
    if row is None:
        raise NotFoundError(f"Activity log {log_id} does not exist", error="Log entry not found")
    return _to_response(*row)
