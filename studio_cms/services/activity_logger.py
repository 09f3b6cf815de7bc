"""
Activity logging for admin actions.

Entries are written after the response, in their own database session, so a
logging failure can never fail or roll back the mutation that triggered it.
Log entries are append-only: nothing in the application updates or deletes them.
"""
from enum import Enum
from typing import Any, Optional
import logging

from fastapi import BackgroundTasks, Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from studio_cms.database import get_session_factory
from studio_cms.models import ActivityLog
from studio_cms.utils.jwt_auth import Actor

logger = logging.getLogger(__name__)


class ActionType(str, Enum):
    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILED = "login_failed"
    LOGOUT = "logout"
    CONTENT_CREATE = "content_create"
    CONTENT_UPDATE = "content_update"
    CONTENT_DELETE = "content_delete"
    CONTENT_REORDER = "content_reorder"
    USER_CREATE = "user_create"
    USER_UPDATE = "user_update"
    USER_DELETE = "user_delete"
    PROFILE_UPDATE = "profile_update"
    PASSWORD_CHANGE = "password_change"
    IMAGE_UPLOAD = "image_upload"
    IMAGE_UPDATE = "image_update"
    IMAGE_DELETE = "image_delete"
    REGION_CREATE = "region_create"
    REGION_UPDATE = "region_update"
    REGION_STATUS_UPDATE = "region_status_update"
    REGION_DELETE = "region_delete"


def get_client_ip(request: Optional[Request]) -> Optional[str]:
    """Client IP as reported by Cloudflare, a proxy, or the socket peer."""
    if request is None:
        return None
    headers = request.headers
    forwarded = headers.get("X-Forwarded-For")
    return (
        headers.get("CF-Connecting-IP")
        or headers.get("X-Real-IP")
        or (forwarded.split(",")[0].strip() if forwarded else None)
        or (request.client.host if request.client else None)
        or "unknown"
    )


def get_user_agent(request: Optional[Request]) -> Optional[str]:
    if request is None:
        return None
    return request.headers.get("User-Agent", "unknown")


class ActivityLogger:
    """Records admin actions for the audit trail (best-effort)."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        background_tasks: Optional[BackgroundTasks] = None,
        request: Optional[Request] = None,
    ):
        self.session_factory = session_factory
        self.background_tasks = background_tasks
        self.request = request

    def build_entry(
        self,
        action_type: ActionType,
        entity_type: Optional[str] = None,
        entity_id: Any = None,
        actor: Optional[Actor] = None,
        old_values: Any = None,
        new_values: Any = None,
        description: Optional[str] = None,
        actor_id: Optional[int] = None,
    ) -> dict:
        """
        Build a log entry row.

        Args:
            action_type: What happened
            entity_type: Kind of entity affected (slider_image, region, admin, ...)
            entity_id: Identifier of the affected entity, if any
            actor: Admin performing the action (None for failed logins)
            old_values: Snapshot before the change
            new_values: Snapshot after the change
            description: Human-readable summary
            actor_id: Admin id when no Actor exists yet (successful login)
        """
        return {
            "admin_id": actor.id if actor else actor_id,
            "action_type": ActionType(action_type).value,
            "entity_type": entity_type,
            "entity_id": str(entity_id) if entity_id is not None else None,
            "description": description,
            "old_values": old_values,
            "new_values": new_values,
            "ip_address": get_client_ip(self.request),
            "user_agent": get_user_agent(self.request),
        }

    def record(self, action_type: ActionType, entity_type: Optional[str] = None, **kwargs) -> None:
        """Schedule a log entry to be written after the response. Never raises."""
        entry = self.build_entry(action_type, entity_type, **kwargs)

        if self.background_tasks is not None:
            self.background_tasks.add_task(self.write, entry)
        else:
            logger.warning(f"No background task runner, dropping activity log entry {entry['action_type']}")

    async def record_now(self, action_type: ActionType, entity_type: Optional[str] = None, **kwargs) -> None:
        """
        Write a log entry immediately. Used before raising an error response,
        which drops the request's background tasks. Never raises.
        """
        await self.write(self.build_entry(action_type, entity_type, **kwargs))

    async def write(self, entry: dict) -> None:
        """Persist one entry in a dedicated session; failures are logged and dropped."""
        try:
            async with self.session_factory() as session:
                session.add(ActivityLog(**entry))
                await session.commit()
        except (SQLAlchemyError, OSError, TypeError, ValueError) as e:
            logger.error(f"Activity logging failed for {entry.get('action_type')}: {str(e)}", exc_info=True)


def get_activity_logger(
    request: Request,
    background_tasks: BackgroundTasks,
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> ActivityLogger:
    """FastAPI dependency building a request-bound activity logger."""
    return ActivityLogger(session_factory, background_tasks, request)


def describe_reorder(label: str, old_order: list[dict], new_order: list[dict]) -> str:
    """
    Summarize a reorder for the activity log.

    Args:
        label: Plural name of the collection ("client logos")
        old_order: [{id, name}] before the reorder
        new_order: [{id, name}] after the reorder
    """
    old_positions = {item["id"]: index + 1 for index, item in enumerate(old_order)}
    changes = [
        (item["name"], old_positions.get(item["id"]), index + 1)
        for index, item in enumerate(new_order)
        if old_positions.get(item["id"]) != index + 1
    ]

    if not changes:
        return f"Reordered {label} (no position changes)"
    if len(changes) == 1:
        name, start, end = changes[0]
        return f"{name} moved from position {start} to {end}"

    listed = ", ".join(f"{name} ({start}→{end})" for name, start, end in changes[:3])
    if len(changes) <= 3:
        return f"Reordered {label}: {listed}"
    return f"Reordered {label}: {listed}, and {len(changes) - 3} more changes"
