"""In-app notification inbox."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_actor, get_db
from app.core.permissions import ActorContext
from app.schemas.notification import NotificationListResponse, NotificationResponse
from app.services.notification_service import notification_service

router = APIRouter()

Actor = Annotated[ActorContext, Depends(get_actor)]
Session = Annotated[AsyncSession, Depends(get_db)]


@router.get("/", response_model=NotificationListResponse)
async def list_notifications(
    actor: Actor,
    db: Session,
    unread_only: bool = Query(default=False),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
) -> NotificationListResponse:
    items, total, unread_count = await notification_service.inbox(
        db,
        actor.user_id,
        unread_only=unread_only,
        offset=(page - 1) * page_size,
        limit=page_size,
    )
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in items],
        total=total,
        unread_count=unread_count,
        page=page,
        page_size=page_size,
    )


@router.patch("/{notification_id}/read", status_code=status.HTTP_204_NO_CONTENT)
async def mark_notification_read(notification_id: UUID, actor: Actor, db: Session) -> None:
    await notification_service.mark_read(db, actor.user_id, notification_id)


@router.post("/read-all", status_code=status.HTTP_204_NO_CONTENT)
async def mark_all_read(actor: Actor, db: Session) -> None:
    await notification_service.mark_all_read(db, actor.user_id)
