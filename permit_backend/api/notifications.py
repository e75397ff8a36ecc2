from typing import List, Optional

from fastapi import APIRouter, Depends, Query, WebSocket, status
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..auth.jwt import get_current_user, resolve_profile
from ..models.models import Notification, Profile
from ..schemas.schemas import NotificationRead, UnreadCount
from ..services import notifications as notification_service

router = APIRouter()


@router.get("/", response_model=List[NotificationRead])
def list_notifications(
    limit: int = Query(50, ge=1, le=200),
    unread_only: bool = Query(False),
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user),
) -> List[Notification]:
    return notification_service.list_for_user(db, current_user.id, unread_only=unread_only, limit=limit)


@router.get("/unread-count", response_model=UnreadCount)
def unread_count(
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user),
) -> UnreadCount:
    return UnreadCount(count=notification_service.unread_count(db, current_user.id))


@router.post("/{notification_id}/read", response_model=NotificationRead)
def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user),
) -> Notification:
    return notification_service.mark_read(db, current_user.id, notification_id)


@router.post("/read-all", response_model=dict)
def mark_all_notifications_read(
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user),
) -> dict:
    return {"updated": notification_service.mark_all_read(db, current_user.id)}


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user),
) -> None:
    notification_service.delete_notification(db, current_user.id, notification_id)


@router.websocket("/ws")
async def websocket_notifications(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    db: Session = Depends(get_db),
) -> None:
    if not token:
        await websocket.close(code=4401)
        return
    profile = resolve_profile(db, token)
    if profile is None:
        await websocket.close(code=4401)
        return
    await notification_service.notification_websocket_handler(profile.id, websocket)
