from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Dict, List, Optional, Set

from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect, WebSocketState
from sqlalchemy.orm import Session

from ..core.errors import NotFoundError, NotificationPermissionDenied, ValidationError
from ..constants import NOTIFICATION_TYPES
from ..models.models import Notification, Profile, utcnow
from ..schemas.schemas import NotificationRead

logger = logging.getLogger(__name__)


class NotificationCenter:
    def __init__(self) -> None:
        self._connections: Dict[int, Set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def configure_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        logger.debug("NotificationCenter bound to event loop %s", loop)

    async def connect(self, user_id: int, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._connections[user_id].add(websocket)
        logger.debug("WebSocket connected for user %s (total=%s)", user_id, len(self._connections[user_id]))

    async def disconnect(self, user_id: int, websocket: WebSocket) -> None:
        async with self._lock:
            connections = self._connections.get(user_id)
            if connections and websocket in connections:
                connections.remove(websocket)
            if connections is not None and len(connections) == 0:
                self._connections.pop(user_id, None)
        logger.debug("WebSocket disconnected for user %s", user_id)

    async def _send_to_user(self, user_id: int, payload: dict) -> None:
        async with self._lock:
            connections = list(self._connections.get(user_id, set()))
        for websocket in connections:
            if websocket.application_state != WebSocketState.CONNECTED:
                continue
            try:
                await websocket.send_json(payload)
            except RuntimeError:
                # Connection closed between selection and send
                continue

    def _ensure_loop(self) -> Optional[asyncio.AbstractEventLoop]:
        if not self._loop or self._loop.is_closed():
            logger.debug("NotificationCenter loop not configured; skipping push.")
            return None
        return self._loop

    def _push(self, user_id: int, payload: dict) -> None:
        loop = self._ensure_loop()
        if not loop:
            return
        asyncio.run_coroutine_threadsafe(self._send_to_user(user_id, payload), loop)

    def dispatch_created(self, notification: Notification) -> None:
        self._push(
            notification.user_id,
            {"type": "notification.created", "notification": serialize_notification(notification)},
        )

    def dispatch_read(self, user_id: int, notification_ids: List[int]) -> None:
        if not notification_ids:
            return
        self._push(user_id, {"type": "notification.read", "ids": notification_ids})

    def dispatch_deleted(self, user_id: int, notification_id: int) -> None:
        self._push(user_id, {"type": "notification.deleted", "id": notification_id})

    async def shutdown(self) -> None:
        async with self._lock:
            connections = list(self._connections.items())
            self._connections.clear()
        for user_id, websockets in connections:
            for websocket in websockets:
                if websocket.application_state == WebSocketState.CONNECTED:
                    try:
                        await websocket.close()
                    except RuntimeError:
                        logger.debug("WebSocket for user %s already closed", user_id)


notification_center = NotificationCenter()


def serialize_notification(notification: Notification) -> dict:
    return NotificationRead.model_validate(notification).model_dump(mode="json")


def send_notification(
    session: Session,
    *,
    actor_id: Optional[int],
    user_id: int,
    title: str,
    message: str,
    type: str = "general",
    permit_id: Optional[int] = None,
    gcash_qr_code_url: Optional[str] = None,
) -> Notification:
    """Create a notification for ``user_id`` on behalf of ``actor_id``.

    The acting profile must exist and be active; otherwise the call is refused
    with ``NotificationPermissionDenied`` and nothing is written.
    """
    actor = session.get(Profile, actor_id) if actor_id is not None else None
    if actor is None or not actor.is_active:
        raise NotificationPermissionDenied(
            "Permission denied: Unable to send notification. "
            "Please ensure you are logged in and have the necessary permissions."
        )
    if type not in NOTIFICATION_TYPES:
        raise ValidationError(f"Unknown notification type '{type}'.", field="type")

    notification = Notification(
        user_id=user_id,
        permit_id=permit_id,
        title=title,
        message=message,
        type=type,
        is_read=False,
        gcash_qr_code_url=gcash_qr_code_url,
        created_at=utcnow(),
    )
    session.add(notification)
    session.commit()
    session.refresh(notification)
    logger.info("Notification %s (%s) sent to user %s by %s", notification.id, type, user_id, actor_id)

    notification_center.dispatch_created(notification)
    return notification


def list_for_user(session: Session, user_id: int, unread_only: bool = False, limit: int = 50) -> List[Notification]:
    query = (
        session.query(Notification)
        .filter(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
    )
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    return query.limit(limit).all()


def unread_count(session: Session, user_id: int) -> int:
    return (
        session.query(Notification)
        .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
        .count()
    )


def _get_owned(session: Session, user_id: int, notification_id: int) -> Notification:
    notification = (
        session.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
        .first()
    )
    if not notification:
        raise NotFoundError("Notification not found.")
    return notification


def mark_read(session: Session, user_id: int, notification_id: int) -> Notification:
    notification = _get_owned(session, user_id, notification_id)
    if not notification.is_read:
        notification.is_read = True
        session.add(notification)
        session.commit()
        session.refresh(notification)
        notification_center.dispatch_read(user_id, [notification.id])
    return notification


def mark_all_read(session: Session, user_id: int) -> int:
    unread = (
        session.query(Notification)
        .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
        .all()
    )
    if not unread:
        return 0
    for notification in unread:
        notification.is_read = True
        session.add(notification)
    session.commit()
    notification_center.dispatch_read(user_id, [item.id for item in unread])
    return len(unread)


def delete_notification(session: Session, user_id: int, notification_id: int) -> None:
    notification = _get_owned(session, user_id, notification_id)
    session.delete(notification)
    session.commit()
    notification_center.dispatch_deleted(user_id, notification_id)


async def notification_websocket_handler(user_id: int, websocket: WebSocket) -> None:
    await notification_center.connect(user_id, websocket)
    try:
        # Send a small acknowledgement payload so clients know the socket is ready.
        await websocket.send_json({"type": "notification.connected"})
        while True:
            try:
                await websocket.receive_text()
            except WebSocketDisconnect:
                break
    finally:
        await notification_center.disconnect(user_id, websocket)
