"""
Websocket endpoint - realtime events for the UI
"""
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Query
from typing import Optional
import json
import logging

from app.core import SessionLocal
from app.core.permissions import UserRole
from app.api.auth import get_user_from_token
from app.services.realtime import manager, ALL_ROOM, role_room, user_room

logger = logging.getLogger(__name__)

ws_router = APIRouter(tags=["realtime"])

DISPATCH_ROLES = (UserRole.ADMIN.value, UserRole.WAREHOUSE.value)


def allowed_rooms(user) -> set:
    """Rooms a user may subscribe to; admins may watch any role room"""
    rooms = {ALL_ROOM, user_room(user.id), role_room(user.role)}
    if user.role == UserRole.ADMIN.value:
        rooms.update(role_room(r.value) for r in UserRole)
    return rooms


@ws_router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: Optional[str] = Query(None)):
    db = SessionLocal()
    try:
        user = get_user_from_token(db, token)
        if user is not None:
            db.expunge(user)
    finally:
        db.close()

    if user is None or not user.is_active:
        await websocket.close(code=1008)
        return

    await manager.connect(websocket, [ALL_ROOM, user_room(user.id), role_room(user.role)])
    logger.info(f"Websocket connected: {user.username} ({user.role})")
    permitted = allowed_rooms(user)

    try:
        while True:
            try:
                message = json.loads(await websocket.receive_text())
            except ValueError:
                continue
            if not isinstance(message, dict):
                continue
            event = message.get("event")
            data = message.get("data")
            if not isinstance(data, dict):
                data = {}

            if event == "joinRoom":
                room = data.get("room")
                if room in permitted:
                    manager.join(websocket, room)
                else:
                    await websocket.send_json({"event": "error", "data": {"message": f"Cannot join {room}"}})
            elif event == "leaveRoom":
                manager.leave(websocket, data.get("room"))
            elif event == "updateDriverLocation":
                if user.role != UserRole.DRIVER.value:
                    continue
                manager.emit(
                    "driverLocationUpdate",
                    {
                        "driverId": str(user.id),
                        "movementId": data.get("movementId"),
                        "lat": data.get("lat"),
                        "lng": data.get("lng"),
                    },
                    [role_room(r) for r in DISPATCH_ROLES],
                )
            else:
                logger.debug(f"Ignoring websocket event {event}")
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(websocket)
        logger.info(f"Websocket disconnected: {user.username}")
