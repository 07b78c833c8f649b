"""
Realtime Fan-out - room based websocket publish/subscribe

Rooms:
    all             every authenticated connection
    role:<role>     connections of users with that role
    user:<id>       connections of one user

Delivery is best effort and at-most-once. emit() only schedules the send on
the server event loop, so a slow or dead client never blocks the write that
triggered the event. Worker threads (the alert sweep) hand their events to
that loop thread-safely.
"""
import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, Optional, Set

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)

ALL_ROOM = "all"
SEND_TIMEOUT_SECONDS = 5


def user_room(user_id) -> str:
    return f"user:{user_id}"


def role_room(role: str) -> str:
    return f"role:{role}"


class ConnectionManager:
    """Tracks websocket connections per room"""

    def __init__(self):
        self.rooms: Dict[str, Set[WebSocket]] = defaultdict(set)
        self._pending: Set[asyncio.Task] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    async def connect(self, websocket: WebSocket, rooms: Iterable[str]):
        self._loop = asyncio.get_running_loop()
        await websocket.accept()
        for room in rooms:
            self.join(websocket, room)

    def join(self, websocket: WebSocket, room: str):
        self.rooms[room].add(websocket)

    def leave(self, websocket: WebSocket, room: str):
        members = self.rooms.get(room)
        if members is None:
            return
        members.discard(websocket)
        if not members:
            del self.rooms[room]

    def disconnect(self, websocket: WebSocket):
        for room in list(self.rooms):
            self.leave(websocket, room)

    def connection_count(self) -> int:
        sockets = set()
        for members in self.rooms.values():
            sockets.update(members)
        return len(sockets)

    async def publish(self, event: str, data: Any, rooms: Iterable[str]):
        """Send one event to every socket in any of the rooms (each socket once)"""
        targets: Set[WebSocket] = set()
        for room in rooms:
            targets.update(self.rooms.get(room, ()))
        if not targets:
            return

        message = {"event": event, "data": data}
        dead = []
        for websocket in targets:
            try:
                await asyncio.wait_for(websocket.send_json(message), SEND_TIMEOUT_SECONDS)
            except Exception as e:
                logger.warning(f"Dropping websocket after failed send of {event}: {e}")
                dead.append(websocket)
        for websocket in dead:
            self.disconnect(websocket)

    def emit(self, event: str, payload: Any, rooms: Iterable[str] = (ALL_ROOM,)):
        """
        Fire-and-forget publish.

        The payload is encoded immediately so ORM objects can be passed in
        before their session closes. Off the loop thread the send is handed
        to the loop sockets were accepted on; with no live loop at all
        (scripts, unit tests calling services directly) the event is dropped.
        """
        data = jsonable_encoder(payload)
        rooms = list(rooms)
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            loop = self._loop
            if loop is None or loop.is_closed() or not loop.is_running():
                logger.debug(f"No event loop, skipping {event}")
                return
            loop.call_soon_threadsafe(self._schedule, event, data, rooms)
            return

        self._schedule(event, data, rooms)

    def _schedule(self, event: str, data: Any, rooms: list):
        task = asyncio.get_running_loop().create_task(self.publish(event, data, rooms))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)


manager = ConnectionManager()
