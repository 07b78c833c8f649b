import asyncio

from app.services.realtime import ALL_ROOM, ConnectionManager, role_room, user_room


class FakeWebSocket:
    def __init__(self, fail=False):
        self.accepted = False
        self.sent = []
        self.fail = fail

    async def accept(self):
        self.accepted = True

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("connection closed")
        self.sent.append(message)


async def drain(manager):
    while manager._pending:
        await asyncio.gather(*list(manager._pending))


def test_emit_routes_by_room():
    manager = ConnectionManager()
    admin, driver, pharmacist = FakeWebSocket(), FakeWebSocket(), FakeWebSocket()

    async def scenario():
        await manager.connect(admin, [ALL_ROOM, role_room("admin"), user_room("a1")])
        await manager.connect(driver, [ALL_ROOM, role_room("driver"), user_room("d1")])
        await manager.connect(pharmacist, [ALL_ROOM, role_room("pharmacist")])

        manager.emit("movementAssigned", {"id": "m1"}, [user_room("d1")])
        manager.emit("newAlert", {"id": "x"}, [role_room("admin"), role_room("pharmacist")])
        manager.emit("drugDeleted", {"id": "d"})
        await drain(manager)

    asyncio.run(scenario())

    assert admin.accepted
    assert sorted(m["event"] for m in admin.sent) == ["drugDeleted", "newAlert"]
    assert sorted(m["event"] for m in driver.sent) == ["drugDeleted", "movementAssigned"]
    assert sorted(m["event"] for m in pharmacist.sent) == ["drugDeleted", "newAlert"]
    assert {"event": "movementAssigned", "data": {"id": "m1"}} in driver.sent


def test_socket_in_several_rooms_gets_one_copy():
    manager = ConnectionManager()
    socket = FakeWebSocket()

    async def scenario():
        await manager.connect(socket, [ALL_ROOM, role_room("admin")])
        manager.emit("newAlert", {}, [ALL_ROOM, role_room("admin")])
        await drain(manager)

    asyncio.run(scenario())
    assert len(socket.sent) == 1


def test_failed_send_drops_the_socket():
    manager = ConnectionManager()
    dead, alive = FakeWebSocket(fail=True), FakeWebSocket()

    async def scenario():
        await manager.connect(dead, [ALL_ROOM])
        await manager.connect(alive, [ALL_ROOM])
        manager.emit("drugCreated", {"id": 1})
        await drain(manager)

    asyncio.run(scenario())

    assert len(alive.sent) == 1
    assert manager.connection_count() == 1


def test_emit_without_event_loop_is_dropped():
    manager = ConnectionManager()
    manager.emit("drugCreated", {"id": 1})
    assert not manager._pending


def test_leave_and_disconnect():
    manager = ConnectionManager()
    socket = FakeWebSocket()

    async def scenario():
        await manager.connect(socket, [ALL_ROOM, user_room("u1")])
        manager.leave(socket, ALL_ROOM)
        manager.emit("drugCreated", {})
        manager.emit("movementAssigned", {}, [user_room("u1")])
        await drain(manager)
        manager.disconnect(socket)

    asyncio.run(scenario())

    assert [m["event"] for m in socket.sent] == ["movementAssigned"]
    assert manager.rooms == {}
    assert manager.connection_count() == 0
