import asyncio

from helpers import FakeSocket
from notifications import AUTH_REQUIRED_CLOSE_CODE, NotificationService


def _payload_types(socket):
    return [m["type"] for m in socket.sent]


def test_fan_out_reaches_every_connection_of_the_user():
    async def scenario():
        service = NotificationService(shards=4)
        tab1, tab2, other = FakeSocket(), FakeSocket(), FakeSocket()
        await service.connect(tab1, "u1")
        await service.connect(tab2, "u1")
        await service.connect(other, "u2")
        delivered = await service.send_notification("u1", {"title": "Matching Complete!"})
        return service, tab1, tab2, other, delivered

    service, tab1, tab2, other, delivered = asyncio.run(scenario())
    assert delivered == 2
    for socket in (tab1, tab2):
        assert socket.sent[0]["payload"]["status"] == "connected"
        assert socket.sent[-1] == {"type": "notification", "payload": {"title": "Matching Complete!"}}
    assert len(other.sent) == 1
    assert service.connection_count() == 3
    assert service.connected_users() == ["u1", "u2"]


def test_user_without_connections_is_a_no_op():
    assert asyncio.run(NotificationService().send_notification("nobody", {"title": "x"})) == 0


def test_failed_connection_is_dropped_without_affecting_others():
    async def scenario():
        service = NotificationService()
        good = FakeSocket()
        await service.connect(good, "u1")
        bad_conn = await service.connect(FakeSocket(), "u1")
        bad_conn.websocket.fail = True
        delivered = await service.send_notification("u1", {"title": "hello"})
        return service, good, delivered

    service, good, delivered = asyncio.run(scenario())
    assert delivered == 1
    assert good.sent[-1]["payload"] == {"title": "hello"}
    assert service.connection_count() == 1


def test_auth_message_binds_connection_after_handshake():
    async def scenario():
        service = NotificationService(auth_grace_seconds=5)
        socket = FakeSocket()
        conn = await service.connect(socket)
        before = service.connection_count()
        await service.handle_message(conn, {"type": "auth", "payload": {"userId": "u7"}})
        await service.handle_message(conn, {"type": "auth", "payload": {"userId": "someone-else"}})
        await service.send_notification("u7", {"title": "hi"})
        await service.shutdown()
        return before, conn, socket

    before, conn, socket = asyncio.run(scenario())
    assert before == 0
    assert conn.user_id == "u7"
    payloads = [m["payload"] for m in socket.sent if m["type"] == "notification"]
    assert payloads[0]["status"] == "connected"
    assert payloads[1] == {"status": "already_authenticated", "userId": "u7"}
    assert payloads[2] == {"title": "hi"}


def test_auth_without_user_id_is_rejected():
    async def scenario():
        service = NotificationService(auth_grace_seconds=5)
        socket = FakeSocket()
        conn = await service.connect(socket)
        await service.handle_message(conn, {"type": "auth", "payload": {}})
        await service.shutdown()
        return conn, socket

    conn, socket = asyncio.run(scenario())
    assert conn.user_id is None
    assert socket.sent[0]["payload"]["status"] == "auth_failed"


def test_unauthenticated_connection_is_closed_after_grace_period():
    async def scenario():
        service = NotificationService(auth_grace_seconds=0.01)
        socket = FakeSocket()
        await service.connect(socket)
        await asyncio.sleep(0.05)
        return socket

    socket = asyncio.run(scenario())
    assert socket.closed == (AUTH_REQUIRED_CLOSE_CODE, "Authentication required")


def test_ping_gets_pong():
    async def scenario():
        service = NotificationService()
        socket = FakeSocket()
        conn = await service.connect(socket, "u1")
        await service.handle_message(conn, {"type": "ping"})
        return socket

    assert asyncio.run(scenario()).sent[-1] == {"type": "pong"}


def test_heartbeat_drops_silent_connections_and_keeps_responsive_ones():
    async def scenario():
        service = NotificationService()
        silent, chatty = FakeSocket(), FakeSocket()
        await service.connect(silent, "u1")
        chatty_conn = await service.connect(chatty, "u2")

        first = await service.sweep()
        await service.handle_message(chatty_conn, {"type": "pong"})
        second = await service.sweep()
        return service, silent, chatty, first, second

    service, silent, chatty, first, second = asyncio.run(scenario())
    assert (first, second) == (0, 1)
    assert silent.closed is not None
    assert chatty.closed is None
    assert _payload_types(chatty).count("ping") == 2
    assert service.connected_users() == ["u2"]


def test_deal_update_broadcast():
    async def scenario():
        service = NotificationService()
        a, b = FakeSocket(), FakeSocket()
        await service.connect(a, "u1")
        await service.connect(b, "u2")
        delivered = await service.broadcast_deal_update(["u1", "u2", "u3"], "deal-9", {"stage": "term_sheet"})
        return a, delivered

    a, delivered = asyncio.run(scenario())
    assert delivered == 2
    assert a.sent[-1] == {"type": "deal_update", "payload": {"dealId": "deal-9", "stage": "term_sheet"}}


def test_disconnect_cleans_up_empty_users():
    async def scenario():
        service = NotificationService(shards=2)
        conn = await service.connect(FakeSocket(), "u1")
        await service.disconnect(conn)
        await service.disconnect(conn)
        return service

    service = asyncio.run(scenario())
    assert service.connected_users() == []
    assert service.connection_count() == 0
