"""
Live notification fan-out.

Keeps every open connection per user, sharded by user id so connection churn
for one user does not contend with deliveries to another. Delivery is best
effort: users with no open connection get nothing, and a connection that
fails a send is dropped without affecting the others.
"""
import asyncio
import logging
import zlib
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

import config

logger = logging.getLogger(__name__)

AUTH_REQUIRED_CLOSE_CODE = 4001


class LiveConnection:
    """One open socket. `websocket` needs async send_json() and close()."""

    def __init__(self, websocket: Any):
        self.websocket = websocket
        self.user_id: Optional[str] = None
        self.is_alive = True

    async def send(self, message: Dict[str, Any]) -> None:
        await self.websocket.send_json(message)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        try:
            await self.websocket.close(code=code, reason=reason)
        except Exception as exc:  # already closed by the peer
            logger.debug("Close failed: %s", exc)


class NotificationService:
    def __init__(
        self,
        shards: int = config.WS_SHARDS,
        heartbeat_seconds: float = config.WS_HEARTBEAT_SECONDS,
        auth_grace_seconds: float = config.WS_AUTH_GRACE_SECONDS,
    ):
        self._shards: List[Tuple[asyncio.Lock, Dict[str, Set[LiveConnection]]]] = [
            (asyncio.Lock(), {}) for _ in range(max(1, shards))
        ]
        self._connections: Set[LiveConnection] = set()
        self._pending_auth: Dict[LiveConnection, asyncio.Task] = {}
        self._heartbeat_task: Optional[asyncio.Task] = None
        self.heartbeat_seconds = heartbeat_seconds
        self.auth_grace_seconds = auth_grace_seconds

    def _shard(self, user_id: str) -> Tuple[asyncio.Lock, Dict[str, Set[LiveConnection]]]:
        return self._shards[zlib.crc32(user_id.encode("utf-8")) % len(self._shards)]

    # ---------- connection lifecycle ----------

    async def connect(self, websocket: Any, user_id: Optional[str] = None) -> LiveConnection:
        conn = LiveConnection(websocket)
        self._connections.add(conn)
        if user_id:
            await self.register(conn, user_id)
        else:
            logger.info("Connection without session, waiting for auth message")
            self._pending_auth[conn] = asyncio.create_task(self._expire_unauthenticated(conn))
        return conn

    async def register(self, conn: LiveConnection, user_id: str) -> bool:
        if conn.user_id:
            return False
        conn.user_id = user_id
        lock, clients = self._shard(user_id)
        async with lock:
            clients.setdefault(user_id, set()).add(conn)
        pending = self._pending_auth.pop(conn, None)
        if pending:
            pending.cancel()
        logger.info("Client authenticated for user %s", user_id)
        await self._safe_send(conn, {
            "type": "notification",
            "payload": {"status": "connected", "message": "Successfully connected to notification service"},
        })
        return True

    async def disconnect(self, conn: LiveConnection) -> None:
        self._connections.discard(conn)
        pending = self._pending_auth.pop(conn, None)
        if pending and pending is not asyncio.current_task():
            pending.cancel()
        if conn.user_id:
            lock, clients = self._shard(conn.user_id)
            async with lock:
                user_clients = clients.get(conn.user_id)
                if user_clients is not None:
                    user_clients.discard(conn)
                    if not user_clients:
                        del clients[conn.user_id]

    async def _expire_unauthenticated(self, conn: LiveConnection) -> None:
        await asyncio.sleep(self.auth_grace_seconds)
        if not conn.user_id:
            logger.info("Auth timeout, closing connection")
            await self.disconnect(conn)
            await conn.close(AUTH_REQUIRED_CLOSE_CODE, "Authentication required")

    async def handle_message(self, conn: LiveConnection, message: Dict[str, Any]) -> None:
        conn.is_alive = True
        kind = message.get("type") if isinstance(message, dict) else None
        if kind == "ping":
            await self._safe_send(conn, {"type": "pong"})
        elif kind == "auth":
            if conn.user_id:
                await self._safe_send(conn, {
                    "type": "notification",
                    "payload": {"status": "already_authenticated", "userId": conn.user_id},
                })
                return
            payload = message.get("payload") or {}
            user_id = (payload.get("userId") or payload.get("user_id")) if isinstance(payload, dict) else None
            if user_id:
                await self.register(conn, str(user_id))
            else:
                await self._safe_send(conn, {
                    "type": "notification",
                    "payload": {"status": "auth_failed", "message": "userId is required"},
                })

    # ---------- delivery ----------

    async def _safe_send(self, conn: LiveConnection, message: Dict[str, Any]) -> bool:
        try:
            await conn.send(message)
            return True
        except Exception as exc:
            logger.warning("Dropping connection for user %s after failed send: %s", conn.user_id, exc)
            await self.disconnect(conn)
            return False

    async def _user_connections(self, user_id: str) -> List[LiveConnection]:
        lock, clients = self._shard(user_id)
        async with lock:
            return list(clients.get(user_id, ()))

    async def send_notification(self, user_id: str, notification: Dict[str, Any]) -> int:
        """Deliver to every open connection of the user; returns how many got it."""
        targets = await self._user_connections(user_id)
        if not targets:
            logger.debug("No active connections for user %s", user_id)
            return 0
        message = {"type": "notification", "payload": notification}
        sent = await asyncio.gather(*(self._safe_send(c, message) for c in targets))
        return sum(sent)

    async def broadcast_deal_update(self, user_ids: Iterable[str], deal_id: str, update: Dict[str, Any]) -> int:
        message = {"type": "deal_update", "payload": {"dealId": deal_id, **update}}
        delivered = 0
        for user_id in user_ids:
            for conn in await self._user_connections(user_id):
                delivered += await self._safe_send(conn, message)
        return delivered

    # ---------- introspection ----------

    def connected_users(self) -> List[str]:
        return sorted(user for _, clients in self._shards for user in clients)

    def connection_count(self) -> int:
        return sum(len(conns) for _, clients in self._shards for conns in clients.values())

    # ---------- heartbeat ----------

    async def sweep(self) -> int:
        """Drop connections that missed the last probe, then probe the rest."""
        dropped = 0
        for conn in list(self._connections):
            if not conn.is_alive:
                await self.disconnect(conn)
                await conn.close(1001, "Heartbeat timeout")
                dropped += 1
                continue
            conn.is_alive = False
            await self._safe_send(conn, {"type": "ping"})
        return dropped

    async def _heartbeat(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_seconds)
            try:
                dropped = await self.sweep()
            except Exception:
                logger.exception("Heartbeat sweep failed")
                continue
            if dropped:
                logger.info("Heartbeat dropped %d dead connections", dropped)

    def start(self) -> None:
        if self._heartbeat_task is None or self._heartbeat_task.done():
            self._heartbeat_task = asyncio.create_task(self._heartbeat())
            logger.info("Notification service started")

    async def shutdown(self) -> None:
        if self._heartbeat_task:
            self._heartbeat_task.cancel()
            self._heartbeat_task = None
        for task in self._pending_auth.values():
            task.cancel()
        self._pending_auth.clear()
        for conn in list(self._connections):
            await self.disconnect(conn)
            await conn.close(1001, "Server shutting down")
        logger.info("Notification service shut down")
