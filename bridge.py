"""
Smart Card Bridge - WebSocket Server Implementation
===================================================
Pushes Thai ID card events to web applications over WebSocket.

Admission runs during the HTTP handshake, before the upgrade:
- Origin allow-list (403)
- Per-source request and connection rate limits (429)
- API key header (401)

Accepted clients receive every broadcast message:
    {"mode": "readsmartcard", "Citizenid": ..., ...}
    {"mode": "removedsmartcard"}
"""

import asyncio
import json
import logging
import time
from http import HTTPStatus
from typing import Optional, Set

import websockets
from websockets.exceptions import ConnectionClosed

from security.audit import AuditLogger, AuditSeverity
from security.auth import ApiKeyAuthenticator
from security.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

SUBSCRIBER_QUEUE_SIZE = 100
CLOSE_TRY_AGAIN_LATER = 1013


class Subscription:
    """One subscriber's bounded message queue. None marks a dropped subscriber"""

    def __init__(self, maxsize: int = SUBSCRIBER_QUEUE_SIZE):
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.dropped = False

    def offer(self, message: str) -> bool:
        try:
            self.queue.put_nowait(message)
            return True
        except asyncio.QueueFull:
            return False

    def drop(self):
        self.dropped = True
        while not self.queue.empty():
            self.queue.get_nowait()
        self.queue.put_nowait(None)

    async def get(self) -> Optional[str]:
        return await self.queue.get()


class EventHub:
    """Fan-out to every subscriber. Publishing never blocks"""

    def __init__(self, queue_size: int = SUBSCRIBER_QUEUE_SIZE):
        self.queue_size = queue_size
        self.subscribers: Set[Subscription] = set()

    def __len__(self):
        return len(self.subscribers)

    def subscribe(self) -> Subscription:
        subscription = Subscription(self.queue_size)
        self.subscribers.add(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription):
        self.subscribers.discard(subscription)

    def publish(self, message: str) -> int:
        """Queue `message` for every subscriber; full subscribers are dropped"""
        if not self.subscribers:
            logger.debug("No WebSocket clients connected")
            return 0
        delivered = 0
        for subscription in list(self.subscribers):
            if subscription.offer(message):
                delivered += 1
            else:
                logger.warning("Subscriber queue full, dropping slow client")
                self.subscribers.discard(subscription)
                subscription.drop()
        return delivered


def client_address(connection) -> str:
    remote = getattr(connection, "remote_address", None)
    if not remote:
        return "unknown"
    return str(remote[0])


class CardBridge:
    """WebSocket server in front of the EventHub"""

    VERSION = "1.0.0"

    def __init__(self, server_config, security_config, hub: EventHub, audit: AuditLogger,
                 rate_limiter: Optional[RateLimiter] = None,
                 authenticator: Optional[ApiKeyAuthenticator] = None):
        self.server_config = server_config
        self.security = security_config
        self.hub = hub
        self.audit = audit
        self.rate_limiter = rate_limiter if security_config.enable_rate_limiting else None
        self.authenticator = authenticator if security_config.enable_authentication else None
        # Connections holding a rate limiter slot
        self._reserved: Set = set()

    # -------------------------------------------------------------------------
    # Admission
    # -------------------------------------------------------------------------

    def _release_slot(self, connection):
        if connection in self._reserved:
            self._reserved.discard(connection)
            self.rate_limiter.release_connection(client_address(connection))

    def _origin_allowed(self, origin: Optional[str]) -> bool:
        if self.server_config.cors_allow_all or origin is None:
            return True
        return origin in self.server_config.allowed_origins

    def process_request(self, connection, request):
        """Handshake hook: return a response to reject, None to accept"""
        address = client_address(connection)

        origin = request.headers.get("Origin")
        if not self._origin_allowed(origin):
            logger.warning(f"Rejected origin {origin} from {address}")
            self.audit.log_security_error(
                f"Origin not allowed: {origin}", address,
                action="origin_rejected", severity=AuditSeverity.WARNING,
            )
            return connection.respond(HTTPStatus.FORBIDDEN, "Forbidden\n")

        if self.rate_limiter is not None:
            if not self.rate_limiter.check_request(address):
                self.audit.log_rate_limit(address, "Request")
                return connection.respond(HTTPStatus.TOO_MANY_REQUESTS, "Too Many Requests\n")
            if not self.rate_limiter.check_connection(address):
                self.audit.log_rate_limit(address, "Connection")
                return connection.respond(HTTPStatus.TOO_MANY_REQUESTS, "Too Many Connections\n")
            self._reserved.add(connection)

        if self.authenticator is not None:
            ok, detail = self.authenticator.authenticate_headers(request.headers)
            if not ok:
                logger.warning(f"Authentication failed from {address}: {detail}")
                self.audit.log_auth_failure(address, detail)
                self._release_slot(connection)
                return connection.respond(HTTPStatus.UNAUTHORIZED, "Unauthorized\n")
            self.audit.log_auth_success(address, detail)

        return None

    def process_response(self, connection, request, response):
        """Free the reserved slot when the handshake did not upgrade"""
        if response is not None and response.status_code != HTTPStatus.SWITCHING_PROTOCOLS:
            self._release_slot(connection)
        return None

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    async def _send_loop(self, websocket, subscription: Subscription):
        while True:
            message = await subscription.get()
            if message is None:
                await websocket.close(CLOSE_TRY_AGAIN_LATER, "Subscriber too slow")
                return
            await websocket.send(message)

    async def _receive_loop(self, websocket):
        """Answer pings; everything else from clients is ignored"""
        async for message in websocket:
            try:
                data = json.loads(message)
            except (json.JSONDecodeError, TypeError):
                logger.debug("Ignoring non-JSON client message")
                continue
            if isinstance(data, dict) and data.get("type") == "ping":
                await websocket.send(json.dumps({"type": "pong", "version": self.VERSION}))

    async def handler(self, websocket):
        """Handle WebSocket connection"""
        address = client_address(websocket)
        started = time.monotonic()
        subscription = self.hub.subscribe()
        self.audit.log_connection_open(address)
        logger.info(f"Client connected from {address}. Total: {len(self.hub)}")

        tasks = {
            asyncio.create_task(self._send_loop(websocket, subscription)),
            asyncio.create_task(self._receive_loop(websocket)),
        }
        try:
            done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            for task in pending:
                task.cancel()
            for task in done:
                error = task.exception()
                if error is not None and not isinstance(error, ConnectionClosed):
                    logger.error(f"Client session error: {error}")
        finally:
            for task in tasks:
                task.cancel()
            self.hub.unsubscribe(subscription)
            self._release_slot(websocket)
            duration_ms = int((time.monotonic() - started) * 1000)
            self.audit.log_connection_close(address, duration_ms)
            logger.info(f"Client disconnected. Total: {len(self.hub)}")

    async def cleanup_loop(self, interval_secs: float, threshold_secs: float):
        """Periodically forget idle rate limiter state"""
        if self.rate_limiter is None:
            return
        while True:
            await asyncio.sleep(interval_secs)
            self.rate_limiter.cleanup(threshold_secs)
            stats = self.rate_limiter.get_stats()
            logger.debug(
                f"Rate limiter stats: {stats.tracked_sources} tracked sources, "
                f"{stats.total_active_connections} active connections"
            )

    def serve(self, ssl_context=None):
        """websockets server; use as `async with bridge.serve():` or await it"""
        return websockets.serve(
            self.handler,
            self.server_config.host,
            self.server_config.port,
            process_request=self.process_request,
            process_response=self.process_response,
            ssl=ssl_context,
        )
