"""WebSocket entry point for the chat hub.

Admission happens during the HTTP upgrade: the room id comes from the
request path, the user's identity from headers set by the authenticating
proxy in front of this service, and room membership is checked once with
the membership authority. Only admitted connections reach the hub.
"""
from __future__ import annotations

import http
import re
import uuid
from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import urlsplit

import structlog
from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.frames import CloseCode
from websockets.http11 import Request, Response

from application.ports.realtime import MembershipPort, MessageStorePort
from core.config import RealtimeSettings
from core.logging_config import get_logger
from infrastructure.realtime.client import Client
from infrastructure.realtime.hub import Hub
from infrastructure.realtime.transport import WebSocketTransport


logger = get_logger(__name__)


@dataclass(frozen=True)
class Admission:
    room_id: int
    user_id: int
    username: str


class ChatWebSocketServer:
    """Accept chat connections and hand them to the hub."""

    def __init__(
        self,
        hub: Hub,
        *,
        message_store: MessageStorePort,
        membership: MembershipPort,
        options: Optional[RealtimeSettings] = None,
    ) -> None:
        self.hub = hub
        self.options = options or RealtimeSettings()
        self._message_store = message_store
        self._membership = membership
        self._path = re.compile("^" + re.escape(self.options.path_prefix) + r"(?P<room>[^/]+)$")
        self._admitted: Dict[ServerConnection, Admission] = {}
        self._server: Optional[Server] = None

    async def start(self) -> None:
        if self._server is not None:
            return
        self._server = await serve(
            self._handle_connection,
            self.options.host,
            self.options.port,
            process_request=self._process_request,
            max_size=self.options.max_message_size,
            # Keepalive is driven by each client's write pump
            ping_interval=None,
            ping_timeout=None,
        )
        logger.info("ws_server_started", host=self.options.host, port=self.port)

    async def stop(self) -> None:
        server, self._server = self._server, None
        if server is None:
            return
        # Connections close with 1001; their pumps unregister from the hub
        server.close()
        await server.wait_closed()
        logger.info("ws_server_stopped")

    @property
    def port(self) -> Optional[int]:
        if self._server is None:
            return None
        for sock in self._server.sockets:
            return sock.getsockname()[1]
        return None

    # -------------------- handshake --------------------
    def parse_room_id(self, path: str) -> Optional[int]:
        """Room id from the request path; -1 when the segment is not an integer.

        Returns None when the path does not belong to the chat endpoint.
        """
        match = self._path.match(urlsplit(path).path)
        if match is None:
            return None
        room = match.group("room")
        return int(room) if room.isascii() and room.isdigit() else -1

    def resolve_identity(self, request: Request) -> Optional[tuple[int, str]]:
        raw_id = request.headers.get(self.options.user_id_header, "").strip()
        if not (raw_id.isascii() and raw_id.isdigit()):
            return None
        username = request.headers.get(self.options.username_header, "").strip()
        return int(raw_id), username

    async def _process_request(self, connection: ServerConnection, request: Request) -> Optional[Response]:
        room_id = self.parse_room_id(request.path)
        if room_id is None:
            return connection.respond(http.HTTPStatus.NOT_FOUND, "Not Found\n")
        if room_id < 0:
            return connection.respond(http.HTTPStatus.BAD_REQUEST, "Invalid room ID\n")

        identity = self.resolve_identity(request)
        if identity is None:
            return connection.respond(http.HTTPStatus.UNAUTHORIZED, "Unauthorized\n")
        user_id, username = identity

        if not await self._membership.verify_membership(user_id, room_id):
            logger.info("ws_access_denied", room_id=room_id, user_id=user_id)
            return connection.respond(http.HTTPStatus.FORBIDDEN, "Access denied\n")

        self._admitted[connection] = Admission(room_id=room_id, user_id=user_id, username=username)
        return None

    # -------------------- session --------------------
    async def _handle_connection(self, connection: ServerConnection) -> None:
        admission = self._admitted.pop(connection, None)
        if admission is None:
            await connection.close(CloseCode.POLICY_VIOLATION)
            return

        client = Client(
            hub=self.hub,
            transport=WebSocketTransport(connection),
            message_store=self._message_store,
            room_id=admission.room_id,
            user_id=admission.user_id,
            username=admission.username,
            options=self.options,
        )
        with structlog.contextvars.bound_contextvars(
            connection_id=uuid.uuid4().hex[:12],
            room_id=admission.room_id,
            user_id=admission.user_id,
        ):
            logger.debug("ws_connection_admitted", remote=str(connection.remote_address))
            await client.serve()
