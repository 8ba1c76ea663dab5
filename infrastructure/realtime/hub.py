"""In-process chat hub.

Owns the room -> clients mapping. Every mutation (register, unregister)
and every fan-out (broadcast, direct send) is submitted as a request to a
single FIFO consumed by one control loop, so requests are applied in
submission order and membership never needs per-room locking. Rooms are
implicit: an entry exists only while at least one client is registered.

Diagnostic reads take the same lock the loop holds while mutating, which
makes them safe from any thread.
"""
from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Optional, Set, Tuple, Union

from application.ports.realtime import Envelope
from core.logging_config import get_logger

if TYPE_CHECKING:  # pragma: no cover
    from infrastructure.realtime.client import Client


logger = get_logger(__name__)


@dataclass(frozen=True)
class _Register:
    client: "Client"


@dataclass(frozen=True)
class _Unregister:
    client: "Client"


@dataclass(frozen=True)
class _Broadcast:
    room_id: int
    payload: str
    exclude: Optional["Client"] = None


@dataclass(frozen=True)
class _Direct:
    client: "Client"
    payload: str


_Request = Union[_Register, _Unregister, _Broadcast, _Direct]


class Hub:
    """Serialize membership changes and broadcast fan-out through one task."""

    def __init__(self, *, queue_size: int = 256) -> None:
        self._rooms: Dict[int, Set["Client"]] = {}
        self._requests: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._lock = threading.Lock()
        self._task: Optional[asyncio.Task] = None
        self._stopped = False

    # -------------------- lifecycle --------------------
    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._stopped = False
            self._task = asyncio.create_task(self.run(), name="chat-hub")
        return self._task

    async def stop(self) -> None:
        """Stop the control loop and close every client's outbound queue.

        Closing the queues makes each write pump send a close frame, which
        in turn ends the read pumps.
        """
        self._stopped = True
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._discard_pending()
        with self._lock:
            clients = [c for members in self._rooms.values() for c in members]
            self._rooms.clear()
        for client in clients:
            client.queue.close()
        logger.info("hub_stopped", clients_closed=len(clients))

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run(self) -> None:
        while True:
            request = await self._requests.get()
            try:
                self._apply(request)
            finally:
                self._requests.task_done()

    async def flush(self) -> None:
        """Wait until every request submitted so far has been applied."""
        await self._requests.join()

    # -------------------- requests --------------------
    async def register(self, client: "Client") -> None:
        """Add ``client`` to its room. Call once per client."""
        await self._submit(_Register(client))

    async def unregister(self, client: "Client") -> None:
        """Remove ``client`` and close its queue. Safe to call repeatedly."""
        if self._stopped:
            # stop() already closed every queue and dropped the rooms
            client.queue.close()
            return
        await self._submit(_Unregister(client))

    async def broadcast(self, room_id: int, payload: str, exclude: Optional["Client"] = None) -> None:
        """Enqueue ``payload`` for every member of ``room_id`` except ``exclude``."""
        await self._submit(_Broadcast(room_id, payload, exclude))

    async def send(self, client: "Client", payload: str) -> None:
        """Enqueue ``payload`` for a single registered client."""
        await self._submit(_Direct(client, payload))

    async def _submit(self, request: _Request) -> None:
        if self._stopped:
            logger.debug("hub_request_dropped", request=type(request).__name__)
            return
        await self._requests.put(request)
        if self._stopped:
            # Unblocked by stop() after the loop was gone
            self._discard_pending()

    def _discard_pending(self) -> None:
        """Drop unapplied requests so flush() waiters and blocked submitters return."""
        while True:
            try:
                request = self._requests.get_nowait()
            except asyncio.QueueEmpty:
                return
            if isinstance(request, _Unregister):
                request.client.queue.close()
            self._requests.task_done()

    # -------------------- diagnostics --------------------
    def get_room_clients(self, room_id: int) -> List["Client"]:
        with self._lock:
            return list(self._rooms.get(room_id, ()))

    def get_room_client_count(self, room_id: int) -> int:
        with self._lock:
            return len(self._rooms.get(room_id, ()))

    def room_ids(self) -> List[int]:
        with self._lock:
            return list(self._rooms)

    # -------------------- control loop --------------------
    def _apply(self, request: _Request) -> None:
        if isinstance(request, _Register):
            self._handle_register(request.client)
        elif isinstance(request, _Unregister):
            self._handle_unregister(request.client)
        elif isinstance(request, _Broadcast):
            self._deliver(request.room_id, request.payload, request.exclude)
        elif isinstance(request, _Direct):
            self._handle_direct(request.client, request.payload)

    def _handle_register(self, client: "Client") -> None:
        with self._lock:
            self._rooms.setdefault(client.room_id, set()).add(client)
        logger.info(
            "hub_client_registered",
            room_id=client.room_id,
            user_id=client.user_id,
            username=client.username,
        )
        # The joining client receives its own join notice
        join = Envelope.join(client.room_id, client.user_id, client.username).to_wire()
        self._deliver(client.room_id, join)

    def _handle_unregister(self, client: "Client") -> None:
        removed = self._detach(client)
        # Covers clients that were never registered or were already evicted
        client.queue.close()
        if not removed:
            return
        logger.info(
            "hub_client_unregistered",
            room_id=client.room_id,
            user_id=client.user_id,
            username=client.username,
        )
        self._deliver(client.room_id, self._leave_payload(client))

    def _handle_direct(self, client: "Client", payload: str) -> None:
        with self._lock:
            present = client in self._rooms.get(client.room_id, ())
        if not present:
            return
        if not client.queue.offer(payload):
            self._evict(client)

    def _deliver(self, room_id: int, payload: str, exclude: Optional["Client"] = None) -> None:
        """Fan ``payload`` out to a room, evicting members that cannot keep up.

        Evictions are applied after the fan-out so one saturated queue never
        costs another member its copy. Each eviction produces a leave notice
        for the remaining members, which may in turn evict further members.
        """
        pending: List[Tuple[str, Optional["Client"]]] = [(payload, exclude)]
        while pending:
            payload, exclude = pending.pop(0)
            with self._lock:
                targets = list(self._rooms.get(room_id, ()))
            saturated = [
                client for client in targets
                if client is not exclude and not client.queue.offer(payload)
            ]
            for client in saturated:
                if self._detach(client):
                    client.queue.close()
                    self._log_eviction(client)
                    pending.append((self._leave_payload(client), None))

    def _evict(self, client: "Client") -> None:
        if not self._detach(client):
            return
        client.queue.close()
        self._log_eviction(client)
        self._deliver(client.room_id, self._leave_payload(client))

    def _detach(self, client: "Client") -> bool:
        with self._lock:
            members = self._rooms.get(client.room_id)
            if not members or client not in members:
                return False
            members.discard(client)
            if not members:
                del self._rooms[client.room_id]
        return True

    @staticmethod
    def _leave_payload(client: "Client") -> str:
        return Envelope.leave(client.room_id, client.user_id, client.username).to_wire()

    @staticmethod
    def _log_eviction(client: "Client") -> None:
        logger.warning(
            "hub_client_evicted",
            room_id=client.room_id,
            user_id=client.user_id,
            username=client.username,
            reason="send_queue_full",
            queue_size=client.queue.maxsize,
        )
