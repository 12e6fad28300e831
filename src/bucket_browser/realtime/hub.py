"""
Broadcast hub that pushes the bucket listing to connected clients.

A single control loop owns the client set. Registration, removal and
broadcasts are all requests posted to that loop, so the set is never touched
concurrently. Each client has a bounded outbound queue; a client whose queue
is full when a broadcast arrives is evicted instead of stalling the others.
"""

import asyncio
import itertools
import json
import logging
from typing import Optional, Sequence

from ..storage.base import BucketObject, ObjectStorageClient
from ..storage.exceptions import StorageError
from .transport import PushTransport, TransportClosed

log = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 10.0
DEFAULT_CLIENT_QUEUE_SIZE = 256
DEFAULT_PONG_WAIT_SECONDS = 60.0
DEFAULT_WRITE_WAIT_SECONDS = 10.0

_REGISTER = "register"
_UNREGISTER = "unregister"
_BROADCAST = "broadcast"

_client_ids = itertools.count(1)


def serialize_objects(objects: Sequence[BucketObject]) -> str:
    return json.dumps([obj.to_dict() for obj in objects])


class PushClient:
    """One registered connection and its outbound queue. ``None`` in the queue means closed."""

    def __init__(self, transport: PushTransport, queue_size: int = DEFAULT_CLIENT_QUEUE_SIZE):
        self.client_id = next(_client_ids)
        self.transport = transport
        self.queue: asyncio.Queue[Optional[str]] = asyncio.Queue(maxsize=queue_size)
        self.closed = False

    def offer(self, message: str) -> bool:
        """Enqueue without waiting. Returns False if the queue is full or closed."""
        if self.closed:
            return False
        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull:
            return False
        return True

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        while not self.queue.empty():
            self.queue.get_nowait()
        self.queue.put_nowait(None)

    def __repr__(self) -> str:
        return f"PushClient(id={self.client_id})"


class Hub:
    """Client registry, change poller and broadcast fan-out."""

    def __init__(
        self,
        storage: ObjectStorageClient,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        client_queue_size: int = DEFAULT_CLIENT_QUEUE_SIZE,
        pong_wait_seconds: float = DEFAULT_PONG_WAIT_SECONDS,
        write_wait_seconds: float = DEFAULT_WRITE_WAIT_SECONDS,
        prefix: str = "",
    ):
        self._storage = storage
        self._poll_interval = poll_interval_seconds
        self._client_queue_size = client_queue_size
        self._ping_period = pong_wait_seconds * 9 / 10
        self._write_wait = write_wait_seconds
        self._prefix = prefix

        self._control: asyncio.Queue = asyncio.Queue()
        self._clients: set[PushClient] = set()
        self._last_message: Optional[str] = None
        self._last_count = 0
        self._tasks: list[asyncio.Task] = []
        self.log_identifier = "[Hub]"

    @property
    def client_count(self) -> int:
        return len(self._clients)

    @property
    def is_running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def start(self, poll: bool = True) -> None:
        if self.is_running:
            return
        self._tasks = [asyncio.create_task(self._run_control_loop(), name="hub-control")]
        if poll:
            self._tasks.append(asyncio.create_task(self._run_poller(), name="hub-poller"))
        log.info(
            "%s Started (poll interval %.1fs, queue size %d)",
            self.log_identifier,
            self._poll_interval,
            self._client_queue_size,
        )

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        for client in list(self._clients):
            client.close()
        self._clients.clear()
        log.info("%s Stopped", self.log_identifier)

    async def register(self, client: PushClient) -> None:
        await self._control.put((_REGISTER, client))

    async def unregister(self, client: PushClient) -> None:
        await self._control.put((_UNREGISTER, client))

    async def broadcast(self, objects: Sequence[BucketObject]) -> None:
        await self._control.put((_BROADCAST, serialize_objects(objects)))

    async def flush(self) -> None:
        """Wait until every request posted so far has been applied."""
        await self._control.join()

    async def _run_control_loop(self) -> None:
        while True:
            action, payload = await self._control.get()
            try:
                if action == _REGISTER:
                    self._on_register(payload)
                elif action == _UNREGISTER:
                    self._on_unregister(payload)
                elif action == _BROADCAST:
                    self._on_broadcast(payload)
            except Exception as e:
                log.error(
                    "%s Failed to apply %s request: %s",
                    self.log_identifier,
                    action,
                    e,
                    exc_info=True,
                )
            finally:
                self._control.task_done()

    def _on_register(self, client: PushClient) -> None:
        self._clients.add(client)
        log.debug(
            "%s Registered %r. Total clients: %d",
            self.log_identifier,
            client,
            len(self._clients),
        )
        if self._last_message is not None and not client.offer(self._last_message):
            self._evict(client)

    def _on_unregister(self, client: PushClient) -> None:
        if client in self._clients:
            self._clients.discard(client)
            client.close()
            log.debug(
                "%s Unregistered %r. Remaining clients: %d",
                self.log_identifier,
                client,
                len(self._clients),
            )

    def _on_broadcast(self, message: str) -> None:
        self._last_message = message
        for client in list(self._clients):
            if not client.offer(message):
                self._evict(client)

    def _evict(self, client: PushClient) -> None:
        self._clients.discard(client)
        client.close()
        log.warning(
            "%s Evicted %r: outbound queue full. Remaining clients: %d",
            self.log_identifier,
            client,
            len(self._clients),
        )

    async def poll_once(self) -> bool:
        """
        List the bucket and broadcast it if the object count grew.

        Returns:
            True if a broadcast was posted.

        Raises:
            StorageError: If listing fails.
        """
        objects = await asyncio.to_thread(self._storage.list_objects, self._prefix)
        if len(objects) <= self._last_count:
            return False
        log.info(
            "%s Object count grew from %d to %d, broadcasting listing",
            self.log_identifier,
            self._last_count,
            len(objects),
        )
        self._last_count = len(objects)
        await self.broadcast(objects)
        return True

    async def _run_poller(self) -> None:
        while True:
            await asyncio.sleep(self._poll_interval)
            try:
                await self.poll_once()
            except StorageError as e:
                log.warning("%s Failed to list objects: %s", self.log_identifier, e)
            except Exception as e:
                log.error("%s Poller iteration failed: %s", self.log_identifier, e, exc_info=True)

    async def serve(self, transport: PushTransport) -> None:
        """
        Attach *transport* to the hub and pump messages until either side fails.

        The client is unregistered and the transport closed on return.
        """
        client = PushClient(transport, self._client_queue_size)
        await self.register(client)

        writer = asyncio.create_task(self._write_pump(client))
        reader = asyncio.create_task(self._read_pump(client))
        try:
            done, pending = await asyncio.wait(
                {writer, reader}, return_when=asyncio.FIRST_COMPLETED
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            for task in done:
                error = task.exception()
                if error is not None and not isinstance(error, TransportClosed):
                    log.warning(
                        "%s Connection for %r ended with error: %s",
                        self.log_identifier,
                        client,
                        error,
                    )
        finally:
            for task in (writer, reader):
                if not task.done():
                    task.cancel()
            await self.unregister(client)
            await transport.close()
            log.debug("%s Connection for %r closed", self.log_identifier, client)

    async def _write_pump(self, client: PushClient) -> None:
        loop = asyncio.get_running_loop()
        next_ping = loop.time() + self._ping_period
        while True:
            timeout = max(0.0, next_ping - loop.time())
            try:
                message = await asyncio.wait_for(client.queue.get(), timeout=timeout)
            except asyncio.TimeoutError:
                await asyncio.wait_for(client.transport.ping(), timeout=self._write_wait)
                next_ping = loop.time() + self._ping_period
                continue

            if message is None:
                return
            await asyncio.wait_for(client.transport.send_text(message), timeout=self._write_wait)

    async def _read_pump(self, client: PushClient) -> None:
        while True:
            await client.transport.receive()
