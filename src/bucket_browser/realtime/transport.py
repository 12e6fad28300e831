"""Push transport abstraction and its Starlette WebSocket adapter."""

import logging
from typing import Optional, Protocol

from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState

log = logging.getLogger(__name__)


class TransportClosed(Exception):
    """Raised when the peer has gone away or the transport can no longer be written."""


class PushTransport(Protocol):
    async def send_text(self, data: str) -> None: ...

    async def ping(self) -> None: ...

    async def receive(self) -> Optional[str]: ...

    async def close(self) -> None: ...


class StarletteTransport:
    """
    Adapts a Starlette/FastAPI WebSocket to PushTransport.

    ASGI applications cannot emit protocol-level ping frames; the server
    (uvicorn ``ws_ping_interval``/``ws_ping_timeout``) sends them and drops
    peers that stop answering. ``ping`` here only verifies the socket is still
    open so the outbound pump notices a dead peer on its keepalive tick.
    """

    def __init__(self, websocket: WebSocket):
        self._websocket = websocket

    @property
    def peer(self) -> str:
        client = self._websocket.client
        return f"{client.host}:{client.port}" if client else "unknown"

    def _is_open(self) -> bool:
        return (
            self._websocket.client_state == WebSocketState.CONNECTED
            and self._websocket.application_state == WebSocketState.CONNECTED
        )

    async def send_text(self, data: str) -> None:
        if not self._is_open():
            raise TransportClosed("WebSocket is not connected")
        try:
            await self._websocket.send_text(data)
        except (WebSocketDisconnect, RuntimeError) as e:
            raise TransportClosed(str(e)) from e

    async def ping(self) -> None:
        if not self._is_open():
            raise TransportClosed("WebSocket is not connected")

    async def receive(self) -> Optional[str]:
        try:
            message = await self._websocket.receive()
        except RuntimeError as e:
            raise TransportClosed(str(e)) from e
        if message["type"] == "websocket.disconnect":
            raise TransportClosed(f"Peer disconnected with code {message.get('code')}")
        return message.get("text")

    async def close(self) -> None:
        if self._websocket.application_state == WebSocketState.DISCONNECTED:
            return
        if self._websocket.client_state == WebSocketState.DISCONNECTED:
            return
        try:
            await self._websocket.close()
        except RuntimeError as e:
            log.debug("WebSocket already closed for %s: %s", self.peer, e)
