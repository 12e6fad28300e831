"""
WebSocket endpoint that attaches browsers to the listing push hub.
"""

import logging

from fastapi import APIRouter, WebSocket

from ...realtime.transport import StarletteTransport
from ..dependencies import get_service

log = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def push_channel(websocket: WebSocket):
    service = get_service()
    await websocket.accept()
    transport = StarletteTransport(websocket)
    log.info("[WS /api/ws] Client connected from %s", transport.peer)
    await service.register_push_client(transport)
    log.info("[WS /api/ws] Client %s disconnected", transport.peer)
