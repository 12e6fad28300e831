from .hub import Hub, PushClient, serialize_objects
from .transport import PushTransport, StarletteTransport, TransportClosed

__all__ = [
    "Hub",
    "PushClient",
    "PushTransport",
    "StarletteTransport",
    "TransportClosed",
    "serialize_objects",
]
