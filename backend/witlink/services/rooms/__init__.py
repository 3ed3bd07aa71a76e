"""Room services: registry, identity gate, broadcast fabric and the
coordinator that ties them together.

Transport-specific code (Socket.IO handlers, HTTP routes) calls into the
coordinator; nothing here reads Flask request state.
"""
from .broadcast import RoomBroadcaster
from .coordinator import RoomCoordinator
from .identity import IdentityGate
from .registry import RoomRegistry

__all__ = ['IdentityGate', 'RoomBroadcaster', 'RoomCoordinator', 'RoomRegistry']
