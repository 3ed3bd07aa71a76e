from flask_socketio import SocketIO


class RoomBroadcaster:
    """Fan-out of room events over a Socket.IO namespace.

    Socket.IO rooms are named after the room code, so the broadcast scope of a
    room is exactly the set of connections joined to it.
    """

    def __init__(self, socketio: SocketIO, namespace: str = '/'):
        self.socketio = socketio
        self.namespace = namespace

    def join(self, sid: str, room_id: str) -> None:
        self.socketio.server.enter_room(sid, room_id, namespace=self.namespace)

    def leave(self, sid: str, room_id: str) -> None:
        self.socketio.server.leave_room(sid, room_id, namespace=self.namespace)

    def close(self, room_id: str) -> None:
        """Evict every connection from the room's scope."""
        self.socketio.close_room(room_id, namespace=self.namespace)

    def to_room(self, room_id: str, event: str, payload=None) -> None:
        self.socketio.emit(event, payload, to=room_id, namespace=self.namespace)

    def to_connection(self, sid: str, event: str, payload=None) -> None:
        self.socketio.emit(event, payload, to=sid, namespace=self.namespace)

    def error(self, sid: str, exc) -> None:
        # Tuple data is sent as two event arguments; reason first for string-only clients
        self.to_connection(sid, 'room-error', (exc.message, {'kind': exc.kind}))
