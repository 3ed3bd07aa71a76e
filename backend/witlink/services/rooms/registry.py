import threading
from collections import defaultdict
from typing import Dict, List, Set

from witlink.errors import NotFoundError
from witlink.models import Room, generate_room_code


class DuplicateRoomError(Exception):
    pass


class RoomRegistry:
    """In-memory store of live rooms, keyed by room code.

    Also keeps a reverse index from connection id to the rooms that
    connection has joined, so disconnect handling only visits those rooms.
    Rooms are mutated in place by the coordinator; the registry never
    replaces an entry.
    """

    def __init__(self, code_length: int = 6):
        self.code_length = code_length
        self._rooms: Dict[str, Room] = {}
        self._memberships: Dict[str, Set[str]] = defaultdict(set)
        self._lock = threading.RLock()

    def __len__(self):
        with self._lock:
            return len(self._rooms)

    def allocate_id(self) -> str:
        with self._lock:
            while True:
                code = generate_room_code(self.code_length)
                if code not in self._rooms:
                    return code

    def create(self, room: Room) -> Room:
        with self._lock:
            if room.id in self._rooms:
                raise DuplicateRoomError(room.id)
            self._rooms[room.id] = room
            return room

    def get(self, room_id) -> Room:
        with self._lock:
            room = self._rooms.get(room_id) if isinstance(room_id, str) else None
        if room is None:
            raise NotFoundError()
        return room

    def contains(self, room_id) -> bool:
        with self._lock:
            return room_id in self._rooms

    def is_live(self, room: Room) -> bool:
        """True while this exact room object is still registered."""
        with self._lock:
            return self._rooms.get(room.id) is room

    def delete(self, room_id: str) -> None:
        """Remove the room and the index entries of its remaining players."""
        with self._lock:
            room = self._rooms.pop(room_id, None)
            if room is None:
                return
            for player in room.players:
                self.untrack(player.id, room_id)

    def track(self, sid: str, room_id: str) -> None:
        with self._lock:
            self._memberships[sid].add(room_id)

    def untrack(self, sid: str, room_id: str) -> None:
        with self._lock:
            rooms = self._memberships.get(sid)
            if rooms is None:
                return
            rooms.discard(room_id)
            if not rooms:
                del self._memberships[sid]

    def rooms_for(self, sid: str) -> List[str]:
        with self._lock:
            return sorted(self._memberships.get(sid, ()))
