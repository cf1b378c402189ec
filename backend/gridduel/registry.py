import threading
import time
from typing import Dict, List, Optional

from gridduel.errors import NotFound
from gridduel.models import Room, generate_room_code, normalize_code


class RoomRegistry:
    """Process-wide table of live rooms keyed by code.

    Owned by the app (see ``create_app``) rather than living at module
    level. The table has its own lock; each room carries a separate lock
    for its state, so rooms never wait on each other.
    """

    def __init__(self, code_length=6, host_override=True):
        self.code_length = code_length
        self.host_override = host_override
        self._rooms: Dict[str, Room] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, code) -> bool:
        return normalize_code(code) in self._rooms

    def codes(self) -> List[str]:
        with self._lock:
            return list(self._rooms)

    def create(self, host_id) -> Room:
        with self._lock:
            code = generate_room_code(self.code_length, taken=self._rooms)
            room = Room.create(code, host_id, host_override=self.host_override)
            self._rooms[code] = room
            return room

    def get(self, code) -> Optional[Room]:
        return self._rooms.get(normalize_code(code))

    def require(self, code) -> Room:
        room = self.get(code)
        if room is None:
            raise NotFound()
        return room

    def destroy(self, code) -> Optional[Room]:
        with self._lock:
            return self._rooms.pop(normalize_code(code), None)

    def idle_rooms(self, max_idle, now=None) -> List[Room]:
        now = time.time() if now is None else now
        with self._lock:
            return [r for r in self._rooms.values() if r.is_idle(max_idle, now=now)]
