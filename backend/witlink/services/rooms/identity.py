import threading
from typing import Dict, Optional

from witlink.errors import AuthenticationError


class IdentityGate:
    """Admits connections that supply a display name in the handshake."""

    def __init__(self):
        self._names: Dict[str, str] = {}
        self._lock = threading.Lock()

    def admit(self, sid: str, auth) -> str:
        name = auth.get('name') if isinstance(auth, dict) else None
        if not isinstance(name, str) or not name.strip():
            raise AuthenticationError()
        with self._lock:
            self._names[sid] = name
        return name

    def name_for(self, sid: str) -> Optional[str]:
        with self._lock:
            return self._names.get(sid)

    def release(self, sid: str) -> None:
        with self._lock:
            self._names.pop(sid, None)
