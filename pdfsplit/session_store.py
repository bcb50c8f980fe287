"""In-memory registry of split sessions keyed by a random id.

Nothing is written to disk; sessions disappear with the process or when
they sit idle longer than the configured age.
"""
import logging
import time
import uuid
from threading import Lock
from typing import Dict, Optional

from .session import SplitSession

logger = logging.getLogger(__name__)


class SessionStore:
    def __init__(self):
        self._lock = Lock()
        self._data: Dict[str, SplitSession] = {}

    def create(self, session: SplitSession) -> str:
        key = uuid.uuid4().hex
        with self._lock:
            self._data[key] = session
        return key

    def get(self, key: str) -> Optional[SplitSession]:
        with self._lock:
            return self._data.get(key)

    def delete(self, key: str) -> bool:
        with self._lock:
            session = self._data.pop(key, None)
        if session is None:
            return False
        with session.lock:
            session.reset()
        return True

    def purge_idle(self, max_age_sec: float, now: Optional[float] = None) -> int:
        now = time.time() if now is None else now
        with self._lock:
            stale = [k for k, s in self._data.items() if s.touched < now - max_age_sec]
        for key in stale:
            self.delete(key)
        if stale:
            logger.info('purged %d idle sessions', len(stale))
        return len(stale)

    def __len__(self):
        with self._lock:
            return len(self._data)
