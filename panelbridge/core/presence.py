"""Latest list of players online in the remote environment."""

import copy
import threading
from typing import Optional

from .types import PlayerList, now_ms


class PresenceSnapshot:
    """Whole-list replacement store; each push supersedes the previous one."""

    def __init__(self):
        self._players: PlayerList = []
        self._updated_at: Optional[int] = None
        self._lock = threading.Lock()

    def replace(self, players: PlayerList) -> None:
        with self._lock:
            self._players = copy.deepcopy(list(players))
            self._updated_at = now_ms()

    def current(self) -> PlayerList:
        with self._lock:
            return copy.deepcopy(self._players)

    @property
    def updated_at(self) -> Optional[int]:
        return self._updated_at

    def __len__(self) -> int:
        with self._lock:
            return len(self._players)
