"""Session identity: the opaque token shared with the backend."""

from __future__ import annotations

import logging
import random
from typing import Optional, Set

log = logging.getLogger(__name__)

# 10^12 possible ids; the backend only needs a digit string
SESSION_ID_SPACE = 10 ** 12


class SessionIdentity:
    """Generates and holds the live session token for one conversation."""

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng or random.SystemRandom()
        self._issued: Set[str] = set()
        self.current: str = self.create()

    def create(self) -> str:
        """Return a token never handed out before by this identity."""
        while True:
            token = str(self._rng.randrange(SESSION_ID_SPACE))
            if token not in self._issued:
                self._issued.add(token)
                return token

    def reset(self) -> str:
        previous = self.current
        self.current = self.create()
        log.info(f"SESSION_RESET | previous={previous} | current={self.current}")
        return self.current

    def is_current(self, session_id: str) -> bool:
        return session_id == self.current
