# src/tradedesk/market_data/backoff.py
from __future__ import annotations

import threading
from typing import Optional


class ReconnectPolicy:
    """
    Exponential reconnect backoff with a bounded number of attempts.

      delay(n) = min(base_delay * 2**n, max_delay), n = 0, 1, ...

    next_delay() is called once per unclean close. It returns the delay
    before the next connection, or None on the max_attempts-th consecutive
    unclean close. reset() (successful open) starts counting from zero.
    """

    def __init__(self, *, base_delay: float = 5.0, max_delay: float = 30.0, max_attempts: int = 5):
        self.base_delay = float(base_delay)
        self.max_delay = float(max_delay)
        self.max_attempts = max(1, int(max_attempts))
        self._failures = 0
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, cfg) -> "ReconnectPolicy":
        return cls(
            base_delay=cfg.reconnect_base_delay_sec,
            max_delay=cfg.reconnect_max_delay_sec,
            max_attempts=cfg.reconnect_max_attempts,
        )

    @property
    def failures(self) -> int:
        return self._failures

    @property
    def exhausted(self) -> bool:
        return self._failures >= self.max_attempts

    def delay_for(self, n: int) -> float:
        return min(self.base_delay * (2 ** int(n)), self.max_delay)

    def next_delay(self) -> Optional[float]:
        with self._lock:
            self._failures += 1
            if self._failures >= self.max_attempts:
                return None
            return self.delay_for(self._failures - 1)

    def reset(self) -> None:
        with self._lock:
            self._failures = 0
