from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

OPEN = "open"


@dataclass
class CircuitPolicy:
    failure_threshold: int = 5
    window_seconds: int = 60
    open_seconds: int = 30


class CircuitBreaker:
    """Process-local failure counter per service key.

    ``failure_threshold`` failures inside ``window_seconds`` open the circuit
    for ``open_seconds``; a success closes it and forgets past failures.
    """

    def __init__(self, policy: Optional[CircuitPolicy] = None, clock: Callable[[], float] = time.time) -> None:
        self.policy = policy or CircuitPolicy()
        self._clock = clock
        self._lock = threading.Lock()
        # key -> list of failure timestamps
        self._failures: Dict[str, List[float]] = {}
        # key -> open_until timestamp
        self._open_until: Dict[str, float] = {}

    def is_open(self, key: str) -> Tuple[bool, int | None]:
        now = self._clock()
        with self._lock:
            until = self._open_until.get(key, 0.0)
        if until > now:
            retry = int(max(1, until - now))
            return True, retry
        return False, None

    def record_failure(self, key: str) -> None:
        if self.policy.failure_threshold <= 0:
            return
        now = self._clock()
        window_start = now - self.policy.window_seconds
        with self._lock:
            bucket = [ts for ts in self._failures.get(key, []) if ts >= window_start]
            bucket.append(now)
            self._failures[key] = bucket
            if len(bucket) >= self.policy.failure_threshold:
                self._open_until[key] = now + self.policy.open_seconds

    def record_success(self, key: str) -> None:
        with self._lock:
            self._failures.pop(key, None)
            self._open_until.pop(key, None)


__all__ = ["OPEN", "CircuitBreaker", "CircuitPolicy"]
