"""Escalating send cooldown after failed chat requests.

A soft UX throttle, not a security control: state lives in memory and resets
whenever a new governor is created.
"""

from __future__ import annotations

import math
import time
from typing import Callable

COOLDOWN_PERIODS_SECONDS = (5, 30, 120, 300, 600)


def _now_ms() -> float:
    return time.time() * 1000


def format_cooldown_time(seconds: int) -> str:
    """Human readable duration; whole minutes once past a minute."""
    if seconds < 60:
        return f"{seconds} second{'s' if seconds != 1 else ''}"
    minutes = seconds // 60
    return f"{minutes} minute{'s' if minutes != 1 else ''}"


class ChatCooldown:
    """Tracks consecutive failures and the lockout window they trigger.

    ``start_cooldown`` picks its duration from the error count *as it is*, so
    callers that want the first failure to get the shortest window call
    ``start_cooldown()`` before ``increment_error_count()``.
    """

    def __init__(self, clock: Callable[[], float] = _now_ms):
        self._clock = clock
        self.cooldown_end_time: float = 0
        self.error_count: int = 0

    def start_cooldown(self) -> None:
        index = min(self.error_count, len(COOLDOWN_PERIODS_SECONDS) - 1)
        self.cooldown_end_time = self._clock() + COOLDOWN_PERIODS_SECONDS[index] * 1000

    def reset_cooldown(self) -> None:
        self.cooldown_end_time = 0
        self.error_count = 0

    def increment_error_count(self) -> None:
        self.error_count += 1

    def is_cooldown_active(self) -> bool:
        return self._clock() < self.cooldown_end_time

    def get_remaining_cooldown(self) -> int:
        return math.ceil((self.cooldown_end_time - self._clock()) / 1000)

    def get_cooldown_message(self) -> str:
        if not self.is_cooldown_active():
            return ""
        return f"You are on cooldown. Try again in {format_cooldown_time(self.get_remaining_cooldown())}."
