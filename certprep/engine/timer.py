from __future__ import annotations

"""Countdown timer with a single owner and a hard stop.

Each second is scheduled as a one-shot ``threading.Timer`` that re-arms
itself. Every tick runs under the owner's lock and is tagged with the
generation it was armed for, so once ``stop()`` (or a restart) returns no
stale tick or expiry callback can run.

With ``threaded=False`` nothing is scheduled and the caller drives time by
calling ``tick()``; hosts without a scheduler use it this way.
"""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)

TickFn = Callable[[int], None]
ExpireFn = Callable[[], None]


def format_time(seconds: int) -> str:
    """Render seconds as ``M:SS``."""
    s = max(0, int(seconds))
    return f"{s // 60}:{s % 60:02d}"


class Countdown:
    def __init__(self, interval_s: float = 1.0, *, threaded: bool = True, lock: Optional[threading.RLock] = None) -> None:
        self.interval_s = float(interval_s)
        self.threaded = threaded
        self._lock = lock or threading.RLock()
        self._timer: Optional[threading.Timer] = None
        self._generation = 0
        self._running = False
        self._total = 0
        self._remaining = 0
        self._on_tick: Optional[TickFn] = None
        self._on_expire: Optional[ExpireFn] = None

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def total(self) -> int:
        return self._total

    @property
    def elapsed(self) -> int:
        return self._total - self._remaining

    def is_running(self) -> bool:
        return self._running

    def start(self, total_seconds: int, on_tick: Optional[TickFn] = None, on_expire: Optional[ExpireFn] = None) -> None:
        """Start a countdown, superseding any countdown already running."""
        with self._lock:
            self._halt()
            self._total = max(0, int(total_seconds))
            self._remaining = self._total
            self._on_tick = on_tick
            self._on_expire = on_expire
            self._running = True
            if self._remaining == 0:
                self._expire()
                return
            self._arm()

    def stop(self) -> None:
        with self._lock:
            self._halt()

    def preset(self, total_seconds: int, remaining: int) -> None:
        """Stop and set the counters without arming anything."""
        with self._lock:
            self._halt()
            self._total = max(0, int(total_seconds))
            self._remaining = max(0, min(int(remaining), self._total))

    def tick(self) -> None:
        """Advance the countdown by one second."""
        with self._lock:
            self._tick()

    def _halt(self) -> None:
        self._running = False
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _arm(self) -> None:
        if not self.threaded:
            return
        gen = self._generation
        self._timer = threading.Timer(self.interval_s, self._on_fire, args=(gen,))
        self._timer.daemon = True
        self._timer.start()

    def _on_fire(self, gen: int) -> None:
        with self._lock:
            if gen != self._generation:
                return
            self._timer = None
            self._tick()

    def _tick(self) -> None:
        if not self._running:
            return
        gen = self._generation
        self._remaining = max(0, self._remaining - 1)
        if self._on_tick is not None:
            self._on_tick(self._remaining)
        # the tick callback may have stopped or restarted us
        if gen != self._generation or not self._running:
            return
        if self._remaining == 0:
            self._expire()
        else:
            self._arm()

    def _expire(self) -> None:
        on_expire = self._on_expire
        self._halt()
        logger.debug("Countdown expired after %ss", self._total)
        if on_expire is not None:
            on_expire()
