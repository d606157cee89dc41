"""Countdown between sets.

The timer is a small state machine. Counting is driven by a scheduler
callable ``schedule(delay, callback)`` returning a handle with ``cancel()``;
by default that is the running asyncio loop's ``call_later``. At most one
scheduled tick is outstanding at any time.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable, List, Optional

log = logging.getLogger("fittrack.timer")


class TimerState(str, Enum):
    IDLE = "idle"
    READY = "ready"
    RUNNING = "running"
    PAUSED = "paused"
    EXPIRED = "expired"


def _loop_schedule(delay: float, callback: Callable[[], None]):
    return asyncio.get_running_loop().call_later(delay, callback)


class RestTimer:
    MIN_SECONDS = 10
    PRESETS = (60, 90, 120, 180)
    ADJUSTMENTS = (-30, -10, 10, 30)

    def __init__(
        self,
        duration: int = 90,
        *,
        interval: float = 1.0,
        on_expire: Optional[Callable[["RestTimer"], None]] = None,
        schedule: Optional[Callable] = None,
    ) -> None:
        if duration < 1:
            raise ValueError("duration must be positive")
        self.duration = duration
        self.remaining = duration
        self.state = TimerState.IDLE
        self.interval = interval
        self.on_expire = on_expire
        self._schedule = schedule or _loop_schedule
        self._handle = None
        self._listeners: List[Callable] = []

    @property
    def visible(self) -> bool:
        return self.state is not TimerState.IDLE

    @property
    def running(self) -> bool:
        return self._handle is not None

    @property
    def label(self) -> str:
        minutes, seconds = divmod(self.remaining, 60)
        return f"{minutes}:{seconds:02d}"

    def subscribe(self, callback: Callable) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        for callback in list(self._listeners):
            callback(self)

    # -- driver

    def _arm(self) -> None:
        self._stop()
        self._handle = self._schedule(self.interval, self._on_tick)

    def _stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _on_tick(self) -> None:
        self._handle = None
        self.tick()
        if self.state is TimerState.RUNNING:
            self._arm()

    # -- transitions

    def open(self) -> None:
        self._stop()
        self.remaining = self.duration
        self.state = TimerState.READY
        self._notify()

    def start(self) -> None:
        # Expired behaves like Paused once adjust has put time back.
        resumable = (TimerState.READY, TimerState.PAUSED, TimerState.EXPIRED)
        if self.state not in resumable or self.remaining <= 0:
            return
        self.state = TimerState.RUNNING
        self._arm()
        self._notify()

    def pause(self) -> None:
        if self.state is not TimerState.RUNNING:
            return
        self._stop()
        self.state = TimerState.PAUSED
        self._notify()

    def reset(self) -> None:
        self._stop()
        self.remaining = self.duration
        self.state = TimerState.READY
        self._notify()

    def tick(self) -> None:
        """Count down one second; expire instead of going below zero."""
        if self.state is not TimerState.RUNNING:
            return
        if self.remaining <= 1:
            self.remaining = 0
            self._stop()
            self.state = TimerState.EXPIRED
            log.info("Rest complete")
            if self.on_expire is not None:
                self.on_expire(self)
        else:
            self.remaining -= 1
        self._notify()

    def adjust(self, delta: int) -> None:
        if not self.visible:
            return
        remaining = max(self.MIN_SECONDS, self.remaining + delta)
        if remaining != self.remaining:
            self.remaining = remaining
            self.duration = remaining
            self._notify()

    def preset(self, seconds: int) -> None:
        if seconds < 1:
            raise ValueError("preset must be positive")
        if not self.visible:
            return
        self._stop()
        self.duration = seconds
        self.remaining = seconds
        self.state = TimerState.READY
        self._notify()

    def close(self) -> None:
        self._stop()
        self.remaining = self.duration
        self.state = TimerState.IDLE
        self._notify()

    def dispose(self) -> None:
        self._stop()
        self._listeners.clear()

    async def run(self) -> None:
        """Open, start and wait until the countdown expires or is halted."""
        done = asyncio.get_running_loop().create_future()

        def watch(timer: "RestTimer") -> None:
            if timer.state is not TimerState.RUNNING and not done.done():
                done.set_result(timer.state)

        self.open()
        self.start()
        unsubscribe = self.subscribe(watch)
        try:
            await done
        finally:
            unsubscribe()
