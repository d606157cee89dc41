import asyncio
import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from rest_timer import RestTimer, TimerState


class FakeHandle:
    def __init__(self, scheduler, callback) -> None:
        self.scheduler = scheduler
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Collects scheduled ticks so tests can fire them by hand."""

    def __init__(self) -> None:
        self.handles = []

    def __call__(self, delay, callback):
        handle = FakeHandle(self, callback)
        self.handles.append(handle)
        return handle

    @property
    def active(self):
        return [h for h in self.handles if not h.cancelled and h.callback is not None]

    def fire(self, times: int = 1) -> None:
        for _ in range(times):
            [handle] = self.active
            callback, handle.callback = handle.callback, None
            callback()


class RestTimerTest(unittest.TestCase):
    def setUp(self) -> None:
        self.scheduler = FakeScheduler()
        self.expired = []
        self.timer = RestTimer(90, schedule=self.scheduler, on_expire=self.expired.append)

    def test_open_start_and_tick(self) -> None:
        self.assertEqual(self.timer.state, TimerState.IDLE)
        self.timer.open()
        self.assertEqual((self.timer.state, self.timer.remaining), (TimerState.READY, 90))
        self.timer.start()
        self.scheduler.fire(30)
        self.assertEqual(self.timer.remaining, 60)
        self.assertEqual(self.timer.label, "1:00")
        self.assertEqual(len(self.scheduler.active), 1)

    def test_pause_resumes_without_reset(self) -> None:
        self.timer.open()
        self.timer.start()
        self.scheduler.fire(5)
        self.timer.pause()
        self.assertEqual(self.timer.state, TimerState.PAUSED)
        self.assertEqual(self.scheduler.active, [])
        self.timer.tick()
        self.assertEqual(self.timer.remaining, 85)
        self.timer.start()
        self.scheduler.fire()
        self.assertEqual(self.timer.remaining, 84)

    def test_start_ignored_unless_ready_or_paused(self) -> None:
        self.timer.start()
        self.assertEqual(self.timer.state, TimerState.IDLE)
        self.timer.open()
        self.timer.start()
        self.timer.start()
        self.assertEqual(len(self.scheduler.active), 1)

    def test_expires_once_at_zero(self) -> None:
        timer = RestTimer(12, schedule=self.scheduler, on_expire=self.expired.append)
        timer.open()
        timer.start()
        self.scheduler.fire(12)
        self.assertEqual(timer.remaining, 0)
        self.assertEqual(timer.state, TimerState.EXPIRED)
        self.assertEqual(self.expired, [timer])
        self.assertEqual(self.scheduler.active, [])
        timer.tick()
        self.assertEqual(timer.remaining, 0)
        self.assertEqual(len(self.expired), 1)

    def test_adjust_after_expiry_allows_restart(self) -> None:
        timer = RestTimer(12, schedule=self.scheduler)
        timer.open()
        timer.start()
        self.scheduler.fire(12)
        self.assertEqual(timer.state, TimerState.EXPIRED)
        timer.adjust(30)
        self.assertEqual((timer.remaining, timer.duration), (30, 30))
        self.assertEqual(timer.state, TimerState.EXPIRED)
        timer.start()
        self.assertEqual(timer.state, TimerState.RUNNING)
        self.scheduler.fire()
        self.assertEqual(timer.remaining, 29)

    def test_expired_without_time_cannot_start(self) -> None:
        timer = RestTimer(10, schedule=self.scheduler)
        timer.open()
        timer.start()
        self.scheduler.fire(10)
        timer.start()
        self.assertEqual(timer.state, TimerState.EXPIRED)
        self.assertEqual(self.scheduler.active, [])

    def test_adjust_clamps_and_becomes_duration(self) -> None:
        timer = RestTimer(20, schedule=self.scheduler)
        timer.open()
        timer.adjust(-30)
        self.assertEqual(timer.remaining, 10)
        timer.adjust(-10)
        self.assertEqual(timer.remaining, 10)
        timer.reset()
        self.assertEqual(timer.remaining, 10)
        timer.adjust(30)
        self.assertEqual(timer.duration, 40)

    def test_adjust_ignored_when_hidden(self) -> None:
        self.timer.adjust(30)
        self.assertEqual(self.timer.remaining, 90)

    def test_adjust_keeps_counting(self) -> None:
        self.timer.open()
        self.timer.start()
        self.timer.adjust(10)
        self.assertEqual(self.timer.state, TimerState.RUNNING)
        self.scheduler.fire()
        self.assertEqual(self.timer.remaining, 99)

    def test_preset_halts_and_sets_duration(self) -> None:
        self.timer.open()
        self.timer.start()
        self.timer.preset(120)
        self.assertEqual((self.timer.state, self.timer.remaining), (TimerState.READY, 120))
        self.assertEqual(self.scheduler.active, [])
        self.timer.reset()
        self.assertEqual(self.timer.remaining, 120)
        self.assertEqual(self.timer.label, "2:00")
        with self.assertRaises(ValueError):
            self.timer.preset(0)

    def test_close_and_dispose_stop_driver(self) -> None:
        self.timer.open()
        self.timer.start()
        self.scheduler.fire(3)
        self.timer.close()
        self.assertEqual((self.timer.state, self.timer.remaining), (TimerState.IDLE, 90))
        self.assertEqual(self.scheduler.active, [])
        self.timer.open()
        self.timer.start()
        self.timer.dispose()
        self.assertEqual(self.scheduler.active, [])

    def test_subscribers_see_changes(self) -> None:
        states = []
        self.timer.subscribe(lambda t: states.append(t.state))
        self.timer.open()
        self.timer.start()
        self.timer.pause()
        self.assertEqual(states, [TimerState.READY, TimerState.RUNNING, TimerState.PAUSED])

    def test_runs_on_event_loop(self) -> None:
        timer = RestTimer(10, interval=0.001, on_expire=self.expired.append)
        asyncio.run(timer.run())
        self.assertEqual(timer.state, TimerState.EXPIRED)
        self.assertEqual(self.expired, [timer])


if __name__ == "__main__":
    unittest.main()
