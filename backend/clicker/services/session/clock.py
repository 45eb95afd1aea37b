import logging
import time
from typing import Callable, Dict, List


logger = logging.getLogger(__name__)


class TickHandle:
    """A periodic tick subscription. Inactive once cancelled."""

    def __init__(self, interval: float, on_tick: Callable[[], None]):
        if interval <= 0:
            raise ValueError('tick interval must be positive')
        self.interval = interval
        self.on_tick = on_tick
        self.active = True
        self.fired = 0

    def fire(self) -> None:
        self.fired += 1
        self.on_tick()


class Clock:
    """Source of periodic ticks for a running session."""

    def subscribe(self, interval: float, on_tick: Callable[[], None]) -> TickHandle:
        raise NotImplementedError

    def cancel(self, handle: TickHandle) -> None:
        handle.active = False


class SocketIOClock(Clock):
    """Ticks on a Flask-SocketIO background task.

    Works with whichever async mode the server runs (threading, eventlet,
    gevent) since sleeping goes through ``socketio.sleep``.
    """

    def __init__(self, socketio):
        self._socketio = socketio

    def subscribe(self, interval: float, on_tick: Callable[[], None]) -> TickHandle:
        handle = TickHandle(interval, on_tick)
        self._socketio.start_background_task(self._run, handle)
        return handle

    def _run(self, handle: TickHandle) -> None:
        deadline = time.monotonic() + handle.interval
        while handle.active:
            self._socketio.sleep(max(0.0, deadline - time.monotonic()))
            if not handle.active:
                break
            try:
                handle.fire()
            except Exception:
                logger.exception('[tick-error] handler raised; stopping subscription')
                handle.active = False
                break
            deadline += handle.interval


class ManualClock(Clock):
    """Clock that only ticks when told to. Used by tests and TICK_CLOCK=manual."""

    def __init__(self):
        self._handles: List[TickHandle] = []
        # time let pass but not yet spent on a full interval, per subscription
        self._pending: Dict[TickHandle, float] = {}

    def subscribe(self, interval: float, on_tick: Callable[[], None]) -> TickHandle:
        handle = TickHandle(interval, on_tick)
        self._handles.append(handle)
        self._pending[handle] = 0.0
        return handle

    def cancel(self, handle: TickHandle) -> None:
        super().cancel(handle)
        if handle in self._handles:
            self._handles.remove(handle)
        self._pending.pop(handle, None)

    @property
    def active_subscriptions(self) -> List[TickHandle]:
        return [h for h in self._handles if h.active]

    def tick(self, count: int = 1) -> None:
        """Fire every active subscription ``count`` times, regardless of interval."""
        for _ in range(count):
            for handle in list(self._handles):
                if handle.active:
                    handle.fire()

    def advance(self, seconds: float) -> None:
        """Let ``seconds`` of time pass, firing each subscription once per interval."""
        for handle in list(self._handles):
            self._pending[handle] += seconds
        progressed = True
        while progressed:
            progressed = False
            for handle in list(self._handles):
                # tolerate float drift from accumulating many small intervals
                if handle.active and self._pending[handle] >= handle.interval - 1e-9:
                    self._pending[handle] -= handle.interval
                    handle.fire()
                    progressed = True

    def run_until_idle(self, max_ticks: int = 1_000_000) -> int:
        """Tick until nothing is subscribed. Returns the number of rounds fired."""
        rounds = 0
        while self.active_subscriptions:
            if rounds >= max_ticks:
                raise RuntimeError(f'clock still busy after {max_ticks} ticks')
            self.tick()
            rounds += 1
        return rounds
