"""
Tick timers for the stability clock

ManualTicker runs on a virtual clock that tests advance explicitly;
IntervalTicker fires from a background thread at a fixed cadence.
"""

import logging
import threading
import time
from typing import Callable, List, Optional

from ..core.config import TICK_INTERVAL_SEC

TickCallback = Callable[[float], None]


class _TickerBase:
    def __init__(self, interval: float = TICK_INTERVAL_SEC):
        if interval <= 0:
            raise ValueError("Tick interval must be positive")
        self.interval = interval
        self._callbacks: List[TickCallback] = []
        self.running = False

    def subscribe(self, callback: TickCallback):
        self._callbacks.append(callback)

    def unsubscribe(self, callback: TickCallback):
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _fire(self, now: float):
        for callback in list(self._callbacks):
            try:
                callback(now)
            except Exception as e:
                logging.error(f"Tick callback failed: {e}")


class ManualTicker(_TickerBase):
    """Virtual clock: ticks only fire from advance()"""

    def __init__(self, interval: float = TICK_INTERVAL_SEC, start_time: float = 0.0):
        super().__init__(interval)
        self._now = start_time
        self._carry = 0.0

    def now(self) -> float:
        return self._now

    def start(self):
        self.running = True

    def stop(self):
        self.running = False

    def advance(self, seconds: float) -> int:
        """
        Move the virtual clock forward

        Returns:
            int: Number of ticks fired
        """
        self._carry += seconds
        fired = 0
        while self.running and self._carry >= self.interval:
            self._carry -= self.interval
            self._now += self.interval
            self._fire(self._now)
            fired += 1
        return fired


class IntervalTicker(_TickerBase):
    """Wall-clock ticker on a daemon thread"""

    def __init__(self, interval: float = TICK_INTERVAL_SEC):
        super().__init__(interval)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def now(self) -> float:
        return time.time()

    def start(self):
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="bioreport-ticker", daemon=True)
        self.running = True
        self._thread.start()

    def _run(self):
        while not self._stop_event.wait(self.interval):
            self._fire(self.now())
        self.running = False

    def stop(self, timeout: Optional[float] = None):
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self.running = False
