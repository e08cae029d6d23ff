"""
Measurement monitor

Wires a biosignal source, the quality gate, the recorder and a ticker
together: quality phase until the gate fires, then a fixed measurement
phase, then the sealed session is handed to the caller.
"""

import logging
import threading
from collections import deque
from enum import Enum
from typing import Callable, Dict, Optional

from ..core.config import MEASUREMENT_DURATION_SEC
from ..core.data_types import AccountRef, Channel, MeasurementSession, QualitySnapshot
from .gate import QualityGate
from .recorder import MeasurementRecorder


class MonitorPhase(Enum):
    IDLE = "idle"
    QUALITY = "quality"
    MEASURING = "measuring"
    DONE = "done"
    STOPPED = "stopped"


class MeasurementMonitor:
    """
    Drives one gate-then-record cycle on a ticker

    The source must expose read_quality(now), read_metrics(now) and a
    sensor_contacted attribute. on_sealed is called exactly once with the
    sealed session.
    """

    def __init__(self, source, gate: QualityGate, ticker, owner: AccountRef,
                 duration_seconds: int = MEASUREMENT_DURATION_SEC,
                 on_sealed: Optional[Callable[[MeasurementSession], None]] = None,
                 on_snapshot: Optional[Callable[[QualitySnapshot], None]] = None):
        self.source = source
        self.gate = gate
        self.ticker = ticker
        self.owner = owner
        self.duration_seconds = duration_seconds
        self.on_sealed = on_sealed
        self.on_snapshot = on_snapshot

        self.phase = MonitorPhase.IDLE
        self.recorder: Optional[MeasurementRecorder] = None
        self.session: Optional[MeasurementSession] = None
        self.last_snapshot: Optional[QualitySnapshot] = None
        self._windows: Dict[Channel, deque] = {
            channel: deque(maxlen=gate.window_size) for channel in Channel
        }
        self._done = threading.Event()

    def start(self):
        self.phase = MonitorPhase.QUALITY
        self.ticker.subscribe(self._on_tick)
        self.ticker.start()
        logging.info(f"Monitoring signal quality ({self.gate.profile.name} profile, "
                     f"{self.gate.required_seconds}s stability required)")

    def stop(self):
        self.ticker.unsubscribe(self._on_tick)
        self.ticker.stop()
        if self.phase != MonitorPhase.DONE:
            self.phase = MonitorPhase.STOPPED
        self._done.set()

    def wait(self, timeout: Optional[float] = None) -> Optional[MeasurementSession]:
        """Block until the session is sealed or the monitor is stopped"""
        self._done.wait(timeout)
        return self.session

    def _snapshot(self, now: float) -> QualitySnapshot:
        samples = self.source.read_quality(now)
        if not samples:
            # Silent upstream: forget stale samples so the gate sees no data
            for window in self._windows.values():
                window.clear()
        for sample in samples:
            self._windows[sample.channel].append(sample)

        merged = [s for window in self._windows.values() for s in window]
        merged.sort(key=lambda s: s.timestamp)
        return self.gate.evaluate(merged, self.source.sensor_contacted)

    def _on_tick(self, now: float):
        if self.phase not in (MonitorPhase.QUALITY, MonitorPhase.MEASURING):
            return

        snapshot = self._snapshot(now)
        self.last_snapshot = snapshot
        if self.on_snapshot is not None:
            self.on_snapshot(snapshot)

        if self.phase == MonitorPhase.QUALITY:
            state = self.gate.tick(snapshot)
            if self.gate.is_ready(state):
                self.recorder = MeasurementRecorder(
                    owner=self.owner,
                    duration_seconds=self.duration_seconds,
                    high_quality_threshold=self.gate.profile.overall,
                    started_at=now,
                )
                self.phase = MonitorPhase.MEASURING
                logging.info(f"Recording {self.recorder.session_id} for {self.duration_seconds}s")
            return

        frame = self.source.read_metrics(now)
        if self.recorder.record(frame, snapshot):
            self.session = self.recorder.seal()
            self.phase = MonitorPhase.DONE
            self.ticker.unsubscribe(self._on_tick)
            self.ticker.stop()
            self._done.set()
            if self.on_sealed is not None:
                self.on_sealed(self.session)
