"""
Signal-quality gate

This module decides when a live measurement is stable enough to record.
Quality samples are smoothed per channel over a sliding window, checked
against a named gating profile, and a one-second stability timer must run
uninterrupted for the required number of ticks before the gate fires.
"""

import logging
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Sequence, Union

import numpy as np

from ..core.config import (
    GATE_PROFILES, DEFAULT_GATE_PROFILE, QUALITY_WINDOW_SIZE, STABILITY_REQUIRED_SEC,
    NO_DATA_MOTION_QUALITY,
)
from ..core.data_types import Channel, QualitySample, QualitySnapshot, StabilityState


@dataclass(frozen=True)
class GateProfile:
    """
    Thresholds for the gating predicate

    A per-channel threshold of None means the channel has no floor of its
    own and only contributes through the overall score.
    """
    name: str
    overall: float
    eeg: Optional[float] = None
    ppg: Optional[float] = None
    require_contact: bool = True

    def passes(self, snapshot: QualitySnapshot) -> bool:
        if self.require_contact and not snapshot.sensor_contacted:
            return False
        if snapshot.overall < self.overall:
            return False
        if self.eeg is not None and snapshot.eeg < self.eeg:
            return False
        if self.ppg is not None and snapshot.ppg < self.ppg:
            return False
        return True


PROFILES: Dict[str, GateProfile] = {
    name: GateProfile(name=name, **values) for name, values in GATE_PROFILES.items()
}


def get_profile(name: str) -> GateProfile:
    """Look up a named profile, raising ValueError for unknown names"""
    try:
        return PROFILES[name]
    except KeyError:
        raise ValueError(f"Unknown gate profile: {name} (choose from {sorted(PROFILES)})")


class QualityGate:
    """
    Stability gate over live signal quality

    The gate never raises: bad input degrades to the no-data snapshot or to
    a failing predicate. Once the stability timer reaches the required
    number of seconds the gate fires exactly once and ignores further ticks
    until reopen() is called.
    """

    def __init__(self, profile: Union[str, GateProfile] = DEFAULT_GATE_PROFILE,
                 window_size: int = QUALITY_WINDOW_SIZE,
                 required_seconds: int = STABILITY_REQUIRED_SEC):
        self.profile = get_profile(profile) if isinstance(profile, str) else profile
        self.window_size = window_size
        self.required_seconds = required_seconds
        self.state = StabilityState(required=required_seconds)
        self._fired = False
        self._callbacks: List[Callable[[StabilityState], None]] = []

    def evaluate(self, samples: Sequence[QualitySample],
                 sensor_contacted: bool = True) -> QualitySnapshot:
        """
        Smooth raw samples into a quality snapshot

        Args:
            samples: Quality samples in arrival order (oldest first)
            sensor_contacted: Whether the headset currently touches the skin

        Returns:
            QualitySnapshot: Per-channel means over the last window_size
            samples of each channel; the no-data default if samples is empty
        """
        try:
            if not samples:
                return QualitySnapshot.no_data()

            by_channel: Dict[Channel, List[float]] = {channel: [] for channel in Channel}
            for sample in samples:
                by_channel[sample.channel].append(sample.score)

            eeg = self._window_mean(by_channel[Channel.EEG], 0.0)
            ppg = self._window_mean(by_channel[Channel.PPG], 0.0)
            motion = self._window_mean(by_channel[Channel.MOTION], NO_DATA_MOTION_QUALITY)

            # Contact loss invalidates the bio-signal channels but not motion
            if not sensor_contacted:
                eeg = ppg = 0.0

            return QualitySnapshot(
                eeg=eeg,
                ppg=ppg,
                motion=motion,
                overall=(eeg + ppg + motion) / 3,
                sensor_contacted=sensor_contacted,
            )

        except Exception as e:
            logging.error(f"Quality evaluation failed: {e}")
            return QualitySnapshot.no_data()

    def _window_mean(self, scores: List[float], empty_value: float) -> float:
        if not scores:
            return empty_value
        return float(np.mean(scores[-self.window_size:]))

    def is_passing(self, snapshot: QualitySnapshot) -> bool:
        """Evaluate the profile predicate for one snapshot"""
        try:
            return self.profile.passes(snapshot)
        except Exception as e:
            logging.error(f"Quality predicate failed: {e}")
            return False

    def tick(self, snapshot: QualitySnapshot) -> StabilityState:
        """
        Advance the stability timer by one second

        Returns:
            StabilityState: The updated timer; unchanged once the gate fired
        """
        if self._fired:
            return self.state

        if self.is_passing(snapshot):
            elapsed = self.state.elapsed_seconds + 1
        else:
            if self.state.elapsed_seconds > 0:
                logging.debug(f"Stability reset after {self.state.elapsed_seconds}s "
                              f"(overall={snapshot.overall:.1f}, contact={snapshot.sensor_contacted})")
            elapsed = 0

        satisfied = elapsed >= self.required_seconds
        self.state = replace(self.state, elapsed_seconds=elapsed, satisfied=satisfied)

        if satisfied:
            self._fired = True
            logging.info(f"Quality gate ready after {elapsed}s of stable signal ({self.profile.name} profile)")
            self._notify()

        return self.state

    def is_ready(self, state: Optional[StabilityState] = None) -> bool:
        state = self.state if state is None else state
        return state.satisfied

    def on_ready(self, callback: Callable[[StabilityState], None]):
        """Register a callback invoked once when the gate fires"""
        self._callbacks.append(callback)

    def _notify(self):
        for callback in self._callbacks:
            try:
                callback(self.state)
            except Exception as e:
                logging.error(f"Gate ready callback failed: {e}")

    def reopen(self):
        """Reset the timer so the gate can fire again"""
        self.state = StabilityState(required=self.required_seconds)
        self._fired = False
        logging.debug("Quality gate reopened")
