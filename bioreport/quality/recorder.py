"""
Fixed-duration measurement recorder

Collects one metric frame and one quality snapshot per tick once the
quality gate has fired, then seals the aggregate into an immutable
MeasurementSession.
"""

import logging
import time
import uuid
from typing import Dict, List, Optional

import numpy as np

from ..core.config import MEASUREMENT_DURATION_SEC, GATE_PROFILES, DEFAULT_GATE_PROFILE
from ..core.data_types import (
    AccountRef, MetricFrame, QualitySnapshot, MetricStats, SignalSummary,
    QualitySummary, MeasurementSession,
)


class MeasurementRecorder:
    """
    Accumulates per-second frames into a MeasurementSession

    Frames beyond the configured duration are ignored. seal() may only be
    called once the duration is complete and always returns the same
    session afterwards.
    """

    def __init__(self, owner: AccountRef, duration_seconds: int = MEASUREMENT_DURATION_SEC,
                 high_quality_threshold: Optional[float] = None,
                 session_id: Optional[str] = None, started_at: Optional[float] = None):
        if duration_seconds <= 0:
            raise ValueError("duration_seconds must be positive")

        self.owner = owner
        self.duration_seconds = duration_seconds
        if high_quality_threshold is None:
            high_quality_threshold = GATE_PROFILES[DEFAULT_GATE_PROFILE]["overall"]
        self.high_quality_threshold = high_quality_threshold
        self.session_id = session_id or f"session-{uuid.uuid4().hex[:12]}"
        self.started_at = time.time() if started_at is None else started_at

        self.frames: List[MetricFrame] = []
        self.snapshots: List[QualitySnapshot] = []
        self._sealed: Optional[MeasurementSession] = None

    @property
    def elapsed_seconds(self) -> int:
        return len(self.frames)

    @property
    def is_complete(self) -> bool:
        return len(self.frames) >= self.duration_seconds

    def record(self, frame: MetricFrame, snapshot: QualitySnapshot) -> bool:
        """
        Add one second of data

        Returns:
            bool: True once the recording window is complete
        """
        if self.is_complete:
            return True

        self.frames.append(frame)
        self.snapshots.append(snapshot)

        if self.is_complete:
            logging.info(f"Recording {self.session_id} complete ({self.duration_seconds}s)")
        return self.is_complete

    def draft(self) -> MeasurementSession:
        """Unsealed view of the data recorded so far"""
        return self._build(sealed=False)

    def seal(self) -> MeasurementSession:
        """
        Finalise the recording

        Raises:
            ValueError: If the recording window is not complete yet
        """
        if self._sealed is not None:
            return self._sealed

        if not self.is_complete:
            raise ValueError(
                f"Cannot seal {self.session_id}: {self.elapsed_seconds}/{self.duration_seconds}s recorded"
            )

        self._sealed = self._build(sealed=True)
        logging.info(f"Sealed session {self.session_id}: "
                     f"{self._sealed.quality_summary.quality_percentage:.1f}% high-quality points")
        return self._sealed

    def _build(self, sealed: bool) -> MeasurementSession:
        return MeasurementSession(
            session_id=self.session_id,
            owner=self.owner,
            started_at=self.started_at,
            duration_seconds=self.elapsed_seconds,
            eeg_summary=self._summarise("eeg", [s.eeg for s in self.snapshots]),
            ppg_summary=self._summarise("ppg", [s.ppg for s in self.snapshots]),
            acc_summary=self._summarise("acc", [s.motion for s in self.snapshots]),
            quality_summary=self._quality_summary(),
            sealed=sealed,
        )

    def _summarise(self, family: str, quality_scores: List[float]) -> Optional[SignalSummary]:
        values: Dict[str, List[float]] = {}
        for frame in self.frames:
            for name, value in getattr(frame, family).items():
                values.setdefault(name, []).append(value)

        if not values:
            return None

        metrics = {name: MetricStats.from_values(series) for name, series in values.items()}
        quality = float(np.mean(quality_scores)) if quality_scores else 0.0
        return SignalSummary(metrics=metrics, quality_score=quality)

    def _quality_summary(self) -> QualitySummary:
        total = len(self.snapshots)
        if total == 0:
            return QualitySummary(0, 0, 0.0, 0.0)

        overall = np.array([s.overall for s in self.snapshots])
        high = int(np.count_nonzero(overall >= self.high_quality_threshold))
        return QualitySummary(
            total_data_points=total,
            high_quality_data_points=high,
            quality_percentage=100.0 * high / total,
            overall_quality=float(np.mean(overall)),
        )
