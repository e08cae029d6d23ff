"""
Core data types for bioreport

This module defines the shared data model: quality samples and snapshots used
by the quality gate, the sealed measurement session handed to the analysis
pipeline, and the analysis result produced by an engine.
"""

import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np

from .config import NO_DATA_EEG_QUALITY, NO_DATA_PPG_QUALITY, NO_DATA_MOTION_QUALITY


class Channel(Enum):
    EEG = "eeg"
    PPG = "ppg"
    MOTION = "motion"


class RiskLevel(Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True)
class QualitySample:
    """One signal-quality score (0-100) for one channel"""
    channel: Channel
    score: float
    timestamp: float


@dataclass(frozen=True)
class QualitySnapshot:
    """Smoothed per-channel quality at one evaluation tick"""
    eeg: float
    ppg: float
    motion: float
    overall: float
    sensor_contacted: bool

    @classmethod
    def no_data(cls) -> "QualitySnapshot":
        """Default shown while the upstream sample stream is silent"""
        overall = (NO_DATA_EEG_QUALITY + NO_DATA_PPG_QUALITY + NO_DATA_MOTION_QUALITY) / 3
        return cls(
            eeg=NO_DATA_EEG_QUALITY,
            ppg=NO_DATA_PPG_QUALITY,
            motion=NO_DATA_MOTION_QUALITY,
            overall=overall,
            sensor_contacted=False,
        )


@dataclass(frozen=True)
class StabilityState:
    """Progress of the continuous-stability timer"""
    elapsed_seconds: int = 0
    required: int = 10
    satisfied: bool = False


@dataclass(frozen=True)
class DataTypes:
    """Which biosignal families are present or supported"""
    eeg: bool = False
    ppg: bool = False
    acc: bool = False

    def intersects(self, other: "DataTypes") -> bool:
        return (self.eeg and other.eeg) or (self.ppg and other.ppg) or (self.acc and other.acc)

    def covers(self, other: "DataTypes") -> bool:
        """True if every type set in `other` is also set here"""
        return ((not other.eeg or self.eeg) and
                (not other.ppg or self.ppg) and
                (not other.acc or self.acc))

    def to_dict(self) -> Dict[str, bool]:
        return {"eeg": self.eeg, "ppg": self.ppg, "acc": self.acc}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DataTypes":
        return cls(eeg=bool(data.get("eeg")), ppg=bool(data.get("ppg")), acc=bool(data.get("acc")))


@dataclass(frozen=True)
class MetricStats:
    """Summary statistics of one metric over the recording window"""
    mean: float
    std: float
    min: float
    max: float

    @classmethod
    def from_values(cls, values) -> "MetricStats":
        arr = np.asarray([v for v in values if v is not None], dtype=float)
        if arr.size == 0:
            return cls(mean=0.0, std=0.0, min=0.0, max=0.0)
        return cls(
            mean=float(np.mean(arr)),
            std=float(np.std(arr)),
            min=float(np.min(arr)),
            max=float(np.max(arr)),
        )

    def to_dict(self) -> Dict[str, float]:
        return {"mean": self.mean, "std": self.std, "min": self.min, "max": self.max}


@dataclass(frozen=True)
class SignalSummary:
    """Aggregated metrics of one signal family plus its mean quality"""
    metrics: Dict[str, MetricStats]
    quality_score: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metrics": {name: stats.to_dict() for name, stats in self.metrics.items()},
            "quality_score": self.quality_score,
        }


@dataclass(frozen=True)
class QualitySummary:
    total_data_points: int
    high_quality_data_points: int
    quality_percentage: float
    overall_quality: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_data_points": self.total_data_points,
            "high_quality_data_points": self.high_quality_data_points,
            "quality_percentage": self.quality_percentage,
            "overall_quality": self.overall_quality,
        }


@dataclass(frozen=True)
class AccountRef:
    """The paying account: the user or organization that owns a session"""
    account_id: str
    kind: str = "user"  # "user" or "organization"


@dataclass(frozen=True)
class MetricFrame:
    """One second of upstream summary metrics"""
    timestamp: float
    eeg: Dict[str, float] = field(default_factory=dict)
    ppg: Dict[str, float] = field(default_factory=dict)
    acc: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class MeasurementSession:
    """
    Aggregated result of one fixed-duration recording

    Instances are immutable; `sealed` marks a session that the recorder
    finalised and that the analysis pipeline may consume.
    """
    session_id: str
    owner: AccountRef
    started_at: float
    duration_seconds: int
    eeg_summary: Optional[SignalSummary]
    ppg_summary: Optional[SignalSummary]
    acc_summary: Optional[SignalSummary]
    quality_summary: QualitySummary
    sealed: bool = False

    def _summaries(self):
        return [s for s in (self.eeg_summary, self.ppg_summary, self.acc_summary) if s is not None]

    def metric(self, name: str) -> Optional[float]:
        """Mean value of a named metric, searching EEG, PPG then ACC"""
        for summary in self._summaries():
            if name in summary.metrics:
                return summary.metrics[name].mean
        return None

    def available_metrics(self) -> List[str]:
        names = []
        for summary in self._summaries():
            names.extend(summary.metrics.keys())
        return names

    def data_types(self) -> DataTypes:
        return DataTypes(
            eeg=self.eeg_summary is not None,
            ppg=self.ppg_summary is not None,
            acc=self.acc_summary is not None,
        )

    def to_dict(self) -> Dict[str, Any]:
        def summary_dict(summary):
            return summary.to_dict() if summary is not None else None

        return {
            "session_id": self.session_id,
            "owner": {"account_id": self.owner.account_id, "kind": self.owner.kind},
            "started_at": self.started_at,
            "duration_seconds": self.duration_seconds,
            "eeg_summary": summary_dict(self.eeg_summary),
            "ppg_summary": summary_dict(self.ppg_summary),
            "acc_summary": summary_dict(self.acc_summary),
            "quality_summary": self.quality_summary.to_dict(),
            "sealed": self.sealed,
        }


@dataclass
class AnalysisResult:
    """Normalized output of one analysis engine run"""
    raw_output: str
    overall_score: float
    risk_level: str
    recommendations: List[str]
    warnings: List[str] = field(default_factory=list)
    confidence: float = 0.0
    analysis_version: str = ""
    stress_analysis: Optional[Dict[str, Any]] = None
    focus_analysis: Optional[Dict[str, Any]] = None
    created_at: float = field(default_factory=time.time)

    def invariant_violations(self) -> List[str]:
        """
        Check the bounded fields

        Returns:
            List[str]: Human-readable violations, empty when the result is valid
        """
        problems = []

        if not _is_number(self.overall_score) or not 0 <= self.overall_score <= 100:
            problems.append(f"overall_score out of range: {self.overall_score!r}")

        if not isinstance(self.risk_level, str) or self.risk_level not in {level.value for level in RiskLevel}:
            problems.append(f"invalid risk_level: {self.risk_level!r}")

        for name in ("stress_analysis", "focus_analysis"):
            section = getattr(self, name)
            if section is not None and not isinstance(section, dict):
                problems.append(f"{name} must be an object: {section!r}")

        if (not isinstance(self.recommendations, list) or not self.recommendations
                or not all(isinstance(r, str) and r.strip() for r in self.recommendations)):
            problems.append("recommendations must be a non-empty list of strings")

        if not isinstance(self.warnings, list):
            problems.append("warnings must be a list")

        if not _is_number(self.confidence) or not 0 <= self.confidence <= 1:
            problems.append(f"confidence out of range: {self.confidence!r}")

        return problems

    def is_valid(self) -> bool:
        return not self.invariant_violations()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "raw_output": self.raw_output,
            "overall_score": self.overall_score,
            "risk_level": self.risk_level,
            "stress_analysis": self.stress_analysis,
            "focus_analysis": self.focus_analysis,
            "recommendations": list(self.recommendations),
            "warnings": list(self.warnings),
            "confidence": self.confidence,
            "analysis_version": self.analysis_version,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisResult":
        return cls(
            raw_output=data.get("raw_output", ""),
            overall_score=data.get("overall_score"),
            risk_level=data.get("risk_level"),
            recommendations=list(data.get("recommendations") or []),
            warnings=list(data.get("warnings") or []),
            confidence=data.get("confidence"),
            analysis_version=data.get("analysis_version", ""),
            stress_analysis=data.get("stress_analysis"),
            focus_analysis=data.get("focus_analysis"),
            created_at=data.get("created_at", time.time()),
        )


def _is_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)
