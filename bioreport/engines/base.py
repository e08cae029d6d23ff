"""
Analysis engine descriptors and executor interface

An engine is a pluggable analysis backend. Its descriptor states what it
costs and which data it understands; its executor validates a session and
runs the analysis.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..core.config import OUTPUT_LANGUAGE, ANALYSIS_DEPTH
from ..core.data_types import DataTypes, MeasurementSession, AnalysisResult


class EngineStatus(Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


@dataclass(frozen=True)
class EngineCapabilities:
    max_data_duration_sec: int = 300
    real_time: bool = False
    languages: Tuple[str, ...] = ("ko", "en")
    min_data_quality: float = 0.0     # Minimum session overall quality (0-100)


@dataclass(frozen=True)
class EngineDescriptor:
    """Static description of an engine, registered once at start-up"""
    id: str
    name: str
    version: str
    provider: str
    cost_per_analysis: int
    supported_data_types: DataTypes
    capabilities: EngineCapabilities = field(default_factory=EngineCapabilities)
    status: EngineStatus = EngineStatus.ACTIVE
    description: str = ""
    required_metrics: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "version": self.version,
            "provider": self.provider,
            "cost_per_analysis": self.cost_per_analysis,
            "supported_data_types": self.supported_data_types.to_dict(),
            "capabilities": {
                "max_data_duration_sec": self.capabilities.max_data_duration_sec,
                "real_time": self.capabilities.real_time,
                "languages": list(self.capabilities.languages),
                "min_data_quality": self.capabilities.min_data_quality,
            },
            "status": self.status.value,
            "description": self.description,
            "required_metrics": list(self.required_metrics),
        }


@dataclass
class ValidationResult:
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    quality_score: float = 0.0


@dataclass
class AnalysisOptions:
    """
    Per-run options handed to an engine

    progress, when set, receives the engine's sub-progress as a fraction
    between 0 and 1.
    """
    output_language: str = OUTPUT_LANGUAGE
    analysis_depth: str = ANALYSIS_DEPTH
    progress: Optional[Callable[[float], None]] = None

    def report_progress(self, fraction: float):
        if self.progress is None:
            return
        try:
            self.progress(min(max(fraction, 0.0), 1.0))
        except Exception as e:
            logging.warning(f"Progress callback failed: {e}")


class AnalysisEngine(ABC):
    """Executor side of an engine"""

    @abstractmethod
    def validate(self, session: MeasurementSession) -> ValidationResult:
        """Check whether the session carries what this engine needs"""

    @abstractmethod
    async def analyze(self, session: MeasurementSession, options: AnalysisOptions) -> AnalysisResult:
        """
        Run the analysis

        Raises:
            TransportError: The remote endpoint failed (retryable)
            AnalysisParseError: The output could not be parsed
        """
