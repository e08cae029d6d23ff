"""
Offline mock engine for development and testing

Produces a deterministic report from the session's own metrics, formatted
exactly like a model response so the normal parsing path is exercised.
Transport failures, garbage output and latency can be injected.
"""

import asyncio
import json
from typing import Optional

import numpy as np

from ..core.data_types import DataTypes, MeasurementSession, AnalysisResult
from ..core.errors import TransportError
from .base import (
    AnalysisEngine, AnalysisOptions, EngineCapabilities, EngineDescriptor, ValidationResult,
)
from .parsing import parse_analysis_output


MOCK_DESCRIPTOR = EngineDescriptor(
    id="mock-test-v1",
    name="Mock Test Engine",
    version="1.0.0",
    provider="custom",
    cost_per_analysis=0,
    supported_data_types=DataTypes(eeg=True, ppg=True, acc=True),
    capabilities=EngineCapabilities(max_data_duration_sec=600, real_time=True,
                                    languages=("ko", "en"), min_data_quality=10.0),
    description="Offline deterministic engine for development and tests",
)


def risk_for_score(score: float) -> str:
    if score >= 80:
        return "LOW"
    if score >= 60:
        return "MEDIUM"
    if score >= 40:
        return "HIGH"
    return "CRITICAL"


class MockTestEngine(AnalysisEngine):
    """
    Deterministic stand-in for a remote model

    Args:
        transport_failures: Number of initial analyze() calls that raise TransportError
        raw_output: Fixed text to return instead of the generated report
        delay: Seconds to sleep inside analyze()
    """

    def __init__(self, descriptor: EngineDescriptor = MOCK_DESCRIPTOR, transport_failures: int = 0,
                 raw_output: Optional[str] = None, delay: float = 0.0):
        self.descriptor = descriptor
        self.transport_failures = transport_failures
        self.raw_output = raw_output
        self.delay = delay
        self.calls = 0

    def validate(self, session: MeasurementSession) -> ValidationResult:
        warnings = []
        quality_score = 100.0
        present = session.data_types()

        if not (present.eeg or present.ppg or present.acc):
            warnings.append("No biosignal data recorded; using defaults")
            quality_score = 50.0
        else:
            if not present.eeg:
                warnings.append("EEG data missing")
                quality_score *= 0.8
            if not present.ppg:
                warnings.append("PPG data missing")
                quality_score *= 0.8
            if not present.acc:
                warnings.append("ACC data missing")
                quality_score *= 0.9

        return ValidationResult(is_valid=True, warnings=warnings, quality_score=quality_score)

    async def analyze(self, session: MeasurementSession, options: AnalysisOptions) -> AnalysisResult:
        self.calls += 1
        options.report_progress(0.0)

        if self.delay:
            await asyncio.sleep(self.delay)

        if self.calls <= self.transport_failures:
            raise TransportError(f"Simulated transport failure {self.calls}/{self.transport_failures}")

        raw_output = self.raw_output if self.raw_output is not None else self._render(session)
        options.report_progress(0.5)
        result = parse_analysis_output(raw_output, analysis_version="mock_test_v1.0.0")
        options.report_progress(1.0)
        return result

    def _render(self, session: MeasurementSession) -> str:
        stress = session.metric("stressIndex")
        attention = session.metric("attentionIndex")
        stress = 50.0 if stress is None else stress
        attention = 50.0 if attention is None else attention

        score = int(round(float(np.clip(100 - 0.5 * stress + 0.2 * (attention - 50), 0, 100))))
        confidence = round(float(np.clip(session.quality_summary.overall_quality / 100, 0, 1)), 2)

        payload = {
            "overallScore": score,
            "riskLevel": risk_for_score(score),
            "stressAnalysis": {"stressLevel": "high" if stress > 60 else "normal",
                               "stressIndex": round(stress, 1)},
            "focusAnalysis": {"concentrationLevel": "high" if attention > 60 else "normal",
                              "attentionIndex": round(attention, 1)},
            "recommendations": [
                "Take short breathing breaks during the day",
                "Keep a regular sleep schedule",
                "Repeat the measurement at the same time tomorrow",
            ],
            "warnings": [] if stress <= 60 else ["Stress index above the normal range"],
            "confidence": confidence,
        }
        return "Mock analysis\n\n```json\n" + json.dumps(payload, ensure_ascii=False, indent=2) + "\n```\n"
