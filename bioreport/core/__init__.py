"""
Core data types, configuration and errors for bioreport

This module contains the shared data model used by every other package.
"""

from .data_types import (
    Channel, RiskLevel, QualitySample, QualitySnapshot, StabilityState,
    DataTypes, MetricStats, SignalSummary, QualitySummary, AccountRef,
    MetricFrame, MeasurementSession, AnalysisResult,
)
from .errors import ErrorKind, PipelineError
from .config import PipelineConfig, validate_config

__all__ = [
    'Channel', 'RiskLevel', 'QualitySample', 'QualitySnapshot', 'StabilityState',
    'DataTypes', 'MetricStats', 'SignalSummary', 'QualitySummary', 'AccountRef',
    'MetricFrame', 'MeasurementSession', 'AnalysisResult',
    'ErrorKind', 'PipelineError', 'PipelineConfig', 'validate_config',
]
