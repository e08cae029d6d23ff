"""
bioreport - Biosignal measurement to AI report pipeline

Gates a live EEG/PPG measurement on signal-quality stability, records a
fixed-duration session, selects an analysis engine under cost and
capability constraints, and drives the analysis job through rendering and
persistence with credit accounting.

Python: 3.10+
"""

__version__ = "1.0.0"

# Pipeline first: storage imports the job model from it
from .pipeline import AnalysisOrchestrator, PipelineJob, Stage
from .core.data_types import (
    QualitySample, QualitySnapshot, StabilityState, MeasurementSession, AnalysisResult,
    AccountRef, DataTypes,
)
from .core.errors import ErrorKind
from .acquisition.sources import BrainFlowQualitySource, FakeBiosignalSource
from .quality import QualityGate, MeasurementRecorder, MeasurementMonitor, ManualTicker, IntervalTicker
from .engines import EngineCatalog, EngineDescriptor, register_default_engines
from .ledger import CostLedger, InMemoryCostLedger
from .storage import ReportStore, InMemoryReportStore, JsonFileReportStore

__all__ = [
    'AnalysisOrchestrator', 'PipelineJob', 'Stage',
    'QualitySample', 'QualitySnapshot', 'StabilityState', 'MeasurementSession',
    'AnalysisResult', 'AccountRef', 'DataTypes', 'ErrorKind',
    'BrainFlowQualitySource', 'FakeBiosignalSource',
    'QualityGate', 'MeasurementRecorder', 'MeasurementMonitor', 'ManualTicker', 'IntervalTicker',
    'EngineCatalog', 'EngineDescriptor', 'register_default_engines',
    'CostLedger', 'InMemoryCostLedger',
    'ReportStore', 'InMemoryReportStore', 'JsonFileReportStore',
]
