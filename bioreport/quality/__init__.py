"""
Signal-quality gating and measurement recording

This module handles the stability gate, the tick timers that drive it,
and the recorder that seals a measurement session.
"""

from .gate import GateProfile, PROFILES, QualityGate, get_profile
from .timer import ManualTicker, IntervalTicker
from .recorder import MeasurementRecorder
from .monitor import MeasurementMonitor, MonitorPhase

__all__ = [
    'GateProfile', 'PROFILES', 'QualityGate', 'get_profile',
    'ManualTicker', 'IntervalTicker',
    'MeasurementRecorder', 'MeasurementMonitor', 'MonitorPhase',
]
