"""
Measurement-to-report pipeline

This module handles the job model, the orchestrator state machine and the
report renderers.
"""

from .jobs import PipelineJob, Stage, STAGE_ORDER, TERMINAL_STAGES, can_transition
from .rendering import RenderedReport, ReportRenderer, HtmlReportRenderer, JsonReportRenderer
from .orchestrator import AnalysisOrchestrator

__all__ = [
    'PipelineJob', 'Stage', 'STAGE_ORDER', 'TERMINAL_STAGES', 'can_transition',
    'RenderedReport', 'ReportRenderer', 'HtmlReportRenderer', 'JsonReportRenderer',
    'AnalysisOrchestrator',
]
