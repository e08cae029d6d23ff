"""
Report persistence
"""

from .report_store import ReportStore, InMemoryReportStore, JsonFileReportStore

__all__ = ['ReportStore', 'InMemoryReportStore', 'JsonFileReportStore']
