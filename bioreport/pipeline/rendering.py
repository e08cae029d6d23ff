"""
Report renderers

Rendering is a pure function of the job and its AnalysisResult. Each
renderer produces one format; the orchestrator stores every rendered
format on the job keyed by format name.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from html import escape
from typing import Any, Dict

from ..core.data_types import AnalysisResult
from .jobs import PipelineJob

LOW_CONFIDENCE = 0.5


@dataclass(frozen=True)
class RenderedReport:
    format: str
    content_type: str
    content: str


class ReportRenderer(ABC):
    format = ""
    content_type = "text/plain"

    @abstractmethod
    def render(self, job: PipelineJob, result: AnalysisResult) -> RenderedReport:
        """Render one result"""


def _is_low_confidence(job: PipelineJob, result: AnalysisResult) -> bool:
    return job.degraded or result.confidence < LOW_CONFIDENCE


class JsonReportRenderer(ReportRenderer):
    """Structured payload for API consumers"""

    format = "json"
    content_type = "application/json"

    def payload(self, job: PipelineJob, result: AnalysisResult) -> Dict[str, Any]:
        report = result.to_dict()
        report.pop("raw_output", None)
        return {
            "job_id": job.job_id,
            "session_id": job.session_id,
            "engine_id": job.engine_id,
            "degraded": job.degraded,
            "low_confidence": _is_low_confidence(job, result),
            "warnings": list(job.warnings),
            "report": report,
        }

    def render(self, job: PipelineJob, result: AnalysisResult) -> RenderedReport:
        content = json.dumps(self.payload(job, result), ensure_ascii=False, indent=2)
        return RenderedReport(self.format, self.content_type, content)


class HtmlReportRenderer(ReportRenderer):
    """Self-contained HTML page; every model-provided string is escaped"""

    format = "html"
    content_type = "text/html"

    def _section(self, title: str, analysis) -> str:
        if not analysis:
            return ""
        if not isinstance(analysis, dict):
            return f"<section><h2>{escape(title)}</h2><p>{escape(str(analysis))}</p></section>"
        rows = []
        for key, value in analysis.items():
            if isinstance(value, list):
                value = ", ".join(str(v) for v in value)
            rows.append(f"<tr><th>{escape(str(key))}</th><td>{escape(str(value))}</td></tr>")
        return f"<section><h2>{escape(title)}</h2><table>{''.join(rows)}</table></section>"

    def _list(self, title: str, items, css_class: str) -> str:
        if not items:
            return ""
        entries = "".join(f"<li>{escape(str(item))}</li>" for item in items)
        return f'<section class="{css_class}"><h2>{escape(title)}</h2><ul>{entries}</ul></section>'

    def render(self, job: PipelineJob, result: AnalysisResult) -> RenderedReport:
        parts = [
            "<!DOCTYPE html>",
            '<html><head><meta charset="utf-8">',
            f"<title>Analysis report {escape(job.session_id)}</title></head><body>",
        ]

        if _is_low_confidence(job, result):
            parts.append(
                '<div class="banner low-confidence">This analysis has low confidence. '
                "Consider measuring again.</div>"
            )

        parts.append(f"<h1>Overall score: {escape(str(result.overall_score))}</h1>")
        parts.append(f'<p class="risk risk-{escape(str(result.risk_level)).lower()}">'
                     f"Risk level: {escape(str(result.risk_level))}</p>")
        parts.append(f'<p class="confidence">Confidence: {result.confidence:.0%}</p>')
        parts.append(self._section("Stress", result.stress_analysis))
        parts.append(self._section("Focus", result.focus_analysis))
        parts.append(self._list("Recommendations", result.recommendations, "recommendations"))
        parts.append(self._list("Warnings", result.warnings, "warnings"))
        parts.append(f'<footer>Engine {escape(job.engine_id)}, '
                     f"version {escape(result.analysis_version)}</footer>")
        parts.append("</body></html>")

        return RenderedReport(self.format, self.content_type, "\n".join(p for p in parts if p))
