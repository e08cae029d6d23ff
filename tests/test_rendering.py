"""Tests for the HTML and JSON report renderers"""

import json

from bioreport.core.data_types import AnalysisResult
from bioreport.pipeline.jobs import PipelineJob
from bioreport.pipeline.rendering import HtmlReportRenderer, JsonReportRenderer


def make_job(degraded=False):
    return PipelineJob(job_id="job-1", session_id="s-1", engine_id="mock-test-v1",
                       account_id="acct-1", degraded=degraded, warnings=["ACC data missing"])


def make_result(confidence=0.9, **overrides):
    values = dict(
        raw_output="raw text",
        overall_score=82.0,
        risk_level="LOW",
        recommendations=["Sleep <b>well</b>", "Drink water"],
        warnings=["Check <script>alert(1)</script>"],
        confidence=confidence,
        analysis_version="mock_test_v1.0.0",
        stress_analysis={"stressLevel": "normal", "stressFactors": ["work", "noise"]},
        focus_analysis=None,
    )
    values.update(overrides)
    return AnalysisResult(**values)


class TestHtmlReportRenderer:
    def test_model_text_is_escaped(self):
        report = HtmlReportRenderer().render(make_job(), make_result())

        assert report.format == "html"
        assert report.content_type == "text/html"
        assert "<script>" not in report.content
        assert "&lt;script&gt;" in report.content
        assert "Sleep &lt;b&gt;well&lt;/b&gt;" in report.content

    def test_sections(self):
        content = HtmlReportRenderer().render(make_job(), make_result()).content

        assert "Overall score: 82.0" in content
        assert "Risk level: LOW" in content
        assert "Confidence: 90%" in content
        assert "work, noise" in content
        assert "<h2>Focus</h2>" not in content

    def test_no_banner_for_confident_result(self):
        content = HtmlReportRenderer().render(make_job(), make_result()).content

        assert "low-confidence" not in content

    def test_banner_for_degraded_or_low_confidence(self):
        degraded = HtmlReportRenderer().render(make_job(degraded=True), make_result()).content
        unsure = HtmlReportRenderer().render(make_job(), make_result(confidence=0.4)).content

        assert "low confidence" in degraded
        assert "low confidence" in unsure

    def test_non_mapping_section_is_escaped_text(self):
        result = make_result(focus_analysis="<i>scattered</i>")

        content = HtmlReportRenderer().render(make_job(), result).content

        assert "<h2>Focus</h2>" in content
        assert "&lt;i&gt;scattered&lt;/i&gt;" in content


class TestJsonReportRenderer:
    def test_payload(self):
        report = JsonReportRenderer().render(make_job(), make_result())
        payload = json.loads(report.content)

        assert report.content_type == "application/json"
        assert payload["job_id"] == "job-1"
        assert payload["low_confidence"] is False
        assert payload["warnings"] == ["ACC data missing"]
        assert payload["report"]["overall_score"] == 82.0
        assert "raw_output" not in payload["report"]

    def test_degraded_flag(self):
        payload = json.loads(JsonReportRenderer().render(make_job(degraded=True), make_result()).content)

        assert payload["degraded"] is True
        assert payload["low_confidence"] is True
