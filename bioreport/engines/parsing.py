"""
AI output parsing and the fallback result

The model is asked for one fenced JSON block. Extraction tries that block
first and then the outermost {...} span; anything else is a parse error
that the orchestrator answers with fallback_result().
"""

import json
import re
from typing import Any, Dict, List, Optional

from ..core.data_types import AnalysisResult
from ..core.errors import AnalysisParseError

FENCED_JSON = re.compile(r"```json\s*\n(.*?)\n?\s*```", re.DOTALL)
REQUIRED_FIELDS = ("overallScore", "riskLevel", "recommendations")
DEFAULT_CONFIDENCE = 0.85
FALLBACK_VERSION = "fallback_v1"
FALLBACK_CONFIDENCE = 0.3


def json_candidates(text: str) -> List[str]:
    """Candidate JSON strings in the order they should be tried"""
    candidates = [match.group(1) for match in FENCED_JSON.finditer(text)][:1]

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        span = text[start:end + 1]
        if span not in candidates:
            candidates.append(span)
    return candidates


def extract_json_block(text: str) -> Optional[Dict[str, Any]]:
    """First candidate that decodes to a JSON object, or None"""
    for candidate in json_candidates(text or ""):
        try:
            data = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(data, dict):
            return data
    return None


def _number(value):
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return value
    return value


def _section(value):
    if isinstance(value, str):
        return {"summary": value.strip()} if value.strip() else None
    return value


def parse_analysis_output(raw_output: str, analysis_version: str = "") -> AnalysisResult:
    """
    Turn raw model text into an AnalysisResult

    Range checks are left to AnalysisResult.invariant_violations(); this
    function only fails on structure.

    Raises:
        AnalysisParseError: No JSON object found or required fields missing
    """
    data = extract_json_block(raw_output)
    if data is None:
        raise AnalysisParseError("No valid JSON found in response", raw_output=raw_output)

    missing = [name for name in REQUIRED_FIELDS if name not in data]
    if missing:
        raise AnalysisParseError(f"Missing required fields: {', '.join(missing)}", raw_output=raw_output)

    risk_level = data["riskLevel"]
    if isinstance(risk_level, str):
        risk_level = risk_level.strip().upper()

    recommendations = data["recommendations"]
    if isinstance(recommendations, str):
        recommendations = [recommendations]

    warnings = data.get("warnings") or []
    if isinstance(warnings, str):
        warnings = [warnings]

    return AnalysisResult(
        raw_output=raw_output,
        overall_score=_number(data["overallScore"]),
        risk_level=risk_level,
        recommendations=recommendations,
        warnings=warnings,
        confidence=_number(data.get("confidence", DEFAULT_CONFIDENCE)),
        analysis_version=analysis_version,
        stress_analysis=_section(data.get("stressAnalysis")),
        focus_analysis=_section(data.get("focusAnalysis")),
    )


_FALLBACK_TEXT = {
    "ko": {
        "stress": {"stressLevel": "보통", "stressFactors": ["측정 데이터 품질 이슈"],
                   "autonomicBalance": "평가 불가", "recommendation": "재측정 권장"},
        "focus": {"concentrationLevel": "평가 불가", "attentionSpan": "데이터 부족",
                  "cognitiveLoad": "평가 불가", "recommendation": "재측정 권장"},
        "recommendations": [
            "측정 환경을 개선하여 재측정하시기 바랍니다",
            "디바이스 연결 상태와 착용 상태를 확인해주세요",
            "측정 중 움직임을 최소화해주세요",
        ],
        "warnings": [
            "데이터 품질 이슈로 인해 정확한 분석이 어려움",
            "결과 해석 시 주의 필요",
        ],
    },
    "en": {
        "stress": {"stressLevel": "moderate", "stressFactors": ["measurement data quality issue"],
                   "autonomicBalance": "not assessable", "recommendation": "re-measure"},
        "focus": {"concentrationLevel": "not assessable", "attentionSpan": "insufficient data",
                  "cognitiveLoad": "not assessable", "recommendation": "re-measure"},
        "recommendations": [
            "Improve the measurement environment and measure again",
            "Check the device connection and how the headset is worn",
            "Keep movement to a minimum while measuring",
        ],
        "warnings": [
            "Data quality issues prevent an accurate analysis",
            "Interpret these results with caution",
        ],
    },
}


def fallback_result(raw_output: str = "", language: str = "ko") -> AnalysisResult:
    """Fixed conservative result used when the model output is unusable"""
    text = _FALLBACK_TEXT.get(language, _FALLBACK_TEXT["en"])
    return AnalysisResult(
        raw_output=raw_output,
        overall_score=75.0,
        risk_level="MEDIUM",
        recommendations=list(text["recommendations"]),
        warnings=list(text["warnings"]),
        confidence=FALLBACK_CONFIDENCE,
        analysis_version=FALLBACK_VERSION,
        stress_analysis=dict(text["stress"]),
        focus_analysis=dict(text["focus"]),
    )
