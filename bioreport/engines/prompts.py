"""
Prompt templating over session metrics

Templates use string.Template placeholders (${heartRate}, ${quality_overall}).
Every metric in the session is available by name; unknown or missing
values render as N/A.
"""

import time
from string import Template
from typing import Dict, Optional, Tuple

from ..core.data_types import MeasurementSession
from .base import AnalysisOptions

MISSING = "N/A"

LANGUAGE_NAMES = {"ko": "Korean", "en": "English"}


class _Variables(dict):
    def __missing__(self, key):
        return MISSING


def _format(value) -> str:
    if value is None:
        return MISSING
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value)


def session_variables(session: MeasurementSession, options: Optional[AnalysisOptions] = None) -> Dict[str, str]:
    """Flatten a session into template variables"""
    options = options or AnalysisOptions()
    quality = session.quality_summary

    variables = _Variables()
    for summary in (session.eeg_summary, session.ppg_summary, session.acc_summary):
        if summary is None:
            continue
        for name, stats in summary.metrics.items():
            variables.setdefault(name, _format(stats.mean))
            variables.setdefault(f"{name}_std", _format(stats.std))

    variables.update({
        "session_id": session.session_id,
        "measured_at": time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(session.started_at)),
        "duration": str(session.duration_seconds),
        "eeg_quality": _format(session.eeg_summary.quality_score if session.eeg_summary else None),
        "ppg_quality": _format(session.ppg_summary.quality_score if session.ppg_summary else None),
        "motion_quality": _format(session.acc_summary.quality_score if session.acc_summary else None),
        "quality_overall": _format(quality.overall_quality),
        "quality_percentage": _format(quality.quality_percentage),
        "language": options.output_language,
        "language_name": LANGUAGE_NAMES.get(options.output_language, options.output_language),
        "analysis_depth": options.analysis_depth,
    })
    return variables


class PromptTemplate:
    """A system/user prompt pair"""

    def __init__(self, system: str, user: str):
        self.system = Template(system)
        self.user = Template(user)

    def render(self, session: MeasurementSession,
               options: Optional[AnalysisOptions] = None) -> Tuple[str, str]:
        variables = session_variables(session, options)
        return self.system.substitute(variables), self.user.substitute(variables)


HEALTH_REPORT_SYSTEM = (
    "You are part of a team of clinicians and AI specialists. Analyse one minute of "
    "biosignal measurements and assess the person's current state. Write every text "
    "field in ${language_name}. The analysis is for wellness reference, not a diagnosis."
)

HEALTH_REPORT_USER = """\
## Biosignal analysis request

### Measurement
- Measured at: ${measured_at}
- Duration: ${duration} s
- Analysis depth: ${analysis_depth}

### EEG
- Delta power: ${delta}
- Theta power: ${theta}
- Alpha power: ${alpha}
- Beta power: ${beta}
- Gamma power: ${gamma}
- Attention index: ${attentionIndex}/100
- Meditation index: ${meditationIndex}/100
- Stress index: ${stressIndex}/100
- Fatigue index: ${fatigueIndex}/100

### PPG
- Heart rate: ${heartRate} BPM
- Heart rate variability: ${heartRateVariability} ms
- Stress score: ${stressScore}/100
- Autonomic balance: ${autonomicBalance}

### Activity
- Activity level: ${activityLevel}/100
- Movement intensity: ${movementIntensity}
- Posture stability: ${postureStability}

### Data quality
- Overall: ${quality_overall}/100
- EEG: ${eeg_quality}/100
- PPG: ${ppg_quality}/100
- Motion: ${motion_quality}/100

## Output

Answer with one JSON block in this shape:

```json
{
  "overallScore": 85,
  "riskLevel": "LOW",
  "stressAnalysis": {"stressLevel": "...", "stressFactors": ["..."], "autonomicBalance": "...", "recommendation": "..."},
  "focusAnalysis": {"concentrationLevel": "...", "attentionSpan": "...", "cognitiveLoad": "...", "recommendation": "..."},
  "recommendations": ["...", "...", "..."],
  "warnings": ["..."],
  "confidence": 0.87
}
```

1. overallScore: 0-100 overall wellbeing
2. riskLevel: one of LOW, MEDIUM, HIGH, CRITICAL
3. recommendations: 3-5 concrete, actionable items
4. confidence: 0.0-1.0
"""

HEALTH_REPORT_TEMPLATE = PromptTemplate(HEALTH_REPORT_SYSTEM, HEALTH_REPORT_USER)


EEG_ADVANCED_SYSTEM = (
    "You are a neurophysiology specialist interpreting consumer-grade EEG. Explain the "
    "band-power pattern and indices in plain language, in ${language_name}. This is a "
    "wellness interpretation, not a diagnosis."
)

EEG_ADVANCED_USER = """\
## EEG interpretation request (${analysis_depth})

Recording of ${duration} s at ${measured_at}, EEG quality ${eeg_quality}/100.

| Band | Mean power | Std |
|---|---|---|
| Delta | ${delta} | ${delta_std} |
| Theta | ${theta} | ${theta_std} |
| Alpha | ${alpha} | ${alpha_std} |
| Beta | ${beta} | ${beta_std} |
| Gamma | ${gamma} | ${gamma_std} |

Indices: attention ${attentionIndex}, meditation ${meditationIndex},
stress ${stressIndex}, fatigue ${fatigueIndex}.

Answer with one ```json block containing overallScore (0-100), riskLevel
(LOW, MEDIUM, HIGH or CRITICAL), stressAnalysis, focusAnalysis,
recommendations (3-5 strings), warnings and confidence (0.0-1.0).
"""

EEG_ADVANCED_TEMPLATE = PromptTemplate(EEG_ADVANCED_SYSTEM, EEG_ADVANCED_USER)
