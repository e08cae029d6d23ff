"""
Gemini-backed analysis engines

GeminiClient wraps the generateContent REST call over httpx and maps every
transport-level problem to TransportError. GeminiAnalysisEngine combines a
prompt template, the client and the output parser.
"""

import logging
import os
from typing import Dict, Optional

import httpx

from ..core.config import (
    GEMINI_API_URL, GEMINI_MODEL, GEMINI_REQUEST_TIMEOUT_SEC, GEMINI_GENERATION_CONFIG,
    API_KEY_ENV,
)
from ..core.data_types import DataTypes, MeasurementSession, AnalysisResult
from ..core.errors import TransportError
from .base import (
    AnalysisEngine, AnalysisOptions, EngineCapabilities, EngineDescriptor, ValidationResult,
)
from .parsing import parse_analysis_output
from .prompts import PromptTemplate, HEALTH_REPORT_TEMPLATE


BASIC_GEMINI_DESCRIPTOR = EngineDescriptor(
    id="basic-gemini-v1",
    name="Basic Gemini V1",
    version="1.0.0",
    provider="gemini",
    cost_per_analysis=1,
    supported_data_types=DataTypes(eeg=True, ppg=True, acc=True),
    capabilities=EngineCapabilities(max_data_duration_sec=300, languages=("ko", "en"),
                                    min_data_quality=50.0),
    description="General wellbeing report from EEG, PPG and activity metrics",
    required_metrics=("heartRate",),
)

EEG_ADVANCED_DESCRIPTOR = EngineDescriptor(
    id="eeg-advanced-gemini-v1",
    name="EEG Advanced Gemini",
    version="1.0.0",
    provider="gemini",
    cost_per_analysis=5,
    supported_data_types=DataTypes(eeg=True, ppg=False, acc=False),
    capabilities=EngineCapabilities(max_data_duration_sec=600, languages=("ko", "en"),
                                    min_data_quality=40.0),
    description="In-depth interpretation of EEG band powers and indices",
    required_metrics=("alpha", "beta", "theta"),
)


class GeminiClient:
    """
    Minimal async client for the Gemini generateContent endpoint

    Args:
        api_key: Google API key (defaults to the GOOGLE_API_KEY env var)
        transport: Optional httpx transport, used by tests to fake the endpoint
    """

    def __init__(self, api_key: Optional[str] = None, model: str = GEMINI_MODEL,
                 base_url: str = GEMINI_API_URL, timeout: float = GEMINI_REQUEST_TIMEOUT_SEC,
                 generation_config: Optional[Dict] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key or os.getenv(API_KEY_ENV)
        if not self.api_key:
            raise ValueError(f"{API_KEY_ENV} environment variable is required for the Gemini client")

        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.generation_config = dict(generation_config or GEMINI_GENERATION_CONFIG)
        self.transport = transport

    def _payload(self, system_prompt: str, user_prompt: str) -> Dict:
        return {
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "contents": [{"role": "user", "parts": [{"text": user_prompt}]}],
            "generationConfig": self.generation_config,
        }

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        """
        Send one prompt pair and return the first candidate's text

        Raises:
            TransportError: Unreachable endpoint, timeout, non-2xx status or
            a response without candidates
        """
        url = f"{self.base_url}/{self.model}:generateContent"

        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout),
                                     transport=self.transport) as client:
            try:
                response = await client.post(
                    url,
                    params={"key": self.api_key},
                    json=self._payload(system_prompt, user_prompt),
                )
            except httpx.TimeoutException as e:
                raise TransportError(f"Gemini request timed out: {e}")
            except httpx.HTTPError as e:
                raise TransportError(f"Gemini request failed: {e}")

        if not response.is_success:
            raise TransportError(
                f"Gemini API error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(f"Gemini returned invalid JSON: {e}", status_code=response.status_code)

        candidates = data.get("candidates") or []
        if not candidates:
            raise TransportError("No response from Gemini API", status_code=response.status_code)

        try:
            return "".join(part.get("text", "") for part in candidates[0]["content"]["parts"])
        except (KeyError, TypeError, AttributeError) as e:
            raise TransportError(f"Malformed Gemini candidate: {e}", status_code=response.status_code)


class GeminiAnalysisEngine(AnalysisEngine):
    """Prompt template + Gemini call + output parsing"""

    def __init__(self, client: GeminiClient, descriptor: EngineDescriptor = BASIC_GEMINI_DESCRIPTOR,
                 template: PromptTemplate = HEALTH_REPORT_TEMPLATE,
                 required_types: DataTypes = DataTypes(eeg=True, ppg=True)):
        self.client = client
        self.descriptor = descriptor
        self.template = template
        self.required_types = required_types

    @property
    def analysis_version(self) -> str:
        return f"{self.descriptor.id.replace('-', '_')}_{self.descriptor.version}"

    def validate(self, session: MeasurementSession) -> ValidationResult:
        errors = []
        warnings = []
        quality = session.quality_summary.overall_quality

        if quality < self.descriptor.capabilities.min_data_quality:
            errors.append(f"Data quality {quality:.1f} below {self.descriptor.capabilities.min_data_quality:.0f}")

        present = session.data_types()
        if self.required_types.eeg and not present.eeg:
            errors.append("EEG data is required")
        if self.required_types.ppg and not present.ppg:
            errors.append("PPG data is required")

        heart_rate = session.metric("heartRate")
        if self.required_types.ppg and heart_rate is not None and not 0 < heart_rate <= 200:
            errors.append(f"Implausible heart rate: {heart_rate:.1f} BPM")

        if session.duration_seconds > self.descriptor.capabilities.max_data_duration_sec:
            warnings.append("Measurement longer than the engine's supported duration")
        if self.descriptor.supported_data_types.acc and not present.acc:
            warnings.append("No activity data; motion context omitted")

        return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings,
                                quality_score=quality)

    async def analyze(self, session: MeasurementSession, options: AnalysisOptions) -> AnalysisResult:
        system_prompt, user_prompt = self.template.render(session, options)
        options.report_progress(0.1)

        logging.info(f"Requesting {self.client.model} analysis for {session.session_id}")
        raw_output = await self.client.generate(system_prompt, user_prompt)
        options.report_progress(0.9)

        return parse_analysis_output(raw_output, analysis_version=self.analysis_version)
