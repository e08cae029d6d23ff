"""
Configuration constants for bioreport

This module contains the parameters that operators may need to tune for their
deployment: quality gating policy, recording length, pipeline timeouts and the
AI endpoint settings. CLI flags override these for a single run.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

# ============================================================================
# HARDWARE CONFIGURATION
# ============================================================================

SERIAL_PORT = ""                  # Serial/BLE port for real boards (empty for synthetic)
DEFAULT_BOARD = "synthetic"       # BrainFlow board name used by --board
FS_EXPECTED = 250                 # Fallback sampling rate (Hz)
NOTCH_HZ = 60                     # Power line frequency (50 Hz for EU, 60 Hz for US)

# ============================================================================
# QUALITY GATE CONFIGURATION
# ============================================================================

QUALITY_WINDOW_SIZE = 100         # Samples averaged per channel (most recent N)
STABILITY_REQUIRED_SEC = 10       # Continuous good-quality seconds before recording
TICK_INTERVAL_SEC = 1.0           # Stability timer cadence (seconds)

# Named gating profiles. Thresholds of None mean "no per-channel floor".
GATE_PROFILES: Dict[str, Dict] = {
    "strict": {"overall": 90.0, "eeg": 90.0, "ppg": 90.0, "require_contact": True},
    "lenient": {"overall": 80.0, "eeg": None, "ppg": None, "require_contact": False},
}
DEFAULT_GATE_PROFILE = "strict"

# Snapshot used when the upstream sample stream has stopped entirely
NO_DATA_EEG_QUALITY = 0.0
NO_DATA_PPG_QUALITY = 0.0
NO_DATA_MOTION_QUALITY = 100.0    # Motion defaults to "stationary"

# ============================================================================
# RECORDING CONFIGURATION
# ============================================================================

MEASUREMENT_DURATION_SEC = 60     # Fixed recording window after the gate fires
AMPLITUDE_SQI_LIMIT_UV = 150.0    # |amplitude| above this counts as a bad sample
MOTION_STD_LIMIT_G = 0.15         # Accelerometer spread above this means "moving"
MOTION_QUALITY_MOVING = 30.0      # Motion quality while walking/running
BANDPASS = (1.0, 45.0)            # EEG band-pass applied before the SQI (Hz)

# ============================================================================
# ENGINE CATALOG CONFIGURATION
# ============================================================================

RECOMMENDED_SCORE_MIN = 70        # Score needed (with affordability) to be "recommended"
RATING_BONUS_MIN = 4.0            # Average rating above this earns the rating bonus
USAGE_BONUS_MIN = 10              # Usage count above this earns the popularity bonus

# ============================================================================
# PIPELINE CONFIGURATION
# ============================================================================

EXECUTION_TIMEOUT_SEC = 120.0     # Wall-clock ceiling for a single analysis call
EXECUTION_MAX_RETRIES = 2         # Retries after the first attempt (transport failures only)
RETRY_BACKOFF_SEC = 1.0           # Delay between execution attempts
OUTPUT_LANGUAGE = "ko"            # Report language passed to every engine
ANALYSIS_DEPTH = "detailed"       # Fixed analysis depth passed to every engine
SUPPORTED_LANGUAGES = ("ko", "en")
ANALYSIS_DEPTHS = ("basic", "detailed", "comprehensive")

# ============================================================================
# AI ENDPOINT CONFIGURATION
# ============================================================================

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models"
GEMINI_MODEL = "gemini-1.5-flash"
GEMINI_REQUEST_TIMEOUT_SEC = 60.0
GEMINI_GENERATION_CONFIG = {
    "temperature": 0.3,
    "topK": 40,
    "topP": 0.95,
    "maxOutputTokens": 2048,
}
API_KEY_ENV = "GOOGLE_API_KEY"

# ============================================================================
# STORAGE CONFIGURATION
# ============================================================================

REPORT_DIR = "reports"            # JsonFileReportStore directory


@dataclass
class PipelineConfig:
    """
    Runtime settings for the analysis orchestrator

    Defaults come from the module constants above so a bare PipelineConfig()
    matches the documented behaviour.
    """

    output_language: str = OUTPUT_LANGUAGE
    analysis_depth: str = ANALYSIS_DEPTH
    execution_timeout_sec: float = EXECUTION_TIMEOUT_SEC
    max_execution_retries: int = EXECUTION_MAX_RETRIES
    retry_backoff_sec: float = RETRY_BACKOFF_SEC
    progress_bands: Optional[Dict[str, int]] = None
    executing_band: Tuple[int, int] = (30, 80)

    def __post_init__(self):
        if self.progress_bands is None:
            self.progress_bands = {
                "QUEUED": 0,
                "VALIDATING": 10,
                "RESERVING_COST": 20,
                "EXECUTING": self.executing_band[0],
                "RENDERING": 85,
                "PERSISTING": 95,
                "COMPLETED": 100,
            }


def validate_config(config: PipelineConfig) -> None:
    """
    Validate pipeline settings

    Raises:
        ValueError: If any setting is out of range
    """
    if config.output_language not in SUPPORTED_LANGUAGES:
        raise ValueError(f"Unsupported output language: {config.output_language}")

    if config.analysis_depth not in ANALYSIS_DEPTHS:
        raise ValueError(f"Unknown analysis depth: {config.analysis_depth}")

    if config.execution_timeout_sec <= 0:
        raise ValueError("execution_timeout_sec must be positive")

    if config.max_execution_retries < 0:
        raise ValueError("max_execution_retries cannot be negative")

    if config.retry_backoff_sec < 0:
        raise ValueError("retry_backoff_sec cannot be negative")

    low, high = config.executing_band
    if not 0 <= low <= high <= 100:
        raise ValueError(f"Invalid executing progress band: {config.executing_band}")
