"""
Analysis engines

This module handles engine descriptors, the engine catalog, prompt
templating, output parsing and the concrete Gemini and mock engines.
"""

from .base import (
    EngineStatus, EngineCapabilities, EngineDescriptor, ValidationResult,
    AnalysisOptions, AnalysisEngine,
)
from .catalog import EngineCatalog, EngineUsage, RankedEngine
from .prompts import PromptTemplate
from .parsing import extract_json_block, parse_analysis_output, fallback_result
from .gemini import GeminiClient, GeminiAnalysisEngine
from .mock import MockTestEngine
from .defaults import register_default_engines

__all__ = [
    'EngineStatus', 'EngineCapabilities', 'EngineDescriptor', 'ValidationResult',
    'AnalysisOptions', 'AnalysisEngine',
    'EngineCatalog', 'EngineUsage', 'RankedEngine',
    'PromptTemplate', 'extract_json_block', 'parse_analysis_output', 'fallback_result',
    'GeminiClient', 'GeminiAnalysisEngine', 'MockTestEngine', 'register_default_engines',
]
