"""
Default engine bootstrap
"""

import logging
from typing import List, Optional

import httpx

from .catalog import EngineCatalog
from .gemini import (
    GeminiClient, GeminiAnalysisEngine, BASIC_GEMINI_DESCRIPTOR, EEG_ADVANCED_DESCRIPTOR,
)
from .mock import MockTestEngine, MOCK_DESCRIPTOR
from .prompts import EEG_ADVANCED_TEMPLATE, HEALTH_REPORT_TEMPLATE
from ..core.data_types import DataTypes


def register_default_engines(catalog: EngineCatalog, api_key: Optional[str] = None,
                             include_test_engines: bool = True,
                             transport: Optional[httpx.AsyncBaseTransport] = None) -> List[str]:
    """
    Register the production Gemini engines and, optionally, the mock engine

    The Gemini engines are skipped with a warning when no API key is
    available.

    Returns:
        List[str]: Ids of the engines that were registered
    """
    registered = []

    try:
        client = GeminiClient(api_key=api_key, transport=transport)
    except ValueError as e:
        logging.warning(f"Skipping Gemini engines: {e}")
        client = None

    if client is not None:
        basic = GeminiAnalysisEngine(client, BASIC_GEMINI_DESCRIPTOR, HEALTH_REPORT_TEMPLATE,
                                     required_types=DataTypes(eeg=True, ppg=True))
        advanced = GeminiAnalysisEngine(client, EEG_ADVANCED_DESCRIPTOR, EEG_ADVANCED_TEMPLATE,
                                        required_types=DataTypes(eeg=True))
        for engine in (basic, advanced):
            if catalog.register(engine.descriptor, engine):
                registered.append(engine.descriptor.id)

    if include_test_engines:
        mock = MockTestEngine()
        if catalog.register(MOCK_DESCRIPTOR, mock):
            registered.append(MOCK_DESCRIPTOR.id)

    stats = catalog.stats()
    logging.info(f"Engine catalog: {stats['total_engines']} engines, {stats['active_engines']} active")
    return registered
