"""
Biosignal acquisition sources

This module handles the upstream adapters: BrainFlow boards and
synthetic data generation.
"""

from .sources import BrainFlowQualitySource, FakeBiosignalSource

__all__ = ['BrainFlowQualitySource', 'FakeBiosignalSource']
