"""Tests for the acquisition sources"""

import numpy as np
import pytest

from bioreport.acquisition.sources import (
    BrainFlowQualitySource, FakeBiosignalSource,
    compute_amplitude_sqi, compute_ppg_sqi, compute_motion_quality,
)
from bioreport.core.data_types import Channel


class TestQualityIndices:
    def test_amplitude_sqi(self):
        data = np.array([10.0, -20.0, 200.0, -300.0])

        assert compute_amplitude_sqi(data, limit=150.0) == pytest.approx(50.0)
        assert compute_amplitude_sqi(np.array([])) == 0.0

    def test_ppg_sqi_flat_signal_is_zero(self):
        assert compute_ppg_sqi(np.full(100, 3.0)) == 0.0
        assert compute_ppg_sqi(np.array([])) == 0.0

    def test_ppg_sqi_clean_signal(self):
        t = np.linspace(0, 10, 1000)
        assert compute_ppg_sqi(np.sin(2 * np.pi * 1.2 * t)) == pytest.approx(100.0)

    def test_motion_quality(self):
        still = np.tile(np.array([[0.0], [0.0], [1.0]]), (1, 50))
        rng = np.random.default_rng(0)
        moving = rng.normal(0, 1.0, (3, 50))

        assert compute_motion_quality(still) == 100.0
        assert compute_motion_quality(moving) == 30.0
        assert compute_motion_quality(np.empty((3, 0))) == 100.0


class TestFakeBiosignalSource:
    def test_samples_per_channel(self):
        source = FakeBiosignalSource(seed=0, samples_per_tick=4)
        samples = source.read_quality(now=5.0)

        assert len(samples) == 12
        assert {s.channel for s in samples} == set(Channel)
        assert all(s.timestamp == 5.0 for s in samples)
        assert all(0.0 <= s.score <= 100.0 for s in samples)

    def test_seed_is_reproducible(self):
        first = FakeBiosignalSource(seed=7).read_quality(now=1.0)
        second = FakeBiosignalSource(seed=7).read_quality(now=1.0)

        assert [s.score for s in first] == [s.score for s in second]

    def test_degrade_moves_channel_level(self):
        source = FakeBiosignalSource(seed=0, noise=0.0)
        source.degrade(Channel.PPG, 40.0)

        ppg = [s.score for s in source.read_quality(0.0) if s.channel == Channel.PPG]
        assert ppg and all(score == 40.0 for score in ppg)

    def test_without_ppg(self):
        source = FakeBiosignalSource(seed=0, has_ppg=False)

        assert all(s.channel != Channel.PPG for s in source.read_quality(0.0))
        assert source.read_metrics(0.0).ppg == {}

    def test_metrics_cover_every_family(self):
        frame = FakeBiosignalSource(seed=3).read_metrics(now=2.0)

        assert frame.timestamp == 2.0
        assert {"alpha", "beta", "theta", "attentionIndex", "stressIndex"} <= set(frame.eeg)
        assert 40 <= frame.ppg["heartRate"] <= 180
        assert "activityLevel" in frame.acc


class TestBrainFlowQualitySource:
    def test_unknown_board_does_not_connect(self):
        source = BrainFlowQualitySource(board="not-a-board")

        assert source.connect() is False
        assert not source.is_connected

    def test_unconnected_source_is_silent(self):
        source = BrainFlowQualitySource()

        assert source.read_quality(now=0.0) == []
        frame = source.read_metrics(now=0.0)
        assert frame.eeg == {} and frame.ppg == {} and frame.acc == {}
