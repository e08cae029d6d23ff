"""Tests for the recorder, the tickers and the measurement monitor"""

import threading

import pytest

from bioreport.acquisition.sources import FakeBiosignalSource
from bioreport.core.data_types import AccountRef, MetricFrame, QualitySnapshot
from bioreport.quality.gate import QualityGate
from bioreport.quality.monitor import MeasurementMonitor, MonitorPhase
from bioreport.quality.recorder import MeasurementRecorder
from bioreport.quality.timer import ManualTicker, IntervalTicker

from .conftest import good_snapshot

OWNER = AccountRef("acct-1")


def frame(t, heart_rate=70.0, alpha=10.0):
    return MetricFrame(timestamp=t, eeg={"alpha": alpha}, ppg={"heartRate": heart_rate})


class TestMeasurementRecorder:
    def test_seal_before_complete_raises(self):
        recorder = MeasurementRecorder(OWNER, duration_seconds=3)
        recorder.record(frame(0), good_snapshot())

        with pytest.raises(ValueError):
            recorder.seal()

    def test_seal_aggregates_metrics(self):
        recorder = MeasurementRecorder(OWNER, duration_seconds=3, session_id="s-1", started_at=100.0)
        for t, hr in enumerate([60.0, 70.0, 80.0]):
            done = recorder.record(frame(t, heart_rate=hr), good_snapshot())

        assert done
        session = recorder.seal()

        assert session.sealed
        assert session.session_id == "s-1"
        assert session.started_at == 100.0
        assert session.duration_seconds == 3
        assert session.owner == OWNER
        assert session.metric("heartRate") == pytest.approx(70.0)
        assert session.ppg_summary.metrics["heartRate"].min == 60.0
        assert session.ppg_summary.metrics["heartRate"].max == 80.0
        assert session.ppg_summary.quality_score == pytest.approx(92.0)
        assert session.acc_summary is None

    def test_quality_summary_counts_high_quality_points(self):
        recorder = MeasurementRecorder(OWNER, duration_seconds=4, high_quality_threshold=90.0)
        overall = [95.0, 85.0, 91.0, 90.0]
        for t, value in enumerate(overall):
            recorder.record(frame(t), QualitySnapshot(value, value, value, value, True))

        summary = recorder.seal().quality_summary

        assert summary.total_data_points == 4
        assert summary.high_quality_data_points == 3
        assert summary.quality_percentage == pytest.approx(75.0)
        assert summary.overall_quality == pytest.approx(90.25)

    def test_frames_after_completion_are_ignored(self):
        recorder = MeasurementRecorder(OWNER, duration_seconds=2)
        recorder.record(frame(0), good_snapshot())
        recorder.record(frame(1), good_snapshot())
        recorder.record(frame(2, heart_rate=500.0), good_snapshot())

        assert recorder.elapsed_seconds == 2
        assert recorder.seal().metric("heartRate") == pytest.approx(70.0)

    def test_seal_returns_the_same_session(self):
        recorder = MeasurementRecorder(OWNER, duration_seconds=1)
        recorder.record(frame(0), good_snapshot())

        assert recorder.seal() is recorder.seal()

    def test_draft_is_unsealed(self):
        recorder = MeasurementRecorder(OWNER, duration_seconds=5)
        recorder.record(frame(0), good_snapshot())

        draft = recorder.draft()

        assert not draft.sealed
        assert draft.duration_seconds == 1

    def test_invalid_duration(self):
        with pytest.raises(ValueError):
            MeasurementRecorder(OWNER, duration_seconds=0)


class TestTickers:
    def test_manual_ticker_fires_per_interval(self):
        ticker = ManualTicker(interval=1.0)
        seen = []
        ticker.subscribe(seen.append)
        ticker.start()

        assert ticker.advance(2.5) == 2
        assert ticker.advance(0.5) == 1
        assert seen == [1.0, 2.0, 3.0]

    def test_manual_ticker_ignores_advance_while_stopped(self):
        ticker = ManualTicker()
        seen = []
        ticker.subscribe(seen.append)

        assert ticker.advance(5) == 0
        assert seen == []

    def test_unsubscribe(self):
        ticker = ManualTicker()
        seen = []
        ticker.subscribe(seen.append)
        ticker.start()
        ticker.unsubscribe(seen.append)

        ticker.advance(3)
        assert seen == []

    def test_failing_callback_does_not_stop_others(self):
        ticker = ManualTicker()
        seen = []

        def broken(now):
            raise RuntimeError("boom")

        ticker.subscribe(broken)
        ticker.subscribe(seen.append)
        ticker.start()
        ticker.advance(2)

        assert len(seen) == 2

    def test_non_positive_interval(self):
        with pytest.raises(ValueError):
            ManualTicker(interval=0)

    def test_interval_ticker_fires_on_thread(self):
        ticker = IntervalTicker(interval=0.01)
        fired = threading.Event()
        ticker.subscribe(lambda now: fired.set())

        ticker.start()
        try:
            assert fired.wait(2.0)
        finally:
            ticker.stop(timeout=1.0)

        assert not ticker.running


class TestMeasurementMonitor:
    def build(self, source, required_seconds=3, duration=5, **kwargs):
        gate = QualityGate("strict", required_seconds=required_seconds)
        ticker = ManualTicker()
        monitor = MeasurementMonitor(source, gate, ticker, owner=OWNER,
                                     duration_seconds=duration, **kwargs)
        return monitor, ticker

    def test_gate_then_record_then_seal(self):
        source = FakeBiosignalSource(seed=1, noise=0.0)
        sealed = []
        monitor, ticker = self.build(source, on_sealed=sealed.append)

        monitor.start()
        ticker.advance(2)
        assert monitor.phase == MonitorPhase.QUALITY

        ticker.advance(1)
        assert monitor.phase == MonitorPhase.MEASURING

        ticker.advance(4)
        assert monitor.phase == MonitorPhase.MEASURING
        assert monitor.recorder.elapsed_seconds == 4

        ticker.advance(1)
        assert monitor.phase == MonitorPhase.DONE
        assert len(sealed) == 1

        session = monitor.wait(timeout=0)
        assert session is sealed[0]
        assert session.sealed
        assert session.duration_seconds == 5
        assert session.owner == OWNER
        assert session.data_types().eeg and session.data_types().ppg and session.data_types().acc
        assert session.quality_summary.quality_percentage == pytest.approx(100.0)

        # Ticker stopped and unsubscribed after sealing
        assert not ticker.running
        assert ticker.advance(10) == 0

    def test_contact_loss_keeps_monitor_in_quality_phase(self):
        source = FakeBiosignalSource(seed=1, noise=0.0)
        monitor, ticker = self.build(source)

        monitor.start()
        ticker.advance(2)
        source.set_contact(False)
        ticker.advance(1)

        assert monitor.gate.state.elapsed_seconds == 0
        assert monitor.last_snapshot.eeg == 0.0

        source.set_contact(True)
        ticker.advance(2)
        assert monitor.phase == MonitorPhase.QUALITY

        ticker.advance(1)
        assert monitor.phase == MonitorPhase.MEASURING

    def test_poor_quality_never_starts_recording(self):
        source = FakeBiosignalSource(seed=1, eeg_quality=70.0, noise=0.0)
        monitor, ticker = self.build(source)

        monitor.start()
        ticker.advance(20)

        assert monitor.phase == MonitorPhase.QUALITY
        assert monitor.recorder is None

    def test_silent_source_reports_no_data(self):
        class SilentSource(FakeBiosignalSource):
            def read_quality(self, now=None):
                return []

        snapshots = []
        monitor, ticker = self.build(SilentSource(), on_snapshot=snapshots.append)

        monitor.start()
        ticker.advance(3)

        assert snapshots[-1] == QualitySnapshot.no_data()
        assert monitor.phase == MonitorPhase.QUALITY

    def test_stop_before_sealing(self):
        monitor, ticker = self.build(FakeBiosignalSource(seed=1, noise=0.0))

        monitor.start()
        ticker.advance(1)
        monitor.stop()

        assert monitor.phase == MonitorPhase.STOPPED
        assert monitor.wait(timeout=0) is None
