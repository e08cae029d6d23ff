"""Shared fixtures and builders for bioreport tests"""

from dataclasses import replace

import pytest

from bioreport.core.data_types import (
    AccountRef, MetricStats, SignalSummary, QualitySummary, MeasurementSession, QualitySnapshot,
)
from bioreport.engines.catalog import EngineCatalog
from bioreport.engines.mock import MockTestEngine, MOCK_DESCRIPTOR
from bioreport.ledger.cost_ledger import InMemoryCostLedger
from bioreport.storage.report_store import InMemoryReportStore

ACCOUNT = "acct-1"

PAID_DESCRIPTOR = replace(MOCK_DESCRIPTOR, id="paid-mock", name="Paid Mock", cost_per_analysis=3)


def stats(value: float) -> MetricStats:
    return MetricStats(mean=value, std=0.0, min=value, max=value)


def make_session(session_id: str = "session-test", account_id: str = ACCOUNT, sealed: bool = True,
                 quality: float = 95.0, eeg: bool = True, ppg: bool = True, acc: bool = True,
                 heart_rate: float = 72.0, stress: float = 40.0) -> MeasurementSession:
    """Build a session directly from summary statistics"""
    eeg_summary = SignalSummary(
        metrics={
            "alpha": stats(15.0), "beta": stats(10.0), "theta": stats(12.0),
            "attentionIndex": stats(65.0), "stressIndex": stats(stress),
        },
        quality_score=quality,
    ) if eeg else None
    ppg_summary = SignalSummary(
        metrics={"heartRate": stats(heart_rate), "heartRateVariability": stats(45.0)},
        quality_score=quality,
    ) if ppg else None
    acc_summary = SignalSummary(
        metrics={"activityLevel": stats(10.0)},
        quality_score=100.0,
    ) if acc else None

    return MeasurementSession(
        session_id=session_id,
        owner=AccountRef(account_id),
        started_at=1700000000.0,
        duration_seconds=60,
        eeg_summary=eeg_summary,
        ppg_summary=ppg_summary,
        acc_summary=acc_summary,
        quality_summary=QualitySummary(60, 57, 95.0, quality),
        sealed=sealed,
    )


def good_snapshot() -> QualitySnapshot:
    return QualitySnapshot(eeg=95.0, ppg=92.0, motion=92.0, overall=93.0, sensor_contacted=True)


def lost_contact_snapshot() -> QualitySnapshot:
    return QualitySnapshot(eeg=0.0, ppg=0.0, motion=92.0, overall=92.0 / 3, sensor_contacted=False)


async def no_sleep(seconds):
    return None


@pytest.fixture
def session():
    return make_session()


@pytest.fixture
def catalog():
    catalog = EngineCatalog()
    catalog.register(PAID_DESCRIPTOR, MockTestEngine(PAID_DESCRIPTOR))
    return catalog


@pytest.fixture
def ledger():
    return InMemoryCostLedger({ACCOUNT: 10})


@pytest.fixture
def store():
    return InMemoryReportStore()
