"""Tests for the engine catalog"""

import threading
from dataclasses import replace

import pytest

from bioreport.core.data_types import DataTypes
from bioreport.engines.base import EngineStatus
from bioreport.engines.catalog import EngineCatalog, EngineUsage
from bioreport.engines.mock import MockTestEngine, MOCK_DESCRIPTOR

EEG_PPG = DataTypes(eeg=True, ppg=True)


def descriptor(engine_id, cost, eeg=False, ppg=False, acc=False, provider="custom", name=None):
    return replace(
        MOCK_DESCRIPTOR,
        id=engine_id,
        name=name or engine_id,
        provider=provider,
        cost_per_analysis=cost,
        supported_data_types=DataTypes(eeg=eeg, ppg=ppg, acc=acc),
    )


def add(catalog, desc, usage=None):
    assert catalog.register(desc, MockTestEngine(desc), usage=usage)
    return desc


@pytest.fixture
def scenario_catalog():
    """Three engines: full support, EEG only and PPG only"""
    catalog = EngineCatalog()
    add(catalog, descriptor("X", 1, eeg=True, ppg=True, acc=True),
        usage=EngineUsage(count=20, average_rating=4.5, rating_count=20))
    add(catalog, descriptor("Y", 5, eeg=True))
    add(catalog, descriptor("Z", 0, ppg=True))
    return catalog


class TestRanking:
    def test_scores_and_order(self, scenario_catalog):
        """X scores 100 and is recommended; Y and Z are not"""
        ranked = scenario_catalog.rank(EEG_PPG, budget=3)

        assert [r.descriptor.id for r in ranked] == ["X", "Z", "Y"]

        x, z, y = ranked
        assert x.score == 100
        assert x.is_affordable and x.is_recommended
        assert z.score == 45
        assert z.is_affordable and not z.is_recommended
        assert y.score == 40
        assert not y.is_affordable and not y.is_recommended

    def test_ranking_is_deterministic(self, scenario_catalog):
        first = scenario_catalog.rank(EEG_PPG, budget=3)
        second = scenario_catalog.rank(EEG_PPG, budget=3)

        assert first == second

    def test_recommended_engines_come_first(self):
        """A recommended engine outranks a non-recommended one with a higher score"""
        catalog = EngineCatalog()
        add(catalog, descriptor("expensive", 50, eeg=True, ppg=True, acc=True),
            usage=EngineUsage(count=100, average_rating=5.0, rating_count=100))
        add(catalog, descriptor("cheap", 1, eeg=True, ppg=True))

        ranked = catalog.rank(EEG_PPG, budget=10)

        assert ranked[0].descriptor.id == "cheap"
        assert ranked[0].is_recommended
        assert ranked[1].score > ranked[0].score
        assert not ranked[1].is_recommended

    def test_equal_score_breaks_on_cost_then_registration(self):
        catalog = EngineCatalog()
        add(catalog, descriptor("b", 2, eeg=True))
        add(catalog, descriptor("a", 1, eeg=True))
        add(catalog, descriptor("c", 2, eeg=True))

        ranked = catalog.rank(DataTypes(eeg=True), budget=5)

        assert [r.descriptor.id for r in ranked] == ["a", "b", "c"]

    def test_inactive_engines_are_excluded(self, scenario_catalog):
        scenario_catalog.set_status("X", EngineStatus.INACTIVE)

        ids = [r.descriptor.id for r in scenario_catalog.rank(EEG_PPG, budget=3)]

        assert "X" not in ids
        assert scenario_catalog.get("X").status == EngineStatus.INACTIVE

    def test_reasons_explain_score(self, scenario_catalog):
        x = scenario_catalog.rank(EEG_PPG, budget=3)[0]

        assert "EEG supported" in x.reasons
        assert "PPG supported" in x.reasons
        assert "within budget" in x.reasons

    def test_empty_catalog(self):
        assert EngineCatalog().rank(EEG_PPG, budget=10) == []


class TestAutoSelect:
    def test_cheapest_compatible(self, scenario_catalog):
        assert scenario_catalog.auto_select(EEG_PPG).id == "Z"
        assert scenario_catalog.auto_select(DataTypes(eeg=True)).id == "X"

    def test_no_compatible_engine(self, scenario_catalog):
        scenario_catalog.unregister("X")

        assert scenario_catalog.auto_select(DataTypes(acc=True)) is None

    def test_skips_inactive(self, scenario_catalog):
        scenario_catalog.set_status("Z", EngineStatus.INACTIVE)

        assert scenario_catalog.auto_select(EEG_PPG).id == "X"


class TestRegistry:
    def test_rejects_invalid_descriptors(self):
        catalog = EngineCatalog()

        assert not catalog.register(descriptor("", 1, eeg=True), MockTestEngine())
        assert not catalog.register(descriptor("neg", -1, eeg=True), MockTestEngine())
        assert catalog.list() == []

    def test_duplicate_registration_replaces(self):
        catalog = EngineCatalog()
        add(catalog, descriptor("dup", 1, eeg=True))
        add(catalog, descriptor("dup", 4, eeg=True))

        assert len(catalog.list()) == 1
        assert catalog.get("dup").cost_per_analysis == 4

    def test_unregister(self, scenario_catalog):
        assert scenario_catalog.unregister("Y")
        assert not scenario_catalog.unregister("Y")
        assert scenario_catalog.get("Y") is None
        assert scenario_catalog.executor("Y") is None

    def test_list_sorting(self, scenario_catalog):
        scenario_catalog.record_usage("Y")

        assert [d.id for d in scenario_catalog.list()] == ["X", "Y", "Z"]
        assert [d.id for d in scenario_catalog.list(sort_by="cost")] == ["Z", "X", "Y"]
        assert [d.id for d in scenario_catalog.list(sort_by="quality")][0] == "X"
        assert [d.id for d in scenario_catalog.list(sort_by="popularity")] == ["X", "Y", "Z"]
        assert [d.id for d in scenario_catalog.list(sort_by="unknown")] == ["X", "Y", "Z"]

    def test_search(self):
        catalog = EngineCatalog()
        add(catalog, descriptor("g1", 1, eeg=True, ppg=True, provider="gemini"))
        add(catalog, descriptor("g2", 5, eeg=True, provider="gemini"),
            usage=EngineUsage(count=3, average_rating=4.8, rating_count=3))
        add(catalog, descriptor("c1", 0, ppg=True))

        assert [d.id for d in catalog.search(provider="gemini")] == ["g1", "g2"]
        assert [d.id for d in catalog.search(data_types=EEG_PPG)] == ["g1"]
        assert [d.id for d in catalog.search(max_cost=1)] == ["g1", "c1"]
        assert [d.id for d in catalog.search(min_rating=4.5)] == ["g2"]

    def test_stats(self, scenario_catalog):
        scenario_catalog.set_status("Y", EngineStatus.INACTIVE)

        stats = scenario_catalog.stats()

        assert stats["total_engines"] == 3
        assert stats["active_engines"] == 2
        assert stats["total_usage"] == 20
        assert stats["average_rating"] == pytest.approx(4.5)
        assert stats["providers"] == {"custom": 3}


class TestUsage:
    def test_running_average(self):
        catalog = EngineCatalog()
        add(catalog, descriptor("e", 1, eeg=True))

        catalog.record_usage("e", rating=4.0)
        catalog.record_usage("e", rating=5.0)
        catalog.record_usage("e")

        usage = catalog.usage("e")
        assert usage.count == 3
        assert usage.rating_count == 2
        assert usage.average_rating == pytest.approx(4.5)
        assert usage.last_used is not None

    def test_rejects_out_of_range_rating(self):
        catalog = EngineCatalog()
        add(catalog, descriptor("e", 1, eeg=True))

        assert not catalog.record_usage("e", rating=6)
        assert not catalog.record_usage("e", rating=-1)
        assert catalog.usage("e").count == 0

    def test_unknown_engine(self):
        catalog = EngineCatalog()

        assert not catalog.record_usage("missing")
        assert catalog.usage("missing") is None

    def test_usage_returns_a_copy(self):
        catalog = EngineCatalog()
        add(catalog, descriptor("e", 1, eeg=True))

        catalog.usage("e").count = 99

        assert catalog.usage("e").count == 0

    def test_concurrent_updates_are_not_lost(self):
        catalog = EngineCatalog()
        add(catalog, descriptor("e", 1, eeg=True))

        def worker():
            for _ in range(200):
                catalog.record_usage("e", rating=4.0)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        usage = catalog.usage("e")
        assert usage.count == 1600
        assert usage.rating_count == 1600
        assert usage.average_rating == pytest.approx(4.0)
