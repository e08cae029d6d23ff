"""Tests for the report stores"""

import json
import os

import pytest

from bioreport.core.data_types import AnalysisResult
from bioreport.core.errors import StoreError
from bioreport.pipeline.jobs import PipelineJob, Stage
from bioreport.storage.report_store import InMemoryReportStore, JsonFileReportStore


def make_job(job_id="job-1", stage=Stage.RENDERING):
    job = PipelineJob(job_id=job_id, session_id="s-1", engine_id="mock-test-v1", account_id="acct-1",
                      stage=stage, reservation_id="rsv-1", cost_reserved=3)
    job.result = AnalysisResult(raw_output="raw", overall_score=80.0, risk_level="LOW",
                                recommendations=["Rest"], confidence=0.9)
    return job


class TestInMemoryReportStore:
    @pytest.mark.asyncio
    async def test_put_is_an_upsert(self):
        store = InMemoryReportStore()
        job = make_job()

        await store.put(job.job_id, job)
        job.stage = Stage.PERSISTING
        await store.put(job.job_id, job)

        assert len(store) == 1
        assert store.writes == 2
        assert (await store.get("job-1")).stage == Stage.PERSISTING

    @pytest.mark.asyncio
    async def test_records_are_copies(self):
        store = InMemoryReportStore()
        job = make_job()
        await store.put(job.job_id, job)

        job.warnings.append("changed after put")
        loaded = await store.get("job-1")
        loaded.warnings.append("changed after get")

        assert (await store.get("job-1")).warnings == []

    @pytest.mark.asyncio
    async def test_round_trip_keeps_billing_state(self):
        store = InMemoryReportStore()
        await store.put("job-1", make_job())

        loaded = await store.get("job-1")

        assert loaded.reservation_id == "rsv-1"
        assert loaded.cost_reserved == 3
        assert loaded.result.overall_score == 80.0

    @pytest.mark.asyncio
    async def test_missing_job(self):
        assert await InMemoryReportStore().get("nope") is None

    @pytest.mark.asyncio
    async def test_subscribers(self):
        store = InMemoryReportStore()
        seen = []
        unsubscribe = store.subscribe("job-1", lambda job: seen.append(job.stage))

        await store.put("job-1", make_job(stage=Stage.RENDERING))
        await store.put("job-2", make_job("job-2"))
        unsubscribe()
        await store.put("job-1", make_job(stage=Stage.COMPLETED))

        assert seen == [Stage.RENDERING]

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_fail_the_write(self):
        store = InMemoryReportStore()

        def broken(job):
            raise RuntimeError("subscriber bug")

        store.subscribe("job-1", broken)
        await store.put("job-1", make_job())

        assert store.job_ids() == ["job-1"]


class TestJsonFileReportStore:
    @pytest.mark.asyncio
    async def test_writes_one_file_per_job(self, tmp_path):
        store = JsonFileReportStore(str(tmp_path))
        job = make_job()

        await store.put(job.job_id, job)
        await store.put(job.job_id, job)

        assert os.listdir(tmp_path) == ["job-1.json"]
        with open(tmp_path / "job-1.json", encoding="utf-8") as f:
            record = json.load(f)
        assert record["stage"] == "RENDERING"
        assert record["result"]["risk_level"] == "LOW"

    @pytest.mark.asyncio
    async def test_get(self, tmp_path):
        store = JsonFileReportStore(str(tmp_path))
        await store.put("job-1", make_job())

        loaded = await store.get("job-1")

        assert loaded.job_id == "job-1"
        assert loaded.stage == Stage.RENDERING
        assert await store.get("job-2") is None
        assert store.job_ids() == ["job-1"]

    @pytest.mark.asyncio
    async def test_unicode_survives(self, tmp_path):
        store = JsonFileReportStore(str(tmp_path))
        job = make_job()
        job.result.recommendations = ["충분한 수면을 취하세요"]

        await store.put(job.job_id, job)

        assert (await store.get(job.job_id)).result.recommendations == ["충분한 수면을 취하세요"]

    @pytest.mark.asyncio
    async def test_rejects_unsafe_job_id(self, tmp_path):
        store = JsonFileReportStore(str(tmp_path))

        with pytest.raises(StoreError):
            await store.put("../escape", make_job("../escape"))

    @pytest.mark.asyncio
    async def test_corrupt_file(self, tmp_path):
        store = JsonFileReportStore(str(tmp_path))
        (tmp_path / "job-1.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(StoreError):
            await store.get("job-1")

    def test_creates_directory(self, tmp_path):
        target = tmp_path / "nested" / "reports"

        JsonFileReportStore(str(target))

        assert target.is_dir()
