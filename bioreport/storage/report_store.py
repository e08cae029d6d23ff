"""
Report store

ReportStore persists pipeline jobs keyed by job id. put() is an upsert:
writing the same job id twice leaves one record. Subscribers registered for
a job id are called with a copy of the job after every successful put.
"""

import asyncio
import json
import logging
import os
import re
import tempfile
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

from ..core.config import REPORT_DIR
from ..core.errors import StoreError
from ..pipeline.jobs import PipelineJob

JobCallback = Callable[[PipelineJob], None]

SAFE_JOB_ID = re.compile(r"^[A-Za-z0-9_.-]+$")


class ReportStore(ABC):
    """Durable job persistence with per-job subscriptions"""

    def __init__(self):
        self._subscribers: Dict[str, List[JobCallback]] = {}

    @abstractmethod
    async def put(self, job_id: str, job: PipelineJob) -> None:
        """
        Insert or replace the record for job_id

        Raises:
            StoreError: The write failed
        """

    @abstractmethod
    async def get(self, job_id: str) -> Optional[PipelineJob]:
        """Stored copy of the job, or None"""

    def subscribe(self, job_id: str, callback: JobCallback) -> Callable[[], None]:
        """
        Observe writes for one job

        Returns:
            Callable: Call it to unsubscribe
        """
        self._subscribers.setdefault(job_id, []).append(callback)

        def unsubscribe():
            callbacks = self._subscribers.get(job_id, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def _notify(self, job_id: str, record: Dict):
        for callback in list(self._subscribers.get(job_id, [])):
            try:
                callback(PipelineJob.from_dict(record))
            except Exception as e:
                logging.error(f"Store subscriber for {job_id} failed: {e}")


class InMemoryReportStore(ReportStore):
    """Dictionary-backed store; records are serialised copies"""

    def __init__(self):
        super().__init__()
        self._records: Dict[str, Dict] = {}
        self.writes = 0

    async def put(self, job_id: str, job: PipelineJob) -> None:
        record = job.to_dict()
        self._records[job_id] = record
        self.writes += 1
        self._notify(job_id, record)

    async def get(self, job_id: str) -> Optional[PipelineJob]:
        record = self._records.get(job_id)
        return PipelineJob.from_dict(record) if record is not None else None

    def __len__(self) -> int:
        return len(self._records)

    def job_ids(self) -> List[str]:
        return list(self._records)


class JsonFileReportStore(ReportStore):
    """
    One JSON file per job under a directory

    Writes go to a temporary file that is atomically renamed over the
    previous record, so readers never see a half-written report.
    """

    def __init__(self, directory: str = REPORT_DIR):
        super().__init__()
        self.directory = directory
        os.makedirs(directory, exist_ok=True)

    def _path(self, job_id: str) -> str:
        if not SAFE_JOB_ID.match(job_id):
            raise StoreError(f"Invalid job id for file store: {job_id!r}")
        return os.path.join(self.directory, f"{job_id}.json")

    def _write(self, path: str, record: Dict):
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(record, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def _read(self, path: str) -> Optional[Dict]:
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    async def put(self, job_id: str, job: PipelineJob) -> None:
        path = self._path(job_id)
        record = job.to_dict()
        try:
            await asyncio.to_thread(self._write, path, record)
        except (OSError, TypeError, ValueError) as e:
            raise StoreError(f"Failed to write {path}: {e}")
        self._notify(job_id, record)

    async def get(self, job_id: str) -> Optional[PipelineJob]:
        path = self._path(job_id)
        try:
            record = await asyncio.to_thread(self._read, path)
        except (OSError, ValueError) as e:
            raise StoreError(f"Failed to read {path}: {e}")
        return PipelineJob.from_dict(record) if record is not None else None

    def job_ids(self) -> List[str]:
        return sorted(name[:-5] for name in os.listdir(self.directory) if name.endswith(".json"))
