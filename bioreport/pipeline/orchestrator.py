"""
Analysis orchestrator

Drives a PipelineJob through

    QUEUED -> VALIDATING -> RESERVING_COST -> EXECUTING -> RENDERING
           -> PERSISTING -> COMPLETED

with FAILED reachable from any live stage and CANCELLED from any stage
before PERSISTING. Every transition is timestamped and checkpointed to the
report store, so a job interrupted mid-stage resumes from its last
committed stage instead of starting over and charging the account twice.

Errors never escape run(), process() or resume(); they are recorded on
the job as an ErrorKind plus message.
"""

import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional

from ..core.config import PipelineConfig, validate_config
from ..core.data_types import MeasurementSession, AnalysisResult
from ..core.errors import (
    ErrorKind, PipelineError, PreconditionError, DataQualityError, ExecutionError,
    TransportError, AnalysisParseError, ResultValidationError, InternalError,
    LedgerError, ReservationStateError,
)
from ..engines.base import AnalysisOptions, EngineStatus
from ..engines.catalog import EngineCatalog
from ..engines.parsing import fallback_result
from ..ledger.cost_ledger import CostLedger
from .jobs import PipelineJob, Stage, can_transition, is_cancellable, new_job_id
from .rendering import ReportRenderer, HtmlReportRenderer, JsonReportRenderer

ProgressCallback = Callable[[PipelineJob], None]


class AnalysisOrchestrator:
    """
    Measurement-to-report state machine

    Args:
        catalog: Engine catalog used for lookup, auto-selection and usage counts
        ledger: CostLedger for reserve/debit/release
        store: ReportStore receiving a checkpoint at every stage
        renderers: Output formats to produce (HTML and JSON by default)
        config: Timeouts, retry budget, language and progress bands
        sleep: Coroutine used for retry backoff (replaced in tests)
    """

    def __init__(self, catalog: EngineCatalog, ledger: CostLedger, store,
                 renderers: Optional[List[ReportRenderer]] = None,
                 config: Optional[PipelineConfig] = None,
                 sleep=asyncio.sleep):
        self.catalog = catalog
        self.ledger = ledger
        self.store = store
        self.renderers = renderers if renderers is not None else [HtmlReportRenderer(), JsonReportRenderer()]
        self.config = config or PipelineConfig()
        validate_config(self.config)
        self._sleep = sleep

        self.jobs: Dict[str, PipelineJob] = {}
        self._sessions: Dict[str, MeasurementSession] = {}
        self._listeners: Dict[str, List[ProgressCallback]] = {}
        self._running = set()

        self._handlers = {
            Stage.QUEUED: self._check_preconditions,
            Stage.VALIDATING: self._validate,
            Stage.RESERVING_COST: self._reserve,
            Stage.EXECUTING: self._execute,
            Stage.RENDERING: self._render,
            Stage.PERSISTING: self._persist,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def submit(self, session: Optional[MeasurementSession], engine_id: Optional[str] = None,
               on_progress: Optional[ProgressCallback] = None) -> PipelineJob:
        """
        Create a QUEUED job

        When engine_id is None the cheapest active engine compatible with
        the session's data types is chosen. Problems with the session or
        the engine surface when the job runs, as PRECONDITION failures.
        """
        if engine_id is None and session is not None:
            selected = self.catalog.auto_select(session.data_types())
            engine_id = selected.id if selected is not None else ""
            if selected is not None:
                logging.info(f"Auto-selected engine {engine_id} for {session.session_id}")

        job = PipelineJob(
            job_id=new_job_id(),
            session_id=session.session_id if session is not None else "",
            engine_id=engine_id or "",
            account_id=session.owner.account_id if session is not None else "",
        )
        job.stage_timestamps[Stage.QUEUED.value] = job.created_at

        self.jobs[job.job_id] = job
        if session is not None:
            self._sessions[session.session_id] = session
        if on_progress is not None:
            self._listeners.setdefault(job.job_id, []).append(on_progress)

        logging.info(f"Job {job.job_id} queued (session={job.session_id or '-'}, engine={job.engine_id or '-'})")
        return job

    def add_listener(self, job_id: str, callback: ProgressCallback):
        self._listeners.setdefault(job_id, []).append(callback)

    def job(self, job_id: str) -> Optional[PipelineJob]:
        return self.jobs.get(job_id)

    async def process(self, session: Optional[MeasurementSession], engine_id: Optional[str] = None,
                      on_progress: Optional[ProgressCallback] = None) -> PipelineJob:
        """Submit and run one job to a terminal (or resumable) state"""
        job = self.submit(session, engine_id, on_progress)
        return await self.run(job.job_id)

    async def run(self, job_id: str) -> Optional[PipelineJob]:
        """
        Drive a job from its current stage

        Returns when the job is terminal or parked in PERSISTING after a
        failed store write. Returns None for unknown job ids.
        """
        job = self.jobs.get(job_id)
        if job is None:
            logging.error(f"Unknown job: {job_id}")
            return None
        if job.is_terminal:
            return job
        if job_id in self._running:
            logging.warning(f"Job {job_id} is already running")
            return job

        self._running.add(job_id)
        try:
            while not job.is_terminal:
                if job.cancel_requested and is_cancellable(job.stage):
                    await self._cancel(job)
                    break

                stage = job.stage
                try:
                    await self._handlers[stage](job)
                except PipelineError as e:
                    await self._fail(job, e.kind, e.message)
                except Exception as e:
                    logging.error(f"Job {job.job_id}: unexpected error in {stage.value}: {e}")
                    await self._fail(job, ErrorKind.INTERNAL, f"Unexpected error in {stage.value}: {e}")

                if job.stage == Stage.PERSISTING and job.last_error:
                    logging.warning(f"Job {job.job_id} parked in PERSISTING: {job.last_error}")
                    break
        finally:
            self._running.discard(job_id)

        return job

    async def cancel(self, job_id: str) -> bool:
        """
        Request cancellation

        Refused once the job is terminal or has entered PERSISTING. A job
        that is not currently running is cancelled immediately; a running
        job is cancelled before its next stage starts.
        """
        job = self.jobs.get(job_id)
        if job is None:
            return False
        if not is_cancellable(job.stage):
            logging.warning(f"Cancellation of {job_id} refused in stage {job.stage.value}")
            return False

        if job_id in self._running:
            job.cancel_requested = True
            logging.info(f"Cancellation requested for {job_id}")
            return True

        try:
            await self._cancel(job)
        except Exception as e:
            logging.error(f"Cancelling {job_id} failed: {e}")
            return False
        return True

    async def resume(self, job_id: str, session: Optional[MeasurementSession] = None) -> Optional[PipelineJob]:
        """
        Continue a job from its last committed stage

        The job is loaded from the store if this orchestrator does not hold
        it. Credit already reserved is reused, never reserved again.
        A failed or cancelled job whose release did not go through gets the
        release retried.
        """
        job = self.jobs.get(job_id)
        if job is None:
            try:
                job = await self.store.get(job_id)
            except Exception as e:
                logging.error(f"Could not load job {job_id}: {e}")
                return None
            if job is None:
                logging.error(f"Job {job_id} not found")
                return None
            self.jobs[job_id] = job

        if session is not None:
            if session.session_id != job.session_id:
                logging.error(f"Session {session.session_id} does not belong to job {job_id}")
                return job
            self._sessions[session.session_id] = session

        if job.release_pending:
            logging.info(f"Retrying release of {job.reservation_id} for {job_id}")
            await self._release_credit(job)
            await self._checkpoint(job)

        if job.is_terminal:
            logging.info(f"Job {job_id} already {job.stage.value}; submit a new job to retry")
            return job

        logging.info(f"Resuming job {job_id} from {job.stage.value}")
        return await self.run(job_id)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _notify(self, job: PipelineJob):
        for callback in list(self._listeners.get(job.job_id, [])):
            try:
                callback(job)
            except Exception as e:
                logging.error(f"Progress callback for {job.job_id} failed: {e}")

    def _set_progress(self, job: PipelineJob, pct: int):
        if pct > job.progress_pct:
            job.progress_pct = pct
            self._notify(job)

    async def _advance(self, job: PipelineJob, target: Stage):
        if not can_transition(job.stage, target):
            raise InternalError(f"Illegal transition {job.stage.value} -> {target.value}")

        previous = job.stage
        job.stage = target
        job.stage_timestamps[target.value] = time.time()
        band = self.config.progress_bands.get(target.value)
        if band is not None:
            job.progress_pct = max(job.progress_pct, band)

        logging.info(f"Job {job.job_id}: {previous.value} -> {target.value} ({job.progress_pct}%)")
        self._notify(job)

        # Entering PERSISTING is checkpointed by the persist step itself
        if target != Stage.PERSISTING:
            await self._checkpoint(job)

    async def _checkpoint(self, job: PipelineJob):
        try:
            await self.store.put(job.job_id, job)
        except Exception as e:
            logging.warning(f"Checkpoint of {job.job_id} at {job.stage.value} failed: {e}")

    async def _release_credit(self, job: PipelineJob):
        if job.reservation_id is None or job.credit_debited or job.credit_released:
            return
        try:
            await self.ledger.release(job.reservation_id)
            job.credit_released = True
        except ReservationStateError as e:
            logging.warning(f"Reservation {job.reservation_id} already settled: {e}")
            job.credit_released = True
        except Exception as e:
            logging.error(f"Failed to release {job.reservation_id} for {job.job_id}, "
                          f"resume the job to retry: {e}")

    async def _fail(self, job: PipelineJob, kind: ErrorKind, message: str):
        await self._release_credit(job)
        job.error_kind = kind
        job.error_message = message
        logging.error(f"Job {job.job_id} failed ({kind.value}): {message}")
        await self._advance(job, Stage.FAILED)

    async def _cancel(self, job: PipelineJob):
        await self._release_credit(job)
        logging.info(f"Job {job.job_id} cancelled in {job.stage.value}")
        await self._advance(job, Stage.CANCELLED)

    # ------------------------------------------------------------------
    # Stage handlers
    # ------------------------------------------------------------------

    def _session(self, job: PipelineJob) -> MeasurementSession:
        session = self._sessions.get(job.session_id)
        if session is None:
            raise PreconditionError(f"Measurement session {job.session_id or '-'} is not available")
        return session

    def _engine(self, job: PipelineJob):
        if not job.engine_id:
            raise PreconditionError("No compatible analysis engine")
        descriptor = self.catalog.get(job.engine_id)
        executor = self.catalog.executor(job.engine_id)
        if descriptor is None or executor is None:
            raise PreconditionError(f"Unknown engine: {job.engine_id}")
        return descriptor, executor

    async def _check_preconditions(self, job: PipelineJob):
        session = self._session(job)
        if not session.sealed:
            raise PreconditionError(f"Session {session.session_id} is not sealed")

        descriptor, _ = self._engine(job)
        if descriptor.status != EngineStatus.ACTIVE:
            raise PreconditionError(f"Engine {descriptor.id} is {descriptor.status.value}")
        if self.config.output_language not in descriptor.capabilities.languages:
            raise PreconditionError(
                f"Engine {descriptor.id} does not support language {self.config.output_language}"
            )

        await self._advance(job, Stage.VALIDATING)

    async def _validate(self, job: PipelineJob):
        session = self._session(job)
        descriptor, executor = self._engine(job)

        quality = session.quality_summary.overall_quality
        minimum = descriptor.capabilities.min_data_quality
        if quality < minimum:
            raise DataQualityError(f"Session quality {quality:.1f} below engine minimum {minimum:.1f}")

        missing = [name for name in descriptor.required_metrics if session.metric(name) is None]
        if missing:
            raise DataQualityError(f"Missing required metrics: {', '.join(missing)}")

        validation = executor.validate(session)
        if not validation.is_valid:
            raise DataQualityError("; ".join(validation.errors) or "Engine rejected the session")
        job.warnings.extend(w for w in validation.warnings if w not in job.warnings)

        await self._advance(job, Stage.RESERVING_COST)

    async def _reserve(self, job: PipelineJob):
        descriptor, _ = self._engine(job)

        if job.reservation_id is None:
            job.reservation_id = await self.ledger.reserve(job.account_id, descriptor.cost_per_analysis)
            job.cost_reserved = descriptor.cost_per_analysis
        else:
            logging.info(f"Job {job.job_id} reusing reservation {job.reservation_id}")

        await self._advance(job, Stage.EXECUTING)

    def _engine_progress(self, job: PipelineJob, fraction: float):
        low, high = self.config.executing_band
        self._set_progress(job, int(low + (high - low) * fraction))

    def _degrade(self, job: PipelineJob, raw_output: str, reason: str) -> AnalysisResult:
        logging.warning(f"Job {job.job_id}: using fallback result ({reason})")
        job.degraded = True
        job.warnings.append(f"Low-confidence fallback result: {reason}")
        return fallback_result(raw_output, self.config.output_language)

    async def _execute(self, job: PipelineJob):
        session = self._session(job)
        descriptor, executor = self._engine(job)
        options = AnalysisOptions(
            output_language=self.config.output_language,
            analysis_depth=self.config.analysis_depth,
            progress=lambda fraction: self._engine_progress(job, fraction),
        )
        budget = 1 + self.config.max_execution_retries
        timeout = self.config.execution_timeout_sec

        attempt = 0
        while True:
            attempt += 1
            job.attempts += 1
            try:
                result = await asyncio.wait_for(executor.analyze(session, options), timeout)
            except asyncio.TimeoutError:
                error = TransportError(f"Analysis timed out after {timeout:g}s")
            except TransportError as e:
                error = e
            except AnalysisParseError as e:
                result = self._degrade(job, e.raw_output, e.message)
                break
            else:
                violations = result.invariant_violations()
                if violations:
                    result = self._degrade(job, result.raw_output, "; ".join(violations))
                break

            if attempt >= budget:
                raise ExecutionError(f"{descriptor.id} failed after {attempt} attempts: {error.message}")

            logging.warning(f"Job {job.job_id}: attempt {attempt}/{budget} failed ({error.message}); "
                            f"retrying in {self.config.retry_backoff_sec:.1f}s")
            await self._sleep(self.config.retry_backoff_sec)

        job.result = result
        await self._advance(job, Stage.RENDERING)

    async def _render(self, job: PipelineJob):
        if job.result is None:
            raise InternalError("No analysis result to render")

        rendered = {}
        for renderer in self.renderers:
            report = renderer.render(job, job.result)
            rendered[report.format] = report.content
        job.rendered = rendered

        await self._advance(job, Stage.PERSISTING)

    async def _persist(self, job: PipelineJob):
        if job.result is None:
            raise ResultValidationError("No analysis result to persist")
        violations = job.result.invariant_violations()
        if violations:
            raise ResultValidationError(f"Result failed validation: {'; '.join(violations)}")

        try:
            await self.store.put(job.job_id, job)
        except Exception as e:
            job.last_error = f"Store write failed: {e}"
            return

        if not job.credit_debited and job.reservation_id is not None:
            try:
                await self.ledger.debit(job.reservation_id)
            except ReservationStateError as e:
                logging.warning(f"Reservation {job.reservation_id} already settled: {e}")
            except LedgerError as e:
                job.last_error = f"Debit failed: {e}"
                return
            job.credit_debited = True
            job.cost_actual = job.cost_reserved

        job.last_error = None
        self.catalog.record_usage(job.engine_id)
        await self._advance(job, Stage.COMPLETED)
