"""
Pipeline job model and stage graph
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..core.data_types import AnalysisResult
from ..core.errors import ErrorKind


class Stage(Enum):
    QUEUED = "QUEUED"
    VALIDATING = "VALIDATING"
    RESERVING_COST = "RESERVING_COST"
    EXECUTING = "EXECUTING"
    RENDERING = "RENDERING"
    PERSISTING = "PERSISTING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


STAGE_ORDER = [
    Stage.QUEUED, Stage.VALIDATING, Stage.RESERVING_COST, Stage.EXECUTING,
    Stage.RENDERING, Stage.PERSISTING, Stage.COMPLETED,
]
STAGE_INDEX = {stage: i for i, stage in enumerate(STAGE_ORDER)}
TERMINAL_STAGES = {Stage.COMPLETED, Stage.FAILED, Stage.CANCELLED}


def next_stage(stage: Stage) -> Optional[Stage]:
    index = STAGE_INDEX.get(stage)
    if index is None or index + 1 >= len(STAGE_ORDER):
        return None
    return STAGE_ORDER[index + 1]


def is_cancellable(stage: Stage) -> bool:
    return stage in STAGE_INDEX and STAGE_INDEX[stage] < STAGE_INDEX[Stage.PERSISTING]


def can_transition(current: Stage, target: Stage) -> bool:
    """Successor only; FAILED from any live stage; CANCELLED before PERSISTING"""
    if current in TERMINAL_STAGES:
        return False
    if target == Stage.FAILED:
        return True
    if target == Stage.CANCELLED:
        return is_cancellable(current)
    return next_stage(current) == target


def new_job_id() -> str:
    return f"job-{uuid.uuid4().hex[:12]}"


@dataclass
class PipelineJob:
    """One run of the pipeline for one sealed session against one engine"""
    job_id: str
    session_id: str
    engine_id: str
    account_id: str
    stage: Stage = Stage.QUEUED
    progress_pct: int = 0
    cost_reserved: int = 0
    cost_actual: int = 0
    created_at: float = field(default_factory=time.time)
    stage_timestamps: Dict[str, float] = field(default_factory=dict)
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    result: Optional[AnalysisResult] = None
    degraded: bool = False
    attempts: int = 0
    warnings: List[str] = field(default_factory=list)
    last_error: Optional[str] = None
    rendered: Dict[str, str] = field(default_factory=dict)
    reservation_id: Optional[str] = None
    credit_debited: bool = False
    credit_released: bool = False
    cancel_requested: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.stage in TERMINAL_STAGES

    @property
    def release_pending(self) -> bool:
        """A failed or cancelled job whose reservation was never returned"""
        return (self.stage in (Stage.FAILED, Stage.CANCELLED) and self.reservation_id is not None
                and not self.credit_debited and not self.credit_released)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "session_id": self.session_id,
            "engine_id": self.engine_id,
            "account_id": self.account_id,
            "stage": self.stage.value,
            "progress_pct": self.progress_pct,
            "cost_reserved": self.cost_reserved,
            "cost_actual": self.cost_actual,
            "created_at": self.created_at,
            "stage_timestamps": dict(self.stage_timestamps),
            "error_kind": self.error_kind.value if self.error_kind else None,
            "error_message": self.error_message,
            "result": self.result.to_dict() if self.result else None,
            "degraded": self.degraded,
            "attempts": self.attempts,
            "warnings": list(self.warnings),
            "last_error": self.last_error,
            "rendered": dict(self.rendered),
            "reservation_id": self.reservation_id,
            "credit_debited": self.credit_debited,
            "credit_released": self.credit_released,
            "cancel_requested": self.cancel_requested,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PipelineJob":
        result = data.get("result")
        error_kind = data.get("error_kind")
        return cls(
            job_id=data["job_id"],
            session_id=data.get("session_id", ""),
            engine_id=data.get("engine_id", ""),
            account_id=data.get("account_id", ""),
            stage=Stage(data.get("stage", Stage.QUEUED.value)),
            progress_pct=data.get("progress_pct", 0),
            cost_reserved=data.get("cost_reserved", 0),
            cost_actual=data.get("cost_actual", 0),
            created_at=data.get("created_at", time.time()),
            stage_timestamps=dict(data.get("stage_timestamps") or {}),
            error_kind=ErrorKind(error_kind) if error_kind else None,
            error_message=data.get("error_message"),
            result=AnalysisResult.from_dict(result) if result else None,
            degraded=data.get("degraded", False),
            attempts=data.get("attempts", 0),
            warnings=list(data.get("warnings") or []),
            last_error=data.get("last_error"),
            rendered=dict(data.get("rendered") or {}),
            reservation_id=data.get("reservation_id"),
            credit_debited=data.get("credit_debited", False),
            credit_released=data.get("credit_released", False),
            cancel_requested=data.get("cancel_requested", False),
        )
