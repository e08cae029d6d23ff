"""
Error taxonomy for the measurement-to-report pipeline

Every terminal pipeline failure is recorded on the job with one of the
ErrorKind values below. The exception classes are raised inside the
orchestrator and its collaborators and never escape the orchestrator.
"""

from enum import Enum


class ErrorKind(Enum):
    PRECONDITION = "PRECONDITION"
    DATA_QUALITY = "DATA_QUALITY"
    INSUFFICIENT_CREDIT = "INSUFFICIENT_CREDIT"
    EXECUTION = "EXECUTION"
    VALIDATION = "VALIDATION"
    INTERNAL = "INTERNAL"


class PipelineError(Exception):
    """Base class for errors that map onto an ErrorKind"""

    kind = ErrorKind.INTERNAL
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class PreconditionError(PipelineError):
    kind = ErrorKind.PRECONDITION


class DataQualityError(PipelineError):
    kind = ErrorKind.DATA_QUALITY


class InsufficientCreditError(PipelineError):
    """Raised by a CostLedger when an account cannot cover a reservation"""

    kind = ErrorKind.INSUFFICIENT_CREDIT

    def __init__(self, account_id: str, requested: int, available: int):
        super().__init__(
            f"Account {account_id} has {available} credits, {requested} required"
        )
        self.account_id = account_id
        self.requested = requested
        self.available = available


class ExecutionError(PipelineError):
    kind = ErrorKind.EXECUTION


class TransportError(ExecutionError):
    """AI endpoint unreachable, timed out or answered with a non-2xx status"""

    retryable = True

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class AnalysisParseError(PipelineError):
    """AI output could not be turned into an AnalysisResult"""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, raw_output: str = ""):
        super().__init__(message)
        self.raw_output = raw_output


class ResultValidationError(PipelineError):
    """A result about to be persisted still violates the AnalysisResult bounds"""

    kind = ErrorKind.VALIDATION


class InternalError(PipelineError):
    kind = ErrorKind.INTERNAL


class LedgerError(Exception):
    """Illegal ledger operation (unknown reservation, bad amount)"""


class ReservationStateError(LedgerError):
    """Reservation already debited or released"""


class StoreError(Exception):
    """A ReportStore write or read failed"""
