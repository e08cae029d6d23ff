"""
Credit ledger

CostLedger is the contract the pipeline consumes: reserve credits before an
analysis, then either debit the reservation once the report is persisted or
release it when the job fails or is cancelled. InMemoryCostLedger is the
reference implementation used by the CLI and the tests.
"""

import asyncio
import logging
import threading
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, List, Optional

from ..core.errors import InsufficientCreditError, LedgerError, ReservationStateError


class CostLedger(ABC):
    """Reserve / debit / release contract"""

    @abstractmethod
    async def reserve(self, account_id: str, amount: int) -> str:
        """
        Hold credits against an account

        Returns:
            str: Reservation id

        Raises:
            InsufficientCreditError: The account cannot cover the amount
        """

    @abstractmethod
    async def debit(self, reservation_id: str) -> None:
        """Commit a held reservation"""

    @abstractmethod
    async def release(self, reservation_id: str) -> None:
        """Return a held reservation to the account"""


class ReservationStatus(Enum):
    HELD = "HELD"
    DEBITED = "DEBITED"
    RELEASED = "RELEASED"


@dataclass
class Reservation:
    reservation_id: str
    account_id: str
    amount: int
    status: ReservationStatus = ReservationStatus.HELD
    created_at: float = 0.0
    settled_at: Optional[float] = None


@dataclass(frozen=True)
class LedgerEntry:
    kind: str                 # deposit, reserve, debit or release
    account_id: str
    amount: int
    reservation_id: Optional[str]
    timestamp: float


class InMemoryCostLedger(CostLedger):
    """
    Process-local ledger

    Balances count spendable credits only; held credits are tracked per
    reservation until they are debited or released. All mutation is
    serialized by one lock so concurrent jobs cannot race on a balance.
    """

    def __init__(self, balances: Optional[Dict[str, int]] = None):
        self._balances: Dict[str, int] = dict(balances or {})
        self._reservations: Dict[str, Reservation] = {}
        self._history: List[LedgerEntry] = []
        self._lock = threading.Lock()

    def _log(self, kind: str, account_id: str, amount: int, reservation_id: Optional[str] = None):
        self._history.append(LedgerEntry(kind, account_id, amount, reservation_id, time.time()))

    def deposit(self, account_id: str, amount: int):
        if amount <= 0:
            raise LedgerError(f"Deposit must be positive, got {amount}")
        with self._lock:
            self._balances[account_id] = self._balances.get(account_id, 0) + amount
            self._log("deposit", account_id, amount)
        logging.info(f"Deposited {amount} credits to {account_id}")

    def balance(self, account_id: str) -> int:
        with self._lock:
            return self._balances.get(account_id, 0)

    def held(self, account_id: str) -> int:
        with self._lock:
            return sum(r.amount for r in self._reservations.values()
                       if r.account_id == account_id and r.status == ReservationStatus.HELD)

    def reservation(self, reservation_id: str) -> Optional[Reservation]:
        with self._lock:
            reservation = self._reservations.get(reservation_id)
            return replace(reservation) if reservation is not None else None

    def history(self, account_id: Optional[str] = None) -> List[LedgerEntry]:
        with self._lock:
            return [e for e in self._history if account_id is None or e.account_id == account_id]

    def totals(self) -> Dict[str, int]:
        """Credits ever reserved, debited and released"""
        with self._lock:
            totals = {"reserve": 0, "debit": 0, "release": 0}
            for entry in self._history:
                if entry.kind in totals:
                    totals[entry.kind] += entry.amount
            return totals

    async def reserve(self, account_id: str, amount: int) -> str:
        if amount < 0:
            raise LedgerError(f"Reservation amount cannot be negative: {amount}")

        with self._lock:
            available = self._balances.get(account_id, 0)
            if available < amount:
                raise InsufficientCreditError(account_id, amount, available)

            reservation_id = f"rsv-{uuid.uuid4().hex[:12]}"
            self._balances[account_id] = available - amount
            self._reservations[reservation_id] = Reservation(
                reservation_id, account_id, amount, created_at=time.time()
            )
            self._log("reserve", account_id, amount, reservation_id)

        logging.info(f"Reserved {amount} credits for {account_id} ({reservation_id})")
        await asyncio.sleep(0)
        return reservation_id

    def _settle(self, reservation_id: str, status: ReservationStatus) -> Reservation:
        reservation = self._reservations.get(reservation_id)
        if reservation is None:
            raise LedgerError(f"Unknown reservation: {reservation_id}")
        if reservation.status != ReservationStatus.HELD:
            raise ReservationStateError(
                f"Reservation {reservation_id} already {reservation.status.value.lower()}"
            )
        reservation.status = status
        reservation.settled_at = time.time()
        return reservation

    async def debit(self, reservation_id: str) -> None:
        with self._lock:
            reservation = self._settle(reservation_id, ReservationStatus.DEBITED)
            self._log("debit", reservation.account_id, reservation.amount, reservation_id)
        logging.info(f"Debited {reservation.amount} credits from {reservation.account_id}")
        await asyncio.sleep(0)

    async def release(self, reservation_id: str) -> None:
        with self._lock:
            reservation = self._settle(reservation_id, ReservationStatus.RELEASED)
            self._balances[reservation.account_id] = (
                self._balances.get(reservation.account_id, 0) + reservation.amount
            )
            self._log("release", reservation.account_id, reservation.amount, reservation_id)
        logging.info(f"Released {reservation.amount} credits to {reservation.account_id}")
        await asyncio.sleep(0)
