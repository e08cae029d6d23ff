"""
Credit ledger interface and in-memory implementation
"""

from .cost_ledger import (
    CostLedger, InMemoryCostLedger, Reservation, ReservationStatus, LedgerEntry,
)

__all__ = ['CostLedger', 'InMemoryCostLedger', 'Reservation', 'ReservationStatus', 'LedgerEntry']
