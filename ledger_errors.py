"""
Error taxonomy for the investor NAV ledger.

NoValuationAvailable and InvalidNavReference are raised and abort a single
investor's computation. NegativeOwnershipClamped and ReconciliationMismatch
are never raised: they are flag records that get logged and attached to
the results so the caller can act on them.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional


class LedgerError(Exception):
    """Base class for per-investor ledger failures."""

    def __init__(self, message: str, investor_id: Optional[str] = None):
        super().__init__(message)
        self.investor_id = investor_id


class NoValuationAvailable(LedgerError):
    """No NAV snapshot exists at or before an investor's start date."""

    def __init__(self, investor_id: Optional[str], start_date: date):
        super().__init__(
            f"No NAV snapshot on or before {start_date} for investor {investor_id}",
            investor_id,
        )
        self.start_date = start_date


class InvalidNavReference(LedgerError):
    """A NAV reference is zero, negative or missing during the ownership walk."""

    def __init__(self, investor_id: Optional[str], nav_value, event_date: Optional[date] = None):
        where = f" on {event_date}" if event_date is not None else ""
        super().__init__(
            f"Invalid NAV reference {nav_value!r}{where} for investor {investor_id}",
            investor_id,
        )
        self.nav_value = nav_value
        self.event_date = event_date


@dataclass(frozen=True)
class NegativeOwnershipClamped:
    """A withdrawal exceeded the investor's tracked value; ownership was set to zero."""
    investor_id: str
    date: date
    value_before: Decimal
    withdrawal: Decimal

    @property
    def shortfall(self) -> Decimal:
        return self.withdrawal - self.value_before

    def __str__(self) -> str:
        return (
            f"Withdrawal of {self.withdrawal:,.2f} on {self.date} exceeds tracked value "
            f"{self.value_before:,.2f} for investor {self.investor_id}; ownership clamped to zero"
        )


@dataclass(frozen=True)
class ReconciliationMismatch:
    """Sum of active investor values deviates from total NAV beyond tolerance."""
    total_nav: Decimal
    sum_investor_values: Decimal
    discrepancy: Decimal
    tolerance: Decimal

    def __str__(self) -> str:
        return (
            f"Investor values sum to {self.sum_investor_values:,.2f} against total NAV "
            f"{self.total_nav:,.2f} (discrepancy {self.discrepancy:,.2f}, "
            f"tolerance {self.tolerance:.4%})"
        )
