"""
Ownership tracker for the investor NAV ledger.

Walks the merged NAV/transaction timeline for a single investor and keeps
a running ownership fraction of the fund.

State:
- ownership_fraction: investor's share of the total fund (dimensionless)
- nav_reference: the fund total value last observed on the timeline

Transitions:
- NAV event: nav_reference becomes the event's value; ownership unchanged
- Contribution: value = nav_reference * ownership + amount
- Withdrawal: value = nav_reference * ownership - amount
  In both cases ownership = max(0, value / nav_reference)

A withdrawal that would drive ownership negative is clamped to zero and
recorded as a NegativeOwnershipClamped flag.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple
import pandas as pd
import logging

from ledger_errors import InvalidNavReference, NegativeOwnershipClamped, NoValuationAvailable
from models import CapitalFlow, Investor, NavSnapshot
from timeline import NAV_FIRST, TimelineEvent, build_timeline, sort_snapshots


ZERO = Decimal('0')

HISTORY_COLUMNS = [
    'date', 'event', 'nav_reference', 'flow_type', 'amount',
    'value_before', 'value_after', 'ownership_fraction', 'clamped',
]


def find_entry_valuation(
    investor: Investor,
    snapshots: Iterable[NavSnapshot],
    fallback_to_earliest: bool = False
) -> Tuple[NavSnapshot, Decimal]:
    """
    Find the valuation at which an investor enters the fund.

    A snapshot whose month_start_date equals the investor's start date and
    which carries start_nav is used first. Otherwise the latest snapshot
    with month_end_date on or before the start date supplies total_nav.

    Args:
        investor: The investor entering the fund
        snapshots: Fund NAV snapshots, any order
        fallback_to_earliest: Use the earliest snapshot when none precedes
            the start date instead of failing

    Returns:
        Tuple of (snapshot, entry NAV value)

    Raises:
        NoValuationAvailable: If no snapshot precedes the start date and
            fallback_to_earliest is not set
    """
    ordered = sort_snapshots(snapshots)
    start_date = investor.start_date

    for snapshot in ordered:
        if snapshot.has_start_valuation and snapshot.month_start_date == start_date:
            return snapshot, snapshot.start_nav

    closest = None
    for snapshot in ordered:
        if snapshot.month_end_date <= start_date:
            closest = snapshot
        else:
            break

    if closest is not None:
        return closest, closest.total_nav

    if fallback_to_earliest and ordered:
        earliest = ordered[0]
        logging.warning(
            f"No NAV on or before {start_date} for investor {investor.name} ({investor.id}); "
            f"falling back to earliest snapshot {earliest.month_end_date}"
        )
        return earliest, earliest.total_nav

    raise NoValuationAvailable(investor.id, start_date)


@dataclass
class OwnershipTracker:
    """
    Running ownership state for one investor.

    Attributes:
        investor_id: Investor whose flows are applied; other investors' flows are ignored
        ownership_fraction: Current share of the fund
        nav_reference: Fund value last observed
        history: Audit trail, one record per applied timeline event
        clamps: Withdrawals that drove ownership below zero
    """
    investor_id: str
    ownership_fraction: Decimal
    nav_reference: Decimal
    history: List[Dict] = field(default_factory=list)
    clamps: List[NegativeOwnershipClamped] = field(default_factory=list)

    @classmethod
    def start(
        cls,
        investor: Investor,
        snapshots: Iterable[NavSnapshot],
        fallback_to_earliest: bool = False
    ) -> 'OwnershipTracker':
        """Open the tracker at the investor's entry valuation."""
        snapshot, entry_nav = find_entry_valuation(investor, snapshots, fallback_to_earliest)
        if entry_nav is None or entry_nav <= 0:
            raise InvalidNavReference(investor.id, entry_nav, investor.start_date)

        tracker = cls(
            investor_id=investor.id,
            ownership_fraction=investor.initial_investment / entry_nav,
            nav_reference=entry_nav,
        )
        tracker._record(
            investor.start_date, 'entry',
            amount=investor.initial_investment,
            value_after=investor.initial_investment,
        )
        logging.debug(
            f"Investor {investor.id} enters on {investor.start_date} at NAV {entry_nav} "
            f"(snapshot {snapshot.month_end_date}), ownership {tracker.ownership_fraction}"
        )
        return tracker

    @property
    def value(self) -> Decimal:
        """Investor value at the current NAV reference."""
        return self.nav_reference * self.ownership_fraction

    def _check_reference(self, nav_value: Optional[Decimal], event_date: date):
        if nav_value is None or nav_value <= 0:
            raise InvalidNavReference(self.investor_id, nav_value, event_date)

    def _record(self, event_date: date, event: str, flow_type: Optional[str] = None,
                amount: Optional[Decimal] = None, value_before: Optional[Decimal] = None,
                value_after: Optional[Decimal] = None, clamped: bool = False):
        self.history.append({
            'date': event_date,
            'event': event,
            'nav_reference': self.nav_reference,
            'flow_type': flow_type,
            'amount': amount,
            'value_before': value_before,
            'value_after': value_after,
            'ownership_fraction': self.ownership_fraction,
            'clamped': clamped,
        })

    def apply_nav(self, nav_value: Optional[Decimal], event_date: date, label: str = 'nav'):
        """Move the NAV reference; ownership is unchanged by a valuation."""
        self._check_reference(nav_value, event_date)
        self.nav_reference = nav_value
        self._record(event_date, label)

    def apply_flow(self, flow: CapitalFlow) -> bool:
        """
        Apply a contribution or withdrawal at the current NAV reference.

        Returns:
            True if the flow was applied, False if it belongs to another investor
        """
        if flow.investor_id != self.investor_id:
            return False

        self._check_reference(self.nav_reference, flow.date)

        value_before = self.nav_reference * self.ownership_fraction
        if flow.is_contribution:
            value_after = value_before + flow.amount
        else:
            value_after = value_before - flow.amount

        fraction = value_after / self.nav_reference
        clamped = fraction < 0
        if clamped:
            flag = NegativeOwnershipClamped(
                investor_id=self.investor_id,
                date=flow.date,
                value_before=value_before,
                withdrawal=flow.amount,
            )
            self.clamps.append(flag)
            logging.warning(str(flag))
            fraction = ZERO

        self.ownership_fraction = fraction
        self._record(
            flow.date, 'transaction',
            flow_type=flow.flow_type.value,
            amount=flow.amount,
            value_before=value_before,
            value_after=value_after,
            clamped=clamped,
        )
        return True

    def apply_event(self, event: TimelineEvent):
        if event.is_nav:
            self.apply_nav(event.nav_value, event.date, 'nav_start' if event.is_month_start else 'nav_end')
        else:
            self.apply_flow(event.record)

    def run(self, timeline: Iterable[TimelineEvent], start_date: date) -> Decimal:
        """
        Apply every event dated on or after start_date.

        Returns:
            Final ownership fraction
        """
        for event in timeline:
            if event.date < start_date:
                continue
            self.apply_event(event)
        return self.ownership_fraction

    def get_history_df(self) -> pd.DataFrame:
        """Get the walk's audit trail as a DataFrame."""
        if not self.history:
            return pd.DataFrame(columns=HISTORY_COLUMNS)
        return pd.DataFrame(self.history, columns=HISTORY_COLUMNS)


def track_ownership(
    investor: Investor,
    snapshots: Iterable[NavSnapshot],
    flows: Iterable[CapitalFlow],
    tie_break: str = NAV_FIRST,
    fallback_to_earliest: bool = False
) -> OwnershipTracker:
    """
    Run the full ownership walk for one investor from its start date.

    Args:
        investor: Investor to track
        snapshots: Fund NAV snapshots
        flows: Capital flows; flows of other investors are ignored
        tie_break: Same-date ordering of NAV and transaction events
        fallback_to_earliest: Enter at the earliest snapshot when none precedes the start date

    Returns:
        The tracker after the last timeline event

    Raises:
        NoValuationAvailable: No entry valuation and no fallback requested
        InvalidNavReference: A zero or missing NAV reference was met
    """
    snapshots = list(snapshots)
    tracker = OwnershipTracker.start(investor, snapshots, fallback_to_earliest)
    timeline = build_timeline(snapshots, flows, tie_break)
    tracker.run(timeline, investor.start_date)

    logging.debug(
        f"Investor {investor.id}: {len(tracker.history) - 1} timeline events applied, "
        f"final ownership {tracker.ownership_fraction}"
    )
    return tracker
