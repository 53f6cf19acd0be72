"""
Timeline builder for the investor NAV ledger.

Merges a fund's NAV snapshot series and an investor's capital flows into a
single chronologically ordered event sequence.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Union

from models import CapitalFlow, NavSnapshot


NAV_EVENT = 'nav'
TRANSACTION_EVENT = 'transaction'

NAV_FIRST = 'nav_first'
TRANSACTION_FIRST = 'transaction_first'
TIE_BREAKS = (NAV_FIRST, TRANSACTION_FIRST)


@dataclass(frozen=True)
class TimelineEvent:
    """
    One point on the merged timeline.

    For NAV events nav_value is start_nav on a month-start point and
    total_nav on a month-end point. Transaction events carry no nav_value.
    """
    date: date
    kind: str
    record: Union[NavSnapshot, CapitalFlow]
    nav_value: Optional[Decimal] = None
    is_month_start: bool = False

    @property
    def is_nav(self) -> bool:
        return self.kind == NAV_EVENT

    @property
    def is_transaction(self) -> bool:
        return self.kind == TRANSACTION_EVENT


def sort_snapshots(snapshots: Iterable[NavSnapshot]) -> List[NavSnapshot]:
    """
    Sort snapshots ascending by month_end_date.

    Raises:
        ValueError: If two snapshots share a month_end_date
    """
    ordered = sorted(snapshots, key=lambda s: s.month_end_date)
    for prev, curr in zip(ordered, ordered[1:]):
        if prev.month_end_date == curr.month_end_date:
            raise ValueError(f"Duplicate NAV snapshot for {curr.month_end_date}")
    return ordered


def nav_events(snapshots: Iterable[NavSnapshot]) -> List[TimelineEvent]:
    """Month-end point for every snapshot, month-start point where start_nav is known."""
    events = []
    for snapshot in sort_snapshots(snapshots):
        if snapshot.has_start_valuation:
            events.append(TimelineEvent(
                date=snapshot.month_start_date,
                kind=NAV_EVENT,
                record=snapshot,
                nav_value=snapshot.start_nav,
                is_month_start=True,
            ))
        events.append(TimelineEvent(
            date=snapshot.month_end_date,
            kind=NAV_EVENT,
            record=snapshot,
            nav_value=snapshot.total_nav,
        ))
    return events


def build_timeline(
    snapshots: Iterable[NavSnapshot],
    flows: Iterable[CapitalFlow],
    tie_break: str = NAV_FIRST
) -> List[TimelineEvent]:
    """
    Build the unified event timeline for one investor.

    Events are ordered by date. On a shared date NAV events come before
    transactions under 'nav_first' (a transaction on a valuation date is
    priced at that date's NAV) and after them under 'transaction_first'.
    Among NAV events on one date, month-end points precede month-start
    points. Transactions on one date keep their input order.

    Args:
        snapshots: Fund NAV snapshots, any order
        flows: Capital flows for the investor, in insertion order
        tie_break: 'nav_first' (default) or 'transaction_first'

    Returns:
        List of TimelineEvent sorted ascending by date
    """
    if tie_break not in TIE_BREAKS:
        raise ValueError(f"tie_break must be one of {TIE_BREAKS}, got {tie_break!r}")

    nav_rank, txn_rank = (0, 1) if tie_break == NAV_FIRST else (1, 0)

    keyed = []
    for seq, event in enumerate(nav_events(snapshots)):
        keyed.append(((event.date, nav_rank, int(event.is_month_start), seq), event))

    for seq, flow in enumerate(flows):
        event = TimelineEvent(date=flow.date, kind=TRANSACTION_EVENT, record=flow)
        keyed.append(((event.date, txn_rank, 0, seq), event))

    keyed.sort(key=lambda item: item[0])
    return [event for _, event in keyed]
