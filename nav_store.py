"""
In-memory fund data store.

Holds NAV snapshots, investors and capital flows and exposes the ordered
reads and append-only writes the ledger needs. Snapshots and flows are
never updated or deleted; an investor's status is the only field that can
change.
"""

import uuid
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Union

from models import CapitalFlow, Investor, InvestorStatus, NavSnapshot
from timeline import sort_snapshots
from flow_utils import sort_flows


class FundDataStore:
    """
    Append-only store for one fund.

    Args:
        snapshots: Initial NAV snapshots
        investors: Initial investors
        flows: Initial capital flows, in insertion order
    """

    def __init__(
        self,
        snapshots: Iterable[NavSnapshot] = (),
        investors: Iterable[Investor] = (),
        flows: Iterable[CapitalFlow] = ()
    ):
        self._snapshots: List[NavSnapshot] = []
        self._investors: Dict[str, Investor] = {}
        self._flows: List[CapitalFlow] = []

        for investor in investors:
            self.add_investor(investor)
        for snapshot in snapshots:
            self.append_nav_snapshot(snapshot)
        for flow in flows:
            self.append_capital_flow(flow)

    # --- NAV snapshots -----------------------------------------------------

    def get_all_nav_data(self) -> List[NavSnapshot]:
        """All snapshots, ascending by month_end_date."""
        return list(self._snapshots)

    def get_latest_nav(self) -> Optional[NavSnapshot]:
        """Snapshot with the maximum month_end_date."""
        return self._snapshots[-1] if self._snapshots else None

    def get_year_start_nav(self, year: int) -> Optional[NavSnapshot]:
        """Latest snapshot dated on or before December 31 of the prior year."""
        cutoff = date(year - 1, 12, 31)
        result = None
        for snapshot in self._snapshots:
            if snapshot.month_end_date > cutoff:
                break
            result = snapshot
        return result

    def get_previous_month_return(self) -> Optional[Decimal]:
        latest = self.get_latest_nav()
        return latest.monthly_return if latest is not None else None

    def append_nav_snapshot(self, snapshot: NavSnapshot) -> NavSnapshot:
        """
        Append a snapshot.

        Raises:
            ValueError: If a snapshot already exists for the same month_end_date
        """
        if any(s.month_end_date == snapshot.month_end_date for s in self._snapshots):
            raise ValueError(f"NAV snapshot for {snapshot.month_end_date} already exists")
        self._snapshots = sort_snapshots(self._snapshots + [snapshot])
        logging.info(f"Added NAV snapshot {snapshot.month_end_date}: {snapshot.total_nav:,.2f}")
        return snapshot

    # --- Investors ---------------------------------------------------------

    def get_all_investors(self) -> List[Investor]:
        """All investors ordered by name."""
        return sorted(self._investors.values(), key=lambda i: i.name)

    def get_investor(self, investor_id: str) -> Optional[Investor]:
        return self._investors.get(str(investor_id))

    def get_active_investors_count(self) -> int:
        return sum(1 for i in self._investors.values() if i.is_active)

    def add_investor(self, investor: Investor) -> Investor:
        if investor.id in self._investors:
            raise ValueError(f"Investor {investor.id} already exists")
        self._investors[investor.id] = investor
        return investor

    def set_investor_status(self, investor_id: str, status: Union[InvestorStatus, str]) -> Investor:
        investor = self._investors.get(str(investor_id))
        if investor is None:
            raise KeyError(f"Unknown investor {investor_id}")
        updated = investor.with_status(status)
        self._investors[investor.id] = updated
        logging.info(f"Investor {investor.name} ({investor.id}) status {investor.status.value} -> {updated.status.value}")
        return updated

    # --- Capital flows -----------------------------------------------------

    def get_investor_transactions(self, investor_id: str) -> List[CapitalFlow]:
        """An investor's flows ascending by date, same-day flows in insertion order."""
        return sort_flows(f for f in self._flows if f.investor_id == str(investor_id))

    def get_all_capital_flows(self) -> List[CapitalFlow]:
        """All flows, most recent first."""
        return list(reversed(sort_flows(self._flows)))

    def get_recent_activity(self, limit: int = 5) -> List[CapitalFlow]:
        return self.get_all_capital_flows()[:limit]

    def get_flows_by_investor(self) -> Dict[str, List[CapitalFlow]]:
        return {investor_id: self.get_investor_transactions(investor_id) for investor_id in self._investors}

    def append_capital_flow(self, flow: CapitalFlow) -> CapitalFlow:
        """
        Append a flow, assigning an id and creation timestamp when missing.

        Raises:
            ValueError: If the flow references an unknown investor
        """
        investor = self._investors.get(flow.investor_id)
        if investor is None:
            raise ValueError(f"Capital flow references unknown investor {flow.investor_id}")

        stored = CapitalFlow(
            investor_id=flow.investor_id,
            date=flow.date,
            amount=flow.amount,
            flow_type=flow.flow_type,
            id=flow.id or str(uuid.uuid4()),
            investor_name=flow.investor_name or investor.name,
            created_at=flow.created_at or datetime.now(),
        )
        self._flows.append(stored)
        logging.info(
            f"Added {stored.flow_type.value} of {stored.amount:,.2f} on {stored.date} for {stored.investor_name}"
        )
        return stored
