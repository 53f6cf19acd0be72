"""
Investor ledger: per-investor valuation and fund reconciliation.

Runs the ownership walk once per investor against the fund-wide NAV series,
values each account, and reconciles the active total with the latest NAV.
A failure for one investor is logged and recorded without stopping the
others.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional
import pandas as pd
import logging

from ledger_errors import LedgerError, NegativeOwnershipClamped
from models import CapitalFlow, Investor, NavSnapshot
from nav_store import FundDataStore
from ownership_tracker import track_ownership
from reconciliation import (
    DEFAULT_TOLERANCE,
    ReconciliationResult,
    apply_scale_factor,
    check_reconciliation,
)
from timeline import NAV_FIRST, sort_snapshots
from valuation import InvestorResult, build_investor_result, calculate_investor_value


RESULT_COLUMNS = [
    'id', 'name', 'status', 'start_date', 'initial_investment', 'total_invested',
    'ownership_fraction', 'current_value', 'return_percentage',
    'display_value', 'display_return_percentage', 'mgmt_fee_rate', 'perf_fee_rate',
    'clamped_withdrawals',
]


@dataclass
class LedgerResult:
    """
    Outcome of a batch run.

    Attributes:
        investors: One result per investor that could be valued
        reconciliation: Active total against the latest NAV (ledger values)
        failures: Investor id -> error message for investors that could not be valued
        clamps: Every withdrawal that was clamped to zero ownership
        latest_nav: Snapshot the values are based on
        scaled: Whether display values were normalized with the scale factor
    """
    investors: List[InvestorResult]
    reconciliation: ReconciliationResult
    failures: Dict[str, str] = field(default_factory=dict)
    clamps: List[NegativeOwnershipClamped] = field(default_factory=list)
    latest_nav: Optional[NavSnapshot] = None
    scaled: bool = False

    @property
    def active_investors(self) -> List[InvestorResult]:
        return [r for r in self.investors if r.is_active]

    def get_result(self, investor_id: str) -> Optional[InvestorResult]:
        for r in self.investors:
            if r.id == investor_id:
                return r
        return None

    def get_results_df(self) -> pd.DataFrame:
        """Investor results as a DataFrame, numeric columns as floats."""
        rows = []
        for r in self.investors:
            rows.append({
                'id': r.id,
                'name': r.name,
                'status': r.status,
                'start_date': pd.Timestamp(r.start_date),
                'initial_investment': float(r.initial_investment),
                'total_invested': float(r.total_invested),
                'ownership_fraction': float(r.ownership_fraction) if r.ownership_fraction is not None else None,
                'current_value': float(r.current_value),
                'return_percentage': float(r.return_percentage),
                'display_value': float(r.display_value) if r.display_value is not None else None,
                'display_return_percentage': (
                    float(r.display_return_percentage) if r.display_return_percentage is not None else None
                ),
                'mgmt_fee_rate': float(r.mgmt_fee_rate),
                'perf_fee_rate': float(r.perf_fee_rate),
                'clamped_withdrawals': r.clamped_withdrawals,
            })
        if not rows:
            return pd.DataFrame(columns=RESULT_COLUMNS)
        return pd.DataFrame(rows, columns=RESULT_COLUMNS)


def group_flows_by_investor(flows: Iterable[CapitalFlow]) -> Dict[str, List[CapitalFlow]]:
    grouped: Dict[str, List[CapitalFlow]] = {}
    for flow in flows:
        grouped.setdefault(flow.investor_id, []).append(flow)
    return grouped


def calculate_investor_result(
    investor: Investor,
    snapshots: List[NavSnapshot],
    transactions: List[CapitalFlow],
    latest_nav: NavSnapshot,
    tie_break: str = NAV_FIRST,
    fallback_to_earliest: bool = False
):
    """
    Value a single investor.

    Closed accounts bypass the ownership walk.

    Returns:
        Tuple of (InvestorResult, list of NegativeOwnershipClamped flags)

    Raises:
        LedgerError: If the investor cannot be valued
    """
    transactions = [t for t in transactions if t.investor_id == investor.id]

    if investor.is_closed:
        valuation = calculate_investor_value(investor, transactions, latest_nav, None)
        return build_investor_result(investor, valuation), []

    tracker = track_ownership(
        investor, snapshots, transactions,
        tie_break=tie_break,
        fallback_to_earliest=fallback_to_earliest,
    )
    valuation = calculate_investor_value(investor, transactions, latest_nav, tracker.ownership_fraction)
    result = build_investor_result(
        investor, valuation,
        ownership_fraction=tracker.ownership_fraction,
        clamped_withdrawals=len(tracker.clamps),
    )
    return result, list(tracker.clamps)


def calculate_investor_values(
    investors: Iterable[Investor],
    snapshots: Iterable[NavSnapshot],
    flows_by_investor: Dict[str, List[CapitalFlow]],
    tie_break: str = NAV_FIRST,
    fallback_to_earliest: bool = False,
    tolerance: Decimal = DEFAULT_TOLERANCE,
    scale_for_display: bool = False
) -> LedgerResult:
    """
    Value every investor and reconcile against the latest NAV.

    Args:
        investors: Investors to value, any order
        snapshots: Fund NAV snapshots
        flows_by_investor: Investor id -> that investor's capital flows
        tie_break: Same-date ordering of NAV and transaction events
        fallback_to_earliest: Enter investors without a prior NAV at the earliest snapshot
        tolerance: Relative reconciliation tolerance
        scale_for_display: Fill in display values normalized to total NAV

    Returns:
        LedgerResult
    """
    snapshots = sort_snapshots(snapshots)
    investors = list(investors)

    if not snapshots:
        logging.warning("No NAV snapshots available, nothing to value")
        return LedgerResult(
            investors=[],
            reconciliation=check_reconciliation(Decimal('0'), [], tolerance),
        )

    latest_nav = snapshots[-1]
    logging.info(
        f"Valuing {len(investors)} investors against NAV {latest_nav.total_nav:,.2f} "
        f"as of {latest_nav.month_end_date}"
    )

    results: List[InvestorResult] = []
    failures: Dict[str, str] = {}
    clamps: List[NegativeOwnershipClamped] = []

    for investor in investors:
        try:
            result, investor_clamps = calculate_investor_result(
                investor,
                snapshots,
                flows_by_investor.get(investor.id, []),
                latest_nav,
                tie_break=tie_break,
                fallback_to_earliest=fallback_to_earliest,
            )
        except LedgerError as e:
            logging.error(f"Error valuing investor {investor.name} ({investor.id}): {e}")
            failures[investor.id] = str(e)
            continue

        results.append(result)
        clamps.extend(investor_clamps)

    reconciliation = check_reconciliation(latest_nav.total_nav, results, tolerance)

    if scale_for_display:
        results = apply_scale_factor(results, latest_nav.total_nav)

    logging.info(f"Valued {len(results)} investors, {len(failures)} failures, {len(clamps)} clamped withdrawals")

    return LedgerResult(
        investors=results,
        reconciliation=reconciliation,
        failures=failures,
        clamps=clamps,
        latest_nav=latest_nav,
        scaled=scale_for_display,
    )


def run_ledger(store: FundDataStore, config=None) -> LedgerResult:
    """
    Value every investor held in a store.

    Args:
        store: Fund data store
        config: Optional Config from config_loader; defaults otherwise
    """
    if config is None:
        return calculate_investor_values(
            store.get_all_investors(),
            store.get_all_nav_data(),
            store.get_flows_by_investor(),
        )

    return calculate_investor_values(
        store.get_all_investors(),
        store.get_all_nav_data(),
        store.get_flows_by_investor(),
        tie_break=config.ledger.tie_break,
        fallback_to_earliest=config.ledger.fallback_to_earliest_nav,
        tolerance=config.reconciliation.tolerance_decimal,
        scale_for_display=config.reconciliation.apply_scale_factor,
    )
