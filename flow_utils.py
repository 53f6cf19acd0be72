"""
Capital flow utilities for the investor NAV ledger.

Provides consistent handling of investor contributions and withdrawals:
ordering, period filtering, aggregation and large-flow detection.
"""

import pandas as pd
import logging
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from models import CapitalFlow, NavSnapshot, Number, to_decimal


FLOW_COLUMNS = ['id', 'investor_id', 'investor_name', 'date', 'amount', 'type', 'signed_amount']


def sort_flows(flows: Iterable[CapitalFlow]) -> List[CapitalFlow]:
    """
    Sort flows ascending by date.

    The sort is stable, so flows sharing a date keep their insertion order.
    """
    return sorted(flows, key=lambda f: f.date)


def get_flows_for_period(
    flows: Iterable[CapitalFlow],
    start_date: date,
    end_date: date,
    inclusive: str = 'right'
) -> List[CapitalFlow]:
    """
    Extract flows for a specific period with consistent logic.

    Args:
        flows: Capital flows to filter
        start_date: Start of the period (exclusive by default)
        end_date: End of the period (inclusive by default)
        inclusive: Which bounds to include - 'right' (default), 'left', 'both', 'neither'

    Returns:
        Flows within the specified period, in date order
    """
    if inclusive == 'right':
        in_period = lambda d: start_date < d <= end_date
    elif inclusive == 'left':
        in_period = lambda d: start_date <= d < end_date
    elif inclusive == 'both':
        in_period = lambda d: start_date <= d <= end_date
    elif inclusive == 'neither':
        in_period = lambda d: start_date < d < end_date
    else:
        raise ValueError(f"inclusive must be 'right', 'left', 'both' or 'neither', got {inclusive!r}")

    return [f for f in sort_flows(flows) if in_period(f.date)]


def get_flows_by_day(flows: Iterable[CapitalFlow]) -> Dict[date, Decimal]:
    """
    Aggregate signed flows by day (contributions positive, withdrawals negative).
    """
    by_day: Dict[date, Decimal] = {}
    for flow in sort_flows(flows):
        by_day[flow.date] = by_day.get(flow.date, Decimal('0')) + flow.signed_amount
    return by_day


def calculate_total_invested(initial_investment: Number, flows: Iterable[CapitalFlow]) -> Decimal:
    """
    Net capital put in by an investor.

    initial_investment + sum(contributions) - sum(withdrawals), as a plain
    arithmetic sum over every flow regardless of timing.
    """
    total = to_decimal(initial_investment, 'initial_investment')
    for flow in flows:
        total += flow.signed_amount
    return total


def get_last_withdrawal(flows: Iterable[CapitalFlow]) -> Optional[CapitalFlow]:
    """Most recent withdrawal by date; the later-inserted one wins a same-day tie."""
    last = None
    for flow in sort_flows(flows):
        if flow.is_withdrawal:
            last = flow
    return last


def is_large_cash_flow(
    flow_amount: Number,
    portfolio_nav: Number,
    threshold: float = 0.10
) -> bool:
    """
    Check if a cash flow exceeds the threshold as percentage of NAV.

    Args:
        flow_amount: The cash flow amount (positive or negative)
        portfolio_nav: The fund NAV at the time of flow
        threshold: Threshold as decimal (default 0.10 = 10%)

    Returns:
        True if the flow exceeds the threshold
    """
    nav = to_decimal(portfolio_nav, 'portfolio_nav')
    if nav <= 0:
        return False
    return abs(to_decimal(flow_amount, 'flow_amount')) / nav > to_decimal(threshold, 'threshold')


def flows_to_dataframe(flows: Iterable[CapitalFlow]) -> pd.DataFrame:
    """Tabulate flows, one row per flow, amounts as floats."""
    rows = [
        {
            'id': f.id,
            'investor_id': f.investor_id,
            'investor_name': f.investor_name,
            'date': pd.Timestamp(f.date),
            'amount': float(f.amount),
            'type': f.flow_type.value,
            'signed_amount': float(f.signed_amount),
        }
        for f in flows
    ]
    if not rows:
        return pd.DataFrame(columns=FLOW_COLUMNS)
    return pd.DataFrame(rows, columns=FLOW_COLUMNS)


def flag_large_cash_flows(
    flows: Iterable[CapitalFlow],
    snapshots: Iterable[NavSnapshot],
    threshold: float = 0.10
) -> pd.DataFrame:
    """
    Flag large capital flows relative to the fund NAV.

    Each flow is compared with the most recent month-end NAV on or before
    its date. Flows that precede every snapshot get no NAV and are not
    flagged.

    Args:
        flows: Capital flows to check
        snapshots: Fund NAV snapshots
        threshold: Threshold as decimal (default 0.10 = 10%)

    Returns:
        DataFrame of the flows with 'flow_pct_of_nav' and 'large_flow_flag' columns added
    """
    result = flows_to_dataframe(flows)
    if result.empty:
        result['flow_pct_of_nav'] = pd.Series(dtype=float)
        result['large_flow_flag'] = pd.Series(dtype=bool)
        return result

    nav_lookup = sorted((s.month_end_date, s.total_nav) for s in snapshots)

    def get_nav_for_date(flow_date):
        """Most recent month-end NAV on or before the flow date."""
        nav_value = None
        for nav_date, total_nav in nav_lookup:
            if nav_date > flow_date:
                break
            nav_value = total_nav
        return nav_value

    def calc_flow_pct(row):
        nav_value = get_nav_for_date(row['date'].date())
        if nav_value is not None and nav_value > 0:
            return abs(row['amount']) / float(nav_value)
        return 0.0

    result['flow_pct_of_nav'] = result.apply(calc_flow_pct, axis=1)
    result['large_flow_flag'] = result['flow_pct_of_nav'] > threshold

    large_flows = result[result['large_flow_flag']]
    if len(large_flows) > 0:
        logging.warning(
            f"Found {len(large_flows)} large capital flows (>{threshold*100:.0f}% of NAV)"
        )
        for _, row in large_flows.iterrows():
            logging.warning(
                f"  {row['date'].strftime('%Y-%m-%d')} {row['investor_id']} {row['type']}: "
                f"{row['amount']:,.2f} ({row['flow_pct_of_nav']*100:.1f}% of NAV)"
            )

    return result


FLOW_PERIOD_COLUMNS = [
    'period_start', 'period_end', 'contributions', 'withdrawals',
    'net_flow', 'flow_count', 'flow_days', 'largest_daily_net',
]


def summarize_flows_by_period(
    flows: Iterable[CapitalFlow],
    snapshots: Iterable[NavSnapshot]
) -> pd.DataFrame:
    """
    Total capital flows between consecutive month-end NAV dates.

    Each period runs from the previous month-end (exclusive) to the next
    month-end (inclusive); the first period is open on the left. Flows after
    the latest month-end are not included.

    Returns:
        DataFrame with one row per NAV period, columns FLOW_PERIOD_COLUMNS
    """
    flows = list(flows)
    month_ends = sorted(s.month_end_date for s in snapshots)

    rows = []
    previous = None
    for month_end in month_ends:
        period_flows = get_flows_for_period(flows, previous or date.min, month_end)
        by_day = get_flows_by_day(period_flows)
        contributions = sum((f.amount for f in period_flows if f.is_contribution), Decimal('0'))
        withdrawals = sum((f.amount for f in period_flows if f.is_withdrawal), Decimal('0'))
        largest = max(by_day.values(), key=abs) if by_day else Decimal('0')
        rows.append({
            'period_start': pd.Timestamp(previous) if previous else pd.NaT,
            'period_end': pd.Timestamp(month_end),
            'contributions': float(contributions),
            'withdrawals': float(withdrawals),
            'net_flow': float(contributions - withdrawals),
            'flow_count': len(period_flows),
            'flow_days': len(by_day),
            'largest_daily_net': float(largest),
        })
        previous = month_end

    return pd.DataFrame(rows, columns=FLOW_PERIOD_COLUMNS)
