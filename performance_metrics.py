"""
Fund-level performance analytics over the NAV snapshot series.

These are statistics over published NAVs and monthly returns, so they
work in floats (percent units) rather than ledger Decimals.
"""

import pandas as pd
import numpy as np
import numpy_financial as npf
import logging
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from models import CapitalFlow, NavSnapshot, Number
from timeline import sort_snapshots


NAV_TABLE_COLUMNS = ['month', 'nav', 'monthly_return', 'ytd_return']


def calculate_ytd_return(
    year_start_nav: Optional[NavSnapshot],
    latest_nav: Optional[NavSnapshot]
) -> Optional[float]:
    """Percent change from the year-start NAV to the latest NAV."""
    if year_start_nav is None or latest_nav is None:
        return None
    start_value = float(year_start_nav.total_nav)
    return (float(latest_nav.total_nav) - start_value) / start_value * 100


def calculate_annualized_return(monthly_returns: Iterable[float], years: float) -> Optional[float]:
    """
    Geometric annualized return from monthly percent returns.

    Args:
        monthly_returns: Monthly returns in percent (e.g. 5 for 5%)
        years: Number of years covered (can be fractional)

    Returns:
        Annualized return in percent, or None without data
    """
    returns = pd.Series(list(monthly_returns), dtype=float)
    if returns.empty or years <= 0:
        return None

    cumulative_return = float((1 + returns / 100).prod())
    return (cumulative_return ** (1 / years) - 1) * 100


def calculate_volatility(returns: Iterable[float]) -> Optional[float]:
    """Population standard deviation of percent returns."""
    values = np.asarray(list(returns), dtype=float)
    if values.size == 0:
        return None
    return float(np.std(values))


def calculate_sharpe_ratio(
    annualized_return: Optional[float],
    volatility: Optional[float],
    risk_free_rate: float = 2.0
) -> Optional[float]:
    if annualized_return is None or volatility is None or volatility == 0:
        return None
    return (annualized_return - risk_free_rate) / volatility


def _month_label(snapshot: NavSnapshot) -> str:
    return snapshot.month_end_date.strftime('%b %Y')


def _with_returns(snapshots: Iterable[NavSnapshot]) -> List[NavSnapshot]:
    return [s for s in snapshots if s.monthly_return is not None]


def find_best_month(snapshots: Iterable[NavSnapshot]) -> Optional[Tuple[str, float]]:
    """Month label and return of the best recorded month."""
    candidates = _with_returns(snapshots)
    if not candidates:
        return None
    best = max(candidates, key=lambda s: s.monthly_return)
    return _month_label(best), float(best.monthly_return)


def find_worst_month(snapshots: Iterable[NavSnapshot]) -> Optional[Tuple[str, float]]:
    """Month label and return of the worst recorded month."""
    candidates = _with_returns(snapshots)
    if not candidates:
        return None
    worst = min(candidates, key=lambda s: s.monthly_return)
    return _month_label(worst), float(worst.monthly_return)


def calculate_max_drawdown(snapshots: Iterable[NavSnapshot]) -> Optional[Dict]:
    """
    Largest peak-to-trough decline of total NAV.

    Returns:
        Dict with percentage, start_date (peak) and end_date (trough), or
        None for fewer than two snapshots
    """
    ordered = sort_snapshots(snapshots)
    if len(ordered) < 2:
        return None

    max_drawdown = 0.0
    peak_value = float(ordered[0].total_nav)
    peak_date = ordered[0].month_end_date
    drawdown_start = drawdown_end = ordered[0].month_end_date

    for snapshot in ordered[1:]:
        value = float(snapshot.total_nav)
        if value > peak_value:
            peak_value = value
            peak_date = snapshot.month_end_date
            continue
        drawdown = (peak_value - value) / peak_value
        if drawdown > max_drawdown:
            max_drawdown = drawdown
            drawdown_start = peak_date
            drawdown_end = snapshot.month_end_date

    return {
        'percentage': max_drawdown * 100,
        'start_date': drawdown_start,
        'end_date': drawdown_end,
    }


def nav_series_returns(snapshots: Iterable[NavSnapshot]) -> pd.Series:
    """
    Monthly percent returns indexed by month_end_date.

    Recorded monthly_return values are used as-is; missing ones are derived
    from the change in total NAV against the previous snapshot.
    """
    ordered = sort_snapshots(snapshots)
    if not ordered:
        return pd.Series(dtype=float)

    nav = pd.Series(
        [float(s.total_nav) for s in ordered],
        index=pd.to_datetime([s.month_end_date for s in ordered]),
    )
    derived = nav.pct_change() * 100
    recorded = pd.Series(
        [float(s.monthly_return) if s.monthly_return is not None else np.nan for s in ordered],
        index=nav.index,
    )
    return recorded.fillna(derived).dropna()


def nav_table(snapshots: Iterable[NavSnapshot]) -> pd.DataFrame:
    """
    Tabulate NAV by month with monthly and year-to-date returns.

    YTD return compares each month with the first snapshot of the same
    calendar year.
    """
    ordered = sort_snapshots(snapshots)
    if not ordered:
        return pd.DataFrame(columns=NAV_TABLE_COLUMNS)

    df = pd.DataFrame({
        'date': pd.to_datetime([s.month_end_date for s in ordered]),
        'nav': [float(s.total_nav) for s in ordered],
        'monthly_return': [float(s.monthly_return) if s.monthly_return is not None else np.nan for s in ordered],
    })
    year_start = df.groupby(df['date'].dt.year)['nav'].transform('first')
    df['ytd_return'] = (df['nav'] - year_start) / year_start * 100
    df['month'] = df['date'].dt.strftime('%b %Y')
    return df[NAV_TABLE_COLUMNS]


def _month_index(d: date) -> int:
    return d.year * 12 + d.month


def calculate_money_weighted_return(
    initial_investment: Number,
    start_date: date,
    transactions: Iterable[CapitalFlow],
    current_value: Number,
    as_of: date
) -> Optional[float]:
    """
    Annualized money-weighted return (IRR) of one investor account.

    Cash flows are bucketed by calendar month and seen from the investor's
    side: the initial investment and contributions go out, withdrawals and
    the current value come back.

    Returns:
        Annualized IRR in percent, or None when there is less than a month
        of history or no solution
    """
    start = _month_index(start_date)
    periods = _month_index(as_of) - start
    if periods <= 0:
        return None

    cash_flows = np.zeros(periods + 1)
    cash_flows[0] -= float(initial_investment)
    for flow in transactions:
        idx = min(max(_month_index(flow.date) - start, 0), periods)
        cash_flows[idx] -= float(flow.signed_amount)
    cash_flows[periods] += float(current_value)

    monthly_irr = npf.irr(cash_flows)
    if monthly_irr is None or np.isnan(monthly_irr):
        logging.warning(f"Could not solve money-weighted return for account started {start_date}")
        return None
    return ((1 + monthly_irr) ** 12 - 1) * 100


def calculate_money_weighted_returns(
    ledger_result,
    flows_by_investor: Dict[str, List[CapitalFlow]]
) -> Dict[str, Optional[float]]:
    """Money-weighted return per valued investor, as of the ledger's latest NAV."""
    if ledger_result.latest_nav is None:
        return {}
    as_of = ledger_result.latest_nav.month_end_date
    return {
        r.id: calculate_money_weighted_return(
            r.initial_investment,
            r.start_date,
            flows_by_investor.get(r.id, []),
            r.current_value,
            as_of,
        )
        for r in ledger_result.investors
    }


def summarize_performance(
    snapshots: Iterable[NavSnapshot],
    year_start_nav: Optional[NavSnapshot] = None,
    risk_free_rate: float = 2.0
) -> Dict:
    """
    Collect the fund performance figures in one dict.

    Annualization uses elapsed calendar time between the first and last
    snapshot.
    """
    ordered = sort_snapshots(snapshots)
    if not ordered:
        logging.warning("No NAV snapshots for performance summary")
        return {}

    returns = nav_series_returns(ordered)
    elapsed_years = max((ordered[-1].month_end_date - ordered[0].month_end_date).days, 0) / 365.25

    annualized = calculate_annualized_return(returns, elapsed_years)
    volatility = calculate_volatility(returns)

    return {
        'latest_nav': float(ordered[-1].total_nav),
        'ytd_return': calculate_ytd_return(year_start_nav, ordered[-1]),
        'annualized_return': annualized,
        'volatility': volatility,
        'sharpe_ratio': calculate_sharpe_ratio(annualized, volatility, risk_free_rate),
        'best_month': find_best_month(ordered),
        'worst_month': find_worst_month(ordered),
        'max_drawdown': calculate_max_drawdown(ordered),
    }
