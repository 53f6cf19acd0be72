"""Tests for fund performance analytics."""

import os
import sys
import pytest
from datetime import date

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
sys.path.insert(0, PROJECT_ROOT)

from models import CapitalFlow, NavSnapshot
from performance_metrics import (
    calculate_annualized_return,
    calculate_max_drawdown,
    calculate_money_weighted_return,
    calculate_sharpe_ratio,
    calculate_volatility,
    calculate_ytd_return,
    find_best_month,
    find_worst_month,
    nav_series_returns,
    nav_table,
    summarize_performance,
)


def snap(day, nav, monthly_return=None):
    return NavSnapshot(month_end_date=day, total_nav=nav, monthly_return=monthly_return)


@pytest.fixture
def series():
    return [
        snap(date(2023, 12, 31), 100),
        snap(date(2024, 1, 31), 120, 20),
        snap(date(2024, 2, 29), 90, -25),
        snap(date(2024, 3, 31), 130),
    ]


class TestReturns:
    """Tests for fund return figures."""

    def test_ytd(self):
        """YTD compares with the year-start NAV."""
        assert calculate_ytd_return(snap(date(2023, 12, 31), 100), snap(date(2024, 6, 30), 110)) == pytest.approx(10.0)

    def test_ytd_missing(self):
        """No year-start NAV gives no YTD."""
        assert calculate_ytd_return(None, snap(date(2024, 6, 30), 110)) is None

    def test_annualized_one_year(self):
        """Two 10% months over one year compound to 21%."""
        assert calculate_annualized_return([10, 10], 1) == pytest.approx(21.0)

    def test_annualized_two_years(self):
        """The same gain over two years annualizes to 10%."""
        assert calculate_annualized_return([10, 10], 2) == pytest.approx(10.0)

    def test_annualized_no_data(self):
        """No returns or no elapsed time give None."""
        assert calculate_annualized_return([], 1) is None
        assert calculate_annualized_return([5], 0) is None


class TestRisk:
    """Tests for risk figures."""

    def test_volatility_population(self):
        """Volatility uses the population standard deviation."""
        assert calculate_volatility([1, 3]) == pytest.approx(1.0)

    def test_volatility_empty(self):
        """No returns give no volatility."""
        assert calculate_volatility([]) is None

    def test_sharpe(self):
        """Excess return over volatility."""
        assert calculate_sharpe_ratio(12, 5, 2) == pytest.approx(2.0)

    def test_sharpe_zero_volatility(self):
        """Zero volatility gives no Sharpe ratio."""
        assert calculate_sharpe_ratio(12, 0) is None

    def test_max_drawdown(self, series):
        """The fall from the January peak to the February trough."""
        drawdown = calculate_max_drawdown(series)
        assert drawdown['percentage'] == pytest.approx(25.0)
        assert drawdown['start_date'] == date(2024, 1, 31)
        assert drawdown['end_date'] == date(2024, 2, 29)

    def test_max_drawdown_short_series(self):
        """One snapshot has no drawdown."""
        assert calculate_max_drawdown([snap(date(2024, 1, 31), 100)]) is None


class TestMonths:
    """Tests for month-by-month figures."""

    def test_best_and_worst(self, series):
        """Best and worst recorded monthly returns."""
        assert find_best_month(series) == ('Jan 2024', 20.0)
        assert find_worst_month(series) == ('Feb 2024', -25.0)

    def test_no_recorded_returns(self):
        """Without recorded returns there is no best month."""
        assert find_best_month([snap(date(2024, 1, 31), 100)]) is None

    def test_series_returns_fill_missing(self, series):
        """Missing monthly returns are derived from NAV."""
        returns = nav_series_returns(series)
        # First month has nothing to compare with; March is derived from NAV
        assert len(returns) == 3
        assert returns.iloc[0] == pytest.approx(20.0)
        assert returns.iloc[2] == pytest.approx((130 / 90 - 1) * 100)

    def test_nav_table_ytd_per_year(self, series):
        """YTD in the NAV table restarts each calendar year."""
        table = nav_table(series)
        assert list(table['month']) == ['Dec 2023', 'Jan 2024', 'Feb 2024', 'Mar 2024']
        assert table['ytd_return'].iloc[0] == pytest.approx(0.0)
        assert table['ytd_return'].iloc[3] == pytest.approx((130 - 120) / 120 * 100)


class TestSummary:
    """Tests for the performance summary."""

    def test_summary(self, series):
        """The summary gathers every figure."""
        summary = summarize_performance(series, year_start_nav=series[0], risk_free_rate=2.0)
        assert summary['latest_nav'] == pytest.approx(130.0)
        assert summary['ytd_return'] == pytest.approx(30.0)
        assert summary['best_month'] == ('Jan 2024', 20.0)
        assert summary['annualized_return'] is not None
        assert summary['volatility'] > 0

    def test_empty(self):
        """No snapshots give an empty summary."""
        assert summarize_performance([]) == {}


class TestMoneyWeightedReturn:
    """Tests for the per-investor IRR."""

    def test_buy_and_hold(self):
        """A 10% gain over exactly twelve months annualizes to 10%."""
        mwr = calculate_money_weighted_return(1000, date(2024, 1, 31), [], 1100, date(2025, 1, 31))
        assert mwr == pytest.approx(10.0, abs=1e-6)

    def test_withdrawals_come_back_to_investor(self):
        """Withdrawals count as money returned to the investor."""
        flows = [CapitalFlow(investor_id='a', date=date(2024, 7, 15), amount=550, flow_type='withdrawal')]
        mwr = calculate_money_weighted_return(1000, date(2024, 1, 31), flows, 550, date(2025, 1, 31))
        assert mwr > 0

    def test_loss(self):
        """A 20% loss over a year annualizes to -20%."""
        mwr = calculate_money_weighted_return(1000, date(2024, 1, 31), [], 800, date(2025, 1, 31))
        assert mwr == pytest.approx(-20.0, abs=1e-6)

    def test_same_month_has_no_history(self):
        """Entry and valuation in the same month give no IRR."""
        assert calculate_money_weighted_return(1000, date(2024, 1, 2), [], 1100, date(2024, 1, 31)) is None
