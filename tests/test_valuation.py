"""Tests for the valuation calculator."""

import os
import sys
import pytest
from datetime import date
from decimal import Decimal

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
sys.path.insert(0, PROJECT_ROOT)

from models import Investor
from ownership_tracker import track_ownership
from valuation import (
    build_investor_result,
    calculate_closed_value,
    calculate_investor_value,
    calculate_return,
)


class TestCalculateReturn:
    """Tests for the return percentage."""

    def test_gain(self):
        """A 5,000 gain on 100,000 is 5%."""
        assert calculate_return(100000, 105000) == Decimal('5')

    def test_loss(self):
        """Losing half the capital is -50%."""
        assert calculate_return(Decimal('80000'), Decimal('40000')) == Decimal('-50')

    @pytest.mark.parametrize('invested', [0, -20000])
    def test_guard_non_positive_invested(self, invested):
        """Zero or negative net invested capital gives a 0% return."""
        assert calculate_return(invested, 1000) == Decimal('0')


class TestOpenAccounts:
    """Tests for active and inactive account valuation."""

    def test_no_flow_invariance(self, snapshots, investor):
        """current_value = latest NAV * initial / entry NAV when there are no flows."""
        tracker = track_ownership(investor, snapshots, [])
        valuation = calculate_investor_value(investor, [], snapshots[-1], tracker.ownership_fraction)

        expected_value = snapshots[-1].total_nav * (investor.initial_investment / snapshots[0].total_nav)
        assert valuation.current_value == expected_value
        assert valuation.current_value == Decimal('105000')
        assert valuation.return_percentage == Decimal('5')
        assert valuation.total_invested == Decimal('100000')

    def test_contribution(self, snapshots, investor, make_flow):
        """A contribution adds to both value and net invested."""
        flows = [make_flow(date(2024, 2, 15), 50000)]
        tracker = track_ownership(investor, snapshots, flows)
        valuation = calculate_investor_value(investor, flows, snapshots[-1], tracker.ownership_fraction)

        assert valuation.current_value == Decimal('157500')
        assert valuation.total_invested == Decimal('150000')
        assert valuation.return_percentage == Decimal('5')

    def test_inactive_valued_like_active(self, snapshots, investor):
        """Inactive accounts are still valued from ownership."""
        inactive = investor.with_status('inactive')
        valuation = calculate_investor_value(inactive, [], snapshots[-1], Decimal('0.1'))
        assert valuation.current_value == Decimal('105000')

    def test_zero_invested_return_guard(self, snapshots, investor, make_flow):
        """Withdrawing all capital gives a 0% return."""
        flows = [make_flow(date(2024, 2, 15), 100000, 'withdrawal')]
        valuation = calculate_investor_value(investor, flows, snapshots[-1], Decimal('0'))
        assert valuation.total_invested == Decimal('0')
        assert valuation.return_percentage == Decimal('0')

    def test_missing_fraction_rejected(self, snapshots, investor):
        """Open accounts need an ownership fraction."""
        with pytest.raises(ValueError, match="ownership_fraction is required"):
            calculate_investor_value(investor, [], snapshots[-1], None)


class TestClosedAccounts:
    """Tests for closed account valuation."""

    @pytest.fixture
    def closed_investor(self, investor):
        return investor.with_status('closed')

    def test_value_from_last_withdrawal(self, snapshots, closed_investor, make_flow):
        """The final withdrawal against net invested gives the return."""
        flows = [
            make_flow(date(2024, 2, 20), 40000, 'withdrawal'),
            make_flow(date(2024, 2, 1), 50000),
            make_flow(date(2024, 2, 10), 30000, 'withdrawal'),
        ]
        valuation = calculate_investor_value(closed_investor, flows, snapshots[-1], Decimal('0.5'))

        assert valuation.current_value == Decimal('0')
        assert valuation.total_invested == Decimal('80000')
        assert valuation.return_percentage == Decimal('-50')

    def test_always_zero_value(self, snapshots, closed_investor, make_flow):
        """Closed accounts hold nothing."""
        flows = [make_flow(date(2024, 2, 20), 250000, 'withdrawal')]
        valuation = calculate_closed_value(closed_investor, flows)
        assert valuation.current_value == Decimal('0')
        assert valuation.return_percentage == Decimal('0')

    def test_no_withdrawal(self, closed_investor, make_flow):
        """Without a withdrawal the return is 0%."""
        valuation = calculate_closed_value(closed_investor, [make_flow(date(2024, 2, 1), 5000)])
        assert valuation.current_value == Decimal('0')
        assert valuation.return_percentage == Decimal('0')


class TestInvestorResult:
    """Tests for the per-investor result record."""

    def test_produced_shape(self, snapshots, investor):
        """to_dict carries the fields the reports use."""
        valuation = calculate_investor_value(investor, [], snapshots[-1], Decimal('0.1'))
        result = build_investor_result(investor, valuation, ownership_fraction=Decimal('0.1'))

        assert result.to_dict() == {
            'id': 'inv-1',
            'name': 'Alice',
            'initial_investment': Decimal('100000'),
            'current_value': Decimal('105000'),
            'return_percentage': Decimal('5'),
            'status': 'active',
            'mgmt_fee_rate': Decimal('1'),
            'perf_fee_rate': Decimal('20'),
            'start_date': date(2024, 1, 31),
        }
        assert result.is_active
        assert result.display_value is None
