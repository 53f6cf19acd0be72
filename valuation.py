"""
Valuation calculator for the investor NAV ledger.

Turns a final ownership fraction plus the latest NAV into a current value
and a return percentage. Closed accounts skip the ownership walk and are
valued from their last withdrawal.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from flow_utils import calculate_total_invested, get_last_withdrawal
from models import CapitalFlow, Investor, NavSnapshot, Number, to_decimal


ZERO = Decimal('0')
HUNDRED = Decimal('100')


@dataclass(frozen=True)
class InvestorValuation:
    current_value: Decimal
    return_percentage: Decimal
    total_invested: Decimal


def calculate_return(invested: Number, current_value: Number) -> Decimal:
    """
    Return percentage of current_value against invested.

    Returns 0 when nothing (or less than nothing) is invested.
    """
    invested = to_decimal(invested, 'invested')
    if invested <= 0:
        return ZERO
    return (to_decimal(current_value, 'current_value') - invested) / invested * HUNDRED


def calculate_closed_value(investor: Investor, transactions: Iterable[CapitalFlow]) -> InvestorValuation:
    """
    Value a closed account.

    Current value is zero; the return compares the final withdrawal with the
    net capital invested. An account without any withdrawal reports 0/0.
    """
    transactions = list(transactions)
    total_invested = calculate_total_invested(investor.initial_investment, transactions)
    last_withdrawal = get_last_withdrawal(transactions)
    if last_withdrawal is None:
        return InvestorValuation(ZERO, ZERO, total_invested)

    return InvestorValuation(
        current_value=ZERO,
        return_percentage=calculate_return(total_invested, last_withdrawal.amount),
        total_invested=total_invested,
    )


def calculate_investor_value(
    investor: Investor,
    transactions: Iterable[CapitalFlow],
    latest_nav: NavSnapshot,
    ownership_fraction: Optional[Decimal]
) -> InvestorValuation:
    """
    Compute current value and return for one investor.

    Args:
        investor: The investor
        transactions: All of the investor's capital flows
        latest_nav: Snapshot with the latest month_end_date
        ownership_fraction: Final fraction from the ownership walk; ignored
            for closed accounts

    Returns:
        InvestorValuation with current_value, return_percentage and total_invested
    """
    if investor.is_closed:
        return calculate_closed_value(investor, transactions)

    if ownership_fraction is None:
        raise ValueError(f"ownership_fraction is required for {investor.status.value} investor {investor.id}")

    current_value = latest_nav.total_nav * ownership_fraction
    total_invested = calculate_total_invested(investor.initial_investment, transactions)

    return InvestorValuation(
        current_value=current_value,
        return_percentage=calculate_return(total_invested, current_value),
        total_invested=total_invested,
    )


@dataclass(frozen=True)
class InvestorResult:
    """
    Per-investor outcome of the ledger.

    display_value and display_return_percentage are filled in only by the
    reconciliation scale factor and are a reporting normalization; the
    ledger figures are current_value and return_percentage.
    """
    id: str
    name: str
    initial_investment: Decimal
    current_value: Decimal
    return_percentage: Decimal
    status: str
    mgmt_fee_rate: Decimal
    perf_fee_rate: Decimal
    start_date: date
    total_invested: Decimal
    ownership_fraction: Optional[Decimal] = None
    clamped_withdrawals: int = 0
    display_value: Optional[Decimal] = None
    display_return_percentage: Optional[Decimal] = None

    @property
    def is_active(self) -> bool:
        return self.status == 'active'

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'initial_investment': self.initial_investment,
            'current_value': self.current_value,
            'return_percentage': self.return_percentage,
            'status': self.status,
            'mgmt_fee_rate': self.mgmt_fee_rate,
            'perf_fee_rate': self.perf_fee_rate,
            'start_date': self.start_date,
        }


def build_investor_result(
    investor: Investor,
    valuation: InvestorValuation,
    ownership_fraction: Optional[Decimal] = None,
    clamped_withdrawals: int = 0
) -> InvestorResult:
    return InvestorResult(
        id=investor.id,
        name=investor.name,
        initial_investment=investor.initial_investment,
        current_value=valuation.current_value,
        return_percentage=valuation.return_percentage,
        status=investor.status.value,
        mgmt_fee_rate=investor.mgmt_fee_rate,
        perf_fee_rate=investor.performance_fee_rate,
        start_date=investor.start_date,
        total_invested=valuation.total_invested,
        ownership_fraction=ownership_fraction,
        clamped_withdrawals=clamped_withdrawals,
    )
