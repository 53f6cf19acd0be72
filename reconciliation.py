"""
Reconciliation checker for the investor NAV ledger.

Compares the sum of active investors' current values with the fund's
latest total NAV. A mismatch is reported, never raised.

The scale factor in apply_scale_factor is a display-time normalization:
it forces the displayed investor values to add up to total NAV and so can
hide a calculation defect. The ledger values are left untouched and the
scaled figures are written to the display_* fields only.
"""

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Iterable, List, Optional
import logging

from ledger_errors import ReconciliationMismatch
from models import Number, to_decimal
from valuation import InvestorResult, calculate_return


DEFAULT_TOLERANCE = Decimal('0.0001')  # 0.01% of total NAV

ZERO = Decimal('0')
ONE = Decimal('1')


@dataclass(frozen=True)
class ReconciliationResult:
    total_nav: Decimal
    sum_investor_values: Decimal
    discrepancy: Decimal
    is_reconciled: bool
    tolerance: Decimal = DEFAULT_TOLERANCE

    @property
    def mismatch(self) -> Optional[ReconciliationMismatch]:
        if self.is_reconciled:
            return None
        return ReconciliationMismatch(
            total_nav=self.total_nav,
            sum_investor_values=self.sum_investor_values,
            discrepancy=self.discrepancy,
            tolerance=self.tolerance,
        )

    def to_dict(self) -> dict:
        return {
            'total_nav': self.total_nav,
            'sum_investor_values': self.sum_investor_values,
            'discrepancy': self.discrepancy,
            'is_reconciled': self.is_reconciled,
        }


def sum_active_values(results: Iterable[InvestorResult]) -> Decimal:
    """Sum current_value over active investors only."""
    return sum((r.current_value for r in results if r.is_active), ZERO)


def check_reconciliation(
    total_nav: Number,
    results: Iterable[InvestorResult],
    tolerance: Number = DEFAULT_TOLERANCE
) -> ReconciliationResult:
    """
    Verify that active investor values add up to the fund total.

    Args:
        total_nav: Latest fund total NAV
        results: Per-investor results; only active investors are summed
        tolerance: Relative tolerance (default 0.0001 = 0.01%)

    Returns:
        ReconciliationResult; a zero total NAV is never reconciled
    """
    total_nav = to_decimal(total_nav, 'total_nav')
    tolerance = to_decimal(tolerance, 'tolerance')
    sum_investor_values = sum_active_values(results)
    discrepancy = abs(total_nav - sum_investor_values)

    if total_nav == 0:
        is_reconciled = False
    else:
        is_reconciled = discrepancy < total_nav * tolerance

    result = ReconciliationResult(
        total_nav=total_nav,
        sum_investor_values=sum_investor_values,
        discrepancy=discrepancy,
        is_reconciled=is_reconciled,
        tolerance=tolerance,
    )

    if is_reconciled:
        logging.info(
            f"NAV reconciled: investors {sum_investor_values:,.2f} vs total {total_nav:,.2f}"
        )
    else:
        logging.warning(f"NAV not reconciled: {result.mismatch}")

    return result


def calculate_scale_factor(total_nav: Number, sum_investor_values: Number) -> Decimal:
    """total_nav / sum_investor_values, or 1 when the sum is zero."""
    sum_investor_values = to_decimal(sum_investor_values, 'sum_investor_values')
    if sum_investor_values == 0:
        return ONE
    return to_decimal(total_nav, 'total_nav') / sum_investor_values


def apply_scale_factor(
    results: Iterable[InvestorResult],
    total_nav: Number
) -> List[InvestorResult]:
    """
    Fill in display values normalized so that active investors sum to total NAV.

    Active investors get current_value * scale_factor and a return
    recomputed against the same total_invested. Other investors display
    their ledger figures unchanged.

    Returns:
        New result records; the inputs are not modified
    """
    results = list(results)
    scale_factor = calculate_scale_factor(total_nav, sum_active_values(results))
    if scale_factor != ONE:
        logging.info(f"Applying display scale factor {scale_factor:.8f} to active investor values")

    scaled = []
    for r in results:
        if r.is_active:
            display_value = r.current_value * scale_factor
            scaled.append(replace(
                r,
                display_value=display_value,
                display_return_percentage=calculate_return(r.total_invested, display_value),
            ))
        else:
            scaled.append(replace(
                r,
                display_value=r.current_value,
                display_return_percentage=r.return_percentage,
            ))
    return scaled
