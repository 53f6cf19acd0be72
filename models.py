"""
Value types for the investor NAV ledger.

NAV snapshots, capital flows and investors are immutable records with
validated construction. Monetary fields are held as Decimal.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional, Union

import pandas as pd


Number = Union[Decimal, int, float, str]


class FlowType(str, Enum):
    CONTRIBUTION = 'contribution'
    WITHDRAWAL = 'withdrawal'


class InvestorStatus(str, Enum):
    ACTIVE = 'active'
    INACTIVE = 'inactive'
    CLOSED = 'closed'


def to_decimal(value: Number, field_name: str = 'value') -> Decimal:
    """
    Coerce a number to Decimal.

    Floats go through str() so that 0.1 becomes Decimal('0.1') rather than
    its binary expansion.

    Raises:
        ValueError: If the value is missing or not numeric
    """
    if value is None:
        raise ValueError(f"{field_name} is required")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValueError(f"{field_name} must be numeric, got {value!r}")
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValueError(f"{field_name} must be numeric, got {value!r}")
    if not result.is_finite():
        raise ValueError(f"{field_name} must be finite, got {value!r}")
    return result


def to_date(value, field_name: str = 'date') -> date:
    """Coerce a date, datetime, pandas Timestamp or ISO string to a date."""
    if value is None or value is pd.NaT:
        raise ValueError(f"{field_name} is required")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        ts = pd.to_datetime(value)
    except (ValueError, TypeError):
        raise ValueError(f"{field_name} is not a valid date: {value!r}")
    if pd.isna(ts):
        raise ValueError(f"{field_name} is required")
    return ts.date()


def _optional_decimal(value: Optional[Number], field_name: str) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except TypeError:
        pass
    return to_decimal(value, field_name)


def _optional_date(value, field_name: str) -> Optional[date]:
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except TypeError:
        pass
    return to_date(value, field_name)


@dataclass(frozen=True)
class NavSnapshot:
    """
    One fund-wide valuation point.

    Attributes:
        month_end_date: Valuation date, unique per fund
        total_nav: Fund value at month_end_date (positive)
        month_start_date: Optional start of the period
        start_nav: Optional fund value at month_start_date (positive)
        monthly_return: Informational, percent
        management_fees: Informational
        aum_change: Informational
    """
    month_end_date: date
    total_nav: Decimal
    month_start_date: Optional[date] = None
    start_nav: Optional[Decimal] = None
    monthly_return: Optional[Decimal] = None
    management_fees: Optional[Decimal] = None
    aum_change: Optional[Decimal] = None

    def __post_init__(self):
        object.__setattr__(self, 'month_end_date', to_date(self.month_end_date, 'month_end_date'))
        object.__setattr__(self, 'total_nav', to_decimal(self.total_nav, 'total_nav'))
        if self.total_nav <= 0:
            raise ValueError(f"total_nav must be positive, got {self.total_nav}")

        object.__setattr__(self, 'month_start_date', _optional_date(self.month_start_date, 'month_start_date'))
        object.__setattr__(self, 'start_nav', _optional_decimal(self.start_nav, 'start_nav'))
        if self.start_nav is not None and self.start_nav <= 0:
            raise ValueError(f"start_nav must be positive, got {self.start_nav}")
        if self.month_start_date is not None and self.month_start_date > self.month_end_date:
            raise ValueError(
                f"month_start_date {self.month_start_date} is after month_end_date {self.month_end_date}"
            )

        for name in ('monthly_return', 'management_fees', 'aum_change'):
            object.__setattr__(self, name, _optional_decimal(getattr(self, name), name))

    @property
    def has_start_valuation(self) -> bool:
        """True when the snapshot carries a usable month-start valuation point."""
        return self.month_start_date is not None and self.start_nav is not None


@dataclass(frozen=True)
class CapitalFlow:
    """
    One investor cash movement. The amount is always positive; the
    direction is carried by flow_type.
    """
    investor_id: str
    date: date
    amount: Decimal
    flow_type: FlowType
    id: Optional[str] = None
    investor_name: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.investor_id:
            raise ValueError("investor_id is required")
        object.__setattr__(self, 'investor_id', str(self.investor_id))
        object.__setattr__(self, 'date', to_date(self.date, 'date'))
        object.__setattr__(self, 'amount', to_decimal(self.amount, 'amount'))
        if self.amount <= 0:
            raise ValueError(f"amount must be positive, got {self.amount}")
        try:
            object.__setattr__(self, 'flow_type', FlowType(self.flow_type))
        except ValueError:
            raise ValueError(
                f"Unknown flow type {self.flow_type!r}, expected one of {[t.value for t in FlowType]}"
            )

    @property
    def is_contribution(self) -> bool:
        return self.flow_type is FlowType.CONTRIBUTION

    @property
    def is_withdrawal(self) -> bool:
        return self.flow_type is FlowType.WITHDRAWAL

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.is_contribution else -self.amount


@dataclass(frozen=True)
class Investor:
    """
    One capital account.

    The fee rates are informational percentages carried through to the
    produced results; the ledger does not consume them.
    """
    id: str
    name: str
    initial_investment: Decimal
    start_date: date
    status: InvestorStatus = InvestorStatus.ACTIVE
    mgmt_fee_rate: Decimal = field(default=Decimal('0'))
    performance_fee_rate: Decimal = field(default=Decimal('0'))

    def __post_init__(self):
        if not self.id:
            raise ValueError("Investor id is required")
        object.__setattr__(self, 'id', str(self.id))
        object.__setattr__(self, 'initial_investment', to_decimal(self.initial_investment, 'initial_investment'))
        if self.initial_investment <= 0:
            raise ValueError(f"initial_investment must be positive, got {self.initial_investment}")
        object.__setattr__(self, 'start_date', to_date(self.start_date, 'start_date'))
        try:
            object.__setattr__(self, 'status', InvestorStatus(self.status))
        except ValueError:
            raise ValueError(
                f"Unknown investor status {self.status!r}, expected one of {[s.value for s in InvestorStatus]}"
            )
        object.__setattr__(self, 'mgmt_fee_rate', to_decimal(self.mgmt_fee_rate, 'mgmt_fee_rate'))
        object.__setattr__(self, 'performance_fee_rate', to_decimal(self.performance_fee_rate, 'performance_fee_rate'))

    @property
    def is_active(self) -> bool:
        return self.status is InvestorStatus.ACTIVE

    @property
    def is_closed(self) -> bool:
        return self.status is InvestorStatus.CLOSED

    def with_status(self, status: Union[InvestorStatus, str]) -> 'Investor':
        return replace(self, status=InvestorStatus(status))
