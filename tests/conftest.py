import os
import sys
from datetime import date
from decimal import Decimal

import pytest

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
sys.path.insert(0, PROJECT_ROOT)

from models import CapitalFlow, Investor, NavSnapshot


@pytest.fixture
def snapshots():
    return [
        NavSnapshot(month_end_date=date(2024, 1, 31), total_nav=Decimal('1000000')),
        NavSnapshot(month_end_date=date(2024, 2, 29), total_nav=Decimal('1050000')),
    ]


@pytest.fixture
def investor():
    return Investor(
        id='inv-1',
        name='Alice',
        initial_investment=Decimal('100000'),
        start_date=date(2024, 1, 31),
        mgmt_fee_rate=Decimal('1'),
        performance_fee_rate=Decimal('20'),
    )


@pytest.fixture
def make_flow():
    def _make_flow(day, amount, flow_type='contribution', investor_id='inv-1'):
        return CapitalFlow(investor_id=investor_id, date=day, amount=amount, flow_type=flow_type)
    return _make_flow
