"""
Excel reporting for the investor NAV ledger.

Writes investor results, the reconciliation verdict, per-investor failures
and optional fund performance, NAV history and capital flow sheets to a
timestamped workbook.
Percentages and money are rounded here and nowhere else.
"""

import os
import logging
from openpyxl.styles import Alignment
from openpyxl.utils import get_column_letter
import pandas as pd
from datetime import datetime
from typing import Dict, Iterable, Optional

from flow_utils import summarize_flows_by_period
from investor_ledger import LedgerResult
from models import CapitalFlow, NavSnapshot
from performance_metrics import nav_table


INVESTOR_SHEET_COLUMNS = {
    'id': 'ID',
    'name': 'Investor',
    'status': 'Status',
    'start_date': 'Start Date',
    'initial_investment': 'Initial Investment',
    'total_invested': 'Net Invested',
    'ownership_fraction': 'Ownership',
    'current_value': 'Current Value',
    'return_percentage': 'Return %',
    'display_value': 'Current Value (display-scaled)',
    'display_return_percentage': 'Return % (display-scaled)',
    'mgmt_fee_rate': 'Mgmt Fee %',
    'perf_fee_rate': 'Perf Fee %',
    'clamped_withdrawals': 'Clamped Withdrawals',
    'money_weighted_return': 'Money-Weighted Return % (annualized)',
}


def format_investor_sheet(ledger_result: LedgerResult, money_weighted: Optional[Dict] = None) -> pd.DataFrame:
    """Investor results with rounded, labelled columns."""
    df = ledger_result.get_results_df()
    if money_weighted:
        df['money_weighted_return'] = df['id'].map(money_weighted).astype(float)
    if not ledger_result.scaled:
        df = df.drop(columns=['display_value', 'display_return_percentage'])

    for col in ['initial_investment', 'total_invested', 'current_value', 'display_value']:
        if col in df.columns:
            df[col] = df[col].round(2)
    for col in ['return_percentage', 'display_return_percentage', 'money_weighted_return']:
        if col in df.columns:
            df[col] = df[col].round(2)
    if 'ownership_fraction' in df.columns:
        df['ownership_fraction'] = df['ownership_fraction'].map(
            lambda x: f'{x:.6%}' if pd.notna(x) else ''
        )
    if 'start_date' in df.columns:
        df['start_date'] = pd.to_datetime(df['start_date']).dt.strftime('%Y-%m-%d')

    return df.rename(columns=INVESTOR_SHEET_COLUMNS)


def format_reconciliation_sheet(ledger_result: LedgerResult) -> pd.DataFrame:
    rec = ledger_result.reconciliation
    as_of = ledger_result.latest_nav.month_end_date.strftime('%Y-%m-%d') if ledger_result.latest_nav else ''
    rows = [
        {'Metric': 'As Of', 'Value': as_of},
        {'Metric': 'Total NAV', 'Value': f'{rec.total_nav:,.2f}'},
        {'Metric': 'Sum of Active Investor Values', 'Value': f'{rec.sum_investor_values:,.2f}'},
        {'Metric': 'Discrepancy', 'Value': f'{rec.discrepancy:,.2f}'},
        {'Metric': 'Tolerance', 'Value': f'{rec.tolerance:.4%}'},
        {'Metric': 'Reconciled', 'Value': 'Yes' if rec.is_reconciled else 'No'},
        {'Metric': 'Display Scale Factor Applied', 'Value': 'Yes' if ledger_result.scaled else 'No'},
        {'Metric': 'Clamped Withdrawals', 'Value': str(len(ledger_result.clamps))},
    ]
    return pd.DataFrame(rows)


def format_failures_sheet(ledger_result: LedgerResult) -> pd.DataFrame:
    rows = [{'Investor ID': k, 'Issue': v} for k, v in ledger_result.failures.items()]
    rows.extend({'Investor ID': c.investor_id, 'Issue': str(c)} for c in ledger_result.clamps)
    return pd.DataFrame(rows, columns=['Investor ID', 'Issue'])


def format_performance_sheet(performance: Dict) -> pd.DataFrame:
    def pct(value):
        return f'{value:.2f}%' if value is not None else 'N/A'

    best = performance.get('best_month')
    worst = performance.get('worst_month')
    drawdown = performance.get('max_drawdown')
    sharpe = performance.get('sharpe_ratio')

    rows = [
        {'Metric': 'Latest NAV', 'Value': f"{performance.get('latest_nav', 0.0):,.2f}"},
        {'Metric': 'YTD Return', 'Value': pct(performance.get('ytd_return'))},
        {'Metric': 'Annualized Return', 'Value': pct(performance.get('annualized_return'))},
        {'Metric': 'Volatility', 'Value': pct(performance.get('volatility'))},
        {'Metric': 'Sharpe Ratio', 'Value': f'{sharpe:.2f}' if sharpe is not None else 'N/A'},
        {'Metric': 'Best Month', 'Value': f'{best[0]} ({best[1]:.2f}%)' if best else 'N/A'},
        {'Metric': 'Worst Month', 'Value': f'{worst[0]} ({worst[1]:.2f}%)' if worst else 'N/A'},
        {
            'Metric': 'Max Drawdown',
            'Value': (
                f"{drawdown['percentage']:.2f}% ({drawdown['start_date']} to {drawdown['end_date']})"
                if drawdown else 'N/A'
            ),
        },
    ]
    return pd.DataFrame(rows)


NAV_SHEET_COLUMNS = {
    'month': 'Month',
    'nav': 'Total NAV',
    'monthly_return': 'Monthly Return %',
    'ytd_return': 'YTD Return %',
}

FLOW_PERIOD_SHEET_COLUMNS = {
    'period_start': 'Period Start (exclusive)',
    'period_end': 'Period End',
    'contributions': 'Contributions',
    'withdrawals': 'Withdrawals',
    'net_flow': 'Net Flow',
    'flow_count': 'Flows',
    'flow_days': 'Flow Days',
    'largest_daily_net': 'Largest Daily Net',
}


def format_nav_sheet(snapshots: Iterable[NavSnapshot]) -> pd.DataFrame:
    """Month-end NAV history with monthly and YTD returns."""
    df = nav_table(snapshots)
    for col in ['nav', 'monthly_return', 'ytd_return']:
        df[col] = df[col].astype(float).round(2)
    return df.rename(columns=NAV_SHEET_COLUMNS)


def format_flow_periods_sheet(flows: Iterable[CapitalFlow], snapshots: Iterable[NavSnapshot]) -> pd.DataFrame:
    df = summarize_flows_by_period(flows, snapshots)
    for col in ['period_start', 'period_end']:
        df[col] = pd.to_datetime(df[col]).dt.strftime('%Y-%m-%d').fillna('')
    for col in ['contributions', 'withdrawals', 'net_flow', 'largest_daily_net']:
        df[col] = df[col].astype(float).round(2)
    return df.rename(columns=FLOW_PERIOD_SHEET_COLUMNS)


def save_results(
    ledger_result: LedgerResult,
    output_dir: str = 'results',
    performance: Optional[Dict] = None,
    money_weighted: Optional[Dict] = None,
    nav_data: Optional[Iterable[NavSnapshot]] = None,
    capital_flows: Optional[Iterable[CapitalFlow]] = None
) -> str:
    """
    Save ledger results to an Excel workbook.

    The NAV sheet is written when nav_data is given; the Capital Flows sheet
    needs both nav_data and capital_flows.

    Returns:
        Path of the written workbook
    """
    logging.info(f"Saving results to {output_dir}")
    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    os.makedirs(output_dir, exist_ok=True)
    report_file = os.path.join(output_dir, f'investor_ledger_{timestamp}.xlsx')

    sheets = {
        'Investors': format_investor_sheet(ledger_result, money_weighted),
        'Reconciliation': format_reconciliation_sheet(ledger_result),
        'Failures': format_failures_sheet(ledger_result),
    }
    if performance:
        sheets['Performance'] = format_performance_sheet(performance)
    if nav_data is not None:
        nav_data = list(nav_data)
        sheets['NAV'] = format_nav_sheet(nav_data)
        if capital_flows is not None:
            sheets['Capital Flows'] = format_flow_periods_sheet(capital_flows, nav_data)

    with pd.ExcelWriter(report_file, engine='openpyxl') as writer:
        for sheet_name, df in sheets.items():
            df.to_excel(writer, sheet_name=sheet_name, index=False)
            worksheet = writer.sheets[sheet_name]
            for idx, col in enumerate(df.columns, start=1):
                width = max(12, len(str(col)) + 2)
                worksheet.column_dimensions[get_column_letter(idx)].width = width
            if sheet_name in ('Reconciliation', 'Performance'):
                worksheet.column_dimensions['A'].width = 35
                worksheet.column_dimensions['B'].width = 30
                for row in worksheet.iter_rows():
                    for cell in row:
                        cell.alignment = Alignment(wrap_text=True)

    logging.info(f"- Investor report: {os.path.basename(report_file)}")
    return report_file
