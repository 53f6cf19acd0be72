from typing import Dict, List, Optional, Tuple

import pandas as pd
import os
import logging

from models import CapitalFlow, Investor, NavSnapshot


NAV_REQUIRED = ['month_end_date', 'total_nav']
NAV_OPTIONAL = ['month_start_date', 'start_nav', 'monthly_return', 'management_fees', 'aum_change']
INVESTOR_REQUIRED = ['id', 'name', 'initial_investment', 'start_date']
FLOW_REQUIRED = ['investor_id', 'date', 'amount', 'type']


def find_table(input_dir: str, name: str) -> str:
    """Locate NAME.xlsx or NAME.csv in input_dir."""
    for ext in ('.xlsx', '.csv'):
        path = os.path.join(input_dir, name + ext)
        if os.path.exists(path):
            return path
    raise FileNotFoundError(f"No {name}.xlsx or {name}.csv found in {input_dir}")


def read_table(path: str, dtype: Optional[Dict[str, type]] = None) -> pd.DataFrame:
    if path.endswith('.xlsx'):
        df = pd.read_excel(path, engine='openpyxl', dtype=dtype)
    else:
        df = pd.read_csv(path, dtype=dtype)
    df.columns = [str(c).strip() for c in df.columns]
    return df


def _drop_incomplete(df: pd.DataFrame, required: List[str], label: str) -> pd.DataFrame:
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValueError(f"{label} is missing required columns {missing}, got {list(df.columns)}")

    initial_len = len(df)
    df = df.dropna(subset=required)
    dropped_rows = initial_len - len(df)
    if dropped_rows > 0:
        logging.info(f"Dropped {dropped_rows} {label} rows with missing {', '.join(required)}")
    return df


def _value(row, column):
    value = row.get(column)
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    return value


def _id_value(value) -> str:
    """Identifier as text; integral floats from a numeric column lose their '.0'."""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _parse_dates(df: pd.DataFrame, column: str, label: str) -> pd.DataFrame:
    df = df.copy()
    df[column] = pd.to_datetime(df[column], errors='coerce').dt.normalize()
    bad = df[df[column].isna()]
    for idx in bad.index:
        logging.warning(f"Skipping {label} row {idx}: {column} is not a valid date")
    return df.drop(index=bad.index)


def nav_from_dataframe(nav_df: pd.DataFrame) -> List[NavSnapshot]:
    """
    Convert a NAV table into snapshots sorted by month_end_date.

    Rows that fail validation, and repeated month_end_dates after the first,
    are logged and skipped.
    """
    nav_df = _drop_incomplete(nav_df, NAV_REQUIRED, 'NAV')
    nav_df = _parse_dates(nav_df, 'month_end_date', 'NAV')
    nav_df = nav_df.sort_values('month_end_date', kind='stable')

    snapshots = []
    seen = set()
    for idx, row in nav_df.iterrows():
        try:
            snapshot = NavSnapshot(
                month_end_date=row['month_end_date'],
                total_nav=row['total_nav'],
                **{c: _value(row, c) for c in NAV_OPTIONAL},
            )
        except ValueError as e:
            logging.warning(f"Skipping NAV row {idx} ({row['month_end_date'].date()}): {e}")
            continue
        if snapshot.month_end_date in seen:
            logging.warning(f"Skipping NAV row {idx}: duplicate month_end_date {snapshot.month_end_date}")
            continue
        seen.add(snapshot.month_end_date)
        snapshots.append(snapshot)
    return snapshots


def investors_from_dataframe(investors_df: pd.DataFrame) -> List[Investor]:
    investors_df = _drop_incomplete(investors_df, INVESTOR_REQUIRED, 'Investors')

    investors = []
    seen = set()
    for idx, row in investors_df.iterrows():
        investor_id = _id_value(row['id'])
        if investor_id in seen:
            logging.warning(f"Skipping Investors row {idx}: duplicate investor id {investor_id}")
            continue
        try:
            investors.append(Investor(
                id=investor_id,
                name=str(row['name']).strip(),
                initial_investment=row['initial_investment'],
                start_date=row['start_date'],
                status=str(_value(row, 'status') or 'active').strip().lower(),
                mgmt_fee_rate=_value(row, 'mgmt_fee_rate') or 0,
                performance_fee_rate=_value(row, 'performance_fee_rate') or 0,
            ))
        except ValueError as e:
            logging.warning(f"Skipping Investors row {idx} (investor {investor_id}): {e}")
            continue
        seen.add(investor_id)
    return investors


def flows_from_dataframe(flows_df: pd.DataFrame) -> List[CapitalFlow]:
    """
    Convert a capital flow table into flows sorted by date, ties in file order.

    Rows that fail validation are logged and skipped.
    """
    flows_df = _drop_incomplete(flows_df, FLOW_REQUIRED, 'CapitalFlows')
    flows_df = _parse_dates(flows_df, 'date', 'CapitalFlows')
    flows_df = flows_df.sort_values('date', kind='stable')

    flows = []
    for idx, row in flows_df.iterrows():
        investor_id = _id_value(row['investor_id'])
        flow_id = _value(row, 'id')
        investor_name = _value(row, 'investor_name')
        try:
            flows.append(CapitalFlow(
                investor_id=investor_id,
                date=row['date'],
                amount=row['amount'],
                flow_type=str(row['type']).strip().lower(),
                id=_id_value(flow_id) if flow_id is not None else None,
                investor_name=str(investor_name) if investor_name is not None else None,
            ))
        except ValueError as e:
            logging.warning(f"Skipping CapitalFlows row {idx} (investor {investor_id}): {e}")
    return flows


def drop_orphan_flows(flows: List[CapitalFlow], investors: List[Investor]) -> List[CapitalFlow]:
    """Drop flows whose investor is not among the loaded investors."""
    known = {i.id for i in investors}
    kept = []
    for flow in flows:
        if flow.investor_id not in known:
            logging.warning(
                f"Skipping {flow.flow_type.value} of {flow.amount:,.2f} on {flow.date}: "
                f"unknown investor {flow.investor_id}"
            )
            continue
        kept.append(flow)
    return kept


def read_data(input_dir) -> Tuple[List[NavSnapshot], List[Investor], List[CapitalFlow]]:
    """
    Read NAV, investor and capital flow tables from a directory.

    Expects NAV, Investors and CapitalFlows as .xlsx or .csv files, with
    columns named after the record fields. Identifier columns are read as
    text. Invalid rows are logged and skipped so one bad record does not
    stop the other investors from being valued.
    """
    nav_file = find_table(input_dir, 'NAV')
    investors_file = find_table(input_dir, 'Investors')
    flows_file = find_table(input_dir, 'CapitalFlows')

    logging.info(f"Reading fund data from {nav_file}, {investors_file} and {flows_file}")

    nav_df = read_table(nav_file)
    investors_df = read_table(investors_file, dtype={'id': str})
    flows_df = read_table(flows_file, dtype={'id': str, 'investor_id': str})

    logging.info(
        f"Read {len(nav_df)} NAV records, {len(investors_df)} investors "
        f"and {len(flows_df)} capital flow records"
    )

    snapshots = nav_from_dataframe(nav_df)
    investors = investors_from_dataframe(investors_df)
    flows = drop_orphan_flows(flows_from_dataframe(flows_df), investors)

    if snapshots:
        logging.info(f"Processed NAV data from {snapshots[0].month_end_date} to {snapshots[-1].month_end_date}")
    return snapshots, investors, flows
