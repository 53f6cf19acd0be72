import argparse
import logging
import os
from datetime import datetime

import config_loader
import data_loader
import flow_utils
import performance_metrics
import report_writer
import utils
from investor_ledger import run_ledger
from nav_store import FundDataStore
from timeline import TIE_BREAKS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Attribute fund NAV to investors and reconcile investor values with the total NAV.'
    )
    parser.add_argument('-i', '--input-path', default=None, help='Directory holding NAV, Investors and CapitalFlows tables')
    parser.add_argument('-c', '--config', default='config.yaml', help='Configuration file')
    parser.add_argument('-o', '--output-dir', default=None, help='Directory for the Excel report')
    parser.add_argument('--no-scale', action='store_true', help='Do not add display-scaled investor values')
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    config = config_loader.load_config(args.config)

    utils.setup_logging('InvestorLedger', config.paths.log_dir)

    for issue in config_loader.validate_config(config):
        logging.warning(f"Config: {issue}")

    if config.ledger.tie_break not in TIE_BREAKS:
        logging.error(f"Cannot order same-date events with tie_break {config.ledger.tie_break!r}")
        return 1

    input_path = args.input_path or config.paths.input_dir
    output_dir = args.output_dir or config.paths.output_dir
    if args.no_scale:
        config.reconciliation.apply_scale_factor = False

    if not os.path.isdir(input_path):
        logging.error(f"Input path {input_path} does not exist")
        return 1

    snapshots, investors, flows = data_loader.read_data(input_path)
    store = FundDataStore(snapshots, investors, flows)

    flow_utils.flag_large_cash_flows(
        store.get_all_capital_flows(),
        store.get_all_nav_data(),
        threshold=config.thresholds.large_cash_flow_pct,
    )

    ledger_result = run_ledger(store, config)

    for investor_id, error in ledger_result.failures.items():
        logging.warning(f"Investor {investor_id} could not be valued: {error}")

    rec = ledger_result.reconciliation
    if rec.is_reconciled:
        logging.info("Investor values reconcile with total NAV")
    else:
        logging.warning(f"Investor values do not reconcile with total NAV: discrepancy {rec.discrepancy:,.2f}")

    latest_nav = store.get_latest_nav()
    report_year = latest_nav.month_end_date.year if latest_nav else datetime.now().year
    performance = performance_metrics.summarize_performance(
        store.get_all_nav_data(),
        year_start_nav=store.get_year_start_nav(report_year),
        risk_free_rate=config.performance.risk_free_rate,
    )

    money_weighted = performance_metrics.calculate_money_weighted_returns(
        ledger_result, store.get_flows_by_investor()
    )

    report_writer.save_results(
        ledger_result,
        output_dir,
        performance,
        money_weighted,
        nav_data=store.get_all_nav_data(),
        capital_flows=store.get_all_capital_flows(),
    )
    logging.info("Investor ledger run completed")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
