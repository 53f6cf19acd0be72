"""
Configuration loader for the investor NAV ledger.

Loads and validates configuration from config.yaml file.
"""

import os
import yaml
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List

from timeline import NAV_FIRST, TIE_BREAKS


@dataclass
class LedgerConfig:
    """Ownership walk configuration."""
    tie_break: str = NAV_FIRST  # NAV events before transactions on a shared date
    fallback_to_earliest_nav: bool = False


@dataclass
class ReconciliationConfig:
    """Reconciliation configuration."""
    tolerance: float = 0.0001  # 0.01% of total NAV
    apply_scale_factor: bool = True  # display-only normalization

    @property
    def tolerance_decimal(self) -> Decimal:
        return Decimal(str(self.tolerance))


@dataclass
class ThresholdsConfig:
    """Threshold configuration."""
    large_cash_flow_pct: float = 0.10  # 10% of fund NAV


@dataclass
class PerformanceConfig:
    """Fund performance analytics configuration."""
    risk_free_rate: float = 2.0  # percent


@dataclass
class PathsConfig:
    """Path configuration."""
    input_dir: str = 'input'
    output_dir: str = 'results'
    log_dir: str = 'logs'


@dataclass
class Config:
    """Main configuration class."""
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    reconciliation: ReconciliationConfig = field(default_factory=ReconciliationConfig)
    thresholds: ThresholdsConfig = field(default_factory=ThresholdsConfig)
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)


def load_config(config_path: str = 'config.yaml') -> Config:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to the configuration file

    Returns:
        Config object; defaults if the file does not exist
    """
    if not os.path.exists(config_path):
        logging.warning(f"Config file {config_path} not found, using defaults")
        return _get_default_config()

    with open(config_path, 'r') as f:
        raw_config = yaml.safe_load(f)

    return _parse_config(raw_config or {})


def _get_default_config() -> Config:
    """Return default configuration."""
    return Config()


def _parse_config(raw: dict) -> Config:
    """Parse raw YAML dict into Config object."""
    ledger_raw = raw.get('ledger') or {}
    ledger = LedgerConfig(
        tie_break=ledger_raw.get('tie_break', NAV_FIRST),
        fallback_to_earliest_nav=bool(ledger_raw.get('fallback_to_earliest_nav', False)),
    )

    reconciliation_raw = raw.get('reconciliation') or {}
    reconciliation = ReconciliationConfig(
        tolerance=float(reconciliation_raw.get('tolerance', 0.0001)),
        apply_scale_factor=bool(reconciliation_raw.get('apply_scale_factor', True)),
    )

    thresholds_raw = raw.get('thresholds') or {}
    thresholds = ThresholdsConfig(
        large_cash_flow_pct=float(thresholds_raw.get('large_cash_flow_pct', 0.10)),
    )

    performance_raw = raw.get('performance') or {}
    performance = PerformanceConfig(
        risk_free_rate=float(performance_raw.get('risk_free_rate', 2.0)),
    )

    paths_raw = raw.get('paths') or {}
    paths = PathsConfig(
        input_dir=paths_raw.get('input_dir', 'input'),
        output_dir=paths_raw.get('output_dir', 'results'),
        log_dir=paths_raw.get('log_dir', 'logs'),
    )

    return Config(
        ledger=ledger,
        reconciliation=reconciliation,
        thresholds=thresholds,
        performance=performance,
        paths=paths,
    )


def validate_config(config: Config) -> List[str]:
    """
    Validate configuration and return list of warnings/errors.

    Args:
        config: Configuration to validate

    Returns:
        List of warning/error messages (empty if valid)
    """
    issues = []

    if config.ledger.tie_break not in TIE_BREAKS:
        issues.append(f"Unknown tie_break {config.ledger.tie_break!r} (expected one of {list(TIE_BREAKS)})")

    if config.reconciliation.tolerance <= 0 or config.reconciliation.tolerance > 0.05:
        issues.append(f"Reconciliation tolerance {config.reconciliation.tolerance} seems unusual (expected 0-5%)")

    if config.thresholds.large_cash_flow_pct < 0.01 or config.thresholds.large_cash_flow_pct > 0.50:
        issues.append(f"Large cash flow threshold {config.thresholds.large_cash_flow_pct} seems unusual (expected 1-50%)")

    if config.performance.risk_free_rate < 0:
        issues.append(f"Risk-free rate {config.performance.risk_free_rate} is negative")

    return issues
