"""Tests for the configuration loader module."""

import os
import sys
import tempfile
import pytest
import yaml
from decimal import Decimal

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
sys.path.insert(0, PROJECT_ROOT)

from config_loader import (
    load_config,
    Config,
    LedgerConfig,
    ReconciliationConfig,
    ThresholdsConfig,
    validate_config,
    _get_default_config,
    _parse_config,
)


class TestDefaults:
    """Tests for default configuration values."""

    def test_ledger_defaults(self):
        """Same-date events default to NAV first, with no earliest-NAV fallback."""
        config = LedgerConfig()
        assert config.tie_break == 'nav_first'
        assert config.fallback_to_earliest_nav is False

    def test_reconciliation_defaults(self):
        """Tolerance is 0.01% and display scaling is on."""
        config = ReconciliationConfig()
        assert config.tolerance == 0.0001
        assert config.tolerance_decimal == Decimal('0.0001')
        assert config.apply_scale_factor is True

    def test_thresholds_defaults(self):
        """Large flows are those over 10% of NAV."""
        assert ThresholdsConfig().large_cash_flow_pct == 0.10

    def test_default_config(self):
        """The built-in config carries every section."""
        config = _get_default_config()
        assert isinstance(config, Config)
        assert config.paths.input_dir == 'input'
        assert config.performance.risk_free_rate == 2.0


class TestLoadConfig:
    """Tests for load_config function."""

    def test_load_default_when_file_missing(self):
        """Test loading default config when file doesn't exist."""
        config = load_config('/nonexistent/path/config.yaml')
        assert isinstance(config, Config)
        assert config.ledger.tie_break == 'nav_first'

    def test_load_from_yaml(self):
        """Test loading config from a YAML file."""
        yaml_content = {
            'ledger': {
                'tie_break': 'transaction_first',
                'fallback_to_earliest_nav': True,
            },
            'reconciliation': {
                'tolerance': 0.001,
                'apply_scale_factor': False,
            },
            'thresholds': {
                'large_cash_flow_pct': 0.15
            },
            'performance': {
                'risk_free_rate': 3.5
            },
            'paths': {
                'input_dir': 'test_input',
                'output_dir': 'test_output',
                'log_dir': 'test_logs'
            },
        }

        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            yaml.dump(yaml_content, f)
            temp_path = f.name

        try:
            config = load_config(temp_path)

            assert config.ledger.tie_break == 'transaction_first'
            assert config.ledger.fallback_to_earliest_nav is True
            assert config.reconciliation.tolerance == 0.001
            assert config.reconciliation.apply_scale_factor is False
            assert config.thresholds.large_cash_flow_pct == 0.15
            assert config.performance.risk_free_rate == 3.5
            assert config.paths.output_dir == 'test_output'
        finally:
            os.unlink(temp_path)

    def test_empty_yaml_gives_defaults(self, tmp_path):
        """An empty file loads as the default config."""
        path = tmp_path / 'config.yaml'
        path.write_text('')
        config = load_config(str(path))
        assert config.reconciliation.tolerance == 0.0001

    def test_partial_sections(self):
        """Missing keys and sections fall back to defaults."""
        config = _parse_config({'reconciliation': {'tolerance': 0.0005}})
        assert config.reconciliation.tolerance == 0.0005
        assert config.reconciliation.apply_scale_factor is True
        assert config.ledger.tie_break == 'nav_first'

    def test_shipped_config_file_is_valid(self):
        """The config.yaml in the repository passes validation."""
        config = load_config(os.path.join(PROJECT_ROOT, 'config.yaml'))
        assert validate_config(config) == []


class TestValidateConfig:
    """Tests for config validation."""

    def test_valid_config(self):
        """Defaults produce no issues."""
        assert validate_config(_get_default_config()) == []

    def test_unknown_tie_break(self):
        """An unknown tie_break is reported."""
        config = _get_default_config()
        config.ledger.tie_break = 'random'
        issues = validate_config(config)
        assert any('tie_break' in issue for issue in issues)

    @pytest.mark.parametrize('tolerance', [0, -0.01, 0.1])
    def test_unusual_tolerance(self, tolerance):
        """Zero, negative and very wide tolerances are reported."""
        config = _get_default_config()
        config.reconciliation.tolerance = tolerance
        issues = validate_config(config)
        assert any('tolerance' in issue for issue in issues)

    def test_unusual_threshold(self):
        """A threshold of 90% of NAV is reported."""
        config = _get_default_config()
        config.thresholds.large_cash_flow_pct = 0.9
        issues = validate_config(config)
        assert any('Large cash flow threshold' in issue for issue in issues)

    def test_negative_risk_free_rate(self):
        """A negative risk-free rate is reported."""
        config = _get_default_config()
        config.performance.risk_free_rate = -1
        assert any('Risk-free' in issue for issue in validate_config(config))
