"""
Tests for the configuration schema and YAML loader.

Validates:
- Defaults match the packaged defaults.yaml
- YAML overrides and validation errors
- Deterministic configuration checksum
"""

from decimal import Decimal

import pytest
import yaml

from forecourt_config import (
    ConfigurationError,
    EngineConfig,
    InvoicingPolicy,
    LoanPolicy,
    StatutoryRates,
    compute_checksum,
    load_config,
    load_default_config,
)


class TestDefaults:

    def test_statutory_defaults(self):
        rates = StatutoryRates.with_defaults()
        assert rates.employee_rate == Decimal("8")
        assert rates.employer_rate == Decimal("12")
        assert rates.levy_rate == Decimal("3")

    def test_loan_defaults(self):
        policy = LoanPolicy.with_defaults()
        assert policy.annual_interest_rate == Decimal("23")
        assert policy.max_open_loans == 1

    def test_invoicing_defaults(self):
        policy = InvoicingPolicy.with_defaults()
        assert policy.default_payment_terms_days == 30
        assert policy.enforce_credit_limit is False

    def test_packaged_yaml_matches_code_defaults(self):
        assert load_default_config() == EngineConfig.with_defaults()
        assert compute_checksum(load_default_config()) == compute_checksum(EngineConfig())


class TestLoadConfig:

    def _write(self, tmp_path, data) -> str:
        path = tmp_path / "forecourt.yaml"
        path.write_text(yaml.safe_dump(data))
        return path

    def test_partial_override(self, tmp_path):
        path = self._write(tmp_path, {
            "statutory": {"employee_rate": "10"},
            "invoicing": {"enforce_credit_limit": True},
        })
        config = load_config(path)
        assert config.statutory.employee_rate == Decimal("10")
        assert config.statutory.employer_rate == Decimal("12")
        assert config.invoicing.enforce_credit_limit is True
        assert config.loans == LoanPolicy()

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path) == EngineConfig()

    def test_unknown_section(self, tmp_path):
        path = self._write(tmp_path, {"fuel_prices": {"diesel": "350"}})
        with pytest.raises(ConfigurationError, match="Unknown configuration sections"):
            load_config(path)

    def test_unknown_key(self, tmp_path):
        path = self._write(tmp_path, {"loans": {"grace_months": 2}})
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_rate_out_of_range(self, tmp_path):
        path = self._write(tmp_path, {"statutory": {"levy_rate": "120"}})
        with pytest.raises(ConfigurationError, match="levy_rate"):
            load_config(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")


class TestChecksum:

    def test_changes_with_values(self):
        base = EngineConfig()
        changed = EngineConfig(loans=LoanPolicy(annual_interest_rate=Decimal("20")))
        assert compute_checksum(base) != compute_checksum(changed)

    def test_schema_validation(self):
        with pytest.raises(ValueError):
            LoanPolicy(max_open_loans=0)
        with pytest.raises(ValueError):
            InvoicingPolicy(default_payment_terms_days=-1)
