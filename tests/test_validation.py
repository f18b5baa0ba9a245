import datetime as dt

import pytest

from var_engine.models import PortfolioHolding, PriceHistoryRow, VarConfig
from var_engine.validation import validate_var_data


def _holdings():
    return [
        PortfolioHolding(asset_name="Dangote Cement", asset_type="Equity",
                         quantity=10_000, current_price=285.0),
        PortfolioHolding(asset_name="Access Bank", asset_type="Equity",
                         quantity=25_000, current_price=12.5),
    ]


def _history(n=15, **overrides):
    rows = []
    for i in range(n):
        prices = {"Dangote Cement": 280.0 + i, "Access Bank": 12.0 + 0.1 * (i % 3)}
        prices.update({k: v(i) if callable(v) else v for k, v in overrides.items()})
        rows.append(PriceHistoryRow(date=dt.date(2024, 1, 1) + dt.timedelta(days=i),
                                    prices=prices))
    return rows


@pytest.fixture
def config():
    return VarConfig(min_data_points_daily=10)


class TestValidateVarData:
    def test_valid_upload(self, config):
        result = validate_var_data(_holdings(), _history(), config)
        assert result.valid
        assert result.errors == []

    def test_holding_with_empty_price_history(self, config):
        holdings = _holdings() + [
            PortfolioHolding(asset_name="NGN 10Y Bond", asset_type="Bond",
                             quantity=1_000, current_price=98.5)
        ]
        result = validate_var_data(holdings, _history(**{"NGN 10Y Bond": None}), config)
        assert not result.valid
        assert any("NGN 10Y Bond" in e for e in result.errors)

    def test_empty_holdings(self, config):
        result = validate_var_data([], _history(), config)
        assert not result.valid
        assert "No portfolio holdings provided" in result.errors

    def test_empty_price_history(self, config):
        result = validate_var_data(_holdings(), [], config)
        assert not result.valid
        assert "No price history provided" in result.errors

    def test_non_positive_quantity_and_price(self, config):
        holdings = [
            {"asset_name": "Dangote Cement", "asset_type": "Equity",
             "quantity": 0, "current_price": 285.0},
            {"asset_name": "Access Bank", "asset_type": "Equity",
             "quantity": 100, "current_price": 0},
        ]
        result = validate_var_data(holdings, _history(), config)
        assert 'Invalid quantity for "Dangote Cement": must be positive' in result.errors
        assert 'Invalid price for "Access Bank": must be positive' in result.errors

    def test_negative_quantity_from_raw_mapping(self, config):
        holdings = [{"asset_name": "Access Bank", "asset_type": "Equity",
                     "quantity": -5, "current_price": 12.5}]
        result = validate_var_data(holdings, _history(), config)
        assert not result.valid
        assert any(e.startswith('Holding "Access Bank"') for e in result.errors)

    def test_non_positive_history_price(self, config):
        rows = _history(**{"Access Bank": lambda i: -1.0 if i == 4 else 12.0 + i})
        result = validate_var_data(_holdings(), rows, config)
        assert not result.valid
        assert any("Access Bank" in e and "must be positive" in e for e in result.errors)

    def test_infinite_history_price(self, config):
        rows = _history(**{"Access Bank": lambda i: float("inf") if i == 9 else 12.0 + i})
        result = validate_var_data(_holdings(), rows, config)
        assert not result.valid
        assert any("Access Bank" in e and "finite" in e for e in result.errors)

    def test_insufficient_observations(self):
        result = validate_var_data(_holdings(), _history(n=15), VarConfig())
        assert not result.valid
        assert any("minimum 252 required for Daily data" in e for e in result.errors)

    def test_gaps_shrink_usable_window(self, config):
        rows = _history(n=15, **{"Access Bank": lambda i: None if i == 7 else 12.0 + i})
        result = validate_var_data(_holdings(), rows, config)
        assert not result.valid
        assert any("Insufficient data: 7 aligned observations" in e for e in result.errors)

    def test_duplicate_holdings_and_dates(self, config):
        rows = _history()
        rows.append(rows[0])
        result = validate_var_data(_holdings() + _holdings()[:1], rows, config)
        assert any("Duplicate holding" in e for e in result.errors)
        assert any("Duplicate price history date" in e for e in result.errors)

    def test_non_ascending_scale_thresholds(self, config):
        result = validate_var_data(
            _holdings(), _history(), config,
            scale_config={"volatility_thresholds": [5, 10, 8, 20],
                          "value_thresholds": [10, 50, 100, 500]},
        )
        assert not result.valid
        assert "Volatility thresholds must be in ascending order" in result.errors

    def test_malformed_config_mapping(self):
        result = validate_var_data(_holdings(), _history(), {"confidence_level": 42})
        assert not result.valid
        assert any("Unsupported confidence level" in e for e in result.errors)
