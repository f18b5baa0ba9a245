import datetime as dt
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd
import pytest

from var_engine.models import (
    PortfolioHolding,
    PriceHistoryRow,
    VarConfig,
    VarUploadData,
)


def prices_from_returns(
    returns: np.ndarray, start_prices: Optional[Sequence[float]] = None
) -> np.ndarray:
    """Price paths (T+1 x N) whose simple returns are ``returns``."""
    returns = np.asarray(returns, dtype=float)
    if returns.ndim == 1:
        returns = returns[:, None]
    start = np.asarray(start_prices if start_prices is not None else [100.0] * returns.shape[1])
    growth = np.vstack([np.ones(returns.shape[1]), np.cumprod(1 + returns, axis=0)])
    return start * growth


def rows_from_prices(
    prices: np.ndarray,
    names: Sequence[str],
    start: str = "2023-01-02",
) -> List[PriceHistoryRow]:
    dates = pd.bdate_range(start=start, periods=prices.shape[0])
    return [
        PriceHistoryRow(
            date=d.date(),
            prices={name: float(p) for name, p in zip(names, row)},
        )
        for d, row in zip(dates, prices)
    ]


def alternating_returns(n: int, variance: float) -> np.ndarray:
    """
    Two uncorrelated zero-mean return series with an exact sample variance.

    Patterns (+,-,+,-) and (+,+,-,-) are orthogonal over every block of 4.
    """
    assert n % 4 == 0
    a = np.sqrt(variance * (n - 1) / n)
    first = np.tile([a, -a, a, -a], n // 4)
    second = np.tile([a, a, -a, -a], n // 4)
    return np.column_stack([first, second])


@pytest.fixture
def small_config() -> VarConfig:
    return VarConfig(
        data_frequency="Daily",
        confidence_level=95,
        time_horizon_days=1,
        min_data_points_daily=10,
        min_data_points_monthly=6,
    )


@pytest.fixture
def make_rows():
    return rows_from_prices


@pytest.fixture
def make_prices():
    return prices_from_returns


@pytest.fixture
def uncorrelated_returns():
    return alternating_returns


@pytest.fixture
def random_upload(small_config):
    """Four-asset upload with correlated random-walk prices."""

    def _build(n_obs: int = 120, seed: int = 7, config: VarConfig = small_config):
        rng = np.random.default_rng(seed)
        names = ["Bond A", "Equity B", "Equity C", "FX D"]
        corr = np.array([
            [1.0, 0.2, 0.1, -0.3],
            [0.2, 1.0, 0.6, 0.1],
            [0.1, 0.6, 1.0, 0.0],
            [-0.3, 0.1, 0.0, 1.0],
        ])
        vols = np.array([0.002, 0.015, 0.02, 0.008])
        cov = corr * np.outer(vols, vols)
        returns = rng.multivariate_normal(np.zeros(4), cov, size=n_obs - 1)
        prices = prices_from_returns(returns, [98.5, 285.0, 12.5, 1450.0])
        holdings = [
            PortfolioHolding(asset_name="Bond A", asset_type="Bond",
                             quantity=1_000_000, current_price=98.5),
            PortfolioHolding(asset_name="Equity B", asset_type="Equity",
                             quantity=200_000, current_price=285.0),
            PortfolioHolding(asset_name="Equity C", asset_type="Equity",
                             quantity=3_000_000, current_price=12.5),
            PortfolioHolding(asset_name="FX D", asset_type="FX",
                             quantity=20_000, current_price=1450.0),
        ]
        return VarUploadData(
            holdings=holdings,
            price_history=rows_from_prices(prices, names),
            config=config,
        )

    return _build


@pytest.fixture
def calc_date() -> dt.datetime:
    return dt.datetime(2024, 6, 28, 17, 0, 0)
