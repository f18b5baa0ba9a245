"""
Portfolio Construction Module
=============================
Handles price alignment, return computation, market-value weighting
and portfolio variance aggregation.

Mathematical Foundation:
    Simple return:      r_t = (P_t - P_{t-1}) / P_{t-1}
    Market value:       MV_i = q_i * P_i
    Weight:             w_i = MV_i / Σ MV
    Portfolio variance: σ_p² = w^T Σ w

Design note:
    Simple returns are used throughout because VaR is reported in
    currency terms on the current market value. Missing prices are
    gaps, never zeros: only the longest run of dates on which every
    requested asset is priced is kept, so no return spans a gap.
"""

import logging
from typing import List, Sequence, Tuple

import numpy as np
import pandas as pd

from var_engine.config import minimum_observations
from var_engine.exceptions import (
    InputValidationError,
    InsufficientDataError,
    InvalidPriceError,
    MissingAssetDataError,
    NumericalError,
)
from var_engine.models import (
    AssetType,
    PortfolioHolding,
    PortfolioWeight,
    PriceHistoryRow,
    ReturnsMatrix,
    VarConfig,
)

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# Returns Builder
# ─────────────────────────────────────────────────────────────

def build_price_frame(
    price_history: Sequence[PriceHistoryRow],
    asset_names: Sequence[str],
) -> pd.DataFrame:
    """
    Arrange price rows into a date-indexed frame for the requested assets.

    Parameters
    ----------
    price_history : sequence of PriceHistoryRow
        Observation rows in any order.
    asset_names : sequence of str
        Canonical asset order; defines the column order.

    Returns
    -------
    pd.DataFrame
        Prices sorted by date ascending. Gaps are NaN; assets absent
        from every row are all-NaN columns.

    Raises
    ------
    InputValidationError
        If two rows share the same date.
    """
    index = pd.DatetimeIndex([row.date for row in price_history], name="date")
    frame = pd.DataFrame(
        [row.prices for row in price_history], index=index, dtype=float
    )

    duplicated = index[index.duplicated()].unique()
    if len(duplicated) > 0:
        raise InputValidationError(
            [f"Duplicate price history date {d.date()}" for d in duplicated]
        )

    return frame.reindex(columns=list(asset_names)).sort_index()


def align_price_history(prices: pd.DataFrame) -> Tuple[pd.DataFrame, List[str]]:
    """
    Keep the longest contiguous run of dates where every asset is priced.

    Ties are resolved in favour of the most recent run.

    Parameters
    ----------
    prices : pd.DataFrame
        Date-sorted prices (NaN = gap).

    Returns
    -------
    tuple
        (aligned prices, names of assets whose gaps constrained the window)
    """
    complete = prices.notna().all(axis=1).to_numpy()

    best_start, best_len = 0, 0
    run_start = None
    for t, is_complete in enumerate(complete):
        if is_complete:
            if run_start is None:
                run_start = t
            run_len = t - run_start + 1
            if run_len >= best_len:
                best_start, best_len = run_start, run_len
        else:
            run_start = None

    limiting = [str(c) for c in prices.columns[prices.isna().any()]]
    aligned = prices.iloc[best_start:best_start + best_len]

    if len(aligned) < len(prices):
        logger.warning(
            "Price history trimmed from %d to %d dates by gaps in %s",
            len(prices), len(aligned), limiting,
        )

    return aligned, limiting


def compute_simple_returns(prices: pd.DataFrame) -> pd.DataFrame:
    """
    Compute simple (arithmetic) returns from a gap-free price frame.

    Mathematical Definition:
        r_t = (P_t - P_{t-1}) / P_{t-1}

    Parameters
    ----------
    prices : pd.DataFrame
        Aligned asset prices.

    Returns
    -------
    pd.DataFrame
        DataFrame of simple returns (first row dropped).
    """
    return prices.pct_change(fill_method=None).iloc[1:]


def build_returns(
    price_history: Sequence[PriceHistoryRow],
    asset_names: Sequence[str],
    config: VarConfig,
) -> ReturnsMatrix:
    """
    Convert uploaded price history into an aligned returns matrix.

    Algorithm:
        1. Sort rows by date and select the requested assets
        2. Reject non-positive or infinite prices and assets with no prices at all
        3. Keep the longest fully-priced contiguous date range
        4. Check the observation count against the frequency minimum
        5. Compute simple returns over the retained range

    Parameters
    ----------
    price_history : sequence of PriceHistoryRow
        Uploaded observation rows.
    asset_names : sequence of str
        Canonical asset order used by every downstream component.
    config : VarConfig
        Supplies the data frequency and minimum observation counts.

    Returns
    -------
    ReturnsMatrix
        n_observations x n_assets returns with no missing cells.

    Raises
    ------
    InvalidPriceError
        If any requested asset has a price <= 0 or an infinite price.
    MissingAssetDataError
        If a requested asset has no price on any date.
    InsufficientDataError
        If the aligned window holds fewer observations than required.
    """
    asset_names = list(asset_names)
    prices = build_price_frame(price_history, asset_names)

    values = prices.to_numpy()
    invalid = np.argwhere((values <= 0) | np.isinf(values))
    if invalid.size:
        t, j = invalid[0]
        raise InvalidPriceError(
            str(prices.columns[j]), prices.index[t].date(), float(values[t, j])
        )

    unpriced = [name for name in asset_names if prices[name].isna().all()]
    if unpriced:
        raise MissingAssetDataError(unpriced)

    aligned, limiting = align_price_history(prices)
    observations = len(aligned)
    required = minimum_observations(config)
    frequency = config.data_frequency.value

    start = aligned.index[0].date() if observations else None
    end = aligned.index[-1].date() if observations else None

    if observations < required:
        raise InsufficientDataError(
            observations, required, frequency,
            start_date=start, end_date=end, limiting_assets=limiting,
        )

    returns = compute_simple_returns(aligned)
    logger.debug(
        "Built %d x %d %s returns matrix (%s to %s)",
        returns.shape[0], returns.shape[1], frequency, start, end,
    )

    return ReturnsMatrix(
        asset_names=asset_names,
        dates=[ts.date() for ts in returns.index],
        returns=returns.to_numpy(dtype=float),
        price_observations=observations,
        start_date=start,
        end_date=end,
    )


# ─────────────────────────────────────────────────────────────
# Portfolio Aggregator
# ─────────────────────────────────────────────────────────────

def compute_market_value(holding: PortfolioHolding, config: VarConfig) -> float:
    """
    Market value of one holding.

    Bonds quoted as a percentage of par carry quantity in face value,
    so their price is divided by 100.
    """
    value = holding.quantity * holding.current_price
    if (
        config.bond_price_quote == "percent_of_par"
        and holding.asset_type == AssetType.BOND
    ):
        value /= 100.0
    return value


def compute_weights(
    holdings: Sequence[PortfolioHolding],
    asset_names: Sequence[str],
    config: VarConfig,
) -> List[PortfolioWeight]:
    """
    Define market-value weights aligned with the canonical asset order.

    Parameters
    ----------
    holdings : sequence of PortfolioHolding
        Portfolio positions.
    asset_names : sequence of str
        Columns of the returns / covariance matrices.
    config : VarConfig
        Supplies the bond price convention.

    Returns
    -------
    list of PortfolioWeight
        One entry per asset, in ``asset_names`` order; weights sum to 1.

    Raises
    ------
    MissingAssetDataError
        If a holding has no column in the returns matrix.
    ValueError
        If an asset in ``asset_names`` has no holding.
    InputValidationError
        If the total market value is not positive.
    """
    market_values = pd.Series(
        {h.asset_name: compute_market_value(h, config) for h in holdings},
        dtype=float,
    )

    known = set(asset_names)
    excluded = [name for name in market_values.index if name not in known]
    if excluded:
        raise MissingAssetDataError(excluded)

    # reindex guarantees element-by-element alignment with the
    # covariance matrix regardless of holding order
    aligned = market_values.reindex(list(asset_names))
    if aligned.isna().any():
        missing = aligned[aligned.isna()].index.tolist()
        raise ValueError(
            f"Weight alignment failed: no holding defined for assets: {missing}"
        )

    total = float(aligned.sum())
    if not total > 0:
        raise InputValidationError(
            [f"Total portfolio market value must be positive, got {total}"]
        )

    weights = aligned / total
    return [
        PortfolioWeight(asset_name=name, market_value=float(mv), weight=float(w))
        for name, mv, w in zip(aligned.index, aligned.values, weights.values)
    ]


def weight_vector(weights: Sequence[PortfolioWeight]) -> np.ndarray:
    """Weight vector (N,) in the order of ``weights``."""
    return np.array([w.weight for w in weights], dtype=float)


def compute_portfolio_variance(
    weights: Sequence[PortfolioWeight], covariance: np.ndarray
) -> float:
    """
    Compute periodic portfolio variance.

    Mathematical Definition:
        σ_p² = w^T Σ w

    Round-off can leave a fully hedged portfolio with a variance a few
    ulps below zero; that is clamped to 0.

    Parameters
    ----------
    weights : sequence of PortfolioWeight
        Weights in the same order as the covariance matrix.
    covariance : np.ndarray
        Periodic covariance matrix (N x N).

    Returns
    -------
    float
        Portfolio variance per return period.
    """
    w = weight_vector(weights)
    if covariance.shape != (w.size, w.size):
        raise ValueError(
            f"Covariance shape {covariance.shape} does not match {w.size} weights"
        )

    variance = float(w @ covariance @ w)

    if variance < 0:
        scale = float(np.max(np.diag(covariance))) if w.size else 0.0
        if variance < -1e-12 * max(scale, 1e-300):
            raise NumericalError(
                f"Portfolio variance is negative ({variance:.3e}); "
                "covariance matrix is not positive semi-definite"
            )
        variance = 0.0

    return variance
