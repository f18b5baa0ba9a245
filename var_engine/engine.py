"""
VaR Calculation Pipeline
========================
Runs one complete parametric VaR calculation over uploaded data.

Execution Flow:
    1. Derive the canonical asset order from the holdings
    2. Build the aligned returns matrix
    3. Estimate covariance / correlation
    4. Compute market-value weights and portfolio variance
    5. Parametric VaR and Expected Shortfall
    6. Euler contribution decomposition
    7. Likelihood / impact scoring

Each call is independent: all state is built from the arguments, and any
failure aborts the whole calculation without partial results.
"""

import logging
import math
from collections import Counter
from datetime import datetime
from typing import Optional

from var_engine.config import SUPPORTED_MATRIX_SIZES
from var_engine.contributions import decompose_contributions
from var_engine.exceptions import InputValidationError, ScaleConfigError
from var_engine.models import (
    CorrelationMatrix,
    VarResults,
    VarScaleConfig,
    VarUploadData,
)
from var_engine.portfolio import (
    build_returns,
    compute_portfolio_variance,
    compute_weights,
)
from var_engine.risk_metrics import compute_parametric_es, compute_var
from var_engine.scoring import map_value_to_impact, map_volatility_to_likelihood
from var_engine.statistics import compute_covariance

logger = logging.getLogger(__name__)


def perform_var_calculation(
    upload: VarUploadData,
    scale_config: Optional[VarScaleConfig] = None,
    matrix_size: int = 5,
    calculation_date: Optional[datetime] = None,
) -> VarResults:
    """
    Compute portfolio VaR, its decomposition and risk matrix scores.

    Parameters
    ----------
    upload : VarUploadData
        Holdings, price history and calculation settings.
    scale_config : VarScaleConfig, optional
        Threshold bands; default bands are used when omitted.
    matrix_size : int
        Risk matrix dimension (5 or 6).
    calculation_date : datetime, optional
        Timestamp stamped on the results (defaults to now).

    Returns
    -------
    VarResults
        Complete, JSON-serializable calculation output.

    Raises
    ------
    VarEngineError
        Any engine error; see ``var_engine.exceptions``.
    """
    config = upload.config
    holdings = upload.holdings
    scale_config = scale_config if scale_config is not None else VarScaleConfig()

    if matrix_size not in SUPPORTED_MATRIX_SIZES:
        raise ScaleConfigError(
            [f"Unsupported risk matrix size {matrix_size}; expected 5 or 6"]
        )
    if not scale_config.supports_matrix_size(matrix_size):
        raise ScaleConfigError(
            [f"A {matrix_size}x{matrix_size} risk matrix needs "
             f"{matrix_size - 1} volatility and value thresholds"]
        )

    if not holdings:
        raise InputValidationError(["No portfolio holdings provided"])
    duplicates = [n for n, c in Counter(h.asset_name for h in holdings).items() if c > 1]
    if duplicates:
        raise InputValidationError(
            [f'Duplicate holding "{name}"' for name in duplicates]
        )

    # Canonical order threaded through every component
    asset_names = [h.asset_name for h in holdings]
    logger.info(
        "Calculating %s%% %d-day VaR for %d assets (%s data)",
        f"{config.confidence_level:g}", config.time_horizon_days,
        len(asset_names), config.data_frequency.value,
    )

    returns = build_returns(upload.price_history, asset_names, config)
    estimate = compute_covariance(returns, config.data_frequency)
    periods = estimate.periods_per_year

    weights = compute_weights(holdings, returns.asset_names, config)
    total_value = sum(w.market_value for w in weights)

    annualized_variance = compute_portfolio_variance(weights, estimate.covariance) * periods
    portfolio_volatility = math.sqrt(annualized_variance)

    portfolio_var = compute_var(
        annualized_variance, total_value,
        config.confidence_level, config.time_horizon_days,
    )
    portfolio_es = compute_parametric_es(
        annualized_variance, total_value,
        config.confidence_level, config.time_horizon_days,
    )

    contributions = decompose_contributions(
        weights, estimate.covariance, portfolio_var, config, periods
    )
    undiversified_var = sum(c.standalone_var for c in contributions)

    likelihood = map_volatility_to_likelihood(portfolio_volatility, scale_config, matrix_size)
    impact = map_value_to_impact(total_value, scale_config, matrix_size)

    logger.info(
        "Portfolio VaR %.2f %s on value %.2f (volatility %.2f%%, scores L%d/I%d)",
        portfolio_var, config.currency, total_value,
        portfolio_volatility * 100, likelihood, impact,
    )

    return VarResults(
        portfolio_var=portfolio_var,
        portfolio_es=portfolio_es,
        portfolio_volatility=portfolio_volatility,
        total_portfolio_value=total_value,
        data_points_count=returns.price_observations,
        undiversified_var=undiversified_var,
        diversification_benefit=undiversified_var - portfolio_var,
        likelihood_score=likelihood,
        impact_score=impact,
        asset_contributions=contributions,
        correlation_matrix=CorrelationMatrix(
            asset_names=list(estimate.asset_names),
            matrix=estimate.correlation.tolist(),
        ),
        covariance_matrix=estimate.covariance.tolist(),
        confidence_level=config.confidence_level,
        time_horizon_days=config.time_horizon_days,
        data_frequency=config.data_frequency,
        currency=config.currency,
        start_date=returns.start_date,
        end_date=returns.end_date,
        calculation_date=calculation_date or datetime.now(),
    )
