"""
Risk Metrics Module
====================
Implements Parametric (Variance-Covariance) VaR and Expected Shortfall
in currency terms over a multi-day horizon.

Mathematical Foundation:
    Daily σ:          σ_d = sqrt(σ²_ann / 252)
    Horizon σ:        σ_h = σ_d · sqrt(h)
    Parametric VaR:   VaR_α = z_α · σ_h · V
    Parametric ES:    ES_α  = σ_h · φ(z_α) / (1 - α) · V

The annualized variance is converted back to a trading-day figure
regardless of the source data frequency, so horizons are always
expressed in trading days.
"""

import math

from scipy import stats

from var_engine.config import TRADING_DAYS_PER_YEAR, Z_SCORES


def z_score(confidence_level: float) -> float:
    """
    One-tailed standard normal quantile for a supported confidence level.

    Parameters
    ----------
    confidence_level : float
        Confidence in percent (90, 95, 99 or 99.9).

    Returns
    -------
    float
        z_α from the fixed quantile table.
    """
    try:
        return Z_SCORES[float(confidence_level)]
    except KeyError:
        raise ValueError(
            f"Unsupported confidence level {confidence_level}; "
            f"expected one of {sorted(Z_SCORES)}"
        ) from None


def horizon_volatility(annualized_variance: float, horizon_days: int) -> float:
    """
    Volatility over the holding horizon from an annualized variance.

    Mathematical Definition:
        σ_h = sqrt(σ²_ann / 252) · sqrt(h)
    """
    if annualized_variance < 0:
        raise ValueError(f"Variance must be non-negative, got {annualized_variance}")
    if horizon_days < 1:
        raise ValueError(f"Time horizon must be at least 1 day, got {horizon_days}")

    daily_vol = math.sqrt(annualized_variance / TRADING_DAYS_PER_YEAR)
    return daily_vol * math.sqrt(horizon_days)


def compute_var(
    annualized_variance: float,
    total_value: float,
    confidence_level: float,
    horizon_days: int,
) -> float:
    """
    Compute Parametric VaR assuming Gaussian returns.

    Mathematical Definition:
        VaR_α = z_α · σ_h · V

    Parameters
    ----------
    annualized_variance : float
        Annualized portfolio return variance.
    total_value : float
        Portfolio market value in currency.
    confidence_level : float
        Confidence in percent.
    horizon_days : int
        Holding period in trading days.

    Returns
    -------
    float
        VaR in currency (positive = loss magnitude).
    """
    z_alpha = z_score(confidence_level)
    return z_alpha * horizon_volatility(annualized_variance, horizon_days) * total_value


def compute_standalone_var(
    annualized_variance: float,
    market_value: float,
    confidence_level: float,
    horizon_days: int,
) -> float:
    """VaR of a single position held in isolation (no diversification)."""
    return compute_var(annualized_variance, market_value, confidence_level, horizon_days)


def compute_parametric_es(
    annualized_variance: float,
    total_value: float,
    confidence_level: float,
    horizon_days: int,
) -> float:
    """
    Compute Parametric Expected Shortfall under Gaussian assumption.

    Mathematical Definition:
        ES_α = σ_h · φ(z_α) / (1 - α) · V

    Where φ is the standard normal PDF. Uses the same z table as VaR.

    Returns
    -------
    float
        ES in currency (positive = loss magnitude).
    """
    z_alpha = z_score(confidence_level)
    tail_probability = 1.0 - float(confidence_level) / 100.0
    phi_z = float(stats.norm.pdf(z_alpha))
    sigma_h = horizon_volatility(annualized_variance, horizon_days)
    return sigma_h * phi_z / tail_probability * total_value
