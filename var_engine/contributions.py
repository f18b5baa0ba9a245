"""
VaR Contribution Module
=======================
Euler decomposition of parametric portfolio VaR into additive
per-asset contributions, alongside each asset's standalone VaR.

Mathematical Foundation:
    Marginal variance:  m_i = (Σ w)_i
    Contribution:       C_i = VaR_p · w_i m_i / (w^T Σ w)
    Additivity:         Σ_i C_i = VaR_p
    Diversification:    D_i = VaR_i^standalone - C_i
"""

import logging
from typing import List, Sequence

import numpy as np

from var_engine.models import AssetContribution, PortfolioWeight, VarConfig
from var_engine.portfolio import weight_vector
from var_engine.risk_metrics import compute_standalone_var

logger = logging.getLogger(__name__)


def marginal_variance(weights: np.ndarray, cov_matrix: np.ndarray) -> np.ndarray:
    """Marginal contribution to variance, (Σ w)_i for every asset."""
    return cov_matrix @ weights


def decompose_contributions(
    weights: Sequence[PortfolioWeight],
    cov_matrix: np.ndarray,
    portfolio_var: float,
    config: VarConfig,
    periods: int,
) -> List[AssetContribution]:
    """
    Split portfolio VaR into per-asset Euler contributions.

    Each asset's share of portfolio variance, w_i (Σw)_i / w^T Σ w, is
    applied to the portfolio VaR in currency, so contributions sum to
    the portfolio VaR. A fully hedged portfolio (zero variance) has zero
    VaR and every contribution is zero.

    Parameters
    ----------
    weights : sequence of PortfolioWeight
        Weights in the covariance matrix's asset order.
    cov_matrix : np.ndarray
        Periodic covariance matrix (N x N).
    portfolio_var : float
        Portfolio VaR in currency.
    config : VarConfig
        Confidence level and horizon for standalone VaR.
    periods : int
        Return periods per year, used to annualize asset variances.

    Returns
    -------
    list of AssetContribution
        One entry per asset in the same order as ``weights``.
    """
    w = weight_vector(weights)
    marginal = marginal_variance(w, cov_matrix)
    component_variance = w * marginal
    total_variance = float(component_variance.sum())

    if total_variance > 0 and portfolio_var > 0:
        shares = component_variance / total_variance
    else:
        shares = np.zeros_like(w)

    contributions = []
    for i, pw in enumerate(weights):
        standalone = compute_standalone_var(
            float(cov_matrix[i, i]) * periods,
            pw.market_value,
            config.confidence_level,
            config.time_horizon_days,
        )
        contribution = float(portfolio_var * shares[i])
        pct = contribution / portfolio_var * 100.0 if portfolio_var > 0 else 0.0

        contributions.append(
            AssetContribution(
                asset_name=pw.asset_name,
                market_value=pw.market_value,
                weight=pw.weight,
                standalone_var=standalone,
                var_contribution=contribution,
                var_contribution_pct=pct,
                diversification_benefit=standalone - contribution,
            )
        )

    logger.debug(
        "Decomposed VaR %.2f across %d assets (sum %.2f)",
        portfolio_var, len(contributions),
        sum(c.var_contribution for c in contributions),
    )
    return contributions
