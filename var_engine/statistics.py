"""
Statistical Estimation Module
==============================
Computes mean return vector, covariance matrix, correlation matrix
and annualized volatilities using NumPy linear algebra.

Mathematical Foundation:
    Mean:          μ = E[r]
    Covariance:    Σ = Σ_t (r_t - μ)(r_t - μ)^T / (T - 1)
    Correlation:   ρ_ij = Σ_ij / (σ_i σ_j)
    Annualized σ:  σ_ann = σ · sqrt(periods_per_year)
"""

import logging

import numpy as np

from var_engine.config import VARIANCE_FLOOR, periods_per_year
from var_engine.exceptions import DegenerateAssetError, NumericalError
from var_engine.models import CovarianceEstimate, DataFrequency, ReturnsMatrix

logger = logging.getLogger(__name__)


def compute_mean_vector(returns: np.ndarray) -> np.ndarray:
    """
    Compute the per-period mean return vector.

    Parameters
    ----------
    returns : np.ndarray
        Periodic returns (T x N).

    Returns
    -------
    np.ndarray
        Mean return vector (N,).
    """
    return returns.mean(axis=0)


def compute_covariance_matrix(returns: np.ndarray) -> np.ndarray:
    """
    Compute the sample covariance matrix of periodic returns.

    Uses unbiased estimator (ddof=1) and symmetrises the result so that
    Σ_ij == Σ_ji holds exactly.

    Parameters
    ----------
    returns : np.ndarray
        Periodic returns (T x N).

    Returns
    -------
    np.ndarray
        Covariance matrix (N x N).
    """
    if returns.shape[0] < 2:
        raise NumericalError(
            f"Cannot estimate covariance from {returns.shape[0]} return "
            "observation(s); at least 2 are required"
        )
    cov = np.atleast_2d(np.cov(returns, rowvar=False, ddof=1))
    return (cov + cov.T) / 2.0


def compute_correlation_matrix(cov_matrix: np.ndarray) -> np.ndarray:
    """
    Derive the Pearson correlation matrix from a covariance matrix.

    Entries are clipped to [-1, 1] to absorb floating error and the
    diagonal is set to exactly 1.0.

    Parameters
    ----------
    cov_matrix : np.ndarray
        Covariance matrix (N x N) with strictly positive diagonal.

    Returns
    -------
    np.ndarray
        Correlation matrix (N x N).
    """
    std = np.sqrt(np.diag(cov_matrix))
    corr = cov_matrix / np.outer(std, std)
    corr = np.clip(corr, -1.0, 1.0)
    np.fill_diagonal(corr, 1.0)
    return corr


def annualize_volatility(periodic_std, frequency: DataFrequency):
    """Scale periodic standard deviation(s) to annual: σ · sqrt(periods/year)."""
    return periodic_std * np.sqrt(periods_per_year(frequency))


def validate_covariance_matrix(cov_matrix: np.ndarray) -> bool:
    """
    Check if covariance matrix is symmetric and positive semi-definite.

    Parameters
    ----------
    cov_matrix : np.ndarray
        Covariance matrix to validate.

    Returns
    -------
    bool
        True if valid, False otherwise.
    """
    if not np.all(np.isfinite(cov_matrix)):
        return False

    # Symmetry check
    if not np.allclose(cov_matrix, cov_matrix.T, rtol=0.0, atol=1e-15):
        return False

    # Positive semi-definiteness: all eigenvalues >= 0, relative to scale
    eigenvalues = np.linalg.eigvalsh(cov_matrix)
    tolerance = 1e-10 * max(float(np.max(np.abs(eigenvalues))), 1e-300)
    return bool(np.all(eigenvalues >= -tolerance))


def compute_covariance(
    returns: ReturnsMatrix, frequency: DataFrequency
) -> CovarianceEstimate:
    """
    Estimate all second-moment statistics in one call.

    Parameters
    ----------
    returns : ReturnsMatrix
        Aligned periodic returns.
    frequency : DataFrequency
        Return period, used for annualization.

    Returns
    -------
    CovarianceEstimate
        Means, variances, covariance, correlation and annualized
        volatilities in the returns matrix's asset order.

    Raises
    ------
    NumericalError
        If the window is too short or the estimate is NaN/Inf or not PSD.
    DegenerateAssetError
        If any asset has zero return variance over the window.
    """
    data = returns.returns
    mu = compute_mean_vector(data)
    cov = compute_covariance_matrix(data)

    if not np.all(np.isfinite(cov)) or not np.all(np.isfinite(mu)):
        raise NumericalError(
            "Covariance estimation produced NaN or infinite values "
            f"from {returns.n_observations} observations"
        )

    variances = np.diag(cov).copy()
    flat = [
        name for name, var in zip(returns.asset_names, variances)
        if var <= VARIANCE_FLOOR
    ]
    if flat:
        raise DegenerateAssetError(flat)

    if not validate_covariance_matrix(cov):
        raise NumericalError(
            "Covariance matrix is not symmetric positive semi-definite"
        )

    corr = compute_correlation_matrix(cov)
    volatilities = annualize_volatility(np.sqrt(variances), frequency)

    logger.debug(
        "Covariance estimated for %d assets over %d observations",
        len(returns.asset_names), returns.n_observations,
    )

    return CovarianceEstimate(
        asset_names=list(returns.asset_names),
        means=mu,
        variances=variances,
        covariance=cov,
        correlation=corr,
        volatilities=volatilities,
        periods_per_year=periods_per_year(frequency),
    )
