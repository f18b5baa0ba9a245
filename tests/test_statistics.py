import datetime as dt

import numpy as np
import pytest

from var_engine.exceptions import DegenerateAssetError, NumericalError
from var_engine.models import DataFrequency, ReturnsMatrix
from var_engine.statistics import (
    annualize_volatility,
    compute_correlation_matrix,
    compute_covariance,
    validate_covariance_matrix,
)


def _matrix(returns: np.ndarray, names=None) -> ReturnsMatrix:
    returns = np.asarray(returns, dtype=float)
    n_obs, n_assets = returns.shape
    names = names or [f"A{i}" for i in range(n_assets)]
    dates = [dt.date(2024, 1, 1) + dt.timedelta(days=i + 1) for i in range(n_obs)]
    return ReturnsMatrix(
        asset_names=names,
        dates=dates,
        returns=returns,
        price_observations=n_obs + 1,
        start_date=dt.date(2024, 1, 1),
        end_date=dates[-1],
    )


@pytest.fixture
def random_matrix() -> ReturnsMatrix:
    rng = np.random.default_rng(11)
    mixing = rng.normal(size=(5, 5))
    returns = rng.normal(0, 0.01, size=(300, 5)) @ mixing
    return _matrix(returns)


class TestCovarianceEngine:
    def test_symmetry(self, random_matrix):
        cov = compute_covariance(random_matrix, DataFrequency.DAILY).covariance
        n = cov.shape[0]
        for i in range(n):
            for j in range(n):
                assert cov[i, j] == cov[j, i]

    def test_matches_sample_covariance(self, random_matrix):
        estimate = compute_covariance(random_matrix, DataFrequency.DAILY)
        expected = np.cov(random_matrix.returns, rowvar=False, ddof=1)
        np.testing.assert_allclose(estimate.covariance, expected, rtol=1e-12)
        np.testing.assert_allclose(
            estimate.variances, random_matrix.returns.var(axis=0, ddof=1), rtol=1e-12
        )

    def test_correlation_bounds_and_diagonal(self, random_matrix):
        corr = compute_covariance(random_matrix, DataFrequency.DAILY).correlation
        assert np.all(corr <= 1.0)
        assert np.all(corr >= -1.0)
        assert np.all(np.diag(corr) == 1.0)

    def test_positive_semi_definite(self, random_matrix):
        cov = compute_covariance(random_matrix, DataFrequency.DAILY).covariance
        assert validate_covariance_matrix(cov)

    @pytest.mark.parametrize(
        "frequency, periods",
        [(DataFrequency.DAILY, 252), (DataFrequency.WEEKLY, 52), (DataFrequency.MONTHLY, 12)],
    )
    def test_annualized_volatility(self, random_matrix, frequency, periods):
        estimate = compute_covariance(random_matrix, frequency)
        expected = random_matrix.returns.std(axis=0, ddof=1) * np.sqrt(periods)
        np.testing.assert_allclose(estimate.volatilities, expected, rtol=1e-12)
        assert estimate.periods_per_year == periods

    def test_perfect_correlation_clipped(self):
        base = np.random.default_rng(3).normal(0, 0.01, size=50)
        corr = compute_covariance(
            _matrix(np.column_stack([base, 3 * base, -base])), DataFrequency.DAILY
        ).correlation
        assert corr[0, 1] == pytest.approx(1.0, abs=1e-12)
        assert corr[0, 2] == pytest.approx(-1.0, abs=1e-12)
        assert np.all(np.abs(corr) <= 1.0)

    def test_flat_asset_is_degenerate(self):
        returns = np.column_stack([np.linspace(-0.01, 0.01, 20), np.zeros(20)])
        with pytest.raises(DegenerateAssetError) as exc_info:
            compute_covariance(_matrix(returns, ["Moving", "Flat"]), DataFrequency.DAILY)
        assert exc_info.value.asset_names == ["Flat"]
        assert '"Flat"' in str(exc_info.value)

    def test_single_observation_is_numerical_error(self):
        with pytest.raises(NumericalError):
            compute_covariance(_matrix([[0.01, 0.02]]), DataFrequency.DAILY)


class TestHelpers:
    def test_correlation_from_covariance(self):
        cov = np.array([[0.04, 0.012], [0.012, 0.09]])
        corr = compute_correlation_matrix(cov)
        assert corr[0, 1] == pytest.approx(0.012 / (0.2 * 0.3))
        assert corr[1, 0] == corr[0, 1]

    def test_annualize_scalar(self):
        assert annualize_volatility(0.01, DataFrequency.MONTHLY) == pytest.approx(0.01 * np.sqrt(12))

    def test_validate_rejects_asymmetric(self):
        assert not validate_covariance_matrix(np.array([[1.0, 0.5], [0.4, 1.0]]))

    def test_validate_rejects_indefinite(self):
        assert not validate_covariance_matrix(np.array([[1.0, 2.0], [2.0, 1.0]]))

    def test_validate_rejects_nan(self):
        assert not validate_covariance_matrix(np.array([[np.nan, 0.0], [0.0, 1.0]]))
