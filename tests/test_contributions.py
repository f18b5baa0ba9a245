import numpy as np
import pytest

from var_engine.contributions import decompose_contributions, marginal_variance
from var_engine.models import PortfolioHolding, VarConfig
from var_engine.portfolio import compute_portfolio_variance, compute_weights
from var_engine.risk_metrics import compute_var


def _weights(values, config):
    holdings = [
        PortfolioHolding(asset_name=f"A{i}", asset_type="Equity",
                         quantity=1, current_price=v)
        for i, v in enumerate(values)
    ]
    return compute_weights(holdings, [h.asset_name for h in holdings], config)


def _portfolio_var(weights, cov, config, periods=252):
    total = sum(w.market_value for w in weights)
    annual = compute_portfolio_variance(weights, cov) * periods
    return compute_var(annual, total, config.confidence_level, config.time_horizon_days)


class TestEulerDecomposition:
    @pytest.mark.parametrize("seed", [1, 2, 3, 4, 5])
    def test_contributions_sum_to_portfolio_var(self, seed):
        rng = np.random.default_rng(seed)
        n = rng.integers(2, 12)
        a = rng.normal(0, 0.01, size=(n, n))
        cov = a @ a.T + np.eye(n) * 1e-6
        config = VarConfig(confidence_level=99, time_horizon_days=10)
        weights = _weights(rng.uniform(1e5, 1e8, size=n), config)

        portfolio_var = _portfolio_var(weights, cov, config)
        contributions = decompose_contributions(weights, cov, portfolio_var, config, 252)

        total = sum(c.var_contribution for c in contributions)
        assert total == pytest.approx(portfolio_var, rel=1e-6)
        assert sum(c.var_contribution_pct for c in contributions) == pytest.approx(100.0)
        for c in contributions:
            assert c.diversification_benefit == pytest.approx(c.standalone_var - c.var_contribution)

    def test_marginal_variance(self):
        cov = np.array([[0.04, 0.01], [0.01, 0.09]])
        np.testing.assert_allclose(
            marginal_variance(np.array([0.5, 0.5]), cov), [0.025, 0.05]
        )

    def test_single_asset_has_no_diversification(self):
        config = VarConfig()
        weights = _weights([250_000_000.0], config)
        cov = np.array([[0.00031]])
        portfolio_var = _portfolio_var(weights, cov, config)
        (c,) = decompose_contributions(weights, cov, portfolio_var, config, 252)

        assert c.standalone_var == portfolio_var
        assert c.var_contribution == portfolio_var
        assert c.var_contribution_pct == pytest.approx(100.0)
        assert c.diversification_benefit == pytest.approx(0.0, abs=1e-6)

    def test_perfect_positive_correlation(self):
        config = VarConfig()
        v = 0.0004
        cov = np.array([[v, v], [v, v]])
        weights = _weights([1e8, 1e8], config)
        portfolio_var = _portfolio_var(weights, cov, config)
        contributions = decompose_contributions(weights, cov, portfolio_var, config, 252)

        for c in contributions:
            assert c.var_contribution == pytest.approx(portfolio_var / 2)
            assert c.diversification_benefit == pytest.approx(0.0, abs=1e-6 * c.standalone_var)

    def test_perfect_negative_correlation_hedges(self):
        config = VarConfig()
        v = 0.0004
        cov = np.array([[v, -v], [-v, v]])
        weights = _weights([1e8, 1e8], config)
        portfolio_var = _portfolio_var(weights, cov, config)
        contributions = decompose_contributions(weights, cov, portfolio_var, config, 252)

        standalone = min(c.standalone_var for c in contributions)
        assert portfolio_var < 1e-6 * standalone
        assert sum(c.var_contribution for c in contributions) == pytest.approx(
            portfolio_var, abs=1e-9
        )
        for c in contributions:
            assert c.diversification_benefit == pytest.approx(c.standalone_var, rel=1e-6)

    def test_unequal_hedge_leaves_residual_risk(self):
        config = VarConfig()
        v = 0.0004
        cov = np.array([[v, -v], [-v, v]])
        weights = _weights([3e8, 1e8], config)
        portfolio_var = _portfolio_var(weights, cov, config)
        standalone = decompose_contributions(weights, cov, portfolio_var, config, 252)

        # net exposure is half the portfolio
        assert portfolio_var == pytest.approx(
            compute_var(v * 252 * 0.25, 4e8, 95, 1)
        )
        assert portfolio_var < max(c.standalone_var for c in standalone)
