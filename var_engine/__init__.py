"""
Parametric Portfolio VaR Engine
===============================
Variance-covariance (delta-normal) risk model implementing:
- Date-aligned simple return construction from uploaded price history
- Sample covariance / correlation estimation with annualization
- Market-value weighting and portfolio variance (w^T Σ w)
- Horizon-scaled parametric VaR and Expected Shortfall
- Euler decomposition into per-asset VaR contributions
- Likelihood / impact scoring against configurable threshold bands
"""

__version__ = "1.0.0"
