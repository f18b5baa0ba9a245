"""
Engine Constants
================
Fixed conventions shared by every component. Runtime settings live on the
``VarConfig`` and ``VarScaleConfig`` models and are passed into each
calculation explicitly.
"""

import math
from typing import TYPE_CHECKING, Dict, List

if TYPE_CHECKING:
    from var_engine.models import VarConfig


# ─────────────────────────────────────────────────────────────
# Calendar conventions
# ─────────────────────────────────────────────────────────────
TRADING_DAYS_PER_YEAR: int = 252

PERIODS_PER_YEAR: Dict[str, int] = {
    "Daily": 252,
    "Weekly": 52,
    "Monthly": 12,
}

# ─────────────────────────────────────────────────────────────
# Parametric VaR
# ─────────────────────────────────────────────────────────────
# One-tailed standard normal quantiles
Z_SCORES: Dict[float, float] = {
    90.0: 1.2816,
    95.0: 1.6449,
    99.0: 2.3263,
    99.9: 3.0902,
}

DEFAULT_CURRENCY: str = "NGN"
DEFAULT_MIN_DATA_POINTS_DAILY: int = 252
DEFAULT_MIN_DATA_POINTS_MONTHLY: int = 60

# Variance at or below this is treated as a flat price series (σ ≈ 1e-8)
VARIANCE_FLOOR: float = 1e-16

# ─────────────────────────────────────────────────────────────
# Risk matrix scoring
# ─────────────────────────────────────────────────────────────
DEFAULT_VOLATILITY_THRESHOLDS: List[float] = [5.0, 10.0, 15.0, 20.0]   # percent
DEFAULT_VALUE_THRESHOLDS: List[float] = [10.0, 50.0, 100.0, 500.0]     # millions
SUPPORTED_MATRIX_SIZES = (5, 6)

# ─────────────────────────────────────────────────────────────
# Upload workbook
# ─────────────────────────────────────────────────────────────
HOLDINGS_SHEET: str = "Portfolio_Holdings"
PRICE_HISTORY_SHEET: str = "Price_History"
CONFIGURATION_SHEET: str = "Configuration"
REQUIRED_SHEETS = (HOLDINGS_SHEET, PRICE_HISTORY_SHEET, CONFIGURATION_SHEET)


def periods_per_year(frequency: str) -> int:
    """Number of return periods in a year for a data frequency."""
    key = getattr(frequency, "value", frequency)
    try:
        return PERIODS_PER_YEAR[key]
    except KeyError:
        raise ValueError(
            f"Unknown data frequency {frequency!r}; "
            f"expected one of {sorted(PERIODS_PER_YEAR)}"
        ) from None


def minimum_observations(config: "VarConfig") -> int:
    """
    Minimum number of aligned price observations for the configured frequency.

    Daily data uses ``min_data_points_daily`` and Monthly data
    ``min_data_points_monthly``. Weekly data uses ``min_data_points_weekly``
    when set, otherwise the monthly minimum rescaled to the same calendar
    span (``ceil(monthly × 52 / 12)``).
    """
    frequency = getattr(config.data_frequency, "value", config.data_frequency)

    if frequency == "Daily":
        return config.min_data_points_daily
    if frequency == "Monthly":
        return config.min_data_points_monthly
    if config.min_data_points_weekly is not None:
        return config.min_data_points_weekly
    return math.ceil(
        config.min_data_points_monthly
        * PERIODS_PER_YEAR["Weekly"]
        / PERIODS_PER_YEAR["Monthly"]
    )
