"""
Data Model
==========
Structured types exchanged between the parser, the calculation pipeline and
the display layer. Shapes are validated when a model is constructed, so
malformed holdings or configuration are rejected before any numeric code
runs.
"""

import datetime as dt
import math
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

import numpy as np
import pandas as pd
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

from var_engine.config import (
    DEFAULT_CURRENCY,
    DEFAULT_MIN_DATA_POINTS_DAILY,
    DEFAULT_MIN_DATA_POINTS_MONTHLY,
    DEFAULT_VALUE_THRESHOLDS,
    DEFAULT_VOLATILITY_THRESHOLDS,
    Z_SCORES,
)


class AssetType(str, Enum):
    BOND = "Bond"
    EQUITY = "Equity"
    FX = "FX"
    OTHER = "Other"


class DataFrequency(str, Enum):
    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"


def _match_enum(enum_cls, value: Any) -> Any:
    """Case-insensitive lookup of an enum member by value."""
    if isinstance(value, str):
        cleaned = value.strip().lower()
        for member in enum_cls:
            if member.value.lower() == cleaned:
                return member
    return value


def describe_validation_error(exc: ValidationError) -> List[str]:
    """Flatten a pydantic ValidationError into human-readable messages."""
    messages = []
    for err in exc.errors():
        cause = err.get("ctx", {}).get("error")
        if cause is not None:
            messages.append(str(cause))
            continue
        location = ".".join(str(part) for part in err["loc"])
        messages.append(f"{location}: {err['msg']}" if location else err["msg"])
    return messages


# ─────────────────────────────────────────────────────────────
# Uploaded inputs
# ─────────────────────────────────────────────────────────────

class PortfolioHolding(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    asset_name: str = Field(min_length=1)
    asset_type: AssetType
    quantity: float = Field(ge=0)
    current_price: float = Field(ge=0)
    notes: Optional[str] = None

    @field_validator("asset_type", mode="before")
    @classmethod
    def _normalize_asset_type(cls, value: Any) -> Any:
        return _match_enum(AssetType, value)


class PriceHistoryRow(BaseModel):
    date: dt.date
    prices: Dict[str, Optional[float]]

    @field_validator("date", mode="before")
    @classmethod
    def _coerce_date(cls, value: Any) -> Any:
        if isinstance(value, dt.datetime):
            return value.date()
        if isinstance(value, pd.Timestamp):
            return value.date()
        return value

    @field_validator("prices", mode="before")
    @classmethod
    def _gaps_to_none(cls, value: Any) -> Any:
        # NaN and blanks are gaps, never zero
        if not isinstance(value, dict):
            return value
        cleaned = {}
        for name, price in value.items():
            key = str(name).strip()
            if price is None or (isinstance(price, str) and not price.strip()):
                cleaned[key] = None
            elif isinstance(price, float) and math.isnan(price):
                cleaned[key] = None
            else:
                cleaned[key] = price
        return cleaned


class VarConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    data_frequency: DataFrequency = DataFrequency.DAILY
    confidence_level: float = 95.0
    time_horizon_days: int = Field(default=1, ge=1)
    currency: Literal["NGN"] = DEFAULT_CURRENCY
    min_data_points_daily: int = Field(default=DEFAULT_MIN_DATA_POINTS_DAILY, ge=2)
    min_data_points_monthly: int = Field(default=DEFAULT_MIN_DATA_POINTS_MONTHLY, ge=2)
    min_data_points_weekly: Optional[int] = Field(default=None, ge=2)
    bond_price_quote: Literal["unit", "percent_of_par"] = "unit"

    @field_validator("data_frequency", mode="before")
    @classmethod
    def _normalize_frequency(cls, value: Any) -> Any:
        return _match_enum(DataFrequency, value)

    @field_validator("confidence_level", mode="before")
    @classmethod
    def _parse_percent(cls, value: Any) -> Any:
        # Workbooks carry "95%"; fractions like 0.95 are also accepted
        if isinstance(value, str):
            value = value.strip().rstrip("%").strip()
        try:
            number = float(value)
        except (TypeError, ValueError):
            return value
        if 0 < number < 1:
            number = round(number * 100, 6)
        return number

    @field_validator("confidence_level")
    @classmethod
    def _supported_confidence(cls, value: float) -> float:
        if value not in Z_SCORES:
            supported = ", ".join(f"{level:g}%" for level in Z_SCORES)
            raise ValueError(
                f"Unsupported confidence level {value:g}%; expected one of {supported}"
            )
        return value


class VarScaleConfig(BaseModel):
    """
    Threshold bands for mapping VaR outputs onto a qualitative risk matrix.

    Four thresholds define five bands. A fifth threshold is needed to split
    the top band for a 6×6 matrix.
    """

    model_config = ConfigDict(frozen=True)

    volatility_thresholds: List[float] = Field(
        default_factory=lambda: list(DEFAULT_VOLATILITY_THRESHOLDS)
    )
    value_thresholds: List[float] = Field(
        default_factory=lambda: list(DEFAULT_VALUE_THRESHOLDS)
    )

    @field_validator("volatility_thresholds", "value_thresholds")
    @classmethod
    def _ascending(cls, value: List[float], info: ValidationInfo) -> List[float]:
        label = info.field_name.split("_")[0].capitalize()
        if len(value) not in (4, 5):
            raise ValueError(
                f"{label} thresholds must contain 4 values (5 for a 6x6 matrix), "
                f"got {len(value)}"
            )
        if not all(math.isfinite(t) for t in value):
            raise ValueError(f"{label} thresholds must be finite numbers")
        if any(a >= b for a, b in zip(value, value[1:])):
            raise ValueError(f"{label} thresholds must be in ascending order")
        return value

    def supports_matrix_size(self, matrix_size: int) -> bool:
        required = matrix_size - 1
        return (
            len(self.volatility_thresholds) >= required
            and len(self.value_thresholds) >= required
        )


class VarUploadData(BaseModel):
    holdings: List[PortfolioHolding]
    price_history: List[PriceHistoryRow]
    config: VarConfig = Field(default_factory=VarConfig)


class ValidationResult(BaseModel):
    valid: bool
    errors: List[str] = []


# ─────────────────────────────────────────────────────────────
# Intermediate numeric structures
# ─────────────────────────────────────────────────────────────

class ReturnsMatrix(BaseModel):
    """Simple returns aligned on a common date index, one column per asset."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    asset_names: List[str]
    dates: List[dt.date]
    returns: np.ndarray
    price_observations: int
    start_date: dt.date
    end_date: dt.date

    @model_validator(mode="after")
    def _complete_cells(self) -> "ReturnsMatrix":
        expected = (len(self.dates), len(self.asset_names))
        if self.returns.shape != expected:
            raise ValueError(
                f"Returns shape {self.returns.shape} does not match "
                f"{expected[0]} dates x {expected[1]} assets"
            )
        if not np.all(np.isfinite(self.returns)):
            raise ValueError("Returns matrix contains missing or non-finite cells")
        return self

    @property
    def n_observations(self) -> int:
        return self.returns.shape[0]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            self.returns,
            index=pd.DatetimeIndex(self.dates, name="date"),
            columns=self.asset_names,
        )


class CovarianceEstimate(BaseModel):
    """Per-period moments of the returns matrix in canonical asset order."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    asset_names: List[str]
    means: np.ndarray
    variances: np.ndarray
    covariance: np.ndarray
    correlation: np.ndarray
    volatilities: np.ndarray        # annualized
    periods_per_year: int


# ─────────────────────────────────────────────────────────────
# Results
# ─────────────────────────────────────────────────────────────

class CorrelationMatrix(BaseModel):
    asset_names: List[str]
    matrix: List[List[float]]


class PortfolioWeight(BaseModel):
    asset_name: str
    market_value: float
    weight: float


class AssetContribution(BaseModel):
    asset_name: str
    market_value: float
    weight: float
    standalone_var: float
    var_contribution: float
    var_contribution_pct: float
    diversification_benefit: float


class VarResults(BaseModel):
    # Summary metrics
    portfolio_var: float
    portfolio_es: float
    portfolio_volatility: float     # annualized, fraction (0.12 = 12%)
    total_portfolio_value: float
    data_points_count: int
    undiversified_var: float
    diversification_benefit: float

    # Risk matrix scores
    likelihood_score: int
    impact_score: int

    # Breakdown
    asset_contributions: List[AssetContribution]
    correlation_matrix: CorrelationMatrix
    covariance_matrix: List[List[float]]    # per period, canonical order

    # Metadata
    confidence_level: float
    time_horizon_days: int
    data_frequency: DataFrequency
    currency: str
    start_date: dt.date
    end_date: dt.date
    calculation_date: dt.datetime
