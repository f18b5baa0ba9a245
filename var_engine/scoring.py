"""
Risk Matrix Scoring Module
==========================
Maps annualized portfolio volatility and total portfolio value onto
discrete likelihood / impact scores of a qualitative risk matrix, and
manages the threshold configuration that defines the bands.

Banding (thresholds t1 < t2 < t3 < t4 [< t5]):
    value < t1        → 1
    t1 <= value < t2  → 2
    t2 <= value < t3  → 3
    t3 <= value < t4  → 4
    value >= t4       → 5            (5x5 matrix)
    t4 <= value < t5  → 5, >= t5 → 6 (6x6 matrix, needs t5)
"""

import json
import logging
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from var_engine.config import SUPPORTED_MATRIX_SIZES
from var_engine.exceptions import ScaleConfigError
from var_engine.models import VarScaleConfig, describe_validation_error

logger = logging.getLogger(__name__)


def map_to_score(value: float, thresholds: Sequence[float], matrix_size: int = 5) -> int:
    """
    Place a value into one of ``matrix_size`` ascending threshold bands.

    Parameters
    ----------
    value : float
        Quantity to score, in the thresholds' units.
    thresholds : sequence of float
        Ascending band edges: 4 for a 5x5 matrix, 5 for a 6x6 matrix.
    matrix_size : int
        5 or 6.

    Returns
    -------
    int
        Score in [1, matrix_size].

    Raises
    ------
    ScaleConfigError
        If the matrix size is unsupported or too few thresholds are given.
    """
    if matrix_size not in SUPPORTED_MATRIX_SIZES:
        raise ScaleConfigError(
            [f"Unsupported risk matrix size {matrix_size}; expected 5 or 6"]
        )

    edges = list(thresholds)[: matrix_size - 1]
    if len(edges) < matrix_size - 1:
        raise ScaleConfigError(
            [
                f"A {matrix_size}x{matrix_size} risk matrix needs "
                f"{matrix_size - 1} thresholds, got {len(edges)}"
            ]
        )

    for score, edge in enumerate(edges, start=1):
        if value < edge:
            return score
    return matrix_size


def map_volatility_to_likelihood(
    volatility: float, scale_config: VarScaleConfig, matrix_size: int = 5
) -> int:
    """Likelihood score from annualized volatility given as a fraction."""
    return map_to_score(volatility * 100.0, scale_config.volatility_thresholds, matrix_size)


def map_value_to_impact(
    portfolio_value: float, scale_config: VarScaleConfig, matrix_size: int = 5
) -> int:
    """Impact score from portfolio value in currency (thresholds in millions)."""
    return map_to_score(portfolio_value / 1_000_000, scale_config.value_thresholds, matrix_size)


# ─────────────────────────────────────────────────────────────
# Threshold configuration persistence
# ─────────────────────────────────────────────────────────────

def build_scale_config(data: Union[VarScaleConfig, Mapping[str, Any]]) -> VarScaleConfig:
    """Validate raw threshold data into a VarScaleConfig."""
    if isinstance(data, VarScaleConfig):
        return data
    try:
        return VarScaleConfig.model_validate(dict(data))
    except ValidationError as exc:
        raise ScaleConfigError(describe_validation_error(exc)) from exc


def save_scale_config(data: Union[VarScaleConfig, Mapping[str, Any]], store) -> VarScaleConfig:
    """
    Validate thresholds and hand them to a persistence store.

    The store is only called once validation has passed.

    Parameters
    ----------
    data : VarScaleConfig or mapping
        Threshold configuration to persist.
    store : object
        Anything with a ``save(VarScaleConfig)`` method.

    Returns
    -------
    VarScaleConfig
        The validated configuration that was saved.

    Raises
    ------
    ScaleConfigError
        If thresholds are malformed or not in ascending order.
    """
    config = build_scale_config(data)
    store.save(config)
    logger.info(
        "Saved scale configuration: volatility %s, value %s",
        config.volatility_thresholds, config.value_thresholds,
    )
    return config


class JsonScaleConfigStore:
    """File-backed threshold store; falls back to defaults when absent."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> VarScaleConfig:
        if not self.path.exists():
            logger.debug("No scale configuration at %s; using defaults", self.path)
            return VarScaleConfig()
        with open(self.path) as f:
            payload = json.load(f)
        return build_scale_config(payload)

    def save(self, config: VarScaleConfig) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(config.model_dump(), f, indent=2)


def load_scale_config(path: Optional[Union[str, Path]] = None) -> VarScaleConfig:
    """Load thresholds from ``path`` or return the default bands."""
    if path is None:
        return VarScaleConfig()
    return JsonScaleConfigStore(path).load()
