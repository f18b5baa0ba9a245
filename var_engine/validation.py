"""
Upload Validation
=================
Pre-flight checks run before any calculation. Every problem is collected
as a human-readable message so the whole list can be shown to the user
at once; nothing here raises for bad input.
"""

import logging
import math
from collections import Counter
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ValidationError

from var_engine.config import minimum_observations
from var_engine.exceptions import InputValidationError, ScaleConfigError
from var_engine.models import (
    PortfolioHolding,
    PriceHistoryRow,
    ValidationResult,
    VarConfig,
    VarScaleConfig,
    describe_validation_error,
)
from var_engine.portfolio import align_price_history, build_price_frame
from var_engine.scoring import build_scale_config

logger = logging.getLogger(__name__)


def _coerce(model_cls, item: Any, label: str, errors: List[str]) -> Optional[BaseModel]:
    if isinstance(item, model_cls):
        return item
    try:
        return model_cls.model_validate(item)
    except ValidationError as exc:
        errors.extend(f"{label}: {msg}" for msg in describe_validation_error(exc))
        return None


def _holding_label(index: int, item: Any) -> str:
    name = item.get("asset_name") if isinstance(item, Mapping) else None
    return f'Holding "{name}"' if name else f"Holding {index + 1}"


def _check_holdings(
    holdings: Sequence[Any], errors: List[str]
) -> List[PortfolioHolding]:
    if not holdings:
        errors.append("No portfolio holdings provided")
        return []

    parsed = []
    for i, item in enumerate(holdings):
        holding = _coerce(PortfolioHolding, item, _holding_label(i, item), errors)
        if holding is None:
            continue
        if holding.quantity <= 0:
            errors.append(
                f'Invalid quantity for "{holding.asset_name}": must be positive'
            )
        if holding.current_price <= 0:
            errors.append(
                f'Invalid price for "{holding.asset_name}": must be positive'
            )
        parsed.append(holding)

    counts = Counter(h.asset_name for h in parsed)
    for name, count in counts.items():
        if count > 1:
            errors.append(f'Duplicate holding "{name}" appears {count} times')

    return parsed


def _check_price_history(
    price_history: Sequence[Any], errors: List[str]
) -> List[PriceHistoryRow]:
    if not price_history:
        errors.append("No price history provided")
        return []

    rows = []
    for i, item in enumerate(price_history):
        row = _coerce(PriceHistoryRow, item, f"Price history row {i + 1}", errors)
        if row is not None:
            rows.append(row)

    counts = Counter(r.date for r in rows)
    for on_date, count in sorted(counts.items()):
        if count > 1:
            errors.append(f"Duplicate price history date {on_date} ({count} rows)")

    return rows


def _check_asset_prices(
    asset_names: Sequence[str], rows: Sequence[PriceHistoryRow], errors: List[str]
) -> List[str]:
    """Report unpriced assets and invalid prices; return the usable names."""
    usable = []
    for name in asset_names:
        observed: List[Tuple[Any, float]] = [
            (r.date, r.prices[name]) for r in rows if r.prices.get(name) is not None
        ]
        if not observed:
            errors.append(f'Asset "{name}" not found in Price History')
            continue

        bad = [(d, p) for d, p in sorted(observed) if p <= 0 or math.isinf(p)]
        if bad:
            on_date, price = bad[0]
            errors.append(
                f'Invalid price {price:g} for "{name}" on {on_date}: '
                f"prices must be positive and finite ({len(bad)} row(s) affected)"
            )
            continue
        usable.append(name)
    return usable


def _check_observations(
    asset_names: Sequence[str],
    rows: Sequence[PriceHistoryRow],
    config: VarConfig,
    errors: List[str],
) -> None:
    try:
        prices = build_price_frame(rows, asset_names)
    except InputValidationError:
        return  # duplicate dates, already reported

    aligned, limiting = align_price_history(prices)
    required = minimum_observations(config)
    if len(aligned) < required:
        message = (
            f"Insufficient data: {len(aligned)} aligned observations, "
            f"minimum {required} required for {config.data_frequency.value} data"
        )
        if limiting and len(aligned) < len(prices):
            message += " (gaps in " + ", ".join(f'"{a}"' for a in limiting) + ")"
        errors.append(message)


def validate_var_data(
    holdings: Sequence[Union[PortfolioHolding, Mapping[str, Any]]],
    price_history: Sequence[Union[PriceHistoryRow, Mapping[str, Any]]],
    config: Union[VarConfig, Mapping[str, Any], None] = None,
    scale_config: Union[VarScaleConfig, Mapping[str, Any], None] = None,
) -> ValidationResult:
    """
    Check uploaded data before calculation.

    Catches empty or malformed holdings, duplicate assets, holdings with
    no price history, non-positive quantities and prices, duplicate
    dates, aligned history below the frequency minimum and non-ascending
    scale thresholds.

    Parameters
    ----------
    holdings : sequence of PortfolioHolding or mapping
        Portfolio positions.
    price_history : sequence of PriceHistoryRow or mapping
        Observation rows.
    config : VarConfig or mapping, optional
        Calculation settings; defaults are used when omitted.
    scale_config : VarScaleConfig or mapping, optional
        Threshold bands to check alongside the upload.

    Returns
    -------
    ValidationResult
        ``valid`` is True only when ``errors`` is empty.
    """
    errors: List[str] = []

    if config is None:
        config = VarConfig()
    config = _coerce(VarConfig, config, "Configuration", errors)

    parsed_holdings = _check_holdings(holdings, errors)
    rows = _check_price_history(price_history, errors)

    if parsed_holdings and rows:
        names = list(dict.fromkeys(h.asset_name for h in parsed_holdings))
        usable = _check_asset_prices(names, rows, errors)
        if config is not None and usable and len(usable) == len(names):
            _check_observations(usable, rows, config, errors)

    if scale_config is not None:
        try:
            build_scale_config(scale_config)
        except ScaleConfigError as exc:
            errors.extend(exc.errors)

    if errors:
        logger.info("Upload validation failed with %d error(s)", len(errors))
    return ValidationResult(valid=not errors, errors=errors)
