"""
Error Taxonomy
==============
Every failure raised by the engine derives from ``VarEngineError``, which is
itself a ``ValueError``: all of them describe inputs the calculation cannot
use. Failures are deterministic and local to one calculation call.
"""

from datetime import date
from typing import List, Optional, Sequence


class VarEngineError(ValueError):
    """Base class for all VaR engine failures."""


class InputValidationError(VarEngineError):
    """User-fixable input problems, reported as a list of messages."""

    def __init__(self, errors: Sequence[str]):
        self.errors: List[str] = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid input")


class ScaleConfigError(InputValidationError):
    """Likelihood / impact threshold configuration is unusable."""


class InvalidPriceError(VarEngineError):
    """A price used in a return calculation is zero, negative or infinite."""

    def __init__(self, asset_name: str, on_date: date, price: float):
        self.asset_name = asset_name
        self.on_date = on_date
        self.price = price
        super().__init__(
            f'Invalid price {price} for "{asset_name}" on {on_date}: '
            "prices must be positive and finite"
        )


class InsufficientDataError(VarEngineError):
    """Fewer aligned observations than the frequency minimum."""

    def __init__(
        self,
        observations: int,
        required: int,
        frequency: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limiting_assets: Sequence[str] = (),
    ):
        self.observations = observations
        self.required = required
        self.frequency = frequency
        self.start_date = start_date
        self.end_date = end_date
        self.limiting_assets = list(limiting_assets)

        message = (
            f"Insufficient data: {observations} aligned observations, "
            f"minimum {required} required for {frequency} data"
        )
        if start_date is not None and end_date is not None:
            message += f" (usable window {start_date} to {end_date})"
        if self.limiting_assets:
            quoted = ", ".join(f'"{a}"' for a in self.limiting_assets)
            message += f"; window limited by gaps in {quoted}"
        super().__init__(message)


class DegenerateAssetError(VarEngineError):
    """An asset has zero return variance over the estimation window."""

    def __init__(self, asset_names: Sequence[str]):
        self.asset_names = list(asset_names)
        quoted = ", ".join(f'"{a}"' for a in self.asset_names)
        super().__init__(
            f"Zero return variance (flat price series) for {quoted}; "
            "remove the asset or supply a longer price history"
        )


class MissingAssetDataError(VarEngineError):
    """Holdings that cannot be priced into the computation."""

    def __init__(self, asset_names: Sequence[str]):
        self.asset_names = list(asset_names)
        quoted = ", ".join(f'"{a}"' for a in self.asset_names)
        super().__init__(f"No usable price history for {quoted}")


class NumericalError(VarEngineError):
    """Covariance estimation produced NaN, Inf, or an invalid matrix."""
