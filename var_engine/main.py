"""
Parametric VaR Engine — Command Line Entry Point
=================================================
Runs the complete VaR pipeline over an uploaded workbook.

Execution Flow:
    1. Parse workbook (holdings, price history, configuration)
    2. Validate upload and threshold configuration
    3. Returns, covariance, weights
    4. Parametric VaR, ES and contribution decomposition
    5. Likelihood / impact scoring
    6. Charts and JSON export
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import pandas as pd

from var_engine.engine import perform_var_calculation
from var_engine.exceptions import VarEngineError
from var_engine.parser import parse_var_workbook, write_var_template
from var_engine.scoring import JsonScaleConfigStore, save_scale_config
from var_engine.validation import validate_var_data
from var_engine.visualization import plot_correlation_heatmap, plot_var_contributions

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="var-engine",
        description="Parametric (variance-covariance) portfolio VaR",
    )
    p.add_argument("workbook", nargs="?", help="Upload workbook (.xlsx)")
    p.add_argument(
        "--template",
        metavar="PATH",
        help="Write a sample upload workbook to PATH and exit",
    )
    p.add_argument(
        "--scale-config",
        metavar="PATH",
        help="JSON file holding likelihood / impact thresholds",
    )
    p.add_argument(
        "--volatility-thresholds",
        type=float,
        nargs="+",
        metavar="PCT",
        help="Save new volatility thresholds (percent) to --scale-config",
    )
    p.add_argument(
        "--value-thresholds",
        type=float,
        nargs="+",
        metavar="MILLIONS",
        help="Save new value thresholds (currency millions) to --scale-config",
    )
    p.add_argument(
        "--matrix-size",
        type=int,
        choices=(5, 6),
        default=5,
        help="Risk matrix dimension",
    )
    p.add_argument("--output", metavar="PATH", help="Write results as JSON")
    p.add_argument("--figures", metavar="DIR", help="Write charts to DIR")
    p.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return p


def print_header(text: str) -> None:
    """Print formatted section header."""
    width = 60
    print("\n" + "=" * width)
    print(f"  {text}")
    print("=" * width)


def print_metrics(metrics: dict, indent: int = 4) -> None:
    """Print dictionary of metrics with formatting."""
    prefix = " " * indent
    for key, val in metrics.items():
        if isinstance(val, float):
            print(f"{prefix}{key:.<35} {val:>18,.2f}")
        else:
            print(f"{prefix}{key:.<35} {str(val):>18}")


def _update_thresholds(args: argparse.Namespace, store: JsonScaleConfigStore):
    current = store.load()
    return save_scale_config(
        {
            "volatility_thresholds": args.volatility_thresholds
            or current.volatility_thresholds,
            "value_thresholds": args.value_thresholds or current.value_thresholds,
        },
        store,
    )


def run(args: argparse.Namespace) -> int:
    if args.template:
        path = write_var_template(args.template)
        print(f"  Template written to {path}")
        return 0

    if not args.workbook:
        print("  A workbook path is required (or use --template)", file=sys.stderr)
        return 2

    # ── PHASE 1: Upload ───────────────────────────────────────
    print_header("PHASE 1 — UPLOAD & VALIDATION")

    store = JsonScaleConfigStore(args.scale_config) if args.scale_config else None
    if args.volatility_thresholds or args.value_thresholds:
        if store is None:
            print("  --scale-config is required to save thresholds", file=sys.stderr)
            return 2
        scale_config = _update_thresholds(args, store)
        print(f"  Thresholds saved to {store.path}")
    else:
        scale_config = store.load() if store else None

    upload = parse_var_workbook(args.workbook)
    validation = validate_var_data(
        upload.holdings, upload.price_history, upload.config, scale_config
    )
    if not validation.valid:
        print("\n  Validation failed:")
        for error in validation.errors:
            print(f"    ✗ {error}")
        return 1

    config = upload.config
    print(f"\n  Holdings:      {len(upload.holdings)}")
    print(f"  Price rows:    {len(upload.price_history)}")
    print(f"  Frequency:     {config.data_frequency.value}")
    print(f"  Confidence:    {config.confidence_level:g}%")
    print(f"  Horizon:       {config.time_horizon_days} day(s)")

    # ── PHASE 2: Calculation ──────────────────────────────────
    print_header("PHASE 2 — PARAMETRIC VaR")

    results = perform_var_calculation(upload, scale_config, args.matrix_size)

    print(f"  Period:        {results.start_date} → {results.end_date}")
    print_metrics({
        f"portfolio_value ({results.currency})": results.total_portfolio_value,
        f"portfolio_var ({results.currency})": results.portfolio_var,
        f"portfolio_es ({results.currency})": results.portfolio_es,
        "undiversified_var": results.undiversified_var,
        "diversification_benefit": results.diversification_benefit,
        "annualized_volatility_pct": results.portfolio_volatility * 100,
        "data_points": results.data_points_count,
        "likelihood_score": results.likelihood_score,
        "impact_score": results.impact_score,
    })

    # ── PHASE 3: Decomposition ────────────────────────────────
    print_header("PHASE 3 — VaR CONTRIBUTIONS")

    table = pd.DataFrame(
        [c.model_dump() for c in results.asset_contributions]
    ).set_index("asset_name")
    print("\n" + table.to_string(float_format=lambda x: f"{x:,.2f}"))

    print("\n  Correlation Matrix:")
    corr = pd.DataFrame(
        results.correlation_matrix.matrix,
        index=results.correlation_matrix.asset_names,
        columns=results.correlation_matrix.asset_names,
    )
    print(corr.to_string(float_format=lambda x: f"{x:.4f}"))

    # ── PHASE 4: Export ───────────────────────────────────────
    if args.figures:
        print_header("PHASE 4 — CHARTS & EXPORT")
        print(f"  ✓ {plot_correlation_heatmap(results.correlation_matrix, args.figures)}")
        print(f"  ✓ {plot_var_contributions(results.asset_contributions, results.currency, args.figures)}")

    if args.output:
        output = Path(args.output)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(results.model_dump_json(indent=2))
        print(f"\n  Results saved to: {output}")

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    try:
        return run(args)
    except VarEngineError as exc:
        logger.debug("Calculation aborted", exc_info=True)
        print(f"\n  ✗ {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
