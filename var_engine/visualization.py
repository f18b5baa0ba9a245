"""
Visualization Module
====================
Produces static charts for VaR reporting.

Generated Figures:
    1. Correlation Heatmap
    2. Standalone VaR vs VaR Contribution per Asset
"""

from pathlib import Path
from typing import Sequence, Union

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import matplotlib.ticker as mtick
import numpy as np
import seaborn as sns

from var_engine.models import AssetContribution, CorrelationMatrix


# ─────────────────────────────────────────────────────────────
# Style Configuration
# ─────────────────────────────────────────────────────────────
STYLE = {
    "figure.figsize": (12, 7),
    "figure.dpi": 150,
    "font.size": 11,
    "font.family": "serif",
    "axes.grid": True,
    "grid.alpha": 0.3,
    "axes.spines.top": False,
    "axes.spines.right": False,
}

COLORS = {
    "standalone": "#1f77b4",
    "contribution": "#d62728",
    "benefit": "#2ecc71",
}


def save_figure(fig: plt.Figure, name: str, output_dir: Union[str, Path] = "results/figures") -> str:
    """Save figure to disk and return the path."""
    path = Path(output_dir)
    path.mkdir(parents=True, exist_ok=True)
    filepath = path / f"{name}.png"
    fig.savefig(filepath, bbox_inches="tight", facecolor="white")
    plt.close(fig)
    return str(filepath)


def plot_correlation_heatmap(
    correlation: CorrelationMatrix,
    output_dir: Union[str, Path] = "results/figures",
) -> str:
    """
    Plot correlation matrix as an annotated heatmap.

    Parameters
    ----------
    correlation : CorrelationMatrix
        Asset names and N x N correlation values.
    output_dir : str or Path
        Output directory.

    Returns
    -------
    str
        Path to saved figure.
    """
    corr_matrix = np.asarray(correlation.matrix, dtype=float)
    labels = correlation.asset_names
    size = max(6, 1.2 * len(labels) + 3)

    with plt.rc_context(STYLE):
        fig, ax = plt.subplots(figsize=(size, size * 0.8))

        mask = np.triu(np.ones_like(corr_matrix, dtype=bool), k=1)

        sns.heatmap(
            corr_matrix,
            mask=mask,
            annot=True,
            fmt=".3f",
            cmap="RdYlBu_r",
            center=0,
            vmin=-1,
            vmax=1,
            square=True,
            linewidths=0.5,
            xticklabels=labels,
            yticklabels=labels,
            ax=ax,
            cbar_kws={"shrink": 0.8, "label": "Correlation"},
        )

        ax.set_title("Asset Correlation Matrix", fontsize=14, fontweight="bold")

        return save_figure(fig, "correlation_heatmap", output_dir)


def plot_var_contributions(
    contributions: Sequence[AssetContribution],
    currency: str = "NGN",
    output_dir: Union[str, Path] = "results/figures",
) -> str:
    """
    Plot standalone VaR next to each asset's contribution to portfolio VaR.

    The gap between the two bars is the asset's diversification benefit.

    Parameters
    ----------
    contributions : sequence of AssetContribution
        Per-asset decomposition.
    currency : str
        Currency label for the value axis.
    output_dir : str or Path
        Output directory.

    Returns
    -------
    str
        Path to saved figure.
    """
    ordered = sorted(contributions, key=lambda c: c.var_contribution, reverse=True)
    labels = [c.asset_name for c in ordered]
    x = np.arange(len(ordered))
    width = 0.38

    with plt.rc_context(STYLE):
        fig, ax = plt.subplots()

        ax.bar(x - width / 2, [c.standalone_var for c in ordered], width,
               color=COLORS["standalone"], alpha=0.85, label="Standalone VaR")
        ax.bar(x + width / 2, [c.var_contribution for c in ordered], width,
               color=COLORS["contribution"], alpha=0.85, label="VaR Contribution")

        for xi, c in zip(x, ordered):
            ax.annotate(f"{c.var_contribution_pct:.1f}%",
                        xy=(xi + width / 2, max(c.var_contribution, 0)),
                        ha="center", va="bottom", fontsize=9)

        ax.set_xticks(x)
        ax.set_xticklabels(labels, rotation=30, ha="right")
        ax.yaxis.set_major_formatter(mtick.StrMethodFormatter("{x:,.0f}"))
        ax.set_ylabel(f"VaR ({currency})")
        ax.set_title("Standalone VaR vs Contribution to Portfolio VaR",
                     fontsize=14, fontweight="bold")
        ax.legend(loc="upper right", framealpha=0.9)

        return save_figure(fig, "var_contributions", output_dir)
