#!/usr/bin/env python3
"""
Forecast visualization.

Plots observed slot availability next to the p50 forecast for a handful of
areas, reading the actuals CSV and a materialized export artifact.
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, Optional

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd

logger = logging.getLogger(__name__)


def load_series(
    actuals_path: Path,
    predictions_path: Path,
    areas: Optional[Iterable[str]] = None,
) -> Dict[str, pd.DataFrame]:
    """Load actual and predicted values per area.

    Actuals rows are ``country,area,date,value`` without a header. Predictions
    come from an export artifact (``metric_name,date,p10,p50,p90``); only the
    date part of the timestamp and the p50 quantile are kept.

    Returns:
        Mapping of area to a frame with ``date``, ``value`` and ``source``
        columns, sorted by date
    """
    raw = pd.read_csv(actuals_path, header=None, dtype=str, keep_default_na=False)
    actuals = pd.DataFrame({
        "area": raw[1],
        "date": raw[2],
        "value": raw[3],
        "source": "actual",
    })

    predictions = pd.read_csv(predictions_path, dtype={"metric_name": str, "date": str})
    predictions = pd.DataFrame({
        "area": predictions["metric_name"],
        "date": predictions["date"].str.slice(0, 10),
        "value": predictions["p50"],
        "source": "p50",
    })

    combined = pd.concat([actuals, predictions], ignore_index=True)
    combined["value"] = pd.to_numeric(combined["value"], errors="coerce")
    combined["date"] = pd.to_datetime(combined["date"], errors="coerce")
    combined = combined.dropna(subset=["date"])

    if areas is not None:
        wanted = {str(a) for a in areas}
        combined = combined[combined["area"].isin(wanted)]

    return {
        area: frame.sort_values("date").reset_index(drop=True)
        for area, frame in combined.groupby("area")
    }


def plot_forecast(
    actuals_path: Path,
    predictions_path: Path,
    areas: Optional[Iterable[str]] = None,
    output_path: Optional[Path] = None,
    figsize=(10, 6),
) -> Path:
    """Plot actuals and p50 forecast per area and save the figure as PNG."""
    series = load_series(actuals_path, predictions_path, areas)
    if not series:
        raise ValueError(f"No data for areas {list(areas) if areas else 'any'}")

    fig, ax = plt.subplots(figsize=figsize)
    for area, frame in series.items():
        for source, part in frame.groupby("source"):
            style = "-" if source == "actual" else "--"
            ax.plot(part["date"], part["value"], style, label=f"{area} ({source})")

    ax.set_xlabel("Date")
    ax.set_ylabel("Slots")
    ax.set_title("Slot availability: actuals and p50 forecast")
    ax.legend(loc="best", fontsize="small")
    ax.grid(True, alpha=0.3)
    fig.autofmt_xdate()

    output_path = Path(output_path or Path(predictions_path).with_suffix(".png"))
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path, dpi=150, bbox_inches="tight")
    plt.close(fig)

    logger.info(f"Saved forecast plot to {output_path}")
    return output_path
