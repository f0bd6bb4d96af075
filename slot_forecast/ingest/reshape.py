"""
Reshape raw delivery-slot availability exports into one target time series
file per metric, and stage them in object storage.

Raw rows look like ``country,area,day,v1..v14`` (daily, comma separated) or
``country|area|day|hour|v1..v14`` (hourly, pipe separated). Each output row is
``timestamp,area,value`` where a value of ``0`` is written as an empty field.
"""

import io
import logging
from pathlib import Path
from typing import Dict, Optional, Union

import pandas as pd

from ..contracts.capabilities import ObjectStore
from ..contracts.errors import ReshapeError
from ..contracts.variants import SLOT_METRICS, VariantSpec

logger = logging.getLogger(__name__)

Source = Union[str, Path, io.StringIO]


def _read_raw(source: Source, variant: VariantSpec) -> pd.DataFrame:
    try:
        frame = pd.read_csv(
            source,
            sep=variant.delimiter,
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except pd.errors.EmptyDataError:
        return pd.DataFrame(columns=range(variant.expected_columns), dtype=str)
    except pd.errors.ParserError as e:
        raise ReshapeError(f"Malformed {variant.name} availability input: {e}")

    if frame.shape[1] != variant.expected_columns:
        raise ReshapeError(
            f"{variant.name} input has {frame.shape[1]} columns, expected "
            f"{variant.expected_columns} ({variant.leading_fields} leading + {len(SLOT_METRICS)} metrics)"
        )

    short_rows = frame.index[frame.isna().any(axis=1)].tolist()
    if short_rows:
        raise ReshapeError(
            f"{variant.name} input rows {[r + 1 for r in short_rows[:10]]} are missing fields"
        )

    return frame


def _timestamps(frame: pd.DataFrame, variant: VariantSpec) -> pd.Series:
    day = frame[2].str.strip()
    if not variant.has_hour_field:
        return day
    hour = frame[3].str.strip().str.zfill(2).str[-2:]
    return day + " " + hour + ":00:00"


def reshape_availability(source: Source, variant: VariantSpec) -> Dict[str, str]:
    """Split a raw availability export into one CSV blob per metric.

    Every metric in ``SLOT_METRICS`` gets a blob, possibly empty. Output is
    deterministic: identical input yields byte-identical blobs.

    Args:
        source: Path or text buffer of the raw export
        variant: Layout of the raw export

    Returns:
        Mapping of metric name to CSV text

    Raises:
        ReshapeError: A row does not have the expected number of fields
    """
    frame = _read_raw(source, variant)
    partitions: Dict[str, str] = {metric: "" for metric in SLOT_METRICS}
    if frame.empty:
        logger.warning(f"No rows in {variant.name} availability input")
        return partitions

    timestamps = _timestamps(frame, variant)
    areas = frame[1]

    for offset, metric in enumerate(SLOT_METRICS):
        values = frame[variant.leading_fields + offset].str.strip()
        # Zero readings are submitted as missing values
        values = values.mask(values == "0", "")
        series = pd.DataFrame({"timestamp": timestamps, "area": areas, "value": values})
        partitions[metric] = series.to_csv(header=False, index=False, lineterminator="\n")

    logger.info(f"Reshaped {len(frame)} {variant.name} rows into {len(partitions)} metric partitions")
    return partitions


def partition_key(input_prefix: str, variant: VariantSpec, metric: str, run_id: Optional[str] = None) -> str:
    """Object key of one metric partition."""
    parts = [input_prefix.strip("/")]
    if run_id:
        parts.append(run_id)
    parts.extend([variant.storage_folder, f"{metric}.csv"])
    return "/".join(parts)


def upload_partitions(
    store: ObjectStore,
    partitions: Dict[str, str],
    input_prefix: str,
    variant: VariantSpec,
    run_id: Optional[str] = None,
) -> Dict[str, str]:
    """Put every metric partition and return metric -> storage URI."""
    uris: Dict[str, str] = {}
    for metric in SLOT_METRICS:
        if metric not in partitions:
            raise ReshapeError(f"Partition for metric {metric} is missing")
        key = partition_key(input_prefix, variant, metric, run_id)
        store.put(key, partitions[metric].encode("utf-8"))
        uris[metric] = store.uri_for(key)
        logger.debug(f"Uploaded {metric} to {uris[metric]}")

    unexpected = set(partitions) - set(SLOT_METRICS)
    if unexpected:
        logger.warning(f"Ignoring unknown metric partitions: {sorted(unexpected)}")

    return uris
