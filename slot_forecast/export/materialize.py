"""
Export materialization: reassemble the per-partition files written by a
forecast export job into one flat CSV with a single header.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional

from ..config.integration_config import DEFAULT_EXPORT_HEADER
from ..contracts.capabilities import ObjectStore
from ..contracts.errors import StorageError
from ..contracts.pipeline_interface import ExportArtifact

logger = logging.getLogger(__name__)


def strip_header(body: str) -> List[str]:
    """Return the data lines of one partition file, without its header line."""
    lines = body.splitlines()
    return [line for line in lines[1:] if line.strip()]


def concatenate_partitions(bodies: Iterable[str], header: str = DEFAULT_EXPORT_HEADER) -> str:
    """Concatenate partition bodies under one canonical header."""
    rows: List[str] = []
    for body in bodies:
        rows.extend(strip_header(body))
    return "\n".join([header] + rows) + "\n"


def materialize_export(
    store: ObjectStore,
    prefix: str,
    destination: Path,
    run_id: str,
    header: str = DEFAULT_EXPORT_HEADER,
) -> ExportArtifact:
    """Read every export partition under ``prefix`` and write the artifact.

    Partition keys are sorted before concatenation; store listing order is
    not relied upon. The artifact is created exclusively and never
    overwritten.

    Args:
        store: Object store holding the export partitions
        prefix: Key prefix of this run's export job
        destination: Local path of the artifact
        run_id: Run the artifact belongs to
        header: Header line written once at the top

    Returns:
        The written artifact

    Raises:
        StorageError: No partitions were found, or the artifact already exists
    """
    keys = sorted(key for key in store.list(prefix) if key.endswith(".csv"))
    if not keys:
        raise StorageError("list", prefix, "export job produced no partition files")

    logger.info(f"Materializing {len(keys)} export partitions from {prefix}")

    content = concatenate_partitions(
        (store.get(key).decode("utf-8") for key in keys),
        header=header,
    )
    row_count = content.count("\n") - 1

    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    try:
        with open(destination, "x", encoding="utf-8", newline="") as f:
            f.write(content)
    except FileExistsError:
        raise StorageError("write", str(destination), "artifact already exists")
    except OSError as e:
        raise StorageError("write", str(destination), str(e))

    artifact = ExportArtifact(
        run_id=run_id,
        path=destination,
        header=header,
        source_keys=keys,
        row_count=row_count,
    )
    logger.info(f"Wrote {artifact.row_count} forecast rows to {destination}")
    return artifact


def read_artifact_rows(path: Path, header: Optional[str] = None) -> List[str]:
    """Data rows of an artifact, checking its header when one is given."""
    lines = Path(path).read_text(encoding="utf-8").splitlines()
    if not lines:
        return []
    if header is not None and lines[0] != header:
        raise StorageError("read", str(path), f"unexpected header {lines[0]!r}")
    return [line for line in lines[1:] if line]
