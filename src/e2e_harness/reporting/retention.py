"""Retention for run directories under the output root."""

import logging
import shutil
import time
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


class PruneResult(BaseModel):
    """What a prune pass removed or would remove."""

    deleted: List[Path] = Field(default_factory=list)
    kept: int = 0
    bytes_freed: int = 0
    dry_run: bool = False


def directory_size(path: Path) -> int:
    """Total size in bytes of the files below ``path``."""
    total = 0
    for item in path.rglob("*"):
        try:
            if item.is_file():
                total += item.stat().st_size
        except OSError:
            continue
    return total


def prune_runs(
    output_root: Union[str, Path],
    max_age_days: int,
    now: Optional[float] = None,
    dry_run: bool = False,
) -> PruneResult:
    """Delete run directories older than ``max_age_days``.

    Only direct subdirectories of ``output_root`` are considered; age is
    taken from the directory's modification time. Never called while a
    run is in progress.

    Args:
        output_root: Root holding one directory per run
        max_age_days: Directories older than this are deleted
        now: Reference time as a Unix timestamp (defaults to the current time)
        dry_run: Report what would be deleted without deleting

    Returns:
        PruneResult listing deleted directories
    """
    root = Path(output_root)
    result = PruneResult(dry_run=dry_run)
    if not root.is_dir():
        logger.info(f"Output root {root} does not exist, nothing to prune")
        return result

    reference = time.time() if now is None else now
    max_age_seconds = max_age_days * SECONDS_PER_DAY

    for run_dir in sorted(p for p in root.iterdir() if p.is_dir()):
        try:
            age = reference - run_dir.stat().st_mtime
        except OSError as e:
            logger.warning(f"Cannot stat {run_dir}: {e}")
            continue

        if age <= max_age_seconds:
            result.kept += 1
            continue

        size = directory_size(run_dir)
        if not dry_run:
            try:
                shutil.rmtree(run_dir)
            except OSError as e:
                logger.error(f"Failed to delete {run_dir}: {e}")
                result.kept += 1
                continue
        result.deleted.append(run_dir)
        result.bytes_freed += size
        logger.info(f"Pruned {run_dir} ({age / SECONDS_PER_DAY:.0f} days old)")

    return result
