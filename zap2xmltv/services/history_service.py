"""
Historical guide snapshots

Keeps timestamped copies of each successful guide next to the primary file
and prunes copies older than the retention window.
"""
from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from zap2xmltv.errors import RotationError
from zap2xmltv.utils.file_operations import copy_file, remove_file
from zap2xmltv.utils.timezone import SECONDS_IN_DAY, snapshot_timestamp


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RotationResult:
    snapshot: Path
    deleted: list[Path] = field(default_factory=list)


def snapshot_path(output_path: Path, moment: datetime | None = None) -> Path:
    """
    'guide.xmltv' -> 'guide.20240601103000.xmltv' in the same directory.

    When that name is already taken (two runs in the same second), a counter
    is appended: 'guide.20240601103000-1.xmltv'.
    """
    stamp = snapshot_timestamp(moment)
    candidate = output_path.with_name(f"{output_path.stem}.{stamp}{output_path.suffix}")
    counter = 0
    while candidate.exists():
        counter += 1
        candidate = output_path.with_name(
            f"{output_path.stem}.{stamp}-{counter}{output_path.suffix}"
        )
    return candidate


class HistoryRotator:
    """Snapshots the primary guide and deletes expired snapshots."""

    async def rotate(
        self,
        output_path: Path | str,
        retention_days: int,
        *,
        now: float | None = None,
    ) -> RotationResult:
        """
        Copy the fresh guide to a timestamped sibling and prune old siblings

        Args:
            output_path: Primary guide file, already written
            retention_days: Files older than this many days are deleted;
                0 deletes every pre-existing snapshot
            now: Reference epoch time (defaults to time.time())

        Returns:
            RotationResult with the new snapshot and the deleted files

        Raises:
            RotationError: If the snapshot copy fails or the directory
                cannot be read
        """
        output_path = Path(output_path)
        reference = time.time() if now is None else now

        snapshot = snapshot_path(output_path, datetime.fromtimestamp(reference))
        try:
            await copy_file(output_path, snapshot)
        except OSError as exc:
            raise RotationError(f"Failed to create historical copy {snapshot}: {exc}") from exc
        logger.info("Created historical copy %s", snapshot.name)

        deleted = self.prune(output_path, retention_days, now=reference, keep={snapshot})
        return RotationResult(snapshot=snapshot, deleted=deleted)

    def prune(
        self,
        output_path: Path,
        retention_days: int,
        *,
        now: float | None = None,
        keep: set[Path] | None = None,
    ) -> list[Path]:
        """Delete same-extension siblings modified before now - retention_days."""
        if not output_path.suffix:
            logger.warning("Guide file %s has no extension; skipping history cleanup", output_path)
            return []

        reference = time.time() if now is None else now
        cutoff = reference - retention_days * SECONDS_IN_DAY
        protected = {output_path.resolve(), *(path.resolve() for path in keep or ())}
        directory = output_path.parent

        try:
            entries = list(os.scandir(directory))
        except OSError as exc:
            raise RotationError(f"Failed to read directory {directory}: {exc}") from exc

        deleted: list[Path] = []
        for entry in entries:
            if not entry.name.endswith(output_path.suffix):
                continue
            candidate = Path(entry.path)
            try:
                if not entry.is_file() or candidate.resolve() in protected:
                    continue
                modified = entry.stat().st_mtime
            except OSError as exc:
                logger.debug("Cannot stat %s: %s", entry.name, exc)
                continue

            if modified < cutoff and remove_file(candidate):
                deleted.append(candidate)

        if deleted:
            logger.info(
                "Removed %s historical file(s) older than %s days",
                len(deleted),
                retention_days,
            )
        return deleted
