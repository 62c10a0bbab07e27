"""Write a projection to disk, and read a directory back into a path → content map."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from hubsync.model import FileRecord

logger = logging.getLogger(__name__)


def write_files(records: Iterable[FileRecord], base_dir: Path) -> int:
    """Write each record under `base_dir`. Returns the number of files written."""
    count = 0
    for record in records:
        target = base_dir.joinpath(*record.segments)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(record.content, encoding="utf-8")
        count += 1
    logger.info("Wrote %d files to %s", count, base_dir)
    return count


def read_files(base_dir: Path, root: str = "data") -> dict[str, bytes]:
    """Read every file under `base_dir / root`, keyed by `/`-joined path relative to `base_dir`.

    Contents stay as bytes; the reconstructor decodes and skips what isn't UTF-8.
    """
    files: dict[str, bytes] = {}
    start = base_dir / root
    if not start.is_dir():
        logger.warning("No %s/ directory under %s", root, base_dir)
        return files
    for path in sorted(start.rglob("*")):
        if not path.is_file() or any(part.startswith(".") for part in path.relative_to(base_dir).parts):
            continue
        files[path.relative_to(base_dir).as_posix()] = path.read_bytes()
    return files
