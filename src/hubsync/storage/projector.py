"""Entity graph → flat list of FileRecords.

Pure: no I/O, no side effects, same snapshot (same entity order) in, same
records out. Safe to call for a dry-run preview before any network call.
"""

from __future__ import annotations

import json
import logging

from hubsync.model import FileRecord, Snapshot
from hubsync.storage import codec
from hubsync.storage.bodies import render_item
from hubsync.storage.sanitize import sanitize_segment

logger = logging.getLogger(__name__)

DEFAULT_ROOT = "data"
EXTENSION = "md"
MANIFEST_NAME = "metadata.json"
MANIFEST_VERSION = "3.0"


class _PathAllocator:
    """Hands out unique paths in first-seen order: `x.md`, `x_1.md`, `x_2.md`…"""

    def __init__(self) -> None:
        self._used: set[str] = set()

    def allocate(self, stem: str, extension: str = EXTENSION) -> str:
        path = f"{stem}.{extension}"
        counter = 1
        while path in self._used:
            path = f"{stem}_{counter}.{extension}"
            counter += 1
        self._used.add(path)
        return path


def build_manifest(snapshot: Snapshot) -> str:
    """JSON for workspaces/categories/folders. No timestamp, so output is stable."""
    data = {
        "workspaces": [w.to_dict() for w in snapshot.workspaces],
        "categories": [c.to_dict() for c in snapshot.categories],
        "folders": [f.to_dict() for f in snapshot.folders],
        "version": MANIFEST_VERSION,
    }
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def project(
    snapshot: Snapshot,
    root: str = DEFAULT_ROOT,
    *,
    include_manifest: bool = False,
) -> list[FileRecord]:
    """Return one FileRecord per item, plus the manifest when requested."""
    records: list[FileRecord] = []
    allocator = _PathAllocator()
    root_segments = [s for s in root.strip("/").split("/") if s]

    for workspace in snapshot.workspaces:
        for category in snapshot.categories_of(workspace.id):
            for folder in snapshot.folders_of(category.id):
                base = "/".join(
                    [
                        *root_segments,
                        sanitize_segment(workspace.name),
                        sanitize_segment(category.name),
                        sanitize_segment(folder.name),
                    ]
                )
                for item in snapshot.items_of(folder.id, category.base_type):
                    metadata, body = render_item(category.base_type, item)
                    path = allocator.allocate(f"{base}/{sanitize_segment(item.title)}")
                    records.append(FileRecord(path=path, content=codec.compose(metadata, body)))

    if include_manifest:
        manifest_path = "/".join([*root_segments, MANIFEST_NAME])
        records.append(FileRecord(path=manifest_path, content=build_manifest(snapshot)))

    logger.debug("Projected %d files from %d items", len(records), snapshot.item_count())
    return records
