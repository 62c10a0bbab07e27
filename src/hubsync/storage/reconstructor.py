"""Files → entity graph (import / bootstrap direction).

Input is a flat path → content map, e.g. from `local.read_files` or from a
remote listing. Paths look like `{root}/{workspace}/{category}/{folder}/…/{title}.md`;
extra middle segments become nested folders.

Workspaces, categories and folders are matched against already-known
entities by `lookup_key` of their names, so renames imposed by the
filesystem (spaces → underscores, case changes) resolve to the same entity.
Known entities are never modified; the result only holds what is new.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone

from hubsync.model import (
    BaseType,
    Category,
    Folder,
    Item,
    Snapshot,
    Workspace,
)
from hubsync.storage import codec
from hubsync.storage.bodies import guess_base_type, parse_item
from hubsync.storage.projector import DEFAULT_ROOT, EXTENSION, MANIFEST_NAME
from hubsync.storage.sanitize import lookup_key

logger = logging.getLogger(__name__)

MIN_DEPTH = 4  # workspace / category / folder / file

WORKSPACE_STYLE = ("📁", "#6366f1")
CATEGORY_STYLE = {
    BaseType.NOTES: ("📝", "#4CAF50"),
    BaseType.COMMANDS: ("⌘", "#2196F3"),
    BaseType.LINKS: ("🔗", "#FF9800"),
    BaseType.PROMPTS: ("💬", "#9C27B0"),
}
ITEM_PREFIX = {
    BaseType.NOTES: "n",
    BaseType.COMMANDS: "cmd",
    BaseType.LINKS: "lnk",
    BaseType.PROMPTS: "prm",
}


def stable_id(prefix: str, key: str) -> str:
    """Deterministic id so re-importing the same tree yields the same ids."""
    return f"{prefix}_{hashlib.sha1(key.encode('utf-8')).hexdigest()[:10]}"


@dataclass
class ReconstructResult:
    """New entities recovered from files, plus the paths that were passed over."""

    snapshot: Snapshot = field(default_factory=Snapshot)
    skipped: list[str] = field(default_factory=list)
    existing: list[str] = field(default_factory=list)

    @property
    def imported_count(self) -> int:
        return self.snapshot.item_count()


class _Graph:
    """Known + newly created hierarchy, looked up by name key."""

    def __init__(self, known: Snapshot, now: str) -> None:
        self.known = known
        self.new = Snapshot()
        self.now = now
        self.item_ids: set[str] = {
            i.id for i in [*known.notes, *known.commands, *known.links, *known.prompts]
        }

    def _all_workspaces(self) -> list[Workspace]:
        return [*self.known.workspaces, *self.new.workspaces]

    def _all_categories(self) -> list[Category]:
        return [*self.known.categories, *self.new.categories]

    def _all_folders(self) -> list[Folder]:
        return [*self.known.folders, *self.new.folders]

    def workspace(
        self, name: str, *, workspace_id: str | None = None, template: Workspace | None = None
    ) -> Workspace:
        key = lookup_key(name)
        for ws in self._all_workspaces():
            if lookup_key(ws.name) == key:
                return ws
        icon, color = WORKSPACE_STYLE
        ws = Workspace(
            id=workspace_id or stable_id("ws", key),
            name=name,
            icon=template.icon if template else icon,
            color=template.color if template else color,
            created_at=(template.created_at if template else "") or self.now,
            updated_at=(template.updated_at if template else "") or self.now,
        )
        self.new.workspaces.append(ws)
        return ws

    def category(
        self,
        workspace: Workspace,
        name: str,
        *,
        base_type: BaseType | None = None,
        template: Category | None = None,
    ) -> Category:
        key = lookup_key(name)
        siblings = [c for c in self._all_categories() if c.workspace_id == workspace.id]
        for cat in siblings:
            if lookup_key(cat.name) == key:
                return cat
        base_type = base_type or guess_base_type(name)
        icon, color = CATEGORY_STYLE[base_type]
        cat = Category(
            id=template.id if template else stable_id("cat", f"{workspace.id}/{key}"),
            workspace_id=workspace.id,
            name=name,
            base_type=base_type,
            icon=template.icon if template else icon,
            color=template.color if template else color,
            order=template.order if template else len(siblings),
            is_default=template.is_default if template else False,
        )
        self.new.categories.append(cat)
        return cat

    def folder(
        self,
        category: Category,
        name: str,
        parent_id: str | None,
        *,
        template: Folder | None = None,
        loose: bool = False,
    ) -> Folder:
        """Find or create a folder under `parent_id`.

        With `loose`, a folder of that name anywhere in the category also
        matches: projected paths flatten nesting to a single folder segment.
        """
        key = lookup_key(name)
        in_category = [f for f in self._all_folders() if f.category_id == category.id]
        siblings = [f for f in in_category if f.parent_id == parent_id]
        for folder in siblings:
            if lookup_key(folder.name) == key:
                return folder
        if loose:
            for folder in in_category:
                if lookup_key(folder.name) == key:
                    return folder
        folder = Folder(
            id=template.id if template else stable_id("f", f"{category.id}/{parent_id or ''}/{key}"),
            category_id=category.id,
            name=name,
            parent_id=parent_id,
            order=template.order if template else len(siblings),
            is_expanded=template.is_expanded if template else True,
            created_at=(template.created_at if template else "") or self.now,
        )
        self.new.folders.append(folder)
        return folder

    def add_item(self, base_type: BaseType, item: Item) -> None:
        self.item_ids.add(item.id)
        match base_type:
            case BaseType.NOTES:
                self.new.notes.append(item)
            case BaseType.COMMANDS:
                self.new.commands.append(item)
            case BaseType.LINKS:
                self.new.links.append(item)
            case BaseType.PROMPTS:
                self.new.prompts.append(item)


def _seed_from_manifest(graph: _Graph, text: str) -> None:
    """Create hierarchy entities listed in a manifest, keeping their ids and styling."""
    data = json.loads(text)
    manifest = Snapshot.from_dict(data)
    workspace_map: dict[str, Workspace] = {}
    category_map: dict[str, Category] = {}
    folder_map: dict[str, Folder] = {}

    for ws in manifest.workspaces:
        workspace_map[ws.id] = graph.workspace(ws.name, workspace_id=ws.id, template=ws)
    for cat in manifest.categories:
        ws = workspace_map.get(cat.workspace_id)
        if ws is None:
            continue
        category_map[cat.id] = graph.category(ws, cat.name, base_type=cat.base_type, template=cat)

    # Parents before children; repeat until no progress so order in the file doesn't matter
    pending = list(manifest.folders)
    while pending:
        remaining = []
        for folder in pending:
            cat = category_map.get(folder.category_id)
            if cat is None:
                continue
            if folder.parent_id and folder.parent_id not in folder_map:
                remaining.append(folder)
                continue
            parent = folder_map[folder.parent_id].id if folder.parent_id else None
            folder_map[folder.id] = graph.folder(cat, folder.name, parent, template=folder)
        if len(remaining) == len(pending):
            logger.warning("Manifest has %d folders with unresolvable parents", len(remaining))
            break
        pending = remaining


def _text(value: object) -> str | None:
    if value is None or isinstance(value, (list, dict)):
        return None
    text = str(value)
    return text or None


def _header_type(meta: dict) -> BaseType | None:
    value = meta.get("type")
    if isinstance(value, str) and value in {t.value for t in BaseType}:
        return BaseType(value)
    return None


def reconstruct(
    files: Mapping[str, str | bytes],
    known: Snapshot | None = None,
    root: str = DEFAULT_ROOT,
    *,
    now: str | None = None,
) -> ReconstructResult:
    """Rebuild entities from `files`.

    Offending files (too shallow, not Markdown, undecodable, bad manifest)
    are skipped and listed in `skipped`; items whose id is already known are
    listed in `existing` and not duplicated.
    """
    now = now or datetime.now(timezone.utc).isoformat()
    graph = _Graph(known or Snapshot(), now)
    result = ReconstructResult(snapshot=graph.new)
    root_segments = [s for s in root.strip("/").split("/") if s]
    manifest_path = "/".join([*root_segments, MANIFEST_NAME])

    def relative(path: str) -> list[str]:
        segments = [s for s in path.strip("/").split("/") if s]
        if segments[: len(root_segments)] == root_segments:
            return segments[len(root_segments) :]
        return segments

    def as_text(path: str, content: str | bytes) -> str | None:
        if isinstance(content, str):
            return content
        try:
            return content.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Skipping %s: not valid UTF-8", path)
            return None

    # Manifest first, so item files resolve to its entities
    for path, content in files.items():
        if path.strip("/") != manifest_path:
            continue
        text = as_text(path, content)
        try:
            if text is None:
                raise ValueError("undecodable")
            _seed_from_manifest(graph, text)
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning("Skipping manifest %s: %s", path, e)
            result.skipped.append(path)

    # Shallow paths first, then lexical: parents are created before nested folders
    ordered = sorted(
        (p for p in files if p.strip("/") != manifest_path),
        key=lambda p: (len(relative(p)), p),
    )
    for path in ordered:
        segments = relative(path)
        if len(segments) < MIN_DEPTH or not segments[-1].endswith(f".{EXTENSION}"):
            logger.warning("Skipping %s: expected {workspace}/{category}/{folder}/{name}.md", path)
            result.skipped.append(path)
            continue
        text = as_text(path, files[path])
        if text is None:
            result.skipped.append(path)
            continue

        meta, body = codec.decode(text)
        ws_name, cat_name, *folder_names, filename = segments
        workspace = graph.workspace(ws_name)
        # Header type wins over the name guess; only applies to new categories
        category = graph.category(workspace, cat_name, base_type=_header_type(meta))
        parent_id: str | None = None
        flattened = len(folder_names) == 1
        for folder_name in folder_names:
            parent_id = graph.folder(category, folder_name, parent_id, loose=flattened).id

        base_type = category.base_type
        item_id = _text(meta.get("id")) or stable_id(ITEM_PREFIX[base_type], "/".join(segments))
        if item_id in graph.item_ids:
            result.existing.append(path)
            continue

        tags = meta.get("tags")
        item = parse_item(
            base_type,
            meta,
            body,
            id=item_id,
            folder_id=parent_id,
            title=_text(meta.get("title")) or filename[: -len(EXTENSION) - 1],
            tags=list(tags) if isinstance(tags, list) else [],
            created_at=_text(meta.get("createdAt")) or now,
            updated_at=_text(meta.get("updatedAt")) or now,
        )
        graph.add_item(base_type, item)

    logger.info(
        "Reconstructed %d items (%d skipped, %d already known)",
        result.imported_count,
        len(result.skipped),
        len(result.existing),
    )
    return result
