"""Entity graph: workspaces → categories → folders → items.

The graph is held in a `Snapshot`, a plain value that the projector and
reconstructor read. Nothing in this package mutates a snapshot in place;
merges build a new one.

JSON uses the application's data-file keys (camelCase), so a snapshot
exported by the UI can be loaded directly.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Union

_VARIABLE_RE = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")


class BaseType(str, Enum):
    """Fixed content kind of a category; selects the body renderer/parser."""

    NOTES = "notes"
    COMMANDS = "commands"
    LINKS = "links"
    PROMPTS = "prompts"

    @classmethod
    def parse(cls, value: Any) -> BaseType:
        try:
            return cls(str(value))
        except ValueError:
            return cls.NOTES


def extract_variables(template: str) -> list[str]:
    """Return `{{name}}` placeholders in first-seen order, without duplicates."""
    seen: list[str] = []
    for match in _VARIABLE_RE.finditer(template or ""):
        name = match.group(1)
        if name not in seen:
            seen.append(name)
    return seen


def _str(data: dict, key: str, default: str = "") -> str:
    value = data.get(key)
    return default if value is None else str(value)


def _tags(data: dict) -> list[str]:
    value = data.get("tags") or []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


# ── Hierarchy ────────────────────────────────────────────────


@dataclass
class Workspace:
    id: str
    name: str
    icon: str = ""
    color: str = ""
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> Workspace:
        return cls(
            id=_str(data, "id"),
            name=_str(data, "name"),
            icon=_str(data, "icon"),
            color=_str(data, "color"),
            created_at=_str(data, "createdAt"),
            updated_at=_str(data, "updatedAt"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "icon": self.icon,
            "color": self.color,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class Category:
    id: str
    workspace_id: str
    name: str
    base_type: BaseType = BaseType.NOTES
    icon: str = ""
    color: str = ""
    order: int = 0
    is_default: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> Category:
        return cls(
            id=_str(data, "id"),
            workspace_id=_str(data, "workspaceId"),
            name=_str(data, "name"),
            base_type=BaseType.parse(data.get("baseType")),
            icon=_str(data, "icon"),
            color=_str(data, "color"),
            order=int(data.get("order") or 0),
            is_default=bool(data.get("isDefault", False)),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "workspaceId": self.workspace_id,
            "name": self.name,
            "icon": self.icon,
            "color": self.color,
            "baseType": self.base_type.value,
            "order": self.order,
            "isDefault": self.is_default,
        }


@dataclass
class Folder:
    id: str
    category_id: str
    name: str
    parent_id: str | None = None
    order: int = 0
    is_expanded: bool = True
    created_at: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> Folder:
        return cls(
            id=_str(data, "id"),
            category_id=_str(data, "categoryId"),
            name=_str(data, "name"),
            parent_id=data.get("parentId") or None,
            order=int(data.get("order") or 0),
            is_expanded=bool(data.get("isExpanded", True)),
            created_at=_str(data, "createdAt"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "categoryId": self.category_id,
            "parentId": self.parent_id,
            "name": self.name,
            "order": self.order,
            "isExpanded": self.is_expanded,
            "createdAt": self.created_at,
        }


# ── Items ────────────────────────────────────────────────────


@dataclass
class Note:
    id: str
    folder_id: str
    title: str
    content: str = ""
    tags: list[str] = field(default_factory=list)
    is_favorite: bool = False
    order: int = 0
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> Note:
        return cls(
            id=_str(data, "id"),
            folder_id=_str(data, "folderId"),
            title=_str(data, "title"),
            content=_str(data, "content"),
            tags=_tags(data),
            is_favorite=bool(data.get("isFavorite", False)),
            order=int(data.get("order") or 0),
            created_at=_str(data, "createdAt"),
            updated_at=_str(data, "updatedAt"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "folderId": self.folder_id,
            "title": self.title,
            "content": self.content,
            "tags": list(self.tags),
            "isFavorite": self.is_favorite,
            "order": self.order,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "type": BaseType.NOTES.value,
        }


@dataclass
class CommandItem:
    id: str
    command: str = ""
    language: str = "bash"
    description: str = ""
    tags: list[str] = field(default_factory=list)
    is_favorite: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> CommandItem:
        return cls(
            id=_str(data, "id"),
            command=_str(data, "command"),
            language=_str(data, "language", "bash") or "bash",
            description=_str(data, "description"),
            tags=_tags(data),
            is_favorite=bool(data.get("isFavorite", False)),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "command": self.command,
            "language": self.language,
            "description": self.description,
            "tags": list(self.tags),
            "isFavorite": self.is_favorite,
        }


@dataclass
class LinkItem:
    id: str
    url: str = ""
    title: str = ""
    description: str = ""
    favicon: str = ""
    tags: list[str] = field(default_factory=list)
    is_favorite: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> LinkItem:
        return cls(
            id=_str(data, "id"),
            url=_str(data, "url"),
            title=_str(data, "title"),
            description=_str(data, "description"),
            favicon=_str(data, "favicon"),
            tags=_tags(data),
            is_favorite=bool(data.get("isFavorite", False)),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "description": self.description,
            "favicon": self.favicon,
            "tags": list(self.tags),
            "isFavorite": self.is_favorite,
        }


@dataclass
class PromptItem:
    id: str
    title: str = ""
    template: str = ""
    description: str = ""
    tags: list[str] = field(default_factory=list)
    is_favorite: bool = False

    @property
    def variables(self) -> list[str]:
        return extract_variables(self.template)

    @classmethod
    def from_dict(cls, data: dict) -> PromptItem:
        return cls(
            id=_str(data, "id"),
            title=_str(data, "title"),
            template=_str(data, "prompt"),
            description=_str(data, "description"),
            tags=_tags(data),
            is_favorite=bool(data.get("isFavorite", False)),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "prompt": self.template,
            "variables": self.variables,
            "description": self.description,
            "tags": list(self.tags),
            "isFavorite": self.is_favorite,
        }


@dataclass
class CommandCollection:
    id: str
    folder_id: str
    title: str
    description: str = ""
    items: list[CommandItem] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    order: int = 0
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> CommandCollection:
        return cls(
            id=_str(data, "id"),
            folder_id=_str(data, "folderId"),
            title=_str(data, "title"),
            description=_str(data, "description"),
            items=[CommandItem.from_dict(d) for d in data.get("subItems") or []],
            tags=_tags(data),
            order=int(data.get("order") or 0),
            created_at=_str(data, "createdAt"),
            updated_at=_str(data, "updatedAt"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "folderId": self.folder_id,
            "title": self.title,
            "description": self.description,
            "subItems": [i.to_dict() for i in self.items],
            "tags": list(self.tags),
            "order": self.order,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "type": BaseType.COMMANDS.value,
        }


@dataclass
class LinkCollection:
    id: str
    folder_id: str
    title: str
    items: list[LinkItem] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    order: int = 0
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> LinkCollection:
        return cls(
            id=_str(data, "id"),
            folder_id=_str(data, "folderId"),
            title=_str(data, "title"),
            items=[LinkItem.from_dict(d) for d in data.get("subItems") or []],
            tags=_tags(data),
            order=int(data.get("order") or 0),
            created_at=_str(data, "createdAt"),
            updated_at=_str(data, "updatedAt"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "folderId": self.folder_id,
            "title": self.title,
            "subItems": [i.to_dict() for i in self.items],
            "tags": list(self.tags),
            "order": self.order,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "type": BaseType.LINKS.value,
        }


@dataclass
class PromptCollection:
    id: str
    folder_id: str
    title: str
    category: str = ""
    items: list[PromptItem] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    order: int = 0
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> PromptCollection:
        return cls(
            id=_str(data, "id"),
            folder_id=_str(data, "folderId"),
            title=_str(data, "title"),
            category=_str(data, "category"),
            items=[PromptItem.from_dict(d) for d in data.get("subItems") or []],
            tags=_tags(data),
            order=int(data.get("order") or 0),
            created_at=_str(data, "createdAt"),
            updated_at=_str(data, "updatedAt"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "folderId": self.folder_id,
            "title": self.title,
            "category": self.category,
            "subItems": [i.to_dict() for i in self.items],
            "tags": list(self.tags),
            "order": self.order,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "type": BaseType.PROMPTS.value,
        }


Item = Union[Note, CommandCollection, LinkCollection, PromptCollection]


# ── Snapshot ─────────────────────────────────────────────────


@dataclass
class Snapshot:
    """A consistent, read-only view of the whole entity graph."""

    workspaces: list[Workspace] = field(default_factory=list)
    categories: list[Category] = field(default_factory=list)
    folders: list[Folder] = field(default_factory=list)
    notes: list[Note] = field(default_factory=list)
    commands: list[CommandCollection] = field(default_factory=list)
    links: list[LinkCollection] = field(default_factory=list)
    prompts: list[PromptCollection] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> Snapshot:
        return cls(
            workspaces=[Workspace.from_dict(d) for d in data.get("workspaces") or []],
            categories=[Category.from_dict(d) for d in data.get("categories") or []],
            folders=[Folder.from_dict(d) for d in data.get("folders") or []],
            notes=[Note.from_dict(d) for d in data.get("notes") or []],
            commands=[CommandCollection.from_dict(d) for d in data.get("commands") or []],
            links=[LinkCollection.from_dict(d) for d in data.get("links") or []],
            prompts=[PromptCollection.from_dict(d) for d in data.get("prompts") or []],
        )

    def to_dict(self) -> dict:
        return {
            "workspaces": [w.to_dict() for w in self.workspaces],
            "categories": [c.to_dict() for c in self.categories],
            "folders": [f.to_dict() for f in self.folders],
            "notes": [n.to_dict() for n in self.notes],
            "commands": [c.to_dict() for c in self.commands],
            "links": [lk.to_dict() for lk in self.links],
            "prompts": [p.to_dict() for p in self.prompts],
            "version": "3.0",
        }

    def categories_of(self, workspace_id: str) -> list[Category]:
        return [c for c in self.categories if c.workspace_id == workspace_id]

    def folders_of(self, category_id: str) -> list[Folder]:
        return [f for f in self.folders if f.category_id == category_id]

    def items_of(self, folder_id: str, base_type: BaseType) -> list[Item]:
        match base_type:
            case BaseType.NOTES:
                pool: list = self.notes
            case BaseType.COMMANDS:
                pool = self.commands
            case BaseType.LINKS:
                pool = self.links
            case BaseType.PROMPTS:
                pool = self.prompts
        return [i for i in pool if i.folder_id == folder_id]

    def merged(self, other: Snapshot) -> Snapshot:
        """Return a new snapshot with `other`'s entities appended after ours."""
        return replace(
            self,
            workspaces=[*self.workspaces, *other.workspaces],
            categories=[*self.categories, *other.categories],
            folders=[*self.folders, *other.folders],
            notes=[*self.notes, *other.notes],
            commands=[*self.commands, *other.commands],
            links=[*self.links, *other.links],
            prompts=[*self.prompts, *other.prompts],
        )

    def item_count(self) -> int:
        return len(self.notes) + len(self.commands) + len(self.links) + len(self.prompts)

    def integrity_errors(self) -> list[str]:
        """List orphans, folder cycles and cross-category folder parents."""
        errors: list[str] = []
        workspace_ids = {w.id for w in self.workspaces}
        category_ids = {c.id for c in self.categories}
        folders = {f.id: f for f in self.folders}

        for c in self.categories:
            if c.workspace_id not in workspace_ids:
                errors.append(f"Category {c.id!r} references missing workspace {c.workspace_id!r}")

        for f in self.folders:
            if f.category_id not in category_ids:
                errors.append(f"Folder {f.id!r} references missing category {f.category_id!r}")
            if f.parent_id is None:
                continue
            parent = folders.get(f.parent_id)
            if parent is None:
                errors.append(f"Folder {f.id!r} references missing parent {f.parent_id!r}")
            elif parent.category_id != f.category_id:
                errors.append(f"Folder {f.id!r} has a parent in another category")

        # Cycle detection: walk each parent chain, bounded by folder count
        for f in self.folders:
            seen = {f.id}
            current = folders.get(f.parent_id) if f.parent_id else None
            while current is not None:
                if current.id in seen:
                    errors.append(f"Folder {f.id!r} is part of a parent cycle")
                    break
                seen.add(current.id)
                current = folders.get(current.parent_id) if current.parent_id else None

        items: list[Item] = [*self.notes, *self.commands, *self.links, *self.prompts]
        for item in items:
            if item.folder_id not in folders:
                errors.append(f"Item {item.id!r} references missing folder {item.folder_id!r}")
        return errors


# ── Projection output ────────────────────────────────────────


@dataclass(frozen=True)
class FileRecord:
    """One projected file: a `/`-joined path of sanitized segments plus text."""

    path: str
    content: str

    @property
    def segments(self) -> tuple[str, ...]:
        return tuple(self.path.split("/"))


# path → content identifier
RemoteIndex = dict[str, str]
