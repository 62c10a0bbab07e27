"""Per-base-type metadata, Markdown bodies, and their best-effort inverses.

Each `BaseType` variant owns three functions: `metadata` (the scalar/tag
fields written to the header), `render` (the Markdown body) and `parse`
(rebuild an item from header + body). `render_item` and `parse_item` pick
the variant with an exhaustive `match`.

Notes round-trip losslessly. Collections recover what their bodies carry:
sub-item tags and favorite flags are not written, so they come back empty.
"""

from __future__ import annotations

import hashlib
import re
from typing import Any

from hubsync.model import (
    BaseType,
    CommandCollection,
    CommandItem,
    Item,
    LinkCollection,
    LinkItem,
    Note,
    PromptCollection,
    PromptItem,
)

_COMMAND_RE = re.compile(
    r"^###[ \t]*(?P<id>\S+)[ \t]*\n```(?P<lang>[\w+#.-]*)\n(?P<command>.*?)\n?```[ \t]*\n"
    r"(?:\n_(?P<desc>[^\n]+?)_[ \t]*\n)?",
    re.MULTILINE | re.DOTALL,
)
# URLs may carry one level of balanced parentheses, e.g. Wikipedia titles
_LINK_RE = re.compile(
    r"^-[ \t]*\[(?P<title>[^\]]*)\]\((?P<url>(?:[^()\s]|\([^()\s]*\))*)\)(?:[ \t]+-[ \t]+(?P<desc>.+))?[ \t]*$",
    re.MULTILINE,
)
_PROMPT_RE = re.compile(
    r"^###[ \t]*(?P<title>[^\n]+?)[ \t]*\n(?:_(?P<desc>[^\n]+?)_[ \t]*\n\n)?```[^\n]*\n(?P<template>.*?)\n?```[ \t]*\n"
    r"(?:\n\*\*Variables:\*\*[^\n]*\n)?",
    re.MULTILINE | re.DOTALL,
)


def sub_item_id(parent_id: str, index: int) -> str:
    digest = hashlib.sha1(f"{parent_id}#{index}".encode("utf-8")).hexdigest()
    return digest[:10]


def _common(item: Item) -> dict[str, Any]:
    return {
        "id": item.id,
        "title": item.title,
    }


def _timestamps(item: Item) -> dict[str, Any]:
    return {
        "createdAt": item.created_at,
        "updatedAt": item.updated_at,
        "folderId": item.folder_id,
    }


# ── Notes ────────────────────────────────────────────────────


def _note_metadata(note: Note) -> dict[str, Any]:
    return {
        **_common(note),
        "tags": list(note.tags or []),
        "isFavorite": note.is_favorite,
        **_timestamps(note),
    }


def _note_body(note: Note) -> str:
    return note.content or ""


def _parse_note(meta: dict, body: str, **base: Any) -> Note:
    return Note(
        content=body,
        is_favorite=meta.get("isFavorite") is True,
        **base,
    )


# ── Commands ─────────────────────────────────────────────────


def _command_metadata(coll: CommandCollection) -> dict[str, Any]:
    return {
        **_common(coll),
        "description": coll.description or "",
        "tags": list(coll.tags or []),
        **_timestamps(coll),
        "type": BaseType.COMMANDS.value,
    }


def _command_body(coll: CommandCollection) -> str:
    body = ""
    if coll.description:
        body += f"{coll.description}\n\n"
    for sub in coll.items:
        body += f"### {sub.id}\n"
        body += f"```{sub.language or ''}\n{sub.command or ''}\n```\n"
        if sub.description:
            body += f"\n_{sub.description}_\n"
        body += "\n"
    return body


def _parse_commands(meta: dict, body: str, **base: Any) -> CommandCollection:
    items = [
        CommandItem(
            id=m.group("id"),
            command=m.group("command"),
            language=m.group("lang") or "bash",
            description=m.group("desc") or "",
        )
        for m in _COMMAND_RE.finditer(body)
    ]
    return CommandCollection(description=str(meta.get("description") or ""), items=items, **base)


# ── Links ────────────────────────────────────────────────────


def _link_metadata(coll: LinkCollection) -> dict[str, Any]:
    return {
        **_common(coll),
        "tags": list(coll.tags or []),
        **_timestamps(coll),
        "type": BaseType.LINKS.value,
    }


def _link_body(coll: LinkCollection) -> str:
    body = ""
    for sub in coll.items:
        body += f"- [{sub.title}]({sub.url})"
        if sub.description:
            body += f" - {sub.description}"
        body += "\n"
    return body


def _parse_links(meta: dict, body: str, **base: Any) -> LinkCollection:
    items = [
        LinkItem(
            id=sub_item_id(base["id"], index),
            url=m.group("url"),
            title=m.group("title"),
            description=(m.group("desc") or "").strip(),
        )
        for index, m in enumerate(_LINK_RE.finditer(body))
    ]
    return LinkCollection(items=items, **base)


# ── Prompts ──────────────────────────────────────────────────


def _prompt_metadata(coll: PromptCollection) -> dict[str, Any]:
    return {
        **_common(coll),
        "category": coll.category or "",
        "tags": list(coll.tags or []),
        **_timestamps(coll),
        "type": BaseType.PROMPTS.value,
    }


def _prompt_body(coll: PromptCollection) -> str:
    body = ""
    for sub in coll.items:
        body += f"### {sub.title}\n"
        if sub.description:
            body += f"_{sub.description}_\n\n"
        body += f"```\n{sub.template or ''}\n```\n"
        variables = sub.variables
        if variables:
            body += f"\n**Variables:** {', '.join(variables)}\n"
        body += "\n"
    return body


def _parse_prompts(meta: dict, body: str, **base: Any) -> PromptCollection:
    items = [
        PromptItem(
            id=sub_item_id(base["id"], index),
            title=m.group("title"),
            template=m.group("template"),
            description=m.group("desc") or "",
        )
        for index, m in enumerate(_PROMPT_RE.finditer(body))
    ]
    return PromptCollection(category=str(meta.get("category") or ""), items=items, **base)


# ── Dispatch ─────────────────────────────────────────────────


def render_item(base_type: BaseType, item: Item) -> tuple[dict[str, Any], str]:
    """Return (header metadata, body) for `item` under its category's base type."""
    match base_type:
        case BaseType.NOTES:
            return _note_metadata(item), _note_body(item)
        case BaseType.COMMANDS:
            return _command_metadata(item), _command_body(item)
        case BaseType.LINKS:
            return _link_metadata(item), _link_body(item)
        case BaseType.PROMPTS:
            return _prompt_metadata(item), _prompt_body(item)


def parse_item(base_type: BaseType, meta: dict, body: str, **base: Any) -> Item:
    """Build an item from decoded header + body.

    `base` carries the already-resolved `id`, `folder_id`, `title`, `tags`,
    `created_at` and `updated_at`.
    """
    match base_type:
        case BaseType.NOTES:
            return _parse_note(meta, body, **base)
        case BaseType.COMMANDS:
            return _parse_commands(meta, body, **base)
        case BaseType.LINKS:
            return _parse_links(meta, body, **base)
        case BaseType.PROMPTS:
            return _parse_prompts(meta, body, **base)


def guess_base_type(category_name: str) -> BaseType:
    """Infer a category's base type from its (directory) name."""
    lower = category_name.lower()
    if "command" in lower:
        return BaseType.COMMANDS
    if "link" in lower:
        return BaseType.LINKS
    if "prompt" in lower:
        return BaseType.PROMPTS
    return BaseType.NOTES
