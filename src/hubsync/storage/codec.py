"""Flat key/value frontmatter header.

    ---
    title: "Ideas"
    tags: ["work", "draft"]
    isFavorite: false
    order: 3
    ---
    <body>

Supported value kinds are str, bool, int/float and list[str]. Anything else
is written as its quoted `str()` and comes back as a string; nested
structures do not survive a round trip, so entity metadata must stay flat.
Empty strings inside lists are dropped on decode.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

DELIMITER = "---"
BODY_KEYS = frozenset({"content", "body"})

Metadata = dict[str, Any]

_INT_RE = re.compile(r"-?\d+")
_FLOAT_RE = re.compile(r"-?(\d+\.\d*|\.\d+|\d+)([eE][-+]?\d+)?")
_ESCAPES = {"\\": "\\", '"': '"', "n": "\n", "r": "\r", "t": "\t"}


# ── Encode ───────────────────────────────────────────────────


def _quote(value: str) -> str:
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_quote(str(v)) for v in value) + "]"
    return _quote(str(value))


def encode(metadata: Mapping[str, Any]) -> str:
    """Render the header block, delimiters included, without a trailing newline.

    Body keys and None values are skipped.
    """
    lines = [DELIMITER]
    for key, value in metadata.items():
        if key in BODY_KEYS or value is None:
            continue
        lines.append(f"{key}: {_format_value(value)}")
    lines.append(DELIMITER)
    return "\n".join(lines)


def compose(metadata: Mapping[str, Any], body: str) -> str:
    """Full file text: header, newline, raw body."""
    return f"{encode(metadata)}\n{body}"


# ── Decode ───────────────────────────────────────────────────


def _unquote(text: str) -> str:
    quote = text[0]
    inner = text[1:-1]
    if quote == "'":
        return inner.replace("''", "'")
    out: list[str] = []
    i = 0
    while i < len(inner):
        ch = inner[i]
        if ch == "\\" and i + 1 < len(inner):
            nxt = inner[i + 1]
            out.append(_ESCAPES.get(nxt, "\\" + nxt))
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def _is_quoted(text: str) -> bool:
    return len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'"


def _split_list(inner: str) -> list[str]:
    """Split on commas outside quotes; strip whitespace and quotes; drop empties."""
    parts: list[str] = []
    buf: list[str] = []
    quote: str | None = None
    escaped = False
    for ch in inner:
        if quote:
            buf.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\" and quote == '"':
                escaped = True
            elif ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
            buf.append(ch)
        elif ch == ",":
            parts.append("".join(buf))
            buf = []
        else:
            buf.append(ch)
    parts.append("".join(buf))

    values = []
    for part in parts:
        part = part.strip()
        if _is_quoted(part):
            part = _unquote(part)
        else:
            part = part.strip("\"'")
        if part:
            values.append(part)
    return values


def _parse_value(raw: str) -> Any:
    if raw.startswith("[") and raw.endswith("]"):
        return _split_list(raw[1:-1])
    if raw == "true":
        return True
    if raw == "false":
        return False
    if _is_quoted(raw):
        return _unquote(raw)
    if _INT_RE.fullmatch(raw):
        return int(raw)
    if _FLOAT_RE.fullmatch(raw):
        return float(raw)
    return raw


def _parse_header(lines: list[str]) -> Metadata:
    metadata: Metadata = {}
    for line in lines:
        idx = line.find(":")
        if idx <= 0:
            continue
        key = line[:idx].strip()
        if not key:
            continue
        metadata[key] = _parse_value(line[idx + 1 :].strip())
    return metadata


def decode(text: str) -> tuple[Metadata, str]:
    """Split `text` into (metadata, body). Never raises.

    Without a `---` opening line followed by a closing `---` line, returns
    empty metadata and the whole input as the body.
    """
    if not isinstance(text, str):
        return {}, ""
    normalized = text[1:] if text.startswith("\ufeff") else text
    lines = normalized.split("\n")
    if not lines or lines[0].rstrip("\r") != DELIMITER:
        return {}, text

    for idx in range(1, len(lines)):
        if lines[idx].rstrip("\r") == DELIMITER:
            header = [line.rstrip("\r") for line in lines[1:idx]]
            body = "\n".join(lines[idx + 1 :])
            return _parse_header(header), body
    return {}, text
