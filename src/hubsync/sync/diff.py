"""Classify paths of a projection against a remote index.

Every path present on both sides is an update: comparing remote content
hashes costs as much as re-uploading, so no short-circuit is attempted.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from hubsync.model import FileRecord


@dataclass(frozen=True)
class RemoteDiff:
    create: frozenset[str] = field(default_factory=frozenset)
    update: frozenset[str] = field(default_factory=frozenset)
    delete: frozenset[str] = field(default_factory=frozenset)

    @property
    def upload(self) -> list[str]:
        """Paths needing a new blob (create + update), sorted."""
        return sorted(self.create | self.update)

    @property
    def is_empty(self) -> bool:
        return not (self.create or self.update or self.delete)

    def summary(self) -> str:
        return f"{len(self.create)} created, {len(self.update)} updated, {len(self.delete)} deleted"


def compute_diff(records: Iterable[FileRecord], remote_index: Mapping[str, str]) -> RemoteDiff:
    local = {r.path for r in records}
    remote = set(remote_index)
    return RemoteDiff(
        create=frozenset(local - remote),
        update=frozenset(local & remote),
        delete=frozenset(remote - local),
    )
