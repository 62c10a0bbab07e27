"""Object-store protocol and the remote error hierarchy."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


class ObjectStoreError(RuntimeError):
    """Any failure talking to the remote object store."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class AuthorizationError(ObjectStoreError):
    """Invalid credential or missing write permission."""


class RemoteStateError(ObjectStoreError):
    """The remote refused an operation: missing branch, rejected object or ref update."""


@dataclass(frozen=True)
class TreeEntry:
    """One path in a new tree. `object_id=None` deletes the path."""

    path: str
    object_id: str | None


@runtime_checkable
class ObjectStore(Protocol):
    """Content-addressable remote: blobs, trees, commits and branch refs."""

    async def verify_access(self) -> str:
        """Check the credential can write. Returns the account name."""
        ...

    async def get_branch_tip(self, branch: str) -> str | None:
        """Commit id at the branch tip, or None when the branch does not exist."""
        ...

    async def get_default_branch_tip(self) -> str:
        ...

    async def get_commit_tree(self, commit_id: str) -> str:
        ...

    async def list_files(self, commit_id: str, root_path: str) -> dict[str, str]:
        """Recursive path → blob id map of files under `root_path` at `commit_id`."""
        ...

    async def read_blob(self, object_id: str) -> bytes:
        """Raw blob bytes; decoding is left to the caller."""
        ...

    async def create_blob(self, content: str) -> str:
        ...

    async def create_tree(self, base_tree: str | None, entries: list[TreeEntry]) -> str:
        ...

    async def create_commit(self, message: str, tree: str, parents: list[str]) -> str:
        ...

    async def create_ref(self, branch: str, object_id: str) -> None:
        ...

    async def update_ref(self, branch: str, object_id: str) -> None:
        """Repoint an existing branch. Raises RemoteStateError when rejected."""
        ...

    async def trigger_rebuild(self) -> bool:
        """Best-effort downstream rebuild. Returns False when it could not be triggered."""
        ...
