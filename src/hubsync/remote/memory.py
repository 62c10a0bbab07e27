"""In-process object store with git-style content addressing.

Trees are flat path → blob id maps. Useful offline and as a test double:
`fail_on` makes named operations raise, `calls` records every operation.
"""

from __future__ import annotations

import hashlib
import json

from hubsync.remote.base import AuthorizationError, RemoteStateError, TreeEntry


def _object_id(kind: str, payload: str) -> str:
    data = payload.encode("utf-8")
    return hashlib.sha1(f"{kind} {len(data)}\0".encode("utf-8") + data).hexdigest()


class InMemoryObjectStore:
    """Blobs, trees, commits and refs held in dicts."""

    def __init__(self, default_branch: str = "main", account: str = "local") -> None:
        self.default_branch = default_branch
        self.account = account
        self.authorized = True
        self.blobs: dict[str, str] = {}
        self.trees: dict[str, dict[str, str]] = {}
        self.commits: dict[str, dict] = {}
        self.refs: dict[str, str] = {}
        self.fail_on: set[str] = set()
        self.calls: list[str] = []
        self.rebuilds = 0

    def _enter(self, op: str) -> None:
        self.calls.append(op)
        if op in self.fail_on:
            raise RemoteStateError(f"{op} failed (injected)")

    def _tree(self, tree_id: str) -> dict[str, str]:
        if tree_id not in self.trees:
            raise RemoteStateError(f"Unknown tree {tree_id}", status=404)
        return self.trees[tree_id]

    # ── Seeding helpers ──────────────────────────────────────

    def seed(self, branch: str, files: dict[str, str], message: str = "Initial commit") -> str:
        """Write `files` as a root commit on `branch` without recording calls."""
        tree = {path: self._put_blob(content) for path, content in files.items()}
        tree_id = self._put_tree(tree)
        commit_id = self._put_commit(message, tree_id, [])
        self.refs[branch] = commit_id
        return commit_id

    def files_at(self, branch: str) -> dict[str, str]:
        """Path → content at the branch tip."""
        commit = self.commits[self.refs[branch]]
        return {path: self.blobs[oid] for path, oid in self.trees[commit["tree"]].items()}

    def _put_blob(self, content: str) -> str:
        oid = _object_id("blob", content)
        self.blobs[oid] = content
        return oid

    def _put_tree(self, tree: dict[str, str]) -> str:
        oid = _object_id("tree", json.dumps(sorted(tree.items())))
        self.trees[oid] = dict(tree)
        return oid

    def _put_commit(self, message: str, tree: str, parents: list[str]) -> str:
        payload = json.dumps({"message": message, "tree": tree, "parents": parents})
        oid = _object_id("commit", payload)
        self.commits[oid] = {"message": message, "tree": tree, "parents": list(parents)}
        return oid

    # ── ObjectStore ──────────────────────────────────────────

    async def verify_access(self) -> str:
        self._enter("verify_access")
        if not self.authorized:
            raise AuthorizationError("Invalid token", status=401)
        return self.account

    async def get_branch_tip(self, branch: str) -> str | None:
        self._enter("get_branch_tip")
        return self.refs.get(branch)

    async def get_default_branch_tip(self) -> str:
        self._enter("get_default_branch_tip")
        tip = self.refs.get(self.default_branch)
        if tip is None:
            raise RemoteStateError(f"Default branch {self.default_branch!r} not found", status=404)
        return tip

    async def get_commit_tree(self, commit_id: str) -> str:
        self._enter("get_commit_tree")
        if commit_id not in self.commits:
            raise RemoteStateError(f"Unknown commit {commit_id}", status=404)
        return self.commits[commit_id]["tree"]

    async def list_files(self, commit_id: str, root_path: str) -> dict[str, str]:
        self._enter("list_files")
        if commit_id not in self.commits:
            raise RemoteStateError(f"Unknown commit {commit_id}", status=404)
        tree = self._tree(self.commits[commit_id]["tree"])
        prefix = root_path.strip("/") + "/"
        return {path: oid for path, oid in tree.items() if path.startswith(prefix)}

    async def read_blob(self, object_id: str) -> bytes:
        self._enter("read_blob")
        if object_id not in self.blobs:
            raise RemoteStateError(f"Unknown blob {object_id}", status=404)
        return self.blobs[object_id].encode("utf-8")

    async def create_blob(self, content: str) -> str:
        self._enter("create_blob")
        return self._put_blob(content)

    async def create_tree(self, base_tree: str | None, entries: list[TreeEntry]) -> str:
        self._enter("create_tree")
        tree = dict(self._tree(base_tree)) if base_tree else {}
        for entry in entries:
            if entry.object_id is None:
                if entry.path not in tree:
                    raise RemoteStateError(f"Cannot delete missing path {entry.path}", status=422)
                del tree[entry.path]
            else:
                if entry.object_id not in self.blobs:
                    raise RemoteStateError(f"Unknown blob {entry.object_id}", status=422)
                tree[entry.path] = entry.object_id
        return self._put_tree(tree)

    async def create_commit(self, message: str, tree: str, parents: list[str]) -> str:
        self._enter("create_commit")
        self._tree(tree)
        return self._put_commit(message, tree, parents)

    async def create_ref(self, branch: str, object_id: str) -> None:
        self._enter("create_ref")
        if branch in self.refs:
            raise RemoteStateError(f"Reference {branch!r} already exists", status=422)
        self.refs[branch] = object_id

    async def update_ref(self, branch: str, object_id: str) -> None:
        self._enter("update_ref")
        if branch not in self.refs:
            raise RemoteStateError(f"Reference {branch!r} does not exist", status=422)
        if object_id not in self.commits:
            raise RemoteStateError(f"Unknown commit {object_id}", status=422)
        # Fast-forward only, like a non-forced ref update
        if self.refs[branch] not in self.commits[object_id]["parents"]:
            raise RemoteStateError("Update is not a fast forward", status=422)
        self.refs[branch] = object_id

    async def trigger_rebuild(self) -> bool:
        self._enter("trigger_rebuild")
        self.rebuilds += 1
        return True
