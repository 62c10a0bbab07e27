"""Sync orchestrator: verify credentials, push a snapshot, pull one back.

Push protocol (the branch only moves at the last step):
1. Resolve the branch tip; if the branch is missing, take the default
   branch tip as parent (or a fresh root commit over an empty tree).
2. List remote files under the root.
3. Diff the projection against that listing.
4. Create blobs for create+update paths, `batch_size` at a time.
5. Create one tree over the parent tree: new blobs + null entries for deletes.
6. Create one commit on top of the parent.
7. Update (or, for a new branch, create) the branch ref.
8. Best-effort rebuild trigger.

A failure in 1–6 aborts without touching the ref and without cleaning up
objects already created; those stay unreferenced and invisible.

Status per attempt: idle → connecting|syncing → success|error → idle, the
last transition after a fixed delay. Only one attempt runs at a time.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, TypeVar

from hubsync.model import Snapshot
from hubsync.remote.base import AuthorizationError, ObjectStoreError, TreeEntry
from hubsync.storage.projector import project
from hubsync.storage.reconstructor import reconstruct
from hubsync.sync.diff import RemoteDiff, compute_diff

if TYPE_CHECKING:
    from hubsync.config import HubConfig
    from hubsync.remote.base import ObjectStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SyncStatus(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    SYNCING = "syncing"
    SUCCESS = "success"
    ERROR = "error"


# Called with (status, message) on every transition
StatusListener = Callable[[SyncStatus, str], None]


@dataclass
class SyncResult:
    """Outcome of one verify/push/pull attempt."""

    success: bool
    message: str
    created: int = 0
    updated: int = 0
    deleted: int = 0
    commit_id: str | None = None
    username: str | None = None
    snapshot: Snapshot | None = None
    skipped: int = 0
    data: dict = field(default_factory=dict)


class SyncOrchestrator:
    """Drives an ObjectStore through the verify / push / pull flows."""

    def __init__(
        self,
        store: ObjectStore,
        *,
        branch: str = "main",
        root_path: str = "data",
        batch_size: int = 20,
        success_reset_seconds: float = 3.0,
        error_reset_seconds: float = 5.0,
        trigger_rebuild: bool = True,
        include_manifest: bool = False,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self._store = store
        self.branch = branch
        self.root_path = root_path.strip("/")
        self.batch_size = batch_size
        self.success_reset_seconds = success_reset_seconds
        self.error_reset_seconds = error_reset_seconds
        self.trigger_rebuild = trigger_rebuild
        self.include_manifest = include_manifest

        self._status = SyncStatus.IDLE
        self._message = ""
        self._listeners: list[StatusListener] = []
        self._reset_handle: asyncio.TimerHandle | None = None
        self._in_flight = False

    @classmethod
    def from_config(cls, store: ObjectStore, config: HubConfig) -> SyncOrchestrator:
        return cls(
            store,
            branch=config.remote.branch,
            root_path=config.remote.root_path,
            batch_size=config.sync.batch_size,
            success_reset_seconds=config.sync.success_reset_seconds,
            error_reset_seconds=config.sync.error_reset_seconds,
            trigger_rebuild=config.sync.trigger_rebuild,
            include_manifest=config.sync.include_manifest,
        )

    # ── Status ───────────────────────────────────────────────

    @property
    def status(self) -> SyncStatus:
        return self._status

    @property
    def message(self) -> str:
        return self._message

    @property
    def busy(self) -> bool:
        return self._in_flight

    def add_listener(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def _set_status(self, status: SyncStatus, message: str) -> None:
        self._status = status
        self._message = message
        for listener in self._listeners:
            listener(status, message)

    def _cancel_reset(self) -> None:
        if self._reset_handle is not None:
            self._reset_handle.cancel()
            self._reset_handle = None

    def _reset(self) -> None:
        self._reset_handle = None
        self._set_status(SyncStatus.IDLE, "")

    def _finish(self, result: SyncResult) -> SyncResult:
        """Publish the outcome and schedule the revert to idle."""
        if result.success:
            self._set_status(SyncStatus.SUCCESS, result.message)
            delay = self.success_reset_seconds
        else:
            self._set_status(SyncStatus.ERROR, result.message)
            delay = self.error_reset_seconds
        self._cancel_reset()
        self._reset_handle = asyncio.get_running_loop().call_later(delay, self._reset)
        return result

    def _begin(self, status: SyncStatus, message: str) -> bool:
        """Claim the single-flight slot. False if another attempt is running."""
        if self._in_flight:
            logger.warning("Rejected %s: a sync is already in progress", status.value)
            return False
        self._in_flight = True
        self._cancel_reset()
        self._set_status(status, message)
        return True

    def _fail_unexpected(self, flow: str, error: Exception) -> None:
        """Publish an error status for a non-store failure; the caller re-raises."""
        logger.exception("%s failed unexpectedly", flow)
        self._finish(SyncResult(False, f"{flow} failed: {str(error) or type(error).__name__}"))

    # ── Helpers ──────────────────────────────────────────────

    async def _in_batches(
        self, keys: list[str], fn: Callable[[str], Awaitable[T]]
    ) -> dict[str, T]:
        """Run `fn` over `keys`, concurrently within a batch, batches in sequence."""
        results: dict[str, T] = {}
        for start in range(0, len(keys), self.batch_size):
            batch = keys[start : start + self.batch_size]
            values = await asyncio.gather(*(fn(key) for key in batch))
            results.update(zip(batch, values))
            logger.debug("Batch %d: %d requests done", start // self.batch_size + 1, len(batch))
        return results

    async def _resolve_parent(self) -> tuple[str, bool]:
        """Return (parent commit, branch exists)."""
        tip = await self._store.get_branch_tip(self.branch)
        if tip is not None:
            return tip, True

        logger.info("Branch %r not found; bootstrapping from the default branch", self.branch)
        try:
            return await self._store.get_default_branch_tip(), False
        except AuthorizationError:
            raise
        except ObjectStoreError as e:
            logger.info("No default branch tip (%s); starting from an empty tree", e)
        empty_tree = await self._store.create_tree(None, [])
        root_commit = await self._store.create_commit(
            f"Initialize {self.branch}", empty_tree, []
        )
        return root_commit, False

    # ── Flows ────────────────────────────────────────────────

    async def verify(self) -> SyncResult:
        """Check the credential can write to the remote."""
        if not self._begin(SyncStatus.CONNECTING, "Connecting..."):
            return SyncResult(False, "Sync already in progress")
        try:
            username = await self._store.verify_access()
        except ObjectStoreError as e:
            logger.warning("Credential check failed: %s", e)
            return self._finish(SyncResult(False, str(e) or "Failed to connect"))
        except Exception as e:
            self._fail_unexpected("Credential check", e)
            raise
        finally:
            self._in_flight = False
        return self._finish(SyncResult(True, f"Ready as @{username}", username=username))

    async def push(self, snapshot: Snapshot) -> SyncResult:
        """Project `snapshot` and apply it to the branch as a single commit."""
        if not self._begin(SyncStatus.SYNCING, "Saving..."):
            return SyncResult(False, "Sync already in progress")
        try:
            result = await self._push(snapshot)
        except ObjectStoreError as e:
            logger.error("Push aborted: %s", e)
            result = SyncResult(False, str(e) or "Failed to save")
        except Exception as e:
            self._fail_unexpected("Push", e)
            raise
        finally:
            self._in_flight = False
        return self._finish(result)

    async def _push(self, snapshot: Snapshot) -> SyncResult:
        records = project(snapshot, self.root_path, include_manifest=self.include_manifest)
        contents = {r.path: r.content for r in records}

        parent, branch_exists = await self._resolve_parent()
        base_tree = await self._store.get_commit_tree(parent)
        remote_index = await self._store.list_files(parent, self.root_path)
        diff = compute_diff(records, remote_index)
        logger.info("Push %s: %s", self.branch, diff.summary())

        if diff.is_empty and branch_exists:
            return SyncResult(True, "Nothing to sync", commit_id=parent)

        blob_ids = await self._in_batches(diff.upload, lambda p: self._store.create_blob(contents[p]))
        logger.info("Created %d blobs", len(blob_ids))

        entries = [TreeEntry(path, blob_ids[path]) for path in diff.upload]
        entries += [TreeEntry(path, None) for path in sorted(diff.delete)]
        tree = await self._store.create_tree(base_tree, entries)

        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        commit = await self._store.create_commit(f"Sync: {timestamp}", tree, [parent])

        if branch_exists:
            await self._store.update_ref(self.branch, commit)
        else:
            await self._store.create_ref(self.branch, commit)
        logger.info("Branch %s now at %s", self.branch, commit)

        return SyncResult(
            True,
            self._success_message(diff, await self._rebuild()),
            created=len(diff.create),
            updated=len(diff.update),
            deleted=len(diff.delete),
            commit_id=commit,
            data={"lastSync": datetime.now(timezone.utc).isoformat()},
        )

    async def _rebuild(self) -> bool | None:
        """None when disabled, otherwise whether the trigger went through."""
        if not self.trigger_rebuild:
            return None
        try:
            triggered = await self._store.trigger_rebuild()
        except ObjectStoreError as e:
            logger.warning("Rebuild trigger failed: %s", e)
            return False
        if not triggered:
            logger.warning("Rebuild was not triggered")
        return triggered

    @staticmethod
    def _success_message(diff: RemoteDiff, rebuilt: bool | None) -> str:
        saved = len(diff.create) + len(diff.update)
        message = f"Saved {saved} files ({diff.summary()})"
        if rebuilt is None:
            return message
        if rebuilt:
            return f"{message}. Site rebuilding... (~1 min)"
        return f"{message}. Rebuild could not be triggered; run it manually."

    async def pull(self, known: Snapshot | None = None) -> SyncResult:
        """Load the remote files and merge what is new into `known`."""
        if not self._begin(SyncStatus.SYNCING, "Loading..."):
            return SyncResult(False, "Sync already in progress")
        known = known or Snapshot()
        try:
            tip = await self._store.get_branch_tip(self.branch)
            if tip is None:
                result = SyncResult(False, f"Branch {self.branch!r} not found")
            else:
                index = await self._store.list_files(tip, self.root_path)
                contents = await self._in_batches(sorted(index), lambda p: self._store.read_blob(index[p]))
                rebuilt = reconstruct(contents, known, self.root_path)
                message = f"Loaded {rebuilt.imported_count} items"
                if rebuilt.skipped:
                    message += f", skipped {len(rebuilt.skipped)} files"
                result = SyncResult(
                    True,
                    message,
                    commit_id=tip,
                    snapshot=known.merged(rebuilt.snapshot),
                    skipped=len(rebuilt.skipped),
                    data={"lastSync": datetime.now(timezone.utc).isoformat()},
                )
        except ObjectStoreError as e:
            logger.error("Pull aborted: %s", e)
            result = SyncResult(False, str(e) or "Failed to load")
        except Exception as e:
            self._fail_unexpected("Pull", e)
            raise
        finally:
            self._in_flight = False
        return self._finish(result)
