"""Entry point: python -m hubsync <command>

- preview [snapshot.json]          Dry-run: list the files a push would write
- export  [snapshot.json] [dir]    Write the projection to a local directory
- import  [dir] [snapshot.json]    Rebuild entities from a local directory
- verify                           Check the token can write to the repository
- push    [snapshot.json]          Commit the projection to the remote branch
- pull    [snapshot.json]          Merge remote files into the snapshot
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path

from hubsync.config import HubConfig, load_config
from hubsync.model import Snapshot

logger = logging.getLogger("hubsync")


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _arg(args: list[str], index: int, default: Path) -> Path:
    return Path(args[index]).expanduser() if len(args) > index else default


def _load_snapshot(path: Path) -> Snapshot:
    if not path.exists():
        logger.info("No snapshot at %s; starting empty", path)
        return Snapshot()
    snapshot = Snapshot.from_dict(json.loads(path.read_text(encoding="utf-8")))
    for problem in snapshot.integrity_errors():
        logger.warning("Snapshot: %s", problem)
    return snapshot


def _save_snapshot(snapshot: Snapshot, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(snapshot.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Snapshot written: %s", path)


# ── Offline commands ─────────────────────────────────────────


def _run_preview(config: HubConfig, args: list[str]) -> int:
    from hubsync.storage.projector import project

    snapshot = _load_snapshot(_arg(args, 0, config.snapshot_file))
    records = project(
        snapshot, config.remote.root_path, include_manifest=config.sync.include_manifest
    )
    for record in records:
        print(record.path)
    print(f"{len(records)} files")
    return 0


def _run_export(config: HubConfig, args: list[str]) -> int:
    from hubsync.storage.local import write_files
    from hubsync.storage.projector import project

    snapshot = _load_snapshot(_arg(args, 0, config.snapshot_file))
    out_dir = _arg(args, 1, config.export_dir)
    records = project(
        snapshot, config.remote.root_path, include_manifest=config.sync.include_manifest
    )
    count = write_files(records, out_dir)
    print(f"Exported {count} files to {out_dir}")
    return 0


def _run_import(config: HubConfig, args: list[str]) -> int:
    from hubsync.storage.local import read_files
    from hubsync.storage.reconstructor import reconstruct

    source = _arg(args, 0, config.export_dir)
    target = _arg(args, 1, config.snapshot_file)
    known = _load_snapshot(target)
    result = reconstruct(read_files(source, config.remote.root_path), known, config.remote.root_path)
    _save_snapshot(known.merged(result.snapshot), target)
    print(
        f"Imported {result.imported_count} items "
        f"({len(result.skipped)} skipped, {len(result.existing)} already known)"
    )
    return 0


# ── Remote commands ──────────────────────────────────────────


async def _remote(config: HubConfig, command: str, args: list[str]) -> int:
    from hubsync.remote.github import GitHubObjectStore
    from hubsync.sync.orchestrator import SyncOrchestrator

    snapshot_path = _arg(args, 0, config.snapshot_file)
    async with GitHubObjectStore(config.remote) as store:
        orchestrator = SyncOrchestrator.from_config(store, config)
        orchestrator.add_listener(lambda status, message: logger.info("[%s] %s", status.value, message))
        if command == "verify":
            result = await orchestrator.verify()
        elif command == "push":
            result = await orchestrator.push(_load_snapshot(snapshot_path))
        else:
            known = _load_snapshot(snapshot_path)
            result = await orchestrator.pull(known)
            if result.success and result.snapshot is not None:
                _save_snapshot(result.snapshot, snapshot_path)

    print(result.message)
    return 0 if result.success else 1


def main() -> None:
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    args = sys.argv[2:]

    offline = {"preview": _run_preview, "export": _run_export, "import": _run_import}
    if cmd not in offline and cmd not in ("verify", "push", "pull"):
        print(__doc__.split("\n\n", 1)[1].rstrip())
        sys.exit(1)

    config = load_config()
    _setup_logging(config.log_level)

    if cmd in offline:
        sys.exit(offline[cmd](config, args))
    try:
        sys.exit(asyncio.run(_remote(config, cmd, args)))
    except KeyboardInterrupt:
        sys.exit(1)


if __name__ == "__main__":
    main()
