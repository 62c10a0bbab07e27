"""Configuration loading from environment variables and hubsync.toml."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

_HOME_DIR = Path.home() / ".hubsync"
_CONFIG_FILENAME = "hubsync.toml"


@dataclass
class RemoteConfig:
    """Remote repository holding the projected files."""

    token: str = ""
    repo: str = ""  # "owner/name"
    branch: str = "main"
    api_url: str = "https://api.github.com"
    root_path: str = "data"
    rebuild_workflow: str | None = None
    timeout: int = 30


@dataclass
class SyncConfig:
    """Push/pull behaviour."""

    batch_size: int = 20
    success_reset_seconds: float = 3.0
    error_reset_seconds: float = 5.0
    trigger_rebuild: bool = True
    include_manifest: bool = False


@dataclass
class HubConfig:
    """Top-level configuration."""

    remote: RemoteConfig = field(default_factory=RemoteConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    snapshot_file: Path = _HOME_DIR / "snapshot.json"
    export_dir: Path = _HOME_DIR / "export"
    log_level: str = "INFO"


def _as_bool(value: object) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def load_config(config_path: Path | None = None) -> HubConfig:
    """Load configuration from environment variables and optional hubsync.toml.

    Priority: environment variables > hubsync.toml > defaults.
    """
    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = tomllib.loads(config_path.read_text())
    else:
        # Search current dir and ~/.hubsync/
        for candidate in [Path.cwd() / _CONFIG_FILENAME, _HOME_DIR / _CONFIG_FILENAME]:
            if candidate.exists():
                file_data = tomllib.loads(candidate.read_text())
                break

    remote_data = file_data.get("remote", {})
    sync_data = file_data.get("sync", {})

    config = HubConfig(
        remote=RemoteConfig(
            token=os.getenv(
                "HUBSYNC_TOKEN", os.getenv("GITHUB_TOKEN", remote_data.get("token", ""))
            ),
            repo=os.getenv("HUBSYNC_REPO", remote_data.get("repo", "")),
            branch=os.getenv("HUBSYNC_BRANCH", remote_data.get("branch", "main")),
            api_url=os.getenv(
                "HUBSYNC_API_URL", remote_data.get("api_url", "https://api.github.com")
            ).rstrip("/"),
            root_path=os.getenv("HUBSYNC_ROOT", remote_data.get("root_path", "data")),
            rebuild_workflow=os.getenv(
                "HUBSYNC_REBUILD_WORKFLOW", remote_data.get("rebuild_workflow")
            ),
            timeout=int(remote_data.get("timeout", 30)),
        ),
        sync=SyncConfig(
            batch_size=int(os.getenv("HUBSYNC_BATCH_SIZE", sync_data.get("batch_size", 20))),
            success_reset_seconds=float(sync_data.get("success_reset_seconds", 3.0)),
            error_reset_seconds=float(sync_data.get("error_reset_seconds", 5.0)),
            trigger_rebuild=_as_bool(sync_data.get("trigger_rebuild", True)),
            include_manifest=_as_bool(sync_data.get("include_manifest", False)),
        ),
        snapshot_file=Path(
            os.getenv("HUBSYNC_SNAPSHOT", file_data.get("snapshot_file", str(_HOME_DIR / "snapshot.json")))
        ).expanduser(),
        export_dir=Path(
            os.getenv("HUBSYNC_EXPORT_DIR", file_data.get("export_dir", str(_HOME_DIR / "export")))
        ).expanduser(),
        log_level=os.getenv("HUBSYNC_LOG_LEVEL", file_data.get("log_level", "INFO")),
    )
    if config.sync.batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {config.sync.batch_size}")
    return config
