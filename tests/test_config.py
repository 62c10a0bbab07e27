"""Tests for configuration loading."""

import pytest
from pathlib import Path

from hubsync.config import load_config

_ENV_KEYS = [
    "HUBSYNC_TOKEN",
    "GITHUB_TOKEN",
    "HUBSYNC_REPO",
    "HUBSYNC_BRANCH",
    "HUBSYNC_API_URL",
    "HUBSYNC_ROOT",
    "HUBSYNC_REBUILD_WORKFLOW",
    "HUBSYNC_BATCH_SIZE",
    "HUBSYNC_SNAPSHOT",
    "HUBSYNC_EXPORT_DIR",
    "HUBSYNC_LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


class TestConfig:
    def test_defaults(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        config = load_config(tmp_path / "missing.toml")
        assert config.remote.branch == "main"
        assert config.remote.api_url == "https://api.github.com"
        assert config.remote.root_path == "data"
        assert config.remote.rebuild_workflow is None
        assert config.sync.batch_size == 20
        assert config.sync.success_reset_seconds == 3.0
        assert config.sync.error_reset_seconds == 5.0
        assert config.sync.include_manifest is False
        assert config.snapshot_file.name == "snapshot.json"

    def test_env_override(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HUBSYNC_TOKEN", "tok")
        monkeypatch.setenv("HUBSYNC_REPO", "me/hub")
        monkeypatch.setenv("HUBSYNC_BATCH_SIZE", "5")
        monkeypatch.setenv("HUBSYNC_API_URL", "https://ghe.example.com/api/v3/")

        config = load_config(tmp_path / "missing.toml")
        assert config.remote.token == "tok"
        assert config.remote.repo == "me/hub"
        assert config.sync.batch_size == 5
        assert config.remote.api_url == "https://ghe.example.com/api/v3"

    def test_github_token_fallback(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("GITHUB_TOKEN", "gh")
        assert load_config(tmp_path / "missing.toml").remote.token == "gh"

        monkeypatch.setenv("HUBSYNC_TOKEN", "hub")
        assert load_config(tmp_path / "missing.toml").remote.token == "hub"

    def test_toml_file(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        toml_path = tmp_path / "hubsync.toml"
        toml_path.write_text("""
snapshot_file = "/tmp/snap.json"

[remote]
repo = "owner/site"
branch = "content"
root_path = "vault"
rebuild_workflow = "deploy.yml"

[sync]
batch_size = 10
trigger_rebuild = false
include_manifest = true
""")
        config = load_config(toml_path)
        assert config.remote.repo == "owner/site"
        assert config.remote.branch == "content"
        assert config.remote.root_path == "vault"
        assert config.remote.rebuild_workflow == "deploy.yml"
        assert config.sync.batch_size == 10
        assert config.sync.trigger_rebuild is False
        assert config.sync.include_manifest is True
        assert config.snapshot_file == Path("/tmp/snap.json")

    def test_cwd_file_discovered(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "hubsync.toml").write_text('[remote]\nrepo = "found/it"\n')
        assert load_config().remote.repo == "found/it"

    def test_env_overrides_toml(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HUBSYNC_BRANCH", "env-branch")

        toml_path = tmp_path / "hubsync.toml"
        toml_path.write_text("""
[remote]
branch = "toml-branch"
""")
        config = load_config(toml_path)
        assert config.remote.branch == "env-branch"  # env wins

    def test_invalid_batch_size(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HUBSYNC_BATCH_SIZE", "0")
        with pytest.raises(ValueError):
            load_config(tmp_path / "missing.toml")
