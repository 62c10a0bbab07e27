"""Tests for the GitHub object store against a local fake of the Git Data API.

The fake server translates API calls onto an InMemoryObjectStore, so the
same git semantics (fast-forward refs, known blobs) apply.
"""

from __future__ import annotations

import base64

import pytest
import pytest_asyncio
from aiohttp import test_utils, web

from hubsync.config import RemoteConfig
from hubsync.remote.base import (
    AuthorizationError,
    ObjectStore,
    ObjectStoreError,
    RemoteStateError,
    TreeEntry,
)
from hubsync.remote.github import EMPTY_TREE, GitHubObjectStore
from hubsync.remote.memory import InMemoryObjectStore
from hubsync.sync.orchestrator import SyncOrchestrator

REPO = "/repos/{owner}/{name}"


def make_app(backend: InMemoryObjectStore, state: dict) -> web.Application:
    routes = web.RouteTableDef()

    @web.middleware
    async def gate(request: web.Request, handler):
        state["requests"].append((request.method, request.path))
        if request.headers.get("Authorization") != "token good":
            return web.json_response({"message": "Bad credentials"}, status=401)
        if state.get("rate_limited"):
            return web.json_response(
                {"message": "API rate limit exceeded"},
                status=403,
                headers={"X-RateLimit-Remaining": "0"},
            )
        try:
            return await handler(request)
        except RemoteStateError as e:
            return web.json_response({"message": str(e)}, status=e.status or 422)

    @routes.get("/user")
    async def user(request):
        return web.json_response({"login": backend.account})

    @routes.get(REPO + "/collaborators/{login}/permission")
    async def permission(request):
        return web.json_response({"permission": state["permission"], "role_name": state["permission"]})

    @routes.get(REPO)
    async def repo(request):
        return web.json_response({"default_branch": backend.default_branch})

    @routes.get(REPO + "/git/ref/heads/{branch:.+}")
    async def get_ref(request):
        tip = await backend.get_branch_tip(request.match_info["branch"])
        if tip is None:
            return web.json_response({"message": "Not Found"}, status=404)
        return web.json_response({"object": {"sha": tip, "type": "commit"}})

    @routes.get(REPO + "/git/commits/{sha}")
    async def get_commit(request):
        sha = request.match_info["sha"]
        return web.json_response({"sha": sha, "tree": {"sha": await backend.get_commit_tree(sha)}})

    @routes.get(REPO + "/git/trees/{sha}")
    async def get_tree(request):
        tree = backend.trees.get(request.match_info["sha"])
        if tree is None:
            return web.json_response({"message": "Not Found"}, status=404)
        entries = [{"path": "data", "type": "tree", "sha": "0" * 40}]
        entries += [{"path": p, "type": "blob", "sha": oid} for p, oid in sorted(tree.items())]
        return web.json_response({"tree": entries, "truncated": state.get("truncated", False)})

    @routes.get(REPO + "/git/blobs/{sha}")
    async def get_blob(request):
        raw = await backend.read_blob(request.match_info["sha"])
        return web.json_response({"content": base64.b64encode(raw).decode(), "encoding": "base64"})

    @routes.post(REPO + "/git/blobs")
    async def post_blob(request):
        body = await request.json()
        return web.json_response({"sha": await backend.create_blob(body["content"])}, status=201)

    @routes.post(REPO + "/git/trees")
    async def post_tree(request):
        body = await request.json()
        entries = [TreeEntry(e["path"], e["sha"]) for e in body["tree"]]
        sha = await backend.create_tree(body.get("base_tree"), entries)
        return web.json_response({"sha": sha}, status=201)

    @routes.post(REPO + "/git/commits")
    async def post_commit(request):
        body = await request.json()
        sha = await backend.create_commit(body["message"], body["tree"], body["parents"])
        return web.json_response({"sha": sha}, status=201)

    @routes.post(REPO + "/git/refs")
    async def post_ref(request):
        body = await request.json()
        await backend.create_ref(body["ref"].removeprefix("refs/heads/"), body["sha"])
        return web.json_response({"ref": body["ref"], "object": {"sha": body["sha"]}}, status=201)

    @routes.patch(REPO + "/git/refs/heads/{branch:.+}")
    async def patch_ref(request):
        body = await request.json()
        state["forced"] = body.get("force")
        await backend.update_ref(request.match_info["branch"], body["sha"])
        return web.json_response({"object": {"sha": body["sha"]}})

    @routes.post(REPO + "/pages/builds")
    async def pages_build(request):
        status = state.get("pages_status", 201)
        return web.json_response({"status": "queued", "message": "pages"}, status=status)

    @routes.post(REPO + "/actions/workflows/{workflow}/dispatches")
    async def dispatch(request):
        body = await request.json()
        state["dispatched"] = (request.match_info["workflow"], body["ref"])
        return web.Response(status=204)

    app = web.Application(middlewares=[gate])
    app.add_routes(routes)
    return app


@pytest_asyncio.fixture
async def fake_github():
    backend = InMemoryObjectStore(account="octocat")
    backend.trees[EMPTY_TREE] = {}
    state: dict = {"permission": "write", "requests": []}
    server = test_utils.TestServer(make_app(backend, state))
    await server.start_server()
    yield backend, state, f"http://{server.host}:{server.port}"
    await server.close()


def _config(url: str, **kwargs) -> RemoteConfig:
    kwargs.setdefault("token", "good")
    return RemoteConfig(repo="me/hub", api_url=url, **kwargs)


@pytest_asyncio.fixture
async def store(fake_github):
    _, _, url = fake_github
    s = GitHubObjectStore(_config(url))
    yield s
    await s.close()


class TestAccess:
    def test_repo_required(self):
        with pytest.raises(ValueError):
            GitHubObjectStore(RemoteConfig(token="t"))

    def test_satisfies_protocol(self):
        assert isinstance(GitHubObjectStore(RemoteConfig(repo="a/b")), ObjectStore)
        assert isinstance(InMemoryObjectStore(), ObjectStore)

    @pytest.mark.asyncio
    async def test_verify_access(self, store):
        assert await store.verify_access() == "octocat"

    @pytest.mark.asyncio
    async def test_read_only_permission(self, fake_github, store):
        _, state, _ = fake_github
        state["permission"] = "read"
        with pytest.raises(AuthorizationError, match="No write access"):
            await store.verify_access()

    @pytest.mark.asyncio
    async def test_bad_token(self, fake_github):
        _, _, url = fake_github
        async with GitHubObjectStore(_config(url, token="bad")) as s:
            with pytest.raises(AuthorizationError) as exc:
                await s.verify_access()
        assert exc.value.status == 401
        assert str(exc.value) == "Invalid token"

    @pytest.mark.asyncio
    async def test_bad_token_on_other_calls_keeps_detail(self, fake_github):
        _, _, url = fake_github
        async with GitHubObjectStore(_config(url, token="bad")) as s:
            with pytest.raises(AuthorizationError, match="Bad credentials"):
                await s.get_branch_tip("main")

    @pytest.mark.asyncio
    async def test_bad_token_fails_verify_flow(self, fake_github):
        _, _, url = fake_github
        async with GitHubObjectStore(_config(url, token="bad")) as s:
            result = await SyncOrchestrator(s, error_reset_seconds=0.01).verify()
        assert not result.success
        assert result.message == "Invalid token"

    @pytest.mark.asyncio
    async def test_missing_token_sends_nothing(self, fake_github):
        _, state, url = fake_github
        async with GitHubObjectStore(_config(url, token="")) as s:
            with pytest.raises(AuthorizationError, match="Token required"):
                await s.get_branch_tip("main")
        assert state["requests"] == []

    @pytest.mark.asyncio
    async def test_rate_limit_is_not_an_auth_error(self, fake_github, store):
        _, state, _ = fake_github
        state["rate_limited"] = True
        with pytest.raises(ObjectStoreError) as exc:
            await store.verify_access()
        assert not isinstance(exc.value, AuthorizationError)
        assert exc.value.status == 403

    @pytest.mark.asyncio
    async def test_connection_failure(self):
        async with GitHubObjectStore(_config("http://127.0.0.1:1", timeout=5)) as s:
            with pytest.raises(ObjectStoreError, match="failed"):
                await s.get_branch_tip("main")


class TestReads:
    @pytest.mark.asyncio
    async def test_branch_tip(self, fake_github, store):
        backend, _, _ = fake_github
        assert await store.get_branch_tip("main") is None
        tip = backend.seed("main", {"README.md": "x"})
        assert await store.get_branch_tip("main") == tip
        assert await store.get_default_branch_tip() == tip

    @pytest.mark.asyncio
    async def test_branch_with_slash(self, fake_github, store):
        backend, _, _ = fake_github
        tip = backend.seed("sync/content", {})
        assert await store.get_branch_tip("sync/content") == tip

    @pytest.mark.asyncio
    async def test_default_branch_without_commits(self, store):
        with pytest.raises(RemoteStateError):
            await store.get_default_branch_tip()

    @pytest.mark.asyncio
    async def test_list_files_under_root(self, fake_github, store):
        backend, _, _ = fake_github
        tip = backend.seed("main", {"data/W/C/F/a.md": "a", "database.txt": "d", "README.md": "r"})
        index = await store.list_files(tip, "data")
        assert list(index) == ["data/W/C/F/a.md"]
        assert await store.read_blob(index["data/W/C/F/a.md"]) == b"a"

    @pytest.mark.asyncio
    async def test_read_blob_bytes(self, fake_github, store):
        backend, _, _ = fake_github
        oid = await backend.create_blob("héllo")
        assert await store.read_blob(oid) == "héllo".encode("utf-8")

    @pytest.mark.asyncio
    async def test_missing_blob(self, store):
        with pytest.raises(RemoteStateError) as exc:
            await store.read_blob("f" * 40)
        assert exc.value.status == 404


class TestWrites:
    @pytest.mark.asyncio
    async def test_empty_tree_needs_no_request(self, fake_github, store):
        _, state, _ = fake_github
        assert await store.create_tree(None, []) == EMPTY_TREE
        assert state["requests"] == []

    @pytest.mark.asyncio
    async def test_commit_and_update_ref(self, fake_github, store):
        backend, state, _ = fake_github
        tip = backend.seed("main", {"data/W/C/F/old.md": "old"})
        base_tree = await store.get_commit_tree(tip)

        blob = await store.create_blob("new")
        tree = await store.create_tree(
            base_tree, [TreeEntry("data/W/C/F/new.md", blob), TreeEntry("data/W/C/F/old.md", None)]
        )
        commit = await store.create_commit("Sync", tree, [tip])
        await store.update_ref("main", commit)

        assert state["forced"] is False
        assert backend.files_at("main") == {"data/W/C/F/new.md": "new"}

    @pytest.mark.asyncio
    async def test_non_fast_forward_rejected(self, fake_github, store):
        backend, _, _ = fake_github
        tip = backend.seed("main", {})
        orphan = await store.create_commit("orphan", EMPTY_TREE, [])
        with pytest.raises(RemoteStateError, match="fast forward"):
            await store.update_ref("main", orphan)
        assert backend.refs["main"] == tip

    @pytest.mark.asyncio
    async def test_create_ref(self, fake_github, store):
        backend, _, _ = fake_github
        commit = await store.create_commit("root", EMPTY_TREE, [])
        await store.create_ref("content", commit)
        assert backend.refs["content"] == commit


class TestRebuild:
    @pytest.mark.asyncio
    async def test_pages_build(self, store):
        assert await store.trigger_rebuild() is True

    @pytest.mark.asyncio
    async def test_pages_build_failure(self, fake_github, store):
        _, state, _ = fake_github
        state["pages_status"] = 500
        assert await store.trigger_rebuild() is False

    @pytest.mark.asyncio
    async def test_workflow_dispatch(self, fake_github):
        _, state, url = fake_github
        async with GitHubObjectStore(_config(url, branch="content", rebuild_workflow="deploy.yml")) as s:
            assert await s.trigger_rebuild() is True
        assert state["dispatched"] == ("deploy.yml", "content")


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_push_and_pull(self, fake_github, store, snapshot):
        backend, _, _ = fake_github
        backend.seed("main", {"README.md": "site", "data/Gone/Notes/F/old.md": "old"})
        orch = SyncOrchestrator(store, success_reset_seconds=0.01)

        pushed = await orch.push(snapshot)
        assert pushed.success, pushed.message
        assert (pushed.created, pushed.deleted) == (4, 1)
        files = backend.files_at("main")
        assert "README.md" in files
        assert "data/Gone/Notes/F/old.md" not in files
        assert "data/Personal/Prompts/AI/Writing.md" in files

        pulled = await orch.pull()
        assert pulled.success, pulled.message
        assert pulled.snapshot.item_count() == 4

    @pytest.mark.asyncio
    async def test_bootstrap_empty_repository(self, fake_github, store, snapshot):
        backend, _, _ = fake_github
        result = await SyncOrchestrator(store, success_reset_seconds=0.01).push(snapshot)
        assert result.success, result.message
        assert len(backend.files_at("main")) == 4
