"""GitHub Git Data API as an object store (aiohttp).

Endpoints used, all under /repos/{owner}/{name}:
    GET   git/ref/heads/{branch}          branch tip
    GET   git/commits/{sha}               commit → tree
    GET   git/trees/{sha}?recursive=1     file listing
    GET   git/blobs/{sha}                 blob content (base64)
    POST  git/blobs | git/trees | git/commits | git/refs
    PATCH git/refs/heads/{branch}         non-forced ref update
    POST  actions/workflows/{wf}/dispatches  or  pages/builds   rebuild
"""

from __future__ import annotations

import asyncio
import base64
import logging
from typing import Any

import aiohttp

from hubsync.config import RemoteConfig
from hubsync.remote.base import AuthorizationError, ObjectStoreError, RemoteStateError, TreeEntry

logger = logging.getLogger(__name__)

EMPTY_TREE = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"
FILE_MODE = "100644"
WRITE_PERMISSIONS = ("admin", "maintain", "write")


class GitHubObjectStore:
    """Object store backed by one GitHub repository."""

    def __init__(self, config: RemoteConfig, session: aiohttp.ClientSession | None = None) -> None:
        if not config.repo:
            raise ValueError("remote.repo is required (owner/name)")
        self._config = config
        self._session = session
        self._owns_session = session is None

    @property
    def _repo_path(self) -> str:
        return f"/repos/{self._config.repo}"

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._config.timeout),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> GitHubObjectStore:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── Transport ────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        json: dict | None = None,
        params: dict | None = None,
        allow_missing: bool = False,
    ) -> Any:
        """Send one API call; map HTTP failures onto the ObjectStoreError hierarchy.

        Returns parsed JSON, None for empty bodies, or None on 404 when
        `allow_missing` is set.
        """
        if not self._config.token:
            raise AuthorizationError("Token required")
        headers = {
            "Authorization": f"token {self._config.token}",
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "hubsync",
        }
        url = f"{self._config.api_url}{endpoint}"
        logger.debug("%s %s", method, endpoint)
        try:
            async with self._get_session().request(
                method, url, json=json, params=params, headers=headers
            ) as resp:
                if resp.status == 404 and allow_missing:
                    return None
                if resp.status >= 400:
                    detail = await self._error_detail(resp)
                    raise self._error_for(resp, f"{method} {endpoint}: {detail}")
                if resp.status == 204 or resp.content_length == 0:
                    return None
                return await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ObjectStoreError(f"{method} {endpoint} failed: {str(e) or type(e).__name__}") from e

    @staticmethod
    async def _error_detail(resp: aiohttp.ClientResponse) -> str:
        try:
            body = await resp.json(content_type=None)
        except (aiohttp.ContentTypeError, ValueError):
            return f"HTTP {resp.status}"
        if isinstance(body, dict) and body.get("message"):
            return f"HTTP {resp.status} {body['message']}"
        return f"HTTP {resp.status}"

    @staticmethod
    def _error_for(resp: aiohttp.ClientResponse, message: str) -> ObjectStoreError:
        status = resp.status
        if status == 401:
            return AuthorizationError(message, status=status)
        if status == 403:
            if resp.headers.get("X-RateLimit-Remaining") == "0":
                return ObjectStoreError(message, status=status)
            return AuthorizationError(message, status=status)
        if status in (404, 409, 422):
            return RemoteStateError(message, status=status)
        return ObjectStoreError(message, status=status)

    # ── ObjectStore ──────────────────────────────────────────

    async def verify_access(self) -> str:
        try:
            user = await self._request("GET", "/user")
        except AuthorizationError as e:
            if e.status == 401:
                raise AuthorizationError("Invalid token", status=401) from e
            raise
        login = user.get("login", "") if isinstance(user, dict) else ""
        if not login:
            raise AuthorizationError("Invalid token")
        try:
            data = await self._request(
                "GET", f"{self._repo_path}/collaborators/{login}/permission"
            )
        except RemoteStateError as e:
            raise AuthorizationError("No write access. Contact the owner.", status=e.status) from e
        permission = (data or {}).get("permission", "")
        role = (data or {}).get("role_name", "")
        if permission not in WRITE_PERMISSIONS and role not in WRITE_PERMISSIONS:
            raise AuthorizationError("No write access. Contact the owner.")
        return login

    async def get_branch_tip(self, branch: str) -> str | None:
        data = await self._request(
            "GET", f"{self._repo_path}/git/ref/heads/{branch}", allow_missing=True
        )
        if data is None:
            return None
        return data["object"]["sha"]

    async def get_default_branch_tip(self) -> str:
        repo = await self._request("GET", self._repo_path)
        default = (repo or {}).get("default_branch")
        if not default:
            raise RemoteStateError("Repository has no default branch")
        tip = await self.get_branch_tip(default)
        if tip is None:
            raise RemoteStateError(f"Default branch {default!r} has no commits", status=404)
        return tip

    async def get_commit_tree(self, commit_id: str) -> str:
        data = await self._request("GET", f"{self._repo_path}/git/commits/{commit_id}")
        return data["tree"]["sha"]

    async def list_files(self, commit_id: str, root_path: str) -> dict[str, str]:
        tree_id = await self.get_commit_tree(commit_id)
        data = await self._request(
            "GET", f"{self._repo_path}/git/trees/{tree_id}", params={"recursive": "1"}
        )
        if data.get("truncated"):
            logger.warning("Remote tree listing is truncated; deletions may be incomplete")
        prefix = root_path.strip("/") + "/"
        return {
            entry["path"]: entry["sha"]
            for entry in data.get("tree", [])
            if entry.get("type") == "blob" and entry.get("path", "").startswith(prefix)
        }

    async def read_blob(self, object_id: str) -> bytes:
        data = await self._request("GET", f"{self._repo_path}/git/blobs/{object_id}")
        content = data.get("content", "")
        if data.get("encoding") == "base64":
            return base64.b64decode(content)
        return content.encode("utf-8")

    async def create_blob(self, content: str) -> str:
        data = await self._request(
            "POST",
            f"{self._repo_path}/git/blobs",
            json={"content": content, "encoding": "utf-8"},
        )
        return data["sha"]

    async def create_tree(self, base_tree: str | None, entries: list[TreeEntry]) -> str:
        if base_tree is None and not entries:
            return EMPTY_TREE
        body: dict[str, Any] = {
            "tree": [
                {"path": e.path, "mode": FILE_MODE, "type": "blob", "sha": e.object_id}
                for e in entries
            ]
        }
        if base_tree is not None:
            body["base_tree"] = base_tree
        data = await self._request("POST", f"{self._repo_path}/git/trees", json=body)
        return data["sha"]

    async def create_commit(self, message: str, tree: str, parents: list[str]) -> str:
        data = await self._request(
            "POST",
            f"{self._repo_path}/git/commits",
            json={"message": message, "tree": tree, "parents": list(parents)},
        )
        return data["sha"]

    async def create_ref(self, branch: str, object_id: str) -> None:
        await self._request(
            "POST",
            f"{self._repo_path}/git/refs",
            json={"ref": f"refs/heads/{branch}", "sha": object_id},
        )

    async def update_ref(self, branch: str, object_id: str) -> None:
        await self._request(
            "PATCH",
            f"{self._repo_path}/git/refs/heads/{branch}",
            json={"sha": object_id, "force": False},
        )

    async def trigger_rebuild(self) -> bool:
        try:
            if self._config.rebuild_workflow:
                await self._request(
                    "POST",
                    f"{self._repo_path}/actions/workflows/{self._config.rebuild_workflow}/dispatches",
                    json={"ref": self._config.branch},
                )
            else:
                await self._request("POST", f"{self._repo_path}/pages/builds")
        except ObjectStoreError as e:
            logger.warning("Rebuild trigger failed: %s", e)
            return False
        return True
