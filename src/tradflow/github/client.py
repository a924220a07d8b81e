# Copyright 2025 KTTC AI (https://github.com/kttc-ai)
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""GitHub REST API client for repository objects and pull requests.

Uses aiohttp for lightweight, async operation. Every call forwards the
caller's credential unchanged: the client never stores, caches or mints
tokens, and never retries. One method call issues exactly one request.

API Documentation: https://docs.github.com/en/rest/git
"""

from __future__ import annotations

import asyncio
import base64
import logging
from collections.abc import Mapping, Sequence
from types import TracebackType
from typing import Any

import aiohttp

from . import routes
from .base import RemoteConnectionError, RemoteError

logger = logging.getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"
BLOB_MODE = "100644"


class RemoteRepositoryClient:
    """Client bound to one GitHub repository.

    Example:
        >>> async with RemoteRepositoryClient("owner", "repo") as client:
        ...     sha = await client.get_branch_head("main", credential="Bearer ...")
    """

    def __init__(
        self,
        owner: str,
        repo: str,
        base_url: str = routes.GITHUB_API_URL,
        timeout: float = 30.0,
    ):
        """Initialize the client.

        Args:
            owner: Repository owner (user or organisation)
            repo: Repository name
            base_url: API root, overridable for GitHub Enterprise
            timeout: Total request timeout in seconds (0 disables it)
        """
        self.owner = owner
        self.repo = repo
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> RemoteRepositoryClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout or None),
                headers={
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": GITHUB_API_VERSION,
                    "User-Agent": "tradflow",
                },
            )
        return self._session

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def request(
        self,
        method: str,
        path: str,
        *,
        credential: str | None,
        json: Any = None,
        params: Mapping[str, str] | None = None,
    ) -> Any:
        """Issue one authenticated request and return the parsed JSON body.

        Args:
            method: HTTP method
            path: Route path from ``tradflow.github.routes``
            credential: Authorization header value, forwarded verbatim
            json: Optional JSON request body
            params: Optional query parameters

        Returns:
            Parsed JSON body, or None for empty responses

        Raises:
            RemoteError: If the API answers with a non-2xx status or a body that is not JSON
            RemoteConnectionError: If the API cannot be reached
        """
        session = await self._get_session()
        url = f"{self.base_url}{path}"
        headers = {"Authorization": credential} if credential else {}

        logger.debug(
            "%s %s (authorization %s)", method, path, "present" if credential else "missing"
        )

        try:
            async with session.request(
                method, url, headers=headers, json=json, params=params
            ) as response:
                logger.debug("%s %s -> %s", method, path, response.status)
                if response.status >= 300:
                    raise RemoteError(
                        response.status, response.reason or "", await response.text()
                    )
                if response.status == 204:
                    return None
                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    raise RemoteError(
                        response.status, response.reason or "", await response.text()
                    ) from e

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("%s %s failed: %s", method, path, e)
            raise RemoteConnectionError(str(e) or type(e).__name__) from e

    # Refs and commits

    async def get_ref_head(self, ref: str, credential: str | None) -> str:
        """Sha of the commit a branch name (or sha) currently points at."""
        data = await self.request(
            "GET", routes.commits(self.owner, self.repo, ref), credential=credential
        )
        return str(data["sha"])

    async def get_branch_head(self, branch: str, credential: str | None) -> str:
        """Sha the ``refs/heads/{branch}`` ref points at."""
        data = await self.request(
            "GET", routes.get_branch(self.owner, self.repo, branch), credential=credential
        )
        return str(data["object"]["sha"])

    async def get_commit_tree(self, commit_sha: str, credential: str | None) -> str:
        """Sha of the tree a commit snapshots."""
        data = await self.request(
            "GET", routes.git_commit(self.owner, self.repo, commit_sha), credential=credential
        )
        return str(data["tree"]["sha"])

    async def create_branch(self, branch: str, sha: str, credential: str | None) -> dict[str, Any]:
        return await self.request(
            "POST",
            routes.create_ref(self.owner, self.repo),
            credential=credential,
            json={"ref": f"refs/heads/{branch}", "sha": sha},
        )

    async def update_branch_head(
        self, branch: str, sha: str, credential: str | None
    ) -> dict[str, Any]:
        return await self.request(
            "PATCH",
            routes.update_branch_head(self.owner, self.repo, branch),
            credential=credential,
            json={"sha": sha},
        )

    async def compare(self, base: str, head: str, credential: str | None) -> dict[str, Any]:
        return await self.request(
            "GET", routes.compare_commits(self.owner, self.repo, base, head), credential=credential
        )

    # Git objects

    async def create_blob(self, content: str, credential: str | None) -> str:
        data = await self.request(
            "POST",
            routes.create_blob(self.owner, self.repo),
            credential=credential,
            json={"content": content, "encoding": "utf-8"},
        )
        return str(data["sha"])

    async def create_tree(
        self, base_tree: str, entries: Sequence[Mapping[str, str]], credential: str | None
    ) -> str:
        """Create a tree layered on ``base_tree``.

        Args:
            base_tree: Sha of the tree to extend
            entries: Tree entries (path, mode, type, sha)
            credential: Authorization header value

        Returns:
            Sha of the new tree
        """
        data = await self.request(
            "POST",
            routes.create_tree(self.owner, self.repo),
            credential=credential,
            json={"base_tree": base_tree, "tree": [dict(entry) for entry in entries]},
        )
        return str(data["sha"])

    async def create_commit(
        self, message: str, tree: str, parents: Sequence[str], credential: str | None
    ) -> str:
        data = await self.request(
            "POST",
            routes.create_commit(self.owner, self.repo),
            credential=credential,
            json={"message": message, "tree": tree, "parents": list(parents)},
        )
        return str(data["sha"])

    # Contents

    async def get_file(self, path: str, ref: str, credential: str | None) -> dict[str, Any]:
        """Contents API metadata for ``path`` at ``ref`` (sha, download_url, ...)."""
        return await self.request(
            "GET",
            routes.read_file(self.owner, self.repo, path),
            credential=credential,
            params={"ref": ref},
        )

    async def put_file(
        self,
        path: str,
        *,
        message: str,
        content: str,
        branch: str,
        sha: str | None,
        credential: str | None,
    ) -> dict[str, Any]:
        """Create or replace a file with a single commit on ``branch``."""
        body: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": branch,
        }
        if sha:
            body["sha"] = sha
        return await self.request(
            "PUT", routes.edit_file(self.owner, self.repo, path), credential=credential, json=body
        )

    # Pull requests

    async def list_pull_requests(
        self, credential: str | None, **filters: str
    ) -> list[dict[str, Any]]:
        data = await self.request(
            "GET",
            routes.pull_requests(self.owner, self.repo),
            credential=credential,
            params=filters or None,
        )
        return list(data or [])

    async def create_pull_request(
        self, title: str, head: str, base: str, credential: str | None
    ) -> dict[str, Any]:
        return await self.request(
            "POST",
            routes.pull_requests(self.owner, self.repo),
            credential=credential,
            json={"title": title, "head": head, "base": base},
        )

    async def list_reviews(self, number: int, credential: str | None) -> list[dict[str, Any]]:
        data = await self.request(
            "GET", routes.pull_request_reviews(self.owner, self.repo, number), credential=credential
        )
        return list(data or [])

    async def create_review(
        self, number: int, event: str, body: str, credential: str | None
    ) -> dict[str, Any]:
        return await self.request(
            "POST",
            routes.pull_request_reviews(self.owner, self.repo, number),
            credential=credential,
            json={"event": event, "body": body},
        )

    # Labels

    async def add_labels(
        self, number: int, names: Sequence[str], credential: str | None
    ) -> list[dict[str, Any]]:
        data = await self.request(
            "POST",
            routes.issue_labels(self.owner, self.repo, number),
            credential=credential,
            json=list(names),
        )
        return list(data or [])

    async def remove_label(self, number: int, name: str, credential: str | None) -> None:
        await self.request(
            "DELETE", routes.issue_label(self.owner, self.repo, number, name), credential=credential
        )

    async def create_label(
        self, name: str, color: str, description: str, credential: str | None
    ) -> dict[str, Any]:
        return await self.request(
            "POST",
            routes.labels(self.owner, self.repo),
            credential=credential,
            json={"name": name, "color": color, "description": description},
        )
