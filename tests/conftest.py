"""Shared pytest fixtures for tradflow tests.

Provides an in-memory GitHub double, workflow components wired to it,
and common utilities.
"""

from __future__ import annotations

import base64
import copy
import hashlib
import logging
import os
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any
from urllib.parse import unquote

import pytest

from tradflow.core.cache import FileManifestCache
from tradflow.core.commits import BranchCommitOrchestrator
from tradflow.core.lifecycle import TranslationUnitLifecycle, WorkflowLabels
from tradflow.core.manifest import DEFAULT_FILE_DESCRIPTORS, FileManifestResolver
from tradflow.core.workflow import TranslationWorkflow
from tradflow.github.base import RemoteError
from tradflow.github.client import RemoteRepositoryClient
from tradflow.utils.config import Settings, load_settings

OWNER = "owner"
REPO = "repo"
MAIN = "main"
CREDENTIAL = "Bearer test-token"
LABELS = WorkflowLabels(translation="translation", wip="wip", review="review")
CREATION_TIME = datetime(2024, 1, 1, 0, 0, 0)
CREATION_BRANCH = "2024-01-01-00-00-00-000"

# ============================================================================
# In-memory GitHub
# ============================================================================


def _sha(*parts: object) -> str:
    return hashlib.sha1("\0".join(str(part) for part in parts).encode("utf-8")).hexdigest()


def _not_found(message: str = "Not Found") -> RemoteError:
    return RemoteError(404, "Not Found", f'{{"message": "{message}"}}')


def _unprocessable(message: str) -> RemoteError:
    return RemoteError(422, "Unprocessable Entity", f'{{"message": "{message}"}}')


@dataclass
class Call:
    """One request received by FakeGitHub."""

    method: str
    path: str
    credential: str | None
    json: Any
    params: dict[str, str] | None


class FakeGitHub(RemoteRepositoryClient):
    """RemoteRepositoryClient whose transport is an in-memory repository.

    Only ``request`` is replaced, so the typed helpers and the route table
    are exercised as in production. Objects are content addressed like
    git: blobs by content, trees by entries, commits by tree, parents and
    message.
    """

    ROUTES: list[tuple[str, str, str]] = [
        ("GET", r"/commits/(?P<ref>[^/]+)", "_get_commit_for_ref"),
        ("GET", r"/git/ref/heads/(?P<branch>.+)", "_get_ref"),
        ("PATCH", r"/git/refs/heads/(?P<branch>.+)", "_update_ref"),
        ("POST", r"/git/refs", "_create_ref"),
        ("GET", r"/git/commits/(?P<sha>[^/]+)", "_get_git_commit"),
        ("POST", r"/git/blobs", "_create_blob"),
        ("POST", r"/git/trees", "_create_tree"),
        ("POST", r"/git/commits", "_create_commit"),
        ("GET", r"/contents/(?P<path>.+)", "_get_contents"),
        ("PUT", r"/contents/(?P<path>.+)", "_put_contents"),
        ("GET", r"/pulls", "_list_pulls"),
        ("POST", r"/pulls", "_create_pull"),
        ("GET", r"/pulls/(?P<number>\d+)/reviews", "_list_reviews"),
        ("POST", r"/pulls/(?P<number>\d+)/reviews", "_create_review"),
        ("POST", r"/issues/(?P<number>\d+)/labels", "_add_labels"),
        ("DELETE", r"/issues/(?P<number>\d+)/labels/(?P<name>.+)", "_remove_label"),
        ("POST", r"/labels", "_create_repo_label"),
        ("GET", r"/compare/(?P<base>.+)\.\.\.(?P<head>.+)", "_compare"),
    ]

    def __init__(self) -> None:
        super().__init__(OWNER, REPO)
        self.calls: list[Call] = []
        self.blobs: dict[str, str] = {}
        self.trees: dict[str, dict[str, str]] = {}
        self.commits: dict[str, dict[str, Any]] = {}
        self.refs: dict[str, str] = {}
        self.pulls: list[dict[str, Any]] = []
        self.repo_labels: set[str] = set()
        self.reviews: dict[int, list[dict[str, Any]]] = {}
        self._failures: list[tuple[str, str, RemoteError]] = []
        self._hooks: list[tuple[str, str, Callable[[FakeGitHub], None]]] = []

        files = {".branch-identifier": MAIN}
        for descriptor in DEFAULT_FILE_DESCRIPTORS:
            files[descriptor.original_path] = f"original {descriptor.original_path}"
            files[descriptor.translated_path] = f"traduction {descriptor.translated_path}"
        self.refs[MAIN] = self.make_commit(files, parents=[], message="Initial commit")

    # Test helpers

    def fail(self, method: str, fragment: str, status: int = 500, body: str = "boom") -> None:
        """Make every ``method`` request whose path contains ``fragment`` fail."""
        reason = {401: "Unauthorized", 404: "Not Found", 422: "Unprocessable Entity"}.get(
            status, "Internal Server Error"
        )
        self._failures.append((method, fragment, RemoteError(status, reason, body)))

    def before(self, method: str, fragment: str, hook: Callable[[FakeGitHub], None]) -> None:
        """Run ``hook`` once, just before the next matching request is handled."""
        self._hooks.append((method, fragment, hook))

    def calls_to(self, method: str, fragment: str = "") -> list[Call]:
        return [c for c in self.calls if c.method == method and fragment in c.path]

    def store_blob(self, content: str) -> str:
        sha = _sha("blob", content)
        self.blobs[sha] = content
        return sha

    def store_tree(self, entries: dict[str, str]) -> str:
        sha = _sha("tree", sorted(entries.items()))
        self.trees[sha] = dict(entries)
        return sha

    def store_commit(
        self, tree: str, parents: list[str], message: str, sha: str | None = None
    ) -> str:
        sha = sha or _sha("commit", tree, parents, message, len(self.commits))
        self.commits[sha] = {"tree": tree, "parents": list(parents), "message": message}
        return sha

    def make_commit(
        self,
        files: dict[str, str],
        parents: list[str],
        message: str,
        sha: str | None = None,
        base: str | None = None,
    ) -> str:
        entries = dict(self.trees[self.commits[base]["tree"]]) if base else {}
        entries.update({path: self.store_blob(content) for path, content in files.items()})
        return self.store_commit(self.store_tree(entries), parents, message, sha)

    def seed_branch(self, branch: str, sha: str, files: dict[str, str] | None = None) -> str:
        """Create ``branch`` one commit ahead of main, with head ``sha``."""
        main_head = self.refs[MAIN]
        self.refs[branch] = self.make_commit(
            files or {".branch-identifier": branch},
            parents=[main_head],
            message=f"Branch identifier for {branch}",
            sha=sha,
            base=main_head,
        )
        return self.refs[branch]

    def seed_pull_request(self, branch: str, labels: list[str] | None = None) -> dict[str, Any]:
        pull_request = {
            "number": len(self.pulls) + 1,
            "title": f"Translation {branch}",
            "state": "open",
            "head": {"ref": branch},
            "base": {"ref": MAIN},
            "labels": [{"name": name} for name in labels or []],
            "merged_at": None,
        }
        self.pulls.append(pull_request)
        return pull_request

    def branch_files(self, branch: str) -> dict[str, str]:
        tree = self.trees[self.commits[self.refs[branch]]["tree"]]
        return {path: self.blobs[sha] for path, sha in tree.items()}

    # Transport

    async def request(
        self,
        method: str,
        path: str,
        *,
        credential: str | None,
        json: Any = None,
        params: Any = None,
    ) -> Any:
        self.calls.append(Call(method, path, credential, copy.deepcopy(json), params))

        for hook_method, fragment, hook in list(self._hooks):
            if hook_method == method and fragment in path:
                self._hooks.remove((hook_method, fragment, hook))
                hook(self)

        for fail_method, fragment, error in self._failures:
            if fail_method == method and fragment in path:
                raise RemoteError(error.status, error.status_text, error.raw_body)

        prefix = f"/repos/{OWNER}/{REPO}"
        assert path.startswith(prefix), path
        route = path[len(prefix) :]
        for route_method, pattern, handler in self.ROUTES:
            match = re.fullmatch(pattern, route)
            if route_method == method and match:
                args = {key: unquote(value) for key, value in match.groupdict().items()}
                result = getattr(self, handler)(json=json, params=params or {}, **args)
                return copy.deepcopy(result)
        raise _not_found(f"No route for {method} {route}")

    def _resolve(self, ref: str) -> str:
        if ref in self.refs:
            return self.refs[ref]
        if ref in self.commits:
            return ref
        raise _unprocessable(f"No commit found for SHA: {ref}")

    def _pull(self, number: str) -> dict[str, Any]:
        for pull_request in self.pulls:
            if pull_request["number"] == int(number):
                return pull_request
        raise _not_found()

    # Refs and commits

    def _get_commit_for_ref(self, ref: str, **_: Any) -> dict[str, Any]:
        sha = self._resolve(ref)
        return {"sha": sha, "commit": {"tree": {"sha": self.commits[sha]["tree"]}}}

    def _get_ref(self, branch: str, **_: Any) -> dict[str, Any]:
        if branch not in self.refs:
            raise _not_found()
        return {"ref": f"refs/heads/{branch}", "object": {"sha": self.refs[branch]}}

    def _update_ref(self, branch: str, json: Any, **_: Any) -> dict[str, Any]:
        if branch not in self.refs:
            raise _unprocessable("Reference does not exist")
        if json["sha"] not in self.commits:
            raise _unprocessable("Object does not exist")
        self.refs[branch] = json["sha"]
        return {"ref": f"refs/heads/{branch}", "object": {"sha": json["sha"]}}

    def _create_ref(self, json: Any, **_: Any) -> dict[str, Any]:
        branch = json["ref"].removeprefix("refs/heads/")
        if branch in self.refs:
            raise _unprocessable("Reference already exists")
        if json["sha"] not in self.commits:
            raise _unprocessable("Object does not exist")
        self.refs[branch] = json["sha"]
        return {"ref": json["ref"], "object": {"sha": json["sha"]}}

    def _get_git_commit(self, sha: str, **_: Any) -> dict[str, Any]:
        if sha not in self.commits:
            raise _not_found()
        commit = self.commits[sha]
        return {
            "sha": sha,
            "tree": {"sha": commit["tree"]},
            "parents": [{"sha": parent} for parent in commit["parents"]],
            "message": commit["message"],
        }

    def _compare(self, base: str, head: str, **_: Any) -> dict[str, Any]:
        base_sha, head_sha = self._resolve(base), self._resolve(head)
        ancestors: set[str] = set()
        pending = [base_sha]
        while pending:
            sha = pending.pop()
            if sha not in ancestors:
                ancestors.add(sha)
                pending.extend(self.commits[sha]["parents"])
        queue = [head_sha]
        while queue:
            sha = queue.pop(0)
            if sha in ancestors:
                return {"status": "ahead", "merge_base_commit": {"sha": sha}}
            queue.extend(self.commits[sha]["parents"])
        raise _not_found("No common ancestor")

    # Git objects

    def _create_blob(self, json: Any, **_: Any) -> dict[str, Any]:
        return {"sha": self.store_blob(json["content"])}

    def _create_tree(self, json: Any, **_: Any) -> dict[str, Any]:
        if json["base_tree"] not in self.trees:
            raise _unprocessable("Invalid base_tree")
        entries = dict(self.trees[json["base_tree"]])
        for entry in json["tree"]:
            if entry["sha"] not in self.blobs:
                raise _unprocessable("Invalid tree entry")
            entries[entry["path"]] = entry["sha"]
        return {"sha": self.store_tree(entries)}

    def _create_commit(self, json: Any, **_: Any) -> dict[str, Any]:
        if json["tree"] not in self.trees:
            raise _unprocessable("Invalid tree")
        for parent in json["parents"]:
            if parent not in self.commits:
                raise _unprocessable("Invalid parent")
        return {"sha": self.store_commit(json["tree"], json["parents"], json["message"])}

    # Contents

    def _get_contents(self, path: str, params: Any, **_: Any) -> dict[str, Any]:
        commit = self._resolve(params.get("ref", MAIN))
        tree = self.trees[self.commits[commit]["tree"]]
        if path not in tree:
            raise _not_found()
        blob = tree[path]
        return {
            "path": path,
            "sha": blob,
            "download_url": f"https://raw.example.com/{OWNER}/{REPO}/{blob}/{path}",
        }

    def _put_contents(self, path: str, json: Any, **_: Any) -> dict[str, Any]:
        branch = json["branch"]
        head = self._resolve(branch)
        tree = self.trees[self.commits[head]["tree"]]
        if path in tree and json.get("sha") != tree[path]:
            raise RemoteError(409, "Conflict", '{"message": "sha does not match"}')
        content = base64.b64decode(json["content"]).decode("utf-8")
        commit = self.make_commit(
            {path: content}, parents=[head], message=json["message"], base=head
        )
        self.refs[branch] = commit
        return {"content": {"path": path}, "commit": {"sha": commit}}

    # Pull requests

    def _list_pulls(self, params: Any, **_: Any) -> list[dict[str, Any]]:
        state = params.get("state", "open")
        result = []
        for pull_request in self.pulls:
            if state != "all" and pull_request["state"] != state:
                continue
            if "base" in params and pull_request["base"]["ref"] != params["base"]:
                continue
            if "head" in params and f"{OWNER}:{pull_request['head']['ref']}" != params["head"]:
                continue
            result.append(pull_request)
        return result

    def _create_pull(self, json: Any, **_: Any) -> dict[str, Any]:
        head, base = json["head"], json["base"]
        if head not in self.refs:
            raise _unprocessable("Invalid head")
        if self.refs[head] == self.refs[base]:
            raise _unprocessable(f"No commits between {base} and {head}")
        pull_request = self.seed_pull_request(head)
        pull_request["title"] = json["title"]
        return pull_request

    def _list_reviews(self, number: str, **_: Any) -> list[dict[str, Any]]:
        self._pull(number)
        return self.reviews.get(int(number), [])

    def _create_review(self, number: str, json: Any, **_: Any) -> dict[str, Any]:
        self._pull(number)
        reviews = self.reviews.setdefault(int(number), [])
        review = {
            "id": len(reviews) + 1,
            "state": "APPROVED" if json["event"] == "APPROVE" else "COMMENTED",
            "body": json["body"],
        }
        reviews.append(review)
        return review

    # Labels

    def _add_labels(self, number: str, json: Any, **_: Any) -> list[dict[str, Any]]:
        pull_request = self._pull(number)
        present = {label["name"] for label in pull_request["labels"]}
        for name in json:
            if name not in present:
                pull_request["labels"].append({"name": name})
                present.add(name)
        return pull_request["labels"]

    def _remove_label(self, number: str, name: str, **_: Any) -> list[dict[str, Any]]:
        pull_request = self._pull(number)
        remaining = [label for label in pull_request["labels"] if label["name"] != name]
        if len(remaining) == len(pull_request["labels"]):
            raise _not_found("Label does not exist")
        pull_request["labels"] = remaining
        return remaining

    def _create_repo_label(self, json: Any, **_: Any) -> dict[str, Any]:
        if json["name"] in self.repo_labels:
            raise _unprocessable("Validation Failed")
        self.repo_labels.add(json["name"])
        return dict(json)


# ============================================================================
# Workflow Fixtures
# ============================================================================


@pytest.fixture
def fake_github() -> FakeGitHub:
    """Provide an in-memory GitHub repository with a populated main branch."""
    return FakeGitHub()


@pytest.fixture
def manifest_cache() -> FileManifestCache:
    return FileManifestCache()


@pytest.fixture
def orchestrator(
    fake_github: FakeGitHub, manifest_cache: FileManifestCache
) -> BranchCommitOrchestrator:
    return BranchCommitOrchestrator(fake_github, manifest_cache)


@pytest.fixture
def resolver(fake_github: FakeGitHub, manifest_cache: FileManifestCache) -> FileManifestResolver:
    return FileManifestResolver(fake_github, manifest_cache, MAIN)


@pytest.fixture
def lifecycle(
    fake_github: FakeGitHub, manifest_cache: FileManifestCache
) -> TranslationUnitLifecycle:
    """Lifecycle whose clock always reads CREATION_TIME."""
    return TranslationUnitLifecycle(
        fake_github, LABELS, MAIN, manifest_cache, clock=lambda: CREATION_TIME
    )


@pytest.fixture
def settings(clean_env: None) -> Settings:
    return load_settings(
        repository_owner=OWNER,
        repository_name=REPO,
        repository_main_branch=MAIN,
        translation_label_name=LABELS.translation,
        translation_wip_label_name=LABELS.wip,
        translation_review_label_name=LABELS.review,
    )


@pytest.fixture
def workflow(settings: Settings, fake_github: FakeGitHub) -> TranslationWorkflow:
    """Fully wired workflow on top of the in-memory repository."""
    return TranslationWorkflow.from_settings(settings, client=fake_github)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Drop TRADFLOW_ variables and any .env file from the test environment."""
    for name in list(os.environ):
        if name.startswith("TRADFLOW_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def repository_env(clean_env: None, monkeypatch: pytest.MonkeyPatch) -> None:
    """Set every required TRADFLOW_ environment variable."""
    monkeypatch.setenv("TRADFLOW_REPOSITORY_OWNER", OWNER)
    monkeypatch.setenv("TRADFLOW_REPOSITORY_NAME", REPO)
    monkeypatch.setenv("TRADFLOW_REPOSITORY_MAIN_BRANCH", MAIN)
    monkeypatch.setenv("TRADFLOW_TRANSLATION_LABEL_NAME", LABELS.translation)
    monkeypatch.setenv("TRADFLOW_TRANSLATION_WIP_LABEL_NAME", LABELS.wip)
    monkeypatch.setenv("TRADFLOW_TRANSLATION_REVIEW_LABEL_NAME", LABELS.review)


# ============================================================================
# Logging Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def _restore_root_logging() -> Iterator[None]:
    """Undo configure_logging() calls made by CLI commands under test."""
    root = logging.getLogger()
    level, handlers = root.level, root.handlers[:]
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


# ============================================================================
# Pytest Configuration Hooks
# ============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Modify test collection to auto-mark tests based on location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "e2e" in str(item.fspath):
            item.add_marker(pytest.mark.e2e)


def pytest_addoption(parser: pytest.Parser) -> None:
    """Add custom command line options."""
    parser.addoption(
        "--run-e2e",
        action="store_true",
        default=False,
        help="Run E2E tests (requires a real repository and token)",
    )


def pytest_runtest_setup(item: pytest.Item) -> None:
    """Skip E2E tests unless --run-e2e is specified."""
    if "e2e" in item.keywords and not item.config.getoption("--run-e2e"):
        pytest.skip("E2E tests skipped (use --run-e2e to run)")
