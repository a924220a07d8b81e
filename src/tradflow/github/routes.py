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

"""GitHub REST API route table.

Paths are relative to the API base URL. Path segments that come from user
input (branch names, file paths, label names) are percent-encoded; slashes
inside file paths are kept.

API Documentation: https://docs.github.com/en/rest
"""

from __future__ import annotations

from urllib.parse import quote

GITHUB_API_URL = "https://api.github.com"


def _repo(owner: str, repo: str) -> str:
    return f"/repos/{quote(owner, safe='')}/{quote(repo, safe='')}"


def commits(owner: str, repo: str, ref: str) -> str:
    """Head commit of a ref (branch name or sha)."""
    return f"{_repo(owner, repo)}/commits/{quote(ref, safe='')}"


def git_commit(owner: str, repo: str, sha: str) -> str:
    """Raw git commit object, including its tree sha."""
    return f"{_repo(owner, repo)}/git/commits/{quote(sha, safe='')}"


def create_ref(owner: str, repo: str) -> str:
    return f"{_repo(owner, repo)}/git/refs"


def get_branch(owner: str, repo: str, branch: str) -> str:
    return f"{_repo(owner, repo)}/git/ref/heads/{quote(branch, safe='')}"


def update_branch_head(owner: str, repo: str, branch: str) -> str:
    return f"{_repo(owner, repo)}/git/refs/heads/{quote(branch, safe='')}"


def read_file(owner: str, repo: str, path: str) -> str:
    return f"{_repo(owner, repo)}/contents/{quote(path.lstrip('/'), safe='/')}"


edit_file = read_file


def create_blob(owner: str, repo: str) -> str:
    return f"{_repo(owner, repo)}/git/blobs"


def create_tree(owner: str, repo: str) -> str:
    return f"{_repo(owner, repo)}/git/trees"


def create_commit(owner: str, repo: str) -> str:
    return f"{_repo(owner, repo)}/git/commits"


def pull_requests(owner: str, repo: str) -> str:
    """List (GET) or create (POST) pull requests."""
    return f"{_repo(owner, repo)}/pulls"


def pull_request_reviews(owner: str, repo: str, number: int) -> str:
    """List (GET) or submit (POST) pull request reviews."""
    return f"{_repo(owner, repo)}/pulls/{int(number)}/reviews"


def issue_labels(owner: str, repo: str, number: int) -> str:
    """Labels attached to a pull request (pull requests are issues)."""
    return f"{_repo(owner, repo)}/issues/{int(number)}/labels"


def issue_label(owner: str, repo: str, number: int, name: str) -> str:
    return f"{issue_labels(owner, repo, number)}/{quote(name, safe='')}"


def labels(owner: str, repo: str) -> str:
    """Repository label collection."""
    return f"{_repo(owner, repo)}/labels"


def compare_commits(owner: str, repo: str, base: str, head: str) -> str:
    return f"{_repo(owner, repo)}/compare/{quote(base, safe='')}...{quote(head, safe='')}"
