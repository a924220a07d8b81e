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

"""Land a batch of file edits on a branch as a single commit.

The git data API has no "commit these files" call, so one batch is built
from primitives:

1. read the branch head commit
2. read that commit's tree
3. create one blob per file (concurrently)
4. create a tree layered on the base tree with the new blobs
5. create a commit parented on the head from step 1
6. move the branch ref to the new commit
7. invalidate the branch's manifest cache entry

The first failing step aborts the rest. Objects created before a failure
are unreachable and left to the host's garbage collection.

The ref update is not conditional on the head observed in step 1. With
the default policy two overlapping batches on one branch race and the
last ref update wins. ConflictPolicy offers in-process serialization and
a head re-check before the ref update.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from enum import Enum

from tradflow.github.base import BranchConflictError
from tradflow.github.client import BLOB_MODE, RemoteRepositoryClient

from .cache import FileManifestCache
from .models import CommitFile, CommitResult
from .pipeline import StepPipeline

logger = logging.getLogger(__name__)


class ConflictPolicy(str, Enum):
    """How concurrent commit batches on the same branch are handled.

    - LAST_WRITE_WINS: no coordination; the later ref update wins
    - SERIALIZE: batches for one branch run one at a time in this process
    - REJECT: abort with BranchConflictError if the head moved before the ref update
    - SERIALIZE_REJECT: both of the above
    """

    LAST_WRITE_WINS = "last-write-wins"
    SERIALIZE = "serialize"
    REJECT = "reject"
    SERIALIZE_REJECT = "serialize-reject"

    @property
    def serializes(self) -> bool:
        return self in (ConflictPolicy.SERIALIZE, ConflictPolicy.SERIALIZE_REJECT)

    @property
    def rejects(self) -> bool:
        return self in (ConflictPolicy.REJECT, ConflictPolicy.SERIALIZE_REJECT)


class BranchCommitOrchestrator:
    """Build and land commit batches through the git data API."""

    def __init__(
        self,
        client: RemoteRepositoryClient,
        cache: FileManifestCache,
        policy: ConflictPolicy = ConflictPolicy.LAST_WRITE_WINS,
    ) -> None:
        self.client = client
        self.cache = cache
        self.policy = policy
        self._branch_locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, branch: str) -> asyncio.Lock:
        lock = self._branch_locks.get(branch)
        if lock is None:
            lock = self._branch_locks[branch] = asyncio.Lock()
        return lock

    async def commit_batch(
        self,
        branch: str,
        message: str,
        files: Sequence[CommitFile],
        credential: str | None,
    ) -> CommitResult:
        """Commit ``files`` to ``branch`` as one new commit.

        Args:
            branch: Branch to advance
            message: Commit message
            files: Edited files; a later entry for the same path wins
            credential: Authorization header value, forwarded verbatim

        Returns:
            CommitResult with the new commit sha and its parent

        Raises:
            ValueError: If ``files`` is empty (checked before any remote call)
            RemoteError: Tagged with the failing step
            BranchConflictError: If the policy rejects a moved head
        """
        if not files:
            raise ValueError("A commit batch needs at least one file")

        if self.policy.serializes:
            async with self._lock_for(branch):
                return await self._commit(branch, message, files, credential)
        return await self._commit(branch, message, files, credential)

    async def _commit(
        self,
        branch: str,
        message: str,
        files: Sequence[CommitFile],
        credential: str | None,
    ) -> CommitResult:
        client = self.client
        pipeline = StepPipeline("commit-batch", branch=branch, files=len(files))

        head_sha = await pipeline.run(
            "read-branch-head", client.get_branch_head(branch, credential)
        )
        base_tree = await pipeline.run(
            "read-base-tree", client.get_commit_tree(head_sha, credential)
        )
        blob_shas = await pipeline.run(
            "create-blobs",
            asyncio.gather(*(client.create_blob(file.content, credential) for file in files)),
        )
        entries = [
            {"path": file.path, "mode": BLOB_MODE, "type": "blob", "sha": sha}
            for file, sha in zip(files, blob_shas, strict=True)
        ]
        tree_sha = await pipeline.run(
            "create-tree", client.create_tree(base_tree, entries, credential)
        )
        commit_sha = await pipeline.run(
            "create-commit", client.create_commit(message, tree_sha, [head_sha], credential)
        )

        if self.policy.rejects:
            current_sha = await pipeline.run(
                "recheck-branch-head", client.get_branch_head(branch, credential)
            )
            if current_sha != head_sha:
                logger.warning(
                    "Branch %s moved from %s to %s; dropping commit %s",
                    branch,
                    head_sha,
                    current_sha,
                    commit_sha,
                )
                raise BranchConflictError(branch, head_sha, current_sha)

        await pipeline.run(
            "update-branch-ref", client.update_branch_head(branch, commit_sha, credential)
        )
        self.cache.invalidate(branch)

        logger.info("Committed %d file(s) to %s as %s", len(files), branch, commit_sha)
        return CommitResult(branch=branch, sha=commit_sha, parent=head_sha)
