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

"""Translation workflow: the operations exposed to the web facade and CLI.

TranslationWorkflow owns one repository client and one manifest cache and
hands both to the components explicitly; there is no module-level state.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from tradflow.github.client import RemoteRepositoryClient

from .cache import FileManifestCache, Manifest
from .commits import BranchCommitOrchestrator
from .lifecycle import TranslationUnitLifecycle
from .manifest import FileManifestResolver, load_descriptors
from .models import CommitBatch, CommitResult, LabelSetupResult, OperationResult, UnitState

if TYPE_CHECKING:
    from tradflow.utils.config import Settings

logger = logging.getLogger(__name__)


class TranslationWorkflow:
    """Facade over manifest resolution, commits and the unit lifecycle."""

    def __init__(
        self,
        client: RemoteRepositoryClient,
        cache: FileManifestCache,
        files: FileManifestResolver,
        commits: BranchCommitOrchestrator,
        lifecycle: TranslationUnitLifecycle,
    ) -> None:
        self.client = client
        self.cache = cache
        self.files = files
        self.commits = commits
        self.lifecycle = lifecycle

    @classmethod
    def from_settings(
        cls, settings: Settings, client: RemoteRepositoryClient | None = None
    ) -> TranslationWorkflow:
        """Wire every component from validated settings.

        Raises:
            ConfigurationError: If the file manifest cannot be loaded
        """
        if client is None:
            client = RemoteRepositoryClient(
                settings.repository_owner,
                settings.repository_name,
                base_url=settings.github_api_url,
                timeout=settings.request_timeout,
            )
        cache = FileManifestCache(default_ttl=settings.cache_ttl_seconds)
        main_branch = settings.repository_main_branch

        logger.info(
            "Translation workflow for %s/%s on %s (commit policy: %s)",
            settings.repository_owner,
            settings.repository_name,
            main_branch,
            settings.commit_conflict_policy.value,
        )
        return cls(
            client=client,
            cache=cache,
            files=FileManifestResolver(
                client, cache, main_branch, load_descriptors(settings.manifest_path)
            ),
            commits=BranchCommitOrchestrator(client, cache, settings.commit_conflict_policy),
            lifecycle=TranslationUnitLifecycle(
                client,
                settings.workflow_labels,
                main_branch,
                cache,
                marker_path=settings.branch_identifier_path,
            ),
        )

    async def close(self) -> None:
        await self.client.close()

    async def list_translation_units(self, credential: str | None) -> list[dict[str, Any]]:
        return await self.lifecycle.list_translation_units(credential)

    async def create_translation_unit(self, name: str, credential: str | None) -> dict[str, Any]:
        return await self.lifecycle.create(name, credential)

    async def get_files(self, branch: str, credential: str | None) -> Manifest:
        return await self.files.get_files(branch, credential)

    async def get_files_at_branch_creation(self, branch: str, credential: str | None) -> Manifest:
        return await self.files.get_files_at_branch_creation(branch, credential)

    async def save_files(self, batch: CommitBatch, credential: str | None) -> CommitResult:
        return await self.commits.commit_batch(
            batch.branch, batch.message, batch.files, credential
        )

    async def submit_to_review(self, branch: str, credential: str | None) -> OperationResult:
        return await self.lifecycle.submit_to_review(branch, credential)

    async def approve(self, branch: str, credential: str | None) -> OperationResult:
        return await self.lifecycle.approve(branch, credential)

    async def get_state(self, branch: str, credential: str | None) -> UnitState:
        return await self.lifecycle.get_state(branch, credential)

    async def setup_labels(self, credential: str | None) -> LabelSetupResult:
        return await self.lifecycle.ensure_labels_exist(credential)
