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

"""Translation unit lifecycle: a branch, its pull request and its labels.

A translation unit is a timestamp-named branch with one pull request
against the main branch. Its workflow state lives in the pull request's
labels:

    (none) --create--> Draft --submit_to_review--> InReview --approve--> Approved

Draft carries the work-in-progress label, InReview the review label.
Approval is an approving review, tracked independently of the labels;
it does not lock the branch.

Label changes are read-modify-write calls without server-side
transactions. Nothing here rolls back: a failure after the branch or
pull request was created leaves them in place for manual cleanup.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from tradflow.github.base import PullRequestNotFoundError, RemoteError
from tradflow.github.client import RemoteRepositoryClient

from .cache import FileManifestCache
from .models import LabelSetupResult, LabelSpec, LabelState, OperationResult, UnitState
from .pipeline import StepPipeline

logger = logging.getLogger(__name__)

BRANCH_IDENTIFIER_PATH = ".branch-identifier"
APPROVAL_BODY = "LGTM 👍"
LABEL_ALREADY_EXISTS = 422


@dataclass(frozen=True)
class WorkflowLabels:
    """Names of the three workflow labels."""

    translation: str
    wip: str
    review: str

    def specs(self) -> list[LabelSpec]:
        """Label definitions created by ensure_labels_exist."""
        return [
            LabelSpec(
                name=self.translation, color="0075ca", description="Pull request de traduction"
            ),
            LabelSpec(
                name=self.wip, color="d73a4a", description="Traduction en cours de développement"
            ),
            LabelSpec(
                name=self.review, color="a2eeef", description="Traduction prête pour révision"
            ),
        ]


def branch_name_for(moment: datetime) -> str:
    """Branch identifier for ``moment``, formatted YYYY-MM-DD-HH-mm-ss-SSS."""
    return f"{moment:%Y-%m-%d-%H-%M-%S}-{moment.microsecond // 1000:03d}"


def label_names(pull_request: Mapping[str, Any]) -> list[str]:
    """Label names attached to a pull request payload."""
    names = []
    for label in pull_request.get("labels") or []:
        name = label.get("name") if isinstance(label, Mapping) else label
        if name:
            names.append(str(name))
    return names


def label_state(
    labels: Iterable[str], workflow: WorkflowLabels, approved: bool = False
) -> LabelState:
    """Derive the workflow state from a label set and the approval signal."""
    present = set(labels)
    if workflow.wip in present:
        return LabelState.DRAFT
    if workflow.review in present:
        return LabelState.IN_REVIEW
    if approved:
        return LabelState.APPROVED
    return LabelState.NONE


class TranslationUnitLifecycle:
    """Create translation units and move them through the label workflow."""

    def __init__(
        self,
        client: RemoteRepositoryClient,
        labels: WorkflowLabels,
        main_branch: str,
        cache: FileManifestCache,
        marker_path: str = BRANCH_IDENTIFIER_PATH,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """Initialize lifecycle.

        Args:
            client: Repository client
            labels: Workflow label names
            main_branch: Base branch of every translation pull request
            cache: Manifest cache, invalidated when a branch is written to
            marker_path: File rewritten to give a new branch its first commit
            clock: Local time source used for branch names
        """
        self.client = client
        self.labels = labels
        self.main_branch = main_branch
        self.cache = cache
        self.marker_path = marker_path
        self._clock = clock

    async def list_translation_units(self, credential: str | None) -> list[dict[str, Any]]:
        """All pull requests (open and closed) against the main branch."""
        pipeline = StepPipeline("list-translation-units", base=self.main_branch)
        units = await pipeline.run(
            "list-pull-requests",
            self.client.list_pull_requests(credential, base=self.main_branch, state="all"),
        )
        logger.info("Got %d translation units on %s", len(units), self.main_branch)
        return units

    async def create(self, title: str, credential: str | None) -> dict[str, Any]:
        """Open a new translation unit.

        Creates a branch off the main branch head, commits the branch
        identifier to the marker file (a pull request needs a diverging
        commit), opens the pull request and labels it as a draft.

        Args:
            title: Pull request title
            credential: Authorization header value, forwarded verbatim

        Returns:
            The created pull request payload

        Raises:
            RemoteError: Tagged with the failing step
        """
        client = self.client
        branch = branch_name_for(self._clock())
        pipeline = StepPipeline("create-translation-unit", branch=branch)

        main_sha = await pipeline.run(
            "read-main-head", client.get_ref_head(self.main_branch, credential)
        )
        await pipeline.run("create-branch", client.create_branch(branch, main_sha, credential))
        marker = await pipeline.run(
            "read-branch-identifier", client.get_file(self.marker_path, branch, credential)
        )
        await pipeline.run(
            "write-branch-identifier",
            client.put_file(
                self.marker_path,
                message=f"Branch identifier for {branch}",
                content=branch,
                branch=branch,
                sha=marker.get("sha"),
                credential=credential,
            ),
        )
        self.cache.invalidate(branch)

        pull_request = await pipeline.run(
            "create-pull-request",
            client.create_pull_request(title, branch, self.main_branch, credential),
        )
        await pipeline.run(
            "add-draft-labels",
            client.add_labels(
                pull_request["number"], [self.labels.translation, self.labels.wip], credential
            ),
        )

        logger.info("Created translation unit %s (PR #%s)", branch, pull_request["number"])
        return pull_request

    async def find_pull_request(self, branch: str, credential: str | None) -> dict[str, Any]:
        """The open pull request whose head is ``branch``.

        Raises:
            PullRequestNotFoundError: If there is none
            RemoteError: If the listing fails
        """
        pipeline = StepPipeline("find-pull-request", branch=branch)
        candidates = await pipeline.run(
            "list-pull-requests",
            self.client.list_pull_requests(
                credential, head=f"{self.client.owner}:{branch}", base=self.main_branch
            ),
        )
        matches = [pr for pr in candidates if (pr.get("head") or {}).get("ref", branch) == branch]
        if not matches:
            raise PullRequestNotFoundError(branch)
        if len(matches) > 1:
            logger.warning(
                "%d pull requests found for %s; using #%s",
                len(matches),
                branch,
                matches[0].get("number"),
            )
        return matches[0]

    async def submit_to_review(self, branch: str, credential: str | None) -> OperationResult:
        """Move a draft to review: drop the work-in-progress label, add the review label."""
        pull_request = await self.find_pull_request(branch, credential)
        number = pull_request["number"]
        pipeline = StepPipeline("submit-to-review", branch=branch, pull_request=number)

        await pipeline.run(
            "remove-wip-label", self.client.remove_label(number, self.labels.wip, credential)
        )
        await pipeline.run(
            "add-review-labels",
            self.client.add_labels(
                number, [self.labels.translation, self.labels.review], credential
            ),
        )

        logger.info("Submitted %s (PR #%s) to review", branch, number)
        return OperationResult()

    async def approve(self, branch: str, credential: str | None) -> OperationResult:
        """Record an approving review. Labels are left untouched."""
        pull_request = await self.find_pull_request(branch, credential)
        number = pull_request["number"]
        pipeline = StepPipeline("approve", branch=branch, pull_request=number)

        await pipeline.run(
            "submit-approval",
            self.client.create_review(number, "APPROVE", APPROVAL_BODY, credential),
        )

        logger.info("Approved %s (PR #%s)", branch, number)
        return OperationResult()

    async def get_state(self, branch: str, credential: str | None) -> UnitState:
        """Current label state and approval status of a translation unit."""
        pull_request = await self.find_pull_request(branch, credential)
        number = pull_request["number"]
        pipeline = StepPipeline("get-state", branch=branch, pull_request=number)

        reviews = await pipeline.run("list-reviews", self.client.list_reviews(number, credential))
        approved = any(review.get("state") == "APPROVED" for review in reviews)
        names = label_names(pull_request)
        return UnitState(
            branch=branch,
            pull_request=number,
            state=label_state(names, self.labels, approved=approved),
            labels=names,
            approved=approved,
        )

    async def ensure_labels_exist(self, credential: str | None) -> LabelSetupResult:
        """Create the workflow labels, tolerating ones that already exist.

        Best effort: a label that already exists (422) counts as done, any
        other failure is logged and the remaining labels are still tried.
        """
        created: list[str] = []
        for spec in self.labels.specs():
            try:
                await self.client.create_label(spec.name, spec.color, spec.description, credential)
            except RemoteError as e:
                if e.status == LABEL_ALREADY_EXISTS:
                    logger.info("Label already exists: %s", spec.name)
                else:
                    logger.error("Failed to create label %s: %s", spec.name, e)
                continue
            created.append(spec.name)
            logger.info("Created label: %s", spec.name)

        return LabelSetupResult(created_labels=created)
