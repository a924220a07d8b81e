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

"""Ordered pipelines of dependent remote calls.

A workflow operation is a chain of steps, each consuming the previous
step's output. StepPipeline runs them one at a time, remembers which
steps completed and tags the first RemoteError with the failing step so
the caller can tell exactly where the chain stopped.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from typing import TypeVar

from tradflow.github.base import RemoteError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StepPipeline:
    """Run named steps of one workflow operation in order.

    Example:
        >>> pipeline = StepPipeline("commit-batch", branch="fr-1")
        >>> head = await pipeline.run("read-branch-head", client.get_branch_head(...))
        >>> tree = await pipeline.run("read-base-tree", client.get_commit_tree(head, ...))
    """

    def __init__(self, operation: str, **context: object) -> None:
        """Initialize pipeline.

        Args:
            operation: Operation name used in logs and error tags
            **context: Extra identifiers (branch, title, ...) included in logs
        """
        self.operation = operation
        self.context = context
        self.completed: list[str] = []

    def _describe(self) -> str:
        if not self.context:
            return self.operation
        details = ", ".join(f"{key}={value}" for key, value in self.context.items())
        return f"{self.operation} ({details})"

    async def run(self, step: str, call: Awaitable[T]) -> T:
        """Await one step.

        Args:
            step: Step name
            call: Awaitable performing the step

        Returns:
            The step's result

        Raises:
            RemoteError: Tagged with ``step`` and the operation name
        """
        logger.info("%s: %s", self._describe(), step)
        try:
            result = await call
        except RemoteError as e:
            e.tag(step, self.operation)
            logger.error(
                "%s failed at step %s after %s: %s",
                self._describe(),
                step,
                self.completed or "no completed steps",
                e,
            )
            raise
        self.completed.append(step)
        return result
