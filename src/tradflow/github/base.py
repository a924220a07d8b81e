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

"""Exception hierarchy for remote repository operations.

Every failure surfaced by tradflow derives from TradflowError so the web
facade and CLI can map errors without catching unrelated exceptions.
"""

from __future__ import annotations


class TradflowError(Exception):
    """Base exception for tradflow errors."""


class RemoteError(TradflowError):
    """Raised when the git-hosting API answers with a non-2xx status.

    Attributes:
        status: HTTP status code (0 for transport failures)
        status_text: HTTP reason phrase
        raw_body: Unparsed response body
        step: Name of the orchestration step that issued the call, if any
        operation: Name of the workflow operation the step belongs to, if any
    """

    def __init__(
        self,
        status: int,
        status_text: str,
        raw_body: str = "",
        step: str | None = None,
        operation: str | None = None,
    ) -> None:
        self.status = status
        self.status_text = status_text
        self.raw_body = raw_body
        self.step = step
        self.operation = operation
        super().__init__(self._format())

    def _format(self) -> str:
        where = ""
        if self.operation and self.step:
            where = f"[{self.operation}/{self.step}] "
        elif self.step:
            where = f"[{self.step}] "
        message = f"{where}{self.status} {self.status_text}"
        if self.raw_body:
            message = f"{message} - {self.raw_body}"
        return message

    def tag(self, step: str, operation: str | None = None) -> RemoteError:
        """Attach the failing step (and operation) to this error.

        An already-tagged error keeps its original step, so nested
        pipelines report the innermost failure point.
        """
        if self.step is None:
            self.step = step
        if self.operation is None:
            self.operation = operation
        self.args = (self._format(),)
        return self

    def to_dict(self) -> dict[str, object]:
        """Serialize for API error responses."""
        return {
            "status": self.status,
            "statusText": self.status_text,
            "step": self.step,
            "operation": self.operation,
            "body": self.raw_body,
        }


class RemoteConnectionError(RemoteError):
    """Raised when the git-hosting API cannot be reached at all."""

    def __init__(self, reason: str, step: str | None = None) -> None:
        super().__init__(0, "Connection error", reason, step=step)


class BranchConflictError(TradflowError):
    """Raised when a branch head moved while a commit batch was being built."""

    def __init__(self, branch: str, expected_sha: str, actual_sha: str) -> None:
        self.branch = branch
        self.expected_sha = expected_sha
        self.actual_sha = actual_sha
        super().__init__(
            f"Branch {branch} moved from {expected_sha} to {actual_sha} during commit"
        )


class PullRequestNotFoundError(TradflowError, LookupError):
    """Raised when no pull request exists for a translation branch."""

    def __init__(self, branch: str) -> None:
        self.branch = branch
        super().__init__(f"No pull request found for branch {branch}")


class ConfigurationError(TradflowError):
    """Raised at startup when required configuration is missing or invalid."""
