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

"""
tradflow - collaborative translation workflow on top of GitHub

Each translation lives on its own branch and pull request. Edited files
land as single commits built from git objects, review stages are tracked
with pull request labels, and the translatable file manifest is served
from a branch-scoped cache.
"""

__version__ = "0.1.0"

from tradflow.core.models import (
    CommitBatch,
    CommitFile,
    FileDescriptor,
    LabelState,
    ResolvedFileEntry,
)
from tradflow.core.workflow import TranslationWorkflow
from tradflow.github.base import (
    BranchConflictError,
    ConfigurationError,
    PullRequestNotFoundError,
    RemoteError,
)

__all__ = [
    "BranchConflictError",
    "CommitBatch",
    "CommitFile",
    "ConfigurationError",
    "FileDescriptor",
    "LabelState",
    "PullRequestNotFoundError",
    "RemoteError",
    "ResolvedFileEntry",
    "TranslationWorkflow",
    "__version__",
]
