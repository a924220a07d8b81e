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

"""Core workflow components for tradflow.

Manifest cache and resolution, commit batches, and the translation unit
lifecycle, all built on the GitHub client in ``tradflow.github``.
"""

from .cache import FileManifestCache
from .commits import BranchCommitOrchestrator, ConflictPolicy
from .lifecycle import TranslationUnitLifecycle, WorkflowLabels
from .manifest import DEFAULT_FILE_DESCRIPTORS, FileManifestResolver, load_descriptors
from .models import (
    CommitBatch,
    CommitFile,
    CommitResult,
    FileDescriptor,
    LabelSetupResult,
    LabelState,
    OperationResult,
    ResolvedFileEntry,
    UnitState,
)
from .pipeline import StepPipeline
from .workflow import TranslationWorkflow

__all__ = [
    "DEFAULT_FILE_DESCRIPTORS",
    "BranchCommitOrchestrator",
    "CommitBatch",
    "CommitFile",
    "CommitResult",
    "ConflictPolicy",
    "FileDescriptor",
    "FileManifestCache",
    "FileManifestResolver",
    "LabelSetupResult",
    "LabelState",
    "OperationResult",
    "ResolvedFileEntry",
    "StepPipeline",
    "TranslationUnitLifecycle",
    "TranslationWorkflow",
    "UnitState",
    "WorkflowLabels",
    "load_descriptors",
]
