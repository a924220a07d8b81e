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

"""Core data models for the tradflow translation workflow.

This module defines the data structures exchanged with callers:
- Translatable file descriptors and their branch-resolved entries
- Commit batches of edited files
- Workflow label state and label definitions
- Operation results returned to the facade

Field names are snake_case in Python; the wire format uses the camelCase
aliases the web client expects.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class FileDescriptor(BaseModel):
    """A translatable asset: the original file and its translation.

    Loaded once at startup; not branch specific.
    """

    original_path: str = Field(
        ..., alias="originalPath", description="Repository path of the source-language file"
    )
    translated_path: str = Field(
        ..., alias="translatedPath", description="Repository path of the translated file"
    )
    display_name: str = Field(..., alias="name", description="Human-readable file name")
    category: str = Field(..., description="Grouping shown in the editor (e.g. a chapter)")
    game_folder_paths: dict[str, str] = Field(
        default_factory=dict,
        alias="pathsInGameFolder",
        description="Where the asset lives inside the installed game, per platform",
    )

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "originalPath": "chapitre-1/strings_en.txt",
                "translatedPath": "chapitre-1/strings_fr.txt",
                "name": "Strings du chapitre 1",
                "category": "Chapitre 1",
                "pathsInGameFolder": {"windows": "chapter1_windows/data.win"},
            }
        },
    )


class ResolvedFileEntry(FileDescriptor):
    """A FileDescriptor with download locations resolved at a given ref."""

    original: str | None = Field(
        default=None, description="Download URL of the original file at the ref"
    )
    translated: str | None = Field(
        default=None, description="Download URL of the translated file at the ref"
    )


class CommitFile(BaseModel):
    """One edited file in a commit batch."""

    path: str = Field(..., description="Repository path of the file", min_length=1)
    content: str = Field(..., description="Full new content of the file")


class CommitBatch(BaseModel):
    """A batch of edited files to land as one commit on a branch."""

    branch: str = Field(..., description="Translation branch to commit to", min_length=1)
    message: str = Field(..., description="Commit message", min_length=1)
    files: list[CommitFile] = Field(..., description="Edited files", min_length=1)


class LabelState(str, Enum):
    """Workflow state of a translation unit, derived from labels and reviews.

    - DRAFT: carries the work-in-progress label
    - IN_REVIEW: carries the review label and not the work-in-progress one
    - APPROVED: no workflow label, at least one approving review
    - NONE: none of the above (e.g. a pull request outside the workflow)
    """

    NONE = "none"
    DRAFT = "draft"
    IN_REVIEW = "in_review"
    APPROVED = "approved"


class LabelSpec(BaseModel):
    """Definition of a repository label used by the workflow."""

    name: str = Field(..., min_length=1)
    color: str = Field(..., pattern=r"^[0-9a-fA-F]{6}$")
    description: str = ""


class LabelSetupResult(BaseModel):
    """Outcome of idempotent label setup."""

    created_labels: list[str] = Field(default_factory=list, alias="createdLabels")
    message: str = "Labels setup completed"

    model_config = ConfigDict(populate_by_name=True)


class OperationResult(BaseModel):
    """Plain success acknowledgement."""

    success: bool = True


class CommitResult(OperationResult):
    """Acknowledgement of a landed commit batch."""

    branch: str
    sha: str = Field(..., description="Sha of the new commit")
    parent: str = Field(..., description="Branch head the commit was parented on")


class UnitState(BaseModel):
    """Current workflow state of one translation unit."""

    branch: str
    pull_request: int = Field(..., alias="pullRequest")
    state: LabelState
    labels: list[str] = Field(default_factory=list)
    approved: bool = False

    model_config = ConfigDict(populate_by_name=True)
