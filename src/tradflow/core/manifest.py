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

"""Translatable file manifest and its branch-scoped resolution.

The manifest is the fixed list of (original, translated) file pairs the
editor works on. Resolving it at a ref reads the contents API for every
file concurrently and returns the download URLs of both sides.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from tradflow.github.base import ConfigurationError, RemoteError
from tradflow.github.client import RemoteRepositoryClient

from .cache import FileManifestCache, Manifest
from .models import FileDescriptor, ResolvedFileEntry
from .pipeline import StepPipeline

logger = logging.getLogger(__name__)

DEFAULT_FILE_DESCRIPTORS: tuple[FileDescriptor, ...] = (
    FileDescriptor(
        original_path="chapitre-0/strings_en.txt",
        translated_path="chapitre-0/strings_fr.txt",
        display_name="Strings du chapitre 0",
        category="Chapitre 0",
        game_folder_paths={"windows": "data.win"},
    ),
    FileDescriptor(
        original_path="chapitre-1/lang_en.json",
        translated_path="chapitre-1/lang_fr.json",
        display_name="Dialogues du chapitre 1",
        category="Chapitre 1",
        game_folder_paths={"windows": "chapter1_windows/lang/lang_en.json"},
    ),
    FileDescriptor(
        original_path="chapitre-1/strings_en.txt",
        translated_path="chapitre-1/strings_fr.txt",
        display_name="Strings du chapitre 1",
        category="Chapitre 1",
        game_folder_paths={"windows": "chapter1_windows/data.win"},
    ),
    FileDescriptor(
        original_path="chapitre-2/strings_en.txt",
        translated_path="chapitre-2/strings_fr.txt",
        display_name="Strings du chapitre 2",
        category="Chapitre 2",
        game_folder_paths={"windows": "chapter2_windows/data.win"},
    ),
    FileDescriptor(
        original_path="chapitre-3/strings_en.txt",
        translated_path="chapitre-3/strings_fr.txt",
        display_name="Strings du chapitre 3",
        category="Chapitre 3",
        game_folder_paths={"windows": "chapter3_windows/data.win"},
    ),
    FileDescriptor(
        original_path="chapitre-4/strings_en.txt",
        translated_path="chapitre-4/strings_fr.txt",
        display_name="Strings du chapitre 4",
        category="Chapitre 4",
        game_folder_paths={"windows": "chapter4_windows/data.win"},
    ),
)

_descriptor_list = TypeAdapter(list[FileDescriptor])


def load_descriptors(path: Path | str | None = None) -> tuple[FileDescriptor, ...]:
    """Load the file manifest.

    Args:
        path: JSON file holding a list of descriptors; built-in list if None

    Returns:
        Tuple of descriptors in manifest order

    Raises:
        ConfigurationError: If the file is missing, invalid or empty
    """
    if path is None:
        return DEFAULT_FILE_DESCRIPTORS

    manifest_file = Path(path)
    try:
        descriptors = _descriptor_list.validate_json(manifest_file.read_bytes())
    except OSError as e:
        raise ConfigurationError(f"Cannot read file manifest {manifest_file}: {e}") from e
    except ValidationError as e:
        raise ConfigurationError(f"Invalid file manifest {manifest_file}: {e}") from e

    if not descriptors:
        raise ConfigurationError(f"File manifest {manifest_file} lists no files")

    logger.info("Loaded %d file descriptors from %s", len(descriptors), manifest_file)
    return tuple(descriptors)


class FileManifestResolver:
    """Resolve the manifest at a branch (cached) or at its merge-base (uncached)."""

    def __init__(
        self,
        client: RemoteRepositoryClient,
        cache: FileManifestCache,
        main_branch: str,
        descriptors: Sequence[FileDescriptor] = DEFAULT_FILE_DESCRIPTORS,
    ) -> None:
        self.client = client
        self.cache = cache
        self.main_branch = main_branch
        self.descriptors = tuple(descriptors)

    async def get_files(self, branch: str, credential: str | None) -> Manifest:
        """Manifest resolved at the tip of ``branch``, served from cache when live."""

        async def load() -> Manifest:
            pipeline = StepPipeline("get-files", branch=branch)
            return await self._resolve(pipeline, branch, credential)

        return await self.cache.get_or_load(branch, load)

    async def get_files_at_branch_creation(self, branch: str, credential: str | None) -> Manifest:
        """Manifest resolved at the merge-base of ``branch`` and the main branch.

        Not cached: the merge-base moves when the main branch is merged in.
        """
        pipeline = StepPipeline("get-files-at-branch-creation", branch=branch)
        comparison = await pipeline.run(
            "compare-with-main", self.client.compare(self.main_branch, branch, credential)
        )
        merge_base = comparison["merge_base_commit"]["sha"]
        logger.info("Merge-base of %s and %s is %s", self.main_branch, branch, merge_base)
        return await self._resolve(pipeline, merge_base, credential)

    async def _resolve(self, pipeline: StepPipeline, ref: str, credential: str | None) -> Manifest:
        entries = await pipeline.run(
            "read-files",
            asyncio.gather(
                *(self._resolve_one(descriptor, ref, credential) for descriptor in self.descriptors)
            ),
        )
        return tuple(entries)

    async def _resolve_one(
        self, descriptor: FileDescriptor, ref: str, credential: str | None
    ) -> ResolvedFileEntry:
        original, translated = await asyncio.gather(
            self._download_url(descriptor.original_path, ref, credential, "read-original-file"),
            self._download_url(descriptor.translated_path, ref, credential, "read-translated-file"),
        )
        return ResolvedFileEntry(
            **descriptor.model_dump(), original=original, translated=translated
        )

    async def _download_url(
        self, path: str, ref: str, credential: str | None, step: str
    ) -> str | None:
        try:
            data = await self.client.get_file(path, ref, credential)
        except RemoteError as e:
            raise e.tag(f"{step} {path}")
        # Directories come back as a listing without a download URL.
        if isinstance(data, dict):
            return data.get("download_url")
        return None
