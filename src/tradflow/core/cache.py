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

"""Branch-scoped cache of resolved file manifests.

Entries expire after a TTL and are invalidated explicitly by every
mutation of the branch. Download URLs returned by the contents API point
at a specific blob, so an entry that survives a commit points at
superseded content.

Concurrent misses for the same branch share one load (single-flight).
A load that started before an invalidation is not stored, so a commit
landing mid-load cannot be masked by the pre-commit manifest.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass

from .models import ResolvedFileEntry

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600.0

Manifest = tuple[ResolvedFileEntry, ...]


@dataclass(frozen=True)
class _CacheEntry:
    entries: Manifest
    expires_at: float | None


class FileManifestCache:
    """In-process manifest cache keyed by branch name.

    Example:
        >>> cache = FileManifestCache(default_ttl=60)
        >>> cache.set("2024-01-01-00-00-00-000", entries)
        >>> cache.get("2024-01-01-00-00-00-000")
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize cache.

        Args:
            default_ttl: Lifetime of entries in seconds (<= 0 disables expiry)
            clock: Monotonic time source, injectable for tests
        """
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}
        self._generations: dict[str, int] = {}
        self._inflight: dict[str, asyncio.Future[Manifest]] = {}

    def __len__(self) -> int:
        return sum(1 for branch in list(self._entries) if self.get(branch) is not None)

    def __contains__(self, branch: object) -> bool:
        return isinstance(branch, str) and self.get(branch) is not None

    def get(self, branch: str) -> Manifest | None:
        """Return the live entry for ``branch``, dropping it if expired."""
        entry = self._entries.get(branch)
        if entry is None:
            return None
        if entry.expires_at is not None and self._clock() >= entry.expires_at:
            logger.debug("Manifest cache entry for %s expired", branch)
            del self._entries[branch]
            return None
        return entry.entries

    def set(
        self, branch: str, entries: Iterable[ResolvedFileEntry], ttl: float | None = None
    ) -> Manifest:
        """Store ``entries`` for ``branch``; last write wins."""
        ttl = self.default_ttl if ttl is None else ttl
        manifest = tuple(entries)
        expires_at = self._clock() + ttl if ttl > 0 else None
        self._entries[branch] = _CacheEntry(manifest, expires_at)
        return manifest

    def invalidate(self, branch: str) -> bool:
        """Drop the entry for ``branch`` and discard any load in flight.

        Returns:
            True if a live or expired entry was removed
        """
        self._generations[branch] = self._generations.get(branch, 0) + 1
        # Later callers must start a fresh load instead of joining a stale one.
        self._inflight.pop(branch, None)
        removed = self._entries.pop(branch, None) is not None
        logger.debug("Invalidated manifest cache for %s (removed=%s)", branch, removed)
        return removed

    def clear(self) -> None:
        for branch in list(self._entries):
            self.invalidate(branch)

    async def get_or_load(
        self, branch: str, loader: Callable[[], Awaitable[Iterable[ResolvedFileEntry]]]
    ) -> Manifest:
        """Return the cached manifest or load it once for all concurrent callers.

        Args:
            branch: Branch name
            loader: Coroutine factory resolving the manifest remotely

        Returns:
            Cached or freshly loaded manifest

        Raises:
            Whatever ``loader`` raises; failures are not cached
        """
        cached = self.get(branch)
        if cached is not None:
            logger.info("Returning cached files for branch %s", branch)
            return cached

        pending = self._inflight.get(branch)
        if pending is not None:
            logger.debug("Joining in-flight manifest load for %s", branch)
            return await asyncio.shield(pending)

        pending = asyncio.get_running_loop().create_future()
        self._inflight[branch] = pending
        generation = self._generations.get(branch, 0)
        try:
            manifest = tuple(await loader())
        except asyncio.CancelledError:
            pending.cancel()
            raise
        except Exception as e:
            pending.set_exception(e)
            # Mark retrieved: the leader re-raises, waiters may not exist.
            pending.exception()
            raise
        finally:
            if self._inflight.get(branch) is pending:
                del self._inflight[branch]

        if self._generations.get(branch, 0) == generation:
            self.set(branch, manifest)
        else:
            logger.info("Branch %s changed during manifest load; not caching", branch)
        pending.set_result(manifest)
        return manifest
