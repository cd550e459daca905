#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# ****************************************************************************************************************************************************
# * BSD 3-Clause License
# *
# * Copyright (c) 2025, Mana Battery
# * All rights reserved.
# *
# * Redistribution and use in source and binary forms, with or without modification, are permitted provided that the following conditions are met:
# *
# * 1. Redistributions of source code must retain the above copyright notice, this list of conditions and the following disclaimer.
# * 2. Redistributions in binary form must reproduce the above copyright notice, this list of conditions and the following disclaimer in the
# *    documentation and/or other materials provided with the distribution.
# * 3. Neither the name of the copyright holder nor the names of its contributors may be used to endorse or promote products derived from this
# *    software without specific prior written permission.
# *
# * THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS" AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO,
# * THE IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR
# * CONTRIBUTORS BE LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO,
# * PROCUREMENT OF SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF
# * LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE,
# * EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.
# ****************************************************************************************************************************************************
"""Completion cache for resolved project configuration.

CompletionCache holds the include flags and target triple of one project
directory so repeated completion requests for that project skip the directory
walk, the config file scan and the compiler probe. The state is either
InvalidCache or a frozen ValidCache record; a refresh swaps the whole record.

Because the completion CLI runs as a short-lived process per editor request,
save_cache()/load_cache() persist the valid entry to disk between runs. The
persisted entry is dropped when either config file changes.
"""

import os
import time
import pickle
import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union

from codeconnector.config_locator import config_files
from codeconnector.constants import CACHE_DIR_ENV, COMPLETION_CACHE_FILE, DEFAULT_CACHE_DIR, MAX_CACHED_PATHS, MAX_LINE_LENGTH, NotFoundError
from codeconnector.path_utils import Filesystem, get_filesystem

logger = logging.getLogger(__name__)

__all__ = ["InvalidCache", "ValidCache", "CompletionCache", "get_cache_path", "save_cache", "load_cache"]


class InvalidCache:
    """State of a cache that holds no usable data."""

    def __repr__(self) -> str:
        return "InvalidCache()"


@dataclass(frozen=True)
class ValidCache:
    """State of a cache that describes one project directory.

    Attributes:
        project_dir: Canonical project directory
        include_paths: Include flags in the order they were stored
        target_triple: Compiler target triple (never empty)
    """

    project_dir: str
    include_paths: Tuple[str, ...]
    target_triple: str


CacheState = Union[InvalidCache, ValidCache]

_INVALID = InvalidCache()


class CompletionCache:
    """Single-entry cache of include flags and target triple per project.

    All reads and writes take an internal lock, so a host serving requests
    from several threads never observes a half-updated entry.
    """

    def __init__(self, filesystem: Optional[Filesystem] = None, max_paths: int = MAX_CACHED_PATHS):
        self._fs = filesystem or get_filesystem()
        self._max_paths = max_paths
        self._state: CacheState = _INVALID
        self._lock = threading.Lock()

    @property
    def state(self) -> CacheState:
        return self._state

    @property
    def is_valid(self) -> bool:
        return isinstance(self._state, ValidCache)

    @property
    def project_dir(self) -> Optional[str]:
        state = self._state
        return state.project_dir if isinstance(state, ValidCache) else None

    def _matches(self, state: CacheState, directory: str) -> bool:
        if not isinstance(state, ValidCache):
            return False
        try:
            resolved = self._fs.canonicalize(directory)
        except NotFoundError:
            return False
        return resolved == state.project_dir

    def is_valid_for(self, directory: str) -> bool:
        """Check if the cache currently describes a directory.

        Args:
            directory: Directory to compare (canonicalized before comparison)

        Returns:
            False if the cache is invalid, the directory cannot be resolved, or
            its canonical form differs from the cached project directory
        """
        with self._lock:
            return self._matches(self._state, directory)

    def read(self) -> Optional[Tuple[List[str], str]]:
        """Return (include_paths, target_triple), or None if invalid.

        A valid cache with no include paths returns an empty list, not None.
        """
        with self._lock:
            state = self._state
        if not isinstance(state, ValidCache):
            return None
        return list(state.include_paths), state.target_triple

    def lookup(self, directory: str) -> Optional[Tuple[List[str], str]]:
        """Validity check and read as one locked step.

        Returns:
            Cached (include_paths, target_triple) if the cache describes
            directory, else None
        """
        with self._lock:
            state = self._state
            if not self._matches(state, directory):
                return None
        assert isinstance(state, ValidCache)  # For type checker
        return list(state.include_paths), state.target_triple

    def refresh(self, directory: str, paths: Sequence[str], target: str) -> None:
        """Replace the cache contents with a new project entry.

        Prior contents are always discarded first. If the directory cannot be
        resolved, or target is empty, the cache is left invalid. Paths beyond
        the configured maximum and target text beyond MAX_LINE_LENGTH - 1
        characters are truncated with a warning.

        Args:
            directory: Project directory
            paths: Include flags to store, in the order they should be used
            target: Compiler target triple
        """
        with self._lock:
            self._state = _INVALID

            try:
                project_dir = self._fs.canonicalize(directory)
            except NotFoundError as e:
                logger.debug("Cache left invalid: %s", e)
                return

            if not target:
                logger.warning("Cache left invalid: empty target triple for %s", project_dir)
                return

            stored_paths = tuple(paths[: self._max_paths])
            if len(paths) > self._max_paths:
                logger.warning("Caching only the first %d of %d include paths for %s", self._max_paths, len(paths), project_dir)

            max_target = MAX_LINE_LENGTH - 1
            if len(target) > max_target:
                logger.warning("Target triple truncated to %d characters", max_target)
                target = target[:max_target]

            self._state = ValidCache(project_dir=project_dir, include_paths=stored_paths, target_triple=target)
            logger.debug("Cache refreshed for %s (%d include paths, target %s)", project_dir, len(stored_paths), target)

    def restore(self, entry: ValidCache) -> None:
        """Install a previously saved entry as the current state."""
        with self._lock:
            self._state = entry

    def clear(self) -> None:
        """Discard the cache contents."""
        with self._lock:
            self._state = _INVALID


# =============================================================================
# Persistent cache
# =============================================================================


@dataclass
class CacheMetadata:
    """Metadata for persistent cache validation.

    Attributes:
        config_stats: (mtime, size) of each config file, keyed by path
        cache_timestamp: Timestamp when cache was created
    """

    config_stats: Dict[str, Tuple[float, int]]
    cache_timestamp: float


@dataclass
class CachedData:
    """Container for a persisted cache entry with metadata."""

    metadata: CacheMetadata
    entry: ValidCache


def get_cache_path(cache_dir: Optional[str] = None) -> str:
    """Get the path of the persistent cache file.

    Args:
        cache_dir: Cache directory; defaults to $CODE_CONNECTOR_CACHE_DIR, then
            ~/.cache/code_connector

    Returns:
        Full path to the cache file
    """
    if cache_dir is None:
        cache_dir = os.environ.get(CACHE_DIR_ENV) or DEFAULT_CACHE_DIR
    return os.path.join(os.path.expanduser(cache_dir), COMPLETION_CACHE_FILE)


def _config_stats(project_dir: str) -> Dict[str, Tuple[float, int]]:
    stats = {}
    for path in config_files(project_dir):
        st = os.stat(path)
        stats[path] = (st.st_mtime, st.st_size)
    return stats


def is_cache_valid(metadata: CacheMetadata, max_age_hours: Optional[float] = None) -> bool:
    """Check if a persisted entry still matches its config files.

    Args:
        metadata: Cache metadata to validate
        max_age_hours: Maximum cache age in hours (None = no age limit)

    Returns:
        True if cache is valid, False otherwise
    """
    for path, (mtime, size) in metadata.config_stats.items():
        try:
            st = os.stat(path)
        except OSError:
            logger.debug("Cache invalid: %s no longer exists", path)
            return False

        if st.st_mtime != mtime or st.st_size != size:
            logger.debug("Cache invalid: %s changed", path)
            return False

    if max_age_hours is not None:
        age_hours = (time.time() - metadata.cache_timestamp) / 3600
        if age_hours > max_age_hours:
            logger.debug("Cache invalid: age %.1fh exceeds limit %sh", age_hours, max_age_hours)
            return False

    return True


def save_cache(cache: CompletionCache, cache_path: str) -> bool:
    """Persist the current cache entry.

    Uses atomic write (temp file + rename) to prevent corruption.

    Args:
        cache: Cache whose entry is saved (must be valid)
        cache_path: Path to the cache file

    Returns:
        True if successful, False otherwise
    """
    entry = cache.state
    if not isinstance(entry, ValidCache):
        logger.debug("Not saving invalid cache")
        return False

    temp_path = cache_path + ".tmp"
    try:
        os.makedirs(os.path.dirname(cache_path) or ".", exist_ok=True)
        metadata = CacheMetadata(config_stats=_config_stats(entry.project_dir), cache_timestamp=time.time())

        with open(temp_path, "wb") as f:
            pickle.dump(CachedData(metadata=metadata, entry=entry), f, protocol=pickle.HIGHEST_PROTOCOL)

        os.replace(temp_path, cache_path)
        logger.debug("Saved cache: %s", cache_path)
        return True

    except (OSError, pickle.PicklingError) as e:
        logger.warning("Failed to save cache %s: %s", cache_path, e)
        if os.path.exists(temp_path):
            try:
                os.remove(temp_path)
            except OSError as cleanup_error:
                logger.debug("Failed to remove %s: %s", temp_path, cleanup_error)
        return False


def load_cache(cache: CompletionCache, cache_path: str, max_age_hours: Optional[float] = None) -> bool:
    """Restore a persisted entry into cache if it is still valid.

    A corrupted cache file is removed and reported as a miss.

    Args:
        cache: Cache to populate
        cache_path: Path to the cache file
        max_age_hours: Maximum cache age in hours (None = no age limit)

    Returns:
        True if an entry was restored, False otherwise
    """
    if not os.path.exists(cache_path):
        logger.debug("Cache miss: %s does not exist", cache_path)
        return False

    try:
        with open(cache_path, "rb") as f:
            cached_data: CachedData = pickle.load(f)

        if not isinstance(cached_data, CachedData) or not isinstance(cached_data.entry, ValidCache):
            raise pickle.UnpicklingError("unexpected cache content")

        if not is_cache_valid(cached_data.metadata, max_age_hours):
            return False

        cache.restore(cached_data.entry)
        logger.debug("Cache hit: %s (project: %s)", cache_path, cached_data.entry.project_dir)
        return True

    except (OSError, pickle.UnpicklingError, AttributeError, EOFError, TypeError) as e:
        logger.warning("Failed to load cache %s: %s, falling back to regeneration", cache_path, e)
        try:
            os.remove(cache_path)
            logger.debug("Removed corrupted cache: %s", cache_path)
        except OSError as cleanup_error:
            logger.debug("Failed to remove %s: %s", cache_path, cleanup_error)
        return False
