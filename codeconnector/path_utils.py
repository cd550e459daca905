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
"""Path resolution and the filesystem capability used by project discovery.

The upward search and the cache compare directories by their canonical form, so
every path passes through canonicalize() before it is stored or compared.
"""

import os
import logging
from typing import List

from codeconnector.constants import NotFoundError

logger = logging.getLogger(__name__)


class Filesystem:
    """Capabilities the configuration discovery needs from the OS.

    Subclasses provide list_dir, canonicalize, join and parent; is_root and
    exists derive from them.
    """

    def list_dir(self, path: str) -> List[str]:
        """Return the names of the immediate entries of a directory.

        Raises:
            OSError: If the directory cannot be opened
        """
        raise NotImplementedError

    def canonicalize(self, path: str) -> str:
        """Resolve symlinks and relative segments to an absolute path.

        Raises:
            NotFoundError: If the path does not exist or cannot be resolved
        """
        raise NotImplementedError

    def join(self, directory: str, name: str) -> str:
        raise NotImplementedError

    def parent(self, path: str) -> str:
        raise NotImplementedError

    def is_root(self, path: str) -> bool:
        """Check if path has no parent (filesystem root or drive root)."""
        return self.parent(path) == path

    def exists(self, path: str) -> bool:
        try:
            self.canonicalize(path)
        except NotFoundError:
            return False
        return True


class LocalFilesystem(Filesystem):
    """Filesystem adapter backed by os and os.path.

    os.path picks the separator rules of the running platform, so the same
    adapter serves POSIX and Windows hosts.
    """

    def list_dir(self, path: str) -> List[str]:
        return os.listdir(path)

    def canonicalize(self, path: str) -> str:
        if not path:
            raise NotFoundError("Cannot resolve an empty path")

        resolved = os.path.realpath(os.path.expanduser(path))

        # realpath() does not fail on missing targets; a dangling symlink resolves to a missing path
        if not os.path.exists(resolved):
            logger.debug("Cannot resolve %s (resolved to %s)", path, resolved)
            raise NotFoundError(f"Path does not exist or cannot be resolved: {path}")

        return resolved

    def join(self, directory: str, name: str) -> str:
        return os.path.join(directory, name)

    def parent(self, path: str) -> str:
        return os.path.dirname(path)


_default_filesystem = LocalFilesystem()


def get_filesystem() -> Filesystem:
    """Return the process-wide LocalFilesystem adapter."""
    return _default_filesystem


def canonicalize(path: str) -> str:
    """Resolve a path to its canonical absolute form.

    Args:
        path: Absolute or relative path, may contain symlinks and '..'

    Returns:
        Canonical absolute path

    Raises:
        NotFoundError: If the path does not exist or cannot be resolved
    """
    return _default_filesystem.canonicalize(path)
