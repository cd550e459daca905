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
"""Locate the project directory holding .ccls and compile_flags.txt."""

import os
import logging
from typing import Optional, Tuple

from codeconnector.constants import (
    CCLS_FILE,
    COMPILE_FLAGS_FILE,
    DEFAULT_CCLS_CONTENT,
    DEFAULT_COMPILE_FLAGS_CONTENT,
    ConfigNotFoundError,
    ConfigWriteError,
    NotFoundError,
)
from codeconnector.path_utils import Filesystem, get_filesystem

logger = logging.getLogger(__name__)

__all__ = ["locate", "config_files", "has_config_files", "create_default_config_files"]


def has_config_files(directory: str, filesystem: Optional[Filesystem] = None) -> bool:
    """Check if a directory directly contains both config files.

    Names are matched exactly (case-sensitive).

    Raises:
        OSError: If the directory cannot be listed
    """
    fs = filesystem or get_filesystem()
    entries = set(fs.list_dir(directory))
    return CCLS_FILE in entries and COMPILE_FLAGS_FILE in entries


def locate(start_dir: str, filesystem: Optional[Filesystem] = None) -> str:
    """Walk upward from start_dir to the directory holding both config files.

    The search only ever moves to the parent directory; siblings and children
    are never visited. It ends at the filesystem root.

    Args:
        start_dir: Directory to start from (relative paths and symlinks allowed)
        filesystem: Filesystem adapter (default: LocalFilesystem)

    Returns:
        Canonical path of the project directory

    Raises:
        ConfigNotFoundError: If start_dir cannot be resolved, a directory on the
            way cannot be listed, or the root is reached without a match
    """
    fs = filesystem or get_filesystem()

    try:
        current = fs.canonicalize(start_dir)
    except NotFoundError as e:
        raise ConfigNotFoundError(f"Cannot search for {CCLS_FILE} and {COMPILE_FLAGS_FILE}: {e}") from e

    while True:
        try:
            found = has_config_files(current, fs)
        except OSError as e:
            # An unreadable directory ends the search; it is not skipped
            logger.debug("Cannot open directory %s: %s", current, e)
            raise ConfigNotFoundError(f"Cannot open directory {current} while searching for {CCLS_FILE} and {COMPILE_FLAGS_FILE}: {e}") from e

        if found:
            logger.debug("Found project configuration in %s", current)
            return current

        if fs.is_root(current):
            break

        current = fs.parent(current)

    raise ConfigNotFoundError(f"No directory containing both {CCLS_FILE} and {COMPILE_FLAGS_FILE} found above {start_dir}")


def config_files(project_dir: str, filesystem: Optional[Filesystem] = None) -> Tuple[str, str]:
    """Return (compile_flags.txt path, .ccls path) for a project directory.

    The order is the order in which include flags are extracted.
    """
    fs = filesystem or get_filesystem()
    return fs.join(project_dir, COMPILE_FLAGS_FILE), fs.join(project_dir, CCLS_FILE)


def create_default_config_files(directory: str) -> Tuple[str, str]:
    """Write default .ccls and compile_flags.txt into a directory.

    Existing files are left untouched.

    Args:
        directory: Target directory (must exist)

    Returns:
        Tuple of (ccls_path, compile_flags_path)

    Raises:
        ConfigWriteError: If the directory is missing or a file cannot be written
    """
    if not os.path.isdir(directory):
        raise ConfigWriteError(f"Not a directory: {directory}")

    ccls_path = os.path.join(directory, CCLS_FILE)
    compile_flags_path = os.path.join(directory, COMPILE_FLAGS_FILE)

    for path, content in ((ccls_path, DEFAULT_CCLS_CONTENT), (compile_flags_path, DEFAULT_COMPILE_FLAGS_CONTENT)):
        if os.path.exists(path):
            logger.debug("Keeping existing %s", path)
            continue
        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write(content)
            logger.info("Created %s", path)
        except OSError as e:
            raise ConfigWriteError(f"Cannot write {path}: {e}") from e

    return ccls_path, compile_flags_path
