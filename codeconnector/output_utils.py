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
"""Hand completion results to the editor through a temporary file."""

import os
import logging
import tempfile
from typing import Optional

from codeconnector.constants import HANDOFF_DIR_NAME, HANDOFF_FILE_TEMPLATE, FileAccessError

logger = logging.getLogger(__name__)


def get_handoff_dir(base_dir: Optional[str] = None) -> str:
    """Return the handoff directory below base_dir (default: system temp dir)."""
    return os.path.join(base_dir or tempfile.gettempdir(), HANDOFF_DIR_NAME)


def get_handoff_path(pid: Optional[int] = None, base_dir: Optional[str] = None) -> str:
    """Return the handoff file path for a process id (default: this process)."""
    filename = HANDOFF_FILE_TEMPLATE.format(pid=os.getpid() if pid is None else pid)
    return os.path.join(get_handoff_dir(base_dir), filename)


def write_result_to_temp_file(result: str, base_dir: Optional[str] = None) -> str:
    """Write a completion result for the editor to pick up.

    Files left over from earlier requests are removed first, so the handoff
    directory only ever holds the latest result.

    Args:
        result: Text to hand off
        base_dir: Parent of the handoff directory (default: system temp dir)

    Returns:
        Path of the written file

    Raises:
        FileAccessError: If the handoff directory or file cannot be written
    """
    handoff_dir = get_handoff_dir(base_dir)

    try:
        os.makedirs(handoff_dir, mode=0o700, exist_ok=True)
        for name in os.listdir(handoff_dir):
            stale_path = os.path.join(handoff_dir, name)
            if os.path.isfile(stale_path):
                os.remove(stale_path)
                logger.debug("Removed stale handoff file %s", stale_path)

        path = get_handoff_path(base_dir=base_dir)
        with open(path, "w", encoding="utf-8") as f:
            f.write(result)
    except OSError as e:
        raise FileAccessError(f"Cannot write result to {handoff_dir}: {e}") from e

    logger.debug("Wrote result to %s", path)
    return path


def read_result_from_temp_file(pid: Optional[int] = None, base_dir: Optional[str] = None) -> str:
    """Read back a handed-off result.

    Raises:
        FileAccessError: If the handoff file does not exist or cannot be read
    """
    path = get_handoff_path(pid, base_dir)
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except OSError as e:
        raise FileAccessError(f"Cannot read result file {path}: {e}") from e
