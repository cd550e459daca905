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
"""Utilities for generating the ccls navigation index."""

import logging
import subprocess
from typing import Optional

from codeconnector.config_locator import locate
from codeconnector.constants import CCLS_COMMAND, CCLS_INDEX_TIMEOUT, CclsError

logger = logging.getLogger(__name__)


def execute_ccls_index(directory: str, ccls: Optional[str] = None, timeout: Optional[float] = CCLS_INDEX_TIMEOUT) -> str:
    """Run `ccls --index` for the project containing a directory.

    The project directory is located the same way as for completion requests,
    so the index can be requested from any subdirectory of the project.

    Args:
        directory: Project directory or any directory below it
        ccls: ccls command (default: "ccls")
        timeout: Seconds to wait for ccls (None = no limit)

    Returns:
        The indexed project directory

    Raises:
        ConfigNotFoundError: If no project directory is found
        CclsError: If ccls cannot be spawned, times out, or exits non-zero
    """
    project_dir = locate(directory)
    cmd = [ccls or CCLS_COMMAND, "--index", project_dir]
    logger.info("Indexing %s", project_dir)
    logger.debug("Running: %s", " ".join(cmd))

    try:
        result = subprocess.run(cmd, cwd=project_dir, capture_output=True, text=True, check=False, timeout=timeout)
    except subprocess.TimeoutExpired as e:
        raise CclsError(f"ccls did not finish indexing {project_dir} within {timeout}s") from e
    except OSError as e:
        raise CclsError(f"Cannot run '{cmd[0]}': {e}") from e

    if result.returncode != 0:
        details = (result.stderr or result.stdout or "").strip()
        raise CclsError(f"ccls --index failed with exit code {result.returncode}" + (f": {details[-500:]}" if details else ""))

    logger.debug("ccls output: %s", (result.stdout or "").strip())
    return project_dir
