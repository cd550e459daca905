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
"""Extract include-path flags from the project config files."""

import logging
from typing import List, NamedTuple

from codeconnector.constants import EXCLUDED_INCLUDE_TOKEN, INCLUDE_MARKER, MAX_LINES, SYSTEM_INCLUDE_MARKER, IncludeFileError

logger = logging.getLogger(__name__)

__all__ = ["IncludePaths", "is_include_flag_line", "read_include_lines", "remove_duplicates", "extract"]


class IncludePaths(NamedTuple):
    """Deduplicated include flags in two views.

    Attributes:
        ordered: Flags in order of first appearance (first file before second)
        sorted: The same flags in byte-wise lexicographic order
    """

    ordered: List[str]
    sorted: List[str]


def is_include_flag_line(line: str) -> bool:
    """Check if a config line carries an include flag worth keeping.

    Lines containing the excluded token are rejected even when they also
    contain an include marker.
    """
    if EXCLUDED_INCLUDE_TOKEN in line:
        return False
    return SYSTEM_INCLUDE_MARKER in line or INCLUDE_MARKER in line


def read_include_lines(file_a: str, file_b: str, max_lines: int = MAX_LINES) -> List[str]:
    """Collect include flag lines from two files, file_a first.

    Collection stops growing once max_lines - 1 candidates are held; remaining
    lines are still read but dropped.

    Args:
        file_a: First config file
        file_b: Second config file
        max_lines: Candidate bound

    Returns:
        Candidate lines without their line terminators, duplicates included

    Raises:
        IncludeFileError: If either file cannot be opened or read
    """
    lines: List[str] = []
    limit = max_lines - 1
    dropped = 0

    for path in (file_a, file_b):
        try:
            with open(path, "r", encoding="utf-8", errors="surrogateescape") as f:
                for raw_line in f:
                    if not is_include_flag_line(raw_line):
                        continue
                    if len(lines) >= limit:
                        dropped += 1
                        continue
                    lines.append(raw_line.rstrip("\r\n"))
        except OSError as e:
            raise IncludeFileError(f"Cannot read config file {path}: {e}") from e

    if dropped:
        logger.warning("Dropped %d include lines beyond the limit of %d", dropped, limit)

    return lines


def remove_duplicates(lines: List[str]) -> List[str]:
    """Remove exact duplicates, keeping the first occurrence and its position."""
    seen = set()
    unique = []
    for line in lines:
        if line in seen:
            continue
        seen.add(line)
        unique.append(line)
    return unique


def extract(file_a: str, file_b: str, max_lines: int = MAX_LINES) -> IncludePaths:
    """Read, deduplicate and sort the include flags of two config files.

    Args:
        file_a: First config file (compile_flags.txt in the completion flow)
        file_b: Second config file (.ccls in the completion flow)
        max_lines: Candidate bound passed to read_include_lines()

    Returns:
        IncludePaths with the insertion-ordered and the sorted view

    Raises:
        IncludeFileError: If either file cannot be opened or read
    """
    candidates = read_include_lines(file_a, file_b, max_lines)
    ordered = remove_duplicates(candidates)
    logger.debug("Extracted %d include flags (%d candidates) from %s and %s", len(ordered), len(candidates), file_a, file_b)
    return IncludePaths(ordered=ordered, sorted=sorted(ordered))
