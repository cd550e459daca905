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
"""Utilities for building clang code-completion commands and parsing their output."""

import re
import shlex
import logging
import subprocess
from typing import List, Optional, Tuple

from codeconnector.cache_utils import CompletionCache
from codeconnector.config_locator import config_files, locate
from codeconnector.constants import (
    CLANG_COMMAND,
    CLANG_COMPLETION_TIMEOUT,
    CLANG_PROBE_TIMEOUT,
    COMPLETION_FLAGS,
    ArgumentError,
    ClangError,
    CompletionError,
    NotFoundError,
    SourceFileNotFoundError,
)
from codeconnector.include_paths import extract
from codeconnector.path_utils import Filesystem, get_filesystem
from codeconnector.tool_detection import probe_target

logger = logging.getLogger(__name__)

__all__ = [
    "CompletionCommandBuilder",
    "filter_clang_output",
    "substitute_function_pattern",
    "split_input_string",
    "run_code_completion",
    "process_completion_request",
]

# COMPLETION: remainderf : [#float#]remainderf(<#float x#>, <#float y#>)
# Only the first and the last placeholder are captured (a repeated group keeps its last match).
COMPLETION_RE = re.compile(r"^COMPLETION: ([^ ]+) : \[#([^#]+)#\]\1\(<#([^#]+)#>(, <#([^#]+)#>)*\)", re.MULTILINE)


def _validate_position(line: int, column: int) -> None:
    for name, value in (("line", line), ("column", column)):
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ArgumentError(f"Invalid {name} number: {value!r} (must be a positive integer)")


def _flag_words(include_flag: str) -> List[str]:
    """Split one config line into argv words ("-isystem /x" -> two words)."""
    try:
        return shlex.split(include_flag)
    except ValueError as e:
        logger.warning("Passing include flag %r unsplit: %s", include_flag, e)
        return [include_flag]


class CompletionCommandBuilder:
    """Assembles the clang completion invocation for a source position.

    The builder owns no state of its own: resolved project configuration lives
    in the injected CompletionCache, which is consulted for the project the
    requested file belongs to.
    """

    def __init__(
        self,
        cache: Optional[CompletionCache] = None,
        filesystem: Optional[Filesystem] = None,
        clang: Optional[str] = None,
        probe_timeout: float = CLANG_PROBE_TIMEOUT,
    ):
        self.filesystem = filesystem or get_filesystem()
        self.cache = cache if cache is not None else CompletionCache(self.filesystem)
        self.clang = clang or CLANG_COMMAND
        self.probe_timeout = probe_timeout

    def resolve(self, filename: str) -> Tuple[str, str, List[str], str]:
        """Resolve the project configuration for a source file.

        Args:
            filename: Source file of the completion request

        Returns:
            Tuple of (canonical_file, project_dir, include_paths, target_triple)

        Raises:
            SourceFileNotFoundError: If the file does not exist
            ConfigNotFoundError: If no project directory is found above the file
            TargetProbeError: If the compiler target cannot be determined
            IncludeFileError: If a config file cannot be read
        """
        try:
            canonical_file = self.filesystem.canonicalize(filename)
        except NotFoundError as e:
            raise SourceFileNotFoundError(f"File does not exist: {filename}") from e

        file_dir = self.filesystem.parent(canonical_file)
        project_dir = locate(file_dir, self.filesystem)

        cached = self.cache.lookup(project_dir)
        if cached is not None:
            include_paths, target = cached
            logger.debug("Using cached configuration for %s", project_dir)
            return canonical_file, project_dir, include_paths, target

        logger.debug("Resolving configuration for %s", project_dir)
        target = probe_target(self.clang, timeout=self.probe_timeout)
        compile_flags_path, ccls_path = config_files(project_dir, self.filesystem)
        include_paths = extract(compile_flags_path, ccls_path).sorted

        self.cache.refresh(project_dir, include_paths, target)
        cached = self.cache.lookup(project_dir)
        if cached is not None:
            include_paths, target = cached

        return canonical_file, project_dir, include_paths, target

    def build_argv(self, filename: str, line: int, column: int) -> List[str]:
        """Build the completion invocation as an argument list.

        Args:
            filename: Source file of the completion request
            line: 1-based line number
            column: 1-based column number

        Returns:
            clang argv: target, completion flags, sorted include flags and the
            completion position

        Raises:
            ArgumentError: If line or column is not a positive integer
            SourceFileNotFoundError, ConfigNotFoundError, TargetProbeError,
            IncludeFileError: See resolve()
        """
        _validate_position(line, column)
        canonical_file, _, include_paths, target = self.resolve(filename)

        argv = [self.clang, "-target", target, *COMPLETION_FLAGS]
        for include_flag in include_paths:
            argv.extend(_flag_words(include_flag))
        argv.extend(["-Xclang", f"-code-completion-at={canonical_file}:{line}:{column}", canonical_file])
        return argv

    def build(self, filename: str, line: int, column: int) -> str:
        """Build the completion invocation as a shell command string."""
        return shlex.join(self.build_argv(filename, line, column))


def filter_clang_output(raw_output: str) -> str:
    """Reformat clang completion output into editor-friendly call templates.

    "COMPLETION: pow : [#double#]pow(<#double x#>, <#double y#>)" becomes
    "pow(`<double x>`, `<double y>`)". Completions that are not function calls
    with at least one parameter are skipped.

    Args:
        raw_output: Captured stdout of the clang completion invocation

    Returns:
        One template per line, each ending with a newline; "" if none matched
    """
    parts = []
    for match in COMPLETION_RE.finditer(raw_output):
        name, first_arg, repeated, last_arg = match.group(1), match.group(3), match.group(4), match.group(5)
        text = f"{name}(`<{first_arg}>`"
        if repeated is not None:
            text += f", `<{last_arg}>`"
        parts.append(text + ")\n")

    logger.debug("Filtered %d completions", len(parts))
    return "".join(parts)


def _extract_function_name(text: str) -> Optional[str]:
    stripped = text.lstrip()
    match = re.match(r"[^\s(]+", stripped)
    return match.group(0) if match else None


def _find_function_call(text: str, func_name: str) -> Optional[Tuple[int, int]]:
    """Find a call of func_name in text.

    The name must start the text or follow whitespace, '(' or ','. Without an
    opening parenthesis, or with unbalanced parentheses, the call runs to the
    end of the text.

    Returns:
        (call_start, call_end) offsets, or None if the name does not occur
    """
    pos = text.find(func_name)
    while pos != -1:
        if pos > 0 and not text[pos - 1].isspace() and text[pos - 1] not in "(,":
            pos = text.find(func_name, pos + 1)
            continue

        cursor = pos + len(func_name)
        while cursor < len(text) and text[cursor].isspace():
            cursor += 1

        if cursor >= len(text) or text[cursor] != "(":
            return pos, len(text)

        depth = 0
        for index in range(cursor, len(text)):
            if text[index] == "(":
                depth += 1
            elif text[index] == ")":
                depth -= 1
                if depth == 0:
                    return pos, index + 1
        return pos, len(text)

    return None


def substitute_function_pattern(source: str, pattern: str) -> Optional[str]:
    """Replace the call in source with the call template from pattern.

    Example: source "x = pow(" and pattern "pow(`<double x>`, `<double y>`)"
    give "x = pow(`<double x>`, `<double y>`)".

    Args:
        source: Line of source code around the completion position
        pattern: Completion template produced by filter_clang_output()

    Returns:
        Substituted line, or None if the pattern has no function name or the
        function does not occur in source
    """
    func_name = _extract_function_name(pattern)
    if not func_name:
        logger.debug("Empty function name in pattern %r", pattern)
        return None

    source_call = _find_function_call(source, func_name)
    if source_call is None:
        logger.debug("Function %s not found in source line", func_name)
        return None

    pattern_call = _find_function_call(pattern, func_name)
    if pattern_call is None:
        return None

    source_start, source_end = source_call
    pattern_start, pattern_end = pattern_call
    return source[:source_start] + pattern[pattern_start:pattern_end] + source[source_end:]


def split_input_string(text: str) -> Tuple[str, int, int]:
    """Split an editor request "<file> <line> <column>".

    The file name may contain spaces; line and column are the last two fields.

    Raises:
        ArgumentError: If the request is malformed
    """
    parts = text.strip().rsplit(None, 2)
    if len(parts) != 3:
        raise ArgumentError(f"Invalid input format (expected '<file> <line> <column>'): {text!r}")

    filename, line_str, column_str = parts
    try:
        line, column = int(line_str), int(column_str)
    except ValueError as e:
        raise ArgumentError(f"Invalid line or column in {text!r}") from e

    _validate_position(line, column)
    return filename, line, column


def run_code_completion(builder: CompletionCommandBuilder, filename: str, line: int, column: int, timeout: float = CLANG_COMPLETION_TIMEOUT) -> str:
    """Run the clang completion invocation and return its raw stdout.

    A non-zero clang exit status is logged but not fatal: clang reports errors
    in the edited file while still printing completions.

    Raises:
        ClangError: If clang cannot be spawned or times out
        CodeConnectorError: Any error from building the command
    """
    argv = builder.build_argv(filename, line, column)
    logger.debug("Running: %s", shlex.join(argv))

    try:
        result = subprocess.run(argv, capture_output=True, text=True, check=False, timeout=timeout)
    except subprocess.TimeoutExpired as e:
        raise ClangError(f"clang did not finish within {timeout}s") from e
    except OSError as e:
        raise ClangError(f"Cannot run '{argv[0]}': {e}") from e

    if result.returncode != 0:
        logger.debug("clang exited with status %d: %s", result.returncode, (result.stderr or "").strip()[:500])

    return result.stdout or ""


def read_source_line(filename: str, line: int) -> Optional[str]:
    """Return line number `line` of a file without its terminator, or None."""
    try:
        with open(filename, "r", encoding="utf-8", errors="surrogateescape") as f:
            for number, text in enumerate(f, start=1):
                if number == line:
                    return text.rstrip("\r\n")
    except OSError as e:
        logger.debug("Cannot read %s: %s", filename, e)
    return None


def process_completion_request(
    builder: CompletionCommandBuilder, filename: str, line: int, column: int, timeout: float = CLANG_COMPLETION_TIMEOUT
) -> str:
    """Produce the single completion line handed back to the editor.

    The first completion template is substituted into the source line at the
    requested position; if that fails the bare template is returned.

    Raises:
        CompletionError: If clang produced no usable completion
        CodeConnectorError: Any error from building or running the command
    """
    raw_output = run_code_completion(builder, filename, line, column, timeout)
    completions = [entry for entry in filter_clang_output(raw_output).splitlines() if entry]
    if not completions:
        raise CompletionError(f"No completion available at {filename}:{line}:{column}")

    first = completions[0]
    source_line = read_source_line(filename, line)
    if source_line is not None:
        substituted = substitute_function_pattern(source_line, first)
        if substituted is not None:
            return substituted

    return first
