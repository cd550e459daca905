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
"""External tool detection and compiler target probing for code-connector.

This module detects the clang and ccls executables and determines the default
target triple of the compiler, which the completion command passes to
`clang -target`.

Tool detection results are cached within the Python process session to avoid
repeated subprocess calls.

CLI Interface:
    python3 -m codeconnector.tool_detection --find-<tool>    # Output command name, exit 0/1
    python3 -m codeconnector.tool_detection --check-all      # Output JSON with all tools
    python3 -m codeconnector.tool_detection --probe-target   # Output target triple, exit 0/1
"""

import re
import sys
import json
import shutil
import logging
import argparse
import subprocess
from typing import Optional, Dict, List
from dataclasses import dataclass

from codeconnector.constants import CLANG_COMMAND, CLANG_PROBE_TIMEOUT, CLANG_TARGET_MARKER, TOOL_DETECTION_TIMEOUT, TargetProbeError

logger = logging.getLogger(__name__)

# Tool command variants to try (in order of preference)
CLANG_COMMANDS = ["clang", "clang-20", "clang-19", "clang-18"]
CCLS_COMMANDS = ["ccls"]

_TARGET_RE = re.compile(r"^" + re.escape(CLANG_TARGET_MARKER) + r"([^\n]*)$", re.MULTILINE)

# Session-level cache for tool detection results (keyed by function name)
_tool_cache: Dict[str, "ToolInfo"] = {}


@dataclass
class ToolInfo:
    """Information about a detected external tool.

    Attributes:
        command: Command name as found in PATH (e.g., "clang-19")
        version: First line of the tool's --version output
        error_message: Why detection failed (None when found)
    """

    command: Optional[str]
    version: Optional[str]
    error_message: Optional[str] = None

    def is_found(self) -> bool:
        """Check if tool was found.

        Returns:
            True if command is not None
        """
        return self.command is not None


def clear_cache() -> None:
    """Clear the tool detection cache.

    Useful for testing or when environment changes during process lifetime.
    """
    _tool_cache.clear()
    logger.debug("Tool detection cache cleared")


def _try_command(cmd_parts: List[str], timeout: int = TOOL_DETECTION_TIMEOUT) -> Optional[str]:
    """Try to run a command with --version and return version output.

    Args:
        cmd_parts: Command parts (e.g., ["clang"])
        timeout: Timeout in seconds for subprocess call

    Returns:
        Version output string if successful, None otherwise
    """
    try:
        result = subprocess.run(cmd_parts + ["--version"], capture_output=True, text=True, check=True, timeout=timeout)
        return result.stdout.strip()
    except (subprocess.CalledProcessError, FileNotFoundError, PermissionError, subprocess.TimeoutExpired):
        return None


def _extract_version(output: str) -> str:
    """Return the first line of version output, stripped."""
    lines = output.split("\n")
    return lines[0].strip() if lines else output.strip()


def _find_tool(cache_key: str, tool_name: str, candidates: List[str]) -> ToolInfo:
    """Try candidate commands in order and cache the first that works."""
    if cache_key in _tool_cache:
        return _tool_cache[cache_key]

    for cmd in candidates:
        logger.debug("Trying %s...", cmd)
        version_output = _try_command([cmd])

        if version_output:
            # Validate command exists in PATH
            if shutil.which(cmd):
                version = _extract_version(version_output)
                logger.debug("Found %s version %s", cmd, version)
                tool_info = ToolInfo(command=cmd, version=version)
                _tool_cache[cache_key] = tool_info
                return tool_info
            logger.debug("%s responded but not in PATH", cmd)
        else:
            logger.debug("%s not found", cmd)

    logger.debug("%s not found", tool_name)
    tool_info = ToolInfo(command=None, version=None, error_message=f"not in PATH (tried: {', '.join(candidates)})")
    _tool_cache[cache_key] = tool_info
    return tool_info


def find_clang() -> ToolInfo:
    """Find an available clang executable.

    Tries commands in order: clang, clang-20, clang-19, clang-18

    Returns:
        ToolInfo with command and version if found, or empty ToolInfo if not found
    """
    return _find_tool("find_clang", "clang", CLANG_COMMANDS)


def find_ccls() -> ToolInfo:
    """Find the ccls language server used for index generation."""
    return _find_tool("find_ccls", "ccls", CCLS_COMMANDS)


def check_all_tools() -> Dict[str, Dict[str, str]]:
    """Check all known tools and return their status.

    Returns:
        Dictionary with tool names as keys, each containing command and version.
        Missing tools are omitted from the result.
    """
    tools: Dict[str, Dict[str, str]] = {}

    for tool_name, find_func in (("clang", find_clang), ("ccls", find_ccls)):
        tool_info = find_func()
        if tool_info.is_found():
            assert tool_info.command is not None  # For type checker
            tools[tool_name] = {"command": tool_info.command, "version": tool_info.version or "unknown"}

    return tools


def parse_target_triple(output: str) -> str:
    """Extract the target triple from `clang --version` output.

    Args:
        output: Captured stdout of the compiler

    Returns:
        Text after "Target: " up to end of line, trimmed

    Raises:
        TargetProbeError: If no non-empty "Target: " line is present
    """
    match = _TARGET_RE.search(output)
    if not match:
        raise TargetProbeError(f"No '{CLANG_TARGET_MARKER.strip()}' line in compiler version output")

    triple = match.group(1).strip()
    if not triple:
        raise TargetProbeError(f"Empty '{CLANG_TARGET_MARKER.strip()}' line in compiler version output")

    return triple


def probe_target(clang: Optional[str] = None, timeout: float = CLANG_PROBE_TIMEOUT) -> str:
    """Determine the compiler's default target triple.

    Runs `<clang> --version` synchronously. The exit status is not checked;
    only the captured stdout matters.

    Args:
        clang: Compiler command (default: "clang")
        timeout: Seconds to wait for the compiler

    Returns:
        Target triple (e.g., "x86_64-pc-linux-gnu")

    Raises:
        TargetProbeError: If the compiler cannot be spawned, times out, or
            reports no target
    """
    cmd = [clang or CLANG_COMMAND, "--version"]
    logger.debug("Probing compiler target: %s", " ".join(cmd))

    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=False, timeout=timeout)
    except subprocess.TimeoutExpired as e:
        raise TargetProbeError(f"'{' '.join(cmd)}' did not finish within {timeout}s") from e
    except OSError as e:
        raise TargetProbeError(f"Cannot run '{cmd[0]}': {e}") from e

    triple = parse_target_triple(result.stdout or "")
    logger.debug("Compiler target: %s", triple)
    return triple


def main() -> int:
    """Main entry point for CLI usage.

    Returns:
        Exit code: 0 if tool found (or check-all succeeds), 1 if not found
    """
    parser = argparse.ArgumentParser(description="Detect external tools for code-connector", formatter_class=argparse.RawDescriptionHelpFormatter)

    parser.add_argument("--find-clang", action="store_true", help="Find clang compiler")
    parser.add_argument("--find-ccls", action="store_true", help="Find ccls indexer")
    parser.add_argument("--check-all", action="store_true", help="Check all tools and output JSON")
    parser.add_argument("--probe-target", action="store_true", help="Print the compiler's default target triple")
    parser.add_argument("--clang", metavar="CMD", default=None, help="Compiler used by --probe-target (default: clang)")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose debug logging")

    args = parser.parse_args()

    # Configure logging
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(message)s", stream=sys.stderr)
    else:
        logging.basicConfig(level=logging.WARNING)

    if args.check_all:
        print(json.dumps({"tools": check_all_tools()}, indent=2))
        return 0

    if args.probe_target:
        try:
            print(probe_target(args.clang))
        except TargetProbeError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        return 0

    for flag_value, find_func in ((args.find_clang, find_clang), (args.find_ccls, find_ccls)):
        if flag_value:
            tool_info = find_func()
            if tool_info.is_found():
                print(tool_info.command)
                return 0
            return 1

    # No arguments provided
    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
