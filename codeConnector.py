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
"""Produce a clang code completion for a source position.

This script locates the project configuration (.ccls and compile_flags.txt) of
a source file, runs clang in code-completion mode with the project's include
flags and prints the first completion, substituted into the source line, as a
single line on stdout for the editor.

Resolved project configuration is cached on disk between runs and reused until
.ccls or compile_flags.txt changes.

Requirements:
    - Python 3.8+
    - clang
    - colorama, packaging

Usage:
    codeConnector.py <filename> <line> <column> [--output-file] [--no-cache]
    codeConnector.py --create-config <directory>
    codeConnector.py --check-env

Exit Codes:
    0: Success
    1: Failure (invalid arguments, missing project configuration, clang error
       or no completion available)
"""

import sys
import signal
import logging
import argparse
from typing import Any, List, Optional

from codeconnector.cache_utils import CompletionCache, get_cache_path, load_cache, save_cache
from codeconnector.clang_utils import CompletionCommandBuilder, process_completion_request
from codeconnector.color_utils import configure_colors, print_error, print_success, print_warning
from codeconnector.config_locator import create_default_config_files
from codeconnector.constants import (
    CLANG_COMPLETION_TIMEOUT,
    EXIT_FAILURE,
    EXIT_INVALID_ARGS,
    EXIT_KEYBOARD_INTERRUPT,
    EXIT_SUCCESS,
    MAX_CACHE_AGE_HOURS,
    CodeConnectorError,
    __version__,
)
from codeconnector.output_utils import write_result_to_temp_file
from codeconnector.package_verification import check_all_packages
from codeconnector.tool_detection import find_ccls, find_clang

__all__ = ["EXIT_SUCCESS", "main"]

logger = logging.getLogger(__name__)


def signal_handler(signum: int, frame: Any) -> None:
    """Handle interrupt signals gracefully."""
    print_warning("\nInterrupted by user. Exiting...", prefix=False)
    sys.exit(EXIT_KEYBOARD_INTERRUPT)


def configure_logging(verbose: bool, log_file: Optional[str]) -> None:
    """Log to stderr (DEBUG with --verbose, WARNING otherwise) and optionally to a file."""
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s" if log_file else "%(message)s",
        handlers=handlers,
    )


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Print a clang code completion for a source position.",
        epilog=f"Version {__version__}\n\nExamples:\n"
        f"  %(prog)s src/main.c 12 17\n"
        f"  %(prog)s src/main.c 12 17 --output-file\n"
        f"  %(prog)s --create-config ~/projects/demo\n",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("filename", nargs="?", help="Source file to complete in")
    parser.add_argument("line", nargs="?", type=int, help="1-based line number")
    parser.add_argument("column", nargs="?", type=int, help="1-based column number")

    parser.add_argument("--output-file", action="store_true", help="Also write the result to the editor handoff file in the temp directory")
    parser.add_argument("--no-cache", action="store_true", help="Do not read or write the persistent configuration cache")
    parser.add_argument("--cache-dir", metavar="DIR", help="Directory of the persistent cache (default: $CODE_CONNECTOR_CACHE_DIR or ~/.cache/code_connector)")
    parser.add_argument("--clang", metavar="CMD", help="clang executable (default: clang)")
    parser.add_argument("--timeout", type=float, default=CLANG_COMPLETION_TIMEOUT, metavar="SECONDS", help=f"Timeout for clang (default: {CLANG_COMPLETION_TIMEOUT})")
    parser.add_argument("--log-file", metavar="FILE", help="Append log messages to FILE")
    parser.add_argument("--create-config", metavar="DIR", help="Write default .ccls and compile_flags.txt into DIR and exit")
    parser.add_argument("--check-env", action="store_true", help="Verify installed Python packages and external tools and exit")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose output to stderr")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    return parser


def check_environment() -> bool:
    """Verify the Python packages and the external tools.

    clang is required. A missing ccls only disables index generation and is
    reported as a warning.
    """
    packages_ok = check_all_packages()

    clang = find_clang()
    if clang.is_found():
        print_success(f"clang: {clang.command} ({clang.version})")
    else:
        print_error(f"clang {clang.error_message}")

    ccls = find_ccls()
    if ccls.is_found():
        print_success(f"ccls: {ccls.command} ({ccls.version})")
    else:
        print_warning(f"ccls {ccls.error_message}")

    return packages_ok and clang.is_found()


def run_completion(args: argparse.Namespace) -> int:
    """Resolve, run and print one completion request."""
    cache = CompletionCache()
    cache_path = None if args.no_cache else get_cache_path(args.cache_dir)
    if cache_path:
        load_cache(cache, cache_path, max_age_hours=MAX_CACHE_AGE_HOURS)

    builder = CompletionCommandBuilder(cache, clang=args.clang)
    try:
        result = process_completion_request(builder, args.filename, args.line, args.column, timeout=args.timeout)
    finally:
        # The resolved configuration is kept even when clang offers nothing
        if cache_path and cache.is_valid:
            save_cache(cache, cache_path)

    print(result)

    if args.output_file:
        path = write_result_to_temp_file(result)
        logger.debug("Result written to %s", path)

    return EXIT_SUCCESS


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the script.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    parser = create_parser()
    args = parser.parse_args(argv)

    configure_colors(args.no_color)
    try:
        configure_logging(args.verbose, args.log_file)
    except OSError as e:
        print_error(f"Cannot open log file {args.log_file}: {e}")
        return EXIT_FAILURE

    try:
        if args.check_env:
            return EXIT_SUCCESS if check_environment() else EXIT_FAILURE

        if args.create_config:
            ccls_path, compile_flags_path = create_default_config_files(args.create_config)
            print_success(f"Project configuration ready: {ccls_path}, {compile_flags_path}")
            return EXIT_SUCCESS

        if args.filename is None or args.line is None or args.column is None:
            print_error(f"Usage: {parser.prog} <filename> <line> <column>")
            return EXIT_INVALID_ARGS

        logger.debug("Code Connector v%s: %s:%d:%d", __version__, args.filename, args.line, args.column)
        return run_completion(args)

    except KeyboardInterrupt:
        print_warning("\nInterrupted by user.", prefix=False)
        return EXIT_KEYBOARD_INTERRUPT
    except CodeConnectorError as e:
        print_error(str(e))
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
