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
"""Generate the ccls navigation index for a project.

The project directory is located upward from the given directory (it must hold
both .ccls and compile_flags.txt) and `ccls --index` is run for it.

Usage:
    cclsIndexGen.py <directory> [--ccls CMD] [--timeout SECONDS]

Exit Codes:
    0: Success
    1: Failure (project configuration not found or ccls failed)
"""

import sys
import signal
import logging
import argparse
from typing import Any, List, Optional

from codeconnector.ccls_utils import execute_ccls_index
from codeconnector.color_utils import configure_colors, print_error, print_success, print_warning
from codeconnector.constants import CCLS_COMMAND, CCLS_INDEX_TIMEOUT, EXIT_FAILURE, EXIT_KEYBOARD_INTERRUPT, EXIT_SUCCESS, CodeConnectorError, __version__
from codeconnector.tool_detection import find_ccls

__all__ = ["EXIT_SUCCESS", "main"]


def signal_handler(signum: int, frame: Any) -> None:
    """Handle interrupt signals gracefully."""
    print_warning("\nInterrupted by user. Exiting...", prefix=False)
    sys.exit(EXIT_KEYBOARD_INTERRUPT)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the script.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    parser = argparse.ArgumentParser(
        description="Generate the ccls index for the project containing a directory.",
        epilog=f"Version {__version__}\n\nExamples:\n  %(prog)s .\n  %(prog)s ~/projects/demo/src --timeout 120\n",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("directory", help="Project directory or any directory below it")
    parser.add_argument("--ccls", metavar="CMD", help="ccls executable (default: detected in PATH)")
    parser.add_argument("--timeout", type=float, default=CCLS_INDEX_TIMEOUT, metavar="SECONDS", help=f"Timeout for ccls (default: {CCLS_INDEX_TIMEOUT})")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose output to stderr")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    args = parser.parse_args(argv)

    configure_colors(args.no_color)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(message)s", stream=sys.stderr)
    else:
        logging.basicConfig(level=logging.WARNING)

    ccls = args.ccls
    if not ccls:
        tool = find_ccls()
        ccls = tool.command if tool.is_found() else CCLS_COMMAND

    try:
        project_dir = execute_ccls_index(args.directory, ccls=ccls, timeout=args.timeout)
    except KeyboardInterrupt:
        print_warning("\nInterrupted by user.", prefix=False)
        return EXIT_KEYBOARD_INTERRUPT
    except CodeConnectorError as e:
        print_error(str(e))
        return EXIT_FAILURE

    print_success(f"Index generated for {project_dir}")
    return EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())
