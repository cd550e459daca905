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
"""Shared constants for code-connector tools.

This module provides centralized constants used by the completion and indexing
tools so that file names, limits and timeouts stay consistent everywhere.
"""

__version__ = "1.0.0"

# =============================================================================
# Exit Codes
# =============================================================================

EXIT_SUCCESS = 0
EXIT_FAILURE = 1  # Any failure reported by the command-line scripts
EXIT_INVALID_ARGS = 1
EXIT_RUNTIME_ERROR = 2
EXIT_KEYBOARD_INTERRUPT = 130

# =============================================================================
# Project Configuration Files
# =============================================================================

CCLS_FILE = ".ccls"  # Project marker file
COMPILE_FLAGS_FILE = "compile_flags.txt"  # Flags file

# Contents written by create_default_config_files()
DEFAULT_CCLS_CONTENT = "clang\n%c -std=c11\n%cpp -std=c++17\n"
DEFAULT_COMPILE_FLAGS_CONTENT = "-I.\n-I..\n-I/usr/include\n-I/usr/local/include\n"

# =============================================================================
# Include Flag Extraction
# =============================================================================

INCLUDE_MARKER = "-I"  # Generic include path marker
SYSTEM_INCLUDE_MARKER = "-isystem"  # System include path marker
EXCLUDED_INCLUDE_TOKEN = "-Iinc"  # Lines containing this are always skipped

MAX_LINES = 10000  # Maximum candidate lines read from the config files
MAX_CACHED_PATHS = 128  # Maximum include paths held by the completion cache
MAX_LINE_LENGTH = 2048  # Maximum cached target triple length (including terminator)

# =============================================================================
# Compiler / Indexer
# =============================================================================

CLANG_COMMAND = "clang"
CCLS_COMMAND = "ccls"
CLANG_TARGET_MARKER = "Target: "  # Marker in `clang --version` output

# Flags placed between the target triple and the include paths
COMPLETION_FLAGS = ("-fsyntax-only", "-Xclang", "-code-completion-macros")

# Timeouts (seconds)
CLANG_PROBE_TIMEOUT = 10  # Timeout for `clang --version`
CLANG_COMPLETION_TIMEOUT = 30  # Timeout for the completion invocation
CCLS_INDEX_TIMEOUT = 600  # Timeout for `ccls --index`
TOOL_DETECTION_TIMEOUT = 5  # Timeout for tool detection probes

# =============================================================================
# Cache Constants
# =============================================================================

CACHE_DIR_ENV = "CODE_CONNECTOR_CACHE_DIR"  # Overrides the cache directory
DEFAULT_CACHE_DIR = "~/.cache/code_connector"
COMPLETION_CACHE_FILE = "completion_cache.pickle"
MAX_CACHE_AGE_HOURS = 168  # Maximum persistent cache age in hours (7 days)

# =============================================================================
# Editor Handoff
# =============================================================================

HANDOFF_DIR_NAME = "code_connector_vim_return"
HANDOFF_FILE_TEMPLATE = "code_connector_output_{pid}.txt"

# =============================================================================
# Exception Classes
# =============================================================================


class CodeConnectorError(Exception):
    """Base exception for all code-connector errors.

    All code-connector exceptions carry an exit_code attribute that classifies
    the failure as invalid input (1) or a runtime failure (2). The command-line
    scripts report every error with EXIT_FAILURE.
    """

    def __init__(self, message: str, exit_code: int = EXIT_RUNTIME_ERROR):
        super().__init__(message)
        self.exit_code = exit_code


# Validation errors (EXIT_INVALID_ARGS)
class ValidationError(CodeConnectorError):
    """Raised when input validation fails (arguments, paths, etc)."""

    def __init__(self, message: str):
        super().__init__(message, EXIT_INVALID_ARGS)


class ArgumentError(ValidationError):
    """Raised when command-line arguments or request fields are invalid."""


# Lookup errors (EXIT_INVALID_ARGS): "no completion available"
class NotFoundError(CodeConnectorError):
    """Raised when a path or the project configuration cannot be located."""

    def __init__(self, message: str):
        super().__init__(message, EXIT_INVALID_ARGS)


class SourceFileNotFoundError(NotFoundError):
    """Raised when the file of a completion request does not exist."""


class ConfigNotFoundError(NotFoundError):
    """Raised when no directory up to the root holds both config files."""


# File access errors (EXIT_RUNTIME_ERROR)
class FileAccessError(CodeConnectorError):
    """Raised when a required file cannot be opened, read or written."""


class IncludeFileError(FileAccessError):
    """Raised when .ccls or compile_flags.txt cannot be read."""


class ConfigWriteError(FileAccessError):
    """Raised when default config files cannot be created."""


# External tool errors (EXIT_RUNTIME_ERROR)
class ProcessError(CodeConnectorError):
    """Raised when external tools (clang, ccls) fail to run."""


class TargetProbeError(ProcessError):
    """Raised when the compiler target triple cannot be determined."""


class ClangError(ProcessError):
    """Raised when the clang completion invocation fails."""


class CclsError(ProcessError):
    """Raised when `ccls --index` fails or is not found."""


# Command assembly errors (EXIT_RUNTIME_ERROR)
class BuildError(CodeConnectorError):
    """Raised when a completion command or result cannot be assembled."""


class CompletionError(BuildError):
    """Raised when clang produced no usable completion."""
