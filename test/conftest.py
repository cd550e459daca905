#!/usr/bin/env python3
#****************************************************************************************************************************************************
#* BSD 3-Clause License
#*
#* Copyright (c) 2025, Mana Battery
#* All rights reserved.
#*
#* Redistribution and use in source and binary forms, with or without modification, are permitted provided that the following conditions are met:
#*
#* 1. Redistributions of source code must retain the above copyright notice, this list of conditions and the following disclaimer.
#* 2. Redistributions in binary form must reproduce the above copyright notice, this list of conditions and the following disclaimer in the
#*    documentation and/or other materials provided with the distribution.
#* 3. Neither the name of the copyright holder nor the names of its contributors may be used to endorse or promote products derived from this
#*    software without specific prior written permission.
#*
#* THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS" AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO,
#* THE IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR
#* CONTRIBUTORS BE LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO,
#* PROCUREMENT OF SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF
#* LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE,
#* EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.
#****************************************************************************************************************************************************
"""Pytest configuration and shared fixtures for code-connector tests.

Fixtures build real project trees in a temporary directory:
- temp_dir: empty scratch directory
- project_tree: proj/.ccls, proj/compile_flags.txt, proj/src/main.c
- memory_fs: in-memory Filesystem for search tests that must not touch the
  host's real directory tree
"""

import os
import sys
import tempfile
import shutil
from pathlib import Path
from typing import Dict, Generator, Iterable, List
import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from codeconnector.constants import NotFoundError
from codeconnector.path_utils import Filesystem
from codeconnector import tool_detection
from codeconnector.color_utils import Colors


@pytest.fixture
def temp_dir() -> Generator[str, None, None]:
    """Create a temporary directory for tests.

    Scope: function (default)
    Use for: File I/O operations that need isolation
    """
    tmpdir = tempfile.mkdtemp(prefix="codeconnector_test_")
    yield os.path.realpath(tmpdir)
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def project_tree(temp_dir: str) -> Dict[str, str]:
    """Create a project with both config files and one source file.

    Layout:
        proj/.ccls               clang / %c -std=c11 / %cpp -std=c++17
        proj/compile_flags.txt   -I<proj>/include, -Iinc/skip
        proj/include/
        proj/src/main.c
    """
    proj = Path(temp_dir) / "proj"
    (proj / "src").mkdir(parents=True)
    (proj / "include").mkdir()

    (proj / ".ccls").write_text("clang\n%c -std=c11\n%cpp -std=c++17\n")
    (proj / "compile_flags.txt").write_text(f"-I{proj}/include\n-Iinc/skip\n")
    (proj / "src" / "main.c").write_text("#include <math.h>\n\nint main(void) {\n    double r = pow(\n    return 0;\n}\n")

    return {
        "root": str(proj),
        "src": str(proj / "src"),
        "include": str(proj / "include"),
        "main_c": str(proj / "src" / "main.c"),
        "ccls": str(proj / ".ccls"),
        "compile_flags": str(proj / "compile_flags.txt"),
    }


@pytest.fixture(autouse=True)
def reset_tool_cache() -> Generator[None, None, None]:
    """Keep tool detection results from leaking between tests."""
    tool_detection.clear_cache()
    yield
    tool_detection.clear_cache()


@pytest.fixture(autouse=True)
def restore_colors() -> Generator[None, None, None]:
    """Undo Colors.disable() calls made by CLI entry points."""
    saved = {name: getattr(Colors, name) for name in dir(Colors) if not name.startswith("_") and name != "disable"}
    yield
    for name, value in saved.items():
        setattr(Colors, name, value)


@pytest.fixture
def isolated_cache_dir(temp_dir: str, monkeypatch: pytest.MonkeyPatch) -> str:
    """Point the persistent completion cache at the temp directory."""
    cache_dir = os.path.join(temp_dir, "cache")
    monkeypatch.setenv("CODE_CONNECTOR_CACHE_DIR", cache_dir)
    return cache_dir


class MemoryFilesystem(Filesystem):
    """POSIX-style in-memory filesystem.

    Directories are created implicitly by add_file(); directories listed in
    unreadable raise PermissionError from list_dir().
    """

    def __init__(self, files: Iterable[str] = (), unreadable: Iterable[str] = ()):
        self.dirs = {"/"}
        self.files = set()
        self.unreadable = set(unreadable)
        self.listed: List[str] = []
        for path in files:
            self.add_file(path)

    def add_file(self, path: str) -> None:
        self.files.add(path)
        parent = self.parent(path)
        while parent not in self.dirs:
            self.dirs.add(parent)
            parent = self.parent(parent)

    def add_dir(self, path: str) -> None:
        while path not in self.dirs:
            self.dirs.add(path)
            path = self.parent(path)

    def list_dir(self, path: str) -> List[str]:
        self.listed.append(path)
        if path in self.unreadable:
            raise PermissionError(13, "Permission denied", path)
        if path not in self.dirs:
            raise FileNotFoundError(2, "No such file or directory", path)
        prefix = path.rstrip("/") + "/"
        names = set()
        for entry in self.files | self.dirs:
            if entry != path and entry.startswith(prefix):
                names.add(entry[len(prefix):].split("/")[0])
        return sorted(names)

    def canonicalize(self, path: str) -> str:
        normalized = os.path.normpath(path) if path else ""
        if normalized.startswith("//"):
            normalized = "/" + normalized.lstrip("/")
        if normalized not in self.dirs and normalized not in self.files:
            raise NotFoundError(f"Path does not exist or cannot be resolved: {path}")
        return normalized

    def join(self, directory: str, name: str) -> str:
        return directory.rstrip("/") + "/" + name if directory != "/" else "/" + name

    def parent(self, path: str) -> str:
        if path == "/":
            return "/"
        head = path.rsplit("/", 1)[0]
        return head or "/"


@pytest.fixture
def memory_fs() -> MemoryFilesystem:
    """Empty in-memory filesystem (only the root exists)."""
    return MemoryFilesystem()


def write_config_files(directory: str, compile_flags: str = "", ccls: str = "") -> None:
    """Write .ccls and compile_flags.txt with the given contents into a directory.

    Helper function (not a fixture).
    """
    Path(directory, ".ccls").write_text(ccls)
    Path(directory, "compile_flags.txt").write_text(compile_flags)
