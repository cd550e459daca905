#!/usr/bin/env python3
"""Tests for codeconnector/clang_utils.py"""

import os
import shlex
import subprocess
import pytest
from pathlib import Path
from typing import Any, Dict, List
from unittest.mock import Mock

from codeconnector import clang_utils
from codeconnector.cache_utils import CompletionCache
from codeconnector.clang_utils import (
    CompletionCommandBuilder,
    filter_clang_output,
    process_completion_request,
    read_source_line,
    run_code_completion,
    split_input_string,
    substitute_function_pattern,
)
from codeconnector.constants import (
    ArgumentError,
    ClangError,
    CompletionError,
    ConfigNotFoundError,
    IncludeFileError,
    SourceFileNotFoundError,
    TargetProbeError,
)

TARGET = "x86_64-pc-linux-gnu"

POW_OUTPUT = (
    "COMPLETION: pow : [#double#]pow(<#double x#>, <#double y#>)\n"
    "COMPLETION: powf : [#float#]powf(<#float x#>, <#float y#>)\n"
    "COMPLETION: M_PI : M_PI\n"
)


@pytest.fixture
def probe_calls(monkeypatch: pytest.MonkeyPatch) -> List[Any]:
    """Replace the compiler probe with a stub that records its calls."""
    calls: List[Any] = []

    def fake_probe(clang: Any = None, timeout: Any = None) -> str:
        calls.append(clang)
        return TARGET

    monkeypatch.setattr("codeconnector.clang_utils.probe_target", fake_probe)
    return calls


def _completion_tail(path: str, line: int, column: int) -> List[str]:
    return ["-Xclang", f"-code-completion-at={path}:{line}:{column}", path]


class TestCompletionCommandBuilder:
    """Tests for CompletionCommandBuilder."""

    @pytest.mark.unit
    def test_miss_builds_full_command(self, project_tree: Dict[str, str], probe_calls: List[Any]) -> None:
        builder = CompletionCommandBuilder(CompletionCache())

        argv = builder.build_argv(project_tree["main_c"], 4, 20)

        assert argv == [
            "clang",
            "-target",
            TARGET,
            "-fsyntax-only",
            "-Xclang",
            "-code-completion-macros",
            f"-I{project_tree['include']}",
            *_completion_tail(project_tree["main_c"], 4, 20),
        ]
        assert probe_calls == ["clang"]

    @pytest.mark.unit
    def test_miss_refreshes_cache(self, project_tree: Dict[str, str], probe_calls: List[Any]) -> None:
        cache = CompletionCache()
        builder = CompletionCommandBuilder(cache)

        builder.build_argv(project_tree["main_c"], 1, 1)

        assert cache.is_valid_for(project_tree["root"])
        assert cache.read() == ([f"-I{project_tree['include']}"], TARGET)

    @pytest.mark.unit
    def test_hit_skips_probe_and_config_files(self, project_tree: Dict[str, str], probe_calls: List[Any]) -> None:
        cache = CompletionCache()
        cache.refresh(project_tree["root"], ["-I/cached"], "cached-target")
        # Unreadable config files must not matter on a hit
        os.remove(project_tree["compile_flags"])
        Path(project_tree["compile_flags"]).mkdir()

        argv = CompletionCommandBuilder(cache).build_argv(project_tree["main_c"], 2, 3)

        assert argv[:3] == ["clang", "-target", "cached-target"]
        assert "-I/cached" in argv
        assert probe_calls == []

    @pytest.mark.unit
    def test_cache_for_other_project_is_replaced(self, project_tree: Dict[str, str], temp_dir: str, probe_calls: List[Any]) -> None:
        """A cache holding another project's data is never used."""
        other = os.path.join(temp_dir, "other")
        os.mkdir(other)
        cache = CompletionCache()
        cache.refresh(other, ["-I/other"], "other-target")

        argv = CompletionCommandBuilder(cache).build_argv(project_tree["main_c"], 1, 1)

        assert "-I/other" not in argv
        assert TARGET in argv
        assert cache.is_valid_for(project_tree["root"])

    @pytest.mark.unit
    def test_flags_sorted_and_split(self, project_tree: Dict[str, str], probe_calls: List[Any]) -> None:
        Path(project_tree["compile_flags"]).write_text("-I/zeta\n-isystem /opt/sdk\n-I/alpha\n")
        Path(project_tree["ccls"]).write_text("clang\n-I/alpha\n")

        argv = CompletionCommandBuilder(CompletionCache()).build_argv(project_tree["main_c"], 1, 1)

        flags = argv[6:-3]
        assert flags == ["-I/alpha", "-I/zeta", "-isystem", "/opt/sdk"]

    @pytest.mark.unit
    def test_relative_filename_canonicalized(self, project_tree: Dict[str, str], probe_calls: List[Any], monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(project_tree["src"])

        argv = CompletionCommandBuilder(CompletionCache()).build_argv("main.c", 4, 5)

        assert argv[-3:] == _completion_tail(project_tree["main_c"], 4, 5)

    @pytest.mark.unit
    def test_custom_clang(self, project_tree: Dict[str, str], probe_calls: List[Any]) -> None:
        argv = CompletionCommandBuilder(CompletionCache(), clang="clang-19").build_argv(project_tree["main_c"], 1, 1)

        assert argv[0] == "clang-19"
        assert probe_calls == ["clang-19"]

    @pytest.mark.unit
    def test_build_returns_shell_string(self, project_tree: Dict[str, str], probe_calls: List[Any]) -> None:
        builder = CompletionCommandBuilder(CompletionCache())

        command = builder.build(project_tree["main_c"], 4, 20)

        assert shlex.split(command) == builder.build_argv(project_tree["main_c"], 4, 20)

    @pytest.mark.unit
    def test_missing_source_file(self, project_tree: Dict[str, str], probe_calls: List[Any]) -> None:
        with pytest.raises(SourceFileNotFoundError):
            CompletionCommandBuilder(CompletionCache()).build_argv(os.path.join(project_tree["src"], "nope.c"), 1, 1)

    @pytest.mark.unit
    def test_no_project_configuration(self, project_tree: Dict[str, str], probe_calls: List[Any]) -> None:
        os.remove(project_tree["ccls"])
        cache = CompletionCache()

        with pytest.raises(ConfigNotFoundError):
            CompletionCommandBuilder(cache).build_argv(project_tree["main_c"], 1, 1)

        assert not cache.is_valid

    @pytest.mark.unit
    def test_probe_failure_leaves_cache_untouched(self, project_tree: Dict[str, str], monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("codeconnector.clang_utils.probe_target", Mock(side_effect=TargetProbeError("no target")))
        cache = CompletionCache()

        with pytest.raises(TargetProbeError):
            CompletionCommandBuilder(cache).build_argv(project_tree["main_c"], 1, 1)

        assert not cache.is_valid

    @pytest.mark.unit
    def test_unreadable_config_file(self, project_tree: Dict[str, str], probe_calls: List[Any]) -> None:
        os.remove(project_tree["compile_flags"])
        Path(project_tree["compile_flags"]).mkdir()

        with pytest.raises(IncludeFileError):
            CompletionCommandBuilder(CompletionCache()).build_argv(project_tree["main_c"], 1, 1)

    @pytest.mark.unit
    @pytest.mark.parametrize("line, column", [(0, 1), (1, 0), (-3, 2), (True, 1)])
    def test_invalid_position(self, project_tree: Dict[str, str], probe_calls: List[Any], line: int, column: int) -> None:
        with pytest.raises(ArgumentError):
            CompletionCommandBuilder(CompletionCache()).build_argv(project_tree["main_c"], line, column)
        assert probe_calls == []


class TestFilterClangOutput:
    """Tests for filter_clang_output()."""

    @pytest.mark.unit
    def test_two_parameters(self) -> None:
        raw = "COMPLETION: pow : [#double#]pow(<#double x#>, <#double y#>)\n"
        assert filter_clang_output(raw) == "pow(`<double x>`, `<double y>`)\n"

    @pytest.mark.unit
    def test_single_parameter(self) -> None:
        raw = "COMPLETION: sqrt : [#double#]sqrt(<#double x#>)\n"
        assert filter_clang_output(raw) == "sqrt(`<double x>`)\n"

    @pytest.mark.unit
    def test_three_parameters_keep_first_and_last(self) -> None:
        raw = "COMPLETION: fma : [#double#]fma(<#double x#>, <#double y#>, <#double z#>)\n"
        assert filter_clang_output(raw) == "fma(`<double x>`, `<double z>`)\n"

    @pytest.mark.unit
    def test_non_calls_skipped(self) -> None:
        raw = "COMPLETION: M_PI : M_PI\nCOMPLETION: rand : [#int#]rand()\nsome diagnostic\n"
        assert filter_clang_output(raw) == ""

    @pytest.mark.unit
    def test_multiple_in_order(self) -> None:
        assert filter_clang_output(POW_OUTPUT) == "pow(`<double x>`, `<double y>`)\npowf(`<float x>`, `<float y>`)\n"

    @pytest.mark.unit
    def test_mismatched_name_skipped(self) -> None:
        raw = "COMPLETION: pow : [#double#]powl(<#double x#>)\n"
        assert filter_clang_output(raw) == ""


class TestSubstituteFunctionPattern:
    """Tests for substitute_function_pattern()."""

    PATTERN = "pow(`<double x>`, `<double y>`)"

    @pytest.mark.unit
    def test_open_call_completed(self) -> None:
        assert substitute_function_pattern("    double r = pow(", self.PATTERN) == "    double r = pow(`<double x>`, `<double y>`)"

    @pytest.mark.unit
    def test_closed_call_replaced_and_tail_kept(self) -> None:
        result = substitute_function_pattern("x = pow(a, b); y = 1;", self.PATTERN)
        assert result == "x = pow(`<double x>`, `<double y>`); y = 1;"

    @pytest.mark.unit
    def test_nested_parentheses(self) -> None:
        result = substitute_function_pattern("f(pow(g(a), b))", self.PATTERN)
        assert result == "f(pow(`<double x>`, `<double y>`))"

    @pytest.mark.unit
    def test_name_without_parenthesis(self) -> None:
        assert substitute_function_pattern("x = pow", self.PATTERN) == "x = pow(`<double x>`, `<double y>`)"

    @pytest.mark.unit
    def test_name_inside_identifier_ignored(self) -> None:
        """'pow' inside 'mypow' is not a call of pow."""
        assert substitute_function_pattern("x = mypow(", self.PATTERN) is None

    @pytest.mark.unit
    def test_after_comma(self) -> None:
        assert substitute_function_pattern("g(a,pow(", self.PATTERN) == "g(a,pow(`<double x>`, `<double y>`)"

    @pytest.mark.unit
    def test_function_absent(self) -> None:
        assert substitute_function_pattern("int x = 0;", self.PATTERN) is None

    @pytest.mark.unit
    def test_empty_pattern(self) -> None:
        assert substitute_function_pattern("x = pow(", "   ") is None


class TestSplitInputString:
    """Tests for split_input_string()."""

    @pytest.mark.unit
    def test_simple(self) -> None:
        assert split_input_string("src/main.c 12 7") == ("src/main.c", 12, 7)

    @pytest.mark.unit
    def test_filename_with_spaces(self) -> None:
        assert split_input_string("  my project/main file.c 3 4\n") == ("my project/main file.c", 3, 4)

    @pytest.mark.unit
    @pytest.mark.parametrize("text", ["", "main.c", "main.c 3", "main.c x 4", "main.c 3 0"])
    def test_invalid(self, text: str) -> None:
        with pytest.raises(ArgumentError):
            split_input_string(text)


class TestRunCodeCompletion:
    """Tests for run_code_completion() with subprocess mocked."""

    @pytest.mark.unit
    def test_returns_stdout_on_nonzero_exit(self, project_tree: Dict[str, str], probe_calls: List[Any], monkeypatch: pytest.MonkeyPatch) -> None:
        """clang errors in the edited file do not discard its completions."""
        mock_run = Mock(return_value=Mock(returncode=1, stdout=POW_OUTPUT, stderr="main.c:5: error"))
        monkeypatch.setattr("subprocess.run", mock_run)
        builder = CompletionCommandBuilder(CompletionCache())

        assert run_code_completion(builder, project_tree["main_c"], 4, 20) == POW_OUTPUT

        argv = mock_run.call_args[0][0]
        assert argv == builder.build_argv(project_tree["main_c"], 4, 20)
        assert mock_run.call_args[1]["timeout"] == clang_utils.CLANG_COMPLETION_TIMEOUT

    @pytest.mark.unit
    def test_timeout(self, project_tree: Dict[str, str], probe_calls: List[Any], monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("subprocess.run", Mock(side_effect=subprocess.TimeoutExpired("clang", 1)))

        with pytest.raises(ClangError, match="did not finish"):
            run_code_completion(CompletionCommandBuilder(CompletionCache()), project_tree["main_c"], 4, 20, timeout=1)

    @pytest.mark.unit
    def test_missing_clang(self, project_tree: Dict[str, str], probe_calls: List[Any], monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("subprocess.run", Mock(side_effect=FileNotFoundError("clang")))

        with pytest.raises(ClangError, match="Cannot run"):
            run_code_completion(CompletionCommandBuilder(CompletionCache()), project_tree["main_c"], 4, 20)


class TestProcessCompletionRequest:
    """Tests for process_completion_request()."""

    @pytest.mark.unit
    def test_first_completion_substituted(self, project_tree: Dict[str, str], probe_calls: List[Any], monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("subprocess.run", Mock(return_value=Mock(returncode=0, stdout=POW_OUTPUT, stderr="")))

        result = process_completion_request(CompletionCommandBuilder(CompletionCache()), project_tree["main_c"], 4, 20)

        assert result == "    double r = pow(`<double x>`, `<double y>`)"

    @pytest.mark.unit
    def test_bare_template_when_not_in_line(self, project_tree: Dict[str, str], probe_calls: List[Any], monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("subprocess.run", Mock(return_value=Mock(returncode=0, stdout=POW_OUTPUT, stderr="")))

        result = process_completion_request(CompletionCommandBuilder(CompletionCache()), project_tree["main_c"], 1, 1)

        assert result == "pow(`<double x>`, `<double y>`)"

    @pytest.mark.unit
    def test_no_completion(self, project_tree: Dict[str, str], probe_calls: List[Any], monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("subprocess.run", Mock(return_value=Mock(returncode=0, stdout="COMPLETION: M_PI : M_PI\n", stderr="")))

        with pytest.raises(CompletionError):
            process_completion_request(CompletionCommandBuilder(CompletionCache()), project_tree["main_c"], 4, 20)

    @pytest.mark.unit
    def test_read_source_line(self, project_tree: Dict[str, str]) -> None:
        assert read_source_line(project_tree["main_c"], 4) == "    double r = pow("
        assert read_source_line(project_tree["main_c"], 99) is None
        assert read_source_line(os.path.join(project_tree["src"], "missing.c"), 1) is None
