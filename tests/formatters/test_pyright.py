"""Tests for the pyright adapter."""

import json
import subprocess
import tempfile
from pathlib import Path
from time import time
from typing import Any
from unittest.mock import patch

import pytest

from analyzer_checks.errors import AnalyzerError, ConfigurationError
from analyzer_checks.formatters.pyright import (
    format_pyright_report,
    load_pyright_report,
    parse_pyright_output,
    run_pyright,
)
from analyzer_checks.models import AnnotationLevel, CheckRunConclusion, DiagnosticReport

# ruff: noqa: S101, D103, SIM115, INP001, PLR2004


def pyright_output(repo_root: Path) -> dict[str, Any]:
    return {
        "version": "1.1.407",
        "time": str(int(time())),
        "generalDiagnostics": [
            {
                "file": str(repo_root / "src/analyzer_checks/cli.py"),
                "severity": "error",
                "message": 'Import "configargparse" could not be resolved',
                "range": {
                    "start": {"line": 9, "character": 5},
                    "end": {"line": 9, "character": 19},
                },
                "rule": "reportMissingImports",
            },
            {
                "file": str(repo_root / "src/analyzer_checks/reporter.py"),
                "severity": "warning",
                "message": 'Argument of type "str | None" cannot be assigned',
                "range": {
                    "start": {"line": 120, "character": 8},
                    "end": {"line": 123, "character": 27},
                },
                "rule": "reportArgumentType",
            },
            {
                "file": str(repo_root / "src/analyzer_checks/models.py"),
                "severity": "information",
                "message": "Unused expression",
                "range": {
                    "start": {"line": 0, "character": 0},
                    "end": {"line": 0, "character": 4},
                },
            },
            {
                "file": "",
                "severity": "error",
                "message": "Config file could not be parsed",
            },
        ],
        "summary": {
            "filesAnalyzed": 12,
            "errorCount": 2,
            "warningCount": 1,
            "informationCount": 1,
            "timeInSec": 0.379,
        },
    }


def test_format_pyright_report() -> None:
    repo_root = Path(__file__).parent.parent.parent
    report = format_pyright_report(
        parse_pyright_output(json.dumps(pyright_output(repo_root))),
    )
    assert isinstance(report, DiagnosticReport)
    assert report.error_count == 2
    assert report.warning_count == 1
    assert report.global_errors == ["Config file could not be parsed"]
    assert report.conclusion() == CheckRunConclusion.FAILURE
    assert [a.annotation_level for a in report.annotations] == [
        AnnotationLevel.FAILURE,
        AnnotationLevel.WARNING,
        AnnotationLevel.NOTICE,
    ]
    assert report.summary.startswith("Config file could not be parsed\n")
    assert report.console_output.startswith("Config file could not be parsed\n")
    assert "reportMissingImports" in report.console_output


def test_pyright_positions_are_one_based() -> None:
    repo_root = Path(__file__).parent
    report = format_pyright_report(
        parse_pyright_output(json.dumps(pyright_output(repo_root))),
    )
    single_line, multi_line, notice = report.annotations
    assert (single_line.start_line, single_line.end_line) == (10, 10)
    assert (single_line.start_column, single_line.end_column) == (6, 20)
    assert single_line.title == "reportMissingImports"
    assert (multi_line.start_line, multi_line.end_line) == (121, 124)
    assert multi_line.start_column is None
    assert multi_line.end_column is None
    assert notice.title is None
    assert notice.start_line == 1


def test_load_pyright_report_skips_node_preamble() -> None:
    sample_output_fp = Path(tempfile.NamedTemporaryFile(delete=False).name)
    with sample_output_fp.open("w", encoding="utf-8") as f:
        f.write("{'x86': False, 'risc': False, 'lts': False}\n")
        json.dump(pyright_output(Path(__file__).parent), f)
    report = load_pyright_report(sample_output_fp)
    assert len(report.annotations) == 3


def test_unparsable_output_is_a_tooling_error() -> None:
    with pytest.raises(AnalyzerError):
        parse_pyright_output("Error: node not found")


def test_run_pyright_missing_config(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        run_pyright(tmp_path / "pyrightconfig.json")


def test_run_pyright(tmp_path: Path) -> None:
    config = tmp_path / "pyrightconfig.json"
    config.write_text("{}")
    completed = subprocess.CompletedProcess(
        args=[],
        returncode=1,
        stdout=json.dumps(pyright_output(tmp_path)),
        stderr="",
    )
    with patch(
        "analyzer_checks.formatters.pyright.run_analyzer",
        return_value=completed,
    ) as run_analyzer:
        report = run_pyright(config)
    tool, args = run_analyzer.call_args.args
    assert tool == "pyright"
    assert args == ["--outputjson", "--project", str(config.resolve())]
    assert report.error_count == 2


def test_run_pyright_fatal_exit(tmp_path: Path) -> None:
    config = tmp_path / "pyrightconfig.json"
    config.write_text("{}")
    completed = subprocess.CompletedProcess(
        args=[],
        returncode=3,
        stdout="",
        stderr="Fatal error",
    )
    with (
        patch(
            "analyzer_checks.formatters.pyright.run_analyzer",
            return_value=completed,
        ),
        pytest.raises(AnalyzerError, match="Fatal error"),
    ):
        run_pyright(config)
