"""Tests for the annotation and report models."""

# ruff: noqa: S101, D103, INP001, PLR2004

import pytest
from pydantic import ValidationError

from analyzer_checks.models import (
    AnnotationLevel,
    CheckAnnotation,
    CheckRunConclusion,
    ConclusionPolicy,
    DiagnosticReport,
)


def _annotation(level: AnnotationLevel = AnnotationLevel.WARNING, **kwargs) -> CheckAnnotation:  # noqa: ANN003
    return CheckAnnotation(
        path=kwargs.pop("path", "src/app.py"),
        annotation_level=level,
        message=kwargs.pop("message", "Something is off"),
        **kwargs,
    )


@pytest.mark.parametrize(
    ("start_line", "end_line", "expected"),
    [
        (None, None, (1, 1)),
        (0, 0, (1, 1)),
        (0, 4, (1, 4)),
        (5, None, (5, 5)),
        (5, 3, (5, 5)),
        (2, 7, (2, 7)),
    ],
)
def test_lines_are_one_based_and_ordered(start_line, end_line, expected) -> None:  # noqa: ANN001
    annotation = _annotation(start_line=start_line, end_line=end_line)
    assert (annotation.start_line, annotation.end_line) == expected
    assert annotation.end_line >= annotation.start_line


def test_columns_dropped_for_multiline_annotations() -> None:
    annotation = _annotation(start_line=3, end_line=5, start_column=4, end_column=9)
    assert annotation.start_column is None
    assert annotation.end_column is None
    assert "start_column" not in annotation.to_payload()


def test_columns_kept_on_single_line() -> None:
    annotation = _annotation(start_line=3, end_line=3, start_column=4, end_column=9)
    assert (annotation.start_column, annotation.end_column) == (4, 9)


def test_missing_end_column_defaults_to_start_column() -> None:
    annotation = _annotation(start_line=3, start_column=4)
    assert (annotation.start_column, annotation.end_column) == (4, 4)


def test_no_columns_stay_absent_on_single_line() -> None:
    annotation = _annotation(start_line=3, end_line=3)
    assert annotation.start_column is None
    assert annotation.end_column is None


def test_empty_message_is_rejected() -> None:
    with pytest.raises(ValidationError):
        _annotation(message="")


def test_payload_omits_absent_fields() -> None:
    payload = _annotation(AnnotationLevel.FAILURE, start_line=2).to_payload()
    assert payload == {
        "path": "src/app.py",
        "start_line": 2,
        "end_line": 2,
        "annotation_level": "failure",
        "message": "Something is off",
    }


def test_summary_contains_counts() -> None:
    report = DiagnosticReport(error_count=1, warning_count=2)
    assert report.summary == "1 errors, 2 warnings."


def test_summary_prefixes_global_errors() -> None:
    report = DiagnosticReport(
        error_count=2,
        global_errors=["Config file could not be parsed", "No source files"],
    )
    assert report.summary == (
        "Config file could not be parsed\nNo source files\n2 errors, 0 warnings."
    )


@pytest.mark.parametrize(
    ("errors", "warnings", "policy", "expected"),
    [
        (0, 0, ConclusionPolicy.ERRORS, CheckRunConclusion.SUCCESS),
        (0, 3, ConclusionPolicy.ERRORS, CheckRunConclusion.SUCCESS),
        (1, 2, ConclusionPolicy.ERRORS, CheckRunConclusion.FAILURE),
        (0, 0, ConclusionPolicy.WARNINGS, CheckRunConclusion.SUCCESS),
        (0, 3, ConclusionPolicy.WARNINGS, CheckRunConclusion.FAILURE),
        (1, 0, ConclusionPolicy.WARNINGS, CheckRunConclusion.FAILURE),
    ],
)
def test_conclusion_policies(errors, warnings, policy, expected) -> None:  # noqa: ANN001
    report = DiagnosticReport(error_count=errors, warning_count=warnings)
    assert report.conclusion(policy) == expected


def test_default_policy_ignores_warnings() -> None:
    report = DiagnosticReport(
        annotations=[_annotation() for _ in range(3)],
        warning_count=3,
    )
    assert report.conclusion() == CheckRunConclusion.SUCCESS


def test_summary_truncates_long_global_errors() -> None:
    report = DiagnosticReport(error_count=1, global_errors=["x" * 40000])
    assert len(report.summary) < 31000
    assert "truncated output" in report.summary
    assert report.summary.endswith("1 errors, 0 warnings.")
