"""Formatter to process ruff's JSON output and yield GitHub annotations."""

import json
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

from pydantic import BaseModel, TypeAdapter, ValidationError

from analyzer_checks.errors import AnalyzerError
from analyzer_checks.formatters.utils import (
    LintSeverity,
    count_levels,
    expand_globs,
    read_recorded_output,
    resolve_severity,
    run_analyzer,
    tool_failure,
)
from analyzer_checks.models import CheckAnnotation, DiagnosticReport


class RuffLocation(BaseModel):
    """A 1-based position in a file."""

    row: int
    column: int


class RuffViolation(BaseModel):
    """One entry of ``ruff check --output-format json``.

    ``code`` is missing for syntax errors, which are not tied to a rule.
    """

    code: str | None = None
    message: str
    filename: str
    location: RuffLocation | None = None
    end_location: RuffLocation | None = None
    url: str | None = None

    @property
    def default_severity(self) -> LintSeverity:
        """Syntax errors fail, rule violations warn unless configured otherwise."""
        return LintSeverity.WARNING if self.code else LintSeverity.ERROR


_violations_adapter = TypeAdapter(list[RuffViolation])


def parse_ruff_output(raw_output: str) -> list[RuffViolation]:
    """Parse ruff's JSON output.

    :raises AnalyzerError: if the output is not a list of ruff violations
    """
    if not raw_output.strip():
        return []
    try:
        return _violations_adapter.validate_json(raw_output)
    except ValidationError as exc:
        msg = f"Could not parse ruff output: {exc}"
        raise AnalyzerError(msg) from exc


def get_annotation(
    violation: RuffViolation,
    severity: LintSeverity,
) -> CheckAnnotation:
    """Convert a ruff violation into a GitHub Check Annotation."""
    start = violation.location
    end = violation.end_location or start
    return CheckAnnotation(
        path=violation.filename,
        start_line=start.row if start else None,
        end_line=end.row if end else None,
        start_column=start.column if start else None,
        end_column=end.column if end else None,
        annotation_level=LintSeverity.to_annotation_level(severity),
        title=violation.code,
        message=violation.message,
        raw_details=f"See {violation.url} for details." if violation.url else None,
    )


def render_console_output(violations: Sequence[RuffViolation]) -> str:
    """Render the violations like ruff's concise output format."""
    lines = []
    for violation in violations:
        loc = violation.location
        position = f":{loc.row}:{loc.column}" if loc else ""
        code = f" {violation.code}" if violation.code else ""
        lines.append(f"{violation.filename}{position}:{code} {violation.message}")
    lines.append(
        f"Found {len(violations)} errors." if violations else "All checks passed!",
    )
    return "\n".join(lines)


def format_ruff_violations(
    violations: Iterable[RuffViolation],
    severities: Mapping[str, LintSeverity] | None = None,
) -> DiagnosticReport:
    """Normalize ruff violations, dropping those of rules configured ``off``."""
    kept: list[RuffViolation] = []
    annotations: list[CheckAnnotation] = []
    for violation in violations:
        severity = resolve_severity(
            [violation.code],
            violation.default_severity,
            severities,
        )
        if severity == LintSeverity.OFF:
            continue
        kept.append(violation)
        annotations.append(get_annotation(violation, severity))

    error_count, warning_count = count_levels(annotations)
    return DiagnosticReport(
        annotations=annotations,
        error_count=error_count,
        warning_count=warning_count,
        console_output=render_console_output(kept),
    )


def _toml_value(value: Any) -> str:  # noqa: ANN401
    # JSON scalars and arrays of them are valid TOML, tables are flattened by caller
    return json.dumps(value)


def config_override_args(
    overrides: Mapping[str, Any],
    prefix: str = "",
) -> list[str]:
    """Render config overrides as ruff ``--config`` arguments.

    Nested mappings become dotted keys, e.g. ``{"lint": {"select": ["E"]}}``
    yields ``["--config", 'lint.select = ["E"]']``.
    """
    args: list[str] = []
    for key, value in overrides.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, Mapping):
            args.extend(config_override_args(value, prefix=f"{dotted}."))
        else:
            args.extend(["--config", f"{dotted} = {_toml_value(value)}"])
    return args


def load_ruff_report(
    json_output_fp: Path,
    severities: Mapping[str, LintSeverity] | None = None,
) -> DiagnosticReport:
    """Normalize a recorded ``ruff check --output-format json`` log."""
    raw_output = read_recorded_output(json_output_fp)
    return format_ruff_violations(parse_ruff_output(raw_output), severities)


def run_ruff(
    globs: Sequence[str],
    root: Path,
    overrides: Mapping[str, Any] | None = None,
    severities: Mapping[str, LintSeverity] | None = None,
) -> DiagnosticReport:
    """Lint the files matching ``globs`` below ``root`` with ruff.

    :param globs: gitignore-style patterns of the files to lint
    :param root: directory the patterns are matched in, ruff runs from here
    :param overrides: settings merged over the project's ruff configuration
    :param severities: severity per rule code prefix, ``off`` disables a rule
    :raises ConfigurationError: if no file matches the globs
    :raises AnalyzerError: if ruff could not lint the files
    """
    files = expand_globs(globs, root)
    result = run_analyzer(
        "ruff",
        [
            "check",
            "--output-format",
            "json",
            "--no-fix",
            "--exit-zero",
            "--force-exclude",
            *config_override_args(overrides or {}),
            *(str(f) for f in files),
        ],
        cwd=root,
    )
    if result.returncode != 0:
        raise tool_failure("ruff", result)
    return format_ruff_violations(parse_ruff_output(result.stdout), severities)
