"""Formatter to process pylint's ``json2`` output and yield GitHub annotations."""

from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

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

PYLINT_SEVERITIES: dict[str, LintSeverity] = {
    "fatal": LintSeverity.ERROR,
    "error": LintSeverity.ERROR,
    "warning": LintSeverity.WARNING,
    "convention": LintSeverity.INFO,
    "refactor": LintSeverity.INFO,
    "info": LintSeverity.INFO,
}


class PylintMessage(BaseModel):
    """A single message of a pylint report.

    Lines are 1-based, columns 0-based. Module level messages report line 0.
    """

    type: str
    symbol: str
    message: str
    messageId: str  # noqa: N815
    module: str = ""
    line: int | None = None
    column: int | None = None
    endLine: int | None = None  # noqa: N815
    endColumn: int | None = None  # noqa: N815
    path: str
    absolutePath: str | None = None  # noqa: N815

    @property
    def default_severity(self) -> LintSeverity:
        """Severity derived from the message category."""
        return PYLINT_SEVERITIES.get(self.type, LintSeverity.INFO)


class PylintReport(BaseModel):
    """The ``json2`` report, statistics are not needed here."""

    messages: list[PylintMessage]


def parse_pylint_output(raw_output: str) -> PylintReport:
    """Parse pylint's ``json2`` output.

    :raises AnalyzerError: if the output is not a pylint report
    """
    try:
        return PylintReport.model_validate_json(raw_output)
    except ValidationError as exc:
        msg = f"Could not parse pylint output: {exc}"
        raise AnalyzerError(msg) from exc


def get_annotation(message: PylintMessage, severity: LintSeverity) -> CheckAnnotation:
    """Convert a pylint message into a GitHub Check Annotation."""
    return CheckAnnotation(
        path=message.absolutePath or message.path,
        start_line=message.line,
        end_line=message.endLine,
        start_column=message.column + 1 if message.column is not None else None,
        end_column=message.endColumn + 1 if message.endColumn is not None else None,
        annotation_level=LintSeverity.to_annotation_level(severity),
        title=message.symbol,
        message=message.message,
    )


def render_console_output(messages: Sequence[PylintMessage]) -> str:
    """Render the messages like pylint's default text reporter."""
    lines: list[str] = []
    current_module: str | None = None
    for msg in messages:
        if msg.module != current_module:
            current_module = msg.module
            lines.append(f"************* Module {msg.module}")
        lines.append(
            f"{msg.path}:{msg.line or 0}:{msg.column or 0}: "
            f"{msg.messageId}: {msg.message} ({msg.symbol})",
        )
    return "\n".join(lines)


def format_pylint_messages(
    messages: Iterable[PylintMessage],
    severities: Mapping[str, LintSeverity] | None = None,
) -> DiagnosticReport:
    """Normalize pylint messages, dropping those of rules configured ``off``.

    Overrides match the message id (``C0114``) as well as the symbol
    (``missing-module-docstring``).
    """
    kept: list[PylintMessage] = []
    annotations: list[CheckAnnotation] = []
    for message in messages:
        severity = resolve_severity(
            [message.messageId, message.symbol],
            message.default_severity,
            severities,
        )
        if severity == LintSeverity.OFF:
            continue
        kept.append(message)
        annotations.append(get_annotation(message, severity))

    error_count, warning_count = count_levels(annotations)
    return DiagnosticReport(
        annotations=annotations,
        error_count=error_count,
        warning_count=warning_count,
        console_output=render_console_output(kept),
    )


def config_override_args(overrides: Mapping[str, Any]) -> list[str]:
    """Render config overrides as pylint command line options.

    ``{"max-line-length": 100, "disable": ["C0114", "R"]}`` yields
    ``["--max-line-length=100", "--disable=C0114,R"]``.
    """
    args = []
    for key, value in overrides.items():
        if isinstance(value, list | tuple):
            rendered = ",".join(str(v) for v in value)
        elif isinstance(value, bool):
            rendered = "y" if value else "n"
        else:
            rendered = str(value)
        args.append(f"--{key}={rendered}")
    return args


def load_pylint_report(
    json_output_fp: Path,
    severities: Mapping[str, LintSeverity] | None = None,
) -> DiagnosticReport:
    """Normalize a recorded ``pylint --output-format=json2`` log."""
    report = parse_pylint_output(read_recorded_output(json_output_fp))
    return format_pylint_messages(report.messages, severities)


def run_pylint(
    globs: Sequence[str],
    root: Path,
    overrides: Mapping[str, Any] | None = None,
    severities: Mapping[str, LintSeverity] | None = None,
) -> DiagnosticReport:
    """Lint the files matching ``globs`` below ``root`` with pylint.

    :param globs: gitignore-style patterns of the files to lint
    :param root: directory the patterns are matched in, pylint runs from here
    :param overrides: options merged over the project's pylint configuration
    :param severities: severity per message id or symbol, ``off`` disables it
    :raises ConfigurationError: if no file matches the globs
    :raises AnalyzerError: if pylint could not lint the files
    """
    files = expand_globs(globs, root)
    result = run_analyzer(
        "pylint",
        [
            "--output-format=json2",
            "--score=n",
            "--exit-zero",
            *config_override_args(overrides or {}),
            *(str(f) for f in files),
        ],
        cwd=root,
    )
    if result.returncode != 0:
        raise tool_failure("pylint", result)
    report = parse_pylint_output(result.stdout)
    return format_pylint_messages(report.messages, severities)
