"""
Pyright JSON Formatter Module.

This module runs Pyright on a project, or reads a recorded ``--outputjson``
report, and converts the diagnostics into a DiagnosticReport suitable for
GitHub Checks. It includes models for diagnostics, severity levels, and report
summaries.
"""

import json
from enum import StrEnum, auto
from pathlib import Path

from pydantic import BaseModel, ValidationError

from analyzer_checks.errors import AnalyzerError
from analyzer_checks.formatters.utils import (
    read_recorded_output,
    require_file,
    run_analyzer,
    tool_failure,
)
from analyzer_checks.models import AnnotationLevel, CheckAnnotation, DiagnosticReport

# pyright exits with 0 for a clean run and 1 if errors were reported
_FINDINGS_EXIT_CODES = (0, 1)


class DiagnosticPosition(BaseModel):
    """Represents a position in the source code with line and character numbers.

    Attributes:
        line (int): The line number (0-based).
        character (int): The character position within the line (0-based).
    """

    line: int
    character: int


class DiagnosticRange(BaseModel):
    """Represents a range in the source code with start and end positions.

    Attributes:
        start (DiagnosticPosition): The starting position of the range.
        end (DiagnosticPosition): The ending position of the range.
    """

    start: DiagnosticPosition
    end: DiagnosticPosition


class PyrightSeverity(StrEnum):
    """Enumeration of severity levels used by Pyright diagnostics.

    This class defines the severity levels for issues detected by Pyright,
    such as errors, warnings, and informational messages.
    """

    ERROR = auto()
    WARNING = auto()
    INFORMATION = auto()

    @classmethod
    def to_annotation_level(cls, severity: "PyrightSeverity") -> AnnotationLevel:
        """Convert Pyright severity to GitHub Check AnnotationLevel.

        Args:
            severity (PyrightSeverity): The severity level from Pyright.

        Returns:
            AnnotationLevel: The corresponding GitHub Check AnnotationLevel.
        """
        if severity == cls.ERROR:
            return AnnotationLevel.FAILURE
        if severity == cls.WARNING:
            return AnnotationLevel.WARNING
        return AnnotationLevel.NOTICE


class PyrightDiagnostic(BaseModel):
    """Represents a diagnostic message from Pyright.

    Attributes:
        file (Optional[str]): The file where the diagnostic was reported. Empty or
            missing for diagnostics concerning the whole project, e.g. its config.
        severity (PyrightSeverity): The severity level of the diagnostic.
        message (str): The diagnostic message.
        rule (Optional[str]): The rule or code associated with the diagnostic, if any.
        range (Optional[DiagnosticRange]): The code range of the issue, if known.
    """

    file: str | None = None
    severity: PyrightSeverity = PyrightSeverity.INFORMATION
    message: str
    rule: str | None = None
    range: DiagnosticRange | None = None


class PyrightSummary(BaseModel):
    """Summary of the Pyright analysis results.

    Attributes:
        filesAnalyzed (int): The number of files analyzed by Pyright.
        errorCount (int): The total number of errors found.
        warningCount (int): The total number of warnings found.
        informationCount (int): The total number of informational messages found.
        timeInSec (float): The time taken for the analysis in seconds.
    """

    filesAnalyzed: int  # noqa: N815
    errorCount: int  # noqa: N815
    warningCount: int  # noqa: N815
    informationCount: int  # noqa: N815
    timeInSec: float  # noqa: N815


class PyrightReport(BaseModel):
    """Represents the full Pyright analysis report.

    Attributes:
        version (str): The version of Pyright used for the analysis.
        time (str): The timestamp of when the analysis was performed.
        generalDiagnostics (list[PyrightDiagnostic]): A list of diagnostic messages.
        summary (PyrightSummary): A summary of the analysis results.
    """

    version: str
    time: str
    generalDiagnostics: list[PyrightDiagnostic]  # noqa: N815
    summary: PyrightSummary


def parse_pyright_output(raw_output: str) -> PyrightReport:
    """Parse the stdout of ``pyright --outputjson``.

    :raises AnalyzerError: if the output is not a valid pyright report
    """
    # for some reason, pyright stdout sometimes starts with a line like this:
    # {'x86': False, 'risc': False, 'lts': False}  # noqa: ERA001
    # I suspect it's a side effect of running node, but don't know for sure.
    if raw_output.startswith("{'x86'"):
        raw_output = raw_output.partition("\n")[2]
    try:
        return PyrightReport.model_validate(json.loads(raw_output))
    except (json.JSONDecodeError, ValidationError) as exc:
        msg = f"Could not parse pyright output: {exc}"
        raise AnalyzerError(msg) from exc


def get_annotation(diag: PyrightDiagnostic) -> CheckAnnotation:
    """Convert a Pyright diagnostic object into a GitHub Check Annotation.

    The range fields from Pyright, which are zero-based, are converted to
    one-based line and column numbers to match GitHub's requirements. The path
    is kept as reported, it is made repo-relative before submission.

    Args:
        diag (PyrightDiagnostic): The diagnostic object containing details
            about the issue, such as its location, severity, and message.

    Returns:
        CheckAnnotation: A formatted annotation object containing the file path,
            issue range, severity level, and message for GitHub Checks.
    """
    start_line = end_line = start_column = end_column = None
    if rng := diag.range:
        start_line = rng.start.line + 1
        end_line = rng.end.line + 1
        start_column = rng.start.character + 1
        end_column = rng.end.character + 1

    return CheckAnnotation(
        path=str(diag.file),
        start_line=start_line,
        end_line=end_line,
        start_column=start_column,
        end_column=end_column,
        annotation_level=PyrightSeverity.to_annotation_level(diag.severity),
        title=diag.rule,
        message=diag.message,
    )


def render_console_output(report: PyrightReport, global_errors: list[str]) -> str:
    """Render the diagnostics the way the pyright CLI prints them."""
    lines: list[str] = list(global_errors)
    current_file: str | None = None
    for diag in report.generalDiagnostics:
        if not diag.file:
            continue
        if diag.file != current_file:
            current_file = diag.file
            lines.append(current_file)
        position = ""
        if diag.range:
            start = diag.range.start
            position = f":{start.line + 1}:{start.character + 1}"
        rule = f" ({diag.rule})" if diag.rule else ""
        lines.append(
            f"  {diag.file}{position} - {diag.severity}: {diag.message}{rule}",
        )
    summary = report.summary
    lines.append(
        f"{summary.errorCount} errors, {summary.warningCount} warnings, "
        f"{summary.informationCount} informations",
    )
    return "\n".join(lines)


def format_pyright_report(report: PyrightReport) -> DiagnosticReport:
    """Normalize a Pyright report.

    Every error and warning is counted, but only diagnostics tied to a file become
    annotations. File-less errors, such as problems with the project config, are
    collected as global errors instead.
    """
    annotations: list[CheckAnnotation] = []
    global_errors: list[str] = []
    error_count = warning_count = 0

    for diag in report.generalDiagnostics:
        if diag.severity == PyrightSeverity.ERROR:
            error_count += 1
        elif diag.severity == PyrightSeverity.WARNING:
            warning_count += 1

        if diag.file:
            annotations.append(get_annotation(diag))
        elif diag.severity == PyrightSeverity.ERROR:
            global_errors.append(diag.message)

    return DiagnosticReport(
        annotations=annotations,
        error_count=error_count,
        warning_count=warning_count,
        global_errors=global_errors,
        console_output=render_console_output(report, global_errors),
    )


def load_pyright_report(json_output_fp: Path) -> DiagnosticReport:
    """Normalize a recorded ``pyright --outputjson`` log."""
    raw_output = read_recorded_output(json_output_fp)
    return format_pyright_report(parse_pyright_output(raw_output))


def run_pyright(config_file: Path) -> DiagnosticReport:
    """Type-check the project configured in ``config_file`` with Pyright.

    :param config_file: pyrightconfig.json or pyproject.toml of the project
    :raises ConfigurationError: if the config file does not exist
    :raises AnalyzerError: if pyright could not check the project
    """
    require_file(config_file, "Pyright project configuration")
    result = run_analyzer(
        "pyright",
        ["--outputjson", "--project", str(config_file.resolve())],
        cwd=config_file.resolve().parent,
    )
    if result.returncode not in _FINDINGS_EXIT_CODES:
        raise tool_failure("pyright", result)
    return format_pyright_report(parse_pyright_output(result.stdout))
