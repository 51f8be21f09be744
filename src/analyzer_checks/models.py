"""Model representation of GitHub checks specific dictionary/json structures."""

from enum import StrEnum
from typing import Any, Self

from pydantic import BaseModel, Field, model_validator

# GitHub's max length for POST bodies is around 65k bytes
# Use a smaller limit to leave room for other fields and multi-byte unicode characters
MAX_SUMMARY_LENGTH = 30000


class CheckRunConclusion(StrEnum):
    """The conclusion states a check run is finished with."""

    SUCCESS = "success"
    FAILURE = "failure"


class ConclusionPolicy(StrEnum):
    """Which findings make a check run fail.

    ``ERRORS`` fails only on errors, ``WARNINGS`` fails on errors and warnings.
    """

    ERRORS = "errors"
    WARNINGS = "warnings"


class AnnotationLevel(StrEnum):
    """The severity levels permitted by GitHub checks for each individual annotation."""

    NOTICE = "notice"
    WARNING = "warning"
    FAILURE = "failure"


class CheckAnnotation(BaseModel):
    """Models the json expected by GitHub checks for each individual annotation.

    Locations are normalized on construction: lines are 1-based and never 0, the
    end line never precedes the start line, and columns are only kept for
    single-line annotations, as GitHub rejects column ranges spanning lines.
    """

    path: str
    start_line: int | None = None
    end_line: int | None = None
    start_column: int | None = None
    end_column: int | None = None
    annotation_level: AnnotationLevel
    message: str = Field(min_length=1)
    title: str | None = None
    raw_details: str | None = None

    @model_validator(mode="after")
    def _normalize_location(self) -> Self:
        if self.start_line is None or self.start_line < 1:
            self.start_line = 1
        if self.end_line is None or self.end_line < self.start_line:
            self.end_line = self.start_line

        if self.start_line != self.end_line or (
            self.start_column is None and self.end_column is None
        ):
            self.start_column = None
            self.end_column = None
            return self

        if self.start_column is None or self.start_column < 1:
            self.start_column = 1
        if self.end_column is None or self.end_column < self.start_column:
            self.end_column = self.start_column
        return self

    def to_payload(self) -> dict[str, Any]:
        """Render this annotation as the json object of the checks API."""
        return self.model_dump(mode="json", exclude_none=True)


class CheckRunOutput(BaseModel):
    """The json format expected for the output of a Checks run."""

    title: str
    summary: str
    annotations: list[CheckAnnotation] = []

    def to_payload(self) -> dict[str, Any]:
        """Render this output as the json object of the checks API."""
        return {
            "title": self.title,
            "summary": self.summary,
            "annotations": [a.to_payload() for a in self.annotations],
        }


class DiagnosticReport(BaseModel):
    """The normalized result of one analyzer run.

    Attributes:
        annotations (list[CheckAnnotation]): File-scoped findings, in the order
            the analyzer emitted them.
        error_count (int): Number of error-class findings, including global errors.
        warning_count (int): Number of warning-class findings.
        global_errors (list[str]): Errors not attributable to any file. These are
            never sent as annotations, as GitHub requires a path.
        console_output (str): Human-readable report for the terminal.
    """

    annotations: list[CheckAnnotation] = []
    error_count: int = 0
    warning_count: int = 0
    global_errors: list[str] = []
    console_output: str = ""

    @property
    def summary(self) -> str:
        """Short description of the findings, global errors first."""
        count_line = f"{self.error_count} errors, {self.warning_count} warnings."
        if not self.global_errors:
            return count_line
        global_text = "\n".join(self.global_errors)
        if len(global_text) > MAX_SUMMARY_LENGTH:
            global_text = (
                global_text[:MAX_SUMMARY_LENGTH]
                + "\n\n... (truncated output, see full text log for details) ..."
            )
        return f"{global_text}\n{count_line}"

    def conclusion(
        self,
        policy: ConclusionPolicy = ConclusionPolicy.ERRORS,
    ) -> CheckRunConclusion:
        """Derive the verdict of this report under the given policy."""
        failing = self.error_count
        if policy == ConclusionPolicy.WARNINGS:
            failing += self.warning_count
        return CheckRunConclusion.FAILURE if failing > 0 else CheckRunConclusion.SUCCESS
