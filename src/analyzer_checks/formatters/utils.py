"""Helpers shared by the analyzer adapters."""

import logging
import os
import subprocess
import sys
from collections.abc import Iterable, Iterator, Mapping, Sequence
from enum import StrEnum
from pathlib import Path

from pathspec import GitIgnoreSpec

from analyzer_checks.errors import AnalyzerError, ConfigurationError
from analyzer_checks.models import AnnotationLevel, CheckAnnotation

logger = logging.getLogger(__name__)


class LintSeverity(StrEnum):
    """Severity of a lint finding, as configured per rule."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    OFF = "off"

    @classmethod
    def to_annotation_level(cls, severity: "LintSeverity") -> AnnotationLevel:
        """Convert a lint severity to a GitHub Check AnnotationLevel.

        ``OFF`` findings are dropped before this is ever called.
        """
        if severity == cls.ERROR:
            return AnnotationLevel.FAILURE
        if severity == cls.WARNING:
            return AnnotationLevel.WARNING
        return AnnotationLevel.NOTICE


def resolve_severity(
    codes: Iterable[str | None],
    default: LintSeverity,
    overrides: Mapping[str, LintSeverity] | None = None,
) -> LintSeverity:
    """Look up the configured severity of a rule.

    A rule may be known under several codes (e.g. pylint's message id and symbol).
    The longest key of ``overrides`` that is a prefix of any of the codes wins, so
    ``{"E": "error", "E501": "off"}`` disables E501 but keeps all other E rules.
    """
    if not overrides:
        return default
    best: str | None = None
    for code in codes:
        if not code:
            continue
        for prefix in overrides:
            if code.startswith(prefix) and (best is None or len(prefix) > len(best)):
                best = prefix
    return overrides[best] if best is not None else default


def count_levels(annotations: Iterable[CheckAnnotation]) -> tuple[int, int]:
    """Count failure and warning level annotations."""
    errors = warnings = 0
    for annotation in annotations:
        if annotation.annotation_level == AnnotationLevel.FAILURE:
            errors += 1
        elif annotation.annotation_level == AnnotationLevel.WARNING:
            warnings += 1
    return errors, warnings


def relative_repo_path(path: str | Path, repo_root: Path) -> str | None:
    """Rewrite a path to be relative to the repository root.

    Relative paths are taken as relative to the root already, which makes the
    rewrite idempotent.

    :param path: absolute or repo-relative path of a file
    :param repo_root: absolute path of the repository root
    :return: the POSIX style repo-relative path, or None if the file is outside
        of the repository
    """
    root = repo_root.resolve()
    candidate = Path(path)
    if not candidate.is_absolute():
        candidate = root / candidate
    try:
        return candidate.resolve().relative_to(root).as_posix()
    except ValueError:
        return None


def require_file(path: Path, description: str) -> Path:
    """Fail with a configuration error unless ``path`` is an existing file.

    :raises ConfigurationError: if the file does not exist
    """
    if not path.is_file():
        msg = f"{description} {path} not found."
        raise ConfigurationError(msg)
    return path


def read_recorded_output(json_output_fp: Path) -> str:
    """Read a recorded analyzer log.

    :raises ConfigurationError: if the log cannot be read
    """
    try:
        with json_output_fp.open("r", encoding="utf-8") as json_file:
            return json_file.read()
    except OSError as exc:
        msg = f"Could not read log file {json_output_fp}: {exc.strerror or exc}"
        raise ConfigurationError(msg) from exc


def _read_ignore_file(directory: Path) -> GitIgnoreSpec | None:
    ignore_file = directory / ".gitignore"
    if not ignore_file.is_file():
        return None
    with ignore_file.open("r", encoding="utf-8") as lines:
        return GitIgnoreSpec.from_lines(lines)


def _is_ignored(
    relative: Path,
    ignore_specs: Sequence[tuple[Path, GitIgnoreSpec]],
    *,
    is_dir: bool = False,
) -> bool:
    for base, spec in ignore_specs:
        if not relative.is_relative_to(base):
            continue
        candidate = relative.relative_to(base).as_posix()
        if spec.match_file(f"{candidate}/" if is_dir else candidate):
            return True
    return False


def _walk_tree_files(root: Path) -> Iterator[Path]:
    """Yield the root-relative files git would track below ``root``.

    Hidden directories such as ``.git`` or ``.venv`` are never entered, nor is
    anything matched by a ``.gitignore`` file inside the walked tree.
    """
    ignore_specs: list[tuple[Path, GitIgnoreSpec]] = []
    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = Path(dirpath).relative_to(root)
        if spec := _read_ignore_file(Path(dirpath)):
            ignore_specs.append((rel_dir, spec))
        dirnames[:] = [
            name
            for name in dirnames
            if not name.startswith(".")
            and not _is_ignored(rel_dir / name, ignore_specs, is_dir=True)
        ]
        for name in filenames:
            if not _is_ignored(rel_dir / name, ignore_specs):
                yield rel_dir / name


def expand_globs(globs: Sequence[str], root: Path) -> list[Path]:
    """Find the files matching gitignore-style globs below a directory.

    Files in hidden directories and files ignored by git are skipped.

    :raises ConfigurationError: if no file matches
    """
    spec = GitIgnoreSpec.from_lines(globs)
    matches = sorted(
        root / path
        for path in _walk_tree_files(root)
        if spec.match_file(path.as_posix())
    )
    if not matches:
        msg = f"No files matching {', '.join(globs)} in {root}."
        raise ConfigurationError(msg)
    return matches


def run_analyzer(
    tool: str,
    args: Sequence[str],
    cwd: Path,
) -> subprocess.CompletedProcess[str]:
    """Run an analyzer installed in the current environment as ``python -m tool``.

    :raises AnalyzerError: if the analyzer cannot be started
    """
    cmd = [sys.executable, "-m", tool, *args]
    logger.debug("Running %s in %s", " ".join(cmd), cwd)
    try:
        return subprocess.run(  # noqa: S603
            cmd,
            capture_output=True,
            text=True,
            check=False,
            cwd=cwd,
        )
    except OSError as exc:
        msg = f"Could not run {tool}: {exc}"
        raise AnalyzerError(msg) from exc


def tool_failure(tool: str, result: subprocess.CompletedProcess[str]) -> AnalyzerError:
    """Build the error for an analyzer run that exited abnormally."""
    details = (result.stderr or result.stdout).strip()
    return AnalyzerError(f"{tool} exited with status {result.returncode}: {details}")
