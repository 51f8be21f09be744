"""Drive a GitHub check run from a diagnostic report.

A check run is created once in the ``in_progress`` state, then updated with the
annotations in batches of at most :data:`MAX_ANNOTATIONS_PER_REQUEST`. Every
update carries the conclusion, so the first one completes the run and later ones
append annotations. There is no retry: a failing request aborts the remaining
batches and leaves whatever was already posted in place.
"""

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from analyzer_checks.errors import CheckRunError
from analyzer_checks.formatters.utils import relative_repo_path
from analyzer_checks.models import (
    CheckAnnotation,
    CheckRunConclusion,
    CheckRunOutput,
    ConclusionPolicy,
    DiagnosticReport,
)
from analyzer_checks.vcs import head_commit_of

logger = logging.getLogger(__name__)

# GitHub accepts at most 50 annotations per check run request
MAX_ANNOTATIONS_PER_REQUEST = 50


class ChecksClient(Protocol):
    """The subset of the checks API used by the reporter."""

    def create_check_run(
        self,
        owner: str,
        repo: str,
        head_sha: str,
        name: str,
    ) -> int: ...

    def update_check_run(
        self,
        owner: str,
        repo: str,
        check_run_id: int,
        output: CheckRunOutput,
        conclusion: CheckRunConclusion,
    ) -> None: ...


def batch_annotations(
    annotations: Sequence[CheckAnnotation],
    batch_size: int = MAX_ANNOTATIONS_PER_REQUEST,
) -> list[list[CheckAnnotation]]:
    """Split annotations into consecutive batches of at most ``batch_size``.

    An empty sequence yields a single empty batch, so that a clean run still gets
    its conclusion posted.
    """
    batches = [
        list(annotations[i : i + batch_size])
        for i in range(0, len(annotations), batch_size)
    ]
    return batches or [[]]


def relativize_annotations(
    annotations: Sequence[CheckAnnotation],
    repo_root: Path,
) -> list[CheckAnnotation]:
    """Rewrite the paths of all annotations to be relative to the repository root.

    GitHub can only place annotations on files of the repository, so annotations
    on files outside of it are dropped.
    """
    relativized: list[CheckAnnotation] = []
    for annotation in annotations:
        path = relative_repo_path(annotation.path, repo_root)
        if path is None:
            logger.warning(
                "Dropping annotation on %s, which is outside of repository %s",
                annotation.path,
                repo_root,
            )
            continue
        relativized.append(annotation.model_copy(update={"path": path}))
    return relativized


def check_name(tool_name: str, label: str | None = None) -> str:
    """Name of the check run for a tool, e.g. ``Ruff - backend``."""
    return f"{tool_name} - {label}" if label else tool_name


class CheckRunReporter:
    """Reports a single diagnostic report as one check run."""

    def __init__(  # noqa: PLR0913
        self,
        client: ChecksClient,
        owner: str,
        repo: str,
        name: str,
        policy: ConclusionPolicy = ConclusionPolicy.ERRORS,
        batch_size: int = MAX_ANNOTATIONS_PER_REQUEST,
    ) -> None:
        """Prepare reporting to a repository.

        :param client: authenticated checks API client
        :param owner: owner of the repository, user or organization
        :param repo: name of the repository
        :param name: name of the check run, also used as its title
        :param policy: whether warnings fail the check run
        :param batch_size: maximum number of annotations per request
        """
        self.client = client
        self.owner = owner
        self.repo = repo
        self.name = name
        self.policy = policy
        self.batch_size = batch_size
        self.check_run_id: int | None = None

    def start(self, repo_root: Path, head_sha: str | None = None) -> int:
        """Create the check run in the ``in_progress`` state.

        :param repo_root: root of the local repository clone
        :param head_sha: commit to attach the check run to, defaults to HEAD
        :return: the id of the check run
        """
        sha = head_sha or head_commit_of(repo_root)
        self.check_run_id = self.client.create_check_run(
            self.owner,
            self.repo,
            sha,
            self.name,
        )
        logger.info(
            "Created check run %s (%s) for %s/%s@%s",
            self.check_run_id,
            self.name,
            self.owner,
            self.repo,
            sha,
        )
        return self.check_run_id

    def finish(self, report: DiagnosticReport, repo_root: Path) -> CheckRunConclusion:
        """Post all annotations of the report and conclude the check run.

        :raises CheckRunError: if the check run was not started
        :return: the conclusion posted
        """
        if self.check_run_id is None:
            msg = f"Check run {self.name} was not started."
            raise CheckRunError(msg)

        annotations = relativize_annotations(report.annotations, repo_root)
        conclusion = report.conclusion(self.policy)
        summary = report.summary

        for batch in batch_annotations(annotations, self.batch_size):
            self.client.update_check_run(
                self.owner,
                self.repo,
                self.check_run_id,
                CheckRunOutput(title=self.name, summary=summary, annotations=batch),
                conclusion,
            )
            logger.info(
                "Updated check run %s with %d annotations.",
                self.check_run_id,
                len(batch),
            )
        return conclusion

    def report(
        self,
        report: DiagnosticReport,
        repo_root: Path,
        head_sha: str | None = None,
    ) -> CheckRunConclusion:
        """Create, fill and conclude a check run in one go."""
        self.start(repo_root, head_sha)
        return self.finish(report, repo_root)
