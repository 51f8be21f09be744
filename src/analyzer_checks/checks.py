"""Run analyzers and, optionally, report their results as check runs."""

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from pathlib import Path

from analyzer_checks.models import CheckRunConclusion, ConclusionPolicy, DiagnosticReport
from analyzer_checks.reporter import ChecksClient, CheckRunReporter, check_name
from analyzer_checks.vcs import repository_root_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckOptions:
    """Where and how to report a check run."""

    client: ChecksClient
    owner: str
    repo: str
    sha: str | None = None
    label: str | None = None
    policy: ConclusionPolicy = ConclusionPolicy.ERRORS


@dataclass(frozen=True)
class Check:
    """An analyzer run, bound to its target.

    ``project_path`` is any path inside the analyzed repository, it is used to find
    the repository root. ``prepare`` validates the inputs of ``analyze`` and runs
    before any check run is created, so configuration errors never leave one
    behind.
    """

    tool_name: str
    analyze: Callable[[], DiagnosticReport]
    project_path: Path
    prepare: Callable[[], object] | None = None


def prepare_checks(checks: Sequence[Check]) -> list[Check]:
    """Validate the inputs of all checks up front.

    :return: the checks, with nothing left to prepare
    :raises ConfigurationError: if any check is misconfigured
    """
    prepared = []
    for check in checks:
        if check.prepare:
            check.prepare()
        prepared.append(replace(check, prepare=None))
    return prepared


def run_check(
    check: Check,
    check_options: CheckOptions | None = None,
    policy: ConclusionPolicy = ConclusionPolicy.ERRORS,
) -> CheckRunConclusion:
    """Run one analyzer, print its report and post it as a check run.

    The check run is created before the analyzer starts, so it shows as running
    on GitHub in the meantime. Without ``check_options`` nothing is posted and
    only the local conclusion is computed.

    :param policy: conclusion policy when not reporting, otherwise the policy of
        ``check_options`` applies
    """
    repo_root = repository_root_for(check.project_path)
    if check.prepare:
        check.prepare()

    reporter: CheckRunReporter | None = None
    if check_options:
        policy = check_options.policy
        reporter = CheckRunReporter(
            check_options.client,
            check_options.owner,
            check_options.repo,
            check_name(check.tool_name, check_options.label),
            policy=policy,
        )
        reporter.start(repo_root, check_options.sha)

    report = check.analyze()
    print(f"{check.tool_name}: {report.summary}")  # noqa: T201
    print(report.console_output)  # noqa: T201

    if reporter:
        return reporter.finish(report, repo_root)
    return report.conclusion(policy)


def run_checks_concurrently(
    checks: Sequence[Check],
    check_options: CheckOptions | None = None,
    policy: ConclusionPolicy = ConclusionPolicy.ERRORS,
) -> list[CheckRunConclusion]:
    """Run independent checks in parallel, each reporting to its own check run.

    All checks run to completion, the first error is raised afterwards. No check
    run is created unless every check is configured correctly.
    """
    checks = prepare_checks(checks)
    with ThreadPoolExecutor(max_workers=max(len(checks), 1)) as executor:
        futures = [
            executor.submit(run_check, check, check_options, policy) for check in checks
        ]
    conclusions: list[CheckRunConclusion] = []
    first_error: BaseException | None = None
    for check, future in zip(checks, futures, strict=True):
        if (error := future.exception()) is not None:
            logger.error("%s failed: %s", check.tool_name, error)
            first_error = first_error or error
            continue
        conclusions.append(future.result())
    if first_error is not None:
        raise first_error
    return conclusions
