"""Provides an interface to run the analyzers and report them as GitHub check runs."""

import json
import logging
import sys
from argparse import Namespace
from collections.abc import Callable, Sequence
from functools import partial
from pathlib import Path
from typing import Any

from configargparse import ArgumentParser
from pydantic import ValidationError
from requests import RequestException

from analyzer_checks.checks import (
    Check,
    CheckOptions,
    prepare_checks,
    run_check,
    run_checks_concurrently,
)
from analyzer_checks.errors import AnalyzerChecksError, ConfigurationError
from analyzer_checks.formatters.pylint import load_pylint_report, run_pylint
from analyzer_checks.formatters.pyright import load_pyright_report, run_pyright
from analyzer_checks.formatters.ruff import load_ruff_report, run_ruff
from analyzer_checks.formatters.utils import LintSeverity, expand_globs, require_file
from analyzer_checks.github_api import (
    DEFAULT_API_URL,
    AppCredentials,
    AppInstallation,
    GitHubChecks,
)
from analyzer_checks.models import (
    CheckRunConclusion,
    ConclusionPolicy,
    DiagnosticReport,
)

LOG_FORMAT = "[analyzer-checks] %(levelname)s: %(message)s"
PYRIGHT_CONFIG = "Pyright project configuration"


def parse_repo(repo: str) -> tuple[str, str]:
    """Split an ``owner/name`` repository argument.

    :raises ConfigurationError: if the argument is not of that form
    """
    owner, _, name = repo.partition("/")
    if not owner or not name or "/" in name:
        msg = f'Invalid --repo argument {repo}. Expected "owner/repo".'
        raise ConfigurationError(msg)
    return owner, name


def parse_overrides(assignments: Sequence[str] | None) -> dict[str, Any]:
    """Parse ``KEY=VALUE`` config overrides, values are JSON where possible."""
    overrides: dict[str, Any] = {}
    for assignment in assignments or []:
        key, sep, raw_value = assignment.partition("=")
        if not sep or not key:
            msg = f"Invalid --set argument {assignment}. Expected KEY=VALUE."
            raise ConfigurationError(msg)
        try:
            overrides[key.strip()] = json.loads(raw_value)
        except json.JSONDecodeError:
            overrides[key.strip()] = raw_value
    return overrides


def parse_severities(assignments: Sequence[str] | None) -> dict[str, LintSeverity]:
    """Parse ``CODE=LEVEL`` severity overrides."""
    severities: dict[str, LintSeverity] = {}
    for assignment in assignments or []:
        code, _, level = assignment.partition("=")
        try:
            severities[code.strip()] = LintSeverity(level.strip().lower())
        except ValueError as exc:
            levels = ", ".join(s.value for s in LintSeverity)
            msg = f"Invalid --severity argument {assignment}. Levels: {levels}."
            raise ConfigurationError(msg) from exc
    return severities


def _add_report_options(parser: ArgumentParser) -> None:
    parser.add_argument(
        "--repo",
        type=str,
        env_var="GH_CHECK_REPO",
        help='The GitHub repository to report to, "owner/repo". If not provided, '
        "results are only printed and no check run is created.",
    )
    parser.add_argument(
        "--sha",
        type=str,
        env_var="GH_CHECK_REVISION",
        help="Revision/commit SHA hash that the check run is validating. Defaults to "
        "HEAD of the repository containing the analyzed project.",
    )
    parser.add_argument(
        "--label",
        type=str,
        env_var="GH_CHECK_LABEL",
        help='Label appended to the check name, e.g. "Ruff - backend".',
    )
    parser.add_argument(
        "--fail-on-warnings",
        action="store_true",
        help="Conclude with failure on warnings too. By default only errors fail.",
    )


def _add_lint_options(parser: ArgumentParser) -> None:
    parser.add_argument(
        "globs",
        nargs="*",
        help="Gitignore-style patterns of the files to lint, e.g. 'src/**/*.py'.",
    )
    parser.add_argument(
        "--root",
        type=Path,
        default=Path(),
        help="Directory the patterns are matched in, defaults to the current one.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        action="append",
        metavar="KEY=VALUE",
        help="Setting merged over the project's lint configuration, repeatable. "
        "Values are parsed as JSON where possible.",
    )
    parser.add_argument(
        "--severity",
        dest="severities",
        action="append",
        metavar="CODE=LEVEL",
        help="Severity (error, warning, info, off) of all rules starting with CODE, "
        "repeatable. Rules set to off are ignored entirely.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        help="Recorded JSON output of the linter, used instead of running it.",
    )


def build_parser() -> ArgumentParser:
    """Create the argument parser of the CLI."""
    argparser = ArgumentParser(
        prog="analyzer-checks",
        description="Run pyright, ruff or pylint and post the results as a check run "
        "to a GitHub repository. Credentials of a GitHub App with 'checks:write' "
        "permission are read from the options below, their environment variables or "
        "a settings file.",
        default_config_files=["./.analyzer-checks.conf"],
    )
    argparser.add_argument(
        "--settings",
        is_config_file=True,
        help="Settings file with 'option = value' lines, e.g. 'app-id = 42'.",
    )
    argparser.add_argument(
        "--app-id",
        type=str,
        env_var="GH_APP_ID",
        help="ID of the GitHub App that is authorized to orchestrate Check Runs.",
    )
    argparser.add_argument(
        "--client-id",
        type=str,
        env_var="GH_APP_CLIENT_ID",
        help="Client ID of the GitHub App, preferred over --app-id to sign tokens.",
    )
    argparser.add_argument(
        "--app-install-id",
        type=str,
        env_var="GH_APP_INSTALL_ID",
        help="ID of the repository's GitHub App installation used by the check.",
    )
    argparser.add_argument(
        "--private-key",
        type=str,
        env_var="GH_APP_PRIVATE_KEY",
        help="Private key of the GitHub App in PEM format.",
    )
    argparser.add_argument(
        "--pem-path",
        type=Path,
        env_var="GH_PRIVATE_KEY_PEM",
        help="Path of the GitHub App's private key, alternative to --private-key.",
    )
    argparser.add_argument(
        "--api-url",
        type=str,
        env_var="GH_API_URL",
        default=DEFAULT_API_URL,
        help="Base URL of the GitHub REST API, for GitHub Enterprise servers.",
    )
    argparser.add_argument(
        "--request-timeout",
        type=float,
        default=None,
        help="Timeout in seconds for each GitHub API request. Waits indefinitely "
        "if not provided.",
    )
    argparser.add_argument("-v", "--verbose", action="store_true")

    subparsers = argparser.add_subparsers(
        description="Analyzer to run.",
        required=True,
        dest="command",
    )

    pyright_parser = subparsers.add_parser(
        "pyright",
        help="Type-check a project with pyright.",
    )
    pyright_parser.add_argument(
        "config",
        type=Path,
        nargs="?",
        default=Path("pyrightconfig.json"),
        help="pyrightconfig.json or pyproject.toml of the project.",
    )
    pyright_parser.add_argument(
        "--log-file",
        type=Path,
        help="Recorded output of `pyright --outputjson`, used instead of running it.",
    )
    _add_report_options(pyright_parser)

    ruff_parser = subparsers.add_parser("ruff", help="Lint files with ruff.")
    _add_lint_options(ruff_parser)
    _add_report_options(ruff_parser)

    pylint_parser = subparsers.add_parser("pylint", help="Lint files with pylint.")
    _add_lint_options(pylint_parser)
    _add_report_options(pylint_parser)

    all_parser = subparsers.add_parser(
        "all",
        help="Run pyright, ruff and pylint in parallel, each as its own check run.",
    )
    all_parser.add_argument(
        "globs",
        nargs="+",
        help="Gitignore-style patterns of the files to lint.",
    )
    all_parser.add_argument(
        "--project",
        type=Path,
        default=Path("pyrightconfig.json"),
        help="pyrightconfig.json or pyproject.toml of the project.",
    )
    all_parser.add_argument(
        "--root",
        type=Path,
        default=Path(),
        help="Directory the patterns are matched in, defaults to the current one.",
    )
    _add_report_options(all_parser)
    return argparser


def authenticate(args: Namespace) -> GitHubChecks:
    """Build the credentials from the parsed options and get a checks client."""
    try:
        credentials = AppCredentials(
            app_id=args.app_id,
            client_id=args.client_id,
            installation_id=args.app_install_id,
            private_key=args.private_key,
            private_key_path=args.pem_path,
            api_url=args.api_url,
        )
    except ValidationError as exc:
        msg = f"Incomplete GitHub App credentials: {exc}"
        raise ConfigurationError(msg) from exc
    token = AppInstallation(credentials).authenticate()
    return GitHubChecks(token, api_url=args.api_url, timeout=args.request_timeout)


def _lint_check(
    args: Namespace,
    tool_name: str,
    run_linter: Callable[..., DiagnosticReport],
    load_log: Callable[..., DiagnosticReport],
) -> Check:
    severities = parse_severities(args.severities)
    if args.log_file:
        analyze = partial(load_log, args.log_file, severities)
        prepare = partial(require_file, args.log_file, "Log file")
    elif args.globs:
        prepare = partial(expand_globs, args.globs, args.root)
        analyze = partial(
            run_linter,
            args.globs,
            args.root,
            parse_overrides(args.overrides),
            severities,
        )
    else:
        msg = f"{args.command} needs file patterns to lint or a --log-file."
        raise ConfigurationError(msg)
    return Check(tool_name, analyze, args.root, prepare)


def build_checks(args: Namespace) -> list[Check]:
    """Bind the analyzers selected on the command line to their targets."""
    if args.command == "pyright":
        if args.log_file:
            analyze = partial(load_pyright_report, args.log_file)
            prepare = partial(require_file, args.log_file, "Log file")
        else:
            analyze = partial(run_pyright, args.config)
            prepare = partial(require_file, args.config, PYRIGHT_CONFIG)
        return [Check("Pyright", analyze, args.config.absolute(), prepare)]
    if args.command == "ruff":
        return [_lint_check(args, "Ruff", run_ruff, load_ruff_report)]
    if args.command == "pylint":
        return [_lint_check(args, "Pylint", run_pylint, load_pylint_report)]
    find_files = partial(expand_globs, args.globs, args.root)
    return [
        Check(
            "Pyright",
            partial(run_pyright, args.project),
            args.project.absolute(),
            partial(require_file, args.project, PYRIGHT_CONFIG),
        ),
        Check("Ruff", partial(run_ruff, args.globs, args.root), args.root, find_files),
        Check(
            "Pylint",
            partial(run_pylint, args.globs, args.root),
            args.root,
            find_files,
        ),
    ]


def run(args: Namespace) -> list[CheckRunConclusion]:
    """Run the selected analyzers and report them if a repository is given."""
    policy = (
        ConclusionPolicy.WARNINGS if args.fail_on_warnings else ConclusionPolicy.ERRORS
    )
    checks = prepare_checks(build_checks(args))

    check_options: CheckOptions | None = None
    if args.repo:
        owner, repo = parse_repo(args.repo)
        check_options = CheckOptions(
            client=authenticate(args),
            owner=owner,
            repo=repo,
            sha=args.sha,
            label=args.label,
            policy=policy,
        )

    if len(checks) == 1:
        return [run_check(checks[0], check_options, policy)]
    return run_checks_concurrently(checks, check_options, policy)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point, returns the exit status: 1 on failure or error, otherwise 0."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
    )
    try:
        conclusions = run(args)
    except (AnalyzerChecksError, RequestException) as exc:
        logging.fatal("%s Aborting.", exc)
        return 1
    return 1 if CheckRunConclusion.FAILURE in conclusions else 0


def entrypoint() -> None:
    """Console script entry point."""
    sys.exit(main(sys.argv[1:]))


if __name__ == "__main__":
    entrypoint()
