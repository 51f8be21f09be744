"""Exceptions raised by analyzer-checks."""


class AnalyzerChecksError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(AnalyzerChecksError):
    """Invalid invocation, e.g. a malformed repository or a missing project config."""


class AnalyzerError(AnalyzerChecksError):
    """The analyzer itself could not run or produced unreadable output.

    This is a tooling failure, never a code-quality finding.
    """


class CheckRunError(AnalyzerChecksError):
    """The check run lifecycle was driven out of order."""
