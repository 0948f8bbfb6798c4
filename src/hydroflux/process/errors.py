"""Error types raised while assembling and validating processes.

Two kinds of failure halt model assembly:

- ConfigurationError: connectivity, construction arguments or algorithm
  selectors that do not match what a process requires.
- UnimplementedFeatureError: a declared algorithm variant whose formula
  is a known stub.

Both are fatal. Validation itself is pure and reports problems as
ValidationIssue records; ``HydroProcess.initialize`` turns them into
exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

__all__ = [
    "ConfigurationError",
    "UnimplementedFeatureError",
    "ValidationIssue",
    "raise_for_issues",
]


class ConfigurationError(ValueError):
    """Model configuration is inconsistent with a process's requirements."""

    def __init__(self, message: str, issues: Sequence[ValidationIssue] = ()):
        super().__init__(message)
        self.issues = tuple(issues)


class UnimplementedFeatureError(ConfigurationError, NotImplementedError):
    """A declared algorithm variant has no implemented formula."""


@dataclass(frozen=True)
class ValidationIssue:
    """One problem found while validating a process.

    Attributes
    ----------
    source : str
        Name of the process (or component) that reported the issue
    message : str
        Human readable description
    stub : bool
        True when the issue is an unimplemented variant rather than a
        configuration mismatch
    """

    source: str
    message: str
    stub: bool = False

    def __str__(self) -> str:
        return f"{self.source}: {self.message}"


def raise_for_issues(issues: Sequence[ValidationIssue], context: str) -> None:
    """Raise the appropriate error if any issues were found."""
    if not issues:
        return
    detail = "; ".join(str(i) for i in issues)
    message = f"{context}: {detail}"
    if all(i.stub for i in issues):
        raise UnimplementedFeatureError(message, issues)
    raise ConfigurationError(message, issues)
