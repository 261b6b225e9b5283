from __future__ import annotations

from typing import Sequence


class ConfigurationError(ValueError):
    """Raised for malformed solver configuration or unsupported problem input.

    Always raised before the search starts.
    """


class SolutionVerificationWarning(UserWarning):
    """Emitted when the returned incumbent fails the post-solve checks."""


class SolutionVerificationError(RuntimeError):
    """Escalated form of a verification failure."""

    def __init__(self, issues: Sequence[str]):
        self.issues = tuple(issues)
        super().__init__(
            "Solution failed verification: " + "; ".join(self.issues)
        )
