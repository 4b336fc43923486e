"""Exception hierarchy for the claims test runner.

Configuration errors abort a run before any network activity, per-item
transport errors are converted into failed outcomes by the orchestrator,
and refresh errors are reported without touching stored outcomes.
"""

from __future__ import annotations

from typing import Any


class ClaimRunnerError(Exception):
    """Base exception for claim runner errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context


# --- Configuration errors ---


class ConfigurationError(ClaimRunnerError):
    """A run was configured with data that cannot be executed."""

    pass


class InvalidTestCase(ConfigurationError):
    """A test case cannot be turned into a submission payload."""

    def __init__(self, title: str | None, reason: str) -> None:
        super().__init__(f"Invalid test case '{title}': {reason}", title=title)
        self.title = title
        self.reason = reason


class TestCaseNotFound(ConfigurationError):
    """A selected title has no matching test case."""

    __test__ = False

    def __init__(self, title: str, group: str | None = None) -> None:
        where = f" in group '{group}'" if group else ""
        super().__init__(
            f'Test case with title "{title}" not found{where}',
            title=title,
            group=group,
        )
        self.title = title
        self.group = group


class CatalogError(ConfigurationError):
    """Raised when test case records fail to load or validate."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.errors = errors or []


# --- Remote API errors ---


class ClaimsAPIError(ClaimRunnerError):
    """Raised when the claims API cannot be reached or returns garbage."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message, status_code=status_code)
        self.status_code = status_code


# --- Refresh errors ---


class RefreshError(ClaimRunnerError):
    """Base class for refresh failures."""

    def __init__(self, message: str, claim_id: str) -> None:
        super().__init__(message, claim_id=claim_id)
        self.claim_id = claim_id


class ClaimNotFound(RefreshError):
    """The system of record has no claim with this identifier."""

    def __init__(self, claim_id: str) -> None:
        super().__init__(f"Claim {claim_id} not found", claim_id)


class RefreshUnavailable(RefreshError):
    """The claim exists but has not reached a terminal state yet."""

    def __init__(self, claim_id: str, outcome: str | None = None) -> None:
        state = outcome or "no status"
        super().__init__(
            f"Claim {claim_id} has no terminal status yet ({state})", claim_id
        )
        self.outcome = outcome


# --- Run errors ---


class RunInProgress(ClaimRunnerError):
    """Another run is still submitting; runs share one pacing budget."""

    def __init__(self, run_id: str) -> None:
        super().__init__(f"Run {run_id} is still in progress", run_id=run_id)
        self.run_id = run_id
