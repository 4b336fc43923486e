"""API route modules for the claims test runner.

Routers:
- test_cases: Catalog listing and sanity sample preview
- runs: Background test runs, progress and cancellation
- results: Outcome listing, pass/fail summary and claim refresh
"""

from .results import router as results_router
from .runs import router as runs_router
from .test_cases import router as test_cases_router

__all__ = ["results_router", "runs_router", "test_cases_router"]
