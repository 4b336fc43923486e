"""Read-only catalog of test cases."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from pathlib import Path

from ..models import ExecutionGroup, TestCase, TestKind
from .loader import TestCaseLoader

logger = logging.getLogger(__name__)

# Group order of a full run
GROUP_ORDER = (TestKind.POSITIVE, TestKind.NEGATIVE, TestKind.BUILD, TestKind.COMPLEX)


class TestCaseCatalog:
    """Test cases keyed by title and intervention code.

    Titles are expected to be unique within a kind, since a kind maps to
    one execution group.
    """

    __test__ = False

    def __init__(self, test_cases: Iterable[TestCase] = ()) -> None:
        self._test_cases = list(test_cases)

    @classmethod
    def from_directory(cls, directory: str | Path | None = None) -> TestCaseCatalog:
        catalog = cls(TestCaseLoader(directory).load_directory())
        logger.info(f"Test case catalog loaded with {len(catalog)} test case(s)")
        return catalog

    @classmethod
    def from_file(cls, file_path: str | Path) -> TestCaseCatalog:
        return cls(TestCaseLoader().load_file(file_path))

    def __len__(self) -> int:
        return len(self._test_cases)

    def __iter__(self) -> Iterator[TestCase]:
        return iter(self._test_cases)

    def all(self) -> list[TestCase]:
        return list(self._test_cases)

    def get(self, title: str, kind: TestKind | None = None) -> TestCase | None:
        """First test case with an exactly matching title."""
        for test_case in self._test_cases:
            if test_case.title == title and (kind is None or test_case.kind is kind):
                return test_case
        return None

    def by_code(self, code: str) -> list[TestCase]:
        """Test cases whose first line item is the given intervention."""
        normalized = code.strip().upper()
        return [
            tc
            for tc in self._test_cases
            if (tc.intervention_code or "").upper() == normalized
        ]

    def codes(self) -> list[str]:
        return sorted({tc.intervention_code for tc in self._test_cases if tc.intervention_code})

    def groups(self, code: str | None = None) -> list[ExecutionGroup]:
        """Split test cases into execution groups by kind.

        Positive and negative groups are always present; build and complex
        groups only when they have test cases.

        Args:
            code: Restrict to one intervention code
        """
        test_cases = self.by_code(code) if code else self._test_cases
        groups = []
        for kind in GROUP_ORDER:
            members = [tc for tc in test_cases if tc.kind is kind]
            if members or kind in (TestKind.POSITIVE, TestKind.NEGATIVE):
                groups.append(ExecutionGroup(name=kind.value, test_cases=members))
        return groups


# Global catalog instance
_catalog_instance: TestCaseCatalog | None = None


def get_catalog() -> TestCaseCatalog:
    """Get or load the global catalog from TEST_CASES_DIR."""
    global _catalog_instance

    if _catalog_instance is None:
        _catalog_instance = TestCaseCatalog.from_directory()

    return _catalog_instance


def set_catalog(catalog: TestCaseCatalog | None) -> None:
    """Replace the global catalog instance (None forces a reload)."""
    global _catalog_instance
    _catalog_instance = catalog
