"""Reproducible sanity sampling of test cases.

A sanity run picks a few positive and negative test cases per intervention
instead of running the whole catalog. Sampling uses a seeded
`random.Random`, so the same seed and catalog always give the same
selection.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable

from ..config import MAX_RANDOM_TEST_CASES_PER_TYPE
from ..models import ExecutionGroup, TestCase, TestKind

logger = logging.getLogger(__name__)


def group_by_intervention(
    test_cases: Iterable[TestCase],
) -> dict[str, dict[TestKind, list[TestCase]]]:
    """Bucket positive and negative test cases by intervention code.

    Test cases without line items, and kinds other than positive and
    negative, are left out.
    """
    grouped: dict[str, dict[TestKind, list[TestCase]]] = {}
    for test_case in test_cases:
        code = test_case.intervention_code
        if not code or test_case.kind not in (TestKind.POSITIVE, TestKind.NEGATIVE):
            continue
        buckets = grouped.setdefault(code, {TestKind.POSITIVE: [], TestKind.NEGATIVE: []})
        buckets[test_case.kind].append(test_case)
    return grouped


class TestCaseSampler:
    """Picks up to `per_kind` positive and negative cases per intervention."""

    __test__ = False

    def __init__(
        self, seed: int | None = None, per_kind: int = MAX_RANDOM_TEST_CASES_PER_TYPE
    ) -> None:
        if per_kind < 1:
            raise ValueError("per_kind must be at least 1")
        self.seed = seed
        self.per_kind = per_kind
        self._random = random.Random(seed)

    def sample(self, test_cases: Iterable[TestCase]) -> list[TestCase]:
        """Sample test cases, interventions in code order.

        Returns:
            Selected positive cases followed by negative cases for each
            intervention
        """
        selected: list[TestCase] = []
        grouped = group_by_intervention(test_cases)
        for code in sorted(grouped):
            for kind in (TestKind.POSITIVE, TestKind.NEGATIVE):
                candidates = sorted(grouped[code][kind], key=lambda tc: tc.title)
                count = min(self.per_kind, len(candidates))
                selected.extend(self._random.sample(candidates, count))

        logger.debug(
            f"Sampled {len(selected)} test case(s) from {len(grouped)} intervention(s) "
            f"(seed={self.seed})"
        )
        return selected

    def sample_groups(self, test_cases: Iterable[TestCase]) -> list[ExecutionGroup]:
        """Sample and split into a positive and a negative execution group."""
        selected = self.sample(test_cases)
        return [
            ExecutionGroup(
                name=kind.value,
                test_cases=[tc for tc in selected if tc.kind is kind],
            )
            for kind in (TestKind.POSITIVE, TestKind.NEGATIVE)
        ]
