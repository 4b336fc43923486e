"""Test case file loader.

Supports loading test case records from YAML and JSON files, so test
suites can be versioned next to the code that exercises them.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ..config import TEST_CASES_DIR
from ..errors import CatalogError
from ..models import TestCase
from .records import TestCaseRecord

logger = logging.getLogger(__name__)


class TestCaseLoader:
    """Loads and validates test case records from files."""

    __test__ = False

    def __init__(self, cases_dir: str | Path | None = None):
        """Initialize the loader.

        Args:
            cases_dir: Directory containing test case files.
                       Defaults to TEST_CASES_DIR.
        """
        self.cases_dir = Path(cases_dir) if cases_dir else Path(TEST_CASES_DIR)

    def load_file(self, file_path: str | Path) -> list[TestCase]:
        """Load test cases from a single file.

        Args:
            file_path: Path to YAML or JSON file

        Returns:
            List of test cases in file order

        Raises:
            CatalogError: If validation fails
            FileNotFoundError: If file doesn't exist
        """
        path = Path(file_path)

        if not path.exists():
            raise FileNotFoundError(f"Test case file not found: {path}")

        suffix = path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            with open(path) as f:
                data = yaml.safe_load(f)
        elif suffix == ".json":
            with open(path) as f:
                data = json.load(f)
        else:
            raise ValueError(f"Unsupported test case format: {suffix}")

        return self.parse(data, str(path))

    def load_directory(self, directory: str | Path | None = None) -> list[TestCase]:
        """Load all test cases from a directory.

        Files are read in name order so the resulting order is stable.

        Args:
            directory: Directory to scan. Defaults to self.cases_dir.

        Returns:
            List of test cases from all files

        Raises:
            CatalogError: If any file fails to load or validate
        """
        cases_dir = Path(directory) if directory else self.cases_dir

        if not cases_dir.exists():
            logger.warning(f"Test case directory does not exist: {cases_dir}")
            return []

        files = sorted(
            path
            for pattern in ("*.yaml", "*.yml", "*.json")
            for path in cases_dir.glob(pattern)
        )

        test_cases: list[TestCase] = []
        errors: list[dict[str, Any]] = []

        for file_path in files:
            try:
                file_cases = self.load_file(file_path)
                test_cases.extend(file_cases)
                logger.info(f"Loaded {len(file_cases)} test case(s) from {file_path.name}")
            except CatalogError as e:
                errors.extend(e.errors)
            except (OSError, ValueError, yaml.YAMLError) as e:
                errors.append({"file": str(file_path), "error": str(e)})

        if errors:
            raise CatalogError(
                f"Validation failed for {len(errors)} item(s)",
                errors=errors,
            )

        return test_cases

    def parse(self, data: Any, source: str = "<memory>") -> list[TestCase]:
        """Parse loaded YAML/JSON data into test cases.

        Accepts a single record, a list of records, or a mapping with a
        `test_cases` list. A record may be wrapped in `formData`.

        Raises:
            CatalogError: If validation fails
        """
        if isinstance(data, dict):
            if "test_cases" in data:
                records = data["test_cases"]
            else:
                records = [data]
        elif isinstance(data, list):
            records = data
        else:
            raise CatalogError(
                f"Invalid test case format in {source}",
                errors=[{"file": source, "error": "Expected dict or list"}],
            )

        if not isinstance(records, list):
            raise CatalogError(
                f"Invalid test case format in {source}",
                errors=[{"file": source, "error": "test_cases must be a list"}],
            )

        test_cases: list[TestCase] = []
        errors: list[dict[str, Any]] = []

        for idx, raw in enumerate(records):
            if isinstance(raw, dict) and "formData" in raw:
                raw = raw["formData"]
            if not isinstance(raw, dict):
                errors.append({"file": source, "index": idx, "error": "Expected a mapping"})
                continue
            try:
                test_cases.append(TestCaseRecord.model_validate(raw).to_test_case())
            except ValidationError as e:
                for error in e.errors():
                    errors.append(
                        {
                            "file": source,
                            "index": idx,
                            "title": raw.get("title"),
                            "field": ".".join(str(part) for part in error["loc"]),
                            "error": error["msg"],
                        }
                    )

        if errors:
            raise CatalogError(
                f"Validation failed for {len(errors)} field(s) in {source}",
                errors=errors,
            )

        return test_cases
