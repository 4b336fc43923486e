"""Tests for test case loading and the catalog."""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import pytest
import yaml

from claimrunner.catalog import TestCaseCatalog, TestCaseLoader
from claimrunner.errors import CatalogError
from claimrunner.models import ClaimSubType, TestKind, UsageMode
from claimrunner.payload import PayloadBuilder

SHIPPED_CASES_DIR = Path(__file__).parent.parent / "config" / "test_cases"


@pytest.fixture
def loader() -> TestCaseLoader:
    return TestCaseLoader()


class TestRecordParsing:
    """Test conversion of stored records into test cases."""

    def test_parses_form_data_record(self, loader, sample_form_data):
        """A captured submission body loads as a test case."""
        [test_case] = loader.parse(sample_form_data)

        assert test_case.title == "Test Eligible Facility level"
        assert test_case.kind is TestKind.POSITIVE
        assert test_case.usage_mode is UsageMode.CLAIM
        assert test_case.claim_sub_type is ClaimSubType.INPATIENT
        assert test_case.declared_total == 102905
        [item] = test_case.line_items
        assert item.code == "SHA-01-003"
        assert item.unit_price.value == 102905
        assert item.unit_price.currency == "KES"
        assert item.service_period.start == date(2025, 7, 8)
        assert test_case.billable_period.created == date(2025, 7, 18)

    def test_sequence_defaults_to_position(self, loader, sample_form_data):
        form = sample_form_data["formData"]
        second = dict(form["productOrService"][0], code="SHA-03-001")
        del second["sequence"]
        form["productOrService"].append(second)

        [test_case] = loader.parse(form)

        assert [item.sequence for item in test_case.line_items] == [1, 2]

    def test_accepts_list_of_records(self, loader, sample_form_data):
        negative = dict(sample_form_data["formData"], test="Negative", title="Rejected case")

        cases = loader.parse([sample_form_data, negative])

        assert [tc.kind for tc in cases] == [TestKind.POSITIVE, TestKind.NEGATIVE]

    def test_missing_total_is_not_declared(self, loader, sample_form_data):
        del sample_form_data["formData"]["total"]

        [test_case] = loader.parse(sample_form_data)

        assert test_case.declared_total is None

    def test_invalid_fields_are_collected(self, loader, sample_form_data):
        form = sample_form_data["formData"]
        form["test"] = "sideways"
        form["billablePeriod"]["billableStart"] = "not a date"

        with pytest.raises(CatalogError) as exc_info:
            loader.parse(form, "cases.yaml")

        fields = {error["field"] for error in exc_info.value.errors}
        assert fields == {"test", "billablePeriod.billableStart"}
        assert all(error["file"] == "cases.yaml" for error in exc_info.value.errors)
        assert all(error["title"] == "Test Eligible Facility level" for error in exc_info.value.errors)

    def test_missing_title_is_rejected(self, loader, sample_form_data):
        sample_form_data["formData"]["title"] = "   "

        with pytest.raises(CatalogError):
            loader.parse(sample_form_data)

    def test_invalid_usage_mode_is_rejected(self, loader, sample_form_data):
        sample_form_data["formData"]["use"] = {"id": "refund"}

        with pytest.raises(CatalogError):
            loader.parse(sample_form_data)

    def test_non_mapping_data_is_rejected(self, loader):
        with pytest.raises(CatalogError):
            loader.parse("just a string")

    def test_loaded_case_builds_a_payload(self, loader, sample_form_data):
        """Loaded records produce the same wire body they were captured from."""
        [test_case] = loader.parse(sample_form_data)

        form = PayloadBuilder().build(test_case).to_wire()["formData"]

        assert form["productOrService"][0]["net"] == {"value": 102905, "currency": "KES"}
        assert form["billablePeriod"] == sample_form_data["formData"]["billablePeriod"]


class TestFileLoading:
    """Test loading from YAML and JSON files."""

    def test_load_yaml_file(self, tmp_path, loader, sample_form_data):
        path = tmp_path / "cases.yaml"
        path.write_text(yaml.safe_dump({"test_cases": [sample_form_data]}))

        cases = loader.load_file(path)

        assert [tc.title for tc in cases] == ["Test Eligible Facility level"]

    def test_load_json_file(self, tmp_path, loader, sample_form_data):
        path = tmp_path / "cases.json"
        path.write_text(json.dumps(sample_form_data))

        assert len(loader.load_file(path)) == 1
        assert len(TestCaseCatalog.from_file(path)) == 1

    def test_missing_file_raises(self, tmp_path, loader):
        with pytest.raises(FileNotFoundError):
            loader.load_file(tmp_path / "missing.yaml")

    def test_unsupported_format_raises(self, tmp_path, loader):
        path = tmp_path / "cases.txt"
        path.write_text("title: nope")

        with pytest.raises(ValueError):
            loader.load_file(path)

    def test_load_directory_in_name_order(self, tmp_path, sample_form_data):
        second = dict(sample_form_data["formData"], title="Second")
        (tmp_path / "b.yaml").write_text(yaml.safe_dump([second]))
        (tmp_path / "a.json").write_text(json.dumps(sample_form_data))

        cases = TestCaseLoader(tmp_path).load_directory()

        assert [tc.title for tc in cases] == ["Test Eligible Facility level", "Second"]

    def test_directory_errors_are_aggregated(self, tmp_path, sample_form_data):
        """Every broken file is reported, not only the first."""
        bad = dict(sample_form_data["formData"], test="sideways")
        (tmp_path / "a.yaml").write_text(yaml.safe_dump([bad]))
        (tmp_path / "b.yaml").write_text("test_cases: [unclosed")

        with pytest.raises(CatalogError) as exc_info:
            TestCaseLoader(tmp_path).load_directory()

        files = {Path(error["file"]).name for error in exc_info.value.errors}
        assert files == {"a.yaml", "b.yaml"}

    def test_missing_directory_is_empty(self, tmp_path):
        assert TestCaseLoader(tmp_path / "absent").load_directory() == []

    def test_shipped_test_cases_load(self):
        catalog = TestCaseCatalog.from_directory(SHIPPED_CASES_DIR)

        assert len(catalog) == 5
        assert catalog.codes() == ["SHA-01-003", "SHA-03-001"]

    def test_shipped_per_diem_case_is_priced_per_day(self):
        catalog = TestCaseCatalog.from_directory(SHIPPED_CASES_DIR)
        test_case = catalog.get("Test per diem ward stay")

        payload = PayloadBuilder().build(test_case)

        assert payload.product_or_service[0]["net"]["value"] == 3360 * 3
        assert payload.total.value == 3360 * 3


class TestCatalog:
    """Test catalog lookups and grouping."""

    @pytest.fixture
    def catalog(self, make_test_case) -> TestCaseCatalog:
        return TestCaseCatalog(
            [
                make_test_case("Positive A"),
                make_test_case("Negative A", kind=TestKind.NEGATIVE),
                make_test_case("Positive B", code="SHA-03-001"),
                make_test_case("Build A", kind=TestKind.BUILD, code="SHA-03-001"),
            ]
        )

    def test_groups_in_run_order(self, catalog):
        groups = catalog.groups()

        assert [g.name for g in groups] == ["positive", "negative", "build"]
        assert [tc.title for tc in groups[0].test_cases] == ["Positive A", "Positive B"]

    def test_positive_and_negative_groups_always_present(self, catalog):
        groups = catalog.groups("SHA-03-001")

        assert [g.name for g in groups] == ["positive", "negative", "build"]
        assert groups[1].test_cases == []

    def test_by_code_is_case_insensitive(self, catalog):
        assert [tc.title for tc in catalog.by_code(" sha-03-001 ")] == ["Positive B", "Build A"]

    def test_get_by_title_and_kind(self, catalog):
        assert catalog.get("Negative A").kind is TestKind.NEGATIVE
        assert catalog.get("Negative A", kind=TestKind.POSITIVE) is None
        assert catalog.get("Unknown") is None

    def test_empty_catalog(self):
        catalog = TestCaseCatalog()

        assert len(catalog) == 0
        assert [g.name for g in catalog.groups()] == ["positive", "negative"]
