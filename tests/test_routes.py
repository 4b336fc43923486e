"""Tests for the HTTP API."""

from __future__ import annotations

import threading

import httpx
import pytest
from fastapi.testclient import TestClient

from claimrunner.app import app
from claimrunner.catalog import TestCaseCatalog, set_catalog
from claimrunner.clients import ClaimsAPIClient, RefreshClient
from claimrunner.config import ClientSettings
from claimrunner.errors import ClaimsAPIError
from claimrunner.models import TestKind
from claimrunner.orchestrator import PacingPolicy, RunWorker, set_worker
from claimrunner.ratelimit import limiter
from claimrunner.results import ResultAggregator, ResultStore

WAIT_TIMEOUT = 5


class UnreachableRefreshClient(RefreshClient):
    def fetch_status(self, claim_id, hint=None):
        raise ClaimsAPIError("Request failed after 3 attempts: connection refused")


@pytest.fixture
def catalog(sample_groups):
    catalog = TestCaseCatalog(tc for group in sample_groups for tc in group.test_cases)
    set_catalog(catalog)
    yield catalog
    set_catalog(None)


@pytest.fixture
def worker(submission_client, refresh_client, recording_sleep, tmp_path):
    aggregator = ResultAggregator(
        refresh_client=refresh_client, store=ResultStore(str(tmp_path / "results.db"))
    )
    worker = RunWorker(submission_client, aggregator, pacing=PacingPolicy(sleep=recording_sleep))
    set_worker(worker)
    yield worker
    set_worker(None)


@pytest.fixture
def client(catalog, worker):
    limiter.enabled = False
    with TestClient(app) as client:
        yield client
    limiter.enabled = True


def run_to_completion(client, worker, body=None):
    response = client.post("/api/runs", json=body or {})
    assert response.status_code == 202
    run_id = response.json()["run_id"]
    assert worker.wait(run_id, WAIT_TIMEOUT)
    return run_id


class TestHealth:
    """Test the health check endpoint."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["test_cases"] == 4


class TestTestCaseRoutes:
    """Test catalog endpoints."""

    def test_list_test_cases(self, client):
        data = client.get("/api/test-cases").json()

        assert data["total"] == 4
        assert data["codes"] == ["SHA-01-003"]
        assert data["test_cases"][0]["title"] == "Test Eligible Facility level"
        assert data["test_cases"][0]["intervention_code"] == "SHA-01-003"

    def test_filter_by_kind(self, client):
        data = client.get("/api/test-cases", params={"kind": "negative"}).json()

        assert data["total"] == 2
        assert {tc["kind"] for tc in data["test_cases"]} == {"negative"}

    def test_invalid_kind(self, client):
        assert client.get("/api/test-cases", params={"kind": "sideways"}).status_code == 422

    def test_unknown_code_is_empty(self, client):
        assert client.get("/api/test-cases", params={"code": "SHA-99-999"}).json()["total"] == 0

    def test_sample_is_reproducible(self, client):
        params = {"seed": 11, "per_kind": 1}
        first = client.get("/api/test-cases/sample", params=params).json()
        second = client.get("/api/test-cases/sample", params=params).json()

        assert first["total"] == 2
        assert [tc["kind"] for tc in first["test_cases"]] == ["positive", "negative"]
        assert first["test_cases"] == second["test_cases"]

    def test_sample_rejects_zero_per_kind(self, client):
        assert client.get("/api/test-cases/sample", params={"per_kind": 0}).status_code == 422


class TestRunRoutes:
    """Test run creation, progress and cancellation."""

    def test_create_run_executes_catalog(self, client, worker, submission_client):
        run_id = run_to_completion(client, worker, {"triggered_by": "qa"})

        data = client.get(f"/api/runs/{run_id}").json()

        assert data["state"] == "success"
        assert data["total"] == 4
        assert data["completed"] == 4
        assert data["triggered_by"] == "qa"
        assert [o["source_title"] for o in data["outcomes"]] == submission_client.titles

    def test_create_run_response(self, client, worker):
        response = client.post("/api/runs", json={"groups": ["negative"], "pacing_ms": 0})

        assert response.status_code == 202
        assert response.json()["total"] == 2
        worker.wait(response.json()["run_id"], WAIT_TIMEOUT)

    def test_run_without_outcomes(self, client, worker):
        run_id = run_to_completion(client, worker)

        assert client.get(f"/api/runs/{run_id}", params={"include_outcomes": False}).json()[
            "outcomes"
        ] is None

    def test_selected_titles(self, client, worker, submission_client):
        run_to_completion(
            client,
            worker,
            {"selections": {"positive": ["Test exact claimable amount allowable"], "negative": []}},
        )

        assert submission_client.titles == ["Test exact claimable amount allowable"]

    def test_sampled_run(self, client, worker, submission_client):
        run_to_completion(client, worker, {"sample": True, "seed": 3, "per_kind": 1})

        assert len(submission_client.payloads) == 2

    def test_unknown_title_is_404_and_submits_nothing(self, client, submission_client):
        response = client.post("/api/runs", json={"selections": {"positive": ["Does not exist"]}})

        assert response.status_code == 404
        assert "Does not exist" in response.json()["detail"]
        assert submission_client.payloads == []
        assert client.get("/api/runs").json()["total"] == 0

    def test_invalid_test_case_is_422(self, client, catalog, make_test_case):
        set_catalog(TestCaseCatalog(list(catalog) + [make_test_case("Empty", line_items=())]))

        response = client.post("/api/runs", json={})

        assert response.status_code == 422
        assert "Empty" in response.json()["detail"]

    @pytest.mark.parametrize(
        "body",
        [{"pacing_ms": -1}, {"pacing_ms": 120000}, {"groups": ["sideways"]}, {"per_kind": 0}],
    )
    def test_invalid_request_body(self, client, body):
        assert client.post("/api/runs", json=body).status_code == 422

    def test_second_run_conflicts(self, client, worker, submission_client):
        started = threading.Event()
        release = threading.Event()

        def hold(payload):
            started.set()
            release.wait(WAIT_TIMEOUT)

        submission_client.on_submit = hold
        run_id = client.post("/api/runs", json={}).json()["run_id"]
        try:
            assert started.wait(WAIT_TIMEOUT)
            response = client.post("/api/runs", json={})
            assert response.status_code == 409
            assert run_id in response.json()["detail"]
        finally:
            release.set()
        worker.wait(run_id, WAIT_TIMEOUT)

    def test_cancel_active_run(self, client, worker, submission_client):
        started = threading.Event()
        release = threading.Event()

        def hold(payload):
            started.set()
            release.wait(WAIT_TIMEOUT)

        submission_client.on_submit = hold
        run_id = client.post("/api/runs", json={}).json()["run_id"]
        try:
            assert started.wait(WAIT_TIMEOUT)
            response = client.post(f"/api/runs/{run_id}/cancel")
        finally:
            release.set()
        worker.wait(run_id, WAIT_TIMEOUT)

        assert response.status_code == 200
        assert response.json() == {"run_id": run_id, "cancel_requested": True}
        data = client.get(f"/api/runs/{run_id}").json()
        assert data["state"] == "cancelled"
        assert data["completed"] == 1

    def test_cancel_finished_run_conflicts(self, client, worker):
        run_id = run_to_completion(client, worker)

        assert client.post(f"/api/runs/{run_id}/cancel").status_code == 409

    def test_unknown_run(self, client):
        assert client.get("/api/runs/missing").status_code == 404
        assert client.post("/api/runs/missing/cancel").status_code == 404

    def test_list_runs(self, client, worker):
        run_id = run_to_completion(client, worker)

        data = client.get("/api/runs").json()

        assert data["total"] == 1
        assert data["runs"][0]["run_id"] == run_id
        assert data["runs"][0]["outcomes"] is None


class TestResultRoutes:
    """Test result listing, summary and refresh."""

    def test_list_results(self, client, worker):
        run_to_completion(client, worker)

        data = client.get("/api/results").json()

        assert data["total"] == 4
        assert [r["group"] for r in data["results"]] == [
            "positive",
            "positive",
            "negative",
            "negative",
        ]

    def test_filter_results(self, client, worker):
        run_to_completion(client, worker)

        passed = client.get("/api/results", params={"status": "passed"}).json()
        negative = client.get("/api/results", params={"group": "negative"}).json()
        page = client.get("/api/results", params={"limit": 1, "offset": 1}).json()

        assert passed["total"] == 2
        assert negative["total"] == 2
        assert page["total"] == 4
        assert len(page["results"]) == 1

    def test_invalid_status_filter(self, client):
        assert client.get("/api/results", params={"status": "maybe"}).status_code == 422

    def test_summary(self, client, worker):
        run_to_completion(client, worker)

        data = client.get("/api/results/summary").json()

        assert data["total"] == 4
        assert data["passed"] == 2
        assert data["failed"] == 2
        assert data["pass_rate"] == 50.0

    def test_get_result(self, client, worker):
        run_to_completion(client, worker)
        outcome = worker.aggregator.outcomes()[0]

        data = client.get(f"/api/results/{outcome.id}").json()

        assert data["source_title"] == outcome.source_title
        assert data["details"]["request"]["formData"]["title"] == outcome.source_title

    def test_get_unknown_result(self, client):
        assert client.get("/api/results/missing").status_code == 404

    def test_history_reads_persisted_results(self, client, worker):
        run_to_completion(client, worker)

        data = client.get("/api/results/history", params={"status": "failed"}).json()

        assert data["total"] == 2
        assert {r["kind"] for r in data["results"]} == {"negative"}

    def test_refresh_negative_outcome(self, client, worker, refresh_client):
        """A rejected claim turns a failed negative test into a pass."""
        run_to_completion(client, worker)
        negative = [o for o in worker.aggregator.outcomes() if o.kind is TestKind.NEGATIVE][0]
        refresh_client.states[negative.claim_id] = "Rejected"

        response = client.post(f"/api/results/{negative.claim_id}/refresh")

        assert response.status_code == 200
        assert response.json()["status"] == "passed"
        assert response.json()["updated"] == 1
        assert worker.aggregator.get(negative.id).status.value == "passed"

    def test_refresh_with_hint(self, client, worker, refresh_client):
        run_to_completion(client, worker)
        claim_id = worker.aggregator.outcomes()[0].claim_id
        refresh_client.states[claim_id] = "Rejected"

        response = client.post(f"/api/results/{claim_id}/refresh", json={"hint": "Negative"})

        assert response.json()["status"] == "passed"
        assert refresh_client.calls == [(claim_id, "negative")]

    def test_refresh_invalid_hint(self, client, worker):
        run_to_completion(client, worker)

        response = client.post("/api/results/CLM-1/refresh", json={"hint": "sideways"})

        assert response.status_code == 422

    def test_refresh_unknown_claim(self, client):
        assert client.post("/api/results/CLM-404/refresh").status_code == 404

    def test_refresh_pending_claim_conflicts(self, client, worker, refresh_client):
        run_to_completion(client, worker)
        before = worker.aggregator.outcomes()
        refresh_client.states["CLM-1"] = "Pending"

        assert client.post("/api/results/CLM-1/refresh").status_code == 409
        assert worker.aggregator.outcomes() == before

    def test_refresh_upstream_failure(self, client, worker):
        run_to_completion(client, worker)
        worker.aggregator.refresh_client = UnreachableRefreshClient()

        response = client.post("/api/results/CLM-1/refresh")

        assert response.status_code == 502

    def test_refresh_dropped_connection_is_bad_gateway(self, client, worker, recording_sleep):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadError("connection reset by peer", request=request)

        worker.aggregator.refresh_client = ClaimsAPIClient(
            settings=ClientSettings(base_url="http://claims.test"),
            transport=httpx.MockTransport(handler),
            sleep=recording_sleep,
        )

        response = client.post("/api/results/CLM-1/refresh")

        assert response.status_code == 502
        assert "connection reset by peer" in response.json()["detail"]

    def test_refresh_claim_from_earlier_process(self, client, worker, refresh_client):
        """Claims listed in history can be refreshed after a restart."""
        run_to_completion(client, worker)
        store = worker.aggregator.store
        set_worker(RunWorker(worker.client, ResultAggregator(refresh_client, store=store)))
        refresh_client.states["CLM-3"] = "Rejected"

        response = client.post("/api/results/CLM-3/refresh")

        assert response.status_code == 200
        assert response.json()["status"] == "passed"
        assert response.json()["updated"] == 1
        [stored] = store.list_results(claim_id="CLM-3")
        assert stored["outcome"] == "Rejected"

    def test_refresh_without_client(self, client, worker):
        run_to_completion(client, worker)
        worker.aggregator.refresh_client = None

        assert client.post("/api/results/CLM-1/refresh").status_code == 503
