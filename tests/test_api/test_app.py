"""Tests for the FastAPI application factory and HTTP surface."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from conftest import FlakyStorage, ScriptedExecutor, make_task
from fastapi.testclient import TestClient

from swap_queue.api.app import create_app
from swap_queue.config.settings import AppConfig, MetricsConfig
from swap_queue.models.task import TaskStatus
from swap_queue.storage.keys import task_key

if TYPE_CHECKING:
    from collections.abc import Iterator

    from swap_queue.config.settings import StorageConfig


@pytest.fixture
def seeded(storage_config: StorageConfig) -> FlakyStorage:
    backend = FlakyStorage(storage_config)
    backend.data[task_key("done")] = make_task(
        "done", status=TaskStatus.COMPLETED, done=1
    ).to_json()
    backend.data[task_key("parked")] = make_task(
        "parked", age=1, status=TaskStatus.WAITING_FOR_WALLET_CONNECT
    ).to_json()
    return backend


@pytest.fixture
def client(app_config: AppConfig, seeded: FlakyStorage) -> Iterator[TestClient]:
    app = create_app(
        config=app_config,
        executors={"swap": ScriptedExecutor()},
        storage_backend=seeded,
    )
    with TestClient(app) as c:
        yield c


class TestBaseRoutes:
    def test_health(self, client: TestClient) -> None:
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["components"]["storage"] == "ok"

    def test_metrics(self, client: TestClient) -> None:
        client.get("/api/v1/tasks")
        resp = client.get("/metrics")
        assert resp.status_code == 200
        assert "text/plain" in resp.headers["content-type"]
        assert "swapq_tasks" in resp.text
        assert "swapq_http_requests_total" in resp.text

    def test_openapi_documents_error_body(self, client: TestClient) -> None:
        """Error responses are described by the shared error schema."""
        schema = client.get("/openapi.json").json()
        assert "ErrorResponse" in schema["components"]["schemas"]

        responses = schema["paths"]["/api/v1/tasks/{task_id}"]["get"]["responses"]
        ref = responses["404"]["content"]["application/json"]["schema"]["$ref"]
        assert ref.endswith("/ErrorResponse")
        wallet = schema["paths"]["/api/v1/wallets/connected"]["post"]["responses"]
        assert "503" in wallet

    def test_metrics_disabled(self, app_config: AppConfig, seeded: FlakyStorage) -> None:
        config = app_config.model_copy(update={"metrics": MetricsConfig(enabled=False)})
        app = create_app(config=config, storage_backend=seeded)
        with TestClient(app) as c:
            assert c.get("/metrics").status_code == 200
            assert c.get("/api/v1/tasks").status_code == 200

    def test_not_ready_before_startup(self, app_config: AppConfig) -> None:
        app = create_app(config=app_config)
        client = TestClient(app)

        resp = client.get("/api/v1/tasks")
        assert resp.status_code == 503
        assert resp.json()["code"] == "manager-not-ready"
        assert client.get("/health").json()["status"] == "degraded"


class TestTaskRoutes:
    """Test the /api/v1/tasks endpoints."""

    def test_list(self, client: TestClient) -> None:
        resp = client.get("/api/v1/tasks")
        assert resp.status_code == 200
        assert [t["id"] for t in resp.json()] == ["done", "parked"]

    def test_list_by_status(self, client: TestClient) -> None:
        resp = client.get("/api/v1/tasks", params={"status": "completed"})
        assert [t["id"] for t in resp.json()] == ["done"]

        resp = client.get("/api/v1/tasks", params={"status": "bogus"})
        assert resp.status_code == 422

    def test_get(self, client: TestClient) -> None:
        resp = client.get("/api/v1/tasks/parked")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "waiting_for_wallet_connect"
        assert "createdAt" in body

    def test_get_missing(self, client: TestClient) -> None:
        resp = client.get("/api/v1/tasks/missing")
        assert resp.status_code == 404
        assert resp.json() == {"code": "task-not-found", "message": "task missing not found"}

    def test_create(self, client: TestClient) -> None:
        resp = client.post(
            "/api/v1/tasks",
            json={"type": "swap", "steps": ["approve", "swap"], "requiredWalletType": "metamask"},
        )
        assert resp.status_code == 201
        task_id = resp.json()["id"]

        task = client.get(f"/api/v1/tasks/{task_id}").json()
        assert task["requiredWalletType"] == "metamask"
        assert [s["name"] for s in task["steps"]] == ["approve", "swap"]

    def test_create_validation(self, client: TestClient) -> None:
        assert client.post("/api/v1/tasks", json={"type": "swap", "steps": []}).status_code == 422

        resp = client.post("/api/v1/tasks", json={"type": "bridge", "steps": ["a"]})
        assert resp.status_code == 400
        assert resp.json()["code"] == "unknown-task-type"

        resp = client.post("/api/v1/tasks", json={"id": "done", "type": "swap", "steps": ["a"]})
        assert resp.status_code == 409
        assert resp.json()["code"] == "task-already-exists"

    def test_create_storage_failure(self, client: TestClient, seeded: FlakyStorage) -> None:
        seeded.fail_writes = True

        resp = client.post("/api/v1/tasks", json={"id": "x", "type": "swap", "steps": ["a"]})

        assert resp.status_code == 503
        assert resp.json()["code"] == "storage-error"
        assert client.get("/api/v1/tasks/x").status_code == 404

    def test_retry(self, client: TestClient) -> None:
        assert client.post("/api/v1/tasks/parked/retry").status_code == 202

        resp = client.post("/api/v1/tasks/done/retry")
        assert resp.status_code == 409
        assert resp.json()["code"] == "task-not-resumable"

        assert client.post("/api/v1/tasks/missing/retry").status_code == 404

    def test_delete(self, client: TestClient, seeded: FlakyStorage) -> None:
        assert client.delete("/api/v1/tasks/done").status_code == 204
        assert task_key("done") not in seeded.data
        assert client.get("/api/v1/tasks/done").status_code == 404

        resp = client.delete("/api/v1/tasks/parked")
        assert resp.status_code == 409
        assert resp.json()["code"] == "task-still-active"


class TestWalletRoutes:
    """Test the /api/v1/wallets signal endpoints."""

    def test_connected_resumes_parked_task(self, client: TestClient) -> None:
        resp = client.post(
            "/api/v1/wallets/connected", json={"walletType": "metamask", "chain": "ETH"}
        )
        assert resp.status_code == 200
        assert resp.json() == {"taskIds": ["parked"]}

    def test_disconnected(self, client: TestClient) -> None:
        resp = client.post("/api/v1/wallets/disconnected", json={})
        assert resp.status_code == 200
        assert resp.json() == {"taskIds": []}

    def test_connected_requires_wallet_type(self, client: TestClient) -> None:
        resp = client.post("/api/v1/wallets/connected", json={"chain": "ETH"})
        assert resp.status_code == 422
