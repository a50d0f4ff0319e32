"""Tests for the health probes and the job submission endpoint."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from overseer.api import api_router
from overseer.sandbox.container import ContainerPhaseRunner


@pytest.fixture
def app(settings, fake_queue, docker_client) -> FastAPI:
    # No lifespan: the real one connects to Redis and Docker.
    application = FastAPI()
    application.include_router(api_router)
    application.state.queue = fake_queue
    application.state.runner = ContainerPhaseRunner(settings, docker_client)
    return application


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_ready(self, client):
        response = client.get("/ready")
        assert response.status_code == 200
        assert response.json() == {"status": "ready", "redis": True, "docker": True}

    def test_not_ready_when_queue_unhealthy(self, client, fake_queue):
        fake_queue.healthy = False
        response = client.get("/ready")
        assert response.status_code == 503
        assert response.json() == {"status": "not_ready", "redis": False, "docker": True}

    def test_not_ready_when_docker_unreachable(self, client, docker_client):
        docker_client.reachable = False
        response = client.get("/ready")
        assert response.status_code == 503
        assert response.json()["docker"] is False

    def test_not_ready_without_backends(self):
        application = FastAPI()
        application.include_router(api_router)
        response = TestClient(application).get("/ready")
        assert response.status_code == 503


class TestSubmitJob:
    def test_record_forwarded_verbatim(self, client, fake_queue):
        record = {
            "docker_image_name_tag": "grader:latest",
            "output_path": "/results/task_7",
            "submission": "/submissions/7.zip",
            "assessment": "/assessments/unit1.zip",
            "timestamp": "2024-05-01T10:00:00Z",
            "task_id": 7,
            "zip_file": 1,
        }
        response = client.post("/v1/jobs", json=record)

        assert response.status_code == 202
        assert response.json() == {"message_id": "1-0", "task_id": 7}
        assert fake_queue.enqueued == [record]

    def test_incomplete_record_still_enqueued(self, client, fake_queue):
        response = client.post("/v1/jobs", json={"task_id": 8})
        assert response.status_code == 202
        assert fake_queue.enqueued == [{"task_id": 8}]

    def test_non_object_body_rejected(self, client, fake_queue):
        response = client.post("/v1/jobs", json=["not", "a", "record"])
        assert response.status_code == 422
        assert fake_queue.enqueued == []
