"""
Tests for the usage sync API.
"""

import pytest
from fastapi.testclient import TestClient

from usage_sync.main import app
from usage_sync.services import resource_factory
from usage_sync.services.reference_file import ReferenceFileError


@pytest.fixture
def client():
    """FastAPI test client."""
    return TestClient(app)


@pytest.fixture
def sync_request():
    """Sync request with one saved resource and two new ones."""
    return {
        "usage_file": {
            "version": "0.1",
            "resource_usage": {
                "aws_lambda_function.api": {"monthly_requests": 2000},
            },
        },
        "projects": [{
            "name": "main",
            "resources": [
                {
                    "name": "aws_sqs_queue.jobs",
                    "usage_schema": [
                        {"key": "monthly_requests", "value_type": "int64"},
                    ],
                },
                {
                    "name": "aws_lambda_function.api",
                    "usage_schema": [
                        {"key": "monthly_requests", "value_type": "int64"},
                        {"key": "request_duration_ms", "value_type": "float64"},
                    ],
                },
                {
                    "name": "aws_eks_node_group.workers",
                    "attributes": {"cluster_name": "prod", "node_group_name": "workers"},
                },
            ],
        }],
    }


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_sync_returns_ordered_usage_file(client, sync_request, monkeypatch):
    async def fake_estimator(attributes, ctx, usage):
        usage["instances"] = 6

    monkeypatch.setitem(resource_factory.ESTIMATORS, "aws_eks_node_group", fake_estimator)

    response = client.post("/api/usage/sync", json=sync_request)

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["resource_count"] == 3
    assert body["estimation_count"] == 1
    assert body["warnings"] == []
    assert list(body["usage_file"]["resource_usage"]) == [
        "aws_lambda_function.api",
        "aws_eks_node_group.workers",
        "aws_sqs_queue.jobs",
    ]
    assert body["usage_file"]["resource_usage"]["aws_lambda_function.api"] == {"monthly_requests": 2000}
    assert body["usage_file"]["resource_usage"]["aws_eks_node_group.workers"] == {"instances": 6}
    assert body["usage_file"]["resource_usage"]["aws_sqs_queue.jobs"] == {}


def test_sync_reports_estimation_errors_as_warnings(client, sync_request, monkeypatch):
    async def failing_estimator(attributes, ctx, usage):
        raise RuntimeError("AccessDenied")

    monkeypatch.setitem(resource_factory.ESTIMATORS, "aws_eks_node_group", failing_estimator)

    response = client.post("/api/usage/sync", json=sync_request)

    assert response.status_code == 200
    body = response.json()
    assert body["warnings"] == [{"resource": "aws_eks_node_group.workers", "error": "AccessDenied"}]
    assert body["usage_file"]["resource_usage"]["aws_eks_node_group.workers"] == {}


def test_sync_accepts_sub_resource_defaults(client):
    request = {
        "projects": [{
            "resources": [{
                "name": "azurerm_kubernetes_cluster.main",
                "usage_schema": [{
                    "key": "default_node_pool",
                    "value_type": "sub_resource_usage",
                    "default_value": {"nodes": 3},
                }],
            }],
        }],
    }

    response = client.post("/api/usage/sync", json=request)

    assert response.status_code == 200
    assert response.json()["usage_file"]["resource_usage"] == {"azurerm_kubernetes_cluster.main": {}}


def test_sync_rejects_malformed_usage_file(client):
    response = client.post("/api/usage/sync", json={
        "usage_file": {"resource_usage": ["not", "a", "mapping"]},
        "projects": [],
    })

    assert response.status_code == 400
    assert "resource_usage" in response.json()["detail"]


def test_sync_rejects_non_mapping_sub_resource_default(client):
    response = client.post("/api/usage/sync", json={
        "projects": [{
            "resources": [{
                "name": "r.x",
                "usage_schema": [{"key": "pool", "value_type": "sub_resource_usage", "default_value": 3}],
            }],
        }],
    })

    assert response.status_code == 400


def test_sync_fails_when_reference_file_unavailable(client, monkeypatch):
    def broken():
        raise ReferenceFileError("missing reference file /secret/path")

    monkeypatch.setattr("usage_sync.services.usage_sync.get_reference_file", broken)

    response = client.post("/api/usage/sync", json={"projects": []})

    assert response.status_code == 500
    assert response.json()["detail"] == "Reference usage file is unavailable"


@pytest.mark.parametrize("value_type,default_value", [
    ("int64", "abc"),
    ("int64", True),
    ("float64", "1.5"),
    ("string", 3),
    ("string_array", ["a", 1]),
])
def test_sync_rejects_default_not_matching_value_type(client, value_type, default_value):
    response = client.post("/api/usage/sync", json={
        "projects": [{
            "resources": [{
                "name": "aws_lambda_function.api",
                "usage_schema": [{"key": "monthly_requests", "value_type": value_type, "default_value": default_value}],
            }],
        }],
    })

    assert response.status_code == 400
    assert "monthly_requests" in response.json()["detail"]


def test_sync_accepts_int_default_for_float_item(client):
    response = client.post("/api/usage/sync", json={
        "projects": [{
            "resources": [{
                "name": "aws_lambda_function.api",
                "usage_schema": [{"key": "request_duration_ms", "value_type": "float64", "default_value": 250}],
            }],
        }],
    })

    assert response.status_code == 200
