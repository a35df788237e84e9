"""
Shared pytest fixtures for usage sync tests.
"""

import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

import pytest

from usage_sync.domain.usage_models import ResourceUsage, UsageItem, ValueType
from usage_sync.resilience.circuit_breaker import reset_circuit_breakers
from usage_sync.services import reference_file as reference_file_module
from usage_sync.services.reference_file import ReferenceFile


@pytest.fixture(autouse=True)
def reset_process_state():
    """Reset process-wide singletons between tests."""
    reset_circuit_breakers()
    reference_file_module._reference_file = None
    yield
    reset_circuit_breakers()
    reference_file_module._reference_file = None


@pytest.fixture
def reference_file():
    """Small reference catalogue with default values set."""
    reference = ReferenceFile([
        ResourceUsage(name="aws_lambda_function.my_function", items=[
            UsageItem(
                key="monthly_requests",
                value_type=ValueType.INT64,
                description="Monthly requests to the Lambda function.",
                value=100000,
            ),
            UsageItem(
                key="request_duration_ms",
                value_type=ValueType.INT64,
                description="Average duration of each request in milliseconds.",
                value=500,
            ),
        ]),
        ResourceUsage(name="aws_eks_node_group.my_node_group", items=[
            UsageItem(key="instances", value_type=ValueType.INT64, value=15),
            UsageItem(key="operating_system", value_type=ValueType.STRING, value="linux"),
        ]),
        ResourceUsage(name="aws_s3_bucket.my_bucket", items=[
            UsageItem(
                key="standard",
                value_type=ValueType.SUB_RESOURCE_USAGE,
                description="Usage for the Standard storage class.",
                value=ResourceUsage(name="standard", items=[
                    UsageItem(key="storage_gb", value_type=ValueType.FLOAT64, value=10000.0),
                    UsageItem(key="monthly_tier_1_requests", value_type=ValueType.INT64, value=1000000),
                ]),
            ),
        ]),
    ])
    reference.set_default_values()
    return reference


@pytest.fixture
def node_pool_item():
    """Sub-resource usage item holding only default sub-items."""
    return UsageItem(
        key="node_pool",
        value_type=ValueType.SUB_RESOURCE_USAGE,
        default_value=ResourceUsage(name="node_pool", items=[
            UsageItem(key="a", value_type=ValueType.INT64, default_value=1),
            UsageItem(key="b", value_type=ValueType.INT64, default_value=2),
        ]),
    )


@pytest.fixture
def reference_yaml(tmp_path):
    """Write a reference file to disk and return its path."""
    def write(content: str) -> Path:
        path = tmp_path / "reference_usage.yml"
        path.write_text(content, encoding="utf-8")
        return path
    return write
