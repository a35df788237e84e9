"""
Tests for the reference usage catalogue.
"""

import pytest

from usage_sync.domain.usage_models import ResourceUsage, ValueType
from usage_sync.services import reference_file as reference_file_module
from usage_sync.services.reference_file import (
    ReferenceFile,
    ReferenceFileError,
    get_reference_file,
    resource_type_from_address,
)


VALID_REFERENCE = """
version: 0.1
resource_usage:
  - name: aws_lambda_function.my_function
    items:
      - key: monthly_requests
        value: 100000
        description: Monthly requests to the Lambda function.
      - key: request_duration_ms
        value: 500.5
      - key: architectures
        value: [x86_64, arm64]
      - key: runtime
        value: python3.12
      - key: provisioned_concurrency
        value_type: int64
  - name: aws_s3_bucket.my_bucket
    items:
      - key: standard
        description: Standard storage class.
        items:
          - key: storage_gb
            value: 10.0
"""


@pytest.mark.parametrize("address,expected", [
    ("aws_lambda_function.hello", "aws_lambda_function"),
    ("aws_lambda_function.hello[0]", "aws_lambda_function"),
    ('aws_lambda_function.hello["with.dot"]', "aws_lambda_function"),
    ("module.api.aws_lambda_function.hello", "aws_lambda_function"),
    ("module.api.module.inner[1].aws_s3_bucket.b", "aws_s3_bucket"),
    ("data.aws_region.current", "data.aws_region"),
])
def test_resource_type_from_address(address, expected):
    assert resource_type_from_address(address) == expected


def test_load_infers_value_types(reference_yaml):
    reference = ReferenceFile.load(reference_yaml(VALID_REFERENCE))

    usage = reference.find_matching_resource_usage("aws_lambda_function.my_function")
    types = {item.key: item.value_type for item in usage.items}
    assert types == {
        "monthly_requests": ValueType.INT64,
        "request_duration_ms": ValueType.FLOAT64,
        "architectures": ValueType.STRING_ARRAY,
        "runtime": ValueType.STRING,
        "provisioned_concurrency": ValueType.INT64,
    }
    assert usage.find_item("monthly_requests").value == 100000
    assert usage.find_item("monthly_requests").description == "Monthly requests to the Lambda function."
    assert usage.find_item("provisioned_concurrency").value is None


def test_set_default_values_moves_values_recursively(reference_yaml):
    reference = ReferenceFile.load(reference_yaml(VALID_REFERENCE))

    reference.set_default_values()

    lambda_usage = reference.find_matching_resource_usage("aws_lambda_function.x")
    assert lambda_usage.find_item("monthly_requests").value is None
    assert lambda_usage.find_item("monthly_requests").default_value == 100000

    standard = reference.find_matching_resource_usage("aws_s3_bucket.x").find_item("standard")
    assert standard.value_type == ValueType.SUB_RESOURCE_USAGE
    assert standard.value is None
    assert isinstance(standard.default_value, ResourceUsage)
    storage = standard.default_value.find_item("storage_gb")
    assert storage.value is None
    assert storage.default_value == 10.0


def test_find_matching_prefers_exact_name(reference_yaml):
    reference = ReferenceFile.load(reference_yaml(VALID_REFERENCE + """
  - name: aws_lambda_function.special
    items:
      - key: monthly_requests
        value: 1
"""))

    exact = reference.find_matching_resource_usage("aws_lambda_function.special")
    by_type = reference.find_matching_resource_usage("module.m.aws_lambda_function.other[0]")

    assert exact.find_item("monthly_requests").value == 1
    assert by_type.find_item("monthly_requests").value == 100000
    assert reference.find_matching_resource_usage("aws_instance.web") is None


def test_load_missing_file_raises(tmp_path):
    with pytest.raises(ReferenceFileError, match="Failed to read"):
        ReferenceFile.load(tmp_path / "missing.yml")


def test_load_invalid_yaml_raises(reference_yaml):
    with pytest.raises(ReferenceFileError, match="Failed to parse"):
        ReferenceFile.load(reference_yaml("resource_usage: [unclosed"))


def test_load_schema_mismatch_raises(reference_yaml):
    with pytest.raises(ReferenceFileError, match="Invalid reference usage file"):
        ReferenceFile.load(reference_yaml("""
resource_usage:
  - name: aws_lambda_function.f
    items:
      - key: bad
        value: 1
        items:
          - key: nested
            value: 2
"""))


def test_packaged_reference_file_loads():
    reference = ReferenceFile.load()
    reference.set_default_values()

    node_group = reference.find_matching_resource_usage("aws_eks_node_group.workers")
    assert node_group.find_item("instances").default_value == 15
    assert node_group.find_item("operating_system").value_type == ValueType.STRING


def test_get_reference_file_loads_once(monkeypatch):
    calls = []
    original_load = ReferenceFile.load.__func__

    def counting_load(cls, path=None):
        calls.append(path)
        return original_load(cls, path)

    monkeypatch.setattr(ReferenceFile, "load", classmethod(counting_load))

    first = get_reference_file()
    second = get_reference_file()

    assert first is second
    assert len(calls) == 1
    assert first.find_matching_resource_usage("aws_lambda_function.f").find_item("monthly_requests").value is None


def test_get_reference_file_does_not_cache_failures(monkeypatch, tmp_path):
    monkeypatch.setattr(reference_file_module.config, "USAGE_REFERENCE_FILE", str(tmp_path / "missing.yml"))

    with pytest.raises(ReferenceFileError):
        get_reference_file()
    assert reference_file_module._reference_file is None

    monkeypatch.setattr(reference_file_module.config, "USAGE_REFERENCE_FILE", "")
    assert get_reference_file() is not None
