"""
boto3 client construction for usage lookups.
"""
import logging
from typing import Any, Callable, TypeVar

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from usage_sync.core.config import config
from usage_sync.resilience.circuit_breaker import CircuitBreakerError, get_circuit_breaker


logger = logging.getLogger(__name__)

T = TypeVar("T")


class AWSUsageError(Exception):
    """Raised when an AWS usage lookup fails."""
    pass


def new_client(service: str, region: str) -> Any:
    """
    Create a boto3 client for a usage lookup.

    Retries are disabled; the circuit breaker handles repeated failures.

    Args:
        service: boto3 service name (e.g., 'eks')
        region: AWS region (defaults to config.AWS_DEFAULT_REGION when empty)
    """
    boto_config = Config(
        connect_timeout=config.AWS_USAGE_TIMEOUT_SECONDS,
        read_timeout=config.AWS_USAGE_TIMEOUT_SECONDS,
        retries={"max_attempts": 0},
    )
    return boto3.client(
        service,
        region_name=region or config.AWS_DEFAULT_REGION,
        config=boto_config,
    )


def call_aws(service_name: str, func: Callable[..., T], *args, **kwargs) -> T:
    """
    Call an AWS API through the service's circuit breaker.

    Raises:
        AWSUsageError: If the breaker is open or the call fails
    """
    breaker = get_circuit_breaker(service_name)
    try:
        return breaker.call(func, *args, **kwargs)
    except CircuitBreakerError as error:
        raise AWSUsageError(str(error)) from error
    except (ClientError, BotoCoreError) as error:
        logger.error("AWS %s API error: %s", service_name, error)
        raise AWSUsageError(f"AWS {service_name} request failed: {error}") from error
