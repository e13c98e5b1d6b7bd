from __future__ import annotations

import os
from typing import Optional

import boto3
from botocore.config import Config

from ..logging_setup import get_logger, with_extras

logger = get_logger(__name__)

DEFAULT_REGION = "eu-central-1"
# throttled scan pages are retried client-side
SCAN_RETRY_CONFIG = Config(
    retries={"max_attempts": 5, "mode": "adaptive"},
    connect_timeout=5,
    read_timeout=30,
)


def resolve_endpoint(endpoint_url: Optional[str] = None) -> Optional[str]:
    """REFMATCH_DYNAMO_URL wins over the generic DYNAMO_LOCAL_URL."""
    return endpoint_url or os.getenv("REFMATCH_DYNAMO_URL") or os.getenv("DYNAMO_LOCAL_URL") or None


def get_dynamo_resource(*, endpoint_url: Optional[str] = None, region_name: Optional[str] = None):
    """
    DynamoDB resource for the library items table. An explicit or configured
    endpoint selects DynamoDB Local with placeholder credentials; otherwise
    AWS is used with the normal credential chain.
    """
    endpoint = resolve_endpoint(endpoint_url)
    region = region_name or os.getenv("AWS_REGION") or DEFAULT_REGION
    kwargs = {"region_name": region, "config": SCAN_RETRY_CONFIG}
    if endpoint:
        kwargs.update(
            endpoint_url=endpoint,
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID", "local"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY", "local"),
        )
    with_extras(logger, region=region, endpoint=endpoint or "aws").debug("Opening DynamoDB resource")
    return boto3.resource("dynamodb", **kwargs)
