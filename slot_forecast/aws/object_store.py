"""S3 object store binding."""

import logging
from typing import Any, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..contracts.errors import StorageError

logger = logging.getLogger(__name__)


class S3ObjectStore:
    """Object store capability backed by one S3 bucket."""

    def __init__(self, bucket: str, client: Optional[Any] = None, region_name: Optional[str] = None):
        """Initialize the store.

        Args:
            bucket: Bucket name
            client: Pre-built boto3 S3 client; one is created when omitted
            region_name: Region for the created client
        """
        self.bucket = bucket
        self.client = client or boto3.client("s3", region_name=region_name)

    def uri_for(self, key: str) -> str:
        return f"s3://{self.bucket}/{key.lstrip('/')}"

    def put(self, key: str, data: bytes) -> None:
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=data)
        except (ClientError, BotoCoreError) as e:
            raise StorageError("put", self.uri_for(key), str(e))
        logger.debug(f"Put {len(data)} bytes to {self.uri_for(key)}")

    def list(self, prefix: str) -> List[str]:
        keys: List[str] = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                keys.extend(obj["Key"] for obj in page.get("Contents", []))
        except (ClientError, BotoCoreError) as e:
            raise StorageError("list", self.uri_for(prefix), str(e))
        return keys

    def get(self, key: str) -> bytes:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except (ClientError, BotoCoreError) as e:
            raise StorageError("get", self.uri_for(key), str(e))
