#!/usr/bin/env python3
"""
Blob Storage Module

Wraps the S3-compatible object store that holds the yearly accident extracts.
Provides listing, reading and metadata access, plus the processed marker used
to keep bronze ingestion idempotent.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional

import boto3
from botocore.exceptions import EndpointConnectionError

from accident_pipeline.config import PipelineConfig

logger = logging.getLogger("BlobStorage")

DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY = 2  # seconds

# S3 returns user metadata keys lowercased
PROCESSED_MARKER = "processed"
MARKER_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class BlobStore:
    """Reads source extracts and their metadata from an S3 bucket."""

    def __init__(
        self,
        s3_client=None,
        endpoint_url: Optional[str] = None,
        region: Optional[str] = None,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        retry_delay: int = DEFAULT_RETRY_DELAY
    ):
        """
        Initialize the blob store.

        Args:
            s3_client: Pre-built boto3 S3 client (a new one is created if omitted)
            endpoint_url: S3 endpoint to connect to
            region: AWS region to use
            retry_attempts: Number of attempts for read operations
            retry_delay: Base delay between attempts in seconds
        """
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        if s3_client is None:
            session = boto3.Session(region_name=region)
            s3_client = session.client('s3', endpoint_url=endpoint_url)
        self.s3_client = s3_client

    @classmethod
    def from_config(cls, config: PipelineConfig) -> "BlobStore":
        return cls(endpoint_url=config.storage_connection, region=config.region)

    def _with_retry(self, description: str, operation):
        attempt = 0
        while True:
            try:
                return operation()
            except EndpointConnectionError as e:
                attempt += 1
                if attempt >= self.retry_attempts:
                    logger.error(f"Failed to {description} after {self.retry_attempts} attempts")
                    raise
                sleep_time = self.retry_delay * (2 ** attempt)  # Exponential backoff
                logger.warning(f"Attempt {attempt} to {description} failed: {e}. Retrying in {sleep_time} seconds...")
                time.sleep(sleep_time)

    def list_objects(self, container: str) -> List[str]:
        """Return the keys of every object in the container."""
        keys = []
        paginator = self.s3_client.get_paginator('list_objects_v2')
        for page in paginator.paginate(Bucket=container):
            for item in page.get('Contents', []):
                keys.append(item['Key'])
        return keys

    def read_text(self, container: str, name: str, encoding: str = 'utf-8-sig') -> str:
        """Download an object and decode it as text."""
        def _read():
            response = self.s3_client.get_object(Bucket=container, Key=name)
            return response['Body'].read()

        data = self._with_retry(f"read s3://{container}/{name}", _read)
        return data.decode(encoding)

    def get_metadata(self, container: str, name: str) -> Dict[str, str]:
        response = self._with_retry(
            f"read metadata of s3://{container}/{name}",
            lambda: self.s3_client.head_object(Bucket=container, Key=name),
        )
        return {key.lower(): value for key, value in response.get('Metadata', {}).items()}

    def set_metadata(self, container: str, name: str, metadata: Dict[str, str]) -> None:
        """
        Merge ``metadata`` into the object's user metadata.

        S3 metadata is immutable, so the object is copied onto itself with the
        REPLACE directive.
        """
        merged = self.get_metadata(container, name)
        merged.update({key.lower(): value for key, value in metadata.items()})
        self.s3_client.copy_object(
            Bucket=container,
            Key=name,
            CopySource={'Bucket': container, 'Key': name},
            Metadata=merged,
            MetadataDirective='REPLACE'
        )

    def is_processed(self, container: str, name: str) -> bool:
        return PROCESSED_MARKER in self.get_metadata(container, name)

    def mark_processed(self, container: str, name: str, when: Optional[datetime] = None) -> None:
        when = when or datetime.now(timezone.utc)
        self.set_metadata(container, name, {PROCESSED_MARKER: when.strftime(MARKER_TIMESTAMP_FORMAT)})
        logger.info(f"Marked {name} as processed")
