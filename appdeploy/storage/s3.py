#!/usr/bin/env python3
"""S3 storage backend for releases published by CI."""

import os
from pathlib import Path

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .base import StorageBackend


class S3Storage(StorageBackend):
    """Releases live as objects under <bucket>/<prefix>."""

    def __init__(self, config):
        self.bucket = config.get('bucket_name')
        self.region = config.get('region', 'us-east-1')
        self.endpoint_url = config.get('endpoint_url')
        self.prefix = config.get('prefix', 'releases/')
        self._client = None

    def _get_client(self):
        """Lazy initialization of boto3 client. Falls back to the default credential chain."""
        if self._client is None:
            self._client = boto3.client(
                's3',
                endpoint_url=self.endpoint_url,
                aws_access_key_id=os.environ.get('AWS_ACCESS_KEY_ID'),
                aws_secret_access_key=os.environ.get('AWS_SECRET_ACCESS_KEY'),
                region_name=self.region
            )
        return self._client

    def _get_key(self, storage_key):
        return f"{self.prefix}{storage_key}"

    def _get_s3_url(self, storage_key):
        return f"s3://{self.bucket}/{self._get_key(storage_key)}"

    def fetch_bundle(self, storage_key, local_path):
        s3_client = self._get_client()
        Path(local_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            s3_client.download_file(self.bucket, self._get_key(storage_key), str(local_path))
        except (BotoCoreError, ClientError) as e:
            raise RuntimeError(f"S3 download of {self._get_s3_url(storage_key)} failed: {e}")
        return str(local_path)

    def get_metadata(self, storage_key):
        s3_client = self._get_client()

        try:
            response = s3_client.head_object(Bucket=self.bucket, Key=self._get_key(storage_key))
            return {
                'storage_mode': 's3',
                's3_bucket': self.bucket,
                's3_key': self._get_key(storage_key),
                'exists': True,
                'size': response.get('ContentLength'),
                'last_modified': response.get('LastModified')
            }
        except ClientError as e:
            if e.response['Error']['Code'] in ('404', 'NoSuchKey'):
                return {'exists': False}
            raise RuntimeError(f"S3 lookup of {self._get_s3_url(storage_key)} failed: {e}")
        except BotoCoreError as e:
            raise RuntimeError(f"S3 lookup of {self._get_s3_url(storage_key)} failed: {e}")
