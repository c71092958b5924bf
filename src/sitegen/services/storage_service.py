"""Storage Service
==================

DigitalOcean Spaces (S3 compatible) access through boto3. Files are stored
publicly readable under ``{folder}/{filename}`` and addressed through the
Spaces CDN URL.
"""

from __future__ import annotations

import logging
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from flask import current_app

from .service_base import OperationError

logger = logging.getLogger(__name__)


class StorageService:
    def __init__(self, client=None, bucket: Optional[str] = None, cdn_url: Optional[str] = None):
        cfg = current_app.config
        self.bucket = bucket or cfg.get('DO_SPACES_BUCKET')
        self.cdn_url = (cdn_url or cfg.get('DO_SPACES_CDN_URL') or '').rstrip('/')
        self.timeout = cfg.get('HTTP_TIMEOUT', 30)
        self._client = client

    @property
    def client(self):
        if self._client is None:
            cfg = current_app.config
            self._client = boto3.client(
                's3',
                region_name=cfg.get('DO_SPACES_REGION'),
                endpoint_url=cfg.get('DO_SPACES_ENDPOINT'),
                aws_access_key_id=cfg.get('DO_SPACES_KEY'),
                aws_secret_access_key=cfg.get('DO_SPACES_SECRET'),
            )
        return self._client

    def public_url(self, key: str) -> str:
        return f"{self.cdn_url}/{key}"

    def upload_bytes(self, data: bytes, filename: str, folder: str = 'generated',
                     content_type: str = 'application/octet-stream') -> str:
        """Upload ``data`` and return its CDN URL."""
        key = f"{folder}/{filename}"
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ACL='public-read',
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("Spaces upload of %s failed: %s", key, e)
            raise OperationError(f"Failed to upload file: {e}") from e
        logger.info("Uploaded %s (%d bytes)", key, len(data))
        return self.public_url(key)

    def delete_prefix(self, prefix: str) -> int:
        """Delete every object under ``prefix``; returns the number removed."""
        deleted = 0
        paginator = self.client.get_paginator('list_objects_v2')
        for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
            contents = page.get('Contents') or []
            if not contents:
                continue
            self.client.delete_objects(
                Bucket=self.bucket,
                Delete={'Objects': [{'Key': obj['Key']} for obj in contents], 'Quiet': True},
            )
            deleted += len(contents)
        logger.info("Deleted %d object(s) under %s", deleted, prefix)
        return deleted

    def delete_site_files(self, site_id: str) -> int:
        return self.delete_prefix(f"{site_id}/")
