"""
S3-compatible object store client for invoice documents.

One bucket, private objects, downloads only through short-lived presigned
URLs. Connect and read timeouts are bounded so a hung store surfaces as a
transient fault instead of a stuck request. botocore's own retries are
disabled; retry policy belongs to the caller.
"""

import logging
from uuid import UUID, uuid4

import boto3
from botocore.config import Config

logger = logging.getLogger(__name__)


class ObjectStoreClient:
    """Put, delete and presign invoice blobs in a single bucket."""

    def __init__(
        self,
        bucket: str,
        region: str | None = None,
        endpoint_url: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        connect_timeout: float = 5.0,
        read_timeout: float = 30.0,
        client=None,
    ):
        if not bucket:
            raise ValueError("Object store bucket is required")

        self.bucket = bucket
        self.client = client or boto3.client(
            "s3",
            endpoint_url=endpoint_url or None,
            region_name=region or None,
            aws_access_key_id=access_key_id or None,
            aws_secret_access_key=secret_access_key or None,
            config=Config(
                connect_timeout=connect_timeout,
                read_timeout=read_timeout,
                retries={"total_max_attempts": 1, "mode": "standard"},
                signature_version="s3v4",
            ),
        )
        logger.info(f"Object store client initialized for bucket: {bucket}")

    @staticmethod
    def generate_key(prefix: str, hotel_id: UUID, invoice_number: str) -> str:
        """
        Tenant-scoped, collision-resistant key for an invoice document.

        Format: {prefix}/{hotel_id}/{invoice_number}-{random hex}.pdf
        """
        return f"{prefix}/{hotel_id}/{invoice_number}-{uuid4().hex}.pdf"

    def put_object(self, key: str, body: bytes, content_type: str = "application/pdf") -> None:
        """Upload a blob. Raises botocore errors unchanged."""
        self.client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=body,
            ContentType=content_type,
        )
        logger.info(f"Uploaded {len(body)} bytes to {key}")

    def delete_object(self, key: str) -> None:
        """Delete a blob. Deleting a missing key is not an error in S3."""
        self.client.delete_object(Bucket=self.bucket, Key=key)
        logger.info(f"Deleted {key}")

    def presigned_download_url(self, key: str, expires_in: int = 900) -> str:
        """Short-lived GET URL for a private object."""
        return self.client.generate_presigned_url(
            "get_object",
            Params={
                "Bucket": self.bucket,
                "Key": key,
                "ResponseContentType": "application/pdf",
            },
            ExpiresIn=expires_in,
        )
