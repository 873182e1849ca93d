"""
Object storage for generated media (S3 or MinIO through boto3).

Voiceover audio comes back from the TTS provider as raw bytes, but the
assembly provider needs a URL, so the audio is uploaded here first.
"""

import logging
from dataclasses import dataclass
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from clipforge.core.config import Settings, get_settings
from clipforge.core.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadResult:
    bucket: str
    key: str
    url: str
    size_bytes: int

    @property
    def uri(self) -> str:
        return f"s3://{self.bucket}/{self.key}"


class StorageClient:
    """
    Uploads objects to the assets bucket and hands back fetchable URLs.

    With ``S3_PUBLIC_URL`` set, URLs are built from it (MinIO behind a CDN
    or a public bucket). Otherwise a week-long pre-signed GET URL is
    returned, which outlives any render.
    """

    PRESIGNED_URL_TTL = 7 * 24 * 3600

    def __init__(self, settings: Settings | None = None, client: Any | None = None) -> None:
        self._settings = settings or get_settings()
        self._bucket = self._settings.s3_bucket_assets
        self._client = client or self._build_client(self._settings)

    @staticmethod
    def _build_client(settings: Settings, **config: Any) -> Any:
        options: dict[str, Any] = {"retries": {"max_attempts": 3, "mode": "adaptive"}}
        options.update(config)
        return boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.s3_access_key,
            aws_secret_access_key=settings.s3_secret_key,
            region_name=settings.s3_region,
            config=Config(
                signature_version="s3v4",
                s3={"addressing_style": "path"},
                **options,
            ),
        )

    @classmethod
    def for_health_check(cls, settings: Settings | None = None) -> "StorageClient":
        """Client that gives up fast, for readiness probes."""
        settings = settings or get_settings()
        client = cls._build_client(settings, connect_timeout=2, retries={"max_attempts": 1})
        return cls(settings=settings, client=client)

    def check_bucket(self) -> None:
        """
        Raises:
            ExternalServiceError: If the bucket is unreachable
        """
        try:
            self._client.head_bucket(Bucket=self._bucket)
        except (ClientError, BotoCoreError) as e:
            raise ExternalServiceError(
                service="S3",
                message=f"Bucket '{self._bucket}' is not reachable",
                original_error=str(e),
            ) from e

    def _url_for(self, key: str) -> str:
        if self._settings.s3_public_url:
            return f"{self._settings.s3_public_url.rstrip('/')}/{self._bucket}/{key}"
        return self._client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self._bucket, "Key": key},
            ExpiresIn=self.PRESIGNED_URL_TTL,
        )

    def upload_bytes(
        self,
        data: bytes,
        key: str,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> UploadResult:
        """
        Upload bytes to the assets bucket.

        Raises:
            ExternalServiceError: If the upload or URL signing fails
        """
        extra_args: dict[str, Any] = {"ContentType": content_type}
        if metadata:
            extra_args["Metadata"] = metadata

        try:
            self._client.put_object(Bucket=self._bucket, Key=key, Body=data, **extra_args)
            url = self._url_for(key)
        except (ClientError, BotoCoreError) as e:
            error_msg = e.response.get("Error", {}).get("Message", str(e)) if isinstance(e, ClientError) else str(e)
            logger.error("S3 upload failed", extra={"bucket": self._bucket, "key": key, "error": error_msg})
            raise ExternalServiceError(
                service="S3",
                message=f"Failed to upload {key}: {error_msg}",
                original_error=str(e),
            ) from e

        logger.info("Uploaded object", extra={"bucket": self._bucket, "key": key, "size_bytes": len(data)})
        return UploadResult(bucket=self._bucket, key=key, url=url, size_bytes=len(data))
