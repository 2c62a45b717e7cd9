"""Artifact ingestion — durable S3 storage behind a CDN.

Keys follow ``{category}/{sanitized}-{16-digit id}.{ext}``. Objects are
written once and served with an immutable cache policy, so a key is never
overwritten.

Screenshot and HTML uploads are load-bearing and raise UploadFailure.
Mirroring an external image is best-effort: on failure the caller keeps the
original URL.
"""

import asyncio
import functools
import logging
import mimetypes
import re
import secrets
import time
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import PurePosixPath
from urllib.parse import urlparse

import boto3
import httpx

from relcis.config import settings
from relcis.core.exceptions import UploadFailure
from relcis.core.metrics import (
    artifact_upload_duration_seconds,
    artifact_uploads_total,
    image_mirror_failures_total,
)
from relcis.services.adapters import ImageResult

logger = logging.getLogger(__name__)

_ID_MIN = 10**15  # smallest 16-digit number
_ID_SPAN = 9 * 10**15
_MAX_SEGMENT_LEN = 100

_IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp", "avif", "bmp", "svg"}

_FETCH_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36"
    ),
    "Accept": "image/avif,image/webp,image/apng,image/*,*/*;q=0.8",
}


class ArtifactCategory(str, Enum):
    SCREENSHOTS = "screenshots"
    SEARCHED_HTML = "searchedHTML"
    SEARCHED_IMAGES = "searchedImages"


@dataclass
class Artifact:
    category: ArtifactCategory
    body: bytes
    content_type: str
    key: str


def sanitize_segment(text: str) -> str:
    """Key-safe form of a query or URL: "hello world" -> "hello-world"."""
    segment = re.sub(r"\s+", "-", (text or "").strip())
    segment = re.sub(r"[^A-Za-z0-9._-]+", "-", segment)
    segment = re.sub(r"-{2,}", "-", segment).strip("-.")
    return segment[:_MAX_SEGMENT_LEN] or "artifact"


def random_id() -> str:
    return str(_ID_MIN + secrets.randbelow(_ID_SPAN))


def build_key(category: ArtifactCategory, context: str, ext: str) -> str:
    return f"{category.value}/{sanitize_segment(context)}-{random_id()}.{ext.lstrip('.')}"


def guess_image_extension(url: str, content_type: str | None) -> str:
    suffix = PurePosixPath(urlparse(url).path).suffix.lower().lstrip(".")
    if suffix in _IMAGE_EXTENSIONS:
        return suffix
    if content_type:
        guessed = mimetypes.guess_extension(content_type.split(";")[0].strip())
        if guessed:
            ext = guessed.lstrip(".")
            return "jpg" if ext in ("jpe", "jpeg") else ext
    return "jpg"


class ArtifactStore:
    """Uploads artifacts to S3 and returns their CDN retrieval URL."""

    def __init__(
        self,
        bucket: str | None = None,
        cdn_base_url: str | None = None,
        client=None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.bucket = bucket if bucket is not None else settings.S3_BUCKET
        self.cdn_base_url = (
            cdn_base_url if cdn_base_url is not None else settings.CDN_BASE_URL
        )
        self._client = client
        self._transport = transport

    def _get_client(self):
        if self._client is None:
            self._client = boto3.client(
                "s3",
                endpoint_url=settings.S3_ENDPOINT_URL or None,
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
                region_name=settings.AWS_REGION,
            )
            logger.info(f"S3 client initialized (bucket={self.bucket})")
        return self._client

    @property
    def configured(self) -> bool:
        return bool(self.bucket)

    def public_url(self, key: str) -> str:
        if self.cdn_base_url:
            return f"{self.cdn_base_url.rstrip('/')}/{key}"
        return f"https://{self.bucket}.s3.{settings.AWS_REGION}.amazonaws.com/{key}"

    async def upload(self, artifact: Artifact) -> str:
        """Persist ``artifact`` and return its retrieval URL."""
        category = artifact.category.value
        if not self.configured:
            artifact_uploads_total.labels(category=category, status="failure").inc()
            raise UploadFailure("Artifact storage is not configured (S3_BUCKET)")

        start = time.monotonic()
        try:
            put = functools.partial(
                self._get_client().put_object,
                Bucket=self.bucket,
                Key=artifact.key,
                Body=artifact.body,
                ContentType=artifact.content_type,
                CacheControl=settings.ARTIFACT_CACHE_CONTROL,
            )
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, put)
        except Exception as e:
            artifact_uploads_total.labels(category=category, status="failure").inc()
            logger.error(f"Upload of {artifact.key} failed: {e}")
            raise UploadFailure(f"S3 upload failed: {e}") from e
        finally:
            artifact_upload_duration_seconds.labels(category=category).observe(
                time.monotonic() - start
            )

        artifact_uploads_total.labels(category=category, status="success").inc()
        logger.info(f"Uploaded {artifact.key} ({len(artifact.body)} bytes)")
        return self.public_url(artifact.key)

    async def upload_screenshot(self, png: bytes, context: str) -> str:
        return await self.upload(
            Artifact(
                category=ArtifactCategory.SCREENSHOTS,
                body=png,
                content_type="image/png",
                key=build_key(ArtifactCategory.SCREENSHOTS, context, "png"),
            )
        )

    async def upload_html(self, html: str, context: str) -> str:
        return await self.upload(
            Artifact(
                category=ArtifactCategory.SEARCHED_HTML,
                body=html.encode("utf-8"),
                content_type="text/html; charset=utf-8",
                key=build_key(ArtifactCategory.SEARCHED_HTML, context, "html"),
            )
        )

    async def mirror_image(self, image_url: str, query: str) -> str | None:
        """Copy an external image into the store; None if anything fails."""
        try:
            async with httpx.AsyncClient(
                timeout=settings.IMAGE_FETCH_TIMEOUT,
                follow_redirects=True,
                transport=self._transport,
                headers=_FETCH_HEADERS,
            ) as client:
                resp = await client.get(image_url)
                resp.raise_for_status()
            content_type = resp.headers.get("content-type") or "image/jpeg"
            ext = guess_image_extension(image_url, content_type)
            return await self.upload(
                Artifact(
                    category=ArtifactCategory.SEARCHED_IMAGES,
                    body=resp.content,
                    content_type=content_type,
                    key=build_key(ArtifactCategory.SEARCHED_IMAGES, query, ext),
                )
            )
        except Exception as e:
            image_mirror_failures_total.inc()
            logger.warning(f"Image mirror failed for {image_url}, keeping original: {e}")
            return None

    async def mirror_results(
        self, results: list[ImageResult], query: str
    ) -> list[ImageResult]:
        """Mirror every result concurrently; failed mirrors keep the original."""
        urls = await asyncio.gather(
            *(self.mirror_image(r.image_url, query) for r in results)
        )
        return [
            replace(result, persisted_url=url) if url else result
            for result, url in zip(results, urls)
        ]


artifact_store = ArtifactStore()
