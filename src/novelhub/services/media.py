"""Image upload pipeline.

Validates uploaded images, encodes them as data URIs and forwards them to
an asset host. Cloudinary is used when credentials are configured; otherwise
images are written to the local upload directory and served from
``/uploads``.
"""

import base64
import hashlib
import logging
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import httpx
from starlette.datastructures import UploadFile

from novelhub.api.exceptions import UpstreamError, ValidationError
from novelhub.core.config import Settings

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/png", "image/gif")
ALLOWED_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif")
MAX_IMAGE_SIZE = 5 * 1024 * 1024  # 5MB

PROFILE_PICTURE_FOLDER = "novel-ai-hub/profile-pictures"
STORY_IMAGE_FOLDER = "novel-ai-hub/story-images"

CLOUDINARY_API_URL = "https://api.cloudinary.com/v1_1"
CLOUDINARY_TRANSFORMATION = "q_auto:best/f_auto"


@dataclass(frozen=True)
class EncodedImage:
    """Validated image payload ready for forwarding."""

    data: bytes
    mime_type: str
    extension: str

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def data_uri(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


@dataclass(frozen=True)
class PublishedAsset:
    """Public URL and opaque identifier returned by the asset host."""

    url: str
    asset_id: str


class AssetHost(Protocol):
    async def upload(self, image: EncodedImage, folder: str) -> PublishedAsset: ...

    async def destroy(self, asset_id: str) -> None: ...

    async def aclose(self) -> None: ...


def _sign(params: dict[str, str], api_secret: str) -> str:
    """Cloudinary request signature: SHA-1 of sorted params plus secret."""
    to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params))
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


class CloudinaryAssetHost:
    """Cloudinary upload API client."""

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self._client = client or httpx.AsyncClient(timeout=60)

    def _signed(self, params: dict[str, str]) -> dict[str, str]:
        params = {**params, "timestamp": str(int(time.time()))}
        return {
            **params,
            "api_key": self.api_key,
            "signature": _sign(params, self.api_secret),
        }

    async def upload(self, image: EncodedImage, folder: str) -> PublishedAsset:
        url = f"{CLOUDINARY_API_URL}/{self.cloud_name}/image/upload"
        payload = self._signed(
            {
                "folder": folder,
                "transformation": CLOUDINARY_TRANSFORMATION,
            }
        )
        payload["file"] = image.data_uri

        response = await self._client.post(url, data=payload)
        response.raise_for_status()
        result = response.json()
        return PublishedAsset(url=result["secure_url"], asset_id=result["public_id"])

    async def destroy(self, asset_id: str) -> None:
        url = f"{CLOUDINARY_API_URL}/{self.cloud_name}/image/destroy"
        response = await self._client.post(url, data=self._signed({"public_id": asset_id}))
        response.raise_for_status()

    async def aclose(self) -> None:
        await self._client.aclose()


class LocalAssetHost:
    """Writes images under the upload directory (legacy/local mode)."""

    def __init__(self, upload_dir: str | Path, url_prefix: str = "/uploads") -> None:
        self.upload_dir = Path(upload_dir)
        self.url_prefix = url_prefix.rstrip("/")

    async def upload(self, image: EncodedImage, folder: str) -> PublishedAsset:
        asset_id = f"{folder}/{uuid.uuid4().hex}{image.extension}"
        path = self.upload_dir / asset_id
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(image.data)
        return PublishedAsset(url=f"{self.url_prefix}/{asset_id}", asset_id=asset_id)

    async def destroy(self, asset_id: str) -> None:
        path = (self.upload_dir / asset_id).resolve()
        if not path.is_relative_to(self.upload_dir.resolve()):
            raise ValueError(f"Asset path escapes upload directory: {asset_id}")
        path.unlink(missing_ok=True)

    async def aclose(self) -> None:
        return None


class MediaPipeline:
    """Validate, publish and retire uploaded images."""

    def __init__(self, host: AssetHost) -> None:
        self.host = host

    @classmethod
    def from_settings(cls, settings: Settings) -> "MediaPipeline":
        if settings.has_cloudinary_credentials():
            host: AssetHost = CloudinaryAssetHost(
                settings.cloudinary_cloud_name,
                settings.cloudinary_api_key,
                settings.cloudinary_api_secret,
            )
        else:
            logger.info("Cloudinary not configured, storing uploads in %s", settings.upload_dir)
            host = LocalAssetHost(settings.upload_dir)
        return cls(host)

    def ingest(
        self,
        raw_bytes: bytes | None,
        mime_type: str | None,
        filename_hint: str | None,
    ) -> EncodedImage:
        """Validate an uploaded image and prepare it for forwarding.

        Raises:
            ValidationError: If the file is missing, of the wrong type or too large.
        """
        if not raw_bytes:
            raise ValidationError("Please upload an image file")
        if mime_type not in ALLOWED_IMAGE_TYPES:
            raise ValidationError("Please upload a valid image file (JPEG, PNG, or GIF)")

        extension = Path(filename_hint or "").suffix.lower()
        if extension not in ALLOWED_EXTENSIONS:
            raise ValidationError(f"Allowed file types are: {', '.join(ALLOWED_EXTENSIONS)}")
        if len(raw_bytes) > MAX_IMAGE_SIZE:
            raise ValidationError("Image size should be less than 5MB")

        return EncodedImage(data=raw_bytes, mime_type=mime_type, extension=extension)

    async def ingest_upload(self, upload: UploadFile) -> EncodedImage:
        """Read a multipart upload without pulling more than the size cap.

        The declared part size is checked first; the read stops one byte
        past the cap so oversize bodies still fail the size check.
        """
        if upload.size is not None and upload.size > MAX_IMAGE_SIZE:
            raise ValidationError("Image size should be less than 5MB")
        raw_bytes = await upload.read(MAX_IMAGE_SIZE + 1)
        return self.ingest(raw_bytes, upload.content_type, upload.filename)

    async def publish(self, image: EncodedImage, folder: str) -> PublishedAsset:
        """Forward an image to the asset host.

        Raises:
            UpstreamError: If the provider call fails. Not retried.
        """
        try:
            return await self.host.upload(image, folder)
        except (httpx.HTTPError, KeyError, ValueError, OSError) as e:
            logger.error("Image upload failed: %s", e)
            raise UpstreamError("Error uploading image") from e

    async def retire(self, asset_id: str | None) -> None:
        """Best-effort delete of a previously published asset."""
        if not asset_id:
            return
        try:
            await self.host.destroy(asset_id)
        except Exception as e:
            logger.warning("Failed to delete asset %s: %s", asset_id, e)

    async def aclose(self) -> None:
        await self.host.aclose()
