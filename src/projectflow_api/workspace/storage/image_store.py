"""
Subtask image store on Azure Blob Storage.

Images are compressed with Pillow (bounded width, fixed JPEG quality) and
uploaded as blobs of one container; the blob URL is the stored reference.

Authentication order: SAS URL, connection string, then DefaultAzureCredential
against the storage account URL.
"""

import asyncio
import io
from typing import Dict
from typing import List
from typing import Optional
from typing import Sequence
from urllib.parse import unquote
from urllib.parse import urlparse
from uuid import uuid4

from azure.core.exceptions import AzureError
from azure.core.exceptions import ResourceNotFoundError
from azure.identity import DefaultAzureCredential
from azure.storage.blob import BlobServiceClient
from azure.storage.blob import ContentSettings
from loguru import logger
from PIL import Image
from PIL import ImageOps
from PIL import UnidentifiedImageError

from projectflow_api.settings import Settings
from projectflow_api.workspace.exceptions import ImageStoreError
from projectflow_api.workspace.exceptions import ServiceUnavailable
from projectflow_api.workspace.exceptions import ValidationFailed


def compress_image(data: bytes, max_width: int, quality: int) -> bytes:
    """
    Resize to at most ``max_width`` pixels wide and re-encode as JPEG.

    Raises
    ------
    ValidationFailed
        When ``data`` is not a readable image or decodes to too many pixels.
    """
    try:
        with Image.open(io.BytesIO(data)) as original:
            image = ImageOps.exif_transpose(original)
            if image.width > max_width:
                height = max(1, round(image.height * max_width / image.width))
                image = image.resize((max_width, height), Image.Resampling.LANCZOS)
            if image.mode not in ("RGB", "L"):
                image = image.convert("RGB")
            output = io.BytesIO()
            image.save(output, format="JPEG", quality=quality, optimize=True)
    except Image.DecompressionBombError:
        raise ValidationFailed("Image dimensions are too large") from None
    except (UnidentifiedImageError, OSError) as e:
        raise ValidationFailed(f"Invalid image file: {e}") from None
    return output.getvalue()


def _account_url_from_sas(sas_url: str) -> str:
    """Account-level URL (with token) from a container or account SAS URL."""
    clean = sas_url.strip('"').strip("'")
    base_url, _, sas_token = clean.partition("?")
    path_parts = base_url.rstrip("/").split("/")
    account_url = "/".join(path_parts[:3]) if len(path_parts) >= 3 else base_url
    return f"{account_url}?{sas_token}" if sas_token else account_url


class BlobImageStore:
    """Image store capability: ``store(bytes) -> url`` and ``delete_many(urls)``."""

    def __init__(self, settings: Settings):
        self.container_name = settings.image_container
        self.max_width = settings.image_max_width
        self.quality = settings.image_jpeg_quality
        self._sas_url = settings.azure_storage_sas_url
        self._connection_string = settings.azure_storage_connection_string
        self._account_url = settings.azure_storage_account_url
        self._container_client = None

    @property
    def configured(self) -> bool:
        return bool(self._sas_url or self._connection_string or self._account_url)

    def _container(self):
        if self._container_client is not None:
            return self._container_client
        if not self.configured:
            raise ServiceUnavailable("Image storage is not configured")

        if self._sas_url:
            service = BlobServiceClient(account_url=_account_url_from_sas(self._sas_url))
            auth_method = "sas_url"
        elif self._connection_string:
            service = BlobServiceClient.from_connection_string(self._connection_string)
            auth_method = "connection_string"
        else:
            service = BlobServiceClient(account_url=self._account_url, credential=DefaultAzureCredential())
            auth_method = "default_credential"

        logger.info("Image store client initialized", container=self.container_name, auth_method=auth_method)
        self._container_client = service.get_container_client(self.container_name)
        return self._container_client

    def _blob_name(self, url: str) -> Optional[str]:
        path = unquote(urlparse(url).path)
        marker = f"/{self.container_name}/"
        if marker not in path:
            return None
        return path.split(marker, 1)[1]

    def _upload(self, data: bytes) -> str:
        blob = self._container().get_blob_client(f"subtasks/{uuid4().hex}.jpg")
        blob.upload_blob(data, overwrite=False, content_settings=ContentSettings(content_type="image/jpeg"))
        return blob.url.split("?", 1)[0]

    def _delete(self, url: str) -> bool:
        blob_name = self._blob_name(url)
        if blob_name is None:
            logger.warning("Image reference is outside the image container", url=url)
            return False
        try:
            self._container().delete_blob(blob_name)
        except ResourceNotFoundError:
            logger.warning("Image already deleted", url=url)
        return True

    async def store(self, data: bytes) -> str:
        """
        Compress and upload one image.

        Returns:
            Blob URL of the stored image
        """
        compressed = compress_image(data, self.max_width, self.quality)
        try:
            url = await asyncio.to_thread(self._upload, compressed)
        except AzureError as e:
            logger.error(f"Image upload failed: {e}", container=self.container_name)
            raise ImageStoreError("Image upload failed") from None
        logger.debug("Image stored", url=url, size=len(compressed))
        return url

    async def delete_many(self, urls: Sequence[str]) -> Dict[str, int]:
        """Best-effort delete; reports how many references were removed and how many failed."""
        deleted = failed = 0
        for url in urls:
            try:
                removed = await asyncio.to_thread(self._delete, url)
            except (AzureError, ServiceUnavailable) as e:
                logger.warning(f"Image delete failed: {e}", url=url)
                removed = False
            if removed:
                deleted += 1
            else:
                failed += 1
        return {"deleted_count": deleted, "failed_count": failed}


async def upload_batch(image_store, images: Sequence[bytes]) -> List[str]:
    """
    Upload ``images`` in parallel, all or nothing.

    If any upload fails the ones that succeeded are deleted again and the first
    error is raised.
    """
    if not images:
        return []
    results = await asyncio.gather(*(image_store.store(data) for data in images), return_exceptions=True)
    stored = [result for result in results if isinstance(result, str)]
    errors = [result for result in results if isinstance(result, BaseException)]
    if errors:
        if stored:
            outcome = await image_store.delete_many(stored)
            logger.warning("Rolled back partial image upload", **outcome)
        raise errors[0]
    return stored
