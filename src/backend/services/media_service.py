"""
Media Service for issue photos, backed by Azure Blob Storage.

Uploaded images are stored under ``issues/{uuid}{ext}`` in the media
container. The storage key is kept on the issue so the blob can be removed
when the issue is deleted.

Uses managed identity authentication in production,
falls back to connection string for local development.
"""

import asyncio
import mimetypes
import os
from dataclasses import dataclass
from typing import Optional, Sequence
from uuid import uuid4

import structlog
from azure.core.exceptions import ResourceExistsError
from azure.identity.aio import DefaultAzureCredential
from azure.storage.blob import ContentSettings
from azure.storage.blob.aio import BlobServiceClient, ContainerClient
from fastapi import UploadFile

from core.config import get_settings
from core.exceptions import InvalidArgumentError
from models.cosmos_documents import ImageRef

logger = structlog.get_logger(__name__)

ALLOWED_CONTENT_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})
KEY_PREFIX = "issues/"


@dataclass
class MediaDeletionOutcome:
    """Result of deleting one stored image."""

    storage_key: str
    deleted: bool
    error: Optional[str] = None


class MediaService:
    """Stores and removes issue photos in an Azure Blob container."""

    def __init__(
        self,
        account_url: Optional[str] = None,
        connection_string: Optional[str] = None,
        container_name: Optional[str] = None,
    ):
        settings = get_settings()

        self.account_url = account_url or settings.AZURE_STORAGE_ACCOUNT_URL
        self.container_name = container_name or settings.AZURE_STORAGE_MEDIA_CONTAINER
        self.max_images = settings.ISSUE_MAX_IMAGES
        self.max_image_bytes = settings.ISSUE_MAX_IMAGE_BYTES
        self._connection_string = connection_string or settings.AZURE_STORAGE_CONNECTION_STRING

        self._service_client: Optional[BlobServiceClient] = None
        self._credential: Optional[DefaultAzureCredential] = None
        self._is_initialized = False

    async def initialize(self) -> None:
        """Initialize the blob service client and ensure the container exists."""
        if self._is_initialized:
            return

        try:
            if self._connection_string:
                # Use connection string (local development / Azurite)
                self._service_client = BlobServiceClient.from_connection_string(self._connection_string)
                logger.info("blob_storage_init", method="connection_string")
            else:
                if not self.account_url:
                    raise ValueError("AZURE_STORAGE_ACCOUNT_URL must be set for managed identity auth")
                self._credential = DefaultAzureCredential()
                self._service_client = BlobServiceClient(
                    account_url=self.account_url,
                    credential=self._credential,
                )
                logger.info("blob_storage_init", method="managed_identity", account_url=self.account_url)

            try:
                await self._service_client.create_container(self.container_name)
                logger.info("blob_container_created", container=self.container_name)
            except ResourceExistsError:
                pass

            self._is_initialized = True

        except Exception as e:
            logger.error("blob_storage_init_failed", error=str(e))
            raise

    def _get_container_client(self) -> ContainerClient:
        if not self._service_client:
            raise RuntimeError("Media service not initialized. Call initialize() first.")
        return self._service_client.get_container_client(self.container_name)

    async def close(self) -> None:
        """Close the service client."""
        if self._service_client:
            await self._service_client.close()
            self._service_client = None
        if self._credential:
            await self._credential.close()
            self._credential = None
        self._is_initialized = False

    # =========================================================================
    # Uploads
    # =========================================================================

    def _validate_files(self, files: Sequence[UploadFile]) -> None:
        if len(files) > self.max_images:
            raise InvalidArgumentError(f"You can upload at most {self.max_images} images")

        for upload in files:
            if (upload.content_type or "") not in ALLOWED_CONTENT_TYPES:
                raise InvalidArgumentError(f"File '{upload.filename}' is not a supported image type")
            if upload.size is not None and upload.size > self.max_image_bytes:
                raise InvalidArgumentError(f"File '{upload.filename}' exceeds the maximum image size")

    @staticmethod
    def _storage_key(upload: UploadFile) -> str:
        ext = os.path.splitext(upload.filename or "")[1].lower()
        if not ext:
            ext = mimetypes.guess_extension(upload.content_type or "") or ""
        return f"{KEY_PREFIX}{uuid4().hex}{ext}"

    async def store_uploaded_images(self, files: Sequence[UploadFile]) -> list[ImageRef]:
        """
        Upload issue photos and return their references, in input order.

        Every file is validated before anything is uploaded. If an upload
        fails, the images already stored by this call are removed again.

        Raises:
            InvalidArgumentError: Too many files, a non-image file, or a file
                over the size limit
        """
        if not files:
            return []

        self._validate_files(files)
        await self.initialize()
        container = self._get_container_client()

        stored: list[ImageRef] = []
        try:
            for upload in files:
                data = await upload.read()
                if len(data) > self.max_image_bytes:
                    raise InvalidArgumentError(f"File '{upload.filename}' exceeds the maximum image size")

                key = self._storage_key(upload)
                blob = container.get_blob_client(key)
                await blob.upload_blob(
                    data,
                    overwrite=False,
                    content_settings=ContentSettings(content_type=upload.content_type),
                )
                stored.append(ImageRef(url=blob.url, storage_key=key))
                logger.debug("image_uploaded", storage_key=key, size=len(data))
        except Exception:
            if stored:
                await self.delete_images([ref.storage_key for ref in stored])
            raise

        logger.info("images_stored", count=len(stored))
        return stored

    # =========================================================================
    # Deletion
    # =========================================================================

    async def delete_image(self, storage_key: str) -> None:
        """Delete one stored image. Errors propagate to the caller."""
        await self.initialize()
        container = self._get_container_client()
        await container.delete_blob(storage_key, delete_snapshots="include")
        logger.debug("image_deleted", storage_key=storage_key)

    async def delete_images(self, storage_keys: Sequence[str]) -> list[MediaDeletionOutcome]:
        """
        Delete several images concurrently.

        Each deletion settles independently; a failure is logged and
        reported in its outcome and never affects the others.
        """
        if not storage_keys:
            return []

        results = await asyncio.gather(
            *(self.delete_image(key) for key in storage_keys),
            return_exceptions=True,
        )

        outcomes: list[MediaDeletionOutcome] = []
        for key, result in zip(storage_keys, results):
            if isinstance(result, BaseException):
                logger.error("image_delete_failed", storage_key=key, error=str(result))
                outcomes.append(MediaDeletionOutcome(storage_key=key, deleted=False, error=str(result)))
            else:
                outcomes.append(MediaDeletionOutcome(storage_key=key, deleted=True))
        return outcomes


# Singleton instance
_media_service: Optional[MediaService] = None


async def get_media_service() -> MediaService:
    """Get the singleton media service instance."""
    global _media_service

    if _media_service is None:
        _media_service = MediaService()

    return _media_service


async def close_media_service() -> None:
    """Close the media service."""
    global _media_service

    if _media_service:
        await _media_service.close()
        _media_service = None
