# Copyright (c) Microsoft. All rights reserved.
# Licensed under the MIT license.
# See LICENSE file in the project root for full license information.

"""Blob storage manager for uploaded images."""

import logging
import uuid
from typing import Optional

from azure.core.credentials_async import AsyncTokenCredential
from azure.core.exceptions import ResourceExistsError
from azure.storage.blob import ContentSettings
from azure.storage.blob.aio import BlobServiceClient, ContainerClient

from .util import get_logger

logger = get_logger(
    name="blob_storage_manager",
    log_level=logging.INFO,
    log_to_console=True
)


class BlobStorageManager:
    """
    Manages image uploads to Azure Blob Storage.

    Either a connection string or an account URL with a credential must be given.

    :param blob_endpoint: Azure Storage Blob endpoint
    :param credential: Azure credential for authentication
    :param container_name: Name of the blob container (default: 'images')
    :param connection_string: Storage account connection string
    """

    def __init__(
        self,
        blob_endpoint: Optional[str] = None,
        credential: Optional[AsyncTokenCredential] = None,
        container_name: str = 'images',
        connection_string: Optional[str] = None
    ) -> None:
        """Initialize blob storage manager."""
        if not connection_string and not blob_endpoint:
            raise ValueError("Either connection_string or blob_endpoint is required")
        self._blob_endpoint = blob_endpoint
        self._credential = credential
        self._container_name = container_name
        self._connection_string = connection_string
        self._blob_service_client: Optional[BlobServiceClient] = None
        self._container_client: Optional[ContainerClient] = None

    @property
    def container_name(self) -> str:
        return self._container_name

    async def _get_blob_service_client(self) -> BlobServiceClient:
        """Get or create blob service client."""
        if self._blob_service_client is None:
            if self._connection_string:
                self._blob_service_client = BlobServiceClient.from_connection_string(
                    self._connection_string
                )
            else:
                self._blob_service_client = BlobServiceClient(
                    account_url=self._blob_endpoint,
                    credential=self._credential
                )
        return self._blob_service_client

    async def _get_container_client(self) -> ContainerClient:
        """Get or create container client."""
        if self._container_client is None:
            blob_service_client = await self._get_blob_service_client()
            self._container_client = blob_service_client.get_container_client(
                self._container_name
            )
        return self._container_client

    async def ensure_container_exists(self) -> None:
        """
        Ensure the blob container exists, create if not.
        """
        try:
            container_client = await self._get_container_client()
            await container_client.create_container()
            logger.info(f"Created blob container: {self._container_name}")
        except ResourceExistsError:
            logger.info(f"Blob container already exists: {self._container_name}")
        except Exception as e:
            logger.error(f"Error ensuring container exists: {e}")
            raise

    async def upload_image(
        self,
        content: bytes,
        content_type: Optional[str] = None
    ) -> str:
        """
        Upload an image under a new unique blob name.

        :param content: Raw image bytes
        :param content_type: Optional MIME type stored with the blob
        :return: Blob URL
        """
        blob_name = str(uuid.uuid4())
        try:
            container_client = await self._get_container_client()
            blob_client = container_client.get_blob_client(blob_name)

            content_settings = ContentSettings(content_type=content_type) if content_type else None
            await blob_client.upload_blob(
                content,
                content_settings=content_settings
            )

            blob_url = blob_client.url
            logger.info(f"Uploaded image to blob storage: {blob_name}")

            return blob_url
        except Exception as e:
            logger.error(f"Error uploading image {blob_name} to blob storage: {e}")
            raise

    async def close(self) -> None:
        """Close blob service client."""
        if self._blob_service_client:
            await self._blob_service_client.close()
