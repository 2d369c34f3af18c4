# Copyright (c) Microsoft. All rights reserved.
# Licensed under the MIT license.
# See LICENSE file in the project root for full license information.

"""Construction of the service clients shared by the HTTP app and the worker."""

from typing import Optional

from azure.cognitiveservices.vision.computervision import ComputerVisionClient
from azure.core.credentials_async import AsyncTokenCredential
from azure.identity.aio import DefaultAzureCredential
from msrest.authentication import CognitiveServicesCredentials

from .blob_storage_manager import BlobStorageManager
from .config import Settings
from .connection_factory import SqlConnectionFactory
from .functions import ImageFunctions
from .ticket_queue import TicketQueue


def create_computer_vision_client(settings: Settings) -> ComputerVisionClient:
    credentials = CognitiveServicesCredentials(settings.vision_key)
    return ComputerVisionClient(settings.vision_endpoint, credentials)


def create_storage_credential(settings: Settings) -> Optional[AsyncTokenCredential]:
    """Return a token credential when storage is not configured by connection string."""
    if settings.storage_connection_string:
        return None
    return DefaultAzureCredential()


def create_blob_storage_manager(
    settings: Settings,
    credential: Optional[AsyncTokenCredential] = None
) -> BlobStorageManager:
    return BlobStorageManager(
        blob_endpoint=settings.storage_account_url,
        credential=credential,
        container_name=settings.images_container,
        connection_string=settings.storage_connection_string
    )


def create_ticket_queue(
    settings: Settings,
    credential: Optional[AsyncTokenCredential] = None
) -> TicketQueue:
    return TicketQueue(
        queue_name=settings.description_queue,
        connection_string=settings.storage_connection_string,
        queue_endpoint=settings.storage_queue_url,
        credential=credential
    )


def create_image_functions(settings: Settings) -> ImageFunctions:
    return ImageFunctions(
        computer_vision_client=create_computer_vision_client(settings),
        connection_factory=SqlConnectionFactory(settings.database_url),
        fail_open_on_analysis_error=settings.fail_open_on_analysis_error
    )
