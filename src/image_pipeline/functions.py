# Copyright (c) Microsoft. All rights reserved.
# Licensed under the MIT license.
# See LICENSE file in the project root for full license information.

"""
Image moderation functions.

``check_image_for_inappropriate_content`` screens an upload and either rejects
it (locking out the uploader) or stores it and queues a description ticket.
``describe_image`` consumes such a ticket and saves the generated caption.
"""

import io
import logging
import os
from typing import Optional

from azure.cognitiveservices.vision.computervision import ComputerVisionClient
from azure.cognitiveservices.vision.computervision.models import (
    ComputerVisionErrorResponseException,
    VisualFeatureTypes,
)
from fastapi import Request, Response, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import text

from .blob_storage_manager import BlobStorageManager
from .connection_factory import ConnectionFactory
from .content_policy import is_inappropriate_content
from .ticket_queue import TicketQueue
from .util import ImageRecord, Ticket, get_base_log_message, get_logger

logger = get_logger(
    name="image_functions",
    log_level=logging.INFO,
    log_file_name=os.getenv("APP_LOG_FILE"),
    log_to_console=True
)

LOCKOUT_QUERY = "UPDATE Users SET LockoutEnabled = :lockout_enabled WHERE Id = :user_id"
INSERT_IMAGE_QUERY = "INSERT INTO Images (Url, Description, UserId) VALUES (:url, :description, :user_id)"


def _service_error_message(exception: ComputerVisionErrorResponseException) -> str:
    """Return the message from the Computer Vision error body, if it has one."""
    body = exception.error
    inner = getattr(body, "error", None)
    if inner is not None and inner.message:
        return inner.message
    return exception.message or str(exception)


class ImageFunctions:
    """
    The HTTP and queue handlers of the image pipeline.

    :param computer_vision_client: Client used for both analysis and description.
    :param connection_factory: Provides one database connection per write.
    :param fail_open_on_analysis_error: If True, an image whose analysis failed is
                                        accepted; otherwise it is rejected.
    """

    def __init__(
        self,
        computer_vision_client: ComputerVisionClient,
        connection_factory: ConnectionFactory,
        fail_open_on_analysis_error: bool = True
    ) -> None:
        self._computer_vision_client = computer_vision_client
        self._connection_factory = connection_factory
        self._fail_open_on_analysis_error = fail_open_on_analysis_error

    async def check_image_for_inappropriate_content(
        self,
        image: bytes,
        user_id: Optional[str],
        ticket_queue: TicketQueue,
        blob_storage_manager: BlobStorageManager,
        request: Optional[Request] = None,
        content_type: Optional[str] = None
    ) -> Response:
        """
        Screen an uploaded image and route it through the pipeline.

        :param image: The request body.
        :param user_id: Uploader id, None for anonymous uploads.
        :param ticket_queue: Queue receiving description tickets.
        :param blob_storage_manager: Storage for accepted images.
        :return: 200 if the image was stored and queued, 400 if rejected.
        """
        base_log_message = get_base_log_message(
            type(self).__name__, "check_image_for_inappropriate_content", request)
        user_id = user_id if user_id and user_id.strip() else None
        # The analysis call consumes its stream; the bytes are kept for the upload.
        image_stream = io.BytesIO(image)

        from_user = f" from user {user_id}" if user_id else ""
        logger.info(f"{base_log_message}: receive a request to check image for inappropriate content{from_user}")

        analysis = None
        error_message = None
        try:
            analysis = await run_in_threadpool(
                self._computer_vision_client.analyze_image_in_stream,
                image_stream,
                visual_features=[VisualFeatureTypes.adult]
            )
        except ComputerVisionErrorResponseException as e:
            error_message = _service_error_message(e)
        except Exception as e:
            error_message = str(e) or type(e).__name__
        finally:
            image_stream.close()

        if error_message:
            logger.warning(
                f"{base_log_message}: image was sent to the checking for inappropriate content, "
                f"but the received response was unsuccessful. Message: {error_message}")
            if not self._fail_open_on_analysis_error:
                logger.warning(f"{base_log_message}: image could not be checked. Removing an image from processing pipeline")
                return Response(status_code=status.HTTP_400_BAD_REQUEST)

        adult_info = analysis.adult if analysis is not None else None
        if adult_info is not None and is_inappropriate_content(adult_info):
            if user_id:
                await run_in_threadpool(self._lock_out_user, user_id)
                logger.info(
                    f"{base_log_message}: user '{user_id}' has been banned for uploading an image with inappropriate content")

            logger.warning(
                f"{base_log_message}: image has been detected to contain inappropriate content. "
                "Removing an image from processing pipeline")
            return Response(status_code=status.HTTP_400_BAD_REQUEST)

        logger.info(f"{base_log_message}: image was successfully checked for inappropriate content. Saving it")

        image_url = await blob_storage_manager.upload_image(image, content_type=content_type)

        logger.info(
            f"{base_log_message}: image was successfully saved at URL '{image_url}', "
            "sending it next to processing pipeline")

        await ticket_queue.send_ticket(Ticket(user_id=user_id, image_url=image_url))
        return Response(status_code=status.HTTP_200_OK)

    async def describe_image(self, ticket: Ticket) -> Optional[ImageRecord]:
        """
        Caption the ticket's image and store the result.

        Service failures and empty captions are logged and nothing is written.
        Database errors propagate.

        :param ticket: The ticket received from the queue.
        :return: The saved record, or None if nothing was saved.
        """
        base_log_message = get_base_log_message(type(self).__name__, "describe_image")
        logger.info(f"{base_log_message}: received a request to describe image by URL '{ticket.image_url}'")

        response = None
        error_message = None
        try:
            response = await run_in_threadpool(
                self._computer_vision_client.describe_image,
                ticket.image_url,
                raw=True
            )
            status_code = response.response.status_code
            if not 200 <= status_code < 300:
                error_message = response.response.reason or f"HTTP {status_code}"
        except ComputerVisionErrorResponseException as e:
            error_message = _service_error_message(e)
        except Exception as e:
            error_message = str(e) or type(e).__name__

        if error_message:
            logger.warning(
                f"{base_log_message}: image '{ticket.image_url}' was sent to the describing, "
                f"but the received response was unsuccessful. Message: {error_message}")
            return None

        captions = response.output.captions if response.output is not None else None
        if not captions:
            logger.warning(f"{base_log_message}: no description available for image '{ticket.image_url}'")
            return None

        image = ImageRecord(url=ticket.image_url, description=captions[0].text, user_id=ticket.user_id)
        await run_in_threadpool(self._save_image, image)

        logger.info(
            f"{base_log_message}: successfully saved described image '{image.url}' "
            f"with description '{image.description}'")
        return image

    def close(self) -> None:
        """Close the Computer Vision client and release pooled connections."""
        self._computer_vision_client.close()
        self._connection_factory.dispose()

    def _lock_out_user(self, user_id: str) -> None:
        with self._connection_factory.create_connection() as connection:
            connection.execute(text(LOCKOUT_QUERY), {"lockout_enabled": True, "user_id": user_id})
            connection.commit()

    def _save_image(self, image: ImageRecord) -> None:
        with self._connection_factory.create_connection() as connection:
            connection.execute(
                text(INSERT_IMAGE_QUERY),
                {"url": image.url, "description": image.description, "user_id": image.user_id}
            )
            connection.commit()
