# Copyright (c) Microsoft. All rights reserved.
# Licensed under the MIT license.
# See LICENSE file in the project root for full license information.

"""Azure Storage Queue carrying description tickets."""

import logging
from typing import AsyncIterator, Optional

from azure.core.credentials_async import AsyncTokenCredential
from azure.core.exceptions import ResourceExistsError
from azure.storage.queue import QueueMessage, TextBase64DecodePolicy, TextBase64EncodePolicy
from azure.storage.queue.aio import QueueClient

from .util import Ticket, get_logger

logger = get_logger(
    name="ticket_queue",
    log_level=logging.INFO,
    log_to_console=True
)


class TicketQueue:
    """
    Publishes and receives tickets on an Azure Storage Queue.

    Messages are base64-encoded JSON, the format Azure Functions queue
    triggers read. Messages that cannot be processed are moved to
    ``<queue_name>-poison``.

    :param queue_name: Name of the queue
    :param connection_string: Storage account connection string
    :param queue_endpoint: Azure Storage Queue endpoint, used with ``credential``
    :param credential: Azure credential for authentication
    """

    def __init__(
        self,
        queue_name: str = 'description-tickets',
        connection_string: Optional[str] = None,
        queue_endpoint: Optional[str] = None,
        credential: Optional[AsyncTokenCredential] = None
    ) -> None:
        if not connection_string and not queue_endpoint:
            raise ValueError("Either connection_string or queue_endpoint is required")
        self._queue_name = queue_name
        self._connection_string = connection_string
        self._queue_endpoint = queue_endpoint
        self._credential = credential
        self._queue_client: Optional[QueueClient] = None
        self._poison_queue_client: Optional[QueueClient] = None

    @property
    def queue_name(self) -> str:
        return self._queue_name

    @property
    def poison_queue_name(self) -> str:
        return f"{self._queue_name}-poison"

    def _create_client(self, queue_name: str) -> QueueClient:
        policies = {
            "message_encode_policy": TextBase64EncodePolicy(),
            "message_decode_policy": TextBase64DecodePolicy(),
        }
        if self._connection_string:
            return QueueClient.from_connection_string(
                self._connection_string, queue_name, **policies
            )
        return QueueClient(
            account_url=self._queue_endpoint,
            queue_name=queue_name,
            credential=self._credential,
            **policies
        )

    def _get_queue_client(self) -> QueueClient:
        if self._queue_client is None:
            self._queue_client = self._create_client(self._queue_name)
        return self._queue_client

    def _get_poison_queue_client(self) -> QueueClient:
        if self._poison_queue_client is None:
            self._poison_queue_client = self._create_client(self.poison_queue_name)
        return self._poison_queue_client

    async def ensure_queue_exists(self) -> None:
        """Create the ticket queue if it does not exist."""
        try:
            await self._get_queue_client().create_queue()
            logger.info(f"Created queue: {self._queue_name}")
        except ResourceExistsError:
            logger.info(f"Queue already exists: {self._queue_name}")

    async def send_ticket(self, ticket: Ticket) -> None:
        """Serialize the ticket and publish it."""
        await self._get_queue_client().send_message(ticket.to_message())
        logger.info(f"Sent ticket for image {ticket.image_url} to queue {self._queue_name}")

    async def receive_messages(
        self,
        max_messages: int = 16,
        visibility_timeout: Optional[int] = None
    ) -> AsyncIterator[QueueMessage]:
        """Yield up to ``max_messages`` messages currently visible on the queue."""
        received = self._get_queue_client().receive_messages(
            max_messages=max_messages,
            visibility_timeout=visibility_timeout
        )
        async for message in received:
            yield message

    async def delete_message(self, message: QueueMessage) -> None:
        await self._get_queue_client().delete_message(message)

    async def move_to_poison(self, message: QueueMessage) -> None:
        """Copy the message to the poison queue and remove it from the ticket queue."""
        poison_client = self._get_poison_queue_client()
        try:
            await poison_client.create_queue()
        except ResourceExistsError:
            pass
        await poison_client.send_message(message.content)
        await self.delete_message(message)
        logger.warning(f"Moved message {message.id} to queue {self.poison_queue_name}")

    async def close(self) -> None:
        """Close queue clients."""
        if self._queue_client:
            await self._queue_client.close()
        if self._poison_queue_client:
            await self._poison_queue_client.close()
