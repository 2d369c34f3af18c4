# Copyright (c) Microsoft. All rights reserved.
# Licensed under the MIT license.
# See LICENSE file in the project root for full license information.

"""
Queue worker running ``describe_image`` for every description ticket.

Usage:
    image-pipeline-worker [--once]
"""

import asyncio
import logging
import sys

from azure.storage.queue import QueueMessage
from pydantic import ValidationError

from .bootstrap import create_image_functions, create_storage_credential, create_ticket_queue
from .config import Settings
from .functions import ImageFunctions
from .ticket_queue import TicketQueue
from .util import Ticket, get_logger

logger = get_logger(
    name="ticket_worker",
    log_level=logging.INFO,
    log_to_console=True
)


class TicketWorker:
    """
    Polls the ticket queue and hands each ticket to the description handler.

    A message is deleted once the handler returns. If the handler raises, the
    message stays on the queue and becomes visible again; after
    ``max_dequeue_count`` attempts it is moved to the poison queue.

    :param image_functions: The handlers.
    :param ticket_queue: Queue to read tickets from.
    :param max_dequeue_count: Attempts before a failing message is poisoned.
    :param poll_interval: Seconds to wait after an empty poll.
    """

    def __init__(
        self,
        image_functions: ImageFunctions,
        ticket_queue: TicketQueue,
        max_dequeue_count: int = 5,
        poll_interval: float = 2.0
    ) -> None:
        self._image_functions = image_functions
        self._ticket_queue = ticket_queue
        self._max_dequeue_count = max_dequeue_count
        self._poll_interval = poll_interval

    async def process_message(self, message: QueueMessage) -> None:
        try:
            ticket = Ticket.from_message(message.content)
        except ValidationError as e:
            logger.error(f"Message {message.id} is not a valid ticket: {e}")
            await self._ticket_queue.move_to_poison(message)
            return

        try:
            await self._image_functions.describe_image(ticket)
        except Exception as e:
            if (message.dequeue_count or 0) >= self._max_dequeue_count:
                logger.error(
                    f"Ticket for image '{ticket.image_url}' failed {message.dequeue_count} times, giving up: {e}")
                await self._ticket_queue.move_to_poison(message)
            else:
                logger.error(f"Error processing ticket for image '{ticket.image_url}', it will be retried: {e}")
            return

        await self._ticket_queue.delete_message(message)

    async def run_once(self) -> int:
        """
        Process the messages currently visible on the queue.

        :return: Number of messages received.
        """
        received = 0
        async for message in self._ticket_queue.receive_messages():
            received += 1
            await self.process_message(message)
        return received

    async def run(self) -> None:
        """Poll the queue until cancelled."""
        logger.info(f"Listening for tickets on queue {self._ticket_queue.queue_name}")
        while True:
            try:
                received = await self.run_once()
            except Exception as e:
                logger.error(f"Error polling queue {self._ticket_queue.queue_name}: {e}")
                received = 0
            if not received:
                await asyncio.sleep(self._poll_interval)


async def _run_worker(settings: Settings, once: bool) -> None:
    credential = create_storage_credential(settings)
    image_functions = create_image_functions(settings)
    ticket_queue = create_ticket_queue(settings, credential)
    worker = TicketWorker(
        image_functions,
        ticket_queue,
        max_dequeue_count=settings.max_dequeue_count,
        poll_interval=settings.queue_poll_interval
    )
    try:
        await ticket_queue.ensure_queue_exists()
        if once:
            received = await worker.run_once()
            logger.info(f"Processed {received} messages")
        else:
            await worker.run()
    finally:
        await ticket_queue.close()
        image_functions.close()
        if credential is not None:
            await credential.close()


def main() -> None:
    """Run the ticket worker."""
    once = "--once" in sys.argv
    settings = Settings.from_env()
    try:
        asyncio.run(_run_worker(settings, once))
    except KeyboardInterrupt:
        logger.info("Worker stopped")


if __name__ == "__main__":
    main()
