# tests/conftest.py
from __future__ import annotations

from types import SimpleNamespace
from typing import List, Optional
from unittest.mock import MagicMock

import pytest
from sqlalchemy import text
from sqlalchemy.pool import NullPool

from image_pipeline.connection_factory import SqlConnectionFactory, create_schema
from image_pipeline.functions import ImageFunctions
from image_pipeline.util import Ticket


class RecordingConnectionFactory(SqlConnectionFactory):
    """SQLite-backed factory that records the connections it hands out."""

    def __init__(self, connection_string: str) -> None:
        # NullPool: every connection is a fresh sqlite connection, safe across threads.
        super().__init__(connection_string, poolclass=NullPool)
        self.connections: list = []

    @property
    def connections_created(self) -> int:
        return len(self.connections)

    def create_connection(self):
        connection = super().create_connection()
        self.connections.append(connection)
        return connection

    def fetch_all(self, query: str) -> list:
        with super().create_connection() as connection:
            return [tuple(row) for row in connection.execute(text(query))]


class FakeBlobStorageManager:
    def __init__(self) -> None:
        self.uploads: List[bytes] = []
        self.content_types: List[Optional[str]] = []

    async def upload_image(self, content: bytes, content_type: Optional[str] = None) -> str:
        self.uploads.append(content)
        self.content_types.append(content_type)
        return f"https://account.blob.core.windows.net/images/image-{len(self.uploads)}"


class FakeTicketQueue:
    queue_name = "description-tickets"

    def __init__(self, messages: Optional[list] = None) -> None:
        self.sent: List[Ticket] = []
        self.messages = list(messages or [])
        self.deleted: list = []
        self.poisoned: list = []

    async def send_ticket(self, ticket: Ticket) -> None:
        self.sent.append(ticket)

    async def receive_messages(self, max_messages: int = 16, visibility_timeout=None):
        pending, self.messages = self.messages[:max_messages], self.messages[max_messages:]
        for message in pending:
            yield message

    async def delete_message(self, message) -> None:
        self.deleted.append(message)

    async def move_to_poison(self, message) -> None:
        self.poisoned.append(message)


def make_message(content: str, message_id: str = "msg-1", dequeue_count: int = 1) -> SimpleNamespace:
    return SimpleNamespace(id=message_id, content=content, dequeue_count=dequeue_count)


@pytest.fixture
def connection_factory(tmp_path) -> RecordingConnectionFactory:
    factory = RecordingConnectionFactory(f"sqlite:///{tmp_path / 'images.db'}")
    create_schema(factory)
    with factory.create_connection() as connection:
        connection.execute(
            text("INSERT INTO Users (Id, LockoutEnabled) VALUES (:id, 0)"),
            [{"id": "alice123"}, {"id": "bob"}]
        )
        connection.commit()
    factory.connections.clear()
    yield factory
    factory.dispose()


@pytest.fixture
def vision_client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def image_functions(vision_client, connection_factory) -> ImageFunctions:
    return ImageFunctions(vision_client, connection_factory)


@pytest.fixture
def blob_storage_manager() -> FakeBlobStorageManager:
    return FakeBlobStorageManager()


@pytest.fixture
def ticket_queue() -> FakeTicketQueue:
    return FakeTicketQueue()
