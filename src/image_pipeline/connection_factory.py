# Copyright (c) Microsoft. All rights reserved.
# Licensed under the MIT license.
# See LICENSE file in the project root for full license information.

"""Database connection providers."""

import logging
from abc import ABC, abstractmethod
from typing import Any

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine

from .util import get_logger

logger = get_logger(
    name="connection_factory",
    log_level=logging.INFO,
    log_to_console=True
)

# Minimal schema for local development (SQLite, PostgreSQL); production tables are owned elsewhere.
SCHEMA_STATEMENTS = (
    "CREATE TABLE IF NOT EXISTS Users ("
    "Id VARCHAR(450) NOT NULL PRIMARY KEY, "
    "LockoutEnabled BOOLEAN NOT NULL DEFAULT FALSE)",
    "CREATE TABLE IF NOT EXISTS Images ("
    "Url VARCHAR(2048) NOT NULL, "
    "Description TEXT NOT NULL, "
    "UserId VARCHAR(450) NULL)",
)


class ConnectionFactory(ABC):
    """Creates a new database connection for every unit of work."""

    @abstractmethod
    def create_connection(self) -> Connection:
        ...

    def dispose(self) -> None:
        """Release any resources held by the factory."""


class SqlConnectionFactory(ConnectionFactory):
    """
    Connection factory backed by a SQLAlchemy engine.

    The engine is created once from the connection string; pooling is left
    to SQLAlchemy.

    :param connection_string: SQLAlchemy database URL,
                              e.g. ``mssql+pyodbc://...`` or ``sqlite:///images.db``.
    :param engine_options: Extra keyword arguments for ``create_engine``.
    """

    def __init__(self, connection_string: str, **engine_options: Any) -> None:
        self._engine: Engine = create_engine(connection_string, **engine_options)

    def create_connection(self) -> Connection:
        return self._engine.connect()

    def dispose(self) -> None:
        """Release pooled connections."""
        self._engine.dispose()


def create_schema(connection_factory: ConnectionFactory) -> None:
    """Create the ``Users`` and ``Images`` tables if they are missing."""
    with connection_factory.create_connection() as connection:
        for statement in SCHEMA_STATEMENTS:
            connection.execute(text(statement))
        connection.commit()
    logger.info("Ensured Users and Images tables exist")
