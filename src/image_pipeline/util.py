# Copyright (c) Microsoft. All rights reserved.
# Licensed under the MIT license.
# See LICENSE file in the project root for full license information.

import logging
import sys
from typing import Optional

from fastapi import Request
from pydantic import BaseModel, ConfigDict, Field

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_logger(
    name: str,
    log_level: int = logging.INFO,
    log_file_name: Optional[str] = None,
    log_to_console: bool = True
) -> logging.Logger:
    """
    Return a configured logger.

    Handlers are only attached once per logger name, so modules can call this
    at import time without duplicating output.

    :param name: The logger name.
    :param log_level: The logging level.
    :param log_file_name: Optional file to also write the log to.
    :param log_to_console: Whether to log to stdout.
    :return: The logger.
    """
    logger = logging.getLogger(name)
    logger.setLevel(log_level)
    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT)
    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)
    if log_file_name:
        file_handler = logging.FileHandler(log_file_name)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    return logger


def get_base_log_message(class_name: str, method_name: str, request: Optional[Request] = None) -> str:
    """Build the ``[METHOD] Class.method`` prefix used by the function handlers."""
    method = request.method if request is not None else "UTILITY"
    return f"[{method}] {class_name}.{method_name}"


class Ticket(BaseModel):
    """Queue message linking a stored image to the user who uploaded it."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(default=None, alias="UserId")
    image_url: str = Field(alias="ImageUrl")

    def to_message(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)

    @classmethod
    def from_message(cls, content: str) -> "Ticket":
        return cls.model_validate_json(content)


class ImageRecord(BaseModel):
    """Row of the ``Images`` table."""

    model_config = ConfigDict(populate_by_name=True)

    url: str = Field(alias="Url")
    description: str = Field(alias="Description")
    user_id: Optional[str] = Field(default=None, alias="UserId")
