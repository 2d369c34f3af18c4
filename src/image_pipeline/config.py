# Copyright (c) Microsoft. All rights reserved.
# Licensed under the MIT license.
# See LICENSE file in the project root for full license information.

"""Settings resolved once at process startup."""

import logging
import os
from pathlib import Path
from typing import Optional

from azure.identity import DefaultAzureCredential
from azure.keyvault.secrets import SecretClient
from dotenv import load_dotenv
from pydantic import BaseModel

from .util import get_logger

logger = get_logger(
    name="config",
    log_level=logging.INFO,
    log_to_console=True
)

TRUE_VALUES = {"1", "true", "yes", "on"}


def _get_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in TRUE_VALUES


def get_keyvault_secret(keyvault_endpoint: str, secret_name: str) -> Optional[str]:
    """
    Read a secret from Azure Key Vault.

    :param keyvault_endpoint: The vault URL.
    :param secret_name: Name of the secret in the vault.
    :return: The secret value, or None if it could not be read.
    """
    credential = DefaultAzureCredential()
    try:
        secret_client = SecretClient(vault_url=keyvault_endpoint, credential=credential)
        return secret_client.get_secret(secret_name).value
    except Exception as e:
        logger.error(f"Error reading secret '{secret_name}' from Key Vault: {e}")
        return None
    finally:
        credential.close()


class Settings(BaseModel):
    """Configuration of the HTTP function and the queue worker."""

    vision_endpoint: str
    vision_key: str
    database_url: str
    storage_connection_string: Optional[str] = None
    storage_account_url: Optional[str] = None
    storage_queue_url: Optional[str] = None
    images_container: str = "images"
    description_queue: str = "description-tickets"
    fail_open_on_analysis_error: bool = True
    max_dequeue_count: int = 5
    queue_poll_interval: float = 2.0

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "Settings":
        """
        Build settings from environment variables.

        A ``.env`` file is loaded first when present. ``VISION_KEY`` falls back to
        the ``vision-key`` secret in ``KEYVAULT_ENDPOINT`` when unset.

        :raises: ValueError if required variables are missing.
        """
        if env_file is None:
            env_file = Path.cwd() / ".env"
        if env_file.exists():
            load_dotenv(env_file)

        vision_key = os.getenv("VISION_KEY")
        keyvault_endpoint = os.getenv("KEYVAULT_ENDPOINT")
        if not vision_key and keyvault_endpoint:
            vision_key = get_keyvault_secret(keyvault_endpoint, "vision-key")

        storage_connection_string = os.getenv("AZURE_STORAGE_CONNECTION_STRING")
        storage_account_url = os.getenv("AZURE_STORAGE_ACCOUNT_URL")
        storage_queue_url = os.getenv("AZURE_STORAGE_QUEUE_URL")

        required = {
            "VISION_ENDPOINT": os.getenv("VISION_ENDPOINT"),
            "VISION_KEY": vision_key,
            "DATABASE_URL": os.getenv("DATABASE_URL"),
        }
        missing = [name for name, value in required.items() if not value]
        if not storage_connection_string and not (storage_account_url and storage_queue_url):
            missing.append("AZURE_STORAGE_CONNECTION_STRING (or AZURE_STORAGE_ACCOUNT_URL and AZURE_STORAGE_QUEUE_URL)")
        if missing:
            raise ValueError(f"Missing required environment variables: {', '.join(missing)}")

        return cls(
            vision_endpoint=required["VISION_ENDPOINT"],
            vision_key=vision_key,
            database_url=required["DATABASE_URL"],
            storage_connection_string=storage_connection_string,
            storage_account_url=storage_account_url,
            storage_queue_url=storage_queue_url,
            images_container=os.getenv("IMAGES_CONTAINER", "images"),
            description_queue=os.getenv("DESCRIPTION_QUEUE", "description-tickets"),
            fail_open_on_analysis_error=_get_bool("FAIL_OPEN_ON_ANALYSIS_ERROR", True),
            max_dequeue_count=int(os.getenv("MAX_DEQUEUE_COUNT", "5")),
            queue_poll_interval=float(os.getenv("QUEUE_POLL_INTERVAL", "2.0")),
        )
