# Copyright (c) Microsoft. All rights reserved.
# Licensed under the MIT license.
# See LICENSE file in the project root for full license information.
import contextlib
import logging
from typing import Optional

import fastapi

from .bootstrap import (
    create_blob_storage_manager,
    create_image_functions,
    create_storage_credential,
    create_ticket_queue,
)
from .config import Settings
from .routes import router
from .util import get_logger

logger = get_logger(
    name="image_pipeline",
    log_level=logging.INFO,
    log_to_console=True
)


def create_app(settings: Optional[Settings] = None) -> fastapi.FastAPI:
    """
    Create the FastAPI application serving ``POST /check/{user_id?}``.

    :param settings: Settings to use; read from the environment if omitted.
    """

    @contextlib.asynccontextmanager
    async def lifespan(app: fastapi.FastAPI):
        app_settings = settings or Settings.from_env()
        credential = create_storage_credential(app_settings)

        image_functions = create_image_functions(app_settings)
        blob_storage_manager = create_blob_storage_manager(app_settings, credential)
        ticket_queue = create_ticket_queue(app_settings, credential)

        try:
            await blob_storage_manager.ensure_container_exists()
            await ticket_queue.ensure_queue_exists()

            app.state.image_functions = image_functions
            app.state.blob_storage_manager = blob_storage_manager
            app.state.ticket_queue = ticket_queue
            logger.info("Image pipeline started")

            yield
        finally:
            await blob_storage_manager.close()
            await ticket_queue.close()
            image_functions.close()
            if credential is not None:
                await credential.close()

    app = fastapi.FastAPI(lifespan=lifespan)

    app.include_router(router)

    return app
