# Copyright (c) Microsoft. All rights reserved.
# Licensed under the MIT license.
# See LICENSE file in the project root for full license information.
from typing import Optional

import fastapi
from fastapi import Depends, Request, Response
from starlette.convertors import Convertor, register_url_convertor

from .blob_storage_manager import BlobStorageManager
from .functions import ImageFunctions
from .ticket_queue import TicketQueue


class AlphaConvertor(Convertor):
    """Path convertor matching alphabetic segments only."""

    regex = "[A-Za-z]+"

    def convert(self, value: str) -> str:
        return value

    def to_string(self, value: str) -> str:
        return value


# Must be registered before any route below is compiled.
register_url_convertor("alpha", AlphaConvertor())

router = fastapi.APIRouter()


# Accessors to get app state
def get_image_functions(request: Request) -> ImageFunctions:
    return request.app.state.image_functions


def get_ticket_queue(request: Request) -> TicketQueue:
    return request.app.state.ticket_queue


def get_blob_storage_manager(request: Request) -> BlobStorageManager:
    return request.app.state.blob_storage_manager


async def _check_image(
    request: Request,
    user_id: Optional[str],
    image_functions: ImageFunctions,
    ticket_queue: TicketQueue,
    blob_storage_manager: BlobStorageManager
) -> Response:
    image = await request.body()
    return await image_functions.check_image_for_inappropriate_content(
        image,
        user_id,
        ticket_queue=ticket_queue,
        blob_storage_manager=blob_storage_manager,
        request=request,
        content_type=request.headers.get("content-type")
    )


@router.post("/check")
async def check_anonymous_image(
    request: Request,
    image_functions: ImageFunctions = Depends(get_image_functions),
    ticket_queue: TicketQueue = Depends(get_ticket_queue),
    blob_storage_manager: BlobStorageManager = Depends(get_blob_storage_manager)
) -> Response:
    return await _check_image(request, None, image_functions, ticket_queue, blob_storage_manager)


@router.post("/check/{user_id:alpha}")
async def check_user_image(
    request: Request,
    user_id: str,
    image_functions: ImageFunctions = Depends(get_image_functions),
    ticket_queue: TicketQueue = Depends(get_ticket_queue),
    blob_storage_manager: BlobStorageManager = Depends(get_blob_storage_manager)
) -> Response:
    return await _check_image(request, user_id, image_functions, ticket_queue, blob_storage_manager)


@router.get("/health")
async def health() -> dict:
    return {"status": "ok"}
