"""
HTTP routes for the creative canvas relay.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from creative_canvas.dependencies import get_current_user, get_relay
from creative_canvas.errors import reported_as
from creative_canvas.relay import CreativeRelay, User
from creative_canvas.schemas import (
    CreationSummary,
    DeleteCreationsRequest,
    ErrorResponse,
    GenerateRequest,
    GenerateResponse,
    GenerateVideoRequest,
    GenerateVideoResponse,
    MessageResponse,
    SaveCreationRequest,
    SaveCreationResponse,
    UnderstandRequest,
    UnderstandResponse,
    UserResponse,
    VideoStatusRequest,
    VideoStatusResponse,
)

logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}

router = APIRouter(responses=ERROR_RESPONSES)


@router.post("/understand", response_model=UnderstandResponse)
async def understand(
    payload: UnderstandRequest, relay: CreativeRelay = Depends(get_relay)
):
    with reported_as("Failed to call Vertex AI API"):
        return await relay.understand(payload.imageData, payload.style, payload.notes)


@router.post("/generate", response_model=GenerateResponse)
async def generate(
    payload: GenerateRequest, relay: CreativeRelay = Depends(get_relay)
):
    with reported_as("Failed to generate image"):
        return await relay.generate_image(
            payload.imageData, payload.prompt, payload.model
        )


@router.post("/save-creation", response_model=SaveCreationResponse, status_code=201)
async def save_creation(
    payload: SaveCreationRequest,
    relay: CreativeRelay = Depends(get_relay),
    user: User = Depends(get_current_user),
):
    with reported_as("Failed to save creation."):
        creation_id = await relay.save_creation(
            user,
            payload.drawingData,
            payload.generatedData,
            prompt=payload.prompt,
            cn_description=payload.cn_description,
            cn_style=payload.cn_style,
        )
    return SaveCreationResponse(
        creationId=creation_id, message="Creation saved successfully."
    )


@router.post("/generate-video", response_model=GenerateVideoResponse)
async def generate_video(
    payload: GenerateVideoRequest,
    relay: CreativeRelay = Depends(get_relay),
    user: User = Depends(get_current_user),
):
    """
    Start a video job and hand the operation name back immediately.
    The client polls /video-status with it.
    """
    with reported_as("Failed to start Video Generation API job"):
        operation_name = await relay.start_video(
            user,
            payload.imageData,
            payload.creationId,
            prompt=payload.prompt,
            model=payload.model,
        )
    return GenerateVideoResponse(operationName=operation_name)


@router.post(
    "/video-status",
    response_model=VideoStatusResponse,
    response_model_exclude_none=True,
    responses={404: {"model": ErrorResponse}},
)
async def video_status(
    payload: VideoStatusRequest,
    relay: CreativeRelay = Depends(get_relay),
    user: User = Depends(get_current_user),
):
    with reported_as("Failed to check video status"):
        return await relay.video_status(
            user, payload.operationName, payload.creationId, prompt=payload.prompt
        )


@router.get("/user", response_model=UserResponse)
async def current_user(
    relay: CreativeRelay = Depends(get_relay),
    user: User = Depends(get_current_user),
):
    with reported_as("Failed to process user information"):
        return await relay.get_user(user)


@router.get("/creations", response_model=list[CreationSummary])
async def list_creations(
    relay: CreativeRelay = Depends(get_relay),
    user: User = Depends(get_current_user),
):
    with reported_as("Failed to fetch creations"):
        return await relay.list_creations(user)


@router.delete("/creations", response_model=MessageResponse)
async def delete_creations(
    payload: DeleteCreationsRequest,
    relay: CreativeRelay = Depends(get_relay),
    user: User = Depends(get_current_user),
):
    with reported_as("An error occurred while deleting creations."):
        deleted = await relay.delete_creations(user, payload.creationIds)
    return MessageResponse(message=f"{deleted} creation(s) deleted successfully.")
