"""
Pydantic schemas for the relay API.

Request fields the relay requires are still declared Optional here so a
missing field reaches the relay and is reported as a 400 with our own message.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel


class UnderstandRequest(BaseModel):
    imageData: Optional[str] = None
    style: Optional[str] = None
    notes: Optional[str] = None


class UnderstandResponse(BaseModel):
    image_prompt: str
    video_prompt: str
    cn_description: str
    cn_style: str


class GenerateRequest(BaseModel):
    imageData: Optional[str] = None
    prompt: Optional[str] = None
    model: Optional[str] = None


class InlineData(BaseModel):
    mimeType: str
    data: str


class ImagePart(BaseModel):
    inlineData: InlineData


class GenerateResponse(BaseModel):
    parts: list[ImagePart]


class SaveCreationRequest(BaseModel):
    drawingData: Optional[str] = None
    generatedData: Optional[str] = None
    prompt: Optional[str] = None
    cn_description: Optional[str] = None
    cn_style: Optional[str] = None


class SaveCreationResponse(BaseModel):
    creationId: str
    message: str


class GenerateVideoRequest(BaseModel):
    imageData: Optional[str] = None
    prompt: Optional[str] = None
    creationId: Optional[str] = None
    model: Optional[str] = None


class GenerateVideoResponse(BaseModel):
    operationName: str


class VideoStatusRequest(BaseModel):
    operationName: Optional[str] = None
    creationId: Optional[str] = None
    prompt: Optional[str] = None


class VideoStatusResponse(BaseModel):
    status: Literal["processing", "completed"]
    videoUrl: Optional[str] = None


class UserResponse(BaseModel):
    email: str
    id: str


class CreationSummary(BaseModel):
    id: str
    timestamp: Optional[datetime] = None
    drawingUrl: Optional[str] = None
    imageUrl: Optional[str] = None
    videoUrl: Optional[str] = None


class DeleteCreationsRequest(BaseModel):
    # Shape is checked by the relay so malformed lists get the same 400 body.
    creationIds: Any = None


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: str
    details: Optional[Any] = None
