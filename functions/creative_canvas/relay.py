"""
Request orchestration for the creative canvas relay.

Each operation is a short sequence of outbound calls: to the generative
platform, to object storage, or to the metadata store. Blocking SDK calls are
pushed onto worker threads so the event loop keeps serving other requests.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import io
import json
import logging
import re
import secrets
from dataclasses import dataclass
from typing import Any, Awaitable, Optional

from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from creative_canvas.db import CreationRecord, DbClient
from creative_canvas.errors import (
    MissingPayloadError,
    ResponseParseError,
    UpstreamError,
    ValidationError,
)
from creative_canvas.storage import StorageClient
from models import prompts
from models.gemini import (
    GeminiApiException,
    GeminiClient,
    GeminiInvalidResponseException,
)

logger = logging.getLogger(__name__)

WIDE_ASPECT_RATIO = "16:9"
TALL_ASPECT_RATIO = "9:16"
ARTIFACT_CONTENT_TYPE = "image/png"
DRAWING_ARTIFACT = "drawing.png"
IMAGE_ARTIFACT = "image.png"

_JSON_FENCE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL)
# Creation ids become one path segment; anything else could widen a delete prefix.
_CREATION_ID = re.compile(r"^[A-Za-z0-9_-]+$")


@dataclass(frozen=True)
class User:
    id: str
    email: str


class Understanding(BaseModel):
    image_prompt: str
    video_prompt: str
    cn_description: str
    cn_style: str


def new_creation_id() -> str:
    return secrets.token_hex(3)


def aspect_ratio_for(image_bytes: bytes) -> str:
    """Landscape images get the wide ratio; square and portrait get the tall one."""
    with Image.open(io.BytesIO(image_bytes)) as image:
        width, height = image.size
    return WIDE_ASPECT_RATIO if width > height else TALL_ASPECT_RATIO


def parse_understanding(text: str) -> dict:
    """
    Parses the understanding model's answer, tolerating a markdown code fence.

    Raises ResponseParseError with the raw text when the answer is not the
    expected JSON object.
    """
    match = _JSON_FENCE.match(text)
    json_text = match.group(1) if match else text
    try:
        return Understanding.model_validate(json.loads(json_text)).model_dump()
    except (json.JSONDecodeError, PydanticValidationError) as e:
        logger.error("Error parsing JSON from Gemini response: %s Raw text: %s", e, text)
        raise ResponseParseError(
            "Failed to parse response from AI", details=text
        ) from e


def decode_image(data: str, field: str) -> bytes:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"{field} must be base64 encoded") from e


def is_valid_creation_id(creation_id: Any) -> bool:
    return isinstance(creation_id, str) and bool(_CREATION_ID.match(creation_id))


async def settle(*aws: Awaitable[Any]) -> list[Any]:
    """
    Runs the awaitables concurrently and waits for all of them to finish.

    If any failed, the first failure (in argument order) is raised once the
    whole group has settled.
    """
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results


class CreativeRelay:
    """Orchestrates understanding, image/video generation and creation bookkeeping."""

    def __init__(
        self,
        *,
        gemini: GeminiClient,
        storage: StorageClient,
        db: DbClient,
        storage_prefix: str,
        understand_model: str,
        image_model: str,
        video_model: str,
        signed_url_ttl_seconds: int = 15 * 60,
    ):
        self.gemini = gemini
        self.storage = storage
        self.db = db
        self.storage_prefix = storage_prefix
        self.understand_model = understand_model
        self.image_model = image_model
        self.video_model = video_model
        self.signed_url_ttl_seconds = signed_url_ttl_seconds

    # Paths

    def creation_prefix(self, user_id: str, creation_id: str) -> str:
        return f"{self.storage_prefix}/{user_id}/{creation_id}/"

    def artifact_path(self, user_id: str, creation_id: str, artifact: str) -> str:
        return f"{self.creation_prefix(user_id, creation_id)}{artifact}"

    # Understanding

    async def understand(
        self,
        image_data: Optional[str],
        style: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> dict:
        if not image_data:
            raise ValidationError("imageData is required")
        image_bytes = decode_image(image_data, "imageData")
        prompt = prompts.make_understand_prompt(style, notes)
        try:
            text = await asyncio.to_thread(
                self.gemini.generate_json, prompt, image_bytes, self.understand_model
            )
        except GeminiApiException as e:
            raise UpstreamError("Failed to call Vertex AI API", details=e.details) from e
        except GeminiInvalidResponseException as e:
            raise MissingPayloadError("Failed to call Vertex AI API", details=str(e)) from e
        return parse_understanding(text)

    # Image regeneration

    async def generate_image(
        self,
        image_data: Optional[str],
        prompt: Optional[str] = None,
        model: Optional[str] = None,
    ) -> dict:
        if not image_data:
            raise ValidationError("imageData is required")
        image_bytes = decode_image(image_data, "imageData")
        model_to_use = model or self.image_model
        try:
            image = await asyncio.to_thread(
                self.gemini.generate_image,
                prompt or prompts.GENERATE_IMAGE_PROMPT,
                image_bytes,
                model_to_use,
            )
        except GeminiApiException as e:
            raise UpstreamError("Failed to generate image", details=e.details) from e
        if image is None:
            raise MissingPayloadError(
                "Failed to generate image",
                details=f"Could not find valid image data in the {model_to_use} response.",
            )
        return {
            "parts": [
                {
                    "inlineData": {
                        "mimeType": image.mime_type,
                        "data": base64.b64encode(image.data).decode("ascii"),
                    }
                }
            ]
        }

    # Persistence

    async def save_creation(
        self,
        user: User,
        drawing_data: Optional[str],
        generated_data: Optional[str],
        prompt: Optional[str] = None,
        cn_description: Optional[str] = None,
        cn_style: Optional[str] = None,
    ) -> str:
        if not drawing_data or not generated_data:
            raise ValidationError("drawingData and generatedData are required.")
        drawing_bytes = decode_image(drawing_data, "drawingData")
        generated_bytes = decode_image(generated_data, "generatedData")

        # TODO: uploads are not rolled back when the metadata write fails.
        creation_id = new_creation_id()
        drawing_url, image_url = await settle(
            asyncio.to_thread(
                self.storage.upload_bytes,
                self.artifact_path(user.id, creation_id, DRAWING_ARTIFACT),
                drawing_bytes,
                ARTIFACT_CONTENT_TYPE,
            ),
            asyncio.to_thread(
                self.storage.upload_bytes,
                self.artifact_path(user.id, creation_id, IMAGE_ARTIFACT),
                generated_bytes,
                ARTIFACT_CONTENT_TYPE,
            ),
        )
        record = CreationRecord(
            creation_id=creation_id,
            user_id=user.id,
            drawing_url=drawing_url,
            image_url=image_url,
            image_prompt=prompt or prompts.GENERATE_IMAGE_PROMPT,
            cn_description=cn_description or None,
            cn_style=cn_style or None,
        )
        await asyncio.to_thread(self.db.save_creation, record)
        logger.info("Saved creation %s for user %s", creation_id, user.id)
        return creation_id

    # Video job lifecycle

    async def start_video(
        self,
        user: User,
        image_data: Optional[str],
        creation_id: Optional[str],
        prompt: Optional[str] = None,
        model: Optional[str] = None,
    ) -> str:
        if not image_data or not creation_id:
            raise ValidationError("imageData and creationId are required")
        if not is_valid_creation_id(creation_id):
            raise ValidationError("creationId is malformed")
        image_bytes = decode_image(image_data, "imageData")
        try:
            aspect_ratio = aspect_ratio_for(image_bytes)
        except UnidentifiedImageError as e:
            raise ValidationError("imageData is not a readable image") from e

        output_uri = self.storage.uri_for(self.creation_prefix(user.id, creation_id))
        try:
            return await asyncio.to_thread(
                self.gemini.start_video,
                prompt or prompts.GENERATE_VIDEO_PROMPT,
                image_bytes,
                model or self.video_model,
                aspect_ratio,
                output_uri,
            )
        except GeminiApiException as e:
            raise UpstreamError(
                "Failed to start Video Generation API job", details=e.details
            ) from e
        except GeminiInvalidResponseException as e:
            raise UpstreamError(
                "Failed to start Video Generation API job", details=str(e)
            ) from e

    async def video_status(
        self,
        user: User,
        operation_name: Optional[str],
        creation_id: Optional[str],
        prompt: Optional[str] = None,
    ) -> dict:
        if not operation_name or not creation_id:
            raise ValidationError("operationName and creationId are required")
        if not is_valid_creation_id(creation_id):
            raise ValidationError("creationId is malformed")
        try:
            status = await asyncio.to_thread(
                self.gemini.get_video_operation, operation_name
            )
        except GeminiApiException as e:
            raise UpstreamError("Failed to check video status", details=e.details) from e

        if not status.done:
            return {"status": "processing"}
        if status.error:
            raise UpstreamError(
                "Failed to check video status",
                details=(
                    "Video generation completed with an error: "
                    f"{json.dumps(status.error, default=str)}"
                ),
            )
        if not status.video_uri:
            raise MissingPayloadError(
                "Failed to check video status",
                details="No GCS URI found in the successful video generation response.",
            )

        await asyncio.to_thread(
            self.db.update_creation_video,
            user.id,
            creation_id,
            status.video_uri,
            prompt or prompts.GENERATE_VIDEO_PROMPT,
        )
        video_url = await asyncio.to_thread(
            self.storage.sign_url, status.video_uri, self.signed_url_ttl_seconds
        )
        logger.info("Video for creation %s completed: %s", creation_id, status.video_uri)
        return {"status": "completed", "videoUrl": video_url}

    # Users and listings

    async def get_user(self, user: User) -> dict:
        existing = await asyncio.to_thread(self.db.get_user, user.id)
        if existing is None:
            await asyncio.to_thread(self.db.create_user, user.id, user.email)
            logger.info("Provisioned user record for %s", user.id)
        return {"email": user.email, "id": user.id}

    async def _sign_optional(self, uri: Optional[str]) -> Optional[str]:
        if not uri:
            return None
        return await asyncio.to_thread(
            self.storage.sign_url, uri, self.signed_url_ttl_seconds
        )

    async def _describe(self, record: CreationRecord) -> dict:
        drawing_url, image_url, video_url = await settle(
            self._sign_optional(record.drawing_url),
            self._sign_optional(record.image_url),
            self._sign_optional(record.video_url),
        )
        return {
            "id": record.creation_id,
            "timestamp": record.timestamp,
            "drawingUrl": drawing_url,
            "imageUrl": image_url,
            "videoUrl": video_url,
        }

    async def list_creations(self, user: User) -> list[dict]:
        records = await asyncio.to_thread(self.db.list_creations, user.id)
        return await settle(*(self._describe(record) for record in records))

    async def _delete_one(self, user: User, creation_id: str) -> None:
        await settle(
            asyncio.to_thread(
                self.storage.delete_prefix, self.creation_prefix(user.id, creation_id)
            ),
            asyncio.to_thread(self.db.delete_creation, user.id, creation_id),
        )

    async def delete_creations(self, user: User, creation_ids: Any) -> int:
        if (
            not isinstance(creation_ids, list)
            or not creation_ids
            or not all(is_valid_creation_id(cid) for cid in creation_ids)
        ):
            raise ValidationError("creationIds must be a non-empty array.")
        await settle(*(self._delete_one(user, cid) for cid in creation_ids))
        logger.info("Deleted %d creation(s) for user %s", len(creation_ids), user.id)
        return len(creation_ids)
