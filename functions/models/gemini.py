# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

import json
import logging
import time
from dataclasses import dataclass
from typing import Optional

from google import genai
from google.genai import errors, types

logger = logging.getLogger(__name__)

MAX_OUTPUT_TOKENS = 8192
UNDERSTAND_TEMPERATURE = 1
IMAGE_TEMPERATURE = 0.5
INPUT_IMAGE_MIME_TYPE = "image/jpeg"

# Fixed Veo generation parameters.
VIDEO_SAMPLE_COUNT = 1
VIDEO_DURATION_SECONDS = 8
VIDEO_RESOLUTION = "720p"
VIDEO_PERSON_GENERATION = "allow_all"
VIDEO_GENERATE_AUDIO = True


class GeminiApiException(Exception):
    """The platform answered with a non-success status."""

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.details = details


class GeminiInvalidResponseException(Exception):
    pass


@dataclass
class InlineImage:
    mime_type: str
    data: bytes


@dataclass
class VideoOperationStatus:
    name: str
    done: bool
    error: Optional[dict] = None
    video_uri: Optional[str] = None


def _raw_error(e: errors.APIError) -> str:
    if e.details:
        return json.dumps(e.details, default=str)
    return str(e)


def _truncate(prompt: str) -> str:
    return (prompt[:200] + "...") if len(prompt) > 200 else prompt


class GeminiClient:
    """
    Thin wrapper around google-genai for the three remote capabilities we use:
    structured image understanding, image regeneration and Veo video jobs.

    Veo is served from a regional endpoint, so video calls may go through a
    second client bound to a different location.
    """

    def __init__(self, client: genai.Client, video_client: genai.Client | None = None):
        self.client = client
        self.video_client = video_client or client

    @classmethod
    def for_vertex(
        cls, project: str, location: str, video_location: str | None = None
    ) -> "GeminiClient":
        client = genai.Client(vertexai=True, project=project, location=location)
        video_client = client
        if video_location and video_location != location:
            video_client = genai.Client(
                vertexai=True, project=project, location=video_location
            )
        return cls(client, video_client)

    def generate_json(self, prompt: str, image_bytes: bytes, model: str) -> str:
        """Calls Gemini with a prompt and an image, asking for JSON text back."""
        start_time = time.time()
        logger.info("Calling %s for JSON, prompt: '%s'", model, _truncate(prompt))
        try:
            response = self.client.models.generate_content(
                model=model,
                contents=[
                    prompt,
                    types.Part.from_bytes(
                        data=image_bytes, mime_type=INPUT_IMAGE_MIME_TYPE
                    ),
                ],
                config=types.GenerateContentConfig(
                    temperature=UNDERSTAND_TEMPERATURE,
                    max_output_tokens=MAX_OUTPUT_TOKENS,
                    thinking_config=types.ThinkingConfig(thinking_budget=0),
                    response_mime_type="application/json",
                ),
            )
        except errors.APIError as e:
            logger.error("Gemini request to %s failed: %s", model, _raw_error(e))
            raise GeminiApiException(
                f"API request failed with status: {e.code}.", details=_raw_error(e)
            ) from e
        logger.info("%s JSON call took: %.2fs", model, time.time() - start_time)
        if not response.text:
            raise GeminiInvalidResponseException(
                f"Could not find valid text in the API response. Response: {response}"
            )
        return response.text

    def generate_image(
        self, prompt: str, image_bytes: bytes, model: str
    ) -> Optional[InlineImage]:
        """
        Asks an image model to redraw the input.

        Returns the first inline image part, or None when the model answered
        with text only.
        """
        start_time = time.time()
        logger.info("Calling %s for image, prompt: '%s'", model, _truncate(prompt))
        try:
            response = self.client.models.generate_content(
                model=model,
                contents=[
                    prompt,
                    types.Part.from_bytes(
                        data=image_bytes, mime_type=INPUT_IMAGE_MIME_TYPE
                    ),
                ],
                config=types.GenerateContentConfig(
                    temperature=IMAGE_TEMPERATURE,
                    max_output_tokens=MAX_OUTPUT_TOKENS,
                    response_modalities=["TEXT", "IMAGE"],
                ),
            )
        except errors.APIError as e:
            logger.error("Gemini request to %s failed: %s", model, _raw_error(e))
            raise GeminiApiException(
                f"API request failed with status: {e.code}.", details=_raw_error(e)
            ) from e
        logger.info("%s image call took: %.2fs", model, time.time() - start_time)

        if not response.candidates:
            return None
        content = response.candidates[0].content
        for part in (content.parts if content and content.parts else []):
            if part.inline_data is not None and part.inline_data.data:
                return InlineImage(
                    mime_type=part.inline_data.mime_type or "image/png",
                    data=part.inline_data.data,
                )
        return None

    def start_video(
        self,
        prompt: str,
        image_bytes: bytes,
        model: str,
        aspect_ratio: str,
        output_gcs_uri: str,
    ) -> str:
        """
        Submits a Veo image-to-video job and returns its operation name.

        Does not wait for the job; callers poll with get_video_operation().
        """
        try:
            operation = self.video_client.models.generate_videos(
                model=model,
                prompt=prompt,
                image=types.Image(
                    image_bytes=image_bytes, mime_type=INPUT_IMAGE_MIME_TYPE
                ),
                config=types.GenerateVideosConfig(
                    aspect_ratio=aspect_ratio,
                    number_of_videos=VIDEO_SAMPLE_COUNT,
                    duration_seconds=VIDEO_DURATION_SECONDS,
                    person_generation=VIDEO_PERSON_GENERATION,
                    generate_audio=VIDEO_GENERATE_AUDIO,
                    resolution=VIDEO_RESOLUTION,
                    output_gcs_uri=output_gcs_uri,
                ),
            )
        except errors.APIError as e:
            logger.error("Veo request to %s failed: %s", model, _raw_error(e))
            raise GeminiApiException(
                f"Predict API request failed with status: {e.code}.",
                details=_raw_error(e),
            ) from e
        if not operation.name:
            raise GeminiInvalidResponseException(
                "Could not get operation name from predict response."
            )
        logger.info("Veo operation started: %s (%s)", operation.name, aspect_ratio)
        return operation.name

    def get_video_operation(self, operation_name: str) -> VideoOperationStatus:
        """Fetches the current state of a Veo job once."""
        try:
            operation = self.video_client.operations.get(
                types.GenerateVideosOperation(name=operation_name)
            )
        except errors.APIError as e:
            logger.error("Polling %s failed: %s", operation_name, _raw_error(e))
            raise GeminiApiException(
                f"Polling for video generation failed: {_raw_error(e)}",
                details=_raw_error(e),
            ) from e

        status = VideoOperationStatus(
            name=operation_name,
            done=bool(operation.done),
            error=operation.error,
        )
        if status.done and not status.error:
            videos = operation.response.generated_videos if operation.response else None
            if videos and videos[0].video:
                status.video_uri = videos[0].video.uri
        return status
