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


import unittest
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from google.genai import errors

from models import gemini


def quota_error():
    return errors.ClientError(
        429,
        {
            "error": {
                "code": 429,
                "message": "Resource exhausted for aiplatform",
                "status": "RESOURCE_EXHAUSTED",
            }
        },
    )


class GeminiClientTest(unittest.TestCase):

    def setUp(self):
        self.genai_client = MagicMock()
        self.video_client = MagicMock()
        self.client = gemini.GeminiClient(self.genai_client, self.video_client)

    def test_generate_json_requests_json_output(self):
        self.genai_client.models.generate_content.return_value = SimpleNamespace(
            text='{"a": 1}'
        )

        text = self.client.generate_json("describe", b"jpeg", "gemini-2.5-flash-lite")

        self.assertEqual(text, '{"a": 1}')
        kwargs = self.genai_client.models.generate_content.call_args.kwargs
        self.assertEqual(kwargs["model"], "gemini-2.5-flash-lite")
        self.assertEqual(kwargs["contents"][0], "describe")
        self.assertEqual(kwargs["config"].response_mime_type, "application/json")
        self.assertEqual(kwargs["config"].thinking_config.thinking_budget, 0)

    def test_generate_json_without_text(self):
        self.genai_client.models.generate_content.return_value = SimpleNamespace(
            text=None
        )
        with self.assertRaises(gemini.GeminiInvalidResponseException):
            self.client.generate_json("describe", b"jpeg", "m")

    def test_api_errors_keep_raw_body(self):
        self.genai_client.models.generate_content.side_effect = quota_error()

        with self.assertRaises(gemini.GeminiApiException) as ctx:
            self.client.generate_json("describe", b"jpeg", "m")

        self.assertIn("Resource exhausted for aiplatform", ctx.exception.details)

    def test_generate_image_returns_first_inline_part(self):
        text_part = SimpleNamespace(text="Here you go", inline_data=None)
        image_part = SimpleNamespace(
            inline_data=SimpleNamespace(mime_type="image/png", data=b"png-bytes")
        )
        second_image = SimpleNamespace(
            inline_data=SimpleNamespace(mime_type="image/png", data=b"other")
        )
        self.genai_client.models.generate_content.return_value = SimpleNamespace(
            candidates=[
                SimpleNamespace(
                    content=SimpleNamespace(parts=[text_part, image_part, second_image])
                )
            ]
        )

        image = self.client.generate_image("redraw", b"jpeg", "gemini-3-pro-image-preview")

        self.assertEqual(image, gemini.InlineImage(mime_type="image/png", data=b"png-bytes"))
        config = self.genai_client.models.generate_content.call_args.kwargs["config"]
        self.assertEqual(config.response_modalities, ["TEXT", "IMAGE"])

    def test_generate_image_text_only_is_none(self):
        self.genai_client.models.generate_content.return_value = SimpleNamespace(
            candidates=[
                SimpleNamespace(
                    content=SimpleNamespace(
                        parts=[SimpleNamespace(text="no image", inline_data=None)]
                    )
                )
            ]
        )
        self.assertIsNone(self.client.generate_image("redraw", b"jpeg", "m"))

    def test_start_video_uses_fixed_parameters(self):
        self.video_client.models.generate_videos.return_value = SimpleNamespace(
            name="projects/p/locations/us-central1/operations/123"
        )

        name = self.client.start_video(
            "animate", b"jpeg", "veo-3.1-generate-001", "9:16", "gs://b/prefix/u/c1/"
        )

        self.assertEqual(name, "projects/p/locations/us-central1/operations/123")
        self.genai_client.models.generate_videos.assert_not_called()
        kwargs = self.video_client.models.generate_videos.call_args.kwargs
        config = kwargs["config"]
        self.assertEqual(kwargs["model"], "veo-3.1-generate-001")
        self.assertEqual(config.aspect_ratio, "9:16")
        self.assertEqual(config.duration_seconds, 8)
        self.assertEqual(config.resolution, "720p")
        self.assertEqual(config.output_gcs_uri, "gs://b/prefix/u/c1/")

    def test_start_video_without_operation_name(self):
        self.video_client.models.generate_videos.return_value = SimpleNamespace(name=None)
        with self.assertRaises(gemini.GeminiInvalidResponseException):
            self.client.start_video("animate", b"jpeg", "m", "16:9", "gs://b/p/")

    def test_video_operation_pending(self):
        self.video_client.operations.get.return_value = SimpleNamespace(
            done=None, error=None, response=None
        )
        status = self.client.get_video_operation("op-1")
        self.assertFalse(status.done)
        self.assertIsNone(status.video_uri)

    def test_video_operation_completed(self):
        video = SimpleNamespace(video=SimpleNamespace(uri="gs://b/u/c1/sample_0.mp4"))
        self.video_client.operations.get.return_value = SimpleNamespace(
            done=True,
            error=None,
            response=SimpleNamespace(generated_videos=[video]),
        )

        status = self.client.get_video_operation("op-1")

        self.assertTrue(status.done)
        self.assertEqual(status.video_uri, "gs://b/u/c1/sample_0.mp4")
        polled = self.video_client.operations.get.call_args.args[0]
        self.assertEqual(polled.name, "op-1")

    def test_video_operation_failed(self):
        self.video_client.operations.get.return_value = SimpleNamespace(
            done=True, error={"code": 3, "message": "blocked"}, response=None
        )
        status = self.client.get_video_operation("op-1")
        self.assertEqual(status.error, {"code": 3, "message": "blocked"})
        self.assertIsNone(status.video_uri)

    def test_polling_errors_keep_raw_body(self):
        self.video_client.operations.get.side_effect = quota_error()
        with self.assertRaises(gemini.GeminiApiException) as ctx:
            self.client.get_video_operation("op-1")
        self.assertIn("Resource exhausted", ctx.exception.details)

    @patch("models.gemini.genai.Client")
    def test_for_vertex_uses_regional_client_for_video(self, client_cls):
        global_client, regional_client = MagicMock(), MagicMock()
        client_cls.side_effect = [global_client, regional_client]

        client = gemini.GeminiClient.for_vertex("hxhdemo", "global", "us-central1")

        self.assertEqual(client_cls.call_count, 2)
        client_cls.assert_any_call(vertexai=True, project="hxhdemo", location="global")
        client_cls.assert_any_call(
            vertexai=True, project="hxhdemo", location="us-central1"
        )
        self.assertIs(client.client, global_client)
        self.assertIs(client.video_client, regional_client)


if __name__ == "__main__":
    unittest.main()
