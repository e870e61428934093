import asyncio
import io
import unittest

from PIL import Image

from creative_canvas.errors import ResponseParseError
from creative_canvas.relay import (
    TALL_ASPECT_RATIO,
    WIDE_ASPECT_RATIO,
    CreativeRelay,
    aspect_ratio_for,
    new_creation_id,
    parse_understanding,
    settle,
)
from creative_canvas.storage import InMemoryStorageClient
from models import prompts


def make_png(width: int, height: int) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color="white").save(buffer, format="PNG")
    return buffer.getvalue()


UNDERSTANDING_JSON = (
    '{"image_prompt": "a cat in watercolor", "video_prompt": "the cat waves",'
    ' "cn_description": "一只猫", "cn_style": "水彩风格"}'
)


class AspectRatioTests(unittest.TestCase):
    def test_landscape_is_wide(self):
        self.assertEqual(aspect_ratio_for(make_png(640, 480)), WIDE_ASPECT_RATIO)

    def test_portrait_is_tall(self):
        self.assertEqual(aspect_ratio_for(make_png(480, 640)), TALL_ASPECT_RATIO)

    def test_square_is_tall(self):
        self.assertEqual(aspect_ratio_for(make_png(512, 512)), TALL_ASPECT_RATIO)


class UnderstandPromptTests(unittest.TestCase):
    def test_no_style_or_notes_uses_base_instruction(self):
        self.assertEqual(prompts.make_understand_prompt(), prompts.UNDERSTAND_PROMPT)

    def test_auto_style_adds_no_clause(self):
        prompt = prompts.make_understand_prompt(style=prompts.AUTO_STYLE)
        self.assertNotIn("User only accepts this style", prompt)

    def test_style_clause_precedes_instruction(self):
        prompt = prompts.make_understand_prompt(style="watercolor")
        self.assertTrue(
            prompt.startswith("User only accepts this style: watercolor\n\n")
        )
        self.assertIn(prompts.UNDERSTAND_PROMPT, prompt)

    def test_notes_appended_verbatim(self):
        notes = "make the sky purple, keep the dog"
        prompt = prompts.make_understand_prompt(notes=notes)
        self.assertTrue(prompt.startswith(prompts.UNDERSTAND_PROMPT))
        self.assertTrue(prompt.endswith(notes))
        self.assertGreater(prompt.index(notes), len(prompts.UNDERSTAND_PROMPT) - 1)


class ParseUnderstandingTests(unittest.TestCase):
    def test_fenced_and_unfenced_parse_identically(self):
        fenced = f"```json\n{UNDERSTANDING_JSON}\n```"
        self.assertEqual(
            parse_understanding(fenced), parse_understanding(UNDERSTANDING_JSON)
        )

    def test_bare_fence_is_tolerated(self):
        parsed = parse_understanding(f"```\n{UNDERSTANDING_JSON}\n```")
        self.assertEqual(parsed["cn_style"], "水彩风格")

    def test_invalid_json_keeps_raw_text(self):
        with self.assertRaises(ResponseParseError) as ctx:
            parse_understanding("Sorry, I cannot help with that.")
        self.assertEqual(ctx.exception.details, "Sorry, I cannot help with that.")
        self.assertEqual(ctx.exception.status_code, 500)

    def test_missing_keys_is_a_parse_error(self):
        raw = '{"image_prompt": "only this"}'
        with self.assertRaises(ResponseParseError) as ctx:
            parse_understanding(raw)
        self.assertEqual(ctx.exception.details, raw)


class SettleTests(unittest.TestCase):
    def test_all_members_finish_before_first_failure_is_raised(self):
        finished = []

        async def fail():
            raise RuntimeError("boom")

        async def slow():
            await asyncio.sleep(0.01)
            finished.append("slow")
            return "ok"

        with self.assertRaises(RuntimeError):
            asyncio.run(settle(fail(), slow()))
        self.assertEqual(finished, ["slow"])

    def test_returns_results_in_order(self):
        async def value(v):
            return v

        self.assertEqual(asyncio.run(settle(value(1), value(2))), [1, 2])


class CreationPathTests(unittest.TestCase):
    def setUp(self):
        self.relay = CreativeRelay(
            gemini=None,
            storage=InMemoryStorageClient(),
            db=None,
            storage_prefix="creative-canvas",
            understand_model="u",
            image_model="i",
            video_model="v",
        )

    def test_artifact_path_layout(self):
        self.assertEqual(
            self.relay.artifact_path("user-1", "a1b2c3", "drawing.png"),
            "creative-canvas/user-1/a1b2c3/drawing.png",
        )

    def test_prefix_delete_does_not_touch_sibling_creation(self):
        storage = self.relay.storage
        storage.upload_bytes(self.relay.artifact_path("u", "a1", "image.png"), b"1", "image/png")
        storage.upload_bytes(self.relay.artifact_path("u", "a10", "image.png"), b"2", "image/png")

        removed = storage.delete_prefix(self.relay.creation_prefix("u", "a1"))

        self.assertEqual(removed, 1)
        self.assertEqual(
            list(storage.stored_objects), ["creative-canvas/u/a10/image.png"]
        )

    def test_creation_ids_are_short_hex(self):
        creation_id = new_creation_id()
        self.assertEqual(len(creation_id), 6)
        int(creation_id, 16)

    def test_concurrent_prefix_deletes_empty_the_store(self):
        storage = self.relay.storage
        creation_ids = [f"c{i}" for i in range(50)]
        for creation_id in creation_ids:
            for name in ("drawing.png", "image.png", "sample_0.mp4"):
                path = self.relay.artifact_path("u", creation_id, name)
                storage.upload_bytes(path, b"x", "image/png")

        async def delete_all():
            return await settle(
                *(
                    asyncio.to_thread(
                        storage.delete_prefix, self.relay.creation_prefix("u", cid)
                    )
                    for cid in creation_ids
                )
            )

        removed = asyncio.run(delete_all())

        self.assertEqual(removed, [3] * len(creation_ids))
        self.assertEqual(storage.stored_objects, {})


if __name__ == "__main__":
    unittest.main()
