import unittest
from unittest.mock import patch

from creative_canvas.db import CreationRecord, PostgresDbClient
from creative_canvas.errors import CreationNotFoundError


def make_record(creation_id: str, user_id: str = "user-1") -> CreationRecord:
    return CreationRecord(
        creation_id=creation_id,
        user_id=user_id,
        drawing_url=f"gs://bucket/creative-canvas/{user_id}/{creation_id}/drawing.png",
        image_url=f"gs://bucket/creative-canvas/{user_id}/{creation_id}/image.png",
        image_prompt="Generate a creative version of the input image",
        cn_description="一只猫",
        cn_style="水彩风格",
    )


class PostgresDbClientTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the Postgres client logic.
    """

    def setUp(self):
        self.db = PostgresDbClient("sqlite+pysqlite:///:memory:")

    def test_create_and_get_user(self):
        self.assertIsNone(self.db.get_user("user-1"))
        self.db.create_user("user-1", "ada@example.com")
        user = self.db.get_user("user-1")
        self.assertEqual(user.email, "ada@example.com")
        self.assertIsNotNone(user.created_at)

    def test_save_assigns_server_timestamp(self):
        record = make_record("a1b2c3")
        self.db.save_creation(record)
        self.assertIsNotNone(record.timestamp)

        loaded = self.db.get_creation("user-1", "a1b2c3")
        self.assertEqual(loaded.image_url, record.image_url)
        self.assertEqual(loaded.cn_style, "水彩风格")
        self.assertIsNone(loaded.video_url)

    @patch("creative_canvas.db._epoch_now", side_effect=[100.0, 200.0, 300.0])
    def test_list_is_newest_first_and_per_user(self, _):
        self.db.save_creation(make_record("first1"))
        self.db.save_creation(make_record("second"))
        self.db.save_creation(make_record("theirs", user_id="user-2"))

        listed = self.db.list_creations("user-1")
        self.assertEqual([r.creation_id for r in listed], ["second", "first1"])

    def test_update_video(self):
        self.db.save_creation(make_record("a1b2c3"))
        self.db.update_creation_video(
            "user-1", "a1b2c3", "gs://bucket/x/sample_0.mp4", "the cat waves"
        )
        loaded = self.db.get_creation("user-1", "a1b2c3")
        self.assertEqual(loaded.video_url, "gs://bucket/x/sample_0.mp4")
        self.assertEqual(loaded.video_prompt, "the cat waves")

    def test_update_video_for_unknown_creation(self):
        with self.assertRaises(CreationNotFoundError):
            self.db.update_creation_video("user-1", "nope00", "gs://b/v.mp4", "p")

    def test_delete_only_touches_one_creation(self):
        self.db.save_creation(make_record("a1b2c3"))
        self.db.save_creation(make_record("a1b2c3", user_id="user-2"))
        self.db.delete_creation("user-1", "a1b2c3")
        self.assertIsNone(self.db.get_creation("user-1", "a1b2c3"))
        self.assertIsNotNone(self.db.get_creation("user-2", "a1b2c3"))


if __name__ == "__main__":
    unittest.main()
