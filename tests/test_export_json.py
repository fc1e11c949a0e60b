from __future__ import annotations

import json
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

from tg_feed.errors import ExportError
from tg_feed.export_json import write_result_json
from tg_feed.post import ChannelRecord, PostRecord, Reaction, ScrapeResult

NOW = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)


def _result() -> ScrapeResult:
    post = PostRecord(
        post_id="news/1",
        timestamp=NOW,
        text="Привет",
        views=1200,
        reactions=(Reaction("👍", 5),),
        has_media=True,
        media_kinds=("photo",),
        channel_label="News",
    )
    return ScrapeResult(
        channel=ChannelRecord(name="News", handle="news", subscriber_count=10),
        posts=(post,),
        scraped_at=NOW,
        total_posts=1,
        stop_reason="stalled",
        iterations=4,
    )


class TestExportJson(unittest.TestCase):
    def test_writes_result(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = write_result_json(_result(), Path(td) / "out" / "result.json")

            raw = path.read_text(encoding="utf-8")
            self.assertIn("Привет", raw)
            data = json.loads(raw)
            self.assertEqual(data["totalPosts"], 1)
            self.assertEqual(data["stopReason"], "stalled")
            self.assertEqual(data["posts"][0]["reactions"], [{"emoji": "👍", "count": 5}])
            self.assertEqual(data["posts"][0]["mediaTypes"], ["photo"])
            self.assertEqual(data["channel"]["subscriberCount"], 10)
            self.assertFalse(list(path.parent.glob("*.tmp")))

    def test_unwritable_path(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            blocker = Path(td) / "blocker"
            blocker.write_text("x", encoding="utf-8")
            with self.assertRaises(ExportError):
                write_result_json(_result(), blocker / "result.json")


if __name__ == "__main__":
    unittest.main()
