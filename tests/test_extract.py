from __future__ import annotations

import re
import unittest
from datetime import datetime, timezone
from unittest import mock

from tg_feed.content import EMPTY_POST, NO_TEXT
from tg_feed.extract import (
    classify_rendering,
    extract_page,
    extract_posts,
    load_markup,
    split_reaction,
    synthesize_post_id,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

EMBED_PAGE = """
<html><body>
<div class="tgme_channel_history">
  <div class="tgme_widget_message" data-post="chan/1">
    <div class="tgme_widget_message_owner_name"><span>Chan Name</span></div>
    <div class="tgme_widget_message_text">Hello<br/>world <a href="https://ex.com">link</a></div>
    <span class="tgme_widget_message_views">1.2K</span>
    <div class="tgme_widget_message_reactions">
      <span class="tgme_widget_message_reaction"><i class="emoji"><b>👍</b></i>1.2K</span>
      <span class="tgme_widget_message_reaction"><i class="emoji"><b>🔥</b></i>15</span>
      <span class="tgme_widget_message_reaction"><i class="emoji"><b>😢</b></i>0</span>
    </div>
    <a class="tgme_widget_message_date" href="https://t.me/chan/1"><time datetime="2024-01-01T10:00:00+00:00">10:00</time></a>
  </div>
  <div class="tgme_widget_message" data-post="chan/2">
    <div class="tgme_widget_message_text">Use <code>pip</code> and <a href="https://docs.example">docs</a></div>
    <a class="tgme_widget_message_date" href="https://t.me/chan/2"><time datetime="2024-01-02T10:00:00+00:00">10:00</time></a>
  </div>
  <div class="tgme_widget_message" data-post="chan/3">
    <a class="tgme_widget_message_photo_wrap" href="https://t.me/chan/3"></a>
    <div class="tgme_widget_message_error">Please open Telegram to view this post</div>
    <a class="tgme_widget_message_date" href="https://t.me/chan/3"><time datetime="2024-01-03T10:00:00+00:00">10:00</time></a>
  </div>
</div>
</body></html>
"""

APP_PAGE = """
<div class="bubbles"><div class="bubbles-inner">
  <div class="bubble" data-mid="101" data-timestamp="1704103200">
    <div class="bubble-content">
      <div class="message">App post text<span class="time">10:00</span><span class="views">3M</span></div>
    </div>
    <div class="reactions">
      <div class="reaction"><span class="reaction-emoji">❤</span><span class="reaction-count">2K</span></div>
    </div>
  </div>
  <div class="bubble" data-mid="102">
    <div class="bubble-content"><div class="message">Mark all as read</div></div>
  </div>
  <div class="bubble" data-mid="103">
    <div class="bubble-content"><span class="time">10:05</span></div>
  </div>
  <div class="bubble" data-mid="104" data-timestamp="1704103500">
    <div class="bubble-content"><div class="photo"></div></div>
  </div>
</div></div>
"""

WEBK_PAGE = """
<div class="bubbles"><div class="bubbles-inner">
  <div class="bubble channel-post" data-mid="501" data-timestamp="1704103200">
    <div class="bubble-content-wrapper"><div class="bubble-content">
      <div class="message spoilers-container">First from K<span class="time">10:00</span></div>
    </div></div>
  </div>
  <div class="bubble channel-post" data-mid="502" data-timestamp="1704103260">
    <div class="bubble-content-wrapper"><div class="bubble-content">
      <div class="message spoilers-container">Second from K<span class="time">10:01</span></div>
    </div></div>
  </div>
</div></div>
"""

SPOILERS_PAGE = """
<div class="bubbles">
  <div class="bubble" data-mid="601" data-timestamp="1704103200">
    <div class="message spoilers-container">Spoiler text<span class="time">10:00</span></div>
    <span class="views">1.5K</span>
    <div class="photo"></div>
  </div>
</div>
"""

CONTENT_WRAPPER_PAGE = """
<div class="messages-container">
  <div class="message" data-message-id="701" data-timestamp="1704103260">
    <div class="message-content-wrapper">
      <div class="text-content">Wrapped text</div><span class="message-time">10:01</span>
    </div>
  </div>
</div>
"""

DATA_MID_PAGE = """
<div class="bubbles">
  <div class="history-item" data-mid="801" data-timestamp="1704103320">
    <div class="message-text">Bare item</div>
  </div>
</div>
"""


def _fixed_id(_now: datetime) -> str:
    return "msg_fixed"


class TestRenderingClassification(unittest.TestCase):
    def test_embed_and_app(self) -> None:
        self.assertEqual(classify_rendering(load_markup(EMBED_PAGE)), "embed")
        self.assertEqual(classify_rendering(load_markup(APP_PAGE)), "app")
        self.assertEqual(classify_rendering(load_markup("")), "embed")


class TestEmbedExtraction(unittest.TestCase):
    def test_fields(self) -> None:
        page = extract_page(EMBED_PAGE, default_label="Fallback", now=NOW)
        self.assertEqual(page.rendering, "embed")
        self.assertEqual(page.strategy, "widget_message")
        self.assertEqual([p.post_id for p in page.posts], ["chan/1", "chan/2", "chan/3"])

        first = page.posts[0]
        self.assertEqual(first.text, "Hello\nworld [link](https://ex.com)")
        self.assertEqual(first.views, 1200)
        self.assertEqual(first.timestamp, datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc))
        self.assertEqual(first.channel_label, "Chan Name")
        self.assertEqual([(r.symbol, r.count) for r in first.reactions], [("👍", 1200), ("🔥", 15)])
        self.assertFalse(first.id_synthesized)
        self.assertFalse(first.timestamp_estimated)

        second = page.posts[1]
        self.assertEqual(second.text, "Use `pip` and [docs](https://docs.example)")
        self.assertEqual(second.channel_label, "Fallback")
        self.assertEqual(second.views, 0)
        self.assertEqual(second.reactions, ())

    def test_restricted_photo_sentinel(self) -> None:
        posts = extract_posts(EMBED_PAGE, now=NOW)
        restricted = posts[2]
        self.assertEqual(restricted.text, "[Restricted content: photo - Please open Telegram to view]")
        self.assertTrue(restricted.has_media)
        self.assertEqual(tuple(restricted.media_kinds), ("photo",))

    def test_reactions_can_be_skipped(self) -> None:
        posts = extract_posts(EMBED_PAGE, include_reactions=False, now=NOW)
        self.assertTrue(all(p.reactions == () for p in posts))

    def test_idempotent(self) -> None:
        self.assertEqual(extract_posts(EMBED_PAGE, now=NOW), extract_posts(EMBED_PAGE, now=NOW))

    def test_strategy_fallback(self) -> None:
        html = """
        <div class="tgme_channel_history">
          <div class="message" data-post="chan/9"><div class="message_text">Fallback body</div></div>
        </div>
        """
        page = extract_page(html, now=NOW)
        self.assertEqual(page.strategy, "channel_history")
        self.assertEqual(len(page.posts), 1)
        self.assertEqual(page.posts[0].text, "Fallback body")
        self.assertTrue(page.posts[0].timestamp_estimated)
        self.assertEqual(page.posts[0].timestamp, NOW)

    def test_no_regions(self) -> None:
        page = extract_page("<html><body><p>nothing</p></body></html>", now=NOW)
        self.assertIsNone(page.strategy)
        self.assertEqual(tuple(page.posts), ())

    def test_permalink_and_synthesized_ids(self) -> None:
        html = """
        <div class="tgme_widget_message">
          <div class="tgme_widget_message_text">from link</div>
          <a class="tgme_widget_message_date" href="https://t.me/chan/42"><time datetime="2024-01-01T00:00:00Z"></time></a>
        </div>
        <div class="tgme_widget_message"><div class="tgme_widget_message_text">no id</div></div>
        """
        posts = extract_posts(html, now=NOW, id_factory=_fixed_id)
        self.assertEqual(posts[0].post_id, "chan/42")
        self.assertFalse(posts[0].id_synthesized)
        self.assertEqual(posts[1].post_id, "msg_fixed")
        self.assertTrue(posts[1].id_synthesized)

    def test_body_sentinels(self) -> None:
        html = """
        <div class="tgme_widget_message" data-post="c/5"><div class="tgme_widget_message_text"></div></div>
        <div class="tgme_widget_message" data-post="c/6"><div class="tgme_widget_message_video_player"></div></div>
        <div class="tgme_widget_message" data-post="c/7"></div>
        <div class="tgme_widget_message" data-post="c/8">
          <div class="tgme_widget_message_sensitive">This channel may contain sensitive content</div>
        </div>
        <div class="tgme_widget_message" data-post="c/10">
          <div class="tgme_widget_message_forwarded_from">Other Channel</div>
        </div>
        """
        texts = {p.post_id: p.text for p in extract_posts(html, now=NOW)}
        self.assertEqual(texts["c/5"], NO_TEXT)
        self.assertEqual(texts["c/6"], "[Media only: video]")
        self.assertEqual(texts["c/7"], EMPTY_POST)
        self.assertEqual(texts["c/8"], "[Sensitive content: This channel may contain sensitive content]")
        self.assertEqual(texts["c/10"], "[Forwarded from Other Channel]")

    def test_pre_block_is_fenced(self) -> None:
        html = """
        <div class="tgme_widget_message" data-post="c/11">
          <div class="tgme_widget_message_text"><pre>x = 1</pre></div>
        </div>
        """
        posts = extract_posts(html, now=NOW)
        self.assertEqual(posts[0].text, "```\nx = 1\n```")

    def test_malformed_region_is_skipped(self) -> None:
        with mock.patch(
            "tg_feed.extract.extract_body",
            side_effect=[ValueError("boom"), "second", "third"],
        ):
            page = extract_page(EMBED_PAGE, now=NOW)

        self.assertEqual([p.post_id for p in page.posts], ["chan/2", "chan/3"])
        self.assertEqual(len(page.soft_failures), 1)
        failure = page.soft_failures[0]
        self.assertEqual(failure.strategy, "widget_message")
        self.assertEqual(failure.index, 0)
        self.assertIn("boom", failure.error)


class TestAppExtraction(unittest.TestCase):
    def test_bubbles(self) -> None:
        page = extract_page(APP_PAGE, default_label="My Channel", now=NOW)
        self.assertEqual(page.rendering, "app")
        self.assertEqual(page.strategy, "bubble")
        self.assertEqual([p.post_id for p in page.posts], ["101", "104"])

        post = page.posts[0]
        self.assertEqual(post.text, "App post text")
        self.assertEqual(post.views, 3_000_000)
        self.assertEqual(post.timestamp, datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc))
        self.assertEqual(post.channel_label, "My Channel")
        self.assertEqual(post.rendering, "app")
        self.assertEqual([(r.symbol, r.count) for r in post.reactions], [("❤", 2000)])

        media = page.posts[1]
        self.assertEqual(media.text, "[Media only: photo]")
        self.assertTrue(media.has_media)

    def test_web_k_bubbles_read_nested_spoilers_text(self) -> None:
        page = extract_page(WEBK_PAGE, now=NOW)
        self.assertEqual(page.strategy, "bubble")
        self.assertEqual([p.post_id for p in page.posts], ["501", "502"])
        self.assertEqual([p.text for p in page.posts], ["First from K", "Second from K"])
        self.assertEqual(page.posts[1].timestamp, datetime(2024, 1, 1, 10, 1, tzinfo=timezone.utc))
        self.assertFalse(any(p.id_synthesized or p.timestamp_estimated for p in page.posts))

    def test_spoilers_region_takes_metadata_from_enclosing_bubble(self) -> None:
        page = extract_page(SPOILERS_PAGE, now=NOW, id_factory=_fixed_id)
        self.assertEqual(page.strategy, "spoilers_message")
        self.assertEqual(len(page.posts), 1)

        post = page.posts[0]
        self.assertEqual(post.post_id, "601")
        self.assertFalse(post.id_synthesized)
        self.assertEqual(post.text, "Spoiler text")
        self.assertEqual(post.timestamp, datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc))
        self.assertEqual(post.views, 1500)
        self.assertEqual(post.media_kinds, ("photo",))

    def test_content_wrapper_messages(self) -> None:
        page = extract_page(CONTENT_WRAPPER_PAGE, now=NOW)
        self.assertEqual(page.rendering, "app")
        self.assertEqual(page.strategy, "content_wrapper")
        self.assertEqual([(p.post_id, p.text) for p in page.posts], [("701", "Wrapped text")])
        self.assertEqual(page.posts[0].timestamp, datetime(2024, 1, 1, 10, 1, tzinfo=timezone.utc))

    def test_bare_data_mid_regions(self) -> None:
        page = extract_page(DATA_MID_PAGE, now=NOW)
        self.assertEqual(page.strategy, "data_mid")
        self.assertEqual([(p.post_id, p.text) for p in page.posts], [("801", "Bare item")])
        self.assertEqual(page.posts[0].timestamp, datetime(2024, 1, 1, 10, 2, tzinfo=timezone.utc))


class TestHelpers(unittest.TestCase):
    def test_split_reaction(self) -> None:
        self.assertEqual(split_reaction("🔥 1.2K"), ("🔥", "1.2K"))
        self.assertIsNone(split_reaction("🔥"))
        self.assertIsNone(split_reaction("42"))

    def test_synthesized_id_format(self) -> None:
        value = synthesize_post_id(NOW)
        self.assertRegex(value, re.compile(r"^msg_\d+_[0-9a-z]{9}$"))
        self.assertTrue(value.startswith(f"msg_{int(NOW.timestamp() * 1000)}_"))


if __name__ == "__main__":
    unittest.main()
