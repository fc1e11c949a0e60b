from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from tg_feed.config import config_sha256, load_config, resolve_storage_state
from tg_feed.config_schema import AppConfig
from tg_feed.errors import ConfigError


_VALID_YAML = """\
browser:
  headless: true
  timeout_ms: 20000

crawl:
  settle_seconds: 0.5
  max_iterations: 30
  stall_limit: 4
  default_max_posts: 200

resources:
  memory_limit_mb: 1024
  sample_every: 5

auth:
  storage_state_env: MY_TG_STATE
"""


class TestConfig(unittest.TestCase):
    def test_load_config_ok(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "config.yaml"
            path.write_text(_VALID_YAML, encoding="utf-8")

            cfg = load_config(path)
            self.assertEqual(cfg.browser.timeout_ms, 20000)
            self.assertEqual(cfg.crawl.max_iterations, 30)
            self.assertEqual(cfg.crawl.stall_limit, 4)
            self.assertEqual(cfg.resources.memory_limit_mb, 1024.0)
            self.assertEqual(cfg.auth.storage_state_env, "MY_TG_STATE")
            self.assertEqual(cfg.crawl.position_warmup, 5)

    def test_empty_file_yields_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "config.yaml"
            path.write_text("", encoding="utf-8")

            cfg = load_config(path)
            self.assertEqual(cfg, AppConfig())
            self.assertEqual(cfg.crawl.max_iterations, 50)
            self.assertEqual(cfg.resources.memory_limit_mb, 1500.0)

    def test_rejects_unknown_keys_and_bad_values(self) -> None:
        cases = (
            _VALID_YAML + "\nextra_section: {}\n",
            _VALID_YAML.replace("stall_limit: 4", "stall_limit: 0"),
            _VALID_YAML.replace("default_max_posts: 200", "default_max_posts: 10000"),
            _VALID_YAML.replace("MY_TG_STATE", "'not a name'"),
            "- just\n- a list\n",
            "browser: [unclosed\n",
        )
        for text in cases:
            with self.subTest(text=text[-40:]):
                with tempfile.TemporaryDirectory() as td:
                    path = Path(td) / "config.yaml"
                    path.write_text(text, encoding="utf-8")
                    with self.assertRaises(ConfigError):
                        load_config(path)

    def test_missing_file(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(ConfigError):
                load_config(Path(td) / "nope.yaml")

    def test_resolve_storage_state(self) -> None:
        cfg = AppConfig()
        with tempfile.TemporaryDirectory() as td:
            state = Path(td) / "state.json"
            state.write_text("{}", encoding="utf-8")

            self.assertIsNone(resolve_storage_state(cfg, required=False, environ={}))
            with self.assertRaises(ConfigError):
                resolve_storage_state(cfg, required=True, environ={})
            with self.assertRaises(ConfigError):
                resolve_storage_state(
                    cfg,
                    required=True,
                    environ={"TG_FEED_STORAGE_STATE": str(Path(td) / "missing.json")},
                )

            found = resolve_storage_state(cfg, required=True, environ={"TG_FEED_STORAGE_STATE": str(state)})
            self.assertEqual(found, state)

    def test_config_hash_is_stable(self) -> None:
        a = AppConfig()
        b = AppConfig.model_validate({})
        c = AppConfig.model_validate({"crawl": {"max_iterations": 10}})
        self.assertEqual(config_sha256(a), config_sha256(b))
        self.assertNotEqual(config_sha256(a), config_sha256(c))

        d = AppConfig.model_validate({"debug": {"save_screenshots": True}})
        self.assertEqual(config_sha256(a), config_sha256(d))


if __name__ == "__main__":
    unittest.main()
