"""Tests for the three-tier config loader and EngineConfig validation."""

import os
import shutil
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

_base = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, _base)

from lifecycle.config import (
    DEFAULTS, EngineConfig, ReconcilerDefaults, _load_env_overrides, deep_merge,
    get_config_value, load_config, load_engine_config,
)
from lifecycle.exceptions import ConfigError


def _clean_env():
    return {k: v for k, v in os.environ.items() if not k.startswith("BP_")}


class TestDeepMerge(unittest.TestCase):

    def test_nested_merge(self):
        base = {"a": {"x": 1, "y": 2}, "b": 3}
        result = deep_merge(base, {"a": {"y": 99, "z": 100}})
        self.assertEqual(result, {"a": {"x": 1, "y": 99, "z": 100}, "b": 3})

    def test_lists_replaced(self):
        self.assertEqual(deep_merge({"a": [1, 2]}, {"a": [3]}), {"a": [3]})

    def test_inputs_not_mutated(self):
        base = {"a": {"x": 1}}
        overlay = {"a": {"y": 2}}
        deep_merge(base, overlay)
        self.assertEqual(base, {"a": {"x": 1}})
        self.assertEqual(overlay, {"a": {"y": 2}})


class TestEnvOverrides(unittest.TestCase):

    def test_multi_word_keys(self):
        env = dict(_clean_env(), BP_INSPECTOR_STALE_AFTER_MINUTES="15")
        with patch.dict(os.environ, env, clear=True):
            overrides = _load_env_overrides()
        self.assertEqual(overrides, {"inspector": {"stale_after_minutes": 15}})

    def test_route_keys_keep_case(self):
        env = dict(_clean_env(), BP_ROUTES_VIEWER="/view/{id}")
        with patch.dict(os.environ, env, clear=True):
            overrides = _load_env_overrides()
        self.assertEqual(overrides, {"routes": {"VIEWER": "/view/{id}"}})

    def test_nested_defaults(self):
        env = dict(_clean_env(), BP_RECONCILER_DEFAULTS_MODULE_TITLE="Kickoff",
                   BP_RECONCILER_REPAIR_ENABLED="false")
        with patch.dict(os.environ, env, clear=True):
            overrides = _load_env_overrides()
        self.assertEqual(overrides["reconciler"]["defaults"]["module_title"], "Kickoff")
        self.assertIs(overrides["reconciler"]["repair_enabled"], False)

    def test_unknown_and_meta_ignored(self):
        env = dict(_clean_env(), BP_NOT_A_KEY="1", BP_ENV="dev", BP_VERSION="2.0")
        with patch.dict(os.environ, env, clear=True):
            self.assertEqual(_load_env_overrides(), {})


class TestLoadConfig(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.base = Path(self.tmpdir) / "lifecycle_config.yaml"
        self.base.write_text("inspector:\n  stale_after_minutes: 12\n")
        (Path(self.tmpdir) / "config").mkdir()
        (Path(self.tmpdir) / "config" / "staging.yaml").write_text(
            "inspector:\n  stale_after_minutes: 5\nlogging:\n  level: DEBUG\n"
        )

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_missing_file_uses_defaults(self):
        with patch.dict(os.environ, _clean_env(), clear=True):
            cfg = load_config(os.path.join(self.tmpdir, "missing.yaml"))
        self.assertEqual(cfg["routes"], DEFAULTS["routes"])
        self.assertEqual(cfg["_active_env"], "default")

    def test_base_file(self):
        with patch.dict(os.environ, _clean_env(), clear=True):
            cfg = load_config(str(self.base))
        self.assertEqual(get_config_value("inspector.stale_after_minutes", cfg), 12)
        self.assertEqual(get_config_value("reconciler.defaults.title", cfg),
                         "Learning Blueprint")

    def test_overlay_beats_base(self):
        with patch.dict(os.environ, _clean_env(), clear=True):
            cfg = load_config(str(self.base), env="staging",
                              config_dir=os.path.join(self.tmpdir, "config"))
        self.assertEqual(cfg["inspector"]["stale_after_minutes"], 5)
        self.assertEqual(cfg["_active_env"], "staging")

    def test_env_beats_overlay(self):
        env = dict(_clean_env(), BP_ENV="staging",
                   BP_CONFIG_DIR=os.path.join(self.tmpdir, "config"),
                   BP_INSPECTOR_STALE_AFTER_MINUTES="30")
        with patch.dict(os.environ, env, clear=True):
            config = load_engine_config(str(self.base))
        self.assertEqual(config.stale_after_minutes, 30)
        self.assertEqual(config.log_level, "DEBUG")
        self.assertEqual(config.env, "staging")

    def test_env_vars_can_be_disabled(self):
        env = dict(_clean_env(), BP_INSPECTOR_STALE_AFTER_MINUTES="30")
        with patch.dict(os.environ, env, clear=True):
            cfg = load_config(str(self.base), include_env_vars=False)
        self.assertEqual(cfg["inspector"]["stale_after_minutes"], 12)

    def test_non_mapping_file(self):
        self.base.write_text("- just\n- a list\n")
        with patch.dict(os.environ, _clean_env(), clear=True):
            with self.assertRaises(ConfigError):
                load_config(str(self.base))

    def test_shipped_config_matches_defaults(self):
        path = os.path.join(_base, "lifecycle_config.yaml")
        with patch.dict(os.environ, _clean_env(), clear=True):
            config = load_engine_config(path)
        self.assertEqual(config, EngineConfig())


class TestEngineConfig(unittest.TestCase):

    def test_defaults(self):
        config = EngineConfig.from_dict({})
        self.assertEqual(config.stale_after_minutes, 10)
        self.assertTrue(config.repair_enabled)
        self.assertEqual(config.defaults, ReconcilerDefaults())
        self.assertEqual(config.route_template("GENERATING"), "/generating/{id}")

    def test_rejects_bad_threshold(self):
        for value in (0, -5, "ten", True):
            with self.subTest(value=value):
                with self.assertRaises(ConfigError):
                    EngineConfig.from_dict({"inspector": {"stale_after_minutes": value}})

    def test_rejects_template_without_id(self):
        with self.assertRaises(ConfigError):
            EngineConfig.from_dict({"routes": {"VIEWER": "/blueprint"}})

    def test_rejects_unknown_defaults_key(self):
        with self.assertRaises(ConfigError):
            EngineConfig.from_dict({"reconciler": {"defaults": {"colour": "blue"}}})

    def test_rejects_negative_module_duration(self):
        with self.assertRaises(ConfigError):
            EngineConfig.from_dict({"reconciler": {"defaults": {"module_duration": -1}}})

    def test_unknown_route(self):
        with self.assertRaises(ConfigError):
            EngineConfig().route_template("NOWHERE")

    def test_frozen(self):
        config = EngineConfig()
        with self.assertRaises(AttributeError):
            config.stale_after_minutes = 1


if __name__ == "__main__":
    unittest.main()
