from __future__ import annotations

import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock
import sys

import yaml

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from hud_core.config import (  # noqa: E402
    CORE_PANELS,
    clamp_width,
    parse_interval,
    resolve_config,
    write_default_config,
)
from hud_core.errors import ConfigError  # noqa: E402


class IntervalTests(unittest.TestCase):
    def test_parse_interval(self):
        self.assertEqual(parse_interval("30s"), 30_000)
        self.assertEqual(parse_interval("5m"), 300_000)
        self.assertIsNone(parse_interval("manual"))

    def test_invalid_interval_raises(self):
        for value in ("0s", "10h", "fast", "", None, 30):
            with self.subTest(value=value):
                with self.assertRaises(ValueError):
                    parse_interval(value)

    def test_clamp_width(self):
        self.assertEqual(clamp_width(30), 50)
        self.assertEqual(clamp_width(200), 120)
        self.assertEqual(clamp_width(90), 90)
        self.assertEqual(clamp_width("wide"), 80)


class ResolveConfigTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.project = Path(self._tmp.name)
        patcher = mock.patch.dict(os.environ, {}, clear=False)
        patcher.start()
        self.addCleanup(patcher.stop)
        os.environ.pop("AGENTHUD_CONFIG", None)

    def write(self, payload) -> Path:
        path = self.project / ".agenthud" / "config.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(payload if isinstance(payload, str) else json.dumps(payload))
        return path

    def test_defaults(self):
        config = resolve_config(self.project)
        self.assertEqual([p.name for p in config.panels], CORE_PANELS)
        claude = config.panel("claude")
        self.assertEqual(claude.interval_ms, 2000)
        self.assertEqual(claude.params["max_activities"], 10)
        self.assertEqual(claude.params["session_timeout_ms"], 3_600_000)
        self.assertTrue(config.panel("tests").is_manual)
        self.assertIsNone(config.width)
        self.assertEqual(config.warnings, [])

    def test_disable_and_override(self):
        self.write({"panels": {"git": False, "claude": {"interval": "5s", "session_timeout": "10m"}}, "width": 300})
        config = resolve_config(self.project)
        self.assertFalse(config.panel("git").enabled)
        self.assertEqual(config.panel("claude").interval_ms, 5000)
        self.assertEqual(config.panel("claude").params["session_timeout_ms"], 600_000)
        self.assertEqual(config.width, 120)

    def test_bad_values_warn_and_keep_defaults(self):
        self.write({"panels": {"git": {"interval": "often"}, "bogus": {}}})
        with self.assertLogs("hud_core.config", level="WARNING"):
            config = resolve_config(self.project)
        self.assertEqual(config.panel("git").interval_ms, 30_000)
        self.assertEqual(len(config.warnings), 2)

    def test_invalid_default_file_is_a_warning(self):
        self.write("{broken")
        with self.assertLogs("hud_core.config", level="WARNING"):
            config = resolve_config(self.project)
        self.assertEqual([p.name for p in config.panels], CORE_PANELS)
        self.assertEqual(len(config.warnings), 1)

    def test_explicit_missing_file_raises(self):
        with self.assertRaises(ConfigError):
            resolve_config(self.project, self.project / "missing.json")

    def test_explicit_invalid_file_raises(self):
        path = self.project / "cfg.json"
        path.write_text("[1, 2]")
        with self.assertRaises(ConfigError):
            resolve_config(self.project, path)

    def test_custom_panels_and_order(self):
        self.write(
            {
                "custom_panels": {
                    "deploys": {"command": "echo hi", "interval": "manual", "renderer": "status"},
                    "git": {"command": "nope"},
                },
                "panel_order": ["claude", "deploys"],
            }
        )
        with self.assertLogs("hud_core.config", level="WARNING"):
            config = resolve_config(self.project)
        names = [p.name for p in config.panels]
        self.assertEqual(names[:2], ["claude", "deploys"])
        self.assertEqual(sorted(names), sorted(CORE_PANELS + ["deploys"]))
        deploys = config.panel("deploys")
        self.assertEqual(deploys.kind, "custom")
        self.assertTrue(deploys.is_manual)
        self.assertEqual(deploys.params["renderer"], "status")
        self.assertEqual(deploys.label, "Deploys")

    def test_yaml_config_is_read(self):
        path = self.project / ".agenthud" / "config.yaml"
        path.parent.mkdir(parents=True)
        path.write_text("panels:\n  git:\n    enabled: false\n  claude:\n    interval: 5s\nwidth: 90\n")
        config = resolve_config(self.project)
        self.assertEqual(config.path, path)
        self.assertFalse(config.panel("git").enabled)
        self.assertEqual(config.panel("claude").interval_ms, 5000)
        self.assertEqual(config.width, 90)

    def test_yaml_takes_precedence_over_json(self):
        self.write({"panels": {"tests": False}})
        (self.project / ".agenthud" / "config.yaml").write_text("panels:\n  git: false\n")
        config = resolve_config(self.project)
        self.assertFalse(config.panel("git").enabled)
        self.assertTrue(config.panel("tests").enabled)

    def test_empty_yaml_means_defaults(self):
        path = self.project / "empty.yaml"
        path.write_text("")
        config = resolve_config(self.project, path)
        self.assertEqual([p.name for p in config.panels], CORE_PANELS)

    def test_broken_yaml_explicit_file_raises(self):
        path = self.project / "cfg.yaml"
        path.write_text("panels: [unclosed\n")
        with self.assertRaises(ConfigError):
            resolve_config(self.project, path)

    def test_init_file_resolves_without_warnings(self):
        write_default_config(self.project)
        config = resolve_config(self.project)
        self.assertEqual(config.warnings, [])
        self.assertEqual(config.width, 70)

    def test_env_selects_config(self):
        path = self.project / "elsewhere.json"
        path.write_text(json.dumps({"panels": {"tests": False}}))
        os.environ["AGENTHUD_CONFIG"] = str(path)
        self.assertFalse(resolve_config(self.project).panel("tests").enabled)


class InitTests(unittest.TestCase):
    def test_write_default_config_once(self):
        with tempfile.TemporaryDirectory() as tmp:
            path, created = write_default_config(tmp)
            self.assertTrue(created)
            self.assertEqual(path.name, "config.yaml")
            payload = yaml.safe_load(path.read_text())
            self.assertEqual(payload["panel_order"], CORE_PANELS)
            self.assertEqual(payload["panels"]["claude"]["interval"], "2s")

            path.write_text("width: 90\n")
            _, created = write_default_config(tmp)
            self.assertFalse(created)
            self.assertEqual(path.read_text(), "width: 90\n")


if __name__ == "__main__":
    unittest.main()
