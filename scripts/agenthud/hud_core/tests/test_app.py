from __future__ import annotations

import contextlib
import io
import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock
import sys

from rich.console import Console

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from hud_core.app import build_providers, main  # noqa: E402
from hud_core.config import resolve_config  # noqa: E402


class AppTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.root = Path(self._tmp.name)
        self.project = self.root / "project"
        self.project.mkdir()
        self.home = self.root / "home"
        self.home.mkdir()
        patcher = mock.patch.dict(os.environ, {"HOME": str(self.home)})
        patcher.start()
        self.addCleanup(patcher.stop)
        for name in ("AGENTHUD_CONFIG", "AGENTHUD_LOG_FILE", "AGENTHUD_LOG_LEVEL"):
            os.environ.pop(name, None)

    def config(self, payload) -> Path:
        path = self.root / "cfg.json"
        path.write_text(json.dumps(payload))
        return path

    def run_main(self, *argv, console=None):
        out = io.StringIO()
        err = io.StringIO()
        with contextlib.redirect_stdout(out), contextlib.redirect_stderr(err):
            code = main(list(argv), console=console)
        return code, out.getvalue(), err.getvalue()


class CliTests(AppTestCase):
    def test_version(self):
        out = io.StringIO()
        with contextlib.redirect_stdout(out), self.assertRaises(SystemExit) as ctx:
            main(["--version"])
        self.assertEqual(ctx.exception.code, 0)
        self.assertIn("agenthud", out.getvalue())

    def test_init_writes_config_once(self):
        code, out, _ = self.run_main("init", "--project-dir", str(self.project))
        self.assertEqual(code, 0)
        self.assertIn("Created", out)
        self.assertTrue((self.project / ".agenthud" / "config.yaml").exists())

        code, out, _ = self.run_main("init", "--project-dir", str(self.project))
        self.assertEqual(code, 0)
        self.assertIn("Skipped", out)

    def test_missing_explicit_config_exits_2(self):
        code, _, err = self.run_main("--once", "--project-dir", str(self.project), "--config", str(self.root / "nope.json"))
        self.assertEqual(code, 2)
        self.assertIn("config path not found", err)

    def test_json_single_pass(self):
        cfg = self.config({"panels": {"git": False, "tests": False, "other_sessions": False}})
        code, out, _ = self.run_main("--json", "--project-dir", str(self.project), "--config", str(cfg))
        self.assertEqual(code, 0)
        payload = json.loads(out)
        self.assertEqual(sorted(payload["panels"]), ["claude", "project"])
        self.assertEqual(payload["panels"]["claude"]["meta"]["session_status"], "none")
        self.assertEqual(payload["panels"]["project"]["meta"]["name"], "project")

    def test_once_without_session_explains_and_exits(self):
        other = self.home / ".claude" / "projects" / "-somewhere-else"
        other.mkdir(parents=True)
        console = Console(record=True, width=100, color_system=None)
        code, _, _ = self.run_main("--once", "--project-dir", str(self.project), console=console)
        self.assertEqual(code, 0)
        text = console.export_text()
        self.assertIn("No Claude session found", text)
        self.assertIn("else", text)

    def test_once_renders_panels(self):
        cfg = self.config({"panels": {"git": False, "tests": False, "claude": False, "other_sessions": False}, "width": 60})
        console = Console(record=True, width=100, color_system=None)
        code, _, _ = self.run_main("--once", "--project-dir", str(self.project), "--config", str(cfg), console=console)
        self.assertEqual(code, 0)
        text = console.export_text()
        self.assertIn("Project", text)
        self.assertIn("r: refresh all", text)


class ProviderWiringTests(AppTestCase):
    def test_every_enabled_panel_has_a_provider(self):
        cfg = self.config({"custom_panels": {"todo": {"command": "echo hi"}}, "panels": {"git": False}})
        config = resolve_config(self.project, cfg)
        providers = build_providers(config, self.project, home=self.home)
        self.assertEqual(sorted(providers), ["claude", "other_sessions", "project", "tests", "todo"])
        self.assertEqual(config.panel("claude").params["home"], str(self.home))


if __name__ == "__main__":
    unittest.main()
