"""Test results collector: a test command, a JSON results file or JUnit XML."""

from __future__ import annotations

import json
import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any

from hud_core.collectors import resolve_path
from hud_core.errors import ProviderError
from hud_core.fsio import CommandRunner, LocalFileSystem
from hud_core.models import PanelData, utc_now

logger = logging.getLogger(__name__)

DEFAULT_SOURCE = ".agenthud/test-results.json"
HEAD_COMMAND = "git rev-parse --short HEAD"


def parse_vitest_output(output: str) -> dict[str, Any] | None:
    try:
        data = json.loads(output)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    passed = data.get("numPassedTests")
    failed = data.get("numFailedTests")
    if not isinstance(passed, int) or not isinstance(failed, int):
        return None

    failures = []
    for result in data.get("testResults") or []:
        for assertion in result.get("assertionResults") or []:
            if assertion.get("status") == "failed":
                failures.append({"file": result.get("name", ""), "name": assertion.get("title", "")})

    return {
        "passed": passed,
        "failed": failed,
        "skipped": data.get("numPendingTests") or 0,
        "failures": failures,
    }


def parse_junit_xml(content: str) -> dict[str, Any] | None:
    try:
        root = ET.fromstring(content)
    except ET.ParseError:
        return None
    if root.tag not in ("testsuites", "testsuite"):
        return None

    passed = failed = skipped = 0
    failures = []
    for case in root.iter("testcase"):
        if case.find("failure") is not None or case.find("error") is not None:
            failed += 1
            failures.append({"file": case.get("classname") or case.get("file") or "", "name": case.get("name", "")})
        elif case.find("skipped") is not None:
            skipped += 1
        else:
            passed += 1
    return {"passed": passed, "failed": failed, "skipped": skipped, "failures": failures}


def _panel(results: dict[str, Any] | None, error: str | None = None, **meta: Any) -> PanelData:
    if results is None:
        return PanelData(key="tests", title="Tests", status="warn", meta=meta, errors=[error] if error else [])

    status = "error" if results["failed"] else "ok"
    if meta.get("is_outdated"):
        status = "warn" if status == "ok" else status
    return PanelData(
        key="tests",
        title="Tests",
        status=status,
        items=results["failures"],
        meta={
            "passed": results["passed"],
            "failed": results["failed"],
            "skipped": results["skipped"],
            "hash": results.get("hash", ""),
            "timestamp": results.get("timestamp"),
            **meta,
        },
        errors=[error] if error else [],
    )


async def _head_hash(runner: CommandRunner) -> str | None:
    try:
        result = await runner.run(HEAD_COMMAND)
    except ProviderError:
        return None
    return result.stdout.strip() or None


async def _from_command(command: str, runner: CommandRunner) -> PanelData:
    try:
        result = await runner.run(command, check=False)
    except ProviderError as exc:
        return _panel(None, str(exc), source="command")

    # failing suites exit non-zero but still print a full report
    parsed = parse_vitest_output(result.stdout)
    if parsed is None:
        if result.returncode != 0:
            first = (result.stderr or result.stdout).strip().splitlines()
            return _panel(None, f"Command failed: {first[0] if first else result.returncode}", source="command")
        return _panel(None, "Failed to parse test output", source="command")

    parsed["hash"] = await _head_hash(runner) or "unknown"
    parsed["timestamp"] = utc_now().isoformat()
    return _panel(parsed, source="command", is_outdated=False, commits_behind=0)


async def _from_file(path: Path, runner: CommandRunner, fs) -> PanelData:
    is_xml = path.suffix == ".xml"
    label = "test-results.xml" if is_xml else "test-results.json"
    try:
        content = fs.read_text(path)
    except OSError as exc:
        logger.debug("no test results at %s: %s", path, exc)
        return _panel(None, "No test results", source=str(path))

    if is_xml:
        parsed = parse_junit_xml(content)
        if parsed is None:
            return _panel(None, f"Invalid {label}", source=str(path))
        parsed["hash"] = ""
        parsed["timestamp"] = utc_now().isoformat()
        return _panel(parsed, source=str(path), is_outdated=False, commits_behind=0)

    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        return _panel(None, f"Invalid {label}", source=str(path))
    if not isinstance(data, dict):
        return _panel(None, f"Invalid {label}", source=str(path))

    results = {
        "passed": int(data.get("passed") or 0),
        "failed": int(data.get("failed") or 0),
        "skipped": int(data.get("skipped") or 0),
        "failures": [row for row in data.get("failures") or [] if isinstance(row, dict)],
        "hash": str(data.get("hash") or ""),
        "timestamp": data.get("timestamp"),
    }

    is_outdated = False
    commits_behind = 0
    head = await _head_hash(runner)
    if head is not None and results["hash"] and results["hash"] != head:
        is_outdated = True
        try:
            count = await runner.run(f"git rev-list {results['hash']}..HEAD --count")
            commits_behind = int(count.stdout.strip() or 0)
        except (ProviderError, ValueError) as exc:
            logger.debug("could not count commits since %s: %s", results["hash"], exc)
            commits_behind = 0

    return _panel(results, source=str(path), is_outdated=is_outdated, commits_behind=commits_behind)


async def collect(params: dict[str, Any], runner: CommandRunner | None = None, fs=None) -> PanelData:
    runner = runner or CommandRunner(cwd=params.get("project_dir"))
    fs = fs or LocalFileSystem()

    command = params.get("command")
    if command:
        return await _from_command(command, runner)
    return await _from_file(resolve_path(params, params.get("source") or DEFAULT_SOURCE), runner, fs)
