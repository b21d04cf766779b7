"""Project summary collector: name, language, stack, size."""

from __future__ import annotations

import json
import logging
import re
import tomllib
from pathlib import Path
from typing import Any

from hud_core.collectors import project_dir_from
from hud_core.fsio import LocalFileSystem
from hud_core.models import PanelData

logger = logging.getLogger(__name__)

# first match wins
LANGUAGE_INDICATORS = [
    ("tsconfig.json", "TypeScript"),
    ("package.json", "JavaScript"),
    ("pyproject.toml", "Python"),
    ("requirements.txt", "Python"),
    ("setup.py", "Python"),
    ("go.mod", "Go"),
    ("Cargo.toml", "Rust"),
    ("Gemfile", "Ruby"),
    ("pom.xml", "Java"),
    ("build.gradle", "Java"),
]

KNOWN_FRAMEWORKS = [
    "react", "vue", "angular", "svelte", "next", "nuxt", "express", "fastify", "koa", "hono", "ink",
    "django", "flask", "fastapi", "tornado", "pyramid",
]
KNOWN_TOOLS = [
    "vitest", "jest", "mocha", "webpack", "vite", "rollup", "esbuild", "tsup", "eslint", "prettier",
    "pytest", "pandas", "numpy", "tensorflow", "pytorch", "scikit-learn", "sqlalchemy", "celery",
]
MAX_STACK = 5

FILE_EXTENSIONS = {
    "TypeScript": ("ts", (".ts", ".tsx")),
    "JavaScript": ("js", (".js", ".jsx")),
    "Python": ("py", (".py",)),
    "Go": ("go", (".go",)),
    "Rust": ("rs", (".rs",)),
    "Ruby": ("rb", (".rb",)),
    "Java": ("java", (".java",)),
}

SOURCE_DIRS = ("src", "lib", "app")
EXCLUDE_DIRS = ("node_modules", "dist", "build", ".git", "__pycache__", "venv", ".venv", "target")

REQUIREMENT_NAME_RE = re.compile(r"^\s*([A-Za-z0-9_.\-]+)")


def requirement_name(spec: str) -> str:
    match = REQUIREMENT_NAME_RE.match(spec)
    return match.group(1) if match else spec.strip()


def detect_language(root: Path, fs) -> str | None:
    for filename, language in LANGUAGE_INDICATORS:
        if fs.exists(root / filename):
            return language
    return None


def parse_package_json(content: str) -> dict[str, Any]:
    pkg = json.loads(content)
    deps = list((pkg.get("dependencies") or {}).keys())
    dev_deps = list((pkg.get("devDependencies") or {}).keys())
    return {
        "name": pkg.get("name") or "unknown",
        "license": pkg.get("license") or None,
        "prod_deps": len(deps),
        "dev_deps": len(dev_deps),
        "all_deps": deps + dev_deps,
    }


def parse_pyproject(content: str) -> dict[str, Any]:
    data = tomllib.loads(content)
    project = data.get("project") or {}
    license_value = project.get("license")
    if isinstance(license_value, dict):
        license_value = license_value.get("text")

    deps = [requirement_name(row) for row in project.get("dependencies") or []]
    dev_deps = [
        requirement_name(row)
        for rows in (project.get("optional-dependencies") or {}).values()
        for row in rows
    ]
    return {
        "name": project.get("name") or "unknown",
        "license": license_value or None,
        "prod_deps": len(deps),
        "dev_deps": len(dev_deps),
        "all_deps": deps + dev_deps,
    }


SETUP_NAME_RE = re.compile(r"name\s*=\s*[\"']([^\"']+)[\"']")
SETUP_REQUIRES_RE = re.compile(r"install_requires\s*=\s*\[([^\]]+)\]", re.S)
QUOTED_RE = re.compile(r"[\"']([^\"']+)[\"']")


def parse_setup_py(content: str) -> dict[str, Any]:
    name_match = SETUP_NAME_RE.search(content)
    deps: list[str] = []
    requires = SETUP_REQUIRES_RE.search(content)
    if requires:
        deps = [requirement_name(item) for item in QUOTED_RE.findall(requires.group(1))]
    return {
        "name": name_match.group(1) if name_match else "unknown",
        "license": None,
        "prod_deps": len(deps),
        "dev_deps": 0,
        "all_deps": deps,
    }


MANIFEST_PARSERS = [
    ("package.json", parse_package_json),
    ("pyproject.toml", parse_pyproject),
    ("setup.py", parse_setup_py),
]


def project_info(root: Path, fs) -> dict[str, Any]:
    for filename, parser in MANIFEST_PARSERS:
        path = root / filename
        if not fs.exists(path):
            continue
        try:
            return parser(fs.read_text(path))
        except (OSError, ValueError) as exc:
            # JSONDecodeError and TOMLDecodeError are both ValueErrors
            logger.debug("could not parse %s: %s", path, exc)
    return {"name": root.name, "license": None, "prod_deps": 0, "dev_deps": 0, "all_deps": []}


def detect_stack(deps: list[str]) -> list[str]:
    normalized = {dep.lower() for dep in deps}
    frameworks = [name for name in KNOWN_FRAMEWORKS if name in normalized]
    tools = [name for name in KNOWN_TOOLS if name in normalized]
    return (frameworks + tools)[:MAX_STACK]


def source_files(root: Path, language: str | None, fs) -> tuple[list[Path], str]:
    if language not in FILE_EXTENSIONS:
        return [], ""
    ext, suffixes = FILE_EXTENSIONS[language]
    for name in SOURCE_DIRS:
        source_dir = root / name
        if fs.exists(source_dir):
            files = [path for path in fs.walk_files(source_dir, EXCLUDE_DIRS) if path.suffix.lower() in suffixes]
            return files, ext
    return [], ext


def count_lines(files: list[Path], fs) -> int:
    total = 0
    for path in files:
        try:
            total += len(fs.read_text(path).split("\n"))
        except OSError:
            continue
    return total


def collect(params: dict[str, Any], fs=None) -> PanelData:
    fs = fs or LocalFileSystem()
    root = project_dir_from(params)

    try:
        language = detect_language(root, fs)
        info = project_info(root, fs)
        files, ext = source_files(root, language, fs)
        line_count = count_lines(files, fs)
    except OSError as exc:
        return PanelData(
            key="project",
            title="Project",
            status="error",
            meta={"name": root.name, "language": None, "stack": []},
            errors=[str(exc)],
        )

    return PanelData(
        key="project",
        title="Project",
        status="ok",
        meta={
            "name": info["name"],
            "language": language,
            "license": info["license"],
            "stack": detect_stack(info["all_deps"]),
            "file_count": len(files),
            "file_extension": ext,
            "line_count": line_count,
            "prod_deps": info["prod_deps"],
            "dev_deps": info["dev_deps"],
        },
    )
