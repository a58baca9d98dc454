"""Shared pytest fixtures for the Modularisan test suite.

Provides reusable fixtures for:
- Temporary JavaScript projects with a ``package.json``
- A Logger whose Rich console writes to an in-memory buffer
- Ready-made ProjectConfiguration objects and ModuleService instances
"""

from __future__ import annotations

import io
import json
from pathlib import Path
from typing import Any

import pytest
from rich.console import Console

from modularisan.config import ProjectConfiguration, deep_merge
from modularisan.logger import Logger
from modularisan.scaffolder.modules import ModuleService


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def write_package_json(root: Path, data: dict[str, Any]) -> Path:
    path = root / "package.json"
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path


def make_config(root: Path, **overrides: Any) -> ProjectConfiguration:
    """A Next.js-shaped configuration rooted at *root*, with tree overrides."""
    tree: dict[str, Any] = {
        "version": "2.0.0",
        "framework": {
            "name": "Next.js",
            "type": "fullstack",
            "version": "^14.0.0",
            "features": {"routing": True, "api": True, "ssr": True, "typescript": True, "testing": True},
        },
        "project": {
            "name": "my-app",
            "description": "Test app",
            "rootDir": str(root),
            "packageManager": "npm",
        },
        "paths": {"modules": "src/modules", "shared": "src/shared", "tests": "__tests__"},
        "features": {
            "typescript": True,
            "testing": True,
            "standalone_modules": False,
            "package_per_module": False,
        },
        "templates": {
            kind: f"next/{kind}"
            for kind in ("component", "service", "test", "module", "type", "api", "hook", "page")
        },
        "conventions": {
            "naming": "kebab-case",
            "file_extensions": {
                "component": ".tsx",
                "page": ".tsx",
                "api": ".ts",
                "service": ".ts",
                "test": ".test.ts",
            },
        },
    }
    return ProjectConfiguration.from_tree(deep_merge(tree, overrides))


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@pytest.fixture
def console() -> Console:
    """Rich console writing to a StringIO buffer, never a terminal."""
    return Console(file=io.StringIO(), force_terminal=False, width=200)


@pytest.fixture
def logger(console: Console) -> Logger:
    return Logger(console, "debug")


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


@pytest.fixture
def next_project(tmp_path: Path) -> Path:
    """A Next.js + TypeScript + Jest project with a ``src/`` directory."""
    root = tmp_path / "next-app"
    root.mkdir()
    write_package_json(
        root,
        {
            "name": "my-app",
            "description": "Test app",
            "dependencies": {"next": "^14.0.0", "react": "^18.2.0", "react-dom": "^18.2.0"},
            "devDependencies": {"typescript": "^5.0.0", "jest": "^29.0.0"},
        },
    )
    (root / "src").mkdir()
    return root


@pytest.fixture
def react_project(tmp_path: Path) -> Path:
    """A plain React project without TypeScript or a test runner."""
    root = tmp_path / "react-app"
    root.mkdir()
    write_package_json(root, {"name": "react-app", "dependencies": {"react": "^18.2.0"}})
    return root


@pytest.fixture
def config(next_project: Path) -> ProjectConfiguration:
    (next_project / "src" / "modules").mkdir(parents=True)
    return make_config(next_project)


@pytest.fixture
def module_service(config: ProjectConfiguration, logger: Logger) -> ModuleService:
    return ModuleService(config, logger=logger)


@pytest.fixture
def config_factory():
    """Return :func:`make_config` so tests can build variants."""
    return make_config


@pytest.fixture
def package_json_writer():
    return write_package_json
