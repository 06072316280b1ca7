"""Shared pytest fixtures for the scaffold engine test suite.

Provides reusable fixtures for:
- Raw pattern configs and the Contexts built from them
- Small hand-written Contexts for renderer tests
- Temporary template libraries (with and without a manifest)
- Temporary output directories
- A recording Rich console
"""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Any, Callable

import pytest
import yaml
from rich.console import Console

import src.utils as utils
from src.assembler import TemplateSet
from src.engine import Context
from src.patterns import build_context


# ---------------------------------------------------------------------------
# Pattern configs & Contexts
# ---------------------------------------------------------------------------


@pytest.fixture
def crud_config() -> dict[str, Any]:
    """Scenario-style simple_crud decision for "My Task App"."""
    return {
        "patternName": "simple_crud",
        "decisions": {"projectName": "My Task App", "description": "Track tasks."},
    }


@pytest.fixture
def crud_context(crud_config: dict[str, Any]) -> Context:
    return build_context(crud_config)


@pytest.fixture
def social_context() -> Context:
    return build_context({
        "patternName": "social_platform",
        "decisions": {
            "projectName": "Friend Feed",
            "socialProviders": ["google", "facebook"],
            "mfa": True,
        },
    })


@pytest.fixture
def models_context() -> Context:
    """A small hand-written Context with nested lists and maps."""
    return Context({
        "projectName": "My Task App",
        "storageNeeded": False,
        "count": 3,
        "ratio": 2.0,
        "tags": [],
        "models": [
            {"name": "Todo", "fields": [{"name": "title"}, {"name": "done"}]},
            {"name": "User", "fields": [{"name": "email"}]},
        ],
        "settings": {"region": "eu-west-1", "stage": "dev"},
    })


# ---------------------------------------------------------------------------
# Template sets & libraries
# ---------------------------------------------------------------------------


@pytest.fixture
def package_json_set() -> TemplateSet:
    """Two entries: an always-present package.json and a conditional file."""
    return TemplateSet.from_pairs([
        ("package.json", '{"name": "{{projectNameKebab}}"}\n'),
        ("{{#if storageNeeded}}amplify/storage/resource.ts{{/if}}", "export {};\n"),
    ])


@pytest.fixture
def make_library(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing template files (and optionally a manifest) to disk.

    Usage::

        def test_x(make_library):
            root = make_library({"README.md.hbs": "# {{projectName}}"})
    """

    def factory(
        files: dict[str, str],
        manifest: list[dict[str, Any]] | None = None,
        name: str = "library",
    ) -> Path:
        root = tmp_path / name
        root.mkdir(parents=True, exist_ok=True)
        for rel, body in files.items():
            target = root / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(textwrap.dedent(body), encoding="utf-8")
        if manifest is not None:
            (root / "manifest.yaml").write_text(
                yaml.safe_dump({"files": manifest}, sort_keys=False), encoding="utf-8"
            )
        return root

    return factory


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Empty directory for written projects (auto-cleanup)."""
    target = tmp_path / "out"
    target.mkdir()
    return target


# ---------------------------------------------------------------------------
# Console
# ---------------------------------------------------------------------------


@pytest.fixture
def recording_console(monkeypatch: pytest.MonkeyPatch) -> Console:
    """Swap the shared console for one that records output."""
    console = Console(record=True, width=160)
    monkeypatch.setattr(utils, "console", console)
    return console
