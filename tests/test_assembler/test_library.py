"""Tests for TemplateLibrary loading (src.assembler.library).

Covers:
- Manifest-driven loading (order, inline content, ids)
- Directory scanning without a manifest
- Manifest and reference errors
- The bundled Amplify library parses cleanly
"""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from src.assembler import DEFAULT_TEMPLATE_DIR, TemplateLibrary, TemplateLibraryError
from src.engine import Context

pytestmark = pytest.mark.unit


class TestManifest:
    def test_entries_follow_manifest_order(self, make_library):
        root = make_library(
            {"b.hbs": "B {{name}}", "a.hbs": "A"},
            manifest=[
                {"path": "second/b.txt", "body": "b.hbs"},
                {"path": "first/a.txt", "body": "a.hbs"},
            ],
        )
        template_set = TemplateLibrary(root).load()
        assert [e.identifier for e in template_set] == ["b.hbs", "a.hbs"]
        assert template_set[0].path_template.source == "second/b.txt"
        assert template_set[0].body_template.source == "B {{name}}"

    def test_inline_content_and_explicit_id(self, make_library):
        root = make_library({}, manifest=[
            {"path": ".gitignore", "content": "node_modules/\n", "id": "gitignore"},
            {"path": "empty.txt"},
        ])
        template_set = TemplateLibrary(root).load()
        assert [e.identifier for e in template_set] == ["gitignore", "empty.txt"]
        assert template_set[0].body_template.source == "node_modules/\n"
        assert template_set[1].body_template.source == ""

    def test_missing_body_file(self, make_library):
        root = make_library({}, manifest=[{"path": "x", "body": "nope.hbs"}])
        with pytest.raises(TemplateLibraryError, match="not found"):
            TemplateLibrary(root).load()

    def test_body_reference_cannot_escape(self, make_library):
        root = make_library({}, manifest=[{"path": "x", "body": "../secret.hbs"}])
        with pytest.raises(TemplateLibraryError, match="escapes"):
            TemplateLibrary(root).load()

    @pytest.mark.parametrize("manifest_text", [
        "files: not-a-list\n",
        "- just\n- a list\n",
        "files:\n  - body: a.hbs\n",
        "files:\n  - path: x\n    body: 3\n",
        "files: [unclosed\n",
    ])
    def test_malformed_manifest(self, tmp_path: Path, manifest_text: str):
        (tmp_path / "manifest.yaml").write_text(manifest_text, encoding="utf-8")
        with pytest.raises(TemplateLibraryError):
            TemplateLibrary(tmp_path).load()


class TestDirectoryScan:
    def test_sorted_hbs_files_without_manifest(self, make_library):
        root = make_library({
            "src/main.ts.hbs": "main",
            "README.md.hbs": "# {{projectName}}",
            "notes.txt": "ignored",
        })
        library = TemplateLibrary(root)
        assert library.list_templates() == ["README.md.hbs", "src/main.ts.hbs"]
        template_set = library.load()
        assert [e.path_template.source for e in template_set] == ["README.md", "src/main.ts"]

    def test_missing_directory(self, tmp_path: Path):
        library = TemplateLibrary(tmp_path / "absent")
        assert library.list_templates() == []
        with pytest.raises(TemplateLibraryError):
            library.load()

    @pytest.mark.asyncio
    async def test_load_async(self, make_library):
        root = make_library({"a.hbs": "A"})
        template_set = await TemplateLibrary(root).load_async()
        assert len(template_set) == 1


class TestBundledLibrary:
    def test_default_directory(self):
        assert TemplateLibrary().template_dir == DEFAULT_TEMPLATE_DIR
        assert (DEFAULT_TEMPLATE_DIR / "manifest.yaml").is_file()

    def test_manifest_is_valid_yaml(self):
        data = yaml.safe_load((DEFAULT_TEMPLATE_DIR / "manifest.yaml").read_text(encoding="utf-8"))
        assert isinstance(data["files"], list)
        assert all("path" in entry for entry in data["files"])

    def test_every_template_parses(self):
        for entry in TemplateLibrary().load():
            assert entry.path_template.ast is not None
            assert entry.body_template.ast is not None

    def test_renders_lenient_against_empty_context(self):
        from src.assembler import OutputAssembler
        from src.engine import RenderMode

        file_set = OutputAssembler(RenderMode.LENIENT).assemble(TemplateLibrary().load(), Context({}))
        assert "package.json" in file_set.paths()
        assert "amplify/storage/resource.ts" not in file_set.paths()
