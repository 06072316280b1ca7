"""Unit tests for the generation pipeline and CLI (src.pipeline).

Tests cover:
- GenerationPipeline.generate / generate_async / write / run
- PipelineError for invalid configs and template libraries
- The module-level generate() shortcut
- main(): exit codes, dry runs, JSON error reports, saved settings
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest
import yaml

from rich.console import Console

from src.assembler import (
    AssemblyError,
    ErrorEntry,
    ErrorReport,
    OutputAssembler,
    TemplateLibrary,
    TemplateSet,
)
from src.config import AssemblyConfig, EngineConfig, RenderConfig
from src.engine import GenerationCancelled, RenderMode
from src.pipeline import (
    EXIT_CANCELLED,
    EXIT_GENERATION_FAILED,
    EXIT_INVALID_INPUT,
    GenerationPipeline,
    PipelineError,
    generate,
    main,
)


def _write_config(path: Path, data: dict[str, Any]) -> Path:
    if path.suffix in (".yaml", ".yml"):
        path.write_text(yaml.safe_dump(data), encoding="utf-8")
    else:
        path.write_text(json.dumps(data), encoding="utf-8")
    return path


def _exit_code(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


# ---------------------------------------------------------------------------
# GenerationPipeline
# ---------------------------------------------------------------------------


class TestGenerationPipeline:
    @pytest.mark.unit
    def test_generate_with_bundled_templates(self, crud_config):
        result = GenerationPipeline().generate(crud_config)
        assert result.pattern == "simple_crud"
        assert "package.json" in result.file_set.paths()
        assert result.written == []
        assert result.warnings == []

    @pytest.mark.unit
    def test_generate_with_explicit_template_set(self, crud_config, package_json_set):
        result = GenerationPipeline().generate(crud_config, package_json_set)
        assert result.file_set.paths() == ["package.json"]

    @pytest.mark.unit
    def test_fallback_warning_is_surfaced(self, package_json_set):
        result = GenerationPipeline().generate(
            {"patternName": "nope", "decisions": {}}, package_json_set
        )
        assert result.warnings == ["unknown_pattern:nope"]
        assert result.pattern == "simple_crud"

    @pytest.mark.unit
    def test_invalid_pattern_config(self, package_json_set):
        with pytest.raises(PipelineError) as exc_info:
            GenerationPipeline().generate({"decisions": {}}, package_json_set)
        assert exc_info.value.step == "context"

    @pytest.mark.unit
    def test_missing_template_dir(self, tmp_path: Path, crud_config):
        pipeline = GenerationPipeline(EngineConfig(template_dir=tmp_path / "absent"))
        with pytest.raises(PipelineError) as exc_info:
            pipeline.generate(crud_config)
        assert exc_info.value.step == "templates"

    @pytest.mark.unit
    def test_config_flows_into_assembler(self):
        config = EngineConfig(
            render=RenderConfig(mode=RenderMode.LENIENT, strip_paths=False),
            assembly=AssemblyConfig(max_workers=2),
        )
        pipeline = GenerationPipeline(config)
        assert pipeline.assembler.mode is RenderMode.LENIENT
        assert pipeline.assembler.max_workers == 2
        assert pipeline.assembler.strip_paths is False

    @pytest.mark.unit
    def test_custom_library(self, make_library, crud_config):
        root = make_library({"hello.txt.hbs": "Hello {{projectName}}"})
        pipeline = GenerationPipeline(library=TemplateLibrary(root))
        assert pipeline.generate(crud_config).file_set.as_dict() == {
            "hello.txt": "Hello My Task App",
        }

    @pytest.mark.asyncio
    async def test_generate_async_matches_generate(self, crud_config):
        pipeline = GenerationPipeline()
        concurrent = await pipeline.generate_async(crud_config)
        assert concurrent.file_set == pipeline.generate(crud_config).file_set

    @pytest.mark.asyncio
    async def test_run_writes_files(self, output_dir: Path, crud_config):
        pipeline = GenerationPipeline(EngineConfig(output_dir=output_dir))
        result = await pipeline.run(crud_config)
        assert len(result.written) == len(result.file_set)
        package = json.loads((output_dir / "package.json").read_text(encoding="utf-8"))
        assert package["name"] == "my-task-app"
        assert EngineConfig.load(output_dir / ".ace" / "config.json") == pipeline.config

    @pytest.mark.asyncio
    async def test_run_dry_run_writes_nothing(self, output_dir: Path, crud_config):
        pipeline = GenerationPipeline(EngineConfig(output_dir=output_dir))
        result = await pipeline.run(crud_config, dry_run=True)
        assert result.written == []
        assert list(output_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_run_prints_step_headers(self, recording_console: Console, crud_config):
        await GenerationPipeline().run(crud_config, dry_run=True)
        text = recording_console.export_text()
        assert "Assemble" in text
        assert "package.json" in text

    @pytest.mark.asyncio
    async def test_save_report_defaults_to_report_path(self, output_dir: Path):
        pipeline = GenerationPipeline(EngineConfig(output_dir=output_dir))
        report = ErrorReport(entries=[
            ErrorEntry(error_kind="MissingVariable", file_identifier="#0 a.txt", message="x"),
        ])
        path = await pipeline.save_report(report)
        assert path == output_dir / ".ace" / "error-report.json"
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["entries"][0]["errorKind"] == "MissingVariable"
        assert data["failed_files"] == ["#0 a.txt"]

    @pytest.mark.asyncio
    async def test_run_failure_writes_nothing(self, output_dir: Path, crud_config):
        template_set = TemplateSet.from_pairs([("a.txt", "ok"), ("b.txt", "{{missing}}")])
        pipeline = GenerationPipeline(EngineConfig(output_dir=output_dir))
        with patch.object(TemplateLibrary, "load", return_value=template_set):
            with pytest.raises(AssemblyError):
                await pipeline.run(crud_config)
        assert list(output_dir.iterdir()) == []


class TestGenerateShortcut:
    @pytest.mark.unit
    def test_generate_returns_file_set(self, crud_config, package_json_set):
        file_set = generate(crud_config, package_json_set)
        assert json.loads(file_set.get("package.json")) == {"name": "my-task-app"}

    @pytest.mark.unit
    def test_generate_lenient_mode_string(self, crud_config):
        template_set = TemplateSet.from_pairs([("a.txt", "[{{nothing}}]")])
        assert generate(crud_config, template_set, mode="lenient").get("a.txt") == "[]"


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


class TestMain:
    @pytest.mark.unit
    def test_success_writes_project(self, tmp_path: Path, output_dir: Path, crud_config):
        config_path = _write_config(tmp_path / "decision.yaml", crud_config)
        main([str(config_path), "--output", str(output_dir)])
        assert (output_dir / "package.json").exists()
        assert (output_dir / "amplify" / "data" / "resource.ts").exists()

    @pytest.mark.unit
    def test_dry_run(self, tmp_path: Path, output_dir: Path, crud_config):
        config_path = _write_config(tmp_path / "decision.json", crud_config)
        main([str(config_path), "--output", str(output_dir), "--dry-run"])
        assert list(output_dir.iterdir()) == []

    @pytest.mark.unit
    def test_missing_config_file(self, tmp_path: Path):
        assert _exit_code([str(tmp_path / "absent.yaml")]) == EXIT_INVALID_INPUT

    @pytest.mark.unit
    def test_unparseable_config_file(self, tmp_path: Path):
        path = tmp_path / "decision.yaml"
        path.write_text("patternName: [unclosed\n", encoding="utf-8")
        assert _exit_code([str(path)]) == EXIT_INVALID_INPUT

    @pytest.mark.unit
    def test_invalid_json_config_file(self, tmp_path: Path):
        path = tmp_path / "decision.json"
        path.write_text("{not json", encoding="utf-8")
        assert _exit_code([str(path)]) == EXIT_INVALID_INPUT

    @pytest.mark.unit
    def test_config_without_pattern_name(self, tmp_path: Path):
        path = _write_config(tmp_path / "decision.yaml", {"decisions": {}})
        assert _exit_code([str(path)]) == EXIT_INVALID_INPUT

    @pytest.mark.unit
    def test_missing_template_directory(self, tmp_path: Path, crud_config):
        path = _write_config(tmp_path / "decision.yaml", crud_config)
        code = _exit_code([str(path), "--templates", str(tmp_path / "absent"), "--dry-run"])
        assert code == EXIT_INVALID_INPUT

    @pytest.mark.unit
    def test_invalid_worker_count(self, tmp_path: Path, crud_config):
        path = _write_config(tmp_path / "decision.yaml", crud_config)
        assert _exit_code([str(path), "--workers", "0", "--dry-run"]) == EXIT_INVALID_INPUT

    @pytest.mark.unit
    def test_generation_failure_writes_json_report(
        self, tmp_path: Path, output_dir: Path, make_library, crud_config
    ):
        library = make_library({"a.txt.hbs": "{{missing}}", "b.txt.hbs": "{{#if x}}"})
        path = _write_config(tmp_path / "decision.yaml", crud_config)
        report_path = tmp_path / "reports" / "errors.json"
        code = _exit_code([
            str(path),
            "--templates", str(library),
            "--output", str(output_dir),
            "--json-report", str(report_path),
        ])
        assert code == EXIT_GENERATION_FAILED
        report = json.loads(report_path.read_text(encoding="utf-8"))
        assert [e["errorKind"] for e in report["entries"]] == ["MissingVariable", "UnterminatedBlock"]
        assert list(output_dir.iterdir()) == []

    @pytest.mark.unit
    def test_bare_json_report_flag_uses_default_path(
        self, tmp_path: Path, output_dir: Path, make_library, crud_config
    ):
        library = make_library({"a.txt.hbs": "{{missing}}"})
        path = _write_config(tmp_path / "decision.yaml", crud_config)
        code = _exit_code([
            str(path), "--templates", str(library), "--output", str(output_dir), "--json-report",
        ])
        assert code == EXIT_GENERATION_FAILED
        report_path = output_dir / ".ace" / "error-report.json"
        report = json.loads(report_path.read_text(encoding="utf-8"))
        assert [e["errorKind"] for e in report["entries"]] == ["MissingVariable"]

    @pytest.mark.unit
    def test_settings_from_an_earlier_run(
        self, tmp_path: Path, output_dir: Path, make_library, crud_config
    ):
        settings = EngineConfig(render=RenderConfig(mode=RenderMode.LENIENT)).save(
            tmp_path / "settings.json"
        )
        library = make_library({"a.txt.hbs": "[{{missing}}]"})
        path = _write_config(tmp_path / "decision.yaml", crud_config)
        main([
            str(path), "--templates", str(library), "--output", str(output_dir),
            "--settings", str(settings),
        ])
        assert (output_dir / "a.txt").read_text(encoding="utf-8") == "[]"
        recorded = EngineConfig.load(output_dir / ".ace" / "config.json")
        assert recorded.render.mode is RenderMode.LENIENT
        assert recorded.template_dir == library

    @pytest.mark.unit
    @pytest.mark.parametrize("content", [None, "{not json", '{"render": {"mode": "loose"}}'])
    def test_unusable_settings_file(self, tmp_path: Path, crud_config, content):
        settings = tmp_path / "settings.json"
        if content is not None:
            settings.write_text(content, encoding="utf-8")
        path = _write_config(tmp_path / "decision.yaml", crud_config)
        code = _exit_code([str(path), "--settings", str(settings), "--dry-run"])
        assert code == EXIT_INVALID_INPUT

    @pytest.mark.unit
    def test_lenient_flag_allows_missing_variables(
        self, tmp_path: Path, make_library, crud_config
    ):
        library = make_library({"a.txt.hbs": "[{{missing}}]"})
        path = _write_config(tmp_path / "decision.yaml", crud_config)
        main([str(path), "--templates", str(library), "--lenient", "--dry-run"])

    @pytest.mark.unit
    def test_existing_output_is_not_overwritten(self, tmp_path: Path, output_dir: Path, crud_config):
        (output_dir / "package.json").write_text("{}", encoding="utf-8")
        path = _write_config(tmp_path / "decision.yaml", crud_config)
        assert _exit_code([str(path), "--output", str(output_dir)]) == EXIT_GENERATION_FAILED
        assert (output_dir / "package.json").read_text(encoding="utf-8") == "{}"

    @pytest.mark.unit
    def test_overwrite_flag(self, tmp_path: Path, output_dir: Path, crud_config):
        (output_dir / "package.json").write_text("{}", encoding="utf-8")
        path = _write_config(tmp_path / "decision.yaml", crud_config)
        main([str(path), "--output", str(output_dir), "--overwrite"])
        assert "my-task-app" in (output_dir / "package.json").read_text(encoding="utf-8")

    @pytest.mark.unit
    def test_cancelled(self, tmp_path: Path, crud_config):
        path = _write_config(tmp_path / "decision.yaml", crud_config)
        cancelled = AsyncMock(side_effect=GenerationCancelled("timed out"))
        with patch.object(OutputAssembler, "assemble_async", cancelled):
            assert _exit_code([str(path), "--dry-run", "--timeout", "1"]) == EXIT_CANCELLED
        assert cancelled.await_args.kwargs["timeout"] == 1.0
