"""Scaffold Engine Pipeline.

Turns an architecture decision into a project tree in three steps:

1. CONTEXT  -- Run the pattern generator and freeze its output.
2. ASSEMBLE -- Render every path/body template of the library.
3. WRITE    -- Persist the FileSet under the output directory.

The run is all-or-nothing: if any template fails, nothing is written and
the full ErrorReport is shown instead.

Usage::

    python -m src.pipeline decision.yaml --output ./my-app
    python -m src.pipeline decision.json --dry-run --lenient
"""

from __future__ import annotations

import asyncio
import sys
import time
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError
from rich.panel import Panel

from src.assembler import (
    AssemblyError,
    ErrorReport,
    FileSet,
    FileSetWriter,
    OutputAssembler,
    TemplateLibrary,
    TemplateLibraryError,
    TemplateSet,
)
from src.config import AssemblyConfig, EngineConfig, RenderConfig
from src.engine.errors import GenerationCancelled, PathSecurityError
from src.engine.renderer import RenderMode
from src.engine.values import Context
from src.patterns import ContextBuilder, PatternConfig, PatternRegistry
from src.utils import (
    console,
    create_progress,
    format_duration,
    load_config_file,
    print_error,
    print_error_report,
    print_file_set,
    print_header,
    print_success,
    print_summary_table,
    print_warning,
    save_json,
)

EXIT_GENERATION_FAILED = 1
EXIT_INVALID_INPUT = 2
EXIT_CANCELLED = 3

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class PipelineError(Exception):
    """Raised when a pipeline step cannot start because its input is invalid."""

    def __init__(self, step: str, message: str) -> None:
        self.step = step
        super().__init__(f"{step.upper()}: {message}")


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


class GenerationResult(BaseModel):
    """Outcome of one successful generation run."""

    pattern: str
    file_set: FileSet
    warnings: list[str] = Field(default_factory=list)
    written: list[Path] = Field(default_factory=list)
    duration: float = 0.0


# ---------------------------------------------------------------------------
# Pipeline Orchestrator
# ---------------------------------------------------------------------------


class GenerationPipeline:
    """Drives context building, assembly and (optionally) writing.

    Attributes:
        config: Engine configuration.
        builder: Context builder holding the pattern registry.
        library: Template library the TemplateSet is loaded from.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        registry: Optional[PatternRegistry] = None,
        library: Optional[TemplateLibrary] = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.builder = ContextBuilder(registry)
        self.library = library or TemplateLibrary(self.config.template_dir)
        self.assembler = OutputAssembler(
            mode=self.config.render.mode,
            max_workers=self.config.assembly.max_workers,
            strip_paths=self.config.render.strip_paths,
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def build_context(self, pattern_config: Union[PatternConfig, Mapping[str, Any]]) -> Context:
        """Step 1: validate the decision and build the render Context.

        Raises:
            PipelineError: If *pattern_config* is not a valid ``PatternConfig``.
        """
        try:
            return self.builder.build(pattern_config)
        except ValidationError as exc:
            raise PipelineError("context", f"Invalid pattern config: {exc}") from exc

    def load_templates(self) -> TemplateSet:
        """Load the TemplateSet from the configured library.

        Raises:
            PipelineError: If the library directory or manifest is unusable.
        """
        try:
            return self.library.load()
        except TemplateLibraryError as exc:
            raise PipelineError("templates", str(exc)) from exc

    def generate(
        self,
        pattern_config: Union[PatternConfig, Mapping[str, Any]],
        template_set: Optional[TemplateSet] = None,
    ) -> GenerationResult:
        """Build the context and assemble sequentially; writes nothing.

        Raises:
            PipelineError: On invalid input.
            AssemblyError: If any template failed.
        """
        start = time.monotonic()
        context = self.build_context(pattern_config)
        templates = template_set if template_set is not None else self.load_templates()
        file_set = self.assembler.assemble(templates, context)
        return self._result(context, file_set, start)

    async def generate_async(
        self,
        pattern_config: Union[PatternConfig, Mapping[str, Any]],
        template_set: Optional[TemplateSet] = None,
    ) -> GenerationResult:
        """Like ``generate`` but renders concurrently and honours the timeout.

        Raises:
            PipelineError: On invalid input.
            AssemblyError: If any template failed.
            GenerationCancelled: If the configured timeout expired.
        """
        start = time.monotonic()
        context = self.build_context(pattern_config)
        if template_set is None:
            try:
                template_set = await self.library.load_async()
            except TemplateLibraryError as exc:
                raise PipelineError("templates", str(exc)) from exc
        file_set = await self.assembler.assemble_async(
            template_set, context, timeout=self.config.assembly.timeout
        )
        return self._result(context, file_set, start)

    async def write(self, result: GenerationResult) -> GenerationResult:
        """Step 3: persist *result.file_set* under the output directory.

        The settings used for the run are recorded at ``config.settings_path``
        so the run can be repeated with ``--settings``.

        Raises:
            PathSecurityError: If a path resolves outside the output directory.
            FileExistsError: If a file exists and overwriting is disabled.
        """
        writer = FileSetWriter(self.config.output_dir, overwrite=self.config.overwrite)
        written = await writer.write(result.file_set)
        self.config.save()
        return result.model_copy(update={"written": written})

    async def save_report(self, report: ErrorReport, path: Optional[Path] = None) -> Path:
        """Write *report* as JSON (default: ``config.report_path``) and return the path."""
        target = Path(path) if path is not None else self.config.report_path
        await save_json(report.model_dump(mode="json", by_alias=True), target)
        return target

    # ------------------------------------------------------------------
    # Full run
    # ------------------------------------------------------------------

    async def run(
        self,
        pattern_config: Union[PatternConfig, Mapping[str, Any]],
        dry_run: bool = False,
    ) -> GenerationResult:
        """Execute the whole pipeline with console reporting.

        Errors propagate to the caller after the console has been updated;
        ``main()`` maps them to exit codes.
        """
        pattern_name = (
            pattern_config.pattern_name
            if isinstance(pattern_config, PatternConfig)
            else str(pattern_config.get("patternName", "?"))
        )
        console.print(
            Panel(
                f"[bold bright_cyan]Scaffold Engine[/bold bright_cyan]\n"
                f"Pattern   : {pattern_name}\n"
                f"Templates : {self.library.template_dir}\n"
                f"Output    : {'(dry run)' if dry_run else self.config.output_dir.resolve()}\n"
                f"Mode      : {self.assembler.mode.value}",
                title="[bold]Generation Start[/bold]",
                border_style="bright_cyan",
            )
        )

        print_header("Assemble")
        with create_progress() as progress:
            progress.add_task("Rendering templates...", total=None)
            result = await self.generate_async(pattern_config)
        for warning in result.warnings:
            print_warning(f"Warning: {warning}")

        if not dry_run:
            print_header("Write")
            result = await self.write(result)

        print_file_set(result.file_set)
        print_summary_table(
            {
                "Pattern": result.pattern,
                "Files": str(len(result.file_set)),
                "Written": "no (dry run)" if dry_run else str(len(result.written)),
                "Warnings": str(len(result.warnings)),
                "Duration": format_duration(result.duration),
            },
            title="Generation Summary",
        )
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _result(context: Context, file_set: FileSet, start: float) -> GenerationResult:
        return GenerationResult(
            pattern=str(context.get("pattern", "")),
            file_set=file_set,
            warnings=list(context.warnings),
            duration=time.monotonic() - start,
        )


def generate(
    pattern_config: Union[PatternConfig, Mapping[str, Any]],
    template_set: Optional[TemplateSet] = None,
    mode: Union[RenderMode, str] = RenderMode.STRICT,
) -> FileSet:
    """Generate a FileSet with the bundled templates (or *template_set*).

    Raises:
        PipelineError: On invalid input.
        AssemblyError: If any template failed.
    """
    config = EngineConfig(render=RenderConfig(mode=RenderMode(mode)))
    return GenerationPipeline(config).generate(pattern_config, template_set).file_set


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def _engine_config(args: Any) -> EngineConfig:
    """Saved settings (or the environment) overridden by explicit CLI flags."""
    config = EngineConfig.load(Path(args.settings)) if args.settings else EngineConfig.from_env()
    render = config.render.model_dump()
    assembly = config.assembly.model_dump()
    overrides: dict[str, Any] = {}
    if args.templates:
        overrides["template_dir"] = Path(args.templates)
    if args.output:
        overrides["output_dir"] = Path(args.output)
    if args.overwrite:
        overrides["overwrite"] = True
    if args.lenient:
        render["mode"] = RenderMode.LENIENT
    if args.workers is not None:
        assembly["max_workers"] = args.workers
    if args.timeout is not None:
        assembly["timeout"] = args.timeout
    return EngineConfig(
        **{**config.model_dump(exclude={"render", "assembly"}), **overrides},
        render=RenderConfig(**render),
        assembly=AssemblyConfig(**assembly),
    )


def main(argv: Optional[list[str]] = None) -> None:
    """CLI entry point for ``python -m src.pipeline``."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Scaffold Engine -- render an architecture decision into a project",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Exit codes: 0 success, 1 generation failed, 2 invalid input, 3 cancelled\n\n"
            "Examples:\n"
            "  python -m src.pipeline decision.yaml -o ./my-app\n"
            "  python -m src.pipeline decision.json --dry-run --lenient\n"
            "  python -m src.pipeline decision.yaml --templates ./my-templates --timeout 30\n"
            "  python -m src.pipeline decision.yaml --settings ./my-app/.ace/config.json\n"
        ),
    )

    parser.add_argument(
        "config",
        help="Pattern config file (YAML or JSON) with 'patternName' and 'decisions'",
    )
    parser.add_argument(
        "--templates", "-t",
        default=None,
        help="Template library directory (default: bundled Amplify templates)",
    )
    parser.add_argument(
        "--output", "-o",
        default=None,
        help="Output directory (default: ./output)",
    )
    parser.add_argument(
        "--lenient",
        action="store_true",
        help="Render missing variables as empty strings (draft preview)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Render everything but write nothing",
    )
    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Replace files that already exist in the output directory",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Cancel the run after this many seconds",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of render worker threads",
    )
    parser.add_argument(
        "--json-report",
        nargs="?",
        const="",
        default=None,
        metavar="PATH",
        help=(
            "Write the error report as JSON when generation fails "
            "(default path: <output>/.ace/error-report.json)"
        ),
    )
    parser.add_argument(
        "--settings",
        default=None,
        help="Engine settings saved by an earlier run (<output>/.ace/config.json); flags still override",
    )

    args = parser.parse_args(argv)

    config_path = Path(args.config)
    if not config_path.exists():
        console.print(f"[bold red]Error:[/bold red] Config file not found: {config_path}")
        sys.exit(EXIT_INVALID_INPUT)

    try:
        pattern_config = PatternConfig.model_validate(load_config_file(config_path))
    except ValidationError as exc:
        console.print(f"[bold red]Error:[/bold red] Invalid pattern config {config_path}:\n{exc}")
        sys.exit(EXIT_INVALID_INPUT)
    except (ValueError, yaml.YAMLError) as exc:
        console.print(f"[bold red]Error:[/bold red] Cannot parse {config_path}: {exc}")
        sys.exit(EXIT_INVALID_INPUT)

    try:
        engine_config = _engine_config(args)
    except ValidationError as exc:
        console.print(f"[bold red]Error:[/bold red] Invalid engine settings:\n{exc}")
        sys.exit(EXIT_INVALID_INPUT)
    except OSError as exc:
        console.print(f"[bold red]Error:[/bold red] Cannot read settings: {exc}")
        sys.exit(EXIT_INVALID_INPUT)

    pipeline = GenerationPipeline(engine_config)
    try:
        asyncio.run(pipeline.run(pattern_config, dry_run=args.dry_run))
    except AssemblyError as exc:
        print_error_report(exc.report)
        if args.json_report is not None:
            report_path = asyncio.run(
                pipeline.save_report(exc.report, Path(args.json_report) if args.json_report else None)
            )
            console.print(f"  Error report written to [bold]{report_path}[/bold]")
        print_error(f"{exc}. No files were written.")
        sys.exit(EXIT_GENERATION_FAILED)
    except GenerationCancelled as exc:
        print_error(f"Cancelled: {exc}")
        sys.exit(EXIT_CANCELLED)
    except PipelineError as exc:
        print_error(str(exc))
        sys.exit(EXIT_INVALID_INPUT)
    except (FileExistsError, PathSecurityError) as exc:
        print_error(f"Refusing to write output: {exc}")
        sys.exit(EXIT_GENERATION_FAILED)

    print_success("Generation completed successfully!")


if __name__ == "__main__":
    main()
