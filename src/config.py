"""Scaffold engine configuration.

Centralised, typed configuration for the generation pipeline. All settings use
Pydantic v2 models so they can be validated at construction time and serialised
to/from JSON or environment variables without boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

from src.assembler.library import DEFAULT_TEMPLATE_DIR
from src.engine.renderer import RenderMode
from src.utils import ensure_dir

_TRUE_VALUES = {"1", "true", "yes", "on"}


class RenderConfig(BaseModel):
    """How templates are rendered."""

    mode: RenderMode = Field(
        default=RenderMode.STRICT,
        description="'strict' fails on missing variables, 'lenient' renders them empty",
    )
    strip_paths: bool = Field(
        default=True, description="Strip surrounding whitespace from rendered file paths"
    )


class AssemblyConfig(BaseModel):
    """Tuning knobs for the output assembler."""

    max_workers: Optional[int] = Field(
        default=None, ge=1, description="Render worker threads (None lets the executor pick)"
    )
    timeout: Optional[float] = Field(
        default=None, gt=0, description="Whole-run timeout in seconds"
    )


class EngineConfig(BaseModel):
    """Global scaffold engine configuration.

    Instances are typically created once by the CLI entry point and then
    passed to ``GenerationPipeline``.
    """

    template_dir: Path = Field(default=DEFAULT_TEMPLATE_DIR)
    output_dir: Path = Field(default=Path("./output"))
    overwrite: bool = Field(default=False, description="Replace files that already exist")
    render: RenderConfig = Field(default_factory=RenderConfig)
    assembly: AssemblyConfig = Field(default_factory=AssemblyConfig)

    # ------------------------------------------------------------------
    # Derived paths
    # ------------------------------------------------------------------

    @property
    def settings_path(self) -> Path:
        """Where a successful run records the settings it used."""
        return self.output_dir / ".ace" / "config.json"

    @property
    def report_path(self) -> Path:
        """Default location of a JSON error report for failed runs."""
        return self.output_dir / ".ace" / "error-report.json"

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path | None = None) -> Path:
        """Persist the configuration to a JSON file.

        Args:
            path: Destination file. Defaults to ``settings_path``.

        Returns:
            The resolved path where the file was written.
        """
        target = path or self.settings_path
        ensure_dir(target.parent)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "EngineConfig":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build an ``EngineConfig`` from environment variables.

        Recognised variables (all optional):
            ACE_RENDER_MODE, ACE_MAX_WORKERS, ACE_TIMEOUT,
            ACE_TEMPLATE_DIR, ACE_OUTPUT_DIR, ACE_OVERWRITE.

        Raises:
            pydantic.ValidationError: If a variable holds an invalid value.
        """
        render_kwargs: dict[str, Any] = {}
        if os.environ.get("ACE_RENDER_MODE"):
            render_kwargs["mode"] = os.environ["ACE_RENDER_MODE"].strip().lower()

        assembly_kwargs: dict[str, Any] = {}
        if os.environ.get("ACE_MAX_WORKERS"):
            assembly_kwargs["max_workers"] = os.environ["ACE_MAX_WORKERS"]
        if os.environ.get("ACE_TIMEOUT"):
            assembly_kwargs["timeout"] = os.environ["ACE_TIMEOUT"]

        kwargs: dict[str, Any] = {}
        if os.environ.get("ACE_TEMPLATE_DIR"):
            kwargs["template_dir"] = Path(os.environ["ACE_TEMPLATE_DIR"])
        if os.environ.get("ACE_OUTPUT_DIR"):
            kwargs["output_dir"] = Path(os.environ["ACE_OUTPUT_DIR"])
        if os.environ.get("ACE_OVERWRITE"):
            kwargs["overwrite"] = os.environ["ACE_OVERWRITE"].strip().lower() in _TRUE_VALUES

        return cls(
            render=RenderConfig(**render_kwargs),
            assembly=AssemblyConfig(**assembly_kwargs),
            **kwargs,
        )
