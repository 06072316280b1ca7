"""Loading TemplateSets from a template-library directory.

A library directory either holds a ``manifest.yaml`` listing entries in
order::

    files:
      - path: package.json
        body: package.json.hbs
      - path: "{{#if storageNeeded}}amplify/storage/resource.ts{{/if}}"
        body: amplify/storage/resource.ts.hbs

or, without a manifest, every ``*.hbs`` file is an entry whose path
template is its relative path minus the suffix (sorted for determinism).
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Optional

import yaml

from src.engine.errors import PathSecurityError
from src.engine.helpers import DEFAULT_HELPERS, HelperRegistry

from .assembler import validate_output_path
from .models import TemplateEntry, TemplateSet

MANIFEST_NAME = "manifest.yaml"
TEMPLATE_SUFFIX = ".hbs"

DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "amplify"


class TemplateLibraryError(ValueError):
    """Raised when a template library directory or manifest is unusable."""


class TemplateLibrary:
    """A directory of template files, loaded into a ``TemplateSet``."""

    def __init__(
        self,
        template_dir: str | Path | None = None,
        helpers: HelperRegistry = DEFAULT_HELPERS,
    ) -> None:
        self.template_dir = Path(template_dir) if template_dir is not None else DEFAULT_TEMPLATE_DIR
        self.helpers = helpers

    @property
    def manifest_path(self) -> Path:
        return self.template_dir / MANIFEST_NAME

    def list_templates(self) -> list[str]:
        """Sorted ``*.hbs`` paths relative to the library root."""
        if not self.template_dir.is_dir():
            return []
        return sorted(
            p.relative_to(self.template_dir).as_posix()
            for p in self.template_dir.rglob(f"*{TEMPLATE_SUFFIX}")
        )

    def load(self) -> TemplateSet:
        """Read the library into a TemplateSet (templates are parsed lazily).

        Raises:
            TemplateLibraryError: If the directory is missing, the manifest is
                malformed, or a referenced body file does not exist.
        """
        if not self.template_dir.is_dir():
            raise TemplateLibraryError(f"Template directory not found: {self.template_dir}")
        if self.manifest_path.exists():
            return self._load_manifest()

        entries = []
        for rel in self.list_templates():
            body = self._read(rel)
            entries.append(TemplateEntry.from_strings(
                rel[: -len(TEMPLATE_SUFFIX)], body, identifier=rel, helpers=self.helpers
            ))
        return TemplateSet(entries)

    async def load_async(self) -> TemplateSet:
        return await asyncio.to_thread(self.load)

    # -- Internals ---------------------------------------------------------

    def _load_manifest(self) -> TemplateSet:
        try:
            data: Any = yaml.safe_load(self.manifest_path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise TemplateLibraryError(f"Invalid YAML in {self.manifest_path}: {exc}") from exc

        raw_entries = data.get("files") if isinstance(data, dict) else None
        if not isinstance(raw_entries, list):
            raise TemplateLibraryError(f"{self.manifest_path} must contain a 'files' list")

        entries = []
        for index, raw in enumerate(raw_entries):
            if not isinstance(raw, dict) or not isinstance(raw.get("path"), str):
                raise TemplateLibraryError(
                    f"{self.manifest_path}: entry {index} needs a string 'path'"
                )
            body_ref: Optional[str] = raw.get("body")
            if body_ref is None:
                body = raw.get("content", "")
            elif isinstance(body_ref, str):
                body = self._read(body_ref)
            else:
                raise TemplateLibraryError(
                    f"{self.manifest_path}: entry {index} has a non-string 'body'"
                )
            identifier = raw.get("id") or body_ref or raw["path"]
            entries.append(TemplateEntry.from_strings(
                raw["path"], body, identifier=str(identifier), helpers=self.helpers
            ))
        return TemplateSet(entries)

    def _read(self, rel: str) -> str:
        try:
            validate_output_path(rel)
        except PathSecurityError as exc:
            raise TemplateLibraryError(f"Template reference escapes the library: {exc}") from exc
        path = self.template_dir / rel
        if not path.is_file():
            raise TemplateLibraryError(f"Template file not found: {path}")
        return path.read_text(encoding="utf-8")
