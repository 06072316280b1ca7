"""Persists a FileSet under an output root.

This is the only component that touches the disk.  Every target is checked
again against the output root and for pre-existing files *before* anything
is written, so a rejected FileSet leaves the output directory untouched.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from src.engine.errors import PathSecurityError

from .assembler import validate_output_path
from .models import FileSet


class FileSetWriter:
    """Writes generated files beneath *output_dir*."""

    def __init__(self, output_dir: str | Path, overwrite: bool = False) -> None:
        self.output_dir = Path(output_dir)
        self.overwrite = overwrite

    def plan(self, file_set: FileSet) -> list[Path]:
        """Resolve and check every target path without writing anything.

        Raises:
            PathSecurityError: If a path would land outside the output root.
            FileExistsError: If a target exists and ``overwrite`` is off.
        """
        root = self.output_dir.resolve()
        targets: list[Path] = []
        for generated in file_set.files:
            validate_output_path(generated.path)
            target = (root / generated.path).resolve()
            if not target.is_relative_to(root):
                raise PathSecurityError(generated.path, "resolves outside the output directory")
            if target.exists() and not self.overwrite:
                raise FileExistsError(f"Refusing to overwrite existing file: {target}")
            targets.append(target)
        return targets

    async def write(self, file_set: FileSet) -> list[Path]:
        """Write every file in *file_set*; returns the written paths in order."""
        targets = await asyncio.to_thread(self.plan, file_set)
        await asyncio.gather(*[
            asyncio.to_thread(_write_file, target, generated.content)
            for target, generated in zip(targets, file_set.files)
        ])
        return targets


def _write_file(path: Path, content: str) -> None:
    """Synchronous helper: create parent dirs and write content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
