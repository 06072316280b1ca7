"""Output Assembler: renders every entry of a TemplateSet into a FileSet.

Both templates of an entry are parsed before either is rendered, so a
parse error fails the entry even when its path would have been skipped.
The path template is rendered first; an empty path means "skip this
file".  Non-empty paths are validated before the body is rendered.  The
run is all-or-nothing: every entry is attempted, and if any failed an
``AssemblyError`` carrying the complete ``ErrorReport`` is raised instead of
returning a partial FileSet.
"""

from __future__ import annotations

import asyncio
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Optional, Union

from src.engine.errors import EngineError, GenerationCancelled, ParseError, PathSecurityError
from src.engine.renderer import RenderMode, Renderer
from src.engine.template import Template
from src.engine.values import Context

from .models import (
    AssemblyError,
    ErrorEntry,
    ErrorReport,
    FileSet,
    GeneratedFile,
    TemplateEntry,
    TemplateSet,
)

_DRIVE_RE = re.compile(r"^[A-Za-z]:")


# ---------------------------------------------------------------------------
# Path validation
# ---------------------------------------------------------------------------


def validate_output_path(path: str) -> str:
    """Return *path* unchanged if it is a safe relative path.

    Raises:
        PathSecurityError: On a leading ``/``, a Windows drive prefix,
            backslashes, NUL bytes, empty segments or ``..`` segments.
    """
    if path.startswith("/"):
        raise PathSecurityError(path, "absolute paths are not allowed")
    if _DRIVE_RE.match(path):
        raise PathSecurityError(path, "drive-qualified paths are not allowed")
    if "\\" in path:
        raise PathSecurityError(path, "backslashes are not allowed in paths")
    if "\x00" in path:
        raise PathSecurityError(path, "NUL bytes are not allowed in paths")
    for segment in path.split("/"):
        if segment == "":
            raise PathSecurityError(path, "empty path segment")
        if segment == "..":
            raise PathSecurityError(path, "'..' segments are not allowed")
    return path


# ---------------------------------------------------------------------------
# Per-entry outcome
# ---------------------------------------------------------------------------


@dataclass
class _Outcome:
    entry: TemplateEntry
    file: Optional[GeneratedFile] = None
    errors: list[ErrorEntry] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Assembler
# ---------------------------------------------------------------------------


class OutputAssembler:
    """Renders TemplateSets against a Context.

    Args:
        mode: Missing-variable policy for rendering.  Path security errors
            are fatal in every mode.
        max_workers: Worker threads used by ``assemble_async`` (``None``
            lets the executor pick).
        strip_paths: Strip surrounding whitespace from rendered paths so
            multi-line conditional path templates work.
    """

    def __init__(
        self,
        mode: RenderMode = RenderMode.STRICT,
        max_workers: Optional[int] = None,
        strip_paths: bool = True,
    ) -> None:
        self.mode = RenderMode(mode)
        self.max_workers = max_workers
        self.strip_paths = strip_paths

    # -- Public API --------------------------------------------------------

    def assemble(self, template_set: TemplateSet, context: Context) -> FileSet:
        """Render every entry sequentially.

        Raises:
            AssemblyError: If any entry failed; ``error.report`` lists all
                failures across the whole set.
        """
        outcomes = [self._process(entry, context) for entry in template_set]
        return self._collect(outcomes)

    async def assemble_async(
        self,
        template_set: TemplateSet,
        context: Context,
        timeout: Optional[float] = None,
    ) -> FileSet:
        """Render every entry concurrently on worker threads.

        Output order always matches *template_set* order.  If *timeout*
        expires or the awaiting task is cancelled, every partial result is
        discarded.

        Raises:
            AssemblyError: If any entry failed.
            GenerationCancelled: If the run exceeded *timeout* or was cancelled.
        """
        loop = asyncio.get_running_loop()
        executor = ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="ace-render"
        )
        try:
            futures = [
                loop.run_in_executor(executor, self._process, entry, context)
                for entry in template_set
            ]
            try:
                outcomes = await asyncio.wait_for(asyncio.gather(*futures), timeout)
            except asyncio.TimeoutError:
                raise GenerationCancelled(
                    f"Generation exceeded the {timeout}s timeout; no files were produced"
                ) from None
            except asyncio.CancelledError:
                raise GenerationCancelled(
                    "Generation was cancelled; no files were produced"
                ) from None
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        return self._collect(list(outcomes))

    # -- Internals ---------------------------------------------------------

    def _render(self, template: Template, context: Context) -> str:
        return Renderer(template.helpers, self.mode).render(template.ast, context)

    def _process(self, entry: TemplateEntry, context: Context) -> _Outcome:
        outcome = _Outcome(entry)
        for part, template in (("path", entry.path_template), ("body", entry.body_template)):
            try:
                template.ast
            except ParseError as exc:
                outcome.errors.append(ErrorEntry.from_error(exc, entry.identifier, part))
        if outcome.errors:
            return outcome

        try:
            path = self._render(entry.path_template, context)
        except EngineError as exc:
            outcome.errors.append(ErrorEntry.from_error(exc, entry.identifier, "path"))
            return outcome

        if self.strip_paths:
            path = path.strip()
        if not path:
            return outcome

        try:
            validate_output_path(path)
        except PathSecurityError as exc:
            outcome.errors.append(ErrorEntry.from_error(exc, entry.identifier, "path"))
            return outcome

        try:
            content = self._render(entry.body_template, context)
        except EngineError as exc:
            outcome.errors.append(ErrorEntry.from_error(exc, entry.identifier, "body"))
            return outcome

        outcome.file = GeneratedFile(path=path, content=content)
        return outcome

    def _collect(self, outcomes: list[_Outcome]) -> FileSet:
        errors: list[ErrorEntry] = []
        files: list[GeneratedFile] = []
        seen: dict[str, str] = {}
        for outcome in outcomes:
            errors.extend(outcome.errors)
            if outcome.file is None:
                continue
            path = outcome.file.path
            if path in seen:
                errors.append(ErrorEntry(
                    error_kind="DuplicatePath",
                    file_identifier=outcome.entry.identifier,
                    message=f"Path {path!r} was already produced by {seen[path]!r}",
                    template_part="path",
                ))
                continue
            seen[path] = outcome.entry.identifier
            files.append(outcome.file)

        if errors:
            raise AssemblyError(ErrorReport(entries=errors))
        return FileSet(files=files)


def assemble(
    template_set: TemplateSet,
    context: Context,
    mode: Union[RenderMode, str] = RenderMode.STRICT,
) -> FileSet:
    """Assemble *template_set* sequentially; see ``OutputAssembler.assemble``."""
    return OutputAssembler(RenderMode(mode)).assemble(template_set, context)
