"""Template sets in, file sets or error reports out.

``TemplateSet`` is the ordered input to the assembler.  ``FileSet`` and
``ErrorReport`` are Pydantic v2 models so callers can serialise them
straight to JSON for the file-writing collaborator or for diagnostics.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from src.engine.errors import EngineError, Position
from src.engine.helpers import DEFAULT_HELPERS, HelperRegistry
from src.engine.template import Template


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TemplateEntry:
    """One output file: a template for its path and one for its content."""

    identifier: str
    path_template: Template
    body_template: Template

    @classmethod
    def from_strings(
        cls,
        path: str,
        body: str,
        identifier: Optional[str] = None,
        helpers: HelperRegistry = DEFAULT_HELPERS,
    ) -> "TemplateEntry":
        identifier = identifier or path
        return cls(
            identifier=identifier,
            path_template=Template(path, name=f"{identifier} (path)", helpers=helpers),
            body_template=Template(body, name=identifier, helpers=helpers),
        )


class TemplateSet:
    """An ordered, immutable collection of ``TemplateEntry`` objects."""

    def __init__(self, entries: Iterable[TemplateEntry] = ()) -> None:
        self._entries = tuple(entries)

    @classmethod
    def from_pairs(
        cls,
        pairs: Iterable[tuple[str, str]],
        helpers: HelperRegistry = DEFAULT_HELPERS,
    ) -> "TemplateSet":
        """Build a set from ``(path_template, body_template)`` string pairs.

        Entries are identified by their 0-based position and path template,
        e.g. ``"#2 package.json"``.
        """
        return cls(
            TemplateEntry.from_strings(path, body, f"#{index} {path}", helpers)
            for index, (path, body) in enumerate(pairs)
        )

    def __iter__(self) -> Iterator[TemplateEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> TemplateEntry:
        return self._entries[index]


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


class GeneratedFile(BaseModel):
    """A rendered file ready for persistence."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Validated path relative to the output root")
    content: str = Field(default="", description="Rendered file body")


class FileSet(BaseModel):
    """The ordered, complete output of one successful generation run."""

    files: list[GeneratedFile] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.files)

    def paths(self) -> list[str]:
        return [f.path for f in self.files]

    def as_dict(self) -> dict[str, str]:
        """Ordered ``{path: content}`` mapping."""
        return {f.path: f.content for f in self.files}

    def get(self, path: str) -> Optional[str]:
        """Content of *path*, or ``None`` if it was not generated."""
        for generated in self.files:
            if generated.path == path:
                return generated.content
        return None


class NodePosition(BaseModel):
    line: int
    column: int
    offset: int

    @classmethod
    def from_position(cls, position: Optional[Position]) -> Optional["NodePosition"]:
        if position is None:
            return None
        return cls(line=position.line, column=position.column, offset=position.offset)


class ErrorEntry(BaseModel):
    """A single failure found while assembling one file."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    error_kind: str = Field(..., description="e.g. 'MissingVariable', 'PathSecurityError'")
    file_identifier: str = Field(..., description="Identifier of the template entry")
    node_position: Optional[NodePosition] = Field(
        default=None, description="Where in the template the failure originated"
    )
    message: str = Field(default="")
    template_part: str = Field(default="body", description="'path' or 'body'")

    @classmethod
    def from_error(cls, error: EngineError, file_identifier: str, template_part: str) -> "ErrorEntry":
        return cls(
            error_kind=str(error.kind),
            file_identifier=file_identifier,
            node_position=NodePosition.from_position(error.position),
            message=error.message,
            template_part=template_part,
        )


class ErrorReport(BaseModel):
    """Every failure encountered in one assembly run."""

    entries: list[ErrorEntry] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)

    @computed_field  # type: ignore[misc]
    @property
    def failed_files(self) -> list[str]:
        """Identifiers of failed entries, in input order and without repeats."""
        return list(dict.fromkeys(e.file_identifier for e in self.entries))

    def kinds(self) -> list[str]:
        return [e.error_kind for e in self.entries]


class AssemblyError(EngineError):
    """Raised by the assembler when any file failed; carries the full report."""

    kind = "AssemblyError"

    def __init__(self, report: ErrorReport) -> None:
        self.report = report
        count = len(report)
        files = len(report.failed_files)
        super().__init__(
            f"Generation failed with {count} error{'s' if count != 1 else ''} "
            f"in {files} file{'s' if files != 1 else ''}"
        )
