"""Output assembly: TemplateSet + Context -> FileSet (or a full ErrorReport).

Quick usage::

    from src.assembler import OutputAssembler, TemplateSet

    template_set = TemplateSet.from_pairs([
        ("package.json", '{"name": "{{projectNameKebab}}"}'),
        ("{{#if storageNeeded}}amplify/storage/resource.ts{{/if}}", "..."),
    ])
    file_set = OutputAssembler().assemble(template_set, context)
"""

from src.assembler.assembler import OutputAssembler, assemble, validate_output_path
from src.assembler.library import DEFAULT_TEMPLATE_DIR, TemplateLibrary, TemplateLibraryError
from src.assembler.models import (
    AssemblyError,
    ErrorEntry,
    ErrorReport,
    FileSet,
    GeneratedFile,
    TemplateEntry,
    TemplateSet,
)
from src.assembler.writer import FileSetWriter

__all__ = [
    "AssemblyError",
    "DEFAULT_TEMPLATE_DIR",
    "ErrorEntry",
    "ErrorReport",
    "FileSet",
    "FileSetWriter",
    "GeneratedFile",
    "OutputAssembler",
    "TemplateEntry",
    "TemplateLibrary",
    "TemplateLibraryError",
    "TemplateSet",
    "assemble",
    "validate_output_path",
]
