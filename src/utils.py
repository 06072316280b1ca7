"""Shared utility functions for the scaffold engine.

Provides config-file loading, JSON I/O, file-system helpers and Rich-based
console reporting.  The engine core never prints; only the pipeline and the
CLI call the ``print_*`` helpers below.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import yaml
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.rule import Rule
from rich.table import Table

from src.assembler.models import ErrorReport, FileSet

console = Console()

_YAML_SUFFIXES = {".yaml", ".yml"}


# ---------------------------------------------------------------------------
# Config file I/O
# ---------------------------------------------------------------------------


def load_json(path: str | Path) -> dict[str, Any]:
    """Load and parse a JSON file.

    Args:
        path: Path to the JSON file.

    Returns:
        Parsed dictionary.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
    """
    file_path = Path(path)
    raw = file_path.read_text(encoding="utf-8")
    data = json.loads(raw)
    if not isinstance(data, dict):
        return {"_root": data}
    return data


def load_yaml(path: str | Path) -> dict[str, Any]:
    """Load and parse a YAML file (``safe_load`` only).

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
    """
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        return {"_root": data}
    return data


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Load a pattern config from ``.yaml``/``.yml`` or JSON (anything else)."""
    file_path = Path(path)
    if file_path.suffix.lower() in _YAML_SUFFIXES:
        return load_yaml(file_path)
    return load_json(file_path)


async def save_json(data: dict[str, Any] | list[Any], path: str | Path) -> None:
    """Save data as pretty-printed JSON.

    Parent directories are created automatically and the write happens in a
    thread-pool executor to avoid blocking the event loop.
    """
    file_path = Path(path)
    ensure_dir(file_path.parent)
    content = json.dumps(data, indent=2, ensure_ascii=False, default=str)

    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, file_path.write_text, content, "utf-8")


# ---------------------------------------------------------------------------
# File-system helpers
# ---------------------------------------------------------------------------


def ensure_dir(path: str | Path) -> Path:
    """Create a directory (and parents) if it does not exist.

    Returns:
        The resolved ``Path`` object.
    """
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path.resolve()


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    """Format a duration in seconds to a human-readable string.

    Examples::

        format_duration(0.042)  -> "42ms"
        format_duration(3.7)    -> "3.7s"
        format_duration(65.2)   -> "1m 5s"
    """
    if seconds < 0:
        return "0ms"
    if seconds < 1:
        return f"{int(round(seconds * 1000))}ms"

    minutes = int(seconds // 60)
    secs = seconds % 60
    if minutes > 0:
        return f"{minutes}m {int(secs)}s"
    return f"{secs:.1f}s"


def format_size(num_bytes: int) -> str:
    """``512`` -> ``"512 B"``, ``2048`` -> ``"2.0 KB"``."""
    if num_bytes < 1024:
        return f"{num_bytes} B"
    return f"{num_bytes / 1024:.1f} KB"


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


def print_header(title: str) -> None:
    """Print a full-width rule with *title*."""
    console.print()
    console.print(Rule(f"[bold bright_cyan] {title} [/bold bright_cyan]", style="bright_cyan"))
    console.print()


def print_summary_table(data: dict[str, str], title: str = "Summary") -> None:
    """Print a two-column key/value summary table.

    Args:
        data: Mapping of label -> value.
        title: Table title.
    """
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Item", style="dim", no_wrap=True)
    table.add_column("Value")

    for key, value in data.items():
        table.add_row(key, str(value))

    console.print(table)
    console.print()


def print_file_set(file_set: FileSet, title: str = "Generated files") -> None:
    """Print every generated path with its size, in output order."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Path")
    table.add_column("Size", justify="right")

    for index, generated in enumerate(file_set.files, start=1):
        table.add_row(str(index), generated.path, format_size(len(generated.content.encode("utf-8"))))

    console.print(table)
    console.print()


def print_error_report(report: ErrorReport) -> None:
    """Print every entry of an ``ErrorReport`` as a red table."""
    table = Table(
        title=f"Generation failed: {len(report)} error(s)",
        show_header=True,
        header_style="bold red",
    )
    table.add_column("File", no_wrap=True)
    table.add_column("Part", style="dim")
    table.add_column("Kind", style="bold")
    table.add_column("Where", style="dim", no_wrap=True)
    table.add_column("Message")

    for entry in report.entries:
        where = ""
        if entry.node_position is not None:
            where = f"{entry.node_position.line}:{entry.node_position.column}"
        table.add_row(entry.file_identifier, entry.template_part, entry.error_kind, where, entry.message)

    console.print(table)
    console.print()


def print_success(message: str) -> None:
    """Print a green success message."""
    console.print(f"[bold green]{message}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message."""
    console.print(f"[bold red]{message}[/bold red]")


def print_warning(message: str) -> None:
    """Print a yellow warning message."""
    console.print(f"[bold yellow]{message}[/bold yellow]")


def create_progress() -> Progress:
    """Create a Rich progress spinner for pipeline steps.

    Returns:
        A ``Progress`` instance suitable for use as a context manager.
    """
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
    )
