"""Lexer and parser for the mustache-style template language.

Syntax summary::

    Hello {{titlecase projectName}}!          interpolation with a helper
    {{#if storageNeeded}}...{{else}}...{{/if}} conditional (also #unless)
    {{#each models}}{{this.name}}{{/each}}     iteration (this, @index, @key,
                                               @first, @last)
    {{! note }}  {{!-- note with }} inside --}} comments, dropped

Parsing is pure: the same source always produces an equal AST, and helper
names are checked against the registry here rather than at render time.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Optional, Union

from .errors import ParseError, ParseErrorKind, Position
from .helpers import DEFAULT_HELPERS, HelperRegistry
from .nodes import AST, Block, BlockKind, Interpolation, Literal, Node
from .values import SPECIAL_VARIABLES

OPEN = "{{"
CLOSE = "}}"

_SEGMENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_-]*|\d+")
_IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_-]*")


# ---------------------------------------------------------------------------
# Lexer
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _Text:
    text: str
    position: Position


@dataclass(frozen=True)
class _Tag:
    content: str
    position: Position


class _Locator:
    """Maps non-decreasing offsets to positions, scanning each character once."""

    def __init__(self, source: str) -> None:
        self.source = source
        self.scanned = 0
        self.line = 1
        self.line_start = 0

    def at(self, offset: int) -> Position:
        newlines = self.source.count("\n", self.scanned, offset)
        if newlines:
            self.line += newlines
            self.line_start = self.source.rfind("\n", self.scanned, offset) + 1
        self.scanned = offset
        return Position(offset=offset, line=self.line, column=offset - self.line_start + 1)


def tokenize(source: str) -> Iterator[Union[_Text, _Tag]]:
    """Split *source* into text runs and tag contents; comments are skipped."""
    locate = _Locator(source).at
    pos = 0
    length = len(source)
    while pos < length:
        start = source.find(OPEN, pos)
        if start == -1:
            yield _Text(source[pos:], locate(pos))
            return
        if start > pos:
            yield _Text(source[pos:start], locate(pos))

        if source.startswith("{{!--", start):
            end = source.find("--}}", start + 5)
            if end == -1:
                raise ParseError(
                    ParseErrorKind.UNTERMINATED_TAG,
                    "Comment opened with '{{!--' is never closed with '--}}'",
                    locate(start),
                )
            pos = end + 4
            continue

        end = source.find(CLOSE, start + len(OPEN))
        if end == -1:
            raise ParseError(
                ParseErrorKind.UNTERMINATED_TAG,
                "Tag opened with '{{' is never closed with '}}'",
                locate(start),
            )
        content = source[start + len(OPEN):end].strip()
        pos = end + len(CLOSE)
        if content.startswith("!"):
            continue
        yield _Tag(content, locate(start))


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


@dataclass
class _Frame:
    kind: BlockKind
    path: tuple[str, ...]
    position: Position
    body: list[Node] = field(default_factory=list)
    else_body: Optional[list[Node]] = None

    @property
    def target(self) -> list[Node]:
        return self.body if self.else_body is None else self.else_body


class Parser:
    """Turns template source into an immutable AST.

    The parser keeps an explicit stack of open block frames; nodes are
    appended to the innermost frame's body (or its else branch once
    ``{{else}}`` has been seen).
    """

    def __init__(self, helpers: HelperRegistry = DEFAULT_HELPERS) -> None:
        self.helpers = helpers

    def parse(self, source: str) -> AST:
        root: list[Node] = []
        stack: list[_Frame] = []

        def current() -> list[Node]:
            return stack[-1].target if stack else root

        for token in tokenize(source):
            position = token.position
            if isinstance(token, _Text):
                _append_text(current(), token.text, position)
                continue

            content = token.content
            if content == "else":
                if not stack or stack[-1].kind is BlockKind.EACH:
                    raise ParseError(
                        ParseErrorKind.MISPLACED_ELSE,
                        "{{else}} is only allowed inside {{#if}} or {{#unless}}",
                        position,
                    )
                if stack[-1].else_body is not None:
                    raise ParseError(
                        ParseErrorKind.MISPLACED_ELSE,
                        f"Second {{{{else}}}} in {{{{#{stack[-1].kind.value}}}}} block",
                        position,
                    )
                stack[-1].else_body = []
            elif content.startswith("#"):
                kind, path = self._parse_block_open(content[1:].strip(), position)
                stack.append(_Frame(kind=kind, path=path, position=position))
            elif content.startswith("/"):
                name = content[1:].strip()
                if not stack:
                    raise ParseError(
                        ParseErrorKind.MISMATCHED_BLOCK,
                        f"{{{{/{name}}}}} closes a block that was never opened",
                        position,
                    )
                frame = stack.pop()
                if name != frame.kind.value:
                    raise ParseError(
                        ParseErrorKind.MISMATCHED_BLOCK,
                        f"{{{{/{name}}}}} does not match {{{{#{frame.kind.value}}}}} "
                        f"opened at {frame.position}",
                        position,
                    )
                current().append(Block(
                    kind=frame.kind,
                    path=frame.path,
                    body=tuple(frame.body),
                    else_body=None if frame.else_body is None else tuple(frame.else_body),
                    position=frame.position,
                ))
            else:
                current().append(self._parse_interpolation(content, position))

        if stack:
            frame = stack[-1]
            raise ParseError(
                ParseErrorKind.UNTERMINATED_BLOCK,
                f"{{{{#{frame.kind.value} {'.'.join(frame.path)}}}}} is never closed",
                frame.position,
            )
        return tuple(root)

    # -- Tag parsing --------------------------------------------------------

    def _parse_block_open(
        self, content: str, position: Position
    ) -> tuple[BlockKind, tuple[str, ...]]:
        keyword, _, argument = content.partition(" ")
        try:
            kind = BlockKind(keyword)
        except ValueError:
            raise ParseError(
                ParseErrorKind.UNKNOWN_BLOCK,
                f"Unknown block '#{keyword}' (expected #if, #unless or #each)",
                position,
            ) from None
        arguments = argument.split()
        if len(arguments) != 1:
            raise ParseError(
                ParseErrorKind.INVALID_PATH,
                f"{{{{#{keyword}}}}} takes exactly one path, got {len(arguments)}",
                position,
            )
        return kind, parse_path(arguments[0], position)

    def _parse_interpolation(self, content: str, position: Position) -> Interpolation:
        tokens = content.split()
        if not tokens:
            raise ParseError(ParseErrorKind.INVALID_PATH, "Empty tag '{{}}'", position)
        *helper_names, raw_path = tokens
        for name in helper_names:
            if name not in self.helpers:
                raise ParseError(
                    ParseErrorKind.UNKNOWN_HELPER,
                    f"Unknown helper {name!r}",
                    position,
                )
        return Interpolation(
            path=parse_path(raw_path, position),
            helpers=tuple(helper_names),
            position=position,
        )


def parse_path(raw: str, position: Position) -> tuple[str, ...]:
    """Validate and split a dotted path such as ``this.fields.0.name``."""
    segments = tuple(raw.split("."))

    def invalid(reason: str) -> ParseError:
        return ParseError(
            ParseErrorKind.INVALID_PATH, f"Invalid path {raw!r}: {reason}", position
        )

    head = segments[0]
    if head.startswith("@"):
        if head not in SPECIAL_VARIABLES:
            raise invalid(f"unknown special variable {head!r}")
        if len(segments) > 1:
            raise invalid(f"{head} cannot be followed by further segments")
        return segments
    if not _IDENTIFIER_RE.fullmatch(head):
        raise invalid("must start with a name, 'this' or an @ variable")
    for segment in segments[1:]:
        if not _SEGMENT_RE.fullmatch(segment):
            raise invalid(f"bad segment {segment!r}")
    return segments


def _append_text(nodes: list[Node], text: str, position: Position) -> None:
    if nodes and isinstance(nodes[-1], Literal):
        previous = nodes[-1]
        nodes[-1] = Literal(previous.text + text, previous.position)
    else:
        nodes.append(Literal(text, position))


def parse(source: str, helpers: HelperRegistry = DEFAULT_HELPERS) -> AST:
    """Parse *source* into an AST, raising ``ParseError`` on malformed input."""
    return Parser(helpers).parse(source)
