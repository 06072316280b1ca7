"""Named, pure helper functions invocable inside interpolations.

``{{kebabcase projectName}}`` applies the ``kebabcase`` helper to the
``projectName`` value.  Helpers never see the Context; each one declares the
Value types it accepts so the renderer can report a ``TypeMismatch`` instead
of producing garbage output.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any, Optional

from .values import thaw


# ---------------------------------------------------------------------------
# Word splitting and case conversion
# ---------------------------------------------------------------------------

# Alphanumeric runs between separators; "_" counts as a separator.
_TOKEN_RE = re.compile(r"[^\W_]+")


def _char_kind(ch: str) -> str:
    if ch.isdigit():
        return "digit"
    if ch.isupper() or ch.islower():
        return "cased"
    return "caseless"


def _split_token(token: str, break_on_upper: bool) -> list[str]:
    words: list[str] = []
    for ch in token:
        if (
            words
            and not (break_on_upper and ch.isupper())
            and _char_kind(ch) == _char_kind(words[-1][-1])
        ):
            words[-1] += ch
        else:
            words.append(ch)
    return words


def split_words(value: str) -> list[str]:
    """Split an identifier or phrase into its words.

    ``"My Task App"``, ``"my-task-app"``, ``"my_task_app"`` and
    ``"MyTaskApp"`` all split into ``["My"/"my", "Task"/"task", "App"/"app"]``.

    Inside a run without separators every capital starts a new word, so
    ``"XYCoordinate"`` is ``["X", "Y", "Coordinate"]`` and
    ``kebab_case(pascal_case(kebab_case(s))) == kebab_case(s)`` holds.  An
    all-uppercase run delimited by separators stays whole (``"MY_APP"``,
    ``"HTTP server"``).  Digit runs and letters without case (``"日本"``)
    are words of their own.
    """
    tokens = _TOKEN_RE.findall(value)
    words: list[str] = []
    for token in tokens:
        acronym = len(tokens) > 1 and not any(ch.islower() for ch in token)
        words.extend(_split_token(token, break_on_upper=not acronym))
    return words


def kebab_case(value: str) -> str:
    """``"My Task App"`` -> ``"my-task-app"``."""
    return "-".join(word.lower() for word in split_words(value))


def snake_case(value: str) -> str:
    """``"My Task App"`` -> ``"my_task_app"``."""
    return "_".join(word.lower() for word in split_words(value))


def constant_case(value: str) -> str:
    """``"My Task App"`` -> ``"MY_TASK_APP"``."""
    return "_".join(word.upper() for word in split_words(value))


def pascal_case(value: str) -> str:
    """``"my-task-app"`` -> ``"MyTaskApp"``."""
    return "".join(word.capitalize() for word in split_words(value))


def camel_case(value: str) -> str:
    """``"my-task-app"`` -> ``"myTaskApp"``."""
    pascal = pascal_case(value)
    if pascal:
        return pascal[0].lower() + pascal[1:]
    return ""


def title_case(value: str) -> str:
    """``"my-task-app"`` -> ``"My Task App"``."""
    return " ".join(word.capitalize() for word in split_words(value))


def pluralize(word: str) -> str:
    """Naive English pluralisation for model names (``Category`` -> ``Categories``)."""
    if not word:
        return word
    lower = word.lower()
    if lower.endswith("y") and not lower.endswith(("ay", "ey", "oy", "uy")):
        return word[:-1] + ("IES" if word.isupper() else "ies")
    if lower.endswith(("s", "sh", "ch", "x", "z")):
        return word + ("ES" if word.isupper() else "es")
    return word + ("S" if word.isupper() else "s")


def _capitalize_first(value: str) -> str:
    return value[:1].upper() + value[1:]


def _to_json(value: Any) -> str:
    return json.dumps(thaw(value), ensure_ascii=False)


def _length(value: Any) -> int:
    return len(value)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Helper:
    """A registered helper.

    Attributes:
        name: Name used inside templates.
        func: The pure function implementing it.
        accepts: Python types of the Values the helper is defined over.
        arity: Number of arguments the function takes.  Interpolations
            always pass exactly one value.
    """

    name: str
    func: Callable[..., Any]
    accepts: tuple[type, ...] = (str,)
    arity: int = 1

    def accepts_value(self, value: Any) -> bool:
        # bool is an int subclass; a helper over numbers must not take booleans.
        if isinstance(value, bool) and bool not in self.accepts:
            return False
        return isinstance(value, self.accepts)


class HelperRegistry(Mapping):
    """A read-only mapping of helper name to ``Helper``.

    Registries are built once and never mutated afterwards; ``extend``
    returns a new registry rather than modifying this one.
    """

    def __init__(self, helpers: Optional[list[Helper]] = None) -> None:
        self._helpers: dict[str, Helper] = {}
        for helper in helpers or []:
            if not re.fullmatch(r"[a-z][A-Za-z0-9_]*", helper.name):
                raise ValueError(f"Invalid helper name: {helper.name!r}")
            self._helpers[helper.name] = helper

    def __getitem__(self, name: str) -> Helper:
        return self._helpers[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._helpers)

    def __len__(self) -> int:
        return len(self._helpers)

    def extend(self, *helpers: Helper) -> "HelperRegistry":
        """Return a new registry with *helpers* added (or overriding)."""
        return HelperRegistry([*self._helpers.values(), *helpers])


_ANY = (bool, int, float, str, tuple, Mapping)

DEFAULT_HELPERS = HelperRegistry([
    Helper("kebabcase", kebab_case),
    Helper("snakecase", snake_case),
    Helper("constantcase", constant_case),
    Helper("pascalcase", pascal_case),
    Helper("camelcase", camel_case),
    Helper("titlecase", title_case),
    Helper("upper", str.upper),
    Helper("lower", str.lower),
    Helper("capitalize", _capitalize_first),
    Helper("pluralize", pluralize),
    Helper("json", _to_json, accepts=_ANY),
    Helper("length", _length, accepts=(str, tuple, Mapping)),
])
