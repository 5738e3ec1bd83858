"""Variable lookup and per-invocation transform state."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol


class VariableLookup(Protocol):
    """Read access to transform parameters by name or dotted path."""

    def has_value(self, name: str) -> bool:
        ...

    def get_value(self, name: str) -> Any:
        ...


def resolve_step(value: Any, step: str) -> Any:
    """Resolve one path segment on *value*: mapping key, sequence index, then attribute.

    Raises LookupError when the segment cannot be resolved.
    """
    if isinstance(value, Mapping):
        if step in value:
            return value[step]
        raise KeyError(step)
    if isinstance(value, Sequence) and not isinstance(value, str) and step.isdigit():
        return value[int(step)]
    try:
        return getattr(value, step)
    except AttributeError:
        raise KeyError(step) from None


class MappingLookup:
    """Lookup over a plain mapping; dotted paths walk keys, indexes and attributes."""

    def __init__(self, params: Mapping[str, Any] | None = None) -> None:
        self.params: Mapping[str, Any] = params if params is not None else {}

    def _resolve(self, name: str) -> Any:
        head, _, rest = name.partition(".")
        value = self.params[head]
        if rest:
            for step in rest.split("."):
                if value is None:
                    raise KeyError(step)
                value = resolve_step(value, step)
        return value

    def has_value(self, name: str) -> bool:
        try:
            self._resolve(name)
        except LookupError:
            return False
        return True

    def get_value(self, name: str) -> Any:
        return self._resolve(name)

    def __repr__(self) -> str:
        return f"MappingLookup({dict(self.params)!r})"


class ChainedLookup:
    """Consults several lookups in order; the first that has a name wins."""

    def __init__(self, *lookups: VariableLookup) -> None:
        self.lookups = lookups

    def has_value(self, name: str) -> bool:
        return any(lookup.has_value(name) for lookup in self.lookups)

    def get_value(self, name: str) -> Any:
        for lookup in self.lookups:
            if lookup.has_value(name):
                return lookup.get_value(name)
        raise KeyError(name)


# ---- Output fragments ----


@dataclass(frozen=True)
class BindParameter:
    """A (name, value) pair in bind order."""

    name: str
    value: Any


@dataclass(frozen=True)
class Placeholder:
    """Marker for a bind placeholder inside the output fragments."""

    name: str


_NON_WORD_RE = re.compile(r"\W+")


def placeholder_key(name: str) -> str:
    """'user.id' -> 'user_id', 'ids[0]' -> 'ids_0'."""
    return _NON_WORD_RE.sub("_", name).strip("_")


def placeholder_keys(names: Iterable[str]) -> list[str]:
    """Named/pyformat keys for *names* in bind order.

    A repeated name reuses its key. Distinct names that would share a key
    ('user.id' and 'user_id') get a numeric suffix on the later one.
    """
    assigned: dict[str, str] = {}
    taken: set[str] = set()
    keys: list[str] = []
    for name in names:
        key = assigned.get(name)
        if key is None:
            base = placeholder_key(name) or "param"
            key = base
            suffix = 2
            while key in taken:
                key = f"{base}_{suffix}"
                suffix += 1
            assigned[name] = key
            taken.add(key)
        keys.append(key)
    return keys


def render_fragments(fragments: Sequence[str | Placeholder], paramstyle: str) -> str:
    """Join output fragments, rendering placeholders in *paramstyle*."""
    escape_percent = paramstyle in ("format", "pyformat")
    keys: list[str] = []
    if paramstyle in ("named", "pyformat"):
        keys = placeholder_keys(f.name for f in fragments if isinstance(f, Placeholder))
    parts: list[str] = []
    position = 0
    for fragment in fragments:
        if isinstance(fragment, Placeholder):
            position += 1
            if paramstyle == "qmark":
                parts.append("?")
            elif paramstyle == "numeric":
                parts.append(f":{position}")
            elif paramstyle == "named":
                parts.append(f":{keys[position - 1]}")
            elif paramstyle == "format":
                parts.append("%s")
            elif paramstyle == "pyformat":
                parts.append(f"%({keys[position - 1]})s")
            else:
                raise ValueError(f"Unknown paramstyle '{paramstyle}'")
        elif escape_percent:
            parts.append(fragment.replace("%", "%%"))
        else:
            parts.append(fragment)
    return "".join(parts)


# ---- Transform context ----


@dataclass
class TransformContext:
    """Mutable state of a single transform invocation. Never shared."""

    lookup: VariableLookup
    coverage: dict[int, bool] | None = None  # node_id -> branch taken
    optional: bool = False  # inside an optional block: absent names are tolerated
    enabled: bool = True
    fragments: list[str | Placeholder] = field(default_factory=list)
    binds: list[BindParameter] = field(default_factory=list)
    present_count: int = 0
    missing: list[str] = field(default_factory=list)

    def append_text(self, text: str) -> None:
        if self.enabled and text:
            self.fragments.append(text)

    def add_bind(self, name: str, value: Any) -> None:
        self.fragments.append(Placeholder(name))
        self.binds.append(BindParameter(name, value))

    def has_value(self, name: str) -> bool:
        return self.lookup.has_value(name)

    def get_value(self, name: str) -> Any:
        return self.lookup.get_value(name)

    def mark_branch(self, node_id: int, taken: bool) -> None:
        """Record a branch outcome; a branch taken once stays taken."""
        if self.coverage is None:
            return
        if taken:
            self.coverage[node_id] = True
        else:
            self.coverage.setdefault(node_id, False)

    def scratch(self, optional: bool = False) -> TransformContext:
        """Child context writing to its own buffers; shares lookup and coverage."""
        return TransformContext(
            lookup=self.lookup,
            coverage=self.coverage,
            optional=optional or self.optional,
            enabled=self.enabled,
        )

    def commit(self, child: TransformContext) -> None:
        """Append a scratch context's output and bind entries, in order."""
        self.fragments.extend(child.fragments)
        self.binds.extend(child.binds)
        self.present_count += child.present_count
        self.missing.extend(child.missing)

    def render(self, paramstyle: str = "qmark") -> str:
        return render_fragments(self.fragments, paramstyle)
