"""Value mappers for bind parameters and embedded values.

Mappers are consulted in order and the first one that accepts a value wins.
User mappers always come before the defaults.
"""

from __future__ import annotations

import datetime
import enum
from typing import Any, Iterable, Protocol


class BindParameterMapper(Protocol):
    """Converts a parameter value before it is added to the bind list."""

    def can_accept(self, value: Any) -> bool:
        ...

    def to_bind(self, value: Any) -> Any:
        ...


class LiteralMapper(Protocol):
    """Renders a parameter value as SQL text for embedded values."""

    def can_accept(self, value: Any) -> bool:
        ...

    def to_literal(self, value: Any) -> str:
        ...


class EnumMapper:
    """Enum members bind and render by value."""

    def can_accept(self, value: Any) -> bool:
        return isinstance(value, enum.Enum)

    def to_bind(self, value: Any) -> Any:
        return value.value

    def to_literal(self, value: Any) -> str:
        return str(value.value)


class BoolLiteralMapper:
    def can_accept(self, value: Any) -> bool:
        return isinstance(value, bool)

    def to_literal(self, value: Any) -> str:
        return "TRUE" if value else "FALSE"


class TemporalLiteralMapper:
    """date, time and datetime render as ISO-8601 text."""

    def can_accept(self, value: Any) -> bool:
        return isinstance(value, (datetime.date, datetime.time))

    def to_literal(self, value: Any) -> str:
        if isinstance(value, datetime.datetime):
            return value.isoformat(sep=" ")
        return value.isoformat()


DEFAULT_BIND_MAPPERS: tuple[BindParameterMapper, ...] = (EnumMapper(),)
DEFAULT_LITERAL_MAPPERS: tuple[LiteralMapper, ...] = (
    EnumMapper(),
    BoolLiteralMapper(),
    TemporalLiteralMapper(),
)


def quote_literal(text: str) -> str:
    """Wrap *text* in single quotes, doubling embedded quotes."""
    return "'" + text.replace("'", "''") + "'"


class MapperRegistry:
    """Ordered bind and literal mappers, user mappers first."""

    def __init__(
        self,
        bind_mappers: Iterable[BindParameterMapper] = (),
        literal_mappers: Iterable[LiteralMapper] = (),
    ) -> None:
        self.bind_mappers: list[BindParameterMapper] = list(bind_mappers) + list(DEFAULT_BIND_MAPPERS)
        self.literal_mappers: list[LiteralMapper] = list(literal_mappers) + list(DEFAULT_LITERAL_MAPPERS)

    def add_bind_mapper(self, mapper: BindParameterMapper) -> None:
        """Register *mapper* ahead of every mapper already present."""
        self.bind_mappers.insert(0, mapper)

    def add_literal_mapper(self, mapper: LiteralMapper) -> None:
        self.literal_mappers.insert(0, mapper)

    def to_bind(self, value: Any) -> Any:
        for mapper in self.bind_mappers:
            if mapper.can_accept(value):
                return mapper.to_bind(value)
        return value

    def to_literal(self, value: Any, quoted: bool = False) -> str:
        if value is None:
            return "NULL"
        text = None
        for mapper in self.literal_mappers:
            if mapper.can_accept(value):
                text = mapper.to_literal(value)
                break
        if text is None:
            text = str(value)
        if quoted:
            return quote_literal(text)
        return text
