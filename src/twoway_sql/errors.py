"""Exception hierarchy for template parsing and transformation."""

from __future__ import annotations


class TemplateError(Exception):
    """Base class for every error raised by twoway_sql."""


class ParseError(TemplateError):
    """Malformed directive syntax in the template text."""

    def __init__(
        self,
        message: str,
        pos: int | None = None,
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        self.message = message
        self.pos = pos
        self.line = line
        self.column = column
        if line is not None and column is not None:
            message = f"{message} (line {line}, column {column}, position {pos})"
        elif pos is not None:
            message = f"{message} (position {pos})"
        super().__init__(message)

    @classmethod
    def at(cls, message: str, source: str, pos: int) -> ParseError:
        """Build an error located at offset *pos* of *source*."""
        line, column = offset_to_line_column(source, pos)
        return cls(message, pos=pos, line=line, column=column)


class StructuralError(ParseError):
    """Directive nesting or pairing violation (unmatched END, ELSE after ELSE, ...)."""


class TransformError(TemplateError):
    """Failure while transforming a parsed template with a parameter context."""


class EvaluationError(TransformError):
    """An expression could not be evaluated."""

    def __init__(self, message: str, expression: str | None = None) -> None:
        self.expression = expression
        if expression is not None:
            message = f"{message} [{expression}]"
        super().__init__(message)


class EvaluationTypeError(EvaluationError):
    """A branch condition evaluated to something other than a boolean."""

    def __init__(self, expression: str, value: object) -> None:
        self.value = value
        super().__init__(
            f"Condition must evaluate to a boolean, got {type(value).__name__}",
            expression,
        )


class MissingParameterError(TransformError):
    """A bind or embedded variable references a name the lookup does not have."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Parameter '{name}' is not defined")


def offset_to_line_column(source: str, pos: int) -> tuple[int, int]:
    """Convert an offset into a 1-based ``(line, column)`` pair."""
    line = source.count("\n", 0, pos) + 1
    last_nl = source.rfind("\n", 0, pos)
    column = pos + 1 if last_nl == -1 else pos - last_nl
    return line, column
