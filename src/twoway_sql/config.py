"""Transform options."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Mapping

PARAMSTYLES = ("qmark", "numeric", "named", "format", "pyformat")


@dataclass(frozen=True)
class TransformOptions:
    """Options controlling how parsed templates are rendered."""

    paramstyle: str = "qmark"  # DB-API 2.0 paramstyle of the emitted placeholders
    strict_names: bool = False  # absent identifiers in conditions raise instead of reading as null
    validate_expressions: bool = True  # compile IF/ELIF conditions at parse time
    remove_blank_lines: bool = False
    collapse_whitespace: bool = False
    fix_dangling_keywords: bool = False  # drop WHERE/AND/comma left over by skipped branches

    def __post_init__(self) -> None:
        if self.paramstyle not in PARAMSTYLES:
            raise ValueError(
                f"Unknown paramstyle '{self.paramstyle}', expected one of {', '.join(PARAMSTYLES)}"
            )

    @property
    def postprocess(self) -> bool:
        return self.remove_blank_lines or self.collapse_whitespace or self.fix_dangling_keywords

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> TransformOptions:
        """Build options from a plain mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(mapping) - known)
        if unknown:
            raise ValueError(f"Unknown option(s): {', '.join(unknown)}")
        return cls(**dict(mapping))
