"""Clean-up passes applied to rendered SQL.

Skipped branches tend to leave behind blank lines, a WHERE with nothing
after it, a leading AND, or a stray comma. These passes tidy the statement.
Quoted literals and comments are masked first so they are never modified.
"""

from __future__ import annotations

import re

from twoway_sql.config import TransformOptions

_PROTECTED_RE = re.compile(r"'(?:[^']|'')*'|\"[^\"]*\"|--[^\n]*|/\*.*?\*/", re.DOTALL)
_MASK_RE = re.compile(r"\x00(\d+)\x00")

_LEADING_CONJUNCTION_RE = re.compile(r"\b(WHERE|HAVING)(\s+)(?:AND|OR)\b\s*", re.IGNORECASE)
_DANGLING_WHERE_RE = re.compile(
    r"\s*\b(?:WHERE|HAVING)\b(?=\s*(?:$|\)|;|\b(?:ORDER|GROUP|LIMIT|UNION|EXCEPT|INTERSECT|FETCH|OFFSET|FOR|WINDOW)\b))",
    re.IGNORECASE,
)
_LEADING_COMMA_RE = re.compile(r"\b(SET|SELECT)(\s+),\s*", re.IGNORECASE)
_TRAILING_COMMA_RE = re.compile(r",(\s*)(\bFROM\b|\bWHERE\b|\))", re.IGNORECASE)
_HORIZONTAL_SPACE_RE = re.compile(r"[ \t]+")


def _mask(sql: str) -> tuple[str, list[str]]:
    saved: list[str] = []

    def replace(m: re.Match[str]) -> str:
        saved.append(m.group(0))
        return f"\x00{len(saved) - 1}\x00"

    return _PROTECTED_RE.sub(replace, sql), saved


def _unmask(sql: str, saved: list[str]) -> str:
    return _MASK_RE.sub(lambda m: saved[int(m.group(1))], sql)


def fix_dangling_keywords(sql: str) -> str:
    sql = _LEADING_CONJUNCTION_RE.sub(r"\1\2", sql)
    sql = _DANGLING_WHERE_RE.sub("", sql)
    sql = _LEADING_COMMA_RE.sub(r"\1\2", sql)
    sql = _TRAILING_COMMA_RE.sub(r"\1\2", sql)
    return sql


def collapse_whitespace(sql: str) -> str:
    return "\n".join(_HORIZONTAL_SPACE_RE.sub(" ", line).strip() for line in sql.split("\n"))


def remove_blank_lines(sql: str) -> str:
    return "\n".join(line for line in sql.split("\n") if line.strip())


def apply(sql: str, options: TransformOptions) -> str:
    """Run the passes enabled in *options* over *sql*."""
    if not options.postprocess:
        return sql
    masked, saved = _mask(sql)
    if options.fix_dangling_keywords:
        masked = fix_dangling_keywords(masked)
    if options.collapse_whitespace:
        masked = collapse_whitespace(masked)
    if options.remove_blank_lines:
        masked = remove_blank_lines(masked)
    return _unmask(masked, saved)
