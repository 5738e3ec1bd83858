"""Directive scanner for 2-way SQL templates.

Directives are SQL block comments whose body starts right after ``/*`` with
a letter, ``_``, ``#`` or ``$``::

    SELECT * FROM emp
    WHERE 1 = 1
    /*IF dept_id != null*/
      AND dept_id = /*dept_id*/10
    /*ELIF dept_name != null*/
      AND dept_name = :dept_name
    /*END*/
    ORDER BY /*$order_column*/emp_id

Any other comment (``/* note */``, ``/*+ hint */``) is plain text.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Iterator

import ply.lex as lex

from twoway_sql.errors import ParseError, StructuralError

KEYWORDS = ("IF", "ELIF", "ELSEIF", "ELSE", "END", "BEGIN")

_NAME = r"[A-Za-z_]\w*(?:\.[A-Za-z_]\w*)*"
_NAME_RE = re.compile(_NAME + r"$")
_EMBED_RE = re.compile(r"([#$])(" + _NAME + r")$")
_UNKNOWN_KEYWORD_RE = re.compile(r"([A-Za-z_]\w*)\s+\S")

# Sample value written after a bind/embed directive so the raw template still runs
_TEST_LITERAL_RE = re.compile(
    r"'(?:[^']|'')*'"
    r"|\((?:[^()']|'(?:[^']|'')*')*\)"
    r"|:" + _NAME +
    r"|[^\s,();'\"/]+"
)


class TokenKind(enum.Enum):
    TEXT = "text"
    IF = "conditional-open"
    ELIF = "conditional-alternate"
    ELSE = "conditional-else"
    END_IF = "conditional-close"
    BEGIN = "optional-block-open"
    END_BEGIN = "optional-block-close"
    BIND = "bind-variable"
    EMBED = "embedded-value"


@dataclass(frozen=True)
class Token:
    """A scanned template token with its source span."""

    kind: TokenKind
    value: str  # literal text, condition expression or variable name
    pos: int
    end: int
    line: int
    quoted: bool = False  # EMBED only: render as a quoted string literal
    expand: bool = False  # BIND only: IN-list bind
    test_literal: str | None = None


@dataclass(frozen=True)
class VariableRef:
    """Payload of BIND/EMBED lexer tokens."""

    name: str
    test_literal: str | None = None
    quoted: bool = False
    expand: bool = False


class TemplateLexer:
    """PLY lexer splitting template text into text runs and directives."""

    tokens = [
        "TEXT",
        "IF",
        "ELIF",
        "ELSE",
        "END",
        "BEGIN",
        "BIND",
        "EMBED",
    ]

    t_ignore = ""

    def __init__(self) -> None:
        self.lexer: lex.LexToken = None  # type: ignore

    def _error(self, t: lex.LexToken, message: str) -> ParseError:
        return ParseError.at(message, t.lexer.lexdata, t.lexpos)

    def t_ESCAPE(self, t: lex.LexToken) -> lex.LexToken:
        r"\\/\*|\\:"
        t.type = "TEXT"
        t.value = t.value[1:]
        return t

    def t_DIRECTIVE(self, t: lex.LexToken) -> lex.LexToken:
        r"/\*[A-Za-z_\#\$](?:[^*]|\*(?!/))*\*/"
        t.lexer.lineno += t.value.count("\n")
        body = t.value[2:-2]
        parts = body.split(None, 1)
        word = parts[0]
        rest = parts[1].strip() if len(parts) > 1 else ""

        if word in ("IF", "ELIF", "ELSEIF"):
            if not rest:
                raise self._error(t, f"{word} directive requires a condition")
            t.type = "IF" if word == "IF" else "ELIF"
            t.value = rest
            return t
        if word in ("ELSE", "END", "BEGIN"):
            if rest:
                raise self._error(t, f"Unexpected text after {word}: '{rest}'")
            t.type = word
            t.value = word
            return t

        name = body.strip()
        if _NAME_RE.match(name):
            t.type = "BIND"
            t.value = self._variable(t, name, quoted=False, embedded=False)
            return t
        m = _EMBED_RE.match(name)
        if m:
            t.type = "EMBED"
            t.value = self._variable(t, m.group(2), quoted=m.group(1) == "#", embedded=True)
            return t
        m = _UNKNOWN_KEYWORD_RE.match(body)
        if m:
            raise self._error(t, f"Unknown directive '{m.group(1)}'")
        raise self._error(t, f"Malformed directive '/*{body}*/'")

    def _variable(self, t: lex.LexToken, name: str, quoted: bool, embedded: bool) -> VariableRef:
        """Consume the test literal that may follow a variable directive."""
        data = t.lexer.lexdata
        m = _TEST_LITERAL_RE.match(data, t.lexer.lexpos)
        if not m:
            return VariableRef(name=name, quoted=quoted)
        literal = m.group(0)
        if literal.startswith(":") and literal[1:] != name:
            raise ParseError.at(
                f"Directive /*{name}*/ is followed by a different variable '{literal}'",
                data,
                m.start(),
            )
        t.lexer.lineno += literal.count("\n")
        t.lexer.lexpos = m.end()
        expand = not embedded and literal.startswith("(")
        return VariableRef(name=name, test_literal=literal, quoted=quoted, expand=expand)

    def t_COMMENT(self, t: lex.LexToken) -> lex.LexToken:
        r"/\*(?:[^*]|\*(?!/))*\*/"
        t.lexer.lineno += t.value.count("\n")
        t.type = "TEXT"
        return t

    def t_UNTERMINATED_COMMENT(self, t: lex.LexToken) -> None:
        r"/\*"
        raise self._error(t, "Unterminated comment, expected '*/'")

    def t_STRING(self, t: lex.LexToken) -> lex.LexToken:
        r"'(?:[^']|'')*'"
        t.lexer.lineno += t.value.count("\n")
        t.type = "TEXT"
        return t

    def t_QUOTED_IDENTIFIER(self, t: lex.LexToken) -> lex.LexToken:
        r'"[^"]*"'
        t.lexer.lineno += t.value.count("\n")
        t.type = "TEXT"
        return t

    def t_UNTERMINATED_QUOTE(self, t: lex.LexToken) -> None:
        r"['\"]"
        raise self._error(t, f"Unterminated quoted literal, expected closing {t.value}")

    def t_LINE_COMMENT(self, t: lex.LexToken) -> lex.LexToken:
        r"--[^\n]*"
        t.type = "TEXT"
        return t

    def t_CAST(self, t: lex.LexToken) -> lex.LexToken:
        r"::"
        t.type = "TEXT"
        return t

    def t_SIGIL(self, t: lex.LexToken) -> lex.LexToken:
        r"(?<![\w:]):[A-Za-z_]\w*(?:\.[A-Za-z_]\w*)*"
        t.type = "BIND"
        t.value = VariableRef(name=t.value[1:])
        return t

    def t_PLAIN(self, t: lex.LexToken) -> lex.LexToken:
        r"[^/'\"\-:\\]+"
        t.lexer.lineno += t.value.count("\n")
        t.type = "TEXT"
        return t

    def t_CHAR(self, t: lex.LexToken) -> lex.LexToken:
        r"[/\-:\\]"
        t.type = "TEXT"
        return t

    def t_error(self, t: lex.LexToken) -> None:
        raise self._error(t, f"Illegal character '{t.value[0]}'")

    # --- Lexer methods ---

    def build(self, **kwargs) -> None:  # type: ignore
        """Build the lexer."""
        self.lexer = lex.lex(module=self, **kwargs)

    def clone(self) -> lex.Lexer:
        """Return an independent lexer sharing the compiled tables."""
        if self.lexer is None:
            self.build()
        return self.lexer.clone()

    def tokenize(self, data: str) -> list[lex.LexToken]:
        """Tokenize the input and return all raw tokens."""
        lexer = self.clone()
        lexer.input(data)
        tokens = []
        while True:
            tok = lexer.token()
            if tok is None:
                break
            tokens.append(tok)
        return tokens


@dataclass
class _OpenDirective:
    kind: str  # IF or BEGIN
    pos: int
    has_else: bool = False


class DirectiveScanner:
    """Turns template text into a lazy stream of :class:`Token` values.

    Adjacent text runs are merged. Nesting is tracked on an explicit stack so
    that END can be resolved to the directive it closes and pairing errors are
    reported where they occur.
    """

    def __init__(self) -> None:
        self._lexer = TemplateLexer()
        self._lexer.build()

    def scan(self, text: str) -> Iterator[Token]:
        """Yield tokens for *text*; each call starts over from the beginning."""
        lexer = self._lexer.clone()
        lexer.input(text)
        lexer.lineno = 1
        stack: list[_OpenDirective] = []
        pending: list[str] = []
        pending_start = pending_end = 0
        pending_line = 1

        def flush() -> Iterator[Token]:
            if pending:
                value = "".join(pending)
                yield Token(TokenKind.TEXT, value, pending_start, pending_end, pending_line)
                pending.clear()

        while True:
            tok = lexer.token()
            if tok is None:
                break
            if tok.type == "TEXT":
                if not pending:
                    pending_start = tok.lexpos
                    pending_line = tok.lineno
                pending.append(tok.value)
                pending_end = lexer.lexpos
                continue

            yield from flush()
            end = lexer.lexpos
            if tok.type == "IF":
                stack.append(_OpenDirective("IF", tok.lexpos))
                yield Token(TokenKind.IF, tok.value, tok.lexpos, end, tok.lineno)
            elif tok.type in ("ELIF", "ELSE"):
                keyword = "ELIF" if tok.type == "ELIF" else "ELSE"
                if not stack or stack[-1].kind != "IF":
                    raise StructuralError.at(f"{keyword} without matching IF", text, tok.lexpos)
                if stack[-1].has_else:
                    raise StructuralError.at(f"{keyword} after ELSE", text, tok.lexpos)
                if tok.type == "ELSE":
                    stack[-1].has_else = True
                    yield Token(TokenKind.ELSE, "", tok.lexpos, end, tok.lineno)
                else:
                    yield Token(TokenKind.ELIF, tok.value, tok.lexpos, end, tok.lineno)
            elif tok.type == "BEGIN":
                stack.append(_OpenDirective("BEGIN", tok.lexpos))
                yield Token(TokenKind.BEGIN, "", tok.lexpos, end, tok.lineno)
            elif tok.type == "END":
                if not stack:
                    raise StructuralError.at("END without matching IF or BEGIN", text, tok.lexpos)
                opened = stack.pop()
                kind = TokenKind.END_IF if opened.kind == "IF" else TokenKind.END_BEGIN
                yield Token(kind, "", tok.lexpos, end, tok.lineno)
            elif tok.type in ("BIND", "EMBED"):
                ref: VariableRef = tok.value
                yield Token(
                    TokenKind.BIND if tok.type == "BIND" else TokenKind.EMBED,
                    ref.name,
                    tok.lexpos,
                    end,
                    tok.lineno,
                    quoted=ref.quoted,
                    expand=ref.expand,
                    test_literal=ref.test_literal,
                )

        yield from flush()
        if stack:
            opened = stack[-1]
            raise StructuralError.at(f"Unterminated {opened.kind} directive, expected END", text, opened.pos)

    def tokenize(self, text: str) -> list[Token]:
        """Scan *text* eagerly."""
        return list(self.scan(text))
