"""Lexer for branch-condition expressions."""

import re

import ply.lex as lex

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "0": "\0"}
_ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)


def unescape(body: str) -> str:
    """Resolve backslash escapes; any other escaped character stands for itself."""
    return _ESCAPE_RE.sub(lambda m: _ESCAPES.get(m.group(1), m.group(1)), body)


class ExpressionLexer:
    """Lexer for tokenizing IF/ELIF condition expressions."""

    # Reserved words; word-form comparison operators map onto the symbol tokens
    reserved = {
        "and": "AND",
        "or": "OR",
        "not": "NOT",
        "in": "IN",
        "null": "NULL",
        "true": "TRUE",
        "false": "FALSE",
        "eq": "EQ",
        "neq": "NEQ",
        "ne": "NEQ",
        "lt": "LT",
        "lte": "LTE",
        "le": "LTE",
        "gt": "GT",
        "gte": "GTE",
        "ge": "GTE",
    }

    tokens = [
        "IDENTIFIER",
        "INTEGER",
        "FLOAT",
        "STRING",
        "DOT",
        "COMMA",
        "LPAREN",
        "RPAREN",
        "LBRACKET",
        "RBRACKET",
        "EQ",
        "NEQ",
        "LT",
        "LTE",
        "GT",
        "GTE",
        "ANDAND",
        "OROR",
        "BANG",
        "MINUS",
    ] + sorted(set(reserved.values()) - {"EQ", "NEQ", "LT", "LTE", "GT", "GTE"})

    t_DOT = r"\."
    t_COMMA = r","
    t_LPAREN = r"\("
    t_RPAREN = r"\)"
    t_LBRACKET = r"\["
    t_RBRACKET = r"\]"
    t_EQ = r"=="
    t_NEQ = r"!="
    t_LTE = r"<="
    t_LT = r"<"
    t_GTE = r">="
    t_GT = r">"
    t_ANDAND = r"&&"
    t_OROR = r"\|\|"
    t_BANG = r"!"
    t_MINUS = r"-"

    t_ignore = " \t\r\n"

    def __init__(self) -> None:
        self.lexer: lex.LexToken = None  # type: ignore

    def t_FLOAT(self, t: lex.LexToken) -> lex.LexToken:
        r"\d+\.\d+"
        t.value = float(t.value)
        return t

    def t_INTEGER(self, t: lex.LexToken) -> lex.LexToken:
        r"\d+"
        t.value = int(t.value)
        return t

    def t_STRING(self, t: lex.LexToken) -> lex.LexToken:
        r"""'([^'\\]|\\.)*'|"([^"\\]|\\.)*\""""
        t.value = unescape(t.value[1:-1])
        return t

    def t_IDENTIFIER(self, t: lex.LexToken) -> lex.LexToken:
        r"[a-zA-Z_][a-zA-Z0-9_]*"
        t.type = self.reserved.get(t.value.lower(), "IDENTIFIER")
        return t

    def t_error(self, t: lex.LexToken) -> None:
        raise SyntaxError(f"Illegal character '{t.value[0]}' at position {t.lexpos}")

    # --- Lexer methods ---

    def build(self, **kwargs) -> None:  # type: ignore
        """Build the lexer."""
        self.lexer = lex.lex(module=self, **kwargs)

    def tokenize(self, data: str) -> list[lex.LexToken]:
        """Tokenize the input and return all tokens."""
        lexer = self.lexer.clone()
        lexer.input(data)
        tokens = []
        while True:
            tok = lexer.token()
            if tok is None:
                break
            tokens.append(tok)
        return tokens
