"""Parsing module for templates and branch conditions."""

from twoway_sql.parsing.expression_parser import ExpressionParser
from twoway_sql.parsing.template_lexer import DirectiveScanner, Token, TokenKind
from twoway_sql.parsing.template_parser import TemplateParser

__all__ = [
    "DirectiveScanner",
    "ExpressionParser",
    "TemplateParser",
    "Token",
    "TokenKind",
]
