"""Parser for branch-condition expressions."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Union

import ply.yacc as yacc

from twoway_sql.parsing.expression_lexer import ExpressionLexer


@dataclass(frozen=True)
class Literal:
    """A literal value: null, true, false, a number or a string."""

    value: Any


@dataclass(frozen=True)
class Name:
    """A bare identifier resolved against the variable lookup."""

    name: str


@dataclass(frozen=True)
class Attribute:
    """Property access: target.name."""

    target: Expr
    name: str


@dataclass(frozen=True)
class Index:
    """Subscript access: target[index]."""

    target: Expr
    index: Expr


@dataclass(frozen=True)
class Call:
    """A function call like is_empty(name) or SF.isNotBlank(name)."""

    function: str  # dotted function name
    args: tuple[Expr, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Not:
    """Boolean negation."""

    operand: Expr


@dataclass(frozen=True)
class BoolOp:
    """Short-circuit boolean combination."""

    operator: str  # and, or
    left: Expr
    right: Expr


@dataclass(frozen=True)
class Compare:
    """A comparison or membership test."""

    operator: str  # ==, !=, <, <=, >, >=, in
    left: Expr
    right: Expr


Expr = Union[Literal, Name, Attribute, Index, Call, Not, BoolOp, Compare]


def dotted_name(expr: Expr) -> str | None:
    """Return 'a.b.c' for a Name/Attribute chain, None for anything else."""
    if isinstance(expr, Name):
        return expr.name
    if isinstance(expr, Attribute):
        prefix = dotted_name(expr.target)
        return None if prefix is None else f"{prefix}.{expr.name}"
    return None


def referenced_names(expr: Expr) -> list[str]:
    """Return the root identifiers an expression reads, in first-seen order."""
    names: list[str] = []

    def visit(node: Expr) -> None:
        if isinstance(node, Name):
            if node.name not in names:
                names.append(node.name)
        elif isinstance(node, Attribute):
            visit(node.target)
        elif isinstance(node, Index):
            visit(node.target)
            visit(node.index)
        elif isinstance(node, Call):
            for arg in node.args:
                visit(arg)
        elif isinstance(node, Not):
            visit(node.operand)
        elif isinstance(node, (BoolOp, Compare)):
            visit(node.left)
            visit(node.right)

    visit(expr)
    return names


class ExpressionParser:
    """Parser for IF/ELIF condition expressions."""

    tokens = ExpressionLexer.tokens

    # Operator precedence: loosest to tightest
    precedence = (
        ("left", "OR", "OROR"),
        ("left", "AND", "ANDAND"),
        ("right", "NOT"),
        ("nonassoc", "EQ", "NEQ", "LT", "LTE", "GT", "GTE", "IN"),
        ("right", "BANG"),
    )

    def __init__(self) -> None:
        self.lexer = ExpressionLexer()
        self.lexer.build()
        self.parser: yacc.LRParser = None  # type: ignore
        # LRParser keeps its stacks on the instance
        self._lock = threading.Lock()

    def p_expression_or(self, p: yacc.YaccProduction) -> None:
        """expression : expression OR expression
                      | expression OROR expression"""
        p[0] = BoolOp(operator="or", left=p[1], right=p[3])

    def p_expression_and(self, p: yacc.YaccProduction) -> None:
        """expression : expression AND expression
                      | expression ANDAND expression"""
        p[0] = BoolOp(operator="and", left=p[1], right=p[3])

    def p_expression_not(self, p: yacc.YaccProduction) -> None:
        """expression : NOT expression
                      | BANG expression"""
        p[0] = Not(operand=p[2])

    def p_expression_compare(self, p: yacc.YaccProduction) -> None:
        """expression : expression EQ expression
                      | expression NEQ expression
                      | expression LT expression
                      | expression LTE expression
                      | expression GT expression
                      | expression GTE expression"""
        operators = {"EQ": "==", "NEQ": "!=", "LT": "<", "LTE": "<=", "GT": ">", "GTE": ">="}
        p[0] = Compare(operator=operators[p.slice[2].type], left=p[1], right=p[3])

    def p_expression_in(self, p: yacc.YaccProduction) -> None:
        """expression : expression IN expression"""
        p[0] = Compare(operator="in", left=p[1], right=p[3])

    def p_expression_group(self, p: yacc.YaccProduction) -> None:
        """expression : LPAREN expression RPAREN"""
        p[0] = p[2]

    def p_expression_primary(self, p: yacc.YaccProduction) -> None:
        """expression : literal
                      | postfix"""
        p[0] = p[1]

    def p_literal_number(self, p: yacc.YaccProduction) -> None:
        """literal : INTEGER
                   | FLOAT
                   | STRING"""
        p[0] = Literal(value=p[1])

    def p_literal_negative(self, p: yacc.YaccProduction) -> None:
        """literal : MINUS INTEGER
                   | MINUS FLOAT"""
        p[0] = Literal(value=-p[2])

    def p_literal_null(self, p: yacc.YaccProduction) -> None:
        """literal : NULL"""
        p[0] = Literal(value=None)

    def p_literal_true(self, p: yacc.YaccProduction) -> None:
        """literal : TRUE"""
        p[0] = Literal(value=True)

    def p_literal_false(self, p: yacc.YaccProduction) -> None:
        """literal : FALSE"""
        p[0] = Literal(value=False)

    def p_postfix_name(self, p: yacc.YaccProduction) -> None:
        """postfix : IDENTIFIER"""
        p[0] = Name(name=p[1])

    def p_postfix_attribute(self, p: yacc.YaccProduction) -> None:
        """postfix : postfix DOT IDENTIFIER"""
        p[0] = Attribute(target=p[1], name=p[3])

    def p_postfix_index(self, p: yacc.YaccProduction) -> None:
        """postfix : postfix LBRACKET expression RBRACKET"""
        p[0] = Index(target=p[1], index=p[3])

    def p_postfix_call(self, p: yacc.YaccProduction) -> None:
        """postfix : postfix LPAREN RPAREN
                   | postfix LPAREN argument_list RPAREN"""
        function = dotted_name(p[1])
        if function is None:
            # SyntaxError here would send yacc into error recovery
            raise ValueError(f"Only named functions can be called (position {p.lexpos(2)})")
        args = tuple(p[3]) if len(p) == 5 else ()
        p[0] = Call(function=function, args=args)

    def p_argument_list_single(self, p: yacc.YaccProduction) -> None:
        """argument_list : expression"""
        p[0] = [p[1]]

    def p_argument_list_multiple(self, p: yacc.YaccProduction) -> None:
        """argument_list : argument_list COMMA expression"""
        p[0] = p[1] + [p[3]]

    def p_error(self, p: yacc.YaccProduction) -> None:
        if p:
            raise SyntaxError(f"Syntax error at '{p.value}' (position {p.lexpos})")
        else:
            raise SyntaxError("Syntax error at end of input")

    def build(self, **kwargs: Any) -> None:
        """Build the parser."""
        self.parser = yacc.yacc(module=self, start="expression", **kwargs)

    def parse(self, data: str) -> Expr:
        """Parse a condition expression."""
        with self._lock:
            if self.parser is None:
                self.build(debug=False, write_tables=False, errorlog=yacc.NullLogger())
            if not data.strip():
                raise SyntaxError("Empty expression")
            try:
                return self.parser.parse(data, lexer=self.lexer.lexer.clone())
            except ValueError as e:
                raise SyntaxError(str(e)) from None
