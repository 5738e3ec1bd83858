"""Builds the node tree from the directive token stream."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from twoway_sql.errors import ParseError, StructuralError
from twoway_sql.nodes import (
    BeginNode,
    BindVariableNode,
    ContainerNode,
    ElseNode,
    EmbeddedValueNode,
    IfBranch,
    IfNode,
    Node,
    TemplateTree,
    TextNode,
)
from twoway_sql.parsing.template_lexer import DirectiveScanner, Token, TokenKind

logger = logging.getLogger(__name__)


# ---- Build frames (mutable while open, frozen into nodes when closed) ----


@dataclass
class _BranchFrame:
    node_id: int
    expression: str | None  # None for ELSE
    line: int
    children: list[Node] = field(default_factory=list)


@dataclass
class _IfFrame:
    pos: int
    branches: list[_BranchFrame] = field(default_factory=list)
    else_branch: _BranchFrame | None = None

    @property
    def current(self) -> _BranchFrame:
        return self.else_branch if self.else_branch is not None else self.branches[-1]

    def freeze(self) -> IfNode:
        branches = tuple(
            IfBranch(node_id=b.node_id, expression=b.expression or "", children=tuple(b.children), line=b.line)
            for b in self.branches
        )
        else_node = None
        if self.else_branch is not None:
            e = self.else_branch
            else_node = ElseNode(node_id=e.node_id, children=tuple(e.children), line=e.line)
        return IfNode(branches=branches, else_node=else_node)


@dataclass
class _BeginFrame:
    node_id: int
    pos: int
    line: int
    children: list[Node] = field(default_factory=list)

    @property
    def current(self) -> _BeginFrame:
        return self

    def freeze(self) -> BeginNode:
        return BeginNode(node_id=self.node_id, children=tuple(self.children), line=self.line)


@dataclass
class _RootFrame:
    children: list[Node] = field(default_factory=list)

    @property
    def current(self) -> _RootFrame:
        return self


class TemplateParser:
    """Assembles a :class:`TemplateTree` from template text or a token stream.

    When an evaluator is given, every IF/ELIF condition is compiled while
    building so a malformed condition is reported at parse time.
    """

    def __init__(self, evaluator: Any = None) -> None:
        self.scanner = DirectiveScanner()
        self.evaluator = evaluator

    def parse(self, text: str, name: str | None = None) -> TemplateTree:
        """Parse template text."""
        tree = self.build(self.scanner.scan(text), source=text, name=name)
        logger.debug(
            "Parsed template %s: %d nodes, %d branches",
            name or "<string>",
            sum(1 for _ in tree.walk()),
            tree.branch_count,
        )
        return tree

    def build(self, tokens: Iterable[Token], source: str = "", name: str | None = None) -> TemplateTree:
        """Assemble a tree from *tokens*, validating directive pairing."""
        root = _RootFrame()
        stack: list[Any] = [root]
        next_id = 0

        for tok in tokens:
            top = stack[-1]
            if tok.kind == TokenKind.TEXT:
                self._append(top, TextNode(tok.value))
            elif tok.kind == TokenKind.BIND:
                self._append(top, BindVariableNode(tok.value, test_literal=tok.test_literal, expand=tok.expand))
            elif tok.kind == TokenKind.EMBED:
                self._append(top, EmbeddedValueNode(tok.value, quoted=tok.quoted, test_literal=tok.test_literal))
            elif tok.kind == TokenKind.IF:
                self._check_expression(tok, source)
                frame = _IfFrame(pos=tok.pos)
                frame.branches.append(_BranchFrame(next_id, tok.value, tok.line))
                next_id += 1
                stack.append(frame)
            elif tok.kind == TokenKind.ELIF:
                if not isinstance(top, _IfFrame):
                    raise self._structural("ELIF without matching IF", source, tok)
                if top.else_branch is not None:
                    raise self._structural("ELIF after ELSE", source, tok)
                self._check_expression(tok, source)
                top.branches.append(_BranchFrame(next_id, tok.value, tok.line))
                next_id += 1
            elif tok.kind == TokenKind.ELSE:
                if not isinstance(top, _IfFrame):
                    raise self._structural("ELSE without matching IF", source, tok)
                if top.else_branch is not None:
                    raise self._structural("ELSE after ELSE", source, tok)
                top.else_branch = _BranchFrame(next_id, None, tok.line)
                next_id += 1
            elif tok.kind == TokenKind.BEGIN:
                stack.append(_BeginFrame(node_id=next_id, pos=tok.pos, line=tok.line))
                next_id += 1
            elif tok.kind in (TokenKind.END_IF, TokenKind.END_BEGIN):
                expected = _IfFrame if tok.kind == TokenKind.END_IF else _BeginFrame
                if len(stack) == 1:
                    raise self._structural("END without matching IF or BEGIN", source, tok)
                if not isinstance(top, expected):
                    raise self._structural("END does not close the innermost directive", source, tok)
                stack.pop()
                self._append(stack[-1], top.freeze())
            else:
                raise ParseError(f"Unexpected token {tok.kind}", pos=tok.pos)

        if len(stack) > 1:
            top = stack[-1]
            kind = "IF" if isinstance(top, _IfFrame) else "BEGIN"
            raise StructuralError.at(f"Unterminated {kind} directive, expected END", source, top.pos)

        return TemplateTree(
            root=ContainerNode(children=tuple(root.children)),
            source=source,
            branch_count=next_id,
            name=name,
        )

    def _append(self, frame: Any, node: Node) -> None:
        children = frame.current.children
        # Keep text runs merged when tokens come from a source that splits them
        if isinstance(node, TextNode) and children and isinstance(children[-1], TextNode):
            children[-1] = TextNode(children[-1].text + node.text)
        else:
            children.append(node)

    def _check_expression(self, tok: Token, source: str) -> None:
        if self.evaluator is None:
            return
        try:
            self.evaluator.compile(tok.value)
        except SyntaxError as e:
            raise ParseError.at(f"Invalid condition '{tok.value}': {e}", source, tok.pos) from e

    def _structural(self, message: str, source: str, tok: Token) -> StructuralError:
        if source:
            return StructuralError.at(message, source, tok.pos)
        return StructuralError(message, pos=tok.pos, line=tok.line)
