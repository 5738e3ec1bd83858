"""Node tree for parsed templates.

Trees are built once per template source and are immutable afterwards, so a
single tree can be transformed from many threads at once. Conditional chains
are stored as an ordered tuple of branches rather than linked else-if nodes;
``node_id`` values index the per-invocation coverage side-table.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Union


@dataclass(frozen=True)
class TextNode:
    """Literal text emitted verbatim."""

    text: str


@dataclass(frozen=True)
class BindVariableNode:
    """A bind variable: emits a placeholder and adds (name, value) to the bind list."""

    name: str
    test_literal: str | None = None  # sample value following the directive, dropped on output
    expand: bool = False  # IN-list bind: (?, ?, ...) with one entry per element


@dataclass(frozen=True)
class EmbeddedValueNode:
    """A value rendered straight into the SQL text, no bind entry."""

    name: str
    quoted: bool = False  # render as a quoted string literal
    test_literal: str | None = None


@dataclass(frozen=True)
class ContainerNode:
    """An ordered sequence of child nodes."""

    children: tuple[Node, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class IfBranch:
    """One condition/body pair of a conditional chain (IF or ELIF)."""

    node_id: int
    expression: str
    children: tuple[Node, ...] = field(default_factory=tuple)
    line: int = 0


@dataclass(frozen=True)
class ElseNode:
    """The ELSE body of a conditional chain."""

    node_id: int
    children: tuple[Node, ...] = field(default_factory=tuple)
    line: int = 0


@dataclass(frozen=True)
class IfNode:
    """IF / ELIF ... / ELSE chain, evaluated first-true-wins left to right."""

    branches: tuple[IfBranch, ...]
    else_node: ElseNode | None = None

    @property
    def expression(self) -> str:
        return self.branches[0].expression

    @property
    def children(self) -> tuple[Node, ...]:
        return self.branches[0].children

    @property
    def else_if(self) -> IfNode | None:
        """The rest of the chain as its own IfNode, or None after the last ELIF."""
        if len(self.branches) < 2:
            return None
        return IfNode(branches=self.branches[1:], else_node=self.else_node)


@dataclass(frozen=True)
class BeginNode:
    """Optional block: kept only when it resolved at least one present value."""

    node_id: int
    children: tuple[Node, ...] = field(default_factory=tuple)
    line: int = 0


Node = Union[TextNode, BindVariableNode, EmbeddedValueNode, ContainerNode, IfNode, BeginNode]


@dataclass(frozen=True)
class BranchInfo:
    """A coverable branch of a template."""

    node_id: int
    kind: str  # IF, ELIF, ELSE, BEGIN
    expression: str | None
    line: int


@dataclass(frozen=True)
class TemplateTree:
    """Result of parsing one template source."""

    root: ContainerNode
    source: str = field(repr=False, default="")
    branch_count: int = 0
    name: str | None = None

    def walk(self) -> Iterator[Node]:
        """Yield every node depth-first in source order (branch bodies included)."""
        yield from _walk(self.root)

    def branches(self) -> list[BranchInfo]:
        """All coverable branches, ordered by node_id."""
        infos: list[BranchInfo] = []
        for node in self.walk():
            if isinstance(node, IfNode):
                for i, branch in enumerate(node.branches):
                    kind = "IF" if i == 0 else "ELIF"
                    infos.append(BranchInfo(branch.node_id, kind, branch.expression, branch.line))
                if node.else_node is not None:
                    infos.append(BranchInfo(node.else_node.node_id, "ELSE", None, node.else_node.line))
            elif isinstance(node, BeginNode):
                infos.append(BranchInfo(node.node_id, "BEGIN", None, node.line))
        return sorted(infos, key=lambda info: info.node_id)

    def parameter_names(self) -> list[str]:
        """Names referenced by bind and embedded variables, first-seen order."""
        names: list[str] = []
        for node in self.walk():
            if isinstance(node, (BindVariableNode, EmbeddedValueNode)) and node.name not in names:
                names.append(node.name)
        return names


def _walk(node: Node) -> Iterator[Node]:
    yield node
    if isinstance(node, IfNode):
        for branch in node.branches:
            for child in branch.children:
                yield from _walk(child)
        if node.else_node is not None:
            for child in node.else_node.children:
                yield from _walk(child)
    elif isinstance(node, (ContainerNode, BeginNode)):
        for child in node.children:
            yield from _walk(child)
