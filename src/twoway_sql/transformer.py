"""Tree walker: transforms a parsed template against a transform context."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from twoway_sql.context import TransformContext
from twoway_sql.errors import EvaluationTypeError, MissingParameterError, TransformError
from twoway_sql.evaluator import ExpressionEvaluator
from twoway_sql.mappers import MapperRegistry
from twoway_sql.nodes import (
    BeginNode,
    BindVariableNode,
    ContainerNode,
    EmbeddedValueNode,
    IfNode,
    Node,
    TemplateTree,
    TextNode,
)

logger = logging.getLogger(__name__)


class Transformer:
    """Walks a :class:`TemplateTree`, writing SQL text and bind entries to a context.

    A transformer holds no per-invocation state and can be shared; all
    mutation happens on the :class:`TransformContext` passed in.
    """

    def __init__(self, evaluator: ExpressionEvaluator, mappers: MapperRegistry | None = None) -> None:
        self.evaluator = evaluator
        self.mappers = mappers if mappers is not None else MapperRegistry()

    def transform(self, tree: TemplateTree, context: TransformContext) -> None:
        self._transform(tree.root, context)

    # ---- Node dispatch ----

    def _transform(self, node: Node, ctx: TransformContext) -> None:
        if isinstance(node, TextNode):
            ctx.append_text(node.text)
        elif isinstance(node, BindVariableNode):
            self._transform_bind(node, ctx)
        elif isinstance(node, EmbeddedValueNode):
            self._transform_embedded(node, ctx)
        elif isinstance(node, IfNode):
            self._transform_if(node, ctx)
        elif isinstance(node, BeginNode):
            self._transform_begin(node, ctx)
        elif isinstance(node, ContainerNode):
            self._transform_children(node.children, ctx)
        else:
            raise TransformError(f"Unknown node type: {type(node).__name__}")

    def _transform_children(self, children: Iterable[Node], ctx: TransformContext) -> None:
        if not ctx.enabled:
            return
        for child in children:
            self._transform(child, ctx)

    def _resolve(self, name: str, ctx: TransformContext) -> tuple[bool, Any]:
        """Return (found, value); absent names raise unless inside an optional block."""
        if not ctx.has_value(name):
            if ctx.optional:
                ctx.missing.append(name)
                return False, None
            raise MissingParameterError(name)
        ctx.present_count += 1
        return True, ctx.get_value(name)

    def _transform_bind(self, node: BindVariableNode, ctx: TransformContext) -> None:
        if not ctx.enabled:
            return
        found, value = self._resolve(node.name, ctx)
        if not found:
            return
        if not node.expand:
            ctx.add_bind(node.name, self.mappers.to_bind(value))
            return
        if value is None or isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
            raise TransformError(
                f"Parameter '{node.name}' is bound as an IN list and must be a collection, "
                f"got {type(value).__name__}"
            )
        items = list(value)
        if not items:
            ctx.append_text("(NULL)")
            return
        ctx.append_text("(")
        for i, item in enumerate(items):
            if i:
                ctx.append_text(", ")
            ctx.add_bind(f"{node.name}[{i}]", self.mappers.to_bind(item))
        ctx.append_text(")")

    def _transform_embedded(self, node: EmbeddedValueNode, ctx: TransformContext) -> None:
        if not ctx.enabled:
            return
        found, value = self._resolve(node.name, ctx)
        if found:
            ctx.append_text(self.mappers.to_literal(value, quoted=node.quoted))

    def _transform_if(self, node: IfNode, ctx: TransformContext) -> None:
        if not ctx.enabled:
            return
        for branch in node.branches:
            result = self.evaluator.evaluate(branch.expression, ctx.lookup)
            if not isinstance(result, bool):
                raise EvaluationTypeError(branch.expression, result)
            if result:
                ctx.mark_branch(branch.node_id, True)
                self._enter(branch.children, ctx)
                if node.else_node is not None:
                    ctx.mark_branch(node.else_node.node_id, False)
                return
            ctx.mark_branch(branch.node_id, False)
        if node.else_node is not None:
            ctx.mark_branch(node.else_node.node_id, True)
            self._enter(node.else_node.children, ctx)

    def _enter(self, children: Iterable[Node], ctx: TransformContext) -> None:
        previous = ctx.enabled
        ctx.enabled = True
        self._transform_children(children, ctx)
        ctx.enabled = previous

    def _transform_begin(self, node: BeginNode, ctx: TransformContext) -> None:
        if not ctx.enabled:
            return
        block = ctx.scratch(optional=True)
        self._transform_children(node.children, block)
        if block.present_count == 0:
            ctx.mark_branch(node.node_id, False)
            logger.debug("Optional block at line %d dropped: no parameter present", node.line)
            return
        if block.missing:
            raise MissingParameterError(block.missing[0])
        ctx.mark_branch(node.node_id, True)
        ctx.commit(block)
