"""Template engine facade: parse once, transform many times.

    engine = TemplateEngine()
    template = engine.parse(
        "SELECT * FROM emp WHERE 1 = 1 /*IF id != null*/AND id = /*id*/1/*END*/"
    )
    result = template.transform({"id": 5})
    cursor.execute(result.sql, result.values)

A parsed :class:`SqlTemplate` is immutable and may be shared between threads;
every transform works on its own :class:`TransformContext`.

Text around directives is copied as written, so a skipped branch can leave
a doubled space or a trailing blank behind; pass
``TransformOptions(collapse_whitespace=True)`` for tidy output.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from twoway_sql import postprocess
from twoway_sql.config import TransformOptions
from twoway_sql.context import (
    BindParameter,
    ChainedLookup,
    MappingLookup,
    TransformContext,
    VariableLookup,
    placeholder_keys,
)
from twoway_sql.coverage import CoverageCollector
from twoway_sql.evaluator import DefaultExpressionEvaluator, ExpressionEvaluator, FunctionRegistry
from twoway_sql.mappers import MapperRegistry
from twoway_sql.nodes import TemplateTree
from twoway_sql.parsing.template_parser import TemplateParser
from twoway_sql.transformer import Transformer

logger = logging.getLogger(__name__)

# Contributes parameters to every transform; its values override explicit ones
AutoBinder = Callable[[dict[str, Any]], None]


@dataclass(frozen=True)
class TransformResult:
    """Rendered SQL and its bind parameters in placeholder order."""

    sql: str
    binds: tuple[BindParameter, ...] = ()

    @property
    def values(self) -> list[Any]:
        return [b.value for b in self.binds]

    @property
    def names(self) -> list[str]:
        return [b.name for b in self.binds]

    def as_dict(self) -> dict[str, Any]:
        """Bind values keyed by placeholder name, for named/pyformat paramstyles."""
        return dict(zip(placeholder_keys(self.names), self.values))


class SqlTemplate:
    """A parsed template bound to the engine that parsed it."""

    def __init__(self, tree: TemplateTree, engine: TemplateEngine) -> None:
        self.tree = tree
        self.engine = engine

    @property
    def name(self) -> str:
        if self.tree.name:
            return self.tree.name
        digest = hashlib.md5(self.tree.source.encode(), usedforsecurity=False).hexdigest()
        return f"<string:{digest[:12]}>"

    @property
    def source(self) -> str:
        return self.tree.source

    def parameter_names(self) -> list[str]:
        return self.tree.parameter_names()

    def transform(
        self,
        params: Mapping[str, Any] | None = None,
        *,
        lookup: VariableLookup | None = None,
        coverage: CoverageCollector | None = None,
    ) -> TransformResult:
        """Render the template with *params* (or a custom *lookup*)."""
        return self.engine.transform(self, params, lookup=lookup, coverage=coverage)

    def __repr__(self) -> str:
        return f"SqlTemplate(name={self.name!r}, branches={self.tree.branch_count})"


class TemplateEngine:
    """Holds options, evaluator and mappers shared by the templates it parses."""

    def __init__(
        self,
        options: TransformOptions | None = None,
        evaluator: ExpressionEvaluator | None = None,
        mappers: MapperRegistry | None = None,
        functions: FunctionRegistry | None = None,
        coverage: CoverageCollector | None = None,
    ) -> None:
        self.options = options if options is not None else TransformOptions()
        if evaluator is None:
            evaluator = DefaultExpressionEvaluator(functions=functions, strict_names=self.options.strict_names)
        elif functions is not None:
            raise ValueError("functions can only be given together with the default evaluator")
        self.evaluator = evaluator
        self.mappers = mappers if mappers is not None else MapperRegistry()
        self.coverage = coverage
        self._parser = TemplateParser(self.evaluator if self.options.validate_expressions else None)
        self._transformer = Transformer(self.evaluator, self.mappers)
        self._auto_binders: list[AutoBinder] = []

    # ---- Auto binders ----

    def add_auto_binder(self, binder: AutoBinder) -> None:
        self._auto_binders.append(binder)

    def remove_auto_binder(self, binder: AutoBinder) -> None:
        self._auto_binders.remove(binder)

    # ---- Public API ----

    def parse(self, source: str, name: str | None = None) -> SqlTemplate:
        """Parse *source* into a reusable template."""
        return SqlTemplate(self._parser.parse(source, name=name), self)

    def render(self, source: str, params: Mapping[str, Any] | None = None) -> TransformResult:
        """Parse and transform in one step."""
        return self.parse(source).transform(params)

    def transform(
        self,
        template: SqlTemplate,
        params: Mapping[str, Any] | None = None,
        *,
        lookup: VariableLookup | None = None,
        coverage: CoverageCollector | None = None,
    ) -> TransformResult:
        if params is not None and lookup is not None:
            raise ValueError("Pass either params or lookup, not both")
        collector = coverage if coverage is not None else self.coverage
        context = TransformContext(
            lookup=self._lookup(params, lookup),
            coverage={} if collector is not None else None,
        )
        self._transformer.transform(template.tree, context)

        sql = postprocess.apply(context.render(self.options.paramstyle), self.options)
        if collector is not None and context.coverage is not None:
            collector.record(template.name, template.tree, context.coverage)
        logger.debug("Transformed %s with %d bind parameter(s):\n%s", template.name, len(context.binds), sql)
        return TransformResult(sql=sql, binds=tuple(context.binds))

    def _lookup(self, params: Mapping[str, Any] | None, lookup: VariableLookup | None) -> VariableLookup:
        if lookup is None:
            lookup = MappingLookup(params if params is not None else {})
        if not self._auto_binders:
            return lookup
        defaults: dict[str, Any] = {}
        for binder in self._auto_binders:
            binder(defaults)
        return ChainedLookup(MappingLookup(defaults), lookup)
