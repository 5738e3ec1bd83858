"""twoway_sql - 2-way SQL templates: directive comments rendered to SQL plus bind parameters."""

from twoway_sql.config import TransformOptions
from twoway_sql.context import BindParameter, ChainedLookup, MappingLookup, TransformContext, VariableLookup
from twoway_sql.coverage import CoverageCollector, CoverageReport
from twoway_sql.errors import (
    EvaluationError,
    EvaluationTypeError,
    MissingParameterError,
    ParseError,
    StructuralError,
    TemplateError,
    TransformError,
)
from twoway_sql.evaluator import DefaultExpressionEvaluator, ExpressionEvaluator, FunctionRegistry
from twoway_sql.mappers import MapperRegistry
from twoway_sql.nodes import (
    BeginNode,
    BindVariableNode,
    ContainerNode,
    ElseNode,
    EmbeddedValueNode,
    IfBranch,
    IfNode,
    TemplateTree,
    TextNode,
)
from twoway_sql.parsing import DirectiveScanner, TemplateParser
from twoway_sql.template import SqlTemplate, TemplateEngine, TransformResult
from twoway_sql.transformer import Transformer

__all__ = [
    # Main API
    "TemplateEngine",
    "SqlTemplate",
    "TransformResult",
    "TransformOptions",
    # Parsing
    "DirectiveScanner",
    "TemplateParser",
    "TemplateTree",
    # Nodes
    "TextNode",
    "BindVariableNode",
    "EmbeddedValueNode",
    "ContainerNode",
    "IfNode",
    "IfBranch",
    "ElseNode",
    "BeginNode",
    # Transform
    "Transformer",
    "TransformContext",
    "VariableLookup",
    "MappingLookup",
    "ChainedLookup",
    "BindParameter",
    "ExpressionEvaluator",
    "DefaultExpressionEvaluator",
    "FunctionRegistry",
    "MapperRegistry",
    "CoverageCollector",
    "CoverageReport",
    # Errors
    "TemplateError",
    "ParseError",
    "StructuralError",
    "TransformError",
    "EvaluationError",
    "EvaluationTypeError",
    "MissingParameterError",
]

__version__ = "0.1.0"
