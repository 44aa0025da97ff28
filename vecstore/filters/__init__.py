"""Metadata filter language."""

from vecstore.filters.expression import (
    And,
    Comparison,
    FilterExpression,
    Not,
    Operator,
    Or,
    and_,
    eq,
    gt,
    gte,
    in_,
    lt,
    lte,
    ne,
    nin,
    not_,
    or_,
)
from vecstore.filters.parser import parse_filter
from vecstore.filters.translator import FilterExpressionTranslator, format_literal

__all__ = [
    "And",
    "Comparison",
    "FilterExpression",
    "FilterExpressionTranslator",
    "Not",
    "Operator",
    "Or",
    "and_",
    "eq",
    "format_literal",
    "gt",
    "gte",
    "in_",
    "lt",
    "lte",
    "ne",
    "nin",
    "not_",
    "or_",
    "parse_filter",
]
