"""Translate filter expressions into the store's native filter string."""

from collections.abc import Iterable

from vecstore.exceptions import UnsupportedFilterError
from vecstore.filters.expression import (
    And,
    Comparison,
    FilterExpression,
    Not,
    Or,
    Scalar,
    referenced_fields,
)


def format_literal(value: Scalar) -> str:
    """Render a literal in native syntax.

    Strings are single-quoted with backslashes and quotes escaped; numbers
    and booleans are unquoted.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace("'", "\\'")
        return f"'{escaped}'"
    if isinstance(value, float):
        return repr(value)
    return str(value)


class FilterExpressionTranslator:
    """Compiles expression trees against a fixed set of filterable fields.

    Only fields registered with the ANN index can be pushed into the recall
    stage, so any other field is rejected here, before a request is sent.
    """

    def __init__(self, filterable_fields: Iterable[str]) -> None:
        self._filterable = frozenset(filterable_fields)

    @property
    def filterable_fields(self) -> frozenset[str]:
        return self._filterable

    def translate(self, expr: FilterExpression | None) -> str:
        """Translate an expression; ``None`` means no filter and yields ``""``.

        Raises:
            UnsupportedFilterError: If the expression references a field
                outside the filterable set.
        """
        if expr is None:
            return ""

        unsupported = sorted(referenced_fields(expr) - self._filterable)
        if unsupported:
            raise UnsupportedFilterError(
                f"Fields {unsupported} are not filterable; "
                "register them with the vector index to filter on them",
                details={
                    "fields": unsupported,
                    "filterable": sorted(self._filterable),
                },
            )
        return self._visit(expr)

    def _visit(self, expr: FilterExpression) -> str:
        if isinstance(expr, Comparison):
            return self._comparison(expr)
        if isinstance(expr, And):
            return self._group(expr.operands, "&&")
        if isinstance(expr, Or):
            return self._group(expr.operands, "||")
        if isinstance(expr, Not):
            return f"NOT({self._visit(expr.operand)})"
        raise TypeError(f"Unknown filter node {type(expr).__name__}")

    def _group(self, operands: list[FilterExpression], joiner: str) -> str:
        # Always parenthesize; native precedence may differ from the tree
        return "(" + f" {joiner} ".join(self._visit(op) for op in operands) + ")"

    def _comparison(self, expr: Comparison) -> str:
        value = expr.value
        if isinstance(value, list):
            items = ", ".join(format_literal(v) for v in value)
            return f"{expr.field} {expr.op.value} [{items}]"
        return f"{expr.field} {expr.op.value} {format_literal(value)}"
