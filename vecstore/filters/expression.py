"""Filter expression tree.

Expressions are built with the helper functions or combined with the
``&``, ``|`` and ``~`` operators::

    expr = eq("country", "BG") & ~in_("year", [2019, 2020])
"""

import math
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

Scalar = str | bool | int | float


class Operator(str, Enum):
    """Comparison operators, valued by their native spelling."""

    EQ = "=="
    NE = "!="
    GT = ">"
    GTE = ">="
    LT = "<"
    LTE = "<="
    IN = "IN"
    NIN = "NIN"


LIST_OPERATORS = frozenset({Operator.IN, Operator.NIN})


class _Node(BaseModel):
    model_config = ConfigDict(frozen=True)

    def __and__(self, other: "FilterExpression") -> "And":
        return And(operands=[self, other])  # type: ignore[list-item]

    def __or__(self, other: "FilterExpression") -> "Or":
        return Or(operands=[self, other])  # type: ignore[list-item]

    def __invert__(self) -> "Not":
        return Not(operand=self)  # type: ignore[arg-type]


class Comparison(_Node):
    """``field op value``."""

    kind: Literal["comparison"] = "comparison"
    field: str = Field(min_length=1)
    op: Operator
    value: Scalar | list[Scalar]

    @model_validator(mode="after")
    def _check_value(self) -> "Comparison":
        values = self.value if isinstance(self.value, list) else [self.value]
        if self.op in LIST_OPERATORS:
            if not isinstance(self.value, list) or not self.value:
                raise ValueError(f"{self.op.name} requires a non-empty list value")
        elif isinstance(self.value, list):
            raise ValueError(f"{self.op.name} requires a scalar value")
        for v in values:
            if isinstance(v, float) and not math.isfinite(v):
                raise ValueError("filter values must be finite numbers")
        return self


class And(_Node):
    kind: Literal["and"] = "and"
    operands: list["FilterExpression"] = Field(min_length=1)


class Or(_Node):
    kind: Literal["or"] = "or"
    operands: list["FilterExpression"] = Field(min_length=1)


class Not(_Node):
    kind: Literal["not"] = "not"
    operand: "FilterExpression"


FilterExpression = Annotated[
    Union[Comparison, And, Or, Not],
    Field(discriminator="kind"),
]

And.model_rebuild()
Or.model_rebuild()
Not.model_rebuild()


def eq(field: str, value: Scalar) -> Comparison:
    return Comparison(field=field, op=Operator.EQ, value=value)


def ne(field: str, value: Scalar) -> Comparison:
    return Comparison(field=field, op=Operator.NE, value=value)


def gt(field: str, value: Scalar) -> Comparison:
    return Comparison(field=field, op=Operator.GT, value=value)


def gte(field: str, value: Scalar) -> Comparison:
    return Comparison(field=field, op=Operator.GTE, value=value)


def lt(field: str, value: Scalar) -> Comparison:
    return Comparison(field=field, op=Operator.LT, value=value)


def lte(field: str, value: Scalar) -> Comparison:
    return Comparison(field=field, op=Operator.LTE, value=value)


def in_(field: str, values: list[Scalar]) -> Comparison:
    return Comparison(field=field, op=Operator.IN, value=list(values))


def nin(field: str, values: list[Scalar]) -> Comparison:
    return Comparison(field=field, op=Operator.NIN, value=list(values))


def and_(*operands: FilterExpression) -> And:
    return And(operands=list(operands))


def or_(*operands: FilterExpression) -> Or:
    return Or(operands=list(operands))


def not_(operand: FilterExpression) -> Not:
    return Not(operand=operand)


def referenced_fields(expr: FilterExpression) -> set[str]:
    """Collect every field name an expression refers to."""
    if isinstance(expr, Comparison):
        return {expr.field}
    if isinstance(expr, Not):
        return referenced_fields(expr.operand)
    fields: set[str] = set()
    for operand in expr.operands:
        fields |= referenced_fields(operand)
    return fields
