"""Embedding representations and numeric conversion.

An entity declares its embedding as one of a closed set of shapes:

* a fixed-width numeric array (``array.array`` with typecode ``f`` or ``d``)
* a dynamic numeric sequence (``list`` or ``tuple`` of ``float``, ``int``
  or ``Decimal``)

Each element written into the entity passes through an explicit converter
for its element type. Values that cannot be represented raise
ConversionError.
"""

import math
import numbers
import types
from array import array
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Union, cast, get_args, get_origin

from vecstore.exceptions import ConversionError, MappingError

FLOAT32_MAX = 3.4028234663852886e38

ARRAY_TYPECODES = {"f", "d"}


class EmbeddingKind(str, Enum):
    """Container shape of an embedding field."""

    ARRAY = "array"
    SEQUENCE = "sequence"


def _require_number(value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, (numbers.Real, Decimal)):
        raise ConversionError(
            f"Embedding element {value!r} is not numeric",
            details={"value": repr(value), "type": type(value).__name__},
        )


def to_float(value: Any) -> float:
    """Convert an element to a finite float."""
    _require_number(value)
    result = float(value)
    if not math.isfinite(result):
        raise ConversionError(
            f"Embedding element {value!r} is not finite",
            details={"value": repr(value)},
        )
    return result


def to_float32(value: Any) -> float:
    """Convert an element to a float that fits in single precision."""
    result = to_float(value)
    if abs(result) > FLOAT32_MAX:
        raise ConversionError(
            f"Embedding element {value!r} overflows float32",
            details={"value": repr(value)},
        )
    return result


def to_int(value: Any) -> int:
    """Convert an integral element to int."""
    result = to_float(value)
    if not result.is_integer():
        raise ConversionError(
            f"Embedding element {value!r} is not integral",
            details={"value": repr(value)},
        )
    return int(result)


def to_decimal(value: Any) -> Decimal:
    """Convert an element to Decimal, keeping its shortest repr."""
    _require_number(value)
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(repr(to_float(value)) if isinstance(value, float) else value)
    except (InvalidOperation, TypeError) as e:
        raise ConversionError(
            f"Embedding element {value!r} cannot be represented as Decimal",
            details={"value": repr(value)},
        ) from e


ELEMENT_CONVERTERS: dict[type, Callable[[Any], Any]] = {
    float: to_float,
    int: to_int,
    Decimal: to_decimal,
}


@dataclass(frozen=True)
class EmbeddingRepresentation:
    """How an entity stores its embedding vector."""

    kind: EmbeddingKind
    container: type
    element_type: type
    typecode: str | None = None

    def convert(self, values: Iterable[Any]) -> Any:
        """Build the entity-side value from provider output.

        Raises:
            ConversionError: If any element cannot be converted.
        """
        if self.kind is EmbeddingKind.ARRAY:
            typecode = cast(str, self.typecode)
            converter = to_float32 if typecode == "f" else to_float
            return array(typecode, [converter(v) for v in values])

        converter = ELEMENT_CONVERTERS[self.element_type]
        return self.container(converter(v) for v in values)

    def to_floats(self, value: Sequence[Any] | None) -> list[float]:
        """Read an entity-side value back as a list of floats."""
        if value is None:
            return []
        return [to_float(v) for v in value]


def _strip_optional(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [arg for arg in get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def resolve_representation(
    annotation: Any,
    typecode: str | None = None,
) -> EmbeddingRepresentation:
    """Resolve a field annotation to one of the supported representations.

    Args:
        annotation: Field type, without ``Annotated`` metadata.
        typecode: Array typecode from the Embedding marker.

    Raises:
        MappingError: If the annotation is not a supported representation.
    """
    annotation = _strip_optional(annotation)

    if annotation is array:
        code = typecode or "f"
        if code not in ARRAY_TYPECODES:
            raise MappingError(
                f"Unsupported array typecode {code!r} for embedding",
                details={"typecode": code},
            )
        return EmbeddingRepresentation(EmbeddingKind.ARRAY, array, float, code)

    origin = get_origin(annotation)
    args = get_args(annotation)

    if origin is list and len(args) == 1:
        element = args[0]
    elif origin is tuple and len(args) == 2 and args[1] is Ellipsis:
        element = args[0]
    else:
        raise MappingError(
            f"Unsupported embedding type {annotation!r}; use array, list[...] or tuple[..., ...]",
            details={"annotation": repr(annotation)},
        )

    if element not in ELEMENT_CONVERTERS:
        raise MappingError(
            f"Unsupported embedding element type {element!r}",
            details={"element_type": repr(element)},
        )
    return EmbeddingRepresentation(EmbeddingKind.SEQUENCE, origin, element)
