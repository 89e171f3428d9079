"""
Value typing and validation for property values.

Standard properties hold lists of strings. Complex properties hold lists of
string-keyed maps whose leaves are Variant values.
"""

from typing import Any, Dict, List, Union

from .errors import InvalidValueType

Variant = Union[str, bytes, int, bool, List['Variant'], Dict[str, 'Variant']]
VariantMap = Dict[str, Variant]
PropertyValues = List[str]
ComplexPropertyValues = List[VariantMap]


def normalize_values(value: Any) -> List[Any]:
    """
    Turn a value given to a property writer into a list.

    A single value becomes a one element list, a list or tuple is copied with
    None entries dropped, and None alone yields an empty list (delete).
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [v for v in value if v is not None]
    return [value]


def is_complex_value(values: List[Any]) -> bool:
    """True when the values are structured records rather than strings."""
    return bool(values) and isinstance(values[0], dict)


def check_value_types(values: List[Any]) -> None:
    """Validate a list of property values, raising InvalidValueType on the first bad element."""
    if not values:
        return
    if is_complex_value(values):
        check_complex_property_value(values)
        return

    for v in values:
        if not isinstance(v, str):
            raise InvalidValueType(
                f"expected property value to be str, received {type(v).__name__}"
            )


def check_complex_property_value(values: List[Any]) -> None:
    for v in values:
        if not isinstance(v, dict):
            raise InvalidValueType(
                f"expected complex property value to be dict, received {type(v).__name__}"
            )
        check_variant_value(v)


def check_variant_value(obj: Any) -> None:
    """Recursively check that obj only contains Variant leaves."""
    if isinstance(obj, (str, bytes, bool, int)):
        return
    if isinstance(obj, (list, tuple)):
        for v in obj:
            check_variant_value(v)
        return
    if isinstance(obj, dict):
        for k, v in obj.items():
            if not isinstance(k, str):
                raise InvalidValueType(
                    f"variant map keys must be str, received {type(k).__name__}"
                )
            check_variant_value(v)
        return

    raise InvalidValueType(
        "variant type expected str, bytes, int, bool, list or dict, "
        f"received {type(obj).__name__}"
    )
