"""Conversion of configuration text into typed slot values."""

import types
from enum import Enum
from typing import Any, Iterable, Union, get_args, get_origin

from trellis.domain import type_name
from trellis.errors import CoercionError

__all__ = ["coerce_scalar", "coerce_collection", "parse_bool", "strip_optional"]

_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


def parse_bool(text: str) -> bool:
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise CoercionError(f"invalid boolean {text!r}")


def coerce_scalar(text: str, target_type: Any) -> Any:
    """Convert ``text`` to an instance of ``target_type``.

    Supported targets are ``str``, ``int``, ``float``, ``bool``, ``Enum`` subclasses
    (by member name), ``Optional`` wrappers of these, and any class exposing a
    ``from_text`` classmethod.

    Raises:
        CoercionError: If the text is not valid for the type, or the type is unsupported.

    Example:
        >>> coerce_scalar("-213", int)
        -213
        >>> coerce_scalar("true", bool)
        True
    """
    target_type = strip_optional(target_type)
    if get_origin(target_type) is not None:
        raise CoercionError(f"invalid inject {text} into type {type_name(target_type)}")

    if target_type is Any or target_type is str:
        return text
    if target_type is bool:
        return parse_bool(text)
    if target_type is int:
        return _convert(text, int, target_type)
    if target_type is float:
        return _convert(text, float, target_type)
    if isinstance(target_type, type) and issubclass(target_type, Enum):
        try:
            return target_type[text]
        except KeyError:
            raise CoercionError(
                f"invalid inject {text} into type {type_name(target_type)}"
            ) from None

    from_text = getattr(target_type, "from_text", None)
    if callable(from_text):
        return _convert(text, from_text, target_type)

    raise CoercionError(f"invalid inject {text} into type {type_name(target_type)}")


def coerce_collection(items: Iterable[tuple[str, str]], target_type: Any) -> Any:
    """Build a constant list, tuple or dict from ``(key, value)`` text pairs.

    Keys are only used for mapping targets. A fixed-length tuple target requires
    exactly as many items as it declares members.

    Raises:
        CoercionError: If the target is not a collection type, the length does not
            match, or any member fails to coerce.
    """
    items = list(items)
    target_type = strip_optional(target_type)
    origin = get_origin(target_type) or target_type
    args = get_args(target_type)

    if origin is list:
        element_type = args[0] if args else Any
        return [coerce_scalar(value, element_type) for _, value in items]

    if origin is tuple:
        if args and not (len(args) == 2 and args[1] is Ellipsis):
            if len(args) != len(items):
                raise CoercionError(
                    f"the length of {len(items)} items doesn't match {type_name(target_type)}"
                )
            return tuple(
                coerce_scalar(value, member_type)
                for (_, value), member_type in zip(items, args)
            )
        element_type = args[0] if args else Any
        return tuple(coerce_scalar(value, element_type) for _, value in items)

    if origin is dict:
        key_type, value_type = args if len(args) == 2 else (Any, Any)
        return {
            coerce_scalar(key, key_type): coerce_scalar(value, value_type)
            for key, value in items
        }

    raise CoercionError(f"unsupported type {type_name(target_type)}")


def _convert(text: str, converter, target_type) -> Any:
    try:
        return converter(text)
    except (ValueError, TypeError) as e:
        raise CoercionError(
            f"invalid inject {text} into type {type_name(target_type)}"
        ) from e


def strip_optional(target_type: Any) -> Any:
    if get_origin(target_type) in (Union, types.UnionType):
        members = [arg for arg in get_args(target_type) if arg is not type(None)]
        if len(members) == 1:
            return members[0]
    return target_type
