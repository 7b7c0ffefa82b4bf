"""Introspection of injectable slots on component types.

Every dynamic-typing concern of the framework lives here: a class is described
once into a :class:`TypeDescriptor` listing its annotated slots, their kinds and
their accessibility, and a :class:`CapabilityIndex` answers whether a concrete
type satisfies a capability (a ``Protocol`` or abstract class). The resolver
works only against these two interfaces.
"""

import collections.abc
import inspect
import types
from abc import ABC
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import (
    Annotated,
    Any,
    ClassVar,
    Optional,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from trellis.coerce import strip_optional
from trellis.domain import SlotSpec, type_name
from trellis.errors import ResolutionError

__all__ = [
    "SlotKind",
    "SlotDescriptor",
    "TypeDescriptor",
    "CapabilityIndex",
    "describe",
    "is_aggregate",
    "is_capability",
    "is_default",
    "create_instance",
]

_NON_AGGREGATE = (
    str,
    bytes,
    bytearray,
    int,
    float,
    complex,
    bool,
    list,
    tuple,
    dict,
    set,
    frozenset,
    type(None),
)

_SEQUENCE_ORIGINS = (
    list,
    tuple,
    collections.abc.Sequence,
    collections.abc.MutableSequence,
)

_MAPPING_ORIGINS = (dict, collections.abc.Mapping, collections.abc.MutableMapping)


class SlotKind(Enum):
    REFERENCE = "reference"
    CAPABILITY = "capability"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class SlotDescriptor:
    """An annotated slot on a component type.

    Attributes:
        name: The attribute name.
        declared_type: The slot's type with ``Annotated`` and ``Optional`` wrappers removed.
        kind: How the resolver treats the slot.
        container: The concrete collection type built for sequence and mapping slots.
        element_type: Type of sequence members or mapping values.
        key_type: Type of mapping keys.
        item_types: Positional member types of a fixed-length tuple slot.
        declared_spec: Wiring declared on the class through ``Annotated`` metadata.
    """

    name: str
    declared_type: Any
    kind: SlotKind
    container: Optional[type] = None
    element_type: Any = Any
    key_type: Any = Any
    item_types: Optional[tuple] = None
    declared_spec: Optional[SlotSpec] = None

    @property
    def accessible(self) -> bool:
        return not self.name.startswith("_")

    def member_type(self, index: int) -> Any:
        if self.item_types is not None:
            return self.item_types[index]
        return self.element_type


@dataclass(frozen=True)
class TypeDescriptor:
    """All annotated slots of a type, in declaration order."""

    declared_type: type
    slots: dict[str, SlotDescriptor]

    def slot(self, name: str) -> Optional[SlotDescriptor]:
        return self.slots.get(name)

    def declared_specs(self) -> dict[str, SlotSpec]:
        return {
            name: slot.declared_spec
            for name, slot in self.slots.items()
            if slot.declared_spec is not None
        }


@lru_cache(maxsize=None)
def describe(declared_type: type) -> TypeDescriptor:
    """Describe the injectable slots of ``declared_type``.

    Slots are taken from the class annotations (including those inherited from
    base classes), skipping ``ClassVar`` declarations. Results are cached per type.

    Raises:
        ResolutionError: If the annotations refer to names that cannot be resolved.
    """
    try:
        hints = get_type_hints(declared_type, include_extras=True)
    except (NameError, TypeError) as e:
        raise ResolutionError(
            f"unable to read slot annotations of type {type_name(declared_type)}: {e}"
        ) from e

    slots = {}
    for name, annotation in hints.items():
        if annotation is ClassVar or get_origin(annotation) is ClassVar:
            continue
        slots[name] = _describe_slot(name, annotation)
    return TypeDescriptor(declared_type, slots)


def _describe_slot(name: str, annotation: Any) -> SlotDescriptor:
    declared_spec = None
    if get_origin(annotation) is Annotated:
        annotation, *metadata = get_args(annotation)
        declared_spec = _spec_from_metadata(metadata)

    declared_type = strip_optional(annotation)
    origin = get_origin(declared_type)
    args = get_args(declared_type)

    if declared_type in (list, tuple) or origin in _SEQUENCE_ORIGINS:
        return _describe_sequence(name, declared_type, origin, args, declared_spec)

    if declared_type is dict or origin in _MAPPING_ORIGINS:
        key_type, element_type = args if len(args) == 2 else (Any, Any)
        return SlotDescriptor(
            name,
            declared_type,
            SlotKind.MAPPING,
            container=dict,
            element_type=element_type,
            key_type=key_type,
            declared_spec=declared_spec,
        )

    if is_capability(declared_type):
        return SlotDescriptor(name, declared_type, SlotKind.CAPABILITY, declared_spec=declared_spec)

    if _is_reference_type(declared_type):
        return SlotDescriptor(name, declared_type, SlotKind.REFERENCE, declared_spec=declared_spec)

    return SlotDescriptor(name, declared_type, SlotKind.UNSUPPORTED, declared_spec=declared_spec)


def _describe_sequence(name, declared_type, origin, args, declared_spec) -> SlotDescriptor:
    container = tuple if (declared_type is tuple or origin is tuple) else list
    if container is tuple and args and not (len(args) == 2 and args[1] is Ellipsis):
        return SlotDescriptor(
            name,
            declared_type,
            SlotKind.SEQUENCE,
            container=tuple,
            item_types=tuple(args),
            declared_spec=declared_spec,
        )
    return SlotDescriptor(
        name,
        declared_type,
        SlotKind.SEQUENCE,
        container=container,
        element_type=args[0] if args else Any,
        declared_spec=declared_spec,
    )


def _spec_from_metadata(metadata) -> Optional[SlotSpec]:
    for item in metadata:
        if isinstance(item, SlotSpec):
            return item
        if isinstance(item, str):
            return SlotSpec(target_name=item)
    return None


def _is_reference_type(declared_type: Any) -> bool:
    return (
        inspect.isclass(declared_type)
        and declared_type not in (object, Any)
        and not issubclass(declared_type, _NON_AGGREGATE)
        and not issubclass(declared_type, Enum)
    )


def is_capability(declared_type: Any) -> bool:
    """A capability is a ``Protocol`` or an abstract class."""
    if not inspect.isclass(declared_type):
        return False
    if getattr(declared_type, "_is_protocol", False):
        return True
    return inspect.isabstract(declared_type) or ABC in declared_type.__bases__


def is_aggregate(value: Any) -> bool:
    """True if ``value`` is an instance of a user-defined type that can hold slots."""
    return not (
        isinstance(value, _NON_AGGREGATE)
        or inspect.isclass(value)
        or inspect.isroutine(value)
        or inspect.ismodule(value)
    )


def is_default(value: Any, slot: SlotDescriptor) -> bool:
    """True if a slot holding ``value`` has not been filled yet."""
    if value is None:
        return True
    if slot.kind in (SlotKind.SEQUENCE, SlotKind.MAPPING):
        return isinstance(value, (list, tuple, dict)) and len(value) == 0
    return False


def create_instance(declared_type: type) -> Any:
    """Instantiate ``declared_type`` with no arguments.

    Raises:
        ResolutionError: If the type requires constructor arguments.
    """
    try:
        return declared_type()
    except TypeError as e:
        raise ResolutionError(
            f"unable to create an instance of type {type_name(declared_type)}: {e}"
        ) from e


class CapabilityIndex:
    """Records which capabilities each concrete type satisfies.

    ``Protocol`` capabilities are matched structurally (every protocol member must be
    present on the concrete type, and callable where the protocol declares a method),
    abstract classes nominally. Each ``(concrete, capability)`` answer is computed once.
    """

    def __init__(self):
        self._satisfied: dict[tuple[type, type], bool] = {}

    def satisfies(self, concrete: type, capability: type) -> bool:
        key = (concrete, capability)
        if key not in self._satisfied:
            self._satisfied[key] = _satisfies(concrete, capability)
        return self._satisfied[key]

    def capabilities_of(self, concrete: type) -> set[type]:
        return {
            capability
            for (known, capability), satisfied in self._satisfied.items()
            if known is concrete and satisfied
        }

    def is_assignable(self, value: Any, declared_type: Any) -> bool:
        """Whether ``value`` may be stored in a slot of type ``declared_type``."""
        if declared_type is Any or declared_type is object:
            return True
        if get_origin(declared_type) is Annotated:
            declared_type = get_args(declared_type)[0]
        origin = get_origin(declared_type)
        if origin in (Union, types.UnionType):
            return any(self.is_assignable(value, arg) for arg in get_args(declared_type))
        if origin is not None:
            return isinstance(value, origin)
        if is_capability(declared_type):
            return self.satisfies(type(value), declared_type)
        if inspect.isclass(declared_type):
            return isinstance(value, declared_type)
        return False


def _satisfies(concrete: type, capability: type) -> bool:
    if capability in concrete.__mro__:
        return True
    if not getattr(capability, "_is_protocol", False):
        return issubclass(concrete, capability)

    concrete_annotations = set()
    for base in concrete.__mro__:
        concrete_annotations.update(getattr(base, "__annotations__", {}))

    for member, is_method in _protocol_members(capability):
        if is_method:
            if not callable(getattr(concrete, member, None)):
                return False
        elif not (hasattr(concrete, member) or member in concrete_annotations):
            return False
    return True


def _protocol_members(capability: type) -> list[tuple[str, bool]]:
    members = {}
    for base in reversed(capability.__mro__):
        if not getattr(base, "_is_protocol", False) or base.__module__ == "typing":
            continue
        for name in getattr(base, "__annotations__", {}):
            if not name.startswith("_"):
                members.setdefault(name, False)
        for name, attribute in vars(base).items():
            if name.startswith("_") and name != "__call__":
                continue
            members[name] = callable(attribute) or isinstance(
                attribute, (staticmethod, classmethod)
            )
    return sorted(members.items())
