"""Domain models used throughout the framework."""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class CollectionElement:
    """One member of a collection slot.

    Attributes:
        key: The map key for mapping slots, coerced to the slot's key type. Ignored for
            sequence slots.
        target_name: The name of the component placed at this position.
    """

    key: str
    target_name: str


@dataclass(frozen=True)
class SlotSpec:
    """Describes how a slot on a component should be filled.

    Attributes:
        target_name: Name of the component to inject. Empty means the slot is matched
            by type (or by capability).
        elements: Ordered members for sequence and mapping slots.
        private: If True, a new instance is always created for this slot rather than
            sharing an existing component of the same type.
    """

    target_name: str = ""
    elements: tuple[CollectionElement, ...] = ()
    private: bool = False


def wire(
    target_name: str = "",
    elements: Optional[list[CollectionElement]] = None,
    private: bool = False,
) -> SlotSpec:
    """Build a :class:`SlotSpec`, usable as ``Annotated`` metadata on a class.

    Example:
        >>> class Service:
        ...     db: Annotated[Database, wire()]
        ...     cache: Annotated[Cache, wire("redis")]
    """
    return SlotSpec(target_name, tuple(elements or ()), private)


@dataclass(frozen=True)
class Dependence:
    """A resolved edge: ``slot_name`` on the owning component holds ``target``."""

    slot_name: str
    target: "Component"


@dataclass(eq=False)
class Component:
    """A registered instance participating in the graph.

    Attributes:
        value: The wired instance, or a plain constant for named components.
        name: Optional unique name. Empty means the component is identified by its type.
        complete: If True, the component is never scanned for slots to populate.
        slot_specs: Slot names mapped to how they should be filled.
        dependencies: Edges recorded as slots are resolved, in resolution order.
        declared_type: The value's type, captured at registration.
        created: True for components synthesized during population.
        private: True for synthesized instances owned by a single slot.
    """

    value: Any
    name: str = ""
    complete: bool = False
    slot_specs: dict[str, SlotSpec] = field(default_factory=dict)
    dependencies: list[Dependence] = field(default_factory=list)
    declared_type: Optional[type] = field(default=None, repr=False)
    created: bool = field(default=False, repr=False)
    private: bool = field(default=False, repr=False)

    def add_dependency(self, slot_name: str, target: "Component"):
        self.dependencies.append(Dependence(slot_name, target))

    def __str__(self) -> str:
        declared_type = self.declared_type or type(self.value)
        description = type_name(declared_type)
        if self.name:
            description += f" named {self.name}"
        return description


def type_name(declared_type: Any) -> str:
    """Readable name for a type or type annotation, used in messages."""
    if isinstance(declared_type, type):
        if declared_type.__module__ == "builtins":
            return declared_type.__qualname__
        return f"{declared_type.__module__}.{declared_type.__qualname__}"
    return str(declared_type)
