"""The registry of components known to a graph.

Components are held in two partitions: unnamed components, identified by their
declared type (at most one per type), and named components, identified by a
unique name. Unnamed components are kept in an insertion-ordered arena that may
grow while it is being traversed, since population registers new components as
it goes.

Internal consumers walk the registry in insertion order. The public
:meth:`ComponentSet.objects` enumeration is shuffled so that callers cannot come
to rely on registration order.
"""
import logging
import random
from typing import Optional

from trellis.domain import Component, type_name
from trellis.errors import RegistrationError
from trellis.slots import describe, is_aggregate

__all__ = ["ComponentSet"]

logger = logging.getLogger(__name__)


class ComponentSet:
    """Collection of registered components with name and type lookup.

    Example:
        >>> components = ComponentSet()
        >>> components.add(Component(Database(), name="db"))
        >>> components["db"].value
    """

    def __init__(self, log=None):
        self._log = log or logger
        self._unnamed: list[Component] = []
        self._unnamed_types: set[type] = set()
        self._named: dict[str, Component] = {}
        self._registered: set[Component] = set()

    def add(self, component: Component):
        """Register a single component.

        Slot specs declared on the component's class through ``Annotated`` metadata
        are merged beneath any specs supplied explicitly on the component. The
        component is left untouched if registration is rejected.

        Raises:
            RegistrationError: If the component was already registered, arrives with
                resolved dependencies, is unnamed but not an aggregate instance, or
                collides with a registered type or name.
        """
        declared_type = type(component.value)
        self._validate(component, declared_type)

        declared = {}
        if is_aggregate(component.value):
            declared = describe(declared_type).declared_specs()

        component.declared_type = declared_type
        if declared:
            component.slot_specs = {**declared, **component.slot_specs}

        if not component.name:
            if not component.private:
                self._unnamed_types.add(declared_type)
            self._unnamed.append(component)
        else:
            self._named[component.name] = component

        self._registered.add(component)
        if component.created:
            self._log.debug("created %s", component)
        else:
            self._log.debug("provided %s", component)

    def _validate(self, component: Component, declared_type: type):
        if component in self._registered:
            raise RegistrationError(f"object {component} was already provided")

        if component.dependencies:
            raise RegistrationError(
                f"fields were specified on object {component} when it was provided"
            )

        if component.name:
            if component.name in self._named:
                raise RegistrationError(f"provided two instances named {component.name}")
            return

        if not is_aggregate(component.value):
            raise RegistrationError(
                "expected unnamed object value to be an instance of a class but got type "
                f"{type_name(declared_type)} with value {component.value!r}"
            )
        if not component.private and declared_type in self._unnamed_types:
            raise RegistrationError(
                f"provided two unnamed instances of type {type_name(declared_type)}"
            )

    def lookup_named(self, name: str) -> Optional[Component]:
        return self._named.get(name)

    @property
    def named(self) -> list[Component]:
        return list(self._named.values())

    @property
    def unnamed(self) -> list[Component]:
        """The live unnamed arena. It may grow while being traversed by index."""
        return self._unnamed

    def components(self) -> list[Component]:
        """All components in a stable order: unnamed by insertion, then named."""
        return self._unnamed + list(self._named.values())

    def objects(self) -> list[Component]:
        """All components, named as well as unnamed, in no stable order."""
        objects = self.components()
        random.shuffle(objects)
        return objects

    def __getitem__(self, name: str) -> Component:
        if name in self._named:
            return self._named[name]
        raise KeyError(name)

    def __contains__(self, name: str) -> bool:
        return name in self._named

    def __len__(self) -> int:
        return len(self._unnamed) + len(self._named)
