"""Population of component slots.

This module provides the core wiring logic of the framework. Given the
components registered in a :class:`~trellis.component_set.ComponentSet`, the
:class:`DependencyResolver` fills every slot that has a :class:`SlotSpec` and
still holds its default value, recording each resolved edge on the owning
component.

Resolution runs in two passes. The first handles named targets, collections and
concrete references, creating and registering new instances for references that
nothing existing satisfies. The second handles capability slots, which are only
matched once every concrete component has been created, so that components
synthesized during the first pass are visible as candidates.
"""

import logging
from typing import Any, Optional

from trellis.coerce import coerce_scalar
from trellis.component_set import ComponentSet
from trellis.domain import Component, SlotSpec, type_name
from trellis.errors import CoercionError, ResolutionError
from trellis.slots import (
    CapabilityIndex,
    SlotDescriptor,
    SlotKind,
    TypeDescriptor,
    create_instance,
    describe,
    is_aggregate,
    is_default,
)

__all__ = ["DependencyResolver"]

logger = logging.getLogger(__name__)


class DependencyResolver:
    """Fill unresolved slots across the components of a :class:`ComponentSet`."""

    def __init__(
        self,
        components: ComponentSet,
        capabilities: Optional[CapabilityIndex] = None,
        log=None,
    ):
        self._components = components
        self._capabilities = capabilities or CapabilityIndex()
        self._log = log or logger

    def register(self, *components: Component):
        """Add components to the underlying set.

        Raises:
            RegistrationError: As raised by :meth:`ComponentSet.add`.
        """
        for component in components:
            self._components.add(component)

    def populate(self):
        """Populate every incomplete component.

        Named components are scanned before unnamed ones. Components created while
        populating are appended to the unnamed arena and scanned in the same pass.
        Capability slots are filled in a second pass over the whole graph. When both
        passes succeed, every component is marked complete.

        Raises:
            ResolutionError: On the first slot that cannot be populated. Slots filled
                before the failure keep their values.
        """
        for component in self._components.named:
            if not component.complete:
                self._populate_explicit(component)

        # The arena grows as components are created, so walk it by index.
        unnamed = self._components.unnamed
        i = 0
        while i < len(unnamed):
            component = unnamed[i]
            i += 1
            if not component.complete:
                self._populate_explicit(component)

        for component in self._components.named + list(unnamed):
            if not component.complete:
                self._populate_capabilities(component)

        for component in self._components.components():
            component.complete = True

    def _populate_explicit(self, component: Component):
        # Named constants have no slots.
        if not is_aggregate(component.value):
            return

        descriptor = describe(component.declared_type)
        self._validate_slot_names(component, descriptor)

        for slot in descriptor.slots.values():
            spec = component.slot_specs.get(slot.name)
            if spec is None:
                continue

            if not slot.accessible:
                raise ResolutionError(
                    f"inject requested on unexported field {slot.name} in type "
                    f"{type_name(component.declared_type)}"
                )

            if not is_default(getattr(component.value, slot.name, None), slot):
                continue

            if spec.target_name:
                self._assign_named(component, slot, spec.target_name)
            elif slot.kind is SlotKind.CAPABILITY:
                continue
            elif slot.kind is SlotKind.SEQUENCE:
                self._assign_sequence(component, slot, spec)
            elif slot.kind is SlotKind.MAPPING:
                self._assign_mapping(component, slot, spec)
            elif slot.kind is SlotKind.REFERENCE:
                self._assign_reference(component, slot, spec)
            else:
                raise ResolutionError(
                    f"found inject option on unsupported field {slot.name} in type "
                    f"{type_name(component.declared_type)}"
                )

    def _populate_capabilities(self, component: Component):
        if not is_aggregate(component.value):
            return

        for slot in describe(component.declared_type).slots.values():
            spec = component.slot_specs.get(slot.name)
            if spec is None or slot.kind is not SlotKind.CAPABILITY:
                continue
            if not is_default(getattr(component.value, slot.name, None), slot):
                continue
            # Named capability slots were resolved in the first pass.
            if spec.target_name:
                continue

            found = self._unique_candidate(component, slot)
            self._set(component, slot, found.value)
            self._log.debug(
                "assigned existing %s to interface field %s in %s",
                found,
                slot.name,
                component,
            )
            component.add_dependency(slot.name, found)

    def _unique_candidate(self, component: Component, slot: SlotDescriptor) -> Component:
        found = None
        for existing in self._components.unnamed:
            if existing.private:
                continue
            if not self._capabilities.is_assignable(existing.value, slot.declared_type):
                continue
            if found is not None:
                raise ResolutionError(
                    f"found two assignable values for field {slot.name} in type "
                    f"{type_name(component.declared_type)}. one type "
                    f"{type_name(found.declared_type)} with value {found.value!r} and another "
                    f"type {type_name(existing.declared_type)} with value {existing.value!r}"
                )
            found = existing

        if found is None:
            raise ResolutionError(
                f"found no assignable value for field {slot.name} in type "
                f"{type_name(component.declared_type)}"
            )
        return found

    def _assign_named(self, component: Component, slot: SlotDescriptor, target_name: str):
        existing = self._lookup(component, slot, target_name, slot.declared_type)
        self._set(component, slot, existing.value)
        self._log.debug("assigned %s to field %s in %s", existing, slot.name, component)
        component.add_dependency(slot.name, existing)

    def _assign_sequence(self, component: Component, slot: SlotDescriptor, spec: SlotSpec):
        if slot.item_types is not None and len(slot.item_types) != len(spec.elements):
            raise ResolutionError(
                f"the length of field {slot.name} in type "
                f"{type_name(component.declared_type)} doesn't match "
                f"{len(spec.elements)} elements"
            )

        members = [
            self._lookup(component, slot, element.target_name, slot.member_type(index))
            for index, element in enumerate(spec.elements)
        ]

        self._set(component, slot, slot.container(member.value for member in members))
        for member in members:
            self._log.debug("assigned %s to field %s in %s", member, slot.name, component)
            component.add_dependency(slot.name, member)
        self._log.debug("made sequence for field %s in %s", slot.name, component)

    def _assign_mapping(self, component: Component, slot: SlotDescriptor, spec: SlotSpec):
        entries = []
        for element in spec.elements:
            key = self._coerce_key(component, slot, element.key)
            member = self._lookup(component, slot, element.target_name, slot.element_type)
            entries.append((key, member))

        self._set(component, slot, {key: member.value for key, member in entries})
        for _, member in entries:
            self._log.debug("assigned %s to field %s in %s", member, slot.name, component)
            component.add_dependency(slot.name, member)
        self._log.debug("made map for field %s in %s", slot.name, component)

    def _assign_reference(self, component: Component, slot: SlotDescriptor, spec: SlotSpec):
        # The first assignable instance wins; several candidates are not an error here.
        if not spec.private:
            for existing in self._components.unnamed:
                if existing.private:
                    continue
                if self._capabilities.is_assignable(existing.value, slot.declared_type):
                    self._set(component, slot, existing.value)
                    self._log.debug(
                        "assigned existing %s to field %s in %s",
                        existing,
                        slot.name,
                        component,
                    )
                    component.add_dependency(slot.name, existing)
                    return

        created = Component(
            create_instance(slot.declared_type),
            created=True,
            private=spec.private,
        )
        self._components.add(created)

        self._set(component, slot, created.value)
        self._log.debug(
            "assigned newly created %s to field %s in %s", created, slot.name, component
        )
        component.add_dependency(slot.name, created)

    def _lookup(
        self,
        component: Component,
        slot: SlotDescriptor,
        target_name: str,
        expected_type: Any,
    ) -> Component:
        existing = self._components.lookup_named(target_name)
        if existing is None:
            raise ResolutionError(
                f"did not find object named {target_name} required by field {slot.name} "
                f"in type {type_name(component.declared_type)}"
            )

        if not self._capabilities.is_assignable(existing.value, expected_type):
            raise ResolutionError(
                f"object named {target_name} of type {type_name(existing.declared_type)} "
                f"is not assignable to field {slot.name} ({type_name(expected_type)}) "
                f"in type {type_name(component.declared_type)}"
            )
        return existing

    def _coerce_key(self, component: Component, slot: SlotDescriptor, key: str) -> Any:
        try:
            return coerce_scalar(key, slot.key_type)
        except CoercionError as e:
            raise ResolutionError(
                f"invalid key {key} for field {slot.name} in type "
                f"{type_name(component.declared_type)}: {e}"
            ) from e

    @staticmethod
    def _set(component: Component, slot: SlotDescriptor, value: Any):
        try:
            setattr(component.value, slot.name, value)
        except (AttributeError, TypeError) as e:
            raise ResolutionError(
                f"unable to assign field {slot.name} in type "
                f"{type_name(component.declared_type)}: {e}"
            ) from e

    @staticmethod
    def _validate_slot_names(component: Component, descriptor: TypeDescriptor):
        for slot_name in component.slot_specs:
            if descriptor.slot(slot_name) is None:
                raise ResolutionError(
                    f"no slot named {slot_name} in type {type_name(component.declared_type)}"
                )
