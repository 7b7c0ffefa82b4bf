"""Loading of components from an XML configuration document.

A document lists the components of a graph, each instantiated from a class
registered in a :class:`~trellis.registry.ClassRegistry`::

    <components>
      <component id="db" class="Database">
        <slot name="url" value="postgres://localhost/app"/>
      </component>
      <component id="service" class="Service">
        <slot name="db" ref="db"/>
        <slot name="cache" auto="true"/>
        <slot name="handlers">
          <item ref="audit"/>
          <item ref="metrics"/>
        </slot>
      </component>
    </components>

Constant values are coerced to the annotated slot type and assigned as the
document is read; an environment variable named ``<class>.<slot>`` overrides
the value given in the document. Reference, auto-wired and collection slots are
turned into :class:`~trellis.domain.SlotSpec` entries for the resolver.
"""

import os
import xml.etree.ElementTree as ET
from typing import Any, Mapping, Optional, Union

from trellis.coerce import coerce_collection, coerce_scalar, parse_bool
from trellis.domain import CollectionElement, Component, SlotSpec, type_name
from trellis.errors import CoercionError, ConfigurationError
from trellis.registry import ClassRegistry
from trellis.slots import SlotDescriptor, describe

__all__ = ["load_components"]


def load_components(
    data: Union[str, bytes],
    classes: ClassRegistry,
    environ: Optional[Mapping[str, str]] = None,
) -> list[Component]:
    """Instantiate the components described by an XML document.

    Args:
        data: The XML document.
        classes: Registry resolving the ``class`` attribute of each component.
        environ: Source of ``<class>.<slot>`` overrides for constant values. Defaults
            to ``os.environ``.

    Returns:
        The components, in document order, ready to be registered with a graph.

    Raises:
        ConfigurationError: If the document is malformed or refers to unknown classes
            or slots.
        CoercionError: If a constant value cannot be converted to its slot's type.
    """
    try:
        root = ET.fromstring(data)
    except ET.ParseError as e:
        raise ConfigurationError(f"malformed configuration: {e}") from e

    if root.tag != "components":
        raise ConfigurationError(
            f"expected a <components> document but found <{root.tag}>"
        )

    if environ is None:
        environ = os.environ
    return [_load_component(element, classes, environ) for element in root.findall("component")]


def _load_component(
    element: ET.Element, classes: ClassRegistry, environ: Mapping[str, str]
) -> Component:
    class_name = element.get("class", "")
    name = element.get("id", "")
    where = f"{class_name}#{name}"

    value = classes.create(class_name)
    if value is None:
        raise ConfigurationError(f"component {where} doesn't exist")

    slot_specs = {}
    for slot_element in element.findall("slot"):
        slot_name = slot_element.get("name", "")
        if not slot_name:
            raise ConfigurationError(f"expected a slot name at component {where}")

        items = slot_element.findall("item")
        ref = slot_element.get("ref", "")

        if ref:
            if items:
                raise ConfigurationError(
                    f"slot {slot_name} at component {where} shouldn't be a list or a map"
                )
            slot_specs[slot_name] = SlotSpec(target_name=ref)
        elif _flag(slot_element, "auto", where):
            if items:
                raise ConfigurationError(
                    f"auto slot {slot_name} at component {where} shouldn't be a list or a map"
                )
            slot_specs[slot_name] = SlotSpec(private=_flag(slot_element, "private", where))
        elif not items:
            text = environ.get(f"{class_name}.{slot_name}") or slot_element.get("value", "")
            slot = _constant_slot(value, slot_name)
            setattr(value, slot_name, coerce_scalar(text, slot.declared_type))
        elif not items[0].get("ref"):
            slot = _constant_slot(value, slot_name)
            pairs = [(item.get("key", ""), item.get("value", "")) for item in items]
            setattr(value, slot_name, coerce_collection(pairs, slot.declared_type))
        else:
            slot_specs[slot_name] = SlotSpec(
                elements=tuple(
                    CollectionElement(item.get("key", ""), item.get("ref", ""))
                    for item in items
                )
            )

    return Component(value, name=name, slot_specs=slot_specs)


def _constant_slot(value: Any, slot_name: str) -> SlotDescriptor:
    slot = describe(type(value)).slot(slot_name)
    if slot is None:
        raise ConfigurationError(
            f"invalid field {slot_name} in type {type_name(type(value))}"
        )
    if not slot.accessible:
        raise ConfigurationError(
            f"field {slot_name} in type {type_name(type(value))} can't be set"
        )
    return slot


def _flag(element: ET.Element, attribute: str, where: str) -> bool:
    try:
        return parse_bool(element.get(attribute, "false"))
    except CoercionError as e:
        raise ConfigurationError(
            f"invalid {attribute} attribute at component {where}: {e}"
        ) from e
