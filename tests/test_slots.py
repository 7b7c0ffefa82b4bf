from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Annotated, Any, ClassVar, Optional, Protocol

import pytest

from trellis.domain import SlotSpec, wire
from trellis.errors import ResolutionError
from trellis.slots import (
    CapabilityIndex,
    SlotKind,
    create_instance,
    describe,
    is_aggregate,
    is_capability,
    is_default,
)


class Sink(Protocol):
    name: str

    def write(self, data: bytes) -> int: ...


class Store(ABC):
    @abstractmethod
    def get(self, key): ...


class Marker(ABC):
    pass


class FileSink:
    name = "file"

    def write(self, data):
        return len(data)


class AnnotatedSink:
    name: str

    def write(self, data):
        return 0


class NamelessSink:
    def write(self, data):
        return 0


class WriteAttributeSink:
    name = "broken"
    write = 3


class MemoryStore(Store):
    def get(self, key):
        return None


class DuckStore:
    def get(self, key):
        return None


class Engine:
    pass


class Car:
    engine: Optional[Engine] = None
    sink: Optional[Sink] = None
    store: Store = None
    wheels: Optional[list[Engine]] = None
    spares: Optional[tuple[Engine, ...]] = None
    pair: Optional[tuple[Engine, Engine]] = None
    parts: Optional[Sequence[Engine]] = None
    by_name: Optional[dict[str, Engine]] = None
    count: int = 0
    anything: Any = None
    named: Annotated[Optional[Engine], "primary"] = None
    wired: Annotated[Optional[Engine], wire(private=True)] = None
    _hidden: Optional[Engine] = None
    registry: ClassVar[dict] = {}


class Broken:
    missing: "DoesNotExist"  # noqa: F821


@pytest.fixture
def descriptor():
    return describe(Car)


@pytest.fixture
def capabilities():
    return CapabilityIndex()


def test_slots_are_listed_in_declaration_order(descriptor):
    assert list(descriptor.slots)[:3] == ["engine", "sink", "store"]
    assert "registry" not in descriptor.slots


@pytest.mark.parametrize(
    "name, kind",
    [
        ("engine", SlotKind.REFERENCE),
        ("sink", SlotKind.CAPABILITY),
        ("store", SlotKind.CAPABILITY),
        ("wheels", SlotKind.SEQUENCE),
        ("spares", SlotKind.SEQUENCE),
        ("parts", SlotKind.SEQUENCE),
        ("by_name", SlotKind.MAPPING),
        ("count", SlotKind.UNSUPPORTED),
        ("anything", SlotKind.UNSUPPORTED),
    ],
)
def test_slot_kinds(descriptor, name, kind):
    assert descriptor.slot(name).kind is kind


def test_optional_is_stripped(descriptor):
    assert descriptor.slot("engine").declared_type is Engine


def test_sequence_containers(descriptor):
    assert descriptor.slot("wheels").container is list
    assert descriptor.slot("wheels").element_type is Engine
    assert descriptor.slot("spares").container is tuple
    assert descriptor.slot("spares").item_types is None
    assert descriptor.slot("parts").container is list


def test_fixed_tuple_members(descriptor):
    pair = descriptor.slot("pair")

    assert pair.item_types == (Engine, Engine)
    assert pair.member_type(1) is Engine


def test_mapping_types(descriptor):
    by_name = descriptor.slot("by_name")

    assert by_name.container is dict
    assert by_name.key_type is str
    assert by_name.element_type is Engine


def test_declared_specs(descriptor):
    assert descriptor.declared_specs() == {
        "named": SlotSpec("primary"),
        "wired": SlotSpec(private=True),
    }
    assert descriptor.slot("named").declared_type is Engine


def test_underscored_slots_are_not_accessible(descriptor):
    assert not descriptor.slot("_hidden").accessible
    assert descriptor.slot("engine").accessible


def test_descriptions_are_cached():
    assert describe(Car) is describe(Car)


def test_unresolvable_annotation_raises():
    with pytest.raises(ResolutionError, match="unable to read slot annotations of type .*Broken"):
        describe(Broken)


def test_capabilities():
    assert is_capability(Sink)
    assert is_capability(Store)
    assert is_capability(Marker)
    assert not is_capability(MemoryStore)
    assert not is_capability(Engine)
    assert not is_capability(int)


def test_protocols_match_structurally(capabilities):
    assert capabilities.satisfies(FileSink, Sink)
    assert capabilities.satisfies(AnnotatedSink, Sink)
    assert not capabilities.satisfies(NamelessSink, Sink)
    assert not capabilities.satisfies(WriteAttributeSink, Sink)


def test_abstract_classes_match_nominally(capabilities):
    assert capabilities.satisfies(MemoryStore, Store)
    assert not capabilities.satisfies(DuckStore, Store)


def test_satisfied_capabilities_are_recorded(capabilities):
    capabilities.satisfies(FileSink, Sink)
    capabilities.satisfies(FileSink, Store)

    assert capabilities.capabilities_of(FileSink) == {Sink}


def test_assignability(capabilities):
    engine = Engine()

    assert capabilities.is_assignable(engine, Engine)
    assert capabilities.is_assignable(engine, Optional[Engine])
    assert capabilities.is_assignable(engine, Any)
    assert capabilities.is_assignable([engine], list[Engine])
    assert capabilities.is_assignable(FileSink(), Sink)
    assert not capabilities.is_assignable(engine, Sink)
    assert not capabilities.is_assignable("engine", Engine)


@pytest.mark.parametrize(
    "value, expected",
    [
        (Engine(), True),
        (FileSink(), True),
        (1, False),
        ("text", False),
        ([Engine()], False),
        (None, False),
        (Engine, False),
        (len, False),
    ],
)
def test_aggregates(value, expected):
    assert is_aggregate(value) is expected


def test_defaults(descriptor):
    assert is_default(None, descriptor.slot("engine"))
    assert not is_default(Engine(), descriptor.slot("engine"))
    assert is_default([], descriptor.slot("wheels"))
    assert is_default({}, descriptor.slot("by_name"))
    assert not is_default([Engine()], descriptor.slot("wheels"))
    assert not is_default(0, descriptor.slot("count"))


def test_create_instance():
    assert isinstance(create_instance(Engine), Engine)

    with pytest.raises(ResolutionError, match="unable to create an instance of type .*Store"):
        create_instance(Store)
