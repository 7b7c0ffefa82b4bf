from datetime import datetime
from typing import Annotated, Optional

import pytest

from trellis.domain import Component, SlotSpec, wire
from trellis.errors import CycleError, LifecycleError, StartError, StopError
from trellis.graph import Graph
from trellis.lifecycle import LifecycleState, is_eligible, levels

EVENTS = []


@pytest.fixture(autouse=True)
def clear_events():
    EVENTS.clear()
    yield
    EVENTS.clear()


class Database:
    def open(self):
        EVENTS.append("open database")

    def start(self):
        EVENTS.append("start database")

    def stop(self):
        EVENTS.append("stop database")

    def close(self):
        EVENTS.append("close database")


class Repository:
    database: Annotated[Optional[Database], wire()] = None


class Service:
    repository: Annotated[Optional[Repository], wire()] = None

    def start(self):
        EVENTS.append("start service")

    def stop(self):
        EVENTS.append("stop service")


class Api:
    service: Annotated[Optional[Service], wire()] = None

    def start(self):
        EVENTS.append("start api")

    def stop(self):
        EVENTS.append("stop api")


class Left:
    right: Optional["Right"] = None

    def start(self):
        EVENTS.append("start left")


class Right:
    left: Optional[Left] = None

    def start(self):
        EVENTS.append("start right")


class Passive:
    loose: Optional["LooseLeft"] = None


class SelfReferencing:
    me: Optional["SelfReferencing"] = None

    def start(self):
        EVENTS.append("start self")


class LooseLeft:
    passive: Optional[Passive] = None

    def start(self):
        EVENTS.append("start loose")


class Broken:
    database: Annotated[Optional[Database], wire()] = None

    def start(self):
        raise RuntimeError("cannot start")


class Stubborn:
    service: Annotated[Optional[Service], wire()] = None

    def stop(self):
        raise RuntimeError("cannot stop")


@pytest.fixture
def graph():
    return Graph()


def test_dependencies_start_first_and_stop_last(graph):
    graph.register(Component(Api()))
    graph.populate()

    graph.start()
    assert EVENTS == ["open database", "start database", "start service", "start api"]

    EVENTS.clear()
    graph.stop()
    assert EVENTS == ["stop api", "stop service", "stop database", "close database"]


def test_levels_are_keyed_by_reachable_lifecycle_components(graph):
    api = Component(Api())
    graph.register(api)
    graph.populate()

    ordered = levels(graph.objects())

    assert [[type(c.value) for c in level] for level in ordered] == [
        [Api],
        [Service],
        [Database],
    ]


def test_components_without_hooks_are_not_eligible():
    assert not is_eligible(Component(Repository()))
    assert is_eligible(Component(Database()))


def test_cycle_between_lifecycle_components_fails_before_any_hook(graph):
    graph.register(
        Component(Left(), name="left", slot_specs={"right": SlotSpec("right")}),
        Component(Right(), name="right", slot_specs={"left": SlotSpec("left")}),
    )
    graph.populate()

    with pytest.raises(CycleError, match="circular reference detected from") as e:
        graph.start()

    assert EVENTS == []
    assert len(e.value.path) == 2
    assert graph.state is LifecycleState.IDLE


def test_direct_self_reference_is_a_cycle(graph):
    graph.register(Component(SelfReferencing(), name="self", slot_specs={"me": SlotSpec("self")}))
    graph.populate()

    with pytest.raises(CycleError, match="field me in .*SelfReferencing named self to itself"):
        graph.start()


def test_cycle_through_a_single_lifecycle_component_is_allowed(graph):
    loose = LooseLeft()
    passive = Passive()
    graph.register(
        Component(loose, name="loose", slot_specs={"passive": SlotSpec("passive")}),
        Component(passive, name="passive", slot_specs={"loose": SlotSpec("loose")}),
    )
    graph.populate()

    graph.start()

    assert EVENTS == ["start loose"]


def test_start_failure_records_partially_started_components(graph):
    graph.register(Component(Broken()))
    graph.populate()

    with pytest.raises(StartError, match="error starting .*Broken") as e:
        graph.start()

    assert isinstance(e.value.__cause__, RuntimeError)
    assert [type(c.value) for c in e.value.started] == [Database]
    assert [type(c.value) for c in graph.started] == [Database]

    EVENTS.clear()
    graph.stop()
    assert EVENTS == ["stop database", "close database"]


def test_stop_failure_halts_remaining_stops(graph):
    graph.register(Component(Stubborn()))
    graph.populate()
    graph.start()
    EVENTS.clear()

    with pytest.raises(StopError, match="error stopping .*Stubborn"):
        graph.stop()

    assert EVENTS == []


def test_state_transitions(graph):
    graph.register(Component(Api()))
    graph.populate()
    assert graph.state is LifecycleState.IDLE

    graph.start()
    assert graph.state is LifecycleState.STARTED
    with pytest.raises(LifecycleError, match="already started"):
        graph.start()

    graph.stop()
    assert graph.state is LifecycleState.STOPPED
    assert graph.started == []

    graph.start()
    assert graph.state is LifecycleState.STARTED


def test_stop_without_start_does_nothing(graph):
    graph.register(Component(Api()))
    graph.populate()

    graph.stop()

    assert EVENTS == []
    assert graph.state is LifecycleState.IDLE


def test_running_stops_on_error(graph):
    graph.register(Component(Api()))
    graph.populate()

    with pytest.raises(ValueError):
        with graph.running():
            assert graph.state is LifecycleState.STARTED
            raise ValueError("boom")

    assert graph.state is LifecycleState.STOPPED
    assert EVENTS[-1] == "close database"


def test_running_stops_partially_started_graph(graph):
    graph.register(Component(Broken()))
    graph.populate()

    with pytest.raises(StartError):
        with graph.running():
            pass

    assert EVENTS == ["open database", "start database", "stop database", "close database"]


class Window:
    def __init__(self):
        self.start = datetime(2024, 1, 1, 9)
        self.stop = datetime(2024, 1, 1, 17)


class Reporter:
    window: Annotated[Optional[Window], wire()] = None

    def start(self):
        EVENTS.append("start reporter")


class FlakyService:
    database: Annotated[Optional[Database], wire()] = None

    def __init__(self):
        self.attempts = 0

    def stop(self):
        self.attempts += 1
        if self.attempts == 1:
            raise RuntimeError("still draining")
        EVENTS.append("stop flaky")


class Front:
    service: Annotated[Optional[FlakyService], wire()] = None

    def stop(self):
        EVENTS.append("stop front")


def test_data_attributes_named_like_hooks_are_not_hooks(graph):
    graph.register(Component(Reporter()))
    graph.populate()

    assert not is_eligible(Component(Window()))

    graph.start()

    assert EVENTS == ["start reporter"]
    assert [type(c.value) for c in graph.started] == [Reporter]

    graph.stop()
    assert graph.state is LifecycleState.STOPPED


def test_retried_stop_skips_components_already_stopped(graph):
    graph.register(Component(Front()))
    graph.populate()
    graph.start()
    EVENTS.clear()

    with pytest.raises(StopError, match="still draining"):
        graph.stop()
    assert [type(c.value) for c in graph.started] == [Database, FlakyService]

    graph.stop()

    assert EVENTS == ["stop front", "stop flaky", "stop database", "close database"]
    assert graph.started == []
    assert graph.state is LifecycleState.STOPPED
