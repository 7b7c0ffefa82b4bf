__all__ = [
    "DependencyError",
    "RegistrationError",
    "ResolutionError",
    "CoercionError",
    "ConfigurationError",
    "LifecycleError",
    "CycleError",
    "StartError",
    "StopError",
]


class DependencyError(Exception):
    """Base class for every error raised while building or running a graph."""

    pass


class RegistrationError(DependencyError):
    """Raised when a component or class cannot be added to a registry."""

    pass


class ResolutionError(DependencyError):
    """Raised when a slot cannot be populated."""

    pass


class CoercionError(DependencyError):
    """Raised when text cannot be converted into a slot's declared type."""

    pass


class ConfigurationError(DependencyError):
    """Raised when a configuration document is malformed or inconsistent."""

    pass


class LifecycleError(DependencyError):
    """Raised when a graph cannot be started or stopped."""

    pass


class CycleError(LifecycleError):
    """A dependency cycle threads through more than one lifecycle component.

    Attributes:
        path: The ``(slot_name, component)`` steps making up the cycle.
    """

    def __init__(self, path):
        self.path = list(path)
        super().__init__(_describe_cycle(self.path))


class StartError(LifecycleError):
    """A component failed to open or start.

    Attributes:
        component: The component whose hook failed.
        started: Components that were fully started before the failure.
    """

    def __init__(self, message, component, started):
        self.component = component
        self.started = list(started)
        super().__init__(message)


class StopError(LifecycleError):
    """A component failed to stop or close."""

    def __init__(self, message, component):
        self.component = component
        super().__init__(message)


def _describe_cycle(path) -> str:
    lines = ["circular reference detected from"]
    if len(path) == 1:
        slot_name, component = path[0]
        return f"{lines[0]} field {slot_name} in {component} to itself"
    for slot_name, component in path:
        lines.append(f"field {slot_name} in {component}")
    first_slot, first_component = path[0]
    lines.append(f"field {first_slot} in {first_component}")
    return "\n".join(lines)
