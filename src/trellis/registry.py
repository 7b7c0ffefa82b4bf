"""Registration of component classes by name.

Configuration documents refer to component classes by a string name. A
:class:`ClassRegistry` maps those names to the classes, and creates fresh
instances of them for a configuration loader to populate.
"""

import inspect
from typing import Any, Callable, Optional

from trellis.errors import RegistrationError

__all__ = ["ClassRegistry", "inferred_name"]


def inferred_name(target: type) -> str:
    """Derive a registration name from a class.

    Args:
        target: The class to derive a name from.

    Returns:
        The class name.

    Raises:
        RegistrationError: If target is not a class.

    Example:
        >>> inferred_name(Database)       # Returns "Database"
    """
    if not inspect.isclass(target):
        raise RegistrationError(f"{target} is not a class")
    return target.__name__


class ClassRegistry:
    """Registry of component classes, keyed by name."""

    def __init__(self):
        self._types: dict[str, type] = {}

    def register(self, cls: type, name: Optional[str] = None):
        """Register a class explicitly.

        Args:
            cls: The component class.
            name: Optional name to register it under; defaults to the class name.

        Raises:
            RegistrationError: If ``cls`` is not a class, or the name is already taken
                by a different class.
        """
        if not inspect.isclass(cls):
            raise RegistrationError(f"{cls} is not a class")
        registered_name = name or inferred_name(cls)
        existing = self._types.get(registered_name)
        if existing is not None and existing is not cls:
            raise RegistrationError(
                f"class name {registered_name} is already registered for {existing}"
            )
        self._types[registered_name] = cls

    def registers(self, name: Optional[str] = None) -> Callable:
        """Decorator to register a class.

        Example:
            @classes.registers()
            class Database:
                url: str = ""
        """

        def decorator(cls):
            self.register(cls, name)
            return cls

        return decorator

    def get_type(self, name: str) -> Optional[type]:
        return self._types.get(name)

    def create(self, name: str) -> Any:
        """Instantiate the class registered under ``name`` with no arguments.

        Returns:
            The new instance, or None if nothing is registered under ``name``.
        """
        cls = self.get_type(name)
        if cls is None:
            return None
        return cls()

    def registered_types(self) -> dict[str, type]:
        return dict(self._types)

    def __contains__(self, name: str) -> bool:
        return name in self._types
