"""Exception hierarchy for sprig.

All container exceptions inherit from :class:`SprigError`, so callers can
catch any of them with a single ``except SprigError`` clause.
"""

from typing import Any, Iterable, Optional, Sequence


def _type_name(t: Any) -> str:
    module = getattr(t, "__module__", None)
    qualname = getattr(t, "__qualname__", None) or getattr(t, "__name__", None)
    if qualname is None:
        return str(t)
    if module and module != "builtins":
        return f"{module}.{qualname}"
    return qualname


class SprigError(Exception):
    """Base exception for all sprig errors."""

    pass


class NoSuchComponentError(SprigError):
    """Raised when no descriptor is registered for a name or type.

    Attributes:
        name: The requested component name, when resolution was by name.
        component_type: The requested type, when resolution was by type.
    """

    def __init__(self, name: Optional[str] = None, component_type: Any = None, message: Optional[str] = None):
        if message is None:
            if component_type is not None:
                message = f"No component of type '{_type_name(component_type)}' is registered"
            else:
                message = f"No component named '{name}' is registered"
        super().__init__(message)
        self.name = name
        self.component_type = component_type


class AmbiguousComponentError(NoSuchComponentError):
    """Raised when a by-type lookup matches more than one descriptor.

    Attributes:
        count: Number of matching descriptors.
        candidates: Names of the matching descriptors, in registration order.
    """

    def __init__(self, component_type: Any, candidates: Iterable[str]):
        names = list(candidates)
        super().__init__(
            component_type=component_type,
            message=(
                f"Expected a single component of type '{_type_name(component_type)}' "
                f"but found {len(names)}: {names}"
            ),
        )
        self.count = len(names)
        self.candidates = names


class TypeMismatchError(SprigError):
    """Raised when a resolved instance is not an instance of the requested type.

    Attributes:
        name: The component name.
        expected_type: The type the caller asked for.
        actual_type: The type of the resolved instance.
    """

    def __init__(self, name: str, expected_type: type, actual_type: type):
        super().__init__(
            f"Component '{name}' is of type '{_type_name(actual_type)}', "
            f"expected '{_type_name(expected_type)}'"
        )
        self.name = name
        self.expected_type = expected_type
        self.actual_type = actual_type


class ComponentCreationError(SprigError):
    """Raised when instantiation or injection of a component fails.

    Attributes:
        name: The component whose creation failed.
        cause: The original exception, if any.
    """

    def __init__(self, name: str, cause: Optional[BaseException] = None, message: Optional[str] = None):
        if message is None:
            if cause is not None:
                message = f"Failed to create component '{name}'; cause: {cause.__class__.__name__}: {cause}"
            else:
                message = f"Failed to create component '{name}'"
        super().__init__(message)
        self.name = name
        self.cause = cause


class CircularDependencyError(ComponentCreationError):
    """Raised when a component is re-entered while it is still being created.

    Attributes:
        path: The dependency chain from the first occurrence of the repeated
            name up to and including the re-entry.
    """

    def __init__(self, path: Sequence[str]):
        self.path = list(path)
        super().__init__(
            self.path[0] if self.path else "",
            message=f"Circular dependency detected: {self.formatted_path}",
        )

    @property
    def formatted_path(self) -> str:
        return " -> ".join(self.path)


class InvalidRegistrationError(SprigError):
    """Raised for duplicate names or malformed descriptor data at registration."""

    def __init__(self, msg: str, name: Optional[str] = None):
        super().__init__(msg)
        self.name = name


class ContainerStateError(SprigError):
    """Raised when the container is used before refresh or after close."""

    def __init__(self, msg: str):
        super().__init__(msg)


class ConfigurationError(SprigError):
    """Raised for configuration problems (unreadable sources, bad values)."""

    def __init__(self, msg: str):
        super().__init__(msg)
