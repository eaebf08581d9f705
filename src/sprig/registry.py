"""Descriptor registry: the name -> :class:`ComponentDescriptor` map."""

import logging
import threading
from typing import Any, Dict, List, Optional

from .descriptor import ComponentDescriptor
from .exceptions import InvalidRegistrationError

_logger = logging.getLogger(__name__)


class DescriptorRegistry:
    """Ordered, lock-guarded mapping of component names to descriptors.

    Registration is write-once per name: a second descriptor under an existing
    name is rejected and the first one stays in place.
    """

    def __init__(self) -> None:
        self._descriptors: Dict[str, ComponentDescriptor] = {}
        self._lock = threading.RLock()

    def register(self, name: str, descriptor: ComponentDescriptor) -> ComponentDescriptor:
        """Register ``descriptor`` under ``name``.

        A descriptor with an empty ``name`` is stored under ``name``.

        Returns:
            The descriptor as stored.

        Raises:
            InvalidRegistrationError: If ``name`` is empty, ``descriptor`` is
                ``None`` or carries a different name, or ``name`` is taken.
        """
        if not isinstance(name, str) or not name.strip():
            raise InvalidRegistrationError("Component name must be a non-empty string", name)
        if descriptor is None:
            raise InvalidRegistrationError(f"Descriptor for '{name}' must not be None", name)
        if not isinstance(descriptor, ComponentDescriptor):
            raise InvalidRegistrationError(
                f"Expected a ComponentDescriptor for '{name}', got {type(descriptor).__name__}", name
            )
        if not descriptor.name:
            descriptor = descriptor.with_name(name)
        elif descriptor.name != name:
            raise InvalidRegistrationError(
                f"Descriptor is named '{descriptor.name}' but is being registered as '{name}'", name
            )

        with self._lock:
            if name in self._descriptors:
                raise InvalidRegistrationError(f"A component named '{name}' is already registered", name)
            self._descriptors[name] = descriptor
        _logger.debug("Registered component '%s' (%s)", name, descriptor.sharing_policy.value)
        return descriptor

    def get(self, name: str) -> Optional[ComponentDescriptor]:
        with self._lock:
            return self._descriptors.get(name)

    def contains(self, name: str) -> bool:
        with self._lock:
            return name in self._descriptors

    def names(self) -> List[str]:
        with self._lock:
            return list(self._descriptors.keys())

    def descriptors(self) -> List[ComponentDescriptor]:
        with self._lock:
            return list(self._descriptors.values())

    def count(self) -> int:
        with self._lock:
            return len(self._descriptors)

    def names_for_type(self, component_type: Any) -> List[str]:
        """Names whose type is ``component_type`` or a subclass of it."""
        out: List[str] = []
        for d in self.descriptors():
            typ = d.type_identity
            if typ is component_type:
                out.append(d.name)
                continue
            if not isinstance(typ, type):
                continue
            try:
                if issubclass(typ, component_type):
                    out.append(d.name)
            except TypeError:
                continue
        return out

    def remove(self, name: str) -> Optional[ComponentDescriptor]:
        with self._lock:
            return self._descriptors.pop(name, None)

    def clear(self) -> None:
        with self._lock:
            self._descriptors.clear()

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.contains(name)

    def __len__(self) -> int:
        return self.count()
