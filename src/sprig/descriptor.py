"""Component descriptors: the plain data the container builds components from.

This module defines :class:`ComponentDescriptor` (the immutable description
of one creatable type), the :class:`DependencyRef` and :class:`InjectionTarget`
records it is made of, and :class:`AdviceSpec`, the extracted form of an
advice marker. Nothing here touches the type system; descriptors are produced
by a :class:`~sprig.analysis.TypeIntrospector` or written by hand.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional, Tuple

from .constants import SCOPE_ALIASES
from .exceptions import InvalidRegistrationError


class SharingPolicy(Enum):
    """Instance-sharing policy of a component."""

    SHARED = "shared"
    PER_REQUEST = "per_request"

    @classmethod
    def coerce(cls, value: Any) -> "SharingPolicy":
        if isinstance(value, cls):
            return value
        norm = SCOPE_ALIASES.get(str(value).lower())
        if norm is None:
            raise InvalidRegistrationError(f"Unknown sharing policy: {value!r}")
        return cls(norm)


class InjectionKind(Enum):
    FIELD = "field"
    METHOD = "method"


class AdviceKind(Enum):
    BEFORE = "before"
    AFTER = "after"
    AFTER_RETURNING = "after_returning"


@dataclass(frozen=True)
class DependencyRef:
    """One dependency of a constructor, field or setter method.

    Attributes:
        parameter: The parameter or field name the value is bound to.
        component_name: Resolve by this component name when set.
        component_type: Resolve by (unique) type when no name is given.
        required: Whether an unresolvable dependency is an error.
        has_default: Whether the parameter declares a default value.
    """
    parameter: str
    component_name: Optional[str] = None
    component_type: Optional[Any] = None
    required: bool = True
    has_default: bool = False

    def describe(self) -> str:
        if self.component_name is not None:
            return f"'{self.component_name}'"
        return getattr(self.component_type, "__name__", str(self.component_type))


@dataclass(frozen=True)
class InjectionTarget:
    """A member populated after construction.

    A ``FIELD`` target carries exactly one dependency; a ``METHOD`` target
    carries one per parameter and is called once with all of them.
    """
    member: str
    kind: InjectionKind
    dependencies: Tuple[DependencyRef, ...]
    required: bool = True


@dataclass(frozen=True)
class AdviceSpec:
    """An advice marker found on an aspect method."""
    kind: AdviceKind
    pointcut: str
    method: str
    returning: Optional[str] = None


@dataclass(frozen=True)
class ComponentDescriptor:
    """Immutable description of how to build and share one component.

    Attributes:
        type_identity: The class (or any callable) to instantiate.
        name: Unique key in a registry; empty until registered.
        sharing_policy: :class:`SharingPolicy` of the component.
        constructor_plan: Dependencies passed to ``type_identity`` as keywords.
        injection_targets: Fields and setter methods populated afterwards.
        lazy: Skip this component during eager initialisation.
        is_aspect: The type provides advice.
        init_methods: Methods run at the injection-completion point.
        destroy_methods: Methods run when the container discards the instance.
        advice: Advice markers declared by an aspect type, in declaration order.
    """
    type_identity: Any
    name: str = ""
    sharing_policy: SharingPolicy = SharingPolicy.SHARED
    constructor_plan: Tuple[DependencyRef, ...] = ()
    injection_targets: Tuple[InjectionTarget, ...] = ()
    lazy: bool = False
    is_aspect: bool = False
    init_methods: Tuple[str, ...] = ()
    destroy_methods: Tuple[str, ...] = ()
    advice: Tuple[AdviceSpec, ...] = ()

    def __post_init__(self):
        if not callable(self.type_identity):
            raise InvalidRegistrationError(
                f"Descriptor type_identity must be callable, got {self.type_identity!r}", self.name or None
            )
        object.__setattr__(self, "sharing_policy", SharingPolicy.coerce(self.sharing_policy))
        object.__setattr__(self, "constructor_plan", tuple(self.constructor_plan))
        object.__setattr__(self, "injection_targets", tuple(self.injection_targets))

    @property
    def is_shared(self) -> bool:
        return self.sharing_policy is SharingPolicy.SHARED

    @property
    def is_per_request(self) -> bool:
        return self.sharing_policy is SharingPolicy.PER_REQUEST

    def with_name(self, name: str) -> "ComponentDescriptor":
        return replace(self, name=name)


def default_component_name(cls: Any) -> str:
    """``OrderService`` -> ``orderService``."""
    simple = getattr(cls, "__name__", None) or type(cls).__name__
    return simple[:1].lower() + simple[1:]
