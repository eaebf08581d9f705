# sprig/decorators.py
from __future__ import annotations
from typing import Any, Optional

from .constants import (
    SCOPE_ALIASES,
    SPRIG_ADVICE,
    SPRIG_ASPECT,
    SPRIG_AUTOWIRED,
    SPRIG_COMPONENT,
    SPRIG_LIFECYCLE,
)

ADVICE_BEFORE = "before"
ADVICE_AFTER = "after"
ADVICE_AFTER_RETURNING = "after_returning"

POST_CONSTRUCT = "post_construct"
PRE_DESTROY = "pre_destroy"


def _normalize_scope(scope: Any) -> str:
    raw = getattr(scope, "value", scope)
    norm = SCOPE_ALIASES.get(str(raw).lower()) if raw is not None else None
    if norm is None:
        raise ValueError(f"Unknown sharing policy: {scope!r}")
    return norm


def component(cls=None, *, name: Optional[str] = None, scope: Any = "shared", lazy: bool = False):
    """Mark a class as a container-managed component.

    ``scope`` accepts ``"shared"``/``"singleton"`` or
    ``"per_request"``/``"prototype"`` (or a ``SharingPolicy`` member).
    """
    policy = _normalize_scope(scope)

    def dec(c):
        setattr(c, SPRIG_COMPONENT, {"name": name, "scope": policy, "lazy": bool(lazy)})
        return c
    return dec(cls) if cls else dec


def aspect(cls=None, *, name: Optional[str] = None):
    """Mark a class as an aspect. Aspects are always shared components."""
    def dec(c):
        setattr(c, SPRIG_ASPECT, True)
        meta = dict(c.__dict__.get(SPRIG_COMPONENT) or {"name": None, "lazy": False})
        if name is not None:
            meta["name"] = name
        meta["scope"] = SCOPE_ALIASES["shared"]
        setattr(c, SPRIG_COMPONENT, meta)
        return c
    return dec(cls) if cls else dec


def _advice(kind: str, pointcut: str, returning: Optional[str] = None):
    if not isinstance(pointcut, str) or not pointcut.strip():
        raise ValueError(f"@{kind} requires a non-empty pointcut expression")

    def dec(fn):
        if not callable(fn):
            raise TypeError(f"@{kind} can only decorate callables")
        markers = list(getattr(fn, SPRIG_ADVICE, ()))
        markers.append({"kind": kind, "pointcut": pointcut.strip(), "returning": returning})
        setattr(fn, SPRIG_ADVICE, tuple(markers))
        return fn
    return dec


def before(pointcut: str):
    """Run the decorated aspect method before each matched method call."""
    return _advice(ADVICE_BEFORE, pointcut)


def after(pointcut: str):
    """Run the decorated aspect method after each matched call, whatever its outcome."""
    return _advice(ADVICE_AFTER, pointcut)


def after_returning(pointcut: str, *, returning: Optional[str] = None):
    """Run the decorated aspect method after a matched call returns normally.

    When ``returning`` names one of the method's parameters, the call's
    return value is passed under that name.
    """
    return _advice(ADVICE_AFTER_RETURNING, pointcut, returning)


def autowired(fn=None, *, required: bool = True):
    """Mark a setter-like method whose parameters are injected after construction."""
    def dec(f):
        setattr(f, SPRIG_AUTOWIRED, {"required": bool(required)})
        return f
    return dec(fn) if fn else dec


def post_construct(fn):
    setattr(fn, SPRIG_LIFECYCLE, POST_CONSTRUCT)
    return fn


def pre_destroy(fn):
    setattr(fn, SPRIG_LIFECYCLE, PRE_DESTROY)
    return fn


class Qualifier(str):
    """Selects a dependency by component name inside ``Annotated[T, Qualifier("name")]``."""
    __slots__ = ()


class Autowired:
    """Field injection marker.

    Declared as a class attribute::

        @component
        class OrderService:
            repository: OrderRepository = Autowired()
            audit: AuditLog = Autowired(required=False)

    Until the container sets the field on an instance, reading it returns
    ``default``.
    """

    def __init__(self, name: Optional[str] = None, *, required: bool = True, default: Any = None):
        self.name = name
        self.required = bool(required)
        self.default = default
        self.attr_name: Optional[str] = None

    def __set_name__(self, owner, attr_name):
        self.attr_name = attr_name

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        return self.default

    def __repr__(self):
        return f"Autowired(name={self.name!r}, required={self.required})"


__all__ = [
    "component", "aspect", "before", "after", "after_returning",
    "autowired", "post_construct", "pre_destroy",
    "Qualifier", "Autowired",
    "ADVICE_BEFORE", "ADVICE_AFTER", "ADVICE_AFTER_RETURNING",
    "POST_CONSTRUCT", "PRE_DESTROY",
]
