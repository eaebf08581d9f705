"""Aspect support for sprig.

This module provides the :class:`AspectRegistry`, which collects the advice
declared by aspect components and answers which types and methods it
applies to, the pointcut matcher behind it, the :class:`JoinPoint` handed to
advice methods, and :func:`invoke_advice`, which binds and calls one advice
method.
"""

import functools
import inspect
import logging
import re
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .descriptor import AdviceKind
from .registry import DescriptorRegistry

_logger = logging.getLogger(__name__)

NO_RETURN_VALUE = object()
"""Sentinel passed to :func:`invoke_advice` when there is no return value to bind."""


@dataclass(frozen=True)
class JoinPoint:
    """The intercepted call, as seen by an advice method.

    Attributes:
        target: The real (unproxied) component instance.
        method_name: Name of the intercepted method.
        args: Positional arguments of the call.
        kwargs: Keyword arguments of the call.
    """
    target: Any
    method_name: str
    args: Tuple[Any, ...] = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)

    @property
    def target_type(self) -> type:
        return type(self.target)


@dataclass(frozen=True)
class AdviceEntry:
    """One advice method bound to its aspect instance."""
    owner: Any
    owner_name: str
    kind: AdviceKind
    pointcut: str
    method: str
    returning: Optional[str] = None

    def bound(self) -> Callable[..., Any]:
        return getattr(self.owner, self.method)


@dataclass(frozen=True)
class AspectDeclaration:
    owner: Any
    owner_name: str
    entries: Tuple[AdviceEntry, ...]


@functools.lru_cache(maxsize=512)
def _compile(pattern: str) -> Optional["re.Pattern[str]"]:
    if "*" not in pattern:
        return None
    return re.compile(".*".join(re.escape(part) for part in pattern.split("*")))


def pointcut_matches(pattern: str, names: Iterable[str]) -> bool:
    """Whether ``pattern`` selects any of ``names``.

    A pattern containing ``*`` must match a whole name, with ``*`` standing
    for any run of characters. A pattern without ``*`` matches any name that
    contains it.
    """
    rx = _compile(pattern)
    for n in names:
        if rx is None:
            if pattern in n:
                return True
        elif rx.fullmatch(n):
            return True
    return False


def type_names(target_type: type) -> Tuple[str, str]:
    """``(qualified, simple)`` names of a type, e.g. ``('app.svc.OrderService', 'OrderService')``."""
    simple = getattr(target_type, "__name__", str(target_type))
    qualname = getattr(target_type, "__qualname__", simple)
    module = getattr(target_type, "__module__", None)
    qualified = f"{module}.{qualname}" if module else qualname
    return qualified, simple


def public_methods(target_type: type) -> List[str]:
    out: List[str] = []
    for attr in dir(target_type):
        if attr.startswith("_"):
            continue
        try:
            value = inspect.getattr_static(target_type, attr)
        except AttributeError:
            continue
        if isinstance(value, (staticmethod, classmethod)) or inspect.isfunction(value):
            out.append(attr)
    return out


def _method_names(target_type: type, method_name: str) -> Tuple[str, str]:
    qualified, simple = type_names(target_type)
    return f"{qualified}.{method_name}", f"{simple}.{method_name}"


def _accepts_join_point(param: inspect.Parameter) -> bool:
    return param.name == "join_point" or param.annotation is JoinPoint or param.annotation == "JoinPoint"


def invoke_advice(entry: AdviceEntry, join_point: JoinPoint, return_value: Any = NO_RETURN_VALUE) -> Any:
    """Call the advice method of ``entry`` with the arguments it asks for.

    A parameter named ``join_point`` (or annotated :class:`JoinPoint`)
    receives the join point. For after-returning advice the parameter named
    by ``returning`` receives the return value; without a ``returning`` name
    the first other parameter does. Remaining parameters keep their default,
    or get ``None``.
    """
    method = entry.bound()
    try:
        sig = inspect.signature(method)
    except (TypeError, ValueError):
        return method()

    bind_return = return_value is not NO_RETURN_VALUE and entry.kind is AdviceKind.AFTER_RETURNING
    kwargs: Dict[str, Any] = {}
    for param in sig.parameters.values():
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        if _accepts_join_point(param):
            kwargs[param.name] = join_point
        elif bind_return and (entry.returning is None or param.name == entry.returning):
            kwargs[param.name] = return_value
            bind_return = False
        elif param.default is inspect.Parameter.empty:
            kwargs[param.name] = None
    return method(**kwargs)


class AspectRegistry:
    """Aspect declarations of one container, in registration order.

    Args:
        resolver: Callable returning the instance for a component name.
        registry: The descriptor registry aspects are looked up in.
    """

    def __init__(self, resolver: Callable[[str], Any], registry: DescriptorRegistry) -> None:
        self._resolver = resolver
        self._registry = registry
        self._declarations: List[AspectDeclaration] = []
        self._match_memo: Dict[str, bool] = {}
        self._lock = threading.RLock()

    def build(self, names: Optional[Iterable[str]] = None) -> None:
        """Resolve every aspect among ``names`` and collect its advice.

        Previous declarations and match memos are discarded first.
        """
        with self._lock:
            self.clear()
            for name in list(names) if names is not None else self._registry.names():
                descriptor = self._registry.get(name)
                if descriptor is None or not descriptor.is_aspect:
                    continue
                owner = self._resolver(name)
                entries = tuple(
                    AdviceEntry(
                        owner=owner,
                        owner_name=name,
                        kind=spec.kind,
                        pointcut=spec.pointcut,
                        method=spec.method,
                        returning=spec.returning,
                    )
                    for spec in descriptor.advice
                )
                self._declarations.append(AspectDeclaration(owner=owner, owner_name=name, entries=entries))
                _logger.debug("Registered aspect '%s' with %d advice method(s)", name, len(entries))

    def clear(self) -> None:
        with self._lock:
            self._declarations = []
            self._match_memo.clear()

    @property
    def declarations(self) -> List[AspectDeclaration]:
        with self._lock:
            return list(self._declarations)

    def count(self) -> int:
        with self._lock:
            return len(self._declarations)

    def is_aspect_type(self, target_type: type) -> bool:
        return any(type(d.owner) is target_type for d in self.declarations)

    def _entries(self) -> List[AdviceEntry]:
        return [e for d in self.declarations for e in d.entries]

    def matches(self, target_type: type) -> bool:
        """Whether any advice entry selects ``target_type`` or one of its public methods."""
        qualified, simple = type_names(target_type)
        with self._lock:
            memo = self._match_memo.get(qualified)
        if memo is not None:
            return memo

        names = [qualified, simple]
        for m in public_methods(target_type):
            names.extend(_method_names(target_type, m))
        result = any(pointcut_matches(e.pointcut, names) for e in self._entries())

        with self._lock:
            self._match_memo[qualified] = result
        return result

    def advice_for(self, target_type: type, method_name: str) -> Tuple[AdviceEntry, ...]:
        """Advice entries that apply to ``method_name`` of ``target_type``, in aspect-then-declaration order."""
        names = list(type_names(target_type)) + list(_method_names(target_type, method_name))
        return tuple(e for e in self._entries() if pointcut_matches(e.pointcut, names))


__all__ = [
    "AdviceEntry",
    "AdviceKind",
    "AspectDeclaration",
    "AspectRegistry",
    "JoinPoint",
    "NO_RETURN_VALUE",
    "invoke_advice",
    "pointcut_matches",
    "public_methods",
    "type_names",
]
