"""Interception proxies that run aspect advice around method calls."""

import functools
import inspect
import logging
import threading
from typing import Any, Callable, Dict, Tuple

from .aop import AdviceEntry, AspectRegistry, JoinPoint, invoke_advice, public_methods
from .constants import SPRIG_ASPECT
from .descriptor import AdviceKind
from .hooks import PassThroughHook

_logger = logging.getLogger(__name__)


def _run_after(entries: Tuple[AdviceEntry, ...], jp: JoinPoint) -> None:
    for e in entries:
        try:
            invoke_advice(e, jp)
        except Exception as ex:
            _logger.warning("After advice %s.%s failed for %s: %s", e.owner_name, e.method, jp.method_name, ex)


class AspectProxy:
    """Transparent proxy that applies advice to the methods of one target.

    Attribute reads, writes and deletes are forwarded to the target. Public
    methods with applicable advice are replaced by wrappers, built once per
    method name. ``__class__`` reports the target's class, so ``isinstance``
    checks against the component type keep working.

    Args:
        target: The fully initialised component instance.
        aspects: Registry that decides which advice applies to each method.
    """

    __slots__ = ("_target", "_aspects", "_cache", "_lock")

    def __init__(self, target: Any, aspects: AspectRegistry):
        if target is None:
            raise ValueError("AspectProxy requires a non-null target")
        object.__setattr__(self, "_target", target)
        object.__setattr__(self, "_aspects", aspects)
        object.__setattr__(self, "_cache", {})
        object.__setattr__(self, "_lock", threading.RLock())

    @property
    def __class__(self):
        return object.__getattribute__(self, "_target").__class__

    def __getattr__(self, name: str) -> Any:
        target = object.__getattribute__(self, "_target")
        attr = getattr(target, name)
        if name.startswith("_") or not callable(attr):
            return attr

        lock = object.__getattribute__(self, "_lock")
        with lock:
            cache: Dict[str, Callable[..., Any]] = object.__getattribute__(self, "_cache")
            wrapped = cache.get(name)
            if wrapped is not None:
                return wrapped
            entries = object.__getattribute__(self, "_aspects").advice_for(type(target), name)
            if not entries:
                return attr
            wrapped = self._build_wrapped(name, attr, entries)
            cache[name] = wrapped
            return wrapped

    def _build_wrapped(self, name: str, bound: Callable[..., Any], entries: Tuple[AdviceEntry, ...]):
        target = object.__getattribute__(self, "_target")
        before = tuple(e for e in entries if e.kind is AdviceKind.BEFORE)
        returning = tuple(e for e in entries if e.kind is AdviceKind.AFTER_RETURNING)
        after = tuple(e for e in entries if e.kind is AdviceKind.AFTER)

        original_func = getattr(bound, "__func__", bound)
        if inspect.iscoroutinefunction(original_func):

            @functools.wraps(bound)
            async def aw(*args, **kwargs):
                jp = JoinPoint(target=target, method_name=name, args=args, kwargs=kwargs)
                try:
                    for e in before:
                        invoke_advice(e, jp)
                    result = await bound(*args, **kwargs)
                    for e in returning:
                        invoke_advice(e, jp, result)
                    return result
                finally:
                    _run_after(after, jp)

            return aw

        @functools.wraps(bound)
        def sw(*args, **kwargs):
            jp = JoinPoint(target=target, method_name=name, args=args, kwargs=kwargs)
            try:
                for e in before:
                    invoke_advice(e, jp)
                result = bound(*args, **kwargs)
                for e in returning:
                    invoke_advice(e, jp, result)
                return result
            finally:
                _run_after(after, jp)

        return sw

    def __setattr__(self, name, value):
        setattr(object.__getattribute__(self, "_target"), name, value)

    def __delattr__(self, name):
        delattr(object.__getattribute__(self, "_target"), name)

    def __str__(self):
        return str(object.__getattribute__(self, "_target"))

    def __repr__(self):
        return f"AspectProxy({object.__getattribute__(self, '_target')!r})"

    def __dir__(self):
        return dir(object.__getattribute__(self, "_target"))

    def __eq__(self, other):
        target = object.__getattribute__(self, "_target")
        if type(other) is AspectProxy:
            other = object.__getattribute__(other, "_target")
        return target == other

    def __hash__(self):
        return hash(object.__getattribute__(self, "_target"))

    def __bool__(self):
        return bool(object.__getattribute__(self, "_target"))

    def __call__(self, *args, **kwargs):
        return object.__getattribute__(self, "_target")(*args, **kwargs)


def unwrap(instance: Any) -> Any:
    """The real target behind an :class:`AspectProxy`, or ``instance`` itself."""
    if type(instance) is AspectProxy:
        return object.__getattribute__(instance, "_target")
    return instance


class ProxyEngine:
    """Decides whether an instance needs advice and wraps it when it does."""

    def __init__(self, aspects: AspectRegistry):
        self.aspects = aspects

    def needs_proxy(self, target_type: type) -> bool:
        if target_type is AspectProxy:
            return False
        if getattr(target_type, SPRIG_ASPECT, False) or self.aspects.is_aspect_type(target_type):
            return False
        return self.aspects.matches(target_type)

    def wrap(self, target: Any) -> Any:
        """Return an :class:`AspectProxy` around ``target``, or ``target`` itself.

        Aspects and types no pointcut selects are returned unchanged. When a
        proxy cannot be built the original is returned and a warning logged.
        """
        if target is None or not self.needs_proxy(type(target)):
            return target
        return self.build_proxy(target)

    def build_proxy(self, target: Any) -> Any:
        if not public_methods(type(target)):
            _logger.warning(
                "Type %s matches a pointcut but has no public methods to intercept; using it unproxied",
                type(target).__name__,
            )
            return target
        try:
            return AspectProxy(target, self.aspects)
        except Exception as e:
            _logger.warning("Could not build proxy for %s; using it unproxied: %s", type(target).__name__, e)
            return target


class AspectProxyHook(PassThroughHook):
    """Hook that runs the :class:`ProxyEngine` after a component is completed.

    Whether a component needs a proxy is remembered per component name.
    """

    def __init__(self, engine: ProxyEngine):
        self.engine = engine
        self._needs: Dict[str, bool] = {}
        self._lock = threading.Lock()

    def after_completion(self, instance: Any, name: str) -> Any:
        with self._lock:
            needs = self._needs.get(name)
        if needs is None:
            needs = self.engine.needs_proxy(type(instance))
            with self._lock:
                self._needs[name] = needs
        if not needs:
            return instance
        return self.engine.build_proxy(instance)
