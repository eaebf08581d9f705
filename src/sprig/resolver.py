"""Dependency resolution engine.

:class:`ResolutionEngine` turns component names (or types) into instances:
it consults the instance cache, tracks the active creation chain to detect
cycles, resolves constructor and member dependencies recursively, runs the
extension hooks and caches shared results.
"""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .descriptor import ComponentDescriptor, DependencyRef, InjectionKind, InjectionTarget, default_component_name
from .exceptions import AmbiguousComponentError, CircularDependencyError, ComponentCreationError, NoSuchComponentError
from .hooks import HookChain
from .registry import DescriptorRegistry
from .scope import CreationTracker, InstanceCache, run_lifecycle_methods

_logger = logging.getLogger(__name__)

_MISSING = object()


class ResolutionEngine:
    """Creates, wires and caches components described in a registry.

    Args:
        registry: Source of component descriptors.
        cache: Store for shared instances (a fresh one by default).
        hooks: Extension hooks run around the injection-completion point.
        strict_singletons: Serialize first-time creation of each shared
            component with a per-name lock, so concurrent first access never
            builds duplicates. A thread about to wait on a component that is
            being created by a thread which in turn waits on it gets a
            :class:`CircularDependencyError` instead of blocking. Without
            it, racing callers may each build an instance; the first one
            stored wins and the rest are discarded.
    """

    def __init__(
        self,
        registry: DescriptorRegistry,
        cache: Optional[InstanceCache] = None,
        hooks: Optional[HookChain] = None,
        *,
        strict_singletons: bool = False,
    ) -> None:
        self._registry = registry
        self._cache = cache if cache is not None else InstanceCache()
        self._tracker = CreationTracker()
        self.hooks = hooks if hooks is not None else HookChain()
        self.strict_singletons = strict_singletons
        self._creation_locks: Dict[str, threading.RLock] = {}
        self._lock_owners: Dict[str, int] = {}
        self._waiting: Dict[int, str] = {}
        self._locks_guard = threading.Lock()
        self._stats_lock = threading.Lock()
        self.resolve_count = 0
        self.cache_hit_count = 0

    @property
    def registry(self) -> DescriptorRegistry:
        return self._registry

    @property
    def cache(self) -> InstanceCache:
        return self._cache

    @property
    def tracker(self) -> CreationTracker:
        return self._tracker

    def resolve(self, name: str) -> Any:
        """Return the instance for ``name``, creating it if needed.

        Raises:
            NoSuchComponentError: If ``name`` is not registered.
            CircularDependencyError: If ``name`` is already being created in
                this resolution chain, or in strict mode by a thread that is
                waiting on this one.
            ComponentCreationError: If instantiation, injection or
                initialisation fails.
        """
        cached = self._cache.get(name)
        if cached is not None:
            self._count_hit()
            return cached

        descriptor = self._registry.get(name)
        if descriptor is None:
            raise NoSuchComponentError(name=name)

        if descriptor.is_shared and self.strict_singletons:
            with self._creation_guard(name):
                cached = self._cache.get(name)
                if cached is not None:
                    self._count_hit()
                    return cached
                return self._create_and_store(name, descriptor)
        return self._create_and_store(name, descriptor)

    def resolve_type(self, component_type: Any) -> Any:
        """Resolve the single component whose type is (a subclass of) ``component_type``.

        Raises:
            NoSuchComponentError: If no descriptor matches.
            AmbiguousComponentError: If more than one descriptor matches.
        """
        names = self._registry.names_for_type(component_type)
        if not names:
            raise NoSuchComponentError(component_type=component_type)
        if len(names) > 1:
            raise AmbiguousComponentError(component_type, names)
        return self.resolve(names[0])

    def create(self, descriptor: ComponentDescriptor) -> Any:
        """Build an instance from a descriptor outside the registry. Never cached."""
        name = descriptor.name or default_component_name(descriptor.type_identity)
        return self._create(name, descriptor)

    def reset(self) -> None:
        with self._locks_guard:
            self._creation_locks.clear()
            self._lock_owners.clear()
            self._waiting.clear()
        with self._stats_lock:
            self.resolve_count = 0
            self.cache_hit_count = 0

    def _count_hit(self) -> None:
        with self._stats_lock:
            self.cache_hit_count += 1

    @contextmanager
    def _creation_guard(self, name: str) -> Iterator[None]:
        """Hold the creation lock of ``name`` for the current thread.

        Before blocking on a lock owned by another thread, the chain of
        waiting threads is followed. If it leads back to this thread the
        creations depend on each other and the wait would never end.

        Raises:
            CircularDependencyError: If waiting would close a cycle across
                threads.
        """
        me = threading.get_ident()
        with self._locks_guard:
            lock = self._creation_locks.get(name)
            if lock is None:
                lock = threading.RLock()
                self._creation_locks[name] = lock
            owner = self._lock_owners.get(name)
            if owner is not None and owner != me:
                path = self._cross_thread_cycle(me, name)
                if path is not None:
                    raise CircularDependencyError(path)
                self._waiting[me] = name

        lock.acquire()
        with self._locks_guard:
            self._waiting.pop(me, None)
            outermost = name not in self._lock_owners
            if outermost:
                self._lock_owners[name] = me
        try:
            yield
        finally:
            with self._locks_guard:
                if outermost:
                    self._lock_owners.pop(name, None)
                lock.release()

    def _cross_thread_cycle(self, me: int, name: str) -> Optional[List[str]]:
        # caller holds _locks_guard
        names = [name]
        owner = self._lock_owners.get(name)
        seen = set()
        while owner is not None and owner != me and owner not in seen:
            seen.add(owner)
            waiting_for = self._waiting.get(owner)
            if waiting_for is None:
                return None
            names.append(waiting_for)
            owner = self._lock_owners.get(waiting_for)
        if owner != me:
            return None
        chain = list(self._tracker.current())
        held = names[-1]
        start = chain.index(held) if held in chain else 0
        return chain[start:] + names

    def _create_and_store(self, name: str, descriptor: ComponentDescriptor) -> Any:
        instance = self._create(name, descriptor)
        if descriptor.is_shared:
            instance = self._cache.put_if_absent(name, instance)
        return instance

    def _create(self, name: str, descriptor: ComponentDescriptor) -> Any:
        # raises CircularDependencyError before anything is resolved
        token = self._tracker.push(name)
        t0 = time.perf_counter()
        try:
            try:
                instance = self._instantiate(descriptor)
                if instance is None:
                    raise ComponentCreationError(name, message=f"Component '{name}' was created as None")
                self._inject(instance, descriptor)
                instance = self.hooks.apply_before(instance, name)
                run_lifecycle_methods(instance, descriptor.init_methods, name=name, swallow=False)
                instance = self.hooks.apply_after(instance, name)
            except ComponentCreationError:
                raise
            except Exception as e:
                raise ComponentCreationError(name, e) from e
        finally:
            self._tracker.pop(token)

        with self._stats_lock:
            self.resolve_count += 1
        _logger.debug(
            "Created component '%s' (%s) in %.2f ms",
            name, descriptor.sharing_policy.value, (time.perf_counter() - t0) * 1000,
        )
        return instance

    def _instantiate(self, descriptor: ComponentDescriptor) -> Any:
        kwargs: Dict[str, Any] = {}
        for ref in descriptor.constructor_plan:
            value = self._resolve_ref(ref)
            if value is not _MISSING:
                kwargs[ref.parameter] = value
            elif not ref.has_default:
                kwargs[ref.parameter] = None
        return descriptor.type_identity(**kwargs)

    def _inject(self, instance: Any, descriptor: ComponentDescriptor) -> None:
        for target in descriptor.injection_targets:
            if target.kind is InjectionKind.FIELD:
                self._inject_field(instance, target)
            else:
                self._inject_method(instance, target)

    def _inject_field(self, instance: Any, target: InjectionTarget) -> None:
        ref = target.dependencies[0]
        value = self._resolve_ref(ref)
        if value is _MISSING:
            _logger.debug("Optional field '%s' left unset: no component %s", target.member, ref.describe())
            return
        setattr(instance, target.member, value)

    def _inject_method(self, instance: Any, target: InjectionTarget) -> None:
        kwargs: Dict[str, Any] = {}
        for ref in target.dependencies:
            value = self._resolve_ref(ref)
            if value is not _MISSING:
                kwargs[ref.parameter] = value
            elif ref.has_default:
                continue
            elif target.required:
                kwargs[ref.parameter] = None
            else:
                _logger.debug("Optional setter '%s' skipped: no component %s", target.member, ref.describe())
                return
        getattr(instance, target.member)(**kwargs)

    def _resolve_ref(self, ref: DependencyRef) -> Any:
        try:
            if ref.component_name is not None:
                return self.resolve(ref.component_name)
            return self.resolve_type(ref.component_type)
        except AmbiguousComponentError:
            raise
        except NoSuchComponentError:
            if ref.required:
                raise
            return _MISSING

    def snapshot(self) -> Tuple[int, int]:
        with self._stats_lock:
            return self.resolve_count, self.cache_hit_count
