import time
import threading
import uuid
from typing import Any, Dict, Iterable, List, Optional, Protocol, Type, TypeVar, Union, overload

from .analysis import DefaultTypeIntrospector, TypeIntrospector
from .aop import AspectRegistry
from .constants import LOGGER
from .descriptor import ComponentDescriptor, SharingPolicy
from .exceptions import ContainerStateError, NoSuchComponentError, TypeMismatchError
from .config import ContainerSettings
from .graph import DependencyGraph
from .hooks import ComponentHook, HookChain
from .proxy import AspectProxyHook, ProxyEngine, unwrap
from .registry import DescriptorRegistry
from .resolver import ResolutionEngine
from .scope import InstanceCache, run_lifecycle_methods

T = TypeVar("T")


class ComponentSource(Protocol):
    """Anything that can yield descriptors for the container to register on refresh."""

    def descriptors(self) -> Iterable[ComponentDescriptor]: ...


class Container:
    """The component container.

    Holds the descriptor registry, the shared-instance cache, the extension
    hooks and the aspect registry, and serves components by name or type.
    Descriptors come from ``sources`` (read on every :meth:`refresh`) and from
    :meth:`register` / :meth:`register_descriptor` calls, which persist
    across refreshes.

    Args:
        sources: Component sources scanned on refresh.
        settings: Behavioural switches; defaults to :class:`ContainerSettings`.
        hooks: User hooks, run in order before the aspect proxy hook.
        introspector: Turns classes into descriptors.

    Example:
        >>> c = Container()
        >>> c.register(Clock)
        >>> c.refresh()
        >>> c.get_component("clock")
    """

    def __init__(
        self,
        sources: Iterable[ComponentSource] = (),
        *,
        settings: Optional[ContainerSettings] = None,
        hooks: Iterable[ComponentHook] = (),
        introspector: Optional[TypeIntrospector] = None,
    ) -> None:
        self.container_id = uuid.uuid4().hex
        self.settings = settings or ContainerSettings()
        self.introspector: TypeIntrospector = introspector or DefaultTypeIntrospector()
        self._sources: List[ComponentSource] = list(sources)
        self._user_hooks: List[ComponentHook] = list(hooks)
        self._registry = DescriptorRegistry()
        self._cache = InstanceCache()
        self._engine = ResolutionEngine(
            self._registry, self._cache, strict_singletons=self.settings.strict_singletons
        )
        self._aspects = AspectRegistry(self._engine.resolve, self._registry)
        self._proxy_hook: Optional[AspectProxyHook] = None
        self._scanned: List[str] = []
        self._lock = threading.RLock()
        self._active = False
        self._closed = False
        self._created_at = time.time()

    def info(self, msg: str) -> None:
        LOGGER.info(f"[{self.container_id[:8]}] {msg}")

    # registration

    def register(
        self,
        cls: type,
        name: Optional[str] = None,
        *,
        scope: Union[SharingPolicy, str, None] = None,
        lazy: Optional[bool] = None,
    ) -> ComponentDescriptor:
        """Introspect ``cls`` and register the resulting descriptor.

        The name defaults to the marker's name, then to the class name with a
        lower-case first letter (``OrderService`` -> ``orderService``).
        """
        policy = SharingPolicy.coerce(scope) if scope is not None else None
        descriptor = self.introspector.describe(cls, name=name, sharing_policy=policy, lazy=lazy)
        return self.register_descriptor(descriptor.name, descriptor)

    def register_descriptor(self, name: str, descriptor: ComponentDescriptor) -> ComponentDescriptor:
        return self._registry.register(name, descriptor)

    def add_hook(self, hook: ComponentHook) -> None:
        """Append a user hook; it applies to components created from now on."""
        with self._lock:
            self._user_hooks.append(hook)
            if self._active:
                self._engine.hooks = self._build_hook_chain()

    # lifecycle

    @property
    def is_active(self) -> bool:
        return self._active

    def refresh(self) -> None:
        """(Re)build the container.

        Destroys and discards cached instances of a previous refresh, rescans
        the sources, rebuilds the hook chain and the aspect registry, and
        creates every shared, non-lazy component when ``eager_init`` is set.

        Raises:
            ContainerStateError: If the container has been closed.
            CircularDependencyError: If ``validate_cycles`` is set and the
                static dependency graph has a cycle.
            ComponentCreationError: If eager creation fails. The container is
                left inactive.
        """
        with self._lock:
            if self._closed:
                raise ContainerStateError("Container has been closed")
            t0 = time.perf_counter()
            if self._active:
                self._destroy_cached()
                self._active = False
            for n in self._scanned:
                self._registry.remove(n)
            self._scanned = []
            self._engine.reset()
            self._engine.strict_singletons = self.settings.strict_singletons

            for src in self._sources:
                for d in src.descriptors():
                    stored = self._registry.register(d.name, d)
                    self._scanned.append(stored.name)

            if self.settings.validate_cycles:
                self.dependency_graph().validate()

            try:
                # aspects and their dependencies are built without the proxy hook
                self._proxy_hook = None
                self._aspects.clear()
                self._engine.hooks = self._build_hook_chain()
                if self.settings.enable_aspects:
                    self._aspects.build(self._registry.names())
                    self._proxy_hook = AspectProxyHook(ProxyEngine(self._aspects))
                    self._engine.hooks = self._build_hook_chain()
                self._active = True

                created = 0
                if self.settings.eager_init:
                    for d in self._registry.descriptors():
                        if d.is_shared and not d.lazy:
                            self._engine.resolve(d.name)
                            created += 1
            except Exception:
                self._active = False
                self._destroy_cached()
                raise

            self.info(
                f"Refreshed with {self._registry.count()} components, {self._aspects.count()} aspects, "
                f"{created} resolved eagerly in {(time.perf_counter() - t0) * 1000:.1f} ms"
            )

    def close(self) -> None:
        """Run pre-destroy methods of cached instances and discard them. Idempotent."""
        with self._lock:
            if self._closed:
                return
            destroyed = self._destroy_cached()
            self._aspects.clear()
            self._active = False
            self._closed = True
            self.info(f"Closed; destroyed {destroyed} cached instances")

    def __enter__(self) -> "Container":
        if not self._active:
            self.refresh()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _build_hook_chain(self) -> HookChain:
        chain = HookChain(self._user_hooks)
        if self._proxy_hook is not None:
            chain.add(self._proxy_hook)
        return chain

    def _destroy_cached(self) -> int:
        items = self._cache.clear()
        for name, instance in reversed(items):
            d = self._registry.get(name)
            if d is None or not d.destroy_methods:
                continue
            run_lifecycle_methods(unwrap(instance), d.destroy_methods, name=name, swallow=True)
        return len(items)

    def _check_active(self) -> None:
        if self._closed:
            raise ContainerStateError("Container has been closed")
        if not self._active:
            raise ContainerStateError("Container has not been refreshed")

    # lookup

    @overload
    def get_component(self, key: Type[T]) -> T: ...
    @overload
    def get_component(self, key: str, expected_type: Type[T]) -> T: ...
    @overload
    def get_component(self, key: str) -> Any: ...
    def get_component(self, key, expected_type=None):
        """Return a component by name, by name checked against a type, or by type.

        Raises:
            ContainerStateError: Before :meth:`refresh` or after :meth:`close`.
            NoSuchComponentError: Nothing is registered under the name or type.
            AmbiguousComponentError: A type matches several components.
            TypeMismatchError: The named component is not an ``expected_type``.
        """
        self._check_active()
        if isinstance(key, str):
            instance = self._engine.resolve(key)
            if expected_type is not None and not isinstance(instance, expected_type):
                raise TypeMismatchError(key, expected_type, instance.__class__)
            return instance
        return self._engine.resolve_type(key)

    def create_component(self, descriptor: Union[ComponentDescriptor, type]) -> Any:
        """Build a fresh, uncached instance from a descriptor (or a class to introspect)."""
        self._check_active()
        if not isinstance(descriptor, ComponentDescriptor):
            descriptor = self.introspector.describe(descriptor)
        return self._engine.create(descriptor)

    def has_component(self, name: str) -> bool:
        return self._registry.contains(name)

    def __contains__(self, name: object) -> bool:
        return name in self._registry

    def _require(self, name: str) -> ComponentDescriptor:
        d = self._registry.get(name)
        if d is None:
            raise NoSuchComponentError(name=name)
        return d

    def is_shared(self, name: str) -> bool:
        return self._require(name).is_shared

    def is_per_request(self, name: str) -> bool:
        return self._require(name).is_per_request

    def type_of(self, name: str) -> Optional[Any]:
        d = self._registry.get(name)
        return d.type_identity if d is not None else None

    def descriptor_of(self, name: str) -> Optional[ComponentDescriptor]:
        return self._registry.get(name)

    def all_names(self) -> List[str]:
        return self._registry.names()

    def descriptor_count(self) -> int:
        return self._registry.count()

    # introspection

    @property
    def aspects(self) -> AspectRegistry:
        return self._aspects

    def dependency_graph(self) -> DependencyGraph:
        return DependencyGraph.from_registry(self._registry)

    def stats(self) -> Dict[str, Any]:
        resolves, hits = self._engine.snapshot()
        total = resolves + hits
        return {
            "container_id": self.container_id,
            "uptime_seconds": time.time() - self._created_at,
            "total_resolves": resolves,
            "cache_hits": hits,
            "cache_hit_rate": (hits / total) if total > 0 else 0.0,
            "registered_components": self._registry.count(),
            "cached_instances": len(self._cache),
            "aspects": self._aspects.count(),
        }
