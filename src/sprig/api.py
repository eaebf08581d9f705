import importlib
import inspect
import logging
import pkgutil
from typing import Any, Iterable, Iterator, List, Optional, Set, Union

from .analysis import DefaultTypeIntrospector, TypeIntrospector
from .config import ContainerSettings
from .container import ComponentSource, Container
from .descriptor import ComponentDescriptor
from .hooks import ComponentHook

_logger = logging.getLogger(__name__)


def _scan_package(package) -> Iterable[Any]:
    for _, name, _ in pkgutil.walk_packages(package.__path__, package.__name__ + "."):
        yield importlib.import_module(name)


def _iter_input_modules(inputs: Union[Any, Iterable[Any]]) -> Iterator[Any]:
    seq = inputs if isinstance(inputs, Iterable) and not inspect.ismodule(inputs) and not isinstance(inputs, str) else [inputs]
    seen: Set[str] = set()
    for it in seq:
        mod = importlib.import_module(it) if isinstance(it, str) else it
        candidates = [mod]
        if hasattr(mod, "__path__"):
            candidates.extend(_scan_package(mod))
        for m in candidates:
            name = getattr(m, "__name__", None)
            if name and name not in seen:
                seen.add(name)
                yield m


class ModuleScanner:
    """:class:`ComponentSource` that finds marked classes in modules and packages.

    Every marked class reachable as a module attribute is picked up once,
    even when several scanned modules import it. Packages are walked
    recursively.

    Args:
        modules: A module, a dotted module name, or an iterable of either.
        introspector: Decides which classes are components and describes them.
    """

    def __init__(self, modules: Union[Any, Iterable[Any]], introspector: Optional[TypeIntrospector] = None):
        self._modules = modules
        self.introspector: TypeIntrospector = introspector or DefaultTypeIntrospector()

    def component_types(self) -> List[type]:
        out: List[type] = []
        for mod in _iter_input_modules(self._modules):
            for obj in list(vars(mod).values()):
                if self.introspector.is_component(obj) and obj not in out:
                    out.append(obj)
        return out

    def descriptors(self) -> Iterator[ComponentDescriptor]:
        for cls in self.component_types():
            d = self.introspector.describe(cls)
            _logger.debug("Discovered component '%s' -> %s", d.name, cls.__qualname__)
            yield d


def init(
    modules: Union[Any, Iterable[Any]],
    *,
    settings: Optional[ContainerSettings] = None,
    hooks: Iterable[ComponentHook] = (),
    introspector: Optional[TypeIntrospector] = None,
) -> Container:
    """Scan ``modules`` for components and return a refreshed container.

    Example:
        >>> container = init("myapp.services")
        >>> container.get_component(OrderService)

    Raises:
        InvalidRegistrationError: Two scanned components share a name.
        ComponentCreationError: Eager creation of a shared component failed.
    """
    introspector = introspector or DefaultTypeIntrospector()
    source: ComponentSource = ModuleScanner(modules, introspector)
    container = Container([source], settings=settings, hooks=hooks, introspector=introspector)
    container.refresh()
    return container
