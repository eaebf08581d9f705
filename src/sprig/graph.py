"""Static dependency graph built from registered descriptors."""

from typing import Dict, List, Optional, Set, Tuple

from .descriptor import ComponentDescriptor, DependencyRef
from .exceptions import CircularDependencyError
from .registry import DescriptorRegistry


def _dependency_refs(d: ComponentDescriptor) -> List[DependencyRef]:
    refs = list(d.constructor_plan)
    for target in d.injection_targets:
        refs.extend(target.dependencies)
    return refs


class DependencyGraph:
    """Name -> names-it-depends-on, in registration order.

    Only edges that resolve statically are recorded: explicit names that are
    registered, and types matched by exactly one descriptor.
    """

    def __init__(self, edges: Dict[str, Tuple[str, ...]]):
        self._edges = dict(edges)

    @classmethod
    def from_registry(cls, registry: DescriptorRegistry) -> "DependencyGraph":
        edges: Dict[str, Tuple[str, ...]] = {}
        for d in registry.descriptors():
            deps: List[str] = []
            for ref in _dependency_refs(d):
                target = cls._map_ref(registry, ref)
                if target is not None and target not in deps:
                    deps.append(target)
            edges[d.name] = tuple(deps)
        return cls(edges)

    @staticmethod
    def _map_ref(registry: DescriptorRegistry, ref: DependencyRef) -> Optional[str]:
        if ref.component_name is not None:
            return ref.component_name if registry.contains(ref.component_name) else None
        if ref.component_type is None:
            return None
        names = registry.names_for_type(ref.component_type)
        return names[0] if len(names) == 1 else None

    def direct_dependencies(self, name: str) -> Tuple[str, ...]:
        return self._edges.get(name, ())

    def all_dependencies(self, name: str) -> List[str]:
        """Transitive dependencies of ``name``, nearest first, without ``name`` itself."""
        seen: Set[str] = {name}
        out: List[str] = []
        queue = list(self.direct_dependencies(name))
        while queue:
            n = queue.pop(0)
            if n in seen:
                continue
            seen.add(n)
            out.append(n)
            queue.extend(self.direct_dependencies(n))
        return out

    def find_cycle(self) -> Optional[Tuple[str, ...]]:
        """First cycle found by depth-first search, e.g. ``('a', 'b', 'a')``."""
        temp: Set[str] = set()
        perm: Set[str] = set()
        stack: List[str] = []

        def visit(n: str) -> Optional[Tuple[str, ...]]:
            if n in perm:
                return None
            if n in temp:
                idx = stack.index(n)
                return tuple(stack[idx:] + [n])

            temp.add(n)
            stack.append(n)
            for m in self._edges.get(n, ()):
                c = visit(m)
                if c:
                    return c
            stack.pop()
            temp.remove(n)
            perm.add(n)
            return None

        for node in self._edges:
            c = visit(node)
            if c:
                return c
        return None

    def validate(self) -> None:
        """Raise :class:`CircularDependencyError` if the graph has a cycle."""
        cycle = self.find_cycle()
        if cycle:
            raise CircularDependencyError(list(cycle))

    def to_dot(self, title: Optional[str] = None) -> str:
        """Render the graph in Graphviz DOT format."""
        lines = ["digraph Sprig {", "  rankdir=LR;", "  node [shape=box];"]
        if title:
            lines.append(f'  labelloc="t"; label="{title}";')
        for n in self._edges:
            lines.append(f'  "{n}";')
        for n, deps in self._edges.items():
            for m in deps:
                lines.append(f'  "{n}" -> "{m}";')
        lines.append("}")
        return "\n".join(lines)
