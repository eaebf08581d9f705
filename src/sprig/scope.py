"""Instance storage and creation tracking.

Provides :class:`InstanceCache`, the thread-safe home of shared component
instances, and :class:`CreationTracker`, the per-resolution-chain stack used
to detect circular dependencies.
"""

import contextvars
import inspect
import itertools
import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .exceptions import CircularDependencyError

_logger = logging.getLogger(__name__)

_tracker_ids = itertools.count()


class InstanceCache:
    """Lock-guarded name -> instance map for shared components.

    Entries are written once per resolution chain and only removed by
    :meth:`clear` (container refresh or close).
    """

    def __init__(self) -> None:
        self._instances: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def get(self, name: str) -> Optional[Any]:
        with self._lock:
            return self._instances.get(name)

    def put_if_absent(self, name: str, instance: Any) -> Any:
        """Store ``instance`` unless another one got there first.

        Returns:
            The instance now stored under ``name``.
        """
        with self._lock:
            current = self._instances.get(name)
            if current is not None:
                if current is not instance:
                    _logger.debug("Discarding duplicate instance created concurrently for '%s'", name)
                return current
            self._instances[name] = instance
            return instance

    def clear(self) -> List[Tuple[str, Any]]:
        """Empty the cache and return what it held, in insertion order."""
        with self._lock:
            items = list(self._instances.items())
            self._instances.clear()
            return items

    def __len__(self) -> int:
        with self._lock:
            return len(self._instances)


class CreationTracker:
    """Names currently under construction in the active resolution chain.

    The stack lives in a :class:`contextvars.ContextVar`, so each thread (and
    each asyncio task) sees only its own chain. Unrelated concurrent
    resolutions never observe each other's entries.
    """

    def __init__(self) -> None:
        self._chain: contextvars.ContextVar[Tuple[str, ...]] = contextvars.ContextVar(
            f"sprig_creation_chain_{next(_tracker_ids)}", default=()
        )

    def current(self) -> Tuple[str, ...]:
        return self._chain.get()

    def push(self, name: str) -> contextvars.Token:
        """Push ``name`` onto the chain.

        Raises:
            CircularDependencyError: If ``name`` is already in the chain. The
                path runs from its first occurrence to the re-entry.
        """
        chain = self._chain.get()
        if name in chain:
            idx = chain.index(name)
            raise CircularDependencyError(list(chain[idx:]) + [name])
        return self._chain.set(chain + (name,))

    def pop(self, token: contextvars.Token) -> None:
        self._chain.reset(token)

    @contextmanager
    def track(self, name: str) -> Iterator[None]:
        token = self.push(name)
        try:
            yield
        finally:
            self.pop(token)


def run_lifecycle_methods(instance: Any, method_names, *, name: str, swallow: bool) -> None:
    """Call each named zero-argument lifecycle method on ``instance``.

    With ``swallow`` set, failures are logged and the remaining methods still
    run (used for pre-destroy); otherwise the first failure propagates.
    """
    for method_name in method_names:
        method = getattr(instance, method_name, None)
        if not callable(method):
            continue
        if not swallow:
            method()
            continue
        try:
            res = method()
            if inspect.isawaitable(res):
                _logger.warning("Async lifecycle method %s.%s was not awaited", name, method_name)
                close = getattr(res, "close", None)
                if callable(close):
                    close()
        except Exception as e:
            _logger.warning("Lifecycle method %s.%s failed: %s", name, method_name, e)
