"""Extension hooks run around a component's injection-completion point."""

import logging
from typing import Any, Iterable, List, Optional, Protocol, runtime_checkable

_logger = logging.getLogger(__name__)


@runtime_checkable
class ComponentHook(Protocol):
    """Protocol for post-processing hooks.

    Both callbacks receive the current instance and its component name and
    return the instance to continue with. Returning ``None`` stops the chain
    for that phase; the last non-``None`` instance is kept::

        class Tagging:
            def before_completion(self, instance, name):
                return instance

            def after_completion(self, instance, name):
                instance.tag = name
                return instance
    """

    def before_completion(self, instance: Any, name: str) -> Optional[Any]: ...

    def after_completion(self, instance: Any, name: str) -> Optional[Any]: ...


class PassThroughHook:
    """Convenience base class: both callbacks return the instance unchanged."""

    def before_completion(self, instance: Any, name: str) -> Optional[Any]:
        return instance

    def after_completion(self, instance: Any, name: str) -> Optional[Any]:
        return instance


class HookChain:
    """Ordered list of :class:`ComponentHook` objects.

    A hook that raises is logged and skipped: the instance it was handed
    continues down the chain.
    """

    def __init__(self, hooks: Iterable[ComponentHook] = ()) -> None:
        self._hooks: List[ComponentHook] = []
        for h in hooks:
            self.add(h)

    def add(self, hook: ComponentHook) -> None:
        if hook is None:
            return
        if not isinstance(hook, ComponentHook):
            raise TypeError(f"{type(hook).__name__} does not implement before_completion/after_completion")
        if hook not in self._hooks:
            self._hooks.append(hook)

    def remove(self, hook: ComponentHook) -> None:
        if hook in self._hooks:
            self._hooks.remove(hook)

    @property
    def hooks(self) -> List[ComponentHook]:
        return list(self._hooks)

    def __len__(self) -> int:
        return len(self._hooks)

    def apply_before(self, instance: Any, name: str) -> Any:
        return self._apply("before_completion", instance, name)

    def apply_after(self, instance: Any, name: str) -> Any:
        return self._apply("after_completion", instance, name)

    def _apply(self, phase: str, instance: Any, name: str) -> Any:
        result = instance
        for hook in list(self._hooks):
            try:
                current = getattr(hook, phase)(result, name)
            except Exception as e:
                _logger.warning(
                    "Hook %s.%s failed for component '%s'; keeping the current instance: %s",
                    type(hook).__name__, phase, name, e,
                )
                continue
            if current is None:
                return result
            result = current
        return result
