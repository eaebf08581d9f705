"""Container settings and the sources they are read from.

Tree sources (:class:`DictSource`, :class:`JsonTreeSource`,
:class:`YamlTreeSource`) provide nested mappings; settings are read from
their top-level ``sprig`` section when there is one. Flat sources
(:class:`EnvSource`, :class:`FlatDictSource`) are key lookups and take
precedence over tree sources. :func:`load_settings` merges them into an
immutable :class:`ContainerSettings`.
"""

import json
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, List, Mapping, Optional, Protocol, Union

from .exceptions import ConfigurationError

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


@dataclass(frozen=True)
class ContainerSettings:
    """Behavioural switches of a :class:`~sprig.container.Container`.

    Attributes:
        eager_init: Create every shared, non-lazy component on refresh.
        strict_singletons: Serialize first-time creation of shared components.
        validate_cycles: Check the static dependency graph for cycles on refresh.
        enable_aspects: Build the aspect registry and install the proxy hook.
    """
    eager_init: bool = True
    strict_singletons: bool = False
    validate_cycles: bool = False
    enable_aspects: bool = True


class TreeSource:
    """Base class for tree-structured configuration sources."""

    def get_tree(self) -> Mapping[str, Any]:
        raise NotImplementedError


class DictSource(TreeSource):
    """Tree source backed by an in-memory dictionary.

    Example:
        >>> DictSource({"sprig": {"eager_init": False}}).get_tree()["sprig"]
        {'eager_init': False}
    """

    def __init__(self, data: Mapping[str, Any]):
        self._data = data

    def get_tree(self) -> Mapping[str, Any]:
        return self._data


class JsonTreeSource(TreeSource):
    """Tree source that reads a JSON file.

    Raises:
        ConfigurationError: If the file cannot be loaded or parsed.
    """

    def __init__(self, path: str):
        self._path = path

    def get_tree(self) -> Mapping[str, Any]:
        try:
            with open(self._path, encoding="utf-8") as f:
                return json.load(f)
        except Exception as e:
            raise ConfigurationError(f"Failed to load JSON config: {e}") from e


class YamlTreeSource(TreeSource):
    """Tree source that reads a YAML file.

    Requires ``PyYAML`` (``pip install sprig-ioc[yaml]``).

    Raises:
        ConfigurationError: If PyYAML is not installed, or the file cannot be
            loaded or parsed.
    """

    def __init__(self, path: str):
        self._path = path

    def get_tree(self) -> Mapping[str, Any]:
        try:
            import yaml
        except ImportError as e:
            raise ConfigurationError("PyYAML not installed") from e
        try:
            with open(self._path, encoding="utf-8") as f:
                return yaml.safe_load(f) or {}
        except Exception as e:
            raise ConfigurationError(f"Failed to load YAML config: {e}") from e


class FlatSource(Protocol):
    def get(self, key: str) -> Optional[str]: ...


class EnvSource:
    """Flat source backed by environment variables.

    Keys are upper-cased and prefixed: ``eager_init`` is read from
    ``SPRIG_EAGER_INIT`` with the default prefix.
    """

    def __init__(self, prefix: str = "SPRIG_", environ: Optional[Mapping[str, str]] = None) -> None:
        self.prefix = prefix
        self._environ = environ

    def get(self, key: str) -> Optional[str]:
        env = self._environ if self._environ is not None else os.environ
        return env.get(self.prefix + key.upper())


class FlatDictSource:
    """Flat source backed by an in-memory dictionary.

    Args:
        data: The key-value mapping.
        prefix: Optional prefix prepended to every key lookup.
        case_sensitive: If ``False``, keys are normalised to upper-case.
    """

    def __init__(self, data: Mapping[str, Any], prefix: str = "", case_sensitive: bool = True):
        if case_sensitive:
            self._data = {str(k): v for k, v in dict(data).items()}
            self._prefix = prefix
        else:
            self._data = {str(k).upper(): v for k, v in dict(data).items()}
            self._prefix = prefix.upper()
        self._case_sensitive = case_sensitive

    def get(self, key: str) -> Optional[str]:
        if not key:
            return None
        k = f"{self._prefix}{key}"
        if not self._case_sensitive:
            k = k.upper()
        v = self._data.get(k)
        if isinstance(v, (str, int, float, bool)):
            return str(v)
        return None


def parse_bool(key: str, value: Any) -> bool:
    """``1/true/yes/on`` -> True, ``0/false/no/off`` -> False (case-insensitive).

    Raises:
        ConfigurationError: For any other value.
    """
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigurationError(f"Invalid boolean for setting '{key}': {value!r}")


def _section(tree: Mapping[str, Any]) -> Mapping[str, Any]:
    if not isinstance(tree, Mapping):
        raise ConfigurationError(f"Configuration tree must be a mapping, got {type(tree).__name__}")
    section = tree.get("sprig", tree)
    if not isinstance(section, Mapping):
        raise ConfigurationError("The 'sprig' configuration section must be a mapping")
    return section


def load_settings(
    *sources: Union[TreeSource, EnvSource, FlatDictSource],
    overrides: Optional[Mapping[str, Any]] = None,
) -> ContainerSettings:
    """Merge configuration sources into :class:`ContainerSettings`.

    Precedence, lowest first: tree sources in the order given, flat sources
    in the order given, then ``overrides``. Source keys that are not
    settings are ignored; an unknown key in ``overrides`` is an error.

    Example:
        >>> load_settings(DictSource({"sprig": {"eager_init": "no"}})).eager_init
        False

    Raises:
        ConfigurationError: If a source is of an unknown type or cannot be
            read, if ``overrides`` names an unknown setting, or if a value is
            not a boolean.
    """
    tree: List[TreeSource] = []
    flat: List[FlatSource] = []
    for src in sources:
        if isinstance(src, TreeSource):
            tree.append(src)
        elif isinstance(src, (EnvSource, FlatDictSource)):
            flat.append(src)
        else:
            raise ConfigurationError(f"Unknown configuration source type: {type(src)}")

    keys = [f.name for f in fields(ContainerSettings)]
    values: Dict[str, bool] = {}

    for src in tree:
        section = _section(src.get_tree())
        for k in keys:
            if k in section and section[k] is not None:
                values[k] = parse_bool(k, section[k])

    for src in flat:
        for k in keys:
            raw = src.get(k)
            if raw is not None:
                values[k] = parse_bool(k, raw)

    for k, v in dict(overrides or {}).items():
        if k not in keys:
            raise ConfigurationError(f"Unknown setting in overrides: '{k}'")
        values[k] = parse_bool(k, v)

    return replace(ContainerSettings(), **values)
