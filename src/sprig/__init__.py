# sprig/__init__.py
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("sprig-ioc")
except PackageNotFoundError:
    __version__ = "0.0.0"

from .analysis import DefaultTypeIntrospector, TypeIntrospector
from .aop import AspectRegistry, JoinPoint
from .api import ModuleScanner, init
from .config import (
    ContainerSettings,
    DictSource,
    EnvSource,
    FlatDictSource,
    JsonTreeSource,
    YamlTreeSource,
    load_settings,
)
from .container import ComponentSource, Container
from .decorators import (
    Autowired,
    Qualifier,
    after,
    after_returning,
    aspect,
    autowired,
    before,
    component,
    post_construct,
    pre_destroy,
)
from .descriptor import (
    AdviceKind,
    AdviceSpec,
    ComponentDescriptor,
    DependencyRef,
    InjectionKind,
    InjectionTarget,
    SharingPolicy,
)
from .exceptions import (
    AmbiguousComponentError,
    CircularDependencyError,
    ComponentCreationError,
    ConfigurationError,
    ContainerStateError,
    InvalidRegistrationError,
    NoSuchComponentError,
    SprigError,
    TypeMismatchError,
)
from .graph import DependencyGraph
from .hooks import ComponentHook, HookChain, PassThroughHook
from .proxy import AspectProxy, ProxyEngine

__all__ = [
    "__version__",
    "Container",
    "ComponentSource",
    "ModuleScanner",
    "init",
    "component",
    "aspect",
    "before",
    "after",
    "after_returning",
    "autowired",
    "post_construct",
    "pre_destroy",
    "Autowired",
    "Qualifier",
    "ComponentDescriptor",
    "DependencyRef",
    "InjectionTarget",
    "InjectionKind",
    "AdviceSpec",
    "AdviceKind",
    "SharingPolicy",
    "TypeIntrospector",
    "DefaultTypeIntrospector",
    "ComponentHook",
    "HookChain",
    "PassThroughHook",
    "AspectRegistry",
    "JoinPoint",
    "AspectProxy",
    "ProxyEngine",
    "DependencyGraph",
    "ContainerSettings",
    "DictSource",
    "JsonTreeSource",
    "YamlTreeSource",
    "EnvSource",
    "FlatDictSource",
    "load_settings",
    "SprigError",
    "NoSuchComponentError",
    "AmbiguousComponentError",
    "TypeMismatchError",
    "ComponentCreationError",
    "CircularDependencyError",
    "InvalidRegistrationError",
    "ContainerStateError",
    "ConfigurationError",
]
