import inspect
import types
import typing
from typing import Annotated, Any, Callable, Dict, List, Optional, Protocol, Tuple, Union, get_args, get_origin

from .constants import SPRIG_ADVICE, SPRIG_ASPECT, SPRIG_AUTOWIRED, SPRIG_COMPONENT, SPRIG_LIFECYCLE
from .decorators import Autowired, Qualifier, POST_CONSTRUCT, PRE_DESTROY
from .descriptor import (
    AdviceKind,
    AdviceSpec,
    ComponentDescriptor,
    DependencyRef,
    InjectionKind,
    InjectionTarget,
    SharingPolicy,
    default_component_name,
)


class TypeIntrospector(Protocol):
    """Turns a type into plain descriptor data.

    The resolution engine only ever sees the returned descriptors, so an
    introspector can be swapped for one backed by generated metadata.
    """

    def is_component(self, obj: Any) -> bool: ...

    def describe(
        self,
        cls: type,
        name: Optional[str] = None,
        sharing_policy: Optional[SharingPolicy] = None,
        lazy: Optional[bool] = None,
    ) -> ComponentDescriptor: ...


def _extract_annotated(ann: Any) -> Tuple[Any, Optional[str]]:
    qualifier = None
    base = ann
    origin = get_origin(ann)

    if origin is Annotated:
        args = get_args(ann)
        base = args[0] if args else Any
        metas = args[1:] if len(args) > 1 else ()
        for m in metas:
            if isinstance(m, Qualifier):
                qualifier = str(m)
                break
    return base, qualifier


def _check_optional(ann: Any) -> Tuple[Any, bool]:
    origin = get_origin(ann)
    if origin is Union or origin is types.UnionType:
        args = [a for a in get_args(ann) if a is not type(None)]
        if len(args) == 1:
            return args[0], True
    return ann, False


def _type_hints(obj: Any) -> Dict[str, Any]:
    try:
        return typing.get_type_hints(obj, include_extras=True)
    except Exception:
        # unresolvable forward references fall back to the raw annotations
        return dict(getattr(obj, "__annotations__", {}) or {})


def _is_injectable_type(t: Any) -> bool:
    return isinstance(t, type) and t is not Any and t is not type(None)


def dependency_for(member: str, ann: Any, *, has_default: bool = False, required: bool = True,
                   name: Optional[str] = None) -> DependencyRef:
    base, is_optional = _check_optional(ann)
    base, qualifier = _extract_annotated(base)
    # Annotated may wrap Optional
    base, inner_optional = _check_optional(base)
    required = required and not (is_optional or inner_optional) and not has_default
    component_type = base if _is_injectable_type(base) else None
    component_name = name or qualifier
    if component_name is None and component_type is None:
        component_name = member
    return DependencyRef(
        parameter=member,
        component_name=component_name,
        component_type=component_type,
        required=required,
        has_default=has_default,
    )


def analyze_callable_dependencies(callable_obj: Callable[..., Any], *, required: bool = True) -> Tuple[DependencyRef, ...]:
    try:
        sig = inspect.signature(callable_obj)
    except (ValueError, TypeError):
        return ()

    hints = _type_hints(callable_obj)
    plan: List[DependencyRef] = []

    for name, param in sig.parameters.items():
        if name in ("self", "cls"):
            continue
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        ann = hints.get(name, param.annotation)
        if ann is inspect.Parameter.empty or isinstance(ann, str):
            ann = None
        plan.append(
            dependency_for(name, ann, has_default=param.default is not inspect.Parameter.empty, required=required)
        )

    return tuple(plan)


def _iter_functions(cls: type) -> List[Tuple[str, Any]]:
    ordered: Dict[str, Any] = {}
    for klass in reversed(cls.__mro__):
        if klass is object:
            continue
        for attr, value in klass.__dict__.items():
            if isinstance(value, (staticmethod, classmethod)):
                continue
            if inspect.isfunction(value):
                ordered[attr] = value
    return list(ordered.items())


def _iter_field_markers(cls: type) -> List[Tuple[str, Autowired]]:
    ordered: Dict[str, Autowired] = {}
    for klass in reversed(cls.__mro__):
        for attr, value in klass.__dict__.items():
            if isinstance(value, Autowired):
                ordered[attr] = value
            elif attr in ordered:
                del ordered[attr]
    return list(ordered.items())


class DefaultTypeIntrospector:
    """Reads sprig's decorators, signatures and type hints into descriptors."""

    def is_component(self, obj: Any) -> bool:
        return inspect.isclass(obj) and (SPRIG_COMPONENT in obj.__dict__ or SPRIG_ASPECT in obj.__dict__)

    def describe(
        self,
        cls: type,
        name: Optional[str] = None,
        sharing_policy: Optional[SharingPolicy] = None,
        lazy: Optional[bool] = None,
    ) -> ComponentDescriptor:
        meta = getattr(cls, SPRIG_COMPONENT, None) or {}
        is_aspect = bool(getattr(cls, SPRIG_ASPECT, False))

        resolved_name = name or meta.get("name") or default_component_name(cls)
        policy = sharing_policy if sharing_policy is not None else meta.get("scope", SharingPolicy.SHARED)

        init_methods: List[str] = []
        destroy_methods: List[str] = []
        targets: List[InjectionTarget] = list(self._field_targets(cls)) if inspect.isclass(cls) else []
        advice: List[AdviceSpec] = []

        functions = _iter_functions(cls) if inspect.isclass(cls) else []
        for attr, fn in functions:
            autowired = getattr(fn, SPRIG_AUTOWIRED, None)
            if autowired is not None:
                req = autowired.get("required", True)
                targets.append(
                    InjectionTarget(
                        member=attr,
                        kind=InjectionKind.METHOD,
                        dependencies=analyze_callable_dependencies(fn, required=req),
                        required=req,
                    )
                )
            role = getattr(fn, SPRIG_LIFECYCLE, None)
            if role == POST_CONSTRUCT:
                init_methods.append(attr)
            elif role == PRE_DESTROY:
                destroy_methods.append(attr)
            if is_aspect:
                for marker in getattr(fn, SPRIG_ADVICE, ()):
                    advice.append(
                        AdviceSpec(
                            kind=AdviceKind(marker["kind"]),
                            pointcut=marker["pointcut"],
                            method=attr,
                            returning=marker.get("returning"),
                        )
                    )

        return ComponentDescriptor(
            type_identity=cls,
            name=resolved_name,
            sharing_policy=policy,
            constructor_plan=self._constructor_plan(cls),
            injection_targets=tuple(targets),
            lazy=bool(meta.get("lazy", False)) if lazy is None else bool(lazy),
            is_aspect=is_aspect,
            init_methods=tuple(init_methods),
            destroy_methods=tuple(destroy_methods),
            advice=tuple(advice),
        )

    def _constructor_plan(self, cls: Any) -> Tuple[DependencyRef, ...]:
        if not inspect.isclass(cls):
            return analyze_callable_dependencies(cls)
        init = cls.__init__
        if init is object.__init__:
            return ()
        return analyze_callable_dependencies(init)

    def _field_targets(self, cls: type) -> Tuple[InjectionTarget, ...]:
        hints = _type_hints(cls)
        out: List[InjectionTarget] = []
        for attr, marker in _iter_field_markers(cls):
            ann = hints.get(attr)
            if isinstance(ann, str):
                ann = None
            dep = dependency_for(attr, ann, required=marker.required, name=marker.name)
            out.append(
                InjectionTarget(member=attr, kind=InjectionKind.FIELD, dependencies=(dep,), required=dep.required)
            )
        return tuple(out)
