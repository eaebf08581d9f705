from typing import Annotated, Optional

import pytest

from sprig import (
    AmbiguousComponentError,
    Autowired,
    ComponentCreationError,
    ComponentDescriptor,
    DependencyRef,
    NoSuchComponentError,
    Qualifier,
    TypeMismatchError,
    autowired,
    component,
    post_construct,
)


class Clock:
    pass


class Repository:
    def __init__(self, clock: Clock):
        self.clock = clock


class Service:
    def __init__(self, repository: Repository):
        self.repository = repository


class Greeter:
    def __init__(self, clock):
        self.clock = clock


class Storage:
    pass


class DiskStorage(Storage):
    pass


class CloudStorage(Storage):
    pass


class Uploader:
    def __init__(self, storage: Annotated[Storage, Qualifier("cloudStorage")]):
        self.storage = storage


class Backup:
    def __init__(self, storage: Storage):
        self.storage = storage


class Audit:
    pass


class WithOptionalDefault:
    def __init__(self, audit: Optional[Audit] = None, retries: int = 3):
        self.audit = audit
        self.retries = retries


class WithOptionalNoDefault:
    def __init__(self, audit: Optional[Audit]):
        self.audit = audit


def test_shared_component_is_cached(make_container):
    c = make_container(Clock)
    assert c.get_component("clock") is c.get_component("clock")
    assert c.get_component(Clock) is c.get_component("clock")


def test_per_request_component_is_new_each_time(make_container):
    c = make_container(refresh=False)
    c.register(Clock, scope="per_request")
    c.refresh()

    first = c.get_component("clock")
    second = c.get_component("clock")
    assert first is not second
    assert isinstance(first, Clock) and isinstance(second, Clock)
    assert c.is_per_request("clock") and not c.is_shared("clock")


def test_constructor_dependencies_resolved_by_type(make_container):
    c = make_container(Clock, Repository, Service)

    service = c.get_component(Service)
    assert service.repository is c.get_component("repository")
    assert service.repository.clock is c.get_component("clock")


def test_unannotated_parameter_resolves_by_name(make_container):
    c = make_container(Clock, Greeter)
    assert c.get_component("greeter").clock is c.get_component("clock")


def test_qualifier_selects_component_by_name(make_container):
    c = make_container(DiskStorage, CloudStorage, Uploader)
    assert c.get_component("uploader").storage is c.get_component("cloudStorage")


def test_get_by_type_with_two_candidates_is_ambiguous(make_container):
    c = make_container(DiskStorage, CloudStorage)

    with pytest.raises(AmbiguousComponentError) as exc:
        c.get_component(Storage)

    assert exc.value.count == 2
    assert exc.value.candidates == ["diskStorage", "cloudStorage"]
    assert isinstance(exc.value, NoSuchComponentError)


def test_ambiguous_dependency_is_a_creation_error(make_container):
    c = make_container(DiskStorage, CloudStorage, Backup, eager=False)

    with pytest.raises(ComponentCreationError) as exc:
        c.get_component("backup")

    assert exc.value.name == "backup"
    assert isinstance(exc.value.cause, AmbiguousComponentError)
    assert isinstance(exc.value.__cause__, AmbiguousComponentError)


def test_unknown_name_and_type(make_container):
    c = make_container(Clock)

    with pytest.raises(NoSuchComponentError) as by_name:
        c.get_component("nope")
    assert by_name.value.name == "nope"

    with pytest.raises(NoSuchComponentError) as by_type:
        c.get_component(Audit)
    assert by_type.value.component_type is Audit
    assert "Audit" in str(by_type.value)


def test_missing_required_dependency_fails_refresh(make_container):
    c = make_container(Repository, Service, refresh=False)

    with pytest.raises(ComponentCreationError) as exc:
        c.refresh()

    # the innermost failing component is reported
    assert exc.value.name == "repository"
    assert isinstance(exc.value.cause, NoSuchComponentError)
    assert exc.value.cause.component_type is Clock
    assert not c.is_active


def test_optional_constructor_dependency_with_default_is_omitted(make_container):
    c = make_container(WithOptionalDefault)
    obj = c.get_component("withOptionalDefault")
    assert obj.audit is None
    assert obj.retries == 3


def test_optional_constructor_dependency_without_default_is_none(make_container):
    c = make_container(WithOptionalNoDefault)
    assert c.get_component("withOptionalNoDefault").audit is None


def test_optional_dependency_is_injected_when_present(make_container):
    c = make_container(Audit, WithOptionalDefault)
    assert c.get_component("withOptionalDefault").audit is c.get_component("audit")


def test_field_injection():
    class Mailer:
        pass

    class Notifier:
        mailer: Mailer = Autowired()
        audit: Audit = Autowired(required=False)
        fallback = Autowired("mailer")

    from sprig import Container

    c = Container()
    c.register(Mailer)
    c.register(Notifier)
    c.refresh()

    notifier = c.get_component("notifier")
    assert notifier.mailer is c.get_component("mailer")
    assert notifier.fallback is c.get_component("mailer")
    assert notifier.audit is None
    c.close()


def test_required_field_missing_is_a_creation_error():
    class Mailer:
        pass

    class Notifier:
        mailer: Mailer = Autowired()

    from sprig import Container

    c = Container()
    c.register(Notifier)

    with pytest.raises(ComponentCreationError) as exc:
        c.refresh()
    assert exc.value.name == "notifier"
    assert isinstance(exc.value.cause, NoSuchComponentError)


def test_optional_field_keeps_its_default():
    class Mailer:
        pass

    sentinel = object()

    class Notifier:
        mailer: Mailer = Autowired(required=False, default=sentinel)

    from sprig import Container

    c = Container()
    c.register(Notifier)
    c.refresh()
    assert c.get_component("notifier").mailer is sentinel


def test_setter_injection():
    calls = []

    class Mailer:
        pass

    class Notifier:
        @autowired
        def use(self, mailer: Mailer, clock: Clock):
            calls.append((mailer, clock))

        @autowired(required=False)
        def maybe(self, audit: Audit):
            calls.append(("audit", audit))

    from sprig import Container

    c = Container()
    c.register(Mailer)
    c.register(Clock)
    c.register(Notifier)
    c.refresh()

    assert calls == [(c.get_component("mailer"), c.get_component("clock"))]


def test_post_construct_runs_after_injection():
    seen = []

    class Mailer:
        pass

    @component
    class Notifier:
        mailer: Mailer = Autowired()

        def __init__(self):
            seen.append("init")

        @post_construct
        def ready(self):
            seen.append(("ready", self.mailer is not None))

    from sprig import Container

    c = Container()
    c.register(Mailer)
    c.register(Notifier)
    c.refresh()
    assert seen == ["init", ("ready", True)]


def test_post_construct_failure_is_a_creation_error(make_container):
    @component
    class Broken:
        @post_construct
        def ready(self):
            raise RuntimeError("not today")

    c = make_container(Broken, eager=False)
    with pytest.raises(ComponentCreationError, match="not today") as exc:
        c.get_component("broken")
    assert isinstance(exc.value.cause, RuntimeError)


def test_constructor_failure_is_wrapped(make_container):
    class Exploding:
        def __init__(self):
            raise ValueError("kaboom")

    c = make_container(Exploding, eager=False)
    with pytest.raises(ComponentCreationError) as exc:
        c.get_component("exploding")
    assert exc.value.name == "exploding"
    assert isinstance(exc.value.__cause__, ValueError)


def test_lazy_shared_component_is_not_created_on_refresh(make_container):
    created = []

    @component(lazy=True)
    class Heavy:
        def __init__(self):
            created.append(self)

    c = make_container(Heavy)
    assert created == []
    heavy = c.get_component("heavy")
    assert created == [heavy]
    assert c.get_component("heavy") is heavy


def test_eager_refresh_creates_shared_components(make_container):
    created = []

    class Eager:
        def __init__(self):
            created.append(self)

    make_container(Eager)
    assert len(created) == 1


def test_type_mismatch(make_container):
    c = make_container(Clock, Audit)

    assert c.get_component("clock", Clock) is c.get_component("clock")
    with pytest.raises(TypeMismatchError) as exc:
        c.get_component("clock", Audit)
    assert exc.value.expected_type is Audit
    assert exc.value.actual_type is Clock


def test_create_component_is_never_cached(make_container):
    c = make_container(Clock)

    a = c.create_component(Repository)
    b = c.create_component(
        ComponentDescriptor(Repository, constructor_plan=(DependencyRef("clock", component_type=Clock),))
    )
    assert a is not b
    assert a.clock is c.get_component("clock")
    assert not c.has_component("repository")


def test_register_descriptor_by_hand(make_container):
    c = make_container(refresh=False)
    c.register_descriptor("theClock", ComponentDescriptor(Clock))
    c.refresh()

    assert c.has_component("theClock")
    assert c.type_of("theClock") is Clock
    assert c.descriptor_of("theClock").name == "theClock"
    assert c.all_names() == ["theClock"]
    assert c.descriptor_count() == 1


def test_queries_on_unknown_names(make_container):
    c = make_container(Clock)

    assert not c.has_component("nope")
    assert c.type_of("nope") is None
    assert c.descriptor_of("nope") is None
    with pytest.raises(NoSuchComponentError):
        c.is_shared("nope")
    with pytest.raises(NoSuchComponentError):
        c.is_per_request("nope")


def test_component_marker_sets_name_and_scope(make_container):
    @component(name="wallClock", scope="prototype")
    class MarkedClock:
        pass

    c = make_container(MarkedClock)
    assert c.has_component("wallClock")
    assert c.is_per_request("wallClock")
