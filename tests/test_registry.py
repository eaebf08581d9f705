import pytest

from sprig.descriptor import ComponentDescriptor, SharingPolicy, default_component_name
from sprig.exceptions import InvalidRegistrationError
from sprig.registry import DescriptorRegistry


class Repository:
    pass


class SqlRepository(Repository):
    pass


class MemoryRepository(Repository):
    pass


class Clock:
    pass


def test_register_names_unnamed_descriptor():
    registry = DescriptorRegistry()
    stored = registry.register("repo", ComponentDescriptor(Repository))

    assert stored.name == "repo"
    assert registry.get("repo") is stored
    assert registry.contains("repo")
    assert "repo" in registry
    assert registry.count() == 1
    assert len(registry) == 1


def test_get_unknown_returns_none():
    assert DescriptorRegistry().get("missing") is None


def test_duplicate_registration_keeps_first():
    registry = DescriptorRegistry()
    registry.register("repo", ComponentDescriptor(SqlRepository))

    with pytest.raises(InvalidRegistrationError, match="already registered") as exc:
        registry.register("repo", ComponentDescriptor(MemoryRepository))

    assert exc.value.name == "repo"
    assert registry.get("repo").type_identity is SqlRepository
    assert registry.count() == 1


@pytest.mark.parametrize("name", ["", "   ", None])
def test_register_rejects_empty_name(name):
    with pytest.raises(InvalidRegistrationError):
        DescriptorRegistry().register(name, ComponentDescriptor(Clock))


def test_register_rejects_missing_descriptor():
    with pytest.raises(InvalidRegistrationError):
        DescriptorRegistry().register("clock", None)


def test_register_rejects_foreign_object():
    with pytest.raises(InvalidRegistrationError):
        DescriptorRegistry().register("clock", Clock)


def test_register_rejects_mismatched_name():
    with pytest.raises(InvalidRegistrationError, match="registered as 'b'"):
        DescriptorRegistry().register("b", ComponentDescriptor(Clock, name="a"))


def test_names_preserve_registration_order():
    registry = DescriptorRegistry()
    for name in ["zeta", "alpha", "mid"]:
        registry.register(name, ComponentDescriptor(Clock))

    assert registry.names() == ["zeta", "alpha", "mid"]
    assert [d.name for d in registry.descriptors()] == ["zeta", "alpha", "mid"]


def test_names_for_type_matches_subclasses_in_order():
    registry = DescriptorRegistry()
    registry.register("sql", ComponentDescriptor(SqlRepository))
    registry.register("clock", ComponentDescriptor(Clock))
    registry.register("memory", ComponentDescriptor(MemoryRepository))

    assert registry.names_for_type(Repository) == ["sql", "memory"]
    assert registry.names_for_type(SqlRepository) == ["sql"]
    assert registry.names_for_type(Clock) == ["clock"]
    assert registry.names_for_type(int) == []


def test_names_for_type_ignores_non_class_factories():
    registry = DescriptorRegistry()
    registry.register("factory", ComponentDescriptor(lambda: Clock()))

    assert registry.names_for_type(Clock) == []


def test_remove_and_clear():
    registry = DescriptorRegistry()
    registry.register("a", ComponentDescriptor(Clock))
    registry.register("b", ComponentDescriptor(Clock))

    removed = registry.remove("a")
    assert removed.name == "a"
    assert registry.remove("a") is None
    assert registry.names() == ["b"]

    registry.clear()
    assert registry.count() == 0


def test_sharing_policy_aliases():
    assert ComponentDescriptor(Clock, sharing_policy="singleton").is_shared
    assert ComponentDescriptor(Clock, sharing_policy="prototype").is_per_request
    d = ComponentDescriptor(Clock, sharing_policy=SharingPolicy.PER_REQUEST)
    assert d.is_per_request and not d.is_shared


def test_unknown_sharing_policy_is_rejected():
    with pytest.raises(InvalidRegistrationError, match="Unknown sharing policy"):
        ComponentDescriptor(Clock, sharing_policy="request-ish")


def test_descriptor_requires_callable_type():
    with pytest.raises(InvalidRegistrationError):
        ComponentDescriptor("not a type")


def test_default_component_name():
    assert default_component_name(SqlRepository) == "sqlRepository"
    assert default_component_name(Clock) == "clock"
