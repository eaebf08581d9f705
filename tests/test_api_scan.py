import sys
import types

import pytest

from sprig import (
    ContainerSettings,
    InvalidRegistrationError,
    ModuleScanner,
    PassThroughHook,
    after_returning,
    aspect,
    component,
    init,
)


@component
class Clock:
    pass


@component(scope="per_request")
class Ticket:
    def __init__(self, clock: Clock):
        self.clock = clock


class NotAComponent:
    pass


def _module(name, **members):
    mod = types.ModuleType(name)
    for key, value in members.items():
        setattr(mod, key, value)
    return mod


def test_scanner_finds_marked_classes_only():
    mod = _module("sprig_scan_basic", Clock=Clock, Ticket=Ticket, NotAComponent=NotAComponent, VALUE=3)
    scanner = ModuleScanner([mod])

    assert scanner.component_types() == [Clock, Ticket]
    names = [d.name for d in scanner.descriptors()]
    assert names == ["clock", "ticket"]


def test_scanner_deduplicates_across_modules():
    first = _module("sprig_scan_first", Clock=Clock)
    second = _module("sprig_scan_second", Clock=Clock, Ticket=Ticket)

    assert ModuleScanner([first, second]).component_types() == [Clock, Ticket]


def test_scanner_accepts_module_names(monkeypatch):
    mod = _module("sprig_scan_named", Clock=Clock)
    monkeypatch.setitem(sys.modules, "sprig_scan_named", mod)

    assert ModuleScanner("sprig_scan_named").component_types() == [Clock]


def test_init_returns_refreshed_container():
    mod = _module("sprig_scan_init", Clock=Clock, Ticket=Ticket)
    container = init(mod)

    assert container.is_active
    ticket = container.get_component(Ticket)
    assert ticket.clock is container.get_component("clock")
    assert container.is_per_request("ticket")
    assert ticket is not container.get_component(Ticket)
    container.close()


def test_init_with_settings_and_hooks():
    seen = []

    class Tagging(PassThroughHook):
        def after_completion(self, instance, name):
            seen.append(name)
            return instance

    mod = _module("sprig_scan_hooks", Clock=Clock, Ticket=Ticket)
    container = init([mod], settings=ContainerSettings(eager_init=False), hooks=[Tagging()])

    assert seen == []
    container.get_component("ticket")
    assert seen == ["clock", "ticket"]
    container.close()


def test_init_wires_aspects():
    calls = []

    @aspect
    class Counting:
        @after_returning("*Clock", returning="value")
        def count(self, value):
            calls.append(value)

    @component
    class Talking:
        def speak(self):
            return "hi"

    @component
    class TalkingClock(Talking):
        pass

    mod = _module("sprig_scan_aspects", Counting=Counting, TalkingClock=TalkingClock)
    container = init(mod)

    assert container.get_component("talkingClock").speak() == "hi"
    assert calls == ["hi"]
    container.close()


def test_duplicate_names_across_scanned_classes():
    @component(name="clock")
    class OtherClock:
        pass

    mod = _module("sprig_scan_dupes", Clock=Clock, OtherClock=OtherClock)
    with pytest.raises(InvalidRegistrationError):
        init(mod)
