from __future__ import annotations

import types
from typing import Annotated, Optional

from sprig import Autowired, Container, Qualifier, autowired, component, init


@component
class Config:
    def __init__(self):
        self.url = "sqlite://"


@component
class Database:
    def __init__(self, config: Config):
        self.config = config


@component
class Cache:
    pass


@component(name="fastCache")
class FastCache(Cache):
    pass


class Metrics:
    pass


@component
class Repository:
    db: Database = Autowired()
    metrics: Optional[Metrics] = Autowired(required=False)

    def __init__(self, primary: Annotated[Cache, Qualifier("fastCache")], missing: Optional[Metrics] = None):
        self.primary = primary
        self.missing = missing

    @autowired
    def attach(self, config: Config):
        self.attached = config


def test_string_annotations_are_resolved():
    mod = types.ModuleType("sprig_future_annotations")
    for cls in (Config, Database, Cache, FastCache):
        setattr(mod, cls.__name__, cls)
    container = init(mod)

    db = container.get_component(Database)
    assert db.config is container.get_component(Config)
    container.close()


def test_members_with_postponed_annotations():
    c = Container()
    for cls in (Config, Database, Cache, FastCache, Repository):
        c.register(cls)
    c.refresh()

    repo = c.get_component(Repository)
    assert repo.db is c.get_component(Database)
    assert repo.primary is c.get_component("fastCache")
    assert repo.attached is c.get_component(Config)
    assert repo.missing is None
    assert repo.metrics is None
    c.close()
