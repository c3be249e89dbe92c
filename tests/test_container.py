"""Tests for the dependency resolution container."""

import logging

import pytest

from vmx import (
    CircularDependencyError,
    Container,
    ContainerDisposedError,
    CyclicComputedDependencyError,
    Lazy,
    Lifetime,
    UnregisteredTokenError,
    computed_from,
    inject,
    observe,
    singleton,
    transient,
)
from vmx.properties import is_materialized


class Clock:
    def __init__(self):
        self.disposed = False

    def dispose(self):
        self.disposed = True


@inject(Clock)
class Scheduler:
    def __init__(self, clock):
        self.clock = clock


@singleton
@inject(Clock, Scheduler)
class Calendar:
    def __init__(self, clock, scheduler):
        self.clock = clock
        self.scheduler = scheduler


@pytest.fixture
def container():
    c = Container()
    yield c
    c.dispose()


class TestLifetimes:
    def test_singleton_is_shared(self, container):
        container.register(Clock, lifetime=Lifetime.SINGLETON)
        assert container.resolve(Clock) is container.resolve(Clock)

    def test_transient_is_fresh(self, container):
        container.register(Clock)
        a = container.resolve(Clock)
        b = container.resolve(Clock)
        assert a is not b
        assert type(a) is type(b)
        assert vars(a) == vars(b)

    def test_lazy_factory_yields_producer(self, container):
        container.register(Clock, lifetime=Lifetime.LAZY_FACTORY)
        produce = container.resolve(Clock)
        assert callable(produce)
        first, second = produce(), produce()
        assert isinstance(first, Clock)
        assert first is not second

    def test_lifetime_accepts_string(self, container):
        entry = container.register(Clock, lifetime="singleton")
        assert entry.lifetime is Lifetime.SINGLETON

    def test_register_class_reads_markers(self, container):
        container.register_class(Clock)
        container.register_class(Scheduler)
        entry = container.register_class(Calendar)
        assert entry.lifetime is Lifetime.SINGLETON
        assert entry.dependencies == (Clock, Scheduler)
        assert container.resolve(Calendar) is container.resolve(Calendar)

    def test_transient_marker(self, container):
        @transient
        class Page:
            pass

        assert container.register_class(Page).lifetime is Lifetime.TRANSIENT

    def test_register_instance(self, container):
        clock = Clock()
        container.register_instance(Clock, clock)
        assert container.resolve(Clock) is clock


class TestResolution:
    def test_dependencies_resolved_in_order(self, container):
        container.register(Clock, lifetime=Lifetime.SINGLETON)
        container.register_class(Scheduler)
        container.register_class(Calendar)
        calendar = container.resolve(Calendar)
        assert calendar.clock is container.resolve(Clock)
        assert calendar.scheduler.clock is calendar.clock

    def test_explicit_dependencies_and_factory(self, container):
        container.register("greeting", lambda: "hello", Lifetime.SINGLETON)
        container.register("message", lambda g: g + " world", dependencies=["greeting"])
        assert container.resolve("message") == "hello world"

    def test_unregistered_token(self, container):
        with pytest.raises(UnregisteredTokenError) as excinfo:
            container.resolve(Clock)
        assert excinfo.value.token is Clock
        assert isinstance(excinfo.value, LookupError)

    def test_unregistered_dependency(self, container):
        container.register_class(Scheduler)
        with pytest.raises(UnregisteredTokenError):
            container.resolve(Scheduler)

    def test_factory_returning_none(self, container, caplog):
        container.register("nothing", lambda: None)
        with caplog.at_level(logging.DEBUG, logger="vmx.container"):
            with pytest.raises(ValueError, match="returned None"):
                container.resolve("nothing")
        assert not [r for r in caplog.records if r.levelno >= logging.ERROR]

    def test_container_resolves_itself(self, container):
        assert container.resolve(Container) is container

    def test_reregistration_replaces_and_drops_cache(self, container):
        container.register(Clock, lifetime=Lifetime.SINGLETON)
        first = container.resolve(Clock)
        replacement = Clock()
        container.register(Clock, lambda: replacement, Lifetime.SINGLETON)
        assert container.resolve(Clock) is replacement
        assert container.resolve(Clock) is not first

    def test_registration_is_logged(self, container, caplog):
        with caplog.at_level(logging.DEBUG, logger="vmx.container"):
            container.register(Clock)
        assert "Registered Clock" in caplog.text


class TestCircularDependencies:
    def test_cycle_detected(self, container):
        container.register("a", lambda b: b, dependencies=["b"])
        container.register("b", lambda a: a, dependencies=["a"])
        with pytest.raises(CircularDependencyError) as excinfo:
            container.resolve("a")
        assert excinfo.value.chain == ("a", "b", "a")
        assert "a -> b -> a" in str(excinfo.value)

    def test_self_dependency(self, container):
        container.register("loop", lambda x: x, dependencies=["loop"])
        with pytest.raises(CircularDependencyError):
            container.resolve("loop")

    def test_back_to_back_resolutions_do_not_collide(self, container):
        container.register_class(Clock)
        container.register_class(Scheduler)
        assert container.resolve(Scheduler) is not container.resolve(Scheduler)

    def test_shared_dependency_is_not_a_cycle(self, container):
        container.register_class(Clock)
        container.register_class(Scheduler)
        container.register_class(Calendar)
        # Clock appears twice in Calendar's tree but never inside its own chain.
        calendar = container.resolve(Calendar)
        assert calendar.clock is not calendar.scheduler.clock

    def test_lazy_breaks_cycle(self, container):
        @inject(Lazy.of("child"))
        class Parent:
            def __init__(self, make_child):
                self.make_child = make_child

        @inject("parent")
        class Child:
            def __init__(self, parent):
                self.parent = parent

        container.register("parent", Parent)
        container.register("child", Child)
        parent = container.resolve("parent")
        child = parent.make_child()
        assert isinstance(child.parent, Parent)

    def test_producer_called_during_construction(self, container):
        @inject(Lazy.of("child"))
        class Eager:
            def __init__(self, make_child):
                self.child = make_child()

        @inject("parent")
        class Child:
            def __init__(self, parent):
                self.parent = parent

        container.register("parent", Eager)
        container.register("child", Child)
        with pytest.raises(CircularDependencyError) as excinfo:
            container.resolve("parent")
        assert excinfo.value.chain == ("parent", "child", "parent")

        # The failed chain does not leak into the next resolution.
        container.register("child", lambda: "leaf")
        assert container.resolve("parent").child == "leaf"

    def test_lazy_factory_called_during_construction(self, container):
        container.register("maker", lambda loop: loop, Lifetime.LAZY_FACTORY, ["loop"])
        container.register("loop", lambda make: make(), dependencies=["maker"])
        with pytest.raises(CircularDependencyError) as excinfo:
            container.resolve("loop")
        assert excinfo.value.chain == ("loop", "maker", "loop")


class TestLazy:
    def test_lazy_lookup_is_eager(self, container):
        with pytest.raises(UnregisteredTokenError):
            container.resolve(Lazy.of(Clock))

    def test_lazy_defers_construction(self, container):
        built = []
        container.register(Clock, lambda: built.append(1) or Clock())
        produce = container.resolve(Lazy.of(Clock))
        assert built == []
        produce()
        produce()
        assert built == [1, 1]

    def test_lazy_respects_singleton(self, container):
        container.register(Clock, lifetime=Lifetime.SINGLETON)
        produce = container.resolve(Lazy.of(Clock))
        assert produce() is produce()

    def test_lazy_equality(self):
        assert Lazy.of(Clock) == Lazy.of(Clock)
        assert repr(Lazy.of(Clock)) == "Lazy.of(Clock)"


class TestMaterializationOnConstruction:
    def test_resolved_instance_is_materialized(self, container):
        @observe
        class Page:
            title = "Home"

        container.register(Page)
        assert is_materialized(container.resolve(Page))

    def test_cyclic_computed_is_fatal_to_construction(self, container):
        class Broken:
            @computed_from("b")
            def a(self):
                return 1

            @computed_from("a")
            def b(self):
                return 2

        container.register(Broken, lifetime=Lifetime.SINGLETON)
        with pytest.raises(CyclicComputedDependencyError):
            container.resolve(Broken)
        # Nothing half-built was cached.
        with pytest.raises(CyclicComputedDependencyError):
            container.resolve(Broken)


class TestDispose:
    def test_disposes_singletons(self):
        container = Container()
        container.register(Clock, lifetime=Lifetime.SINGLETON)
        clock = container.resolve(Clock)
        container.dispose()
        assert clock.disposed
        assert container.disposed

    def test_resolve_after_dispose(self):
        container = Container()
        container.dispose()
        with pytest.raises(ContainerDisposedError):
            container.resolve(Container)

    def test_context_manager(self):
        with Container() as container:
            container.register(Clock, lifetime=Lifetime.SINGLETON)
            clock = container.resolve(Clock)
        assert clock.disposed

    def test_dispose_continues_after_failure(self):
        class Fragile:
            def dispose(self):
                raise RuntimeError("fragile")

        container = Container()
        container.register(Clock, lifetime=Lifetime.SINGLETON)
        container.register(Fragile, lifetime=Lifetime.SINGLETON)
        clock = container.resolve(Clock)
        container.resolve(Fragile)
        with pytest.raises(RuntimeError, match="fragile"):
            container.dispose()
        assert clock.disposed
