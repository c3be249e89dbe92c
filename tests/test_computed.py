"""Tests for Computed values."""

from vmx import Observable, Computed, computed, autorun, reaction, transaction


class TestComputed:
    def test_lazy_eval(self):
        call_count = 0
        o = Observable(5)

        def fn():
            nonlocal call_count
            call_count += 1
            return o.get() * 2

        c = Computed(fn)
        assert call_count == 0  # not yet evaluated
        assert c.get() == 10
        assert call_count == 1

    def test_caches_until_dirty(self):
        call_count = 0
        o = Observable(5)

        def fn():
            nonlocal call_count
            call_count += 1
            return o.get() * 2

        c = Computed(fn)
        c.get()
        c.get()
        assert call_count == 1  # cached, no re-eval

    def test_invalidation(self):
        o = Observable(5)
        c = Computed(lambda: o.get() * 2)
        assert c.get() == 10
        o.set(10)
        assert c.get() == 20

    def test_dependency_tracking(self):
        """Computed tracks dependencies dynamically."""
        flag = Observable(True)
        a = Observable(1)
        b = Observable(2)

        c = Computed(lambda: a.get() if flag.get() else b.get())
        assert c.get() == 1

        flag.set(False)
        assert c.get() == 2  # now depends on b, not a

    def test_chained_computed(self):
        o = Observable(3)
        doubled = Computed(lambda: o.get() * 2)
        quadrupled = Computed(lambda: doubled.get() * 2)
        assert quadrupled.get() == 12
        o.set(5)
        assert quadrupled.get() == 20

    def test_dispose(self):
        o = Observable(5)
        c = Computed(lambda: o.get() * 2)
        c.get()
        c.dispose()
        assert o.observer_count == 0
        o.set(10)
        # get() re-evaluates from scratch since dispose cleared everything
        assert c.get() == 20

    def test_propagates_to_reactions(self):
        """Computed invalidation propagates to downstream reactions."""
        o = Observable(5)
        c = Computed(lambda: o.get() * 2)
        log = []
        autorun(lambda: log.append(c.get()))
        assert log == [10]
        o.set(10)
        assert log == [10, 20]


class TestStaticSources:
    def test_only_declared_sources_invalidate(self):
        declared = Observable(1)
        undeclared = Observable(100)
        c = Computed(lambda: declared.get() + undeclared.get(), sources=[declared])
        assert c.get() == 101

        undeclared.set(200)
        assert c.get() == 101  # not a declared source, cache kept

        declared.set(2)
        assert c.get() == 202

    def test_rank_is_above_sources(self):
        a = Observable(1)
        first = Computed(lambda: a.get(), sources=[a])
        second = Computed(lambda: first.get(), sources=[first])
        assert first._rank == 1
        assert second._rank == 2


class TestGlitchFree:
    def test_diamond_never_sees_stale_value(self):
        """A listener reading both a source and a computed of it sees them agree."""
        a = Observable(1)
        doubled = Computed(lambda: a.get() * 2)
        seen = []
        autorun(lambda: seen.append((a.get(), doubled.get())))
        a.set(2)
        a.set(3)
        assert seen == [(1, 2), (2, 4), (3, 6)]

    def test_two_sources_one_batch_one_notification(self):
        first = Observable("Ada")
        last = Observable("Lovelace")
        full = Computed(lambda: f"{first.get()} {last.get()}")
        effects = []
        reaction(full.get, effects.append)

        with transaction():
            first.set("Grace")
            last.set("Hopper")

        assert effects == ["Grace Hopper"]

    def test_listeners_run_in_dependency_order(self):
        a = Observable(1)
        b = Computed(lambda: a.get() + 1)
        c = Computed(lambda: b.get() + 1)
        order = []
        # Registered deepest-first so creation order alone would be wrong.
        reaction(c.get, lambda v: order.append("c"))
        reaction(b.get, lambda v: order.append("b"))
        reaction(a.get, lambda v: order.append("a"))

        a.set(2)
        assert order == ["a", "b", "c"]


class TestComputedDecorator:
    def test_decorator_factory(self):
        o = Observable(7)

        @computed
        def doubled():
            return o.get() * 2

        assert doubled.get() == 14
        o.set(3)
        assert doubled.get() == 6
