"""Tests for the directed graph map."""

import uuid

import pytest
import pytest_asyncio

from edgemap import DirectedGraphMap, EncodingError, LMDBStore


@pytest_asyncio.fixture
async def graph(tmp_path):
    g = DirectedGraphMap(location=tmp_path / "graph")
    await g.ready
    yield g
    await g.close()


def node_ids(count: int) -> list[str]:
    return [str(uuid.uuid4()) for _ in range(count)]


class TestDocumentation:
    @pytest.mark.asyncio
    async def test_readme_walkthrough(self):
        graph = DirectedGraphMap([("A", "B")])
        await graph.ready
        assert await graph.has_edge("A", "B") is True

        await graph.add_edge("B", "C")
        assert await graph.has_edge("B", "C") is True
        assert await graph.get_targets("A") == {"B"}
        assert await graph.get_targets("B") == {"C"}
        assert await graph.get_targets("C") == set()
        assert await graph.get_sources("A") == set()
        assert await graph.get_sources("B") == {"A"}
        assert await graph.get_sources("C") == {"B"}

        await graph.remove_source("A")
        assert await graph.has_edge("A", "B") is False
        assert await graph.get_targets("A") == set()

        await graph.remove_target("C")
        assert await graph.get_targets("B") == set()
        assert await graph.has_edge("B", "C") is False

        await graph.add_edge("A", "B")
        assert await graph.has_edge("A", "B") is True
        await graph.remove_edge("A", "B")
        assert await graph.has_edge("A", "B") is False
        await graph.close()


class TestAddRemove:
    @pytest.mark.asyncio
    async def test_add_edge(self, graph):
        a, b = node_ids(2)
        assert await graph.has_edge(a, b) is False

        await graph.add_edge(a, b)
        assert await graph.has_edge(a, b) is True
        assert await graph.has_edge(b, a) is False
        assert await graph.get_targets(a) == {b}
        assert await graph.get_targets(b) == set()
        assert await graph.get_sources(a) == set()
        assert await graph.get_sources(b) == {a}

    @pytest.mark.asyncio
    async def test_remove_edge(self, graph):
        a, b = node_ids(2)
        await graph.add_edge(a, b)
        await graph.remove_edge(a, b)

        assert await graph.has_edge(a, b) is False
        assert await graph.get_targets(a) == set()
        assert await graph.get_sources(b) == set()
        assert await graph.has_source(a) is False
        assert await graph.has_target(b) is False
        assert await graph.sources() == set()
        assert await graph.targets() == set()

    @pytest.mark.asyncio
    async def test_remove_one_of_two_targets(self, graph):
        a, b1, b2 = node_ids(3)
        await graph.add_edge(a, b1)
        await graph.add_edge(a, b2)
        assert await graph.get_targets(a) == {b1, b2}

        await graph.remove_edge(a, b2)
        assert await graph.has_edge(a, b1) is True
        assert await graph.has_edge(a, b2) is False
        assert await graph.get_targets(a) == {b1}
        assert await graph.get_sources(b1) == {a}
        assert await graph.get_sources(b2) == set()
        assert await graph.has_source(a) is True

    @pytest.mark.asyncio
    async def test_add_edge_idempotent(self, graph):
        await graph.add_edge("a", "b")
        await graph.add_edge("a", "b")
        assert await graph.size() == 1
        assert await graph.edges() == [("a", "b")]

    @pytest.mark.asyncio
    async def test_remove_edge_idempotent(self, graph):
        await graph.add_edge("a", "b")
        await graph.add_edge("a", "c")
        await graph.remove_edge("a", "b")
        await graph.remove_edge("a", "b")
        assert await graph.edges() == [("a", "c")]

    @pytest.mark.asyncio
    async def test_self_loop(self, graph):
        await graph.add_edge("x", "x")
        assert await graph.get_targets("x") == {"x"}
        assert await graph.get_sources("x") == {"x"}
        await graph.remove_source("x")
        assert await graph.has_target("x") is False

    @pytest.mark.asyncio
    async def test_empty_identifier(self, graph):
        await graph.add_edge("", "b")
        assert await graph.has_edge("", "b") is True
        assert await graph.get_sources("b") == {""}


class TestRemoveSourceTarget:
    @pytest.mark.asyncio
    async def test_remove_source(self, graph):
        a, b, c = node_ids(3)
        await graph.add_edge(a, b)
        await graph.add_edge(a, c)
        await graph.add_edge(b, c)

        await graph.remove_source(a)
        assert await graph.get_targets(a) == set()
        assert await graph.has_source(a) is False
        assert await graph.get_sources(b) == set()
        assert await graph.get_sources(c) == {b}
        assert await graph.has_edge(b, c) is True

    @pytest.mark.asyncio
    async def test_remove_target(self, graph):
        a, b, c = node_ids(3)
        await graph.add_edge(a, c)
        await graph.add_edge(b, c)
        await graph.add_edge(a, b)

        await graph.remove_target(c)
        assert await graph.get_sources(c) == set()
        assert await graph.has_target(c) is False
        assert await graph.get_targets(a) == {b}
        assert await graph.get_targets(b) == set()
        assert await graph.has_edge(a, b) is True

    @pytest.mark.asyncio
    async def test_remove_source_does_not_touch_prefix_sibling(self, graph):
        await graph.add_edge("ab", "x")
        await graph.add_edge("abc", "y")
        await graph.add_edge("a", "z")

        await graph.remove_source("ab")
        assert await graph.get_targets("abc") == {"y"}
        assert await graph.get_targets("a") == {"z"}
        assert await graph.has_source("ab") is False

    @pytest.mark.asyncio
    async def test_get_targets_prefix_sibling(self, graph):
        await graph.add_edge("ab", "x")
        await graph.add_edge("abc", "y")
        await graph.add_edge("ab", "z")
        assert await graph.get_targets("ab") == {"x", "z"}
        assert await graph.get_sources("y") == {"abc"}

    @pytest.mark.asyncio
    async def test_remove_nonexistent(self, graph):
        a, b = node_ids(2)
        await graph.add_edge("keep", "me")

        await graph.remove_edge(a, b)
        await graph.remove_source(a)
        await graph.remove_target(b)

        assert await graph.has_edge(a, b) is False
        assert await graph.edges() == [("keep", "me")]


class TestCycle:
    @pytest.mark.asyncio
    async def test_four_cycle(self, graph):
        a, b, c, d = node_ids(4)
        for source, target in [(a, b), (b, c), (c, d), (d, a)]:
            await graph.add_edge(source, target)

        assert await graph.get_targets(a) == {b}
        assert await graph.get_targets(d) == {a}
        assert await graph.get_sources(a) == {d}
        assert await graph.get_sources(b) == {a}

        await graph.remove_edge(a, b)
        assert await graph.has_edge(a, b) is False
        assert await graph.has_edge(b, c) is True
        assert await graph.has_edge(c, d) is True
        assert await graph.has_edge(d, a) is True
        assert await graph.get_targets(a) == set()
        assert await graph.get_sources(a) == {d}
        assert await graph.get_sources(b) == set()
        assert await graph.get_sources(c) == {b}
        assert await graph.get_sources(d) == {c}

        await graph.remove_source(b)
        assert await graph.has_edge(b, c) is False
        assert await graph.get_sources(c) == set()

        await graph.remove_target(d)
        assert await graph.has_edge(c, d) is False
        assert await graph.get_targets(c) == set()

        await graph.remove_edge(d, a)
        assert await graph.size() == 0
        assert await graph.sources() == set()
        assert await graph.targets() == set()


class TestHasSourceTarget:
    @pytest.mark.asyncio
    async def test_has_source_and_target(self, graph):
        await graph.add_edge("a", "b")
        assert await graph.has_source("a") is True
        assert await graph.has_source("b") is False
        assert await graph.has_target("b") is True
        assert await graph.has_target("a") is False

    @pytest.mark.asyncio
    async def test_has_source_ignores_prefix_sibling(self, graph):
        await graph.add_edge("abc", "x")
        assert await graph.has_source("ab") is False
        assert await graph.has_source("abc") is True


class TestAggregates:
    @pytest.mark.asyncio
    async def test_edges_sources_targets(self):
        a, b, c = node_ids(3)
        graph = DirectedGraphMap([(a, b), (b, c)])
        await graph.ready

        assert sorted(await graph.edges()) == sorted([(a, b), (b, c)])
        assert await graph.sources() == {a, b}
        assert await graph.targets() == {b, c}
        assert await graph.size() == 2

        await graph.remove_edge(a, b)
        assert await graph.edges() == [(b, c)]
        assert await graph.sources() == {b}
        assert await graph.targets() == {c}

        await graph.remove_edge(b, c)
        assert await graph.edges() == []
        assert await graph.size() == 0
        await graph.close()

    @pytest.mark.asyncio
    async def test_edges_match_insertion_set(self, graph):
        pairs = {("n3", "n1"), ("n1", "n2"), ("n2", "n3"), ("n1", "n3")}
        for source, target in pairs:
            await graph.add_edge(source, target)
        edges = await graph.edges()
        assert len(edges) == len(pairs)
        assert set(edges) == pairs

    @pytest.mark.asyncio
    async def test_edges_sorted_by_source_then_target(self, graph):
        for source, target in [("b", "a"), ("a", "c"), ("a", "b")]:
            await graph.add_edge(source, target)
        assert await graph.edges() == [("a", "b"), ("a", "c"), ("b", "a")]

    @pytest.mark.asyncio
    async def test_edges_in_key_order_for_prefix_sources(self, graph):
        for source in ["a", "ab", "a!"]:
            await graph.add_edge(source, "t")
        assert await graph.edges() == [("a!", "t"), ("ab", "t"), ("a", "t")]
        assert await graph.sources() == {"a", "ab", "a!"}


class TestValidation:
    @pytest.mark.asyncio
    async def test_reserved_characters_rejected(self, graph):
        with pytest.raises(EncodingError):
            await graph.add_edge("a|b", "c")
        with pytest.raises(EncodingError):
            await graph.add_edge("a", "<c")
        assert await graph.size() == 0

    @pytest.mark.asyncio
    async def test_queries_reject_bad_identifiers(self, graph):
        with pytest.raises(EncodingError):
            await graph.has_edge("a>", "b")
        with pytest.raises(EncodingError):
            await graph.get_targets("x|y")
        with pytest.raises(EncodingError):
            await graph.remove_target(None)

    def test_bad_namespace_rejected(self):
        with pytest.raises(EncodingError):
            DirectedGraphMap(namespace="a>b")

    def test_unencodable_namespace_rejected_at_construction(self):
        with pytest.raises(EncodingError, match="UTF-8"):
            DirectedGraphMap(namespace="\ud800")

    @pytest.mark.asyncio
    async def test_unencodable_identifiers_rejected(self, graph):
        with pytest.raises(EncodingError, match="UTF-8"):
            await graph.add_edge("\ud800", "y")
        with pytest.raises(EncodingError, match="UTF-8"):
            await graph.get_sources("y\udfff")
        assert await graph.size() == 0

    @pytest.mark.asyncio
    async def test_oversized_identifier_rejected(self, graph):
        with pytest.raises(EncodingError, match="limit"):
            await graph.add_edge("x" * 600, "y")
        with pytest.raises(EncodingError, match="limit"):
            await graph.add_edge("y", "x" * 600)
        assert await graph.size() == 0
        assert await graph.has_target("y") is False


class TestStoreFailures:
    @pytest.mark.asyncio
    async def test_store_errors_propagate(self, tmp_path):
        class FailingStore(LMDBStore):
            def scan(self, key_range, limit=None):
                raise OSError("disk on fire")

        store = FailingStore(tmp_path / "store")
        graph = DirectedGraphMap(store=store)
        await graph.ready

        with pytest.raises(OSError, match="disk on fire"):
            await graph.get_targets("a")
        with pytest.raises(OSError, match="disk on fire"):
            await graph.edges()

        # point lookups still work and map absence to False
        assert await graph.has_edge("a", "b") is False
        await graph.close()
        store.close()
