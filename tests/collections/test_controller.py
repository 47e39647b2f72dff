"""Tests for active collection selection and hash routes."""

import pytest

from studyindex.collections.controller import Route, build_route, parse_route
from studyindex.core.exceptions import LoadError


class TestRoutes:
    """Test hash route parsing and formatting."""

    def test_parse(self) -> None:
        route = parse_route("#/browse?collection=japanese%2Fwords%2Fbasics.json&view=")

        assert route.path == "/browse"
        assert route.query == {"collection": "japanese/words/basics.json", "view": ""}
        assert route.collection == "japanese/words/basics.json"

    @pytest.mark.parametrize("raw", [None, "", "#", "browse?collection=x", "#browse"])
    def test_non_paths_map_to_root(self, raw) -> None:
        assert parse_route(raw) == Route()

    def test_build(self) -> None:
        assert build_route(Route()) == "#/"
        assert build_route(Route(path="/b", query={"collection": "a/b.json"})) == (
            "#/b?collection=a%2Fb.json"
        )

    def test_with_collection(self) -> None:
        route = Route(path="/b", query={"view": "grid"})

        selected = route.with_collection("a.json")
        cleared = selected.with_collection(None)

        assert selected.query == {"view": "grid", "collection": "a.json"}
        assert cleared.query == {"view": "grid"}
        assert route.query == {"view": "grid"}
        assert Route(query={"collection": ""}).collection is None


class TestActiveCollection:
    """Test selecting the active collection."""

    @pytest.mark.asyncio
    async def test_set_active_loads_and_notifies(self, engine) -> None:
        changes = []
        engine.subscribe(lambda: changes.append(engine.active_collection_id))

        await engine.set_active_collection_id("spanish/verbs.json")

        assert engine.active_collection_id == "spanish/verbs.json"
        assert engine.active_collection.name == "verbs"
        assert changes[-1] == "spanish/verbs.json"

    @pytest.mark.asyncio
    async def test_reselecting_does_not_notify(self, engine) -> None:
        await engine.set_active_collection_id("spanish/verbs.json")
        await engine.wait_idle()
        changes = []
        engine.subscribe(lambda: changes.append(1))

        await engine.set_active_collection_id("spanish/verbs.json")

        assert changes == []

    @pytest.mark.asyncio
    async def test_failed_load_keeps_selection(self, engine) -> None:
        await engine.set_active_collection_id("spanish/verbs.json")

        with pytest.raises(LoadError):
            await engine.set_active_collection_id("japanese/missing.json")

        assert engine.active_collection_id == "spanish/verbs.json"

    @pytest.mark.asyncio
    async def test_clear_selection(self, engine) -> None:
        await engine.set_active_collection_id("spanish/verbs.json")
        await engine.set_active_collection_id(None)

        assert engine.active_collection_id is None
        assert engine.active_collection is None

    @pytest.mark.asyncio
    async def test_selection_starts_association(self, engine) -> None:
        await engine.set_active_collection_id("japanese/words/basics.json")
        await engine.wait_idle()

        assert "japanese" in engine.stats().associated


class TestRouteSync:
    """Test synchronizing the selection from hash routes."""

    @pytest.mark.asyncio
    async def test_sync_activates_collection(self, engine) -> None:
        changed = await engine.sync_from_route("#/?collection=spanish%2Fverbs.json")

        assert changed
        assert engine.active_collection_id == "spanish/verbs.json"
        assert engine.route.collection == "spanish/verbs.json"

    @pytest.mark.asyncio
    async def test_same_collection_is_no_change(self, engine) -> None:
        await engine.sync_from_route("#/?collection=spanish%2Fverbs.json")

        assert not await engine.sync_from_route(
            Route(path="/other", query={"collection": "spanish/verbs.json"})
        )
        assert engine.route.path == "/other"

    @pytest.mark.asyncio
    async def test_route_without_collection(self, engine) -> None:
        assert not await engine.sync_from_route("#/")
        assert engine.active_collection_id is None

    @pytest.mark.asyncio
    async def test_bad_collection_is_swallowed(self, engine) -> None:
        """Unloadable route targets leave the selection unchanged."""
        await engine.sync_from_route("#/?collection=spanish%2Fverbs.json")

        changed = await engine.sync_from_route("#/?collection=nope.json")

        assert not changed
        assert engine.active_collection_id == "spanish/verbs.json"

    @pytest.mark.asyncio
    async def test_selection_updates_route(self, engine) -> None:
        await engine.sync_from_route("#/list?view=grid")

        await engine.set_active_collection_id("spanish/verbs.json")

        assert build_route(engine.route) == "#/list?view=grid&collection=spanish%2Fverbs.json"
