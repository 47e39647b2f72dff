"""Shared fixtures for collection engine tests."""

import pytest
import pytest_asyncio

from studyindex.engine import CollectionEngine


@pytest.fixture
def progress():
    """Progress records keyed by study key."""
    return {
        "火": {"state": "learned", "seen": 12, "starred": True},
        "水": {"state": "new", "seen": 0, "starred": False},
    }


@pytest_asyncio.fixture
async def engine(stub_fetcher, progress):
    """A started engine over the sample collections tree."""
    engine = CollectionEngine(stub_fetcher, progress_lookup=progress.get)
    await engine.start()
    yield engine
    await engine.aclose()
