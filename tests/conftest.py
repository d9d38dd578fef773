import os

os.environ["TESTING"] = "1"

import pytest
import pytest_asyncio
from cashews import cache as _cashews_cache

from helpers import FakeBackend
from newsheat.data.articles import ArticleSource
from newsheat.database import NewsDatabase
from newsheat.labeling import LlmLabeler
from newsheat.service import NewsHeatmapService
from newsheat.state_store import StateStore

_cashews_cache.setup("mem://")


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "news.db"


@pytest.fixture
def database(db_path):
    with NewsDatabase(db_path) as db:
        yield db


@pytest.fixture
def store(database):
    s = StateStore(database)
    s.ensure_schema()
    return s


@pytest.fixture
def article_source(database):
    return ArticleSource(database)


@pytest.fixture
def backend():
    """Unusable by default, so builds are purely lexical."""
    return FakeBackend(usable=False)


@pytest_asyncio.fixture
async def service(db_path, backend):
    svc = NewsHeatmapService(db_path, labeler=LlmLabeler(backend), cache_ttl_ms=60_000)
    await svc.initialize()
    yield svc
    await svc.invalidate()
    await svc.close()
