"""Shared fixtures for starkeeper tests."""

import pytest
import pytest_asyncio

from starkeeper.config import GitHubConfig
from starkeeper.models import Repository
from tests.helpers import RecordingKVStore, make_repo_data


@pytest.fixture
def github_config() -> GitHubConfig:
    """Config with a limiter wide enough that tests never wait on it."""
    return GitHubConfig(
        token="test-token",
        base_url="https://api.github.test",
        rate_limit=100,
        refill_rate=100,
        retry_delay=5,
        max_rate_limit_retries=3,
    )


@pytest.fixture
def repos() -> list[Repository]:
    return [Repository.from_github_api(make_repo_data(i)) for i in (1, 2, 3)]


@pytest_asyncio.fixture
async def kv(tmp_path):
    store = RecordingKVStore(str(tmp_path / "kv" / "test.db"))
    await store.open()
    yield store
    await store.close()
