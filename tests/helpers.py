"""Test helpers: API payload builders and fakes."""

import asyncio

from starkeeper.kv_store import SqliteKVStore
from starkeeper.models import Repository, User


def make_repo_data(repo_id: int, owner: str = "owner", **overrides) -> dict:
    """Build a GitHub API style repository payload."""
    name = overrides.pop("name", f"repo{repo_id}")
    data = {
        "id": repo_id,
        "name": name,
        "full_name": f"{owner}/{name}",
        "owner": {
            "login": owner,
            "id": 100 + repo_id,
            "avatar_url": f"https://example.com/{owner}.png",
            "url": f"https://api.github.com/users/{owner}",
            "html_url": f"https://github.com/{owner}",
        },
        "description": f"Test repository {repo_id}",
        "html_url": f"https://github.com/{owner}/{name}",
        "fork": False,
        "url": f"https://api.github.com/repos/{owner}/{name}",
        "created_at": "2020-01-01T00:00:00Z",
        "updated_at": "2022-01-01T00:00:00Z",
        "pushed_at": "2022-01-01T00:00:00Z",
        "stargazers_count": 10 * repo_id,
        "watchers_count": repo_id,
        "language": "Python",
        "forks_count": 2,
        "archived": False,
        "disabled": False,
        "license": {"key": "mit", "name": "MIT License", "url": "https://api.github.com/licenses/mit"},
        "topics": ["python", "cli"],
    }
    data.update(overrides)
    return data


def make_user_data(login: str = "alice") -> dict:
    return {
        "login": login,
        "id": 42,
        "avatar_url": f"https://example.com/{login}.png",
        "url": f"https://api.github.com/users/{login}",
        "html_url": f"https://github.com/{login}",
        "name": login.title(),
    }


class FakeGitHub:
    """Stands in for GitHubClient in backup tests."""

    def __init__(self, repos: list[Repository], login: str = "alice"):
        self.repos = repos
        self.user = User.from_github_api(make_user_data(login))
        self.calls: list[str] = []
        # ("start" | "end", method) in the order they happened
        self.events: list[tuple[str, str]] = []

    async def _call(self, name: str) -> None:
        self.calls.append(name)
        self.events.append(("start", name))
        await asyncio.sleep(0)
        self.events.append(("end", name))

    async def get_current_user(self) -> User:
        await self._call("get_current_user")
        return self.user

    async def get_all_starred_repos(self, options=None) -> list[Repository]:
        await self._call("get_all_starred_repos")
        return list(self.repos)


class RecordingKVStore(SqliteKVStore):
    """SqliteKVStore that records every write call."""

    def __init__(self, db_path: str):
        super().__init__(db_path)
        self.writes: list[tuple] = []

    async def set_many(self, items):
        items = list(items)
        self.writes.append(("set_many", [key for key, _ in items]))
        return await super().set_many(items)

    async def delete_many(self, keys):
        keys = list(keys)
        self.writes.append(("delete_many", keys))
        return await super().delete_many(keys)

