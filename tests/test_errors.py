from datetime import datetime, timezone

import httpx

from starkeeper.errors import (
    BackupNotFoundError,
    GitHubAPIError,
    NetworkError,
    RateLimitExhaustedError,
    StarKeeperError,
)


def make_error(status, headers=None) -> GitHubAPIError:
    response = httpx.Response(status, headers=headers or {})
    return GitHubAPIError(f"GitHub API error: {status}", status, response)


def test_classification():
    assert make_error(404).is_not_found()
    assert make_error(401).is_auth_error()
    assert make_error(403, {"x-ratelimit-remaining": "0"}).is_rate_limited()

    assert not make_error(403).is_rate_limited()
    assert not make_error(403, {"x-ratelimit-remaining": "12"}).is_rate_limited()
    assert not make_error(429, {"x-ratelimit-remaining": "0"}).is_rate_limited()
    assert not make_error(500).is_not_found()


def test_rate_limit_reset_parses_epoch_seconds():
    error = make_error(403, {"x-ratelimit-remaining": "0", "x-ratelimit-reset": "1700000000"})

    assert error.rate_limit_reset() == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)


def test_rate_limit_reset_absent_or_unparsable():
    assert make_error(403).rate_limit_reset() is None
    assert make_error(403, {"x-ratelimit-reset": "soon"}).rate_limit_reset() is None
    assert GitHubAPIError("no response", 500).rate_limit_reset() is None


def test_error_hierarchy():
    exhausted = RateLimitExhaustedError("exhausted", 3)
    cause = ConnectionRefusedError("refused")
    network = NetworkError("unreachable", cause)

    assert isinstance(exhausted, GitHubAPIError)
    assert exhausted.status == 403
    assert network.cause is cause
    assert isinstance(network, StarKeeperError)
    assert not isinstance(network, GitHubAPIError)
    assert BackupNotFoundError("backup-1").backup_id == "backup-1"
