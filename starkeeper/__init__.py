"""
GitHub Star 管理工具

分页获取、备份与恢复当前用户的 star 仓库。
"""

from .app import App, open_app
from .backup_service import BackupService
from .config import AppConfig, GitHubConfig, LogConfig, StorageConfig, get_config, init_config
from .errors import (
    BackupError,
    BackupNotFoundError,
    BackupValidationError,
    GitHubAPIError,
    NetworkError,
    RateLimitExhaustedError,
    StarKeeperError,
)
from .github_client import GitHubClient
from .kv_store import KvEntry, SqliteKVStore
from .models import Backup, BackupMeta, BackupOptions, License, Repository, RequestOptions, User
from .rate_limit import TokenBucket

__version__ = "0.1.0"

__all__ = [
    "App",
    "AppConfig",
    "Backup",
    "BackupError",
    "BackupMeta",
    "BackupNotFoundError",
    "BackupOptions",
    "BackupService",
    "BackupValidationError",
    "GitHubAPIError",
    "GitHubClient",
    "GitHubConfig",
    "KvEntry",
    "License",
    "LogConfig",
    "NetworkError",
    "RateLimitExhaustedError",
    "Repository",
    "RequestOptions",
    "SqliteKVStore",
    "StarKeeperError",
    "StorageConfig",
    "TokenBucket",
    "User",
    "get_config",
    "init_config",
    "open_app",
]
