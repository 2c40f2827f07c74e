"""
应用上下文

统一创建并释放 GitHub 客户端和键值存储，保证任何退出路径上都会关闭。

    async with open_app(config) as app:
        meta = await app.backups.create_backup()
"""

from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import httpx
from loguru import logger

from .backup_service import BackupService
from .config import AppConfig
from .github_client import GitHubClient
from .kv_store import SqliteKVStore
from .utils import setup_logger


@dataclass
class App:
    """已打开的服务集合"""
    config: AppConfig
    github: GitHubClient
    kv: SqliteKVStore
    backups: BackupService


@asynccontextmanager
async def open_app(
    config: AppConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    configure_logging: bool = False
) -> AsyncIterator[App]:
    """
    打开应用上下文

    Args:
        config: 应用配置
        transport: 自定义 httpx transport
        configure_logging: 是否按 config.log 初始化日志

    Yields:
        App 实例
    """
    if configure_logging:
        setup_logger(config.storage.log_dir, config.log)

    if not config.github.token:
        logger.warning("未配置 GitHub Token，API 速率限制将受到严格限制")

    # 按注册的逆序关闭：先客户端后存储，任一关闭失败都不影响另一个
    async with AsyncExitStack() as stack:
        kv = SqliteKVStore(config.storage.db_path)
        await kv.open()
        stack.push_async_callback(kv.close)

        github = GitHubClient(config.github, transport=transport)
        stack.push_async_callback(github.aclose)

        yield App(
            config=config,
            github=github,
            kv=kv,
            backups=BackupService(kv, github),
        )
