"""
备份服务模块

负责 star 列表快照的创建、列举、读取、删除以及 JSON 文件的导出 / 导入。
快照保存在键值存储中，每个备份对应两条记录：

    ("backups", <id>, "meta")  -> 备份元信息，用于列举
    ("backups", <id>, "data")  -> 完整备份（元信息 + 仓库列表）

存储句柄由调用方打开和关闭，本服务只负责读写。
"""

import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from loguru import logger

from .errors import BackupNotFoundError, BackupValidationError
from .github_client import GitHubClient
from .kv_store import Key, SqliteKVStore
from .models import Backup, BackupMeta, BackupOptions
from .schemas import EXPORT_FORMAT_VERSION, parse_backup_file
from .utils import parse_iso, short_suffix, today_str, utc_now_iso


BACKUP_PREFIX = "backups"


def meta_key(backup_id: str) -> Key:
    return (BACKUP_PREFIX, backup_id, "meta")


def data_key(backup_id: str) -> Key:
    return (BACKUP_PREFIX, backup_id, "data")


class BackupService:
    """备份服务"""

    def __init__(self, kv: SqliteKVStore, github: GitHubClient):
        """
        初始化备份服务

        Args:
            kv: 已打开的键值存储
            github: GitHub 客户端
        """
        self.kv = kv
        self.github = github

    async def create_backup(self, options: Optional[BackupOptions] = None) -> BackupMeta:
        """
        创建当前用户 star 列表的备份

        当前用户和 star 列表并发获取。overwrite 时复用最近一次备份的 ID，
        没有历史备份则使用日期 ID；否则生成带随机后缀的新 ID。

        Args:
            options: 备份选项

        Returns:
            备份元信息
        """
        options = options or BackupOptions()
        logger.info("开始创建备份...")

        user, repositories = await asyncio.gather(
            self.github.get_current_user(),
            self.github.get_all_starred_repos(),
        )

        if options.overwrite:
            backup_id = await self.get_latest_backup_id() or f"backup-{today_str()}"
        else:
            backup_id = f"backup-{today_str()}-{short_suffix()}"

        meta = BackupMeta(
            id=backup_id,
            created_at=utc_now_iso(),
            username=user.login,
            count=len(repositories),
            description=options.description,
            tags=list(options.tags) if options.tags is not None else None,
        )
        await self._save(Backup(meta=meta, repositories=list(repositories)))

        logger.info(f"备份已创建: {meta.id}，用户 {meta.username}，共 {meta.count} 个仓库")
        return meta

    async def list_backups(self) -> list[BackupMeta]:
        """
        列出所有备份，最新的在前

        无效或不完整的元信息记录会被跳过。

        Returns:
            备份元信息列表
        """
        found: list[tuple[datetime, BackupMeta]] = []

        async for entry in self.kv.list((BACKUP_PREFIX,)):
            key = entry.key
            if len(key) != 3 or key[2] != "meta":
                continue

            value = entry.value
            if not isinstance(value, dict) or not value.get("id") or not value.get("createdAt"):
                logger.debug(f"跳过无效的备份元信息: {key}")
                continue

            try:
                created = parse_iso(value["createdAt"])
                meta = BackupMeta.from_dict(value)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.debug(f"跳过无效的备份元信息: {key}: {e}")
                continue

            found.append((created, meta))

        found.sort(key=lambda item: item[0], reverse=True)
        return [meta for _, meta in found]

    async def get_backup(self, backup_id: str) -> Optional[Backup]:
        """
        获取备份

        Args:
            backup_id: 备份 ID

        Returns:
            Backup 或 None（如果备份不存在）
        """
        entry = await self.kv.get(data_key(backup_id))
        if entry.value is None:
            return None

        try:
            return Backup.from_dict(entry.value)
        except (KeyError, TypeError, ValueError) as e:
            raise BackupValidationError(f"备份数据已损坏: {backup_id}: {e}") from e

    async def delete_backup(self, backup_id: str) -> bool:
        """
        删除备份

        Args:
            backup_id: 备份 ID

        Returns:
            是否删除（备份不存在时返回 False，且不做任何写入）
        """
        data = await self.kv.get(data_key(backup_id))
        meta = await self.kv.get(meta_key(backup_id))
        if data.value is None and meta.value is None:
            return False

        await self.kv.delete_many([meta_key(backup_id), data_key(backup_id)])
        logger.info(f"备份已删除: {backup_id}")
        return True

    async def export_backup(self, backup_id: str, file_path: Union[str, Path]) -> None:
        """
        导出备份到 JSON 文件

        Args:
            backup_id: 备份 ID
            file_path: 导出文件路径

        Raises:
            BackupNotFoundError: 备份不存在
        """
        backup = await self.get_backup(backup_id)
        if backup is None:
            raise BackupNotFoundError(backup_id)

        payload = {"version": EXPORT_FORMAT_VERSION, **backup.to_dict()}
        text = json.dumps(payload, ensure_ascii=False, indent=2)
        await asyncio.to_thread(self._write_text, Path(file_path), text)

        logger.info(f"备份 {backup_id} 已导出到 {file_path}")

    async def import_backup(
        self,
        file_path: Union[str, Path],
        options: Optional[BackupOptions] = None
    ) -> BackupMeta:
        """
        从 JSON 文件导入备份

        未指定 overwrite 时分配新的 ID，不会覆盖已有备份；创建时间总是重置为当前时间，
        仓库数量按文件内容重新计算。options 中的描述和标签优先于文件内容。

        Args:
            file_path: 备份文件路径
            options: 导入选项

        Returns:
            导入后的备份元信息

        Raises:
            BackupValidationError: 文件内容无效
        """
        options = options or BackupOptions()
        path = Path(file_path)

        text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise BackupValidationError(f"备份文件不是有效的 JSON: {path}: {e}") from e

        backup = parse_backup_file(data)
        meta = backup.meta

        if not options.overwrite:
            meta.id = f"backup-{today_str()}-imported-{short_suffix()}"
        if options.description is not None:
            meta.description = options.description
        if options.tags is not None:
            meta.tags = list(options.tags)

        if meta.count != len(backup.repositories):
            logger.warning(
                f"备份文件中的仓库数量 {meta.count} 与实际 {len(backup.repositories)} 不一致，"
                f"以实际为准"
            )
        meta.count = len(backup.repositories)
        meta.created_at = utc_now_iso()

        await self._save(backup)

        logger.info(f"已从 {path} 导入备份: {meta.id}，共 {meta.count} 个仓库")
        return meta

    async def get_latest_backup_id(self) -> Optional[str]:
        """获取最近一次备份的 ID"""
        backups = await self.list_backups()
        return backups[0].id if backups else None

    async def _save(self, backup: Backup) -> None:
        """在同一事务内写入元信息和完整数据"""
        backup_id = backup.meta.id
        await self.kv.set_many([
            (meta_key(backup_id), backup.meta.to_dict()),
            (data_key(backup_id), backup.to_dict()),
        ])

    @staticmethod
    def _write_text(path: Path, text: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
