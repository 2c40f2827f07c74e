"""
键值存储模块

基于 SQLite 的嵌入式有序键值存储。键为由字符串 / 整数 / 布尔组成的元组，
值以 JSON 保存。支持前缀遍历和多键原子写入 / 删除。
"""

import asyncio
import json
import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncIterator, Iterable, Optional, Union

from loguru import logger


KeyPart = Union[str, int, bool]
Key = tuple[KeyPart, ...]


@dataclass
class KvEntry:
    """键值记录"""
    key: Key
    value: Any
    versionstamp: Optional[str]


def encode_key(key: Iterable[KeyPart]) -> str:
    """将键编码为可排序的字符串"""
    parts = tuple(key)
    if not parts:
        raise ValueError("键不能为空")
    for part in parts:
        if not isinstance(part, (str, int, bool)):
            raise TypeError(f"不支持的键类型: {type(part).__name__}")
    return json.dumps(list(parts), ensure_ascii=False, separators=(",", ":"))


def decode_key(raw: str) -> Key:
    return tuple(json.loads(raw))


# 不同类型的键片段之间：字符串 < 整数 < 布尔
_TYPE_RANK = {str: 0, int: 1, bool: 2}


def key_sort_order(key: Key) -> tuple:
    """键的排序依据：逐段比较，先比类型再比值，较短的前缀排在前面"""
    return tuple((_TYPE_RANK[type(part)], part) for part in key)


class SqliteKVStore:
    """SQLite 键值存储"""

    def __init__(self, db_path: str):
        """
        Args:
            db_path: 数据库文件路径，":memory:" 表示内存数据库
        """
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()

    async def __aenter__(self) -> "SqliteKVStore":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def open(self) -> None:
        """打开数据库并初始化表"""
        if self._conn is not None:
            return
        await asyncio.to_thread(self._open)
        logger.debug(f"KV 存储已打开: {self.db_path}")

    def _open(self) -> None:
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS kv (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                version INTEGER NOT NULL
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS kv_version (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                last INTEGER NOT NULL
            )
        """)
        conn.execute("INSERT OR IGNORE INTO kv_version (id, last) VALUES (1, 0)")
        conn.commit()
        self._conn = conn

    async def close(self) -> None:
        """关闭数据库"""
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        await asyncio.to_thread(conn.close)
        logger.debug(f"KV 存储已关闭: {self.db_path}")

    def _run(self, func, *args):
        """在锁内执行一次事务，失败时回滚"""
        if self._conn is None:
            raise RuntimeError("KV 存储未打开")
        conn = self._conn
        with self._lock:
            try:
                result = func(conn, *args)
                conn.commit()
            except Exception:
                conn.rollback()
                raise
        return result

    @staticmethod
    def _next_version(conn: sqlite3.Connection) -> int:
        conn.execute("UPDATE kv_version SET last = last + 1 WHERE id = 1")
        return conn.execute("SELECT last FROM kv_version WHERE id = 1").fetchone()[0]

    @staticmethod
    def _format_version(version: int) -> str:
        return f"{version:020x}"

    def _get(self, conn: sqlite3.Connection, raw_key: str) -> Optional[tuple[str, int]]:
        return conn.execute(
            "SELECT value, version FROM kv WHERE key = ?", (raw_key,)
        ).fetchone()

    def _set_many(self, conn: sqlite3.Connection, items: list[tuple[str, str]]) -> str:
        version = self._next_version(conn)
        conn.executemany(
            "INSERT OR REPLACE INTO kv (key, value, version) VALUES (?, ?, ?)",
            [(raw_key, raw_value, version) for raw_key, raw_value in items],
        )
        return self._format_version(version)

    def _delete_many(self, conn: sqlite3.Connection, raw_keys: list[str]) -> None:
        conn.executemany("DELETE FROM kv WHERE key = ?", [(k,) for k in raw_keys])

    def _list(self, conn: sqlite3.Connection, raw_prefix: Optional[str]) -> list[tuple]:
        if raw_prefix is None:
            return conn.execute(
                "SELECT key, value, version FROM kv"
            ).fetchall()
        return conn.execute(
            "SELECT key, value, version FROM kv WHERE substr(key, 1, ?) = ?",
            (len(raw_prefix), raw_prefix),
        ).fetchall()

    async def get(self, key: Key) -> KvEntry:
        """
        读取单个键

        Returns:
            KvEntry，键不存在时 value 和 versionstamp 为 None
        """
        key = tuple(key)
        row = await asyncio.to_thread(self._run, self._get, encode_key(key))
        if row is None:
            return KvEntry(key=key, value=None, versionstamp=None)
        return KvEntry(key=key, value=json.loads(row[0]), versionstamp=self._format_version(row[1]))

    async def set(self, key: Key, value: Any) -> str:
        """写入单个键，返回 versionstamp"""
        return await self.set_many([(key, value)])

    async def set_many(self, items: Iterable[tuple[Key, Any]]) -> str:
        """在一个事务内写入多个键，返回共同的 versionstamp"""
        encoded = [
            (encode_key(key), json.dumps(value, ensure_ascii=False))
            for key, value in items
        ]
        return await asyncio.to_thread(self._run, self._set_many, encoded)

    async def delete(self, key: Key) -> None:
        """删除单个键，键不存在时无操作"""
        await self.delete_many([key])

    async def delete_many(self, keys: Iterable[Key]) -> None:
        """在一个事务内删除多个键"""
        encoded = [encode_key(key) for key in keys]
        await asyncio.to_thread(self._run, self._delete_many, encoded)

    async def list(self, prefix: Key = ()) -> AsyncIterator[KvEntry]:
        """
        按键顺序遍历指定前缀下的所有记录

        Args:
            prefix: 键前缀，空元组表示全部

        Yields:
            KvEntry
        """
        prefix = tuple(prefix)
        # '["backups"]' -> '["backups",'，只匹配更长的键
        raw_prefix = encode_key(prefix)[:-1] + "," if prefix else None
        rows = await asyncio.to_thread(self._run, self._list, raw_prefix)
        # JSON 文本顺序不等于键顺序（"10" < "2"），解码后再排序
        entries = sorted(
            ((decode_key(raw_key), raw_value, version) for raw_key, raw_value, version in rows),
            key=lambda row: key_sort_order(row[0]),
        )
        for key, raw_value, version in entries:
            yield KvEntry(
                key=key,
                value=json.loads(raw_value),
                versionstamp=self._format_version(version),
            )
