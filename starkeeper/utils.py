"""
工具函数模块

提供日志配置、时间与备份 ID 相关的通用工具函数。
"""

import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from loguru import logger

from .config import LogConfig


CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def setup_logger(log_dir: str = "./logs", log_config: Optional[LogConfig] = None) -> None:
    """
    配置日志系统

    控制台按配置级别输出；日志目录下按天轮转写入 starkeeper_*.log（全部级别）
    和 error_*.log（仅错误）。

    Args:
        log_dir: 日志目录
        log_config: 日志配置，默认使用 LogConfig()
    """
    log_config = log_config or LogConfig()
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    logger.remove()
    if log_config.console:
        logger.add(sys.stderr, level=log_config.level, format=CONSOLE_FORMAT)

    for prefix, level, retention in (
        ("starkeeper", "DEBUG", log_config.retention),
        ("error", "ERROR", log_config.error_retention),
    ):
        logger.add(
            str(log_path / f"{prefix}_{{time:YYYY-MM-DD}}.log"),
            level=level,
            format=FILE_FORMAT,
            rotation="00:00",
            retention=retention,
            compression="zip",
            encoding="utf-8",
        )

    logger.info(f"日志系统初始化完成: {log_path}")


def utc_now() -> datetime:
    """当前 UTC 时间"""
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """当前 UTC 时间的 ISO-8601 字符串"""
    return utc_now().isoformat()


def today_str() -> str:
    """当前 UTC 日期 (YYYY-MM-DD)"""
    return utc_now().strftime("%Y-%m-%d")


def short_suffix() -> str:
    """8 位随机后缀"""
    return uuid.uuid4().hex[:8]


def parse_iso(value: str) -> datetime:
    """
    解析 ISO-8601 时间，兼容 Z 结尾；无时区信息时视为 UTC

    Args:
        value: 时间字符串

    Returns:
        带时区的 datetime
    """
    dt = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
