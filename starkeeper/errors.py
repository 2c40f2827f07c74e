"""
异常定义

GitHub API 错误分类与备份相关异常。调用方通过分类方法判断错误类型，
不直接解析 HTTP 状态码。
"""

from datetime import datetime, timezone
from typing import Optional

import httpx


class StarKeeperError(Exception):
    """所有异常的基类"""


class GitHubAPIError(StarKeeperError):
    """GitHub API 返回的错误响应"""

    def __init__(
        self,
        message: str,
        status: int,
        response: Optional[httpx.Response] = None
    ):
        """
        Args:
            message: 错误信息
            status: HTTP 状态码
            response: 原始响应
        """
        super().__init__(message)
        self.message = message
        self.status = status
        self.response = response

    def _header(self, name: str) -> Optional[str]:
        if self.response is None:
            return None
        return self.response.headers.get(name)

    def is_not_found(self) -> bool:
        """是否为 404"""
        return self.status == 404

    def is_rate_limited(self) -> bool:
        """是否触发速率限制（403 且剩余配额为 0）"""
        return self.status == 403 and self._header("x-ratelimit-remaining") == "0"

    def is_auth_error(self) -> bool:
        """是否为认证失败"""
        return self.status == 401

    def rate_limit_reset(self) -> Optional[datetime]:
        """
        获取速率限制重置时间

        Returns:
            重置时间（UTC），响应头缺失或无法解析时返回 None
        """
        reset = self._header("x-ratelimit-reset")
        if not reset:
            return None
        try:
            return datetime.fromtimestamp(int(reset), tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            return None


class RateLimitExhaustedError(GitHubAPIError):
    """速率限制重试次数耗尽"""

    def __init__(self, message: str, attempts: int, response: Optional[httpx.Response] = None):
        super().__init__(message, 403, response)
        self.attempts = attempts


class NetworkError(StarKeeperError):
    """网络层错误（未获得任何 HTTP 响应）"""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class BackupError(StarKeeperError):
    """备份操作错误"""


class BackupNotFoundError(BackupError):
    """备份不存在"""

    def __init__(self, backup_id: str):
        super().__init__(f"备份不存在: {backup_id}")
        self.backup_id = backup_id


class BackupValidationError(BackupError):
    """备份文件格式无效"""
