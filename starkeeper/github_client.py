"""
GitHub API 客户端

负责与 GitHub API 交互：分页获取 star 列表、star / unstar 仓库、
查询仓库与当前用户。所有请求经过令牌桶限流，触发服务端限流时自动等待重试。
"""

import asyncio
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Optional

import httpx
from loguru import logger

from .config import GitHubConfig
from .errors import GitHubAPIError, NetworkError, RateLimitExhaustedError
from .models import Repository, RequestOptions, User
from .rate_limit import TokenBucket


class GitHubClient:
    """GitHub API 客户端"""

    def __init__(
        self,
        config: GitHubConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        初始化 GitHub 客户端

        Args:
            config: GitHub 配置
            transport: 自定义 httpx transport（测试时注入）
        """
        self.config = config
        self.headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": config.user_agent,
        }
        if config.token:
            self.headers["Authorization"] = f"token {config.token}"

        self.rate_limiter = TokenBucket(config.rate_limit, config.refill_rate)
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            headers=self.headers,
            timeout=config.api_timeout,
            transport=transport,
        )
        self._rate_limit_remaining: Optional[int] = None
        self._rate_limit_reset: Optional[datetime] = None

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """关闭底层 HTTP 连接"""
        await self._client.aclose()

    @property
    def rate_limit_remaining(self) -> Optional[int]:
        """最近一次响应中的剩余请求次数"""
        return self._rate_limit_remaining

    @property
    def rate_limit_reset(self) -> Optional[datetime]:
        """最近一次响应中的配额重置时间"""
        return self._rate_limit_reset

    async def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        """
        发送 API 请求，触发限流时等待后重试

        Args:
            method: HTTP 方法
            endpoint: API 端点
            **kwargs: 其他请求参数

        Returns:
            解析后的 JSON，204 或空响应返回 None

        Raises:
            GitHubAPIError: API 返回错误
            RateLimitExhaustedError: 限流重试次数耗尽
            NetworkError: 网络层错误
        """
        attempt = 0
        while True:
            try:
                return await self._send(method, endpoint, **kwargs)
            except GitHubAPIError as e:
                if not e.is_rate_limited():
                    raise
                if attempt >= self.config.max_rate_limit_retries:
                    raise RateLimitExhaustedError(
                        f"GitHub API 速率限制重试 {attempt} 次后仍未恢复: {endpoint}",
                        attempt,
                        e.response,
                    ) from e

                wait_time = self._get_wait_time(e, attempt)
                logger.warning(
                    f"GitHub API 速率限制，等待 {wait_time:.1f} 秒后重试 "
                    f"({attempt + 1}/{self.config.max_rate_limit_retries})"
                )
                await self._sleep(wait_time)
                attempt += 1

    async def _send(self, method: str, endpoint: str, **kwargs) -> Any:
        """发送单次请求"""
        if not endpoint.startswith("/"):
            endpoint = "/" + endpoint

        await self.rate_limiter.consume()

        try:
            response = await self._client.request(method, endpoint, **kwargs)
        except httpx.TransportError as e:
            logger.error(f"GitHub API 网络错误: {method} {endpoint}: {e}")
            raise NetworkError(
                f"访问 {self.config.base_url}{endpoint} 时发生网络错误: {e}", e
            ) from e

        self._update_rate_limit(response)

        if response.is_success:
            if response.status_code == 204 or not response.content:
                return None
            try:
                return response.json()
            except ValueError as e:
                logger.error(f"GitHub API 返回无法解析的响应: {method} {endpoint}: {response.status_code}")
                raise GitHubAPIError(
                    f"GitHub API error: {response.status_code} 响应不是有效的 JSON",
                    response.status_code,
                    response,
                ) from e

        try:
            error_message = response.json().get("message")
        except (ValueError, AttributeError):
            error_message = None
        error_message = error_message or f"HTTP error {response.status_code}"

        error = GitHubAPIError(
            f"GitHub API error: {response.status_code} {error_message}",
            response.status_code,
            response,
        )
        # 404 和限流由调用方处理，不记为错误
        if not (error.is_not_found() or error.is_rate_limited()):
            logger.error(f"GitHub API 请求失败: {method} {endpoint}: {response.status_code} {error_message}")
        raise error

    async def _sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    def _update_rate_limit(self, response: httpx.Response) -> None:
        """更新速率限制信息"""
        remaining = response.headers.get("X-RateLimit-Remaining")
        reset = response.headers.get("X-RateLimit-Reset")

        if remaining and remaining.isdigit():
            self._rate_limit_remaining = int(remaining)
            if self._rate_limit_remaining < 100:
                logger.warning(f"GitHub API 剩余请求次数: {self._rate_limit_remaining}")
        if reset and reset.isdigit():
            self._rate_limit_reset = datetime.fromtimestamp(int(reset), tz=timezone.utc)

    def _get_wait_time(self, error: GitHubAPIError, attempt: int) -> float:
        """
        计算限流后需要等待的时间（秒）

        有重置时间时一直等到重置之后（多等 1 秒）；没有时按默认间隔指数退避，
        退避时间不超过 max_retry_delay。
        """
        reset = error.rate_limit_reset()
        if reset is not None:
            wait = (reset - datetime.now(timezone.utc)).total_seconds()
            return max(1.0, wait + 1)
        wait = self.config.retry_delay * (2 ** attempt)
        return min(wait, self.config.max_retry_delay)

    async def get_starred_repos(self, options: Optional[RequestOptions] = None) -> list[Repository]:
        """
        获取当前用户 star 列表的一页

        Args:
            options: 分页与排序参数

        Returns:
            Repository 列表，顺序与服务端一致
        """
        options = options or RequestOptions()
        logger.debug(f"获取 star 列表，第 {options.page} 页")

        data = await self._request("GET", "/user/starred", params=options.to_params())
        return [Repository.from_github_api(repo) for repo in data or []]

    async def iter_starred_repos(
        self,
        options: Optional[RequestOptions] = None
    ) -> AsyncGenerator[Repository, None]:
        """
        逐页遍历当前用户的所有 star 仓库，遇到空页结束

        Args:
            options: 分页与排序参数（page 会被忽略，总是从第 1 页开始）

        Yields:
            Repository 对象
        """
        options = options or RequestOptions()
        page = 1

        while True:
            repos = await self.get_starred_repos(replace(options, page=page))
            if not repos:
                break

            for repo in repos:
                yield repo

            page += 1

    async def get_all_starred_repos(self, options: Optional[RequestOptions] = None) -> list[Repository]:
        """
        获取当前用户的所有 star 仓库

        Args:
            options: 分页与排序参数

        Returns:
            Repository 列表
        """
        repos = [repo async for repo in self.iter_starred_repos(options)]
        logger.info(f"获取到 {len(repos)} 个 star 仓库")
        return repos

    async def star_repo(self, owner: str, name: str) -> None:
        """star 仓库"""
        await self._request("PUT", f"/user/starred/{owner}/{name}")
        logger.info(f"已 star: {owner}/{name}")

    async def unstar_repo(self, owner: str, name: str) -> None:
        """取消 star 仓库"""
        await self._request("DELETE", f"/user/starred/{owner}/{name}")
        logger.info(f"已取消 star: {owner}/{name}")

    async def is_repo_starred(self, owner: str, name: str) -> bool:
        """
        检查仓库是否已 star

        Args:
            owner: 仓库所有者
            name: 仓库名称

        Returns:
            是否已 star
        """
        try:
            await self._request("GET", f"/user/starred/{owner}/{name}")
        except GitHubAPIError as e:
            if e.is_not_found():
                return False
            raise
        return True

    async def get_repo(self, owner: str, name: str) -> Optional[Repository]:
        """
        获取仓库详细信息

        Args:
            owner: 仓库所有者
            name: 仓库名称

        Returns:
            Repository 或 None（如果仓库不存在）
        """
        try:
            data = await self._request("GET", f"/repos/{owner}/{name}")
        except GitHubAPIError as e:
            if e.is_not_found():
                return None
            raise
        return Repository.from_github_api(data)

    async def get_current_user(self) -> User:
        """获取当前认证用户"""
        data = await self._request("GET", "/user")
        return User.from_github_api(data)

    async def test_connection(self) -> bool:
        """
        测试 GitHub API 连接

        Returns:
            连接是否成功
        """
        try:
            user = await self.get_current_user()
            logger.info(f"GitHub API 连接成功，当前用户: {user.login}")
            return True
        except (GitHubAPIError, NetworkError) as e:
            logger.error(f"GitHub API 连接失败: {e}")
        return False
