"""
数据模型定义

定义 GitHub 用户、仓库、备份快照等核心数据结构。
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Optional


MAX_PER_PAGE = 100  # GitHub API 单页上限


@dataclass
class User:
    """GitHub 用户"""
    login: str                          # 用户名
    id: int                             # 用户 ID
    avatar_url: str = ""                # 头像地址
    url: str = ""                       # API 地址
    html_url: str = ""                  # 主页地址
    name: Optional[str] = None          # 显示名称
    email: Optional[str] = None         # 邮箱
    bio: Optional[str] = None           # 简介

    @classmethod
    def from_github_api(cls, data: dict) -> "User":
        """
        从 GitHub API 响应创建用户对象

        Args:
            data: GitHub API 返回的用户数据

        Returns:
            User 实例
        """
        return cls(
            login=data['login'],
            id=data.get('id', 0),
            avatar_url=data.get('avatar_url') or "",
            url=data.get('url') or "",
            html_url=data.get('html_url') or "",
            name=data.get('name'),
            email=data.get('email'),
            bio=data.get('bio'),
        )


@dataclass
class License:
    """仓库许可证"""
    key: str
    name: str
    url: Optional[str] = None
    spdx_id: Optional[str] = None

    @classmethod
    def from_github_api(cls, data: dict) -> "License":
        return cls(
            key=data['key'],
            name=data['name'],
            url=data.get('url'),
            spdx_id=data.get('spdx_id'),
        )


@dataclass
class Repository:
    """仓库信息（只读，由 GitHub 维护）"""
    id: int                             # 仓库 ID
    name: str                           # 仓库名称
    full_name: str                      # 完整名称 (owner/name)
    owner: User                         # 仓库所有者
    description: Optional[str] = None   # 仓库描述
    html_url: str = ""                  # GitHub 链接
    fork: bool = False                  # 是否为 fork
    url: str = ""                       # API 地址
    created_at: Optional[str] = None    # 创建时间 (ISO-8601)
    updated_at: Optional[str] = None    # 更新时间 (ISO-8601)
    pushed_at: Optional[str] = None     # 最后推送时间 (ISO-8601)
    stargazers_count: int = 0           # star 数
    watchers_count: int = 0             # watcher 数
    language: Optional[str] = None      # 主要语言
    forks_count: int = 0                # fork 数
    archived: bool = False              # 是否已归档
    disabled: bool = False              # 是否已禁用
    license: Optional[License] = None   # 许可证
    topics: list[str] = field(default_factory=list)

    @classmethod
    def from_github_api(cls, data: dict) -> "Repository":
        """
        从 GitHub API 响应创建仓库对象

        full_name 缺失时按 owner.login/name 推导。

        Args:
            data: GitHub API 返回的仓库数据

        Returns:
            Repository 实例
        """
        owner = User.from_github_api(data['owner'])
        license_data = data.get('license')

        return cls(
            id=data['id'],
            name=data['name'],
            full_name=data.get('full_name') or f"{owner.login}/{data['name']}",
            owner=owner,
            description=data.get('description'),
            html_url=data.get('html_url') or "",
            fork=bool(data.get('fork', False)),
            url=data.get('url') or "",
            created_at=data.get('created_at'),
            updated_at=data.get('updated_at'),
            pushed_at=data.get('pushed_at'),
            stargazers_count=data.get('stargazers_count') or 0,
            watchers_count=data.get('watchers_count') or 0,
            language=data.get('language'),
            forks_count=data.get('forks_count') or 0,
            archived=bool(data.get('archived', False)),
            disabled=bool(data.get('disabled', False)),
            license=License.from_github_api(license_data) if license_data else None,
            topics=list(data.get('topics') or []),
        )

    def to_dict(self) -> dict:
        """转换为 GitHub API 兼容的字典"""
        return asdict(self)


@dataclass
class BackupMeta:
    """备份元信息"""
    id: str                             # 备份 ID
    created_at: str                     # 创建时间 (ISO-8601, UTC)
    username: str                       # 备份所属用户
    count: int                          # 仓库数量，创建时确定
    description: Optional[str] = None   # 描述
    tags: Optional[list[str]] = None    # 标签

    @classmethod
    def from_dict(cls, data: dict) -> "BackupMeta":
        """从存储格式创建（createdAt 使用驼峰命名以兼容已有备份文件）"""
        tags = data.get('tags')
        return cls(
            id=data['id'],
            created_at=data['createdAt'],
            username=data.get('username', ""),
            count=data.get('count', 0),
            description=data.get('description'),
            tags=list(tags) if tags is not None else None,
        )

    def to_dict(self) -> dict:
        """转换为存储格式"""
        data: dict[str, Any] = {
            "id": self.id,
            "createdAt": self.created_at,
            "username": self.username,
            "count": self.count,
        }
        if self.description is not None:
            data["description"] = self.description
        if self.tags is not None:
            data["tags"] = list(self.tags)
        return data


@dataclass
class Backup:
    """备份快照：元信息 + 仓库列表"""
    meta: BackupMeta
    repositories: list[Repository] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "Backup":
        return cls(
            meta=BackupMeta.from_dict(data['meta']),
            repositories=[
                Repository.from_github_api(repo) for repo in data.get('repositories', [])
            ],
        )

    def to_dict(self) -> dict:
        return {
            "meta": self.meta.to_dict(),
            "repositories": [repo.to_dict() for repo in self.repositories],
        }


@dataclass
class BackupOptions:
    """创建 / 导入备份的选项"""
    description: Optional[str] = None   # 覆盖描述
    tags: Optional[list[str]] = None    # 覆盖标签
    overwrite: bool = False             # 是否覆盖已有备份


@dataclass
class RequestOptions:
    """分页与排序参数"""
    page: int = 1
    per_page: int = 30
    sort: Optional[str] = None          # created / updated
    direction: Optional[str] = None     # asc / desc

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError(f"page 必须 >= 1: {self.page}")
        if not 1 <= self.per_page <= MAX_PER_PAGE:
            raise ValueError(f"per_page 必须在 1 到 {MAX_PER_PAGE} 之间: {self.per_page}")
        if self.direction is not None and self.direction not in ("asc", "desc"):
            raise ValueError(f"无效的排序方向: {self.direction}")

    def to_params(self) -> dict[str, Any]:
        """转换为查询参数"""
        params: dict[str, Any] = {"page": self.page, "per_page": self.per_page}
        if self.sort:
            params["sort"] = self.sort
        if self.direction:
            params["direction"] = self.direction
        return params
