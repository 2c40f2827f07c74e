"""
备份文件格式校验

导入的 JSON 文件在写入存储前先按这里的模型校验，格式不符时抛出
BackupValidationError，而不是把错误的结构带入后续流程。
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import BackupValidationError
from .models import Backup, BackupMeta, Repository


# 导出文件格式版本；缺少 version 字段的旧文件视为 1
EXPORT_FORMAT_VERSION = 1


class UserSchema(BaseModel):
    login: str = Field(..., min_length=1)
    id: int = 0
    avatar_url: str = ""
    url: str = ""
    html_url: str = ""
    name: Optional[str] = None
    email: Optional[str] = None
    bio: Optional[str] = None


class LicenseSchema(BaseModel):
    key: str
    name: str
    url: Optional[str] = None
    spdx_id: Optional[str] = None


class RepositorySchema(BaseModel):
    id: int
    name: str = Field(..., min_length=1)
    full_name: Optional[str] = None
    owner: UserSchema
    description: Optional[str] = None
    html_url: str = ""
    fork: bool = False
    url: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    pushed_at: Optional[str] = None
    stargazers_count: int = 0
    watchers_count: int = 0
    language: Optional[str] = None
    forks_count: int = 0
    archived: bool = False
    disabled: bool = False
    license: Optional[LicenseSchema] = None
    topics: list[str] = Field(default_factory=list)


class BackupMetaSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    created_at: str = Field(..., alias="createdAt")
    username: str = ""
    count: int = 0
    description: Optional[str] = None
    tags: Optional[list[str]] = None


class BackupFileSchema(BaseModel):
    version: int = Field(default=EXPORT_FORMAT_VERSION, ge=1)
    meta: BackupMetaSchema
    repositories: list[RepositorySchema] = Field(default_factory=list)


def parse_backup_file(data: Any) -> Backup:
    """
    校验并解析导出文件内容

    Args:
        data: json.loads 的结果

    Returns:
        Backup 实例

    Raises:
        BackupValidationError: 结构不符或版本不受支持
    """
    if not isinstance(data, dict):
        raise BackupValidationError("备份文件顶层必须是 JSON 对象")

    try:
        parsed = BackupFileSchema.model_validate(data)
    except ValidationError as e:
        raise BackupValidationError(f"备份文件格式无效: {e}") from e

    if parsed.version > EXPORT_FORMAT_VERSION:
        raise BackupValidationError(
            f"不支持的备份文件版本: {parsed.version}（当前支持 {EXPORT_FORMAT_VERSION}）"
        )

    meta = parsed.meta
    return Backup(
        meta=BackupMeta(
            id=meta.id,
            created_at=meta.created_at,
            username=meta.username,
            count=meta.count,
            description=meta.description,
            tags=meta.tags,
        ),
        repositories=[
            Repository.from_github_api(repo.model_dump()) for repo in parsed.repositories
        ],
    )
