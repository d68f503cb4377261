"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、附件上传目录、消息长度限制、分页大小等可配置常量，
以及附件存储配置 StorageConfig 的加载函数。
"""

import os
from pathlib import Path

import structlog
from pydantic import BaseModel, Field

log = structlog.get_logger()


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("DUOCHAT_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "DUOCHAT_DB_PATH",
        str(_get_base_dir() / "sqlite" / "duochat.db"),
    )


def get_uploads_dir() -> Path:
    """获取附件文件存储目录"""
    return Path(
        os.environ.get(
            "DUOCHAT_UPLOADS_DIR",
            str(_get_base_dir() / "uploads"),
        )
    )


def _int_from_env(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        log.warning("invalid_int_config", env_var=name, value=value, fallback=default)
        return default


# 单条消息文本最大长度
MAX_MESSAGE_LENGTH: int = 2000

# 会话预览中消息文本截断长度（超出部分以 "..." 结尾）
MESSAGE_PREVIEW_LENGTH: int = 50

# 会话预览最大长度
CONVERSATION_PREVIEW_MAX: int = 100

# 历史消息分页大小
DEFAULT_PAGE_SIZE: int = 50

# 单个附件默认最大字节数
MAX_ATTACHMENT_BYTES: int = 25 * 1024 * 1024

# SSE 心跳间隔（秒）
SSE_HEARTBEAT_INTERVAL: int = _int_from_env("DUOCHAT_SSE_HEARTBEAT_INTERVAL", 15)

# 每个连接的推送队列容量，满了之后新事件被丢弃
EVENT_QUEUE_MAXSIZE: int = _int_from_env("DUOCHAT_EVENT_QUEUE_MAXSIZE", 100)


class StorageConfig(BaseModel):
    """附件存储配置 -- 从环境变量加载

    环境变量:
        DUOCHAT_UPLOADS_DIR: 附件落盘目录
        DUOCHAT_UPLOADS_BASE_URL: 附件对外访问的 URL 前缀
        DUOCHAT_MAX_ATTACHMENT_BYTES: 单个附件最大字节数
    """

    uploads_dir: Path = Field(default_factory=get_uploads_dir, description="附件落盘目录")
    base_url: str = Field(default="/uploads/", description="附件 URL 前缀")
    max_attachment_bytes: int = Field(
        default=MAX_ATTACHMENT_BYTES,
        ge=1,
        description="单个附件最大字节数",
    )


def load_storage_config() -> StorageConfig:
    """从环境变量加载附件存储配置

    非法的数值配置不阻塞启动，记录 warning 后使用默认值。
    """
    kwargs: dict = {}

    if val := os.environ.get("DUOCHAT_UPLOADS_BASE_URL"):
        kwargs["base_url"] = val if val.endswith("/") else f"{val}/"

    if val := os.environ.get("DUOCHAT_MAX_ATTACHMENT_BYTES"):
        try:
            limit = int(val)
            if limit < 1:
                raise ValueError(val)
            kwargs["max_attachment_bytes"] = limit
        except ValueError:
            log.warning(
                "invalid_attachment_limit_config",
                env_var="DUOCHAT_MAX_ATTACHMENT_BYTES",
                value=val,
            )

    return StorageConfig(**kwargs)
