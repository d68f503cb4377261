"""packages/core 测试配置 -- 核心层 fixture"""

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import pytest_asyncio
from duochat.core.models import Attachment, AttachmentKind, Message


@pytest_asyncio.fixture
async def uploads_dir(tmp_path: Path) -> Path:
    """核心层临时附件目录"""
    path = tmp_path / "uploads"
    path.mkdir(parents=True, exist_ok=True)
    return path


@pytest.fixture
def make_message():
    """构造未持久化的 Message"""

    def _make(
        sender_id: str = "alice",
        receiver_id: str = "bob",
        text: str | None = "hello",
        attachment_kind: AttachmentKind | None = None,
    ) -> Message:
        attachment = None
        if attachment_kind is not None:
            attachment = Attachment(
                url=f"/uploads/01TEST_{attachment_kind.value}",
                kind=attachment_kind,
                original_file_name=f"sample.{attachment_kind.value}",
            )
        return Message(
            sender_id=sender_id,
            receiver_id=receiver_id,
            text_content=text,
            attachment=attachment,
        )

    return _make


@pytest.fixture
def base_time() -> datetime:
    """固定的基准时间，测试按偏移构造有序时间戳"""
    return datetime(2025, 1, 1, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def at(base_time: datetime):
    """按秒偏移生成时间戳"""

    def _at(seconds: int) -> datetime:
        return base_time + timedelta(seconds=seconds)

    return _at
