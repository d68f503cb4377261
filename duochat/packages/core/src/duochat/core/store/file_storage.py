"""附件文件存储 -- 本地文件系统实现

存储后端（本地磁盘/云对象存储）属于外部协作者，只需满足 FileStorage 协议：
store(content, filename, content_type) -> url 与 delete(url)。
文件读写放到工作线程执行，不阻塞事件循环。
"""

import asyncio
from pathlib import Path
from urllib.parse import quote, unquote

import structlog
from ulid import ULID

from ..exceptions import StorageFailureError

log = structlog.get_logger()


class LocalFileStorage:
    """FileStorage 的本地磁盘实现

    文件名加 ULID 前缀避免冲突，返回 base_url + 文件名 作为访问 URL。
    """

    def __init__(self, uploads_dir: str | Path, base_url: str = "/uploads/") -> None:
        self._uploads_dir = Path(uploads_dir)
        self._base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self._uploads_dir.mkdir(parents=True, exist_ok=True)

    @property
    def uploads_dir(self) -> Path:
        return self._uploads_dir

    async def store(
        self,
        content: bytes,
        filename: str,
        content_type: str | None = None,
    ) -> str:
        """写入附件并返回访问 URL

        Raises:
            StorageFailureError: 落盘失败
        """
        safe_name = Path(filename).name or "attachment"
        stored_name = f"{ULID()}_{safe_name}"
        file_path = self._uploads_dir / stored_name
        try:
            await asyncio.to_thread(file_path.write_bytes, content)
        except OSError as e:
            log.error(
                "attachment_store_failed",
                filename=safe_name,
                error_type=type(e).__name__,
            )
            raise StorageFailureError(f"Failed to store attachment {safe_name}", original_error=e) from e

        log.info(
            "attachment_stored",
            stored_name=stored_name,
            size=len(content),
            content_type=content_type,
        )
        return f"{self._base_url}{quote(stored_name)}"

    async def delete(self, url: str) -> None:
        """按 URL 删除附件，文件不存在时视为成功

        Raises:
            StorageFailureError: 删除失败
        """
        if not url:
            return
        stored_name = Path(unquote(url.replace("\\", "/").rsplit("/", 1)[-1])).name
        file_path = self._uploads_dir / stored_name
        try:
            await asyncio.to_thread(file_path.unlink, missing_ok=True)
        except OSError as e:
            raise StorageFailureError(f"Failed to delete attachment {stored_name}", original_error=e) from e
