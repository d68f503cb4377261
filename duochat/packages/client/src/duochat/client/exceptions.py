"""客户端异常体系"""


class ClientSyncError(Exception):
    """客户端同步基础异常"""

    def __init__(self, message: str, recoverable: bool = False) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可通过重试恢复
        """
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable


class PendingMessageError(ClientSyncError):
    """对尚未拿到服务端 ID 的消息执行编辑/删除

    编辑和删除只接受服务端分配的 ID。
    """

    def __init__(self, correlation_id: str) -> None:
        super().__init__(
            f"Message {correlation_id} has not been confirmed by the server yet",
            recoverable=True,
        )
        self.correlation_id = correlation_id


class TransportError(ClientSyncError):
    """服务端调用失败

    网络错误与 5xx 视为可重试；4xx 携带服务端错误码，不可重试。
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        """
        Args:
            message: 错误描述（优先使用服务端返回的 message）
            status_code: HTTP 状态码，网络错误时为 None
            code: 服务端错误码，如 MESSAGE_NOT_FOUND
            original_error: 原始异常
        """
        super().__init__(
            message,
            recoverable=status_code is None or status_code >= 500,
        )
        self.status_code = status_code
        self.code = code
        self.original_error = original_error
