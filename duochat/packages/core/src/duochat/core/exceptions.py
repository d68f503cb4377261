"""聊天核心异常体系

每个异常携带一个 ErrorKind 标签，调用方按 kind 区分处理，
不依赖错误消息字符串匹配。
"""

from enum import StrEnum


class ErrorKind(StrEnum):
    """错误分类"""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    UNAUTHENTICATED = "unauthenticated"
    STORAGE_FAILURE = "storage_failure"


class ChatError(Exception):
    """聊天核心基础异常"""

    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MessageValidationError(ChatError):
    """消息内容或附件不合法（空消息、超长文本、超大附件等）

    在持久化之前拒绝，只返回给当前调用方。
    """

    kind = ErrorKind.VALIDATION


class NotFoundError(ChatError):
    """消息或对端用户不存在"""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource: str, resource_id: object) -> None:
        """
        Args:
            resource: 资源类型，"message" 或 "user"
            resource_id: 资源 ID
        """
        super().__init__(f"{resource.capitalize()} with id {resource_id} does not exist")
        self.resource = resource
        self.resource_id = resource_id


class UnauthorizedError(ChatError):
    """调用方无权修改该消息（只有发送者可以编辑/删除）"""

    kind = ErrorKind.UNAUTHORIZED


class UnauthenticatedError(ChatError):
    """请求未携带调用方身份"""

    kind = ErrorKind.UNAUTHENTICATED


class StorageFailureError(ChatError):
    """附件存储失败

    上传失败时整个发送操作中止；清理失败只记录日志。
    """

    kind = ErrorKind.STORAGE_FAILURE

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message)
        self.original_error = original_error
