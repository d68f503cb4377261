"""错误响应映射

ChatError 按 ErrorKind 映射为 HTTP 状态码，响应体统一为
{"error": {"code": ..., "message": ...}}。
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from duochat.core.exceptions import ChatError, ErrorKind, NotFoundError
from starlette.responses import JSONResponse

log = structlog.get_logger()

_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.STORAGE_FAILURE: 502,
}

_CODE_BY_KIND: dict[ErrorKind, str] = {
    ErrorKind.VALIDATION: "VALIDATION_ERROR",
    ErrorKind.UNAUTHENTICATED: "UNAUTHENTICATED",
    ErrorKind.UNAUTHORIZED: "UNAUTHORIZED",
    ErrorKind.STORAGE_FAILURE: "STORAGE_FAILURE",
}


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}},
    )


def error_code(exc: ChatError) -> str:
    """ChatError -> 错误码，NotFound 按资源类型区分"""
    if isinstance(exc, NotFoundError):
        return f"{exc.resource.upper()}_NOT_FOUND"
    return _CODE_BY_KIND.get(exc.kind, "VALIDATION_ERROR")


async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    status_code = _STATUS_BY_KIND.get(exc.kind, 400)
    log.info(
        "request_rejected",
        error_kind=exc.kind,
        status_code=status_code,
    )
    return error_response(status_code, error_code(exc), exc.message)


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
    message = first.get("msg", "Invalid request")
    if field:
        message = f"{field}: {message}"
    return error_response(400, "VALIDATION_ERROR", message)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ChatError, chat_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
