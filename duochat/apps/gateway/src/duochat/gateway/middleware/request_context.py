"""RequestContextMiddleware

把 request_id、调用方 user_id 绑定到 structlog contextvars，
同一请求内的业务日志都带上这两个字段；请求结束记一条访问日志。

- 客户端带 X-Request-ID 时沿用（便于客户端日志与服务端对账），否则生成 ULID
- /health、/ready 不写访问日志
- 5xx 与未处理异常按 error 级别记录
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from ulid import ULID

REQUEST_ID_HEADER = "X-Request-ID"
USER_ID_HEADER = "X-User-Id"

MAX_REQUEST_ID_LENGTH = 64

_QUIET_PATHS = frozenset({"/health", "/ready"})

log = structlog.get_logger()


def resolve_request_id(request: Request) -> str:
    """沿用合法的客户端 request_id，否则新生成"""
    incoming = request.headers.get(REQUEST_ID_HEADER, "").strip()
    if incoming and len(incoming) <= MAX_REQUEST_ID_LENGTH and incoming.isprintable():
        return incoming
    return str(ULID())


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """请求上下文中间件 -- request_id / user_id 绑定 + 访问日志"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = resolve_request_id(request)
        path = request.url.path

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=path,
        )
        user_id = request.headers.get(USER_ID_HEADER, "").strip()
        if user_id:
            structlog.contextvars.bind_contextvars(user_id=user_id)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            log.error(
                "request_failed",
                error_type=type(e).__name__,
                duration_ms=_elapsed_ms(started),
            )
            raise

        response.headers[REQUEST_ID_HEADER] = request_id
        if path not in _QUIET_PATHS:
            emit = log.error if response.status_code >= 500 else log.info
            # SSE 长连接在响应头发出时即记录，duration_ms 不含推流时长
            emit(
                "request_completed",
                status_code=response.status_code,
                duration_ms=_elapsed_ms(started),
            )
        return response
