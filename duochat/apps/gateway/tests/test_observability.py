"""可观测性与健康检查测试

测试内容：
1. HTTP 请求含 X-Request-ID 响应头；访问日志带 user_id / 状态码 / 耗时
2. structlog 配置按环境变量切换
3. /health 与 /ready
"""

import logging

import pytest
import structlog
from fastapi import FastAPI
from duochat.gateway.middleware.logging_config import setup_logfire, setup_logging
from duochat.gateway.middleware.request_context import MAX_REQUEST_ID_LENGTH
from httpx import AsyncClient


class TestRequestId:
    async def test_request_id_header(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert len(resp.headers["X-Request-ID"]) == 26

    async def test_request_ids_unique(self, client: AsyncClient):
        first = await client.get("/health")
        second = await client.get("/health")
        assert first.headers["X-Request-ID"] != second.headers["X-Request-ID"]

    async def test_client_request_id_reused(self, client: AsyncClient):
        resp = await client.get("/health", headers={"X-Request-ID": "web-42"})
        assert resp.headers["X-Request-ID"] == "web-42"

    async def test_oversized_client_request_id_replaced(self, client: AsyncClient):
        incoming = "x" * (MAX_REQUEST_ID_LENGTH + 1)

        resp = await client.get("/health", headers={"X-Request-ID": incoming})

        assert len(resp.headers["X-Request-ID"]) == 26


def _access_entries(caplog: pytest.LogCaptureFixture) -> list[dict]:
    return [
        record.msg
        for record in caplog.records
        if isinstance(record.msg, dict) and record.msg.get("event") == "request_completed"
    ]


class TestAccessLog:
    async def test_completed_request_carries_caller(self, client: AsyncClient, caplog):
        caplog.set_level(logging.INFO)

        resp = await client.get("/conversations", headers={"X-User-Id": "alice"})

        entries = _access_entries(caplog)
        assert len(entries) == 1
        entry = entries[0]
        assert entry["user_id"] == "alice"
        assert entry["path"] == "/conversations"
        assert entry["method"] == "GET"
        assert entry["status_code"] == 200
        assert entry["request_id"] == resp.headers["X-Request-ID"]
        assert entry["duration_ms"] >= 0

    async def test_anonymous_request_has_no_user(self, client: AsyncClient, caplog):
        caplog.set_level(logging.INFO)

        resp = await client.get("/conversations")

        assert resp.status_code == 401
        entry = _access_entries(caplog)[0]
        assert entry["status_code"] == 401
        assert "user_id" not in entry

    async def test_health_checks_not_logged(self, client: AsyncClient, caplog):
        caplog.set_level(logging.INFO)

        await client.get("/health")
        await client.get("/ready")

        assert _access_entries(caplog) == []


class TestLoggingConfig:
    def test_json_mode(self, monkeypatch):
        monkeypatch.setenv("DUOCHAT_LOG_FORMAT", "json")
        monkeypatch.setenv("DUOCHAT_LOG_LEVEL", "WARNING")

        setup_logging()

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)

    def test_unknown_level_defaults_to_info(self, monkeypatch):
        monkeypatch.setenv("DUOCHAT_LOG_LEVEL", "CHATTY")
        setup_logging()
        assert logging.getLogger().level == logging.INFO

    def test_logfire_disabled_by_default(self, monkeypatch):
        monkeypatch.delenv("DUOCHAT_LOGFIRE_SEND", raising=False)
        app = FastAPI()

        setup_logfire(app)

        assert app.user_middleware == []


class TestHealth:
    async def test_health(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.json() == {"status": "ok"}

    async def test_ready(self, client: AsyncClient):
        resp = await client.get("/ready")

        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ready"
        assert data["checks"]["sqlite"] == "ok"
        assert data["checks"]["uploads_dir"] == "ok"
        assert data["checks"]["online_users"] == 0

    async def test_ready_reports_missing_uploads_dir(self, client: AsyncClient, uploads_dir):
        uploads_dir.rmdir()

        resp = await client.get("/ready")

        assert resp.status_code == 503
        assert resp.json()["checks"]["uploads_dir"].startswith("error")
