"""配置加载测试"""

from pathlib import Path

from duochat.core import config
from duochat.core.config import (
    MAX_ATTACHMENT_BYTES,
    StorageConfig,
    get_db_path,
    get_uploads_dir,
    load_storage_config,
)


class TestPaths:
    def test_db_path_from_env(self, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("DUOCHAT_DB_PATH", str(tmp_path / "x.db"))
        assert get_db_path() == str(tmp_path / "x.db")

    def test_paths_follow_data_dir(self, monkeypatch, tmp_path: Path):
        monkeypatch.delenv("DUOCHAT_DB_PATH", raising=False)
        monkeypatch.delenv("DUOCHAT_UPLOADS_DIR", raising=False)
        monkeypatch.setenv("DUOCHAT_DATA_DIR", str(tmp_path))

        assert get_db_path() == str(tmp_path / "sqlite" / "duochat.db")
        assert get_uploads_dir() == tmp_path / "uploads"


class TestIntFromEnv:
    def test_valid_value(self, monkeypatch):
        monkeypatch.setenv("DUOCHAT_TEST_INT", "42")
        assert config._int_from_env("DUOCHAT_TEST_INT", 7) == 42

    def test_invalid_value_falls_back(self, monkeypatch):
        monkeypatch.setenv("DUOCHAT_TEST_INT", "lots")
        assert config._int_from_env("DUOCHAT_TEST_INT", 7) == 7

    def test_missing_value_uses_default(self, monkeypatch):
        monkeypatch.delenv("DUOCHAT_TEST_INT", raising=False)
        assert config._int_from_env("DUOCHAT_TEST_INT", 7) == 7


class TestStorageConfig:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("DUOCHAT_UPLOADS_BASE_URL", raising=False)
        monkeypatch.delenv("DUOCHAT_MAX_ATTACHMENT_BYTES", raising=False)

        cfg = load_storage_config()
        assert cfg.base_url == "/uploads/"
        assert cfg.max_attachment_bytes == MAX_ATTACHMENT_BYTES

    def test_env_overrides(self, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("DUOCHAT_UPLOADS_DIR", str(tmp_path / "files"))
        monkeypatch.setenv("DUOCHAT_UPLOADS_BASE_URL", "https://cdn.example.com/chat")
        monkeypatch.setenv("DUOCHAT_MAX_ATTACHMENT_BYTES", "1024")

        cfg = load_storage_config()
        assert cfg.uploads_dir == tmp_path / "files"
        assert cfg.base_url == "https://cdn.example.com/chat/"
        assert cfg.max_attachment_bytes == 1024

    def test_invalid_limit_falls_back(self, monkeypatch):
        monkeypatch.setenv("DUOCHAT_MAX_ATTACHMENT_BYTES", "-5")
        assert load_storage_config().max_attachment_bytes == MAX_ATTACHMENT_BYTES

        monkeypatch.setenv("DUOCHAT_MAX_ATTACHMENT_BYTES", "big")
        assert load_storage_config().max_attachment_bytes == MAX_ATTACHMENT_BYTES

    def test_model_validates_limit(self):
        cfg = StorageConfig(max_attachment_bytes=10)
        assert cfg.max_attachment_bytes == 10
