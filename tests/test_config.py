"""Tests for Settings loading."""

from __future__ import annotations

import os
from pathlib import Path

import pydantic
import pytest

from homecloud.config import DEFAULT_SECRET_KEY, Settings


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """No ambient HOMECLOUD_* variables or .env file."""
    for key in list(os.environ):
        if key.startswith("HOMECLOUD_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)


class TestSettings:
    def test_defaults(self):
        s = Settings()
        assert s.database_url == "sqlite+aiosqlite:///homecloud.db"
        assert s.storage_dir == Path("storage")
        assert s.token_ttl_seconds == 7 * 24 * 3600
        assert s.bcrypt_rounds == 12
        assert s.max_upload_bytes == 100 * 1024 * 1024
        assert s.recent_limit == 20
        assert s.uses_default_secret is True
        assert s.secret_key.get_secret_value() == DEFAULT_SECRET_KEY

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("HOMECLOUD_SECRET_KEY", "from-env")
        monkeypatch.setenv("HOMECLOUD_MAX_UPLOAD_BYTES", "2048")
        monkeypatch.setenv("HOMECLOUD_STORAGE_DIR", "/srv/blobs")
        s = Settings()
        assert s.uses_default_secret is False
        assert s.max_upload_bytes == 2048
        assert s.storage_dir == Path("/srv/blobs")

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("HOMECLOUD_RECENT_LIMIT=5\n")
        assert Settings().recent_limit == 5

    def test_secret_not_in_repr(self, monkeypatch):
        monkeypatch.setenv("HOMECLOUD_SECRET_KEY", "super-secret-value")
        assert "super-secret-value" not in repr(Settings())

    def test_rejects_weak_bcrypt_rounds(self):
        with pytest.raises(pydantic.ValidationError):
            Settings(bcrypt_rounds=2)
