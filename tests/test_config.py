"""
tests/test_config.py -- Unit tests for core/config.py Settings validation.

Settings is constructed directly (not via get_settings) so each test sees
its own values without clearing the cached singleton.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings


class TestSecretKey:
    def test_debug_generates_key(self) -> None:
        settings = Settings(debug=True, secret_key="")
        assert len(settings.secret_key) >= 32

    def test_production_requires_key(self) -> None:
        with pytest.raises(ValidationError):
            Settings(debug=False, secret_key="")

    def test_short_key_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(debug=True, secret_key="too-short")

    def test_explicit_key_kept(self) -> None:
        key = "k" * 40
        assert Settings(debug=False, secret_key=key).secret_key == key


class TestDefaults:
    def test_token_lifetime_is_ten_hours(self) -> None:
        assert Settings(debug=True).token_expire_seconds == 36000

    def test_non_positive_lifetime_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(debug=True, token_expire_seconds=0)

    def test_frontend_origin_allowed(self, monkeypatch) -> None:
        monkeypatch.delenv("CORS_ORIGINS", raising=False)
        assert Settings(debug=True).cors_origins == ["http://localhost:3000"]

    def test_list_from_env_json(self, monkeypatch) -> None:
        monkeypatch.setenv("ALLOWED_HOSTS", '["api.example.com"]')
        assert Settings(debug=True).allowed_hosts == ["api.example.com"]
