from __future__ import annotations

import pytest

from questionnaire_builder.config import Settings


@pytest.fixture
def make_settings():
    def _make(**overrides) -> Settings:
        values = {
            "database_url": "sqlite://",
            "origin": "http://test",
            "api_base": "/questionnaire",
            "admin_token": "",
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def settings(make_settings) -> Settings:
    return make_settings()
