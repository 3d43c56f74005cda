"""
Unit tests for settings and the message catalog
"""

import pytest
from pydantic import ValidationError

from order_intake.core.config import HotItemsPolicy, Settings
from order_intake.core.messages import message


class TestSettings:

    def test_url_assembled_from_parts(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        settings = Settings(
            _env_file=None,
            db_server="db.internal",
            db_port=6543,
            db_database="pos",
            db_username="cashier",
            db_password="s3cret",
        )

        url = settings.sqlalchemy_url
        assert url.drivername == "postgresql+psycopg"
        assert url.host == "db.internal"
        assert url.port == 6543
        assert url.database == "pos"
        assert url.username == "cashier"
        assert url.password == "s3cret"
        assert settings.database_server == "db.internal:6543"

    def test_database_url_overrides_parts(self):
        settings = Settings(_env_file=None, database_url="sqlite+aiosqlite:///./x.db", db_server="ignored")
        assert settings.sqlalchemy_url.get_backend_name() == "sqlite"
        assert settings.database_server == "sqlite"

    def test_hot_items_policy_parsing(self):
        assert Settings(_env_file=None, hot_items_policy="ALL-TIME").hot_items_policy is HotItemsPolicy.ALL_TIME
        assert Settings(_env_file=None).hot_items_policy is HotItemsPolicy.WEEKLY
        with pytest.raises(ValidationError):
            Settings(_env_file=None, hot_items_policy="monthly")

    def test_cors_origins_list(self):
        settings = Settings(_env_file=None, cors_origins="http://a.test, http://b.test,")
        assert settings.cors_origins_list == ["http://a.test", "http://b.test"]


class TestMessages:

    def test_localized_lookup(self):
        assert message("order_created", "zh-TW") == "訂單建立成功"
        assert message("order_created", "en") == "Order created successfully"

    def test_unknown_locale_falls_back_to_english(self):
        assert message("not_found", "fr") == "The requested resource was not found"

    def test_unknown_key_returns_key(self):
        assert message("no_such_key", "en") == "no_such_key"

    def test_configured_locale_is_used(self):
        # LOCALE=en is set for every test
        assert message("health_ok") == "System operational"
