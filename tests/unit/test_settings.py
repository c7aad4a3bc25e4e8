"""
Unit tests for TenantStoreSettings.
"""

import pytest
from pydantic import ValidationError

from tenantstore.config import TenantStoreSettings, get_settings


class TestTenantStoreSettings:
    def test_defaults(self):
        settings = TenantStoreSettings()
        assert settings.shared_store_name == "tenantstore_shared"
        assert settings.auto_provision is True
        assert settings.acquire_timeout_s == 30.0

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("TENANTSTORE_POOL_SIZE", "12")
        monkeypatch.setenv("TENANTSTORE_AUTO_PROVISION", "false")
        settings = TenantStoreSettings()
        assert settings.pool_size == 12
        assert settings.auto_provision is False

    def test_tenant_locator_is_deterministic(self):
        settings = TenantStoreSettings(tenant_store_prefix="acme_")
        assert settings.tenant_locator(42) == "acme_42"
        assert settings.tenant_locator(42) == settings.tenant_locator(42)

    def test_store_url_renders_template(self):
        settings = TenantStoreSettings(
            store_url_template="postgresql+asyncpg://u:p@db/{database}",
        )
        assert settings.store_url("tenant_7") == "postgresql+asyncpg://u:p@db/tenant_7"

    def test_shared_store_uses_its_own_template(self):
        settings = TenantStoreSettings(
            store_url_template="postgresql+asyncpg://u:p@tenants/{database}",
            shared_store_url_template="postgresql+asyncpg://u:p@shared/{database}",
        )
        assert settings.store_url(settings.shared_store_name).startswith(
            "postgresql+asyncpg://u:p@shared/"
        )
        assert "@tenants/" in settings.store_url("tenant_1")

    def test_template_requires_placeholder(self):
        with pytest.raises(ValidationError):
            TenantStoreSettings(store_url_template="sqlite+aiosqlite:///fixed.db")

    def test_pool_options_for_shared_store(self):
        settings = TenantStoreSettings(pool_size=3, shared_pool_size=20)
        assert settings.pool_options(settings.shared_store_name)["pool_size"] == 20
        assert settings.pool_options("tenant_1")["pool_size"] == 3

    def test_acquire_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            TenantStoreSettings(acquire_timeout_s=0)

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()
