"""
Environment-driven settings for tenantstore.

All values can be overridden with ``TENANTSTORE_``-prefixed environment
variables or a ``.env`` file, e.g. ``TENANTSTORE_STORE_URL_TEMPLATE``.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DATABASE_PLACEHOLDER = "{database}"


class TenantStoreSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TENANTSTORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Control plane: tenants, license keys and migration jobs.
    control_plane_url: str = "sqlite+aiosqlite:///./tenantstore_control.db"

    # Physical stores are addressed by name; the template turns a name into a URL.
    store_url_template: str = "sqlite+aiosqlite:///./stores/{database}.db"
    # Shared store may live on a different server than the isolated ones.
    shared_store_url_template: str | None = None
    shared_store_name: str = "tenantstore_shared"
    tenant_store_prefix: str = "tenantstore_tenant_"
    # Maintenance database used for CREATE DATABASE on server backends.
    admin_database: str = "postgres"

    pool_size: int = Field(default=5, ge=1)
    shared_pool_size: int = Field(default=10, ge=1)
    max_overflow: int = Field(default=0, ge=0)
    pool_timeout_s: float = Field(default=30.0, gt=0)
    pool_recycle_s: int = 1800

    acquire_timeout_s: float = Field(default=30.0, gt=0)
    auto_provision: bool = True
    enable_tracing: bool = True
    # Short window so tier flips become visible quickly.
    directory_cache_ttl_s: float = Field(default=5.0, ge=0)

    @field_validator("store_url_template", "shared_store_url_template")
    @classmethod
    def _require_placeholder(cls, value: str | None) -> str | None:
        if value is not None and DATABASE_PLACEHOLDER not in value:
            raise ValueError(f"URL template must contain {DATABASE_PLACEHOLDER}")
        return value

    def tenant_locator(self, tenant_id: int) -> str:
        """Deterministic isolated store name for a tenant."""
        return f"{self.tenant_store_prefix}{tenant_id}"

    def store_url(self, locator: str) -> str:
        """Render the connection URL for a physical store."""
        template = self.store_url_template
        if locator == self.shared_store_name and self.shared_store_url_template:
            template = self.shared_store_url_template
        return template.replace(DATABASE_PLACEHOLDER, locator)

    def pool_options(self, locator: str) -> dict[str, Any]:
        """Keyword arguments for create_async_engine for a given store."""
        size = self.shared_pool_size if locator == self.shared_store_name else self.pool_size
        return {
            "pool_size": size,
            "max_overflow": self.max_overflow,
            "pool_timeout": self.pool_timeout_s,
            "pool_recycle": self.pool_recycle_s,
        }


@lru_cache
def get_settings() -> TenantStoreSettings:
    return TenantStoreSettings()


__all__ = [
    "DATABASE_PLACEHOLDER",
    "TenantStoreSettings",
    "get_settings",
]
