"""
Unit tests for the tenant directory models.
"""

from datetime import UTC, datetime, timedelta

import pytest

from tenantstore.directory.models import (
    IsolationMode,
    LicenseKey,
    LicenseStatus,
    SubscriptionTier,
    Tenant,
    TenantCreate,
    TenantStatus,
    normalize_subdomain,
)


class TestIsolationMode:
    def test_only_shared_to_isolated_is_allowed(self):
        assert IsolationMode.SHARED.can_transition_to(IsolationMode.ISOLATED)
        assert not IsolationMode.ISOLATED.can_transition_to(IsolationMode.SHARED)
        assert not IsolationMode.ISOLATED.can_transition_to(IsolationMode.ISOLATED)
        assert not IsolationMode.SHARED.can_transition_to(IsolationMode.SHARED)


class TestNormalizeSubdomain:
    def test_lower_cases_and_strips(self):
        assert normalize_subdomain("  Acme-Co ") == "acme-co"

    @pytest.mark.parametrize("value", ["", "-acme", "acme-", "ac_me", "a.b", "x" * 64])
    def test_rejects_malformed(self, value):
        with pytest.raises(ValueError, match="Invalid subdomain"):
            normalize_subdomain(value)

    @pytest.mark.parametrize("value", ["www", "API", "admin"])
    def test_rejects_reserved(self, value):
        with pytest.raises(ValueError, match="reserved"):
            normalize_subdomain(value)


class TestTenant:
    def test_flags_and_to_dict(self):
        tenant = Tenant(
            id=1,
            name="Acme",
            subdomain="acme",
            isolation_mode=IsolationMode.SHARED,
            subscription_tier=SubscriptionTier.FREE,
            storage_locator="tenantstore_shared",
        )
        assert tenant.is_shared
        assert not tenant.is_isolated
        assert tenant.is_active
        assert tenant.to_dict() == {
            "id": 1,
            "name": "Acme",
            "subdomain": "acme",
            "isolation_mode": "shared",
            "subscription_tier": "free",
            "storage_locator": "tenantstore_shared",
            "status": "active",
        }

    def test_suspended_is_not_active(self):
        tenant = Tenant(
            id=2,
            name="B",
            subdomain="b",
            isolation_mode=IsolationMode.ISOLATED,
            subscription_tier=SubscriptionTier.ENTERPRISE,
            storage_locator="tenantstore_tenant_2",
            status=TenantStatus.SUSPENDED,
        )
        assert not tenant.is_active
        assert tenant.is_isolated


class TestTenantCreate:
    def test_normalizes_subdomain(self):
        data = TenantCreate(name="Acme", subdomain="ACME")
        assert data.subdomain == "acme"

    def test_rejects_blank_name(self):
        with pytest.raises(ValueError, match="name"):
            TenantCreate(name="  ", subdomain="acme")


class TestLicenseKey:
    def test_active_key_is_redeemable(self):
        assert LicenseKey(key="AAAA-BBBB-CCCC-DDDD").rejection_reason() is None

    @pytest.mark.parametrize(
        "status,reason",
        [
            (LicenseStatus.USED, "used"),
            (LicenseStatus.REVOKED, "revoked"),
            (LicenseStatus.EXPIRED, "expired"),
        ],
    )
    def test_status_reasons(self, status, reason):
        assert LicenseKey(key="AAAA-BBBB-CCCC-DDDD", status=status).rejection_reason() == reason

    def test_past_expiry_is_expired(self):
        now = datetime.now(UTC)
        key = LicenseKey(key="AAAA-BBBB-CCCC-DDDD", expires_at=now - timedelta(days=1))
        assert key.rejection_reason(now) == "expired"

    def test_future_expiry_is_redeemable(self):
        now = datetime.now(UTC)
        key = LicenseKey(key="AAAA-BBBB-CCCC-DDDD", expires_at=now + timedelta(days=1))
        assert key.rejection_reason(now) is None
