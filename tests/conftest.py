"""
Pytest configuration for Funnel Domains tests.
"""

import os
import sys
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Set test environment variables
os.environ["FUNNEL_DOMAINS_DEBUG"] = "true"
os.environ["FUNNEL_DOMAINS_REDIS_URL"] = "redis://localhost:6379"
os.environ["FUNNEL_DOMAINS_PLATFORM_MAIN_DOMAIN"] = "funnels.test"


@pytest.fixture
def test_settings():
    """Provide test settings."""
    from funnel_domains.config import Settings
    return Settings()


@pytest.fixture
def store():
    """In-memory domain store (no Redis)."""
    from funnel_domains.domains.store import DomainStore
    s = DomainStore()
    s._use_redis = False
    return s


@pytest.fixture
def cache():
    """In-memory owner cache (no Redis)."""
    from funnel_domains.domains.cache import DomainCache
    c = DomainCache(ttl=60)
    c._use_redis = False
    return c


def make_custom_hostname(
    hostname_id="cf-host-1",
    hostname="www.example.com",
    status="pending",
    ssl_status="pending_validation",
    validation_records=None,
):
    from funnel_domains.provisioning import CustomHostname
    return CustomHostname.model_validate({
        "id": hostname_id,
        "hostname": hostname,
        "status": status,
        "ssl": {
            "status": ssl_status,
            "validation_records": validation_records,
        },
        "ownership_verification": {
            "type": "txt",
            "name": f"_cf-custom-hostname.{hostname}",
            "value": "ownership-token-123",
        },
    })


@pytest.fixture
def provider():
    """Mocked provisioning client that succeeds by default."""
    from funnel_domains.provisioning import DNSRecord, ProviderConfig

    mock = MagicMock()
    mock.is_configured.return_value = True
    mock.get_config.return_value = ProviderConfig(
        zone_id="zone-1",
        saas_target="customers.funnels.test",
        platform_main_domain="funnels.test",
    )
    mock.create_custom_hostname = AsyncMock(return_value=make_custom_hostname())
    mock.get_custom_hostname = AsyncMock(return_value=make_custom_hostname())
    mock.delete_custom_hostname = AsyncMock(return_value=None)
    mock.create_subdomain_record = AsyncMock(
        return_value=DNSRecord(id="rec-1", type="A", name="mystore")
    )
    mock.delete_dns_record = AsyncMock(return_value=None)
    mock.close = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def service(store, provider, cache):
    """Lifecycle service over the in-memory store and mocked provider."""
    from funnel_domains.domains.service import DomainLifecycleService
    return DomainLifecycleService(store=store, provider=provider, cache=cache)
