"""
Cloudflare API client for custom hostnames (SSL for SaaS) and DNS records.
"""

import asyncio
import logging
from typing import Any, List, Optional

import aiohttp
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ..domains.errors import ProviderError, ProviderNotFoundError

logger = logging.getLogger("funnel_domains.provisioning.cloudflare")

CF_API_BASE = "https://api.cloudflare.com/client/v4"


# ── Response models ──────────────────────────────────────────────────

class OwnershipVerification(BaseModel):
    type: str
    name: str
    value: str


class SslValidationRecord(BaseModel):
    txt_name: Optional[str] = None
    txt_value: Optional[str] = None
    http_url: Optional[str] = None
    http_body: Optional[str] = None
    cname_name: Optional[str] = None
    cname_target: Optional[str] = None


class SslInfo(BaseModel):
    status: str = "initializing"
    validation_records: Optional[List[SslValidationRecord]] = None


class CustomHostname(BaseModel):
    id: str
    hostname: str = ""
    status: str = "pending"
    ssl: SslInfo = Field(default_factory=SslInfo)
    ownership_verification: Optional[OwnershipVerification] = None


class DNSRecord(BaseModel):
    id: str
    type: str = ""
    name: str = ""
    content: str = ""
    proxied: bool = False


class ProviderConfig(BaseModel):
    zone_id: str
    saas_target: str
    platform_main_domain: str


# ── Client ───────────────────────────────────────────────────────────

def _is_not_found(status: int, errors: List[dict]) -> bool:
    if status == 404:
        return True
    for err in errors:
        message = str(err.get("message", "")).lower()
        if "not found" in message or "does not exist" in message:
            return True
    return False


class CloudflareClient:
    """Thin async wrapper over the Cloudflare v4 REST API."""

    def __init__(
        self,
        api_token: str = "",
        account_id: str = "",
        zone_id: str = "",
        saas_target: str = "",
        platform_main_domain: str = "",
        subdomain_target_ip: str = "",
        api_base: str = CF_API_BASE,
        timeout: int = 30,
    ):
        self.api_token = api_token
        self.account_id = account_id
        self.zone_id = zone_id
        self.saas_target = saas_target
        self.platform_main_domain = platform_main_domain.lower().rstrip(".")
        self.subdomain_target_ip = subdomain_target_ip
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_settings(cls, settings) -> "CloudflareClient":
        return cls(
            api_token=settings.cloudflare_api_token,
            account_id=settings.cloudflare_account_id,
            zone_id=settings.cloudflare_zone_id,
            saas_target=settings.cloudflare_saas_target,
            platform_main_domain=settings.platform_main_domain,
            subdomain_target_ip=settings.subdomain_target_ip,
            api_base=settings.cloudflare_api_base,
            timeout=settings.provider_timeout,
        )

    def is_configured(self) -> bool:
        """Check that credentials and the SaaS zone are set."""
        return bool(self.api_token and self.account_id and self.zone_id)

    def get_config(self) -> ProviderConfig:
        return ProviderConfig(
            zone_id=self.zone_id,
            saas_target=self.saas_target,
            platform_main_domain=self.platform_main_domain,
        )

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={
                    "Authorization": f"Bearer {self.api_token}",
                    "Content-Type": "application/json",
                },
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def _request(
        self, method: str, path: str, payload: Optional[dict] = None
    ) -> Any:
        """
        Send a request and unwrap the Cloudflare response envelope.

        Raises ProviderNotFoundError for missing resources and
        ProviderError for every other failure.
        """
        session = await self._get_session()
        url = f"{self.api_base}{path}"

        try:
            async with session.request(method, url, json=payload) as resp:
                status = resp.status
                body = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Cloudflare {method} {path} failed: {e}")
            raise ProviderError(f"Cloudflare request failed: {e}") from e
        except ValueError as e:
            raise ProviderError(
                f"Cloudflare returned a non-JSON response ({status})"
            ) from e

        if not isinstance(body, dict):
            raise ProviderError(f"Cloudflare returned an unexpected response ({status})")

        if status >= 400 or not body.get("success", False):
            errors = body.get("errors") or []
            detail = "; ".join(str(e.get("message", "")) for e in errors)
            detail = detail or f"HTTP {status}"
            if _is_not_found(status, errors):
                raise ProviderNotFoundError(f"Cloudflare resource not found: {detail}")
            logger.error(f"Cloudflare {method} {path} error: {detail}")
            raise ProviderError(f"Cloudflare error: {detail}")

        return body.get("result")

    @staticmethod
    def _parse(model, data: Any):
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            raise ProviderError(f"Unexpected Cloudflare payload: {e}") from e

    async def create_custom_hostname(
        self, hostname: str, ssl_method: str = "http"
    ) -> CustomHostname:
        """Create a custom hostname in the SaaS zone."""
        payload = {
            "hostname": hostname,
            "ssl": {
                "method": ssl_method,
                "type": "dv",
                "settings": {
                    "http2": "on",
                    "min_tls_version": "1.2",
                },
            },
        }
        logger.info(f"Creating Cloudflare custom hostname for {hostname}")
        result = await self._request(
            "POST", f"/zones/{self.zone_id}/custom_hostnames", payload
        )
        return self._parse(CustomHostname, result)

    async def get_custom_hostname(self, hostname_id: str) -> CustomHostname:
        result = await self._request(
            "GET", f"/zones/{self.zone_id}/custom_hostnames/{hostname_id}"
        )
        return self._parse(CustomHostname, result)

    async def delete_custom_hostname(self, hostname_id: str) -> None:
        await self._request(
            "DELETE", f"/zones/{self.zone_id}/custom_hostnames/{hostname_id}"
        )
        logger.info(f"Deleted Cloudflare custom hostname {hostname_id}")

    async def create_dns_record(self, zone_id: str, record: dict) -> DNSRecord:
        result = await self._request("POST", f"/zones/{zone_id}/dns_records", record)
        return self._parse(DNSRecord, result)

    async def create_subdomain_record(self, label: str) -> DNSRecord:
        """Create a proxied A record for a platform subdomain."""
        record = {
            "type": "A",
            "name": label,
            "content": self.subdomain_target_ip,
            "ttl": 3600,
            "proxied": True,
        }
        logger.info(f"Creating Cloudflare DNS record for subdomain {label}")
        return await self.create_dns_record(self.zone_id, record)

    async def delete_dns_record(self, zone_id: str, record_id: str) -> None:
        await self._request("DELETE", f"/zones/{zone_id}/dns_records/{record_id}")
        logger.info(f"Deleted Cloudflare DNS record {record_id}")

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
