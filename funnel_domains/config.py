"""
Configuration management for Funnel Domains.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Network
    host: str = "0.0.0.0"
    port: int = 8000

    # Redis
    redis_url: str = "redis://localhost:6379"
    key_prefix: str = "funnel_domains:"

    # Cloudflare (SSL for SaaS)
    cloudflare_api_token: str = ""
    cloudflare_account_id: str = ""
    cloudflare_zone_id: str = ""
    cloudflare_saas_target: str = ""
    cloudflare_api_base: str = "https://api.cloudflare.com/client/v4"
    provider_timeout: int = 30  # seconds

    # Platform subdomains
    platform_main_domain: str = "digitalsite.ai"
    subdomain_target_ip: str = "74.234.194.84"

    # Per-owner limits
    max_custom_domains: int = 3
    max_subdomains: int = 3

    # Caching
    domain_cache_ttl: int = 300  # seconds

    # Logging
    log_level: str = "INFO"

    # Debug mode
    debug: bool = False

    model_config = {
        "env_prefix": "FUNNEL_DOMAINS_",
        "env_file": ".env",
        "extra": "ignore"
    }

    def validate_required(self) -> bool:
        """Validate that required settings are configured."""
        if not self.cloudflare_api_token:
            raise ValueError(
                "FUNNEL_DOMAINS_CLOUDFLARE_API_TOKEN is not set; "
                "custom domain and subdomain creation will be rejected"
            )
        if not self.cloudflare_zone_id:
            raise ValueError(
                "FUNNEL_DOMAINS_CLOUDFLARE_ZONE_ID is not set; "
                "custom domain and subdomain creation will be rejected"
            )
        return True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    settings = Settings()
    # Outside debug, an unconfigured provider is worth a warning
    if not settings.debug:
        try:
            settings.validate_required()
        except ValueError as e:
            import logging
            logging.warning(f"Configuration warning: {e}")
    return settings
