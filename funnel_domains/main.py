from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.domains import domain_error_handler, funnel_router, public_router, router
from .config import Settings, get_settings
from .domains import DomainCache, DomainError, DomainLifecycleService, DomainStore
from .provisioning import CloudflareClient

logger = logging.getLogger("funnel_domains")


def build_service(settings: Settings) -> DomainLifecycleService:
    """Wire the store, cache and provider client from settings."""
    store = DomainStore(redis_url=settings.redis_url, key_prefix=settings.key_prefix)
    cache = DomainCache(
        redis_url=settings.redis_url,
        key_prefix=settings.key_prefix,
        ttl=settings.domain_cache_ttl,
    )
    provider = CloudflareClient.from_settings(settings)
    return DomainLifecycleService(
        store=store,
        provider=provider,
        cache=cache,
        max_custom_domains=settings.max_custom_domains,
        max_subdomains=settings.max_subdomains,
    )


def create_app(
    settings: Optional[Settings] = None,
    service: Optional[DomainLifecycleService] = None,
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        domain_service = service or build_service(settings)
        app.state.domain_service = domain_service
        if not domain_service.provider.is_configured():
            logger.warning("Cloudflare is not configured; domain creation is disabled")
        logger.info("Funnel domain service started")
        yield
        await domain_service.store.close()
        if domain_service.cache is not None:
            await domain_service.cache.close()
        await domain_service.provider.close()
        logger.info("Funnel domain service stopped")

    app = FastAPI(
        title="Funnel Domains",
        description="Custom domain and subdomain provisioning for funnels",
        version="0.1.0",
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(DomainError, domain_error_handler)
    app.include_router(router)
    app.include_router(funnel_router)
    app.include_router(public_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "ok"}

    return app


app = create_app()
