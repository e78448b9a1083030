"""
REST API for funnel domain management.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..domains.errors import DomainError, ErrorKind
from ..domains.models import Funnel, FunnelStatus
from ..domains.service import DomainLifecycleService

logger = logging.getLogger("funnel_domains.api.domains")

router = APIRouter(prefix="/api/domains", tags=["domains"])
funnel_router = APIRouter(prefix="/api/funnels", tags=["funnels"])
public_router = APIRouter(prefix="/public", tags=["public"])

HTTP_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.PROVIDER: 502,
    ErrorKind.STATE: 400,
}


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Translate lifecycle errors into HTTP responses."""
    status_code = HTTP_STATUS.get(exc.kind, 400)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


# ── Dependencies ─────────────────────────────────────────────────────

def get_service(request: Request) -> DomainLifecycleService:
    return request.app.state.domain_service


async def get_current_owner_id(request: Request) -> str:
    """Owner id forwarded by the authenticating gateway."""
    owner_id = request.headers.get("X-Owner-Id")
    if not owner_id:
        raise HTTPException(status_code=401, detail="Missing X-Owner-Id header")
    return owner_id


# ── Request models ───────────────────────────────────────────────────

class CustomDomainRequest(BaseModel):
    hostname: str


class SubdomainRequest(BaseModel):
    subdomain: str


class FunnelSyncRequest(BaseModel):
    name: str = ""
    status: FunnelStatus = FunnelStatus.DRAFT
    pages: List[dict] = Field(default_factory=list)


# ── Routes ───────────────────────────────────────────────────────────

@router.get("")
async def list_domains(
    owner_id: str = Depends(get_current_owner_id),
    service: DomainLifecycleService = Depends(get_service),
):
    """List all domains for the authenticated owner."""
    domains = await service.get_user_domains(owner_id)
    return {
        "count": len(domains),
        "domains": [d.to_api_response() for d in domains],
    }


@router.post("", status_code=201)
async def create_custom_domain(
    body: CustomDomainRequest,
    owner_id: str = Depends(get_current_owner_id),
    service: DomainLifecycleService = Depends(get_service),
):
    """Register a custom domain."""
    domain = await service.create_custom_domain(owner_id, body.hostname)
    return domain.to_api_response()


@router.post("/subdomains", status_code=201)
async def create_subdomain(
    body: SubdomainRequest,
    owner_id: str = Depends(get_current_owner_id),
    service: DomainLifecycleService = Depends(get_service),
):
    """Claim a platform subdomain."""
    domain = await service.create_subdomain(owner_id, body.subdomain)
    return domain.to_api_response()


@router.get("/{domain_id}")
async def get_domain(
    domain_id: int,
    owner_id: str = Depends(get_current_owner_id),
    service: DomainLifecycleService = Depends(get_service),
):
    domain = await service.get_domain(domain_id, owner_id)
    connections = await service.get_domain_connections(domain_id, owner_id)
    return {
        **domain.to_api_response(),
        "funnel_connections": [c.to_dict() for c in connections],
    }


@router.get("/{domain_id}/instructions")
async def get_instructions(
    domain_id: int,
    owner_id: str = Depends(get_current_owner_id),
    service: DomainLifecycleService = Depends(get_service),
):
    """DNS records the owner must add at their registrar."""
    return await service.get_verification_instructions(domain_id, owner_id)


@router.post("/{domain_id}/verify")
async def verify_domain(
    domain_id: int,
    owner_id: str = Depends(get_current_owner_id),
    service: DomainLifecycleService = Depends(get_service),
):
    """Check provider status and advance the domain."""
    result = await service.verify_domain(domain_id, owner_id)
    return result.to_api_response()


@router.delete("/{domain_id}")
async def delete_domain(
    domain_id: int,
    owner_id: str = Depends(get_current_owner_id),
    service: DomainLifecycleService = Depends(get_service),
):
    domain = await service.delete_domain(domain_id, owner_id)
    return {"deleted": True, "id": domain.id, "hostname": domain.hostname}


@router.post("/{domain_id}/funnels/{funnel_id}", status_code=201)
async def link_funnel(
    domain_id: int,
    funnel_id: int,
    owner_id: str = Depends(get_current_owner_id),
    service: DomainLifecycleService = Depends(get_service),
):
    link = await service.link_funnel_to_domain(funnel_id, domain_id, owner_id)
    return link.to_dict()


@router.delete("/{domain_id}/funnels/{funnel_id}")
async def unlink_funnel(
    domain_id: int,
    funnel_id: int,
    owner_id: str = Depends(get_current_owner_id),
    service: DomainLifecycleService = Depends(get_service),
):
    await service.unlink_funnel_from_domain(funnel_id, domain_id, owner_id)
    return {"unlinked": True, "domain_id": domain_id, "funnel_id": funnel_id}


@public_router.get("/funnels/{funnel_id}")
async def get_public_funnel(
    funnel_id: int,
    request: Request,
    service: DomainLifecycleService = Depends(get_service),
):
    """Serve a live funnel on the hostname it was requested through."""
    hostname = request.headers.get("host", "").split(":")[0]
    funnel = await service.get_public_funnel(hostname, funnel_id)
    return funnel.to_public_response()


@funnel_router.put("/{funnel_id}")
async def sync_funnel(
    funnel_id: int,
    body: FunnelSyncRequest,
    owner_id: str = Depends(get_current_owner_id),
    service: DomainLifecycleService = Depends(get_service),
):
    """Record a funnel's owner and publication status for linking and serving."""
    funnel = await service.sync_funnel(
        Funnel(
            id=funnel_id,
            owner_id=owner_id,
            name=body.name,
            status=body.status,
            pages=body.pages,
        )
    )
    return funnel.to_dict()
