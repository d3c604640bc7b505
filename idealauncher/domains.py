# Domain availability lookups through Domainr (RapidAPI)

import asyncio
import logging
from typing import Dict, List, Optional

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from idealauncher.auth import UserInfo, require_auth
from idealauncher.config import (
    DOMAIN_CHECK_TIMEOUT_SECONDS,
    DOMAINR_HOST,
    DOMAINR_STATUS_URL,
    get_domainr_api_key,
)
from idealauncher.errors import ConfigurationError
from idealauncher.models import DomainCheckRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["domains"])

# Domainr statuses that mean the name can be registered
AVAILABLE_STATUSES = {"undelegated", "inactive"}


def _failed(domain: str) -> Dict:
    return {"domain": domain, "available": False, "status": "error", "summary": "Check failed"}


async def check_domain(client: httpx.AsyncClient, domain: str, api_key: str) -> Dict:
    try:
        resp = await client.get(
            DOMAINR_STATUS_URL,
            params={"domain": domain},
            headers={"X-RapidAPI-Key": api_key, "X-RapidAPI-Host": DOMAINR_HOST},
        )
        resp.raise_for_status()
        body = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"Error checking domain {domain}: {e}")
        return _failed(domain)

    statuses = body.get("status") if isinstance(body, dict) else None
    first = statuses[0] if isinstance(statuses, list) and statuses else {}
    if not isinstance(body, dict) or not isinstance(first, dict):
        logger.warning(f"Unexpected Domainr payload for {domain}: {body!r}")
        return _failed(domain)

    # Domainr returns space separated status flags, e.g. "undelegated inactive"
    status = first.get("status")
    if not isinstance(status, str) or not status:
        status = "unknown"
    return {
        "domain": domain,
        "available": any(flag in AVAILABLE_STATUSES for flag in status.split()),
        "status": status,
        "summary": first.get("summary") or "Unknown status",
    }


async def check_domains(domains: List[str], client: Optional[httpx.AsyncClient] = None,
                        api_key: Optional[str] = None) -> List[Dict]:
    """Check every domain concurrently; one failure never fails the batch."""
    api_key = api_key or get_domainr_api_key()
    if not api_key:
        raise ConfigurationError("Domain checking service not configured")

    if client is not None:
        return await asyncio.gather(*(check_domain(client, d, api_key) for d in domains))
    async with httpx.AsyncClient(timeout=DOMAIN_CHECK_TIMEOUT_SECONDS) as owned:
        return await asyncio.gather(*(check_domain(owned, d, api_key) for d in domains))


@router.post("/domain-check")
async def domain_check(request: DomainCheckRequest, user: UserInfo = Depends(require_auth)):
    """Availability for a list of domain names."""
    results = await check_domains([d.strip().lower() for d in request.domains])
    return JSONResponse({"results": list(results)})
