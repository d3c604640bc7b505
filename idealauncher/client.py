"""
Async HTTP client for the IdeaLauncher API.

Reads go through ``with_retry`` and the client cache; mutations invalidate the
affected cache keys. Failures surface as ``APIError`` with a type derived from
the HTTP status.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from idealauncher.cache import (
    ClientCache,
    cache_keys,
    invalidate_idea,
    invalidate_ideas,
    invalidate_research,
    start_periodic_cleanup,
    with_cache,
)
from idealauncher.config import (
    CLIENT_RETRIES,
    CLIENT_STREAM_TIMEOUT_SECONDS,
    CLIENT_TIMEOUT_SECONDS,
)
from idealauncher.errors import APIError, ErrorType, error_type_for_status, with_retry
from idealauncher.optimistic import OptimisticList

logger = logging.getLogger(__name__)


def _error_from_response(resp: httpx.Response) -> APIError:
    try:
        body = resp.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    message = body.get("message") or body.get("error") or resp.reason_phrase or f"HTTP {resp.status_code}"
    return APIError(message, resp.status_code, error_type_for_status(resp.status_code), body.get("details"))


class IdeaLauncherClient:
    def __init__(self, base_url: str, token: Optional[str] = None, user_id: Optional[str] = None,
                 timeout: float = CLIENT_TIMEOUT_SECONDS,
                 stream_timeout: float = CLIENT_STREAM_TIMEOUT_SECONDS,
                 retries: int = CLIENT_RETRIES, retry_delay: float = 1.0,
                 cache: Optional[ClientCache] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.user_id = user_id
        self.retries = retries
        self.retry_delay = retry_delay
        self.stream_timeout = stream_timeout
        # Each client owns its cache; keys carry ids but not the caller
        self.cache = cache if cache is not None else ClientCache()
        self._cleanup_task: Optional[asyncio.Task] = None
        self._http = httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout, transport=transport)

    async def __aenter__(self):
        self.start_cache_cleanup()
        return self

    async def __aexit__(self, *exc):
        await self.close()

    def start_cache_cleanup(self) -> None:
        if self._cleanup_task is None:
            self._cleanup_task = start_periodic_cleanup(self.cache)

    async def close(self) -> None:
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            self._cleanup_task = None
        await self._http.aclose()

    # --- transport ---

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            resp = await self._http.request(method, path, **kwargs)
        except httpx.TimeoutException:
            raise APIError("Request timeout", 408, ErrorType.NETWORK)
        except httpx.HTTPError as e:
            raise APIError(f"Network error: {e}", 0, ErrorType.NETWORK)

        if resp.is_error:
            raise _error_from_response(resp)
        if not resp.content:
            return None
        return resp.json()

    async def _get(self, path: str, params: Optional[dict] = None) -> Any:
        return await with_retry(
            lambda: self._request("GET", path, params=params),
            retries=self.retries, delay=self.retry_delay,
        )

    async def _cached_get(self, key: str, path: str, params: Optional[dict] = None) -> Any:
        return await with_cache(key, lambda: self._get(path, params), cache=self.cache)

    # --- ideas ---

    async def list_ideas(self, sort_by: str = "updatedAt", sort_order: str = "desc") -> List[dict]:
        params = {"sortBy": sort_by, "sortOrder": sort_order}
        if self.user_id and (sort_by, sort_order) == ("updatedAt", "desc"):
            return await self._cached_get(cache_keys.ideas(self.user_id), "/api/ideas", params)
        return await self._get("/api/ideas", params)

    async def create_idea(self, title: str, one_liner: Optional[str] = None) -> dict:
        idea = await self._request("POST", "/api/ideas", json={"title": title, "oneLiner": one_liner})
        self._invalidate_ideas()
        return idea

    async def validate_title(self, title: str, exclude_id: Optional[str] = None) -> dict:
        return await self._request("POST", "/api/ideas/validate-title",
                                   json={"title": title, "excludeId": exclude_id})

    async def get_idea(self, idea_id: str) -> dict:
        return await self._cached_get(cache_keys.idea(idea_id), f"/api/ideas/{idea_id}")

    async def update_idea(self, idea_id: str, **fields) -> dict:
        idea = await self._request("PATCH", f"/api/ideas/{idea_id}", json=fields)
        invalidate_idea(idea_id, self.cache)
        self._invalidate_ideas()
        return idea

    async def delete_idea(self, idea_id: str) -> dict:
        result = await self._request("DELETE", f"/api/ideas/{idea_id}")
        invalidate_idea(idea_id, self.cache)
        invalidate_research(idea_id, cache=self.cache)
        self._invalidate_ideas()
        return result

    def ideas_store(self, initial: Optional[List[dict]] = None) -> OptimisticList:
        """Optimistic ideas list kept in step with the cached list."""
        key = cache_keys.ideas(self.user_id) if self.user_id else None
        return OptimisticList(initial, cache=self.cache, cache_key=key)

    def _invalidate_ideas(self) -> None:
        if self.user_id:
            invalidate_ideas(self.user_id, self.cache)

    # --- chat ---

    async def get_chat_history(self, idea_id: str) -> List[dict]:
        data = await self._cached_get(cache_keys.chat_history(idea_id), f"/api/ideas/{idea_id}/chat")
        return data["messages"]

    async def stream_chat(self, idea_id: str, messages: List[Dict[str, str]]) -> AsyncIterator[str]:
        """Yield the assistant's reply as it arrives."""
        try:
            async with self._http.stream("POST", f"/api/ideas/{idea_id}/chat",
                                         json={"messages": messages},
                                         timeout=self.stream_timeout) as resp:
                if resp.is_error:
                    await resp.aread()
                    raise _error_from_response(resp)
                async for chunk in resp.aiter_text():
                    if chunk:
                        yield chunk
        except httpx.TimeoutException:
            raise APIError("Request timeout", 408, ErrorType.NETWORK)
        except httpx.HTTPError as e:
            raise APIError(f"Network error: {e}", 0, ErrorType.NETWORK)
        finally:
            self.cache.delete(cache_keys.chat_history(idea_id))

    # --- research ---

    async def get_research(self, idea_id: str) -> dict:
        return await self._cached_get(cache_keys.research(idea_id, "all"), f"/api/ideas/{idea_id}/research")

    async def generate_research(self, idea_id: str, research_type: str) -> dict:
        result = await self._request("POST", f"/api/ideas/{idea_id}/research", json={"type": research_type})
        invalidate_research(idea_id, cache=self.cache)
        return result

    async def set_finding_inserted(self, idea_id: str, finding_id: str, inserted: bool = True) -> dict:
        result = await self._request("PATCH", f"/api/ideas/{idea_id}/research/{finding_id}",
                                     json={"isInserted": inserted})
        invalidate_research(idea_id, cache=self.cache)
        return result

    # --- planning ---

    async def get_features(self, idea_id: str) -> List[dict]:
        data = await self._cached_get(cache_keys.features(idea_id), f"/api/ideas/{idea_id}/mvp")
        return data["features"]

    async def generate_features(self, idea_id: str) -> List[dict]:
        data = await self._request("POST", f"/api/ideas/{idea_id}/mvp", json={"action": "generate"})
        self.cache.delete(cache_keys.features(idea_id))
        return data["features"]

    async def update_feature_estimate(self, idea_id: str, feature_id: str, estimate: str) -> dict:
        data = await self._request("PATCH", f"/api/ideas/{idea_id}/mvp",
                                   json={"featureId": feature_id, "estimate": estimate})
        self.cache.delete(cache_keys.features(idea_id))
        return data["feature"]

    async def get_tech_stack(self, idea_id: str) -> List[dict]:
        data = await self._cached_get(cache_keys.tech(idea_id), f"/api/ideas/{idea_id}/tech")
        return data["recommendations"]

    async def generate_tech_stack(self, idea_id: str) -> List[dict]:
        data = await self._request("POST", f"/api/ideas/{idea_id}/tech", json={"action": "generate"})
        self.cache.delete(cache_keys.tech(idea_id))
        return data["recommendations"]

    # --- scores ---

    async def get_scores(self, idea_id: str) -> List[dict]:
        data = await self._cached_get(cache_keys.scores(idea_id), f"/api/ideas/{idea_id}/score")
        return data["scores"]

    async def save_score(self, idea_id: str, framework: str, **factors) -> dict:
        data = await self._request("POST", f"/api/ideas/{idea_id}/score",
                                   json={"framework": framework, **factors})
        invalidate_idea(idea_id, self.cache)
        self._invalidate_ideas()
        return data["score"]

    # --- exports ---

    async def get_export(self, idea_id: str) -> dict:
        return await self._cached_get(cache_keys.exports(idea_id), f"/api/ideas/{idea_id}/export")

    async def generate_export(self, idea_id: str, fmt: str = "kiro") -> dict:
        data = await self._request("POST", f"/api/ideas/{idea_id}/export",
                                   json={"action": "generate", "format": fmt})
        self.cache.delete(cache_keys.exports(idea_id))
        return data

    # --- document ---

    async def list_versions(self, idea_id: str) -> dict:
        return await self._get(f"/api/ideas/{idea_id}/versions")

    async def save_version(self, idea_id: str, content: str, change_type: str = "manual",
                           summary: Optional[str] = None) -> dict:
        return await self._request("POST", f"/api/ideas/{idea_id}/versions",
                                   json={"content": content, "changeType": change_type, "summary": summary})

    async def insert_into_section(self, idea_id: str, section_id: str, content: str,
                                  source: Optional[str] = None, finding_id: Optional[str] = None) -> dict:
        data = await self._request("POST", f"/api/ideas/{idea_id}/document/insert", json={
            "sectionId": section_id, "content": content, "source": source, "findingId": finding_id,
        })
        invalidate_idea(idea_id, self.cache)
        if finding_id:
            invalidate_research(idea_id, cache=self.cache)
        return data

    # --- domains ---

    async def check_domains(self, domains: List[str]) -> List[dict]:
        async def fetch():
            data = await self._request("POST", "/api/domain-check", json={"domains": domains})
            return data["results"]
        return await with_cache(cache_keys.domain_check(domains), fetch, cache=self.cache)
