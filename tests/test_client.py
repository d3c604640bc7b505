"""
Tests for the async API client against a mocked transport
"""

import asyncio
import sys
from pathlib import Path

import httpx
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from idealauncher.cache import ClientCache, cache_keys
from idealauncher.client import IdeaLauncherClient
from idealauncher.errors import APIError, ErrorType


def make_client(handler, **kwargs):
    kwargs.setdefault("retry_delay", 0)
    return IdeaLauncherClient(
        "http://testserver",
        token="token-1",
        user_id="user-1",
        cache=ClientCache(),
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def run(client, fn):
    async def _run():
        try:
            return await fn(client)
        finally:
            await client.close()
    return asyncio.run(_run())


def test_sends_bearer_token_and_caches_reads():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"id": "idea-1", "title": "Pet Sitter"})

    client = make_client(handler)

    async def scenario(c):
        first = await c.get_idea("idea-1")
        second = await c.get_idea("idea-1")
        return first, second

    first, second = run(client, scenario)
    assert first == second == {"id": "idea-1", "title": "Pet Sitter"}
    assert len(requests) == 1
    assert requests[0].headers["Authorization"] == "Bearer token-1"


def test_mutation_invalidates_cached_idea():
    calls = {"get": 0}

    def handler(request):
        if request.method == "GET":
            calls["get"] += 1
            return httpx.Response(200, json={"id": "idea-1", "phase": "ideation"})
        return httpx.Response(200, json={"id": "idea-1", "phase": "validation"})

    client = make_client(handler)

    async def scenario(c):
        await c.get_idea("idea-1")
        await c.update_idea("idea-1", phase="validation")
        assert c.cache.get(cache_keys.idea("idea-1")) is None
        await c.get_idea("idea-1")

    run(client, scenario)
    assert calls["get"] == 2


def test_transient_errors_are_retried():
    calls = {"count": 0}

    def handler(request):
        calls["count"] += 1
        if calls["count"] <= 3:
            return httpx.Response(503, json={"status": "error", "message": "Service unavailable"})
        return httpx.Response(200, json={"features": [{"id": "f-1"}]})

    client = make_client(handler)
    features = run(client, lambda c: c.get_features("idea-1"))
    assert features == [{"id": "f-1"}]
    assert calls["count"] == 4


def test_not_found_is_not_retried():
    calls = {"count": 0}

    def handler(request):
        calls["count"] += 1
        return httpx.Response(404, json={"status": "error", "message": "Idea not found", "type": "NOT_FOUND"})

    client = make_client(handler)
    with pytest.raises(APIError) as exc_info:
        run(client, lambda c: c.get_idea("missing"))
    assert exc_info.value.status_code == 404
    assert exc_info.value.error_type == ErrorType.NOT_FOUND
    assert exc_info.value.message == "Idea not found"
    assert calls["count"] == 1


def test_mutations_are_not_retried():
    calls = {"count": 0}

    def handler(request):
        calls["count"] += 1
        return httpx.Response(503, json={"message": "Service unavailable"})

    client = make_client(handler)
    with pytest.raises(APIError) as exc_info:
        run(client, lambda c: c.create_idea("Pet Sitter"))
    assert exc_info.value.error_type == ErrorType.NETWORK
    assert calls["count"] == 1


def test_network_failure_becomes_api_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(handler, retries=0)
    with pytest.raises(APIError) as exc_info:
        run(client, lambda c: c.list_versions("idea-1"))
    assert exc_info.value.status_code == 0
    assert exc_info.value.error_type == ErrorType.NETWORK


def test_stream_chat_yields_reply():
    def handler(request):
        return httpx.Response(200, text="Sounds promising.", headers={"content-type": "text/plain"})

    client = make_client(handler)

    async def scenario(c):
        c.cache.set(cache_keys.chat_history("idea-1"), {"messages": []})
        chunks = [chunk async for chunk in c.stream_chat("idea-1", [{"role": "user", "content": "Thoughts?"}])]
        return chunks, c.cache.get(cache_keys.chat_history("idea-1"))

    chunks, cached = run(client, scenario)
    assert "".join(chunks) == "Sounds promising."
    assert cached is None


def test_stream_chat_error_status():
    def handler(request):
        return httpx.Response(401, json={"status": "error", "message": "Authentication required"})

    client = make_client(handler)

    async def scenario(c):
        return [chunk async for chunk in c.stream_chat("idea-1", [{"role": "user", "content": "hi"}])]

    with pytest.raises(APIError) as exc_info:
        run(client, scenario)
    assert exc_info.value.error_type == ErrorType.AUTHENTICATION


def test_insert_into_section_invalidates_idea_and_research():
    def handler(request):
        return httpx.Response(200, json={"documentMd": "doc", "sectionId": "research"})

    client = make_client(handler)

    async def scenario(c):
        c.cache.set(cache_keys.idea("idea-1"), {"id": "idea-1"})
        c.cache.set(cache_keys.research("idea-1", "all"), {"competitors": []})
        await c.insert_into_section("idea-1", "research", "text", finding_id="f-1")
        return c.cache.stats()["size"]

    assert run(client, scenario) == 0


def test_check_domains_is_cached_by_name_set():
    calls = {"count": 0}

    def handler(request):
        calls["count"] += 1
        return httpx.Response(200, json={"results": [{"domain": "a.com", "available": True}]})

    client = make_client(handler)

    async def scenario(c):
        await c.check_domains(["a.com", "b.com"])
        return await c.check_domains(["b.com", "a.com"])

    assert run(client, scenario) == [{"domain": "a.com", "available": True}]
    assert calls["count"] == 1


def test_context_manager_runs_cache_sweep():
    def handler(request):
        return httpx.Response(200, json=[])

    async def scenario():
        async with make_client(handler) as c:
            assert c._cleanup_task is not None
            await c.list_ideas()
        return c._cleanup_task

    assert asyncio.run(scenario()) is None


def test_clients_do_not_share_cached_reads():
    def handler(request):
        if request.headers["Authorization"] == "Bearer token-a":
            return httpx.Response(200, json={"id": "idea-a", "title": "Private"})
        return httpx.Response(404, json={"status": "error", "message": "Idea not found", "type": "NOT_FOUND"})

    transport = httpx.MockTransport(handler)

    async def scenario():
        first = IdeaLauncherClient("http://testserver", token="token-a", user_id="user-a",
                                   transport=transport, retry_delay=0)
        second = IdeaLauncherClient("http://testserver", token="token-b", user_id="user-b",
                                    transport=transport, retry_delay=0)
        try:
            assert first.cache is not second.cache
            await first.get_idea("idea-a")
            with pytest.raises(APIError) as exc_info:
                await second.get_idea("idea-a")
            return exc_info.value.status_code
        finally:
            await first.close()
            await second.close()

    assert asyncio.run(scenario()) == 404
