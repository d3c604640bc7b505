"""
Endpoint tests with authentication overridden and the data layer patched
"""

import asyncio
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, str(Path(__file__).parent.parent))

from idealauncher.app import app
from idealauncher.auth import UserInfo, require_auth
from idealauncher.ideas import insert_content, version_outbox
from idealauncher.models import InsertRequest
from idealauncher.sections import initial_document

USER = UserInfo(uid="user-1", email="founder@example.com")


async def mock_require_auth():
    return USER


def make_idea(**overrides):
    idea = {
        "id": "idea-1",
        "title": "Pet Sitter",
        "oneLiner": "Find trusted sitters",
        "documentMd": initial_document("Pet Sitter"),
        "phase": "ideation",
        "iceScore": None,
        "riceScore": None,
        "isArchived": False,
        "createdAt": "2025-01-01T00:00:00",
        "updatedAt": "2025-01-01T00:00:00",
    }
    idea.update(overrides)
    return idea


def saved_rows(prefix):
    """side_effect for add_* functions: echo rows back with ids."""
    async def _save(user_id, idea_id, rows):
        return [{**row, "id": f"{prefix}-{i}", "createdAt": "now"} for i, row in enumerate(rows)]
    return _save


def echo_row(row_id):
    """side_effect for single-row add_* functions."""
    async def _save(user_id, idea_id, data):
        return {**data, "id": row_id}
    return _save


@pytest.fixture
def client():
    app.dependency_overrides[require_auth] = mock_require_auth
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.pop(require_auth, None)


@pytest.fixture
def owned_idea():
    idea = make_idea()
    with patch("idealauncher.database.get_idea", new=AsyncMock(return_value=idea)):
        yield idea


# --- Auth ---

def test_requires_auth():
    response = TestClient(app).get("/api/ideas")
    assert response.status_code == 401
    body = response.json()
    assert body["status"] == "error"
    assert body["type"] == "AUTHENTICATION"


# --- Ideas ---

def test_list_ideas_passes_sorting(client):
    mock = AsyncMock(return_value=[{"id": "idea-1", "title": "Pet Sitter"}])
    with patch("idealauncher.database.list_ideas", new=mock):
        response = client.get("/api/ideas?sortBy=iceScore&sortOrder=asc")
    assert response.status_code == 200
    assert response.json()[0]["id"] == "idea-1"
    mock.assert_awaited_once_with("user-1", "iceScore", "asc")


def test_list_ideas_rejects_unknown_sort(client):
    response = client.get("/api/ideas?sortBy=votes")
    assert response.status_code == 400
    assert response.json()["type"] == "VALIDATION"


def test_create_idea_seeds_document(client):
    async def create(user_id, title, one_liner, document_md):
        return {"id": "new-id", "title": title, "oneLiner": one_liner, "documentMd": document_md}

    with patch("idealauncher.database.create_idea", side_effect=create):
        response = client.post("/api/ideas", json={"title": "  Pet Sitter  ", "oneLiner": "Sitters"})
    assert response.status_code == 201
    data = response.json()
    assert data["title"] == "Pet Sitter"
    assert "## Problem" in data["documentMd"]


@pytest.mark.parametrize("title", ["", "   ", "x" * 101])
def test_create_idea_validates_title(client, title):
    response = client.post("/api/ideas", json={"title": title})
    assert response.status_code == 400
    body = response.json()
    assert body["type"] == "VALIDATION"
    assert body["details"]


def test_validate_title(client):
    with patch("idealauncher.database.title_exists", new=AsyncMock(return_value=True)):
        response = client.post("/api/ideas/validate-title", json={"title": "Pet Sitter"})
    assert response.json() == {"isUnique": False, "message": "Title already exists"}


def test_sections_listing(client):
    sections = client.get("/api/ideas/sections").json()["sections"]
    assert sections[0] == {
        "id": "problem",
        "title": "Problem",
        "placeholder": sections[0]["placeholder"],
    }
    assert len(sections) == 8


def test_get_idea_not_found(client):
    with patch("idealauncher.database.get_idea", new=AsyncMock(return_value=None)):
        response = client.get("/api/ideas/someone-elses")
    assert response.status_code == 404
    assert response.json()["message"] == "Idea not found"
    assert response.json()["type"] == "NOT_FOUND"


def test_get_idea_includes_related_rows(client, owned_idea):
    with patch("idealauncher.database.list_scores", new=AsyncMock(return_value=[{"total": 5}, {"total": 3}])), \
         patch("idealauncher.database.list_chat_messages", new=AsyncMock(return_value=[])), \
         patch("idealauncher.database.list_findings", new=AsyncMock(return_value=[])), \
         patch("idealauncher.database.list_features", new=AsyncMock(return_value=[])), \
         patch("idealauncher.database.list_exports", new=AsyncMock(return_value=[])):
        data = client.get("/api/ideas/idea-1").json()
    assert data["title"] == "Pet Sitter"
    assert data["scores"] == [{"total": 5}]
    assert data["chatMessages"] == []


def test_update_idea_requires_fields(client):
    response = client.patch("/api/ideas/idea-1", json={})
    assert response.status_code == 400


def test_update_idea(client):
    mock = AsyncMock(return_value=make_idea(phase="validation"))
    with patch("idealauncher.database.update_idea", new=mock):
        response = client.patch("/api/ideas/idea-1", json={"phase": "validation"})
    assert response.status_code == 200
    mock.assert_awaited_once_with("user-1", "idea-1", {"phase": "validation"})


def test_delete_idea(client):
    with patch("idealauncher.database.delete_idea", new=AsyncMock(return_value=True)):
        assert client.delete("/api/ideas/idea-1").json() == {"success": True}
    with patch("idealauncher.database.delete_idea", new=AsyncMock(return_value=False)):
        assert client.delete("/api/ideas/idea-1").status_code == 404


# --- Document insertion ---

def test_insert_into_section(client, owned_idea):
    update_idea = AsyncMock(return_value=owned_idea)
    update_finding = AsyncMock(return_value={"id": "f-1", "isInserted": True})
    enqueue = MagicMock()
    with patch("idealauncher.database.update_idea", new=update_idea), \
         patch("idealauncher.database.update_finding", new=update_finding), \
         patch.object(version_outbox, "enqueue", new=enqueue):
        response = client.post("/api/ideas/idea-1/document/insert", json={
            "sectionId": "research",
            "content": "Rover dominates the market.",
            "source": "Competitor Analysis",
            "findingId": "f-1",
        })

    assert response.status_code == 200
    data = response.json()
    assert data["sectionTitle"] == "Research & Validation"
    assert data["createdSection"] is False
    assert "Rover dominates the market." in data["documentMd"]
    assert data["cursor"]["end"] > data["cursor"]["start"]
    update_idea.assert_awaited_once()
    assert update_idea.await_args.args[2] == {"documentMd": data["documentMd"]}
    update_finding.assert_awaited_once_with("user-1", "idea-1", "f-1", {"isInserted": True})

    snapshot = enqueue.call_args.args[0]
    assert snapshot.change_type == "ai_insert"
    assert snapshot.content == data["documentMd"]


def test_concurrent_inserts_keep_both_blocks():
    store = {"documentMd": initial_document("Pet Sitter")}

    async def get_idea(user_id, idea_id):
        await asyncio.sleep(0)
        return make_idea(id=idea_id, documentMd=store["documentMd"])

    async def update_idea(user_id, idea_id, data):
        await asyncio.sleep(0)
        store.update(data)
        return make_idea(id=idea_id, **data)

    async def scenario():
        first = InsertRequest(sectionId="problem", content="Owners travel often.")
        second = InsertRequest(sectionId="mvp", content="Booking flow first.")
        await asyncio.gather(
            insert_content("idea-2", first, USER),
            insert_content("idea-2", second, USER),
        )

    with patch("idealauncher.database.get_idea", new=AsyncMock(side_effect=get_idea)), \
         patch("idealauncher.database.update_idea", new=AsyncMock(side_effect=update_idea)), \
         patch.object(version_outbox, "enqueue", new=MagicMock()):
        asyncio.run(scenario())

    assert "Owners travel often." in store["documentMd"]
    assert "Booking flow first." in store["documentMd"]


def test_insert_unknown_section(client, owned_idea):
    response = client.post("/api/ideas/idea-1/document/insert", json={
        "sectionId": "marketing", "content": "text",
    })
    assert response.status_code == 400
    assert response.json()["message"] == "Unknown section: marketing"


def test_versions_listing(client, owned_idea):
    with patch("idealauncher.database.list_versions", new=AsyncMock(return_value=[{"id": "v-1"}])):
        data = client.get("/api/ideas/idea-1/versions").json()
    assert data["versions"] == [{"id": "v-1"}]
    assert data["outbox"] == {"pending": 0, "failed": 0}


# --- Chat ---

def test_chat_streams_and_saves_reply(client, owned_idea):
    async def fake_reply(self, idea, messages):
        yield "Hello "
        yield "there"

    add_message = AsyncMock(return_value={"id": "m"})
    with patch("idealauncher.llm.LLMWrapper._setup_provider", return_value=None), \
         patch("idealauncher.llm.ChatAssistant.stream_reply", new=fake_reply), \
         patch("idealauncher.database.add_chat_message", new=add_message):
        response = client.post("/api/ideas/idea-1/chat", json={
            "messages": [{"role": "user", "content": "Is this viable?"}],
        })

    assert response.status_code == 200
    assert response.text == "Hello there"
    assert response.headers["content-type"].startswith("text/plain")
    roles = [call.args[2] for call in add_message.await_args_list]
    assert roles == ["user", "assistant"]
    assert add_message.await_args_list[1].args[3] == "Hello there"


def test_chat_last_message_must_be_from_user(client, owned_idea):
    response = client.post("/api/ideas/idea-1/chat", json={
        "messages": [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}],
    })
    assert response.status_code == 400


# --- Research ---

def test_generate_research(client, owned_idea):
    items = [{"name": "Rover", "description": "Marketplace", "url": "https://rover.com",
              "features": ["booking"], "differentiation": "Vetted sitters"}]
    with patch("idealauncher.llm.LLMWrapper._setup_provider", return_value=None), \
         patch("idealauncher.llm.Researcher.research", new=AsyncMock(return_value=items)), \
         patch("idealauncher.database.add_findings", side_effect=saved_rows("f")):
        response = client.post("/api/ideas/idea-1/research", json={"type": "competitors"})

    assert response.status_code == 200
    competitor = response.json()["competitors"][0]
    assert competitor["name"] == "Rover"
    assert competitor["features"] == ["booking"]
    assert competitor["isInserted"] is False


def test_generate_research_invalid_type(client, owned_idea):
    response = client.post("/api/ideas/idea-1/research", json={"type": "pricing"})
    assert response.status_code == 400


def test_research_upstream_failure(client, owned_idea):
    with patch("idealauncher.llm.LLMWrapper._setup_provider", return_value=None), \
         patch("idealauncher.llm.Researcher.generate_text", new=AsyncMock(side_effect=RuntimeError("quota"))):
        response = client.post("/api/ideas/idea-1/research", json={"type": "naming"})
    assert response.status_code == 502
    assert response.json()["type"] == "AI_SERVICE"


def test_get_research_groups_by_type(client, owned_idea):
    findings = [
        {"id": "1", "type": "naming", "title": "Sitly", "content": "short", "metadata": {"style": "Brandable"}},
        {"id": "2", "type": "competitor", "title": "Rover", "content": "big"},
        {"id": "3", "type": "tech_stack", "title": "Frontend: React", "content": "x"},
    ]
    with patch("idealauncher.database.list_findings", new=AsyncMock(return_value=findings)):
        data = client.get("/api/ideas/idea-1/research").json()
    assert [n["name"] for n in data["names"]] == ["Sitly"]
    assert [c["name"] for c in data["competitors"]] == ["Rover"]
    assert data["monetization"] == []


def test_mark_finding_inserted_not_found(client, owned_idea):
    with patch("idealauncher.database.update_finding", new=AsyncMock(return_value=None)):
        response = client.patch("/api/ideas/idea-1/research/missing", json={"isInserted": True})
    assert response.status_code == 404
    assert response.json()["message"] == "Research finding not found"


# --- MVP / tech ---

def test_generate_features_falls_back(client, owned_idea):
    async def replace(user_id, idea_id, features):
        return [{**f, "id": str(i)} for i, f in enumerate(features)]

    with patch("idealauncher.llm.LLMWrapper._setup_provider", return_value=None), \
         patch("idealauncher.llm.MVPPlanner.generate_text", new=AsyncMock(return_value="not json")), \
         patch("idealauncher.database.list_chat_messages", new=AsyncMock(return_value=[])), \
         patch("idealauncher.database.list_findings", new=AsyncMock(return_value=[])), \
         patch("idealauncher.database.replace_features", side_effect=replace):
        response = client.post("/api/ideas/idea-1/mvp", json={"action": "generate"})

    assert response.status_code == 201
    features = response.json()["features"]
    assert len(features) == 6
    assert sum(1 for f in features if f["priority"] == "MUST") == 4


def test_update_feature_estimate(client, owned_idea):
    with patch("idealauncher.database.update_feature", new=AsyncMock(return_value=None)):
        response = client.patch("/api/ideas/idea-1/mvp", json={"featureId": "nope", "estimate": "S"})
    assert response.status_code == 404
    response = client.patch("/api/ideas/idea-1/mvp", json={"featureId": "f", "estimate": "XL"})
    assert response.status_code == 400


def test_generate_tech_stack_replaces_previous(client, owned_idea):
    recommendation = {
        "category": "Frontend", "technology": "React", "description": "UI library",
        "rationale": "Popular", "implementationTips": ["Use Vite"], "alternatives": ["Vue"],
        "difficulty": "Intermediate",
    }
    delete_findings = AsyncMock(return_value=3)
    with patch("idealauncher.llm.LLMWrapper._setup_provider", return_value=None), \
         patch("idealauncher.llm.TechAdvisor.recommend", new=AsyncMock(return_value=[recommendation])), \
         patch("idealauncher.database.list_features", new=AsyncMock(return_value=[])), \
         patch("idealauncher.database.list_chat_messages", new=AsyncMock(return_value=[])), \
         patch("idealauncher.database.list_findings", new=AsyncMock(return_value=[])), \
         patch("idealauncher.database.delete_findings", new=delete_findings), \
         patch("idealauncher.database.add_findings", side_effect=saved_rows("t")):
        response = client.post("/api/ideas/idea-1/tech", json={"action": "generate"})

    assert response.status_code == 201
    rec = response.json()["recommendations"][0]
    assert rec["technology"] == "React"
    assert rec["implementationTips"] == ["Use Vite"]
    delete_findings.assert_awaited_once_with("user-1", "idea-1", "tech_stack")


# --- Scores ---

def test_save_ice_score_updates_best(client, owned_idea):
    update_idea = AsyncMock(return_value=owned_idea)
    with patch("idealauncher.database.add_score", side_effect=echo_row("s-1")), \
         patch("idealauncher.database.update_idea", new=update_idea):
        response = client.post("/api/ideas/idea-1/score", json={
            "framework": "ICE", "impact": 8, "confidence": 6, "ease": 7, "total": 99,
        })

    assert response.status_code == 201
    assert response.json()["score"]["total"] == 3.36
    update_idea.assert_awaited_once_with("user-1", "idea-1", {"iceScore": 3.36})


def test_lower_score_keeps_best(client):
    update_idea = AsyncMock()
    with patch("idealauncher.database.get_idea", new=AsyncMock(return_value=make_idea(riceScore=500.0))), \
         patch("idealauncher.database.add_score", side_effect=echo_row("s-1")), \
         patch("idealauncher.database.update_idea", new=update_idea):
        response = client.post("/api/ideas/idea-1/score", json={
            "framework": "RICE", "reach": 8, "impact": 7, "confidence": 9, "effort": 5,
        })
    assert response.json()["score"]["total"] == 100.8
    update_idea.assert_not_awaited()


def test_score_framework_mismatch(client, owned_idea):
    response = client.post("/api/ideas/idea-1/score", json={
        "framework": "ICE", "impact": 8, "confidence": 6, "ease": 7, "reach": 3,
    })
    assert response.status_code == 400
    assert response.json()["type"] == "VALIDATION"


# --- Export ---

def test_generate_export(client, owned_idea):
    add_export = AsyncMock(side_effect=echo_row("e-1"))
    with patch("idealauncher.llm.LLMWrapper._setup_provider", return_value=None), \
         patch("idealauncher.llm.SpecWriter.generate_text", new=AsyncMock(return_value="# Pet Sitter Spec\n")), \
         patch("idealauncher.database.list_scores", new=AsyncMock(return_value=[])), \
         patch("idealauncher.database.list_chat_messages", new=AsyncMock(return_value=[])), \
         patch("idealauncher.database.list_features", new=AsyncMock(return_value=[])), \
         patch("idealauncher.database.list_findings", new=AsyncMock(return_value=[])), \
         patch("idealauncher.database.add_export", new=add_export):
        response = client.post("/api/ideas/idea-1/export", json={"action": "generate", "format": "kiro"})

    assert response.status_code == 201
    data = response.json()
    assert data["content"] == "# Pet Sitter Spec"
    assert data["export"]["metadata"]["ideaTitle"] == "Pet Sitter"
    assert data["export"]["format"] == "kiro"


def test_get_export_without_any(client, owned_idea):
    with patch("idealauncher.database.get_latest_export", new=AsyncMock(return_value=None)):
        assert client.get("/api/ideas/idea-1/export").json() == {"export": None, "hasExport": False}


# --- Domains ---

def test_domain_check(client):
    results = [{"domain": "sitly.com", "available": True, "status": "undelegated", "summary": "undelegated"}]
    mock = AsyncMock(return_value=results)
    with patch("idealauncher.domains.check_domains", new=mock):
        response = client.post("/api/domain-check", json={"domains": [" Sitly.COM "]})
    assert response.json() == {"results": results}
    mock.assert_awaited_once_with(["sitly.com"])


def test_domain_check_not_configured(client):
    with patch("idealauncher.domains.get_domainr_api_key", return_value=None):
        response = client.post("/api/domain-check", json={"domains": ["sitly.com"]})
    assert response.status_code == 500
    assert response.json()["type"] == "CONFIGURATION"
