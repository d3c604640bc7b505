# Research routes: competitor, monetization and naming findings

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from idealauncher import database as db
from idealauncher import llm
from idealauncher.auth import UserInfo, require_auth
from idealauncher.errors import NotFoundError
from idealauncher.ideas import get_owned_idea
from idealauncher.models import FINDING_TYPE_FOR_RESEARCH, FindingUpdate, ResearchRequest, finding_view

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ideas", tags=["research"])

# Response key for each research type
RESPONSE_KEYS = {"competitors": "competitors", "monetization": "monetization", "naming": "names"}


def to_finding(finding_type: str, item: dict) -> dict:
    """Stored row for one validated research item."""
    if finding_type == "competitor":
        return {
            "type": finding_type,
            "title": item["name"],
            "content": item.get("description", ""),
            "url": item.get("url") or None,
            "metadata": {
                "features": item.get("features", []),
                "differentiation": item.get("differentiation", ""),
            },
        }
    if finding_type == "monetization":
        return {
            "type": finding_type,
            "title": item["model"],
            "content": item.get("description", ""),
            "metadata": {
                "examples": item.get("examples", []),
                "pricing": item.get("pricing", ""),
                "pros": item.get("pros", []),
                "cons": item.get("cons", []),
            },
        }
    return {
        "type": finding_type,
        "title": item["name"],
        "content": item.get("explanation", ""),
        "metadata": {"style": item.get("style", "Unknown")},
    }


@router.post("/{idea_id}/research")
async def generate_research(idea_id: str, request: ResearchRequest, user: UserInfo = Depends(require_auth)):
    """Generate findings of one type and store them."""
    idea = await get_owned_idea(user, idea_id)
    researcher = llm.Researcher()

    items = await researcher.research(idea, request.type)
    finding_type = FINDING_TYPE_FOR_RESEARCH[request.type]
    saved = await db.add_findings(user.uid, idea_id, [to_finding(finding_type, item) for item in items])
    logger.info(f"Stored {len(saved)} {request.type} findings for idea {idea_id}")

    return JSONResponse({RESPONSE_KEYS[request.type]: [finding_view(f) for f in saved]})


@router.get("/{idea_id}/research")
async def get_research(idea_id: str, user: UserInfo = Depends(require_auth)):
    """Findings grouped by type, newest first."""
    await get_owned_idea(user, idea_id)
    findings = await db.list_findings(user.uid, idea_id)

    grouped = {"competitors": [], "monetization": [], "names": []}
    for finding in findings:
        kind = finding.get("type")
        if kind == "competitor":
            grouped["competitors"].append(finding_view(finding))
        elif kind == "monetization":
            grouped["monetization"].append(finding_view(finding))
        elif kind == "naming":
            grouped["names"].append(finding_view(finding))
    return JSONResponse(grouped)


@router.patch("/{idea_id}/research/{finding_id}")
async def update_finding(idea_id: str, finding_id: str, request: FindingUpdate,
                         user: UserInfo = Depends(require_auth)):
    await get_owned_idea(user, idea_id)
    finding = await db.update_finding(user.uid, idea_id, finding_id, {"isInserted": request.isInserted})
    if finding is None:
        raise NotFoundError("Research finding not found")
    return JSONResponse({"id": finding["id"], "isInserted": finding.get("isInserted", False)})
