# MVP feature and tech stack routes
# Both follow replace-on-generate: a new generation deletes the previous rows

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from idealauncher import database as db
from idealauncher import llm
from idealauncher.auth import UserInfo, require_auth
from idealauncher.errors import NotFoundError
from idealauncher.ideas import get_owned_idea
from idealauncher.models import FeatureEstimateUpdate, GenerateRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ideas", tags=["planning"])

TECH_STACK = "tech_stack"


async def _recent_chat(user_id: str, idea_id: str, limit: int = 10) -> list:
    """Most recent messages first."""
    messages = await db.list_chat_messages(user_id, idea_id, limit=limit)
    return list(reversed(messages))


async def _competitors(user_id: str, idea_id: str, limit: int = 5) -> list:
    return (await db.list_findings(user_id, idea_id, "competitor"))[:limit]


# --- MVP features ---

@router.get("/{idea_id}/mvp")
async def get_features(idea_id: str, user: UserInfo = Depends(require_auth)):
    await get_owned_idea(user, idea_id)
    return JSONResponse({"features": await db.list_features(user.uid, idea_id)})


@router.post("/{idea_id}/mvp", status_code=201)
async def generate_features(idea_id: str, request: GenerateRequest, user: UserInfo = Depends(require_auth)):
    """Regenerate the MVP feature list, replacing the previous one."""
    idea = await get_owned_idea(user, idea_id)
    planner = llm.MVPPlanner()

    features = await planner.plan(
        idea,
        await _recent_chat(user.uid, idea_id),
        await _competitors(user.uid, idea_id),
    )
    saved = await db.replace_features(user.uid, idea_id, features)
    logger.info(f"Generated {len(saved)} MVP features for idea {idea_id}")
    return JSONResponse({"features": saved}, status_code=201)


@router.patch("/{idea_id}/mvp")
async def update_feature(idea_id: str, request: FeatureEstimateUpdate, user: UserInfo = Depends(require_auth)):
    await get_owned_idea(user, idea_id)
    feature = await db.update_feature(user.uid, idea_id, request.featureId, {"estimate": request.estimate})
    if feature is None:
        raise NotFoundError("Feature not found")
    return JSONResponse({"feature": feature})


# --- Tech stack ---

def _recommendation_view(finding: dict) -> dict:
    metadata = finding.get("metadata") or {}
    return {
        "id": finding.get("id"),
        "category": metadata.get("category"),
        "technology": metadata.get("technology"),
        "description": finding.get("content"),
        "rationale": metadata.get("rationale"),
        "implementationTips": metadata.get("implementationTips", []),
        "alternatives": metadata.get("alternatives", []),
        "difficulty": metadata.get("difficulty"),
        "createdAt": finding.get("createdAt"),
    }


@router.get("/{idea_id}/tech")
async def get_tech_stack(idea_id: str, user: UserInfo = Depends(require_auth)):
    await get_owned_idea(user, idea_id)
    findings = await db.list_findings(user.uid, idea_id, TECH_STACK)
    return JSONResponse({"recommendations": [_recommendation_view(f) for f in findings]})


@router.post("/{idea_id}/tech", status_code=201)
async def generate_tech_stack(idea_id: str, request: GenerateRequest, user: UserInfo = Depends(require_auth)):
    """Regenerate tech stack recommendations, replacing the previous ones."""
    idea = await get_owned_idea(user, idea_id)
    advisor = llm.TechAdvisor()

    features = await db.list_features(user.uid, idea_id)
    must_features = [f for f in features if f.get("priority") == "MUST"][:10]
    recommendations = await advisor.recommend(
        idea,
        await _recent_chat(user.uid, idea_id),
        must_features,
        await _competitors(user.uid, idea_id),
    )

    await db.delete_findings(user.uid, idea_id, TECH_STACK)
    saved = await db.add_findings(user.uid, idea_id, [{
        "type": TECH_STACK,
        "title": f"{rec['category']}: {rec['technology']}",
        "content": rec["description"],
        "metadata": {
            "category": rec["category"],
            "technology": rec["technology"],
            "rationale": rec["rationale"],
            "implementationTips": rec["implementationTips"],
            "alternatives": rec.get("alternatives") or [],
            "difficulty": rec["difficulty"],
        },
    } for rec in recommendations])
    logger.info(f"Generated {len(saved)} tech recommendations for idea {idea_id}")
    return JSONResponse({"recommendations": [_recommendation_view(f) for f in saved]}, status_code=201)
