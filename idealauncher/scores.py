# Score routes: ICE / RICE snapshots

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from idealauncher import database as db
from idealauncher.auth import UserInfo, require_auth
from idealauncher.ideas import get_owned_idea
from idealauncher.models import ScoreRequest
from idealauncher.scoring import compute_total, score_field

router = APIRouter(prefix="/api/ideas", tags=["scores"])


@router.get("/{idea_id}/score")
async def get_scores(idea_id: str, user: UserInfo = Depends(require_auth)):
    await get_owned_idea(user, idea_id)
    return JSONResponse({"scores": await db.list_scores(user.uid, idea_id)})


@router.post("/{idea_id}/score", status_code=201)
async def create_score(idea_id: str, request: ScoreRequest, user: UserInfo = Depends(require_auth)):
    """Append a score snapshot and keep the idea's best score for its framework."""
    idea = await get_owned_idea(user, idea_id)
    total = compute_total(request)

    score = await db.add_score(user.uid, idea_id, {
        **request.dict(exclude={"total"}),
        "total": total,
    })

    field = score_field(request.framework)
    best = idea.get(field)
    if best is None or total > best:
        await db.update_idea(user.uid, idea_id, {field: total})

    return JSONResponse({
        "score": score,
        "message": "Score saved successfully. Dashboard will refresh when you return.",
    }, status_code=201)
