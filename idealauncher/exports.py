# Specification export routes

import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from idealauncher import database as db
from idealauncher import llm
from idealauncher.auth import UserInfo, require_auth
from idealauncher.ideas import get_owned_idea
from idealauncher.models import ExportRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ideas", tags=["exports"])

EXPORT_VERSION = "1.0"


@router.get("/{idea_id}/export")
async def get_export(idea_id: str, user: UserInfo = Depends(require_auth)):
    await get_owned_idea(user, idea_id)
    latest = await db.get_latest_export(user.uid, idea_id)
    return JSONResponse({"export": latest, "hasExport": latest is not None})


@router.post("/{idea_id}/export", status_code=201)
async def generate_export(idea_id: str, request: ExportRequest, user: UserInfo = Depends(require_auth)):
    """Generate a developer-ready specification from everything known about the idea."""
    idea = await get_owned_idea(user, idea_id)
    writer = llm.SpecWriter()

    scores = await db.list_scores(user.uid, idea_id)
    messages = await db.list_chat_messages(user.uid, idea_id, limit=20)
    content = await writer.write(
        idea,
        await db.list_features(user.uid, idea_id),
        scores[0] if scores else None,
        await db.list_findings(user.uid, idea_id),
        list(reversed(messages)),
    )

    export = await db.add_export(user.uid, idea_id, {
        "format": request.format,
        "content": content,
        "metadata": {
            "generatedAt": datetime.utcnow().isoformat(),
            "ideaTitle": idea.get("title"),
            "version": EXPORT_VERSION,
        },
    })
    logger.info(f"Generated {request.format} export for idea {idea_id}")
    return JSONResponse({"export": export, "content": content}, status_code=201)
