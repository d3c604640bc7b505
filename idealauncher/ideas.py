# Idea routes: CRUD, title checks, document versions and section insertion
# Every route loads the idea under the caller's uid, so foreign ids are 404

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from idealauncher import database as db
from idealauncher.auth import UserInfo, require_auth
from idealauncher.config import VERSION_HISTORY_LIMIT
from idealauncher.editor import (
    DocumentEditor,
    EditorRegistry,
    UnknownSectionError,
    VersionOutbox,
    VersionSnapshot,
)
from idealauncher.errors import APIError, ErrorType, NotFoundError
from idealauncher.models import (
    IdeaCreate,
    IdeaUpdate,
    InsertRequest,
    SortField,
    SortOrder,
    TitleCheck,
    VersionCreate,
)
from idealauncher.sections import initial_document, list_sections

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ideas", tags=["ideas"])


async def _save_snapshot(snapshot: VersionSnapshot):
    return await db.add_version(
        snapshot.user_id, snapshot.idea_id, snapshot.content,
        snapshot.change_type, snapshot.summary,
    )


# Process-wide editor sessions and version delivery
editors = EditorRegistry()
version_outbox = VersionOutbox(_save_snapshot)


async def get_owned_idea(user: UserInfo, idea_id: str) -> dict:
    idea = await db.get_idea(user.uid, idea_id)
    if idea is None:
        raise NotFoundError("Idea not found")
    return idea


@router.get("")
async def list_ideas(
    sortBy: SortField = Query("updatedAt"),
    sortOrder: SortOrder = Query("desc"),
    user: UserInfo = Depends(require_auth),
):
    """Non-archived ideas for the dashboard."""
    ideas = await db.list_ideas(user.uid, sortBy, sortOrder)
    return JSONResponse(ideas)


@router.post("", status_code=201)
async def create_idea(request: IdeaCreate, user: UserInfo = Depends(require_auth)):
    idea = await db.create_idea(
        user.uid, request.title, request.oneLiner, initial_document(request.title)
    )
    logger.info(f"Created idea {idea['id']} for user {user.uid}")
    return JSONResponse(idea, status_code=201)


@router.post("/validate-title")
async def validate_title(request: TitleCheck, user: UserInfo = Depends(require_auth)):
    exists = await db.title_exists(user.uid, request.title, request.excludeId)
    return JSONResponse({
        "isUnique": not exists,
        "message": "Title already exists" if exists else "Title is available",
    })


@router.get("/sections")
async def get_sections(user: UserInfo = Depends(require_auth)):
    """Document sections in their canonical order."""
    return JSONResponse({"sections": [
        {"id": s.id, "title": s.title, "placeholder": s.placeholder} for s in list_sections()
    ]})


@router.get("/{idea_id}")
async def get_idea(idea_id: str, user: UserInfo = Depends(require_auth)):
    """One idea with its chat, research, features, latest score and exports."""
    idea = await get_owned_idea(user, idea_id)
    scores = await db.list_scores(user.uid, idea_id)
    idea.update({
        "chatMessages": await db.list_chat_messages(user.uid, idea_id),
        "research": await db.list_findings(user.uid, idea_id),
        "features": await db.list_features(user.uid, idea_id),
        "scores": scores[:1],
        "exports": await db.list_exports(user.uid, idea_id),
    })
    return JSONResponse(idea)


@router.patch("/{idea_id}")
async def update_idea(idea_id: str, request: IdeaUpdate, user: UserInfo = Depends(require_auth)):
    fields = request.dict(exclude_unset=True, exclude_none=True)
    if not fields:
        raise APIError("No fields to update", 400, ErrorType.VALIDATION)
    updated = await db.update_idea(user.uid, idea_id, fields)
    if updated is None:
        raise NotFoundError("Idea not found")
    return JSONResponse(updated)


@router.delete("/{idea_id}")
async def delete_idea(idea_id: str, user: UserInfo = Depends(require_auth)):
    if not await db.delete_idea(user.uid, idea_id):
        raise NotFoundError("Idea not found")
    logger.info(f"Deleted idea {idea_id} for user {user.uid}")
    return JSONResponse({"success": True})


# --- Versions ---

@router.get("/{idea_id}/versions")
async def list_versions(idea_id: str, user: UserInfo = Depends(require_auth)):
    await get_owned_idea(user, idea_id)
    versions = await db.list_versions(user.uid, idea_id, limit=VERSION_HISTORY_LIMIT)
    return JSONResponse({"versions": versions, "outbox": version_outbox.status(idea_id)})


@router.post("/{idea_id}/versions")
async def create_version(idea_id: str, request: VersionCreate, user: UserInfo = Depends(require_auth)):
    await get_owned_idea(user, idea_id)
    version = await db.add_version(user.uid, idea_id, request.content, request.changeType, request.summary)
    return JSONResponse(version)


@router.post("/{idea_id}/versions/retry")
async def retry_versions(idea_id: str, user: UserInfo = Depends(require_auth)):
    """Requeue version snapshots that exhausted their delivery attempts."""
    await get_owned_idea(user, idea_id)
    retried = version_outbox.retry_failed(idea_id)
    return JSONResponse({"retried": retried, "outbox": version_outbox.status(idea_id)})


# --- Document insertion ---

@router.post("/{idea_id}/document/insert")
async def insert_content(idea_id: str, request: InsertRequest, user: UserInfo = Depends(require_auth)):
    """Insert content into a document section, creating the section when missing."""
    # One document read-modify-write per idea at a time in this process;
    # PUT /api/ideas/{id} and other workers stay last-write-wins
    async with editors.lock(idea_id):
        idea = await get_owned_idea(user, idea_id)
        editor = DocumentEditor(user.uid, idea_id, idea.get("documentMd") or "",
                                version_sink=version_outbox.enqueue)
        with editors.mount(editor):
            try:
                result = editor.insert(request.sectionId, request.content, request.source)
            except UnknownSectionError as e:
                raise APIError(str(e), 400, ErrorType.VALIDATION, [{"field": "sectionId", "message": str(e)}])
        await db.update_idea(user.uid, idea_id, {"documentMd": result.content})

    if request.findingId:
        finding = await db.update_finding(user.uid, idea_id, request.findingId, {"isInserted": True})
        if finding is None:
            logger.warning(f"Finding {request.findingId} not found while marking inserted")

    start, end = result.cursor
    return JSONResponse({
        "documentMd": result.content,
        "sectionId": result.section_id,
        "sectionTitle": result.section_title,
        "createdSection": result.created_section,
        "cursor": {"start": start, "end": end},
        "outbox": version_outbox.status(idea_id),
    })
