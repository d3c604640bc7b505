# Chat routes: stored transcript and streamed assistant replies

import logging
from typing import AsyncIterator, Dict, List

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, StreamingResponse

from idealauncher import database as db
from idealauncher import llm
from idealauncher.auth import UserInfo, require_auth
from idealauncher.ideas import get_owned_idea
from idealauncher.models import ChatRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ideas", tags=["chat"])


async def _relay(assistant: llm.ChatAssistant, user_id: str, idea: dict,
                 messages: List[Dict[str, str]]) -> AsyncIterator[str]:
    """Stream chunks to the client, then persist the full reply."""
    parts = []
    try:
        async for chunk in assistant.stream_reply(idea, messages):
            parts.append(chunk)
            yield chunk
    except Exception as e:
        # Headers are already sent; end the stream and keep what arrived
        logger.error(f"Chat stream for idea {idea['id']} failed: {e}")

    reply = "".join(parts)
    if not reply:
        return
    try:
        await db.add_chat_message(user_id, idea["id"], "assistant", reply)
    except Exception as e:
        logger.error(f"Failed to save assistant message for idea {idea['id']}: {e}")


@router.post("/{idea_id}/chat")
async def chat(idea_id: str, request: ChatRequest, user: UserInfo = Depends(require_auth)):
    """Save the user's message and stream the assistant's reply as plain text."""
    idea = await get_owned_idea(user, idea_id)
    assistant = llm.ChatAssistant()

    messages = [m.dict() for m in request.messages]
    await db.add_chat_message(user.uid, idea_id, "user", messages[-1]["content"])

    return StreamingResponse(
        _relay(assistant, user.uid, idea, messages),
        media_type="text/plain; charset=utf-8",
    )


@router.get("/{idea_id}/chat")
async def chat_history(idea_id: str, user: UserInfo = Depends(require_auth)):
    await get_owned_idea(user, idea_id)
    messages = await db.list_chat_messages(user.uid, idea_id)
    return JSONResponse({"messages": messages})
