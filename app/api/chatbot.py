# app/api/chatbot.py
from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from app.api.dependencies import get_gateway, get_settings, get_store
from app.models.auth import Identity
from app.models.chat import (
    ChatRequest,
    ChatResponse,
    DeleteResponse,
    HistoryResponse,
    Role,
    SessionsResponse,
    Turn,
)
from app.services.completion_service import CompletionGateway
from app.services.firebase_auth import verify_token
from app.services.session_store import TranscriptStore
from app.utils.config import Settings
from app.utils.errors import BadRequest
from app.utils.logger import logger

router = APIRouter(prefix="/api/chatbot")


@router.post("", response_model=ChatResponse)
async def chat(
    body: ChatRequest,
    user: Identity = Depends(verify_token),
    store: TranscriptStore = Depends(get_store),
    gateway: CompletionGateway = Depends(get_gateway),
):
    """
    One chat turn: ask the model, then record the question and the reply
    under the caller's session when a sessionId is given.
    """
    if not body.queries or not body.queries.strip():
        raise BadRequest("Queries are required.")

    logger.info(f"📡 Chat request from {user.uid} (session: {body.session_id or '-'})")
    reply = await gateway.complete(body.queries)

    # Without a session id the question is a one-off and is not stored
    if body.session_id:
        await run_in_threadpool(
            store.append,
            body.session_id,
            Turn(role=Role.USER, content=body.queries),
            Turn(role=Role.ASSISTANT, content=reply),
            user.uid,
        )

    return ChatResponse(reply=reply)


@router.get("/history/{session_id}", response_model=HistoryResponse)
def get_history(
    session_id: str,
    user: Identity = Depends(verify_token),
    store: TranscriptStore = Depends(get_store),
):
    return HistoryResponse(messages=store.read(session_id, user.uid))


@router.get("/sessions", response_model=SessionsResponse)
def list_sessions(
    user: Identity = Depends(verify_token),
    store: TranscriptStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    return SessionsResponse(sessions=store.list_sessions(user.uid, limit=settings.list_limit))


@router.delete("/history/{session_id}", response_model=DeleteResponse)
def delete_history(
    session_id: str,
    user: Identity = Depends(verify_token),
    store: TranscriptStore = Depends(get_store),
):
    store.delete(session_id, user.uid)
    return DeleteResponse()
