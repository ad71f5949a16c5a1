from fastapi import APIRouter, Depends, HTTPException
from loguru import logger

from ..deps import MessageRequest, MessageResponse, SessionView, get_invoicing_service
from ...core.config import settings
from ...core.errors import ConversationBusyError, SessionNotFoundError
from ...services.billing_client import InvoicingService
from ...services.conversation import ConversationController
from ...services.sessions import session_store

router = APIRouter(prefix="/chat", tags=["chat"])


def _controller(session_id: str) -> ConversationController:
    try:
        return session_store.get(session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")


@router.post("/sessions", response_model=SessionView, status_code=201)
async def create_session(service: InvoicingService = Depends(get_invoicing_service)):
    """Open a new conversation and probe the billing backend once"""
    session_id, controller = session_store.create(lambda: ConversationController(service, settings))
    await controller.start()
    logger.info("Chat session created", session_id=session_id, online=controller.state.backend_online)
    return SessionView.of(session_id, controller)


@router.get("/sessions/{session_id}", response_model=SessionView)
async def get_session(session_id: str):
    return SessionView.of(session_id, _controller(session_id))


@router.post("/sessions/{session_id}/messages", response_model=MessageResponse)
async def post_message(session_id: str, req: MessageRequest):
    """
    Send one user message.

    Returns the turns appended by this message (the user turn first).
    409 while the previous message of the same session is still processing.
    """
    controller = _controller(session_id)
    try:
        turns = await controller.send(req.text)
    except ConversationBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return MessageResponse(turns=turns, session=SessionView.of(session_id, controller))


@router.post("/sessions/{session_id}/clear", response_model=SessionView)
async def clear_session(session_id: str):
    controller = _controller(session_id)
    try:
        controller.clear()
    except ConversationBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return SessionView.of(session_id, controller)


@router.delete("/sessions/{session_id}", status_code=204)
async def delete_session(session_id: str):
    if not session_store.delete(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
