"""
Catalog Agent - API Routes
===========================
Thin controllers mapping HTTP to the responder:

  - GET  /                  → banner
  - POST /chat              → new thread (id = request time in ms)
  - POST /chat/{thread_id}  → continue an existing (or new) thread

Both chat routes take ``{"message": str}`` and return
``{"response": str, "thread_id": str}``.  A missing or blank message is
HTTP 422; any other failure becomes HTTP 500
``{"error": "Internal server error"}`` with no internal detail.
"""

from __future__ import annotations

import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field, field_validator

from catalog_agent.config.prompt_templates import GENERIC_ERROR_MESSAGE
from catalog_agent.src.core.errors import ChatFailedError
from catalog_agent.src.core.rag_engine import RAGResponder
from catalog_agent.src.utils.logger import get_logger
from catalog_agent.src.utils.text_utils import normalize_message

logger = get_logger(__name__)

router = APIRouter()


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, description="User message")

    @field_validator("message")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not normalize_message(v):
            raise ValueError("message must contain visible text")
        return v


class ChatResponse(BaseModel):
    response: str
    thread_id: str


def _new_thread_id() -> str:
    return str(int(time.time() * 1000))


def _responder(request: Request) -> RAGResponder:
    return request.app.state.responder


@router.get("/", response_class=PlainTextResponse)
async def root() -> str:
    return "Catalog Agent Server"


@router.post("/chat", response_model=ChatResponse)
async def start_chat(body: ChatRequest, request: Request):
    """Start a conversation; the thread id is derived from the request time."""
    return await _chat(_responder(request), _new_thread_id(), body.message)


@router.post("/chat/{thread_id}", response_model=ChatResponse)
async def continue_chat(thread_id: str, body: ChatRequest, request: Request):
    return await _chat(_responder(request), thread_id, body.message)


async def _chat(responder: RAGResponder, thread_id: str, message: str):
    logger.info("[API] Message for thread '%s' (%d chars).", thread_id, len(message))
    try:
        reply = await responder.respond(thread_id, message)
    except ChatFailedError:
        logger.error("[API] Error in chat for thread '%s'.", thread_id)
        return JSONResponse(status_code=500, content={"error": GENERIC_ERROR_MESSAGE})
    return ChatResponse(response=reply, thread_id=thread_id)
