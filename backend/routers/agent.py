"""
Charla Agent Router
HTTP transport for conversational turns

Endpoints:
- POST /api/agent     one turn; chunked plain text (default) or JSON
- GET  /api/messages  recent persisted messages for the caller

The session token travels in an http-only cookie. Cookie changes made by
tools during the turn are applied before the first body byte is sent.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field, field_validator

from config import runtime_config
from routers.chat_orchestration import COOKIE_CLEAR, COOKIE_SET, TurnResult, UploadedFile

logger = logging.getLogger(__name__)

router = APIRouter()


class UploadedFileRef(BaseModel):
    fileName: str = Field(..., min_length=1)
    openaiFileId: str = ""
    documentId: str = ""


class AgentRequest(BaseModel):
    query: str = Field(..., description="User message")
    uploadedFiles: List[UploadedFileRef] = Field(default_factory=list)
    stream: bool = True

    @field_validator("query")
    @classmethod
    def query_within_limits(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("query must not be empty")
        limit = runtime_config.max_message_length
        if len(value) > limit:
            raise ValueError(f"query longer than {limit} characters")
        return value

    def uploaded_files(self) -> List[UploadedFile]:
        return [
            UploadedFile(file_name=f.fileName, openai_file_id=f.openaiFileId, document_id=f.documentId)
            for f in self.uploadedFiles
        ]


def apply_session_cookie(response: Response, result: TurnResult) -> None:
    """Set or clear the session cookie according to the turn's last session mutation."""
    name = runtime_config.session_cookie_name
    if result.cookie_action == COOKIE_SET and result.issued_token:
        response.set_cookie(
            key=name,
            value=result.issued_token,
            max_age=runtime_config.session_ttl_seconds,
            path="/",
            httponly=True,
            secure=runtime_config.cookie_secure,
            samesite="lax",
        )
    elif result.cookie_action == COOKIE_CLEAR:
        response.delete_cookie(
            key=name,
            path="/",
            httponly=True,
            secure=runtime_config.cookie_secure,
            samesite="lax",
        )


def _session_token(request: Request) -> Optional[str]:
    return request.cookies.get(runtime_config.session_cookie_name)


@router.post("/agent")
async def agent(body: AgentRequest, request: Request):
    """Process one message. Errors propagate to the app-level handlers."""
    orchestrator = request.app.state.orchestrator
    result = await orchestrator.handle_turn(
        body.query,
        session_token=_session_token(request),
        uploaded_files=body.uploaded_files(),
        stream=body.stream,
    )

    if result.streamed:
        response = StreamingResponse(result.chunks, media_type="text/plain; charset=utf-8")
    else:
        response = JSONResponse({"answer": result.text, "tools": result.tools_trace()})

    apply_session_cookie(response, result)
    return response


@router.get("/messages")
async def list_messages(request: Request, limit: Optional[int] = None):
    """Recent messages for the session's identity, oldest first. Empty without a session."""
    sessions = request.app.state.sessions
    store = request.app.state.store

    identity = await sessions.resolve(_session_token(request))
    if identity is None:
        return {"messages": []}

    limit = runtime_config.history_limit if limit is None else max(0, min(limit, 200))
    records = await store.alast_messages(identity.id, limit)
    return {"messages": [r.to_dict() for r in records]}
