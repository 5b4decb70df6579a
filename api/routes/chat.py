"""
Chat API Routes for the RadioCare chatbot.
"""

import logging
from typing import List, Dict, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from config.settings import get_settings
from ..services import get_services
from ..middleware.metrics import record_turn

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Request / Response Models ─────────────────────────────────────

class ChatMessageRequest(BaseModel):
    user_id: Optional[str] = Field(default=None, alias="userId")
    message: Optional[str] = None


class ChatMessageResponse(BaseModel):
    response: str
    severity: str
    contextUsed: Optional[str] = None
    contextName: Optional[str] = None
    processingTime: float
    hasFollowUp: Optional[bool] = None


class HistoryItem(BaseModel):
    user: str
    bot: str
    timestamp: str
    severity: str
    contextUsed: Optional[str] = None
    contextName: Optional[str] = None
    processingTime: Optional[float] = None


class ContextSummary(BaseModel):
    key: str
    name: str
    description: str
    keywords: List[str]


class ValidationReport(BaseModel):
    isValid: bool
    errors: List[str]
    contextCount: int


# ── Endpoints ─────────────────────────────────────────────────────

def _require_ready():
    services = get_services()
    if not services.is_ready:
        raise HTTPException(status_code=503, detail="Chat service is not ready")
    return services


@router.post("/chat/message", response_model=ChatMessageResponse, response_model_exclude_unset=True)
async def send_message(request: ChatMessageRequest):
    """
    Answer a patient message.

    1. Validate input  2. Run the turn  3. Record metrics  4. Return the reply
    """
    settings = get_settings()

    if not request.user_id or request.message is None or not request.message.strip():
        raise HTTPException(
            status_code=400,
            detail={
                "error": "userId and message are required",
                "required": ["userId", "message"],
            },
        )

    if len(request.message) > settings.max_message_length:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "Message too long",
                "message": f"Please keep your message under {settings.max_message_length} characters.",
                "currentLength": len(request.message),
                "maxLength": settings.max_message_length,
            },
        )

    services = _require_ready()
    result = await services.orchestrator.handle_message(request.user_id, request.message)
    record_turn(result)

    if result.processing_time_ms > settings.slow_request_ms:
        logger.warning(
            f"Slow chat request for user {request.user_id}: {result.processing_time_ms:.0f}ms"
        )

    return result.to_dict()


@router.get("/chat/history/{user_id}", response_model=List[HistoryItem])
async def get_history(user_id: str):
    """Get a user's conversation turns, oldest first."""
    services = _require_ready()
    turns = await services.orchestrator.get_history(user_id)
    return [t.to_dict() for t in turns]


@router.get("/chat/contexts", response_model=List[ContextSummary])
async def list_contexts():
    """List the available response contexts."""
    services = _require_ready()
    return services.orchestrator.available_contexts()


@router.get("/chat/context-stats/{user_id}", response_model=Dict[str, int])
async def get_context_stats(user_id: str):
    """Count how often each context answered this user."""
    services = _require_ready()
    return await services.orchestrator.get_context_stats(user_id)


@router.post("/chat/reload-contexts")
async def reload_contexts():
    """Re-read the context catalog."""
    services = _require_ready()
    if not services.catalog.reload():
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to reload context templates"},
        )
    return {"message": "Context templates reloaded successfully"}


@router.get("/chat/validate-contexts", response_model=ValidationReport)
async def validate_contexts():
    """Validate the context catalog."""
    services = _require_ready()
    return services.catalog.validate().to_dict()
