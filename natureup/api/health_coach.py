import logging
from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.orm import Session

from natureup.api.auth import ensure_subject_matches, get_token_subject
from natureup.api.errors import bad_request, error_response, field_errors
from natureup.core.schemas import AssistantType, HealthProfile
from natureup.db.models import Conversation
from natureup.db.session import get_db
from natureup.services import coach
from natureup.services.assistant import AssistantClient, get_assistant_client
from natureup.services.thread_cache import ThreadCache, ThreadManager, get_thread_cache

router = APIRouter(tags=["health-coach"])
logger = logging.getLogger("uvicorn.error")


class CreateThreadRequest(BaseModel):
    action: Literal["create_thread"]
    user_id: str = Field(min_length=1, max_length=64)
    assistant_type: AssistantType = AssistantType.health_coach
    initial_message: Optional[str] = Field(default=None, max_length=4000)
    health_profile: Optional[HealthProfile] = None


class SendMessageRequest(BaseModel):
    action: Literal["send_message"]
    thread_id: str = Field(min_length=1, max_length=128)
    message: str = Field(min_length=1, max_length=4000)
    user_id: str = Field(min_length=1, max_length=64)
    health_profile: Optional[HealthProfile] = None


class GetMessagesRequest(BaseModel):
    action: Literal["get_messages"]
    thread_id: str = Field(min_length=1, max_length=128)


ACTION_MODELS: dict[str, type[BaseModel]] = {
    "create_thread": CreateThreadRequest,
    "send_message": SendMessageRequest,
    "get_messages": GetMessagesRequest,
}


class ConversationItem(BaseModel):
    id: str
    user_id: str
    assistant_type: str
    thread_id: str
    message_count: int
    last_message_at: str
    created_at: str


class ConversationListResponse(BaseModel):
    items: list[ConversationItem]


async def _dispatch(
    payload: BaseModel,
    assistant: AssistantClient,
    manager: ThreadManager,
    subject: Optional[str] = None,
) -> Any:
    if isinstance(payload, CreateThreadRequest):
        return await coach.start_thread(
            assistant,
            manager,
            user_id=payload.user_id,
            assistant_type=payload.assistant_type,
            initial_message=payload.initial_message,
            health_profile=payload.health_profile,
        )
    if isinstance(payload, SendMessageRequest):
        return await coach.send_message(
            assistant,
            manager,
            user_id=payload.user_id,
            thread_id=payload.thread_id,
            message=payload.message,
            health_profile=payload.health_profile,
        )
    return await coach.get_messages(assistant, payload.thread_id, manager=manager, owner_id=subject)


@router.post("/health-coach")
async def health_coach(
    request: Request,
    subject: Optional[str] = Depends(get_token_subject),
    db: Session = Depends(get_db),
    cache: ThreadCache = Depends(get_thread_cache),
    assistant: AssistantClient = Depends(get_assistant_client),
) -> JSONResponse:
    try:
        body = await request.json()
    except ValueError:
        return bad_request("Request body must be valid JSON")

    action = body.get("action") if isinstance(body, dict) else None
    model = ACTION_MODELS.get(action) if isinstance(action, str) else None
    if model is None:
        return bad_request("Invalid action")
    try:
        payload = model.model_validate(body)
    except ValidationError as exc:
        return bad_request(f"Invalid {action} request", field_errors(exc))
    user_id = getattr(payload, "user_id", None)
    if user_id is not None:
        ensure_subject_matches(subject, user_id)

    manager = ThreadManager(db, cache)
    try:
        result = await _dispatch(payload, assistant, manager, subject)
    except coach.ConversationNotFoundError as exc:
        return JSONResponse(status_code=404, content={"error": str(exc)})
    except Exception as exc:
        logger.exception("health_coach_error action=%s user_id=%s detail=%s", action, user_id, str(exc))
        return error_response(exc)
    return JSONResponse(status_code=200, content=result)


@router.get("/conversations", response_model=ConversationListResponse)
def list_conversations(
    user_id: str,
    assistant_type: Optional[AssistantType] = None,
    subject: Optional[str] = Depends(get_token_subject),
    db: Session = Depends(get_db),
) -> ConversationListResponse:
    ensure_subject_matches(subject, user_id)
    query = db.query(Conversation).filter(Conversation.user_id == user_id)
    if assistant_type:
        query = query.filter(Conversation.assistant_type == assistant_type.value)
    rows = query.order_by(Conversation.last_message_at.desc()).all()
    items = [
        ConversationItem(
            id=row.id,
            user_id=row.user_id,
            assistant_type=row.assistant_type,
            thread_id=row.thread_id,
            message_count=row.message_count,
            last_message_at=row.last_message_at.isoformat(),
            created_at=row.created_at.isoformat(),
        )
        for row in rows
    ]
    return ConversationListResponse(items=items)
