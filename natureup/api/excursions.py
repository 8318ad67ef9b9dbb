import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.orm import Session

from natureup.api.auth import ensure_subject_matches, get_token_subject
from natureup.api.errors import bad_request, error_response, field_errors
from natureup.core.schemas import ExcursionPlan
from natureup.db.models import Excursion
from natureup.db.session import get_db
from natureup.services.assistant import AssistantClient, get_assistant_client
from natureup.services.excursions import ExcursionRequest, generate_excursion

router = APIRouter(tags=["excursions"])
logger = logging.getLogger("uvicorn.error")


class ExcursionSaveRequest(BaseModel):
    user_id: str = Field(min_length=1, max_length=64)
    plan: ExcursionPlan


class ExcursionItem(BaseModel):
    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    route_data: dict[str, Any]
    duration_minutes: Optional[float] = None
    distance_km: Optional[float] = None
    difficulty: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None


class ExcursionListResponse(BaseModel):
    items: list[ExcursionItem]


class ExcursionDeleteResponse(BaseModel):
    deleted: bool


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _has_valid_location(body: Any) -> bool:
    if not isinstance(body, dict):
        return False
    location = body.get("location")
    if not isinstance(location, dict):
        return False
    return _is_number(location.get("latitude")) and _is_number(location.get("longitude"))


def _to_item(row: Excursion) -> ExcursionItem:
    return ExcursionItem(
        id=row.id,
        user_id=row.user_id,
        title=row.title,
        description=row.description,
        route_data=row.route_data or {},
        duration_minutes=row.duration_minutes,
        distance_km=row.distance_km,
        difficulty=row.difficulty,
        created_at=row.created_at,
        completed_at=row.completed_at,
    )


def _get_owned_excursion(db: Session, excursion_id: str, subject: Optional[str]) -> Excursion:
    row = db.query(Excursion).filter(Excursion.id == excursion_id).first()
    if not row or (subject is not None and row.user_id != subject):
        raise HTTPException(status_code=404, detail="Excursion not found")
    return row


@router.post("/excursion-creator")
async def create_excursion_plan(
    request: Request,
    subject: Optional[str] = Depends(get_token_subject),
    assistant: AssistantClient = Depends(get_assistant_client),
) -> JSONResponse:
    try:
        body = await request.json()
    except ValueError:
        return bad_request("Request body must be valid JSON")
    if not _has_valid_location(body):
        return bad_request("Valid location with latitude and longitude is required")
    try:
        payload = ExcursionRequest.model_validate(body)
    except ValidationError as exc:
        return bad_request("Invalid excursion request", field_errors(exc))
    ensure_subject_matches(subject, payload.user_id)

    try:
        plan = await generate_excursion(assistant, payload)
    except Exception as exc:
        logger.exception("excursion_creator_error user_id=%s detail=%s", payload.user_id, str(exc))
        return error_response(exc)
    return JSONResponse(status_code=200, content=plan.model_dump(mode="json", exclude_none=True))


@router.post("/excursions", response_model=ExcursionItem, status_code=status.HTTP_201_CREATED)
def save_excursion(
    payload: ExcursionSaveRequest,
    subject: Optional[str] = Depends(get_token_subject),
    db: Session = Depends(get_db),
) -> ExcursionItem:
    ensure_subject_matches(subject, payload.user_id)
    plan = payload.plan
    row = Excursion(
        user_id=payload.user_id,
        title=plan.title.strip(),
        description=plan.description,
        route_data=plan.route_data.model_dump(mode="json", exclude_none=True),
        duration_minutes=plan.duration_minutes,
        distance_km=plan.distance_km,
        difficulty=plan.difficulty.value if plan.difficulty else None,
        created_at=datetime.now(timezone.utc),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return _to_item(row)


@router.get("/excursions", response_model=ExcursionListResponse)
def list_excursions(
    user_id: str,
    completed: Optional[bool] = None,
    subject: Optional[str] = Depends(get_token_subject),
    db: Session = Depends(get_db),
) -> ExcursionListResponse:
    ensure_subject_matches(subject, user_id)
    query = db.query(Excursion).filter(Excursion.user_id == user_id)
    if completed is True:
        query = query.filter(Excursion.completed_at.is_not(None))
    elif completed is False:
        query = query.filter(Excursion.completed_at.is_(None))
    rows = query.order_by(Excursion.created_at.desc()).all()
    return ExcursionListResponse(items=[_to_item(row) for row in rows])


@router.get("/excursions/{excursion_id}", response_model=ExcursionItem)
def get_excursion(
    excursion_id: str,
    subject: Optional[str] = Depends(get_token_subject),
    db: Session = Depends(get_db),
) -> ExcursionItem:
    return _to_item(_get_owned_excursion(db, excursion_id, subject))


@router.post("/excursions/{excursion_id}/complete", response_model=ExcursionItem)
def complete_excursion(
    excursion_id: str,
    subject: Optional[str] = Depends(get_token_subject),
    db: Session = Depends(get_db),
) -> ExcursionItem:
    row = _get_owned_excursion(db, excursion_id, subject)
    if row.completed_at is not None:
        raise HTTPException(status_code=409, detail="Excursion already completed")
    row.completed_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(row)
    return _to_item(row)


@router.delete("/excursions/{excursion_id}", response_model=ExcursionDeleteResponse)
def delete_excursion(
    excursion_id: str,
    subject: Optional[str] = Depends(get_token_subject),
    db: Session = Depends(get_db),
) -> ExcursionDeleteResponse:
    row = _get_owned_excursion(db, excursion_id, subject)
    db.delete(row)
    db.commit()
    return ExcursionDeleteResponse(deleted=True)
