"""Inbound request envelope sent by the NatureUp mobile client.

The models double as the validator: ``validate_request`` runs them in strict
mode and turns pydantic's error list into the flat ``{field, message}`` list
the client renders, one entry per offending field.
"""

from dataclasses import dataclass, field
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class _StrictModel(BaseModel):
    model_config = ConfigDict(strict=True, extra="ignore")


class UserEnvelope(_StrictModel):
    id: str = Field(min_length=1)
    # Optional fields default to None when absent; an explicit null is rejected.
    healthGoals: list[str] = None
    preferences: dict[str, Any] = None


class InputEnvelope(_StrictModel):
    modality: Literal["voice", "text"]
    transcript: str = Field(min_length=1)
    language: str = None


class LocationEnvelope(_StrictModel):
    lat: float
    lng: float
    accuracyMeters: float = None


class WeatherSummaryEnvelope(_StrictModel):
    temperature: float
    condition: str


class ContextEnvelope(_StrictModel):
    screen: str = Field(min_length=1)
    excursionId: str = None
    location: LocationEnvelope = None
    weatherSummary: WeatherSummaryEnvelope = None


class CapabilitiesEnvelope(_StrictModel):
    canUseLocation: bool
    canUseBackgroundAudio: bool


class NatureUpRequest(_StrictModel):
    user: UserEnvelope
    input: InputEnvelope
    context: ContextEnvelope
    capabilities: CapabilitiesEnvelope
    clientVersion: str = Field(min_length=1)


class FieldError(BaseModel):
    field: str
    message: str


FIELD_MESSAGES: dict[str, str] = {
    "root": "Payload must be an object",
    "user": "User object is required",
    "user.id": "User ID is required and must be a string",
    "user.healthGoals": "Health goals must be an array of strings",
    "user.preferences": "Preferences must be an object",
    "input": "Input object is required",
    "input.modality": 'Modality is required and must be "voice" or "text"',
    "input.transcript": "Transcript is required and must be a string",
    "input.language": "Language must be a string",
    "context": "Context object is required",
    "context.screen": "Context screen is required and must be a string",
    "context.excursionId": "Excursion ID must be a string",
    "context.location": "Location must be an object",
    "context.location.lat": "Location latitude must be a number",
    "context.location.lng": "Location longitude must be a number",
    "context.location.accuracyMeters": "Accuracy meters must be a number",
    "context.weatherSummary": "Weather summary must be an object",
    "context.weatherSummary.temperature": "Weather temperature must be a number",
    "context.weatherSummary.condition": "Weather condition must be a string",
    "capabilities": "Capabilities object is required",
    "capabilities.canUseLocation": "canUseLocation must be a boolean",
    "capabilities.canUseBackgroundAudio": "canUseBackgroundAudio must be a boolean",
    "clientVersion": "Client version is required and must be a string",
}


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: list[FieldError] = field(default_factory=list)
    request: Optional[NatureUpRequest] = None


def _field_path(loc: tuple[Any, ...]) -> str:
    # List indices collapse into the list field itself.
    parts = [str(part) for part in loc if not isinstance(part, int)]
    return ".".join(parts) or "root"


def _collect_errors(exc: ValidationError) -> list[FieldError]:
    errors: list[FieldError] = []
    seen: set[str] = set()
    for item in exc.errors():
        path = _field_path(tuple(item.get("loc", ())))
        if path in seen:
            continue
        seen.add(path)
        errors.append(FieldError(field=path, message=FIELD_MESSAGES.get(path, str(item.get("msg", "Invalid value")))))
    return errors


def validate_request(payload: Any) -> ValidationResult:
    if not isinstance(payload, dict):
        return ValidationResult(valid=False, errors=[FieldError(field="root", message=FIELD_MESSAGES["root"])])
    try:
        request = NatureUpRequest.model_validate(payload)
    except ValidationError as exc:
        return ValidationResult(valid=False, errors=_collect_errors(exc))
    return ValidationResult(valid=True, errors=[], request=request)
