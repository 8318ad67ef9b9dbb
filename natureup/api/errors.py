import json
from typing import Any, Optional

from fastapi.responses import JSONResponse
from pydantic import ValidationError

from natureup.core.response_parser import ResponseParseError
from natureup.services.assistant import AssistantError
from natureup.services.weather import WeatherRequestError


def error_type_for(exc: Exception) -> str:
    # Parse problems mean the provider answered; upstream problems mean it did not (usefully).
    if isinstance(exc, (ResponseParseError, json.JSONDecodeError)):
        return "parse"
    if isinstance(exc, (AssistantError, WeatherRequestError)):
        return "upstream"
    return "internal"


def error_response(exc: Exception, status_code: int = 500) -> JSONResponse:
    message = str(exc) or exc.__class__.__name__
    return JSONResponse(status_code=status_code, content={"error": message, "error_type": error_type_for(exc)})


def bad_request(message: str, errors: Optional[list[dict[str, Any]]] = None) -> JSONResponse:
    content: dict[str, Any] = {"error": message}
    if errors is not None:
        content["errors"] = errors
    return JSONResponse(status_code=400, content=content)


def field_errors(exc: ValidationError) -> list[dict[str, str]]:
    return [
        {"field": ".".join(str(part) for part in err.get("loc", ())) or "root", "message": str(err.get("msg", ""))}
        for err in exc.errors()
    ]
