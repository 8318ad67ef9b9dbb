import json
from typing import Any

from pydantic import ValidationError

from natureup.core.schemas import CoachingResponse, ExcursionPlan

_decoder = json.JSONDecoder()


class ResponseParseError(ValueError):
    """The assistant replied, but the reply could not be turned into the expected structure."""


def _scan_first_object(text: str) -> dict[str, Any]:
    start = text.find("{")
    while start != -1:
        try:
            parsed, _ = _decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, dict):
            return parsed
        start = text.find("{", start + 1)
    raise ResponseParseError("Failed to parse structured data from assistant response")


def extract_json_text(raw_text: str) -> dict[str, Any]:
    """Pull the JSON object embedded in free assistant text.

    Greedy match first: everything from the first ``{`` to the last ``}``.
    When that span is not valid JSON (two objects, trailing prose with braces)
    the text is scanned for the first object that decodes on its own.
    """
    text = raw_text or ""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise ResponseParseError("Could not extract structured data: no JSON object found in response")
    try:
        parsed = json.loads(text[start : end + 1])
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass
    return _scan_first_object(text)


def parse_tool_arguments(arguments: str) -> dict[str, Any]:
    # json.JSONDecodeError propagates unchanged for malformed tool arguments.
    parsed = json.loads(arguments)
    if not isinstance(parsed, dict):
        raise ResponseParseError("Tool call arguments must be a JSON object")
    return parsed


def _normalize_waypoint(raw: Any) -> Any:
    if not isinstance(raw, dict):
        return raw
    waypoint = dict(raw)
    if "latitude" not in waypoint and "lat" in waypoint:
        waypoint["latitude"] = waypoint.pop("lat")
    if "longitude" not in waypoint and "lng" in waypoint:
        waypoint["longitude"] = waypoint.pop("lng")
    return waypoint


def _normalize_excursion(raw: dict[str, Any]) -> dict[str, Any]:
    data = dict(raw)
    if not data.get("description") and data.get("summary"):
        data["description"] = data["summary"]

    route = data.get("route_data")
    route = dict(route) if isinstance(route, dict) else {}
    if "waypoints" not in route and "waypoints" in data:
        route["waypoints"] = data.pop("waypoints")
    if "terrain_type" not in route and data.get("terrain_type"):
        route["terrain_type"] = data.pop("terrain_type")
    waypoints = route.get("waypoints")
    if isinstance(waypoints, list):
        route["waypoints"] = [_normalize_waypoint(item) for item in waypoints]
    data["route_data"] = route

    # Older assistant prompts used "hard" for the top difficulty tier.
    if data.get("difficulty") == "hard":
        data["difficulty"] = "challenging"
    return data


def parse_excursion_plan(raw: dict[str, Any]) -> ExcursionPlan:
    try:
        return ExcursionPlan.model_validate(_normalize_excursion(raw))
    except ValidationError as exc:
        fields = sorted({".".join(str(part) for part in err.get("loc", ())) for err in exc.errors()})
        raise ResponseParseError(f"Excursion data has an unexpected shape: {', '.join(fields)}") from exc


def parse_coaching_response(raw: dict[str, Any]) -> CoachingResponse:
    try:
        return CoachingResponse.model_validate(raw)
    except ValidationError as exc:
        raise ResponseParseError("Coaching data has an unexpected shape") from exc
