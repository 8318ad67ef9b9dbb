import logging
from typing import Optional

from pydantic import BaseModel, Field

from natureup.core.prompts import format_excursion_prompt
from natureup.core.response_parser import (
    extract_json_text,
    parse_excursion_plan,
    parse_tool_arguments,
)
from natureup.core.schemas import (
    AssistantType,
    ExcursionPlan,
    ExcursionPreferences,
    HealthProfile,
    LocationInput,
    WeatherData,
)
from natureup.services.assistant import (
    EXCURSION_TOOL_NAME,
    AssistantClient,
    assistant_id_for,
    ensure_usable,
    extract_tool_arguments,
    latest_assistant_text,
    run_assistant,
)

logger = logging.getLogger("uvicorn.error")


class ExcursionRequest(BaseModel):
    user_id: str = Field(min_length=1, max_length=64)
    preferences: ExcursionPreferences = Field(default_factory=ExcursionPreferences)
    location: LocationInput
    health_profile: Optional[HealthProfile] = None
    weather_data: Optional[WeatherData] = None


async def generate_excursion(client: AssistantClient, request: ExcursionRequest) -> ExcursionPlan:
    prompt = format_excursion_prompt(
        request.preferences,
        request.location,
        weather=request.weather_data,
        health_profile=request.health_profile,
    )
    outcome = await run_assistant(client, assistant_id_for(AssistantType.excursion_creator), prompt)
    ensure_usable(outcome)

    if outcome.status == "requires_action":
        raw = parse_tool_arguments(extract_tool_arguments(outcome.run, EXCURSION_TOOL_NAME))
        source = "tool_call"
    else:
        raw = extract_json_text(await latest_assistant_text(client, outcome.thread_id))
        source = "text"

    plan = parse_excursion_plan(raw)
    if request.weather_data and plan.weather_context is None:
        plan = plan.model_copy(update={"weather_context": request.weather_data})
    logger.info(
        "excursion_generated user_id=%s thread_id=%s source=%s waypoints=%s",
        request.user_id,
        outcome.thread_id,
        source,
        len(plan.route_data.waypoints),
    )
    return plan
