import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from natureup.api.errors import bad_request
from natureup.services.weather import (
    WeatherClient,
    WeatherRequestError,
    coordinates_in_range,
    get_weather_client,
)

router = APIRouter(tags=["weather"])
logger = logging.getLogger("uvicorn.error")


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@router.post("/weather")
async def current_weather(
    request: Request,
    weather_client: WeatherClient = Depends(get_weather_client),
) -> JSONResponse:
    try:
        body = await request.json()
    except ValueError:
        return bad_request("Request body must be valid JSON")
    if not isinstance(body, dict) or not _is_number(body.get("latitude")) or not _is_number(body.get("longitude")):
        return bad_request("Valid latitude and longitude are required")
    latitude = float(body["latitude"])
    longitude = float(body["longitude"])
    if not coordinates_in_range(latitude, longitude):
        return bad_request("Invalid coordinates range")

    try:
        weather = await weather_client.current(latitude, longitude)
    except WeatherRequestError as exc:
        logger.exception("weather_provider_error status=%s detail=%s", exc.status_code, str(exc))
        return JSONResponse(status_code=500, content={"error": str(exc)})
    return JSONResponse(status_code=200, content=weather.model_dump(mode="json"))
