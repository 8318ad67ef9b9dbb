import os
from typing import Optional

import httpx

from natureup.core.schemas import WeatherData

OPENWEATHER_API_BASE = os.getenv("OPENWEATHER_API_BASE", "https://api.openweathermap.org/data/2.5")
WEATHER_TIMEOUT_SECONDS = float(os.getenv("WEATHER_TIMEOUT_SECONDS", "15"))


class WeatherRequestError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def coordinates_in_range(latitude: float, longitude: float) -> bool:
    return -90 <= latitude <= 90 and -180 <= longitude <= 180


def normalize_weather(data: dict) -> WeatherData:
    main = data["main"]
    condition = data["weather"][0]
    return WeatherData(
        temperature=round(main["temp"]),
        feels_like=round(main["feels_like"]),
        humidity=main["humidity"],
        description=condition["description"],
        wind_speed=data["wind"]["speed"],
        conditions=condition["main"],
    )


class WeatherClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = (base_url or OPENWEATHER_API_BASE).rstrip("/")
        self._transport = transport

    async def current(self, latitude: float, longitude: float) -> WeatherData:
        api_key = self._api_key or os.getenv("OPENWEATHER_API_KEY", "")
        if not api_key:
            raise WeatherRequestError("OPENWEATHER_API_KEY environment variable is required")
        params = {"lat": latitude, "lon": longitude, "appid": api_key, "units": "metric"}
        async with httpx.AsyncClient(
            base_url=self._base_url, timeout=WEATHER_TIMEOUT_SECONDS, transport=self._transport
        ) as client:
            try:
                response = await client.get("/weather", params=params)
            except httpx.HTTPError as exc:
                raise WeatherRequestError(f"Weather provider unreachable: {str(exc)[:220]}") from exc
        if response.status_code >= 400:
            raise WeatherRequestError(
                f"OpenWeatherMap API error: {response.status_code} {response.text.strip()[:220]}",
                status_code=response.status_code,
            )
        try:
            return normalize_weather(response.json())
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise WeatherRequestError("OpenWeatherMap API returned an unexpected payload") from exc


def get_weather_client() -> WeatherClient:
    return WeatherClient()
