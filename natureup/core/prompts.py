import json
from typing import Optional

from natureup.core.schemas import ExcursionPreferences, HealthProfile, LocationInput, WeatherData

EXCURSION_PREAMBLE = "Create a personalized nature therapy excursion with the following parameters:"


def _number(value: float) -> str:
    # 45.0 renders as "45", 2.5 stays "2.5".
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def _excursion_template(location: LocationInput) -> str:
    template = {
        "title": "Excursion title",
        "description": "Detailed description of the excursion and its therapeutic benefits",
        "route_data": {
            "waypoints": [
                {
                    "latitude": 0,
                    "longitude": 0,
                    "name": "Waypoint name",
                    "description": "Brief description",
                    "order": 1,
                }
            ],
            "start_location": {
                "latitude": location.latitude,
                "longitude": location.longitude,
                "address": location.address,
            },
            "end_location": {"latitude": 0, "longitude": 0, "address": "End location address"},
            "terrain_type": "Terrain type",
            "elevation_gain": 0,
        },
        "duration_minutes": 0,
        "distance_km": 0,
        "difficulty": "easy",
    }
    return json.dumps(template, indent=2)


def format_excursion_prompt(
    preferences: ExcursionPreferences,
    location: LocationInput,
    weather: Optional[WeatherData] = None,
    health_profile: Optional[HealthProfile] = None,
) -> str:
    parts = [EXCURSION_PREAMBLE]
    place = location.address or f"{location.latitude}, {location.longitude}"
    parts.append(f"\nLocation: {place}")

    if preferences.duration_minutes:
        parts.append(f"Duration: {_number(preferences.duration_minutes)} minutes")
    if preferences.distance_km:
        parts.append(f"Distance: {_number(preferences.distance_km)} km")
    if preferences.difficulty:
        parts.append(f"Difficulty: {preferences.difficulty.value}")
    if preferences.terrain:
        parts.append(f"Preferred terrain: {preferences.terrain.value}")
    if preferences.time_of_day:
        parts.append(f"Time of day: {preferences.time_of_day.value}")

    if weather:
        parts.append(
            f"\nCurrent weather: {weather.description}, {_number(weather.temperature)}°C "
            f"(feels like {_number(weather.feels_like)}°C)"
        )
        parts.append(f"Humidity: {_number(weather.humidity)}%, Wind speed: {_number(weather.wind_speed)} m/s")

    if health_profile:
        if health_profile.full_name:
            parts.append(f"\nUser: {health_profile.full_name}")
        if health_profile.health_goals:
            parts.append(f"Health goals: {', '.join(health_profile.health_goals)}")

    parts.append("\nPlease provide the excursion in the following JSON format:")
    parts.append(_excursion_template(location))
    return "\n".join(parts)


def format_health_profile(profile: Optional[HealthProfile]) -> str:
    if not profile:
        return ""
    parts = []
    if profile.full_name:
        parts.append(f"User's name: {profile.full_name}")
    if profile.health_goals:
        parts.append(f"Health goals: {', '.join(profile.health_goals)}")
    if profile.preferences:
        parts.append(f"Preferences: {json.dumps(profile.preferences, sort_keys=True)}")
    return "\n".join(parts)


def format_coach_message(message: str, profile: Optional[HealthProfile] = None) -> str:
    profile_context = format_health_profile(profile)
    if not profile_context:
        return message
    return f"{profile_context}\n\nUser message: {message}"
