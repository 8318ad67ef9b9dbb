from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class Difficulty(str, Enum):
    easy = "easy"
    moderate = "moderate"
    challenging = "challenging"


class Terrain(str, Enum):
    forest = "forest"
    beach = "beach"
    mountain = "mountain"
    park = "park"
    urban = "urban"


class TimeOfDay(str, Enum):
    morning = "morning"
    afternoon = "afternoon"
    evening = "evening"


class AssistantType(str, Enum):
    health_coach = "health_coach"
    excursion_creator = "excursion_creator"


class ExcursionPreferences(BaseModel):
    duration_minutes: Optional[float] = Field(default=None, gt=0)
    distance_km: Optional[float] = Field(default=None, gt=0)
    difficulty: Optional[Difficulty] = None
    terrain: Optional[Terrain] = None
    time_of_day: Optional[TimeOfDay] = None


class LocationInput(BaseModel):
    latitude: float
    longitude: float
    address: Optional[str] = None


class WeatherData(BaseModel):
    temperature: float
    feels_like: float
    humidity: float
    description: str
    wind_speed: float
    conditions: str


class HealthProfile(BaseModel):
    full_name: Optional[str] = None
    health_goals: list[str] = Field(default_factory=list)
    preferences: dict[str, Any] = Field(default_factory=dict)


class Waypoint(BaseModel):
    latitude: float
    longitude: float
    name: Optional[str] = None
    description: Optional[str] = None
    order: int = 0


class RouteLocation(BaseModel):
    latitude: float
    longitude: float
    address: Optional[str] = None


class RouteData(BaseModel):
    waypoints: list[Waypoint] = Field(default_factory=list)
    start_location: Optional[RouteLocation] = None
    end_location: Optional[RouteLocation] = None
    terrain_type: Optional[str] = None
    elevation_gain: Optional[float] = None


class ExcursionPlan(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    route_data: RouteData = Field(default_factory=RouteData)
    duration_minutes: Optional[float] = None
    distance_km: Optional[float] = None
    difficulty: Optional[Difficulty] = None
    therapeutic_benefits: list[str] = Field(default_factory=list)
    weather_context: Optional[WeatherData] = None

    def ordered_waypoints(self) -> list[Waypoint]:
        # Order values are only relative; gaps and negative values are allowed.
        return sorted(self.route_data.waypoints, key=lambda waypoint: waypoint.order)


class CoachingExercise(BaseModel):
    name: str
    description: str = ""
    duration_minutes: Optional[float] = None


class CoachingResponse(BaseModel):
    spokenText: str = Field(min_length=1)
    intent: Optional[str] = None
    exercises: list[CoachingExercise] = Field(default_factory=list)
    follow_up_suggestions: list[str] = Field(default_factory=list)
