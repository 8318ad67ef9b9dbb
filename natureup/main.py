import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from natureup.api.excursions import router as excursions_router
from natureup.api.health_coach import router as health_coach_router
from natureup.api.validation import router as validation_router
from natureup.api.weather import router as weather_router
from natureup.db.session import create_tables
from natureup.services.thread_cache import ThreadCache

CORS_ALLOW_ORIGINS = [
    origin.strip() for origin in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if origin.strip()
]

app = FastAPI(title="NatureUp API")
app.state.thread_cache = ThreadCache()

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)


@app.on_event("startup")
def on_startup() -> None:
    create_tables()


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(validation_router)
app.include_router(excursions_router)
app.include_router(health_coach_router)
app.include_router(weather_router)
