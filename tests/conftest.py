import json
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from natureup.db.session import SessionLocal, configure_database, create_tables
from natureup.services import assistant as assistant_service
from natureup.services.assistant import AssistantRequestError, get_assistant_client


class FakeScenario(str, Enum):
    TEXT_PLAN = "TEXT_PLAN"
    TOOL_PLAN = "TOOL_PLAN"
    TOOL_MISSING = "TOOL_MISSING"
    TOOL_BAD_ARGS = "TOOL_BAD_ARGS"
    NO_JSON_TEXT = "NO_JSON_TEXT"
    PLAN_WITHOUT_TITLE = "PLAN_WITHOUT_TITLE"
    RUN_FAILED = "RUN_FAILED"
    STUCK = "STUCK"
    COACH_TEXT = "COACH_TEXT"
    COACH_TOOL = "COACH_TOOL"
    PROVIDER_DOWN = "PROVIDER_DOWN"


COACH_TEXT_REPLY = "A short walk after lunch is a great way to reset. How about 15 minutes by the lake?"


class FakeAssistantClient:
    """In-memory stand-in for the assistant provider, driven by a scenario."""

    def __init__(self, scenario: FakeScenario, fixture_dir: Path) -> None:
        self.scenario = scenario
        self.fixture_dir = fixture_dir
        self.threads: dict[str, list[dict[str, Any]]] = {}
        self.runs: dict[str, dict[str, Any]] = {}
        self.prompts: list[str] = []
        self.retrieve_calls = 0
        self.cancelled: list[str] = []
        self._clock = 1_700_000_000

    def _load_text(self, name: str) -> str:
        return (self.fixture_dir / name).read_text(encoding="utf-8")

    def _message(self, role: str, text: str) -> dict[str, Any]:
        self._clock += 1
        return {
            "id": f"msg_{self._clock}",
            "role": role,
            "content": [{"type": "text", "text": {"value": text, "annotations": []}}],
            "created_at": self._clock,
        }

    def _tool_run(self, run: dict[str, Any], name: str, arguments: str) -> dict[str, Any]:
        return {
            **run,
            "status": "requires_action",
            "required_action": {
                "type": "submit_tool_outputs",
                "submit_tool_outputs": {
                    "tool_calls": [
                        {"id": "call_1", "type": "function", "function": {"name": name, "arguments": arguments}}
                    ]
                },
            },
        }

    def _finish(self, thread_id: str, run: dict[str, Any]) -> dict[str, Any]:
        scenario = self.scenario
        if scenario == FakeScenario.STUCK:
            return {**run, "status": "in_progress"}
        if scenario == FakeScenario.RUN_FAILED:
            return {**run, "status": "failed"}
        if scenario == FakeScenario.TOOL_PLAN:
            return self._tool_run(run, "plan_excursion", self._load_text("EXCURSION_PLAN.json"))
        if scenario == FakeScenario.TOOL_MISSING:
            return self._tool_run(run, "update_app_state", json.dumps({"navigation": {"screen": "home"}}))
        if scenario == FakeScenario.TOOL_BAD_ARGS:
            return self._tool_run(run, "plan_excursion", '{"title": "Broken",')
        if scenario == FakeScenario.COACH_TOOL:
            return self._tool_run(run, "coach_user", self._load_text("COACH_TOOL.json"))

        if scenario == FakeScenario.TEXT_PLAN:
            text = self._load_text("EXCURSION_TEXT.txt")
        elif scenario == FakeScenario.NO_JSON_TEXT:
            text = "I would suggest a nice walk in the park near you."
        elif scenario == FakeScenario.PLAN_WITHOUT_TITLE:
            text = 'Plan: {"description": "No title here", "route_data": {"waypoints": []}}'
        else:
            text = COACH_TEXT_REPLY
        self.threads[thread_id].append(self._message("assistant", text))
        return {**run, "status": "completed"}

    async def create_thread(self) -> str:
        if self.scenario == FakeScenario.PROVIDER_DOWN:
            raise AssistantRequestError("Assistant request failed (status=503): upstream unavailable", status_code=503)
        thread_id = f"thread_{uuid4().hex[:12]}"
        self.threads[thread_id] = []
        return thread_id

    async def add_message(self, thread_id: str, content: str) -> dict[str, Any]:
        self.prompts.append(content)
        message = self._message("user", content)
        self.threads.setdefault(thread_id, []).append(message)
        return message

    async def create_run(self, thread_id: str, assistant_id: str) -> dict[str, Any]:
        run = {"id": f"run_{len(self.runs) + 1}", "thread_id": thread_id, "assistant_id": assistant_id, "status": "queued"}
        self.runs[run["id"]] = run
        return run

    async def retrieve_run(self, thread_id: str, run_id: str) -> dict[str, Any]:
        self.retrieve_calls += 1
        run = self.runs[run_id]
        if run["status"] in {"queued", "in_progress"}:
            run = self._finish(thread_id, run)
            self.runs[run_id] = run
        return run

    async def cancel_run(self, thread_id: str, run_id: str) -> dict[str, Any]:
        self.cancelled.append(run_id)
        run = {**self.runs[run_id], "status": "cancelled"}
        self.runs[run_id] = run
        return run

    async def list_messages(self, thread_id: str) -> list[dict[str, Any]]:
        return list(reversed(self.threads.get(thread_id, [])))


@pytest.fixture(scope="session")
def fixture_dir() -> Path:
    return Path(__file__).resolve().parent / "fixtures" / "assistant"


@pytest.fixture(scope="session")
def test_db_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    db_path = tmp_path_factory.mktemp("db") / "natureup_test.db"
    configure_database(str(db_path))
    create_tables()
    return db_path


@pytest.fixture(scope="session")
def app(test_db_path: Path):
    from natureup.main import app as fastapi_app

    return fastapi_app


@pytest.fixture
def assistant_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_HEALTH_COACH_ASSISTANT_ID", "asst_coach_test")
    monkeypatch.setenv("OPENAI_EXCURSION_CREATOR_ASSISTANT_ID", "asst_excursion_test")
    monkeypatch.setattr(assistant_service, "POLL_INTERVAL_SECONDS", 0.0)


@pytest.fixture
def client(app, assistant_env):
    app.dependency_overrides = {}
    app.state.thread_cache.clear()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides = {}


@pytest.fixture
def db_session(test_db_path: Path):
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def fake_assistant_factory(fixture_dir: Path) -> Callable[[FakeScenario], FakeAssistantClient]:
    def _factory(scenario: FakeScenario) -> FakeAssistantClient:
        return FakeAssistantClient(scenario=scenario, fixture_dir=fixture_dir)

    return _factory


@pytest.fixture
def override_assistant(app, fake_assistant_factory):
    def _override(scenario: FakeScenario, fake: Optional[FakeAssistantClient] = None) -> FakeAssistantClient:
        instance = fake or fake_assistant_factory(scenario)
        app.dependency_overrides[get_assistant_client] = lambda: instance
        return instance

    return _override


@pytest.fixture
def valid_envelope() -> dict[str, Any]:
    return {
        "user": {"id": "u1"},
        "input": {"modality": "text", "transcript": "hi"},
        "context": {"screen": "home"},
        "capabilities": {"canUseLocation": True, "canUseBackgroundAudio": False},
        "clientVersion": "1.0.0",
    }


@pytest.fixture
def new_user_id() -> Callable[[], str]:
    def _new_user_id() -> str:
        return f"user_{uuid4().hex[:10]}"

    return _new_user_id
