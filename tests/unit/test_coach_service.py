import asyncio
import json

import pytest

from conftest import FakeAssistantClient, FakeScenario
from natureup.api.errors import error_type_for
from natureup.services.assistant import AssistantRequestError
from natureup.services.coach import coach_turn


class CancelFailsClient(FakeAssistantClient):
    def __init__(self, fixture_dir, arguments: str) -> None:
        super().__init__(FakeScenario.COACH_TOOL, fixture_dir)
        self.arguments = arguments

    def _finish(self, thread_id, run):
        return self._tool_run(run, "coach_user", self.arguments)

    async def cancel_run(self, thread_id: str, run_id: str):
        self.cancelled.append(run_id)
        raise AssistantRequestError("Assistant request failed (status=500): cancel failed", status_code=500)


def _turn(client: FakeAssistantClient):
    async def _run():
        thread_id = await client.create_thread()
        return await coach_turn(client, thread_id, "I feel tense")

    return asyncio.run(_run())


def test_cancel_failure_keeps_parse_error(fixture_dir, assistant_env) -> None:
    client = CancelFailsClient(fixture_dir, '{"spokenText": ')
    with pytest.raises(json.JSONDecodeError) as exc_info:
        _turn(client)
    assert error_type_for(exc_info.value) == "parse"
    assert client.cancelled == ["run_1"]


def test_cancel_failure_does_not_drop_reply(fixture_dir, assistant_env) -> None:
    arguments = (fixture_dir / "COACH_TOOL.json").read_text(encoding="utf-8")
    client = CancelFailsClient(fixture_dir, arguments)
    reply = _turn(client)
    assert reply.message == "Let's take a two minute breathing break before your walk."
    assert client.cancelled == ["run_1"]
