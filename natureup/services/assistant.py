import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Protocol

import httpx

from natureup.core.response_parser import ResponseParseError
from natureup.core.schemas import AssistantType

logger = logging.getLogger("uvicorn.error")

OPENAI_API_BASE = os.getenv("OPENAI_API_BASE", "https://api.openai.com/v1")
ASSISTANT_TIMEOUT_SECONDS = float(os.getenv("ASSISTANT_TIMEOUT_SECONDS", "60"))
ASSISTANT_CONNECT_TIMEOUT_SECONDS = float(os.getenv("ASSISTANT_CONNECT_TIMEOUT_SECONDS", "10"))
POLL_INTERVAL_SECONDS = float(os.getenv("ASSISTANT_POLL_INTERVAL_SECONDS", "1.0"))
POLL_MAX_ATTEMPTS = int(os.getenv("ASSISTANT_POLL_MAX_ATTEMPTS", "30"))
# Unset means no end-to-end deadline beyond the poll bound.
DEADLINE_SECONDS = float(os.getenv("ASSISTANT_DEADLINE_SECONDS", "0") or 0)

PENDING_STATUSES = {"queued", "in_progress"}
EXCURSION_TOOL_NAME = "plan_excursion"
COACH_TOOL_NAME = "coach_user"

ASSISTANT_ID_ENV = {
    AssistantType.health_coach: "OPENAI_HEALTH_COACH_ASSISTANT_ID",
    AssistantType.excursion_creator: "OPENAI_EXCURSION_CREATOR_ASSISTANT_ID",
}

Sleep = Callable[[float], Awaitable[Any]]


class AssistantError(RuntimeError):
    """Base class for failures talking to the assistant provider."""


class AssistantConfigError(AssistantError):
    pass


class AssistantRequestError(AssistantError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AssistantTimeoutError(AssistantError):
    pass


class AssistantRunError(AssistantError):
    def __init__(self, status: str):
        super().__init__(f"Run failed with status: {status}")
        self.status = status


class AssistantToolCallError(AssistantError):
    pass


@dataclass(frozen=True)
class RunOutcome:
    thread_id: str
    run: dict[str, Any]

    @property
    def status(self) -> str:
        return str(self.run.get("status") or "")


class AssistantClient(Protocol):
    async def create_thread(self) -> str:
        ...

    async def add_message(self, thread_id: str, content: str) -> dict[str, Any]:
        ...

    async def create_run(self, thread_id: str, assistant_id: str) -> dict[str, Any]:
        ...

    async def retrieve_run(self, thread_id: str, run_id: str) -> dict[str, Any]:
        ...

    async def cancel_run(self, thread_id: str, run_id: str) -> dict[str, Any]:
        ...

    async def list_messages(self, thread_id: str) -> list[dict[str, Any]]:
        ...


def _http_timeout() -> httpx.Timeout:
    return httpx.Timeout(ASSISTANT_TIMEOUT_SECONDS, connect=ASSISTANT_CONNECT_TIMEOUT_SECONDS)


class OpenAIAssistantClient:
    """OpenAI Assistants v2 over plain REST calls."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = (base_url or OPENAI_API_BASE).rstrip("/")
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        api_key = self._api_key or os.getenv("OPENAI_API_KEY", "")
        if not api_key:
            raise AssistantConfigError("OPENAI_API_KEY environment variable is required")
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "OpenAI-Beta": "assistants=v2",
        }

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        headers = self._headers()
        async with httpx.AsyncClient(
            base_url=self._base_url, timeout=_http_timeout(), transport=self._transport
        ) as client:
            try:
                response = await client.request(method, path, headers=headers, json=json, params=params)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                detail = (exc.response.text or "").strip()[:220]
                raise AssistantRequestError(
                    f"Assistant request failed (status={status}): {detail or 'no response body'}",
                    status_code=status,
                ) from exc
            except httpx.TimeoutException as exc:
                raise AssistantRequestError("Assistant request timed out while waiting for response.") from exc
            except httpx.HTTPError as exc:
                raise AssistantRequestError(f"Assistant request failed: {str(exc)[:220]}") from exc
        return response.json()

    async def create_thread(self) -> str:
        data = await self._request("POST", "/threads", json={})
        return str(data["id"])

    async def add_message(self, thread_id: str, content: str) -> dict[str, Any]:
        return await self._request(
            "POST", f"/threads/{thread_id}/messages", json={"role": "user", "content": content}
        )

    async def create_run(self, thread_id: str, assistant_id: str) -> dict[str, Any]:
        return await self._request("POST", f"/threads/{thread_id}/runs", json={"assistant_id": assistant_id})

    async def retrieve_run(self, thread_id: str, run_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/threads/{thread_id}/runs/{run_id}")

    async def cancel_run(self, thread_id: str, run_id: str) -> dict[str, Any]:
        return await self._request("POST", f"/threads/{thread_id}/runs/{run_id}/cancel")

    async def list_messages(self, thread_id: str) -> list[dict[str, Any]]:
        data = await self._request("GET", f"/threads/{thread_id}/messages", params={"order": "desc", "limit": 100})
        return list(data.get("data", []))


def get_assistant_client() -> AssistantClient:
    return OpenAIAssistantClient()


def assistant_id_for(assistant_type: AssistantType) -> str:
    env_name = ASSISTANT_ID_ENV[assistant_type]
    assistant_id = os.getenv(env_name, "").strip()
    if not assistant_id:
        raise AssistantConfigError(f"{env_name} environment variable is required")
    return assistant_id


async def poll_run(
    client: AssistantClient,
    thread_id: str,
    run: dict[str, Any],
    *,
    max_attempts: Optional[int] = None,
    interval_seconds: Optional[float] = None,
    sleep: Sleep = asyncio.sleep,
) -> dict[str, Any]:
    limit = POLL_MAX_ATTEMPTS if max_attempts is None else max_attempts
    interval = POLL_INTERVAL_SECONDS if interval_seconds is None else interval_seconds
    attempts = 0
    while run.get("status") in PENDING_STATUSES:
        if attempts >= limit:
            raise AssistantTimeoutError(f"Run timed out after {limit} attempts")
        await sleep(interval)
        run = await client.retrieve_run(thread_id, str(run["id"]))
        attempts += 1
        logger.info(
            "assistant_run_poll thread_id=%s run_id=%s attempt=%s status=%s",
            thread_id,
            run.get("id"),
            attempts,
            run.get("status"),
        )
    return run


async def run_assistant(
    client: AssistantClient,
    assistant_id: str,
    prompt: str,
    *,
    thread_id: Optional[str] = None,
    deadline_seconds: Optional[float] = None,
    sleep: Sleep = asyncio.sleep,
) -> RunOutcome:
    """Send ``prompt`` to a thread (a new one unless ``thread_id`` is given) and wait for the run.

    The poll loop is bounded by attempt count; ``deadline_seconds`` adds an
    end-to-end bound over the whole exchange, including thread creation.
    """

    async def _run() -> RunOutcome:
        target_thread = thread_id or await client.create_thread()
        await client.add_message(target_thread, prompt)
        run = await client.create_run(target_thread, assistant_id)
        logger.info("assistant_run_started thread_id=%s run_id=%s", target_thread, run.get("id"))
        run = await poll_run(client, target_thread, run, sleep=sleep)
        return RunOutcome(thread_id=target_thread, run=run)

    deadline = DEADLINE_SECONDS if deadline_seconds is None else deadline_seconds
    if not deadline:
        return await _run()
    try:
        return await asyncio.wait_for(_run(), timeout=deadline)
    except asyncio.TimeoutError as exc:
        raise AssistantTimeoutError(f"Assistant run exceeded deadline of {deadline} seconds") from exc


def ensure_usable(outcome: RunOutcome) -> None:
    if outcome.status not in {"completed", "requires_action"}:
        raise AssistantRunError(outcome.status or "unknown")


def message_text(message: dict[str, Any]) -> str:
    content = message.get("content") or []
    if not content:
        return ""
    first = content[0]
    if first.get("type") != "text":
        return ""
    text = first.get("text") or {}
    return str(text.get("value", ""))


async def latest_assistant_text(client: AssistantClient, thread_id: str) -> str:
    messages = await client.list_messages(thread_id)
    for message in messages:
        if message.get("role") != "assistant":
            continue
        text = message_text(message)
        if text:
            return text
        break
    raise ResponseParseError("Assistant returned no text message")


def extract_tool_arguments(run: dict[str, Any], function_name: str) -> str:
    required = run.get("required_action") or {}
    tool_calls = (required.get("submit_tool_outputs") or {}).get("tool_calls") or []
    for call in tool_calls:
        function = call.get("function") or {}
        if function.get("name") == function_name:
            return str(function.get("arguments") or "")
    raise AssistantToolCallError(f"No matching tool call: expected {function_name}")
