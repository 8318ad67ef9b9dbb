import logging
from dataclasses import dataclass
from typing import Any, Optional

from natureup.core.prompts import format_coach_message
from natureup.core.response_parser import parse_coaching_response, parse_tool_arguments
from natureup.core.schemas import AssistantType, CoachingResponse, HealthProfile
from natureup.services.assistant import (
    COACH_TOOL_NAME,
    AssistantClient,
    AssistantError,
    assistant_id_for,
    ensure_usable,
    extract_tool_arguments,
    latest_assistant_text,
    message_text,
    run_assistant,
)
from natureup.services.thread_cache import ConversationRecord, ThreadManager

logger = logging.getLogger("uvicorn.error")


class ConversationNotFoundError(LookupError):
    pass


@dataclass(frozen=True)
class CoachReply:
    message: str
    coaching: Optional[CoachingResponse] = None


async def _release_run(client: AssistantClient, thread_id: str, run_id: str) -> None:
    # A run left in requires_action blocks further messages on the thread.
    try:
        await client.cancel_run(thread_id, run_id)
    except AssistantError as exc:
        logger.warning("coach_run_cancel_failed thread_id=%s run_id=%s detail=%s", thread_id, run_id, str(exc))


async def coach_turn(
    client: AssistantClient,
    thread_id: str,
    content: str,
    assistant_type: AssistantType = AssistantType.health_coach,
) -> CoachReply:
    outcome = await run_assistant(client, assistant_id_for(assistant_type), content, thread_id=thread_id)
    ensure_usable(outcome)
    if outcome.status == "requires_action":
        try:
            coaching = parse_coaching_response(
                parse_tool_arguments(extract_tool_arguments(outcome.run, COACH_TOOL_NAME))
            )
        finally:
            await _release_run(client, thread_id, str(outcome.run.get("id")))
        return CoachReply(message=coaching.spokenText, coaching=coaching)
    return CoachReply(message=await latest_assistant_text(client, thread_id))


def _reply_payload(reply: CoachReply, thread_id: str, message_count: int) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "message": reply.message,
        "thread_id": thread_id,
        "message_count": message_count,
    }
    if reply.coaching is not None:
        payload["coaching"] = reply.coaching.model_dump(mode="json", exclude_none=True)
    return payload


async def start_thread(
    client: AssistantClient,
    manager: ThreadManager,
    *,
    user_id: str,
    assistant_type: AssistantType,
    initial_message: Optional[str] = None,
    health_profile: Optional[HealthProfile] = None,
) -> dict[str, Any]:
    thread_id = await client.create_thread()
    conversation = manager.create_conversation(user_id, assistant_type.value, thread_id)
    logger.info("coach_thread_created user_id=%s thread_id=%s", user_id, thread_id)

    result: dict[str, Any] = {"thread_id": thread_id, "conversation_id": conversation.id}
    if initial_message:
        reply = await coach_turn(
            client, thread_id, format_coach_message(initial_message, health_profile), assistant_type
        )
        updated = manager.record_message(conversation.id)
        count = updated.message_count if updated else conversation.message_count + 1
        result["response"] = _reply_payload(reply, thread_id, count)
    return result


async def send_message(
    client: AssistantClient,
    manager: ThreadManager,
    *,
    user_id: str,
    thread_id: str,
    message: str,
    health_profile: Optional[HealthProfile] = None,
) -> dict[str, Any]:
    conversation: Optional[ConversationRecord] = manager.get_or_create(
        user_id, AssistantType.health_coach.value, thread_id
    )
    if conversation is not None and conversation.thread_id == thread_id and conversation.user_id != user_id:
        raise ConversationNotFoundError("Conversation not found for this user")
    if conversation is None or conversation.thread_id != thread_id:
        # Thread exists upstream but was never recorded here.
        conversation = manager.create_conversation(user_id, AssistantType.health_coach.value, thread_id)

    reply = await coach_turn(client, thread_id, format_coach_message(message, health_profile))
    updated = manager.record_message(conversation.id)
    count = updated.message_count if updated else conversation.message_count + 1
    return _reply_payload(reply, thread_id, count)


async def get_messages(
    client: AssistantClient,
    thread_id: str,
    *,
    manager: Optional[ThreadManager] = None,
    owner_id: Optional[str] = None,
) -> list[dict[str, Any]]:
    """List a thread's messages, newest first.

    With ``owner_id`` set, the thread must be recorded here for that user.
    """
    if owner_id is not None:
        conversation = manager.find(thread_id) if manager is not None else None
        if conversation is None or conversation.user_id != owner_id:
            raise ConversationNotFoundError("Conversation not found for this user")
    messages = await client.list_messages(thread_id)
    return [
        {
            "id": item.get("id"),
            "role": item.get("role"),
            "content": message_text(item),
            "created_at": item.get("created_at"),
        }
        for item in messages
    ]
