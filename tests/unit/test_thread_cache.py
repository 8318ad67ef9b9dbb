from datetime import datetime

from natureup.services.thread_cache import ConversationRecord, ThreadCache, ThreadManager


def _record(thread_id: str, user_id: str = "u1") -> ConversationRecord:
    now = datetime(2024, 5, 1, 12, 0, 0)
    return ConversationRecord(
        id=f"conv-{thread_id}",
        user_id=user_id,
        assistant_type="health_coach",
        thread_id=thread_id,
        message_count=0,
        last_message_at=now,
        created_at=now,
    )


def test_cache_is_bounded_and_evicts_least_recent() -> None:
    cache = ThreadCache(max_entries=2)
    cache.put(_record("t1"))
    cache.put(_record("t2"))
    assert cache.get("t1") is not None
    cache.put(_record("t3"))
    assert len(cache) == 2
    assert cache.peek("t2") is None
    assert cache.peek("t1") is not None
    assert cache.peek("t3") is not None


def test_cache_counts_hits_and_misses() -> None:
    cache = ThreadCache(max_entries=4)
    cache.put(_record("t1"))
    cache.get("t1")
    cache.get("missing")
    assert (cache.hits, cache.misses) == (1, 1)
    cache.clear()
    assert len(cache) == 0


def test_get_or_create_reads_through_cache(db_session, new_user_id) -> None:
    user_id = new_user_id()
    cache = ThreadCache(max_entries=8)
    manager = ThreadManager(db_session, cache)
    created = manager.create_conversation(user_id, "health_coach", f"thread-{user_id}")
    assert manager.cached(created.thread_id) == created

    cache.clear()
    found = manager.get_or_create(user_id, "health_coach", created.thread_id)
    assert found is not None
    assert found.id == created.id
    assert manager.cached(created.thread_id) is not None


def test_get_or_create_falls_back_to_latest_conversation(db_session, new_user_id) -> None:
    user_id = new_user_id()
    manager = ThreadManager(db_session, ThreadCache(max_entries=8))
    assert manager.get_or_create(user_id, "health_coach") is None

    manager.create_conversation(user_id, "health_coach", f"older-{user_id}")
    newer = manager.create_conversation(user_id, "health_coach", f"newer-{user_id}")
    manager.record_message(newer.id)

    latest = manager.get_or_create(user_id, "health_coach", "unknown-thread")
    assert latest is not None
    assert latest.thread_id == newer.thread_id
    assert manager.get_or_create(user_id, "excursion_creator") is None


def test_record_message_updates_and_invalidates(db_session, new_user_id) -> None:
    user_id = new_user_id()
    cache = ThreadCache(max_entries=8)
    manager = ThreadManager(db_session, cache)
    other = manager.create_conversation(new_user_id(), "health_coach", f"other-{user_id}")
    conversation = manager.create_conversation(user_id, "health_coach", f"thread-{user_id}")
    assert len(cache) == 2

    updated = manager.record_message(conversation.id)
    assert updated is not None
    assert updated.message_count == 1
    assert updated.last_message_at >= conversation.last_message_at
    assert len(cache) == 0
    assert manager.cached(other.thread_id) is None

    assert manager.record_message("does-not-exist") is None


def test_explicit_size_is_respected() -> None:
    assert ThreadCache(max_entries=0).max_entries == 1
    assert ThreadCache(max_entries=3).max_entries == 3
    cache = ThreadCache(max_entries=0)
    cache.put(_record("t1"))
    cache.put(_record("t2"))
    assert len(cache) == 1
    assert cache.peek("t2") is not None


def test_find_by_thread_id(db_session, new_user_id) -> None:
    user_id = new_user_id()
    manager = ThreadManager(db_session, ThreadCache(max_entries=8))
    created = manager.create_conversation(user_id, "health_coach", f"find-{user_id}")
    manager.clear_cache()
    assert manager.find(created.thread_id).user_id == user_id
    assert manager.find("never-recorded") is None
