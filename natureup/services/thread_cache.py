import os
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from fastapi import Request
from sqlalchemy.orm import Session

from natureup.db.models import Conversation

THREAD_CACHE_MAX_ENTRIES = int(os.getenv("THREAD_CACHE_MAX_ENTRIES", "256"))


@dataclass(frozen=True)
class ConversationRecord:
    id: str
    user_id: str
    assistant_type: str
    thread_id: str
    message_count: int
    last_message_at: datetime
    created_at: datetime

    @classmethod
    def from_row(cls, row: Conversation) -> "ConversationRecord":
        return cls(
            id=row.id,
            user_id=row.user_id,
            assistant_type=row.assistant_type,
            thread_id=row.thread_id,
            message_count=row.message_count,
            last_message_at=row.last_message_at,
            created_at=row.created_at,
        )


class ThreadCache:
    """Process-local, bounded mirror of conversation rows keyed by thread id.

    Entries are snapshots, never the source of truth: a stale entry only
    costs a later backing read after the next invalidation.
    """

    def __init__(self, max_entries: Optional[int] = None) -> None:
        limit = THREAD_CACHE_MAX_ENTRIES if max_entries is None else max_entries
        self.max_entries = max(1, limit)
        self._entries: "OrderedDict[str, ConversationRecord]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, thread_id: str) -> Optional[ConversationRecord]:
        record = self._entries.get(thread_id)
        if record is None:
            self.misses += 1
            return None
        self._entries.move_to_end(thread_id)
        self.hits += 1
        return record

    def put(self, record: ConversationRecord) -> None:
        self._entries[record.thread_id] = record
        self._entries.move_to_end(record.thread_id)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def peek(self, thread_id: str) -> Optional[ConversationRecord]:
        return self._entries.get(thread_id)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class ThreadManager:
    def __init__(self, db: Session, cache: ThreadCache) -> None:
        self.db = db
        self.cache = cache

    def find(self, thread_id: str) -> Optional[ConversationRecord]:
        cached = self.cache.get(thread_id)
        if cached is not None:
            return cached
        row = self.db.query(Conversation).filter(Conversation.thread_id == thread_id).first()
        if not row:
            return None
        record = ConversationRecord.from_row(row)
        self.cache.put(record)
        return record

    def get_or_create(
        self, user_id: str, assistant_type: str, thread_id: Optional[str] = None
    ) -> Optional[ConversationRecord]:
        if thread_id:
            found = self.find(thread_id)
            if found is not None:
                return found

        latest = (
            self.db.query(Conversation)
            .filter(Conversation.user_id == user_id, Conversation.assistant_type == assistant_type)
            .order_by(Conversation.last_message_at.desc(), Conversation.created_at.desc())
            .first()
        )
        if latest:
            record = ConversationRecord.from_row(latest)
            self.cache.put(record)
            return record
        return None

    def create_conversation(self, user_id: str, assistant_type: str, thread_id: str) -> ConversationRecord:
        now = datetime.now(timezone.utc)
        row = Conversation(
            user_id=user_id,
            assistant_type=assistant_type,
            thread_id=thread_id,
            message_count=0,
            last_message_at=now,
            created_at=now,
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        record = ConversationRecord.from_row(row)
        self.cache.put(record)
        return record

    def record_message(self, conversation_id: str) -> Optional[ConversationRecord]:
        row = self.db.query(Conversation).filter(Conversation.id == conversation_id).first()
        if not row:
            return None
        row.message_count += 1
        row.last_message_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(row)
        # Coarse invalidation: any update drops every cached conversation.
        self.cache.clear()
        return ConversationRecord.from_row(row)

    def clear_cache(self) -> None:
        self.cache.clear()

    def cached(self, thread_id: str) -> Optional[ConversationRecord]:
        return self.cache.peek(thread_id)


def get_thread_cache(request: Request) -> ThreadCache:
    return request.app.state.thread_cache
