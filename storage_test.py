import asyncio
from datetime import timedelta

import pytest
from pydantic import ValidationError

from mindmate.models import ActivityCompletion, ChatMessage, ChatSession, JournalEntry, Mood, MoodRecord
from mindmate.storage import InMemoryStore


def run(coro):
    return asyncio.run(coro)


class TestRecordValidation:
    def test_crisis_is_not_a_storable_mood(self):
        with pytest.raises(ValidationError):
            MoodRecord(user_id="u1", mood="crisis")

    def test_unknown_mood_rejected(self):
        with pytest.raises(ValidationError):
            MoodRecord(user_id="u1", mood="angry")

    def test_date_derived_from_timestamp(self, now):
        record = MoodRecord(user_id="u1", mood="calm", timestamp=now)
        assert record.date == "2026-10-14"
        assert record.mood == Mood.CALM

    def test_naive_timestamp_treated_as_utc(self, now):
        record = JournalEntry(user_id="u1", entry="hi", timestamp=now.replace(tzinfo=None))
        assert record.timestamp == now


class TestInMemoryStore:
    def test_reads_are_scoped_per_user(self, now):
        store = InMemoryStore()

        async def scenario():
            await store.add_mood(MoodRecord(user_id="alice", mood=Mood.HAPPY, timestamp=now))
            await store.add_mood(MoodRecord(user_id="bob", mood=Mood.SAD, timestamp=now))
            return await store.list_moods("alice"), await store.list_moods("carol")

        alice, carol = run(scenario())
        assert [r.mood for r in alice] == [Mood.HAPPY]
        assert carol == []

    def test_moods_listed_in_time_order(self, now):
        store = InMemoryStore()

        async def scenario():
            await store.add_mood(MoodRecord(user_id="u1", mood=Mood.CALM, timestamp=now))
            await store.add_mood(MoodRecord(user_id="u1", mood=Mood.SAD, timestamp=now - timedelta(days=1)))
            return await store.list_moods("u1")

        assert [r.mood for r in run(scenario())] == [Mood.SAD, Mood.CALM]

    def test_saving_a_session_twice_updates_it(self, now):
        store = InMemoryStore()
        earlier = now - timedelta(days=3650)
        first = ChatSession(session_id="s1", user_id="u1", created_at=earlier, updated_at=earlier,
                            messages=[ChatMessage(role="user", content="hello")])
        second = ChatSession(session_id="s1", user_id="u1",
                             messages=[ChatMessage(role="user", content="hello"),
                                       ChatMessage(role="assistant", content="hi there")])

        async def scenario():
            await store.save_chat_session(first)
            saved = await store.save_chat_session(second)
            return saved, await store.list_chat_sessions("u1")

        saved, sessions = run(scenario())
        assert len(sessions) == 1
        assert len(sessions[0].messages) == 2
        assert saved.created_at == earlier
        assert saved.updated_at > earlier

    def test_distinct_sessions_are_kept(self):
        store = InMemoryStore()

        async def scenario():
            await store.save_chat_session(ChatSession(user_id="u1"))
            await store.save_chat_session(ChatSession(user_id="u1"))
            return await store.list_chat_sessions("u1")

        assert len(run(scenario())) == 2

    def test_activity_toggle(self):
        store = InMemoryStore()

        async def scenario():
            await store.set_activity(ActivityCompletion(user_id="u1", date="2026-10-14", activity_id=3))
            await store.set_activity(ActivityCompletion(user_id="u1", date="2026-10-14", activity_id=1))
            await store.set_activity(ActivityCompletion(user_id="u1", date="2026-10-14", activity_id=3, completed=False))
            return (
                await store.list_completed_activities("u1", "2026-10-14"),
                await store.list_completed_activities("u1", "2026-10-15"),
            )

        today, tomorrow = run(scenario())
        assert today == [1]
        assert tomorrow == []
