import asyncio
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Dict, List

from motor.motor_asyncio import AsyncIOMotorClient

from .models import (
    ActivityCompletion,
    ChatSession,
    GratitudeEntry,
    JournalEntry,
    MoodRecord,
    WellnessCheckIn,
    utc_now,
)

logger = logging.getLogger(__name__)


class MoodStore(ABC):
    """Per-user record storage. Every read is scoped to one user_id."""

    @abstractmethod
    async def add_mood(self, record: MoodRecord) -> MoodRecord: ...

    @abstractmethod
    async def list_moods(self, user_id: str) -> List[MoodRecord]: ...

    @abstractmethod
    async def add_journal_entry(self, entry: JournalEntry) -> JournalEntry: ...

    @abstractmethod
    async def list_journal_entries(self, user_id: str) -> List[JournalEntry]: ...

    @abstractmethod
    async def save_chat_session(self, session: ChatSession) -> ChatSession:
        """Insert the session, or replace the stored one with the same
        (user_id, session_id) keeping its first created_at."""

    @abstractmethod
    async def list_chat_sessions(self, user_id: str) -> List[ChatSession]: ...

    @abstractmethod
    async def add_checkin(self, checkin: WellnessCheckIn) -> WellnessCheckIn: ...

    @abstractmethod
    async def list_checkins(self, user_id: str) -> List[WellnessCheckIn]: ...

    @abstractmethod
    async def add_gratitude(self, entry: GratitudeEntry) -> GratitudeEntry: ...

    @abstractmethod
    async def list_gratitude(self, user_id: str) -> List[GratitudeEntry]: ...

    @abstractmethod
    async def set_activity(self, completion: ActivityCompletion) -> ActivityCompletion: ...

    @abstractmethod
    async def list_completed_activities(self, user_id: str, date: str) -> List[int]: ...

    async def close(self):
        pass


class InMemoryStore(MoodStore):
    """Volatile store; everything is lost on restart.

    Writes go through a single lock and reads return copies, so a reader
    never sees a half-applied write.
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self._moods: Dict[str, List[MoodRecord]] = defaultdict(list)
        self._journal: Dict[str, List[JournalEntry]] = defaultdict(list)
        self._sessions: Dict[str, List[ChatSession]] = defaultdict(list)
        self._checkins: Dict[str, List[WellnessCheckIn]] = defaultdict(list)
        self._gratitude: Dict[str, List[GratitudeEntry]] = defaultdict(list)
        self._activities: Dict[str, Dict[str, Dict[int, bool]]] = defaultdict(dict)

    async def add_mood(self, record):
        async with self._lock:
            self._moods[record.user_id].append(record)
        return record

    async def list_moods(self, user_id):
        return sorted(self._moods.get(user_id, []), key=lambda r: r.timestamp)

    async def add_journal_entry(self, entry):
        async with self._lock:
            self._journal[entry.user_id].append(entry)
        return entry

    async def list_journal_entries(self, user_id):
        return sorted(self._journal.get(user_id, []), key=lambda e: e.timestamp)

    async def save_chat_session(self, session):
        async with self._lock:
            sessions = self._sessions[session.user_id]
            for i, existing in enumerate(sessions):
                if existing.session_id == session.session_id:
                    session = session.model_copy(update={
                        "created_at": existing.created_at,
                        "updated_at": utc_now(),
                    })
                    sessions[i] = session
                    break
            else:
                sessions.append(session)
        return session

    async def list_chat_sessions(self, user_id):
        return sorted(self._sessions.get(user_id, []), key=lambda s: s.created_at)

    async def add_checkin(self, checkin):
        async with self._lock:
            self._checkins[checkin.user_id].append(checkin)
        return checkin

    async def list_checkins(self, user_id):
        return sorted(self._checkins.get(user_id, []), key=lambda c: c.timestamp)

    async def add_gratitude(self, entry):
        async with self._lock:
            self._gratitude[entry.user_id].append(entry)
        return entry

    async def list_gratitude(self, user_id):
        return sorted(self._gratitude.get(user_id, []), key=lambda g: g.timestamp)

    async def set_activity(self, completion):
        async with self._lock:
            day = self._activities[completion.user_id].setdefault(completion.date, {})
            day[completion.activity_id] = completion.completed
        return completion

    async def list_completed_activities(self, user_id, date):
        day = self._activities.get(user_id, {}).get(date, {})
        return sorted(activity_id for activity_id, done in day.items() if done)


class MongoStore(MoodStore):
    """MongoDB-backed store using Motor."""

    def __init__(self, mongo_url: str, db_name: str):
        self.client = AsyncIOMotorClient(mongo_url)
        self.db = self.client[db_name]
        logger.info(f"Using MongoDB database: {db_name}")

    async def _find(self, collection, query, sort_key, model):
        docs = await self.db[collection].find(query, {"_id": 0}).sort(sort_key, 1).to_list(None)
        return [model(**doc) for doc in docs]

    async def add_mood(self, record):
        await self.db.moods.insert_one(record.model_dump(mode="json"))
        return record

    async def list_moods(self, user_id):
        return await self._find("moods", {"user_id": user_id}, "timestamp", MoodRecord)

    async def add_journal_entry(self, entry):
        await self.db.journal_entries.insert_one(entry.model_dump(mode="json"))
        return entry

    async def list_journal_entries(self, user_id):
        return await self._find("journal_entries", {"user_id": user_id}, "timestamp", JournalEntry)

    async def save_chat_session(self, session):
        key = {"user_id": session.user_id, "session_id": session.session_id}
        existing = await self.db.chat_sessions.find_one(key, {"_id": 0, "created_at": 1})
        if existing:
            session = ChatSession(**{
                **session.model_dump(),
                "created_at": existing["created_at"],
                "updated_at": utc_now(),
            })
        await self.db.chat_sessions.replace_one(key, session.model_dump(mode="json"), upsert=True)
        return session

    async def list_chat_sessions(self, user_id):
        return await self._find("chat_sessions", {"user_id": user_id}, "created_at", ChatSession)

    async def add_checkin(self, checkin):
        await self.db.wellness_checkins.insert_one(checkin.model_dump(mode="json"))
        return checkin

    async def list_checkins(self, user_id):
        return await self._find("wellness_checkins", {"user_id": user_id}, "timestamp", WellnessCheckIn)

    async def add_gratitude(self, entry):
        await self.db.gratitude.insert_one(entry.model_dump(mode="json"))
        return entry

    async def list_gratitude(self, user_id):
        return await self._find("gratitude", {"user_id": user_id}, "timestamp", GratitudeEntry)

    async def set_activity(self, completion):
        await self.db.activities.update_one(
            {"user_id": completion.user_id, "date": completion.date, "activity_id": completion.activity_id},
            {"$set": completion.model_dump()},
            upsert=True,
        )
        return completion

    async def list_completed_activities(self, user_id, date):
        docs = await self.db.activities.find(
            {"user_id": user_id, "date": date, "completed": True}, {"_id": 0}
        ).to_list(None)
        return sorted(doc["activity_id"] for doc in docs)

    async def close(self):
        self.client.close()
