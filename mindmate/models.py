import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

# ============= MOODS =============

class Mood(str, Enum):
    HAPPY = "happy"
    CALM = "calm"
    NEUTRAL = "neutral"
    ANXIOUS = "anxious"
    SAD = "sad"
    STRESSED = "stressed"


# Tags detector-driven responses; never a valid stored mood.
CRISIS_MARKER = "crisis"

MOOD_SCORES: Dict[Mood, int] = {
    Mood.HAPPY: 90,
    Mood.CALM: 75,
    Mood.NEUTRAL: 50,
    Mood.ANXIOUS: 30,
    Mood.SAD: 20,
    Mood.STRESSED: 25,
}

NEUTRAL_SCORE = MOOD_SCORES[Mood.NEUTRAL]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as returned by Mongo) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


_APOSTROPHES = str.maketrans({"\u2019": "'", "\u2018": "'", "\u02bc": "'"})


def fold_text(text: Optional[str]) -> str:
    """Lowercase text for phrase matching, with curly apostrophes made straight."""
    return (text or "").lower().translate(_APOSTROPHES)


# ============= RECORDS =============

class MoodRecord(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    mood: Mood
    note: Optional[str] = None
    source: str = "manual"  # manual, chat, detection, journal
    timestamp: datetime = Field(default_factory=utc_now)
    date: str = ""

    @field_validator('timestamp')
    @classmethod
    def _utc_timestamp(cls, value: datetime) -> datetime:
        return as_utc(value)

    @model_validator(mode='after')
    def _derive_date(self):
        if not self.date:
            self.date = self.timestamp.date().isoformat()
        return self


class JournalEntry(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    entry: str
    timestamp: datetime = Field(default_factory=utc_now)
    date: str = ""

    @field_validator('timestamp')
    @classmethod
    def _utc_timestamp(cls, value: datetime) -> datetime:
        return as_utc(value)

    @model_validator(mode='after')
    def _derive_date(self):
        if not self.date:
            self.date = self.timestamp.date().isoformat()
        return self


class ChatMessage(BaseModel):
    role: str  # 'user' or 'assistant'
    content: str
    timestamp: datetime = Field(default_factory=utc_now)

    @field_validator('role')
    @classmethod
    def _known_role(cls, value: str) -> str:
        # Clients may label the companion "ai" or "model"
        value = "assistant" if value in ("ai", "model", "bot") else value
        if value not in ("user", "assistant"):
            raise ValueError("role must be 'user' or 'assistant'")
        return value


class ChatSession(BaseModel):
    session_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    messages: List[ChatMessage] = []
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator('created_at', 'updated_at')
    @classmethod
    def _utc_timestamp(cls, value: datetime) -> datetime:
        return as_utc(value)

    def user_text(self) -> str:
        return " ".join(msg.content for msg in self.messages if msg.role == "user")


class WellnessCheckIn(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    mood: Optional[Mood] = None
    timestamp: datetime = Field(default_factory=utc_now)
    date: str = ""

    @model_validator(mode='after')
    def _derive_date(self):
        self.timestamp = as_utc(self.timestamp)
        if not self.date:
            self.date = self.timestamp.date().isoformat()
        return self


class GratitudeEntry(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    text: str
    timestamp: datetime = Field(default_factory=utc_now)
    date: str = ""

    @model_validator(mode='after')
    def _derive_date(self):
        self.timestamp = as_utc(self.timestamp)
        if not self.date:
            self.date = self.timestamp.date().isoformat()
        return self


class ActivityCompletion(BaseModel):
    user_id: str
    date: str
    activity_id: int
    completed: bool = True


# ============= REQUESTS =============

class ChatRequest(BaseModel):
    user_id: str = "default_user"
    message: str
    history: List[ChatMessage] = []
    session_id: Optional[str] = None


class SaveSessionRequest(BaseModel):
    user_id: str = "default_user"
    session_id: Optional[str] = None
    messages: List[ChatMessage]


class DetectMoodRequest(BaseModel):
    text: str = ""
    user_id: str = "default_user"


class MoodCreateRequest(BaseModel):
    user_id: str = "default_user"
    mood: Mood
    note: Optional[str] = None


class JournalCreateRequest(BaseModel):
    user_id: str = "default_user"
    entry: str = Field(..., min_length=1, max_length=10000)
    mood: Optional[Mood] = None


class CheckInRequest(BaseModel):
    user_id: str = "default_user"
    mood: Optional[Mood] = None


class GratitudeRequest(BaseModel):
    user_id: str = "default_user"
    text: str = Field(..., min_length=1, max_length=500)


class ActivityRequest(BaseModel):
    user_id: str = "default_user"
    activity_id: int
    completed: bool = True


# ============= RESPONSES =============

class CrisisResource(BaseModel):
    name: str
    phone: str
    description: str
    available: str = "24/7"
    website: Optional[str] = None


class CrisisResponse(BaseModel):
    crisis_detected: bool = True
    mood: str = CRISIS_MARKER
    reply: str
    resources: List[CrisisResource]


class ChatResponse(BaseModel):
    reply: str
    mood: str
    crisis_detected: bool = False
    resources: List[CrisisResource] = []


class MoodDetectionResult(BaseModel):
    mood: str
    source: str  # ai, lexicon, crisis
    crisis_detected: bool = False
    resources: List[CrisisResource] = []


class ChartPoint(BaseModel):
    date: str
    day: str
    score: Optional[float] = None


class MoodStats(BaseModel):
    weekly_average: float = NEUTRAL_SCORE
    chart: List[ChartPoint] = []
    peak_hour: Optional[int] = None
    peak_time: Optional[str] = None
    dominant_mood: Optional[Mood] = None
    trend: str = "stable"  # improving, stable, declining
    weekly_pattern: Dict[str, float] = {}
    mood_distribution: Dict[str, int] = {}
    total_entries: int = 0


class TimelineEntry(BaseModel):
    type: str  # chat, journal
    date: str
    timestamp: datetime
    mood: Mood
    content_preview: str
    metadata: Dict[str, Any] = {}


class InsightsReport(BaseModel):
    user_id: str
    stats: MoodStats
    timeline: List[TimelineEntry]
    topic_moods: Dict[str, Dict[str, int]]
    dominant_topic_moods: Dict[str, Mood]
    summary: Optional[str] = None
