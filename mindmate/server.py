import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException
from starlette.middleware.cors import CORSMiddleware

from .analytics import aggregate_mood_stats
from .classifier import FallbackMoodDetector, build_mood_detector, classify_mood
from .config import get_settings, load_crisis_phrases
from .crisis import COPING_STRATEGIES, RESOURCE_DIRECTORY, CrisisDetector, crisis_response
from .llm import GeminiClient, GenerativeAIError
from .models import (
    CRISIS_MARKER,
    ActivityCompletion,
    ActivityRequest,
    ChatMessage,
    ChatRequest,
    ChatResponse,
    ChatSession,
    CheckInRequest,
    DetectMoodRequest,
    GratitudeEntry,
    GratitudeRequest,
    InsightsReport,
    JournalCreateRequest,
    JournalEntry,
    Mood,
    MoodCreateRequest,
    MoodDetectionResult,
    MoodRecord,
    MoodStats,
    SaveSessionRequest,
    WellnessCheckIn,
    utc_now,
)
from .storage import InMemoryStore, MongoStore, MoodStore
from .timeline import (
    build_timeline,
    correlate_topics,
    dominant_topic_moods,
    recent_journal_entries,
    recent_sessions,
    summarize_activity,
)
from .wellness import ACTIVITY_IDS, MOOD_RECOMMENDATIONS, checkin_streak, recommended_activities

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def create_store() -> MoodStore:
    if settings.storage_backend == "mongo":
        return MongoStore(settings.mongo_url, settings.db_name)
    logger.warning("Using in-memory storage; data will be lost on restart")
    return InMemoryStore()


store = create_store()
llm = GeminiClient(settings.gemini_api_key, settings.gemini_model, settings.llm_timeout_seconds)
crisis_detector = CrisisDetector(load_crisis_phrases(settings.crisis_phrases_path))

if not settings.gemini_api_key:
    logger.warning("GEMINI_API_KEY is not set; chat replies will fail and mood detection will use the lexicon")

# ============= DEPENDENCIES =============

def get_store() -> MoodStore:
    return store


def get_llm() -> GeminiClient:
    return llm


def get_crisis_detector() -> CrisisDetector:
    return crisis_detector


def get_mood_detector(llm: GeminiClient = Depends(get_llm)) -> FallbackMoodDetector:
    return build_mood_detector(llm)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"MindMate API starting (storage={settings.storage_backend}, model={settings.gemini_model})")
    yield
    await store.close()
    logger.info("MindMate API shut down")


# Create the main app
app = FastAPI(title="MindMate API", lifespan=lifespan)
api_router = APIRouter(prefix="/api")

# ============= API ENDPOINTS =============

@api_router.get("/")
async def root():
    return {"message": "MindMate API is running!"}


@api_router.get("/health")
async def health():
    return {
        "status": "ok",
        "message": "MindMate server is running",
        "model": settings.gemini_model,
        "storage": settings.storage_backend,
    }

# ============= CHAT ENDPOINTS =============

@api_router.post("/chat", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    store: MoodStore = Depends(get_store),
    llm: GeminiClient = Depends(get_llm),
    detector: CrisisDetector = Depends(get_crisis_detector),
):
    """Send a message to the companion and get a reply"""
    if not request.message.strip():
        raise HTTPException(status_code=400, detail="Message is required")

    try:
        if detector.detect(request.message):
            logger.warning(f"Crisis language detected in chat for user {request.user_id}")
            crisis = crisis_response()
            return ChatResponse(
                reply=crisis.reply,
                mood=CRISIS_MARKER,
                crisis_detected=True,
                resources=crisis.resources,
            )

        try:
            reply = await llm.chat(request.message, request.history)
        except GenerativeAIError as e:
            logger.error(f"Companion reply failed: {e}")
            raise HTTPException(
                status_code=502,
                detail="I'm having trouble connecting right now. Please try again in a moment.",
            )

        mood = classify_mood(request.message)
        await store.add_mood(MoodRecord(user_id=request.user_id, mood=mood, source="chat"))

        if request.session_id:
            messages = list(request.history) + [
                ChatMessage(role="user", content=request.message),
                ChatMessage(role="assistant", content=reply),
            ]
            await store.save_chat_session(ChatSession(
                session_id=request.session_id,
                user_id=request.user_id,
                messages=messages,
            ))

        logger.info(f"Chat reply sent to user {request.user_id} (mood: {mood.value})")
        return ChatResponse(reply=reply, mood=mood.value)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error processing chat: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to process chat")


@api_router.post("/chat/sessions", response_model=ChatSession)
async def save_chat_session(request: SaveSessionRequest, store: MoodStore = Depends(get_store)):
    """Save a conversation; saving the same session_id again updates it"""
    try:
        session = ChatSession(user_id=request.user_id, messages=request.messages)
        if request.session_id:
            session.session_id = request.session_id
        saved = await store.save_chat_session(session)
        logger.info(f"Saved chat session {saved.session_id} ({len(saved.messages)} messages)")
        return saved
    except Exception as e:
        logger.error(f"Error saving chat session: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to save chat session")


@api_router.get("/chat/sessions/{user_id}")
async def get_chat_sessions(user_id: str, store: MoodStore = Depends(get_store)):
    try:
        sessions = await store.list_chat_sessions(user_id)
        return {"sessions": sessions}
    except Exception as e:
        logger.error(f"Error fetching chat sessions: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to fetch chat sessions")

# ============= MOOD ENDPOINTS =============

@api_router.post("/detect-mood", response_model=MoodDetectionResult)
async def detect_mood(
    request: DetectMoodRequest,
    detector: CrisisDetector = Depends(get_crisis_detector),
    mood_detector: FallbackMoodDetector = Depends(get_mood_detector),
):
    """Detect a mood from free text without saving it"""
    try:
        if detector.detect(request.text):
            logger.warning(f"Crisis language detected in mood detection for user {request.user_id}")
            return MoodDetectionResult(
                mood=CRISIS_MARKER,
                source="crisis",
                crisis_detected=True,
                resources=crisis_response().resources,
            )

        mood, source = await mood_detector.detect_with_source(request.text)
        return MoodDetectionResult(mood=mood.value, source=source)

    except Exception as e:
        logger.error(f"Error detecting mood: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to detect mood")


@api_router.post("/moods")
async def save_mood(
    request: MoodCreateRequest,
    store: MoodStore = Depends(get_store),
    detector: CrisisDetector = Depends(get_crisis_detector),
):
    """Save an explicit mood check-in"""
    try:
        record = await store.add_mood(MoodRecord(
            user_id=request.user_id,
            mood=request.mood,
            note=request.note,
        ))
        logger.info(f"Saved mood {record.mood.value} for user {request.user_id}")

        crisis = crisis_response() if detector.detect(request.note) else None
        return {"success": True, "mood": record, "crisis": crisis}

    except Exception as e:
        logger.error(f"Error saving mood: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to save mood")


@api_router.get("/moods/{user_id}")
async def get_moods(user_id: str, store: MoodStore = Depends(get_store)):
    try:
        return {"moods": await store.list_moods(user_id)}
    except Exception as e:
        logger.error(f"Error fetching moods: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to fetch moods")


@api_router.get("/mood-patterns/{user_id}", response_model=MoodStats)
async def get_mood_patterns(user_id: str, store: MoodStore = Depends(get_store)):
    try:
        records = await store.list_moods(user_id)
        return aggregate_mood_stats(records)
    except Exception as e:
        logger.error(f"Error computing mood patterns: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to compute mood patterns")


@api_router.get("/mood-recommendations/{mood}")
async def get_mood_recommendations(mood: Mood):
    return {
        "mood": mood.value,
        "recommendations": MOOD_RECOMMENDATIONS[mood],
        "activities": recommended_activities(mood),
    }

# ============= JOURNAL ENDPOINTS =============

@api_router.post("/journal")
async def save_journal_entry(
    request: JournalCreateRequest,
    store: MoodStore = Depends(get_store),
    detector: CrisisDetector = Depends(get_crisis_detector),
    mood_detector: FallbackMoodDetector = Depends(get_mood_detector),
):
    """Save a journal entry and the mood that goes with it"""
    try:
        entry = await store.add_journal_entry(JournalEntry(user_id=request.user_id, entry=request.entry))

        if detector.detect(request.entry):
            logger.warning(f"Crisis language detected in journal entry for user {request.user_id}")
            return {"success": True, "entry": entry, "mood": CRISIS_MARKER, "crisis": crisis_response()}

        mood = request.mood
        if mood is None:
            mood = await mood_detector.detect(request.entry)
        await store.add_mood(MoodRecord(
            user_id=request.user_id,
            mood=mood,
            note=request.entry,
            source="journal",
            timestamp=entry.timestamp,
        ))

        logger.info(f"Saved journal entry {entry.id} for user {request.user_id}")
        return {"success": True, "entry": entry, "mood": mood.value, "crisis": None}

    except Exception as e:
        logger.error(f"Error saving journal entry: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to save journal entry")


@api_router.get("/journal/{user_id}")
async def get_journal_entries(user_id: str, store: MoodStore = Depends(get_store)):
    try:
        entries = await store.list_journal_entries(user_id)
        return {"entries": list(reversed(entries))}
    except Exception as e:
        logger.error(f"Error fetching journal entries: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to fetch journal entries")

# ============= INSIGHTS ENDPOINTS =============

@api_router.get("/insights/{user_id}", response_model=InsightsReport)
async def get_insights(
    user_id: str,
    summary: bool = True,
    store: MoodStore = Depends(get_store),
    llm: GeminiClient = Depends(get_llm),
):
    """Weekly dashboard: mood stats, chat/journal timeline and topic moods"""
    try:
        now = utc_now()
        moods = await store.list_moods(user_id)
        sessions = await store.list_chat_sessions(user_id)
        journal = await store.list_journal_entries(user_id)

        week_sessions = recent_sessions(sessions, now)
        week_journal = recent_journal_entries(journal, now)
        topic_moods = correlate_topics(week_sessions)

        report = InsightsReport(
            user_id=user_id,
            stats=aggregate_mood_stats(moods, now),
            timeline=build_timeline(sessions, journal, moods, now),
            topic_moods=topic_moods,
            dominant_topic_moods=dominant_topic_moods(topic_moods),
        )
        if summary:
            report.summary = await summarize_activity(llm, week_sessions, week_journal)

        logger.info(f"Insights generated for {user_id}")
        return report

    except Exception as e:
        logger.error(f"Error generating insights: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to generate insights")

# ============= WELLNESS ENDPOINTS =============

@api_router.post("/wellness/checkin")
async def wellness_checkin(request: CheckInRequest, store: MoodStore = Depends(get_store)):
    """Record today's wellness check-in (once per day)"""
    try:
        today = utc_now().date().isoformat()
        checkins = await store.list_checkins(request.user_id)
        already = any(c.date == today for c in checkins)
        if not already:
            await store.add_checkin(WellnessCheckIn(user_id=request.user_id, mood=request.mood))
            checkins = await store.list_checkins(request.user_id)

        streak = checkin_streak((c.date for c in checkins), utc_now().date())
        return {"success": True, "already_checked_in": already, "streak": streak}

    except Exception as e:
        logger.error(f"Error saving check-in: {str(e)}")
        raise HTTPException(status_code=500, detail="Check-in failed")


@api_router.get("/wellness/checkin/{user_id}")
async def get_today_checkin(user_id: str, store: MoodStore = Depends(get_store)):
    try:
        today = utc_now().date().isoformat()
        todays = [c for c in await store.list_checkins(user_id) if c.date == today]
        mood: Optional[Mood] = todays[-1].mood if todays else None
        return {"checked_in": bool(todays), "mood": mood.value if mood else None}
    except Exception as e:
        logger.error(f"Error fetching check-in: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to fetch check-in")


@api_router.get("/wellness/streak/{user_id}")
async def get_streak(user_id: str, store: MoodStore = Depends(get_store)):
    try:
        checkins = await store.list_checkins(user_id)
        return {"streak": checkin_streak((c.date for c in checkins), utc_now().date())}
    except Exception as e:
        logger.error(f"Error computing streak: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to compute streak")


@api_router.post("/wellness/gratitude")
async def add_gratitude(request: GratitudeRequest, store: MoodStore = Depends(get_store)):
    try:
        entry = await store.add_gratitude(GratitudeEntry(user_id=request.user_id, text=request.text))
        return {"success": True, "entry": entry}
    except Exception as e:
        logger.error(f"Error saving gratitude entry: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to save gratitude entry")


@api_router.get("/wellness/gratitude/{user_id}")
async def get_gratitude(user_id: str, store: MoodStore = Depends(get_store)):
    try:
        entries = await store.list_gratitude(user_id)
        return {"entries": list(reversed(entries))}
    except Exception as e:
        logger.error(f"Error fetching gratitude entries: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to fetch gratitude entries")


@api_router.post("/wellness/activities")
async def update_activity(request: ActivityRequest, store: MoodStore = Depends(get_store)):
    if request.activity_id not in ACTIVITY_IDS:
        raise HTTPException(status_code=404, detail="Activity not found")
    try:
        today = utc_now().date().isoformat()
        await store.set_activity(ActivityCompletion(
            user_id=request.user_id,
            date=today,
            activity_id=request.activity_id,
            completed=request.completed,
        ))
        completed = await store.list_completed_activities(request.user_id, today)
        return {"success": True, "completed": completed}
    except Exception as e:
        logger.error(f"Error updating activity: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to update activity")


@api_router.get("/wellness/activities/{user_id}")
async def get_activities(user_id: str, store: MoodStore = Depends(get_store)):
    try:
        today = utc_now().date().isoformat()
        completed = await store.list_completed_activities(user_id, today)
        checkins = [c for c in await store.list_checkins(user_id) if c.date == today and c.mood]
        current = checkins[-1].mood if checkins else None
        return {"completed": completed, "recommended": recommended_activities(current)}
    except Exception as e:
        logger.error(f"Error fetching activities: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to fetch activities")

# ============= CRISIS ENDPOINTS =============

@api_router.get("/crisis/resources")
async def get_crisis_resources():
    return {"resources": RESOURCE_DIRECTORY, "coping_strategies": COPING_STRATEGIES}


# Include the router in the main app
app.include_router(api_router)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)
