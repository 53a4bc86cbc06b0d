import logging
import re
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from .classifier import classify_mood
from .llm import INSIGHT_SUMMARY_PROMPT, GenerativeAIError
from .models import ChatSession, JournalEntry, Mood, MoodRecord, TimelineEntry, as_utc, utc_now

logger = logging.getLogger(__name__)

TIMELINE_DAYS = 7
TIMELINE_LIMIT = 14
PREVIEW_LENGTH = 100
MAX_TOPICS = 3
MIN_TOPIC_LENGTH = 5
EXCERPT_LENGTH = 200

STOP_WORDS = frozenset("""
a about above after again against all also am an and any are as at be because been before
being below between both but by can could did do does doing down during each even every few
for from further had has have having he her here hers herself him himself his how i if in
into is it its itself just like me more most much my myself no nor not now of off on once
only or other our ours ourselves out over own really same she should so some still such than
that the their theirs them themselves then there these they things think this those through
to today too under until up very was we were what when where which while who whom why will
with would you your yours yourself yourselves feel feeling felt going thing something
anything everything right maybe
""".split())

_WORD_RE = re.compile(r"\b[a-z][a-z']*\b")


def preview(text: str, length: int = PREVIEW_LENGTH) -> str:
    text = text or ""
    if len(text) > length:
        return text[:length] + "..."
    return text


def extract_topics(text: Optional[str], limit: int = MAX_TOPICS) -> List[str]:
    """Pick up to `limit` representative words from text.

    Stop-words and words of four letters or fewer are skipped; the rest are
    ranked by frequency, ties going to the word seen first.
    """
    counts: Dict[str, int] = {}
    first_seen: Dict[str, int] = {}
    for token in _WORD_RE.findall((text or "").lower()):
        if len(token) < MIN_TOPIC_LENGTH or token in STOP_WORDS:
            continue
        if token not in counts:
            counts[token] = 0
            first_seen[token] = len(first_seen)
        counts[token] += 1

    ranked = sorted(counts, key=lambda word: (-counts[word], first_seen[word]))
    return ranked[:limit]


def _mood_for_journal(entry: JournalEntry, mood_records: Sequence[MoodRecord]) -> Mood:
    # Same calendar day, closest in time to the entry
    same_day = [r for r in mood_records if r.date == entry.date]
    if not same_day:
        return Mood.NEUTRAL
    closest = min(same_day, key=lambda r: abs((r.timestamp - entry.timestamp).total_seconds()))
    return closest.mood


def build_timeline(
    sessions: Sequence[ChatSession],
    journal_entries: Sequence[JournalEntry],
    mood_records: Sequence[MoodRecord],
    now: Optional[datetime] = None,
) -> List[TimelineEntry]:
    """Merge the last week of chats and journal entries, oldest first.

    Only the newest TIMELINE_LIMIT entries are kept.
    """
    entries: List[TimelineEntry] = []

    for session in recent_sessions(sessions, now):
        text = session.user_text()
        entries.append(TimelineEntry(
            type="chat",
            date=session.created_at.date().isoformat(),
            timestamp=session.created_at,
            mood=classify_mood(text),
            content_preview=preview(text),
            metadata={
                "session_id": session.session_id,
                "message_count": len(session.messages),
                "updated_at": session.updated_at.isoformat(),
            },
        ))

    for journal in recent_journal_entries(journal_entries, now):
        entries.append(TimelineEntry(
            type="journal",
            date=journal.date,
            timestamp=journal.timestamp,
            mood=_mood_for_journal(journal, mood_records),
            content_preview=preview(journal.entry),
            metadata={"entry_id": journal.id, "length": len(journal.entry)},
        ))

    entries.sort(key=lambda e: e.timestamp)
    return entries[-TIMELINE_LIMIT:]


def correlate_topics(sessions: Sequence[ChatSession]) -> Dict[str, Dict[str, int]]:
    """Count how often each chat topic co-occurs with each classified mood."""
    table: Dict[str, Dict[str, int]] = {}
    for session in sessions:
        text = session.user_text()
        mood = classify_mood(text)
        for topic in extract_topics(text):
            moods = table.setdefault(topic, {})
            moods[mood.value] = moods.get(mood.value, 0) + 1
    return table


def dominant_topic_moods(table: Dict[str, Dict[str, int]]) -> Dict[str, Mood]:
    """Plurality mood per topic; ties go to the earlier mood in Mood order."""
    result = {}
    for topic, counts in table.items():
        best = None
        for mood in Mood:
            if best is None or counts.get(mood.value, 0) > counts.get(best.value, 0):
                best = mood
        result[topic] = best
    return result


def recent_sessions(sessions: Sequence[ChatSession], now: Optional[datetime] = None) -> List[ChatSession]:
    now = as_utc(now) if now else utc_now()
    since = now - timedelta(days=TIMELINE_DAYS)
    return [s for s in sessions if since < s.created_at <= now]


def recent_journal_entries(entries: Sequence[JournalEntry], now: Optional[datetime] = None) -> List[JournalEntry]:
    now = as_utc(now) if now else utc_now()
    since = now - timedelta(days=TIMELINE_DAYS)
    return [e for e in entries if since < e.timestamp <= now]


async def summarize_activity(
    llm,
    sessions: Sequence[ChatSession],
    journal_entries: Sequence[JournalEntry],
) -> Optional[str]:
    """Ask the model for a short weekly reflection; None when it can't answer."""
    if llm is None or (not sessions and not journal_entries):
        return None

    chats = "\n".join(f"- {preview(s.user_text(), EXCERPT_LENGTH)}" for s in sessions[-5:]) or "(none)"
    journals = "\n".join(f"- {preview(j.entry, EXCERPT_LENGTH)}" for j in journal_entries[-5:]) or "(none)"

    try:
        return await llm.generate(
            INSIGHT_SUMMARY_PROMPT.format(chats=chats, journals=journals),
            temperature=0.7,
        )
    except GenerativeAIError as e:
        logger.warning(f"Insight summary unavailable: {e}")
        return None
