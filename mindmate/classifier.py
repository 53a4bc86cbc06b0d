import logging
import re
from abc import ABC, abstractmethod
from typing import Dict, Optional, Pattern, Tuple

from .llm import MOOD_DETECTION_PROMPT, GenerativeAIError
from .models import Mood, fold_text

logger = logging.getLogger(__name__)

# ============= LEXICON =============

# Checked in this order; the first phrase found decides the mood.
MOOD_PHRASES: Tuple[Tuple[str, Mood], ...] = (
    ("passed away", Mood.SAD),
    ("lost my", Mood.SAD),
    ("broke up", Mood.SAD),
    ("broken heart", Mood.SAD),
    ("miss them", Mood.SAD),
    ("feel alone", Mood.SAD),
    ("panic attack", Mood.ANXIOUS),
    ("can't stop worrying", Mood.ANXIOUS),
    ("can't sleep", Mood.ANXIOUS),
    ("on edge", Mood.ANXIOUS),
    ("burned out", Mood.STRESSED),
    ("burnt out", Mood.STRESSED),
    ("too much to do", Mood.STRESSED),
    ("so much work", Mood.STRESSED),
    ("falling behind", Mood.STRESSED),
    ("got the job", Mood.HAPPY),
    ("got promoted", Mood.HAPPY),
    ("best day", Mood.HAPPY),
    ("feel great", Mood.HAPPY),
    ("at peace", Mood.CALM),
    ("feel relaxed", Mood.CALM),
    ("took it easy", Mood.CALM),
)

# Scored categories in tie-break order. Neutral is the fallback, never scored.
MOOD_KEYWORDS: Tuple[Tuple[Mood, Tuple[str, ...]], ...] = (
    (Mood.HAPPY, (
        "happy", "joy", "joyful", "great", "good", "wonderful", "amazing", "excited",
        "love", "glad", "delighted", "grateful", "thrilled", "awesome", "fantastic",
        "proud", "cheerful", "promotion", "promoted", "celebrate", "celebrating",
        "birthday", "vacation", "wedding", "engaged", "won",
    )),
    (Mood.SAD, (
        "sad", "down", "depressed", "unhappy", "upset", "cry", "crying", "cried",
        "lonely", "hurt", "heartbroken", "grief", "grieving", "tears", "empty",
        "funeral", "breakup", "divorce", "loss", "rejected", "miss",
    )),
    (Mood.ANXIOUS, (
        "anxious", "anxiety", "worried", "worry", "nervous", "panic", "scared",
        "afraid", "fear", "uneasy", "restless", "dread", "terrified", "exam",
        "interview", "uncertain",
    )),
    (Mood.CALM, (
        "calm", "peaceful", "relaxed", "serene", "content", "fine", "okay", "rested",
        "meditate", "meditation", "balanced", "quiet", "comfortable", "chill",
    )),
    (Mood.STRESSED, (
        "stressed", "stress", "overwhelmed", "pressure", "busy", "exhausted",
        "tired", "burnout", "deadline", "deadlines", "workload", "overworked",
        "swamped", "frustrated", "frazzled",
    )),
)

_KEYWORD_PATTERNS: Tuple[Tuple[Mood, Pattern], ...] = tuple(
    (mood, re.compile(r"\b(?:" + "|".join(re.escape(k) for k in keywords) + r")\b"))
    for mood, keywords in MOOD_KEYWORDS
)


def keyword_counts(text: str) -> Dict[Mood, int]:
    """Count whole-word keyword hits per scored mood; every occurrence counts."""
    text_lower = fold_text(text)
    return {mood: len(pattern.findall(text_lower)) for mood, pattern in _KEYWORD_PATTERNS}


def match_phrase(text: str) -> Optional[Mood]:
    text_lower = fold_text(text)
    for phrase, mood in MOOD_PHRASES:
        if phrase in text_lower:
            return mood
    return None


def classify_mood(text: Optional[str]) -> Mood:
    """Map free text to a mood using phrase and keyword matching.

    Phrases take strict priority over keywords. Among keywords, the mood
    with the strictly highest hit count wins and ties go to the earlier
    category in MOOD_KEYWORDS. No hits at all means neutral. Negation is
    not handled ("not happy" still counts as happy).
    """
    if not text:
        return Mood.NEUTRAL

    phrase_mood = match_phrase(text)
    if phrase_mood is not None:
        return phrase_mood

    counts = keyword_counts(text)
    best_mood, best_count = Mood.NEUTRAL, 0
    for mood, _ in MOOD_KEYWORDS:
        if counts[mood] > best_count:
            best_mood, best_count = mood, counts[mood]
    return best_mood


# ============= DETECTION STRATEGIES =============

class MoodDetector(ABC):
    """Turns text into a mood label. `source` names where the answer came from."""

    source: str = ""

    @abstractmethod
    async def detect(self, text: str) -> Mood:
        ...


class LexiconMoodDetector(MoodDetector):
    source = "lexicon"

    async def detect(self, text: str) -> Mood:
        return classify_mood(text)


def parse_mood_label(answer: str) -> Mood:
    """Read a single mood word out of a model answer, or raise ValueError."""
    words = (answer or "").strip().lower().split()
    word = re.sub(r"[^a-z]", "", words[0]) if words else ""
    return Mood(word)


class GenerativeMoodDetector(MoodDetector):
    source = "ai"

    def __init__(self, llm):
        self.llm = llm

    async def detect(self, text: str) -> Mood:
        answer = await self.llm.generate(
            MOOD_DETECTION_PROMPT.format(text=text),
            temperature=0.0,
            max_output_tokens=256,
        )
        try:
            return parse_mood_label(answer)
        except ValueError:
            raise GenerativeAIError(f"Model answered outside the mood set: {answer!r}")


class FallbackMoodDetector(MoodDetector):
    """Asks the primary detector first and falls back when it cannot answer."""

    def __init__(self, primary: MoodDetector, fallback: MoodDetector):
        self.primary = primary
        self.fallback = fallback

    async def detect(self, text: str) -> Mood:
        mood, _ = await self.detect_with_source(text)
        return mood

    async def detect_with_source(self, text: str) -> Tuple[Mood, str]:
        if text and text.strip():
            try:
                mood = await self.primary.detect(text)
                return mood, self.primary.source
            except GenerativeAIError as e:
                logger.warning(f"Primary mood detection failed, using {self.fallback.source}: {e}")
        mood = await self.fallback.detect(text)
        return mood, self.fallback.source


def build_mood_detector(llm) -> FallbackMoodDetector:
    return FallbackMoodDetector(GenerativeMoodDetector(llm), LexiconMoodDetector())
