from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional

from .models import Mood

SELF_CARE_ACTIVITIES = [
    {"id": 1, "title": "Take a 10-minute walk", "category": "physical", "moods": ["stressed", "anxious"]},
    {"id": 2, "title": "Practice 5-minute meditation", "category": "mindfulness", "moods": ["anxious", "stressed"]},
    {"id": 3, "title": "Write 3 things you're grateful for", "category": "gratitude", "moods": ["sad", "neutral"]},
    {"id": 4, "title": "Listen to calming music", "category": "relaxation", "moods": ["stressed", "anxious"]},
    {"id": 5, "title": "Call a friend or family member", "category": "social", "moods": ["sad"]},
    {"id": 6, "title": "Do a hobby you enjoy", "category": "enjoyment", "moods": ["neutral", "sad"]},
    {"id": 7, "title": "Take a warm bath or shower", "category": "self-care", "moods": ["stressed"]},
    {"id": 8, "title": "Read a book for 15 minutes", "category": "mental", "moods": ["anxious", "stressed"]},
    {"id": 9, "title": "Do some stretching", "category": "physical", "moods": ["stressed"]},
    {"id": 10, "title": "Spend time in nature", "category": "outdoor", "moods": ["sad", "anxious"]},
]

ACTIVITY_IDS = frozenset(activity["id"] for activity in SELF_CARE_ACTIVITIES)

MOOD_RECOMMENDATIONS: Dict[Mood, List[Dict[str, str]]] = {
    Mood.ANXIOUS: [
        {"title": "Try Box Breathing", "description": "4-4-4-4 breathing pattern helps calm anxiety", "action": "/breathing"},
        {"title": "Practice Grounding", "description": "5-4-3-2-1 technique: Name 5 things you see, 4 you touch, 3 you hear, 2 you smell, 1 you taste", "action": ""},
        {"title": "Take a Walk", "description": "Physical movement helps reduce anxiety", "action": ""},
    ],
    Mood.STRESSED: [
        {"title": "4-7-8 Breathing", "description": "Deep breathing technique for stress relief", "action": "/breathing"},
        {"title": "Break Tasks Down", "description": "Divide overwhelming tasks into smaller steps", "action": ""},
        {"title": "Take a Break", "description": "Step away for 10 minutes to reset", "action": ""},
    ],
    Mood.SAD: [
        {"title": "Connect with Nature", "description": "Spend time outside, even for 5 minutes", "action": ""},
        {"title": "Practice Gratitude", "description": "Write down 3 things you're grateful for", "action": "/journal"},
        {"title": "Talk to MindMate", "description": "Share your feelings in a safe space", "action": "/chat"},
    ],
    Mood.HAPPY: [
        {"title": "Maintain the Momentum", "description": "Continue activities that bring you joy", "action": ""},
        {"title": "Share Your Joy", "description": "Connect with others and spread positivity", "action": ""},
        {"title": "Set New Goals", "description": "Channel positive energy into new challenges", "action": ""},
    ],
    Mood.CALM: [
        {"title": "Maintain Mindfulness", "description": "Continue your current practices", "action": "/breathing"},
        {"title": "Reflect on What Works", "description": "Journal about what helps you stay calm", "action": "/journal"},
    ],
    Mood.NEUTRAL: [
        {"title": "Explore Activities", "description": "Try new things to discover what brings you joy", "action": ""},
        {"title": "Check In Regularly", "description": "Track your mood to identify patterns", "action": ""},
    ],
}


def recommended_activities(mood: Optional[Mood], limit: int = 6) -> List[dict]:
    if mood is None:
        return SELF_CARE_ACTIVITIES[:limit]
    return [a for a in SELF_CARE_ACTIVITIES if mood.value in a["moods"]][:limit]


def checkin_streak(checkin_dates: Iterable[str], today: date) -> int:
    """Consecutive days with a check-in, counting back from today.

    A streak whose last check-in was yesterday is still alive.
    """
    days = {date.fromisoformat(d) for d in checkin_dates}
    cursor = today if today in days else today - timedelta(days=1)
    streak = 0
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak
