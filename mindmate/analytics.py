"""Mood aggregation and trend engine.

Everything here is a pure function over an already-loaded list of
MoodRecords. Calendar days, weekdays and hours are taken in UTC.
"""
from collections import defaultdict
from datetime import datetime, timedelta
from statistics import fmean
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .models import (
    MOOD_SCORES,
    NEUTRAL_SCORE,
    ChartPoint,
    Mood,
    MoodRecord,
    MoodStats,
    as_utc,
    utc_now,
)

TREND_THRESHOLD = 5
WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def score(mood: Mood) -> int:
    return MOOD_SCORES[mood]


def mean_score(records: Iterable[MoodRecord], default: Optional[float] = NEUTRAL_SCORE,
               digits: Optional[int] = 1) -> Optional[float]:
    scores = [score(r.mood) for r in records]
    if not scores:
        return default
    mean = fmean(scores)
    return mean if digits is None else round(mean, digits)


def in_window(records: Sequence[MoodRecord], start: datetime, end: datetime) -> List[MoodRecord]:
    """Records with start < timestamp <= end."""
    return [r for r in records if start < r.timestamp <= end]


def weekly_average(records: Sequence[MoodRecord], now: datetime) -> float:
    return mean_score(in_window(records, now - timedelta(days=7), now))


def daily_chart(records: Sequence[MoodRecord], now: datetime, days: int = 7) -> List[ChartPoint]:
    by_date: Dict[str, List[MoodRecord]] = defaultdict(list)
    for r in records:
        by_date[r.date].append(r)

    today = now.date()
    points = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        key = day.isoformat()
        points.append(ChartPoint(
            date=key,
            day=day.strftime("%a"),
            score=mean_score(by_date.get(key, []), default=None),
        ))
    return points


def peak_hour(records: Sequence[MoodRecord]) -> Optional[int]:
    """Hour of day with the best mean score; ties go to the earlier hour."""
    by_hour: Dict[int, List[MoodRecord]] = defaultdict(list)
    for r in records:
        by_hour[r.timestamp.hour].append(r)

    best_hour, best_mean = None, None
    for hour in range(24):
        if hour not in by_hour:
            continue
        hour_mean = fmean(score(r.mood) for r in by_hour[hour])
        if best_mean is None or hour_mean > best_mean:
            best_hour, best_mean = hour, hour_mean
    return best_hour


def format_hour(hour: Optional[int]) -> Optional[str]:
    if hour is None:
        return None
    suffix = "AM" if hour < 12 else "PM"
    return f"{hour % 12 or 12} {suffix}"


def dominant_mood(records: Sequence[MoodRecord]) -> Optional[Mood]:
    """Most frequent mood; ties go to the mood seen first in the scan."""
    counts: Dict[Mood, int] = {}
    order: List[Mood] = []
    for r in records:
        if r.mood not in counts:
            counts[r.mood] = 0
            order.append(r.mood)
        counts[r.mood] += 1

    best: Optional[Mood] = None
    for mood in order:
        if best is None or counts[mood] > counts[best]:
            best = mood
    return best


def classify_trend(recent_mean: float, previous_mean: float) -> str:
    # Float noise must not push an exact 5-point change over the threshold
    delta = round(recent_mean - previous_mean, 6)
    if delta > TREND_THRESHOLD:
        return "improving"
    if delta < -TREND_THRESHOLD:
        return "declining"
    return "stable"


def trend_windows(records: Sequence[MoodRecord], now: datetime) -> Tuple[float, float]:
    week_ago = now - timedelta(days=7)
    two_weeks_ago = now - timedelta(days=14)
    recent = mean_score(in_window(records, week_ago, now), digits=None)
    previous = mean_score(in_window(records, two_weeks_ago, week_ago), digits=None)
    return recent, previous


def weekly_pattern(records: Sequence[MoodRecord]) -> Dict[str, float]:
    by_weekday: Dict[int, List[MoodRecord]] = defaultdict(list)
    for r in records:
        by_weekday[r.timestamp.weekday()].append(r)
    return {
        WEEKDAYS[i]: mean_score(by_weekday[i])
        for i in range(7)
        if by_weekday.get(i)
    }


def mood_distribution(records: Sequence[MoodRecord]) -> Dict[str, int]:
    counts = {mood.value: 0 for mood in Mood}
    for r in records:
        counts[r.mood.value] += 1
    return counts


def aggregate_mood_stats(records: Iterable[MoodRecord], now: Optional[datetime] = None) -> MoodStats:
    """Roll a user's mood history up into the dashboard statistics.

    Empty history yields neutral defaults: a weekly average of 50, a chart of
    seven null points, no peak hour or dominant mood and a stable trend.
    """
    now = as_utc(now) if now else utc_now()
    ordered = sorted(records, key=lambda r: r.timestamp)
    recent, previous = trend_windows(ordered, now)
    peak = peak_hour(ordered)

    return MoodStats(
        weekly_average=weekly_average(ordered, now),
        chart=daily_chart(ordered, now),
        peak_hour=peak,
        peak_time=format_hour(peak),
        dominant_mood=dominant_mood(ordered),
        trend=classify_trend(recent, previous),
        weekly_pattern=weekly_pattern(ordered),
        mood_distribution=mood_distribution(in_window(ordered, now - timedelta(days=7), now)),
        total_entries=len(ordered),
    )
