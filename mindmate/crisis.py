from typing import Iterable, List, Optional

from .models import CrisisResource, CrisisResponse, fold_text

CRISIS_REPLY = (
    "I'm really concerned about what you're sharing, and I'm glad you told me. "
    "You deserve real support right now, and I'm an AI with limits in helping with this. "
    "Please call or text 988 (Suicide & Crisis Lifeline), or text HOME to 741741 to reach the Crisis Text Line. "
    "If you're in immediate danger, call 911 or go to your nearest emergency room."
)

CRISIS_RESOURCES = [
    CrisisResource(
        name="988 Suicide & Crisis Lifeline",
        phone="988",
        description="Free, confidential support for people in distress, 24/7",
        website="https://988lifeline.org",
    ),
    CrisisResource(
        name="Crisis Text Line",
        phone="Text HOME to 741741",
        description="Free, 24/7 crisis support via text message",
        website="https://www.crisistextline.org",
    ),
    CrisisResource(
        name="Emergency Services",
        phone="911",
        description="If you or someone else is in immediate danger",
    ),
]

RESOURCE_DIRECTORY = CRISIS_RESOURCES + [
    CrisisResource(
        name="SAMHSA National Helpline",
        phone="1-800-662-4357",
        description="Free, confidential treatment referral and information service",
        website="https://www.samhsa.gov/find-help/national-helpline",
    ),
    CrisisResource(
        name="National Domestic Violence Hotline",
        phone="1-800-799-7233",
        description="Support for those experiencing domestic violence",
        website="https://www.thehotline.org",
    ),
    CrisisResource(
        name="Veterans Crisis Line",
        phone="988 (Press 1)",
        description="Confidential support for veterans and their families",
        website="https://www.veteranscrisisline.net",
    ),
]

COPING_STRATEGIES = [
    {"title": "Grounding Techniques", "description": "Use the 5-4-3-2-1 method: Name 5 things you see, 4 you can touch, 3 you hear, 2 you smell, 1 you taste."},
    {"title": "Deep Breathing", "description": "Take slow, deep breaths. Inhale for 4 counts, hold for 4, exhale for 4. Repeat."},
    {"title": "Reach Out", "description": "Contact a trusted friend, family member, or mental health professional."},
    {"title": "Move Your Body", "description": "Take a walk, stretch, or do light exercise to help regulate your nervous system."},
    {"title": "Use Cold Water", "description": "Splash cold water on your face or hold an ice cube to help ground yourself."},
    {"title": "Listen to Music", "description": "Play calming music or sounds that help you feel more centered."},
]


class CrisisDetector:
    """Case-insensitive phrase scan for self-harm and crisis language.

    This is a blunt safety net, not a classifier: it reports the first literal
    phrase hit and nothing more.
    """

    def __init__(self, phrases: Iterable[str]):
        self.phrases: List[str] = [fold_text(p) for p in phrases if p]

    def match(self, text: Optional[str]) -> Optional[str]:
        if not text:
            return None
        text_lower = fold_text(text)
        for phrase in self.phrases:
            if phrase in text_lower:
                return phrase
        return None

    def detect(self, text: Optional[str]) -> bool:
        return self.match(text) is not None


def detect_crisis(text: Optional[str], phrases: Iterable[str]) -> bool:
    """Check if text contains any of the crisis phrases"""
    return CrisisDetector(phrases).detect(text)


def crisis_response() -> CrisisResponse:
    return CrisisResponse(reply=CRISIS_REPLY, resources=list(CRISIS_RESOURCES))
