from datetime import datetime, timezone

import pytest

from mindmate.llm import GenerativeAIError


class FakeLLM:
    """Stands in for GeminiClient; records every prompt it is given."""

    def __init__(self, reply="That sounds really hard. What's been weighing on you most?",
                 mood_answer="calm", summary="This week you noticed moments of calm.", fail=False):
        self.reply = reply
        self.mood_answer = mood_answer
        self.summary = summary
        self.fail = fail
        self.prompts = []

    async def generate(self, prompt, **kwargs):
        self.prompts.append(prompt)
        if self.fail:
            raise GenerativeAIError("service unavailable")
        if "Answer with exactly one word" in prompt:
            return self.mood_answer
        return self.summary

    async def chat(self, message, history=None):
        self.prompts.append(message)
        if self.fail:
            raise GenerativeAIError("service unavailable")
        return self.reply


@pytest.fixture
def now():
    # A Wednesday
    return datetime(2026, 10, 14, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def fake_llm():
    return FakeLLM()
