import asyncio
import logging
from typing import List, Optional

from google import genai
from google.genai import types

from .models import ChatMessage

logger = logging.getLogger(__name__)

# ============= SYSTEM PROMPTS =============

COMPANION_SYSTEM_PROMPT = """You are MindMate, a compassionate and empathetic AI companion. Your role is to:
- Listen actively and respond with empathy and warmth
- Ask thoughtful follow-up questions to understand better
- Provide emotional support and validation
- Help users explore their feelings in a safe space
- Suggest healthy coping strategies when appropriate
- Never diagnose or replace professional therapy
- Keep responses warm, conversational, and supportive (2-4 sentences typically)
- Be genuine, caring, and non-judgmental

Respond naturally and conversationally as a supportive friend would."""

MOOD_DETECTION_PROMPT = """Read the text below and name the single emotion that best describes how the writer feels.
Answer with exactly one word from this list: happy, calm, neutral, anxious, sad, stressed.

Text:
{text}"""

INSIGHT_SUMMARY_PROMPT = """You are the Insight Synthesizer for MindMate. Write a gentle, 3-4 sentence reflection on the user's week.

YOUR TONE: Compassionate observer, not therapist or coach. Notice patterns and reflect them back; don't prescribe.
- Use "noticed" not "you should"
- Highlight positives alongside challenges
- No diagnostic language, no alarmist tone

Recent chat excerpts:
{chats}

Recent journal excerpts:
{journals}"""


class GenerativeAIError(Exception):
    """The generative-AI service failed, timed out or returned nothing usable."""


class GeminiClient:
    """Thin async wrapper over the Gemini API with a bounded timeout."""

    def __init__(self, api_key: str, model: str = "gemini-2.5-flash", timeout: float = 10.0):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client = genai.Client(api_key=api_key) if api_key else None

    async def generate(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        history: Optional[List[ChatMessage]] = None,
        temperature: float = 0.9,
        max_output_tokens: int = 1024,
    ) -> str:
        if self._client is None:
            raise GenerativeAIError("GEMINI_API_KEY is not configured")

        history = list(history or [])
        # Gemini history must open with a user turn; drop the companion's greeting
        while history and history[0].role != "user":
            history.pop(0)

        contents = []
        for msg in history:
            contents.append(types.Content(
                role="user" if msg.role == "user" else "model",
                parts=[types.Part(text=msg.content)],
            ))
        contents.append(types.Content(role="user", parts=[types.Part(text=prompt)]))

        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=temperature,
            top_k=40,
            top_p=0.95,
            max_output_tokens=max_output_tokens,
        )

        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=self.model,
                    contents=contents,
                    config=config,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise GenerativeAIError(f"Gemini did not answer within {self.timeout}s")
        except Exception as e:
            raise GenerativeAIError(f"Gemini request failed: {e}") from e

        text = (response.text or "").strip()
        if not text:
            raise GenerativeAIError("Gemini returned an empty response")
        return text

    async def chat(self, message: str, history: Optional[List[ChatMessage]] = None) -> str:
        # Cap history at the last 10 messages to limit token usage
        return await self.generate(
            message,
            system_instruction=COMPANION_SYSTEM_PROMPT,
            history=(history or [])[-10:],
        )
