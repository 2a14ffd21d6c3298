"""
=============================================================================
CHATBOT.PY — AI Assistant
=============================================================================
The AI provider is an injected capability with a single method:

    provider.complete(system_prompt, messages) -> str

The real provider talks to an OpenAI-compatible chat completions API.
When no API key is configured there is no provider at all and canned
replies are used. When the provider fails (network, quota, timeout) the
error is logged and a canned reply is used too: the user always gets an
answer.
"""

import logging
import os
import random
from typing import Optional, Protocol

from openai import OpenAI, OpenAIError
from sqlalchemy.orm import Session

from errors import UpstreamError
from models import ChatMessage
from storage import RecordStore

logger = logging.getLogger("mindwell.chatbot")

# ─────────────────────────────────────────────────────────────────────────────
# CONFIGURATION
# ─────────────────────────────────────────────────────────────────────────────

AI_API_KEY = os.getenv("AI_API_KEY", "")
AI_MODEL = os.getenv("AI_MODEL", "gpt-4o-mini")
AI_BASE_URL = os.getenv("AI_BASE_URL") or None
# AI_BASE_URL → any OpenAI-compatible endpoint (None = the default one)
AI_TIMEOUT_SECONDS = float(os.getenv("AI_TIMEOUT_SECONDS", "15"))

CHAT_CONTEXT_MESSAGES = 10

SYSTEM_PROMPT = """
You are a mental health AI assistant specialized in Cognitive Behavioral Therapy (CBT). Your role is to help users improve their mental wellbeing through evidence-based techniques.

Your capabilities include:
1. Providing personalized CBT exercises including cognitive restructuring, thought records, and behavioral activation
2. Guiding breathing and mindfulness exercises
3. Helping users with journaling prompts
4. Teaching gratitude practices
5. Supporting users through stressful situations with a compassionate approach

Keep your responses concise (max 3 paragraphs) and focus on actionable guidance. Approach users with warmth, empathy, and professionalism.

Never diagnose medical conditions, and recommend seeking professional help for serious mental health concerns.
""".strip()

FALLBACK_RESPONSES = [
    "I understand how you're feeling. One CBT technique you might find helpful is to challenge negative thoughts by asking: What evidence supports this thought? What evidence contradicts it? Is there another way to look at this situation?",
    "Deep breathing can help reduce anxiety in the moment. Try breathing in slowly for 4 counts, hold for 2, then exhale for 6. Repeat this 5 times and notice how your body feels.",
    "Journaling about your feelings can provide clarity. Try writing about what triggered your emotions, what thoughts came up, and how your body felt. This awareness is the first step to positive change.",
    "Practicing gratitude, even during difficult times, can help shift your perspective. Could you think of three small things you're grateful for today?",
    "It sounds like you're going through a challenging time. Remember that your thoughts aren't always facts, and this moment will pass. What's one small self-care activity you could do today?",
    "Mindfulness helps us stay present rather than worrying about the future. Try focusing on your five senses right now: What can you see, hear, feel, smell, and taste?",
]

ERROR_FALLBACK_RESPONSE = (
    "I'm having trouble connecting right now. Let's try a simple breathing exercise: "
    "breathe in for 4 counts, hold for 2, then exhale for 6. How does that feel?"
)


# =============================================================================
# ===================== PROVIDER ==============================================
# =============================================================================

class ChatProvider(Protocol):
    """
    Anything that answers with free text given a prompt and a history.
    Failures should be raised as UpstreamError; any other exception is
    logged with its traceback and answered with the same fallback.
    """

    def complete(self, system_prompt: str, messages: list[dict]) -> str:
        ...


class OpenAIChatProvider:
    """Chat completions over the openai SDK. Every SDK failure → UpstreamError."""

    def __init__(self, api_key: str, model: str = AI_MODEL, base_url: Optional[str] = AI_BASE_URL,
                 timeout: float = AI_TIMEOUT_SECONDS):
        self.model = model
        self.client = OpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)

    def complete(self, system_prompt: str, messages: list[dict]) -> str:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "system", "content": system_prompt}, *messages],
                temperature=0.7,
                max_tokens=800,
            )
        except OpenAIError as e:
            raise UpstreamError(f"AI provider request failed: {e}") from e

        text = response.choices[0].message.content if response.choices else None
        if not text or not text.strip():
            raise UpstreamError("AI provider returned an empty answer")
        return text.strip()


_provider: Optional[ChatProvider] = None


def get_chat_provider() -> Optional[ChatProvider]:
    """
    FastAPI dependency. None when AI_API_KEY is not set.
    Tests replace it through app.dependency_overrides.
    """
    global _provider
    if _provider is None and AI_API_KEY:
        _provider = OpenAIChatProvider(AI_API_KEY)
    return _provider


if not AI_API_KEY:
    logger.warning("⚠️ AI_API_KEY is not set. The assistant will use fallback responses.")


# =============================================================================
# ===================== CHAT ==================================================
# =============================================================================

def chat_history(db: Session, user_id: int, limit: Optional[int] = None) -> list[ChatMessage]:
    """Conversation in chronological order; with limit, only the last N messages"""
    return RecordStore(db).list_by_user_id(ChatMessage, user_id, ascending=True, limit=limit)


def generate_chat_reply(db: Session, user_id: int, message: str,
                        provider: Optional[ChatProvider]) -> ChatMessage:
    """
    Stores the user's message, asks the provider for a reply using the last
    10 messages as context, stores the reply and returns it.
    """
    store = RecordStore(db)
    store.create(ChatMessage, user_id=user_id, content=message, is_user_message=True)

    if provider is None:
        reply = random.choice(FALLBACK_RESPONSES)
    else:
        context = [
            {"role": "user" if m.is_user_message else "assistant", "content": m.content}
            for m in chat_history(db, user_id, limit=CHAT_CONTEXT_MESSAGES)
        ]
        try:
            reply = provider.complete(SYSTEM_PROMPT, context)
        except UpstreamError as e:
            logger.error(f"❌ Chat reply failed for user {user_id}: {e.message}")
            reply = ERROR_FALLBACK_RESPONSE
        except Exception:
            logger.exception(f"❌ Chat provider crashed for user {user_id}")
            reply = ERROR_FALLBACK_RESPONSE

    return store.create(ChatMessage, user_id=user_id, content=reply, is_user_message=False)


# =============================================================================
# ===================== AFFIRMATIONS ==========================================
# =============================================================================

FALLBACK_AFFIRMATIONS = {
    "confidence": [
        "I trust myself and the choices I make.",
        "I am capable of handling whatever today brings.",
    ],
    "calm": [
        "I breathe in peace and breathe out tension.",
        "I am allowed to slow down and rest.",
    ],
    "motivation": [
        "Every small step I take moves me forward.",
        "I have the energy to begin, and that is enough for today.",
    ],
    "self-love": [
        "I deserve the same kindness I give to others.",
        "I accept myself exactly as I am today.",
    ],
    "growth": [
        "Every challenge is a chance for me to learn.",
        "I am becoming a little wiser every day.",
    ],
    "resilience": [
        "I have overcome hard things before, and I can do it again.",
        "Setbacks are temporary; my strength is lasting.",
    ],
    "happiness": [
        "I notice and welcome the small joys in my day.",
        "I choose to make room for happiness today.",
    ],
    "forgiveness": [
        "I release what I cannot change and make peace with my past.",
        "I forgive myself for not being perfect.",
    ],
}

AFFIRMATION_PROMPT = (
    "You write short, first-person, present-tense positive affirmations. "
    "Answer with a single affirmation of at most two sentences and nothing else."
)


def generate_affirmation_text(challenge: Optional[str], focus: str,
                              provider: Optional[ChatProvider]) -> str:
    """One affirmation for the focus area; canned text when the AI is unavailable"""
    fallback = random.choice(FALLBACK_AFFIRMATIONS.get(focus, FALLBACK_AFFIRMATIONS["confidence"]))
    if provider is None:
        return fallback

    request = f"Write an affirmation focused on {focus}."
    if challenge:
        request += f" The person is dealing with: {challenge}."
    try:
        return provider.complete(AFFIRMATION_PROMPT, [{"role": "user", "content": request}])
    except UpstreamError as e:
        logger.error(f"❌ Affirmation generation failed: {e.message}")
        return fallback
    except Exception:
        logger.exception("❌ Affirmation provider crashed")
        return fallback
