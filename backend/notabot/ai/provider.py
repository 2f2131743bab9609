"""AI answer providers.

A provider writes the impersonator's answer to a round's question. It must
never raise: any failure is answered with a short filler line so the round
can still close.
"""

from __future__ import annotations

import logging
import random
from typing import Callable, Optional, Protocol, Sequence

from google import genai

from ..config import Config


logger = logging.getLogger(__name__)

FALLBACK_ANSWERS = ("idk", "not sure", "hard to say")

# Peer answers beyond this are dropped from the prompt.
MAX_PEER_ANSWERS = 8


class AnswerProvider(Protocol):
    async def generate(self, question_text: str, peer_answers: Sequence[str] = ()) -> str: ...


def build_prompt(question_text: str, peer_answers: Sequence[str] = ()) -> str:
    """Build the impersonation prompt.

    Args:
        question_text: The round's question
        peer_answers: Human answers already submitted this round, used only
            as a style reference (length, tone, punctuation)

    Returns:
        Prompt text for the model
    """
    style_block = ""
    peers = [a.strip() for a in peer_answers if a and a.strip()][:MAX_PEER_ANSWERS]
    if peers:
        listed = "\n".join(f"- {a}" for a in peers)
        style_block = f"""
Other players answered like this. Match their length, tone, casing and
punctuation, but do not copy their content:
{listed}
"""

    return f"""You are playing a party game where you must pretend to be human and answer
the question below. Make the answer believable as if a real person typed it
on their phone. Use a conversational tone, an opinion or a tiny personal
detail, and keep it short (one or two sentences at most).
{style_block}
Question: {question_text}

Answer:"""


class GeminiAnswerProvider:
    """Answers questions through the Gemini API (google-genai SDK)."""

    def __init__(
        self,
        api_key: str,
        model_name: str = "gemini-2.0-flash",
        rng: Optional[random.Random] = None,
        client_factory: Optional[Callable[[], genai.Client]] = None,
    ):
        self.model_name = model_name
        self.rng = rng or random.Random()
        # One client per call: its pooled connections belong to the event
        # loop that opened them, and callers run each request on a new loop.
        self.client_factory = client_factory or (lambda: genai.Client(api_key=api_key))

    async def generate(self, question_text: str, peer_answers: Sequence[str] = ()) -> str:
        prompt = build_prompt(question_text, peer_answers)
        try:
            client = self.client_factory()
            response = await client.aio.models.generate_content(
                model=self.model_name,
                contents=prompt,
            )
            text = (response.text or "").strip()
        except Exception as e:
            logger.warning(f"AI answer generation failed: {e}")
            return self.rng.choice(FALLBACK_ANSWERS)

        if not text:
            logger.warning("AI answer generation returned empty text")
            return self.rng.choice(FALLBACK_ANSWERS)
        return text


class FallbackAnswerProvider:
    """Offline provider: canned answers, a few of them tuned to the question."""

    GENERIC = (
        "honestly no idea, probably something boring lol",
        "ok this is hard. i'd say whatever my friends pick",
        "hmm depends on the day tbh",
        "can i pass on this one",
    )

    TOPICAL = {
        "superpower": (
            "invisibility so i could skip every meeting",
            "flying, traffic here is awful",
            "teleporting. no contest",
        ),
        "million dollars": (
            "pay off my loans and then sleep for a week",
            "buy my mom a house first",
            "travel until it runs out honestly",
        ),
        "animal": (
            "a cat. they nap all day and nobody judges them",
            "otter!! they hold hands",
        ),
    }

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    async def generate(self, question_text: str, peer_answers: Sequence[str] = ()) -> str:
        options = list(self.GENERIC)
        lowered = (question_text or "").lower()
        for keyword, extra in self.TOPICAL.items():
            if keyword in lowered:
                options.extend(extra)
        return self.rng.choice(options)


def build_provider(config: type[Config] = Config, rng: Optional[random.Random] = None) -> AnswerProvider:
    if config.GEMINI_API_KEY:
        logger.info(f"Using Gemini answer provider ({config.GEMINI_MODEL})")
        return GeminiAnswerProvider(config.GEMINI_API_KEY, model_name=config.GEMINI_MODEL, rng=rng)

    logger.warning("No GEMINI_API_KEY found. AI answers will be canned.")
    return FallbackAnswerProvider(rng=rng)
