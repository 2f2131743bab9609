from __future__ import annotations

import random

from .models import Question


QUESTIONS: tuple[Question, ...] = (
    Question("q1", "If you could have any superpower, what would it be and why?"),
    Question("q2", "What would you do if you won a million dollars tomorrow?"),
    Question("q3", "If you could travel anywhere in the world, where would you go?"),
    Question("q4", "If you could have dinner with any historical figure, who would it be?"),
    Question("q5", "What's your favorite childhood memory?"),
    Question("q6", "If you could be any animal, what would you be and why?"),
    Question("q8", "If you could learn any skill instantly, what would it be?"),
    Question("q9", "What's your most unpopular opinion?"),
    Question("q10", "If you could live in any fictional world, which one would you choose?"),
)


def pick_question(rng: random.Random, pool: tuple[Question, ...] = QUESTIONS) -> Question:
    return rng.choice(pool)
