from __future__ import annotations

import random


ADJECTIVES = (
    "Happy", "Sleepy", "Grumpy", "Sneezy", "Bashful", "Dopey",
    "Doc", "Clever", "Swift", "Brave", "Witty",
)

NOUNS = (
    "Turtle", "Dragon", "Wizard", "Knight", "Bunny", "Panda",
    "Fox", "Wolf", "Tiger", "Eagle", "Otter",
)

# No 0/O, 1/I: codes get read aloud across the room.
ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ROOM_CODE_LENGTH = 6


def generate_alias(rng: random.Random) -> str:
    return f"{rng.choice(ADJECTIVES)}{rng.choice(NOUNS)}"


def generate_room_code(rng: random.Random, length: int = ROOM_CODE_LENGTH) -> str:
    return "".join(rng.choice(ROOM_CODE_ALPHABET) for _ in range(length))


def normalize_room_code(code: str) -> str:
    return (code or "").strip().upper()


def shuffle_aliases(aliases: list[str], rng: random.Random) -> list[str]:
    """Return a uniform random permutation of ``aliases`` (the input is left untouched)."""
    shuffled = list(aliases)
    rng.shuffle(shuffled)
    return shuffled
