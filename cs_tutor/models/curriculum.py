"""
Curriculum Model for the CS Tutor API

Defines the three UK curriculum tiers, the tutoring modes, the allowed
topics per tier and the tier-distinctive vocabulary used for level-leak
detection.

Usage:
    from cs_tutor.models.curriculum import normalize_level, normalize_topic

    level = normalize_level("gcse")               # Level.GCSE
    topic = normalize_topic(level, "Astrophysics") # "Python Programming"
"""

from enum import Enum
from typing import Optional


class Level(str, Enum):
    """Curriculum tiers, lowest first."""

    KS3 = "KS3"
    GCSE = "GCSE"
    A_LEVEL = "A-Level"


class Mode(str, Enum):
    """Pedagogical interaction style."""

    EXPLAIN = "Explain"
    HINT = "Hint"
    QUIZ = "Quiz"
    MARK = "Mark"


LEVEL_ORDER: list[Level] = [Level.KS3, Level.GCSE, Level.A_LEVEL]

PAID_MODES = frozenset({Mode.QUIZ, Mode.MARK})

LEVEL_TOPICS: dict[Level, list[str]] = {
    Level.KS3: [
        "Programming Basics",
        "Algorithms",
        "Data Representation",
        "Computer Systems",
        "Networks",
        "E-Safety",
    ],
    Level.GCSE: [
        "Python Programming",
        "Algorithms",
        "Data Representation",
        "Boolean Logic",
        "Networks",
        "Databases and SQL",
        "Cyber Security",
    ],
    Level.A_LEVEL: [
        "Object-Oriented Programming",
        "Data Structures",
        "Algorithms and Complexity",
        "Functional Programming",
        "Databases and SQL",
        "Networking and Protocols",
        "Theory of Computation",
    ],
}

# Terms that mark a reply as pitched at one specific tier. Kept distinct
# across tiers so a tier never flags its own vocabulary.
LEVEL_VOCABULARY: dict[Level, list[str]] = {
    Level.KS3: [
        "scratch blocks",
        "scratch project",
        "sprite",
        "block-based",
    ],
    Level.GCSE: [
        "trace table",
        "truth table",
        "bubble sort",
        "insertion sort",
        "logic gate",
        "check digit",
    ],
    Level.A_LEVEL: [
        "big o notation",
        "big-o",
        "time complexity",
        "polymorphism",
        "encapsulation",
        "dijkstra",
        "finite state machine",
        "turing machine",
        "linked list",
        "binary tree",
        "hash table",
        "higher-order function",
        "recursion",
    ],
}

LEVEL_GUIDANCE: dict[Level, str] = {
    Level.KS3: (
        "The student is 11-14 years old. Use simple, friendly language, short "
        "sentences and everyday analogies. Define every technical word you use."
    ),
    Level.GCSE: (
        "The student is 14-16 years old and preparing for GCSE Computer Science. "
        "Use correct GCSE terminology and exam command words (state, describe, "
        "explain) where they help."
    ),
    Level.A_LEVEL: (
        "The student is 16-18 years old and studying A-Level Computer Science. "
        "Use precise technical vocabulary and formal reasoning at A-Level depth."
    ),
}

_LEVEL_ALIASES: dict[str, Level] = {
    "ks3": Level.KS3,
    "keystage3": Level.KS3,
    "gcse": Level.GCSE,
    "alevel": Level.A_LEVEL,
    "a-level": Level.A_LEVEL,
    "a level": Level.A_LEVEL,
}


def normalize_level(value: Optional[str]) -> Level:
    """Map free-form level input to a Level, falling back to the lowest tier."""
    if isinstance(value, Level):
        return value
    if not value or not isinstance(value, str):
        return LEVEL_ORDER[0]
    key = value.strip().lower()
    if key in _LEVEL_ALIASES:
        return _LEVEL_ALIASES[key]
    compact = key.replace("-", "").replace(" ", "").replace("_", "")
    return _LEVEL_ALIASES.get(compact, LEVEL_ORDER[0])


def normalize_mode(value: Optional[str]) -> Mode:
    """Map free-form mode input to a Mode, defaulting to Explain."""
    if isinstance(value, Mode):
        return value
    if not value or not isinstance(value, str):
        return Mode.EXPLAIN
    key = value.strip().lower()
    for mode in Mode:
        if mode.value.lower() == key:
            return mode
    return Mode.EXPLAIN


def allowed_topics(level: Level) -> list[str]:
    """Return a copy of the topic list for a level."""
    return list(LEVEL_TOPICS[level])


def default_topic(level: Level) -> str:
    return LEVEL_TOPICS[level][0]


def normalize_topic(level: Level, value: Optional[str]) -> str:
    """
    Return the canonical spelling of `value` if it is allowed for `level`,
    otherwise the level's first topic.
    """
    if value and isinstance(value, str):
        key = value.strip().lower()
        for topic in LEVEL_TOPICS[level]:
            if topic.lower() == key:
                return topic
    return default_topic(level)


def leak_vocabulary(level: Level) -> list[str]:
    """Union of vocabulary belonging to every tier other than `level`."""
    terms: list[str] = []
    for other in LEVEL_ORDER:
        if other is level:
            continue
        terms.extend(LEVEL_VOCABULARY[other])
    return terms
