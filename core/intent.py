import re

from core.types import Category, Intent

DIGITS = re.compile(r"\d+")

# Checked top to bottom; the first match wins. "what time is 5+5" is a
# time request, not a calculation.
INTENT_RULES: list[tuple[Intent, tuple[str, ...]]] = [
    (Intent.TIME, ("time",)),
    (Intent.WEATHER, ("weather",)),
    (Intent.CALCULATION, ("calculate", "%")),
    (Intent.ENTERTAINMENT, ("joke",)),
    (Intent.REMINDER, ("remind",)),
]

CATEGORY_RULES: list[tuple[Category, tuple[str, ...]]] = [
    (Category.TIME, ("time", "clock")),
    (Category.WEATHER, ("weather",)),
    (Category.CALCULATION, ("calculate", "tip", "math")),
    (Category.ENTERTAINMENT, ("joke", "funny")),
    (Category.REMINDER, ("remind", "reminder")),
]


def normalize(text: str) -> str:
    return text.strip().lower()


def classify_intent(text: str, remote_enabled: bool = False) -> Intent:
    """Pick the single handler strategy for an utterance."""
    q = normalize(text)
    for intent, keywords in INTENT_RULES:
        if any(k in q for k in keywords):
            return intent
        if intent is Intent.CALCULATION and DIGITS.search(q):
            return intent
    if remote_enabled:
        return Intent.REMOTE
    return Intent.GENERAL


def categorize_query(text: str) -> Category:
    """History category for a query, used for filtering the log."""
    q = normalize(text)
    for category, keywords in CATEGORY_RULES:
        if any(k in q for k in keywords):
            return category
    return Category.GENERAL
