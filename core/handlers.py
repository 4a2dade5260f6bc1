import logging
import random
from datetime import datetime

from core.arithmetic import evaluate_expression, format_number
from core.errors import InvalidResult, MalformedExpression, NoExpressionFound

logger = logging.getLogger(__name__)

WEATHER_DISCLAIMER = (
    "I can't fetch real-time weather without API access, but I can tell you today's weather seems nice! ☀️"
)
REMINDER_ACK = "Okay! I will remind you... (Actually not implemented yet 😅)."

NO_EXPRESSION_MSG = "I couldn't find a valid calculation in your question."
INVALID_RESULT_MSG = "Hmm, I couldn't process that calculation."
MALFORMED_MSG = "Sorry, I couldn't calculate that."

JOKES = [
    "Why don't skeletons fight each other? Because they don't have the guts!",
    "Why did the computer go to the doctor? It had a virus!",
    "I tried to catch fog yesterday… Mist!",
    "Why do cows wear bells? Because their horns don't work!",
]


def greeting_for(hour: int) -> str:
    if hour < 12:
        return "Good morning!"
    if hour < 18:
        return "Good afternoon!"
    return "Good evening!"


def handle_time(now: datetime | None = None) -> str:
    now = now or datetime.now()
    time_string = f"{now.hour % 12 or 12}:{now:%M:%S %p}"
    return f"{greeting_for(now.hour)} The current time is {time_string}."


def handle_weather() -> str:
    return WEATHER_DISCLAIMER


def handle_calculation(text: str) -> str:
    try:
        result = evaluate_expression(text)
    except NoExpressionFound:
        return NO_EXPRESSION_MSG
    except InvalidResult:
        return INVALID_RESULT_MSG
    except MalformedExpression as e:
        logger.debug("Malformed expression in %r: %s", text, e)
        return MALFORMED_MSG
    return f"The answer is {format_number(result)}."


def handle_joke(rng: random.Random | None = None) -> str:
    return (rng or random).choice(JOKES)


def handle_reminder(text: str) -> str:
    return REMINDER_ACK


def handle_general(text: str) -> str:
    return f'You said: "{text}". I\'m still learning how to help with that!'
