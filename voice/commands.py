import re
from dataclasses import dataclass
from enum import StrEnum

WAKE_PHRASES = ("hey google", "ok google")
STOP_PHRASES = ("stop listening", "cancel")
WAKE_PREFIX = re.compile(r"^(hey google|ok google),?\s*", re.IGNORECASE)


class VoiceAction(StrEnum):
    SUBMIT = "submit"
    WAKE = "wake"
    STOP = "stop"
    IGNORE = "ignore"


@dataclass
class VoiceCommand:
    action: VoiceAction
    text: str = ""


def parse_voice_command(transcript: str) -> VoiceCommand:
    """Interpret a final transcript before it reaches the assistant.

    A leading wake phrase is stripped; a bare wake phrase only prompts the
    user. Stop phrases end capture instead of being answered.
    """
    command = transcript.lower().strip()
    if not command:
        return VoiceCommand(VoiceAction.IGNORE)

    if any(p in command for p in WAKE_PHRASES):
        actual = WAKE_PREFIX.sub("", command).strip()
        if not actual:
            return VoiceCommand(VoiceAction.WAKE)
        return VoiceCommand(VoiceAction.SUBMIT, actual)

    if any(p in command for p in STOP_PHRASES):
        return VoiceCommand(VoiceAction.STOP)

    return VoiceCommand(VoiceAction.SUBMIT, command)
