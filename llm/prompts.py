SYSTEM_PROMPT = "You are a helpful assistant. The user's name is {user_name}."


def build_system_prompt(user_name: str = "") -> str:
    return SYSTEM_PROMPT.format(user_name=user_name)


def build_messages(text: str, user_name: str = "") -> list[dict]:
    """Chat payload for a single utterance; no earlier turns are replayed."""
    return [
        {"role": "system", "content": build_system_prompt(user_name)},
        {"role": "user", "content": text},
    ]
