import os
from typing import Any

import tomli
from pydantic import BaseModel


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 7860


class AssistantConfig(BaseModel):
    """Widget settings supplied by the host page on init and on every change."""

    assistant_name: str = "Google Assistant"
    welcome_message: str = "Hi! I'm Google Assistant. I can help you get things done."
    voice_button_text: str = "Talk to Assistant"
    user_name: str = ""
    openai_api_key: str = ""
    use_openai: bool = False

    @property
    def remote_enabled(self) -> bool:
        return self.use_openai and bool(self.openai_api_key)

    @classmethod
    def from_host(cls, data: dict[str, Any] | None, defaults: "AssistantConfig | None" = None) -> "AssistantConfig":
        """Build a fresh config from a host payload.

        Missing or empty fields take the default value. Nothing is merged
        with the previous config.
        """
        base = (defaults or cls()).model_dump()
        data = data or {}
        for key in base:
            value = data.get(key)
            if value is None or value == "":
                continue
            base[key] = value
        # The host edit panel reports booleans as strings
        if isinstance(base["use_openai"], str):
            base["use_openai"] = base["use_openai"].strip().lower() == "true"
        return cls(**base)

    def public_view(self) -> dict[str, Any]:
        """Config as shown to the page, with the API key masked."""
        view = self.model_dump()
        view["openai_api_key"] = "********" if self.openai_api_key else ""
        return view


class LLMConfig(BaseModel):
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4o-mini"
    api_key_env: str = "OPENAI_API_KEY"
    timeout: float = 30.0
    max_retries: int = 2


class VoiceConfig(BaseModel):
    lang: str = "en-US"
    max_restarts: int = 5
    restart_backoff: float = 0.5


class HistoryConfig(BaseModel):
    enabled: bool = True
    db_path: str = "~/.parlor/history.db"
    recent_limit: int = 5
    export_filename: str = "assistant_conversations.csv"


class Config(BaseModel):
    server: ServerConfig = ServerConfig()
    assistant: AssistantConfig = AssistantConfig()
    llm: LLMConfig = LLMConfig()
    voice: VoiceConfig = VoiceConfig()
    history: HistoryConfig = HistoryConfig()


def default_assistant_config(config: Config) -> AssistantConfig:
    """Assistant defaults, with the API key taken from the environment when unset."""
    defaults = config.assistant
    if not defaults.openai_api_key:
        env_key = os.environ.get(config.llm.api_key_env, "")
        if env_key:
            defaults = defaults.model_copy(update={"openai_api_key": env_key})
    return defaults


def load_config(path: str = "config/default.toml") -> Config:
    """Load config from TOML file, validate with Pydantic."""
    with open(path, "rb") as f:
        data = tomli.load(f)
    return Config(**data)
