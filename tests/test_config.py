from core.config import AssistantConfig, Config, default_assistant_config, load_config
from core.types import CaptureState, Category, Intent, Response, SpeechErrorKind


def test_load_default_config():
    """Default TOML config should load and validate."""
    config = load_config()
    assert isinstance(config, Config)
    assert config.server.port == 7860


def test_config_defaults():
    """Models should fall back to built-in defaults."""
    config = Config()
    assert config.llm.model == "gpt-4o-mini"
    assert config.history.export_filename == "assistant_conversations.csv"
    assert config.assistant.use_openai is False


def test_config_llm():
    """LLM section should carry endpoint and retry settings."""
    config = load_config()
    assert config.llm.base_url == "https://api.openai.com/v1"
    assert config.llm.max_retries == 2


def test_config_voice():
    config = load_config()
    assert config.voice.lang == "en-US"
    assert config.voice.max_restarts == 5


def test_temp_config(temp_config):
    """Temp config fixture should override defaults."""
    assert temp_config.server.host == "127.0.0.1"
    assert temp_config.assistant.assistant_name == "Test Assistant"
    assert temp_config.assistant.user_name == "Ada"
    assert temp_config.voice.max_restarts == 2
    assert temp_config.history.recent_limit == 3


def test_from_host_defaults_missing_and_empty_fields():
    """Missing and empty host fields take the default value."""
    settings = AssistantConfig.from_host({"assistant_name": "", "user_name": "Grace"})
    assert settings.assistant_name == "Google Assistant"
    assert settings.user_name == "Grace"
    assert settings.openai_api_key == ""


def test_from_host_does_not_merge_previous_values():
    """Each host payload replaces the settings wholesale."""
    first = AssistantConfig.from_host({"user_name": "Grace", "openai_api_key": "sk-1", "use_openai": True})
    second = AssistantConfig.from_host({"user_name": "Alan"})
    assert first.remote_enabled is True
    assert second.openai_api_key == ""
    assert second.remote_enabled is False


def test_from_host_parses_string_flags():
    """Boolean flags sent as strings are parsed."""
    assert AssistantConfig.from_host({"use_openai": "true"}).use_openai is True
    assert AssistantConfig.from_host({"use_openai": "false"}).use_openai is False


def test_remote_needs_key_and_flag():
    """Remote completion needs both the flag and a key."""
    assert AssistantConfig(use_openai=True).remote_enabled is False
    assert AssistantConfig(openai_api_key="sk-x").remote_enabled is False
    assert AssistantConfig(use_openai=True, openai_api_key="sk-x").remote_enabled is True


def test_public_view_masks_key():
    """The API key is never echoed back to the page."""
    view = AssistantConfig(openai_api_key="sk-secret").public_view()
    assert view["openai_api_key"] == "********"
    assert "sk-secret" not in str(view)


def test_default_assistant_config_reads_env(monkeypatch, temp_config):
    """The environment key seeds the default settings."""
    monkeypatch.setenv("PARLOR_TEST_UNSET_KEY", "sk-env")
    assert default_assistant_config(temp_config).openai_api_key == "sk-env"


def test_types_enums():
    """Enum values match the wire strings."""
    assert Intent.ENTERTAINMENT.value == "entertainment"
    assert Category.GENERAL.value == "general"
    assert CaptureState.CONTINUOUS.value == "continuous"
    assert SpeechErrorKind.NO_SPEECH.value == "no-speech"
    assert SpeechErrorKind.parse("aborted") is SpeechErrorKind.UNKNOWN
    assert SpeechErrorKind.parse(None) is SpeechErrorKind.UNKNOWN


def test_types_response_defaults():
    resp = Response(text="hi")
    assert resp.intent is None
    assert resp.record is None
    assert resp.latency_ms == {}
