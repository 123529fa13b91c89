"""
Test conftest: isolate provider environment variables so that Settings
tests are not affected by real keys in the developer's or CI environment.
"""
import pytest

_PROVIDER_ENV_VARS = [
    "AI_PROVIDER",
    "GROQ_API_KEY",
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "OLLAMA_BASE_URL",
    "SIDEKICK_CONFIG",
    "MODEL_REFLECTION",
    "MODEL_STRATEGY",
    "MODEL_SYSTEMS",
    "MODEL_TECHNICAL",
    "MODEL_CREATIVE",
    "MODEL_ORCHESTRATOR",
]


@pytest.fixture(autouse=True)
def _clear_provider_env(monkeypatch):
    """Remove provider env vars for every test so Settings() behaves as if
    no keys are present unless the test explicitly provides them.
    Also disables .env file loading so local developer .env files don't
    leak real credentials into tests, and drops cached singletons."""
    for var in _PROVIDER_ENV_VARS:
        monkeypatch.delenv(var, raising=False)

    import sidekick
    import sidekick.config.settings as settings_module
    from pydantic_settings import SettingsConfigDict
    patched_config = SettingsConfigDict(
        env_file=None,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
        protected_namespaces=(),
    )
    monkeypatch.setattr(settings_module.Settings, "model_config", patched_config)

    settings_module.reset_settings()
    sidekick.set_orchestrator(None)
    yield
    settings_module.reset_settings()
    sidekick.set_orchestrator(None)
