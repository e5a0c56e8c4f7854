from llm_gateway.config import GatewaySettings, ProviderSettings, discover_api_keys

NAMES = ["hackclub", "groq", "cerebras", "openrouter", "together", "mistral"]


def test_discover_api_keys_primary_first_then_numbered():
    env = {
        "GROQ_BACKUP_KEY_2": "backup-2",
        "GROQ_API_KEY": "primary",
        "GROQ_BACKUP_KEY_1": "backup-1",
        "GROQ_API_KEY_10": "numbered-10",
        "GROQ_API_KEY_3": "numbered-3",
        "GROQ_API_KEY_4": "primary",
        "OTHER_API_KEY": "ignored",
    }
    assert discover_api_keys(env, "groq") == (
        "primary",
        "backup-1",
        "backup-2",
        "numbered-3",
        "numbered-10",
    )


def test_provider_settings_from_env():
    env = {
        "ENABLE_MISTRAL": "false",
        "MISTRAL_API_KEY": "m-key",
        "MISTRAL_API_BASE": "https://proxy.local/v1",
        "MISTRAL_DISABLED_MODELS": "a, b ,",
        "MISTRAL_MIN_REQUEST_INTERVAL": "1.5",
    }
    settings = ProviderSettings.from_env("mistral", env)

    assert settings.enabled is False
    assert settings.api_keys == ("m-key",)
    assert settings.base_url == "https://proxy.local/v1"
    assert settings.disabled_models == frozenset({"a", "b"})
    assert settings.min_request_interval == 1.5


def test_defaults_when_env_is_empty():
    settings = GatewaySettings.from_env(NAMES, {})

    assert settings.key_cooldown == 60
    assert settings.provider_cooldown == 3600
    assert settings.retry_attempts == 3
    assert settings.retry_delay == 1
    assert settings.catalog_ttl == 300
    assert settings.provider_order == tuple(NAMES)
    assert settings.providers["groq"].min_request_interval == 0
    assert settings.health.interval == 7200
    assert settings.health.model_delay == 26
    assert settings.health.max_retries == 2
    assert settings.health.min_words == 2


def test_invalid_numbers_fall_back_to_defaults():
    settings = GatewaySettings.from_env(
        NAMES, {"RETRY_ATTEMPTS": "many", "KEY_COOLDOWN": "soon", "HEALTH_CHECK_DELAY": ""}
    )
    assert settings.retry_attempts == 3
    assert settings.key_cooldown == 60
    assert settings.health.model_delay == 26


def test_provider_order_puts_named_providers_first():
    settings = GatewaySettings.from_env(NAMES, {"PROVIDER_ORDER": "Mistral, nope, groq"})
    assert settings.provider_order == (
        "mistral",
        "groq",
        "hackclub",
        "cerebras",
        "openrouter",
        "together",
    )


def test_unknown_provider_gets_default_settings():
    settings = GatewaySettings.from_env(NAMES, {})
    assert settings.provider("unknown") == ProviderSettings(name="unknown")
