from chat_core.config.credentials import (
    clear_api_key_override,
    load_api_key_override,
    resolve_api_key,
    save_api_key_override,
)


def test_override_missing_file_returns_none(settings_stub):
    assert load_api_key_override(settings_stub) is None


def test_save_and_load_override(settings_stub):
    save_api_key_override("  override-key-123456  ", settings_stub)
    assert load_api_key_override(settings_stub) == "override-key-123456"


def test_configured_key_takes_precedence(settings_stub):
    save_api_key_override("override-key-123456", settings_stub)
    assert resolve_api_key(settings_stub) == "test-key-1234567890"


def test_override_used_when_config_is_empty(settings_stub):
    settings_stub.hyperbolic_api_key = ""
    assert resolve_api_key(settings_stub) is None
    save_api_key_override("override-key-123456", settings_stub)
    assert resolve_api_key(settings_stub) == "override-key-123456"


def test_clear_override(settings_stub):
    settings_stub.hyperbolic_api_key = None
    save_api_key_override("override-key-123456", settings_stub)
    clear_api_key_override(settings_stub)
    assert resolve_api_key(settings_stub) is None
