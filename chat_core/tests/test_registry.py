import pytest

from chat_core.providers.registry import IMAGE_CONFIG, get_model_config


def test_registry_lookup_is_case_insensitive():
    assert get_model_config("Image") is IMAGE_CONFIG
    assert get_model_config("completion").path == "/chat/completions"
    assert get_model_config("vision").max_tokens == 2048


def test_registry_unknown_capability():
    with pytest.raises(KeyError):
        get_model_config("video")
