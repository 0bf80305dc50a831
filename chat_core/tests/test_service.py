import asyncio
from pathlib import Path

import pytest
from conftest import FakeResponse, sse

from chat_core.api import service
from chat_core.domain.models import ExchangeStatus


def test_create_orchestrator_gives_each_session_its_own_cache(settings_stub):
    first = service.create_orchestrator(cfg=settings_stub)
    second = service.create_orchestrator(cfg=settings_stub)
    assert first.cache is not second.cache
    assert first.cache.capacity == settings_stub.cache_capacity


def test_result_to_dict_is_json_ready(settings_stub, fake_http):
    fake_http.queue(FakeResponse(chunks=sse("pong")))
    orchestrator = service.create_orchestrator(cfg=settings_stub)

    result = asyncio.run(orchestrator.send("ping"))
    data = service.result_to_dict(result)

    assert data["status"] == ExchangeStatus.SUCCESS.value
    assert data["capability"] == "completion"
    assert data["message"]["content"] == "pong"
    assert data["message"]["is_user"] is False
    assert isinstance(data["message"]["timestamp"], str)
    assert data["error"] is None


def test_default_orchestrator_is_reused_until_reset(monkeypatch, settings_stub):
    monkeypatch.setattr(service, "settings", settings_stub)
    service.reset_default_orchestrator()
    try:
        first = service.get_default_orchestrator()
        assert service.get_default_orchestrator() is first
        service.reset_default_orchestrator()
        assert service.get_default_orchestrator() is not first
    finally:
        service.reset_default_orchestrator()


@pytest.fixture
def default_session(monkeypatch, settings_stub):
    monkeypatch.setattr(service, "settings", settings_stub)
    service.reset_default_orchestrator()
    yield settings_stub
    service.reset_default_orchestrator()


def test_send_message_returns_dict_and_lists_messages(default_session, fake_http):
    fake_http.queue(FakeResponse(chunks=sse("pong")))

    data = asyncio.run(service.send_message("ping"))

    assert data["status"] == "success"
    assert data["message"]["content"] == "pong"
    listed = service.list_messages()
    assert [(m["is_user"], m["content"]) for m in listed] == [(True, "ping"), (False, "pong")]
    assert service.cancel_current() is False


def test_edit_message_truncates_default_conversation(default_session, fake_http):
    fake_http.queue(
        FakeResponse(chunks=sse("one")),
        FakeResponse(chunks=sse("two")),
        FakeResponse(chunks=sse("uno")),
    )
    asyncio.run(service.send_message("first"))
    asyncio.run(service.send_message("second"))

    data = asyncio.run(service.edit_message(0, "primero"))

    assert data["status"] == "success"
    assert [m["content"] for m in service.list_messages()] == ["primero", "uno"]


def test_send_message_failure_is_reported_in_dict(default_session, fake_http):
    data = asyncio.run(service.send_message("/vision what is this?"))

    assert data["status"] == "failed"
    assert data["code"] == "NO_IMAGE_AVAILABLE"
    assert data["message"] is None
    assert fake_http.calls == []


def test_attach_image_enables_vision(default_session, fake_http):
    fake_http.queue(FakeResponse(json_data={"choices": [{"message": {"content": "A dot."}}]}))

    attached = service.attach_image(b"\x89PNG", mime_type="image/png")
    data = asyncio.run(service.send_message("/vision what is this?"))

    assert attached["kind"] == "image"
    assert attached["media_ref"] == "data:image/png;base64,iVBORw=="
    assert data["message"]["content"] == "A dot."


def test_set_and_clear_api_key_use_override_file(default_session, fake_http):
    default_session.hyperbolic_api_key = None

    service.set_api_key("stored-key-1234567890")
    assert "HYPERBOLIC_API_KEY=stored-key-1234567890" in Path(default_session.credential_file).read_text()
    fake_http.queue(FakeResponse(chunks=sse("hello")))
    data = asyncio.run(service.send_message("hi"))
    assert data["status"] == "success"
    assert fake_http.calls[0]["headers"]["Authorization"] == "Bearer stored-key-1234567890"

    service.clear_api_key()
    data = asyncio.run(service.send_message("hello again"))
    assert data["code"] == "MISSING_API_KEY"
