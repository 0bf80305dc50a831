import asyncio

import pytest
from conftest import FakeResponse

from chat_core.domain.cancellation import CancellationToken
from chat_core.domain.exceptions import ApiError, PayloadError
from chat_core.domain.models import ImageOptions
from chat_core.providers.image_client import ImageClient


def test_image_client_returns_png_data_url(settings_stub, fake_http):
    fake_http.queue(FakeResponse(json_data={"images": [{"image": "iVBORw0KGgo="}]}))
    client = ImageClient(settings_stub)

    media = asyncio.run(client.execute("a cat", CancellationToken()))

    assert media.data_url == "data:image/png;base64,iVBORw0KGgo="
    assert media.mime_type == "image/png"
    call = fake_http.calls[0]
    assert call["url"] == "https://api.test/v1/image/generation"
    assert call["json"] == {
        "model_name": "FLUX.1-dev",
        "prompt": "a cat",
        "steps": 30,
        "cfg_scale": 5,
        "enable_refiner": False,
        "height": 1024,
        "width": 1024,
        "backend": "auto",
    }


def test_image_client_accepts_plain_base64_entry(settings_stub, fake_http):
    fake_http.queue(FakeResponse(json_data={"images": ["AAAA"]}))
    media = asyncio.run(ImageClient(settings_stub).execute("x", CancellationToken()))
    assert media.data_url == "data:image/png;base64,AAAA"


def test_image_client_custom_options(settings_stub, fake_http):
    fake_http.queue(FakeResponse(json_data={"images": ["AAAA"]}))
    options = ImageOptions(steps=10, height=512, width=768)

    asyncio.run(ImageClient(settings_stub).execute("x", CancellationToken(), options=options))

    payload = fake_http.calls[0]["json"]
    assert (payload["steps"], payload["height"], payload["width"]) == (10, 512, 768)


def test_image_client_empty_images_is_terminal(settings_stub, fake_http):
    fake_http.queue(FakeResponse(json_data={"images": []}))

    with pytest.raises(PayloadError) as exc:
        asyncio.run(ImageClient(settings_stub).execute("x", CancellationToken()))

    assert exc.value.message == "No images in response"
    assert len(fake_http.calls) == 1


def test_image_client_entry_without_data(settings_stub, fake_http):
    fake_http.queue(FakeResponse(json_data={"images": [{"seed": 1}]}))

    with pytest.raises(PayloadError) as exc:
        asyncio.run(ImageClient(settings_stub).execute("x", CancellationToken()))

    assert exc.value.message == "No image data found in response"


def test_image_client_http_error_falls_back_to_text(settings_stub, fake_http):
    fake_http.queue(FakeResponse(status_code=400, text="bad prompt"))

    with pytest.raises(ApiError) as exc:
        asyncio.run(ImageClient(settings_stub).execute("x", CancellationToken()))

    assert exc.value.message == "Failed to generate image: 400 - bad prompt"
    assert exc.value.http_status == 400


def test_image_client_retries_rate_limit(settings_stub, fake_http):
    fake_http.queue(
        FakeResponse(status_code=429),
        FakeResponse(json_data={"images": ["AAAA"]}),
    )

    media = asyncio.run(ImageClient(settings_stub).execute("x", CancellationToken()))

    assert media.data_url.endswith("AAAA")
    assert len(fake_http.calls) == 2
