"""测试共用的替身：配置桩与可编排响应的 httpx.AsyncClient。"""

import asyncio
import json

import pytest


BLOCK = object()  # 流式数据块中的占位：读到这里会一直挂起，直到被取消
# chunks 中也可以放异常实例，读到时直接抛出（模拟流中途断开）


class SettingsStub:
    hyperbolic_api_key = "test-key-1234567890"
    api_base_url = "https://api.test/v1"
    http_timeout = 1.0
    credential_file = ".missing-credentials.env"
    cache_capacity = 100
    retry_max_retries = 3
    retry_base_delay = 0.0
    stream_throttle_interval = 0.0


class FakeResponse:
    def __init__(self, status_code=200, json_data=None, text="", headers=None, chunks=None):
        self.status_code = status_code
        self._json = json_data
        self.text = text
        self.headers = headers or {}
        self._chunks = list(chunks or [])

    def json(self):
        if self._json is None:
            raise ValueError("response has no JSON body")
        return self._json

    async def aread(self):
        return self.text.encode("utf-8")

    async def aiter_bytes(self):
        for chunk in self._chunks:
            if chunk is BLOCK:
                await asyncio.Event().wait()
            if isinstance(chunk, BaseException):
                raise chunk
            yield chunk.encode("utf-8") if isinstance(chunk, str) else chunk


class FakeHttp:
    """按顺序返回预设响应，并记录每一次请求。"""

    def __init__(self):
        self.responses = []
        self.calls = []

    def queue(self, *items):
        self.responses.extend(items)
        return self

    def _next(self, method, url, json, headers):
        self.calls.append({"method": method, "url": url, "json": json, "headers": headers})
        if not self.responses:
            raise AssertionError(f"unexpected request to {url}")
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def client_factory(self, *args, **kwargs):
        return _FakeAsyncClient(self)


class _FakeAsyncClient:
    def __init__(self, http):
        self._http = http

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        return False

    async def post(self, url, json=None, headers=None, **_):
        return self._http._next("POST", url, json, headers)

    def stream(self, method, url, json=None, headers=None, **_):
        return _StreamContext(self._http, method, url, json, headers)


class _StreamContext:
    def __init__(self, http, method, url, json, headers):
        self._args = (method, url, json, headers)
        self._http = http

    async def __aenter__(self):
        return self._http._next(*self._args)

    async def __aexit__(self, *args):
        return False


def sse(*contents):
    """把若干增量内容拼成补全端点的 data 行（含结尾的 [DONE]）。"""

    lines = []
    for content in contents:
        lines.append('data: {"choices": [{"delta": {"content": %s}}]}\n' % json.dumps(content))
    lines.append("data: [DONE]\n")
    return lines


@pytest.fixture
def settings_stub(tmp_path):
    stub = SettingsStub()
    stub.credential_file = str(tmp_path / "credentials.env")
    return stub


@pytest.fixture
def fake_http(monkeypatch):
    http = FakeHttp()
    monkeypatch.setattr("httpx.AsyncClient", http.client_factory)
    return http
