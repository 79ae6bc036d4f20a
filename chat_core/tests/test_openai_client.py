import httpx
import pytest

from chat_core.domain.exceptions import (
    ApiError,
    ConfigurationError,
    HttpStatusError,
    NetworkError,
    ParseError,
    RateLimitError,
)
from chat_core.domain.models import ChatMessage, ChatRequest, ContentDelta, ErrorDelta, StreamEnd
from chat_core.providers.openai_client import OpenAIChatClient
from chat_core.providers.registry import AZURE_CONFIG, OPENAI_CONFIG


class SettingsStub:
    openai_api_endpoint = "https://example.openai.azure.com/"
    openai_api_key = "secret-key"
    openai_api_version = "2025-01-01-preview"
    http_timeout = 5.0
    connect_timeout = 2.0


def make_request(stream=True):
    return ChatRequest(
        provider="azure",
        model="gpt-35-turbo",
        messages=(
            ChatMessage(role="system", content="You are a helpful assistant."),
            ChatMessage(role="user", content="hi"),
        ),
        stream=stream,
    )


class FakeResponse:
    def __init__(self, status_code=200, json_data=None, text="", chunks=()):
        self.status_code = status_code
        self._json = json_data
        self.text = text
        self._chunks = list(chunks)
        self.read_called = False

    def json(self):
        if self._json is None:
            raise ValueError("no json")
        return self._json

    def read(self):
        self.read_called = True
        return self.text.encode()

    def iter_bytes(self):
        for chunk in self._chunks:
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk


class StreamContext:
    def __init__(self, response, state):
        self._response = response
        self._state = state

    def __enter__(self):
        return self._response

    def __exit__(self, *args):
        self._state["closed"] = True
        return False


def install_client(monkeypatch, response=None, error=None):
    captured = {"closed": False}

    class Client:
        def __init__(self, *a, **kw):
            captured["client_kwargs"] = kw

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, url, params=None, json=None, headers=None):
            captured.update(url=url, params=params, payload=json, headers=headers)
            if error is not None:
                raise error
            return response

        def stream(self, method, url, params=None, json=None, headers=None):
            captured.update(method=method, url=url, params=params, payload=json, headers=headers)
            if error is not None:
                raise error
            return StreamContext(response, captured)

    monkeypatch.setattr("httpx.Client", Client)
    return captured


SSE_BODY = (
    b'data: {"choices":[],"prompt_filter_results":[]}\n\n'
    b'data: {"choices":[{"delta":{"role":"assistant"}}]}\n\n'
    b'data: {"choices":[{"delta":{"content":"Hel"}}]}\n\n'
    b'data: {"choices":[{"delta":{"content":"lo"}}]}\n\n'
    b'data: {"choices":[{"delta":{},"finish_reason":"stop"}]}\n\n'
    b"data: [DONE]\n\n"
)


def test_chat_azure_request_shape(monkeypatch):
    resp = FakeResponse(
        json_data={
            "choices": [{"message": {"role": "assistant", "content": "ok"}, "finish_reason": "stop"}],
            "usage": {"prompt_tokens": 1, "completion_tokens": 1, "total_tokens": 2},
        }
    )
    captured = install_client(monkeypatch, resp)
    res = OpenAIChatClient(SettingsStub(), AZURE_CONFIG).chat(make_request(stream=False))

    assert res.content == "ok"
    assert res.finish_reason == "stop"
    assert res.usage.total_tokens == 2
    assert captured["url"] == "https://example.openai.azure.com/openai/deployments/gpt-35-turbo/chat/completions"
    assert captured["params"] == {"api-version": "2025-01-01-preview"}
    assert captured["headers"]["api-key"] == "secret-key"
    assert "Authorization" not in captured["headers"]
    payload = captured["payload"]
    assert payload["model"] == "gpt-35-turbo"
    assert payload["stream"] is False
    assert payload["messages"] == [
        {"role": "system", "content": "You are a helpful assistant."},
        {"role": "user", "content": "hi"},
    ]
    assert payload["temperature"] == 0.7
    assert payload["max_tokens"] == 1000
    assert "top_p" not in payload
    assert captured["client_kwargs"]["trust_env"] is False


def test_chat_openai_flavour_uses_bearer(monkeypatch):
    resp = FakeResponse(json_data={"choices": [{"message": {"content": "ok"}}]})
    captured = install_client(monkeypatch, resp)
    settings = SettingsStub()
    settings.openai_api_endpoint = "https://api.openai.com/v1"
    OpenAIChatClient(settings, OPENAI_CONFIG).chat(make_request(stream=False))

    assert captured["url"] == "https://api.openai.com/v1/chat/completions"
    assert captured["params"] == {}
    assert captured["headers"]["Authorization"] == "Bearer secret-key"


def test_chat_stream_yields_deltas_then_end(monkeypatch):
    captured = install_client(monkeypatch, FakeResponse(chunks=[SSE_BODY[:37], SSE_BODY[37:]]))
    events = list(OpenAIChatClient(SettingsStub()).chat_stream(make_request()))

    assert events[:2] == [ContentDelta(text="Hel"), ContentDelta(text="lo")]
    assert isinstance(events[2], StreamEnd)
    assert events[2].saw_sentinel is True
    assert events[2].finish_reason == "stop"
    assert captured["method"] == "POST"
    assert captured["payload"]["stream"] is True
    assert captured["headers"]["Accept"] == "text/event-stream"
    assert captured["closed"] is True


def test_stream_matches_buffered_reply(monkeypatch):
    install_client(monkeypatch, FakeResponse(chunks=[SSE_BODY]))
    streamed = "".join(
        e.text for e in OpenAIChatClient(SettingsStub()).chat_stream(make_request()) if isinstance(e, ContentDelta)
    )
    install_client(monkeypatch, FakeResponse(json_data={"choices": [{"message": {"content": "Hello"}}]}))
    buffered = OpenAIChatClient(SettingsStub()).chat(make_request(stream=False)).content
    assert streamed == buffered == "Hello"


def test_stream_error_frame_is_yielded(monkeypatch):
    body = b'data: {"error": {"message": "content filtered", "code": "content_filter"}}\n\n'
    install_client(monkeypatch, FakeResponse(chunks=[body]))
    events = list(OpenAIChatClient(SettingsStub()).chat_stream(make_request()))
    assert isinstance(events[0], ErrorDelta)
    assert events[0].code == "content_filter"


def test_stream_http_error_reads_body(monkeypatch):
    resp = FakeResponse(
        status_code=401,
        text='{"error": {"code": "401", "message": "Access denied due to invalid subscription key."}}',
    )
    install_client(monkeypatch, resp)
    with pytest.raises(HttpStatusError) as info:
        list(OpenAIChatClient(SettingsStub()).chat_stream(make_request()))
    assert info.value.http_status == 401
    assert info.value.message == "Access denied due to invalid subscription key."
    assert resp.read_called


def test_http_error_with_plain_body(monkeypatch):
    install_client(monkeypatch, FakeResponse(status_code=502, text="Bad Gateway"))
    with pytest.raises(HttpStatusError) as info:
        OpenAIChatClient(SettingsStub()).chat(make_request(stream=False))
    assert info.value.message == "Bad Gateway"


def test_rate_limit_is_http_status_error(monkeypatch):
    install_client(monkeypatch, FakeResponse(status_code=429, text='{"error": {"message": "slow down"}}'))
    with pytest.raises(RateLimitError) as info:
        OpenAIChatClient(SettingsStub()).chat(make_request(stream=False))
    assert isinstance(info.value, HttpStatusError)
    assert info.value.message == "slow down"


def test_network_error_is_wrapped(monkeypatch):
    install_client(monkeypatch, error=httpx.ConnectError("connection refused"))
    with pytest.raises(NetworkError):
        list(OpenAIChatClient(SettingsStub()).chat_stream(make_request()))
    with pytest.raises(NetworkError):
        OpenAIChatClient(SettingsStub()).chat(make_request(stream=False))


def test_broken_stream_is_parse_error(monkeypatch):
    chunks = [b'data: {"choices":[{"delta":{"content":"Hi"}}]}\n\n', httpx.RemoteProtocolError("peer closed")]
    captured = install_client(monkeypatch, FakeResponse(chunks=chunks))
    events = []
    with pytest.raises(ParseError):
        for event in OpenAIChatClient(SettingsStub()).chat_stream(make_request()):
            events.append(event)
    assert events == [ContentDelta(text="Hi")]
    assert captured["closed"] is True


def test_closing_stream_early_closes_response(monkeypatch):
    captured = install_client(monkeypatch, FakeResponse(chunks=[SSE_BODY]))
    events = OpenAIChatClient(SettingsStub()).chat_stream(make_request())
    assert next(events) == ContentDelta(text="Hel")
    events.close()
    assert captured["closed"] is True


def test_missing_config_fails_before_network(monkeypatch):
    class ExplodingClient:
        def __init__(self, *a, **kw):
            raise AssertionError("no network call expected")

    monkeypatch.setattr("httpx.Client", ExplodingClient)
    settings = SettingsStub()
    settings.openai_api_key = None
    with pytest.raises(ConfigurationError):
        OpenAIChatClient(settings).chat(make_request(stream=False))
    with pytest.raises(ConfigurationError):
        list(OpenAIChatClient(settings).chat_stream(make_request()))


def test_buffered_reply_without_choices(monkeypatch):
    install_client(monkeypatch, FakeResponse(json_data={"choices": []}))
    with pytest.raises(ParseError) as info:
        OpenAIChatClient(SettingsStub()).chat(make_request(stream=False))
    assert info.value.message == "No response choices available"


def test_buffered_reply_with_error_object(monkeypatch):
    install_client(monkeypatch, FakeResponse(json_data={"error": {"message": "quota exceeded"}}))
    with pytest.raises(ApiError) as info:
        OpenAIChatClient(SettingsStub()).chat(make_request(stream=False))
    assert info.value.message == "quota exceeded"


def test_buffered_reply_not_json(monkeypatch):
    install_client(monkeypatch, FakeResponse(text="<html>"))
    with pytest.raises(ParseError):
        OpenAIChatClient(SettingsStub()).chat(make_request(stream=False))


def test_undecodable_body_is_parse_error(monkeypatch):
    chunks = [b'data: {"choices":[{"delta":{"content":"Hi"}}]}\n\n', httpx.DecodingError("bad gzip")]
    install_client(monkeypatch, FakeResponse(chunks=chunks))
    with pytest.raises(ParseError) as info:
        list(OpenAIChatClient(SettingsStub()).chat_stream(make_request()))
    assert info.value.code == "STREAM_INTERRUPTED"


@pytest.mark.parametrize(
    "data",
    [
        {"choices": ["x"]},
        {"choices": {"0": {"message": {"content": "ok"}}}},
        {"choices": [{"message": "ok"}]},
        {"choices": [{"message": {"content": ["ok"]}}]},
    ],
)
def test_buffered_reply_with_wrong_shape(monkeypatch, data):
    install_client(monkeypatch, FakeResponse(json_data=data))
    with pytest.raises(ParseError) as info:
        OpenAIChatClient(SettingsStub()).chat(make_request(stream=False))
    assert info.value.code == "INVALID_RESPONSE"


def test_buffered_reply_ignores_malformed_usage(monkeypatch):
    data = {"choices": [{"message": {"content": "ok"}}], "usage": 5}
    install_client(monkeypatch, FakeResponse(json_data=data))
    res = OpenAIChatClient(SettingsStub()).chat(make_request(stream=False))
    assert res.content == "ok"
    assert res.usage is None
