import io

import pytest
from rich.console import Console

from chat_core.cli import app
from chat_core.domain.models import ChatResult, ContentDelta, StreamEnd

ENV_VARS = ["OPENAI_API_ENDPOINT", "OPENAI_API_KEY", "OPENAI_API_MODEL", "CHAT_CONFIG_FILE", "STREAM"]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))


class FakeProvider:
    name = "fake"

    def __init__(self):
        self.requests = []

    def chat(self, req):
        self.requests.append(req)
        return ChatResult(provider="fake", model=req.model, content="buffered")

    def chat_stream(self, req):
        self.requests.append(req)
        yield ContentDelta(text="Hi")
        yield ContentDelta(text=" there")
        yield StreamEnd()


def scripted(lines):
    it = iter(lines)

    def read_input():
        try:
            return next(it)
        except StopIteration:
            raise EOFError
    return read_input


def make_console():
    buf = io.StringIO()
    return Console(file=buf, force_terminal=False, color_system=None, width=120), buf


def test_missing_configuration_exits_nonzero():
    console, buf = make_console()
    code = app.main([], console=console, read_input=scripted([]))
    assert code == 1
    assert "Missing required configuration" in buf.getvalue()


def test_session_streams_and_quits(monkeypatch):
    provider = FakeProvider()
    monkeypatch.setattr(app, "create_provider", lambda settings: provider)
    console, buf = make_console()

    code = app.main(
        ["-e", "https://example.openai.azure.com", "-a", "secret-key", "-m", "gpt-4o"],
        console=console,
        read_input=scripted(["Hello", "clear", "", "quit"]),
    )

    out = buf.getvalue()
    assert code == 0
    assert "🤖 Assistant: Hi there\n" in out
    assert "Conversation cleared!" in out
    assert "Goodbye!" in out
    assert len(provider.requests) == 1
    assert provider.requests[0].model == "gpt-4o"


def test_no_stream_flag_uses_buffered_path(monkeypatch):
    provider = FakeProvider()
    monkeypatch.setattr(app, "create_provider", lambda settings: provider)
    console, buf = make_console()

    code = app.main(
        ["-e", "https://example.openai.azure.com", "-a", "secret-key", "--no-stream"],
        console=console,
        read_input=scripted(["Hello", "exit"]),
    )

    assert code == 0
    assert provider.requests[0].stream is False
    assert "buffered" in buf.getvalue()


def test_end_of_input_quits_cleanly(monkeypatch):
    monkeypatch.setattr(app, "create_provider", lambda settings: FakeProvider())
    console, buf = make_console()
    code = app.main(["-e", "https://example.openai.azure.com", "-a", "secret-key"], console=console, read_input=scripted([]))
    assert code == 0
    assert "Goodbye!" in buf.getvalue()


def test_failed_turn_is_reported_and_loop_continues(monkeypatch):
    from chat_core.domain.exceptions import NetworkError

    class FailingProvider(FakeProvider):
        def chat_stream(self, req):
            self.requests.append(req)
            raise NetworkError(code="NETWORK_ERROR", message="connection [refused]")
            yield  # pragma: no cover

    provider = FailingProvider()
    monkeypatch.setattr(app, "create_provider", lambda settings: provider)
    console, buf = make_console()

    code = app.main(
        ["-e", "https://example.openai.azure.com", "-a", "secret-key"],
        console=console,
        read_input=scripted(["one", "two", "quit"]),
    )

    assert code == 0
    assert buf.getvalue().count("❌ Error: connection [refused]") == 2
    assert len(provider.requests) == 2
    assert [len(r.messages) for r in provider.requests] == [2, 2]
