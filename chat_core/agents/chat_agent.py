"""Turn loop core.

One call to ChatAgent.handle_input runs one step of the chat state
machine: a control command (quit / exit / clear) is handled without a
request, anything else becomes a turn that sends the whole history,
streams the reply to the sink and commits the user and assistant
messages once the reply is complete.

A failed or interrupted turn commits nothing: the user message of that
turn is dropped and no partial assistant text enters the history.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional, Tuple
from uuid import uuid4

from chat_core.domain.conversation import Conversation
from chat_core.domain.exceptions import ApiError, BusinessError
from chat_core.domain.models import ChatMessage, ChatRequest, ErrorDelta, StreamEnd
from chat_core.infrastructure.logging.logger import logger
from chat_core.providers.base import ProviderClient
from chat_core.streaming.sink import DisplaySink, ReplyAccumulator

QUIT_COMMANDS = frozenset({"quit", "exit"})
CLEAR_COMMANDS = frozenset({"clear"})

TurnKind = Literal["quit", "cleared", "empty", "completed", "failed", "interrupted"]


@dataclass
class AgentConfig:
    provider: str
    model: str
    stream: bool = True
    temperature: Optional[float] = 0.7  # sampling temperature
    max_tokens: Optional[int] = 1000
    top_p: Optional[float] = None

    @classmethod
    def from_settings(cls, settings) -> "AgentConfig":
        return cls(
            provider=settings.provider,
            model=settings.openai_api_model,
            stream=settings.stream,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            top_p=settings.top_p,
        )


@dataclass
class TurnOutcome:
    """Result of one handle_input call.

    kind:
        - "quit": the user asked to leave.
        - "cleared": the history was reset to the system message.
        - "empty": blank input, nothing happened.
        - "completed": a reply was shown and committed.
        - "failed": the request or the stream failed; see ``error``.
        - "interrupted": the user aborted the reply.
    """

    kind: TurnKind
    reply: Optional[ChatMessage] = None
    error: Optional[BusinessError] = None
    stream_end: Optional[StreamEnd] = None


class ChatAgent:
    def __init__(
        self,
        conversation: Conversation,
        provider_client: ProviderClient,
        sink: DisplaySink,
        config: AgentConfig,
    ):
        self._conversation = conversation
        self._provider_client = provider_client
        self._sink = sink
        self._config = config

    @property
    def conversation(self) -> Conversation:
        return self._conversation

    def handle_input(self, user_input: str) -> TurnOutcome:
        """Dispatch one line of user input."""
        text = user_input.strip()
        command = text.lower()
        if command in QUIT_COMMANDS:
            return TurnOutcome(kind="quit")
        if command in CLEAR_COMMANDS:
            self._conversation.clear()
            self._log(logging.INFO, "Conversation cleared", {})
            return TurnOutcome(kind="cleared")
        if not text:
            return TurnOutcome(kind="empty")
        return self.run_turn(user_input)

    def run_turn(self, user_input: str) -> TurnOutcome:
        """Send one user message and render the reply.

        Returns:
            TurnOutcome of kind "completed", "failed" or "interrupted".
        """
        start_time = time.time()
        log_ctx: Dict[str, Any] = {
            "turn_id": f"turn-{uuid4().hex}",
            "provider": self._config.provider,
            "model": self._config.model,
            "stream": self._config.stream,
        }
        user_msg = ChatMessage(role="user", content=user_input)
        req = ChatRequest(
            provider=self._config.provider,
            model=self._config.model,
            messages=self._conversation.with_pending(user_msg),
            stream=self._config.stream,
            temperature=self._config.temperature,
            max_tokens=self._config.max_tokens,
            top_p=self._config.top_p,
        )

        stream_end: Optional[StreamEnd] = None
        try:
            self._sink.begin_reply()
            if self._config.stream:
                content, stream_end = self._run_stream(req)
            else:
                content = self._run_buffered(req)
        except BusinessError as exc:
            self._sink.end_reply()
            self._log(
                logging.WARNING,
                "Turn failed",
                log_ctx,
                code=exc.code,
                error=exc.message,
                http_status=exc.http_status,
            )
            return TurnOutcome(kind="failed", error=exc)
        except KeyboardInterrupt:
            self._sink.end_reply()
            self._log(logging.INFO, "Turn interrupted", log_ctx)
            return TurnOutcome(kind="interrupted")
        self._sink.end_reply()

        assistant_msg = ChatMessage(role="assistant", content=content)
        self._conversation.commit_turn(user_msg, assistant_msg)
        elapsed = time.time() - start_time
        self._log(
            logging.INFO,
            "Completed turn",
            log_ctx,
            elapsed_seconds=round(elapsed, 2),
            reply_chars=len(content),
            history_size=len(self._conversation),
        )
        return TurnOutcome(kind="completed", reply=assistant_msg, stream_end=stream_end)

    def _run_stream(self, req: ChatRequest) -> Tuple[str, Optional[StreamEnd]]:
        events = self._provider_client.chat_stream(req)
        accumulator = ReplyAccumulator()
        stream_end: Optional[StreamEnd] = None
        try:
            for event in events:
                if isinstance(event, ErrorDelta):
                    raise ApiError(code=event.code or "STREAM_ERROR", message=event.message)
                if isinstance(event, StreamEnd):
                    stream_end = event
                    continue
                accumulator.feed(event)
                self._sink.write(event.text)
        finally:
            # releases the HTTP connection when we stop early
            close = getattr(events, "close", None)
            if close is not None:
                close()
        return accumulator.text, stream_end

    def _run_buffered(self, req: ChatRequest) -> str:
        result = self._provider_client.chat(req)
        self._sink.write(result.content)
        return result.content

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
