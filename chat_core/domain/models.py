"""Shared chat data models.

This module defines the structures passed between the transport, the
streaming pipeline and the turn loop:

- ChatMessage: one immutable conversation message.
- ChatRequest: everything needed to issue one chat-completions call.
- ChatResult: the parsed reply of a non-streaming call.
- ContentDelta / ErrorDelta / IgnoredFrame: the outcome of parsing one
  stream frame.
- StreamEnd: the terminal event of a delta stream.

Provider adapters only depend on these models and convert between them
and the provider JSON.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional, Tuple, Union


# Message roles understood by chat-completions endpoints.
Role = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class ChatMessage:
    """One conversation message, used both in requests and in replies."""

    role: Role
    content: str

    def to_payload(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class ChatRequest:
    """A complete chat request.

    Built fresh for every turn from the conversation history; the provider
    client turns it into the JSON body of the HTTP call.
    """

    provider: str  # wire flavour, e.g. "azure"
    model: str  # deployment or model id
    messages: Tuple[ChatMessage, ...]
    stream: bool = True
    temperature: Optional[float] = 0.7
    max_tokens: Optional[int] = 1000
    top_p: Optional[float] = None


@dataclass
class ChatUsage:
    """Token accounting reported by the provider."""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int

    @classmethod
    def from_payload(cls, raw: Any) -> Optional["ChatUsage"]:
        if not raw or not isinstance(raw, dict):
            return None
        return cls(
            prompt_tokens=_token_count(raw.get("prompt_tokens")),
            completion_tokens=_token_count(raw.get("completion_tokens")),
            total_tokens=_token_count(raw.get("total_tokens")),
        )


def _token_count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return value


@dataclass
class ChatResult:
    """Result of a non-streaming call.

    - content: the text of the first choice's message.
    - raw: the original response JSON, kept for debugging.
    """

    provider: str
    model: str
    content: str
    finish_reason: Optional[str] = None
    usage: Optional[ChatUsage] = None
    raw: Optional[dict] = None


@dataclass(frozen=True)
class ContentDelta:
    """A fragment of assistant text."""

    text: str
    finish_reason: Optional[str] = None


@dataclass(frozen=True)
class ErrorDelta:
    """An error reported by the provider inside the stream."""

    message: str
    code: Optional[str] = None
    raw: Optional[dict] = field(default=None, compare=False)


@dataclass(frozen=True)
class IgnoredFrame:
    """A well-formed frame that carries no text (role or finish only)."""

    finish_reason: Optional[str] = None
    usage: Optional[ChatUsage] = None


@dataclass(frozen=True)
class StreamEnd:
    """Last event of a stream.

    saw_sentinel is False when the server closed the body without sending
    ``[DONE]``; that still counts as a normal completion.
    """

    saw_sentinel: bool = True
    finish_reason: Optional[str] = None
    usage: Optional[ChatUsage] = None
    skipped_frames: int = 0


FrameOutcome = Union[ContentDelta, ErrorDelta, IgnoredFrame]
StreamEvent = Union[ContentDelta, ErrorDelta, StreamEnd]
