"""Delta parser: raw stream frames -> typed stream events.

Each frame of a chat-completions stream is a JSON object such as::

    {"choices": [{"index": 0, "delta": {"content": "Hi"}, "finish_reason": null}]}

parse_frame turns one frame into a ContentDelta, ErrorDelta or
IgnoredFrame. DeltaStream applies it lazily to a whole FrameStream,
skipping malformed frames instead of failing the turn, and closes the
sequence with a StreamEnd event.
"""

import json
import logging
from typing import Any, Dict, Iterable, Iterator, Optional

from chat_core.domain.exceptions import StreamDecodeError
from chat_core.domain.models import (
    ChatUsage,
    ContentDelta,
    ErrorDelta,
    FrameOutcome,
    IgnoredFrame,
    StreamEnd,
    StreamEvent,
)
from chat_core.infrastructure.logging.logger import logger

_PREVIEW_CHARS = 120


def _preview(frame: str) -> str:
    if len(frame) <= _PREVIEW_CHARS:
        return frame
    return frame[:_PREVIEW_CHARS] + "..."


def parse_frame(frame: str) -> FrameOutcome:
    """Parse one raw frame.

    Raises:
        StreamDecodeError: the frame is not a JSON object, or its
            choices, first choice or usage have the wrong type.
    """

    try:
        data = json.loads(frame)
    except json.JSONDecodeError as e:
        raise StreamDecodeError(code="MALFORMED_FRAME", message=str(e), frame=_preview(frame))
    if not isinstance(data, dict):
        raise StreamDecodeError(
            code="UNEXPECTED_FRAME",
            message=f"expected a JSON object, got {type(data).__name__}",
            frame=_preview(frame),
        )

    error = data.get("error")
    if error:
        return _error_delta(error, data)

    raw_usage = data.get("usage")
    if raw_usage is not None and not isinstance(raw_usage, dict):
        raise StreamDecodeError(code="UNEXPECTED_FRAME", message="usage is not an object", frame=_preview(frame))
    usage = ChatUsage.from_payload(raw_usage)
    choices = data.get("choices") or []
    if not isinstance(choices, list):
        raise StreamDecodeError(code="UNEXPECTED_FRAME", message="choices is not a list", frame=_preview(frame))
    if not choices:
        # Azure sends prompt_filter_results frames with an empty choices list
        return IgnoredFrame(usage=usage)
    first = choices[0]
    if not isinstance(first, dict):
        raise StreamDecodeError(code="UNEXPECTED_FRAME", message="choice is not an object", frame=_preview(frame))

    finish_reason = first.get("finish_reason")
    if not isinstance(finish_reason, str):
        finish_reason = None
    delta = first.get("delta") or {}
    content = delta.get("content") if isinstance(delta, dict) else None
    if isinstance(content, str) and content:
        return ContentDelta(text=content, finish_reason=finish_reason)
    return IgnoredFrame(finish_reason=finish_reason, usage=usage)


def _error_delta(error: Any, data: Dict[str, Any]) -> ErrorDelta:
    if isinstance(error, dict):
        message = error.get("message") or json.dumps(error, ensure_ascii=False)
        code = error.get("code") or error.get("type")
        return ErrorDelta(message=str(message), code=str(code) if code is not None else None, raw=data)
    return ErrorDelta(message=str(error), raw=data)


class DeltaStream:
    """Lazy sequence of StreamEvent built from raw frames.

    Malformed frames are logged and skipped; the order of the remaining
    events is the order of their frames. The last event is always a
    StreamEnd, unless the consumer stops early.
    """

    def __init__(self, frames: Iterable[str]):
        self._frames = frames
        self.skipped_frames = 0
        self.finish_reason: Optional[str] = None
        self.usage: Optional[ChatUsage] = None

    def __iter__(self) -> Iterator[StreamEvent]:
        for index, frame in enumerate(self._frames):
            try:
                outcome = parse_frame(frame)
            except StreamDecodeError as exc:
                self.skipped_frames += 1
                self._log(
                    logging.WARNING,
                    "Skipping undecodable stream frame",
                    frame_index=index,
                    code=exc.code,
                    error=exc.message,
                    **exc.extra,
                )
                continue
            if isinstance(outcome, IgnoredFrame):
                self.finish_reason = outcome.finish_reason or self.finish_reason
                self.usage = outcome.usage or self.usage
                continue
            if isinstance(outcome, ContentDelta) and outcome.finish_reason:
                self.finish_reason = outcome.finish_reason
            yield outcome

        saw_sentinel = getattr(self._frames, "saw_sentinel", True)
        if not saw_sentinel:
            self._log(logging.WARNING, "Stream closed without [DONE] sentinel")
        yield StreamEnd(
            saw_sentinel=saw_sentinel,
            finish_reason=self.finish_reason,
            usage=self.usage,
            skipped_frames=self.skipped_frames,
        )

    @staticmethod
    def _log(level: int, message: str, **fields: Any) -> None:
        logger.log(level, message, extra={"extra": fields})
