"""Server-sent events frame decoder.

The byte stream of a streaming chat-completions response looks like::

    data: {"choices": [{"delta": {"content": "Hi"}}]}

    data: [DONE]

Network reads do not line up with events: one read can hold half a line,
several events, or end between the two bytes of a UTF-8 character or of a
``\\r\\n`` pair. SSEDecoder buffers whatever is not complete yet and
resumes on the next read, so the frames it emits do not depend on how the
bytes were chunked.
"""

import codecs
import re
from typing import Iterable, Iterator, List

SENTINEL = "[DONE]"

_LINE_END = re.compile(r"\r\n|\r|\n")


class SSEDecoder:
    """Incremental SSE decoder: bytes in, raw frame payloads out."""

    def __init__(self, encoding: str = "utf-8"):
        self._text = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""
        self._data: List[str] = []
        self._started = False

    def feed(self, chunk: bytes) -> List[str]:
        """Consume one network read and return the frames it completed."""
        self._buffer += self._decode(chunk)
        return self._drain(final=False)

    def _decode(self, chunk: bytes, final: bool = False) -> str:
        text = self._text.decode(chunk, final)
        if not self._started and text:
            self._started = True
            # a byte order mark is only meaningful at the very start
            if text.startswith("\ufeff"):
                text = text[1:]
        return text

    def flush(self) -> List[str]:
        """Finish the stream.

        A trailing line without newline is treated as complete, and data
        lines of an event that never got its blank line are dispatched.
        """
        self._buffer += self._decode(b"", final=True)
        frames = self._drain(final=True)
        if self._buffer:
            frames.extend(self._handle_line(self._buffer))
            self._buffer = ""
        if self._data:
            frames.append(self._dispatch())
        return frames

    def _drain(self, final: bool) -> List[str]:
        frames: List[str] = []
        pos = 0
        while True:
            match = _LINE_END.search(self._buffer, pos)
            if match is None:
                break
            # a lone trailing \r may be the first half of \r\n
            if match.group() == "\r" and match.end() == len(self._buffer) and not final:
                break
            frames.extend(self._handle_line(self._buffer[pos:match.start()]))
            pos = match.end()
        self._buffer = self._buffer[pos:]
        return frames

    def _handle_line(self, line: str) -> List[str]:
        if not line:
            return [self._dispatch()] if self._data else []
        if line.startswith(":"):
            return []
        name, _, value = line.partition(":")
        if name != "data":
            # event, id, retry and unknown fields carry nothing we use
            return []
        if value.startswith(" "):
            value = value[1:]
        self._data.append(value)
        return []

    def _dispatch(self) -> str:
        frame = "\n".join(self._data)
        self._data = []
        return frame


def is_sentinel(frame: str) -> bool:
    return frame.strip() == SENTINEL


class FrameStream:
    """Lazy, forward-only sequence of raw frames read from byte chunks.

    Iteration stops at the ``[DONE]`` frame, which is not yielded, and no
    further chunks are pulled after it. ``saw_sentinel`` tells a normal
    end apart from the server simply closing the body.
    """

    def __init__(self, chunks: Iterable[bytes]):
        self._chunks = chunks
        self._started = False
        self.saw_sentinel = False
        self.frame_count = 0

    def __iter__(self) -> Iterator[str]:
        if self._started:
            raise RuntimeError("FrameStream can only be iterated once")
        self._started = True
        return self._frames()

    def _frames(self) -> Iterator[str]:
        decoder = SSEDecoder()
        for chunk in self._chunks:
            if not chunk:
                continue
            for frame in decoder.feed(chunk):
                if is_sentinel(frame):
                    self.saw_sentinel = True
                    return
                self.frame_count += 1
                yield frame
        for frame in decoder.flush():
            if is_sentinel(frame):
                self.saw_sentinel = True
                return
            self.frame_count += 1
            yield frame
