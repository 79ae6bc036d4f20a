"""Streaming response pipeline.

- sse: byte chunks -> raw SSE frames (FrameStream).
- deltas: raw frames -> typed stream events (DeltaStream).
- sink: stream events -> terminal, plus the reply accumulator.
"""

from chat_core.streaming.deltas import DeltaStream, parse_frame
from chat_core.streaming.sink import DisplaySink, ReplyAccumulator, TerminalSink
from chat_core.streaming.sse import SENTINEL, FrameStream, SSEDecoder

__all__ = [
    "DeltaStream",
    "DisplaySink",
    "FrameStream",
    "ReplyAccumulator",
    "SENTINEL",
    "SSEDecoder",
    "TerminalSink",
    "parse_frame",
]
