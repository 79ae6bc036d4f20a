"""Run the streaming pipeline over a canned SSE body, without a network."""

from chat_core.streaming import DeltaStream, FrameStream, ReplyAccumulator, TerminalSink

BODY = (
    b'data: {"choices":[{"delta":{"role":"assistant"}}]}\n\n'
    b'data: {"choices":[{"delta":{"content":"Hello"}}]}\n\n'
    b"data: not-json\n\n"
    b'data: {"choices":[{"delta":{"content":", world"}}]}\n\n'
    b"data: [DONE]\n\n"
)

if __name__ == "__main__":
    chunks = [BODY[i:i + 7] for i in range(0, len(BODY), 7)]
    sink = TerminalSink()
    acc = ReplyAccumulator()
    sink.begin_reply()
    for event in DeltaStream(FrameStream(chunks)):
        acc.feed(event)
        if hasattr(event, "text"):
            sink.write(event.text)
    sink.end_reply()
    print("Accumulated:", acc.text)
