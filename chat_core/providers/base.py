"""Provider client interface.

The turn loop depends on this protocol rather than on a concrete HTTP
client, so tests can swap in a fake and new wire flavours only need a new
registry entry.
"""

from typing import Iterator, Protocol

from chat_core.domain.models import ChatRequest, ChatResult, StreamEvent


class ProviderClient(Protocol):
    """Chat-completions client.

    Implementations provide:
    - name: provider name, used in logs.
    - chat(req): one buffered call returning the whole reply.
    - chat_stream(req): one streaming call yielding events lazily.
    """

    name: str

    def chat(self, req: ChatRequest) -> ChatResult:
        ...

    def chat_stream(self, req: ChatRequest) -> Iterator[StreamEvent]:
        """Yield ContentDelta / ErrorDelta events, then one StreamEnd."""

        ...
