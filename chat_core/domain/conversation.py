from typing import Iterator, List, Tuple

from .models import ChatMessage


class Conversation:
    """Ordered, append-only chat history for one process run.

    The first message is always the system message. A turn's user message
    is committed together with the assistant reply, so a failed turn leaves
    the history untouched.
    """

    def __init__(self, system_prompt: str):
        if not system_prompt:
            raise ValueError("system_prompt must not be empty")
        self._system_prompt = system_prompt
        self._messages: List[ChatMessage] = [ChatMessage(role="system", content=system_prompt)]

    @property
    def system_prompt(self) -> str:
        return self._system_prompt

    @property
    def messages(self) -> Tuple[ChatMessage, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[ChatMessage]:
        return iter(tuple(self._messages))

    def with_pending(self, message: ChatMessage) -> Tuple[ChatMessage, ...]:
        """History plus a not yet committed message, for building a request."""
        return tuple(self._messages) + (message,)

    def append(self, message: ChatMessage) -> None:
        if message.role == "system":
            raise ValueError("only the seeded first message may have role 'system'")
        self._messages.append(message)

    def commit_turn(self, user: ChatMessage, assistant: ChatMessage) -> None:
        if user.role != "user" or assistant.role != "assistant":
            raise ValueError("a turn is a user message followed by an assistant message")
        self.append(user)
        self.append(assistant)

    def clear(self) -> None:
        """Drop every turn and re-seed the system message."""
        self._messages = [ChatMessage(role="system", content=self._system_prompt)]
