"""Chat Core top-level package.

An interactive command line client for Azure OpenAI and other
OpenAI-compatible chat-completions endpoints: configuration loading,
domain models, the httpx transport, the SSE streaming pipeline and the
turn loop that keeps the conversation history.
"""

from chat_core.agents import AgentConfig, ChatAgent, TurnOutcome
from chat_core.domain.conversation import Conversation

__all__ = ["AgentConfig", "ChatAgent", "Conversation", "TurnOutcome"]
