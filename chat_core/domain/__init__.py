"""Domain models and protocols.

Contains:
- models: ChatMessage / ChatRequest / ChatResult and the stream event types.
- conversation: the append-only Conversation history.
- exceptions: business error types.
"""
