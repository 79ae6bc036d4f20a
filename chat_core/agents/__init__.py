from chat_core.agents.chat_agent import AgentConfig, ChatAgent, TurnOutcome

__all__ = ["AgentConfig", "ChatAgent", "TurnOutcome"]
