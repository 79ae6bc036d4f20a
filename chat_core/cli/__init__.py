from chat_core.cli.app import main

__all__ = ["main"]
