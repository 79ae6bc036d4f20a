"""Interactive command line chat.

Usage::

    chat-core --endpoint https://my-resource.openai.azure.com --api-key ... --model gpt-4o

Every flag can also come from the environment (OPENAI_API_ENDPOINT,
OPENAI_API_KEY, OPENAI_API_MODEL, OPENAI_API_VERSION), a .env file or
config.yaml. At the prompt, ``quit`` / ``exit`` leave and ``clear``
forgets the conversation.
"""

import argparse
from typing import Callable, List, Optional

from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.prompt import Prompt

from chat_core.agents.chat_agent import AgentConfig, ChatAgent
from chat_core.config.settings import load_settings
from chat_core.domain.conversation import Conversation
from chat_core.domain.exceptions import ConfigurationError
from chat_core.infrastructure.logging.logger import setup_logger
from chat_core.prompts import load_system_prompt
from chat_core.providers import create_provider
from chat_core.streaming.sink import TerminalSink


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chat-core",
        description="A simple CLI chat tool for Azure OpenAI and OpenAI-compatible endpoints",
    )
    parser.add_argument("-e", "--endpoint", help="Endpoint URL (env: OPENAI_API_ENDPOINT)")
    parser.add_argument("-a", "--api-key", help="API key (env: OPENAI_API_KEY)")
    parser.add_argument("-m", "--model", help="Deployment / model name (env: OPENAI_API_MODEL)")
    parser.add_argument("--api-version", help="Azure api-version, e.g. 2025-01-01-preview (env: OPENAI_API_VERSION)")
    parser.add_argument("--provider", choices=["azure", "openai"], help="Wire flavour (default: azure)")
    parser.add_argument(
        "--stream",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Stream the reply token by token (default: on)",
    )
    parser.add_argument("--system-prompt", help="System message, or @file to read it from a file")
    parser.add_argument("--temperature", type=float, help="Sampling temperature")
    parser.add_argument("--max-tokens", type=int, help="Maximum tokens in the reply")
    parser.add_argument("--log-level", help="Log level for logs/chat.log (default: INFO)")
    return parser


def build_agent(args: argparse.Namespace, console: Console) -> ChatAgent:
    """Load settings, validate them and wire the chat pipeline.

    Raises:
        ConfigurationError: required settings are missing or invalid.
    """

    try:
        settings = load_settings(
            openai_api_endpoint=args.endpoint,
            openai_api_key=args.api_key,
            openai_api_model=args.model,
            openai_api_version=args.api_version,
            provider=args.provider,
            stream=args.stream,
            system_prompt=args.system_prompt,
            temperature=args.temperature,
            max_tokens=args.max_tokens,
            log_level=args.log_level,
        )
    except ValidationError as e:
        raise ConfigurationError(code="INVALID_CONFIG", message=str(e))
    settings.validate_required()
    try:
        system_prompt = load_system_prompt(settings.system_prompt)
    except OSError as e:
        raise ConfigurationError(code="INVALID_CONFIG", message=f"Cannot read system prompt: {e}")

    setup_logger(settings)
    return ChatAgent(
        conversation=Conversation(system_prompt),
        provider_client=create_provider(settings),
        sink=TerminalSink(console),
        config=AgentConfig.from_settings(settings),
    )


def print_banner(console: Console) -> None:
    console.print("🤖 OpenAI Chat CLI", style="bold")
    console.print("Type 'quit' or 'exit' to end the conversation.")
    console.print("Type 'clear' to clear the conversation history.")
    console.print("=" * 50)


def run_loop(agent: ChatAgent, console: Console, read_input: Callable[[], str]) -> int:
    """Prompt until the user quits. Returns the process exit code."""

    while True:
        try:
            user_input = read_input()
        except (EOFError, KeyboardInterrupt):
            console.print("\n👋 Goodbye!")
            return 0

        outcome = agent.handle_input(user_input)
        if outcome.kind == "quit":
            console.print("👋 Goodbye!")
            return 0
        if outcome.kind == "cleared":
            console.print("🗑️ Conversation cleared!")
            continue
        if outcome.kind == "empty":
            continue
        if outcome.kind == "failed" and outcome.error is not None:
            console.print(f"❌ Error: {escape(outcome.error.message)}", style="red")
        elif outcome.kind == "interrupted":
            console.print("⏹ Reply interrupted, nothing was added to the conversation.", style="yellow")
        console.print()


def main(
    argv: Optional[List[str]] = None,
    console: Optional[Console] = None,
    read_input: Optional[Callable[[], str]] = None,
) -> int:
    args = build_parser().parse_args(argv)
    console = console or Console()
    try:
        agent = build_agent(args, console)
    except ConfigurationError as exc:
        console.print(f"❌ {escape(exc.message)}", style="bold red")
        return 1

    if read_input is None:
        def read_input() -> str:
            return Prompt.ask("[bold cyan]You[/]", console=console)

    print_banner(console)
    return run_loop(agent, console, read_input)
