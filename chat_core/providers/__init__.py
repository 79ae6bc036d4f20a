"""Chat provider integration.

Modules in this package:
- base: the ProviderClient protocol.
- registry: wire flavours (azure deployments, plain openai).
- openai_client: the httpx based client.
"""

from typing import Optional

from chat_core.providers.base import ProviderClient
from chat_core.providers.openai_client import OpenAIChatClient
from chat_core.providers.registry import get_provider_config


def create_provider(settings, name: Optional[str] = None) -> ProviderClient:
    """Create a client for ``name``, defaulting to the configured provider."""

    provider_name = (name or getattr(settings, "provider", "azure")).lower()
    return OpenAIChatClient(settings, get_provider_config(provider_name))
