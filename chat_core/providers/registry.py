"""Provider wire flavours.

Both flavours speak the same chat-completions JSON; they differ in how
the URL is built and how the credential is attached:

- azure: ``{endpoint}/openai/deployments/{model}/chat/completions?api-version=...``
  with an ``api-key`` header. The model name is the deployment name.
- openai: ``{endpoint}/chat/completions`` with ``Authorization: Bearer <key>``.
"""

from dataclasses import dataclass
from typing import Dict, Mapping, Optional


@dataclass(frozen=True)
class ProviderConfig:
    """How to reach one provider flavour."""

    name: str
    path_template: str
    auth_header: str
    auth_scheme: Optional[str] = None
    uses_api_version: bool = False

    def chat_url(self, endpoint: str, model: str) -> str:
        return endpoint.rstrip("/") + self.path_template.format(model=model)

    def query_params(self, api_version: Optional[str]) -> Dict[str, str]:
        if self.uses_api_version and api_version:
            return {"api-version": api_version}
        return {}

    def auth_headers(self, api_key: str) -> Dict[str, str]:
        value = f"{self.auth_scheme} {api_key}" if self.auth_scheme else api_key
        return {self.auth_header: value}


AZURE_CONFIG = ProviderConfig(
    name="azure",
    path_template="/openai/deployments/{model}/chat/completions",
    auth_header="api-key",
    uses_api_version=True,
)

OPENAI_CONFIG = ProviderConfig(
    name="openai",
    path_template="/chat/completions",
    auth_header="Authorization",
    auth_scheme="Bearer",
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "azure": AZURE_CONFIG,
    "openai": OPENAI_CONFIG,
}


def get_provider_config(name: str) -> ProviderConfig:
    """Look up a ProviderConfig by case-insensitive name."""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown provider: {name!r}")
