from dataclasses import dataclass
from typing import Optional

from .ai.llm import ProviderClient, ProviderIdentity, create_provider_client
from .config import ConfigManager
from .errors import ConfigurationError
from .vault import SecretVault

CONFIG_HINT = "Please configure the provider first with: shellai config"


@dataclass
class ProviderSettings:
    provider: ProviderIdentity
    api_key: str
    model: str


def resolve_provider_settings(
    provider: Optional[str] = None,
    model: Optional[str] = None,
    config: Optional[ConfigManager] = None,
    vault: Optional[SecretVault] = None,
) -> ProviderSettings:
    """
    Work out which provider, key and model a request should use.

    An explicit `provider` or `model` wins over the configured defaults.
    Raises ConfigurationError naming whichever piece is missing.
    """
    config = config or ConfigManager()
    vault = vault or SecretVault()

    identity = ProviderIdentity.parse(provider) if provider else config.get_default_provider()
    if identity is None:
        raise ConfigurationError("No provider specified and no default provider configured.", hint=CONFIG_HINT)

    api_key = vault.get(identity)
    if not api_key:
        raise ConfigurationError(f"No API key found for {identity.value}.", hint=CONFIG_HINT)

    model = model or config.get_default_model(identity)
    if not model:
        raise ConfigurationError(f"No default model configured for {identity.value}.", hint=CONFIG_HINT)

    return ProviderSettings(identity, api_key, model)


def open_provider_client(
    provider: Optional[str] = None,
    model: Optional[str] = None,
    config: Optional[ConfigManager] = None,
    vault: Optional[SecretVault] = None,
) -> ProviderClient:
    settings = resolve_provider_settings(provider, model, config, vault)
    return create_provider_client(settings.provider, settings.api_key, settings.model)
