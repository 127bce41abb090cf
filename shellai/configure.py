import logging
from typing import Dict, List, Optional, Sequence

from rich.console import Console
from rich.prompt import Confirm, Prompt
from rich.text import Text

from .ai.llm import ProviderIdentity
from .ai.models import list_models
from .config import ConfigManager
from .vault import SecretVault

logger = logging.getLogger(__name__)

PROVIDER_TITLES: Dict[ProviderIdentity, str] = {
    ProviderIdentity.ANTHROPIC: "Anthropic (Claude)",
    ProviderIdentity.OPENAI: "OpenAI (GPT)",
    ProviderIdentity.GEMINI: "Google (Gemini)",
}

MENU = [
    ("switch-provider", "Switch Provider"),
    ("switch-model", "Switch Model"),
    ("api-keys", "Manage API Keys"),
    ("exit", "Exit"),
]


class Configurator:
    """Interactive management of providers, API keys and default models."""

    def __init__(
        self,
        config: Optional[ConfigManager] = None,
        vault: Optional[SecretVault] = None,
        console: Optional[Console] = None,
    ):
        self.config = config or ConfigManager()
        self.vault = vault or SecretVault()
        self.console = console or Console()

    # Prompts

    def select(self, message: str, options: Sequence, titles: Optional[List[str]] = None, default=None):
        """Numbered menu. Returns the chosen option, or None if input ends."""
        titles = titles or [str(o) for o in options]
        self.console.print()
        for i, title in enumerate(titles, start=1):
            self.console.print(f"  {i}. {title}")

        default_choice = str(list(options).index(default) + 1) if default in options else "1"
        try:
            choice = Prompt.ask(
                message,
                choices=[str(i) for i in range(1, len(options) + 1)],
                default=default_choice,
                console=self.console,
            )
        except EOFError:
            return None
        return options[int(choice) - 1]

    def confirm(self, message: str, default: bool = True) -> bool:
        try:
            return Confirm.ask(message, default=default, console=self.console)
        except EOFError:
            return False

    def hidden_input(self, message: str) -> Optional[str]:
        while True:
            try:
                value = Prompt.ask(message, password=True, console=self.console)
            except EOFError:
                return None
            if value.strip():
                return value.strip()
            self.console.print(Text("Value cannot be empty", style="red"))

    def cancelled(self):
        self.console.print("\nOperation cancelled")

    # Actions

    def select_model(self, provider: ProviderIdentity, api_key: str, current: Optional[str] = None) -> Optional[str]:
        with self.console.status("Fetching available models..."):
            models = list_models(provider, api_key)
        if current:
            self.console.print(Text(f"Current model: {current}", style="green"))
        return self.select("Select model", models, default=current)

    def show_status(self):
        listing = self.vault.list_providers()
        default_provider = self.config.get_default_provider()

        self.console.print("\nCurrent configuration:")
        if listing.configured:
            self.console.print(Text("\nConfigured providers:", style="green"))
            for p in listing.configured:
                line = Text(f"  - {p.value}")
                if p == default_provider:
                    line.append(" (default)", style="dim")
                model = self.config.get_default_model(p)
                if model:
                    line.append(f" [{model}]", style="dim")
                self.console.print(line)
        if listing.unconfigured:
            self.console.print(Text("\nUnconfigured providers:", style="yellow"))
            for p in listing.unconfigured:
                self.console.print(f"  - {p.value}")

    def switch_provider(self):
        configured = self.vault.list_providers().configured
        if not configured:
            self.console.print(Text("\nNo providers configured yet. Please configure a provider first.", style="yellow"))
            return

        current = self.config.get_default_provider()
        titles = [p.value + (" (current)" if p == current else "") for p in configured]
        provider = self.select("Select provider to switch to", configured, titles, default=current)
        if provider is None:
            self.cancelled()
            return
        if provider == current:
            self.console.print(Text("\nAlready using this provider", style="yellow"))
            return

        switch_model = self.confirm("Would you like to switch the model as well?")
        self.config.set_default_provider(provider)
        self.console.print(Text(f"\n✓ Switched to {provider.value}", style="green"))

        if switch_model:
            self._pick_model(provider, "✓ Switched to model")

    def switch_model(self):
        provider = self.config.get_default_provider()
        if provider is None:
            self.console.print(Text("\nNo default provider set. Please configure a provider first.", style="yellow"))
            return
        self._pick_model(provider, "\n✓ Switched to model")

    def _pick_model(self, provider: ProviderIdentity, done_message: str):
        api_key = self.vault.get(provider)
        if not api_key:
            self.console.print(Text("\nError getting provider credentials", style="red"))
            return
        model = self.select_model(provider, api_key, self.config.get_default_model(provider))
        if model:
            self.config.set_default_model(provider, model)
            self.console.print(Text(f"{done_message} {model}", style="green"))

    def manage_api_keys(self):
        listing = self.vault.list_providers()
        options = listing.configured + listing.unconfigured
        titles = [f"Update API key for {p.value}" for p in listing.configured]
        titles += [f"Set API key for {p.value}" for p in listing.unconfigured]

        provider = self.select("Choose an action", options, titles)
        if provider is None:
            self.cancelled()
            return
        self.set_api_key(provider)

    def set_api_key(self, provider: ProviderIdentity):
        """Store a key for `provider`; a first-time key also offers a default model."""
        is_update = provider in self.vault.list_providers().configured
        api_key = self.hidden_input(f"Enter API key for {provider.value}")
        if api_key is None:
            self.cancelled()
            return

        self.vault.save(provider, api_key)
        if is_update:
            self.console.print(Text(f"\n✓ Updated API key for {provider.value}", style="green"))
            return

        self.console.print(Text(f"\n✓ Set API key for {provider.value}", style="green"))
        if self.config.get_default_provider() is None:
            self.config.set_default_provider(provider)
            self.console.print(Text(f"✓ Set {provider.value} as the default provider", style="green"))

        if self.confirm("Would you like to set a specific model?"):
            model = self.select_model(provider, api_key)
            if model:
                self.config.set_default_model(provider, model)
                self.console.print(Text(f"✓ Set model to {model}", style="green"))

    def run(self, provider: Optional[ProviderIdentity] = None):
        self.show_status()

        if provider is not None:
            self.set_api_key(provider)
            return

        actions = {
            "switch-provider": self.switch_provider,
            "switch-model": self.switch_model,
            "api-keys": self.manage_api_keys,
        }
        choice = self.select("Choose an action", [key for key, _ in MENU], [title for _, title in MENU])
        if choice is None or choice == "exit":
            self.cancelled()
            return
        actions[choice]()

    def first_run_setup(self) -> bool:
        """
        Walk a new user through picking a provider, key and model.

        Returns False if the user backed out; setup is then left incomplete
        and runs again next time.
        """
        self.console.print(Text("\nWelcome to ShellAI! Let's set up your configuration.", style="yellow"))

        providers = list(ProviderIdentity)
        provider = self.select("Select a provider to configure", providers, [PROVIDER_TITLES[p] for p in providers])
        if provider is None:
            self.cancelled()
            return False

        api_key = self.hidden_input(f"Enter API key for {provider.value}")
        if api_key is None:
            self.cancelled()
            return False

        self.vault.save(provider, api_key)
        self.config.set_default_provider(provider)

        with self.console.status("Fetching available models..."):
            models = list_models(provider, api_key)
        model = self.select("Select a default model", models)
        if model:
            self.config.set_default_model(provider, model)

        self.config.complete_initial_setup()
        logger.debug("Initial setup complete for %s", provider.value)
        self.console.print(Text("\n✓ Configuration complete!", style="green"))
        return True
