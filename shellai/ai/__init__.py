"""
The `ai` package holds everything that talks to a model or acts on its output:
the provider clients, the command lifecycle and, under `assistants`, the
flows built on them.
"""

from .llm import ChatMessage, ProviderClient, ProviderIdentity, create_provider_client
from .lifecycle import LifecycleSession, SessionOutcome, SessionState


__all__ = [
    "ChatMessage",
    "ProviderClient",
    "ProviderIdentity",
    "create_provider_client",
    "LifecycleSession",
    "SessionOutcome",
    "SessionState",
]
