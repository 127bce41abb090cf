import logging
from typing import Dict, List

from anthropic import Anthropic
from google import genai
from openai import OpenAI

from .llm import ProviderIdentity

logger = logging.getLogger(__name__)

# Used when the provider's model endpoint can't be reached.
FALLBACK_MODELS: Dict[ProviderIdentity, List[str]] = {
    ProviderIdentity.ANTHROPIC: [
        "claude-3-opus-20240229",
        "claude-3-sonnet-20240229",
        "claude-3-haiku-20240307",
        "claude-2.1",
        "claude-2.0",
        "claude-instant-1.2",
    ],
    ProviderIdentity.OPENAI: ["gpt-4-turbo", "gpt-4", "gpt-3.5-turbo"],
    ProviderIdentity.GEMINI: ["gemini-pro", "gemini-pro-vision"],
}


def _openai_models(api_key: str) -> List[str]:
    client = OpenAI(api_key=api_key)
    return sorted(m.id for m in client.models.list() if m.id.startswith("gpt-"))


def _anthropic_models(api_key: str) -> List[str]:
    client = Anthropic(api_key=api_key)
    return [m.id for m in client.models.list()]


def _gemini_models(api_key: str) -> List[str]:
    client = genai.Client(api_key=api_key)
    names = [m.name.split("/", 1)[-1] for m in client.models.list() if m.name]
    return [n for n in names if "gemini" in n]


_LISTERS = {
    ProviderIdentity.ANTHROPIC: _anthropic_models,
    ProviderIdentity.OPENAI: _openai_models,
    ProviderIdentity.GEMINI: _gemini_models,
}


def list_models(provider: ProviderIdentity, api_key: str) -> List[str]:
    """Return the model names `api_key` can use, or the fallback list if the lookup fails."""
    try:
        models = _LISTERS[provider](api_key)
    except Exception as e:
        logger.debug("Listing %s models failed, using fallback list: %s", provider.value, e)
        return list(FALLBACK_MODELS[provider])
    return models or list(FALLBACK_MODELS[provider])
