import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import aisuite
from anthropic import Anthropic
from google import genai

from ..errors import ConfigurationError, ShellAIError, StreamingError

logger = logging.getLogger(__name__)

ANTHROPIC_MAX_TOKENS = 4096


class ProviderIdentity(str, Enum):
    """The closed set of supported chat backends."""

    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    GEMINI = "gemini"

    @classmethod
    def parse(cls, value: str) -> "ProviderIdentity":
        try:
            return cls(value.strip().lower())
        except ValueError:
            names = ", ".join(p.value for p in cls)
            raise ConfigurationError(
                f'Invalid provider "{value}"', hint=f"Choose one of: {names}"
            ) from None


@dataclass(frozen=True)
class ChatMessage:
    """A single conversation turn. The order of a message list is the order the model sees."""

    role: str
    content: str

    @staticmethod
    def system(content: str) -> "ChatMessage":
        return ChatMessage("system", content)

    @staticmethod
    def user(content: str) -> "ChatMessage":
        return ChatMessage("user", content)

    @staticmethod
    def assistant(content: str) -> "ChatMessage":
        return ChatMessage("assistant", content)

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


def _merge_turns(turns: List[Tuple[str, str]]) -> List[Tuple[str, str]]:
    # Backends with a two-role model reject consecutive turns of the same role.
    merged: List[Tuple[str, str]] = []
    for role, content in turns:
        if merged and merged[-1][0] == role:
            merged[-1] = (role, f"{merged[-1][1]}\n\n{content}")
        else:
            merged.append((role, content))
    return merged


class ProviderClient(ABC):
    """
    Streams a chat reply from one remote backend.

    Each subclass owns a private transport client and turns that backend's
    delta events into plain text fragments. Fragment boundaries carry no
    meaning; callers concatenate them in the order they are yielded.
    """

    identity: ProviderIdentity

    def __init__(self, api_key: str, model: str):
        self.api_key = api_key
        self.model = model
        self._client: Any = self._create_client()

    @abstractmethod
    def _create_client(self) -> Any:
        pass

    @abstractmethod
    def _stream(self, messages: List[ChatMessage]) -> Iterator[str]:
        pass

    def stream_chat(self, messages: Sequence[ChatMessage]) -> Iterator[str]:
        """Yield the reply to `messages` as text fragments, in emission order."""
        if self._client is None:
            raise ConfigurationError(f"{self.identity.value} client not initialized")

        logger.debug("Streaming %d message(s) from %s:%s", len(messages), self.identity.value, self.model)
        try:
            for fragment in self._stream(list(messages)):
                yield fragment
        except ShellAIError:
            raise
        except Exception as e:
            raise StreamingError(
                f"{self.identity.value} request failed: {e}",
                provider=self.identity.value,
                hint="Check your API key and model with 'shellai config'.",
            ) from e


class AnthropicClient(ProviderClient):
    """Messages API. Only text deltas of content block events are kept."""

    identity = ProviderIdentity.ANTHROPIC

    def _create_client(self) -> Any:
        return Anthropic(api_key=self.api_key)

    @staticmethod
    def _build_request(messages: List[ChatMessage]) -> Tuple[Optional[str], List[Dict[str, str]]]:
        system_parts = [m.content for m in messages if m.role == "system"]
        turns = _merge_turns(
            [("user" if m.role == "user" else "assistant", m.content) for m in messages if m.role != "system"]
        )
        system = "\n\n".join(system_parts) if system_parts else None
        return system, [{"role": role, "content": content} for role, content in turns]

    def _stream(self, messages: List[ChatMessage]) -> Iterator[str]:
        system, turns = self._build_request(messages)
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": turns,
            "max_tokens": ANTHROPIC_MAX_TOKENS,
            "stream": True,
        }
        if system:
            kwargs["system"] = system

        for event in self._client.messages.create(**kwargs):
            if getattr(event, "type", None) != "content_block_delta":
                continue
            delta = getattr(event, "delta", None)
            if getattr(delta, "type", None) == "text_delta":
                yield delta.text


class OpenAIClient(ProviderClient):
    """
    Chat completions through aisuite.

    aisuite hands OpenAI's own stream back untouched, so each chunk is a
    choice-delta object.
    """

    identity = ProviderIdentity.OPENAI

    def _create_client(self) -> Any:
        return aisuite.Client({"openai": {"api_key": self.api_key}})

    def _stream(self, messages: List[ChatMessage]) -> Iterator[str]:
        stream = self._client.chat.completions.create(
            model=f"openai:{self.model}",
            messages=[m.to_dict() for m in messages],
            stream=True,
        )
        for chunk in stream:
            if not chunk.choices:
                continue
            content = chunk.choices[0].delta.content
            if content:
                yield content


class GeminiClient(ProviderClient):
    """
    Gemini has no system role: system messages are folded into user turns
    of its user/model conversation.
    """

    identity = ProviderIdentity.GEMINI

    def _create_client(self) -> Any:
        return genai.Client(api_key=self.api_key)

    @staticmethod
    def _build_contents(messages: List[ChatMessage]) -> List[Dict[str, Any]]:
        turns = _merge_turns([("model" if m.role == "assistant" else "user", m.content) for m in messages])
        return [{"role": role, "parts": [{"text": content}]} for role, content in turns]

    def _stream(self, messages: List[ChatMessage]) -> Iterator[str]:
        contents = self._build_contents(messages)
        for chunk in self._client.models.generate_content_stream(model=self.model, contents=contents):
            text = chunk.text
            if text:
                yield text


_CLIENTS = {
    ProviderIdentity.ANTHROPIC: AnthropicClient,
    ProviderIdentity.OPENAI: OpenAIClient,
    ProviderIdentity.GEMINI: GeminiClient,
}


def create_provider_client(provider: ProviderIdentity, api_key: str, model: str) -> ProviderClient:
    """Build the client variant for `provider`."""
    return _CLIENTS[ProviderIdentity(provider)](api_key, model)
