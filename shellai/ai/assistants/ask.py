from typing import Optional

from rich.console import Console

from ...providers import open_provider_client
from ..llm import ChatMessage
from ..stream import stream_response


def ask(message: str, provider: Optional[str] = None, model: Optional[str] = None, console: Optional[Console] = None) -> str:
    """Send a single question and stream the answer to the terminal."""
    client = open_provider_client(provider, model)
    return stream_response(
        client.stream_chat([ChatMessage.user(message)]),
        console=console,
        spinner_text="Generating response...",
        newline=True,
    )
