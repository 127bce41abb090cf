from typing import List, Optional

from rich.console import Console
from rich.text import Text

from ...providers import open_provider_client
from ..llm import ChatMessage, ProviderClient
from ..stream import stream_response

EXIT_WORD = "exit"


class ChatSession:
    """
    A multi-turn conversation. The whole history is sent on every turn,
    so the provider sees every earlier question and answer.
    """

    def __init__(self, client: ProviderClient, console: Optional[Console] = None):
        self.client = client
        self.console = console or Console()
        self.messages: List[ChatMessage] = []

    def send(self, message: str, prefix: str = "Assistant: ") -> str:
        self.messages.append(ChatMessage.user(message))
        response = stream_response(
            self.client.stream_chat(self.messages),
            console=self.console,
            prefix=prefix,
            spinner_text="Thinking...",
            newline=True,
        )
        self.messages.append(ChatMessage.assistant(response))
        return response

    def read_input(self) -> Optional[str]:
        """The next user message, or None when the user wants to leave."""
        try:
            text = self.console.input("[bold]You[/]: ")
        except EOFError:
            return None
        text = text.strip()
        if not text or text.lower() == EXIT_WORD:
            return None
        return text

    def print_tips(self):
        self.console.print(Text("\nTip: Type 'exit' to end the chat", style="dim"))
        self.console.print(Text("     Use Ctrl+C to force quit\n", style="dim"))

    def loop(self, initial_message: Optional[str] = None):
        self.print_tips()

        if initial_message and initial_message.strip():
            self.console.print(Text("You: ", style="bold") + Text(initial_message))
            self.send(initial_message, prefix="\nAssistant: ")

        while True:
            text = self.read_input()
            if text is None:
                self.console.print("\nGoodbye! 👋")
                return
            self.send(text)


def chat(initial_message: Optional[str] = None, provider: Optional[str] = None, console: Optional[Console] = None):
    """Starts an interactive chat with the AI."""
    client = open_provider_client(provider)
    ChatSession(client, console).loop(initial_message)
