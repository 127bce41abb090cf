from typing import Iterable, Optional

from rich.console import Console
from rich.text import Text

FENCE = "```"


def collect(fragments: Iterable[str]) -> str:
    """Concatenate a fragment stream in order."""
    return "".join(fragments)


def stream_response(
    fragments: Iterable[str],
    console: Optional[Console] = None,
    prefix: Optional[str] = None,
    spinner_text: Optional[str] = None,
    newline: bool = False,
) -> str:
    """
    Print a reply while it streams and return the full text.

    Text inside ``` fences is dimmed. The spinner, if any, runs until the
    first fragment arrives.
    """
    console = console or Console()
    if prefix:
        console.print(Text(prefix, style="bold"), end="")

    status = console.status(spinner_text) if spinner_text else None
    if status:
        status.start()

    full_response = ""
    in_code_block = False
    try:
        for fragment in fragments:
            if status:
                status.stop()
                status = None

            parts = fragment.split(FENCE)
            for i, part in enumerate(parts):
                if i > 0:
                    in_code_block = not in_code_block
                    if in_code_block:
                        console.print()
                if part:
                    console.print(Text(part, style="dim" if in_code_block else ""), end="")
            full_response += fragment
    finally:
        if status:
            status.stop()

    if newline:
        console.print()
    return full_response
