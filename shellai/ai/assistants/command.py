from typing import List, Optional

from ...providers import open_provider_client
from ..executor import ArtifactKind
from ..lifecycle import LifecycleSession, ReviewEnvironment, SessionOutcome
from ..llm import ChatMessage

SYSTEM_PROMPT = """You are a shell command expert. Generate shell commands that follow these rules:
1. Only output the exact shell command, no explanations
2. Use modern shell syntax and best practices
3. Make commands safe and handle errors gracefully
4. Include necessary flags and options
5. Consider performance implications
6. Make commands as specific as possible
7. Use --dry-run or similar safety flags when appropriate
8. For directory operations, handle empty directories and non-existent paths
9. For file operations, handle spaces and special characters
10. Add error handling with 2>/dev/null where appropriate"""


def build_messages(description: str) -> List[ChatMessage]:
    return [
        ChatMessage.system(SYSTEM_PROMPT),
        ChatMessage.user(
            f"Generate a shell command to: {description}. "
            "Make sure it handles errors and empty results gracefully."
        ),
    ]


def command(
    description: str,
    provider: Optional[str] = None,
    dry_run: bool = False,
    environment: Optional[ReviewEnvironment] = None,
) -> SessionOutcome:
    """Generate a shell command from a description, then review and run it."""
    client = open_provider_client(provider)
    session = LifecycleSession(client, ArtifactKind.SHELL, environment, dry_run=dry_run)
    return session.run(build_messages(description))
