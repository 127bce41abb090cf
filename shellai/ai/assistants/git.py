from typing import List, Optional

from ...providers import open_provider_client
from ..executor import ArtifactKind
from ..lifecycle import LifecycleSession, ReviewEnvironment, SessionOutcome
from ..llm import ChatMessage

SYSTEM_PROMPT = """You are a git expert. Generate git commands that follow these rules:
1. Only output the exact git command, no explanations
2. Use modern git syntax and best practices
3. Make commands safe and reversible when possible
4. Include necessary flags and options
5. Consider performance implications for large repositories
6. Make commands as specific as possible
7. Use --dry-run or similar safety flags when appropriate"""


def build_messages(description: str) -> List[ChatMessage]:
    return [
        ChatMessage.system(SYSTEM_PROMPT),
        ChatMessage.user(f"Generate a git command to: {description}"),
    ]


def git(
    description: str,
    provider: Optional[str] = None,
    dry_run: bool = False,
    environment: Optional[ReviewEnvironment] = None,
) -> SessionOutcome:
    """Generate a git command from a description, then review and run it."""
    client = open_provider_client(provider)
    session = LifecycleSession(client, ArtifactKind.GIT, environment, dry_run=dry_run)
    return session.run(build_messages(description))
