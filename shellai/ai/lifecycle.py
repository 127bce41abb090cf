import logging
import re
import readline
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from rich.console import Console
from rich.prompt import Confirm, Prompt
from rich.text import Text

from ..errors import ExecutionError, StreamingError
from .executor import ArtifactKind, ExecutionResult, Executor, copy_to_clipboard
from .llm import ChatMessage, ProviderClient
from .risk import check_syntax, is_blocked, is_destructive
from .stream import collect

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3

_FENCED = re.compile(r"^\s*```[\w+-]*[ \t]*\n?(.*?)\n?```\s*$", re.DOTALL)


class SessionState(Enum):
    GENERATING = "generating"
    REVIEWING = "reviewing"
    EDITING = "editing"
    EXECUTING = "executing"
    RETRYING = "retrying"
    COPIED = "copied"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = {SessionState.COPIED, SessionState.SUCCEEDED, SessionState.FAILED, SessionState.CANCELLED}


class ReviewAction(str, Enum):
    EXECUTE = "execute"
    COPY = "copy"
    EDIT = "edit"
    CANCEL = "cancel"


@dataclass
class SessionOutcome:
    state: SessionState
    artifact: str
    attempts: int
    error: Optional[ExecutionError] = None
    reason: Optional[str] = None
    copy_error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.state == SessionState.FAILED


def strip_code_fence(text: str) -> str:
    """Remove a markdown fence wrapped around the whole reply."""
    match = _FENCED.match(text)
    return match.group(1) if match else text


def normalize_command(text: str) -> str:
    """Collapse all whitespace runs to single spaces and trim."""
    return re.sub(r"\s+", " ", strip_code_fence(text)).strip()


def input_with_prefill(prompt: str, text: str) -> str:
    readline.set_startup_hook(lambda: readline.insert_text(text))
    try:
        return input(prompt)
    finally:
        readline.set_startup_hook()


class ReviewEnvironment:
    """
    The human side of a session: shows artifacts and collects decisions.

    Every prompt treats end-of-input as the most conservative answer
    (cancel, decline, no edit).
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def status(self, text: str):
        return self.console.status(text)

    def notify(self, message: str, style: str = ""):
        self.console.print(Text(message, style=style))

    def show_artifact(self, artifact: str, label: str):
        self.console.print(f"\nGenerated {label}:")
        self.console.print(Text(f"  {artifact}", style="cyan"))

    def choose_action(self, artifact: str, label: str, destructive: bool) -> ReviewAction:
        self.show_artifact(artifact, label)
        if destructive:
            self.notify("\n⚠️  Warning: This command may be destructive. Use with caution.", "yellow")
        try:
            choice = Prompt.ask(
                "What would you like to do?",
                choices=[a.value for a in ReviewAction],
                default=ReviewAction.EXECUTE.value,
                console=self.console,
            )
        except EOFError:
            return ReviewAction.CANCEL
        return ReviewAction(choice)

    def edit(self, artifact: str) -> Optional[str]:
        try:
            return input_with_prefill("Edit command: ", artifact)
        except EOFError:
            return None

    def show_failure(self, command: str, error: str):
        self.notify("\nCommand failed:", "red")
        self.console.print(Text(f"  {command}", style="cyan"))
        self.console.print(Text("Error: ", style="red") + Text(error))

    def show_correction(self, corrected: str):
        self.console.print("\nSuggested fix:")
        self.console.print(Text(f"  {corrected}", style="cyan"))

    def confirm_correction(self, corrected: str) -> bool:
        self.show_correction(corrected)
        try:
            return Confirm.ask("Would you like to try this command?", default=True, console=self.console)
        except EOFError:
            return False


class LifecycleSession:
    """
    One generate -> review -> execute -> retry cycle for a single artifact.

    The session owns the artifact text and the attempt counter. The
    provider client is shared: the same instance generates the artifact
    and every correction. Each state has a handler that sets the next
    state; `run` loops until a terminal state is reached.
    """

    def __init__(
        self,
        client: ProviderClient,
        kind: ArtifactKind,
        environment: Optional[ReviewEnvironment] = None,
        executor: Optional[Executor] = None,
        max_attempts: int = MAX_ATTEMPTS,
        dry_run: bool = False,
        label: Optional[str] = None,
    ):
        if max_attempts <= 0:
            raise ValueError("max_attempts must be a positive integer.")

        self.client = client
        self.kind = kind
        self.env = environment or ReviewEnvironment()
        self.executor = executor or Executor()
        self.max_attempts = max_attempts
        self.dry_run = dry_run
        self.label = label or f"{kind.value} command"

        self.state = SessionState.GENERATING
        self.artifact = ""
        self.attempt_count = 0
        self.last_error: Optional[ExecutionError] = None
        self.reason: Optional[str] = None
        self.copy_error: Optional[str] = None

        self._handlers: Dict[SessionState, Callable[[], None]] = {
            SessionState.REVIEWING: self._review,
            SessionState.EDITING: self._edit,
            SessionState.EXECUTING: self._execute,
            SessionState.RETRYING: self._retry,
        }

    # Generation

    def normalize(self, reply: str) -> str:
        return normalize_command(reply)

    def _ask(self, messages: List[ChatMessage], status_text: str) -> str:
        with self.env.status(status_text):
            return collect(self.client.stream_chat(messages))

    def generate(self, messages: List[ChatMessage]) -> str:
        self.state = SessionState.GENERATING
        reply = self._ask(messages, f"Generating {self.label}...")
        return self.normalize(reply)

    def correction_messages(self, artifact: str, error: str) -> List[ChatMessage]:
        return [
            ChatMessage.user(
                f'The {self.label} "{artifact}" failed with error: {error}. '
                "Please provide a corrected command that will work. "
                "Only respond with the exact command to run, no explanations."
            )
        ]

    def request_correction(self, artifact: str, error: str) -> str:
        status_text = f"Attempt {self.attempt_count}/{self.max_attempts}: Asking AI for help..."
        reply = self._ask(self.correction_messages(artifact, error), status_text)
        return self.normalize(reply)

    def same_artifact(self, corrected: str, failed: str) -> bool:
        return corrected == failed

    # Execution

    def launch(self, artifact: str) -> ExecutionResult:
        return self.executor.run_artifact(artifact, self.kind)

    def validate_edit(self, edited: str) -> Optional[str]:
        if self.kind in (ArtifactKind.SHELL, ArtifactKind.GIT):
            return check_syntax(edited)
        return None if edited.strip() else "Command cannot be empty"

    # State handlers

    def _review(self):
        if self.dry_run:
            self.env.show_artifact(self.artifact, self.label)
            self.env.notify("\nDry run mode - command will not be executed", "yellow")
            self.state = SessionState.CANCELLED
            return

        action = self.env.choose_action(self.artifact, self.label, is_destructive(self.artifact))
        if action == ReviewAction.EXECUTE:
            self.state = SessionState.EXECUTING
        elif action == ReviewAction.EDIT:
            self.state = SessionState.EDITING
        elif action == ReviewAction.COPY:
            self.copy_error = copy_to_clipboard(self.artifact)
            if self.copy_error:
                self.env.notify(f"\nError copying to clipboard: {self.copy_error}", "red")
            else:
                self.env.notify("\n✓ Copied to clipboard", "green")
            self.state = SessionState.COPIED
        else:
            self.env.notify("\nOperation cancelled")
            self.state = SessionState.CANCELLED

    def _edit(self):
        edited = self.env.edit(self.artifact)
        if edited is not None:
            problem = self.validate_edit(edited)
            if problem:
                self.env.notify(f"\n{problem}", "red")
            else:
                self.artifact = edited.strip()
        self.state = SessionState.REVIEWING

    def _execute(self):
        if is_blocked(self.artifact):
            self.env.notify("\nError: Command is potentially harmful and has been blocked", "red")
            self.state = SessionState.REVIEWING
            return

        self.attempt_count += 1
        logger.debug("Attempt %d/%d: %s", self.attempt_count, self.max_attempts, self.artifact)
        result = self.launch(self.artifact)
        if result.succeeded:
            self.env.notify("\n✓ Command executed successfully", "green")
            self.state = SessionState.SUCCEEDED
            return

        self.last_error = ExecutionError(self.artifact, result.stderr, result.exit_code)
        self.env.show_failure(self.artifact, result.error_message)
        self.state = SessionState.RETRYING

    def _fail(self, reason: str):
        self.reason = reason
        self.env.notify(f"\n{reason}", "red")
        self.state = SessionState.FAILED

    def _retry(self):
        if self.attempt_count >= self.max_attempts:
            self._fail(f"Failed after {self.max_attempts} attempts. Giving up.")
            return

        failed_command = self.artifact
        try:
            corrected = self.request_correction(failed_command, str(self.last_error))
        except StreamingError as e:
            self._fail(f"Could not get a correction: {e}")
            return

        if self.same_artifact(corrected, failed_command):
            self._fail("AI couldn't find a better solution")
            return

        if not self.env.confirm_correction(corrected):
            self._fail("User cancelled retry")
            return

        self.artifact = corrected
        self.state = SessionState.EXECUTING

    # Driver

    def review(self) -> SessionOutcome:
        """Run the session from Reviewing with the current artifact."""
        self.state = SessionState.REVIEWING
        while self.state not in TERMINAL_STATES:
            self._handlers[self.state]()
        return self.outcome()

    def run(self, messages: List[ChatMessage]) -> SessionOutcome:
        """Generate an artifact from `messages`, then review it to a terminal state."""
        self.artifact = self.generate(messages)
        return self.review()

    def outcome(self) -> SessionOutcome:
        return SessionOutcome(
            state=self.state,
            artifact=self.artifact,
            attempts=self.attempt_count,
            error=self.last_error if self.state == SessionState.FAILED else None,
            reason=self.reason,
            copy_error=self.copy_error,
        )
