import logging
import re
from typing import List, Optional, Tuple

from rich.console import Console
from rich.prompt import Prompt
from rich.text import Text

from ...providers import open_provider_client
from ..executor import copy_to_clipboard
from ..lifecycle import SessionOutcome, SessionState, input_with_prefill, strip_code_fence
from ..llm import ChatMessage
from ..stream import collect

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a regex expert. Generate regular expressions that follow these rules:
1. Only output the exact regex pattern, no explanations
2. Use modern regex syntax
3. Make patterns readable and maintainable
4. Include necessary escape sequences
5. Use capturing groups when helpful
6. Avoid unnecessary complexity
7. Consider performance implications
8. Make patterns as specific as possible"""

DEFAULT_FLAGS = "g"
GLOBAL_FLAG = "g"
REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
    # Python str patterns are always unicode aware
    "u": 0,
}

ACTIONS = ["test", "copy", "edit", "done", "cancel"]

_SLASHES = re.compile(r"^[\s/]*|[\s/]*$")


def build_messages(description: str, test: Optional[str] = None) -> List[ChatMessage]:
    prompt = f"Generate a regex pattern to: {description}"
    if test:
        prompt += f"\nIt should match this example: {test}"
    return [ChatMessage.system(SYSTEM_PROMPT), ChatMessage.user(prompt)]


def clean_pattern(reply: str) -> str:
    """Strip fences, surrounding slashes and whitespace from a generated pattern."""
    return _SLASHES.sub("", strip_code_fence(reply))


def parse_flags(flags: str) -> int:
    value = 0
    for flag in flags:
        if flag == GLOBAL_FLAG:
            continue
        if flag not in REGEX_FLAGS:
            raise ValueError(f"Unsupported regex flag '{flag}'")
        value |= REGEX_FLAGS[flag]
    return value


def compile_pattern(pattern: str, flags: str = "") -> re.Pattern:
    """Compile with literal-style flags. Raises ValueError for bad flags, re.error for bad patterns."""
    return re.compile(pattern, parse_flags(flags))


def find_matches(pattern: str, flags: str, text: str) -> List[re.Match]:
    """All matches with the global flag, otherwise at most the first one."""
    compiled = compile_pattern(pattern, flags)
    if GLOBAL_FLAG in flags:
        return list(compiled.finditer(text))
    match = compiled.search(text)
    return [match] if match else []


def match_markers(text: str, matches: List[re.Match]) -> str:
    """A line of carets under every matched character of `text`."""
    markers = [" "] * len(text)
    for match in matches:
        for i in range(match.start(), match.end()):
            markers[i] = "^"
    return "".join(markers).rstrip()


def format_regex(pattern: str, flags: str) -> str:
    return f"/{pattern}/{flags}"


class RegexEnvironment:
    """Prompts and output for the regex review loop."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def status(self, text: str):
        return self.console.status(text)

    def notify(self, message: str, style: str = ""):
        self.console.print(Text(message, style=style))

    def choose_action(self, pattern: str, flags: str) -> str:
        self.console.print("\nGenerated regex:")
        self.console.print(Text(f"  {format_regex(pattern, flags)}", style="cyan"))
        try:
            return Prompt.ask("What would you like to do?", choices=ACTIONS, default="test", console=self.console)
        except EOFError:
            return "cancel"

    def ask_test_string(self) -> Optional[str]:
        try:
            return Prompt.ask("Enter test string", console=self.console)
        except EOFError:
            return None

    def edit(self, pattern: str, flags: str) -> Tuple[str, str]:
        """Prompt for a new pattern and flags until both compile."""
        try:
            while True:
                new_pattern = input_with_prefill("Edit regex pattern: ", pattern)
                try:
                    re.compile(new_pattern)
                    break
                except re.error:
                    self.notify("Invalid regular expression", "red")

            while True:
                new_flags = input_with_prefill("Edit regex flags: ", flags)
                try:
                    parse_flags(new_flags)
                    break
                except ValueError:
                    self.notify("Invalid flags", "red")
        except EOFError:
            return pattern, flags

        try:
            compile_pattern(new_pattern, new_flags)
        except re.error as e:
            self.notify(f"Invalid regular expression: {e}", "red")
            return pattern, flags
        return new_pattern, new_flags

    def show_matches(self, text: str, matches: List[re.Match]):
        if not matches:
            self.notify("\nNo matches found", "yellow")
            return

        self.console.print("\nMatches found:")
        for n, match in enumerate(matches, start=1):
            label = f"Match {n}: " if len(matches) > 1 else "Full match: "
            self.console.print(Text(f"  {label}{match.group(0)}", style="green"))
            for i, group in enumerate(match.groups(), start=1):
                self.console.print(Text(f"    Group {i}: {group}", style="dim"))

        if "\n" not in text:
            self.console.print("\nMatch positions:")
            self.console.print(Text(text))
            self.console.print(Text(match_markers(text, matches), style="green"))


def try_pattern(environment: RegexEnvironment, pattern: str, flags: str, test: Optional[str] = None):
    text = test if test is not None else environment.ask_test_string()
    if text is None:
        return

    try:
        matches = find_matches(pattern, flags, text)
    except (re.error, ValueError) as e:
        environment.notify(f"\nError testing regex: {e}", "red")
        return
    environment.show_matches(text, matches)


def regex(
    description: str,
    provider: Optional[str] = None,
    test: Optional[str] = None,
    flags: Optional[str] = None,
    environment: Optional[RegexEnvironment] = None,
) -> SessionOutcome:
    """Generate a regex from a description and let the user test, edit or copy it."""
    env = environment or RegexEnvironment()
    client = open_provider_client(provider)

    with env.status("Generating regex..."):
        pattern = clean_pattern(collect(client.stream_chat(build_messages(description, test))))
    flags = flags if flags is not None else DEFAULT_FLAGS
    logger.debug("Generated pattern %r with flags %r", pattern, flags)

    while True:
        action = env.choose_action(pattern, flags)

        if action == "test":
            try_pattern(env, pattern, flags, test)

        elif action == "edit":
            pattern, flags = env.edit(pattern, flags)

        elif action == "copy":
            copy_error = copy_to_clipboard(format_regex(pattern, flags))
            if copy_error:
                env.notify(f"\nError copying to clipboard: {copy_error}", "red")
            else:
                env.notify("\n✓ Copied to clipboard", "green")
            return SessionOutcome(SessionState.COPIED, format_regex(pattern, flags), 0, copy_error=copy_error)

        elif action == "done":
            env.notify(f"\n✓ Final regex: {format_regex(pattern, flags)}", "green")
            return SessionOutcome(SessionState.SUCCEEDED, format_regex(pattern, flags), 0)

        else:
            env.notify("\nOperation cancelled")
            return SessionOutcome(SessionState.CANCELLED, format_regex(pattern, flags), 0)
