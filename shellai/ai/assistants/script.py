import os
import subprocess
import tempfile
import textwrap
from pathlib import Path
from typing import List, Optional

from rich.syntax import Syntax
from rich.prompt import Confirm

from ...providers import open_provider_client
from ..executor import ArtifactKind, ExecutionResult
from ..lifecycle import LifecycleSession, ReviewEnvironment, SessionOutcome, SessionState, strip_code_fence
from ..llm import ChatMessage

PLACEHOLDER = "Script content here"

SCRIPT_TEMPLATES = {
    "bash": """#!/bin/bash
set -euo pipefail
IFS=$'\\n\\t'

# Script content here
""",
    "python": """#!/usr/bin/env python3

import sys
import os

def main():
    # Script content here
    pass

if __name__ == "__main__":
    main()
""",
    "node": """#!/usr/bin/env node

async function main() {
    // Script content here
}

main().catch(console.error);
""",
}

SCRIPT_EXTENSIONS = {"bash": "sh", "python": "py", "node": "js"}
SCRIPT_LEXERS = {"bash": "bash", "python": "python", "node": "javascript"}

SYSTEM_PROMPT = """You are a script generation expert. Generate a {script_type} script that follows these rules:
1. Only output the exact script content, no explanations
2. Use modern syntax and best practices
3. Include proper error handling
4. Add necessary imports and dependencies
5. Consider performance implications
6. Make the script robust and maintainable
7. Add helpful comments for complex logic
8. Handle edge cases appropriately
9. Follow language-specific conventions"""


def render_script(script_type: str, body: str) -> str:
    """Insert `body` at the template's placeholder line, indented like the placeholder."""
    lines = SCRIPT_TEMPLATES[script_type].splitlines(keepends=True)
    for i, line in enumerate(lines):
        if PLACEHOLDER in line:
            indent = line[: len(line) - len(line.lstrip())]
            lines[i] = textwrap.indent(body, indent) + "\n"
            break
    return "".join(lines)


def build_messages(description: str, script_type: str) -> List[ChatMessage]:
    return [
        ChatMessage.system(SYSTEM_PROMPT.format(script_type=script_type)),
        ChatMessage.user(f"Generate a {script_type} script to: {description}"),
    ]


def write_script(path: Path, script: str):
    path.write_text(script, encoding="utf-8")
    path.chmod(0o755)


class ScriptEnvironment(ReviewEnvironment):
    """Shows scripts with syntax highlighting and edits them in $EDITOR."""

    def __init__(self, script_type: str, console=None):
        super().__init__(console)
        self.script_type = script_type

    def show_artifact(self, artifact: str, label: str):
        self.console.print(f"\nGenerated {label}:")
        self.console.print(Syntax(artifact, SCRIPT_LEXERS[self.script_type], line_numbers=True))

    def show_correction(self, corrected: str):
        self.console.print("\nSuggested fix:")
        self.console.print(Syntax(corrected, SCRIPT_LEXERS[self.script_type], line_numbers=True))

    def confirm_correction(self, corrected: str) -> bool:
        self.show_correction(corrected)
        try:
            return Confirm.ask("Would you like to try this script?", default=True, console=self.console)
        except EOFError:
            return False

    def edit(self, artifact: str) -> Optional[str]:
        editor = os.getenv("EDITOR") or "vi"
        suffix = "." + SCRIPT_EXTENSIONS[self.script_type]
        fd, path = tempfile.mkstemp(suffix=suffix)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(artifact)
            subprocess.run([editor, path])
            with open(path, "r", encoding="utf-8") as f:
                return f.read()
        except FileNotFoundError:
            self.notify(f"Could not find editor '{editor}'. Set $EDITOR to your preferred editor.", "red")
            return None
        finally:
            os.unlink(path)


class ScriptSession(LifecycleSession):
    """Script variant: template insertion, whole-script corrections and file-based execution."""

    def __init__(self, client, script_type: str = "bash", environment=None, executor=None, dry_run=False, output=None):
        if script_type not in SCRIPT_TEMPLATES:
            raise ValueError(f"Unknown script type '{script_type}'. Choose from: {', '.join(SCRIPT_TEMPLATES)}")
        super().__init__(
            client,
            ArtifactKind.SCRIPT,
            environment or ScriptEnvironment(script_type),
            executor,
            dry_run=dry_run,
            label=f"{script_type} script",
        )
        self.script_type = script_type
        self.output = Path(output) if output else None

    def normalize(self, reply: str) -> str:
        return strip_code_fence(reply).strip()

    def same_artifact(self, corrected: str, failed: str) -> bool:
        # Rendered scripts keep the template's trailing newline.
        return corrected.strip() == failed.strip()

    def generate(self, messages: List[ChatMessage]) -> str:
        return render_script(self.script_type, super().generate(messages))

    def correction_messages(self, artifact: str, error: str) -> List[ChatMessage]:
        return [
            ChatMessage.user(
                f"The {self.label} below failed with error: {error}\n\n{artifact}\n\n"
                "Please provide the complete corrected script. "
                "Only respond with the exact script content, no explanations."
            )
        ]

    def launch(self, artifact: str) -> ExecutionResult:
        if self.output:
            write_script(self.output, artifact)
            return self.executor.run_artifact(str(self.output.resolve()), ArtifactKind.SCRIPT)

        with tempfile.TemporaryDirectory(prefix=".temp-", dir=os.getcwd()) as temp_dir:
            path = Path(temp_dir) / f"script.{SCRIPT_EXTENSIONS[self.script_type]}"
            write_script(path, artifact)
            return self.executor.run_artifact(str(path), ArtifactKind.SCRIPT)


def script(
    description: str,
    script_type: str = "bash",
    provider: Optional[str] = None,
    dry_run: bool = False,
    output: Optional[str] = None,
    environment: Optional[ReviewEnvironment] = None,
) -> SessionOutcome:
    """Generate a script from a description, then review and run it."""
    client = open_provider_client(provider)
    session = ScriptSession(client, script_type, environment, dry_run=dry_run, output=output)
    outcome = session.run(build_messages(description, script_type))

    # An explicit cancel leaves nothing behind; every other ending keeps the script.
    if session.output and (outcome.state != SessionState.CANCELLED or dry_run):
        write_script(session.output, outcome.artifact)
        session.env.notify(f"\n✓ Script saved to {session.output}", "green")
    return outcome
