import logging
import os
import re
import shlex
import subprocess
import sys
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_SHELL = "/bin/sh"
GIT_CONTROL_CHARS = re.compile(r"[&|;]")


class LaunchMode(Enum):
    SPLIT_ARGS = "split-args"
    SHELL = "shell"


class ArtifactKind(str, Enum):
    SHELL = "shell"
    GIT = "git"
    SCRIPT = "script"


@dataclass
class ExecutionResult:
    exit_code: Optional[int]
    stderr: str = ""
    launch_error: bool = False

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0 and not self.launch_error

    @property
    def error_message(self) -> str:
        return self.stderr.strip() or f"Command failed with exit code {self.exit_code}"


def plan_launch(artifact: str, kind: ArtifactKind) -> Tuple[str, Optional[List[str]], LaunchMode]:
    """
    Decide how an artifact is launched.

    Scripts are run directly by path. Git commands without control or pipe
    characters run `git` with the remaining words as arguments; anything
    else goes to the user's shell as a single -c string.
    """
    if kind == ArtifactKind.SCRIPT:
        return artifact, [], LaunchMode.SPLIT_ARGS

    if kind == ArtifactKind.GIT and not GIT_CONTROL_CHARS.search(artifact):
        try:
            words = shlex.split(artifact)
        except ValueError:
            # Unbalanced quotes: let the shell report it.
            return artifact, None, LaunchMode.SHELL
        if words and words[0] == "git":
            words = words[1:]
        return "git", words, LaunchMode.SPLIT_ARGS

    return artifact, None, LaunchMode.SHELL


class Executor:
    """
    Launches a command with inherited stdin/stdout and captured stderr.

    Blocks until the child exits.
    """

    def __init__(self, shell: Optional[str] = None):
        self.shell = shell or os.getenv("SHELL") or DEFAULT_SHELL

    def run(self, program: str, argv: Optional[List[str]] = None, mode: LaunchMode = LaunchMode.SHELL) -> ExecutionResult:
        if mode == LaunchMode.SHELL:
            args = [self.shell, "-c", program]
        else:
            args = [program] + list(argv or [])

        logger.debug("Launching %s", args)
        try:
            process = subprocess.Popen(args, stderr=subprocess.PIPE, encoding="utf-8", errors="replace")
        except OSError as e:
            return ExecutionResult(exit_code=None, stderr=str(e), launch_error=True)

        _, stderr = process.communicate()
        return ExecutionResult(exit_code=process.returncode, stderr=stderr or "")

    def run_artifact(self, artifact: str, kind: ArtifactKind) -> ExecutionResult:
        program, argv, mode = plan_launch(artifact, kind)
        return self.run(program, argv, mode)


def _clipboard_command() -> List[str]:
    if sys.platform == "darwin":
        return ["pbcopy"]
    if sys.platform == "win32":
        return ["clip"]
    return ["xclip", "-selection", "clipboard"]


def copy_to_clipboard(text: str) -> Optional[str]:
    """
    Hand `text` to the platform clipboard program without waiting for it.

    Returns an error message if the program could not be started.
    """
    command = _clipboard_command()
    try:
        process = subprocess.Popen(
            command, stdin=subprocess.PIPE, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, text=True
        )
        process.stdin.write(text)
        process.stdin.close()
    except OSError as e:
        logger.debug("Clipboard program %s failed: %s", command[0], e)
        return str(e)
    return None
