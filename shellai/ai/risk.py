"""
Heuristic safety checks for generated and edited commands.

These are pattern matches, not a shell parser. Only `is_blocked` may stop a
command from running; the other checks only produce warnings.
"""

import re
from typing import Optional

DESTRUCTIVE_PATTERNS = [
    re.compile(r"\brm\b"),
    re.compile(r"\bdd\b"),
    re.compile(r"\bmkfs\b"),
    re.compile(r"\bformat\b"),
    re.compile(r"\bfdisk\b"),
    re.compile(r"\bwipe\b"),
    re.compile(r"\bshred\b"),
    re.compile(r"\btruncate\b"),
]

BLOCKED_PATTERNS = [
    # privileged recursive delete rooted at /
    re.compile(r"\bsudo\b.*\brm\b.*\s(?:-[a-zA-Z]*[rR][a-zA-Z]*|--recursive)\b.*\s['\"]?/+['\"]?(?:[\s*;&|)]|$)"),
    re.compile(r"\bmv\b.*\s/\S*\s+/dev/null\b"),
    re.compile(r"\bdd\b.*\bof=/dev/(?:[hs]d[a-z]|nvme\d+n\d+)"),
    re.compile(r"\bmkfs(?:\.\w+)?\b.*\s-[fF]\b"),
    re.compile(r"\bshred\b.*\s-[a-z]*[uz]"),
]

SHELL_METACHARACTERS = re.compile(r"[;&|><$`\\]")
COMMAND_NAME = re.compile(r"^[a-zA-Z0-9_\-.]+$")


def is_destructive(command: str) -> bool:
    """True if the command uses a verb that deletes, wipes or overwrites data."""
    return any(pattern.search(command) for pattern in DESTRUCTIVE_PATTERNS)


def check_syntax(command: str) -> Optional[str]:
    """
    Check a hand-edited command for obvious breakage.

    Returns a reason string when the edit should be rejected, None when it
    looks like a simple command.
    """
    if not command.strip():
        return "Command cannot be empty"

    if SHELL_METACHARACTERS.search(command):
        return "Command contains potentially dangerous characters. Please use simple commands."

    name = command.split()[0]
    if not COMMAND_NAME.match(name):
        return "Invalid command name"

    return None


def is_blocked(command: str) -> bool:
    """True for a small set of known-catastrophic commands that must never run."""
    return any(pattern.search(command) for pattern in BLOCKED_PATTERNS)
