#!/usr/bin/env python3

import argparse
import argcomplete
import logging
import sys

from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import wraps
from typing import Callable, List, Optional

from rich.console import Console
from rich.logging import RichHandler

from .ai.assistants.ask import ask
from .ai.assistants.chat import chat
from .ai.assistants.command import command as gen_command
from .ai.assistants.git import git
from .ai.assistants.regex import regex
from .ai.assistants.script import SCRIPT_TEMPLATES, script
from .ai.lifecycle import SessionOutcome
from .ai.llm import ProviderIdentity
from .config import ConfigManager
from .configure import Configurator
from .errors import ShellAIError

logger = logging.getLogger(__name__)

_available_commands: List["Command"] = []

GEN_TYPES = ["command", "git", "script", "regex"]


@dataclass
class Argument(ABC):
    def __init__(self, help: str, kwargs: Optional[dict] = None):
        self.help = help
        self.kwargs = kwargs if kwargs is not None else {}

    @abstractmethod
    def add_to_parser(self, parser: argparse.ArgumentParser):
        pass


class OptionalArg(Argument):
    def __init__(
        self,
        short_option: Optional[str],
        long_option: str,
        help: str,
        kwargs: Optional[dict] = None,
    ):
        super().__init__(help=help, kwargs=kwargs)
        self.short_option = short_option
        self.long_option = long_option

    def add_to_parser(self, parser: argparse.ArgumentParser):
        flags = [f for f in (self.short_option, self.long_option) if f]
        parser.add_argument(*flags, help=self.help, **self.kwargs)


class PositionalArg(Argument):
    def __init__(self, name: str, help: str, kwargs: Optional[dict] = None):
        super().__init__(help=help, kwargs=kwargs)
        self.name = name

    def add_to_parser(self, parser: argparse.ArgumentParser):
        parser.add_argument(self.name, help=self.help, **self.kwargs)


@dataclass
class Command:
    name: str
    func: Callable
    help: str
    description: str
    args: list[Argument]


def _ensure_initial_setup():
    """Run the setup wizard once, before the first command that needs a provider."""
    if not ConfigManager().is_first_run():
        return
    if not Configurator().first_run_setup():
        sys.exit(0)


def command(args: List[Argument], needs_setup: bool = True):
    def decorator(func):
        if not func.__name__.startswith("handle_"):
            raise ValueError("Command handler must start with 'handle_'.")

        if not func.__doc__:
            raise ValueError(
                f"Command handler '{func.__name__}' must have a docstring for its help text."
            )

        @wraps(func)
        def wrapper(*args, **kwargs):
            if needs_setup:
                _ensure_initial_setup()
            return func(*args, **kwargs)

        command_name = func.__name__.split("_")[1]
        # Use the first line of the docstring as the help text and
        # the full docstring for the detailed description.
        help_text = func.__doc__.strip().split("\n")[0]
        _available_commands.append(
            Command(command_name, wrapper, help_text, func.__doc__, args)
        )
        return wrapper

    return decorator


def _provider_arg() -> OptionalArg:
    return OptionalArg(
        short_option="-p",
        long_option="--provider",
        help="AI provider to use (defaults to the configured provider).",
        kwargs={"choices": [p.value for p in ProviderIdentity]},
    )


def _exit_code(outcome: Optional[SessionOutcome]) -> int:
    return 1 if outcome is not None and outcome.failed else 0


##############################################################################


@command(
    [
        PositionalArg(
            name="provider",
            help="Set or update the API key for this provider directly.",
            kwargs={"nargs": "?", "choices": [p.value for p in ProviderIdentity]},
        )
    ],
    needs_setup=False,
)
def handle_config(args):
    """Configure AI providers, API keys and default models."""
    provider = ProviderIdentity.parse(args.provider) if args.provider else None
    Configurator().run(provider)


@command(
    [
        PositionalArg(
            name="message",
            help="The question to send to the AI.",
            kwargs={"nargs": "+"},
        ),
        _provider_arg(),
        OptionalArg(
            short_option="-m",
            long_option="--model",
            help="AI model to use (defaults to the provider's configured model).",
        ),
    ]
)
def handle_ask(args):
    """Ask the AI a single question and stream the answer."""
    ask(" ".join(args.message), args.provider, args.model)


@command(
    [
        PositionalArg(
            name="message",
            help="An optional first message.",
            kwargs={"nargs": "*"},
        ),
        _provider_arg(),
    ]
)
def handle_chat(args):
    """Start an interactive chat with the AI.
    The whole conversation is sent on every turn. Type 'exit' or an empty line to leave.
    """
    chat(" ".join(args.message) or None, args.provider)


@command(
    [
        PositionalArg(
            name="type",
            help="What to generate.",
            kwargs={"choices": GEN_TYPES},
        ),
        PositionalArg(
            name="description",
            help="A plain English description of what you want.",
            kwargs={"nargs": "+"},
        ),
        _provider_arg(),
        OptionalArg(
            short_option="-d",
            long_option="--dry-run",
            help="Show the result without running it.",
            kwargs={"action": "store_true"},
        ),
        OptionalArg(
            short_option="-t",
            long_option="--type",
            help="Script language (script only).",
            kwargs={"dest": "script_type", "choices": list(SCRIPT_TEMPLATES), "default": "bash"},
        ),
        OptionalArg(
            short_option="-o",
            long_option="--output",
            help="Save the script to this file (script only).",
        ),
        OptionalArg(
            short_option=None,
            long_option="--test",
            help="Example string the regex should match (regex only).",
        ),
        OptionalArg(
            short_option=None,
            long_option="--flags",
            help="Regex flags, e.g. 'gi' (regex only). Defaults to 'g'.",
        ),
    ]
)
def handle_gen(args):
    """Generate a shell command, git command, script or regex from a description.
    Generated commands are shown for review before anything runs. If a command
    fails, the AI is asked for a fix, up to 3 attempts in total.
    """
    description = " ".join(args.description)
    if args.type == "command":
        outcome = gen_command(description, args.provider, args.dry_run)
    elif args.type == "git":
        outcome = git(description, args.provider, args.dry_run)
    elif args.type == "script":
        outcome = script(description, args.script_type, args.provider, args.dry_run, args.output)
    else:
        outcome = regex(description, args.provider, args.test, args.flags)
    return _exit_code(outcome)


##############################################################################


def setup_logging(verbose: bool = False):
    handler = RichHandler(console=Console(stderr=True), show_time=False, show_path=False)
    logging.basicConfig(level=logging.WARNING, format="%(message)s", handlers=[handler])
    logging.getLogger("shellai").setLevel(logging.DEBUG if verbose else logging.WARNING)


def run_cli(argv: Optional[List[str]] = None):
    """
    Parses command-line arguments and executes the corresponding command.

    Args:
        argv: A list of strings representing the command-line arguments.
              If None, `sys.argv[1:]` is used automatically by `parse_args`.
    """
    parser = argparse.ArgumentParser(
        prog="shellai",
        description="AI-powered shell assistant.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Show debug logging."
    )
    subparsers = parser.add_subparsers(
        dest="command", help="Sub-commands", required=True
    )

    # Sort commands alphabetically for consistent --help output.
    _available_commands.sort(key=lambda cmd: cmd.name)

    for cmd in _available_commands:
        subparser = subparsers.add_parser(
            cmd.name, help=cmd.help, description=cmd.description
        )
        for arg in cmd.args:
            arg.add_to_parser(subparser)
        subparser.set_defaults(func=cmd.func)

    # Enable argument auto-completion.
    argcomplete.autocomplete(parser)

    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    try:
        exit_code = args.func(args)
    except KeyboardInterrupt:
        print("\n\nExiting...")
        sys.exit(0)
    except ShellAIError as e:
        print(f"Error: {e}", file=sys.stderr)
        if e.hint:
            print(e.hint, file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        logger.debug("Unhandled error", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if exit_code:
        sys.exit(exit_code)


def main():
    """The main entry point for the command-line interface, called by the `shellai` script."""
    run_cli()


if __name__ == "__main__":
    main()
