"""AI assistant for the shell: commands, git, scripts and regexes from plain English."""

__version__ = "0.1.0"
