"""Exception hierarchy for shellai."""

from typing import Optional


class ShellAIError(Exception):
    """Base exception for all shellai errors."""

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        self.hint = hint


class ConfigurationError(ShellAIError):
    """No provider, API key or model is available for the request."""


class StreamingError(ShellAIError):
    """The provider failed while producing a streamed reply."""

    def __init__(self, message: str, provider: Optional[str] = None, hint: Optional[str] = None):
        super().__init__(message, hint=hint)
        self.provider = provider


class VaultError(ShellAIError):
    """A stored credential exists but could not be decrypted."""


class ExecutionError(ShellAIError):
    """A command could not be launched or exited with a non-zero status."""

    def __init__(self, command: str, stderr: str = "", exit_code: Optional[int] = None):
        message = stderr.strip() or f"Command failed with exit code {exit_code}"
        super().__init__(message)
        self.command = command
        self.stderr = stderr
        self.exit_code = exit_code
