"""Custom exceptions for git-sync-keeper"""

from typing import Optional, Sequence


class GitSyncKeeperError(Exception):
    """Base exception for all git-sync-keeper errors."""
    pass


class GitOperationError(GitSyncKeeperError):
    """Exception raised when a git invocation exits with an error."""

    def __init__(
        self,
        operation: str,
        message: Optional[str] = None,
        command: Optional[Sequence[str]] = None,
        status: Optional[int] = None,
        stderr: Optional[str] = None,
    ):
        self.operation = operation
        self.message = message
        self.command = list(command) if command else []
        self.status = status
        self.stderr = stderr or ""

        error_msg = f"Git operation '{operation}' failed"
        if status is not None:
            error_msg += f" (exit {status})"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class GitTimeoutError(GitOperationError):
    """Exception raised when a git invocation exceeds its deadline."""

    def __init__(self, operation: str, timeout: float, command: Optional[Sequence[str]] = None):
        self.timeout = timeout
        super().__init__(
            operation,
            f"timed out after {timeout:g}s",
            command=command,
        )


class GitVersionError(GitSyncKeeperError):
    """Exception raised when the installed git is too old."""

    def __init__(self, found: str, required: str):
        self.found = found
        self.required = required
        super().__init__(f"git {required} or newer is required, found {found}")


class DetectionError(GitSyncKeeperError):
    """Exception raised when the local repository cannot be inspected."""
    pass


class UnknownClassificationError(GitSyncKeeperError):
    """Exception raised when an observed state has no entry in a lookup table."""

    def __init__(self, table: str, key: object):
        self.table = table
        self.key = key
        super().__init__(f"No {table} classification for {key!r}")


class OperationError(GitSyncKeeperError):
    """Base exception for errors raised by remediation operations."""

    def __init__(self, operation: str, message: Optional[str] = None):
        self.operation = operation
        self.message = message

        error_msg = f"Operation '{operation}'"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class ValidationError(OperationError):
    """Exception raised when an operation fails its safety precondition."""
    pass


class OperationNotValidatedError(OperationError):
    """Exception raised when executing an operation that was never validated."""

    def __init__(self, operation: str, status: str):
        super().__init__(operation, f"cannot execute from status '{status}', validate it first")


class ExecutionError(OperationError):
    """Exception raised when the git invocation behind an operation fails."""
    pass


class RollbackRefusedError(OperationError):
    """Exception raised when an operation cannot be rolled back automatically."""
    pass


class NotAutoFixableError(OperationError):
    """Exception raised when asked to apply a fix that needs a human."""
    pass
