"""
Error types for the edit pipeline.

Everything inherits from AiveError. InfrastructureError marks failures where
the backend (language model or ffmpeg itself) cannot be reached at all.
"""
from typing import Optional


class AiveError(Exception):
    """Base exception for all pipeline failures."""
    pass


class OperationError(AiveError):
    """An operation could not be carried out."""
    pass


class OperationValidationError(OperationError):
    """Raised when an operation's parameters are missing or invalid."""

    def __init__(self, operation_type: str, reason: str):
        self.operation_type = operation_type
        self.reason = reason
        super().__init__(f"Invalid parameters for {operation_type}: {reason}")


class InvalidStatusTransition(OperationError):
    """Raised when attempting to move an operation backwards in its lifecycle."""

    def __init__(self, operation_id: str, current: str, target: str):
        self.operation_id = operation_id
        self.current = current
        self.target = target
        super().__init__(f"Invalid status transition for operation {operation_id}: {current} -> {target}")


class OperationNotFoundError(OperationError):
    """Raised when an operation cannot be found in the registry."""

    def __init__(self, operation_id: str):
        self.operation_id = operation_id
        super().__init__(f"Operation not found: {operation_id}")


class EngineError(OperationError):
    """Raised when ffmpeg exits with a failure."""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr_tail: str = ""):
        self.returncode = returncode
        self.stderr_tail = stderr_tail
        super().__init__(message)


class ProbeError(AiveError):
    """Raised when ffprobe cannot describe a file."""
    pass


class InfrastructureError(AiveError):
    """A backend the pipeline depends on is unavailable. Retry after a delay."""
    pass


class LanguageModelUnavailable(InfrastructureError):
    pass


class EngineUnavailableError(InfrastructureError):
    pass
