from dataclasses import dataclass
from typing import Sequence


class DomainError(Exception):
    """Base domain error with a user-facing message."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


@dataclass(frozen=True)
class ValidationIssue:
    path: str
    message: str


class RequestValidationError(DomainError):
    """Raised when a payload violates the request schema.

    Carries every violated constraint, not only the first one found.
    """

    def __init__(self, issues: Sequence[ValidationIssue], message: str = "Invalid request payload") -> None:
        super().__init__(message)
        self.issues = list(issues)


class NotFound(DomainError):
    """Raised when a required entity is missing."""


class PersistenceError(DomainError):
    """Raised when a transactional unit fails and has been rolled back."""
