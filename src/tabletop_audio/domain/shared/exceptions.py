"""Base exception classes for domain-level errors."""

from __future__ import annotations


class DomainError(Exception):
    """Base exception for all domain-level errors."""

    retryable: bool = False

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__


class ValidationError(DomainError):
    """Raised when a type, enum or range check fails."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message, code="VALIDATION_ERROR")
        self.field = field


class NotFoundError(DomainError):
    """Raised when a referenced entity does not exist."""

    def __init__(self, entity_type: str, identifier: str | int, message: str | None = None) -> None:
        msg = message or f"{entity_type} with id '{identifier}' not found"
        super().__init__(msg, code="NOT_FOUND")
        self.entity_type = entity_type
        self.identifier = identifier


class TypeMismatchError(DomainError):
    """Raised when a structural rule is violated, e.g. a pack receiving a file."""

    def __init__(self, rule: str, message: str | None = None) -> None:
        msg = message or f"Structural rule violated: {rule}"
        super().__init__(msg, code="TYPE_MISMATCH")
        self.rule = rule


class CycleError(DomainError):
    """Raised when a move or nesting would make an entity its own ancestor."""

    def __init__(
        self,
        entity_type: str,
        identifier: int,
        target_id: int | None,
        message: str | None = None,
    ) -> None:
        msg = message or f"Moving {entity_type} '{identifier}' under '{target_id}' would create a cycle"
        super().__init__(msg, code="CYCLE")
        self.entity_type = entity_type
        self.identifier = identifier
        self.target_id = target_id


class ConcurrencyConflict(DomainError):
    """Raised when an aggregate lock could not be acquired within the retry budget.

    Callers may retry the whole operation.
    """

    retryable = True

    def __init__(self, aggregate: str, message: str | None = None) -> None:
        msg = message or f"Concurrent modification in progress for {aggregate}"
        super().__init__(msg, code="CONCURRENCY_CONFLICT")
        self.aggregate = aggregate
