"""
Shared Domain Kernel

Contains constrained types and exceptions shared across all bounded contexts.
"""

from tabletop_audio.domain.shared.exceptions import (
    ConcurrencyConflict,
    CycleError,
    DomainError,
    NotFoundError,
    TypeMismatchError,
    ValidationError,
)

__all__ = [
    "DomainError",
    "ValidationError",
    "NotFoundError",
    "TypeMismatchError",
    "CycleError",
    "ConcurrencyConflict",
]
