"""Shared parsing helpers that raise the domain ValidationError."""

from enum import StrEnum
from typing import Any, TypeVar

from tabletop_audio.domain.shared.exceptions import ValidationError
from tabletop_audio.domain.shared.messages import ErrorMessages

E = TypeVar("E", bound=StrEnum)


def parse_enum(enum_cls: type[E], value: Any, field: str) -> E:
    """Parse ``value`` into ``enum_cls``.

    Raises:
        ValidationError: If ``value`` is not one of the enum's values.
    """
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(
            ErrorMessages.INVALID_ENUM_VALUE.format(
                field=field, value=value, valid=[member.value for member in enum_cls]
            ),
            field=field,
        ) from None
