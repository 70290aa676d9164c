"""Validation errors raised while turning query parameters into a query plan."""

from typing import Any, Iterable, Optional

from fastapi import HTTPException, status


class QueryValidationError(HTTPException):
    """
    Base class for invalid list-request parameters.

    Subclasses ``HTTPException`` so FastAPI renders it as a 400 response with
    the message in ``detail`` without any extra exception handler.

    Attributes:
        field: Offending field name, if any
        value: Offending raw value, if any
    """

    def __init__(self, detail: str, field: Optional[str] = None, value: Any = None):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)
        self.field = field
        self.value = value

    def __str__(self) -> str:
        return self.detail


class UnknownFieldError(QueryValidationError):
    """Field is not in the entity's allow-list."""

    def __init__(self, field: str, available: Iterable[str], purpose: str = "filter"):
        names = ", ".join(sorted(available))
        super().__init__(
            f"Unknown {purpose} field '{field}'. Available fields: {names}",
            field=field,
        )


class InvalidClauseError(QueryValidationError):
    """Clause text does not match ``field<op>value`` or uses an unsupported operator."""


class ValueCoercionError(QueryValidationError):
    """Clause value cannot be converted to the field's type."""

    def __init__(self, field: str, value: str, type_name: str):
        super().__init__(
            f"Invalid value '{value}' for field '{field}': expected {type_name}",
            field=field,
            value=value,
        )


class MixedCombinatorError(QueryValidationError):
    """Expression mixes ';' (AND) and '|' (OR)."""

    def __init__(self, expression: str):
        super().__init__(
            f"Filter expression '{expression}' mixes ';' (AND) and '|' (OR); "
            "use only one combinator per expression",
            value=expression,
        )
