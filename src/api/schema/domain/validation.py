"""Validation rules for logical names and SQL expressions.

Logical names never reach SQL text (physical names are hashed), so the
rules here guard usability and the reserved namespace rather than injection.
Default and check expressions are spliced into DDL verbatim and get a
coarse screen for statement chaining.
"""

from __future__ import annotations

from shared_kernel.exceptions import ValidationError
from shared_kernel.schema_primitives import SYSTEM_COLUMNS

SYSTEM_PREFIX = "_"
DEFAULT_MAX_NAME_LENGTH = 255

_FORBIDDEN_EXPRESSION_TOKENS = (";", "--", "/*", "*/")


def validate_logical_name(
    name: str | None,
    field: str = "logical_name",
    max_length: int = DEFAULT_MAX_NAME_LENGTH,
) -> str:
    """Validate a logical name and return it stripped of surrounding whitespace.

    Raises:
        ValidationError: If the name is empty, too long or uses the
            reserved system prefix
    """
    if name is None or not name.strip():
        raise ValidationError("must not be empty", field=field)

    name = name.strip()
    if len(name) > max_length:
        raise ValidationError(
            f"must be at most {max_length} characters", field=field
        )
    if name.startswith(SYSTEM_PREFIX):
        raise ValidationError(
            f"must not start with the reserved prefix '{SYSTEM_PREFIX}'",
            field=field,
        )
    return name


def validate_column_name(
    name: str | None,
    field: str = "logical_name",
    max_length: int = DEFAULT_MAX_NAME_LENGTH,
) -> str:
    """Validate a user column name, which must also avoid system column names.

    Raises:
        ValidationError: If the name is invalid or reserved
    """
    name = validate_logical_name(name, field=field, max_length=max_length)
    if name.lower() in SYSTEM_COLUMNS:
        raise ValidationError(f"'{name}' is a reserved system column", field=field)
    return name


def validate_expression(expression: str | None, field: str) -> str | None:
    """Screen a default or check expression before it is spliced into DDL.

    Raises:
        ValidationError: If the expression chains statements or hides comments
    """
    if expression is None:
        return None
    expression = expression.strip()
    if not expression:
        return None
    for token in _FORBIDDEN_EXPRESSION_TOKENS:
        if token in expression:
            raise ValidationError(f"must not contain '{token}'", field=field)
    return expression
