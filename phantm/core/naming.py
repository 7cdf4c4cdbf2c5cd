"""Tenant schema name derivation and identifier validation."""

import re
import uuid
from typing import Optional

from phantm.core.exceptions import ValidationError

SCHEMA_PREFIX = "account_"
SUFFIX_LENGTH = 8

ACCOUNT_NAME_PATTERN = re.compile(r"^account_[a-z0-9_]+$")
IDENTIFIER_PATTERN = re.compile(r"^[a-z_][a-z0-9_]*$")


def derive_name(custom_name: Optional[str] = None) -> str:
    """
    Return the schema name to provision.

    A custom name is returned unchanged when it matches ``account_[a-z0-9_]+``.
    Without one, a random lowercase hex suffix is generated. Generated names
    are not unique by construction; collisions surface later as conflicts.

    Raises:
        ValidationError: If the custom name does not match the pattern
    """
    if custom_name is not None:
        if not isinstance(custom_name, str) or not ACCOUNT_NAME_PATTERN.fullmatch(custom_name):
            raise ValidationError(
                f"Invalid schema name {custom_name!r}: custom schema names must start with "
                f"'{SCHEMA_PREFIX}' and contain only lowercase letters, numbers, and underscores"
            )
        return custom_name

    return f"{SCHEMA_PREFIX}{uuid.uuid4().hex[:SUFFIX_LENGTH]}"


def validate_identifier(name: str) -> str:
    """
    Check that ``name`` can be placed unescaped into DDL text.

    Raises:
        ValidationError: If the name is not a plain lowercase SQL identifier
    """
    if not isinstance(name, str) or not IDENTIFIER_PATTERN.fullmatch(name):
        raise ValidationError(
            f"Invalid schema name: {name!r}. Must start with a lowercase letter or underscore, "
            "and contain only lowercase letters, numbers, and underscores."
        )
    return name
