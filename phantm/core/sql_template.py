"""
SQL template rendering and structural checks.

A template is plain SQL text in which every namespace-qualified identifier
uses the ``{{SCHEMA_NAME}}`` placeholder. The checks here are keyword and
pattern counts only; nothing in this module parses SQL.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from phantm.core.exceptions import TemplateError, ValidationError
from phantm.core.naming import validate_identifier

PLACEHOLDER = "{{SCHEMA_NAME}}"

REQUIRED_KEYWORDS = ("CREATE SCHEMA", "CREATE TYPE", "CREATE TABLE")

_AUTHORIZATION_RE = re.compile(r"AUTHORIZATION\s+(\w+)", re.IGNORECASE)
_TYPE_RE = re.compile(r"CREATE\s+TYPE\b", re.IGNORECASE)
_TABLE_RE = re.compile(r"CREATE\s+TABLE\b", re.IGNORECASE)
_INDEX_RE = re.compile(r"CREATE\s+INDEX\b", re.IGNORECASE)
_FOREIGN_KEY_RE = re.compile(r"FOREIGN\s+KEY\b", re.IGNORECASE)
_TABLE_NAME_RE = re.compile(
    r"CREATE\s+TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?"
    r"(?:\{\{SCHEMA_NAME\}\}\.|\"?\w+\"?\.)?\"?(\w+)",
    re.IGNORECASE,
)


@dataclass
class SchemaAnalysis:
    """Statement counts found in a template or rendered script."""
    type_count: int = 0
    table_count: int = 0
    index_count: int = 0
    foreign_key_count: int = 0
    table_names: List[str] = field(default_factory=list)
    authorization: Optional[str] = None


def load_template(path: Union[str, Path]) -> str:
    """Read a template file from disk."""
    try:
        return Path(path).expanduser().read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise TemplateError(f"Failed to read schema template from {path}: {e}") from e


def render(template: str, schema_name: str) -> str:
    """
    Substitute the schema name for every placeholder occurrence.

    Raises:
        TemplateError: If the name is not a valid identifier, the template has
            no placeholder, or a placeholder survives substitution
    """
    try:
        validate_identifier(schema_name)
    except ValidationError as e:
        raise TemplateError(str(e)) from e

    if PLACEHOLDER not in template:
        raise TemplateError(f"Template does not contain the {PLACEHOLDER} placeholder")

    sql = template.replace(PLACEHOLDER, schema_name)

    if PLACEHOLDER in sql:
        raise TemplateError(
            f"Failed to replace all schema name placeholders for '{schema_name}'"
        )

    return sql


def analyze(sql: str) -> SchemaAnalysis:
    """Count types, tables, indexes and foreign keys. Never raises."""
    sql = sql or ""
    auth_match = _AUTHORIZATION_RE.search(sql)

    return SchemaAnalysis(
        type_count=len(_TYPE_RE.findall(sql)),
        table_count=len(_TABLE_RE.findall(sql)),
        index_count=len(_INDEX_RE.findall(sql)),
        foreign_key_count=len(_FOREIGN_KEY_RE.findall(sql)),
        table_names=[m.group(1) for m in _TABLE_NAME_RE.finditer(sql)],
        authorization=auth_match.group(1) if auth_match else None,
    )


def validate_structure(sql: str) -> None:
    """
    Coarse sanity gate: schema, type and table creation must all appear.

    Raises:
        TemplateError: If the text is empty or any required keyword is missing
    """
    if not sql or not sql.strip():
        raise TemplateError("SQL content is empty")

    missing = [
        keyword for keyword in REQUIRED_KEYWORDS
        if not re.search(r"\s+".join(keyword.split()) + r"\b", sql, re.IGNORECASE)
    ]
    if missing:
        raise TemplateError(
            f"SQL template is missing required keywords: {', '.join(missing)}"
        )
