from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from typing import Optional

from .errors import MalformedIdentifier

STAGING_SUFFIX = "sparkGpTmp"

_NON_SCHEMA_TABLE = re.compile(r'"*([0-9a-zA-Z_]+)"*')
_SCHEMA_TABLE = re.compile(r'("*[0-9a-zA-Z_]+"*)\."*([0-9a-zA-Z_]+)"*')


@dataclass(frozen=True)
class CanonicalTableName:
    schema: Optional[str]
    raw_name: str

    @property
    def schema_prefix(self) -> str:
        return f"{self.schema}." if self.schema else ""


def extract_table_name(table_name: str) -> CanonicalTableName:
    """Split `name` or `schema.name` (components optionally double-quoted)."""
    text = table_name or ""
    match = _NON_SCHEMA_TABLE.fullmatch(text)
    if match:
        return CanonicalTableName(None, match.group(1))
    match = _SCHEMA_TABLE.fullmatch(text)
    if match:
        return CanonicalTableName(match.group(1), match.group(2))
    raise MalformedIdentifier(
        f"The table name {table_name!r} is illegal, you can set it with the dbtable option, such as "
        '"schemaname"."tableName" or just "tableName" with a default schema "public".'
    )


def staging_table_name(canonical: CanonicalTableName, token: Optional[str] = None) -> str:
    token = token or uuid.uuid4().hex
    return f'{canonical.schema_prefix}"{canonical.raw_name}_{token}_{STAGING_SUFFIX}"'


def unqualified_name(table_name: str) -> str:
    """Name used by `ALTER TABLE ... RENAME TO`, which never takes a schema."""
    return table_name.split(".")[-1]
