"""Table structure tracking and per-column masking of INSERT statements."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

from .config import (
    EMAIL_ALGORITHM,
    INSERT_RE,
    PHONE_ALGORITHM,
    TUPLE_RE,
    MaskOptions,
    Settings,
    TableConfig,
)
from .masking import Masker

_CREATE_TABLE_RE = re.compile(r"CREATE TABLE `(.+?)`")
_FIELD_RE = re.compile(r"`(.+?)`[\t\n\f\r ]+([^\t\n\f\r ,]+)")
_END_TABLE_RE = re.compile(r"\)[^)]*;")


@dataclass
class FieldInfo:
    """One column of a table; ``position`` is 1-based."""

    name: str
    type: str
    position: int


@dataclass
class TableInfo:
    """A table name and its columns in declaration order."""

    name: str
    fields: list[FieldInfo] = field(default_factory=list)

    def position_of(self, field_name: str) -> Optional[int]:
        """Return the 0-based position of the first column with this name."""
        for info in self.fields:
            if info.name == field_name:
                return info.position - 1
        return None


class TableAnalyzer:
    """Collects table structures from the CREATE TABLE statements of a dump."""

    def __init__(self) -> None:
        self._tables: dict[str, TableInfo] = {}
        self._current: Optional[TableInfo] = None

    def parse_line(self, line: str) -> None:
        """Feed one dump line, recording any table definition it belongs to."""
        line = line.strip()

        match = _CREATE_TABLE_RE.search(line)
        if match:
            self._current = TableInfo(name=match.group(1))
            return

        if self._current is None:
            return

        match = _FIELD_RE.search(line)
        if match:
            fields = self._current.fields
            fields.append(
                FieldInfo(
                    name=match.group(1),
                    type=match.group(2),
                    position=len(fields) + 1,
                )
            )
            return

        if _END_TABLE_RE.search(line):
            self._tables[self._current.name] = self._current
            self._current = None

    def get(self, table_name: str) -> Optional[TableInfo]:
        """Return the structure of a completely parsed table, or None."""
        return self._tables.get(table_name)

    def tables(self) -> dict[str, TableInfo]:
        """Return a copy of the mapping of all completely parsed tables."""
        return dict(self._tables)


def parse_tuple(tup: str) -> list[str]:
    """Split a parenthesised value tuple on commas outside single quotes.

    A backslash escapes the next character and is itself dropped.
    """
    tup = tup.removeprefix("(").removesuffix(")")

    values: list[str] = []
    current: list[str] = []
    in_quotes = False
    escape = False
    for char in tup:
        if escape:
            current.append(char)
            escape = False
        elif char == "\\":
            escape = True
        elif char == "'":
            in_quotes = not in_quotes
            current.append(char)
        elif char == "," and not in_quotes:
            values.append("".join(current))
            current = []
        else:
            current.append(char)

    if current:
        values.append("".join(current))
    return values


def _column_positions(table_info: TableInfo, names: list[str]) -> list[int]:
    positions = {
        pos for pos in (table_info.position_of(name) for name in names) if pos is not None
    }
    return sorted(positions)


def process_dump_line(
    line: str,
    options: MaskOptions,
    masker: Masker,
    analyzer: TableAnalyzer,
    settings: Settings,
) -> str:
    """Mask the configured columns of an INSERT statement.

    Lines that are not INSERTs into a configured, already parsed table, or in
    which nothing changes, are returned as they are.
    """
    match = INSERT_RE.search(line)
    if not match:
        return line
    table_name, values_part = match.group(1), match.group(2)

    table_config: Optional[TableConfig] = settings.processing_tables.get(table_name)
    if table_config is None:
        return line
    table_info = analyzer.get(table_name)
    if table_info is None:
        return line

    mask_emails = options.email_algorithm == EMAIL_ALGORITHM
    mask_phones = options.phone_algorithm == PHONE_ALGORITHM
    email_positions = _column_positions(table_info, table_config.email) if mask_emails else []
    phone_positions = _column_positions(table_info, table_config.phone) if mask_phones else []

    modified = False

    def mask_columns(values: list[str], positions: list[int], pattern, mask) -> None:
        nonlocal modified
        for pos in positions:
            if pos >= len(values) or values[pos] in ("", "NULL"):
                continue
            masked = pattern.sub(lambda m: mask(m.group(0)), values[pos])
            if masked != values[pos]:
                values[pos] = masked
                modified = True

    def rebuild(tuple_match: re.Match[str]) -> str:
        original = tuple_match.group(0)
        values = parse_tuple(original)
        if not values:
            return original
        if mask_emails:
            mask_columns(values, email_positions, settings.email_regex, masker.mask_email)
        if mask_phones:
            mask_columns(values, phone_positions, settings.phone_regex, masker.mask_phone)
        return "(" + ",".join(values) + ")"

    modified_values = TUPLE_RE.sub(rebuild, values_part)
    if not modified:
        return line
    return f"INSERT INTO `{table_name}` VALUES {modified_values}"