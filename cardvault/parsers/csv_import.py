"""
Parser for uploaded card lists.

Supports:
- Exports with a header row (ManaBox, Deckbox, MTGGoldfish style), in any
  column order, separated by tab, comma or semicolon
- Headerless "name[,quantity[,set]]" lines
- Simple "4 Lightning Bolt" / "4x Lightning Bolt" lines
- "#" comment lines and blank lines, which are ignored

Parsing is tolerant: a row only needs a name, unparseable numbers are
dropped rather than rejected.
"""

import csv
import re

from cardvault.models.card import ParsedRow

SEPARATORS = ("\t", ",", ";")

# Pattern: "4 Lightning Bolt" or "4x Lightning Bolt"
SIMPLE_PATTERN = re.compile(r"^(\d+)x?\s+(.+)$", re.IGNORECASE)

# Normalized header -> ParsedRow field
HEADER_ALIASES: dict[str, str] = {
    "name": "name",
    "card": "name",
    "card name": "name",
    "quantity": "quantity",
    "qty": "quantity",
    "count": "quantity",
    "set code": "set_code",
    "set_code": "set_code",
    "setcode": "set_code",
    "edition": "set_code",
    "set": "set_code",
    "set name": "set_name",
    "set_name": "set_name",
    "setname": "set_name",
    "collector number": "collector_number",
    "collector_number": "collector_number",
    "collectornumber": "collector_number",
    "card number": "collector_number",
    "number": "collector_number",
    "rarity": "rarity",
    "condition": "condition",
    "language": "language",
    "lang": "language",
    "multiverseid": "multiverse_id",
    "multiverse id": "multiverse_id",
    "multiverse_id": "multiverse_id",
    "scryfallid": "provider_id",
    "scryfall id": "provider_id",
    "scryfall_id": "provider_id",
}


def detect_separator(line: str) -> str:
    """First of tab, comma, semicolon present in the line (comma by default)."""
    for separator in SEPARATORS:
        if separator in line:
            return separator
    return ","


def split_line(line: str, separator: str) -> list[str]:
    """Split one line, honoring double-quoted fields."""
    fields = next(csv.reader([line], delimiter=separator, skipinitialspace=True), [])
    return [field.strip() for field in fields]


def _header_field(header: str) -> str | None:
    normalized = " ".join(header.lower().split())
    field = HEADER_ALIASES.get(normalized)
    if field is None and "name" in normalized and "set" not in normalized:
        return "name"
    return field


def looks_like_header(cells: list[str]) -> bool:
    """A name column plus a quantity or set column, each matched as a whole cell."""
    fields = {_header_field(cell) for cell in cells}
    return "name" in fields and bool(fields & {"quantity", "set_code", "set_name"})


def map_headers(headers: list[str]) -> dict[str, int]:
    """
    Map ParsedRow fields to column indexes.

    Exact aliases win; otherwise any header containing "name" (but not
    "set") is taken as the card name column. First occurrence wins.
    """
    columns: dict[str, int] = {}
    for index, header in enumerate(headers):
        field = _header_field(header)
        if field is not None and field not in columns:
            columns[field] = index
    columns.setdefault("name", 0)
    return columns


def _positive_int(value: str | None) -> int | None:
    if not value:
        return None
    try:
        number = int(value)
    except ValueError:
        return None
    return number if number > 0 else None


def _cell(parts: list[str], columns: dict[str, int], field: str) -> str | None:
    index = columns.get(field)
    if index is None or index >= len(parts):
        return None
    return parts[index] or None


def _row_from_columns(parts: list[str], columns: dict[str, int]) -> ParsedRow | None:
    name = _cell(parts, columns, "name")
    if not name:
        return None
    return ParsedRow(
        name=name,
        quantity=_positive_int(_cell(parts, columns, "quantity")),
        set_code=_cell(parts, columns, "set_code"),
        set_name=_cell(parts, columns, "set_name"),
        collector_number=_cell(parts, columns, "collector_number"),
        rarity=_cell(parts, columns, "rarity"),
        condition=_cell(parts, columns, "condition"),
        language=_cell(parts, columns, "language"),
        multiverse_id=_positive_int(_cell(parts, columns, "multiverse_id")),
        provider_id=_cell(parts, columns, "provider_id"),
    )


def _row_without_header(line: str, separator: str) -> ParsedRow | None:
    if separator not in line:
        match = SIMPLE_PATTERN.match(line)
        if match:
            return ParsedRow(name=match.group(2).strip(), quantity=_positive_int(match.group(1)))

    parts = split_line(line, separator)
    name = parts[0] if parts else ""
    if not name:
        return None
    return ParsedRow(
        name=name,
        quantity=_positive_int(parts[1]) if len(parts) >= 2 else None,
        set_code=(parts[2] or None) if len(parts) >= 3 else None,
    )


def parse_rows(text: str) -> list[ParsedRow]:
    """
    Parse an uploaded card list.

    Blank lines and `#` comments are dropped first. The separator is detected
    from the first remaining line, which is a header when its cells name a
    card column together with a quantity or set column.

    Returns:
        One ParsedRow per data line with a non-empty name, in input order
    """
    lines = [line.strip() for line in text.splitlines()]
    lines = [line for line in lines if line and not line.startswith("#")]
    if not lines:
        return []

    separator = detect_separator(lines[0])
    columns: dict[str, int] | None = None
    first = split_line(lines[0], separator)
    if looks_like_header(first):
        columns = map_headers(first)
        lines = lines[1:]

    rows: list[ParsedRow] = []
    for line in lines:
        if columns is not None:
            row = _row_from_columns(split_line(line, separator), columns)
        else:
            row = _row_without_header(line, separator)
        if row is not None:
            rows.append(row)
    return rows
