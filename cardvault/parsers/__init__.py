from cardvault.parsers.csv_import import detect_separator, map_headers, parse_rows

__all__ = [
    "detect_separator",
    "map_headers",
    "parse_rows",
]
