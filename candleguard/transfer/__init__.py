"""CSV/JSON import and export of candles."""

from candleguard.transfer.import_export import (
    COLUMNS,
    export_csv,
    export_json,
    import_file,
    import_template,
    parse_csv,
    parse_datetime,
    parse_json,
)

__all__ = [
    "COLUMNS",
    "export_csv",
    "export_json",
    "import_file",
    "import_template",
    "parse_csv",
    "parse_datetime",
    "parse_json",
]
