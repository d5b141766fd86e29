"""``COPY ... TO`` rendering for table and query exports.

    >>> copy_statement("main.subjects", ExportOptions(format=ExportFormat.PARQUET, file_name="subjects.parquet"))
    "COPY main.subjects TO 'subjects.parquet' (FORMAT PARQUET, COMPRESSION ZSTD)"

A source that is a SELECT is wrapped in parentheses; anything else is used
as a table reference.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from tinyorm.errors import ValidationError
from tinyorm.literals import string_literal


class ExportFormat(str, Enum):
    CSV = "csv"
    JSON = "json"
    PARQUET = "parquet"


@dataclass(frozen=True)
class CsvOptions:
    header: bool = True
    delimiter: str = ","


@dataclass(frozen=True)
class JsonOptions:
    pretty: bool = False


@dataclass(frozen=True)
class ParquetOptions:
    compression: str = "ZSTD"


@dataclass(frozen=True)
class ExportOptions:
    format: ExportFormat | str
    file_name: str
    csv_options: CsvOptions = field(default_factory=CsvOptions)
    json_options: JsonOptions = field(default_factory=JsonOptions)
    parquet_options: ParquetOptions = field(default_factory=ParquetOptions)

    @property
    def export_format(self) -> ExportFormat:
        if isinstance(self.format, ExportFormat):
            return self.format
        try:
            return ExportFormat(str(self.format).lower())
        except ValueError:
            raise ValidationError(
                f"Unsupported format: {self.format}", field="format", value=self.format
            ) from None


def _format_clause(options: ExportOptions) -> str:
    fmt = options.export_format
    if fmt == ExportFormat.CSV:
        parts = ["FORMAT CSV"]
        if options.csv_options.header:
            parts.append("HEADER")
        parts.append(f"DELIMITER {string_literal(options.csv_options.delimiter)}")
    elif fmt == ExportFormat.JSON:
        parts = ["FORMAT JSON"]
        if options.json_options.pretty:
            parts.append("ARRAY true")
    else:
        parts = ["FORMAT PARQUET", f"COMPRESSION {options.parquet_options.compression.upper()}"]
    return ", ".join(parts)


def _is_query(source: str) -> bool:
    head = source.lstrip().split(None, 1)
    return bool(head) and head[0].upper() in ("SELECT", "WITH", "FROM", "VALUES")


def copy_statement(source: str, options: ExportOptions) -> str:
    """Render ``COPY <table | (query)> TO '<file>' (<format options>)``."""
    clause = _format_clause(options)
    target = f"({source.strip().rstrip(';')})" if _is_query(source) else source
    return f"COPY {target} TO {string_literal(options.file_name)} ({clause})"


__all__ = [
    "ExportFormat",
    "CsvOptions",
    "JsonOptions",
    "ParquetOptions",
    "ExportOptions",
    "copy_statement",
]
