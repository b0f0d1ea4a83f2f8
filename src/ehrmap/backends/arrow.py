"""PyArrow backend implementation."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pyarrow as pa
import pyarrow.csv as csv
import pyarrow.parquet as pq

from ehrmap.backends.base import text_columns


class ArrowBackend:
    """PyArrow-based backend for patient record files.

    Best for: Large batch exports, Parquet/Arrow IPC files.
    """

    @property
    def name(self) -> str:
        """Return the backend name."""
        return "arrow"

    def read_parquet(self, path: str | Path) -> pa.Table:
        """Read a Parquet file into a PyArrow Table."""
        return pq.read_table(str(path))

    def read_csv(self, path: str | Path) -> pa.Table:
        """Read a CSV file into a PyArrow Table.

        Record columns are typed as strings and empty cells become nulls.
        """
        convert_options = csv.ConvertOptions(
            column_types={name: pa.string() for name in text_columns()},
            strings_can_be_null=True,
        )
        return csv.read_csv(str(path), convert_options=convert_options)

    def write_parquet(self, df: pa.Table, path: str | Path) -> None:
        """Write a PyArrow Table to a Parquet file."""
        pq.write_table(df, str(path))

    def to_rows(self, df: pa.Table) -> list[dict[str, Any]]:
        return df.to_pylist()

    def from_rows(self, rows: list[dict[str, Any]]) -> pa.Table:
        return pa.Table.from_pylist(rows)
