"""Polars backend implementation."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import polars as pl


class PolarsBackend:
    """Polars-based backend for patient record files.

    Best for: Fast in-memory processing of CSV extracts.
    """

    @property
    def name(self) -> str:
        """Return the backend name."""
        return "polars"

    def read_parquet(self, path: str | Path) -> pl.DataFrame:
        """Read a Parquet file into a Polars DataFrame."""
        return pl.read_parquet(str(path))

    def read_csv(self, path: str | Path) -> pl.DataFrame:
        """Read a CSV file into a Polars DataFrame with every column as text."""
        return pl.read_csv(str(path), infer_schema_length=0)

    def write_parquet(self, df: pl.DataFrame, path: str | Path) -> None:
        """Write a Polars DataFrame to a Parquet file."""
        df.write_parquet(str(path))

    def to_rows(self, df: pl.DataFrame) -> list[dict[str, Any]]:
        return df.to_dicts()

    def from_rows(self, rows: list[dict[str, Any]]) -> pl.DataFrame:
        return pl.from_dicts(rows, infer_schema_length=None)
