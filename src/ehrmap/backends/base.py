"""Abstract backend interface for tabular patient data."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from ehrmap.core.types import PatientRecord, to_camel

if TYPE_CHECKING:
    from pathlib import Path


def text_columns() -> list[str]:
    """Return record column names (snake_case and camelCase) that must be read as text.

    Reading them as text keeps values such as ZIP codes with leading zeros intact.
    """
    names = PatientRecord.attribute_names()
    return sorted(set(names) | {to_camel(n) for n in names})


def normalize_rows(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Give every row the same keys, in first-seen order, filling gaps with None."""
    columns: dict[str, None] = {}
    for row in rows:
        for key in row:
            columns.setdefault(key, None)
    return [{key: row.get(key) for key in columns} for row in rows]


@runtime_checkable
class Backend(Protocol):
    """Abstract interface for tabular data backends.

    Implementations read patient record files into rows and write
    transformed documents back out.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the backend name (e.g., 'arrow', 'polars')."""
        ...

    @abstractmethod
    def read_parquet(self, path: str | Path) -> Any:
        """Read a Parquet file into the backend's native DataFrame type.

        Args:
            path: Path to the Parquet file.

        Returns:
            Backend-specific DataFrame.
        """
        ...

    @abstractmethod
    def read_csv(self, path: str | Path) -> Any:
        """Read a CSV file, keeping record columns as text.

        Args:
            path: Path to the CSV file.

        Returns:
            Backend-specific DataFrame.
        """
        ...

    @abstractmethod
    def write_parquet(self, df: Any, path: str | Path) -> None:
        """Write a DataFrame to a Parquet file.

        Args:
            df: Backend-specific DataFrame.
            path: Output path for the Parquet file.
        """
        ...

    @abstractmethod
    def to_rows(self, df: Any) -> list[dict[str, Any]]:
        """Convert a DataFrame to a list of row dictionaries."""
        ...

    @abstractmethod
    def from_rows(self, rows: list[dict[str, Any]]) -> Any:
        """Build a DataFrame from row dictionaries sharing the same keys."""
        ...


def read_table(backend: Backend, path: str | Path) -> Any:
    """Read a CSV or Parquet file based on its suffix.

    Raises:
        ValueError: If the suffix is neither .csv nor .parquet.
    """
    suffix = str(path).rsplit(".", 1)[-1].lower()
    if suffix == "csv":
        return backend.read_csv(path)
    if suffix in ("parquet", "pq"):
        return backend.read_parquet(path)
    raise ValueError(f"Unsupported input format: {path} (expected .csv or .parquet)")
