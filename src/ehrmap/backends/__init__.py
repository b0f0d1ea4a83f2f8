"""Backend implementations for ehrmap."""

from ehrmap.backends.arrow import ArrowBackend
from ehrmap.backends.base import Backend, normalize_rows, read_table
from ehrmap.backends.polars_backend import PolarsBackend

BACKENDS = {
    "arrow": ArrowBackend,
    "polars": PolarsBackend,
}

__all__ = [
    "BACKENDS",
    "ArrowBackend",
    "Backend",
    "PolarsBackend",
    "normalize_rows",
    "read_table",
]
