# sample_io.py
"""
Reading uploaded sample files and checking they look like metal data.

CSV goes through pandas.read_csv, Excel (first sheet) through
pandas.read_excel. Validation only looks at the header of the first row.
"""

import io
import logging
import os
import zipfile
from typing import Any, Dict, List, NamedTuple, Optional

import pandas as pd

from hpi_utils import HpiError

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
MAX_PREVIEW_ROWS = 5
MAX_PREVIEW_HEADERS = 20

LATITUDE_FIELDS = ["latitude", "lat"]
LONGITUDE_FIELDS = ["longitude", "lon", "lng"]
METAL_CANDIDATES = ["cd", "pb", "cr", "ni", "as", "cu", "zn", "hg", "fe", "mn"]

SAMPLE_CSV = """id,latitude,longitude,Cd,Pb,Cr,Ni,As,Cu,Zn,Hg
S1,28.7041,77.1025,0.002,0.025,0.05,0.01,0.002,0.1,0.2,0.0001
S2,28.5355,77.3910,0.01,0.04,0.1,0.02,0.005,0.2,0.5,0.0002
S3,27.1767,78.0081,0.05,0.12,0.3,0.1,0.01,0.4,0.8,0.0005
"""


class SchemaValidationError(HpiError, ValueError):
    def __init__(self, errors: List[str], warnings: Optional[List[str]] = None):
        super().__init__(" ".join(errors))
        self.errors = errors
        self.warnings = warnings or []


class FileTooLargeError(HpiError, ValueError):
    pass


class UnsupportedFormatError(HpiError, ValueError):
    pass


class UnreadableFileError(HpiError, ValueError):
    """The file has a supported extension but its contents cannot be parsed."""


class ValidationResult(NamedTuple):
    ok: bool
    errors: List[str]
    warnings: List[str]


def validate_schema(rows: List[Dict[str, Any]]) -> ValidationResult:
    """
    Check the first row's headers:
    - no rows at all -> error
    - no latitude or longitude column -> warning (map disabled)
    - no common metal abbreviation among the headers -> error
    """
    errors, warnings = [], []
    if not rows:
        errors.append("No rows found in the file.")
        return ValidationResult(False, errors, warnings)

    headers = [str(h).strip().lower() for h in rows[0].keys()]

    has_lat = any(h in LATITUDE_FIELDS for h in headers)
    has_lon = any(h in LONGITUDE_FIELDS for h in headers)
    if not has_lat or not has_lon:
        warnings.append(
            "No latitude/longitude columns detected. Geo-visualization will be unavailable."
        )

    if not any(h in METAL_CANDIDATES for h in headers):
        errors.append(
            "No metal concentration columns detected. Please include at least one metal "
            "column (e.g., Cd, Pb, Cr, Ni, As, Cu, Zn, Hg)."
        )

    return ValidationResult(not errors, errors, warnings)


def _file_extension(name: str) -> str:
    return os.path.splitext(name)[1].lstrip(".").lower()


def read_samples(source, filename: Optional[str] = None,
                 max_size: int = MAX_FILE_SIZE) -> pd.DataFrame:
    """
    Read a CSV/XLSX/XLS file into a DataFrame.

    `source` is a path or a file-like object (e.g. a Streamlit upload);
    `filename` supplies the extension when source has no usable name.
    """
    name = filename or getattr(source, "name", None) or str(source)
    ext = _file_extension(name)
    if ext not in ("csv", "xlsx", "xls"):
        raise UnsupportedFormatError("Unsupported file format. Please upload CSV or Excel files.")

    if isinstance(source, (str, os.PathLike)):
        size = os.path.getsize(source)
    elif hasattr(source, "size"):
        size = source.size
    else:
        size = None
    if size is not None and size > max_size:
        raise FileTooLargeError(
            f"File too large. Maximum allowed size is {max_size // (1024 * 1024)}MB."
        )

    try:
        if ext == "csv":
            df = pd.read_csv(source, skip_blank_lines=True)
        else:
            df = pd.read_excel(source, sheet_name=0)
    except pd.errors.EmptyDataError as e:
        raise SchemaValidationError(["No rows found in the file."]) from e
    except (pd.errors.ParserError, ValueError, zipfile.BadZipFile) as e:
        raise UnreadableFileError(f"Could not read {os.path.basename(name)}: {e}") from e
    # drop rows that are entirely empty (trailing separators in spreadsheets)
    df = df.dropna(how="all")
    logger.info("Read %d rows, %d columns from %s", len(df), len(df.columns), name)
    return df


def load_rows(source, filename: Optional[str] = None,
              max_size: int = MAX_FILE_SIZE) -> List[Dict[str, Any]]:
    """Read and validate; returns plain row dicts ready for process_samples."""
    rows = read_samples(source, filename, max_size).to_dict(orient="records")
    result = validate_schema(rows)
    for w in result.warnings:
        logger.warning(w)
    if not result.ok:
        raise SchemaValidationError(result.errors, result.warnings)
    return rows


def preview_headers(rows: List[Dict[str, Any]], limit: int = MAX_PREVIEW_HEADERS) -> List[str]:
    return list(rows[0].keys())[:limit] if rows else []


def preview_rows(rows: List[Dict[str, Any]], n: int = MAX_PREVIEW_ROWS) -> List[Dict[str, Any]]:
    return rows[:n]


def sample_csv_buffer() -> io.StringIO:
    return io.StringIO(SAMPLE_CSV)


def write_sample_csv(path: str = "sample_input.csv") -> str:
    """Write the downloadable input template and return its path."""
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(SAMPLE_CSV)
    return path
