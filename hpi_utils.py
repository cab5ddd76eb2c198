# hpi_utils.py
"""
HPI utility functions (reusable).

Provides:
- load_config(path) / standards_from_config(cfg)
- parse_number(value), pick_first(record, keys), coerce_concentration(value), coerce_sample(row, metals)
- detect_metal_columns(first_row)
- compute_hpi / compute_hei / compute_cd / categorize_water_quality
- process_samples(rows) and compute_indices_for_df(df)
"""

import json
import logging
import math
import sys
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Sequence

import pandas as pd

logger = logging.getLogger(__name__)


# Standard WHO guideline values (mg/L) for common heavy metals
WHO_STANDARDS: Mapping[str, float] = MappingProxyType({
    "As": 0.01,
    "Cd": 0.003,
    "Cr": 0.05,
    "Cu": 2.0,
    "Fe": 0.3,
    "Pb": 0.01,
    "Mn": 0.4,
    "Ni": 0.07,
    "Zn": 3.0,
    "Hg": 0.006,
})

# limit used for metals missing from the standards table
DEFAULT_LIMIT = 1.0

METADATA_KEYS = frozenset(["id", "latitude", "longitude", "lat", "lon", "lng"])
LATITUDE_KEYS = ["latitude", "Latitude", "lat"]
LONGITUDE_KEYS = ["longitude", "Longitude", "lon", "lng"]

SAFE = "Safe"
SLIGHTLY_POLLUTED = "Slightly Polluted"
HAZARDOUS = "Hazardous"
CATEGORIES = (SAFE, SLIGHTLY_POLLUTED, HAZARDOUS)

RESULT_COLUMNS = ["id", "latitude", "longitude", "hpi", "hei", "cd", "category"]


class HpiError(Exception):
    """Base class for batch-level failures the caller has to act on."""


class MalformedPayloadError(HpiError, ValueError):
    """Top-level input is not a list of rows (or not a JSON array)."""


class EmptyResultsError(HpiError):
    """Nothing usable left to display; the user should upload again."""


# --- configuration -----------------------------------------------------------

def load_config(path: str = "config.json") -> Dict:
    """Load config JSON (throws FileNotFoundError if missing)."""
    with open(path, "r", encoding="utf-8") as f:
        cfg = json.load(f)
    return cfg


def standards_from_config(cfg: Optional[Dict]) -> Mapping[str, float]:
    """
    Build the read-only standards table for a run.

    Values in cfg["standard_values"] override or extend WHO_STANDARDS.
    Non-positive or unparsable limits are ignored with a warning.
    """
    table = dict(WHO_STANDARDS)
    for metal, raw in (cfg or {}).get("standard_values", {}).items():
        limit = parse_number(raw)
        if limit is None or limit <= 0:
            logger.warning("Ignoring invalid standard value for %s: %r", metal, raw)
            continue
        table[metal] = limit
    return MappingProxyType(table)


# --- numeric coercion --------------------------------------------------------

def parse_number(value: Any) -> Optional[float]:
    """Tolerant float parser. Returns None for missing, empty or unparsable input."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None
    text = str(value).strip()
    # float() accepts "1_000"; spreadsheet data never means that
    if not text or "_" in text:
        return None
    try:
        number = float(text)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def pick_first(record: Mapping[str, Any], keys: Sequence[str]) -> Optional[float]:
    """Return the first value among `keys` (in priority order) that parses as a number."""
    if not record:
        return None
    for key in keys:
        if key in record:
            number = parse_number(record[key])
            if number is not None:
                return number
    return None


class Coerced(NamedTuple):
    """A concentration after coercion.

    status is "valid" for a parsed reading, "missing" when the cell was
    absent/empty and "invalid" when it held something unparsable such as
    "trace". Both of the latter carry value 0.0.
    """

    value: float
    status: str

    @property
    def defaulted(self) -> bool:
        return self.status != "valid"


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()


def coerce_concentration(value: Any) -> Coerced:
    """Coerce a metal cell; unusable values become 0.0 with a status saying why."""
    number = parse_number(value)
    if number is not None:
        return Coerced(number, "valid")
    if _is_blank(value):
        return Coerced(0.0, "missing")
    return Coerced(0.0, "invalid")


def lookup_limit(metal: str, standards: Mapping[str, float] = WHO_STANDARDS) -> float:
    """Permissible limit for `metal`, DEFAULT_LIMIT when the table has none."""
    return standards.get(metal) or DEFAULT_LIMIT


# --- schema inference --------------------------------------------------------

def detect_metal_columns(first_row: Mapping[str, Any]) -> List[str]:
    """
    Metal columns are every column of the first row that is not metadata
    (id / coordinates, case-insensitive). Order follows the row.
    """
    return [col for col in first_row if str(col).lower() not in METADATA_KEYS]


# --- index calculations ------------------------------------------------------

def coerce_sample(sample: Mapping[str, Any], metals: Sequence[str]) -> Dict[str, Coerced]:
    """Coerce every metal cell of a row once; the indices are computed from this."""
    return {metal: coerce_concentration(sample.get(metal)) for metal in metals}


def _ratios(readings, standards):
    for metal, reading in readings.items():
        yield reading.value, lookup_limit(metal, standards)


def hpi_from_readings(readings: Mapping[str, Coerced],
                      standards: Mapping[str, float] = WHO_STANDARDS) -> float:
    """
    Heavy Metal Pollution Index:
      Wi = 1 / Si
      Qi = (Mi / Si) * 100
      HPI = sum(Wi * Qi) / sum(Wi)   (0 when there are no metals)
    """
    weighted_sum = 0.0
    total_weight = 0.0
    for concentration, limit in _ratios(readings, standards):
        weight = 1.0 / limit
        sub_index = (concentration / limit) * 100.0
        weighted_sum += weight * sub_index
        total_weight += weight
    return weighted_sum / total_weight if total_weight > 0 else 0.0


def hei_from_readings(readings: Mapping[str, Coerced],
                      standards: Mapping[str, float] = WHO_STANDARDS) -> float:
    """Heavy Metal Evaluation Index: HEI = sum(Mi / Si)."""
    return sum(c / limit for c, limit in _ratios(readings, standards))


def cd_from_readings(readings: Mapping[str, Coerced],
                     standards: Mapping[str, float] = WHO_STANDARDS) -> float:
    """Contamination degree. Same sum of ratios as HEI."""
    total = 0.0
    for concentration, limit in _ratios(readings, standards):
        total += concentration / limit
    return total


def compute_hpi(sample: Mapping[str, Any], metals: Sequence[str],
                standards: Mapping[str, float] = WHO_STANDARDS) -> float:
    return hpi_from_readings(coerce_sample(sample, metals), standards)


def compute_hei(sample: Mapping[str, Any], metals: Sequence[str],
                standards: Mapping[str, float] = WHO_STANDARDS) -> float:
    return hei_from_readings(coerce_sample(sample, metals), standards)


def compute_cd(sample: Mapping[str, Any], metals: Sequence[str],
               standards: Mapping[str, float] = WHO_STANDARDS) -> float:
    return cd_from_readings(coerce_sample(sample, metals), standards)


def categorize_water_quality(hpi: float) -> str:
    """HPI < 100 => Safe; 100 <= HPI < 200 => Slightly Polluted; else Hazardous."""
    if hpi < 100.0:
        return SAFE
    if hpi < 200.0:
        return SLIGHTLY_POLLUTED
    return HAZARDOUS


def _format_id(value: Any) -> Optional[str]:
    if _is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        # pandas reads integer ids from sparse columns as floats
        return str(int(value))
    text = str(value)
    return text or None


def _finite_index(name: str, value: float) -> float:
    # huge concentrations overflow the sums; JSON has no Infinity
    if math.isnan(value):
        logger.warning("%s is not a number (mixed overflowing readings), stored as 0", name)
        return 0.0
    if math.isinf(value):
        logger.warning("%s overflowed, clamped to the largest float", name)
        return math.copysign(sys.float_info.max, value)
    return value


def compute_indices_for_sample(sample: Mapping[str, Any], metals: Sequence[str], index: int,
                               standards: Mapping[str, float] = WHO_STANDARDS,
                               readings: Optional[Mapping[str, Coerced]] = None) -> Dict:
    """Build the result record for one row. `index` is the 0-based row position."""
    if readings is None:
        readings = coerce_sample(sample, metals)
    hpi = round(_finite_index("HPI", hpi_from_readings(readings, standards)), 2)
    hei = round(_finite_index("HEI", hei_from_readings(readings, standards)), 2)
    cd = round(_finite_index("CD", cd_from_readings(readings, standards)), 2)

    return {
        "id": _format_id(sample.get("id")) or f"Sample {index + 1}",
        "latitude": pick_first(sample, LATITUDE_KEYS),
        "longitude": pick_first(sample, LONGITUDE_KEYS),
        "hpi": hpi,
        "hei": hei,
        "cd": cd,
        # derived from the rounded value so stored records stay consistent
        "category": categorize_water_quality(hpi),
        "metals": {m: r.value for m, r in readings.items()},
    }


# --- batch processing --------------------------------------------------------

def _as_rows(rows) -> List[Mapping[str, Any]]:
    if isinstance(rows, pd.DataFrame):
        return rows.to_dict(orient="records")
    if rows is None or isinstance(rows, (str, bytes, Mapping)):
        raise MalformedPayloadError(f"Expected a list of sample rows, got {type(rows).__name__}")
    try:
        rows = list(rows)
    except TypeError:
        raise MalformedPayloadError(f"Expected a list of sample rows, got {type(rows).__name__}")
    for i, row in enumerate(rows):
        if not isinstance(row, Mapping):
            raise MalformedPayloadError(f"Row {i + 1} is not a record: {row!r}")
    return rows


def process_samples(rows, standards: Mapping[str, float] = WHO_STANDARDS) -> List[Dict]:
    """
    Main function: compute HPI, HEI, CD and category for every row.

    The metal columns are inferred once from the first row and applied to
    every row; metals missing from a row count as zero. Returns [] for an
    empty dataset.
    """
    rows = _as_rows(rows)
    if not rows:
        return []

    metals = detect_metal_columns(rows[0])
    if not metals:
        logger.warning("No metal columns detected; every index will be 0")
    logger.debug("Metal columns: %s", metals)

    results = []
    for i, row in enumerate(rows):
        readings = coerce_sample(row, metals)
        defaulted = [m for m, r in readings.items() if r.defaulted]
        if defaulted:
            logger.debug("Row %d: no usable reading for %s, counted as 0", i + 1, defaulted)
        results.append(compute_indices_for_sample(row, metals, i, standards, readings))

    logger.info("Processed %d samples over %d metal columns", len(results), len(metals))
    return results


def results_to_frame(results: List[Dict]) -> pd.DataFrame:
    """Flatten result records: summary columns first, then one column per metal."""
    records = []
    for r in results:
        flat = {col: r.get(col) for col in RESULT_COLUMNS}
        for metal, value in (r.get("metals") or {}).items():
            # a metal named like a summary column (e.g. "cd") must not hide the index
            flat[f"metal_{metal}" if metal in flat else metal] = value
        records.append(flat)
    return pd.DataFrame(records, columns=None if records else RESULT_COLUMNS)


def compute_indices_for_df(df: pd.DataFrame,
                           standards: Mapping[str, float] = WHO_STANDARDS) -> pd.DataFrame:
    """DataFrame in, DataFrame out wrapper around process_samples."""
    return results_to_frame(process_samples(df, standards))
