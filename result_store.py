# result_store.py
"""
Handoff between the upload phase and the display phase.

Results are stored as a JSON array. When they are read back the field
names may have drifted (other casings, synonyms), so every record is
re-normalized before display and records with nothing to show are dropped.
Also holds the CSV / GeoJSON exporters and the summary used by the views.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import pandas as pd

from hpi_utils import (
    CATEGORIES,
    RESULT_COLUMNS,
    EmptyResultsError,
    MalformedPayloadError,
    pick_first,
    parse_number,
)

logger = logging.getLogger(__name__)

ID_KEYS = ["id", "sample_id", "SampleID", "Location"]
LATITUDE_KEYS = ["latitude", "Latitude", "lat", "Lat"]
LONGITUDE_KEYS = ["longitude", "Longitude", "lon", "lng", "Lon", "Lng"]
HPI_KEYS = ["hpi", "HPI", "hpi_value", "hpiValue", "hpi_val"]
HEI_KEYS = ["hei", "HEI", "hei_value", "heiValue"]
CD_KEYS = ["cd", "Cd", "contamination_degree", "contaminationDegree"]
CATEGORY_KEYS = ["category", "Category", "status"]

UNKNOWN_CATEGORY = "Unknown"


def _first_present(record: Dict, keys: List[str]) -> Any:
    # first key whose value is not null; empty strings count as present
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


def normalize_record(record: Dict, index: int) -> Dict:
    """Resolve id, coordinates, indices and category; keep every original field."""
    record_id = _first_present(record, ID_KEYS)
    category = _first_present(record, CATEGORY_KEYS)

    normalized = dict(record)
    normalized.update({
        "id": f"sample-{index + 1}" if record_id is None else record_id,
        "latitude": pick_first(record, LATITUDE_KEYS),
        "longitude": pick_first(record, LONGITUDE_KEYS),
        "hpi": pick_first(record, HPI_KEYS),
        "hei": pick_first(record, HEI_KEYS),
        "cd": pick_first(record, CD_KEYS),
        "category": UNKNOWN_CATEGORY if category is None else category,
    })
    return normalized


def normalize_results(raw: List[Dict]) -> List[Dict]:
    if not isinstance(raw, list):
        raise MalformedPayloadError("Expected an array of stored results")
    out = []
    for i, record in enumerate(raw):
        if not isinstance(record, dict):
            # a bare value carries no fields; it can only fall out in filtering
            record = {}
        out.append(normalize_record(record, i))
    return out


def is_displayable(record: Dict) -> bool:
    """An id plus either both coordinates or at least one index value."""
    if not record.get("id"):
        return False
    has_coords = record.get("latitude") is not None and record.get("longitude") is not None
    has_index = any(record.get(k) is not None for k in ("hpi", "hei", "cd"))
    return has_coords or has_index


def filter_displayable(records: List[Dict]) -> List[Dict]:
    kept = [r for r in records if is_displayable(r)]
    dropped = len(records) - len(kept)
    if dropped:
        logger.info("Dropped %d stored results with no coordinates and no index values", dropped)
    return kept


def dump_results(results: List[Dict]) -> str:
    """Serialize computed results for the display phase. Non-finite numbers are refused."""
    try:
        return json.dumps(results, allow_nan=False)
    except ValueError as e:
        raise MalformedPayloadError(f"Results contain a non-finite number: {e}") from e


def load_results(payload: Optional[str]) -> List[Dict]:
    """
    Decode a stored JSON payload, re-normalize and filter it.

    Raises EmptyResultsError when there is no payload or nothing survives
    filtering, MalformedPayloadError when the payload is not a JSON array.
    """
    if payload is None or not str(payload).strip():
        raise EmptyResultsError("No stored results found. Please upload a file first.")
    try:
        parsed = json.loads(payload)
    except ValueError as e:
        raise MalformedPayloadError(f"Failed to parse stored results: {e}") from e
    if not isinstance(parsed, list):
        raise MalformedPayloadError("Expected an array of stored results")

    results = filter_displayable(normalize_results(parsed))
    if not results:
        raise EmptyResultsError("Stored results contain no displayable samples.")
    return results


# --- views & exports ---------------------------------------------------------

def search_results(results: List[Dict], query: Optional[str] = None,
                   category: Optional[str] = None) -> List[Dict]:
    """Case-insensitive id substring search plus an exact category filter."""
    rows = results
    if query and query.strip():
        q = query.strip().lower()
        rows = [r for r in rows if q in str(r.get("id", "")).lower()]
    if category:
        rows = [r for r in rows if r.get("category") == category]
    return rows


def summarize_results(results: List[Dict]) -> Dict:
    counts = {c: 0 for c in CATEGORIES}
    for r in results:
        if r.get("category") in counts:
            counts[r["category"]] += 1
    total = len(results)
    avg_hpi = sum(parse_number(r.get("hpi")) or 0.0 for r in results) / total if total else 0.0
    return {
        "total": total,
        "safe": counts["Safe"],
        "slightly_polluted": counts["Slightly Polluted"],
        "hazardous": counts["Hazardous"],
        "avg_hpi": round(avg_hpi, 2),
    }


def results_to_csv(results: List[Dict]) -> str:
    """Flat CSV with the summary columns only; missing values are empty cells."""
    df = pd.DataFrame([{c: r.get(c) for c in RESULT_COLUMNS} for r in results],
                      columns=RESULT_COLUMNS)
    return df.to_csv(index=False)


def results_to_geojson(results: List[Dict]) -> Dict:
    """Point features for every result with both coordinates."""
    features = []
    for r in results:
        lat, lon = r.get("latitude"), r.get("longitude")
        if lat is None or lon is None:
            continue
        features.append({
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": [lon, lat]},
            "properties": {k: r.get(k) for k in ("id", "hpi", "hei", "cd", "category")},
        })
    return {"type": "FeatureCollection", "features": features}
