"""Test configuration helpers."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture
def sample_rows():
    return [
        {"id": "S1", "latitude": "28.7041", "longitude": "77.1025", "Cd": "0.002", "Pb": "0.025"},
        {"id": "S2", "lat": 28.5355, "lng": 77.3910, "Cd": "0.01", "Pb": "0.04"},
        {"id": "S3", "Cd": "trace", "Pb": ""},
    ]
