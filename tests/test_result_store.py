"""Tests for the JSON handoff, re-normalization of stored results and exports."""

from __future__ import annotations

import json

import pytest

from hpi_utils import EmptyResultsError, MalformedPayloadError, process_samples
from result_store import (
    dump_results,
    filter_displayable,
    load_results,
    normalize_results,
    results_to_csv,
    results_to_geojson,
    search_results,
    summarize_results,
)

NUMERIC_FIELDS = ("latitude", "longitude", "hpi", "hei", "cd")


def test_round_trip_through_handoff(sample_rows):
    results = process_samples(sample_rows)
    loaded = load_results(dump_results(results))
    assert [r["id"] for r in loaded] == ["S1", "S2", "S3"]
    for before, after in zip(results, loaded):
        for field in NUMERIC_FIELDS + ("category",):
            assert after[field] == before[field]
        assert after["metals"] == before["metals"]


def test_rehydration_is_idempotent(sample_rows):
    once = filter_displayable(normalize_results(json.loads(dump_results(process_samples(sample_rows)))))
    twice = filter_displayable(normalize_results(once))
    assert json.dumps([{k: r[k] for k in NUMERIC_FIELDS} for r in once]) == json.dumps(
        [{k: r[k] for k in NUMERIC_FIELDS} for r in twice]
    )


def test_normalize_resolves_drifted_field_names():
    raw = [{
        "sample_id": "W1",
        "Lat": "12.5",
        "Lng": "77",
        "HPI": "120.5",
        "heiValue": 3,
        "contamination_degree": "3",
        "status": "Slightly Polluted",
        "site": "well 4",
    }]
    [record] = normalize_results(raw)
    assert record["id"] == "W1"
    assert (record["latitude"], record["longitude"]) == (12.5, 77.0)
    assert (record["hpi"], record["hei"], record["cd"]) == (120.5, 3.0, 3.0)
    assert record["category"] == "Slightly Polluted"
    # original fields are kept alongside the resolved ones
    assert record["site"] == "well 4"
    assert record["HPI"] == "120.5"


def test_normalize_defaults_id_and_category():
    [first, second] = normalize_results([{"hpi": 10}, {"Location": "Well 7", "Category": "Safe"}])
    assert first["id"] == "sample-1"
    assert first["category"] == "Unknown"
    assert first["latitude"] is None
    assert second["id"] == "Well 7"
    assert second["category"] == "Safe"


def test_id_priority_prefers_id_over_synonyms():
    [record] = normalize_results([{"id": "A", "sample_id": "B", "hpi": 1}])
    assert record["id"] == "A"
    [record] = normalize_results([{"id": None, "sample_id": "B", "hpi": 1}])
    assert record["id"] == "B"


def test_filter_drops_records_without_geography_or_indices():
    records = normalize_results([
        {"id": "keep-coords", "latitude": 1, "longitude": 2},
        {"id": "keep-index", "cd": "0.5"},
        {"id": "drop-one-coord", "latitude": 1},
        {"id": "drop-bad-values", "hpi": "n/a", "lat": ""},
        {"id": "", "hpi": 50},
        "not a record",
    ])
    assert [r["id"] for r in filter_displayable(records)] == ["keep-coords", "keep-index"]


def test_normalize_rejects_non_list():
    with pytest.raises(MalformedPayloadError):
        normalize_results({"id": "S1"})


@pytest.mark.parametrize("payload", ['{"id": "S1"}', "not json", '"text"', "42"])
def test_load_results_malformed_payload(payload):
    with pytest.raises(MalformedPayloadError):
        load_results(payload)


@pytest.mark.parametrize("payload", [None, "", "[]", '[{"foo": 1}]'])
def test_load_results_empty(payload):
    with pytest.raises(EmptyResultsError):
        load_results(payload)


def test_summarize_results():
    results = [
        {"id": "a", "hpi": 50, "category": "Safe"},
        {"id": "b", "hpi": 150, "category": "Slightly Polluted"},
        {"id": "c", "hpi": 250, "category": "Hazardous"},
        {"id": "d", "hpi": None, "category": "Unknown"},
    ]
    assert summarize_results(results) == {
        "total": 4,
        "safe": 1,
        "slightly_polluted": 1,
        "hazardous": 1,
        "avg_hpi": 112.5,
    }
    assert summarize_results([])["avg_hpi"] == 0.0


def test_search_results():
    results = [
        {"id": "Well-A", "category": "Safe"},
        {"id": "well-b", "category": "Hazardous"},
        {"id": "River", "category": "Safe"},
    ]
    assert [r["id"] for r in search_results(results, "WELL")] == ["Well-A", "well-b"]
    assert [r["id"] for r in search_results(results, category="Safe")] == ["Well-A", "River"]
    assert [r["id"] for r in search_results(results, " well ", "Safe")] == ["Well-A"]
    assert search_results(results) == results


def test_results_to_csv_flattens_summary_columns():
    [result] = process_samples([{"id": "S1", "Cd": "0.002", "Pb": "0.025"}])
    lines = results_to_csv([result]).splitlines()
    assert lines[0] == "id,latitude,longitude,hpi,hei,cd,category"
    assert lines[1] == "S1,,,108.97,3.17,3.17,Slightly Polluted"


def test_results_to_csv_quotes_commas():
    text = results_to_csv([{"id": "Well, north", "latitude": 1.5, "longitude": 2.5,
                            "hpi": 1.0, "hei": 2.0, "cd": 2.0, "category": "Safe"}])
    assert text.splitlines()[1] == '"Well, north",1.5,2.5,1.0,2.0,2.0,Safe'


def test_results_to_geojson_only_includes_located_results(sample_rows):
    results = process_samples(sample_rows)
    geojson = results_to_geojson(results)
    assert geojson["type"] == "FeatureCollection"
    assert len(geojson["features"]) == 2
    feature = geojson["features"][0]
    assert feature["geometry"] == {"type": "Point", "coordinates": [77.1025, 28.7041]}
    assert feature["properties"] == {
        "id": "S1", "hpi": results[0]["hpi"], "hei": results[0]["hei"],
        "cd": results[0]["cd"], "category": results[0]["category"],
    }


def test_overflowing_sample_survives_the_handoff():
    results = process_samples([{"id": "S1", "Pb": "1e307"}])
    [loaded] = load_results(dump_results(results))
    assert loaded["hpi"] == results[0]["hpi"]
    assert loaded["category"] == "Hazardous"


def test_dump_results_refuses_non_finite_numbers():
    with pytest.raises(MalformedPayloadError):
        dump_results([{"id": "S1", "hpi": float("inf")}])
