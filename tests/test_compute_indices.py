"""Tests for the command line script."""

from __future__ import annotations

import json

import compute_indices
from result_store import load_results


def test_main_writes_outputs(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "wells.csv").write_text(
        "id,lat,lon,Pb,Cd,U\nW1,10.5,20.25,0.02,0.001,0.5\nW2,,,0.001,,\n", encoding="utf-8"
    )

    assert compute_indices.main(["wells.csv"]) == 0

    out = capsys.readouterr().out
    assert "Metal columns detected: ['Pb', 'Cd', 'U']" in out
    assert "['U']" in out

    csv_lines = (tmp_path / "wells_with_indices.csv").read_text(encoding="utf-8").splitlines()
    assert csv_lines[0] == "id,latitude,longitude,hpi,hei,cd,category"
    assert len(csv_lines) == 3

    geojson = json.loads((tmp_path / "wells_with_indices.geojson").read_text(encoding="utf-8"))
    assert [f["properties"]["id"] for f in geojson["features"]] == ["W1"]
    assert geojson["features"][0]["geometry"]["coordinates"] == [20.25, 10.5]

    results = load_results((tmp_path / "wells_results.json").read_text(encoding="utf-8"))
    assert [r["id"] for r in results] == ["W1", "W2"]


def test_main_uses_config_standards(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "config.json").write_text(json.dumps({"standard_values": {"Pb": 0.02}}), encoding="utf-8")
    (tmp_path / "wells.csv").write_text("id,Pb\nW1,0.02\n", encoding="utf-8")

    assert compute_indices.main(["wells.csv"]) == 0

    [result] = load_results((tmp_path / "wells_results.json").read_text(encoding="utf-8"))
    assert result["hpi"] == 100.0
    assert result["category"] == "Slightly Polluted"


def test_main_writes_template_when_default_is_missing(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    assert compute_indices.main([]) == 0
    assert (tmp_path / "sample_input.csv").exists()
    assert (tmp_path / "sample_input_with_indices.csv").exists()
    assert "wrote template" in capsys.readouterr().out


def test_main_missing_file(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    assert compute_indices.main(["nope.csv"]) == 1
    assert "not found" in capsys.readouterr().out


def test_main_rejects_invalid_schema(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "bad.csv").write_text("id,nitrate\nS1,5\n", encoding="utf-8")
    assert compute_indices.main(["bad.csv", "--verbose"]) == 1
    assert "No metal concentration columns" in capsys.readouterr().out


def test_main_rejects_empty_file(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "empty.csv").write_text("", encoding="utf-8")
    assert compute_indices.main(["empty.csv"]) == 1
    assert "No rows found in the file." in capsys.readouterr().out
    assert not (tmp_path / "empty_with_indices.csv").exists()
