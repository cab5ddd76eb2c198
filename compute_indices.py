# compute_indices.py
"""
Main CLI script.

Usage:
    python compute_indices.py                 # uses default sample_input.csv
    python compute_indices.py myfile.csv      # uses myfile.csv (or .xlsx / .xls)
    python compute_indices.py myfile.csv -v   # also print debug logging
"""

import json
import logging
import os
import sys

from hpi_utils import HpiError, detect_metal_columns, load_config, process_samples, standards_from_config
from result_store import dump_results, results_to_csv, results_to_geojson, summarize_results
from sample_io import MAX_FILE_SIZE, load_rows, write_sample_csv

DEFAULT_CSV = "sample_input.csv"
CONFIG_PATH = "config.json"
OUT_CSV_SUFFIX = "_with_indices.csv"
OUT_GEOJSON_SUFFIX = "_with_indices.geojson"
OUT_JSON_SUFFIX = "_results.json"


def main(argv=None):
    argv = list(sys.argv[1:] if argv is None else argv)
    verbose = any(a in ("-v", "--verbose") for a in argv)
    args = [a for a in argv if a not in ("-v", "--verbose")]
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    # determine input file
    input_path = DEFAULT_CSV
    if args:
        input_path = args[0]

    if not os.path.exists(input_path):
        if input_path == DEFAULT_CSV:
            write_sample_csv(input_path)
            print(f"No input given; wrote template '{input_path}' and using it.")
        else:
            print(f"Error: input file '{input_path}' not found in current folder ({os.getcwd()}).")
            return 1

    # load config (optional here; defaults are the WHO guideline values)
    cfg = {}
    if os.path.exists(CONFIG_PATH):
        cfg = load_config(CONFIG_PATH)
    standards = standards_from_config(cfg)
    max_size = int(cfg.get("max_file_size_mb", MAX_FILE_SIZE // (1024 * 1024))) * 1024 * 1024

    try:
        rows = load_rows(input_path, max_size=max_size)
    except HpiError as e:
        print(f"Error: {e}")
        return 1

    metals = detect_metal_columns(rows[0])
    print("Metal columns detected:", metals)
    unknown = [m for m in metals if m not in standards]
    if unknown:
        print("Warning: no permissible limit for", unknown, "- a limit of 1 mg/L is used.")

    results = process_samples(rows, standards)

    base, _ = os.path.splitext(input_path)
    with open(f"{base}{OUT_CSV_SUFFIX}", "w", encoding="utf-8", newline="") as f:
        f.write(results_to_csv(results))
    with open(f"{base}{OUT_GEOJSON_SUFFIX}", "w", encoding="utf-8") as f:
        json.dump(results_to_geojson(results), f, indent=2)
    with open(f"{base}{OUT_JSON_SUFFIX}", "w", encoding="utf-8") as f:
        f.write(dump_results(results))
    print(f"\nDone. Results written to: {base}{OUT_CSV_SUFFIX}, {base}{OUT_GEOJSON_SUFFIX}, {base}{OUT_JSON_SUFFIX}")

    # print quick preview
    print("\n--- Sample of computed results ---")
    for r in results[:10]:
        print(f"{r['id']:>12}  HPI={r['hpi']:>8.2f}  HEI={r['hei']:>7.2f}  CD={r['cd']:>7.2f}  {r['category']}")

    summary = summarize_results(results)
    print(f"\nSamples: {summary['total']}  Safe: {summary['safe']}  "
          f"Slightly Polluted: {summary['slightly_polluted']}  Hazardous: {summary['hazardous']}  "
          f"Average HPI: {summary['avg_hpi']:.2f}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
