# streamlit_app.py
"""
Streamlit app for the groundwater HPI analyzer.

Features:
- Upload CSV / Excel -> computes HPI, HEI, CD and category per sample
- Results are handed to the results view as JSON in session state and re-normalized there
- Summary metrics, searchable table, HPI bar chart
- Map (folium) colored by category when coordinates are present
- Download results as CSV or GeoJSON
"""
import json
import os

import folium
import pandas as pd
import plotly.express as px
import streamlit as st
from streamlit_folium import st_folium

from hpi_utils import CATEGORIES, HpiError, load_config, process_samples, standards_from_config
from result_store import (
    dump_results,
    load_results,
    results_to_csv,
    results_to_geojson,
    search_results,
    summarize_results,
)
from sample_io import (
    MAX_FILE_SIZE,
    SchemaValidationError,
    load_rows,
    preview_headers,
    preview_rows,
    SAMPLE_CSV,
)

RESULTS_KEY = "waterAnalysisResults"

CATEGORY_COLORS = {
    "Safe": "#1a9850",
    "Slightly Polluted": "#fdae61",
    "Hazardous": "#d73027",
}
UNKNOWN_COLOR = "#757575"


def get_color_for_category(cat: str):
    """Return a hex color for a category string; grey for anything unknown."""
    return CATEGORY_COLORS.get(cat, UNKNOWN_COLOR)


def add_legend(folium_map, title="Water Quality"):
    """Add a plain HTML legend to a folium map."""
    items = "".join(
        f"""
      <div style="display:flex; align-items:center; margin-bottom:4px;">
        <span style="display:inline-block;width:14px;height:14px;background:{color};margin-right:8px;border:1px solid #666;"></span>
        <span style="color:#000">{label}</span>
      </div>"""
        for label, color in list(CATEGORY_COLORS.items()) + [("Unknown", UNKNOWN_COLOR)]
    )
    legend_html = f"""
    <div style="
      position: fixed;
      bottom: 50px;
      left: 50px;
      width:200px;
      z-index:9999;
      font-size:13px;
      font-family: Arial, Helvetica, sans-serif;
      color: #000000;
      background-color: rgba(255,255,255,0.95);
      border:2px solid rgba(0,0,0,0.2);
      padding: 10px;
    ">
      <div style="font-weight:700; margin-bottom:6px;">{title}</div>{items}
    </div>
    """
    folium_map.get_root().html.add_child(folium.Element(legend_html))


def plot_color_coded_map(results, zoom_start=5):
    """Circle markers colored by category for every result with coordinates."""
    located = [r for r in results if r.get("latitude") is not None and r.get("longitude") is not None]
    if not located:
        return None
    center = (
        sum(r["latitude"] for r in located) / len(located),
        sum(r["longitude"] for r in located) / len(located),
    )
    m = folium.Map(location=center, zoom_start=zoom_start, tiles="OpenStreetMap")
    for r in located:
        color = get_color_for_category(r.get("category"))
        popup_html = f"""
        <div style="font-size:13px;">
          <b>{r.get('id')}</b><br/>
          <b>HPI:</b> {r.get('hpi', 'NA')}<br/>
          <b>HEI:</b> {r.get('hei', 'NA')}  <b>CD:</b> {r.get('cd', 'NA')}<br/>
          <b>Category:</b> {r.get('category')}
        </div>
        """
        folium.CircleMarker(
            location=[r["latitude"], r["longitude"]],
            radius=8,
            color=color,
            fill=True,
            fill_color=color,
            fill_opacity=0.85,
            popup=folium.Popup(popup_html, max_width=300),
        ).add_to(m)
    add_legend(m)
    return m


# -----------------------------------------------------------------------------------

st.set_page_config(page_title="HPI Analyzer", layout="wide")
st.title("Groundwater Heavy Metal Pollution Indices")

cfg = {}
if os.path.exists("config.json"):
    try:
        cfg = load_config("config.json")
    except ValueError as e:
        st.error(f"Could not load config.json: {e}")
        st.stop()
standards = standards_from_config(cfg)
max_size = int(cfg.get("max_file_size_mb", MAX_FILE_SIZE // (1024 * 1024))) * 1024 * 1024

with st.sidebar:
    st.header("Instructions")
    st.markdown(
        """
- One row per sample; columns `id, latitude, longitude` plus one column per metal (mg/L).
- Every other column of the first row is treated as a metal.
- Missing or unreadable concentrations count as 0.
"""
    )
    st.download_button("Download sample template", data=SAMPLE_CSV, file_name="sample_input.csv", mime="text/csv")
    st.markdown("**Permissible limits (mg/L)**")
    st.json(dict(standards))

# --- 1) Upload ---------------------------------------------------------------
st.header("1) Upload data")
uploaded = st.file_uploader("Upload CSV or Excel file", type=["csv", "xlsx", "xls"])
if uploaded is not None:
    try:
        rows = load_rows(uploaded, filename=uploaded.name, max_size=max_size)
    except SchemaValidationError as e:
        st.error(f"Schema validation failed: {' '.join(e.errors)}")
        st.stop()
    except HpiError as e:
        st.error(f"Upload error: {e}")
        st.stop()

    with st.expander("Preview"):
        headers = preview_headers(rows)
        st.dataframe(pd.DataFrame(preview_rows(rows))[headers])

    results = process_samples(rows, standards)
    st.session_state[RESULTS_KEY] = dump_results(results)
    st.success(f"Processed {len(results)} samples successfully")

# --- 2) Results --------------------------------------------------------------
st.header("2) Results")
try:
    results = load_results(st.session_state.get(RESULTS_KEY))
except HpiError as e:
    st.info(f"{e}")
    st.stop()

summary = summarize_results(results)
c1, c2, c3, c4, c5 = st.columns(5)
c1.metric("Total samples", summary["total"])
c2.metric("Safe", summary["safe"])
c3.metric("Slightly polluted", summary["slightly_polluted"])
c4.metric("Hazardous", summary["hazardous"])
c5.metric("Average HPI", f"{summary['avg_hpi']:.2f}")

f1, f2 = st.columns([3, 1])
query = f1.text_input("Search by sample id")
category = f2.selectbox("Category", ["All"] + list(CATEGORIES))
shown = search_results(results, query, None if category == "All" else category)

table = pd.DataFrame(shown)
st.dataframe(table.drop(columns=["metals"], errors="ignore"), use_container_width=True)

d1, d2 = st.columns(2)
d1.download_button("Export CSV", data=results_to_csv(shown),
                   file_name="water-analysis-results.csv", mime="text/csv")
d2.download_button("Export GeoJSON", data=json.dumps(results_to_geojson(shown), indent=2),
                   file_name="water-analysis-results.geojson", mime="application/geo+json")

# --- charts & map ------------------------------------------------------------
if shown:
    chart_df = table[["id", "hpi", "category"]].dropna(subset=["hpi"]).sort_values("hpi", ascending=False)
    fig = px.bar(chart_df, x="id", y="hpi", color="category",
                 color_discrete_map=CATEGORY_COLORS, title="HPI by sample (higher = worse)")
    st.plotly_chart(fig, use_container_width=True)

folium_map = plot_color_coded_map(shown)
if folium_map is not None:
    st.subheader("Map - colored by category")
    st_folium(folium_map, width=900, height=520)
else:
    st.info("No samples with coordinates; map not shown.")
