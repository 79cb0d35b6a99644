"""
MATPOWER Case Dashboard - Streamlit UI
======================================

Inspect a MATPOWER case in a fixed grid:

    +----------------+------------------+
    |   Bus table    |  Network graph   |
    +----------------+------------------+
    | Generator table|  Branch table    |
    +----------------+------------------+

Case text is parsed in a separate worker process through the request
bridge, so a large case never blocks the page.

Run with:
    streamlit run casedash/ui/app.py
"""

from pathlib import Path
from typing import Dict, Optional

import numpy as np
import pandas as pd
import streamlit as st

from casedash.bridge import RequestBridge
from casedash.case.frames import case_to_frames
from casedash.case.models import CaseModel
from casedash.config import load_settings
from casedash.errors import CaseBridgeError, ParseError, ValidationError, WorkerLostError, caret_excerpt
from casedash.logging_utils import configure_logging
from casedash.ui.graph import network_figure, spring_layout

DATA_DIR = Path(__file__).resolve().parent.parent / "data"


# Page configuration
st.set_page_config(
    page_title="MATPOWER Case Dashboard",
    page_icon="⚡",
    layout="wide",
    initial_sidebar_state="expanded"
)

st.markdown("""
<style>
    .stMetric {
        background-color: #f0f2f6;
        padding: 10px;
        border-radius: 5px;
    }
    .stPlotlyChart {
        background-color: white;
        border-radius: 5px;
        padding: 10px;
    }
    h1 {
        color: #1f77b4;
    }
</style>
""", unsafe_allow_html=True)


@st.cache_resource
def get_bridge() -> RequestBridge:
    """One parsing worker per Streamlit server process."""
    settings = load_settings()
    configure_logging(settings.log_level)
    return RequestBridge(settings).start()


@st.cache_data(show_spinner=False, max_entries=16)
def bus_layout(case_text: str, _case: CaseModel) -> Dict[int, np.ndarray]:
    """Bus positions, computed once per case text."""
    return spring_layout(_case)


def bundled_cases() -> Dict[str, Path]:
    return {p.stem: p for p in sorted(DATA_DIR.glob("*.m"))}


def parse_text(text: str) -> Optional[CaseModel]:
    """Parse through the worker and render any failure as a message."""
    bridge = get_bridge()
    with st.spinner("Parsing case..."):
        future = bridge.parse(text)
        try:
            return future.result()
        except ValidationError as e:
            st.error(f"**Invalid case:** {e.message}")
            if e.problems:
                st.markdown("\n".join(f"- {p}" for p in e.problems))
        except ParseError as e:
            where = f" (line {e.line}, column {e.column})" if e.line is not None else ""
            st.error(f"**Parse error:** {e.message}{where}")
            if e.snippet is not None:
                st.code(caret_excerpt(e.snippet, e.column), language=None)
        except WorkerLostError as e:
            st.error(f"**Parser worker stopped:** {e}. Reload the page to restart it.")
            get_bridge.clear()
            st.session_state.pop("case_text", None)
        except CaseBridgeError as e:
            st.error(f"**{e.kind}:** {e}")
    return None


def render_header(case: CaseModel):
    s = case.summary()
    col1, col2, col3, col4, col5 = st.columns(5)
    with col1:
        st.metric("Case", case.name)
    with col2:
        st.metric("Base MVA", f"{case.base_mva:.0f}")
    with col3:
        st.metric("Buses", s["buses"])
    with col4:
        st.metric("Generators", s["generators"])
    with col5:
        st.metric("Branches", s["branches"])


def render_grid(case: CaseModel, case_text: str):
    frames = case_to_frames(case)

    top_left, top_right = st.columns(2)
    with top_left:
        st.subheader("🔌 Buses")
        st.dataframe(frames["bus"], use_container_width=True, height=360)
    with top_right:
        st.subheader("🗺️ Network")
        fig = network_figure(case, height=360, pos=bus_layout(case_text, case))
        st.plotly_chart(fig, use_container_width=True)

    bottom_left, bottom_right = st.columns(2)
    with bottom_left:
        st.subheader("⚙️ Generators")
        st.dataframe(frames["gen"], use_container_width=True, height=300)
    with bottom_right:
        st.subheader("〰️ Branches")
        st.dataframe(frames["branch"], use_container_width=True, height=300)


def render_powerflow(case: CaseModel):
    """Optional AC power flow on the parsed case."""
    with st.expander("⚡ AC power flow (pandapower)"):
        if not st.button("Run power flow"):
            return
        # Imported lazily: pandapower is heavy and only needed here
        from casedash.case.network import build_network, run_powerflow, summarize_results

        try:
            net = build_network(case)
            run_powerflow(net)
            summary = summarize_results(net)
        except Exception as e:
            st.error(f"Power flow failed: {e}")
            return

        col1, col2 = st.columns(2)
        with col1:
            st.metric("Losses", f"{summary['losses_mw']:.2f} MW")
            st.dataframe(summary["bus"].round(4), use_container_width=True)
        with col2:
            st.dataframe(summary["grid"].round(3), use_container_width=True)
            loading = pd.concat([summary["line"], summary["trafo"]])
            st.dataframe(loading.round(2), use_container_width=True)


def main():
    st.title("⚡ MATPOWER Case Dashboard")

    with st.sidebar:
        st.header("Case")
        source = st.radio("Source", ["Bundled example", "Upload file"])
        text = None
        if source == "Bundled example":
            cases = bundled_cases()
            if cases:
                choice = st.selectbox("Example", list(cases))
                text = cases[choice].read_text(encoding="utf-8")
            else:
                st.info("No bundled cases found.")
        else:
            upload = st.file_uploader("MATPOWER case (.m)", type=["m", "txt"])
            if upload is not None:
                text = upload.getvalue().decode("utf-8", errors="replace")

    if text is None:
        st.info("Choose a bundled example or upload a MATPOWER case file.")
        return

    # Only successful parses are cached, so a failure is shown on every rerun
    if st.session_state.get("case_text") != text:
        parsed = parse_text(text)
        if parsed is None:
            return
        st.session_state["case_text"] = text
        st.session_state["case"] = parsed

    case = st.session_state["case"]

    render_header(case)
    st.divider()
    render_grid(case, text)
    render_powerflow(case)


if __name__ == "__main__":
    main()
