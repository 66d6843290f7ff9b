import logging
from contextlib import contextmanager
from typing import Dict, List, Optional

import altair as alt
import pandas as pd
import streamlit as st

from core.filters import DashboardFilters
from core.session import DashboardSession, LoadStatus

alt.data_transformers.disable_max_rows()
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("ev_dashboard")

NO_FILTER = "All makes"


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #424242;margin-bottom: 10px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;margin-bottom: 8px;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(f"<div class='card'><div class='card-title'>{title}</div>", unsafe_allow_html=True)
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def get_session() -> DashboardSession:
    session: Optional[DashboardSession] = st.session_state.get("ev_session")
    if session is None:
        session = DashboardSession(filters=DashboardFilters())
        st.session_state["ev_session"] = session
    if session.status is LoadStatus.IDLE:
        with st.spinner("Loading EV population data..."):
            session.start()
    return session


def render_error(session: DashboardSession):
    if not session.error:
        return
    if not st.session_state.get("_toast_shown_for") == session.error:
        st.toast(session.error, icon="⚠️")
        st.session_state["_toast_shown_for"] = session.error
    cols = st.columns([9, 1])
    cols[0].error(session.error)
    if cols[1].button("Dismiss"):
        session.dismiss_error()
        st.rerun()


def render_cards(cards: List[Dict[str, object]]):
    if not cards:
        return
    per_row = 4
    for start in range(0, len(cards), per_row):
        cols = st.columns(per_row)
        for col, c in zip(cols, cards[start:start + per_row]):
            col.metric(str(c["label"]), f"{int(c['value']):,}")


def _width_hint(width: int) -> str:
    if width <= 100:
        return "small"
    return "medium" if width <= 180 else "large"


def render_table(session: DashboardSession):
    table = session.views.table
    pagination = table.get("pagination", {})
    columns = table.get("columns", [])
    rows = pd.DataFrame(table.get("rows", []), columns=[c["field"] for c in columns])
    rows = rows.rename(columns={c["field"]: c["header_name"] for c in columns})
    st.dataframe(
        rows,
        hide_index=True,
        use_container_width=True,
        height=400,
        column_config={c["header_name"]: st.column_config.Column(width=_width_hint(c["width"])) for c in columns},
    )

    page_count = int(pagination.get("page_count", 1))
    c1, c2, c3 = st.columns([2, 2, 6])
    page = c1.number_input("Page", min_value=1, max_value=page_count, value=int(pagination.get("page", 0)) + 1, step=1)
    size_options = [10, 25, 50, 100]
    current_size = int(pagination.get("page_size", 25))
    page_size = c2.selectbox("Rows per page", size_options, index=size_options.index(current_size) if current_size in size_options else 1)
    c3.caption(f"{int(pagination.get('total_rows', 0)):,} vehicles · page {int(pagination.get('page', 0)) + 1} of {page_count}")
    if page - 1 != pagination.get("page") or page_size != current_size:
        session.set_page(int(page) - 1, int(page_size))
        st.rerun()


# ---------- UI setup ----------
st.set_page_config(page_title="Electric Vehicle (EV) Population", layout="wide")
inject_base_styles()
st.markdown("<div class='app-top-bar'><div class='page-title'>Electric Vehicle (EV) Population</div></div>", unsafe_allow_html=True)

session = get_session()
render_error(session)

if session.status is not LoadStatus.LOADED:
    st.info("No data loaded.")
    if st.button("Reload"):
        with st.spinner("Reloading..."):
            session.reload()
        st.rerun()
    st.stop()

# ----- Selector -----
options = [NO_FILTER] + [c["label"] for c in session.choices]
current = session.filters.make
selected = st.selectbox(
    "Select Vehicle Brand here",
    options,
    index=options.index(current) if current in options else 0,
)
selected_make = None if selected == NO_FILTER else selected
if selected_make != current:
    logger.info("Make filter changed: %s -> %s", current, selected_make)
    session.set_filter(selected_make)

views = session.views
render_cards(views.overview.get("cards", []))

left, right = st.columns(2)
with left:
    with card("Electric Range Distribution"):
        spec = views.range.get("charts", {}).get("electric_range")
        if spec:
            st.vega_lite_chart(spec, use_container_width=True)
        else:
            st.info("No vehicles for the selected make.")
with right:
    with card("CAFV Eligibility"):
        spec = views.overview.get("charts", {}).get("eligibility")
        if spec:
            st.vega_lite_chart(spec, use_container_width=True)
        else:
            st.info("No vehicles for the selected make.")

render_table(session)

st.download_button(
    "Export CSV",
    data=session.export_csv(),
    file_name=f"ev_population_{selected_make or 'all'}.csv".replace(" ", "_"),
    mime="text/csv",
)
