from pathlib import Path
import streamlit as st

from crash_watch.archive import load_archive
from crash_watch.config import archive_file, load_locations, summary_file
from crash_watch.summary import district_sort_key, load_summary
from crash_watch.threads import format_local_time

st.set_page_config(page_title="crash-watch", layout="wide")

st.title("crash-watch: archived traffic violence incidents")
st.caption("Read-only view of what the bot has already posted and the running week/month counters.")

config_path = st.sidebar.text_input("Locations file", "configs/locations.yaml")
archive_dir = Path(st.sidebar.text_input("Archive directory", "archive"))

locations = load_locations(config_path)
location_id = st.sidebar.selectbox("Location", sorted(locations))
location = locations[location_id]


def district_rows(counts: dict[str, int]) -> list[dict]:
    return [{"district": name, "incidents": n} for name, n in sorted(counts.items(), key=lambda kv: district_sort_key(kv[0]))]


state = load_summary(summary_file(archive_dir, location_id))
col1, col2 = st.columns([1, 1], gap="large")
with col1:
    st.metric("This week", state.week.total)
    if state.week.districts:
        st.bar_chart(district_rows(state.week.districts), x="district", y="incidents")
with col2:
    st.metric("This month", state.month.total)
    if state.month.districts:
        st.bar_chart(district_rows(state.month.districts), x="district", y="incidents")

records = load_archive(archive_file(archive_dir, location_id))
records.sort(key=lambda r: r.ts or 0, reverse=True)
st.subheader(f"Archive ({len(records)} incidents)")
st.dataframe(
    [
        {
            "when": r.date or (format_local_time(r.ts, location.tz()) if r.ts else ""),
            "incident": r.raw,
            "key": r.key,
            "map": r.map_image_url,
        }
        for r in records
    ],
    width="stretch",
)
