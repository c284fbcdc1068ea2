# dashboard/app.py
#
# NYC Fleet Monitor – Dashboard
#
# Streamlit UI that:
#   - Pulls vehicles, fleet stats and incidents from the FastAPI service
#   - Plots the fleet on a map of NYC, colored by battery charge
#   - Summarizes battery, temperature and lifecycle risk across the fleet
#   - Hosts the emergency response center (respond / resolve incidents)
#   - Offers a push-button overheat simulation for demos
#   - Auto-refreshes so new incidents from the periodic scan show up live

import os
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

import pandas as pd
import pydeck as pdk
import requests
import streamlit as st
from streamlit_autorefresh import st_autorefresh

# -------------------------------------------------
# Config
# -------------------------------------------------

API_URL = os.getenv("API_URL", "http://127.0.0.1:8000").rstrip("/")

PAGE_TITLE = "NYC Fleet Monitor"

REFRESH_SECONDS = 5
RESOLVED_HISTORY = 5  # resolved incidents shown in the response center
RESOLVED_FETCH_LIMIT = 100

NYC_CENTER = (40.7128, -74.0060)
MAP_ZOOM = 11
FOCUS_ZOOM = 15  # street level, used by "View on map"

# Battery charge colors (RGB) and their inclusive upper bounds
CRITICAL_CHARGE = 20
MEDIUM_CHARGE = 50
RED = [239, 68, 68]
YELLOW = [234, 179, 8]
GREEN = [34, 197, 94]

TEMP_WARN_C = 45.0
THERMAL_RUNAWAY_C = 150.0

RISK_ORDER = ["critical", "high", "moderate", "low"]


# -------------------------------------------------
# Data access
# -------------------------------------------------


def _get(path: str, **params) -> object:
    resp = requests.get(f"{API_URL}{path}", params=params or None, timeout=5)
    resp.raise_for_status()
    return resp.json()


def _post(path: str, payload: Optional[Dict] = None) -> requests.Response:
    return requests.post(f"{API_URL}{path}", json=payload, timeout=5)


def fetch_vehicles() -> List[Dict]:
    return _get("/vehicles")


def fetch_incidents() -> List[Dict]:
    # open incidents are never capped; only resolved history is
    return (
        _get("/incidents", status="pending")
        + _get("/incidents", status="responded")
        + _get("/incidents", status="resolved", limit=RESOLVED_FETCH_LIMIT)
    )


def fetch_stats() -> Dict:
    return _get("/stats")


# -------------------------------------------------
# Pure helpers
# -------------------------------------------------


def battery_color(level: float) -> List[int]:
    """Marker color for a charge level: red <= 20%, yellow <= 50%, else green."""
    if level <= CRITICAL_CHARGE:
        return RED
    if level <= MEDIUM_CHARGE:
        return YELLOW
    return GREEN


def temperature_label(temp: float) -> str:
    if temp >= THERMAL_RUNAWAY_C:
        return f"🛑 {temp:.1f}°C (thermal runaway)"
    if temp > TEMP_WARN_C:
        return f"🔥 {temp:.1f}°C"
    return f"{temp:.1f}°C"


def vehicles_to_frame(vehicles: List[Dict]) -> pd.DataFrame:
    """Flatten API vehicle payloads into one row per vehicle for the map/table."""
    if not vehicles:
        return pd.DataFrame(
            columns=[
                "id", "type", "model", "status", "latitude", "longitude",
                "battery_level", "risk_level", "temperature", "cycle_count",
                "voltage_stability", "requires_emergency_response", "color",
            ]
        )

    rows = []
    for v in vehicles:
        health = v["battery_health"]
        rows.append(
            {
                "id": v["id"],
                "type": v["type"],
                "model": v["model"],
                "status": v["status"],
                "latitude": v["location"]["latitude"],
                "longitude": v["location"]["longitude"],
                "battery_level": v["battery_level"],
                "risk_level": health["risk_level"],
                "temperature": health["temperature"],
                "cycle_count": health["cycle_count"],
                "voltage_stability": health["voltage_stability"],
                "requires_emergency_response": health["requires_emergency_response"],
                "color": battery_color(v["battery_level"]),
            }
        )
    return pd.DataFrame(rows)


def _resolved_key(incident: Dict) -> str:
    return incident.get("resolved_at") or incident["created_at"]


def organize_incidents(incidents: List[Dict]) -> Dict[str, List[Dict]]:
    """
    Split incidents for the response center: pending and responded sorted
    hottest first, plus the most recently resolved few.
    """
    pending = [i for i in incidents if i["status"] == "pending"]
    responded = [i for i in incidents if i["status"] == "responded"]
    resolved = [i for i in incidents if i["status"] == "resolved"]

    pending.sort(key=lambda i: i["temperature"], reverse=True)
    responded.sort(key=lambda i: i["temperature"], reverse=True)
    resolved.sort(key=_resolved_key, reverse=True)

    return {
        "pending": pending,
        "responded": responded,
        "resolved": resolved[:RESOLVED_HISTORY],
    }


def map_view(focus: Optional[Dict] = None) -> Tuple[float, float, int]:
    """(latitude, longitude, zoom) for the map: the whole city, or zoomed on `focus`."""
    if not focus:
        return NYC_CENTER[0], NYC_CENTER[1], MAP_ZOOM
    return float(focus["latitude"]), float(focus["longitude"]), FOCUS_ZOOM


def time_ago(iso_ts: Optional[str], now: Optional[datetime] = None) -> str:
    if not iso_ts:
        return "n/a"
    ts = pd.to_datetime(iso_ts, utc=True).to_pydatetime()
    now = now or datetime.now(timezone.utc)
    seconds = max(int((now - ts).total_seconds()), 0)
    if seconds < 60:
        return f"{seconds}s ago"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"


# -------------------------------------------------
# UI helpers
# -------------------------------------------------


def render_header(n_vehicles: int) -> None:
    st.title(PAGE_TITLE)
    st.caption(
        "Simulated e-bike and scooter fleet → rule-based battery risk → "
        "emergency incidents opened by a periodic scan."
    )
    st.caption(f"Monitoring {n_vehicles} vehicles")


def render_map(df: pd.DataFrame) -> None:
    st.markdown("### Fleet map")
    layer = pdk.Layer(
        "ScatterplotLayer",
        data=df,
        get_position="[longitude, latitude]",
        get_fill_color="color",
        get_radius=60,
        pickable=True,
    )
    focus = st.session_state.get("map_focus")
    latitude, longitude, zoom = map_view(focus)
    view = pdk.ViewState(latitude=latitude, longitude=longitude, zoom=zoom)
    if focus and st.button("Show whole city", key="map-reset"):
        st.session_state["map_focus"] = None
        st.rerun()
    st.pydeck_chart(
        pdk.Deck(
            layers=[layer],
            initial_view_state=view,
            tooltip={
                "text": "Vehicle #{id} ({type})\nBattery {battery_level}%\nRisk {risk_level}"
            },
        )
    )
    st.caption("Legend: 🔴 low battery (≤ 20%) · 🟡 medium (21–50%) · 🟢 high (> 50%)")


def render_stats(stats: Dict) -> None:
    st.markdown("### Fleet battery overview")
    c1, c2, c3, c4 = st.columns(4)
    with c1:
        st.metric("Vehicles", stats["total_vehicles"])
    with c2:
        st.metric("Average charge", f"{stats['average_battery_level']}%")
    with c3:
        st.metric("Emergency flagged", stats["emergency_flagged"])
    with c4:
        st.metric("Active incidents", stats["incidents"]["active"])

    col_a, col_b, col_c = st.columns(3)
    with col_a:
        st.markdown("**Charge**")
        st.bar_chart(pd.Series(stats["battery"]), height=200)
    with col_b:
        st.markdown("**Battery risk level**")
        risk = pd.Series(stats["by_risk_level"]).reindex(RISK_ORDER).fillna(0)
        st.bar_chart(risk, height=200)
    with col_c:
        st.markdown("**Temperature**")
        st.bar_chart(pd.Series(stats["temperature_risk"]), height=200)

    lifecycle = stats["lifecycle_risk"]
    col_d, col_e = st.columns(2)
    with col_d:
        st.markdown("**Lifecycle risk**")
        st.bar_chart(
            pd.Series({k: lifecycle[k] for k in ["critical", "warning", "moderate", "healthy"]}),
            height=200,
        )
    with col_e:
        st.metric("Average charge cycles", lifecycle["average_cycles"])
        oldest = lifecycle["oldest_inspection_vehicle"]
        st.metric(
            "Oldest inspection",
            f"{lifecycle['oldest_inspection_days']} days",
            help=f"Vehicle #{oldest}" if oldest else None,
        )
        st.caption(
            f"Bikes: {stats['by_type']['bike']} · Scooters: {stats['by_type']['scooter']} · "
            f"Available: {stats['by_status']['available']} · In use: {stats['by_status']['in-use']} · "
            f"Maintenance: {stats['by_status']['maintenance']}"
        )


def _incident_action(incident_id: str, action: str) -> None:
    """POST respond/resolve to the API and rerun so the lists refresh."""
    try:
        resp = _post(f"/incidents/{incident_id}/{action}")
        if resp.ok:
            st.success(f"Incident {incident_id}: {action} recorded.")
        else:
            st.warning(f"{action.title()} returned {resp.status_code}: {resp.json().get('detail')}")
    except requests.RequestException as exc:
        st.error(f"Failed to update incident {incident_id}: {exc}")
        return
    st.rerun()


def _render_incident_card(incident: Dict, action: Optional[str]) -> None:
    with st.container(border=True):
        c1, c2, c3, c4 = st.columns([2, 2, 2, 1])
        with c1:
            st.markdown(f"**Incident {incident['id']}**  \nVehicle #{incident['vehicle_id']}")
        with c2:
            st.markdown(
                f"{temperature_label(incident['temperature'])}  \n🔋 {incident['battery_level']}%"
            )
        with c3:
            loc = incident["location"]
            if incident["status"] == "pending":
                when = f"Opened {time_ago(incident['created_at'])}"
            elif incident["status"] == "responded":
                when = f"Responded {time_ago(incident['responded_at'])}"
            else:
                when = f"Resolved {time_ago(incident['resolved_at'])}"
            st.markdown(f"📍 {loc['latitude']:.4f}, {loc['longitude']:.4f}  \n{when}")
        with c4:
            if action == "respond" and st.button("Mark responded", key=f"respond-{incident['id']}"):
                _incident_action(incident["id"], "respond")
            if action == "resolve" and st.button("Mark resolved", key=f"resolve-{incident['id']}"):
                _incident_action(incident["id"], "resolve")
            if st.button("View on map", key=f"view-{incident['id']}"):
                _focus_map(loc)


def _focus_map(location: Dict) -> None:
    st.session_state["map_focus"] = {
        "latitude": location["latitude"],
        "longitude": location["longitude"],
    }
    st.rerun()


def render_emergency_center(incidents: List[Dict]) -> None:
    organized = organize_incidents(incidents)
    active = len(organized["pending"]) + len(organized["responded"])

    st.markdown(f"### Emergency response center · {active} active")

    st.markdown(f"#### Pending response ({len(organized['pending'])})")
    if not organized["pending"]:
        st.info("No pending incidents")
    for incident in organized["pending"]:
        _render_incident_card(incident, "respond")

    if organized["responded"]:
        st.markdown(f"#### In progress ({len(organized['responded'])})")
        for incident in organized["responded"]:
            _render_incident_card(incident, "resolve")

    st.markdown(f"#### Recently resolved ({len(organized['resolved'])})")
    if not organized["resolved"]:
        st.caption("No resolved incidents")
    for incident in organized["resolved"]:
        _render_incident_card(incident, None)


def render_vehicle_detail(df: pd.DataFrame) -> None:
    st.markdown("### Vehicle detail")
    if df.empty:
        st.info("No vehicles")
        return

    risk_filter = st.multiselect("Filter by risk level", options=RISK_ORDER, default=RISK_ORDER)
    filtered = df[df["risk_level"].isin(risk_filter)] if risk_filter else df
    ranked = filtered.assign(
        _sev=filtered["risk_level"].map({r: i for i, r in enumerate(RISK_ORDER)})
    ).sort_values(["_sev", "temperature"], ascending=[True, False])

    st.dataframe(
        ranked[
            [
                "id", "type", "model", "status", "battery_level", "risk_level",
                "temperature", "cycle_count", "voltage_stability",
                "requires_emergency_response",
            ]
        ],
        hide_index=True,
    )

    vehicle_id = st.selectbox("Select vehicle", ranked["id"].tolist())
    if vehicle_id is None:
        return
    row = df[df["id"] == vehicle_id].iloc[0]
    c1, c2, c3, c4 = st.columns(4)
    with c1:
        st.metric("Battery", f"{row['battery_level']}%")
    with c2:
        st.metric("Risk level", row["risk_level"].upper())
    with c3:
        st.metric("Temperature", f"{row['temperature']:.1f}°C")
    with c4:
        st.metric("Charge cycles", int(row["cycle_count"]))

    b1, b2 = st.columns(2)
    with b1:
        if st.button("Simulate overheat on this vehicle"):
            _trigger_overheat(vehicle_id)
    with b2:
        if st.button("View on map", key=f"view-vehicle-{vehicle_id}"):
            _focus_map({"latitude": row["latitude"], "longitude": row["longitude"]})


def _trigger_overheat(vehicle_id: str) -> None:
    """Inject an overheat and run a scan immediately so the incident appears."""
    try:
        resp = _post("/simulate_overheat", {"vehicle_id": vehicle_id})
        if not resp.ok:
            st.warning(f"Simulation call returned {resp.status_code}.")
            return
        _post("/scan")
        st.success(f"Injected overheat on vehicle #{vehicle_id}.")
    except requests.RequestException as exc:
        st.error(f"Failed to trigger overheat: {exc}")
        return
    st.rerun()


# -------------------------------------------------
# Main layout
# -------------------------------------------------


def main() -> None:
    st.set_page_config(page_title=PAGE_TITLE, layout="wide")

    # Auto-refresh so periodic scan results appear without a manual reload
    st_autorefresh(interval=REFRESH_SECONDS * 1000, key="data_refresh")

    try:
        vehicles = fetch_vehicles()
        incidents = fetch_incidents()
        stats = fetch_stats()
    except requests.RequestException as exc:
        st.title(PAGE_TITLE)
        st.error(f"Error fetching fleet data from API: {exc}")
        return

    df = vehicles_to_frame(vehicles)
    render_header(len(df))

    left, right = st.columns([3, 2])
    with left:
        render_map(df)
        render_stats(stats)
    with right:
        render_emergency_center(incidents)

    st.markdown("---")
    render_vehicle_detail(df)

    st.caption(
        f"Dashboard refreshes every {REFRESH_SECONDS} seconds; the API scans the "
        "fleet for batteries needing an emergency response on its own schedule."
    )


if __name__ == "__main__":
    main()
