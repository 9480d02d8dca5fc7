#!/usr/bin/env python3
"""
Streamlit front-end for the Tomasulo cycle engine.

Run with:
    streamlit run streamlit_app.py
"""
from __future__ import annotations

import time

import altair as alt
import streamlit as st

from tomasulo_engine import allocate
from tomasulo_model import (
    DEFAULT_CONFIG,
    LATENCY_RANGE,
    STATION_COUNT_RANGE,
    EventKind,
    HardwareConfig,
    Operation,
    UnitType,
)
from tomasulo_program import EXAMPLE_PROGRAMS, SAMPLE_PROGRAM_TEXT, ProgramParseError, parse_program
from tomasulo_session import PLAY_SPEED_RANGE_MS, ConfigurationLockedError, TomasuloSession, configure_logging
from tomasulo_views import (
    STAGE_COLORS,
    annotations_frame,
    instructions_frame,
    registers_frame,
    stations_frame,
    timeline_frame,
)

EVENT_ICONS = {
    EventKind.ISSUE: "✓",
    EventKind.EXECUTE: "▶️",
    EventKind.WRITE: "📤",
    EventKind.HAZARD: "⚠️",
    EventKind.INFO: "ℹ️",
}

UNIT_LABELS = {
    UnitType.FP_ADD: "FP Add/Sub",
    UnitType.FP_MULT: "FP Mul/Div",
    UnitType.INT_ADD: "Int Add/Sub",
    UnitType.INT_MULT: "Int Mul/Div",
}

# ---------------------------------------------------------------------------
# Session helpers
# ---------------------------------------------------------------------------

def init_state() -> None:
    if "program_text" not in st.session_state:
        st.session_state["program_text"] = SAMPLE_PROGRAM_TEXT.strip()
    if "session" not in st.session_state:
        st.session_state["session"] = TomasuloSession(
            program=parse_program(SAMPLE_PROGRAM_TEXT),
            config=DEFAULT_CONFIG,
        )


def replace_program(program_text: str) -> None:
    session: TomasuloSession = st.session_state["session"]
    session.load_program(parse_program(program_text))
    st.session_state["program_text"] = program_text

# UI rendering
def render_header(session: TomasuloSession) -> None:
    st.title("Tomasulo Algorithm Simulator")
    st.caption("Dynamic scheduling with reservation stations, register renaming and a common data bus.")
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Cycle", session.cycle)
    col2.metric("Issued", sum(1 for instr in session.instructions if instr.issue_cycle is not None))
    col3.metric("Written", sum(1 for instr in session.instructions if instr.write_cycle is not None))
    col4.metric("Finished", "Yes" if session.is_complete else "No")

def render_instruction_editor(session: TomasuloSession) -> None:
    st.subheader("Instruction Input")
    st.caption("Syntax: `ADD.D F6, F0, F8` | `MUL R4, R1, R5` | comments start with `;`")

    editor_col, buttons_col = st.columns([4, 1])
    with editor_col:
        text = st.text_area(
            "Program",
            value=st.session_state["program_text"],
            height=160,
            label_visibility="collapsed",
            disabled=session.is_running,
        )
    with buttons_col:
        st.markdown("**Program Actions**")
        if st.button("Load Program", use_container_width=True, type="primary", disabled=session.is_running):
            try:
                program = parse_program(text)
            except ProgramParseError as exc:
                st.error(f"Failed to parse instructions: {exc}")
            else:
                if not program:
                    st.warning("The program has no instructions.")
                else:
                    replace_program(text.strip())
                    st.rerun()
        example = st.selectbox("Example", list(EXAMPLE_PROGRAMS), label_visibility="collapsed")
        if st.button("Load Example", use_container_width=True, disabled=session.is_running):
            replace_program(EXAMPLE_PROGRAMS[example].strip())
            st.rerun()

def render_hardware_config(session: TomasuloSession) -> None:
    """Station counts and latencies; locked while a run is in progress."""
    locked = session.is_running
    with st.expander("⚙️ Hardware Configuration", expanded=False):
        if locked:
            st.info("Reset the simulation to change the hardware configuration.")
        values = session.config.to_dict()

        st.markdown("**Reservation Stations**")
        count_cols = st.columns(len(UnitType))
        for col, unit in zip(count_cols, UnitType):
            values[unit.count_field] = col.number_input(
                UNIT_LABELS[unit],
                min_value=STATION_COUNT_RANGE[0],
                max_value=STATION_COUNT_RANGE[1],
                value=session.config.station_count(unit),
                step=1,
                key=f"count_{unit.value}",
                disabled=locked,
            )

        st.markdown("**Latencies (cycles)**")
        latency_cols = st.columns(4)
        for idx, op in enumerate(Operation):
            values[op.latency_field] = latency_cols[idx % 4].number_input(
                op.value,
                min_value=LATENCY_RANGE[0],
                max_value=LATENCY_RANGE[1],
                value=session.config.latency(op),
                step=1,
                key=f"latency_{op.name}",
                disabled=locked,
            )

        button_col1, button_col2, _ = st.columns([1, 1, 2])
        with button_col1:
            if st.button("Apply Configuration", use_container_width=True, type="primary", disabled=locked):
                try:
                    session.configure(**HardwareConfig.clamped(**values).to_dict())
                    session.reset()
                except ConfigurationLockedError as exc:
                    st.error(str(exc))
                else:
                    st.success("Configuration updated and simulator reset!")
                    st.rerun()
        with button_col2:
            if st.button("Reset to Defaults", use_container_width=True, disabled=locked):
                session.configure(**DEFAULT_CONFIG.to_dict())
                session.reset()
                st.rerun()

def render_register_editor(session: TomasuloSession) -> None:
    with st.expander("🗂️ Initial Register Values", expanded=False):
        locked = session.is_started
        fp_col, int_col = st.columns(2)
        with fp_col:
            name = st.selectbox("FP register", sorted(session.fp_init, key=lambda r: int(r[1:])), disabled=locked)
            value = st.number_input("FP value", value=float(session.fp_init[name]), disabled=locked)
            if st.button("Set FP register", disabled=locked):
                session.set_register(name, value)
                st.rerun()
        with int_col:
            name = st.selectbox("Int register", sorted(session.int_init, key=lambda r: int(r[1:])), disabled=locked)
            value = st.number_input("Int value", value=int(session.int_init[name]), step=1, disabled=locked)
            if st.button("Set Int register", disabled=locked):
                session.set_register(name, int(value))
                st.rerun()

def render_controls(session: TomasuloSession) -> None:
    st.subheader("Execution Controls")

    col1, col2, col3, col4, col5 = st.columns([1, 1, 1.2, 1, 1])

    if not session.is_started:
        if col1.button("▶️ Start", use_container_width=True, type="primary", disabled=not session.instructions):
            session.start()
            st.rerun()
    elif session.is_playing:
        if col1.button("⏸ Pause", use_container_width=True, type="primary"):
            session.pause()
            st.rerun()
    else:
        if col1.button("⏩ Play", use_container_width=True, type="primary", disabled=session.is_complete):
            session.play()
            st.rerun()

    idle = not session.is_running or session.is_playing
    if col2.button("Step", use_container_width=True, disabled=idle):
        session.step()
        st.rerun()

    step_count = col3.number_input("Run cycles", min_value=1, max_value=500, value=10, step=1, label_visibility="collapsed", disabled=idle)
    col3.caption("Cycles / burst")
    if col4.button(f"Run ×{int(step_count)}", use_container_width=True, disabled=idle):
        for _ in range(int(step_count)):
            if not session.is_running:
                break
            session.step()
        st.rerun()

    if col5.button("Reset", type="secondary", use_container_width=True):
        session.reset()
        st.rerun()

    if session.is_running:
        speed = st.slider(
            "Cycle interval (ms)",
            min_value=PLAY_SPEED_RANGE_MS[0],
            max_value=PLAY_SPEED_RANGE_MS[1],
            value=session.play_speed,
            step=50,
            help="Time between automatically stepped cycles",
        )
        session.set_speed(speed)

def render_current_status(session: TomasuloSession) -> None:
    """Next instruction to issue and the events of the last cycle."""
    if session.cycle == 0:
        return

    st.subheader("Current Cycle Status")

    state = session.state
    if state.issue_ptr < len(state.instructions):
        next_instr = state.instructions[state.issue_ptr]
        free_station = allocate(state.stations, next_instr.op)
        col1, col2 = st.columns(2)
        with col1:
            st.info(f"**Next to issue:** Instruction #{next_instr.id}: {next_instr.text}")
        with col2:
            if free_station is None:
                st.error(f"🚫 **STRUCTURAL HAZARD**: No free {UNIT_LABELS[next_instr.op.unit]} reservation station")
            else:
                st.success(f"✓ {UNIT_LABELS[next_instr.op.unit]} station available ({free_station.name})")

    last_events = [event for event in session.annotations if event.cycle == session.cycle]
    if last_events:
        st.markdown("**Last Cycle Events:**")
        for event in last_events:
            st.markdown(f"- {EVENT_ICONS[event.kind]} {event.message}")

def render_tables(session: TomasuloSession) -> None:
    state = session.state

    st.subheader("Machine State")
    top_left, top_right = st.columns((3, 2))
    with top_left:
        st.markdown("#### Instructions")
        st.dataframe(instructions_frame(state), use_container_width=True, hide_index=True, height=260)
    with top_right:
        st.markdown("#### Reservation Stations")
        st.dataframe(stations_frame(state), use_container_width=True, hide_index=True, height=260)

    bottom_left, bottom_right = st.columns((2, 2))
    with bottom_left:
        st.markdown("#### FP Registers")
        st.dataframe(registers_frame(state, fp=True), use_container_width=True, hide_index=True, height=240)
    with bottom_right:
        st.markdown("#### Integer Registers")
        st.dataframe(registers_frame(state, fp=False), use_container_width=True, hide_index=True, height=240)

def render_event_log(session: TomasuloSession) -> None:
    with st.expander("📝 Event Log", expanded=False):
        if not session.annotations:
            st.caption("No events yet.")
            return
        st.dataframe(annotations_frame(session.annotations), use_container_width=True, hide_index=True, height=300)

def render_gantt_chart(session: TomasuloSession) -> None:
    st.subheader("Execution Timeline")

    df = timeline_frame(session.state)
    if df.empty:
        st.info("Run the simulation to see the timeline.")
        return

    chart = alt.Chart(df).mark_bar().encode(
        x=alt.X('Start', title='Cycle'),
        x2='End',
        y=alt.Y('Instruction', sort=None),
        color=alt.Color('Stage', scale=alt.Scale(domain=list(STAGE_COLORS), range=list(STAGE_COLORS.values()))),
        tooltip=['Instruction', 'Stage', 'Start', 'End']
    ).properties(height=300)

    st.altair_chart(chart, use_container_width=True)

def main() -> None:
    st.set_page_config(page_title="Tomasulo Simulator", layout="wide")
    configure_logging()
    init_state()
    session: TomasuloSession = st.session_state["session"]

    render_header(session)
    with st.container():
        render_instruction_editor(session)
    with st.container():
        render_hardware_config(session)
        render_register_editor(session)
    with st.container():
        render_controls(session)
    with st.container():
        render_current_status(session)
    with st.container():
        render_tables(session)
    with st.container():
        render_event_log(session)
    with st.container():
        render_gantt_chart(session)

    if session.is_playing and session.is_running:
        time.sleep(session.play_speed / 1000.0)
        session.step()
        st.rerun()

if __name__ == "__main__":
    main()
