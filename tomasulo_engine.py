"""
Cycle engine for the Tomasulo algorithm.

Each call to :meth:`TomasuloEngine.advance` runs one clock cycle in three
fixed phases: write result, execute, issue. The engine keeps no run state of
its own; it receives a :class:`MachineState` snapshot and returns a new one
together with the cycle's events and the completion flag.
"""
from __future__ import annotations

import logging
from typing import List, NamedTuple, Optional

from tomasulo_model import (
    Annotation,
    EventKind,
    HardwareConfig,
    MachineState,
    Number,
    Operation,
    ReservationStation,
    UnitType,
)

__all__ = [
    "CycleResult",
    "TomasuloEngine",
    "advance",
    "allocate",
    "build_stations",
    "is_complete",
    "release",
]

logger = logging.getLogger(__name__)


class CycleResult(NamedTuple):
    state: MachineState
    events: List[Annotation]
    is_complete: bool


# ---------------------------------------------------------------------------
# Reservation station pool
# ---------------------------------------------------------------------------

def build_stations(config: HardwareConfig) -> List[ReservationStation]:
    """Empty pool laid out by unit type, then by index within the type."""
    return [
        ReservationStation(f"{unit.station_prefix}{index}", unit)
        for unit in UnitType
        for index in range(1, config.station_count(unit) + 1)
    ]


def allocate(
    stations: List[ReservationStation], op: Operation
) -> Optional[ReservationStation]:
    """First free station able to execute ``op``, or None on a structural hazard."""
    for station in stations:
        if station.unit is op.unit and not station.busy:
            return station
    return None


def release(station: ReservationStation) -> None:
    station.reset()


def is_complete(state: MachineState) -> bool:
    return (
        len(state.instructions) > 0
        and all(instr.is_finished for instr in state.instructions)
        and not any(station.busy for station in state.stations)
    )


def _format_value(value: Number) -> str:
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class TomasuloEngine:
    def __init__(self, config: HardwareConfig) -> None:
        self.config = config

    def advance(self, cycle: int, state: MachineState) -> CycleResult:
        """
        Run clock cycle ``cycle`` against ``state``.

        The input snapshot is left untouched. Phase order is write result,
        execute, issue, so a station freed by a broadcast can be reused by the
        same cycle's issue and a value written this cycle is visible to it.
        """
        state = state.clone()
        events: List[Annotation] = []
        self._write_results(cycle, state, events)
        self._advance_executions(cycle, state, events)
        self._issue_instruction(cycle, state, events)
        done = is_complete(state)
        if done:
            logger.info("All %d instructions retired at cycle %d", len(state.instructions), cycle)
        return CycleResult(state, events, done)

    def _write_results(self, cycle: int, state: MachineState, events: List[Annotation]) -> None:
        for rs in state.stations:
            if not (rs.busy and rs.executing and rs.remaining == 0):
                continue
            op = rs.op
            result = op.compute(rs.Vj, rs.Vk)
            registers = state.register_file(op)
            status = state.register_status(op)

            # A later issue may have renamed the destination; only the
            # producer still recorded in the status table updates the file.
            if status.get(rs.dest) == rs.name:
                registers[rs.dest] = result
                status[rs.dest] = None
                message = f"{rs.name} writes result {_format_value(result)} to {rs.dest}"
            else:
                message = (
                    f"{rs.name} broadcasts {_format_value(result)}; {rs.dest} "
                    f"already renamed to {status.get(rs.dest) or 'a completed producer'}"
                )

            for other in state.stations:
                if not other.busy or other is rs:
                    continue
                if other.Qj == rs.name:
                    other.Vj = result
                    other.Qj = None
                if other.Qk == rs.name:
                    other.Vk = result
                    other.Qk = None

            instr = state.instruction(rs.instruction_id)
            if instr is not None:
                instr.write_cycle = cycle
            events.append(Annotation(cycle, message, EventKind.WRITE))
            logger.debug("Cycle %d: %s", cycle, message)
            release(rs)

    def _advance_executions(self, cycle: int, state: MachineState, events: List[Annotation]) -> None:
        for rs in state.stations:
            if not rs.busy:
                continue
            instr = state.instruction(rs.instruction_id)

            if rs.executing:
                if rs.remaining > 0:
                    rs.remaining -= 1
                    if rs.remaining == 0 and instr is not None:
                        instr.exec_end = cycle
                continue

            if rs.is_ready:
                latency = rs.remaining
                rs.executing = True
                rs.remaining = max(rs.remaining - 1, 0)
                if instr is not None:
                    if instr.exec_start is None:
                        instr.exec_start = cycle
                    if rs.remaining == 0:
                        instr.exec_end = cycle
                message = f"{rs.name} starts executing {rs.op.value} ({latency} cycles)"
                events.append(Annotation(cycle, message, EventKind.EXECUTE))
                logger.debug("Cycle %d: %s", cycle, message)
            else:
                message = f"{rs.name} waiting for: {', '.join(rs.waiting_on())}"
                events.append(Annotation(cycle, message, EventKind.HAZARD))

    def _issue_instruction(self, cycle: int, state: MachineState, events: List[Annotation]) -> None:
        if state.issue_ptr >= len(state.instructions):
            return
        instr = state.instructions[state.issue_ptr]
        op = instr.op
        station = allocate(state.stations, op)

        if station is None:
            message = f"Structural hazard: No {op.unit.value} station available for {op.value}"
            events.append(Annotation(cycle, message, EventKind.HAZARD))
            logger.debug("Cycle %d: %s", cycle, message)
            return

        registers = state.register_file(op)
        status = state.register_status(op)
        empty = 0.0 if op.is_fp else 0

        station.busy = True
        station.op = op
        station.dest = instr.dest
        station.instruction_id = instr.id
        station.remaining = self.config.latency(op)
        station.executing = False

        producer = status.get(instr.src1)
        if producer:
            station.Qj, station.Vj = producer, None
        else:
            station.Qj, station.Vj = None, registers.get(instr.src1, empty)

        producer = status.get(instr.src2)
        if producer:
            station.Qk, station.Vk = producer, None
        else:
            station.Qk, station.Vk = None, registers.get(instr.src2, empty)

        # Renaming: the newest producer always owns the destination.
        status[instr.dest] = station.name

        instr.issue_cycle = cycle
        state.issue_ptr += 1

        message = f"Issued {instr.text} to {station.name}"
        events.append(Annotation(cycle, message, EventKind.ISSUE))
        logger.debug("Cycle %d: %s", cycle, message)

        blocking = []
        if station.Qj:
            blocking.append(f"{instr.src1} from {station.Qj}")
        if station.Qk:
            blocking.append(f"{instr.src2} from {station.Qk}")
        if blocking:
            events.append(
                Annotation(cycle, f"RAW hazard: waiting for {', '.join(blocking)}", EventKind.HAZARD)
            )


def advance(cycle: int, state: MachineState, config: HardwareConfig) -> CycleResult:
    return TomasuloEngine(config).advance(cycle, state)
