"""
Tabular views of a machine snapshot, used by the Streamlit front-end.
"""
from __future__ import annotations

from typing import Dict, List, Optional

import pandas as pd

from tomasulo_model import Annotation, Instruction, MachineState, Number, ReservationStation

__all__ = [
    "STAGE_COLORS",
    "annotations_frame",
    "instruction_row",
    "instructions_frame",
    "register_rows",
    "registers_frame",
    "reservation_row",
    "stations_frame",
    "timeline_frame",
]

STAGE_COLORS: Dict[str, str] = {
    "Issue (Wait)": "#f0ad4e",
    "Execute": "#5bc0de",
    "Write (CDB)": "#5cb85c",
}


def _cell(value: Optional[Number]) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        return f"{value:.3f}"
    return str(value)


def instruction_row(instr: Instruction) -> Dict[str, str]:
    return {
        "#": str(instr.id),
        "Op": instr.op.value,
        "Dest": instr.dest,
        "Src1": instr.src1,
        "Src2": instr.src2,
        "Issue": _cell(instr.issue_cycle),
        "Exec Start": _cell(instr.exec_start),
        "Exec End": _cell(instr.exec_end),
        "Write": _cell(instr.write_cycle),
    }


def reservation_row(rs: ReservationStation) -> Dict[str, str]:
    return {
        "Name": rs.name,
        "Busy": "Yes" if rs.busy else "No",
        "Op": rs.op.value if rs.op else "",
        "Vj": _cell(rs.Vj),
        "Vk": _cell(rs.Vk),
        "Qj": rs.Qj or "",
        "Qk": rs.Qk or "",
        "Dest": rs.dest or "",
        "Remain": str(rs.remaining) if rs.executing else "",
    }


def register_rows(registers: Dict[str, Number], status: Dict[str, Optional[str]]) -> List[Dict[str, str]]:
    return [
        {"Name": name, "Value": _cell(value), "Qi": status.get(name) or ""}
        for name, value in sorted(registers.items(), key=lambda item: int(item[0][1:]))
    ]


def instructions_frame(state: MachineState) -> pd.DataFrame:
    return pd.DataFrame([instruction_row(instr) for instr in state.instructions])


def stations_frame(state: MachineState) -> pd.DataFrame:
    return pd.DataFrame([reservation_row(rs) for rs in state.stations])


def registers_frame(state: MachineState, fp: bool = True) -> pd.DataFrame:
    if fp:
        return pd.DataFrame(register_rows(state.fp_registers, state.fp_status))
    return pd.DataFrame(register_rows(state.int_registers, state.int_status))


def annotations_frame(annotations: List[Annotation]) -> pd.DataFrame:
    return pd.DataFrame(
        [{"Cycle": a.cycle, "Kind": a.kind.value, "Message": a.message} for a in annotations],
        columns=["Cycle", "Kind", "Message"],
    )


def timeline_frame(state: MachineState) -> pd.DataFrame:
    """One bar per instruction stage: waiting after issue, executing, writing on the CDB."""
    data = []
    for instr in state.instructions:
        label = f"#{instr.id} {instr.op.value}"
        if instr.issue_cycle is not None and instr.exec_start is not None:
            data.append({"Instruction": label, "Stage": "Issue (Wait)", "Start": instr.issue_cycle, "End": instr.exec_start})
        if instr.exec_start is not None and instr.exec_end is not None:
            data.append({"Instruction": label, "Stage": "Execute", "Start": instr.exec_start, "End": instr.exec_end + 1})
        if instr.write_cycle is not None:
            data.append({"Instruction": label, "Stage": "Write (CDB)", "Start": instr.write_cycle, "End": instr.write_cycle + 1})
    return pd.DataFrame(data, columns=["Instruction", "Stage", "Start", "End"])
