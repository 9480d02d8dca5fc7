"""
Data model for the Tomasulo cycle engine: operations, functional units,
instructions, reservation stations, hardware configuration and the machine
snapshot exchanged between cycles.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Dict, Final, List, Optional, Tuple, Union

__all__ = [
    "Number",
    "UnitType",
    "Operation",
    "EventKind",
    "Annotation",
    "Instruction",
    "ReservationStation",
    "HardwareConfig",
    "MachineState",
    "DEFAULT_CONFIG",
    "STATION_COUNT_RANGE",
    "LATENCY_RANGE",
    "default_fp_registers",
    "default_int_registers",
    "initial_register_status",
]

Number = Union[int, float]

STATION_COUNT_RANGE: Final[Tuple[int, int]] = (1, 10)
LATENCY_RANGE: Final[Tuple[int, int]] = (1, 100)


class UnitType(Enum):
    FP_ADD = "FP_ADD"
    FP_MULT = "FP_MULT"
    INT_ADD = "INT_ADD"
    INT_MULT = "INT_MULT"

    @property
    def station_prefix(self) -> str:
        return _STATION_PREFIXES[self]

    @property
    def count_field(self) -> str:
        """Name of the HardwareConfig field holding this unit's station count."""
        return f"{self.value.lower()}_stations"


_STATION_PREFIXES: Dict[UnitType, str] = {
    UnitType.FP_ADD: "Add",
    UnitType.FP_MULT: "Mult",
    UnitType.INT_ADD: "IntAdd",
    UnitType.INT_MULT: "IntMult",
}


class Operation(Enum):
    """The eight supported mnemonics."""

    ADD_D = "ADD.D"
    SUB_D = "SUB.D"
    MUL_D = "MUL.D"
    DIV_D = "DIV.D"
    ADD = "ADD"
    SUB = "SUB"
    MUL = "MUL"
    DIV = "DIV"

    @classmethod
    def from_mnemonic(cls, text: str) -> "Operation":
        try:
            return cls(text.strip().upper())
        except ValueError:
            raise ValueError(f"unsupported opcode '{text}'") from None

    @property
    def is_fp(self) -> bool:
        return self.value.endswith(".D")

    @property
    def kind(self) -> str:
        """Arithmetic kind shared by the FP and integer variant: ADD, SUB, MUL or DIV."""
        return self.value.split(".", 1)[0]

    @property
    def unit(self) -> UnitType:
        if self.kind in ("ADD", "SUB"):
            return UnitType.FP_ADD if self.is_fp else UnitType.INT_ADD
        return UnitType.FP_MULT if self.is_fp else UnitType.INT_MULT

    @property
    def register_prefix(self) -> str:
        return "F" if self.is_fp else "R"

    @property
    def latency_field(self) -> str:
        """Name of the HardwareConfig field holding this operation's latency."""
        kind = {"ADD": "add", "SUB": "sub", "MUL": "mult", "DIV": "div"}[self.kind]
        return f"{'fp' if self.is_fp else 'int'}_{kind}_latency"

    def compute(self, v1: Number, v2: Number) -> Number:
        """
        Result of applying the operation to two operand values.

        Division by zero yields zero. Integer operations produce integers and
        integer division truncates toward zero.
        """
        kind = self.kind
        if kind == "ADD":
            result = v1 + v2
        elif kind == "SUB":
            result = v1 - v2
        elif kind == "MUL":
            result = v1 * v2
        elif kind == "DIV":
            if v2 == 0:
                result = 0
            elif self.is_fp:
                result = v1 / v2
            else:
                quotient = abs(int(v1)) // abs(int(v2))
                result = quotient if (v1 < 0) == (v2 < 0) else -quotient
        else:
            raise ValueError(f"Unsupported operation {self.value}")
        return float(result) if self.is_fp else int(result)


class EventKind(Enum):
    ISSUE = "issue"
    EXECUTE = "execute"
    WRITE = "write"
    HAZARD = "hazard"
    INFO = "info"


@dataclass(frozen=True)
class Annotation:
    """One entry of the cycle-tagged event log."""

    cycle: int
    message: str
    kind: EventKind


@dataclass
class Instruction:
    id: int
    op: Operation
    dest: str
    src1: str
    src2: str
    issue_cycle: Optional[int] = None
    exec_start: Optional[int] = None
    exec_end: Optional[int] = None
    write_cycle: Optional[int] = None

    def cleared(self) -> "Instruction":
        """Copy of the instruction with every timing stamp unset."""
        return replace(
            self, issue_cycle=None, exec_start=None, exec_end=None, write_cycle=None
        )

    @property
    def text(self) -> str:
        return f"{self.op.value} {self.dest}, {self.src1}, {self.src2}"

    @property
    def is_finished(self) -> bool:
        return self.write_cycle is not None


@dataclass
class ReservationStation:
    name: str
    unit: UnitType
    busy: bool = False
    op: Optional[Operation] = None
    Vj: Optional[Number] = None
    Vk: Optional[Number] = None
    Qj: Optional[str] = None
    Qk: Optional[str] = None
    dest: Optional[str] = None
    instruction_id: Optional[int] = None
    remaining: int = 0
    executing: bool = False

    def reset(self) -> None:
        self.busy = False
        self.op = None
        self.Vj = None
        self.Vk = None
        self.Qj = None
        self.Qk = None
        self.dest = None
        self.instruction_id = None
        self.remaining = 0
        self.executing = False

    @property
    def is_ready(self) -> bool:
        return self.Qj is None and self.Qk is None

    def waiting_on(self) -> List[str]:
        return [tag for tag in (self.Qj, self.Qk) if tag]


@dataclass(frozen=True)
class HardwareConfig:
    """
    Station counts per functional-unit type and execution latency per
    operation, in cycles. Immutable for the duration of a run.
    """

    fp_add_stations: int = 3
    fp_mult_stations: int = 2
    int_add_stations: int = 2
    int_mult_stations: int = 2
    fp_add_latency: int = 2
    fp_sub_latency: int = 2
    fp_mult_latency: int = 10
    fp_div_latency: int = 40
    int_add_latency: int = 1
    int_sub_latency: int = 1
    int_mult_latency: int = 4
    int_div_latency: int = 20

    def __post_init__(self) -> None:
        for item in fields(self):
            value = getattr(self, item.name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise ValueError(f"{item.name} must be an integer >= 1, got {value!r}")

    def station_count(self, unit: UnitType) -> int:
        return getattr(self, unit.count_field)

    def latency(self, op: Operation) -> int:
        return getattr(self, op.latency_field)

    def with_changes(self, **changes: int) -> "HardwareConfig":
        unknown = set(changes) - {item.name for item in fields(self)}
        if unknown:
            raise ValueError(f"Unknown configuration field(s): {', '.join(sorted(unknown))}")
        return replace(self, **changes)

    @classmethod
    def clamped(cls, **values: int) -> "HardwareConfig":
        """Build a config with every value forced into its allowed range."""
        bounded = {}
        for name, value in values.items():
            low, high = STATION_COUNT_RANGE if name.endswith("_stations") else LATENCY_RANGE
            bounded[name] = max(low, min(high, int(value)))
        return cls().with_changes(**bounded)

    def to_dict(self) -> Dict[str, int]:
        return {item.name: getattr(self, item.name) for item in fields(self)}


DEFAULT_CONFIG = HardwareConfig()


@dataclass
class MachineState:
    """
    Full snapshot of the simulated machine. ``advance`` consumes one snapshot
    and produces a new one; the two never share mutable parts.
    """

    instructions: List[Instruction] = field(default_factory=list)
    stations: List[ReservationStation] = field(default_factory=list)
    fp_registers: Dict[str, float] = field(default_factory=dict)
    int_registers: Dict[str, int] = field(default_factory=dict)
    fp_status: Dict[str, Optional[str]] = field(default_factory=dict)
    int_status: Dict[str, Optional[str]] = field(default_factory=dict)
    issue_ptr: int = 0

    def clone(self) -> "MachineState":
        return copy.deepcopy(self)

    def register_file(self, op: Operation) -> Dict[str, Number]:
        return self.fp_registers if op.is_fp else self.int_registers

    def register_status(self, op: Operation) -> Dict[str, Optional[str]]:
        return self.fp_status if op.is_fp else self.int_status

    def instruction(self, instruction_id: Optional[int]) -> Optional[Instruction]:
        for instr in self.instructions:
            if instr.id == instruction_id:
                return instr
        return None

    def station(self, name: str) -> Optional[ReservationStation]:
        for station in self.stations:
            if station.name == name:
                return station
        return None


def default_fp_registers() -> Dict[str, float]:
    return {f"F{i}": float(i) for i in range(0, 32, 2)}


def default_int_registers() -> Dict[str, int]:
    return {f"R{i}": i for i in range(16)}


def initial_register_status(registers: Dict[str, Number]) -> Dict[str, Optional[str]]:
    return {reg: None for reg in registers}
