"""
Session controller around the cycle engine.

Owns the latest machine snapshot, the hardware configuration, the
accumulated event log and the run flags a front-end needs (started,
complete, playing, speed). Every simulation step is delegated to
:class:`tomasulo_engine.TomasuloEngine`.
"""
from __future__ import annotations

import logging
import os
import re
from typing import Dict, List, Optional

from tomasulo_engine import TomasuloEngine, build_stations
from tomasulo_model import (
    DEFAULT_CONFIG,
    Annotation,
    EventKind,
    HardwareConfig,
    Instruction,
    MachineState,
    Number,
    default_fp_registers,
    default_int_registers,
    initial_register_status,
)

__all__ = [
    "ConfigurationLockedError",
    "TomasuloSession",
    "configure_logging",
    "DEFAULT_PLAY_SPEED_MS",
    "PLAY_SPEED_RANGE_MS",
]

logger = logging.getLogger(__name__)

DEFAULT_PLAY_SPEED_MS = 500
PLAY_SPEED_RANGE_MS = (50, 5000)
LOG_LEVEL_ENV = "TOMASULO_LOG_LEVEL"
REGISTER_NAME_RE = re.compile(r"^[FR]\d+$")


class ConfigurationLockedError(RuntimeError):
    """Raised when hardware or register setup is changed during an active run."""


def configure_logging(level: Optional[str] = None) -> None:
    """Set up root logging; ``level`` falls back to $TOMASULO_LOG_LEVEL, then WARNING."""
    level = (level or os.environ.get(LOG_LEVEL_ENV) or "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="[%(name)s] %(levelname)-5s: %(message)s",
    )


class TomasuloSession:
    def __init__(
        self,
        program: Optional[List[Instruction]] = None,
        config: HardwareConfig = DEFAULT_CONFIG,
        fp_registers: Optional[Dict[str, float]] = None,
        int_registers: Optional[Dict[str, int]] = None,
    ) -> None:
        self.config = config
        self.fp_init = dict(fp_registers) if fp_registers is not None else default_fp_registers()
        self.int_init = dict(int_registers) if int_registers is not None else default_int_registers()
        self.state = MachineState()
        self.cycle = 0
        self.annotations: List[Annotation] = []
        self.is_started = False
        self.is_complete = False
        self.is_playing = False
        self.play_speed = DEFAULT_PLAY_SPEED_MS
        self.reset()
        if program:
            self.load_program(program)

    @property
    def is_running(self) -> bool:
        return self.is_started and not self.is_complete

    @property
    def instructions(self) -> List[Instruction]:
        return self.state.instructions

    def _require_idle(self, action: str) -> None:
        if self.is_running:
            raise ConfigurationLockedError(f"Cannot {action} while a simulation is running; reset first")

    # -- lifecycle ---------------------------------------------------------

    def load_program(self, program: List[Instruction]) -> None:
        """Install a new program and clear every piece of run state."""
        self.state.instructions = list(program)
        self.reset()
        logger.info("Loaded program with %d instructions", len(program))

    def reset(self) -> None:
        """Back to cycle zero with the current program, initial registers and a fresh pool."""
        self.state = MachineState(
            instructions=[instr.cleared() for instr in self.state.instructions],
            stations=build_stations(self.config),
            fp_registers=dict(self.fp_init),
            int_registers=dict(self.int_init),
            fp_status=initial_register_status(self.fp_init),
            int_status=initial_register_status(self.int_init),
        )
        self.cycle = 0
        self.annotations = []
        self.is_started = False
        self.is_complete = False
        self.is_playing = False
        logger.debug("Session reset")

    def configure(self, **changes: int) -> HardwareConfig:
        """Merge station count and latency changes into the configuration."""
        self._require_idle("reconfigure the hardware")
        self.config = self.config.with_changes(**changes)
        logger.info("Hardware configuration updated: %s", changes)
        return self.config

    def rebuild_stations(self) -> None:
        self._require_idle("rebuild reservation stations")
        self.state.stations = build_stations(self.config)

    def set_register(self, name: str, value: Number) -> None:
        """Set an initial register value. The register file is picked from the name prefix."""
        self._require_idle("edit registers")
        name = name.strip().upper()
        if not REGISTER_NAME_RE.match(name):
            raise ValueError(f"Unknown register '{name}'")
        if name.startswith("F"):
            self.fp_init[name] = float(value)
            self.state.fp_registers[name] = float(value)
            self.state.fp_status.setdefault(name, None)
        else:
            self.int_init[name] = int(value)
            self.state.int_registers[name] = int(value)
            self.state.int_status.setdefault(name, None)

    def start(self) -> bool:
        """Begin a run from cycle zero. A no-op for an empty program or a run already started."""
        if not self.state.instructions or self.is_started:
            return False
        self.is_started = True
        self.is_complete = False
        self.cycle = 0
        self.annotations = [Annotation(0, "Simulation started", EventKind.INFO)]
        logger.info("Simulation started")
        return True

    # -- stepping ----------------------------------------------------------

    def step(self) -> List[Annotation]:
        """Advance one cycle and return the events it produced."""
        if not self.is_running:
            return []
        cycle = self.cycle + 1
        result = TomasuloEngine(self.config).advance(cycle, self.state)
        events = list(result.events)
        if result.is_complete:
            events.append(
                Annotation(cycle, "Simulation complete - all instructions finished", EventKind.INFO)
            )
            self.is_playing = False
            logger.info("Simulation complete after %d cycles", cycle)
        self.cycle = cycle
        self.state = result.state
        self.is_complete = result.is_complete
        self.annotations.extend(events)
        return events

    def run(self, max_cycles: int = 10_000) -> int:
        """Step until the program completes or ``max_cycles`` cycles have run; returns cycles run."""
        if not self.is_started:
            self.start()
        steps = 0
        while self.is_running and steps < max_cycles:
            self.step()
            steps += 1
        return steps

    # -- presentation flags ------------------------------------------------

    def play(self) -> bool:
        if not self.is_running:
            return False
        self.is_playing = True
        return True

    def pause(self) -> None:
        self.is_playing = False

    def set_speed(self, milliseconds: int) -> int:
        low, high = PLAY_SPEED_RANGE_MS
        self.play_speed = max(low, min(high, int(milliseconds)))
        return self.play_speed
