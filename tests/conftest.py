"""Pytest configuration and shared helpers for the Tomasulo tests."""

from typing import Any, Callable, List, Optional

import pytest

from tomasulo_model import DEFAULT_CONFIG, HardwareConfig, MachineState
from tomasulo_program import parse_program
from tomasulo_session import TomasuloSession


def pytest_configure(config: Any) -> None:
    """Register custom pytest markers."""
    config.addinivalue_line("markers", "scenario: end-to-end scheduling scenario")


def check_invariants(state: MachineState) -> None:
    """Assert the structural invariants that must hold at every snapshot."""
    busy = {rs.name: rs for rs in state.stations if rs.busy}
    for rs in state.stations:
        assert not (rs.Vj is not None and rs.Qj is not None), rs
        assert not (rs.Vk is not None and rs.Qk is not None), rs
        if rs.busy:
            assert rs.Qj is None or rs.Qj in busy
            assert rs.Qk is None or rs.Qk in busy
            assert rs.Qj != rs.name and rs.Qk != rs.name
        else:
            assert rs.op is None and rs.Qj is None and rs.Qk is None
    for status in (state.fp_status, state.int_status):
        producers = [name for name in status.values() if name is not None]
        assert len(producers) == len(set(producers))
        for reg, name in status.items():
            if name is not None:
                assert name in busy
                assert busy[name].dest == reg


@pytest.fixture
def make_session() -> Callable[..., TomasuloSession]:
    """Factory for a started session running ``text`` on a config derived from the defaults."""

    def factory(text: str, config: Optional[HardwareConfig] = None, **changes: int) -> TomasuloSession:
        config = (config or DEFAULT_CONFIG).with_changes(**changes)
        session = TomasuloSession(program=parse_program(text), config=config)
        session.start()
        return session

    return factory


@pytest.fixture
def run_checked() -> Callable[[TomasuloSession, int], List[MachineState]]:
    """Step a session to completion, checking invariants after every cycle."""

    def runner(session: TomasuloSession, max_cycles: int = 1000) -> List[MachineState]:
        snapshots = []
        while session.is_running:
            assert session.cycle < max_cycles, "simulation did not terminate"
            session.step()
            check_invariants(session.state)
            snapshots.append(session.state)
        return snapshots

    return runner


@pytest.fixture
def invariants() -> Callable[[MachineState], None]:
    return check_invariants
