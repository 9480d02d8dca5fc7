"""Tests for the session controller lifecycle."""

import logging

import pytest

from tomasulo_model import DEFAULT_CONFIG, EventKind, HardwareConfig
from tomasulo_program import EXAMPLE_PROGRAMS, parse_program
from tomasulo_session import ConfigurationLockedError, TomasuloSession, configure_logging


@pytest.fixture
def session() -> TomasuloSession:
    return TomasuloSession(program=parse_program(EXAMPLE_PROGRAMS["raw_hazard"]))


class TestLifecycle:
    def test_new_session_is_idle(self, session: TomasuloSession) -> None:
        assert session.cycle == 0
        assert not session.is_started and not session.is_complete
        assert session.annotations == []
        assert all(not rs.busy for rs in session.state.stations)
        assert all(v is None for v in session.state.fp_status.values())

    def test_step_requires_start(self, session: TomasuloSession) -> None:
        assert session.step() == []
        assert session.cycle == 0

    def test_start_logs_info_event(self, session: TomasuloSession) -> None:
        assert session.start()
        assert [(a.cycle, a.kind, a.message) for a in session.annotations] == [
            (0, EventKind.INFO, "Simulation started"),
        ]

    def test_start_during_run_is_refused(self, session: TomasuloSession) -> None:
        session.start()
        for _ in range(5):
            session.step()
        log = list(session.annotations)
        assert not session.start()
        assert session.cycle == 5
        assert session.annotations == log

        session.run()
        for instr in session.instructions:
            latency = session.config.latency(instr.op)
            assert instr.exec_end == instr.exec_start + latency - 1
            assert instr.write_cycle == instr.exec_end + 1
        assert not session.start()
        assert session.is_complete

    def test_start_with_empty_program_is_refused(self) -> None:
        empty = TomasuloSession()
        assert not empty.start()
        assert not empty.is_started

    def test_completion_appends_info_and_stops(self, session: TomasuloSession) -> None:
        session.start()
        session.play()
        cycles = session.run()
        assert session.is_complete and not session.is_running
        assert not session.is_playing
        assert cycles == session.cycle
        last = session.annotations[-1]
        assert last.kind is EventKind.INFO
        assert last.message == "Simulation complete - all instructions finished"
        assert last.cycle == session.cycle
        assert session.step() == []

    def test_run_honours_cycle_limit(self, session: TomasuloSession) -> None:
        assert session.run(max_cycles=3) == 3
        assert session.cycle == 3
        assert session.is_running

    def test_reset_keeps_program_and_restores_registers(self, session: TomasuloSession) -> None:
        session.run()
        assert session.state.fp_registers["F2"] == 4.0
        session.reset()
        assert session.cycle == 0
        assert len(session.instructions) == 3
        assert all(i.issue_cycle is None and i.write_cycle is None for i in session.instructions)
        assert session.state.fp_registers["F2"] == 2.0
        assert session.state.issue_ptr == 0
        assert session.annotations == []

    def test_load_program_replaces_instructions(self, session: TomasuloSession) -> None:
        session.run(max_cycles=2)
        session.load_program(parse_program(EXAMPLE_PROGRAMS["integer_ops"]))
        assert not session.is_started
        assert session.cycle == 0
        assert [i.op.value for i in session.instructions] == ["ADD", "MUL", "SUB"]
        assert all(i.issue_cycle is None for i in session.instructions)

    def test_load_program_does_not_touch_callers_list(self, session: TomasuloSession) -> None:
        program = parse_program("ADD R1, R2, R3")
        session.load_program(program)
        session.run()
        assert program[0].write_cycle is None
        assert session.instructions[0].write_cycle == 3


class TestConfiguration:
    def test_configure_before_start_rebuilds_on_reset(self, session: TomasuloSession) -> None:
        session.configure(fp_add_stations=1, fp_add_latency=5)
        session.reset()
        names = [rs.name for rs in session.state.stations]
        assert names.count("Add1") == 1 and "Add2" not in names
        session.run()
        assert session.instructions[0].exec_end - session.instructions[0].exec_start == 4

    def test_rebuild_stations(self, session: TomasuloSession) -> None:
        session.configure(int_mult_stations=5)
        session.rebuild_stations()
        assert "IntMult5" in [rs.name for rs in session.state.stations]

    @pytest.mark.parametrize(
        "action",
        [
            lambda s: s.configure(fp_add_stations=1),
            lambda s: s.rebuild_stations(),
            lambda s: s.set_register("F2", 1.0),
        ],
        ids=["configure", "rebuild", "set_register"],
    )
    def test_locked_while_running(self, session: TomasuloSession, action) -> None:
        session.start()
        session.step()
        with pytest.raises(ConfigurationLockedError):
            action(session)
        assert session.config == DEFAULT_CONFIG

    def test_unlocked_after_completion(self, session: TomasuloSession) -> None:
        session.run()
        assert session.configure(fp_mult_latency=2) == DEFAULT_CONFIG.with_changes(fp_mult_latency=2)

    def test_invalid_change_is_rejected(self, session: TomasuloSession) -> None:
        with pytest.raises(ValueError):
            session.configure(fp_add_stations=0)
        assert session.config == DEFAULT_CONFIG

    def test_custom_config_in_constructor(self) -> None:
        config = HardwareConfig(fp_add_stations=1)
        session = TomasuloSession(program=parse_program("ADD.D F0, F2, F4"), config=config)
        assert [rs.name for rs in session.state.stations][:2] == ["Add1", "Mult1"]


class TestRegisters:
    def test_set_register_feeds_next_run(self, session: TomasuloSession) -> None:
        session.set_register("f0", 1.5)
        session.set_register("R20", 7)
        assert session.state.fp_registers["F0"] == 1.5
        assert session.state.int_registers["R20"] == 7
        assert session.state.int_status["R20"] is None
        session.run()
        assert session.state.fp_registers["F2"] == 5.5
        session.reset()
        assert session.state.fp_registers["F0"] == 1.5

    @pytest.mark.parametrize("name", ["X1", "F", "RR2"])
    def test_unknown_register(self, session: TomasuloSession, name: str) -> None:
        with pytest.raises(ValueError, match="Unknown register"):
            session.set_register(name, 1)


class TestPlayback:
    def test_play_requires_running(self, session: TomasuloSession) -> None:
        assert not session.play()
        session.start()
        assert session.play()
        session.pause()
        assert not session.is_playing

    @pytest.mark.parametrize("requested, expected", [(10, 50), (250, 250), (60000, 5000)])
    def test_speed_is_clamped(self, session: TomasuloSession, requested: int, expected: int) -> None:
        assert session.set_speed(requested) == expected
        assert session.play_speed == expected


class TestLogging:
    def test_lifecycle_is_logged(self, session: TomasuloSession, caplog) -> None:
        with caplog.at_level(logging.DEBUG):
            session.run()
        messages = [record.getMessage() for record in caplog.records]
        assert "Simulation started" in messages
        assert any(m.startswith("Cycle 1: Issued ADD.D F2, F0, F4") for m in messages)
        assert any("Simulation complete" in m for m in messages)

    def test_configure_logging_reads_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("TOMASULO_LOG_LEVEL", "debug")
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        root.handlers = []
        try:
            configure_logging()
            assert root.level == logging.DEBUG
        finally:
            root.handlers = saved_handlers
            root.setLevel(saved_level)
