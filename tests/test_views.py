"""Tests for the pandas views of a snapshot."""

from tomasulo_program import EXAMPLE_PROGRAMS
from tomasulo_views import (
    STAGE_COLORS,
    annotations_frame,
    instructions_frame,
    registers_frame,
    stations_frame,
    timeline_frame,
)


class TestFrames:
    def test_instruction_table_before_and_after_run(self, make_session) -> None:
        session = make_session(EXAMPLE_PROGRAMS["waw_hazard"])
        df = instructions_frame(session.state)
        assert list(df.columns) == ["#", "Op", "Dest", "Src1", "Src2", "Issue", "Exec Start", "Exec End", "Write"]
        assert df["Issue"].tolist() == ["", ""]
        assert df["#"].tolist() == ["1", "2"]

        session.run()
        df = instructions_frame(session.state)
        assert df["Write"].tolist() == ["12", "5"]

    def test_station_table_shows_tags(self, make_session) -> None:
        session = make_session(EXAMPLE_PROGRAMS["basic"])
        session.step()
        session.step()
        df = stations_frame(session.state).set_index("Name")
        assert df.loc["Add1", "Qj"] == "Mult1"
        assert df.loc["Add1", "Vk"] == "8.000"
        assert df.loc["Mult1", "Remain"] == "9"
        assert df.loc["Add2", "Busy"] == "No"

    def test_register_tables_are_numerically_sorted(self, make_session) -> None:
        session = make_session(EXAMPLE_PROGRAMS["mixed"])
        session.step()
        fp = registers_frame(session.state, fp=True)
        ints = registers_frame(session.state, fp=False)
        assert fp["Name"].tolist()[:3] == ["F0", "F2", "F4"]
        assert fp.set_index("Name").loc["F0", "Qi"] == "Mult1"
        assert ints["Name"].tolist()[-1] == "R15"
        assert ints.set_index("Name").loc["R15", "Value"] == "15"

    def test_annotations_frame(self, make_session) -> None:
        session = make_session(EXAMPLE_PROGRAMS["integer_ops"])
        assert annotations_frame([]).empty
        session.run()
        df = annotations_frame(session.annotations)
        assert df.iloc[0].tolist() == [0, "info", "Simulation started"]
        assert set(df["Kind"]) <= {"issue", "execute", "write", "hazard", "info"}

    def test_timeline(self, make_session) -> None:
        session = make_session(EXAMPLE_PROGRAMS["raw_hazard"])
        assert timeline_frame(session.state).empty
        session.run()
        df = timeline_frame(session.state)
        assert set(df["Stage"]) == set(STAGE_COLORS)
        assert len(df) == 3 * len(STAGE_COLORS)
        assert (df["End"] > df["Start"]).all()
