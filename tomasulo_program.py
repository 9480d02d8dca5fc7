"""
Program text parsing and the bundled example programs.
"""
from __future__ import annotations

import re
from typing import Dict, List, Optional

from tomasulo_model import Instruction, Operation

__all__ = [
    "EXAMPLE_PROGRAMS",
    "SAMPLE_PROGRAM_TEXT",
    "ProgramParseError",
    "build_sample_program",
    "format_instruction",
    "parse_instruction",
    "parse_program",
]

EXAMPLE_PROGRAMS: Dict[str, str] = {
    "basic": """\
MUL.D F0, F2, F4
ADD.D F6, F0, F8
SUB.D F8, F10, F14
DIV.D F10, F0, F6
ADD.D F6, F8, F2
""",
    "raw_hazard": """\
ADD.D F2, F0, F4
MUL.D F6, F2, F8
ADD.D F10, F6, F12
""",
    "waw_hazard": """\
MUL.D F0, F2, F4
ADD.D F0, F6, F8
""",
    "integer_ops": """\
ADD R1, R2, R3
MUL R4, R1, R5
SUB R6, R4, R7
""",
    "mixed": """\
MUL.D F0, F2, F4
ADD R1, R2, R3
ADD.D F6, F0, F8
MUL R4, R1, R5
""",
}

SAMPLE_PROGRAM_TEXT = EXAMPLE_PROGRAMS["basic"]

TOKEN_SPLIT_RE = re.compile(r"[,\s]+")
REGISTER_RE = {"F": re.compile(r"^F\d+$"), "R": re.compile(r"^R\d+$")}


class ProgramParseError(ValueError):
    """Raised for a program line that is not a valid instruction."""

    def __init__(self, line_no: int, line: str, reason: str) -> None:
        super().__init__(f"Line {line_no}: {reason} in '{line.strip()}'")
        self.line_no = line_no
        self.line = line
        self.reason = reason


def parse_instruction(line: str, instruction_id: int, line_no: Optional[int] = None) -> Optional[Instruction]:
    """
    Parse ``OP DEST, SRC1, SRC2``. Commas are optional and text after ``;``
    is a comment. Returns None for blank or comment-only lines.
    """
    line_no = instruction_id if line_no is None else line_no
    clean = line.split(";", 1)[0].strip()
    if not clean:
        return None

    tokens = [token for token in TOKEN_SPLIT_RE.split(clean) if token]
    if len(tokens) != 4:
        raise ProgramParseError(line_no, line, "expected 'OP DEST, SRC1, SRC2'")
    mnemonic, dest, src1, src2 = tokens

    try:
        op = Operation.from_mnemonic(mnemonic)
    except ValueError as exc:
        raise ProgramParseError(line_no, line, str(exc)) from exc

    registers = [reg.upper() for reg in (dest, src1, src2)]
    pattern = REGISTER_RE[op.register_prefix]
    for reg in registers:
        if not pattern.match(reg):
            kind = "floating-point" if op.is_fp else "integer"
            raise ProgramParseError(
                line_no, line, f"{op.value} needs {kind} registers, got '{reg}'"
            )

    return Instruction(id=instruction_id, op=op, dest=registers[0], src1=registers[1], src2=registers[2])


def parse_program(text: str) -> List[Instruction]:
    instructions: List[Instruction] = []
    for line_no, raw_line in enumerate(text.splitlines(), start=1):
        instr = parse_instruction(raw_line, len(instructions) + 1, line_no=line_no)
        if instr is not None:
            instructions.append(instr)
    return instructions


def format_instruction(instr: Instruction) -> str:
    return instr.text


def build_sample_program() -> List[Instruction]:
    return parse_program(SAMPLE_PROGRAM_TEXT)
