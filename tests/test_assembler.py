"""
Assembler Tests for rvstep.

Tests line classification, label resolution and the error report of
the two-pass assembler.
"""

import pytest

from rvstep import compile_source
from rvstep.assembler import Assembler, AssemblerError, assemble, assemble_or_raise
from rvstep.program import ErrorKind, Format


def _kinds(source: str) -> list:
    return [err.kind for err in assemble(source).errors]


class TestLineShapes:
    """Each operand shape decodes to the right format and operands."""

    def test_r_type(self):
        program = assemble("add x1, x2, x3")
        assert program.ok
        instr = program[0]
        assert instr.fmt is Format.R
        assert instr.op == "add"
        assert instr.operands == (1, 2, 3)

    def test_i_type(self):
        instr = assemble("addi x1, x2, -5")[0]
        assert instr.fmt is Format.I
        assert instr.operands == (1, 2, -5)

    def test_jalr_and_lw_are_i_type(self):
        program = assemble("jalr x1, x2, 0\nlw x3, x4, 8")
        assert [i.fmt for i in program] == [Format.I, Format.I]

    def test_s_type(self):
        instr = assemble("sw x2, 4, x1")[0]
        assert instr.fmt is Format.S
        assert instr.operands == (2, 4, 1)

    def test_u_type(self):
        instr = assemble("jal x1, 3")[0]
        assert instr.fmt is Format.U
        assert instr.operands == (1, 3)

    def test_line_numbers_are_one_based(self):
        program = assemble("# header\n\naddi x1, x0, 1")
        assert program[0].line_num == 3

    def test_blank_and_comment_lines_skipped(self):
        program = assemble("\n   \n# only a comment\naddi x1, x0, 1  # trailing\n")
        assert program.ok
        assert len(program) == 1

    def test_crlf_line_endings(self):
        program = assemble("addi x1, x0, 1\r\naddi x2, x0, 2\r\n")
        assert program.ok
        assert len(program) == 2

    def test_empty_source(self):
        program = assemble("")
        assert program.ok
        assert len(program) == 0
        assert program.listing() == ""


class TestLabels:
    """Two-pass resolution: offsets are target index minus jump index."""

    def test_backward_jump(self):
        program = assemble("loop:\naddi x1, x1, 1\njal x0, loop")
        assert program.ok
        assert program.labels == {"loop": 0}
        jump = program[1]
        assert jump.fmt is Format.LABEL_JUMP
        assert jump.operands == (0, -1)
        assert jump.label == "loop"

    def test_forward_jump(self):
        program = assemble("jal x1, end\naddi x2, x0, 1\nend:")
        assert program.ok
        assert program.labels == {"end": 2}
        assert program[0].operands == (1, 2)

    def test_label_on_instruction_line(self):
        program = assemble("loop: addi x1, x1, 1\njal x0, loop")
        assert program.ok
        assert program.labels == {"loop": 0}
        assert program[1].operands == (0, -1)

    def test_self_jump(self):
        program = assemble("here: jal x0, here")
        assert program[0].operands == (0, 0)

    def test_later_definition_wins(self):
        program = assemble("a:\naddi x1, x0, 1\na:\njal x0, a")
        assert program.labels == {"a": 1}
        assert program[1].operands == (0, 0)

    def test_register_name_is_not_a_label(self):
        assert _kinds("x5:") == [ErrorKind.UNMATCHED_LINE]

    def test_labels_do_not_count_as_instructions(self):
        program = assemble("start:\nmid:\naddi x1, x0, 1\nend:")
        assert len(program) == 1
        assert program.labels == {"start": 0, "mid": 0, "end": 1}


class TestErrors:
    """Bad lines are reported and assembly carries on."""

    def test_unknown_operator(self):
        program = assemble("foo x1, x2, x3")
        assert not program.ok
        err = program.errors[0]
        assert err.kind is ErrorKind.UNKNOWN_OPERATOR
        assert err.message == "Unknown operator 'foo' of type 'R' at line 1"
        assert err.line_num == 1

    def test_mnemonic_in_wrong_shape(self):
        program = assemble("add x1, 5")
        err = program.errors[0]
        assert err.kind is ErrorKind.UNKNOWN_OPERATOR
        assert err.message == "Unknown operator 'add' of type 'U' at line 1"

    def test_two_registers_fit_no_shape(self):
        program = assemble("add x1, x2")
        err = program.errors[0]
        assert err.kind is ErrorKind.UNMATCHED_LINE
        assert err.message == "Unknown operator format: 'add x1, x2' at line 1"

    def test_label_jump_only_for_jal(self):
        program = assemble("loop:\njalr x1, loop")
        err = program.errors[0]
        assert err.kind is ErrorKind.UNKNOWN_OPERATOR
        assert err.message == "Unknown operator 'jalr' of type 'labelJump' at line 2"

    def test_mnemonics_are_case_sensitive(self):
        assert _kinds("ADD x1, x2, x3") == [ErrorKind.UNKNOWN_OPERATOR]

    def test_unmatched_line(self):
        program = assemble("add x1 x2 x3")
        err = program.errors[0]
        assert err.kind is ErrorKind.UNMATCHED_LINE
        assert err.message == "Unknown operator format: 'add x1 x2 x3' at line 1"

    @pytest.mark.parametrize("line", [
        "add x1, x2, x3,",
        "addi x1, x2, loop",
        "addi x1, x0, 12abc",
        "sw x1, x2, x3 @",
        "42",
        "jal",
    ])
    def test_malformed_lines(self, line):
        assert _kinds(line) == [ErrorKind.UNMATCHED_LINE]

    def test_unknown_label(self):
        program = assemble("addi x1, x0, 1\njal x0, nowhere")
        err = program.errors[0]
        assert err.kind is ErrorKind.UNKNOWN_LABEL
        assert err.message == "Unknown label 'nowhere' at line 2"
        assert not program[1].resolved
        assert program[1].text == "jal x0, nowhere"

    def test_register_out_of_range(self):
        program = assemble("addi x32, x0, 1")
        err = program.errors[0]
        assert err.kind is ErrorKind.REGISTER_RANGE
        assert err.message == "Register 'x32' out of range (x0-x31) at line 1"

    def test_all_errors_collected(self):
        source = "\n".join([
            "addi x1, x0, 1",
            "bogus x1, x2, x3",
            "addi x2, x0, 2",
            "not a line",
            "jal x0, missing",
        ])
        program = assemble(source)
        assert [e.line_num for e in program.errors] == [2, 4, 5]
        assert [e.kind for e in program.errors] == [
            ErrorKind.UNKNOWN_OPERATOR, ErrorKind.UNMATCHED_LINE, ErrorKind.UNKNOWN_LABEL,
        ]
        # valid lines are still decoded
        assert len(program) == 3

    def test_assembler_instance_is_reusable(self):
        asm = Assembler()
        assert not asm.assemble("bogus x1, x2, x3").ok
        program = asm.assemble("addi x1, x0, 1")
        assert program.ok
        assert asm.errors == []

    def test_assemble_or_raise(self):
        with pytest.raises(AssemblerError) as exc:
            assemble_or_raise("addi x1, x0, 1\nfoo x1, x2, x3")
        assert exc.value.line_num == 2
        assert len(exc.value.errors) == 1
        assert "Unknown operator 'foo'" in str(exc.value)

    def test_assemble_or_raise_passes_valid_program(self):
        assert len(assemble_or_raise("addi x1, x0, 1")) == 1


class TestOutput:
    """Listing and error report text."""

    def test_canonical_listing(self):
        source = "\n".join([
            "  ADDI_LABEL:",
            "addi   x1,x0,   -5",
            "add x3, x1, x2   # sum",
            "sw x3, 4, x0",
            "jal x1, 2",
            "jal x0, ADDI_LABEL",
        ])
        assert assemble(source).listing() == "\n".join([
            "addi x1, x0, -5",
            "add x3, x1, x2",
            "sw x3, 4, x0",
            "jal x1, 2",
            "jal x0, -4 # ADDI_LABEL",
        ])

    def test_output_prefers_errors(self):
        program = assemble("addi x1, x0, 1\nfoo x1, x2, x3\nbar x1, 5")
        assert program.output() == (
            "Unknown operator 'foo' of type 'R' at line 2\n"
            "Unknown operator 'bar' of type 'U' at line 3"
        )

    def test_annotated_listing(self):
        program = assemble("loop:\naddi x1, x1, 1\njal x0, loop\nend:")
        assert program.get_listing() == "\n".join([
            "loop:",
            "     0  addi x1, x1, 1",
            "     1  jal x0, -1 # loop",
            "end:",
        ])

    @pytest.mark.parametrize("source", [
        "start:\naddi x1, x0, 3\nloop: addi x1, x1, -1\njal x0, loop\njal x2, start",
        "addi x1, x0, 1\nfoo x1, x2, x3\njal x0, nowhere",
    ])
    def test_repeated_compiles_match(self, source):
        """Same source, same text: listings and error reports alike."""
        first, second = assemble(source), assemble(source)
        assert first.output() == second.output()
        assert first.get_listing() == second.get_listing()
        assert first.instructions == second.instructions
        assert first.errors == second.errors

    def test_compile_source(self):
        assert compile_source("addi x1, x0, 1") == "addi x1, x0, 1"
        assert compile_source("foo x1, x2, x3", output="errors") == \
            "Unknown operator 'foo' of type 'R' at line 1"
        assert compile_source("foo x1, x2, x3") == \
            "Unknown operator 'foo' of type 'R' at line 1"
        assert compile_source("a: addi x1, x0, 1", output="annotated") == \
            "a:\n     0  addi x1, x0, 1"

    def test_compile_source_bad_kind(self):
        with pytest.raises(ValueError):
            compile_source("", output="hex")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
