"""
Execution engine tests.

Each test drives Interpreter.execute() directly with parsed words
against a ModbusMemory image (26 registers per bank):

    1..26           discrete bank 0      10001..10026  discrete bank 1
    30001..30026    word bank 0          40001..40026  word bank 1
"""

import logging

import pytest

from il_interpreter import (
    Interpreter, InterpreterConfig, ModbusMemory, Outcome, NO_RETURN_LINE,
    DivisionByZero, EvalStackOverflow, parse,
)


class SpyMemory(ModbusMemory):
    """ModbusMemory that records every port access."""

    def __init__(self):
        super().__init__()
        self.calls = []

    def get(self, address, invert=False):
        self.calls.append(('get', address, invert))
        return super().get(address, invert)

    def set(self, address, value, invert=False):
        self.calls.append(('set', address, value, invert))
        super().set(address, value, invert)


def _interp(**config):
    mem = ModbusMemory()
    return Interpreter(mem, InterpreterConfig(**config) if config else None), mem


def _run(interp, *lines):
    """Execute (mnemonic, operand) pairs as consecutive lines from 0."""
    outcome = None
    for num, (mnem, operand) in enumerate(lines):
        outcome = interp.execute(parse(mnem), operand, num)
    return outcome


# ─── Lifecycle ─────────────────────────────

class TestLifecycle:
    def test_fresh_state(self):
        interp, _ = _interp()
        assert interp.accumulator == 0
        assert interp.eval_depth == 0
        assert interp.call_depth == 0

    def test_init_resets_everything(self):
        interp, mem = _interp()
        _run(interp, ("LOAD_I", 9), ("ADD_I{", 1))
        interp.execute(parse("CALL"), 20, 5)
        other = ModbusMemory()
        interp.init(other)
        assert interp.mem is other
        assert interp.state().accumulator == 0
        assert interp.eval_depth == 0 and interp.call_depth == 0

    def test_instances_are_independent(self):
        a, _ = _interp()
        b, _ = _interp()
        a.execute(parse("LOAD_I"), 5, 0)
        assert b.accumulator == 0

    def test_state_display(self):
        interp, _ = _interp()
        _run(interp, ("LOAD_I", 3), ("ADD_I{", 4))
        text = interp.state().display()
        assert "ACC=0004" in text
        assert "ADD_I{:3" in text


# ─── NOP + line advance ────────────────────

class TestNop:
    def test_nop_advances_only(self):
        mem = SpyMemory()
        interp = Interpreter(mem)
        interp.execute(parse("LOAD_I"), 42, 0)
        before = interp.state()
        mem.calls.clear()
        outcome = interp.execute(parse("NOP"), 1234, 8)
        assert outcome == Outcome.continue_at(9)
        assert interp.state() == before
        assert mem.calls == []

    def test_unknown_mnemonic_runs_as_nop(self):
        interp, _ = _interp()
        assert interp.execute(parse("HELLO"), 3, 4).line == 5

    def test_line_wraps(self):
        interp, _ = _interp()
        assert interp.execute(parse(""), 0, 0xFFFF).line == 0


# ─── LOAD / STOR ───────────────────────────

class TestLoadStore:
    def test_load_immediate(self):
        interp, _ = _interp()
        interp.execute(parse("LOAD_I"), 1234, 0)
        assert interp.accumulator == 1234

    def test_load_memory(self):
        interp, mem = _interp()
        mem.set(40001, 777)
        interp.execute(parse("LOAD"), 40001, 0)
        assert interp.accumulator == 777

    def test_load_negated_bit(self):
        interp, mem = _interp()
        mem.set(10001, 1)
        interp.execute(parse("LOAD_N"), 10001, 0)
        assert interp.accumulator == 0

    def test_load_negated_word(self):
        interp, _ = _interp()
        interp.execute(parse("LOAD_N"), 40001, 0)
        assert interp.accumulator == 0xFFFF

    def test_load_invalid_address(self):
        interp, _ = _interp()
        _run(interp, ("LOAD_I", 5), ("LOAD", 20001))
        assert interp.accumulator == 0

    def test_stor(self):
        interp, mem = _interp()
        _run(interp, ("LOAD_I", 321), ("STOR", 40003))
        assert mem.get(40003) == 321
        assert interp.accumulator == 321

    def test_stor_negated_to_bit(self):
        interp, mem = _interp()
        _run(interp, ("LOAD_I", 1), ("STOR_N", 4))
        assert mem.get(4) == 0
        _run(interp, ("LOAD_I", 0), ("STOR_N", 4))
        assert mem.get(4) == 1


# ─── SET / RST ─────────────────────────────

class TestSetReset:
    def test_set_when_true(self):
        interp, mem = _interp()
        _run(interp, ("LOAD_I", 1), ("SET", 5))
        assert mem.get(5) == 1

    def test_set_skipped_when_false(self):
        interp, mem = _interp()
        _run(interp, ("LOAD_I", 0), ("SET", 5))
        assert mem.get(5) == 0

    def test_set_negated_skipped_when_true(self):
        interp, mem = _interp()
        _run(interp, ("LOAD_I", 1), ("SET_N", 5))
        assert mem.get(5) == 0

    def test_set_negated_when_false(self):
        interp, mem = _interp()
        _run(interp, ("LOAD_I", 0), ("SET_N", 5))
        assert mem.get(5) == 1

    def test_rst(self):
        interp, mem = _interp()
        mem.set(40001, 99)
        _run(interp, ("LOAD_I", 1), ("RST", 40001))
        assert mem.get(40001) == 0
        assert interp.accumulator == 1

    def test_rst_skipped(self):
        interp, mem = _interp()
        mem.set(6, 1)
        _run(interp, ("LOAD_I", 0), ("RST", 6))
        assert mem.get(6) == 1


# ─── Operators ─────────────────────────────

class TestOperators:
    def test_add_immediate(self):
        interp, _ = _interp()
        _run(interp, ("LOAD_I", 40), ("ADD_I", 2))
        assert interp.accumulator == 42

    def test_and_memory(self):
        interp, mem = _interp()
        mem.set(10001, 1)
        _run(interp, ("LOAD_I", 1), ("AND", 10001))
        assert interp.accumulator == 1

    def test_and_not_memory(self):
        """AND_N reads the register plainly and complements it in the ALU."""
        mem = SpyMemory()
        interp = Interpreter(mem)
        _run(interp, ("LOAD_I", 1), ("AND_N", 10002))
        assert interp.accumulator == 1
        assert ('get', 10002, False) in mem.calls

    def test_wraparound(self):
        interp, _ = _interp()
        _run(interp, ("LOAD_I", 65535), ("ADD_I", 1))
        assert interp.accumulator == 0

    def test_compare(self):
        interp, mem = _interp()
        mem.set(30001, 100)
        _run(interp, ("LOAD_I", 150), ("GT", 30001))
        assert interp.accumulator == 1

    def test_div(self):
        interp, _ = _interp()
        _run(interp, ("LOAD_I", 10), ("DIV_I", 3))
        assert interp.accumulator == 3


# ─── Division by zero policy ───────────────

class TestDivZeroPolicy:
    def test_zero(self):
        interp, _ = _interp()
        _run(interp, ("LOAD_I", 10), ("DIV_I", 0))
        assert interp.accumulator == 0

    def test_saturate(self):
        interp, _ = _interp(div_zero="saturate")
        _run(interp, ("LOAD_I", 10), ("DIV_I", 0))
        assert interp.accumulator == 0xFFFF

    def test_error(self):
        interp, _ = _interp(div_zero="error")
        interp.execute(parse("LOAD_I"), 10, 0)
        with pytest.raises(DivisionByZero) as exc:
            interp.execute(parse("DIV_I"), 0, 1)
        assert exc.value.line == 1
        assert interp.accumulator == 10

    def test_error_inside_bracket_keeps_frame(self):
        interp, _ = _interp(div_zero="error")
        _run(interp, ("LOAD_I", 10), ("DIV_I{", 0))
        with pytest.raises(DivisionByZero):
            interp.execute(parse("}"), 0, 2)
        assert interp.eval_depth == 1
        assert interp.accumulator == 0


# ─── Brackets ──────────────────────────────

class TestBrackets:
    def test_grouping(self):
        """LOAD 5; ADD_{ 3; ADD 2; } -> 5 + (3 + 2)"""
        interp, _ = _interp()
        _run(interp, ("LOAD_I", 5), ("ADD_I{", 3), ("ADD_I", 2), ("}", 0))
        assert interp.accumulator == 10
        assert interp.eval_depth == 0

    def test_saved_value_is_left_operand(self):
        """10 - (3 + 2) == 5, not (3 + 2) - 10."""
        interp, _ = _interp()
        _run(interp, ("LOAD_I", 10), ("SUB_I{", 3), ("ADD_I", 2), ("}", 0))
        assert interp.accumulator == 5

    def test_bracket_reads_memory_operand(self):
        interp, mem = _interp()
        mem.set(40005, 6)
        _run(interp, ("LOAD_I", 2), ("MUL_{", 40005), ("ADD_I", 1), ("}", 0))
        assert interp.accumulator == 14

    def test_nested(self):
        """2 * (3 + (4 * 5)) == 46"""
        interp, _ = _interp()
        _run(interp,
             ("LOAD_I", 2), ("MUL_I{", 3), ("ADD_I{", 4), ("MUL_I", 5),
             ("}", 0), ("}", 0))
        assert interp.accumulator == 46

    def test_negated_bracket(self):
        """AND_N{ complements the inner result when the bracket closes."""
        interp, _ = _interp()
        _run(interp, ("LOAD_I", 0xFF), ("AND_N{", 0), ("OR_I", 0x0F), ("}", 0))
        assert interp.accumulator == 0xF0

    def test_load_bracket_indirect(self):
        """LOAD_{ 40000; ADD_I 3; } reads register 40003."""
        interp, mem = _interp()
        mem.set(40003, 555)
        _run(interp, ("LOAD_I", 9), ("LOAD_{", 40000), ("ADD_I", 3), ("}", 0))
        assert interp.accumulator == 555

    def test_load_bracket_negated(self):
        interp, mem = _interp()
        mem.set(10002, 1)
        _run(interp, ("LOAD_N{", 10000), ("ADD_I", 2), ("}", 0))
        assert interp.accumulator == 0

    def test_stor_bracket_indirect(self):
        """STOR_{ writes the saved accumulator to the computed address."""
        interp, mem = _interp()
        _run(interp, ("LOAD_I", 99), ("STOR_{", 40000), ("ADD_I", 2), ("}", 0))
        assert mem.get(40002) == 99
        assert interp.accumulator == 40002

    def test_stor_bracket_negated(self):
        interp, mem = _interp()
        _run(interp, ("LOAD_I", 0x00FF), ("STOR_N{", 30000), ("ADD_I", 1), ("}", 0))
        assert mem.get(30001) == 0xFF00

    def test_close_on_empty_is_noop(self):
        interp, _ = _interp()
        interp.execute(parse("LOAD_I"), 7, 0)
        outcome = interp.execute(parse("}"), 0, 1)
        assert outcome.line == 2
        assert interp.accumulator == 7


class TestEvalOverflow:
    def _fill(self, interp):
        _run(interp, ("LOAD_I", 1), ("ADD_I{", 2), ("ADD_I{", 3), ("ADD_I{", 4))

    def test_ignore_refuses_cleanly(self, caplog):
        interp, _ = _interp(eval_depth=2)
        with caplog.at_level(logging.WARNING):
            self._fill(interp)
        assert interp.eval_depth == 2
        assert interp.accumulator == 3
        assert "bracket nesting" in caplog.text

    def test_no_lockup_after_overflow(self):
        interp, _ = _interp(eval_depth=2)
        self._fill(interp)
        _run(interp, ("}", 0), ("}", 0))
        # 1 + (2 + 3)
        assert interp.accumulator == 6
        assert interp.eval_depth == 0
        _run(interp, ("LOAD_I", 1), ("ADD_I{", 1), ("}", 0))
        assert interp.accumulator == 2

    def test_error_policy(self):
        interp, _ = _interp(eval_depth=2, eval_overflow="error")
        with pytest.raises(EvalStackOverflow) as exc:
            self._fill(interp)
        assert exc.value.line == 3
        assert interp.eval_depth == 2
        assert interp.accumulator == 3

    def test_load_bracket_overflow_keeps_accumulator(self):
        interp, _ = _interp(eval_depth=1)
        _run(interp, ("LOAD_I", 8), ("ADD_I{", 1), ("LOAD_{", 40000))
        assert interp.accumulator == 1
        assert interp.eval_depth == 1


# ─── Branches ──────────────────────────────

class TestJump:
    def test_unconditional(self):
        interp, _ = _interp()
        for acc in (0, 1):
            interp.execute(parse("LOAD_I"), acc, 0)
            assert interp.execute(parse("JUMP"), 5, 2).line == 5

    def test_conditional(self):
        interp, _ = _interp()
        interp.execute(parse("LOAD_I"), 0, 0)
        assert interp.execute(parse("JUMP_C"), 9, 3).line == 4
        interp.execute(parse("LOAD_I"), 1, 0)
        assert interp.execute(parse("JUMP_C"), 9, 3).line == 9

    def test_conditional_negated(self):
        interp, _ = _interp()
        interp.execute(parse("LOAD_I"), 0, 0)
        assert interp.execute(parse("JUMP_CN"), 9, 3).line == 9
        interp.execute(parse("LOAD_I"), 1, 0)
        assert interp.execute(parse("JUMP_CN"), 9, 3).line == 4

    def test_negate_without_conditional_always_jumps(self):
        interp, _ = _interp()
        interp.execute(parse("LOAD_I"), 1, 0)
        assert interp.execute(parse("JUMP_N"), 9, 3).line == 9


class TestCallRet:
    def test_roundtrip(self):
        interp, _ = _interp()
        assert interp.execute(parse("CALL"), 10, 3).line == 10
        assert interp.state().call_lines == (4,)
        assert interp.execute(parse("RET"), 0, 12).line == 4
        assert interp.call_depth == 0

    def test_call_full_falls_through(self, caplog):
        interp, _ = _interp()
        for line in range(20):
            interp.execute(parse("CALL"), 100, line)
        with caplog.at_level(logging.WARNING):
            outcome = interp.execute(parse("CALL"), 100, 50)
        assert outcome.line == 51
        assert interp.call_depth == 20
        assert "call stack full" in caplog.text

    def test_ret_empty_halts(self):
        interp, _ = _interp()
        outcome = interp.execute(parse("RET"), 0, 7)
        assert outcome.halted
        assert outcome == Outcome.halt()
        assert outcome.as_line() == NO_RETURN_LINE == 65535

    def test_conditional_call_not_taken(self):
        interp, _ = _interp()
        interp.execute(parse("LOAD_I"), 0, 0)
        assert interp.execute(parse("CALL_C"), 10, 3).line == 4
        assert interp.call_depth == 0

    def test_conditional_call_taken(self):
        interp, _ = _interp()
        interp.execute(parse("LOAD_I"), 1, 0)
        assert interp.execute(parse("CALL_C"), 10, 3).line == 10
        assert interp.state().call_lines == (4,)

    def test_conditional_call_negated_taken_when_false(self):
        interp, _ = _interp()
        interp.execute(parse("LOAD_I"), 0, 0)
        assert interp.execute(parse("CALL_CN"), 20, 6).line == 20
        assert interp.state().call_lines == (7,)

    def test_conditional_call_negated_not_taken_when_true(self):
        interp, _ = _interp()
        interp.execute(parse("LOAD_I"), 1, 0)
        assert interp.execute(parse("CALL_CN"), 20, 6).line == 7
        assert interp.call_depth == 0

    def test_conditional_ret_not_taken_ignores_empty_stack(self):
        interp, _ = _interp()
        interp.execute(parse("LOAD_I"), 0, 0)
        outcome = interp.execute(parse("RET_C"), 0, 3)
        assert not outcome.halted
        assert outcome.line == 4

    def test_ret_cn_taken_when_false(self):
        interp, _ = _interp()
        interp.execute(parse("CALL"), 30, 1)
        interp.execute(parse("LOAD_I"), 0, 30)
        assert interp.execute(parse("RET_CN"), 0, 31).line == 2

    def test_call_return_wraps_at_top_line(self):
        interp, _ = _interp()
        interp.execute(parse("CALL"), 5, 0xFFFF)
        assert interp.state().call_lines == (0,)
