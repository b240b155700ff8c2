"""
tests.test_command
==================
Command protocol tests: classify → render → Reply.

Test categories
---------------
Unit — classify   (control words, literals, trimming, parse failures)
Unit — render     (Help, Quit, Program success / failure)
Scenario — one inbound line → one Reply, end to end

Run
---
    pytest tests/test_command.py -v
"""

from __future__ import annotations

import pytest

from intcode.command import (
    Help, Quit, Program, Reply,
    classify, render, classify_and_render,
)
from intcode.errors import NotASequence, NotAnInteger
from intcode.isa import HELP, ERROR_PREFIX, COMMAND_PREFIX


# ─────────────────────────────────────────────────────────────────────────────
# classify
# ─────────────────────────────────────────────────────────────────────────────

class TestClassify:
    def test_help(self):
        assert classify("help") == Help()

    def test_quit(self):
        assert classify("quit") == Quit()

    @pytest.mark.parametrize("text", ["  help", "help\n", "\thelp  \r\n"])
    def test_help_trimmed(self, text):
        assert classify(text) == Help()

    @pytest.mark.parametrize("text", [" quit ", "quit\r\n"])
    def test_quit_trimmed(self, text):
        assert classify(text) == Quit()

    def test_program(self):
        assert classify("[1, 0, 0, 3, 99]") == Program([1, 0, 0, 3, 99])

    def test_program_compact(self):
        assert classify(" [1,0,0,3,99] ") == Program([1, 0, 0, 3, 99])

    @pytest.mark.parametrize("text", ["HELP", "Help", "help me", "quit now", "exit", "hello"])
    def test_case_sensitive_exact_words(self, text):
        with pytest.raises(NotASequence):
            classify(text)

    def test_bad_item(self):
        with pytest.raises(NotAnInteger):
            classify("[1, two, 3]")

    def test_empty_literal_is_a_program(self):
        assert classify("[]") == Program([])


# ─────────────────────────────────────────────────────────────────────────────
# render
# ─────────────────────────────────────────────────────────────────────────────

class TestRender:
    def test_help_keeps_connection(self):
        reply = render(Help())
        assert reply.lines == HELP
        assert reply.terminate is False

    def test_quit_is_silent(self):
        assert render(Quit()) == Reply(lines=(), terminate=True)

    def test_program_success(self):
        reply = render(Program([1, 0, 0, 3, 99]))
        assert reply == Reply(lines=("[1, 0, 0, 2, 99]",), terminate=True)

    def test_program_failure(self):
        reply = render(Program([1, 0, 0, 100, 99]))
        assert reply.terminate is True
        assert len(reply.lines) == 1
        assert reply.lines[0].startswith(ERROR_PREFIX)
        assert "100" in reply.lines[0]

    def test_command_not_mutated(self):
        cmd = Program([1, 0, 0, 3, 99])
        render(cmd)
        assert cmd.intcode == [1, 0, 0, 3, 99]

    def test_same_command_twice(self):
        cmd = Program([1, 0, 0, 0, 99])
        assert render(cmd) == render(cmd)

    def test_not_a_command(self):
        with pytest.raises(TypeError):
            render("help")

    def test_reply_defaults(self):
        assert Reply() == Reply(lines=(), terminate=False)


# ─────────────────────────────────────────────────────────────────────────────
# End-to-end scenarios
# ─────────────────────────────────────────────────────────────────────────────

class TestScenarios:
    def test_worked_example(self):
        reply = classify_and_render("[1, 0, 0, 3, 2, 0, 3, 6, 99]")
        assert reply == Reply(lines=("[1, 0, 0, 2, 2, 0, 2, 6, 99]",), terminate=True)

    def test_invalid_result_index(self):
        reply = classify_and_render("[1, 0, 0, 100, 2, 0, 3, 6, 99]")
        assert reply.terminate is True
        assert reply.lines[0].startswith("Invalid OpCode: ")
        assert "result index 100" in reply.lines[0]

    def test_help(self):
        reply = classify_and_render("help")
        assert reply.lines == HELP
        assert not reply.terminate

    def test_quit(self):
        assert classify_and_render("quit") == Reply((), True)

    def test_worked_example_compact(self):
        reply = classify_and_render("[1,0,0,3,2,0,3,6,99]")
        assert reply == Reply(lines=("[1, 0, 0, 2, 2, 0, 2, 6, 99]",), terminate=True)

    def test_invalid_result_index_compact(self):
        reply = classify_and_render("[1,0,0,100,2,0,3,6,99]")
        assert reply == Reply(
            lines=(f"{ERROR_PREFIX}invalid result index 100 for instruction at 0 "
                   f"(program length 9)",),
            terminate=True,
        )

    def test_unknown_opcode(self):
        reply = classify_and_render("[42,1,2,3,99]")
        assert reply == Reply(
            lines=(f"{ERROR_PREFIX}unknown opcode 42 at index 0",),
            terminate=True,
        )

    def test_too_short(self):
        reply = classify_and_render("[1,0]")
        assert reply == Reply(
            lines=(f"{ERROR_PREFIX}missing operand slot 2 for instruction at 0 "
                   f"(program length 2)",),
            terminate=True,
        )

    def test_squaring_chain_overflow_is_a_reply(self):
        text = "[" + ", ".join(["2, 0, 0, 0"] * 14 + ["99"]) + "]"
        reply = classify_and_render(text)
        assert reply.terminate is True
        assert len(reply.lines) == 1
        assert reply.lines[0].startswith(f"{ERROR_PREFIX}value overflow")

    def test_oversized_item_is_a_reply(self):
        reply = classify_and_render("[99, " + "9" * 5000 + "]")
        assert reply.terminate is True
        assert len(reply.lines) == 1
        assert reply.lines[0].startswith(COMMAND_PREFIX)
        assert len(reply.lines[0]) < 200

    def test_empty_program(self):
        reply = classify_and_render("[]")
        assert reply.terminate
        assert reply.lines[0].startswith(ERROR_PREFIX)
        assert "no opcode at index 0" in reply.lines[0]

    @pytest.mark.parametrize("text", ["hello", "1, 2, 3", "[1, -2]", "", "[1 2]"])
    def test_parse_failure_becomes_reply(self, text):
        reply = classify_and_render(text)
        assert reply.terminate is True
        assert len(reply.lines) == 1
        assert reply.lines[0].startswith(COMMAND_PREFIX)

    def test_whitespace_is_irrelevant(self):
        assert classify_and_render("  [1,0,0,3,99]\r\n") == classify_and_render("[1, 0, 0, 3, 99]")

    def test_reply_feeds_back_in(self):
        first = classify_and_render("[1, 0, 0, 3, 99]")
        second = classify_and_render(first.lines[0])
        assert second.lines == ("[1, 0, 2, 2, 99]",)
