"""
tests.test_cli
==============
``intcode`` command-line entry point: run · exec · serve · connect · help.

Run
---
    pytest tests/test_cli.py -v
"""

from __future__ import annotations

import socket

import pytest

from intcode import __version__
from intcode.cli import build_parser, main
from intcode.isa import HELP


def _exit_code(argv) -> int:
    with pytest.raises(SystemExit) as exc:
        main(argv)
    return exc.value.code


# ─────────────────────────────────────────────────────────────────────────────
# run
# ─────────────────────────────────────────────────────────────────────────────

class TestRun:
    def test_worked_example(self, capsys):
        main(["run", "[1, 0, 0, 3, 2, 0, 3, 6, 99]"])
        assert capsys.readouterr().out == "[1, 0, 0, 2, 2, 0, 2, 6, 99]\n"

    def test_compact_literal(self, capsys):
        main(["run", "[1,0,0,3,99]"])
        assert capsys.readouterr().out == "[1, 0, 0, 2, 99]\n"

    def test_execution_error(self, capsys):
        assert _exit_code(["run", "[1, 0, 0, 100, 99]"]) == 1
        err = capsys.readouterr().err
        assert "Invalid OpCode: " in err
        assert "100" in err

    def test_parse_error(self, capsys):
        assert _exit_code(["run", "not a list"]) == 1
        assert "Invalid command: " in capsys.readouterr().err

    def test_trace(self, capsys):
        main(["run", "--trace", "[1, 0, 0, 3, 2, 0, 3, 6, 99]"])
        out = capsys.readouterr().out.splitlines()
        assert out[0].startswith("0000  ADD")
        assert out[1].startswith("0004  MULTIPLY")
        assert out[2] == "0008  HALT"
        assert out[3] == "[1, 0, 0, 2, 2, 0, 2, 6, 99]"

    def test_trace_kept_on_error(self, capsys):
        assert _exit_code(["run", "--trace", "[1, 0, 0, 0, 42]"]) == 1
        captured = capsys.readouterr()
        assert captured.out.startswith("0000  ADD")
        assert "unknown opcode 42" in captured.err

    def test_max_steps(self, capsys):
        assert _exit_code(["run", "--max-steps", "1", "[1, 0, 0, 0, 1, 0, 0, 0, 99]"]) == 1
        assert "no halt within 1 steps" in capsys.readouterr().err

    def test_bad_max_steps(self, capsys):
        assert _exit_code(["run", "--max-steps", "0", "[99]"]) == 1
        assert "max_steps" in capsys.readouterr().err

    def test_verbose_stats(self, capsys):
        main(["-v", "run", "[99]"])
        out = capsys.readouterr().out
        assert "[99]" in out
        assert "[VM] steps=1" in out


# ─────────────────────────────────────────────────────────────────────────────
# exec
# ─────────────────────────────────────────────────────────────────────────────

class TestExec:
    def test_batch(self, tmp_path, capsys):
        script = tmp_path / "commands.txt"
        script.write_text(
            "[1, 0, 0, 3, 99]\n"
            "\n"
            "bogus\n"
            "[1, 0, 0, 100, 99]\n"
            "help\n"
            "quit\n"
            "[99]\n",
            encoding="utf-8",
        )
        main(["exec", str(script)])
        out = capsys.readouterr().out.splitlines()
        assert out[0] == "[1, 0, 0, 2, 99]"
        assert out[1].startswith("Invalid command: ")
        assert out[2].startswith("Invalid OpCode: ")
        assert out[3:] == list(HELP)

    def test_missing_file(self, tmp_path, capsys):
        assert _exit_code(["exec", str(tmp_path / "nope.txt")]) == 1
        assert "Cannot read" in capsys.readouterr().err


# ─────────────────────────────────────────────────────────────────────────────
# serve / connect / help / parser
# ─────────────────────────────────────────────────────────────────────────────

class TestOtherCommands:
    def test_help(self, capsys):
        main(["help"])
        assert capsys.readouterr().out.splitlines() == list(HELP)

    def test_version(self, capsys):
        assert _exit_code(["--version"]) == 0
        assert capsys.readouterr().out.strip() == f"intcode {__version__}"

    def test_command_required(self, capsys):
        assert _exit_code([]) == 2

    def test_serve_bad_port(self, capsys):
        assert _exit_code(["serve", "--port", "70000"]) == 1
        assert "Invalid configuration" in capsys.readouterr().err

    def test_serve_bad_sessions(self, capsys):
        assert _exit_code(["serve", "--port", "0", "--max-sessions", "0"]) == 1

    def test_connect_refused(self, capsys):
        spare = socket.socket()
        spare.bind(("127.0.0.1", 0))
        port = spare.getsockname()[1]
        spare.close()
        assert _exit_code(["connect", "--port", str(port)]) == 1
        assert "Cannot connect" in capsys.readouterr().err

    def test_serve_defaults(self):
        args = build_parser().parse_args(["serve"])
        assert (args.host, args.port, args.max_sessions) == ("127.0.0.1", 8000, 64)
        assert args.max_message_bytes == 65_536
        assert args.no_greeting is False
