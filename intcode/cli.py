#!/usr/bin/env python3
"""
Intcode CLI — run intcodes locally or serve them over TCP
Commands: run · exec · serve · connect · help
"""

import argparse
import logging
import sys
from pathlib import Path


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------

def _parse_literal(text: str) -> list:
    """Parse an intcode literal or exit with a diagnostic."""
    from intcode.errors import ParseError
    from intcode.isa import COMMAND_PREFIX
    from intcode.literal import parse_intcode
    try:
        return parse_intcode(text)
    except ParseError as e:
        print(f"❌ {COMMAND_PREFIX}{e}", file=sys.stderr)
        sys.exit(1)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# sub-command handlers
# ---------------------------------------------------------------------------

def cmd_run(args):
    """intcode run "[1, 0, 0, 3, 99]" [--trace] [--max-steps N]"""
    from intcode.errors import ExecutionError
    from intcode.isa import ERROR_PREFIX
    from intcode.literal import render_literal
    from intcode.vm import IntcodeVM

    memory = _parse_literal(args.intcode)
    try:
        vm = IntcodeVM(memory, max_steps=args.max_steps, trace=args.trace)
    except ValueError as e:
        print(f"❌ {e}", file=sys.stderr)
        sys.exit(1)
    try:
        result = vm.run()
    except ExecutionError as e:
        for line in vm.log:
            print(line)
        print(f"❌ {ERROR_PREFIX}{e}", file=sys.stderr)
        sys.exit(1)
    for line in vm.log:
        print(line)
    print(render_literal(result))
    if args.verbose:
        print(f"\n[VM] steps={vm.steps} halted at={vm.pc} length={len(result)}")


def cmd_exec(args):
    """intcode exec commands.txt  — one command per line, batch mode"""
    from intcode.command import Quit, classify, render
    from intcode.errors import ParseError
    from intcode.isa import COMMAND_PREFIX

    path = Path(args.input)
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as e:
        print(f"❌ Cannot read {path}: {e}", file=sys.stderr)
        sys.exit(1)

    for line in lines:
        if not line.strip():
            continue
        try:
            command = classify(line)
        except ParseError as e:
            print(f"{COMMAND_PREFIX}{e}")
            continue
        if isinstance(command, Quit):
            break
        for reply_line in render(command).lines:
            print(reply_line)


def cmd_serve(args):
    """intcode serve [--host H] [--port P] [--max-sessions N] [--no-greeting]"""
    from runtime.server import OpcodeServer, ServerConfig

    try:
        config = ServerConfig(
            host=args.host,
            port=args.port,
            max_sessions=args.max_sessions,
            max_message_bytes=args.max_message_bytes,
            greet=not args.no_greeting,
        )
    except ValueError as e:
        print(f"❌ Invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)

    server = OpcodeServer(config)
    try:
        server.start()
    except OSError as e:
        print(f"❌ Cannot listen on {args.host}:{args.port}: {e}", file=sys.stderr)
        sys.exit(1)
    host, port = server.address
    print(f"✅ Serving intcodes on {host}:{port}  (Ctrl+C to stop)")
    server.serve_forever()


def cmd_connect(args):
    """intcode connect [--host H] [--port P]"""
    from runtime.client import run_client
    try:
        run_client(args.host, args.port)
    except OSError as e:
        print(f"❌ Cannot connect to {args.host}:{args.port}: {e}", file=sys.stderr)
        sys.exit(1)


def cmd_help(args):
    """intcode help"""
    from intcode.isa import HELP
    print("\n".join(HELP))


# ---------------------------------------------------------------------------
# main
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    from intcode import __version__

    parser = argparse.ArgumentParser(
        prog="intcode",
        description=(
            "Intcode — add / multiply / halt over a list of integers\n\n"
            "  run        Run one intcode literal and print the result\n"
            "  exec       Run a file of commands, one per line\n"
            "  serve      Serve the command protocol over TCP\n"
            "  connect    Interactive client for a running server\n"
            "  help       Show the opcode reference\n"
        ),
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument(
        "--version", action="version", version=f"intcode {__version__}"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="cmd", required=True)

    # ── run ────────────────────────────────────────────────────────────────
    p_run = sub.add_parser("run", help="Run an intcode literal, e.g. \"[1, 0, 0, 3, 99]\"")
    p_run.add_argument("intcode", help="Intcode literal")
    p_run.add_argument("--max-steps", type=int, default=None, metavar="N")
    p_run.add_argument("--trace", action="store_true", help="Print every executed instruction")
    p_run.set_defaults(func=cmd_run)

    # ── exec ───────────────────────────────────────────────────────────────
    p_exec = sub.add_parser("exec", help="Run every command in a file")
    p_exec.add_argument("input", help="Text file, one command per line")
    p_exec.set_defaults(func=cmd_exec)

    # ── serve ──────────────────────────────────────────────────────────────
    p_serve = sub.add_parser("serve", help="Serve the command protocol over TCP")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8000)
    p_serve.add_argument("--max-sessions", type=int, default=64, metavar="N")
    p_serve.add_argument("--max-message-bytes", type=int, default=65_536, metavar="N")
    p_serve.add_argument("--no-greeting", action="store_true", help="Do not greet new peers")
    p_serve.set_defaults(func=cmd_serve)

    # ── connect ────────────────────────────────────────────────────────────
    p_conn = sub.add_parser("connect", help="Talk to a running server")
    p_conn.add_argument("--host", default="127.0.0.1")
    p_conn.add_argument("--port", type=int, default=8000)
    p_conn.set_defaults(func=cmd_connect)

    # ── help ───────────────────────────────────────────────────────────────
    p_help = sub.add_parser("help", help="Show the opcode reference")
    p_help.set_defaults(func=cmd_help)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
