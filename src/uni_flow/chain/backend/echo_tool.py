"""Deterministic stand-in for leaf service commands in integration tests."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

PIPE_MARKER = "__PIPE__"


def main(argv: list[str] | None = None) -> int:
    """Dispatch one fake service command."""

    argv = list(sys.argv[1:] if argv is None else argv)
    if argv and argv[0] == "echo":
        return _echo(argv[1:])

    parser = argparse.ArgumentParser(prog="echo-tool")
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("echo", help="Print arguments joined by spaces.")

    fail = commands.add_parser("fail", help="Print a message to stderr and exit non-zero.")
    fail.add_argument("message", nargs="*")
    fail.add_argument("--code", type=int, default=1)

    payload = commands.add_parser("json", help="Print a JSON literal (pipeline source).")
    payload.add_argument("literal")
    payload.add_argument("--json", action="store_true")

    emit_text = commands.add_parser("emit-text", help="Emit structured text pipe items.")
    emit_text.add_argument("contents", nargs="+")

    emit_file = commands.add_parser("emit-file", help="Emit one structured file pipe item.")
    emit_file.add_argument("path")
    emit_file.add_argument("caption", nargs="?", default=None)

    flaky = commands.add_parser("flaky", help="Fail until the counter file reaches a threshold.")
    flaky.add_argument("counter_file")
    flaky.add_argument("failures", type=int)

    color = commands.add_parser("color", help="Print text wrapped in ANSI colour codes.")
    color.add_argument("text")

    args = parser.parse_args(argv)

    if args.command == "fail":
        if args.message:
            print(" ".join(args.message), file=sys.stderr)
        return args.code
    if args.command == "json":
        print(args.literal)
        return 0
    if args.command == "emit-text":
        print("plain preamble line")
        for content in args.contents:
            print(PIPE_MARKER + json.dumps({"type": "text", "content": content}))
        return 0
    if args.command == "emit-file":
        item = {"type": "file", "path": args.path}
        if args.caption is not None:
            item["caption"] = args.caption
        print(PIPE_MARKER + json.dumps(item))
        return 0
    if args.command == "flaky":
        counter_file = Path(args.counter_file)
        seen = int(counter_file.read_text("utf-8")) if counter_file.exists() else 0
        counter_file.write_text(str(seen + 1), "utf-8")
        if seen < args.failures:
            print(f"flaky failure {seen + 1}", file=sys.stderr)
            return 1
        print(f"succeeded after {seen + 1} attempt(s)")
        return 0

    print(f"\x1b[32m{args.text}\x1b[0m")
    return 0


def _echo(words: list[str]) -> int:
    # ``--file <path>`` may appear anywhere in the line.
    words = [word for word in words if word != "--json"]
    prefix = ""
    if "--file" in words:
        at = words.index("--file")
        path = words[at + 1] if at + 1 < len(words) else ""
        prefix = f"file={path} "
        del words[at : at + 2]
    print(prefix + " ".join(words))
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
