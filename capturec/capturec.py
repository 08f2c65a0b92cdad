# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Command-line driver: read a closure fragment, transform every closure in it,
print the result and the diagnostics.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from capturec.core.diagnostics import Diagnostic, has_errors
from capturec.parser.printer import format_expr
from capturec.stage1.clause_parser import DEFAULT_SELF_NAME
from capturec.stage1.pipeline import ClosureTransform, TransformOptions, transform_source

logger = logging.getLogger(__name__)

_STDIN_NAME = "<stdin>"


def _diag_to_json(diag: Diagnostic, source: str) -> dict:
	"""Render a Diagnostic to a structured JSON-friendly dict."""
	return {
		"code": diag.code,
		"phase": diag.phase,
		"message": diag.message,
		"severity": diag.severity,
		"file": diag.span.file or source,
		"line": diag.span.line,
		"column": diag.span.column,
		"notes": list(diag.notes),
	}


def _format_diag(diag: Diagnostic, source: str) -> str:
	loc = f"{diag.span.line}:{diag.span.column}" if diag.span.is_known() else "?:?"
	code = f"[{diag.code}] " if diag.code else ""
	lines = [f"{diag.span.file or source}:{loc}: {diag.severity}: {code}{diag.message}"]
	lines.extend(f"  note: {note}" for note in diag.notes)
	return "\n".join(lines)


def _format_table(result: ClosureTransform) -> str:
	if result.table is None:
		return "// capture table: <not resolved>"
	kind = "legacy" if result.table.legacy else "explicit"
	rows = ", ".join(f"{path} => {mode.name}" for path, mode in result.table.modes().items())
	return f"// capture table ({kind}): {rows or '<empty>'}"


def _read_source(source_arg: str) -> tuple[str, str]:
	if source_arg == "-":
		return sys.stdin.read(), _STDIN_NAME
	path = Path(source_arg)
	return path.read_text(encoding="utf-8"), str(path)


def main(argv: list[str] | None = None) -> int:
	"""
	Transform the closures of one fragment.

	Transformed items go to stdout; diagnostics go to stderr as
	`file:line:col: severity: [CODE] message`. With --json a single payload
	`{"exit_code", "diagnostics"}` is printed instead of the human output. The
	exit status is 1 iff any error-severity diagnostic was produced.
	"""
	parser = argparse.ArgumentParser(prog="capturec", description="Resolve and desugar closure capture clauses")
	parser.add_argument("source", nargs="?", default="-", help="Fragment file to read ('-' or omitted: stdin)")
	parser.add_argument("--json", action="store_true", help="Emit diagnostics as JSON (for tooling/tests)")
	parser.add_argument(
		"--jobs",
		type=int,
		default=1,
		help="Transform independent top-level closures on N worker threads",
	)
	parser.add_argument("--table", action="store_true", help="Also print each closure's capture table")
	parser.add_argument(
		"--self-name",
		default=DEFAULT_SELF_NAME,
		help="Identifier of the aggregate-self reference (default: %(default)s)",
	)
	parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
	args = parser.parse_args(argv)

	if args.verbose:
		logging.basicConfig(level=logging.DEBUG, format="%(name)s - %(levelname)s - %(message)s")
	if args.jobs < 1:
		parser.error("--jobs must be at least 1")

	try:
		text, source_name = _read_source(args.source)
	except OSError as err:
		msg = f"cannot read source: {err.strerror or err}"
		if args.json:
			diag = {
				"code": None,
				"phase": "driver",
				"message": msg,
				"severity": "error",
				"file": args.source,
				"line": None,
				"column": None,
				"notes": [],
			}
			print(json.dumps({"exit_code": 1, "diagnostics": [diag]}))
		else:
			print(f"{args.source}:?:?: error: {msg}", file=sys.stderr)
		return 1

	options = TransformOptions(self_name=args.self_name, jobs=args.jobs)
	logger.debug("transforming %s with %s", source_name, options)
	result = transform_source(text, options=options)
	exit_code = 1 if has_errors(result.diagnostics) else 0

	if args.json:
		payload = {
			"exit_code": exit_code,
			"diagnostics": [_diag_to_json(d, source_name) for d in result.diagnostics],
		}
		print(json.dumps(payload))
		return exit_code

	for item in result.items:
		print(f"{format_expr(item)};")
	if args.table:
		# Source order of items; innermost closures first within an item.
		for closure in result.closures:
			print(_format_table(closure))
	for d in result.diagnostics:
		print(_format_diag(d, source_name), file=sys.stderr)
	return exit_code


if __name__ == "__main__":
	sys.exit(main())
