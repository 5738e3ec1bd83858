"""Command-line interface for rendering and checking 2-way SQL templates."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from twoway_sql.config import PARAMSTYLES, TransformOptions
from twoway_sql.coverage import CoverageCollector
from twoway_sql.errors import ParseError, TemplateError
from twoway_sql.parsing.template_lexer import DirectiveScanner
from twoway_sql.template import TemplateEngine, TransformResult


def _parse_assignment(text: str) -> tuple[str, Any]:
    """Parse name=value; the value is JSON when it parses as JSON, else a string."""
    name, sep, raw = text.partition("=")
    if not sep or not name:
        raise ValueError(f"Expected name=value, got '{text}'")
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        value = raw
    return name.strip(), value


def _load_params(args: argparse.Namespace) -> dict[str, Any]:
    params: dict[str, Any] = {}
    if args.params:
        loaded = json.loads(args.params.read_text(encoding="utf-8"))
        if not isinstance(loaded, dict):
            raise ValueError(f"{args.params}: parameters must be a JSON object")
        params.update(loaded)
    for assignment in args.set or []:
        name, value = _parse_assignment(assignment)
        params[name] = value
    return params


def _print_result(result: TransformResult, as_json: bool) -> None:
    if as_json:
        payload = {
            "sql": result.sql,
            "binds": [{"name": b.name, "value": b.value} for b in result.binds],
        }
        print(json.dumps(payload, indent=2, default=str))
        return
    print(result.sql)
    if result.binds:
        print()
        for i, bind in enumerate(result.binds, 1):
            print(f"{i}: {bind.name} = {bind.value!r}")


def cmd_render(args: argparse.Namespace) -> int:
    options = TransformOptions(
        paramstyle=args.paramstyle,
        strict_names=args.strict,
        remove_blank_lines=args.remove_blank_lines,
        collapse_whitespace=args.collapse_whitespace,
        fix_dangling_keywords=args.fix_dangling,
    )
    collector = CoverageCollector() if args.coverage else None
    engine = TemplateEngine(options=options, coverage=collector)
    try:
        params = _load_params(args)
        template = engine.parse(args.file.read_text(encoding="utf-8"), name=str(args.file))
        result = template.transform(params)
    except (TemplateError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    _print_result(result, args.json)
    if collector is not None:
        print()
        print(collector.report(template.name).format())
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    engine = TemplateEngine()
    failed = 0
    for path in args.files:
        try:
            engine.parse(path.read_text(encoding="utf-8"), name=str(path))
        except ParseError as e:
            failed += 1
            print(f"{path}:{e.line or 0}:{e.column or 0}: {e.message}")
        except OSError as e:
            failed += 1
            print(f"{path}: {e}")
        else:
            if args.verbose:
                print(f"{path}: ok")
    return 1 if failed else 0


def cmd_params(args: argparse.Namespace) -> int:
    engine = TemplateEngine()
    try:
        template = engine.parse(args.file.read_text(encoding="utf-8"), name=str(args.file))
    except (TemplateError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    for name in template.parameter_names():
        print(name)
    return 0


def cmd_tokens(args: argparse.Namespace) -> int:
    scanner = DirectiveScanner()
    try:
        for tok in scanner.scan(args.file.read_text(encoding="utf-8")):
            extra = ""
            if tok.test_literal is not None:
                extra = f" test={tok.test_literal!r}"
            if tok.quoted:
                extra += " quoted"
            if tok.expand:
                extra += " expand"
            print(f"{tok.line:>4} {tok.pos:>6} {tok.kind.name:<10} {tok.value!r}{extra}")
    except (TemplateError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


def build_arg_parser() -> argparse.ArgumentParser:
    arg_parser = argparse.ArgumentParser(
        prog="twoway-sql",
        description="Render and check 2-way SQL templates",
    )
    arg_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    sub = arg_parser.add_subparsers(dest="command", required=True)

    render = sub.add_parser("render", help="Render a template with parameters")
    render.add_argument("file", type=Path, help="Template file")
    render.add_argument("-p", "--params", type=Path, help="JSON file with parameters")
    render.add_argument(
        "-s", "--set",
        action="append",
        metavar="NAME=VALUE",
        help="Set a parameter (value parsed as JSON when possible); repeatable",
    )
    render.add_argument("--paramstyle", choices=PARAMSTYLES, default="qmark")
    render.add_argument("--strict", action="store_true", help="Absent names in conditions are errors")
    render.add_argument("--remove-blank-lines", action="store_true")
    render.add_argument("--collapse-whitespace", action="store_true")
    render.add_argument("--fix-dangling", action="store_true", help="Remove dangling WHERE/AND/commas")
    render.add_argument("--coverage", action="store_true", help="Print branch coverage")
    render.add_argument("--json", action="store_true", help="Print the result as JSON")
    render.set_defaults(func=cmd_render)

    check = sub.add_parser("check", help="Check templates for syntax errors")
    check.add_argument("files", type=Path, nargs="+")
    check.set_defaults(func=cmd_check)

    params = sub.add_parser("params", help="List parameter names referenced by a template")
    params.add_argument("file", type=Path)
    params.set_defaults(func=cmd_params)

    tokens = sub.add_parser("tokens", help="Print the directive token stream")
    tokens.add_argument("file", type=Path)
    tokens.set_defaults(func=cmd_tokens)

    return arg_parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
