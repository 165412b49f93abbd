import json
import logging
import os
import sys
import time

from clang.cindex import Diagnostic

from ast_model import InvalidInputError
from ast_parser import ParseCppError, parse_cpp_file
from ast_walker import collect_functions
from engine_factory import build_engine, parse_assertion_names

logger = logging.getLogger(__name__)

USAGE = "Usage: python3 assign_check.py [--text] [--debug] [--assert-names a,b] <file> [<file> ...]"
SUGGESTION = "Use '==' for comparison if assignment was accidental, or wrap the assignment in extra parentheses if intentional."


def _round_ms(value):
    return round(max(0.0, float(value)), 3)


def _timing_ms(parse_ms, analysis_ms):
    return {
        "parse": _round_ms(parse_ms),
        "analysis": _round_ms(analysis_ms),
        "total": _round_ms(parse_ms + analysis_ms),
    }


def _has_blocking_parse_errors(translation_unit, target_file):
    for diag in translation_unit.diagnostics:
        if diag.severity < Diagnostic.Error:
            continue
        loc = diag.location
        loc_file = loc.file.name if loc and loc.file else None
        if loc_file is None or os.path.realpath(loc_file) == target_file:
            return True
    return False


def _alert_item(alert):
    item = alert.to_dict()
    item.update({"severity": "warning", "source": "rule", "suggestion": SUGGESTION})
    return item


def _error_item(message, line=None):
    return {
        "severity": "error",
        "source": "runtime",
        "line": line,
        "column": None,
        "message": message,
        "suggestion": "Check that the file exists and compiles, e.g. clang -fsyntax-only <file>.",
    }


def _summary(items):
    out = {"error": 0, "warning": 0}
    for item in items:
        sev = item.get("severity")
        if sev in out:
            out[sev] += 1
    out["total"] = out["error"] + out["warning"]
    return out


def analyze_file(filename, engine, extra_args=None, assertion_names=None):
    """Parse one file and run the engine on its function bodies."""
    target_file = os.path.realpath(filename)
    display_name = os.path.basename(filename)

    parse_start = time.perf_counter()
    try:
        translation_unit = parse_cpp_file(filename, extra_args)
    except ParseCppError as exc:
        parse_ms = (time.perf_counter() - parse_start) * 1000.0
        message = f"Failed to parse {display_name}: {exc}"
        items = [_error_item(message)]
        return {
            "file": display_name,
            "path": target_file,
            "ok": False,
            "error": message,
            "alerts": [],
            "items": items,
            "summary": _summary(items),
            "timing_ms": _timing_ms(parse_ms, 0.0),
        }
    parse_ms = (time.perf_counter() - parse_start) * 1000.0

    if _has_blocking_parse_errors(translation_unit, target_file):
        logger.warning("%s has parse errors; results may be incomplete", display_name)

    analysis_start = time.perf_counter()
    errors = []
    alerts = []
    try:
        functions = collect_functions(
            translation_unit.cursor,
            target_file=target_file,
            assertion_macros=assertion_names,
        )
        alerts = engine.run(functions)
        errors = [
            _error_item(f"Could not analyze {display_name}, {failure.message}", failure.line)
            for failure in engine.errors
        ]
    except InvalidInputError as exc:
        errors = [_error_item(f"Could not analyze {display_name}: {exc}")]
    analysis_ms = (time.perf_counter() - analysis_start) * 1000.0

    items = [_alert_item(a) for a in alerts] + errors
    error = "; ".join(item["message"] for item in errors) or None

    return {
        "file": display_name,
        "path": target_file,
        "ok": error is None,
        "error": error,
        "alerts": [str(a) for a in alerts],
        "items": items,
        "summary": _summary(items),
        "timing_ms": _timing_ms(parse_ms, analysis_ms),
    }


def _option_value(args, flag):
    """Remove '<flag> <value>' from args and return the value, or None."""
    if flag not in args:
        return args, None, None
    idx = args.index(flag)
    if idx + 1 >= len(args):
        return args, None, f"Missing value after {flag}."
    value = args[idx + 1]
    return args[:idx] + args[idx + 2:], value, None


def _print_error(message, json_mode):
    if json_mode:
        print(json.dumps({"ok": False, "error": message}))
    else:
        print(message)


def main(argv=None):
    args = list(sys.argv[1:] if argv is None else argv)

    json_mode = "--text" not in args
    args = [a for a in args if a != "--text"]

    if "--debug" in args:
        args = [a for a in args if a != "--debug"]
        logging.basicConfig(level=logging.DEBUG, stream=sys.stderr, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING, stream=sys.stderr, format="%(levelname)s %(name)s: %(message)s")

    extra_args = []
    if "--" in args:
        idx = args.index("--")
        extra_args = args[idx + 1:]
        args = args[:idx]

    args, raw_names, error = _option_value(args, "--assert-names")
    if error:
        _print_error(error, json_mode)
        return 2

    files = args
    if not files:
        _print_error("No files provided. " + USAGE, json_mode)
        return 2

    assertion_names = parse_assertion_names(raw_names)
    engine = build_engine(assertion_names)
    overall_start = time.perf_counter()
    results = []

    for idx, filename in enumerate(files):
        result = analyze_file(filename, engine, extra_args, assertion_names)
        results.append(result)

        if json_mode:
            continue

        if len(files) > 1:
            print(f"=== {result['file']} ===")
        if result["error"]:
            print(f"[ERROR] {result['error']}")
        for alert in result["alerts"]:
            print(alert)
        timing = result["timing_ms"]
        print(f"[timing] parse: {timing['parse']} ms, analysis: {timing['analysis']} ms, total: {timing['total']} ms.")
        if idx < len(files) - 1:
            print()

    if json_mode:
        total_ms = _round_ms((time.perf_counter() - overall_start) * 1000.0)
        print(json.dumps({"ok": True, "results": results, "timing_ms": {"total": total_ms}}))

    return 0


if __name__ == "__main__":
    sys.exit(main())
