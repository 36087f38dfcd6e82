"""Parse ClearSilver templates and report syntax errors.

Usage:
    csparse-check templates/
    csparse-check page.cs --tree
    csparse-check templates/ --pattern "*.cst" -v
"""

import argparse
import logging
import sys
from pathlib import Path

from .errors import ParseError
from .parser import parse_file
from .visitor import dump

DEFAULT_PATTERNS = ["*.cs", "*.cst"]
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def collect_files(paths: list[Path], patterns: list[str]) -> list[Path]:
    """Expand directories into the template files they contain."""
    files: list[Path] = []
    for path in paths:
        if path.is_dir():
            found = set()
            for pattern in patterns:
                found.update(path.rglob(pattern))
            files.extend(sorted(found))
        else:
            files.append(path)
    return files


def check_files(files: list[Path], show_tree: bool = False, show_json: bool = False):
    """Parse every file. Returns (ok, errors)."""
    ok = 0
    errors: list[tuple[Path, str]] = []
    for f in files:
        try:
            root = parse_file(f)
        except ParseError as e:
            errors.append((f, f"line {e.line}, col {e.column}: {e.msg}"))
            continue
        except (OSError, UnicodeDecodeError) as e:
            errors.append((f, str(e)))
            continue
        ok += 1
        if show_tree:
            print(dump(root))
        elif show_json:
            print(root.model_dump_json(indent=2))
    return ok, errors


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Check ClearSilver templates for syntax errors")
    parser.add_argument("paths", nargs="+", type=Path, help="Template files or directories")
    parser.add_argument(
        "--pattern",
        action="append",
        default=None,
        help=f"Glob used when searching directories (default: {DEFAULT_PATTERNS})",
    )
    output = parser.add_mutually_exclusive_group()
    output.add_argument("--tree", action="store_true", help="Print each parsed tree")
    output.add_argument("--json", action="store_true", help="Print each parsed tree as JSON")
    parser.add_argument("--verbose", "-v", action="store_true")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        type=str.upper,
        choices=LOG_LEVELS,
        help="Logging level (default: WARNING)",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level, format="%(name)s: %(message)s")

    files = collect_files(args.paths, args.pattern or DEFAULT_PATTERNS)
    ok, errors = check_files(files, show_tree=args.tree, show_json=args.json)

    if args.verbose:
        failed = {f for f, _ in errors}
        for f in files:
            print(f"  {'FAIL' if f in failed else 'OK':<5} {f}")

    print()
    print(f"  Total: {ok}/{ok + len(errors)} templates parse")

    if errors:
        print()
        print("  Errors:")
        for f, e in errors:
            print(f"    {f}: {e}")
        return 1

    print("  All clear.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
