"""CLI entry point for checking and formatting schema files."""

import argparse
import logging
import sys
from pathlib import Path
from typing import List

import yaml

from . import core
from .builder import parse
from .config import settings
from .errors import SchemaError
from .extensions import registry
from .serialization import expression_to_dict, to_string

logger = logging.getLogger(__name__)


def find_schema_files(paths: List[str]) -> List[Path]:
    """Find all .yang files in the given paths."""
    files = []
    for path_str in paths:
        path = Path(path_str)

        if not path.exists():
            print(f"Warning: Path does not exist: {path}", file=sys.stderr)
            continue

        if path.is_file():
            files.append(path)
        elif path.is_dir():
            files.extend(path.rglob('*.yang'))

    return sorted(set(files))


def _load(path: Path):
    return parse(path.read_text(encoding='utf-8'))


def check(paths: List[str]) -> int:
    files = find_schema_files(paths)
    if not files:
        print("No schema files found.", file=sys.stderr)
        return 1

    errors = 0
    for path in files:
        try:
            _load(path)
        except SchemaError as err:
            errors += 1
            print(f"{path}: ERROR: {err}")
        else:
            logger.info("%s: ok", path)

    if errors:
        return 1
    print(f"Checked {len(files)} file(s) with no errors.")
    return 0


def format_schema(path: str, space: int, as_yaml: bool) -> int:
    try:
        schema = _load(Path(path))
    except (OSError, SchemaError) as err:
        print(f"{path}: ERROR: {err}", file=sys.stderr)
        return 1

    if as_yaml:
        print(yaml.safe_dump(expression_to_dict(schema)), end='')
    else:
        print(to_string(schema, space=space))
    return 0


def main(argv: List[str] | None = None) -> None:
    """Main entry point for the yangtree CLI."""
    parser = argparse.ArgumentParser(
        prog='yangtree',
        description='Check and format schema files',
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    check_parser = subparsers.add_parser('check', help='Build schema files and report errors')
    check_parser.add_argument('paths', nargs='*', help='Files or directories (default: current directory)')

    format_parser = subparsers.add_parser('format', help='Print the canonical rendering of a schema')
    format_parser.add_argument('path', help='Schema file')
    format_parser.add_argument('--space', type=int, default=settings.indent, help='Indentation width')
    format_parser.add_argument('--yaml', action='store_true', help='Print the record form as YAML')

    args = parser.parse_args(argv)

    settings.set_logging()
    if 'module' not in registry:
        core.install()

    if args.command == 'check':
        sys.exit(check(args.paths or ['.']))
    sys.exit(format_schema(args.path, args.space, args.yaml))


if __name__ == '__main__':
    main()
