"""taglite CLI - print media file metadata from the command line."""
import io
import sys
import json
import time
import base64
import pprint
import logging
import argparse
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import mutagen
import yaml

from . import __version__
from .errors import TagliteError
from .media_file import MediaFile
from .utils import (
    Config,
    setup_logging,
    split_list,
    READ_STYLES,
    OUTPUT_FORMATS,
    EXIT_CODE_SUCCESS,
    EXIT_CODE_ERROR,
    EXIT_CODE_USAGE,
    EXIT_CODE_NO_FILES,
    EXIT_CODE_INTERRUPTED,
)

logger = logging.getLogger(__name__)

RecordType = Dict[str, Any]

# ---------- Record building ----------
def encode_binary(value: Any) -> Any:
    """Base64 encode bytes anywhere inside a complex property value."""
    if isinstance(value, bytes):
        return base64.b64encode(value).decode('ascii')
    if isinstance(value, list):
        return [encode_binary(v) for v in value]
    if isinstance(value, dict):
        return {k: encode_binary(v) for k, v in value.items()}
    return value


def process_file(source: Any, retrieve: Dict[str, Any], path: Optional[str] = None) -> RecordType:
    """Read one file into a flat record, collapsing single valued lists."""
    mf = MediaFile.read(source, **retrieve)
    record = {}
    for key, value in mf.items():
        if isinstance(value, list) and len(value) == 1:
            value = value[0]
        record[key] = encode_binary(value)
    if path is not None:
        record['path'] = path
    return record


def collect_files(directory: Path, patterns: List[str]) -> List[Path]:
    """Files under directory matching any of the glob patterns, without duplicates."""
    seen = {}
    for pattern in patterns:
        for file_path in sorted(directory.glob(pattern)):
            if file_path.is_file():
                seen.setdefault(file_path, None)
    return list(seen)


def process_directory(directory: Path, patterns: List[str], retrieve: Dict[str, Any],
                      emit: Callable[[RecordType], None]) -> Tuple[int, int]:
    """Emit a record per matching file. Returns (files found, files failed)."""
    start = time.perf_counter()
    dir_path = directory.expanduser().resolve()
    files = collect_files(dir_path, patterns)

    failures = 0
    for file_path in files:
        relative = file_path.relative_to(dir_path).as_posix()
        try:
            emit(process_file(file_path, retrieve, path=relative))
        except (TagliteError, OSError) as e:
            failures += 1
            logger.debug(f"Failed to read {file_path}: {e}")
            print(f"Error: {relative}: {e}", file=sys.stderr)

    print(f"Processed {len(files)} files in {time.perf_counter() - start:.3f}s", file=sys.stderr)
    return len(files), failures

# ---------- Output ----------
def format_record(record: RecordType, fmt: str) -> str:
    if fmt == 'json':
        return json.dumps(record, ensure_ascii=False)
    if fmt == 'pretty':
        return json.dumps(record, indent=2, ensure_ascii=False)
    if fmt == 'yaml':
        return yaml.safe_dump(record, allow_unicode=True, sort_keys=False).rstrip('\n')
    return pprint.pformat(record, sort_dicts=False)


def build_retrieve(args: argparse.Namespace) -> Dict[str, Any]:
    """Translate retrieval flags into MediaFile.read() options."""
    retrieve = {}
    if args.tag is not None:
        retrieve['tag'] = args.tag
    if args.properties is not None:
        retrieve['properties'] = args.properties
    if args.audio_properties is not None:
        retrieve['audio_properties'] = (
            Config.DEFAULT_READ_STYLE if args.audio_properties is True else args.audio_properties
        )
    if args.complex is not None:
        # no keys means every complex property
        retrieve['complex_property_keys'] = args.complex or 'all'
    if args.all is not None:
        retrieve['all'] = args.all
        if not args.all:
            retrieve.setdefault('tag', False)
            retrieve.setdefault('properties', False)
    return retrieve

# ---------- CLI & Main ----------
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='taglite',
        description="taglite - print audio file metadata",
        usage="%(prog)s [options] [DIRECTORY|FILE|-]",
    )
    parser.add_argument("path", nargs='?', help="Directory, file, or '-' to read a file from stdin")
    parser.add_argument("--patterns", type=split_list,
                        help="Comma-separated glob patterns for files in a directory")
    parser.add_argument("-t", "--tag", action=argparse.BooleanOptionalAction, default=None,
                        help="Include tag information (default: true)")
    parser.add_argument("-p", "--properties", action=argparse.BooleanOptionalAction, default=None,
                        help="Include properties (default: true)")
    parser.add_argument("-a", "--audio-properties", nargs='?', const=True, choices=READ_STYLES,
                        metavar="ACCURACY",
                        help="Include audio properties (fast, average, accurate; default: none)")
    parser.add_argument("-c", "--complex", nargs='?', const=[], type=split_list, metavar="PROPERTIES",
                        help="Comma-separated complex properties to include (no value: all)")
    parser.add_argument("--all", action=argparse.BooleanOptionalAction, default=None,
                        help="Include everything (equivalent to -t -p -a -c)")
    parser.add_argument("-f", "--format", choices=OUTPUT_FORMATS, default=None,
                        help="Output format (default: pp, overrides TAGLITE_FORMAT)")
    parser.add_argument("-v", "--version", action='version',
                        version=f"taglite {__version__} (mutagen {mutagen.version_string})")
    parser.add_argument("--verbose", action='store_true', help="Enable debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point. Returns the exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    # Configuration precedence: CLI flag > environment variable > default
    try:
        Config.load_from_env()
        if args.patterns:
            Config.DEFAULT_PATTERNS = args.patterns
        if args.format:
            Config.DEFAULT_FORMAT = args.format
        Config.validate()
    except ValueError as e:
        logger.error(f"Configuration validation failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CODE_USAGE

    source = args.path
    if source is None:
        if sys.stdin.isatty():
            parser.print_usage(sys.stderr)
            return EXIT_CODE_USAGE
        source = '-'

    retrieve = build_retrieve(args)
    fmt = Config.DEFAULT_FORMAT

    def emit(record: RecordType) -> None:
        print(format_record(record, fmt), flush=True)

    try:
        if source == '-':
            # mutagen needs a seekable stream
            emit(process_file(io.BytesIO(sys.stdin.buffer.read()), retrieve))
            return EXIT_CODE_SUCCESS

        path = Path(source)
        if path.is_dir():
            count, failures = process_directory(path, Config.DEFAULT_PATTERNS, retrieve, emit)
            if count == 0:
                print("No files found matching patterns.", file=sys.stderr)
                return EXIT_CODE_NO_FILES
            return EXIT_CODE_ERROR if failures else EXIT_CODE_SUCCESS

        if not path.exists():
            print(f"Error: Path does not exist: {source}", file=sys.stderr)
            return EXIT_CODE_USAGE
        emit(process_file(path, retrieve, path=source))
        return EXIT_CODE_SUCCESS

    except KeyboardInterrupt:
        return EXIT_CODE_INTERRUPTED
    except (TagliteError, OSError) as e:
        logger.debug(f"Failed to read {source}: {e}", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CODE_ERROR
