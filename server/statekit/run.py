import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

import uvicorn

from statekit.config import DEFAULT_RUNTIME_PATH
from statekit.models import TransformOptions
from statekit.services.cache import transform_with_cache
from statekit.services.syntax import FactorySyntaxError


def _transform_file(args: argparse.Namespace) -> int:
    target_path = os.path.abspath(args.file)
    if not os.path.isfile(target_path):
        raise SystemExit(f"File does not exist: {target_path}")

    code = Path(target_path).read_text(encoding="utf-8")
    options = TransformOptions(
        debug_mode=args.debug,
        emit_intrinsic_imports=args.globals,
        runtime_path=args.runtime_path,
    )
    cache_dir = Path(args.cache_dir) if args.cache_dir else None

    try:
        response = transform_with_cache(code, target_path, options, cache_dir)
    except FactorySyntaxError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    if not response.changed:
        print(f"✅ No changes needed for {target_path}", file=sys.stderr)
        sys.stdout.write(code)
        return 0

    sys.stdout.write(response.code)
    if args.map:
        map_path = Path(target_path + ".map")
        map_path.write_text(response.map.model_dump_json(by_alias=True), encoding="utf-8")
        print(f"🗺️  Wrote source map to {map_path}", file=sys.stderr)
    return 0


def _serve(args: argparse.Namespace) -> int:
    url = f"http://{args.host}:{args.port}"
    print(f"🚀 Starting server at {url}")
    print("   Press Ctrl+C to stop.")

    uvicorn.run(
        "statekit.main:app",
        host=args.host,
        port=args.port,
        reload=False,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="statekit",
        description="Rewrite createClass factories so their state is reactive.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log the factories and reactive variables found.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    transform_parser = subparsers.add_parser("transform", help="Transform one module and print the result.")
    transform_parser.add_argument("file", help="Path to a .ts/.tsx/.js/.jsx module.")
    transform_parser.add_argument(
        "--debug",
        action="store_true",
        help="Emit debug cells that carry variable names and the instance.",
    )
    transform_parser.add_argument(
        "--globals",
        action="store_true",
        help="Import intrinsics (watch, computed, ...) from the runtime.",
    )
    transform_parser.add_argument(
        "--runtime-path",
        default=DEFAULT_RUNTIME_PATH,
        help=f"Module the runtime primitives are imported from (default: {DEFAULT_RUNTIME_PATH}).",
    )
    transform_parser.add_argument(
        "--map",
        action="store_true",
        help="Write a source map next to the input file.",
    )
    transform_parser.add_argument(
        "--cache-dir",
        default=None,
        help="Reuse results stored under this directory.",
    )
    transform_parser.set_defaults(handler=_transform_file)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP transform server.")
    serve_parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host interface to bind the server to (default: 127.0.0.1).",
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to run the server on (default: 8000).",
    )
    serve_parser.set_defaults(handler=_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the `statekit` CLI."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    raise SystemExit(args.handler(args))


if __name__ == "__main__":
    main()
