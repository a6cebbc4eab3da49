"""
Command-line interface for chainlog.

Usage:
    chainlog --data-dir ./data append "hello"
    chainlog --data-dir ./data append --json '{"user": 42}'
    chainlog --data-dir ./data get <identifier>
    chainlog --data-dir ./data read --start 3 --end 17
    chainlog --data-dir ./data info
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional, TextIO

from chainlog.core.errors import ChainLogError, NotFoundError
from chainlog.core.factory import BACKENDS, open_log
from chainlog.core.log.identifier import is_identifier
from chainlog.core.log.sequence_log import SequenceLog
from chainlog.utils.config import Config
from chainlog.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_NOT_FOUND = 1
EXIT_USAGE = 2
EXIT_STORE_ERROR = 3


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="chainlog",
        description="chainlog - append-only hash-linked sequence log",
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML configuration file merged over the defaults",
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Directory for the file store (overrides store.data_dir)",
    )
    parser.add_argument(
        "--store",
        type=str,
        choices=BACKENDS,
        default=None,
        help="Store backend (overrides store.backend)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (overrides logging.level)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    append = commands.add_parser("append", help="Append a value")
    append.add_argument("value", help="Value to append")
    append.add_argument(
        "--json",
        action="store_true",
        help="Parse the value as JSON instead of storing it as a string",
    )

    get = commands.add_parser("get", help="Print one entry")
    get.add_argument("identifier", help="Entry identifier")

    read = commands.add_parser("read", help="Print entries as JSON lines")
    read.add_argument("--start", type=int, default=None, help="First index")
    read.add_argument("--end", type=int, default=None, help="Last index (inclusive)")

    commands.add_parser("info", help="Print the log's end pointers and current index")

    return parser


def _write_json(out: TextIO, document) -> None:
    out.write(json.dumps(document, ensure_ascii=False) + "\n")


def _reject_constant(name: str):
    raise ValueError(f"{name} is not a JSON value")


async def _run_command(args: argparse.Namespace, log: SequenceLog, out: TextIO) -> int:
    if args.command == "append":
        value = args.value
        if args.json:
            try:
                value = json.loads(value, parse_constant=_reject_constant)
            except ValueError as e:
                sys.stderr.write(f"chainlog: invalid JSON value: {e}\n")
                return EXIT_USAGE
        try:
            identifier = await log.append(value)
        except TypeError as e:
            sys.stderr.write(f"chainlog: cannot append value: {e}\n")
            return EXIT_USAGE
        out.write(identifier + "\n")
        return EXIT_OK

    if args.command == "get":
        if not is_identifier(args.identifier):
            sys.stderr.write(f"chainlog: not an entry identifier: {args.identifier!r}\n")
            return EXIT_NOT_FOUND
        entry = await log.get(args.identifier)
        _write_json(out, log.codec.to_json(entry))
        return EXIT_OK

    if args.command == "read":
        if args.start is None and args.end is None:
            stream = log.read_all()
        else:
            start = args.start if args.start is not None else 0
            end = args.end
            if end is None:
                current = await log.get_current_index()
                end = current if current is not None else start
            stream = log.read_from(start, end)

        async for entry in stream:
            _write_json(out, log.codec.to_json(entry))
        return EXIT_OK

    if args.command == "info":
        _write_json(
            out,
            {
                "firstHash": await log.get_first_hash(),
                "lastHash": await log.get_last_hash(),
                "currentIndex": await log.get_current_index(),
            },
        )
        return EXIT_OK

    raise ValueError(f"Unknown command: {args.command}")


async def run(args: argparse.Namespace, log: SequenceLog, out: TextIO) -> int:
    """
    Execute a parsed command against a log and close the log afterwards.

    Returns:
        Process exit code
    """
    try:
        return await _run_command(args, log, out)
    except NotFoundError as e:
        sys.stderr.write(f"chainlog: {e}\n")
        return EXIT_NOT_FOUND
    except ChainLogError as e:
        logger.error("Command failed", command=args.command, error=str(e))
        sys.stderr.write(f"chainlog: {e}\n")
        return EXIT_STORE_ERROR
    finally:
        await log.close()


def load_config(args: argparse.Namespace) -> Config:
    """Configuration from file and environment with command-line overrides."""
    config = Config(args.config)
    if args.data_dir:
        config.set("store.data_dir", args.data_dir)
    if args.store:
        config.set("store.backend", args.store)
    if args.log_level:
        config.set("logging.level", args.log_level)
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    config = load_config(args)

    configure_logging(
        log_level=config.get("logging.level", "INFO"),
        log_format=config.get("logging.format", "console"),
        log_output=config.get("logging.output", "stderr"),
    )

    try:
        log = open_log(config)
    except ChainLogError as e:
        sys.stderr.write(f"chainlog: {e}\n")
        return EXIT_STORE_ERROR

    return asyncio.run(run(args, log, sys.stdout))


if __name__ == "__main__":
    sys.exit(main())
