"""Command-line arguments and their defaults."""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass, field
from typing import Sequence

VERSION = "0.47.1"

MIN_THREADS = 1
MAX_THREADS = 4096
_U64_MAX = 2**64 - 1


def _parse_u64(text: str) -> int:
    digits = text[1:] if text.startswith("+") else text
    if not digits or not digits.isascii() or not digits.isdigit():
        raise ValueError(f"invalid digit found in string: {text!r}")
    value = int(digits)
    if value > _U64_MAX:
        raise ValueError(f"number too large: {text!r}")
    return value


def parse_duration(text: str) -> int:
    """Parse a whole number of seconds, never less than one."""
    return max(_parse_u64(text), 1)


def format_duration(seconds: float) -> str:
    """Render a duration compactly, e.g. ``1m 15s``."""
    remaining = round(seconds * 1000)
    parts = []
    for unit, size in (("d", 86_400_000), ("h", 3_600_000), ("m", 60_000), ("s", 1000), ("ms", 1)):
        count, remaining = divmod(remaining, size)
        if count:
            parts.append(f"{count}{unit}")
    return " ".join(parts) or "0s"


def _process_exts(exts: list[str] | None) -> list[str] | None:
    if exts is None:
        return None
    processed = [ext.lower() for ext in dict.fromkeys(exts)]
    return processed or None


@dataclass
class Args:
    """Program configuration."""

    urls: list[str] = field(default_factory=list)
    proxy: str | None = None
    threads: int = 256
    output_path: str = "kumono"
    list_extensions: bool = False
    include: list[str] | None = None
    exclude: list[str] | None = None
    download_archive: bool = False
    max_retries: int = 5
    retry_delay: float = 1
    connect_timeout: float = 1
    read_timeout: float = 5
    rate_limit_backoff: float = 15
    server_error_delay: float = 5
    show_config: bool = False

    def thread_count(self) -> int:
        """Number of simultaneous downloads, clamped to the allowed range."""
        return min(max(self.threads, MIN_THREADS), MAX_THREADS)

    def included(self) -> list[str] | None:
        """Lower-cased extensions to include, or None when unset."""
        return _process_exts(self.include)

    def excluded(self) -> list[str] | None:
        """Lower-cased extensions to exclude, or None when unset."""
        return _process_exts(self.exclude)

    def __str__(self) -> str:
        return (
            f"Threads: {self.thread_count()} / Proxy: {self.proxy or 'None'} / "
            f"Timeout: (Connect: {format_duration(self.connect_timeout)} / "
            f"Read: {format_duration(self.read_timeout)}) / "
            f"Backoff: (Rate Limit: {format_duration(self.rate_limit_backoff)} / "
            f"Server Error: {format_duration(self.server_error_delay)})"
        )


def _comma_list(text: str) -> list[str]:
    return text.split(",")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kumono", description="Media ripper for coomer.su and kemono.su"
    )
    parser.add_argument(
        "urls", nargs="*", metavar="URLS", help="Creator page or post / Discord server or channel"
    )
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("-p", "--proxy", help="Proxy URL (scheme://host:port[/path])")
    parser.add_argument(
        "-t", "--threads", type=_parse_u64, default=256, help="Simultaneous downloads (1-4096)"
    )
    parser.add_argument("-o", "--output-path", default="kumono", help="Base directory for downloads")
    parser.add_argument(
        "-l",
        "--list-extensions",
        action="store_true",
        help="List of available file extensions (per target)",
    )
    filters = parser.add_mutually_exclusive_group()
    filters.add_argument(
        "-i",
        "--include",
        type=_comma_list,
        action="extend",
        help="File extensions to include (comma separated)",
    )
    filters.add_argument(
        "-e",
        "--exclude",
        type=_comma_list,
        action="extend",
        help="File extensions to exclude (comma separated)",
    )
    parser.add_argument(
        "-d",
        "--download-archive",
        action="store_true",
        help="Log hashes, skip moved/deleted file download",
    )
    parser.add_argument("-m", "--max-retries", type=_parse_u64, default=5)
    parser.add_argument("-r", "--retry-delay", type=parse_duration, default=1)
    parser.add_argument("--connect-timeout", type=parse_duration, default=1)
    parser.add_argument("--read-timeout", type=parse_duration, default=5)
    parser.add_argument("--rate-limit-backoff", type=parse_duration, default=15)
    parser.add_argument("--server-error-delay", type=parse_duration, default=5)
    parser.add_argument("-s", "--show-config", action="store_true", help="Print configuration")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> Args:
    """Parse the command line; with no arguments, print help and exit."""
    argv = sys.argv[1:] if argv is None else list(argv)
    parser = _build_parser()
    if not argv:
        parser.print_help(sys.stderr)
        raise SystemExit(2)
    namespace = parser.parse_args(argv)
    return Args(**vars(namespace))