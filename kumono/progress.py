"""Download progress display, statistics and archive logging."""

from __future__ import annotations

import sys
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Union

from tqdm import tqdm

_BINARY_PREFIXES = ("Ki", "Mi", "Gi", "Ti", "Pi", "Ei", "Zi", "Yi")
_MAX_ERRORS = 3


def n_fmt(n: int) -> str:
    """Format an integer with thousands separators."""
    return f"{n:,}"


def human_bytes(n: int) -> str:
    """Format a byte count with binary prefixes."""
    value = float(n)
    if value < 1024:
        return f"{value:.0f} B"
    prefix = ""
    for prefix in _BINARY_PREFIXES:
        value /= 1024
        if value < 1024:
            break
    return f"{value:.2f} {prefix}B"


@dataclass(frozen=True)
class Success:
    """A completed download of ``size`` bytes."""

    size: int
    digest: str | None = None


@dataclass(frozen=True)
class Skip:
    """A file that was already present."""

    digest: str | None = None


@dataclass(frozen=True)
class Failure:
    """A failed download after ``size`` bytes."""

    size: int
    error: str


DownloadState = Union[Success, Skip, Failure]


class Stats:
    """Running totals of download outcomes."""

    def __init__(self, archive_path: str | Path | None = None) -> None:
        self.success = 0
        self.skipped = 0
        self.failure = 0
        self.dl_size = 0
        self.errors: deque[str] = deque(maxlen=_MAX_ERRORS)
        self._archive = open(archive_path, "a", encoding="utf-8") if archive_path else None

    def __enter__(self) -> Stats:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _write_to_archive(self, digest: str | None) -> None:
        if digest is not None and self._archive is not None:
            self._archive.write(digest + "\n")
            self._archive.flush()

    def update(self, state: DownloadState) -> None:
        """Account for one finished download."""
        match state:
            case Failure(size=size, error=error):
                self.dl_size += size
                self.failure += 1
                self.errors.append(error)
            case Skip(digest=digest):
                self.skipped += 1
                self._write_to_archive(digest)
            case Success(size=size, digest=digest):
                self.dl_size += size
                self.success += 1
                self._write_to_archive(digest)
            case _:
                raise TypeError(f"unknown download state: {state!r}")

    def close(self) -> None:
        """Close the archive file, if one is open."""
        if self._archive is not None:
            self._archive.close()
            self._archive = None

    def __str__(self) -> str:
        return (
            f"downloaded approx. {human_bytes(self.dl_size)} / finished: {n_fmt(self.success)}"
            f" / skipped: {n_fmt(self.skipped)} / failed: {n_fmt(self.failure)}\n"
        )


def track(
    states: Iterable[DownloadState],
    archive_path: str | Path,
    length: int,
    download_archive: bool,
) -> Stats:
    """Show a progress bar while consuming download states; return the totals."""
    with Stats(archive_path if download_archive else None) as stats, tqdm(
        total=length, file=sys.stderr, dynamic_ncols=True
    ) as bar:
        for state in states:
            stats.update(state)
            if stats.errors:
                bar.set_postfix_str(" | ".join(stats.errors), refresh=False)
            bar.set_description_str(str(stats).rstrip("\n"), refresh=False)
            bar.update(1)
    return stats