"""Command entry point: resolve targets, list extensions or download files."""

from __future__ import annotations

import asyncio
import queue
import sys
from pathlib import Path
from typing import Iterable, Iterator, Sequence

import httpx

from kumono.api import ApiError
from kumono.cli import Args, parse_args
from kumono.client import create_client
from kumono.file import DownloadError, PostFile
from kumono.profile import Profile
from kumono.progress import DownloadState, Failure, Stats, track
from kumono.target import Target, TargetError, targets_from_args

NO_MATCH = (
    "No files match the current extension filters.\n"
    "Please use '--list' to view available extensions."
)


def list_extensions(files: Iterable[PostFile]) -> tuple[list[str], int]:
    """The distinct lower-cased extensions, and how many files have none."""
    extensions: dict[str, None] = {}
    without = 0
    for file in files:
        ext = file.extension()
        if ext is None:
            without += 1
        else:
            extensions[ext.lower()] = None
    return list(extensions), without


def filter_files(files: Iterable[PostFile], args: Args) -> list[PostFile]:
    """Apply the include or exclude extension filter."""
    files = list(files)
    included = args.included()
    if included is not None:
        return [f for f in files if (ext := f.extension()) is not None and ext.lower() in included]
    excluded = args.excluded()
    if excluded is not None:
        return [f for f in files if (ext := f.extension()) is None or ext.lower() not in excluded]
    return files


def _describe(err: BaseException) -> str:
    message = str(err) or type(err).__name__
    if err.__cause__ is not None:
        message += "\n" + (str(err.__cause__) or type(err.__cause__).__name__)
    return message


def _print_extensions(files: Iterable[PostFile], last: bool) -> None:
    extensions, without = list_extensions(files)
    if without:
        print(f"{without} files do not have an extension", file=sys.stderr)
    if extensions:
        print(",".join(extensions), file=sys.stderr)
        if not last:
            print(file=sys.stderr)


async def _download_all(
    client: httpx.AsyncClient, target: Target, files: Sequence[PostFile], args: Args
) -> Stats:
    states: queue.Queue[DownloadState | None] = queue.Queue()

    def drain() -> Iterator[DownloadState]:
        while (state := states.get()) is not None:
            yield state

    tracker = asyncio.create_task(
        asyncio.to_thread(
            track, drain(), target.archive_path(args.output_path), len(files), args.download_archive
        )
    )
    limit = asyncio.Semaphore(args.thread_count())

    async def download(file: PostFile) -> None:
        async with limit:
            try:
                state: DownloadState = await file.download(client, target, args)
            except (DownloadError, httpx.HTTPError, OSError) as err:
                state = Failure(0, _describe(err))
        states.put(state)

    try:
        await asyncio.gather(*(download(file) for file in files))
    finally:
        states.put(None)
    return await tracker


async def run(args: Args) -> int:
    """Process every target; return the exit status."""
    if args.show_config:
        print(args, file=sys.stderr)

    output = Path(args.output_path)
    if args.download_archive:
        (output / "db").mkdir(parents=True, exist_ok=True)

    async with create_client(args) as client:
        targets = await targets_from_args(client, args)
        for index, target in enumerate(targets):
            profile = await Profile.load(client, target, args)
            if not profile.files:
                continue

            if args.list_extensions:
                _print_extensions(profile.files, index == len(targets) - 1)
                continue

            selected = filter_files(profile.files, args)
            if not selected:
                print(NO_MATCH, file=sys.stderr)
                return 0

            target.path(output).mkdir(parents=True, exist_ok=True)
            stats = await _download_all(client, target, selected, args)
            if stats.failure > 0:
                return 1
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line program."""
    args = parse_args(argv)
    try:
        return asyncio.run(run(args))
    except TargetError as err:
        print(err, file=sys.stderr)
    except (ApiError, DownloadError, ValueError, httpx.HTTPError, OSError) as err:
        print(f"Error: {_describe(err)}", file=sys.stderr)
    except KeyboardInterrupt:
        return 130
    return 1


if __name__ == "__main__":
    raise SystemExit(main())