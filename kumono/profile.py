"""Collecting the posts and files of a target."""

from __future__ import annotations

import sys
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, Iterator, Protocol, TypeVar

import httpx
from tqdm import tqdm

from kumono import api
from kumono.api import ApiError, DiscordChannel, SinglePost
from kumono.cli import Args
from kumono.file import PostFile
from kumono.progress import n_fmt
from kumono.target import PageOffset, PostId, Target

PAGE_SIZE = 50
DISCORD_PAGE_SIZE = 150

_T = TypeVar("_T")


class _HasFiles(Protocol):
    def files(self) -> list[PostFile]: ...


def collect_files(posts: Iterable[_HasFiles]) -> set[PostFile]:
    """The distinct files of all posts."""
    return {file for post in posts for file in post.files()}


@contextmanager
def _spinner() -> Iterator[Callable[[str], None]]:
    bar = tqdm(total=None, file=sys.stderr, bar_format="[{elapsed}] {desc}", dynamic_ncols=True)
    try:
        yield bar.set_description_str
    finally:
        bar.close()


async def _with_retries(request: Callable[[], Awaitable[_T]], args: Args) -> _T:
    retries = 0
    while True:
        try:
            return await request()
        except ApiError as err:
            await err.interpret(retries, args)
            retries += 1


async def _creator_posts(client: httpx.AsyncClient, target: Target, args: Args) -> list[_HasFiles]:
    subtype = target.subtype
    if isinstance(subtype, PostId):
        service = target.service
        url = (
            f"https://{service.site()}.su/api/v1/{service}/user/{target.user}/post/{subtype.post}"
        )
        return [SinglePost.from_json(await api.fetch_json(client, url))]

    posts: list[_HasFiles] = []
    offset = subtype.offset if isinstance(subtype, PageOffset) else 0
    with _spinner() as show:
        while True:
            show(f"Retrieving posts for {target} page #{(offset + PAGE_SIZE) // PAGE_SIZE}")
            current = offset
            page = await _with_retries(lambda: api.page(client, target, current), args)
            if not page:
                break
            posts.extend(page)
            if isinstance(subtype, PageOffset):
                break
            offset += PAGE_SIZE
    return posts


async def _discord_posts(client: httpx.AsyncClient, target: Target, args: Args) -> list[_HasFiles]:
    server = target.user
    if target.channel is not None:
        channels = [DiscordChannel(target.channel)]
    else:
        channels = await api.discord_server(client, server)
    posts: list[_HasFiles] = []
    if not channels:
        return posts

    with _spinner() as show:
        for channel in channels:
            offset = 0
            while True:
                show(
                    f"Retrieving posts for discord/{server}/{channel.id} page "
                    f"#{(offset + DISCORD_PAGE_SIZE) // DISCORD_PAGE_SIZE}"
                )
                current = offset
                page = await _with_retries(
                    lambda: api.discord_page(client, channel.id, current), args
                )
                if not page:
                    break
                posts.extend(page)
                offset += DISCORD_PAGE_SIZE
    return posts


def _plural(n: int, word: str) -> str:
    if n == 0:
        return f"no {word}s"
    if n == 1:
        return f"1 {word}"
    return f"{n_fmt(n)} {word}s"


@dataclass
class Profile:
    """A target with the number of its posts and the files they hold."""

    target: Target
    post_count: int = 0
    files: set[PostFile] = field(default_factory=set)

    @classmethod
    async def load(cls, client: httpx.AsyncClient, target: Target, args: Args) -> Profile:
        """Fetch all posts of a target and gather their files."""
        if target.is_discord:
            posts = await _discord_posts(client, target, args)
        else:
            posts = await _creator_posts(client, target, args)

        profile = cls(target, len(posts), collect_files(posts))
        print(profile, file=sys.stderr)

        if args.download_archive:
            total = len(profile.files)
            archive = set(target.archive)
            profile.files = {
                file
                for file in profile.files
                if (digest := file.hash_from_name()) is None or digest not in archive
            }
            remaining = len(profile.files)
            if remaining != total:
                print(
                    f"skipping {n_fmt(total - remaining)} files from download archive, "
                    f"{n_fmt(remaining)} files left to download/check",
                    file=sys.stderr,
                )
        return profile

    def __str__(self) -> str:
        target = self.target
        if isinstance(target.subtype, PostId) or (target.is_discord and target.channel is None):
            return f"{target} has {_plural(len(self.files), 'file')}"

        posts = _plural(self.post_count, "post")
        if self.post_count == 0:
            files = ""
        elif not self.files:
            files = ", but no files"
        elif len(self.files) == 1:
            files = ", containing 1 file"
        else:
            files = f", containing {n_fmt(len(self.files))} files"
        return f"{target} has {posts}{files}"