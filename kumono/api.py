"""Access to the sites' post listing API."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

import httpx

from kumono.cli import Args
from kumono.file import PostFile
from kumono.target import Target

API_DELAY = 0.1

_T = TypeVar("_T")


class ApiError(Exception):
    """An API request failed."""

    def _delay(self, args: Args) -> float:
        return args.retry_delay

    async def interpret(self, retries: int, args: Args) -> None:
        """Wait before the next attempt, or raise once the retries are used up."""
        if retries >= args.max_retries:
            raise self
        await asyncio.sleep(self._delay(args))


class ConnectError(ApiError):
    """The request could not be sent or answered."""


class StatusError(ApiError):
    """The server answered with a status other than 200."""

    def __init__(self, status: int) -> None:
        super().__init__(str(status))
        self.status = status

    def _delay(self, args: Args) -> float:
        if self.status in (403, 429):
            return args.rate_limit_backoff
        return args.retry_delay


class ParseError(ApiError):
    """The response body was not what was expected."""


def _parse(build: Callable[[], _T]) -> _T:
    try:
        return build()
    except (KeyError, TypeError, ValueError, AttributeError) as err:
        raise ParseError(f"post parsing failed: {err!r}") from err


def _optional_file(data: dict[str, Any]) -> PostFile | None:
    value = data.get("file")
    return None if value is None else PostFile.from_json(value)


def _file_list(data: dict[str, Any]) -> tuple[PostFile, ...]:
    value = data["attachments"]
    if not isinstance(value, list):
        raise ValueError("attachments must be a list")
    return tuple(PostFile.from_json(item) for item in value)


def _with_path(files: list[PostFile]) -> list[PostFile]:
    return [pf for pf in files if pf.path is not None]


@dataclass(frozen=True)
class SinglePost:
    """A post fetched on its own."""

    file: PostFile | None
    attachments: tuple[PostFile, ...]

    @classmethod
    def from_json(cls, data: Any) -> SinglePost:
        """Build from the API's single-post response."""
        def build() -> SinglePost:
            inner = data["post"]
            return cls(_optional_file(inner), _file_list(inner))

        return _parse(build)

    def files(self) -> list[PostFile]:
        """The main file and the attachments that have a CDN path."""
        main = [self.file] if self.file is not None else []
        return _with_path(main + list(self.attachments))


@dataclass(frozen=True)
class PagePost:
    """A post from a page of a creator's posts."""

    file: PostFile | None
    attachments: tuple[PostFile, ...]

    @classmethod
    def from_json(cls, data: Any) -> PagePost:
        """Build from one entry of a posts page."""
        return _parse(lambda: cls(_optional_file(data), _file_list(data)))

    def files(self) -> list[PostFile]:
        """The main file and the attachments that have a CDN path."""
        main = [self.file] if self.file is not None else []
        return _with_path(main + list(self.attachments))


@dataclass(frozen=True)
class DiscordPost:
    """A message from a Discord channel."""

    attachments: tuple[PostFile, ...]

    @classmethod
    def from_json(cls, data: Any) -> DiscordPost:
        """Build from one entry of a channel page."""
        return _parse(lambda: cls(_file_list(data)))

    def files(self) -> list[PostFile]:
        """The attachments that have a CDN path."""
        return _with_path(list(self.attachments))


@dataclass(frozen=True)
class DiscordChannel:
    """A channel of a Discord server."""

    id: str


def _channel_from_json(data: Any) -> DiscordChannel:
    def build() -> DiscordChannel:
        channel_id = data["id"]
        if not isinstance(channel_id, str):
            raise ValueError("channel id must be a string")
        return DiscordChannel(channel_id)

    return _parse(build)


def _parse_list(data: Any, build: Callable[[Any], _T]) -> list[_T]:
    if not isinstance(data, list):
        raise ParseError(f"post parsing failed: expected a list, got {type(data).__name__}")
    return [build(item) for item in data]


async def fetch_json(client: httpx.AsyncClient, url: str) -> Any:
    """GET a URL and decode its JSON body, raising an ApiError on failure."""
    try:
        response = await client.get(url)
    except httpx.HTTPError as err:
        raise ConnectError(str(err) or type(err).__name__) from err
    if response.status_code != 200:
        raise StatusError(response.status_code)
    try:
        return response.json()
    except ValueError as err:
        raise ParseError(str(err)) from err


async def page(client: httpx.AsyncClient, target: Target, offset: int) -> list[PagePost]:
    """Fetch one page of a creator's posts."""
    await asyncio.sleep(API_DELAY)
    service = target.service
    url = f"https://{service.site()}.su/api/v1/{service}/user/{target.user}?o={offset}"
    return _parse_list(await fetch_json(client, url), PagePost.from_json)


async def discord_page(client: httpx.AsyncClient, channel: str, offset: int) -> list[DiscordPost]:
    """Fetch one page of a Discord channel's messages."""
    await asyncio.sleep(API_DELAY)
    url = f"https://kemono.su/api/v1/discord/channel/{channel}?o={offset}"
    return _parse_list(await fetch_json(client, url), DiscordPost.from_json)


async def discord_server(client: httpx.AsyncClient, server: str) -> list[DiscordChannel]:
    """Fetch the channels of a Discord server."""
    url = f"https://kemono.su/api/v1/discord/channel/lookup/{server}"
    return _parse_list(await fetch_json(client, url), _channel_from_json)