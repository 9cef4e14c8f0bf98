"""Download targets: creators, single posts and Discord servers."""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any

import httpx

from kumono.cli import Args


class TargetError(Exception):
    """A URL, service or archive could not be turned into a target."""


class Service(Enum):
    """Services hosted on the two sites."""

    AFDIAN = "afdian"
    BOOSTY = "boosty"
    CANDFANS = "candfans"
    DISCORD = "discord"
    DLSITE = "dlsite"
    FANBOX = "fanbox"
    FANSLY = "fansly"
    FANTIA = "fantia"
    GUMROAD = "gumroad"
    ONLYFANS = "onlyfans"
    PATREON = "patreon"
    SUBSCRIBESTAR = "subscribestar"

    def __str__(self) -> str:
        return self.value

    def site(self) -> str:
        """The site that hosts this service."""
        if self in (Service.CANDFANS, Service.FANSLY, Service.ONLYFANS):
            return "coomer"
        return "kemono"

    @classmethod
    def parse(cls, text: str) -> Service:
        """Look up a service by name, ignoring case."""
        try:
            return cls(text.lower())
        except ValueError:
            raise TargetError(f"unknown service: {text}") from None


@dataclass(frozen=True)
class PageOffset:
    """A single page of a creator's posts."""

    offset: int


@dataclass(frozen=True)
class PostId:
    """A single post of a creator."""

    post: str


@dataclass(frozen=True)
class Target:
    """A creator (or a part of one) or a Discord server/channel.

    For Discord targets ``user`` holds the server id.
    """

    service: Service
    user: str
    subtype: PageOffset | PostId | None = None
    channel: str | None = None
    archive: tuple[str, ...] = ()

    @property
    def is_discord(self) -> bool:
        return self.service is Service.DISCORD

    def __str__(self) -> str:
        if self.is_discord:
            channel = f"/{self.channel}" if self.channel is not None else ""
            return f"discord/{self.user}{channel}"
        post = f"/{self.subtype.post}" if isinstance(self.subtype, PostId) else ""
        return f"{self.service}/{self.user}{post}"

    def archive_path(self, output_path: str | Path) -> Path:
        """Where the hashes of finished downloads are logged."""
        return Path(output_path, "db", f"{self.service}+{self.user}.txt")

    def path(self, output_path: str | Path, file_name: str | None = None) -> Path:
        """The target's download directory, or a file inside it."""
        return Path(output_path, str(self.service), self.user, file_name or "")

    def read_archive(self, output_path: str | Path) -> Target:
        """Return a copy with the hashes from the archive file added."""
        path = self.archive_path(output_path)
        try:
            with open(path, "a+", encoding="utf-8") as handle:
                handle.seek(0)
                text = handle.read()
        except OSError as err:
            raise TargetError(f"Failed to open archive file for {self}: {err}") from err
        return replace(self, archive=self.archive + tuple(text.splitlines()))


_USER = r"[a-z|A-Z|0-9|\-|_|\.]+"

RE_LINKED = re.compile(
    rf"(https://)?(?P<site>coomer|kemono)\.su/(?P<service>[a-z]+)/user/(?P<user>{_USER})/links"
)
RE_CREATOR = re.compile(rf"(https://)?(coomer|kemono)\.su/(?P<service>[a-z]+)/user/(?P<user>{_USER})")
RE_PAGE = re.compile(
    rf"(https://)?(coomer|kemono)\.su/(?P<service>[a-z]+)/user/(?P<user>{_USER})"
    r"\?o=(?P<offset>(0|50|[1-9]+(0|5)0))"
)
RE_POST = re.compile(
    rf"(https://)?(coomer|kemono)\.su/(?P<service>[a-z]+)/user/(?P<user>{_USER})/post/(?P<post>{_USER})"
)
RE_DISCORD = re.compile(
    r"(https://)?kemono\.su/discord/server/(?P<server>[0-9]{17,19})(/(?P<channel>[0-9]{17,19}))?"
)


def parse_url(url: str) -> Target:
    """Turn a creator, page, post or Discord URL into a target."""
    if match := RE_CREATOR.fullmatch(url):
        return Target(Service.parse(match["service"]), match["user"])
    if match := RE_PAGE.fullmatch(url):
        return Target(
            Service.parse(match["service"]),
            match["user"],
            subtype=PageOffset(int(match["offset"])),
        )
    if match := RE_POST.fullmatch(url):
        return Target(
            Service.parse(match["service"]), match["user"], subtype=PostId(match["post"])
        )
    if match := RE_DISCORD.fullmatch(url):
        return Target(Service.DISCORD, match["server"], channel=match["channel"])
    raise TargetError(f"Invalid URL: {url}")


async def linked_accounts(
    client: httpx.AsyncClient, site: str, service: str, user: str
) -> list[dict[str, Any]]:
    """Fetch the accounts linked to a creator."""
    response = await client.get(f"https://{site}.su/api/v1/{service}/user/{user}/links")
    try:
        data = response.json()
    except ValueError as err:
        raise TargetError(f"failed to read linked accounts of {service}/{user}: {err}") from err
    if not isinstance(data, list) or not all(
        isinstance(info, dict)
        and isinstance(info.get("id"), str)
        and isinstance(info.get("service"), str)
        for info in data
    ):
        raise TargetError(f"unexpected linked accounts response for {service}/{user}")
    return data


async def targets_from_url(client: httpx.AsyncClient, url: str, args: Args) -> list[Target]:
    """Resolve one URL to its targets, reading archives when enabled."""
    if match := RE_LINKED.fullmatch(url):
        service = Service.parse(match["service"])
        accounts = await linked_accounts(client, match["site"], str(service), match["user"])
        targets = [
            Target(Service.DISCORD, info["id"])
            if info["service"] == "discord"
            else Target(Service.parse(info["service"]), info["id"])
            for info in accounts
        ]
    else:
        targets = [parse_url(url)]

    if args.download_archive:
        targets = [target.read_archive(args.output_path) for target in targets]
    return targets


async def targets_from_args(client: httpx.AsyncClient, args: Args) -> list[Target]:
    """Resolve all URLs, reporting bad ones; raise if none is usable."""
    found: list[Target] = []
    for url in args.urls:
        try:
            found.extend(await targets_from_url(client, url.removesuffix("/"), args))
        except (TargetError, httpx.HTTPError) as err:
            print(err, file=sys.stderr)

    if not found:
        raise TargetError("No valid target URLs were provided.")
    return list(dict.fromkeys(found))