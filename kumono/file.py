"""Files attached to posts and their resumable, hash-checked download."""

from __future__ import annotations

import asyncio
import hashlib
import os
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, BinaryIO

import httpx

from kumono.cli import Args
from kumono.progress import DownloadState, Failure, Skip, Success
from kumono.target import Target

_HASH_RE = re.compile(r"(?P<hash>[0-9a-f]{64})(?:\..+)?")
_RATE_LIMITED = (403, 429)
_CHUNK_SIZE = 1 << 20


class DownloadError(Exception):
    """A file could not be located, sized, downloaded or stored."""


def _status_text(code: int) -> str:
    reason = httpx.codes.get_reason_phrase(code) or "<unknown status code>"
    return f"{code} {reason}"


def _is_server_error(code: int) -> bool:
    return 500 <= code < 600


def _describe(err: BaseException) -> str:
    message = str(err) or type(err).__name__
    if err.__cause__ is not None:
        message += "\n" + (str(err.__cause__) or type(err.__cause__).__name__)
    return message


@dataclass(frozen=True, order=True)
class PostFile:
    """A file referenced by a post: its original name and its CDN path."""

    name: str | None = None
    path: str | None = None

    @classmethod
    def from_json(cls, data: Any) -> PostFile:
        """Build from an API object; raise ValueError for a malformed one."""
        if not isinstance(data, dict):
            raise ValueError(f"expected a file object, got {type(data).__name__}")
        values = {}
        for key in ("name", "path"):
            value = data.get(key)
            if value is not None and not isinstance(value, str):
                raise ValueError(f"file {key} must be a string, got {type(value).__name__}")
            values[key] = value
        return cls(**values)

    def _require_path(self) -> str:
        if self.path is None:
            raise DownloadError(f"file has no CDN path: {self.name}")
        return self.path

    def url(self, target: Target) -> str:
        """Where the file is served from."""
        return f"https://{target.service.site()}.su/data{self._require_path()}"

    def file_name(self) -> str:
        """The last component of the CDN path."""
        name = PurePosixPath(self._require_path()).name
        if name in ("", ".."):
            raise DownloadError(f"CDN path has no file name: {self.path}")
        return name

    def temp_name(self) -> str:
        """The name used while the file is incomplete."""
        return self.file_name() + ".temp"

    def extension(self) -> str | None:
        """The lower-cased extension of the file name, if it has one."""
        stem, dot, suffix = self.file_name().rpartition(".")
        if not dot or not stem:
            return None
        return suffix.lower()

    def local_path(self, target: Target, output_path: str | Path) -> Path:
        """Where the finished file is stored."""
        return target.path(output_path, self.file_name())

    def temp_path(self, target: Target, output_path: str | Path) -> Path:
        """Where the incomplete file is stored."""
        return target.path(output_path, self.temp_name())

    def hash_from_name(self) -> str | None:
        """The SHA-256 digest that the CDN file name carries, if any."""
        match = _HASH_RE.fullmatch(self.file_name())
        return match["hash"] if match else None

    def sha256(self, target: Target, output_path: str | Path) -> str:
        """The SHA-256 digest of the temporary file."""
        digest = hashlib.sha256()
        try:
            with open(self.temp_path(target, output_path), "rb") as handle:
                while chunk := handle.read(_CHUNK_SIZE):
                    digest.update(chunk)
        except OSError as err:
            raise DownloadError(f"hash tempfile: {self.temp_name()}") from err
        return digest.hexdigest()

    def exists(self, target: Target, output_path: str | Path) -> bool:
        """Whether the finished file is already present."""
        return self.local_path(target, output_path).exists()

    async def remote_size(self, client: httpx.AsyncClient, target: Target, args: Args) -> int:
        """Ask the server for the file's size, waiting out rate limits and server errors."""
        url = self.url(target)
        while True:
            response = await client.head(url)
            status = response.status_code
            if status == 200:
                length = response.headers.get("content-length")
                if length is not None and length.strip().isdigit():
                    return int(length)
                raise self._size_error(status, "Content-Length header is not present", url)
            if status == 404:
                raise self._size_error(status, "file not found", url)
            if status in _RATE_LIMITED:
                await asyncio.sleep(args.rate_limit_backoff)
            elif _is_server_error(status):
                await asyncio.sleep(args.server_error_delay)
            else:
                raise self._size_error(status, "unexpected status code", url)

    @staticmethod
    def _size_error(status: int, message: str, url: str) -> DownloadError:
        return DownloadError(
            f"[{_status_text(status)}] remote size determination failed: {message} ({url})"
        )

    @staticmethod
    def _download_error(status: int, message: str, url: str) -> DownloadError:
        return DownloadError(f"[{_status_text(status)}] download failed: {message} ({url})")

    async def _download_range(
        self,
        client: httpx.AsyncClient,
        handle: BinaryIO,
        start: int,
        target: Target,
        args: Args,
    ) -> None:
        url = self.url(target)
        while True:
            async with client.stream("GET", url, headers={"Range": f"bytes={start}-"}) as response:
                status = response.status_code
                if status == 206:
                    try:
                        async for chunk in response.aiter_bytes():
                            handle.write(chunk)
                    except httpx.HTTPError:
                        pass
                    handle.flush()
                    return
            if status == 404:
                raise self._download_error(status, "no file", url)
            if status in _RATE_LIMITED:
                await asyncio.sleep(args.rate_limit_backoff)
            elif _is_server_error(status):
                await asyncio.sleep(args.server_error_delay)
            else:
                raise self._download_error(status, "unexpected status code", url)

    async def download(self, client: httpx.AsyncClient, target: Target, args: Args) -> DownloadState:
        """Download or resume the file and verify it against the digest in its name."""
        output_path = args.output_path
        if self.exists(target, output_path):
            return Skip(self.hash_from_name())

        remote = await self.remote_size(client, target, args)

        try:
            handle = open(self.temp_path(target, output_path), "ab")
        except OSError as err:
            raise DownloadError(f"Failed to open temporary file: {self.temp_name()}") from err

        with handle:
            initial = current = handle.seek(0, os.SEEK_END)
            while current != remote:
                try:
                    await self._download_range(client, handle, current, target, args)
                    current = handle.seek(0, os.SEEK_END)
                except (DownloadError, httpx.HTTPError, OSError) as err:
                    return Failure(current - initial, _describe(err))

        downloaded = current - initial
        expected = self.hash_from_name()
        if expected is None:
            return Success(downloaded)

        actual = await asyncio.to_thread(self.sha256, target, output_path)
        temp = self.temp_path(target, output_path)
        if actual == expected:
            try:
                temp.rename(self.local_path(target, output_path))
            except OSError as err:
                raise DownloadError(
                    f"rename tempfile to file: {self.temp_name()} -> {self.file_name()}"
                ) from err
            return Success(downloaded, expected)

        try:
            temp.unlink()
        except OSError as err:
            raise DownloadError(f"delete tempfile: {self.temp_name()}") from err
        return Failure(downloaded, f"hash mismatch (deleted): {self.file_name()}")