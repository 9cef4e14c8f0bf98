from unittest.mock import AsyncMock, patch

import httpx
import pytest
import respx

from kumono.api import (
    ApiError,
    ConnectError,
    DiscordChannel,
    DiscordPost,
    PagePost,
    ParseError,
    SinglePost,
    StatusError,
    discord_page,
    discord_server,
    fetch_json,
    page,
)
from kumono.cli import Args
from kumono.file import PostFile
from kumono.target import Service, Target

MAIN = {"name": "0hpxn0h31vg5siq0xtqsl_source.mp4", "path": "/7d/1c/main.mp4"}
EXTRA = {"name": "0hpxn3cnhcj83v5zikmko_source.mp4", "path": "/d0/06/extra.mp4"}
URL = "https://kemono.su/api/v1/test"


@pytest.fixture
def router():
    with respx.mock(assert_all_called=False) as mocked:
        yield mocked


def test_single_post_files():
    post = SinglePost.from_json({"post": {"file": MAIN, "attachments": [EXTRA, {"name": "x"}]}})
    assert post.files() == [PostFile.from_json(MAIN), PostFile.from_json(EXTRA)]


def test_single_post_without_file():
    post = SinglePost.from_json({"post": {"file": None, "attachments": [EXTRA]}})
    assert post.files() == [PostFile.from_json(EXTRA)]


def test_single_post_empty_file_object_is_dropped():
    post = SinglePost.from_json({"post": {"file": {}, "attachments": []}})
    assert post.files() == []


@pytest.mark.parametrize("data", [{}, {"post": {"file": MAIN}}, {"post": {"attachments": {}}}])
def test_single_post_malformed(data):
    with pytest.raises(ParseError):
        SinglePost.from_json(data)


def test_page_post_files():
    post = PagePost.from_json({"file": MAIN, "attachments": [EXTRA]})
    assert post.files() == [PostFile.from_json(MAIN), PostFile.from_json(EXTRA)]


def test_page_post_requires_attachments():
    with pytest.raises(ParseError):
        PagePost.from_json({"file": MAIN})


def test_discord_post_files():
    post = DiscordPost.from_json({"attachments": [EXTRA, {"name": "no path"}]})
    assert post.files() == [PostFile.from_json(EXTRA)]


def test_status_error_message():
    err = StatusError(429)
    assert err.status == 429
    assert str(err) == "429"
    assert isinstance(err, ApiError)


@pytest.mark.asyncio
async def test_interpret_raises_when_retries_exhausted():
    err = ConnectError("boom")
    with pytest.raises(ConnectError) as info:
        await err.interpret(2, Args(max_retries=2))
    assert info.value is err


@pytest.mark.asyncio
async def test_interpret_rate_limit_backoff():
    args = Args()
    with patch("asyncio.sleep", new=AsyncMock()) as sleep:
        await StatusError(429).interpret(0, args)
        await StatusError(403).interpret(0, args)
    assert [c.args[0] for c in sleep.await_args_list] == [args.rate_limit_backoff] * 2


@pytest.mark.asyncio
async def test_interpret_other_errors_use_retry_delay():
    args = Args(retry_delay=3)
    with patch("asyncio.sleep", new=AsyncMock()) as sleep:
        await StatusError(500).interpret(0, args)
        await ParseError("bad").interpret(1, args)
        await ConnectError("down").interpret(4, args)
    assert [c.args[0] for c in sleep.await_args_list] == [args.retry_delay] * 3


@pytest.mark.asyncio
async def test_fetch_json_ok(router):
    router.get(URL).mock(return_value=httpx.Response(200, json=[{"id": "a"}]))
    async with httpx.AsyncClient() as client:
        assert await fetch_json(client, URL) == [{"id": "a"}]


@pytest.mark.asyncio
async def test_fetch_json_status(router):
    router.get(URL).mock(return_value=httpx.Response(404))
    async with httpx.AsyncClient() as client:
        with pytest.raises(StatusError) as info:
            await fetch_json(client, URL)
    assert info.value.status == 404


@pytest.mark.asyncio
async def test_fetch_json_connect_error(router):
    router.get(URL).mock(side_effect=httpx.ConnectError("refused"))
    async with httpx.AsyncClient() as client:
        with pytest.raises(ConnectError):
            await fetch_json(client, URL)


@pytest.mark.asyncio
async def test_fetch_json_bad_body(router):
    router.get(URL).mock(return_value=httpx.Response(200, content=b"not json"))
    async with httpx.AsyncClient() as client:
        with pytest.raises(ParseError):
            await fetch_json(client, URL)


@pytest.mark.asyncio
async def test_page_uses_site_and_offset(router):
    route = router.get("https://coomer.su/api/v1/onlyfans/user/someone", params={"o": "50"}).mock(
        return_value=httpx.Response(200, json=[{"file": MAIN, "attachments": []}])
    )
    async with httpx.AsyncClient() as client:
        posts = await page(client, Target(Service.ONLYFANS, "someone"), 50)
    assert route.called
    assert [p.files() for p in posts] == [[PostFile.from_json(MAIN)]]


@pytest.mark.asyncio
async def test_page_rejects_non_list(router):
    router.get("https://kemono.su/api/v1/patreon/user/123", params={"o": "0"}).mock(
        return_value=httpx.Response(200, json={"error": "x"})
    )
    async with httpx.AsyncClient() as client:
        with pytest.raises(ParseError):
            await page(client, Target(Service.PATREON, "123"), 0)


@pytest.mark.asyncio
async def test_discord_page(router):
    channel = "100000000000000001"
    router.get(f"https://kemono.su/api/v1/discord/channel/{channel}", params={"o": "150"}).mock(
        return_value=httpx.Response(200, json=[{"attachments": [EXTRA]}, {"attachments": []}])
    )
    async with httpx.AsyncClient() as client:
        posts = await discord_page(client, channel, 150)
    assert [p.files() for p in posts] == [[PostFile.from_json(EXTRA)], []]


@pytest.mark.asyncio
async def test_discord_server(router):
    server = "100000000000000002"
    router.get(f"https://kemono.su/api/v1/discord/channel/lookup/{server}").mock(
        return_value=httpx.Response(200, json=[{"id": "1", "name": "news"}, {"id": "2"}])
    )
    async with httpx.AsyncClient() as client:
        channels = await discord_server(client, server)
    assert channels == [DiscordChannel("1"), DiscordChannel("2")]


@pytest.mark.asyncio
async def test_discord_server_bad_channel(router):
    server = "100000000000000003"
    router.get(f"https://kemono.su/api/v1/discord/channel/lookup/{server}").mock(
        return_value=httpx.Response(200, json=[{"name": "news"}])
    )
    async with httpx.AsyncClient() as client:
        with pytest.raises(ParseError):
            await discord_server(client, server)