import hashlib

import httpx
import pytest
import respx

from kumono.cli import Args
from kumono.file import PostFile
from kumono.main import filter_files, list_extensions, main, run

CONTENT = b"hello world"
DIGEST = hashlib.sha256(CONTENT).hexdigest()
POST_URL = "kemono.su/patreon/user/123/post/9"

PNG = PostFile("a", "/x/a.png")
UPPER = PostFile("b", "/x/b.PNG")
JPG = PostFile("c", "/x/c.jpg")
BARE = PostFile("d", "/x/noext")


def test_list_extensions_groups_and_counts():
    extensions, without = list_extensions([PNG, UPPER, JPG, BARE])
    assert sorted(extensions) == ["jpg", "png"]
    assert without == 1


def test_list_extensions_empty():
    assert list_extensions([]) == ([], 0)


def test_filter_include():
    assert filter_files([PNG, UPPER, JPG, BARE], Args(include=["PNG"])) == [PNG, UPPER]


def test_filter_exclude_keeps_files_without_extension():
    assert filter_files([PNG, UPPER, JPG, BARE], Args(exclude=["png"])) == [JPG, BARE]


def test_filter_without_options_keeps_all():
    files = [PNG, JPG, BARE]
    assert filter_files(files, Args()) == files


def _post_handler(file_path, data_status=206):
    def handler(request):
        if request.url.path == "/api/v1/patreon/user/123/post/9":
            return httpx.Response(
                200,
                json={"post": {"file": {"name": "n", "path": file_path}, "attachments": []}},
            )
        if request.method == "HEAD":
            return httpx.Response(200, headers={"content-length": str(len(CONTENT))})
        if request.method == "GET" and request.url.path.startswith("/data"):
            return httpx.Response(data_status, content=CONTENT)
        return httpx.Response(404)

    return handler


@pytest.mark.asyncio
async def test_run_downloads_and_logs_archive(tmp_path):
    name = f"{DIGEST}.bin"
    args = Args(urls=[POST_URL], output_path=str(tmp_path), download_archive=True)

    with respx.mock:
        respx.route(host="kemono.su").mock(side_effect=_post_handler(f"/ab/cd/{name}"))
        status = await run(args)

    assert status == 0
    assert (tmp_path / "patreon" / "123" / name).read_bytes() == CONTENT
    assert (tmp_path / "db" / "patreon+123.txt").read_text() == DIGEST + "\n"


@pytest.mark.asyncio
async def test_run_reports_failure(tmp_path):
    args = Args(urls=[POST_URL], output_path=str(tmp_path))

    with respx.mock:
        respx.route(host="kemono.su").mock(side_effect=_post_handler("/ab/cd/file.bin", 404))
        status = await run(args)

    assert status == 1
    assert not (tmp_path / "patreon" / "123" / "file.bin").exists()


@pytest.mark.asyncio
async def test_run_lists_extensions(tmp_path, capsys):
    args = Args(urls=[POST_URL], output_path=str(tmp_path), list_extensions=True)

    with respx.mock:
        respx.route(host="kemono.su").mock(side_effect=_post_handler("/ab/cd/movie.MP4"))
        status = await run(args)

    err = capsys.readouterr().err
    assert status == 0
    assert "\nmp4\n" in err
    assert not (tmp_path / "patreon").exists()


@pytest.mark.asyncio
async def test_run_stops_when_filter_matches_nothing(tmp_path, capsys):
    args = Args(urls=[POST_URL], output_path=str(tmp_path), include=["gif"])

    with respx.mock:
        respx.route(host="kemono.su").mock(side_effect=_post_handler("/ab/cd/movie.mp4"))
        status = await run(args)

    assert status == 0
    assert "No files match the current extension filters." in capsys.readouterr().err


def test_main_rejects_invalid_url(capsys, tmp_path):
    status = main(["-o", str(tmp_path), "not-a-url"])
    err = capsys.readouterr().err
    assert status == 1
    assert "Invalid URL: not-a-url" in err
    assert "No valid target URLs were provided." in err


def test_main_without_arguments_exits():
    with pytest.raises(SystemExit) as info:
        main([])
    assert info.value.code == 2