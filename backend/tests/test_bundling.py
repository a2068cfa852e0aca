import asyncio
import io
import zipfile

import httpx

from webp_converter.bundling import BundleItem, build_zip, fetch_items


def names(archive: bytes) -> list[str]:
    with zipfile.ZipFile(io.BytesIO(archive)) as zf:
        return zf.namelist()


def test_duplicate_and_unsafe_names():
    archive = build_zip([("a.webp", b"1"), ("a.webp", b"2"), ("../../etc/passwd", b"3"), ("", b"4")])
    assert names(archive) == ["a.webp", "a (2).webp", "passwd", "image.webp"]


def test_size_cap_skips_entries_that_do_not_fit():
    archive = build_zip([("a.webp", b"x" * 60), ("b.webp", b"x" * 60), ("c.webp", b"x" * 30)], max_total_bytes=100)
    assert names(archive) == ["a.webp", "c.webp"]


def test_fetch_items_skips_failures():
    def handler(request):
        if request.url.host == "down.test":
            raise httpx.ConnectError("unreachable")
        if request.url.path == "/gone":
            return httpx.Response(410)
        return httpx.Response(200, content=b"ok")

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            return await fetch_items(
                [
                    BundleItem("a.webp", "http://files.test/a"),
                    BundleItem("b.webp", "http://down.test/b"),
                    BundleItem("c.webp", "http://files.test/gone"),
                ],
                http,
            )

    assert asyncio.run(scenario()) == [("a.webp", b"ok")]
