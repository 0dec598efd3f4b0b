import io

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from PIL import Image

from gaze_heatmap.errors import InitializationError
from gaze_heatmap.screenshots import FileScreenshotProvider, HTTPScreenshotProvider, ScreenshotProvider


def png_bytes(width: int, height: int) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), (200, 10, 10)).save(buf, format="PNG")
    return buf.getvalue()


class TestFileScreenshotProvider:

    async def test_loads_image(self, tmp_path):
        path = tmp_path / "page.png"
        path.write_bytes(png_bytes(120, 340))

        provider = FileScreenshotProvider(path)
        shot = await provider.capture("https://example.com")

        assert isinstance(provider, ScreenshotProvider)
        assert shot.width == 120
        assert shot.page_height == 340

    async def test_explicit_page_height(self, tmp_path):
        path = tmp_path / "page.png"
        path.write_bytes(png_bytes(120, 340))
        shot = await FileScreenshotProvider(path, page_height=2000).capture("https://example.com")
        assert shot.page_height == 2000

    async def test_missing_file(self, tmp_path):
        with pytest.raises(InitializationError):
            await FileScreenshotProvider(tmp_path / "missing.png").capture("https://example.com")

    async def test_not_an_image(self, tmp_path):
        path = tmp_path / "page.png"
        path.write_text("hello")
        with pytest.raises(InitializationError):
            await FileScreenshotProvider(path).capture("https://example.com")


def screenshot_app(handler) -> web.Application:
    app = web.Application()
    app.router.add_get("/shot", handler)
    return app


class TestHTTPScreenshotProvider:

    async def test_capture_passes_viewport_and_reads_page_height(self):
        seen = {}

        async def shot(request: web.Request) -> web.Response:
            seen.update(request.query)
            return web.Response(
                body=png_bytes(64, 200),
                content_type="image/png",
                headers={"X-Page-Height": "4200"},
            )

        async with TestServer(screenshot_app(shot)) as server:
            provider = HTTPScreenshotProvider(str(server.make_url("/shot")), backoff_factor_s=0)
            result = await provider.capture("https://example.com/a", width=640, height=480, scale=2.0)

        assert seen == {"url": "https://example.com/a", "width": "640", "height": "480", "scale": "2.0"}
        assert result.width == 64
        assert result.page_height == 4200

    @pytest.mark.parametrize("header", ["tall", "inf", "-inf", "nan", "-200", "0", "1e400"])
    async def test_unusable_page_height_falls_back_to_image(self, header):
        async def shot(request: web.Request) -> web.Response:
            return web.Response(body=png_bytes(30, 90), headers={"X-Page-Height": header})

        async with TestServer(screenshot_app(shot)) as server:
            provider = HTTPScreenshotProvider(str(server.make_url("/shot")))
            result = await provider.capture("https://example.com")

        assert result.page_height == 90

    async def test_service_failure(self):
        calls = []

        async def shot(request: web.Request) -> web.Response:
            calls.append(1)
            return web.Response(status=502, text="browser crashed")

        async with TestServer(screenshot_app(shot)) as server:
            provider = HTTPScreenshotProvider(
                str(server.make_url("/shot")), retry_attempts=2, backoff_factor_s=0
            )
            with pytest.raises(InitializationError):
                await provider.capture("https://example.com")

        assert len(calls) == 2

    async def test_undecodable_body(self):
        async def shot(request: web.Request) -> web.Response:
            return web.Response(body=b"<html>not a png</html>")

        async with TestServer(screenshot_app(shot)) as server:
            provider = HTTPScreenshotProvider(str(server.make_url("/shot")))
            with pytest.raises(InitializationError):
                await provider.capture("https://example.com")

    async def test_undecodable_error_body_is_retried(self):
        calls = []

        async def shot(request: web.Request) -> web.Response:
            calls.append(1)
            return web.Response(
                status=500, body=b"\xff\xfe\xfa broken", headers={"Content-Type": "text/plain; charset=utf-8"}
            )

        async with TestServer(screenshot_app(shot)) as server:
            provider = HTTPScreenshotProvider(
                str(server.make_url("/shot")), retry_attempts=2, backoff_factor_s=0
            )
            with pytest.raises(InitializationError):
                await provider.capture("https://example.com")

        assert len(calls) == 2


async def test_oversized_image_is_rejected(tmp_path, monkeypatch):
    path = tmp_path / "page.png"
    path.write_bytes(png_bytes(40, 40))
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)

    with pytest.raises(InitializationError):
        await FileScreenshotProvider(path).capture("https://example.com")
