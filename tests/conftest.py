"""
pytest configuration for rangefetch tests.

Adds src directory to Python path for imports and provides a local HTTP
server that answers HEAD and byte-range GET requests.
"""

import asyncio
import sys
from pathlib import Path
from typing import Dict, Iterable, Optional

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))

from rangefetch.logging import clear_log_context  # noqa: E402

RESOURCE_PATH = "/media/video.mp4"
REQUESTS_KEY = web.AppKey("requests", list)


def parse_range_header(value: str):
    """Parse 'bytes=s-e' into (s, e)."""
    unit, _, span = value.partition("=")
    assert unit == "bytes", f"unexpected range unit {unit!r}"
    start, _, end = span.partition("-")
    return int(start), int(end)


def make_range_app(
    payload: bytes,
    head_status: int = 200,
    ignore_range: bool = False,
    fail_starts: Iterable[int] = (),
    fail_status: int = 500,
    truncate_starts: Iterable[int] = (),
    delays: Optional[Dict[int, float]] = None,
    shift_starts: Iterable[int] = (),
) -> web.Application:
    """
    Build an app serving `payload` at RESOURCE_PATH.

    Args:
        payload: Resource bytes
        head_status: Status returned to HEAD
        ignore_range: Answer ranged GETs with 200 and the full body
        fail_starts: Range start offsets answered with fail_status
        fail_status: Status for failing ranges
        truncate_starts: Range start offsets answered with one byte missing
        delays: Range start offset -> seconds to wait before answering
        shift_starts: Range start offsets answered one byte further on, with a
            matching Content-Range
    """
    fail_starts = set(fail_starts)
    truncate_starts = set(truncate_starts)
    shift_starts = set(shift_starts)
    delays = delays or {}
    app = web.Application()
    app[REQUESTS_KEY] = []

    async def handle(request: web.Request) -> web.StreamResponse:
        app[REQUESTS_KEY].append((request.method, dict(request.headers)))

        if request.method == "HEAD":
            if head_status != 200:
                return web.Response(status=head_status)
            return web.Response(
                status=200, headers={"Content-Length": str(len(payload))}
            )

        range_header = request.headers.get("Range")
        if ignore_range or range_header is None:
            return web.Response(body=payload)

        start, end = parse_range_header(range_header)
        await asyncio.sleep(delays.get(start, 0))
        if start in fail_starts:
            return web.Response(status=fail_status)

        if start in shift_starts:
            start, end = start + 1, end + 1
        body = payload[start : end + 1]
        if start in truncate_starts:
            body = body[:-1]
        return web.Response(
            status=206,
            body=body,
            headers={"Content-Range": f"bytes {start}-{end}/{len(payload)}"},
        )

    app.router.add_head(RESOURCE_PATH, handle)
    app.router.add_get(RESOURCE_PATH, handle, allow_head=False)
    return app


def get_requests(server: TestServer):
    """Range GET requests seen by the server (method, headers) pairs."""
    return [r for r in server.app[REQUESTS_KEY] if r[0] == "GET"]


@pytest.fixture(autouse=True)
def reset_log_context():
    """Keep contextvars from leaking between tests."""
    clear_log_context()
    yield
    clear_log_context()


@pytest.fixture
def payload() -> bytes:
    """Deterministic resource body that is not a multiple of 4 bytes long."""
    return bytes(i % 251 for i in range(10_003))


@pytest_asyncio.fixture
async def range_server():
    """
    Factory for started range servers; all are closed after the test.

    Usage:
        server = await range_server(payload, fail_starts={5001})
        url = str(server.make_url(RESOURCE_PATH))
    """
    servers = []

    async def factory(payload: bytes, **options) -> TestServer:
        server = TestServer(make_range_app(payload, **options))
        await server.start_server()
        servers.append(server)
        return server

    yield factory

    for server in servers:
        await server.close()
