import asyncio
from typing import Dict, List, Optional

import pytest
from starlette.requests import Request

from jsoncomms.config import Settings
from jsoncomms.tools import JSONTools


class FakeBody:
    """
    Builds a Starlette `Request` whose body arrives in chunks through `receive`.

    `received` records every ASGI message handed out, so tests can check that
    a request was rejected before its body was read.
    """

    def __init__(self) -> None:
        self.received: List[dict] = []

    def request(
        self,
        body: bytes = b"",
        content_type: Optional[str] = "application/json",
        chunk_size: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
        disconnect: bool = False,
    ) -> Request:
        raw_headers = []
        if content_type is not None:
            raw_headers.append((b"content-type", content_type.encode("latin-1")))
        for key, value in (headers or {}).items():
            raw_headers.append((key.lower().encode("latin-1"), value.encode("latin-1")))

        size = chunk_size or max(len(body), 1)
        chunks = [body[i:i + size] for i in range(0, len(body), size)] or [b""]
        messages = [
            {"type": "http.request", "body": chunk, "more_body": disconnect or i < len(chunks) - 1}
            for i, chunk in enumerate(chunks)
        ]

        async def receive():
            if messages:
                message = messages.pop(0)
                self.received.append(message)
                return message
            return {"type": "http.disconnect"}

        scope = {
            "type": "http",
            "method": "POST",
            "scheme": "http",
            "server": ("testserver", 80),
            "root_path": "",
            "path": "/items",
            "raw_path": b"/items",
            "query_string": b"",
            "headers": raw_headers,
        }
        return Request(scope, receive)


@pytest.fixture
def fake_body() -> FakeBody:
    return FakeBody()


@pytest.fixture
def tools() -> JSONTools:
    """Strict tools with the default 1 MiB ceiling."""
    return JSONTools(Settings())


@pytest.fixture
def read_json(fake_body):
    """
    Run `JSONTools.read_json` synchronously against a fake request.
    """
    def _read(tools: JSONTools, body: bytes, target, **request_kwargs):
        request = fake_body.request(body, **request_kwargs)
        return asyncio.run(tools.read_json(request, target))

    return _read
