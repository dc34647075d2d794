# jsoncomms/dependencies.py

"""
FastAPI dependencies for decoding request bodies with `JSONTools`.

FastAPI's own body parsing is lenient about media types and extra keys;
routes that want the strict contract declare their body through
`json_body()` instead:

    @app.post("/items")
    async def create(item: Item = Depends(json_body(Item))):
        ...

Decoding failures surface as `RequestDecodeError`, which the service's
exception handler turns into an error envelope.
"""

from functools import lru_cache
from typing import Awaitable, Callable, Type, TypeVar

from fastapi import Depends, Request

from jsoncomms.config import settings
from jsoncomms.tools import JSONTools

T = TypeVar("T")


@lru_cache
def get_tools() -> JSONTools:
    """Shared `JSONTools` bound to the process-wide settings."""
    return JSONTools(settings)


def json_body(target: Type[T]) -> Callable[..., Awaitable[T]]:
    """
    Build a dependency that decodes the request body into `target`.

    Args:
        target (type): Destination type for the body.

    Returns:
        An async dependency callable resolving to an instance of `target`.
    """
    async def _decode(request: Request, tools: JSONTools = Depends(get_tools)) -> T:
        return await tools.read_json(request, target)

    return _decode
