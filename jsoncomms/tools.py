# jsoncomms/tools.py

"""
`JSONTools` bundles the JSON request/response helpers around one `Settings`.

Create one instance at startup and share it between handlers:

    tools = JSONTools(settings)

    async def create_item(request: Request) -> Response:
        item = await tools.read_json(request, Item)
        return tools.write_json(201, ResponseEnvelope(message="created", data=item))

- `read_json`  decodes one JSON value from the request body into a type
- `write_json` serializes any value into a JSON response
- `error_json` wraps an exception in an error envelope
"""

import logging
from typing import Any, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel
from asgi_correlation_id import correlation_id
from pydantic_core import PydanticSerializationError, to_json
from starlette.requests import Request
from starlette.responses import Response

from jsoncomms import decoder
from jsoncomms.config import Settings, settings as default_settings
from jsoncomms.exceptions import RequestDecodeError
from jsoncomms.schemas import ResponseEnvelope

T = TypeVar("T")

logger = logging.getLogger("jsoncomms.tools")


class JSONTools:
    """
    JSON helpers bound to a single, read-only configuration.

    Instances hold no per-request state and can be shared freely between
    concurrent requests.
    """

    def __init__(self, config: Optional[Settings] = None) -> None:
        """
        Args:
            config (Settings | None): Limits and decoding policy. Defaults to
                the process-wide settings loaded from the environment.
        """
        self.config = config if config is not None else default_settings

    async def read_json(self, request: Request, target: Type[T]) -> T:
        """
        Read the request body and decode exactly one JSON value into `target`.

        Args:
            request (Request): The incoming request; its body is consumed.
            target (type): Destination type, e.g. a pydantic model class.

        Returns:
            An instance of `target`.

        Raises:
            RequestDecodeError: A subclass naming what was wrong with the body.
        """
        limit = self.config.json_size_limit
        try:
            decoder.check_content_type(request.headers.get("content-type"))
            decoder.check_declared_length(request.headers.get("content-length"), limit)
            body = await decoder.read_limited(request.stream(), limit)
            return decoder.decode_value(body, target, self.config.allow_unknown_fields)
        except RequestDecodeError as exc:
            # Picked up by the access log once the response is sent
            request.state.json_rejection = type(exc).__name__
            logger.info(
                "json body rejected",
                extra={
                    "reason": type(exc).__name__,
                    "detail": exc.detail,
                    "path": request.url.path,
                    "request_id": correlation_id.get(),
                },
            )
            raise

    def write_json(
        self,
        status_code: int,
        data: Any,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Response:
        """
        Serialize `data` to JSON and wrap it in a response.

        Args:
            status_code (int): HTTP status of the response.
            data: Any JSON-serializable value (pydantic models included).
                NaN and infinities are written as `null`.
            headers (Mapping[str, str] | None): Extra response headers. A
                Content-Type in here is replaced by `application/json`.

        Raises:
            PydanticSerializationError: If `data` cannot be serialized. The
                error is passed through untouched.
        """
        try:
            if isinstance(data, BaseModel):
                out = data.model_dump_json().encode("utf-8")
            else:
                out = to_json(data, inf_nan_mode="null")
        except PydanticSerializationError:
            logger.warning("response serialization failed", extra={"status": status_code})
            raise

        response = Response(content=out, status_code=status_code)
        if headers:
            response.headers.update(headers)
        response.headers["content-type"] = decoder.JSON_MEDIA_TYPE
        return response

    def error_json(self, err: BaseException, status_code: Optional[int] = None) -> Response:
        """
        Send `err` to the client as `{"error": true, "message": str(err)}`.

        Args:
            err (BaseException): The error to report.
            status_code (int | None): HTTP status, 400 Bad Request if omitted.
        """
        payload = ResponseEnvelope(error=True, message=str(err))
        return self.write_json(status_code if status_code is not None else 400, payload)
