# jsoncomms/schemas.py

"""
Pydantic models for the JSON wire format.

`ResponseEnvelope` is the uniform wrapper for every response written by
`JSONTools`:

    success: {"error": false, "message": "...", "data": ...}
    failure: {"error": true, "message": "..."}

The `data` key is left out entirely when there is no payload.

`BrokerRequestPayload` and `AuthPayload` describe the request accepted by the
bundled broker endpoint (see `jsoncomms.main`).
"""

from typing import Any

from pydantic import BaseModel, SerializerFunctionWrapHandler, model_serializer


class ResponseEnvelope(BaseModel):
    """
    Defines the envelope used for both success and error responses.

    Fields:
        error (bool): True when the response describes a failure
        message (str): Human-readable status or error description
        data (Any): Optional JSON-serializable payload, omitted when None
    """
    error: bool = False
    message: str = ""
    data: Any = None

    @model_serializer(mode="wrap")
    def _omit_empty_data(self, handler: SerializerFunctionWrapHandler) -> dict:
        out = handler(self)
        if self.data is None:
            out.pop("data", None)
        return out


class AuthPayload(BaseModel):
    email: str = ""
    password: str = ""


class BrokerRequestPayload(BaseModel):
    """
    Request body for POST /v1/broker.

    Fields:
        action (str): Name of the action the broker should perform, e.g. "auth"
        auth (AuthPayload | None): Credentials, required by the "auth" action
    """
    action: str = ""
    auth: AuthPayload | None = None
