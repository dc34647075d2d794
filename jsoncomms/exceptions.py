# jsoncomms/exceptions.py

"""
Exception classes for jsoncomms.

`JSONCommsError` carries a human-readable detail and the HTTP status a
handler should answer with. `RequestDecodeError` is the root of the decoder
taxonomy: every failure of `JSONTools.read_json` is exactly one of its
subclasses, so callers can either catch the base class and send
`str(exc)` back to the client, or branch on the concrete type.

The message of each class is part of the public contract and is returned to
API clients verbatim.
"""


class JSONCommsError(Exception):
    """
    Base exception for the library.

    Args:
        detail (str): Human-readable description of the error.
        status_code (int): HTTP status code to be returned to the client.
    """
    def __init__(self, detail: str, status_code: int = 400):
        self.detail = detail
        self.status_code = status_code
        super().__init__(detail)


class RequestDecodeError(JSONCommsError):
    """A request body could not be decoded into the destination type."""


class WrongContentTypeError(RequestDecodeError):
    def __init__(self):
        super().__init__("the Content-Type header is not application/json", status_code=415)


class MalformedJSONError(RequestDecodeError):
    """Syntax error at a known position (1-based byte count)."""
    def __init__(self, offset: int):
        self.offset = offset
        super().__init__(f"body contains badly-formed JSON (at character {offset})")


class TruncatedJSONError(RequestDecodeError):
    """The body ended in the middle of a JSON value."""
    def __init__(self):
        super().__init__("body contains badly-formed JSON")


class FieldTypeError(RequestDecodeError):
    """A value had the wrong JSON type for its destination field."""
    def __init__(self, field: str, offset: int):
        self.field = field
        self.offset = offset
        super().__init__(f'body contains incorrect JSON type for field "{field}" at offset {offset}')


class EmptyBodyError(RequestDecodeError):
    def __init__(self):
        super().__init__("body must not be empty")


class UnknownFieldError(RequestDecodeError):
    """Strict mode saw a key the destination type does not declare."""
    def __init__(self, key: str):
        self.key = key
        super().__init__(f'body contains unknown key "{key}"')


class BodyTooLargeError(RequestDecodeError):
    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"body must not be larger than {limit} bytes", status_code=413)


class InvalidTargetError(RequestDecodeError):
    """The destination passed by the caller cannot be decoded into."""
    def __init__(self, reason: str):
        super().__init__(f"error unmarshalling json: {reason}")


class MultipleValuesError(RequestDecodeError):
    def __init__(self):
        super().__init__("body must only contain a single JSON value")


class UnclassifiedDecodeError(RequestDecodeError):
    """Any other failure; the underlying message is kept unchanged."""
