# jsoncomms/decoder.py

"""
Strict decoding of JSON request bodies.

The pipeline used by `JSONTools.read_json` lives here as plain functions so
each step can be reused or tested on its own:

1. `check_content_type`    -> reject a declared media type other than JSON
2. `check_declared_length` -> reject an oversized Content-Length up front
3. `read_limited`          -> stream the body under a byte ceiling
4. `decode_value`          -> decode exactly one JSON value into a type

Every failure is raised as exactly one `RequestDecodeError` subclass whose
message is safe to send back to the client (offsets, field names and byte
limits included).

Syntax is checked with the standard `json` scanner, which exposes the
position of the first bad character; the value is then validated against
the destination type with a pydantic `TypeAdapter` in strict mode, so a
JSON value is never coerced into another type.
"""

import collections.abc
import dataclasses
import json
import logging
import re
import types
from functools import lru_cache
from typing import (
    Annotated, Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple, Union,
    get_args, get_origin, get_type_hints,
)

from pydantic import BaseModel, PydanticUserError, RootModel, TypeAdapter, ValidationError
from starlette.requests import ClientDisconnect
from typing_extensions import is_typeddict

from jsoncomms.exceptions import (
    BodyTooLargeError,
    EmptyBodyError,
    FieldTypeError,
    InvalidTargetError,
    MalformedJSONError,
    MultipleValuesError,
    RequestDecodeError,
    TruncatedJSONError,
    UnclassifiedDecodeError,
    UnknownFieldError,
    WrongContentTypeError,
)

JSON_MEDIA_TYPE = "application/json"

logger = logging.getLogger("jsoncomms.decoder")

_WHITESPACE = re.compile(r"[ \t\n\r]*")
_LITERALS = ("true", "false", "null")

# Any prefix of a JSON number, complete or not ("-", "1.", "2e+", "0.5")
_NUMBER_PREFIX = re.compile(r"-?(?:(?:0|[1-9][0-9]*)(?:\.[0-9]*)?(?:[eE][-+]?[0-9]*)?)?")
_NUMBER_CHARS = frozenset("0123456789+-.eE")
# An unfinished \uXXXX escape running into the end of the body
_ESCAPE_PREFIX = re.compile(r"\\?u[0-9a-fA-F]{0,4}")
# Strings are matched so that constants inside them are skipped
_CONSTANT_TOKEN = re.compile(r'"(?:[^"\\]|\\.)*"|-?(?:NaN|Infinity)', re.DOTALL)

# pydantic error kinds that mean "the JSON value had the wrong type"
_TYPE_ERROR_SUFFIXES = ("_type", "_parsing")
_TYPE_ERROR_KINDS = {"int_from_float"}

_MAPPING_ORIGINS = (dict, collections.abc.Mapping, collections.abc.MutableMapping)
_SEQUENCE_ORIGINS = (
    list, tuple, set, frozenset,
    collections.abc.Sequence, collections.abc.MutableSequence,
    collections.abc.Set, collections.abc.MutableSet,
)


class _NonFiniteConstant(ValueError):
    """NaN, Infinity and -Infinity are Python extensions, not JSON."""


def _reject_constant(name: str) -> Any:
    raise _NonFiniteConstant(name)


_scanner = json.JSONDecoder(parse_constant=_reject_constant)


# ───────────────────────────────────────────────────────────────────────────────
# Request gates
# ───────────────────────────────────────────────────────────────────────────────
def check_content_type(content_type: Optional[str]) -> None:
    """
    Accept a missing Content-Type, reject anything but `application/json`.

    The comparison is case-insensitive and covers the whole header value.

    Raises:
        WrongContentTypeError: If a different media type is declared.
    """
    if content_type and content_type.lower() != JSON_MEDIA_TYPE:
        raise WrongContentTypeError()


def check_declared_length(content_length: Optional[str], limit: int) -> None:
    """
    Reject a body whose declared Content-Length is already over `limit`.

    A missing or unparsable header is ignored; `read_limited` still enforces
    the ceiling on the bytes that actually arrive.
    """
    if not content_length:
        return
    try:
        declared = int(content_length)
    except ValueError:
        return
    if declared > limit:
        raise BodyTooLargeError(limit)


async def read_limited(stream: AsyncIterator[bytes], limit: int) -> bytes:
    """
    Collect the body from `stream`, failing as soon as it grows past `limit`.

    A body of exactly `limit` bytes is accepted.

    Raises:
        BodyTooLargeError: If more than `limit` bytes arrive.
        UnclassifiedDecodeError: If the transport fails mid-read.
    """
    body = bytearray()
    try:
        async for chunk in stream:
            body.extend(chunk)
            if len(body) > limit:
                raise BodyTooLargeError(limit)
    except (ClientDisconnect, OSError) as exc:
        raise UnclassifiedDecodeError(str(exc) or type(exc).__name__) from exc
    return bytes(body)




# ───────────────────────────────────────────────────────────────────────────────
# Decoding
# ───────────────────────────────────────────────────────────────────────────────
def decode_value(body: bytes, target: Any, allow_unknown_fields: bool = False) -> Any:
    """
    Decode exactly one JSON value from `body` into an instance of `target`.

    Args:
        body (bytes): The complete request body.
        target: Destination type (pydantic model, dataclass, TypedDict,
            `list[int]`, ... anything a pydantic `TypeAdapter` accepts).
        allow_unknown_fields (bool): When False, any object key that the
            destination types do not declare is rejected.

    Returns:
        The validated value.

    Raises:
        RequestDecodeError: One subclass per failure category. When the
            body has both an unknown key and a wrong-typed value, the one
            that comes first in the document is reported.
    """
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedJSONError(exc.start + 1) from exc

    start = _skip_whitespace(text, 0)
    if start == len(text):
        raise EmptyBodyError()

    try:
        value, end = _scanner.raw_decode(text, start)
    except json.JSONDecodeError as exc:
        if _is_truncated(exc):
            raise TruncatedJSONError() from exc
        raise MalformedJSONError(_byte_offset(text, exc.pos) + 1) from exc
    except _NonFiniteConstant as exc:
        raise MalformedJSONError(_byte_offset(text, _constant_position(text, start)) + 1) from exc
    except RecursionError as exc:
        raise UnclassifiedDecodeError(str(exc)) from exc

    trailing = _skip_whitespace(text, end) != len(text)
    # A top-level number cut short, e.g. "1." scans as 1 followed by "."
    if trailing and _is_number_prefix(text[start:].rstrip(" \t\n\r")):
        raise TruncatedJSONError()

    adapter = _adapter_for(target)
    unknown = None if allow_unknown_fields else find_unknown_path(value, target)

    try:
        result = adapter.validate_json(text[start:end], strict=True)
    except ValidationError as exc:
        raise _first_error(exc, text, start, unknown) from exc

    if unknown is not None:
        raise UnknownFieldError(str(unknown[-1]))

    if trailing:
        raise MultipleValuesError()

    return result


def _skip_whitespace(text: str, idx: int) -> int:
    return _WHITESPACE.match(text, idx).end()


def _byte_offset(text: str, idx: int) -> int:
    return len(text[:idx].encode("utf-8"))


def _is_number_prefix(token: str) -> bool:
    return bool(token) and _NUMBER_PREFIX.fullmatch(token) is not None


def _is_truncated(exc: json.JSONDecodeError) -> bool:
    """True when the scanner failed because the input stopped mid-value."""
    rest = exc.doc[exc.pos:].rstrip(" \t\n\r")
    if not rest or exc.msg.startswith("Unterminated string"):
        return True
    if exc.msg.startswith("Invalid \\uXXXX escape"):
        return _ESCAPE_PREFIX.fullmatch(rest) is not None
    if any(lit.startswith(rest) and lit != rest for lit in _LITERALS):
        return True

    # The scanner stops after the digits it understood; back up to the number start
    token_start = exc.pos
    while token_start > 0 and exc.doc[token_start - 1] in _NUMBER_CHARS:
        token_start -= 1
    return _is_number_prefix(exc.doc[token_start:].rstrip(" \t\n\r"))


def _constant_position(text: str, start: int) -> int:
    """Index of the first character of NaN/Infinity the scanner tripped on."""
    for match in _CONSTANT_TOKEN.finditer(text, start):
        token = match.group()
        if not token.startswith('"'):
            return match.start() + (1 if token.startswith("-") else 0)
    return start


@lru_cache(maxsize=256)
def _cached_adapter(target: Any) -> TypeAdapter:
    return TypeAdapter(target)


def _adapter_for(target: Any) -> TypeAdapter:
    if target is None:
        raise InvalidTargetError("destination type must not be None")
    if isinstance(target, BaseModel):
        raise InvalidTargetError(
            f"destination must be a type, not a {type(target).__name__} instance"
        )
    try:
        return _cached_adapter(target)
    except (PydanticUserError, TypeError) as exc:
        raise InvalidTargetError(str(exc)) from exc


def _first_error(
    exc: ValidationError,
    text: str,
    start: int,
    unknown: Optional[Tuple[Any, ...]],
) -> RequestDecodeError:
    """
    Pick the unknown key or type mismatch that appears first in the body.

    Unknown keys are placed at the start of the key, mismatches just past the
    offending value, so a key and a value never tie. Other validation
    failures are reported only when there is nothing more specific.
    """
    candidates: List[Tuple[int, RequestDecodeError]] = []
    for error in exc.errors():
        kind, loc = error["type"], error["loc"]
        # A model that forbids extra keys by itself, even in lenient mode
        if kind == "extra_forbidden" and loc:
            candidates.append((locate_key_start(text, start, loc), UnknownFieldError(str(loc[-1]))))
        elif kind.endswith(_TYPE_ERROR_SUFFIXES) or kind in _TYPE_ERROR_KINDS:
            end = locate_value_end(text, start, loc)
            field = ".".join(str(part) for part in loc)
            candidates.append((end, FieldTypeError(field, _byte_offset(text, end))))

    if unknown is not None:
        candidates.append((locate_key_start(text, start, unknown), UnknownFieldError(str(unknown[-1]))))

    if not candidates:
        return UnclassifiedDecodeError(str(exc))
    return min(candidates, key=lambda candidate: candidate[0])[1]


# ───────────────────────────────────────────────────────────────────────────────
# Offsets
# ───────────────────────────────────────────────────────────────────────────────
def locate_value_end(text: str, start: int, path: Sequence[Any]) -> int:
    """
    Index just past the value reached by following `path` from the value at `start`.

    `text` must hold valid JSON at `start`. When a path element cannot be
    found (pydantic puts union member names into error locations) the walk
    stops at the deepest value that does exist.
    """
    return _scanner.raw_decode(text, _walk(text, start, path))[1]


def locate_key_start(text: str, start: int, path: Sequence[Any]) -> int:
    """
    Index of the opening quote of the object key that ends `path`.

    Falls back to the start of the deepest value found, like `locate_value_end`.
    """
    idx = _walk(text, start, path[:-1])
    if not path:
        return idx
    key_start = _child_start(text, idx, path[-1], at_key=True)
    return idx if key_start is None else key_start


def _walk(text: str, start: int, path: Sequence[Any]) -> int:
    idx = _skip_whitespace(text, start)
    for step in path:
        child = _child_start(text, idx, step)
        if child is None:
            break
        idx = child
    return idx


def _child_start(text: str, idx: int, step: Any, at_key: bool = False) -> Optional[int]:
    opener = text[idx:idx + 1]
    if opener == "{":
        if not isinstance(step, str):
            return None
    elif opener == "[":
        if not isinstance(step, int) or at_key:
            return None
    else:
        return None

    pos = _skip_whitespace(text, idx + 1)
    position = 0
    while text[pos] not in "}]":
        if opener == "{":
            key_pos = pos
            key, pos = _scanner.raw_decode(text, pos)
            pos = _skip_whitespace(text, _skip_whitespace(text, pos) + 1)  # past ':'
            if key == step:
                return key_pos if at_key else pos
        elif position == step:
            return pos
        pos = _skip_whitespace(text, _scanner.raw_decode(text, pos)[1])
        if text[pos] == ",":
            pos = _skip_whitespace(text, pos + 1)
        position += 1
    return None


# ───────────────────────────────────────────────────────────────────────────────
# Strict mode
# ───────────────────────────────────────────────────────────────────────────────
def find_unknown_key(value: Any, annotation: Any) -> Optional[str]:
    """
    Return the first object key in `value` that `annotation` does not declare.
    """
    path = find_unknown_path(value, annotation)
    return None if path is None else str(path[-1])


def find_unknown_path(value: Any, annotation: Any) -> Optional[Tuple[Any, ...]]:
    """
    Location of the first undeclared object key in `value`, e.g. ("items", 1, "sku").

    Walks pydantic models, dataclasses and TypedDicts (recursively through
    their fields), lists, tuples, sets, dicts, `Annotated` and unions.
    Models and pydantic dataclasses configured with `extra="allow"` accept
    any key.
    """
    origin = get_origin(annotation)

    if origin is Annotated:
        return find_unknown_path(value, get_args(annotation)[0])

    if origin is Union or origin is types.UnionType:
        # Only members shaped like the value could have matched it
        shape = _json_shape(value)
        candidates = [arg for arg in get_args(annotation) if shape and _shape_of(arg) == shape]
        found = [find_unknown_path(value, arg) for arg in candidates]
        if not found or None in found:
            return None
        return found[0]

    if _is_model(annotation, RootModel):
        return find_unknown_path(value, annotation.model_fields["root"].annotation)

    declared = _declared_keys(annotation) if _is_object_type(annotation) else None
    if declared is not None:
        if not isinstance(value, dict) or _allows_extra(annotation):
            return None
        for key, item in value.items():
            if key not in declared:
                return (key,)
            found = find_unknown_path(item, declared[key])
            if found is not None:
                return (key,) + found
        return None

    args = get_args(annotation)

    if origin in _MAPPING_ORIGINS and isinstance(value, dict) and len(args) == 2:
        for key, item in value.items():
            found = find_unknown_path(item, args[1])
            if found is not None:
                return (key,) + found
        return None

    if origin in _SEQUENCE_ORIGINS and isinstance(value, list) and args:
        if origin is tuple and args[-1] is not Ellipsis:
            item_types = args
        else:
            item_types = (args[0],) * len(value)
        for index, (item, item_type) in enumerate(zip(value, item_types)):
            found = find_unknown_path(item, item_type)
            if found is not None:
                return (index,) + found

    return None


def _is_object_type(annotation: Any) -> bool:
    """Pydantic models, dataclasses and TypedDicts decode from JSON objects."""
    if get_origin(annotation) is not None or not isinstance(annotation, type):
        return False
    return issubclass(annotation, BaseModel) or dataclasses.is_dataclass(annotation) or is_typeddict(annotation)


def _allows_extra(annotation: type) -> bool:
    if issubclass(annotation, BaseModel):
        return annotation.model_config.get("extra") == "allow"
    config = getattr(annotation, "__pydantic_config__", None) or {}
    return config.get("extra") == "allow"


@lru_cache(maxsize=256)
def _declared_keys(annotation: type) -> Dict[str, Any]:
    """Map every JSON key `annotation` accepts to the type of its field."""
    if issubclass(annotation, BaseModel):
        by_name = annotation.model_config.get("populate_by_name", False)
        keys: Dict[str, Any] = {}
        for name, info in annotation.model_fields.items():
            alias = info.validation_alias if isinstance(info.validation_alias, str) else info.alias
            keys[alias or name] = info.annotation
            if by_name:
                keys[name] = info.annotation
        return keys

    hints = get_type_hints(annotation)
    if dataclasses.is_dataclass(annotation):
        return {field.name: hints.get(field.name, Any) for field in dataclasses.fields(annotation)}
    return dict(hints)


def _is_model(annotation: Any, base: type) -> bool:
    # Parametrized builtins like list[int] are not classes
    return get_origin(annotation) is None and isinstance(annotation, type) and issubclass(annotation, base)


def _json_shape(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        return "object"
    if isinstance(value, list):
        return "array"
    return None


def _shape_of(annotation: Any) -> Optional[str]:
    origin = get_origin(annotation)
    if origin is Annotated:
        return _shape_of(get_args(annotation)[0])
    if _is_model(annotation, RootModel):
        return _shape_of(annotation.model_fields["root"].annotation)
    if _is_object_type(annotation):
        return "object"
    if origin in _MAPPING_ORIGINS:
        return "object"
    if origin in _SEQUENCE_ORIGINS:
        return "array"
    return None
