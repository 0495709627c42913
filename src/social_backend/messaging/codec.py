"""Wire format for event payloads.

Message bodies are compact UTF-8 JSON objects. Pydantic models are dumped by
alias so that the wire keys match the published schema (``postId``,
``mediaIds``...); mappings are encoded as they are.
"""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel
from pydantic_core import from_json, to_json

from .core import EventDecodeError

CONTENT_TYPE = "application/json"

Payload = BaseModel | Mapping[str, Any]


def encode_payload(payload: Payload) -> bytes:
    """Serialize a payload to the bytes sent to the broker."""
    if isinstance(payload, BaseModel):
        return payload.model_dump_json(by_alias=True).encode()
    if isinstance(payload, Mapping):
        return to_json(dict(payload))
    raise TypeError(f"Event payload must be a mapping or a BaseModel, got: {type(payload).__name__}")


def decode_payload(body: bytes) -> dict[str, Any]:
    """Parse a delivery body back into a payload dict.

    Raises:
        EventDecodeError: If the body is not valid JSON or not a JSON object.
    """
    try:
        data = from_json(body)
    except ValueError as e:
        raise EventDecodeError(f"Message body is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise EventDecodeError(f"Message body must be a JSON object, got: {type(data).__name__}")
    return data
