"""
JSON wire codec.

Proxy calls travel as a JSON array of positional arguments and come back as a
single JSON column. Reverse calls travel as a JSON object on the notification
channel. All (de)serialization happens here.
"""

import json
from typing import Any, Sequence, Tuple, Union

from pydantic import ValidationError

from pgproxy.base import MalformedNotificationError
from pgproxy.models import ReverseCallPayload

JsonValue = Union[None, bool, int, float, str, list, dict]
CallArguments = Tuple[JsonValue, ...]


def encode_arguments(args: Sequence[JsonValue]) -> str:
    """Serialize positional call arguments as a JSON array."""
    return json.dumps(list(args))


def decode_result(value: Any) -> Any:
    """Deserialize a value returned by a proxy procedure.

    Drivers without a json codec hand back the raw text; drivers with one
    hand back the decoded value, which is passed through.
    """
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if isinstance(value, str):
        return json.loads(value)
    return value


def encode_notification(payload: ReverseCallPayload) -> str:
    """Serialize a reverse call payload."""
    return json.dumps(payload.model_dump())


def decode_notification(text: str) -> ReverseCallPayload:
    """Deserialize a reverse call payload.

    Raises:
        MalformedNotificationError: If the text is not JSON or lacks the
            expected fields
    """
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise MalformedNotificationError(f"Notification is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedNotificationError("Notification payload must be a JSON object")

    try:
        return ReverseCallPayload.model_validate(data)
    except ValidationError as e:
        raise MalformedNotificationError(f"Notification payload has an unexpected shape: {e}") from e
