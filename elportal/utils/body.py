"""Request body decoding."""

import json
from typing import Any

from elportal.exceptions import ValidationError


def parse_json_body(raw: bytes | str) -> dict[str, Any]:
    """
    Decode a JSON object request body.

    Beacon requests send JSON as text/plain, and some clients send the JSON
    document as a JSON string, so the body is decoded without looking at the
    Content-Type and a string result is decoded once more.

    Raises:
        ValidationError: If the body is not a JSON object
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if not raw.strip():
        return {}

    try:
        body = json.loads(raw)
        if isinstance(body, str):
            body = json.loads(body)
    except ValueError as exc:
        raise ValidationError(message="Request body is not valid JSON") from exc

    if not isinstance(body, dict):
        raise ValidationError(message="Request body must be a JSON object")
    return body
