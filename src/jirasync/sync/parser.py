"""Decode raw webhook request bodies into ``WebhookEnvelope`` objects."""

import json
from typing import Any
from urllib.parse import parse_qs

import pydantic

from jirasync.errors.exceptions import MalformedPayload
from jirasync.models.webhook import WebhookEnvelope

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def validation_details(exc: pydantic.ValidationError) -> list[dict[str, str]]:
    """Flatten pydantic errors into JSON-safe ``{field, message}`` pairs."""
    return [
        {"field": ".".join(str(part) for part in err["loc"]) or "body", "message": err["msg"]}
        for err in exc.errors()
    ]


def parse_payload(
    body: bytes,
    content_type: str | None = None,
    *,
    max_bytes: int | None = None,
) -> WebhookEnvelope:
    """Decode ``body`` into an envelope or raise ``MalformedPayload``.

    JSON bodies (``application/json`` or any ``+json`` type) are decoded
    directly; form-encoded bodies must carry the JSON document in a
    ``payload`` field. A missing content type is treated as JSON.
    """
    if max_bytes is not None and len(body) > max_bytes:
        raise MalformedPayload(
            f"Webhook body exceeds {max_bytes} bytes",
            details={"size": len(body), "limit": max_bytes},
        )

    media_type = (content_type or "application/json").split(";", 1)[0].strip().lower()
    if media_type == FORM_CONTENT_TYPE:
        document = _decode_form(body)
    elif media_type == "application/json" or media_type.endswith("+json"):
        document = _decode_json(body)
    else:
        raise MalformedPayload(f"Unsupported content type '{media_type}'")

    if not isinstance(document, dict):
        raise MalformedPayload("Webhook body must be a JSON object")

    try:
        return WebhookEnvelope.model_validate(document)
    except pydantic.ValidationError as exc:
        details = validation_details(exc)
        fields = ", ".join(d["field"] for d in details)
        raise MalformedPayload(f"Missing or invalid envelope field(s): {fields}", details=details) from exc


def _decode_json(body: bytes) -> Any:
    try:
        return json.loads(body.decode("utf-8"))
    except UnicodeDecodeError as exc:
        raise MalformedPayload("Webhook body is not valid UTF-8") from exc
    except json.JSONDecodeError as exc:
        raise MalformedPayload(f"Invalid JSON: {exc.msg} at position {exc.pos}") from exc


def _decode_form(body: bytes) -> Any:
    try:
        parsed = parse_qs(body.decode("utf-8"))
    except UnicodeDecodeError as exc:
        raise MalformedPayload("Webhook body is not valid UTF-8") from exc
    payload_str = parsed.get("payload", [None])[0]
    if not payload_str:
        raise MalformedPayload("Missing payload form field")
    return _decode_json(payload_str.encode("utf-8"))
