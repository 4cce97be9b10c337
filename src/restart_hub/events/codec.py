"""Wire codec for hub events.

Both directions carry one UTF-8 JSON object per WebSocket message. Outbound
events are always ``{"kind", "source", "timestamp"}``; inbound messages only
need a recognized ``kind`` (or legacy ``type``) tag.
"""

import json

from pydantic import ValidationError

from restart_hub.errors import DecodeError, DecodeFailure
from restart_hub.events.types import EventKind, InboundPayload, RestartEvent

KNOWN_KINDS = frozenset(kind.value for kind in EventKind)


def encode(event: RestartEvent) -> bytes:
    """Serialize an event to its wire form.

    Keys are sorted so the same event always produces the same bytes.

    Args:
        event: Event to serialize.

    Returns:
        UTF-8 encoded JSON object.
    """
    return json.dumps(
        event.model_dump(mode="json"),
        separators=(",", ":"),
        sort_keys=True,
    ).encode("utf-8")


def _load_object(data: bytes | str) -> dict[str, object]:
    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(DecodeFailure.MALFORMED, f"invalid utf-8: {e}") from e

    try:
        parsed = json.loads(data)
    except json.JSONDecodeError as e:
        raise DecodeError(DecodeFailure.MALFORMED, f"invalid json: {e.msg}") from e

    if not isinstance(parsed, dict):
        raise DecodeError(
            DecodeFailure.MALFORMED,
            f"expected object, got {type(parsed).__name__}",
        )
    return parsed


def decode(data: bytes | str) -> InboundPayload:
    """Decode and validate an inbound peer message.

    Args:
        data: Raw message as received from the transport.

    Returns:
        Validated inbound payload.

    Raises:
        DecodeError: ``MALFORMED`` when the message is not a JSON object,
            ``UNKNOWN_KIND`` when the tag is missing or not recognized.
    """
    obj = _load_object(data)

    tag = obj["kind"] if "kind" in obj else obj.get("type")
    if not isinstance(tag, str) or tag not in KNOWN_KINDS:
        raise DecodeError(DecodeFailure.UNKNOWN_KIND, f"unrecognized kind {tag!r}")

    try:
        return InboundPayload.model_validate(obj)
    except ValidationError as e:
        raise DecodeError(DecodeFailure.MALFORMED, str(e)) from e


def decode_event(data: bytes | str) -> RestartEvent:
    """Strictly decode a full outbound event.

    Args:
        data: Wire form produced by ``encode``.

    Returns:
        The decoded event.

    Raises:
        DecodeError: If the payload is not a complete, valid event.
    """
    obj = _load_object(data)
    try:
        return RestartEvent.model_validate(obj, strict=True)
    except ValidationError as e:
        raise DecodeError(DecodeFailure.MALFORMED, str(e)) from e
