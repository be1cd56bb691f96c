from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import json
import uuid

# Session announcement is the only message type without a "namespace:" prefix
SESSION_CREATED = "SessionCreated"
ERROR_MESSAGE = "Error"


class FrameError(Exception):
    """Raised when an inbound frame is not valid JSON or lacks the frame structure."""
    pass


class ProtocolError(Exception):
    """Raised by InboundFrame.raise_for_error for Error responses."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message


@dataclass
class RequestFrame:
    """
    Outbound request frame:
    {
    "type": "<messageType>",
    "headers": {"destination": "<address>", "correlationId": "<id>", "isRequest": true},
    "payload": {"messageType": "<messageType>", "attributes": {...}}
    }

    Outbound headers never carry a source address.
    """
    message_type: str
    destination: str
    correlation_id: str
    attributes: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.message_type,
            'headers': {
                'destination': self.destination,
                'correlationId': self.correlation_id,
                'isRequest': True,
            },
            'payload': {
                'messageType': self.message_type,
                'attributes': self.attributes,
            },
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(',', ':'))


@dataclass
class InboundFrame:
    """
    Inbound frame from the gateway:
    {
    "headers": {"isRequest": false, "correlationId": "<id or absent>", "source": "<address>"},
    "payload": {"messageType": "<type>", "attributes": {...}}
    }
    """
    message_type: str
    attributes: Dict[str, Any]
    correlation_id: Optional[str] = None
    source: Optional[str] = None
    destination: Optional[str] = None
    is_request: bool = False
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_json(cls, data: str | bytes) -> 'InboundFrame':
        """Parse a text or binary websocket message into a frame"""
        if isinstance(data, bytes):
            try:
                data = data.decode('utf-8')
            except UnicodeDecodeError as e:
                raise FrameError(f"Frame is not UTF-8: {e}")
        try:
            parsed = json.loads(data)
        except json.JSONDecodeError as e:
            raise FrameError(f"Invalid JSON: {e}")

        return cls.from_dict(parsed)

    @classmethod
    def from_dict(cls, data: Any) -> 'InboundFrame':
        """Create InboundFrame from dictionary, validating required fields"""
        if not isinstance(data, dict):
            raise FrameError("Frame must be a JSON object")

        headers = data.get('headers', {})
        payload = data.get('payload')
        if not isinstance(headers, dict):
            raise FrameError("'headers' must be an object")
        if not isinstance(payload, dict):
            raise FrameError("'payload' must be an object")

        message_type = payload.get('messageType')
        if not isinstance(message_type, str) or not message_type:
            raise FrameError("'payload.messageType' must be a non-empty string")

        attributes = payload.get('attributes', {})
        if attributes is None:
            attributes = {}
        if not isinstance(attributes, dict):
            raise FrameError("'payload.attributes' must be an object")

        correlation_id = headers.get('correlationId')
        if correlation_id is not None and not isinstance(correlation_id, str):
            raise FrameError("'headers.correlationId' must be a string")

        return cls(
            message_type=message_type,
            attributes=attributes,
            correlation_id=correlation_id or None,
            source=_opt_str(headers.get('source')),
            destination=_opt_str(headers.get('destination')),
            is_request=bool(headers.get('isRequest', False)),
            raw=data,
        )

    def is_session_announcement(self) -> bool:
        return self.message_type == SESSION_CREATED

    @property
    def is_error(self) -> bool:
        return self.message_type == ERROR_MESSAGE

    @property
    def error_code(self) -> Optional[str]:
        if not self.is_error:
            return None
        return self.attributes.get('code')

    @property
    def error_message(self) -> Optional[str]:
        if not self.is_error:
            return None
        return self.attributes.get('message')

    def raise_for_error(self) -> 'InboundFrame':
        """Raise ProtocolError for an Error frame, otherwise return self"""
        if self.is_error:
            raise ProtocolError(str(self.error_code or "UNKNOWN"), str(self.error_message or ""))
        return self

    def to_dict(self) -> Dict[str, Any]:
        if self.raw:
            return self.raw
        headers: Dict[str, Any] = {'isRequest': self.is_request}
        if self.correlation_id is not None:
            headers['correlationId'] = self.correlation_id
        if self.source is not None:
            headers['source'] = self.source
        return {
            'headers': headers,
            'payload': {'messageType': self.message_type, 'attributes': self.attributes},
        }


def _opt_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def new_correlation_id() -> str:
    return str(uuid.uuid4())


def create_request_frame(destination: str, message_type: str,
                         attributes: Optional[Dict[str, Any]] = None,
                         correlation_id: Optional[str] = None) -> RequestFrame:
    """Helper to build a request frame with a fresh correlation id (random if not provided)"""
    return RequestFrame(
        message_type=message_type,
        destination=destination,
        correlation_id=correlation_id or new_correlation_id(),
        attributes=dict(attributes or {}),
    )
