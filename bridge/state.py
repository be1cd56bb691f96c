from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    RECONNECTING = "reconnecting"


@dataclass
class Place:
    place_id: str
    place_name: str
    account_id: str
    role: str
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Place':
        known = {"placeId", "placeName", "accountId", "role"}
        return cls(
            place_id=str(data.get("placeId", "")),
            place_name=str(data.get("placeName", "")),
            account_id=str(data.get("accountId", "")),
            role=str(data.get("role", "")),
            extra={k: v for k, v in data.items() if k not in known},
        )


@dataclass
class Session:
    subject_id: str
    places: List[Place] = field(default_factory=list)

    @classmethod
    def from_attributes(cls, attributes: Dict[str, Any]) -> 'Session':
        """Build a session from SessionCreated attributes (personId, places)"""
        places = attributes.get("places") or []
        return cls(
            subject_id=str(attributes.get("personId", "")),
            places=[Place.from_dict(p) for p in places if isinstance(p, dict)],
        )
